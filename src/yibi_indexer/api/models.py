"""
Pydantic response models for the status surface.

Field names follow the JSON keys clients already read (``lastSyncedBlock``),
so the models use camelCase where the payload does.
"""

from pydantic import BaseModel


class RootResponse(BaseModel):
    """Service identity and installed version."""

    message: str
    version: str


class HealthResponse(BaseModel):
    """
    Liveness check.

    Attributes:
        status: Always ``"ok"`` while the process serves requests.
        version: Installed package version.
        levels: Number of indexed levels.
        solves: Number of recorded completions.
    """

    status: str
    version: str
    levels: int
    solves: int


class IndexerStatusResponse(BaseModel):
    """
    Synchronization snapshot plus endpoint diagnostics.

    Attributes:
        connected: Push-subscription transport is up.
        syncing: A backfill pass is in flight.
        lastSyncedBlock: Highest block applied by backfill, ``None`` before
            the first batch.
        contractAddress: Configured contract address.
        wsUrl: Truncated WebSocket endpoint (or ``"none"``).
    """

    connected: bool
    syncing: bool
    lastSyncedBlock: int | None = None
    contractAddress: str | None = None
    wsUrl: str
