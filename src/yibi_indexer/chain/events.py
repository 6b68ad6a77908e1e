"""
Canonical event types and transport-boundary normalization.

The web3 transport hands us decoded logs and struct results in more than one
shape: event arguments may be addressable by name (``AttributeDict``) or only
by position, and ``getLevel`` structs come back as plain tuples or as
mappings. Everything is folded into the frozen dataclasses below exactly
once, here. Projector, coordinator and subscriber only ever see
:class:`LevelCreated`, :class:`LevelSolved` and :class:`LevelData`.

Malformed payloads raise :class:`MalformedEventError`; a missing transaction
hash is *not* malformed at this layer (``tx_hash`` is ``None``) because the
projector owns the drop-on-missing-transaction rule.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class EventKind(str, Enum):
    """Contract event names, used as ABI lookup keys."""

    CREATED = "LevelCreated"
    SOLVED = "LevelSolved"


class MalformedEventError(ValueError):
    """Raised when a transport payload cannot be read as a canonical event."""


# =============================================================================
# CANONICAL TYPES
# =============================================================================


@dataclass(frozen=True, slots=True)
class LevelCreated:
    """A ``LevelCreated`` occurrence after normalization.

    Only summary fields travel in the event; the hint list is read separately
    through ``getLevel``.
    """

    level_id: int
    creator: str
    name: str
    size: int
    hint_count: int
    tx_hash: str | None = None
    block_number: int | None = None
    log_index: int | None = None

    @property
    def kind(self) -> EventKind:
        return EventKind.CREATED


@dataclass(frozen=True, slots=True)
class LevelSolved:
    """A ``LevelSolved`` occurrence after normalization.

    ``path_length`` and ``is_first`` are decoded for logging but not stored.
    """

    level_id: int
    solver: str
    path_length: int = 0
    is_first: bool = False
    tx_hash: str | None = None
    block_number: int | None = None
    log_index: int | None = None

    @property
    def kind(self) -> EventKind:
        return EventKind.SOLVED


CanonicalEvent = LevelCreated | LevelSolved


@dataclass(frozen=True, slots=True)
class Hint:
    """A numbered cell on the level grid."""

    x: int
    y: int
    value: int

    def to_dict(self) -> dict[str, Any]:
        """Storage shape: ``{"coord": {"x": .., "y": ..}, "value": ..}``."""
        return {"coord": {"x": self.x, "y": self.y}, "value": self.value}


@dataclass(frozen=True, slots=True)
class LevelData:
    """Full level structure returned by the contract's ``getLevel`` view."""

    level_id: int
    name: str
    size: int
    creator: str
    created_at: int = 0
    completion_count: int = 0
    hints: tuple[Hint, ...] = field(default_factory=tuple)


# =============================================================================
# FIELD ACCESS HELPERS
# =============================================================================

_MISSING = object()


def _get(source: Any, key: str, default: Any = _MISSING) -> Any:
    """Read ``key`` from a mapping or attribute-style object."""
    if isinstance(source, Mapping):
        if key in source:
            return source[key]
    elif source is not None and hasattr(source, key):
        return getattr(source, key)
    return default


def _field(source: Any, names: Sequence[str], position: int) -> Any:
    """Read a field by any of ``names``, falling back to ``position``."""
    for name in names:
        value = _get(source, name)
        if value is not _MISSING and value is not None:
            return value
    if isinstance(source, Sequence) and not isinstance(source, (str, bytes)):
        if position < len(source):
            return source[position]
    raise MalformedEventError(f"missing field {names[0]!r} (position {position})")


def _to_int(value: Any, label: str) -> int:
    try:
        if isinstance(value, str) and value.startswith("0x"):
            return int(value, 16)
        return int(value)
    except (TypeError, ValueError) as exc:
        raise MalformedEventError(f"{label} is not an integer: {value!r}") from exc


def _to_hex(value: Any) -> str | None:
    """Render a transaction hash as a ``0x``-prefixed lowercase hex string."""
    if value is None:
        return None
    if isinstance(value, (bytes, bytearray)):
        if not value:
            return None
        return "0x" + bytes(value).hex()
    text = str(value).strip()
    if not text:
        return None
    return text.lower() if text.startswith("0x") else "0x" + text.lower()


def _log_meta(raw: Any) -> tuple[str | None, int | None, int | None]:
    """Extract (tx_hash, block_number, log_index) from a decoded log.

    Looks at the top level first and then at a nested ``log`` entry, since
    some transports wrap the raw log inside the decoded event.
    """
    tx_hash = _to_hex(_get(raw, "transactionHash", None))
    block_number = _get(raw, "blockNumber", None)
    log_index = _get(raw, "logIndex", None)
    nested = _get(raw, "log", None)
    if nested is not None:
        tx_hash = tx_hash or _to_hex(_get(nested, "transactionHash", None))
        if block_number is None:
            block_number = _get(nested, "blockNumber", None)
        if log_index is None:
            log_index = _get(nested, "logIndex", None)
    return (
        tx_hash,
        _to_int(block_number, "blockNumber") if block_number is not None else None,
        _to_int(log_index, "logIndex") if log_index is not None else None,
    )


def _args(raw: Any) -> Any:
    args = _get(raw, "args", None)
    if args is None:
        raise MalformedEventError("decoded event has no args")
    return args


# =============================================================================
# NORMALIZERS
# =============================================================================


def normalize_created(raw: Any) -> LevelCreated:
    """Build a :class:`LevelCreated` from a decoded ``LevelCreated`` log."""
    args = _args(raw)
    tx_hash, block_number, log_index = _log_meta(raw)
    return LevelCreated(
        level_id=_to_int(_field(args, ("levelId",), 0), "levelId"),
        creator=str(_field(args, ("creator",), 1)),
        name=str(_field(args, ("name",), 2)),
        size=_to_int(_field(args, ("size",), 3), "size"),
        hint_count=_to_int(_field(args, ("hintsCount", "hintCount"), 4), "hintsCount"),
        tx_hash=tx_hash,
        block_number=block_number,
        log_index=log_index,
    )


def normalize_solved(raw: Any) -> LevelSolved:
    """Build a :class:`LevelSolved` from a decoded ``LevelSolved`` log."""
    args = _args(raw)
    tx_hash, block_number, log_index = _log_meta(raw)
    return LevelSolved(
        level_id=_to_int(_field(args, ("levelId",), 0), "levelId"),
        solver=str(_field(args, ("solver",), 1)),
        path_length=_to_int(_field(args, ("pathLength",), 2), "pathLength"),
        is_first=bool(_field(args, ("isFirst",), 3)),
        tx_hash=tx_hash,
        block_number=block_number,
        log_index=log_index,
    )


def normalize_event(kind: EventKind, raw: Any) -> CanonicalEvent:
    """Dispatch to the normalizer for ``kind``."""
    if kind is EventKind.CREATED:
        return normalize_created(raw)
    return normalize_solved(raw)


def _normalize_hint(raw: Any) -> Hint:
    coord = _field(raw, ("coord",), 0)
    return Hint(
        x=_to_int(_field(coord, ("x",), 0), "hint.x"),
        y=_to_int(_field(coord, ("y",), 1), "hint.y"),
        value=_to_int(_field(raw, ("value",), 1), "hint.value"),
    )


def normalize_level(raw: Any) -> LevelData:
    """Build :class:`LevelData` from a ``getLevel`` result (tuple or mapping)."""
    # A single-output function may come back wrapped in a one-element tuple.
    if isinstance(raw, (list, tuple)) and len(raw) == 1:
        raw = raw[0]
    hints_raw = _field(raw, ("hints",), 6)
    return LevelData(
        level_id=_to_int(_field(raw, ("id", "levelId"), 0), "id"),
        name=str(_field(raw, ("name",), 1)),
        size=_to_int(_field(raw, ("size",), 2), "size"),
        creator=str(_field(raw, ("creator",), 3)),
        created_at=_to_int(_field(raw, ("createdAt",), 4), "createdAt"),
        completion_count=_to_int(_field(raw, ("completionCount",), 5), "completionCount"),
        hints=tuple(_normalize_hint(hint) for hint in hints_raw),
    )
