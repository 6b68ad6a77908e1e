"""Status routes.

The shared :class:`~yibi_indexer.indexer.service.IndexerService` is read from
``request.app.state.indexer``; routes never construct one.
"""

from fastapi import APIRouter, HTTPException, Request

from yibi_indexer import __version__
from yibi_indexer.api.models import HealthResponse, IndexerStatusResponse, RootResponse
from yibi_indexer.config import mask_url
from yibi_indexer.db import levels_repo, solves_repo
from yibi_indexer.db.errors import DatabaseError
from yibi_indexer.indexer.service import IndexerService

router = APIRouter()


def _service(request: Request) -> IndexerService:
    service = getattr(request.app.state, "indexer", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Indexer not started")
    return service


@router.get("/", response_model=RootResponse)
async def root():
    """Root endpoint showing service identity and current version."""
    return {"message": "YiBi Level Indexer", "version": __version__}


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    try:
        levels = levels_repo.count_levels()
        solves = solves_repo.count_solves()
    except DatabaseError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return {"status": "ok", "version": __version__, "levels": levels, "solves": solves}


@router.get("/debug/indexer-status", response_model=IndexerStatusResponse)
async def indexer_status(request: Request):
    service = _service(request)
    chain = service.config.chain
    return {
        **service.status(),
        "contractAddress": chain.contract_address or None,
        "wsUrl": mask_url(chain.ws_url),
    }
