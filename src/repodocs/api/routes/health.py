"""Health and metrics API routes."""

import structlog
from fastapi import APIRouter, Depends, Response
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from repodocs.api.routes.sync import get_sync_manager
from repodocs.api.schemas import HealthResponseSchema
from repodocs.ingestion.pipeline import SyncManager
from repodocs.observability import get_metrics
from repodocs.storage import RepoRepository, get_session

logger = structlog.get_logger()

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponseSchema)
async def health_check(
    session: AsyncSession = Depends(get_session),
    manager: SyncManager = Depends(get_sync_manager),
):
    """Health check endpoint."""
    try:
        repos = await RepoRepository(session).get_all()
    except SQLAlchemyError as e:
        logger.error("health_database_error", error=str(e))
        return HealthResponseSchema(status="degraded", database="error")

    return HealthResponseSchema(
        status="healthy",
        database="ok",
        repositories=len(repos),
        active_syncs=sum(1 for r in repos if manager.is_running(r.id)),
    )


@router.get("/metrics")
async def metrics():
    """Get Prometheus metrics."""
    data, content_type = get_metrics()
    return Response(content=data, media_type=content_type)
