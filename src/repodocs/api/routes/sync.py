"""Sync trigger and status API routes."""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from repodocs.api.schemas import SyncStatusResponseSchema, SyncTriggerResponseSchema
from repodocs.errors import RepositoryNotFoundError, SyncInProgressError
from repodocs.ingestion.pipeline import SyncManager
from repodocs.models.repository import SyncStatus
from repodocs.storage import RepoRepository, get_session

router = APIRouter(prefix="/repos", tags=["sync"])


# Dependency injection placeholder - set by the app factory
_sync_manager: SyncManager | None = None


def get_sync_manager() -> SyncManager:
    """Dependency to get the sync manager."""
    if _sync_manager is None:
        raise HTTPException(status_code=503, detail="Sync manager not initialized")
    return _sync_manager


def set_sync_manager(manager: SyncManager | None):
    """Set the sync manager instance."""
    global _sync_manager
    _sync_manager = manager


@router.post(
    "/{repo_id}/sync",
    response_model=SyncTriggerResponseSchema,
    status_code=status.HTTP_202_ACCEPTED,
)
async def trigger_sync(repo_id: str, manager: SyncManager = Depends(get_sync_manager)):
    """
    Start a sync in the background.

    Poll GET /repos/{repo_id}/sync for progress.
    """
    try:
        await manager.trigger(repo_id)
    except SyncInProgressError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except RepositoryNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    return SyncTriggerResponseSchema(
        repo_id=repo_id,
        status=SyncStatus.SYNCING,
        message="Sync started",
    )


@router.get("/{repo_id}/sync", response_model=SyncStatusResponseSchema)
async def get_sync_status(
    repo_id: str,
    session: AsyncSession = Depends(get_session),
    manager: SyncManager = Depends(get_sync_manager),
):
    """Get the sync status and progress checkpoint of a repository."""
    repo = await RepoRepository(session).get(repo_id)
    if repo is None:
        raise HTTPException(status_code=404, detail=f"Repository not found: {repo_id}")

    return SyncStatusResponseSchema(
        repo_id=repo.id,
        full_name=repo.full_name,
        branch=repo.branch,
        status=repo.status,
        progress=repo.progress,
        running=manager.is_running(repo.id),
        last_synced_commit_sha=repo.last_synced_commit_sha,
        last_synced_at=repo.last_synced_at,
        latest_commit_sha=repo.latest_commit_sha,
        has_updates=repo.has_updates,
    )
