"""GitHub push webhook receiver."""

import hashlib
import hmac
import json

import structlog
from fastapi import APIRouter, Depends, Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from repodocs.api.routes.sync import get_sync_manager
from repodocs.api.schemas import WebhookResponseSchema
from repodocs.config import get_settings
from repodocs.errors import RepositoryNotFoundError, SyncInProgressError
from repodocs.ingestion.pipeline import SyncManager
from repodocs.observability import WEBHOOK_EVENTS
from repodocs.storage import RepoRepository, get_session

logger = structlog.get_logger()

router = APIRouter(prefix="/webhooks", tags=["webhooks"])

BRANCH_REF_PREFIX = "refs/heads/"


def get_webhook_secret() -> str | None:
    """Dependency returning the shared webhook secret."""
    return get_settings().github_webhook_secret


def verify_signature(payload: bytes, signature: str | None, secret: str) -> bool:
    """Check an X-Hub-Signature-256 header against the raw request body."""
    if not signature:
        return False
    expected = "sha256=" + hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()
    return hmac.compare_digest(signature, expected)


@router.post("/github", response_model=WebhookResponseSchema)
async def github_webhook(
    request: Request,
    x_hub_signature_256: str | None = Header(default=None),
    x_github_event: str | None = Header(default=None),
    secret: str | None = Depends(get_webhook_secret),
    session: AsyncSession = Depends(get_session),
    manager: SyncManager = Depends(get_sync_manager),
):
    """
    Handle a GitHub webhook delivery.

    Push events flag every repository tracking the pushed branch as having
    updates, and start a sync for those with auto-sync enabled.
    """
    event = x_github_event or "unknown"
    if not secret:
        logger.error("webhook_secret_not_configured")
        raise HTTPException(status_code=500, detail="Webhook secret not configured")

    payload = await request.body()
    if not verify_signature(payload, x_hub_signature_256, secret):
        WEBHOOK_EVENTS.labels(event=event, result="rejected").inc()
        logger.warning("webhook_invalid_signature", event=event)
        raise HTTPException(status_code=401, detail="Invalid signature")

    try:
        data = json.loads(payload)
    except json.JSONDecodeError:
        WEBHOOK_EVENTS.labels(event=event, result="invalid").inc()
        raise HTTPException(status_code=400, detail="Invalid payload")

    if event == "ping":
        WEBHOOK_EVENTS.labels(event=event, result="ok").inc()
        logger.info("webhook_ping", zen=data.get("zen"))
        return WebhookResponseSchema(message="pong")

    if event != "push":
        WEBHOOK_EVENTS.labels(event=event, result="ignored").inc()
        logger.info("webhook_event_ignored", event=event)
        return WebhookResponseSchema(message="Event not handled")

    repository = data.get("repository") or {}
    owner_info = repository.get("owner") or {}
    owner = owner_info.get("login") or owner_info.get("name")
    name = repository.get("name")
    ref = data.get("ref") or ""
    commit_sha = data.get("after")
    if not owner or not name or not ref:
        WEBHOOK_EVENTS.labels(event=event, result="invalid").inc()
        raise HTTPException(status_code=400, detail="Invalid payload")
    if not ref.startswith(BRANCH_REF_PREFIX):
        # Tag pushes
        WEBHOOK_EVENTS.labels(event=event, result="ignored").inc()
        logger.info("webhook_ref_ignored", repo=f"{owner}/{name}", ref=ref)
        return WebhookResponseSchema(message="Event not handled")
    branch = ref[len(BRANCH_REF_PREFIX):]

    logger.info("webhook_push", repo=f"{owner}/{name}", branch=branch, commit=commit_sha)

    repos = RepoRepository(session)
    tracking = [r for r in await repos.find_by_full_name(owner, name) if r.branch == branch]
    if not tracking:
        WEBHOOK_EVENTS.labels(event=event, result="unmatched").inc()
        return WebhookResponseSchema(message="No matching repos")

    updated = 0
    triggered: list[str] = []
    for repo in tracking:
        if repo.last_synced_commit_sha == commit_sha:
            logger.info("webhook_repo_up_to_date", repo_id=repo.id, commit=commit_sha)
            continue

        await repos.mark_has_updates(repo.id, commit_sha)
        updated += 1

        if repo.auto_sync_enabled:
            try:
                await manager.trigger(repo.id)
                triggered.append(repo.id)
            except (SyncInProgressError, RepositoryNotFoundError) as e:
                logger.warning("webhook_auto_sync_skipped", repo_id=repo.id, reason=str(e))

    WEBHOOK_EVENTS.labels(event=event, result="ok").inc()
    return WebhookResponseSchema(
        message="Processed",
        repos_updated=updated,
        syncs_triggered=triggered,
    )
