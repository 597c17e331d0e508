"""API Pydantic schemas for request/response validation."""

from datetime import datetime

from pydantic import BaseModel, Field

from repodocs.models.docs import DocPage, DocTask
from repodocs.models.repository import SyncProgress, SyncStatus
from repodocs.models.verification import PageVerificationResult, VerificationSummary


# ===== Sync =====

class SyncTriggerResponseSchema(BaseModel):
    """Response to a sync trigger."""

    repo_id: str
    status: SyncStatus
    message: str


class SyncStatusResponseSchema(BaseModel):
    """Current sync status and progress checkpoint of a repository."""

    repo_id: str
    full_name: str
    branch: str
    status: SyncStatus
    progress: SyncProgress
    running: bool = False
    last_synced_commit_sha: str | None = None
    last_synced_at: datetime | None = None
    latest_commit_sha: str | None = None
    has_updates: bool = False


# ===== Docs =====

class DocBundleResponseSchema(BaseModel):
    """Persisted documentation with a freshly computed verification summary."""

    repo_id: str
    commit_sha: str | None = None
    generated_at: datetime | None = None
    repo_summary: dict = Field(default_factory=dict)
    warnings: list[str] = Field(default_factory=list)
    tasks: list[DocTask] = Field(default_factory=list)
    pages: list[DocPage]
    verification: VerificationSummary


class DocPageResponseSchema(BaseModel):
    """A single page with its verification result."""

    repo_id: str
    page: DocPage
    verification: PageVerificationResult


# ===== Webhooks =====

class WebhookResponseSchema(BaseModel):
    """Webhook delivery acknowledgement."""

    message: str
    repos_updated: int = 0
    syncs_triggered: list[str] = Field(default_factory=list)


# ===== Health =====

class HealthResponseSchema(BaseModel):
    """Health check response schema."""

    status: str
    database: str = "unknown"
    repositories: int = 0
    active_syncs: int = 0
