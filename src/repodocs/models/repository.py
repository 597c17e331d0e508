"""Data models for repositories, indexed files, and chunks."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class SyncStatus(str, Enum):
    """Lifecycle status of a repository sync."""

    PENDING = "PENDING"
    SYNCING = "SYNCING"
    SYNCED = "SYNCED"
    ERROR = "ERROR"


class SyncStage(str, Enum):
    """Stage reported while a sync is running."""

    DISCOVERING = "discovering"
    INDEXING = "indexing"
    EMBEDDING = "embedding"
    GENERATING_DOCS = "generating_docs"


class SyncProgress(BaseModel):
    """Persisted checkpoint for a running (or failed) sync."""

    stage: SyncStage | None = None
    processed_count: int = 0
    total_count: int = 0
    last_error: str | None = None


class Repository(BaseModel):
    """A tracked git-hosted repository."""

    id: str
    project_id: str
    owner: str
    name: str
    default_branch: str = "main"
    selected_branch: str | None = None
    status: SyncStatus = SyncStatus.PENDING
    progress: SyncProgress = Field(default_factory=SyncProgress)
    last_synced_commit_sha: str | None = None
    last_synced_at: datetime | None = None

    # Push webhook state
    auto_sync_enabled: bool = False
    latest_commit_sha: str | None = None
    has_updates: bool = False
    webhook_id: int | None = None

    @property
    def branch(self) -> str:
        """Branch to sync: the selected one, else the default."""
        return self.selected_branch or self.default_branch

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"


class FileRecord(BaseModel):
    """An indexed file. Unique per (repo_id, path)."""

    repo_id: str
    path: str
    content_hash: str
    size: int
    language: str | None = None
    last_indexed_at: datetime = Field(default_factory=datetime.utcnow)


class Chunk(BaseModel):
    """A contiguous slice of a file's text, optionally with its embedding."""

    repo_id: str
    file_path: str
    chunk_index: int
    content: str
    token_count: int = 0
    embedding: list[float] | None = None  # None when the provider failed
    metadata: dict = Field(default_factory=dict)


class TreeEntry(BaseModel):
    """An entry of a recursive git tree listing."""

    path: str
    type: str  # "blob" | "tree" | "commit"
    sha: str
    size: int | None = None
