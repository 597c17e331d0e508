"""Models package."""

from repodocs.models.docs import (
    DocCategory,
    DocOutput,
    DocPage,
    DocTask,
    EvidenceItem,
    RepoContext,
    RepoContextFile,
    RepoContextKeyFile,
    RepoSummary,
    RunnerProgress,
    RunnerResult,
    RunnerStage,
)
from repodocs.models.repository import (
    Chunk,
    FileRecord,
    Repository,
    SyncProgress,
    SyncStage,
    SyncStatus,
    TreeEntry,
)
from repodocs.models.verification import (
    PageVerificationResult,
    VerificationIssue,
    VerificationSummary,
)

__all__ = [
    "Chunk",
    "DocCategory",
    "DocOutput",
    "DocPage",
    "DocTask",
    "EvidenceItem",
    "FileRecord",
    "PageVerificationResult",
    "RepoContext",
    "RepoContextFile",
    "RepoContextKeyFile",
    "RepoSummary",
    "Repository",
    "RunnerProgress",
    "RunnerResult",
    "RunnerStage",
    "SyncProgress",
    "SyncStage",
    "SyncStatus",
    "TreeEntry",
    "VerificationIssue",
    "VerificationSummary",
]
