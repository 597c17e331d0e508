"""Data models for generated documentation and runner results."""

from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field


class DocCategory(str, Enum):
    """Documentation page category."""

    ARCHITECTURE = "ARCHITECTURE"
    API = "API"
    FEATURE = "FEATURE"
    RUNBOOK = "RUNBOOK"


SLUG_PATTERN = r"^[a-z0-9-]+/[a-z0-9-]+$"


class EvidenceItem(BaseModel):
    """A citation backing a documentation claim."""

    file_path: str = Field(..., min_length=1)
    excerpt: str = Field(..., max_length=1500)
    reason: str = Field(..., min_length=1)


class DocPage(BaseModel):
    """A single generated documentation page."""

    category: DocCategory
    slug: str = Field(..., pattern=SLUG_PATTERN)
    title: str = Field(..., min_length=1, max_length=200)
    markdown: str = Field(..., min_length=10)
    evidence: list[EvidenceItem] = Field(default_factory=list)


class RepoSummary(BaseModel):
    """Model-reported summary of the repository."""

    name: str
    tech_stack: list[str] = Field(default_factory=list)
    entrypoints: list[str] = Field(default_factory=list)


class DocTask(BaseModel):
    """A follow-up documentation task suggested by the model."""

    title: str = Field(..., min_length=1, max_length=200)
    description: str | None = None
    category: DocCategory | None = None
    priority: Literal["low", "medium", "high"] = "medium"


class DocOutput(BaseModel):
    """Validated output of a documentation generation run."""

    repo_summary: RepoSummary
    warnings: list[str] = Field(default_factory=list)
    needs_more_files: list[str] | None = None
    pages: list[DocPage] = Field(..., min_length=1)
    tasks: list[DocTask] | None = None


class RepoContextFile(BaseModel):
    """A file tree entry shown to the model."""

    path: str
    size: int = 0
    language: str | None = None


class RepoContextKeyFile(BaseModel):
    """A file whose full content is shown to the model."""

    path: str
    content: str
    language: str | None = None


class RepoContext(BaseModel):
    """Everything the runner needs to prompt the model for one round."""

    repo_owner: str
    repo_name: str
    default_branch: str
    file_tree: list[RepoContextFile] = Field(default_factory=list)
    key_files: list[RepoContextKeyFile] = Field(default_factory=list)
    total_files: int = 0
    round: int = 1
    max_rounds: int = 2

    @property
    def repo_key(self) -> str:
        return f"{self.repo_owner}/{self.repo_name}"


class RunnerStage(str, Enum):
    """Progress stages emitted by documentation runners."""

    STARTING = "starting"
    CALLING_API = "calling_api"
    STREAMING = "streaming"
    PARSING = "parsing"
    CONTINUATION = "continuation"
    COMPLETE = "complete"
    ERROR = "error"


class RunnerProgress(BaseModel):
    """Ephemeral progress snapshot; only the latest one matters."""

    stage: RunnerStage
    message: str
    pages_generated: int = 0
    continuation_attempt: int | None = None
    max_continuations: int | None = None
    estimated_total_seconds: float | None = None
    elapsed_seconds: float | None = None
    tokens_generated: int | None = None
    streaming_pages: list[str] = Field(default_factory=list)


class RunnerResult(BaseModel):
    """Outcome of a runner invocation."""

    success: bool
    output: DocOutput | None = None
    raw_output: str | None = None
    error: str | None = None
    needs_more_files: list[str] | None = None
