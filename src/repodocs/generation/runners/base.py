"""Documentation runner interface and configuration."""

import inspect
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable

import structlog

from repodocs.config import Settings
from repodocs.generation.prompts import build_doc_prompt, build_follow_up_prompt
from repodocs.models.docs import (
    DocOutput,
    RepoContext,
    RunnerProgress,
    RunnerResult,
    RunnerStage,
)
from repodocs.observability import RUNNER_CALLS

logger = structlog.get_logger()

ProgressCallback = Callable[[RunnerProgress], Awaitable[None] | None]


class RunnerKind(str, Enum):
    """Available documentation runner strategies."""

    API = "api"
    CLI = "cli"
    FIXTURE = "fixture"


@dataclass(frozen=True)
class RunnerConfig:
    """Explicit runner configuration; nothing below this reads the environment."""

    kind: RunnerKind | None = None
    use_cli: bool = False
    api_key: str | None = None
    api_base: str = "https://api.anthropic.com"
    model: str = "claude-sonnet-4-20250514"
    max_tokens: int = 16000
    max_continuations: int = 2
    timeout_seconds: float = 300.0
    cli_path: str = "claude"
    progress_interval_seconds: float = 5.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "RunnerConfig":
        return cls(
            kind=RunnerKind(settings.runner_kind) if settings.runner_kind else None,
            use_cli=settings.use_claude_cli,
            api_key=settings.anthropic_api_key,
            api_base=settings.anthropic_api_base,
            model=settings.llm_model,
            max_tokens=settings.llm_max_tokens,
            max_continuations=settings.llm_max_continuations,
            timeout_seconds=settings.llm_timeout_seconds,
            cli_path=settings.claude_cli_path,
        )


class DocRunner(ABC):
    """
    Produces validated documentation output for a repository context.

    Implementations never raise for model or transport problems; they
    return a RunnerResult with success=False and a readable error.
    """

    name = "base"

    def __init__(self, on_progress: ProgressCallback | None = None):
        self.on_progress = on_progress

    @abstractmethod
    async def run(
        self,
        context: RepoContext,
        previous_output: DocOutput | None = None,
    ) -> RunnerResult:
        """
        Generate documentation.

        Args:
            context: Files and metadata for this round
            previous_output: Output of the previous round; when it requested
                more files, the follow-up prompt is used

        Returns:
            RunnerResult with the validated output or an error
        """
        pass

    def build_prompt(self, context: RepoContext, previous_output: DocOutput | None) -> str:
        if previous_output is not None and previous_output.needs_more_files:
            return build_follow_up_prompt(
                context, previous_output.warnings, previous_output.needs_more_files
            )
        return build_doc_prompt(context)

    async def emit(self, stage: RunnerStage, message: str, **fields) -> None:
        """Report progress. Callback failures are logged and ignored."""
        if self.on_progress is None:
            return
        try:
            result = self.on_progress(RunnerProgress(stage=stage, message=message, **fields))
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.warning("progress_callback_failed", runner=self.name, error=str(e))

    async def fail(self, error: str, raw_output: str | None = None) -> RunnerResult:
        logger.error("doc_runner_failed", runner=self.name, error=error)
        RUNNER_CALLS.labels(runner=self.name, outcome="failure").inc()
        await self.emit(RunnerStage.ERROR, error)
        return RunnerResult(success=False, error=error, raw_output=raw_output)

    async def succeed(self, output: DocOutput, raw_output: str | None = None) -> RunnerResult:
        RUNNER_CALLS.labels(runner=self.name, outcome="success").inc()
        await self.emit(
            RunnerStage.COMPLETE,
            f"Generated {len(output.pages)} documentation pages",
            pages_generated=len(output.pages),
        )
        return RunnerResult(
            success=True,
            output=output,
            raw_output=raw_output,
            needs_more_files=output.needs_more_files,
        )
