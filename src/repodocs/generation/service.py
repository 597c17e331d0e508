"""Multi-round documentation generation, verification and persistence."""

from dataclasses import dataclass, field

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from repodocs.config import get_settings
from repodocs.generation.context import (
    build_context,
    expand_requested_files,
    select_key_files,
)
from repodocs.generation.runners import DocRunner, ProgressCallback, RunnerConfig, create_runner
from repodocs.models.docs import DocOutput, DocPage, RepoContextFile
from repodocs.models.repository import Repository
from repodocs.models.verification import VerificationSummary
from repodocs.observability import VERIFICATION_SCORE
from repodocs.storage import DocBundleRepository, get_session_factory
from repodocs.verification import verify_documentation

logger = structlog.get_logger()


@dataclass
class GenerationOutcome:
    """Result of a documentation generation run."""

    repo_id: str
    output: DocOutput | None = None
    summary: VerificationSummary | None = None
    rounds: int = 0
    error: str | None = None
    warnings: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.output is not None


def merge_round_outputs(previous: DocOutput, latest: DocOutput) -> DocOutput:
    """
    Combine the outputs of two rounds.

    The later round returns the complete updated set, so its page for a
    slug replaces the earlier one. Warnings and tasks accumulate.
    """
    pages: dict[str, DocPage] = {page.slug: page for page in previous.pages}
    for page in latest.pages:
        pages[page.slug] = page

    warnings = list(previous.warnings)
    warnings += [w for w in latest.warnings if w not in warnings]

    return DocOutput(
        repo_summary=previous.repo_summary,
        warnings=warnings,
        needs_more_files=latest.needs_more_files,
        pages=list(pages.values()),
        tasks=(previous.tasks or []) + (latest.tasks or []) or None,
    )


class DocGenerationService:
    """
    Generates, verifies and stores documentation for a synced repository.

    Flow:
    1. Round 1 shows the highest-priority files
    2. If the model asks for more files, later rounds supply them
       (skipped when none of the requested files can be provided)
    3. Every page is verified against the synced file contents
    4. The bundle replaces any previous documentation for the repository
    """

    def __init__(
        self,
        runner: DocRunner | None = None,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        max_rounds: int | None = None,
        max_key_files: int | None = None,
        max_key_file_chars: int | None = None,
        on_progress: ProgressCallback | None = None,
        persist: bool = True,
    ):
        settings = get_settings()
        self.runner = runner or create_runner(RunnerConfig.from_settings(settings), on_progress)
        self._session_factory = session_factory
        self.max_rounds = max_rounds or settings.doc_max_rounds
        self.max_key_files = max_key_files or settings.max_key_files
        self.max_key_file_chars = max_key_file_chars or settings.max_key_file_chars
        self.persist = persist

    async def generate(
        self,
        repo: Repository,
        file_tree: list[RepoContextFile],
        contents: dict[str, str],
        commit_sha: str | None = None,
    ) -> GenerationOutcome:
        """
        Run documentation generation for a repository.

        Args:
            repo: The repository being documented
            file_tree: Every indexed file
            contents: Decoded text of every indexed file, by path
            commit_sha: Commit the contents were read at

        Returns:
            GenerationOutcome; on failure output is None and error is set
        """
        outcome = GenerationOutcome(repo_id=repo.id)
        key_files = select_key_files(contents, self.max_key_files, self.max_key_file_chars)
        shown = {f.path for f in key_files}

        context = build_context(repo, file_tree, key_files, round=1, max_rounds=self.max_rounds)
        logger.info("doc_round_started", repo_id=repo.id, round=1, key_files=len(key_files))
        result = await self.runner.run(context)
        outcome.rounds = 1
        if not result.success or result.output is None:
            outcome.error = result.error or "Documentation runner failed"
            logger.error("doc_generation_failed", repo_id=repo.id, round=1, error=outcome.error)
            return outcome

        output = result.output
        for round_number in range(2, self.max_rounds + 1):
            if not output.needs_more_files:
                break

            requested = expand_requested_files(output.needs_more_files, list(contents))
            new_paths = [p for p in requested if p not in shown][: self.max_key_files]
            if not new_paths:
                logger.info(
                    "doc_round_skipped",
                    repo_id=repo.id,
                    round=round_number,
                    requested=output.needs_more_files,
                )
                break

            extra = select_key_files(
                {p: contents[p] for p in new_paths}, len(new_paths), self.max_key_file_chars
            )
            shown.update(new_paths)
            context = build_context(
                repo, file_tree, extra, round=round_number, max_rounds=self.max_rounds
            )
            logger.info("doc_round_started", repo_id=repo.id, round=round_number, key_files=len(extra))
            follow_up = await self.runner.run(context, previous_output=output)
            outcome.rounds = round_number
            if not follow_up.success or follow_up.output is None:
                logger.warning(
                    "doc_follow_up_failed",
                    repo_id=repo.id,
                    round=round_number,
                    error=follow_up.error,
                )
                break
            output = merge_round_outputs(output, follow_up.output)

        summary = verify_documentation(output.pages, contents, [f.path for f in file_tree])
        VERIFICATION_SCORE.observe(summary.overall_score)

        warnings = list(output.warnings)
        for page_result in summary.pages:
            for issue in page_result.issues:
                if issue.severity == "error":
                    warnings.append(f"[{page_result.title}] {issue.message}")
        output = output.model_copy(update={"warnings": warnings})

        outcome.output = output
        outcome.summary = summary
        outcome.warnings = warnings

        if self.persist:
            factory = self._session_factory or await get_session_factory()
            async with factory() as session:
                await DocBundleRepository(session).replace(repo.id, output, summary, commit_sha)

        logger.info(
            "doc_generation_complete",
            repo_id=repo.id,
            rounds=outcome.rounds,
            pages=len(output.pages),
            overall_score=summary.overall_score,
            needs_review=summary.needs_review,
        )
        return outcome
