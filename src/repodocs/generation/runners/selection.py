"""Choosing and building a documentation runner."""

import httpx
import structlog

from repodocs.generation.runners.api import StreamingApiRunner
from repodocs.generation.runners.base import DocRunner, ProgressCallback, RunnerConfig, RunnerKind
from repodocs.generation.runners.cli import CliRunner
from repodocs.generation.runners.fixture import FixtureRunner

logger = structlog.get_logger()


def select_runner_kind(config: RunnerConfig) -> RunnerKind:
    """
    Pick a runner strategy.

    Priority: explicit override, then the CLI flag, then API-key presence,
    then the fixture runner.
    """
    if config.kind is not None:
        return config.kind
    if config.use_cli:
        return RunnerKind.CLI
    if config.api_key:
        return RunnerKind.API
    return RunnerKind.FIXTURE


def create_runner(
    config: RunnerConfig,
    on_progress: ProgressCallback | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> DocRunner:
    """Instantiate the runner chosen by select_runner_kind()."""
    kind = select_runner_kind(config)
    logger.info("doc_runner_selected", runner=kind.value)

    if kind is RunnerKind.API:
        return StreamingApiRunner(config, on_progress=on_progress, transport=transport)
    if kind is RunnerKind.CLI:
        return CliRunner(config, on_progress=on_progress)
    if config.kind is None:
        logger.warning(
            "doc_runner_fallback_fixture",
            hint="Set REPODOCS_ANTHROPIC_API_KEY or REPODOCS_USE_CLAUDE_CLI=true to generate real docs",
        )
    return FixtureRunner(on_progress=on_progress)
