"""Documentation runner strategies."""

from repodocs.generation.runners.api import StreamingApiRunner
from repodocs.generation.runners.base import (
    DocRunner,
    ProgressCallback,
    RunnerConfig,
    RunnerKind,
)
from repodocs.generation.runners.cli import CliRunner, map_cli_error
from repodocs.generation.runners.fixture import FixtureRunner, default_fixture
from repodocs.generation.runners.selection import create_runner, select_runner_kind

__all__ = [
    "CliRunner",
    "DocRunner",
    "FixtureRunner",
    "ProgressCallback",
    "RunnerConfig",
    "RunnerKind",
    "StreamingApiRunner",
    "create_runner",
    "default_fixture",
    "map_cli_error",
    "select_runner_kind",
]
