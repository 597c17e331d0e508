"""Deterministic runner backed by canned documentation output."""

from repodocs.generation.runners.base import DocRunner, ProgressCallback
from repodocs.models.docs import (
    DocCategory,
    DocOutput,
    DocPage,
    DocTask,
    EvidenceItem,
    RepoContext,
    RepoSummary,
    RunnerResult,
    RunnerStage,
)

DEFAULT_KEY = "default"


def default_fixture() -> DocOutput:
    """Five-page bundle used when no repo-specific fixture is registered."""
    return DocOutput(
        repo_summary=RepoSummary(
            name="fixture-repo",
            tech_stack=["Python", "FastAPI", "SQLAlchemy", "PostgreSQL"],
            entrypoints=["src/app/main.py"],
        ),
        warnings=["Some API endpoints may not be fully documented due to limited context."],
        pages=[
            DocPage(
                category=DocCategory.ARCHITECTURE,
                slug="architecture/overview",
                title="Architecture Overview",
                markdown=(
                    "# Architecture Overview\n\n"
                    "The service is a FastAPI application backed by a relational database.\n\n"
                    "## Key Components\n\n"
                    "- **API layer**: FastAPI routers\n"
                    "- **Persistence**: SQLAlchemy models\n"
                    "- **Background work**: asyncio tasks\n\n"
                    "**[Needs Review]** - Additional architecture details may be available in other files."
                ),
                evidence=[
                    EvidenceItem(
                        file_path="pyproject.toml",
                        excerpt='dependencies = ["fastapi", "sqlalchemy"]',
                        reason="Shows FastAPI and SQLAlchemy as core dependencies",
                    )
                ],
            ),
            DocPage(
                category=DocCategory.ARCHITECTURE,
                slug="architecture/tech-stack",
                title="Technology Stack",
                markdown=(
                    "# Technology Stack\n\n"
                    "- **Language**: Python 3\n"
                    "- **Web framework**: FastAPI\n"
                    "- **ORM**: SQLAlchemy\n"
                    "- **Database**: PostgreSQL"
                ),
                evidence=[
                    EvidenceItem(
                        file_path="pyproject.toml",
                        excerpt='requires-python = ">=3.10"',
                        reason="Declares the supported Python version",
                    )
                ],
            ),
            DocPage(
                category=DocCategory.API,
                slug="api/overview",
                title="API Overview",
                markdown=(
                    "# API Overview\n\n"
                    "The API follows REST conventions and returns JSON.\n\n"
                    "**[Needs Review]** - Full API documentation requires additional endpoint analysis."
                ),
                evidence=[],
            ),
            DocPage(
                category=DocCategory.FEATURE,
                slug="features/index",
                title="Features Index",
                markdown=(
                    "# Features\n\n"
                    "1. **Repository sync** - Index repository files\n"
                    "2. **Documentation** - Generated documentation with citations\n\n"
                    "**[Needs Review]** - Feature list may be incomplete."
                ),
                evidence=[],
            ),
            DocPage(
                category=DocCategory.RUNBOOK,
                slug="runbook/local-dev",
                title="Local Development Setup",
                markdown=(
                    "# Local Development Setup\n\n"
                    "```bash\n"
                    "pip install -e '.[test]'\n"
                    "pytest\n"
                    "```"
                ),
                evidence=[
                    EvidenceItem(
                        file_path="pyproject.toml",
                        excerpt='test = ["pytest"]',
                        reason="Shows the test extra",
                    )
                ],
            ),
        ],
        tasks=[
            DocTask(
                title="Document authentication flow in detail",
                description="Describe how API requests are authenticated",
                category=DocCategory.API,
                priority="medium",
            ),
            DocTask(
                title="Add database schema documentation",
                description="Document all tables and relationships",
                category=DocCategory.ARCHITECTURE,
                priority="high",
            ),
        ],
    )


class FixtureRunner(DocRunner):
    """Returns registered fixtures. Used for local development and tests."""

    name = "fixture"

    def __init__(self, on_progress: ProgressCallback | None = None):
        super().__init__(on_progress)
        self.fixtures: dict[str, DocOutput] = {DEFAULT_KEY: default_fixture()}

    def add_fixture(self, repo_key: str, output: DocOutput) -> None:
        """Register output for "owner/name"."""
        self.fixtures[repo_key] = output

    async def run(
        self,
        context: RepoContext,
        previous_output: DocOutput | None = None,
    ) -> RunnerResult:
        await self.emit(RunnerStage.STARTING, f"Loading fixture for {context.repo_key}")
        fixture = self.fixtures.get(context.repo_key) or self.fixtures[DEFAULT_KEY]

        output = fixture.model_copy(deep=True)
        output.repo_summary.name = context.repo_name
        return await self.succeed(output, raw_output=output.model_dump_json(indent=2))
