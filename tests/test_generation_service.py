"""Tests for multi-round documentation generation."""

from conftest import make_output, make_page

from repodocs.generation.runners import DocRunner
from repodocs.generation.service import DocGenerationService, merge_round_outputs
from repodocs.models.docs import DocOutput, DocTask, RepoContext, RepoContextFile, RunnerResult
from repodocs.storage import DocBundleRepository

CONTENTS = {
    "README.md": "# Widgets\n\nTracks widgets.",
    "src/app.py": "app = create_app()\n",
    "src/db/models.py": "class Widget(Base):\n    __tablename__ = 'widgets'\n",
    "src/db/session.py": "engine = create_engine(url)\n",
}
TREE = [RepoContextFile(path=p, size=len(c)) for p, c in CONTENTS.items()]


class ScriptedRunner(DocRunner):
    """Returns queued results and records what it was asked."""

    name = "scripted"

    def __init__(self, *results: RunnerResult):
        super().__init__()
        self.results = list(results)
        self.calls: list[tuple[RepoContext, DocOutput | None]] = []

    async def run(self, context, previous_output=None):
        self.calls.append((context, previous_output))
        return self.results.pop(0)


def ok(output: DocOutput) -> RunnerResult:
    return RunnerResult(success=True, output=output, needs_more_files=output.needs_more_files)


def make_service(runner, session_factory, **kwargs) -> DocGenerationService:
    params = {"max_rounds": 2, "max_key_files": 2, "max_key_file_chars": 1000}
    params.update(kwargs)
    return DocGenerationService(runner=runner, session_factory=session_factory, **params)


async def test_single_round_verifies_and_persists(repo, session_factory):
    page = make_page(evidence=[("src/app.py", "app = create_app()")])
    runner = ScriptedRunner(ok(make_output(page)))

    outcome = await make_service(runner, session_factory).generate(repo, TREE, CONTENTS, commit_sha="abc")

    assert outcome.success
    assert outcome.rounds == 1
    assert outcome.summary.overall_score == 100
    context, previous = runner.calls[0]
    assert previous is None
    assert [f.path for f in context.key_files] == ["README.md", "src/app.py"]

    async with session_factory() as session:
        stored = await DocBundleRepository(session).get_latest(repo.id)
    assert stored.commit_sha == "abc"
    assert stored.overall_score == 100
    assert [p.slug for p in stored.pages] == ["architecture/overview"]


async def test_second_round_supplies_requested_files(repo, session_factory):
    first = make_output(
        make_page(slug="architecture/overview", markdown="# Overview\n\n**[Needs Review]** - db unknown"),
        make_page(slug="api/overview", title="API"),
        needs_more_files=["src/db/", "README.md"],
        warnings=["database layer not shown"],
    )
    second = make_output(
        make_page(slug="architecture/overview", evidence=[("src/db/models.py", "class Widget(Base):")]),
        make_page(slug="runbook/local-dev", title="Local Dev"),
        warnings=["database layer not shown", "no migrations found"],
    )
    runner = ScriptedRunner(ok(first), ok(second))

    outcome = await make_service(runner, session_factory).generate(repo, TREE, CONTENTS)

    assert outcome.rounds == 2
    context, previous = runner.calls[1]
    assert previous.needs_more_files == ["src/db/", "README.md"]
    assert context.round == 2
    # README.md was already shown in round 1
    assert [f.path for f in context.key_files] == ["src/db/models.py", "src/db/session.py"]

    pages = {p.slug: p for p in outcome.output.pages}
    assert list(pages) == ["architecture/overview", "api/overview", "runbook/local-dev"]
    # The later round's page replaces the earlier one
    assert "[Needs Review]" not in pages["architecture/overview"].markdown
    assert outcome.output.warnings[:2] == ["database layer not shown", "no migrations found"]


async def test_round_skipped_when_nothing_new_can_be_shown(repo, session_factory):
    first = make_output(needs_more_files=["README.md", "does/not/exist.py"])
    runner = ScriptedRunner(ok(first))

    outcome = await make_service(runner, session_factory).generate(repo, TREE, CONTENTS)

    assert outcome.rounds == 1
    assert len(runner.calls) == 1


async def test_failed_follow_up_keeps_first_round(repo, session_factory):
    first = make_output(make_page(slug="api/overview", title="API"), needs_more_files=["src/db/"])
    runner = ScriptedRunner(ok(first), RunnerResult(success=False, error="Model request timed out"))

    outcome = await make_service(runner, session_factory).generate(repo, TREE, CONTENTS)

    assert outcome.success
    assert outcome.rounds == 2
    assert [p.slug for p in outcome.output.pages] == ["api/overview"]


async def test_first_round_failure_is_reported_not_raised(repo, session_factory):
    runner = ScriptedRunner(RunnerResult(success=False, error="Empty response from model"))

    outcome = await make_service(runner, session_factory).generate(repo, TREE, CONTENTS)

    assert not outcome.success
    assert outcome.error == "Empty response from model"
    async with session_factory() as session:
        assert await DocBundleRepository(session).get_latest(repo.id) is None


async def test_verification_errors_become_warnings(repo, session_factory):
    page = make_page(title="Architecture Overview", evidence=[("src/nowhere.py", "x = 1")])
    runner = ScriptedRunner(ok(make_output(page)))

    outcome = await make_service(runner, session_factory).generate(repo, TREE, CONTENTS)

    assert "[Architecture Overview] Cited file does not exist: src/nowhere.py" in outcome.output.warnings
    assert outcome.summary.needs_review == 1


async def test_regeneration_replaces_previous_bundle(repo, session_factory):
    runner = ScriptedRunner(
        ok(make_output(make_page(slug="api/overview", title="API"))),
        ok(make_output(make_page(slug="runbook/deploy", title="Deploy"))),
    )
    service = make_service(runner, session_factory)

    await service.generate(repo, TREE, CONTENTS, commit_sha="one")
    await service.generate(repo, TREE, CONTENTS, commit_sha="two")

    async with session_factory() as session:
        stored = await DocBundleRepository(session).get_latest(repo.id)
    assert stored.commit_sha == "two"
    assert [p.slug for p in stored.pages] == ["runbook/deploy"]


def test_merge_round_outputs_accumulates_tasks():
    previous = make_output().model_copy(update={"tasks": [DocTask(title="a")]})
    latest = make_output().model_copy(update={"tasks": [DocTask(title="b")]})

    merged = merge_round_outputs(previous, latest)

    assert [t.title for t in merged.tasks] == ["a", "b"]
    assert len(merged.pages) == 1
