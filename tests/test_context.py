"""Tests for key-file selection and prompt construction."""

import pytest
from conftest import make_output

from repodocs.generation.context import (
    TRUNCATION_MARKER,
    build_context,
    expand_requested_files,
    file_priority,
    select_key_files,
)
from repodocs.generation.prompts import (
    build_continuation_prompt,
    build_doc_prompt,
    format_file_tree,
)
from repodocs.generation.runners import FixtureRunner
from repodocs.models.docs import RepoContextFile
from repodocs.models.repository import Repository


@pytest.mark.parametrize(
    "path,priority",
    [
        ("README.md", 100),
        ("package.json", 100),
        ("src/main.py", 80),
        ("tsconfig.json", 70),
        ("docs/architecture.md", 60),
        ("src/api/users.py", 40),
        ("src/services/billing.py", 30),
        ("src/tests/test_billing.py", 10),
        ("scripts/tool.rb", 20),
    ],
)
def test_file_priority(path, priority):
    assert file_priority(path) == priority


def test_select_key_files_orders_by_priority_and_truncates():
    contents = {
        "src/services/billing.py": "x" * 50,
        "README.md": "# Widgets",
        "src/api/users.py": "y" * 10,
    }
    selected = select_key_files(contents, max_files=2, max_chars=20)

    assert [f.path for f in selected] == ["README.md", "src/api/users.py"]
    assert selected[1].language == "python"

    truncated = select_key_files({"big.py": "z" * 30}, max_files=5, max_chars=20)[0]
    assert truncated.content == "z" * 20 + TRUNCATION_MARKER


def test_expand_requested_files():
    available = ["README.md", "src/db/models.py", "src/db/session.py", "src/app.py"]
    requested = ["./src/db/", "app.py", "README.md", "missing.py", "src/db/models.py"]

    assert expand_requested_files(requested, available) == [
        "src/db/models.py",
        "src/db/session.py",
        "src/app.py",
        "README.md",
    ]


def test_format_file_tree_groups_and_truncates():
    files = [RepoContextFile(path=p) for p in ["b.py", "src/z.py", "src/a.py", "a.md"]]
    assert format_file_tree(files) == "a.md\nb.py\nsrc/\n  a.py\n  z.py"

    many = [RepoContextFile(path=f"f{i:03}.py") for i in range(10)]
    assert format_file_tree(many, max_lines=4).endswith("... and 6 more files")


def test_doc_prompt_mentions_remaining_rounds_only_before_last_round():
    repo = Repository(id="r", project_id="p", owner="acme", name="widgets", selected_branch="dev")
    first = build_context(repo, [], [], round=1, max_rounds=2)
    last = build_context(repo, [], [], round=2, max_rounds=2)

    assert "**Branch**: dev" in build_doc_prompt(first)
    assert "needs_more_files" in build_doc_prompt(first)
    assert "## Need More Files?" not in build_doc_prompt(last)


def test_follow_up_prompt_used_when_more_files_requested():
    repo = Repository(id="r", project_id="p", owner="acme", name="widgets")
    context = build_context(repo, [], [], round=2)
    previous = make_output(needs_more_files=["src/db/"], warnings=["schema unknown"])

    prompt = FixtureRunner().build_prompt(context, previous)

    assert prompt.startswith("# Follow-up")
    assert "- schema unknown" in prompt
    assert "- src/db/" in prompt


def test_continuation_prompt_lists_completed_pages():
    repo = Repository(id="r", project_id="p", owner="acme", name="widgets")
    pages = make_output().pages
    prompt = build_continuation_prompt(build_context(repo, [], []), pages, attempt=1, max_attempts=2)

    assert "(continuation 1/2)" in prompt
    assert "- architecture/overview (ARCHITECTURE): Architecture Overview" in prompt
