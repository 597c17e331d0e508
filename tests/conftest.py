"""Shared fixtures: a throwaway SQLite database and documentation builders."""

import base64
import json

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from repodocs.ingestion.connectors.base import BlobSource
from repodocs.models.docs import DocCategory, DocOutput, DocPage, EvidenceItem, RepoSummary
from repodocs.models.repository import Repository, TreeEntry
from repodocs.storage import Base, RepoRepository


@pytest.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
async def repo(session_factory) -> Repository:
    repository = Repository(id="repo-1", project_id="proj", owner="acme", name="widgets")
    async with session_factory() as session:
        await RepoRepository(session).create(repository)
    return repository


def make_page(
    slug: str = "architecture/overview",
    title: str = "Architecture Overview",
    evidence: list[tuple[str, str]] | None = None,
    markdown: str = "# Overview\n\nThe service exposes an HTTP API.",
    category: DocCategory = DocCategory.ARCHITECTURE,
) -> DocPage:
    return DocPage(
        category=category,
        slug=slug,
        title=title,
        markdown=markdown,
        evidence=[
            EvidenceItem(file_path=path, excerpt=excerpt, reason="cited")
            for path, excerpt in (evidence or [])
        ],
    )


def make_output(*pages: DocPage, needs_more_files: list[str] | None = None, warnings=None) -> DocOutput:
    return DocOutput(
        repo_summary=RepoSummary(name="widgets", tech_stack=["Python"]),
        warnings=list(warnings or []),
        needs_more_files=needs_more_files,
        pages=list(pages) or [make_page()],
    )


class FakeSource(BlobSource):
    """In-memory git host: files maps path to text."""

    def __init__(self, files: dict[str, str], commit_sha: str = "c0ffee", failing: set[str] | None = None):
        self.files = files
        self.commit_sha = commit_sha
        self.failing = failing or set()
        self.closed = False

    async def get_latest_commit(self, owner, repo, branch):
        return self.commit_sha

    async def get_tree(self, owner, repo, ref):
        entries = [
            TreeEntry(path=path, type="blob", sha=f"sha-{path}", size=len(text.encode()))
            for path, text in self.files.items()
        ]
        entries.append(TreeEntry(path="src", type="tree", sha="sha-src"))
        return entries

    async def get_blob(self, owner, repo, sha):
        path = sha[len("sha-"):]
        if path in self.failing:
            raise RuntimeError(f"blob fetch failed: {path}")
        return base64.b64encode(self.files[path].encode("utf-8")).decode("ascii")

    async def aclose(self):
        self.closed = True


def page_dict(slug: str, title: str = "Page") -> dict:
    return {
        "category": "ARCHITECTURE",
        "slug": slug,
        "title": title,
        "markdown": "# Heading\n\nSome documentation body.",
        "evidence": [{"file_path": "src/app.py", "excerpt": "app = FastAPI()", "reason": "entrypoint"}],
    }


def bundle_text(*slugs: str) -> str:
    """Serialized model output with one page per slug."""
    return json.dumps(
        {
            "repo_summary": {"name": "widgets", "tech_stack": ["Python"], "entrypoints": ["src/app.py"]},
            "warnings": ["limited context"],
            "pages": [page_dict(slug) for slug in slugs],
        },
        indent=2,
    )
