"""Tests for the HTTP API."""

import hashlib
import hmac
import json

import httpx
import pytest
from conftest import FakeSource, make_output, make_page

from repodocs.api.app import create_app
from repodocs.api.routes.sync import set_sync_manager
from repodocs.api.routes.webhooks import get_webhook_secret, verify_signature
from repodocs.ingestion.chunker import CodeChunker
from repodocs.ingestion.pipeline import SyncManager, SyncOrchestrator
from repodocs.models.repository import Repository, SyncStatus
from repodocs.storage import DocBundleRepository, RepoRepository, get_session
from repodocs.verification import verify_documentation

SECRET = "webhook-secret"
FILES = {"src/app.py": "def create_app():\n    return App()\n"}


@pytest.fixture
async def manager(session_factory):
    def orchestrator():
        return SyncOrchestrator(
            source=FakeSource(FILES, commit_sha="new-sha"),
            chunker=CodeChunker(min_tokens=5, max_tokens=200, overlap_tokens=20),
            session_factory=session_factory,
        )

    sync_manager = SyncManager(orchestrator, session_factory)
    set_sync_manager(sync_manager)
    yield sync_manager
    await sync_manager.shutdown()
    set_sync_manager(None)


@pytest.fixture
def app(session_factory, manager):
    application = create_app()

    async def session_override():
        async with session_factory() as session:
            yield session

    application.dependency_overrides[get_session] = session_override
    application.dependency_overrides[get_webhook_secret] = lambda: SECRET
    return application


@pytest.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        yield http


def signed(payload: dict, event: str = "push", secret: str = SECRET) -> dict:
    body = json.dumps(payload).encode()
    signature = "sha256=" + hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    return {
        "content": body,
        "headers": {
            "X-Hub-Signature-256": signature,
            "X-GitHub-Event": event,
            "Content-Type": "application/json",
        },
    }


def push(owner="acme", name="widgets", branch="main", after="new-sha") -> dict:
    return {
        "ref": f"refs/heads/{branch}",
        "after": after,
        "repository": {"name": name, "owner": {"login": owner}},
    }


async def add_repo(session_factory, **fields) -> Repository:
    params = {"id": "repo-2", "project_id": "proj", "owner": "acme", "name": "widgets"}
    params.update(fields)
    repo = Repository(**params)
    async with session_factory() as session:
        await RepoRepository(session).create(repo)
    return repo


async def load(session_factory, repo_id) -> Repository:
    async with session_factory() as session:
        return await RepoRepository(session).get(repo_id)


def test_verify_signature():
    body = b'{"zen": "Keep it simple."}'
    good = "sha256=" + hmac.new(b"k", body, hashlib.sha256).hexdigest()
    assert verify_signature(body, good, "k")
    assert not verify_signature(body, good, "other")
    assert not verify_signature(body, None, "k")


class TestWebhook:
    async def test_ping(self, client):
        response = await client.post("/webhooks/github", **signed({"zen": "hi"}, event="ping"))
        assert response.status_code == 200
        assert response.json()["message"] == "pong"

    async def test_bad_signature_rejected(self, client):
        response = await client.post("/webhooks/github", **signed(push(), secret="wrong"))
        assert response.status_code == 401

    async def test_missing_secret_is_server_error(self, app, client):
        app.dependency_overrides[get_webhook_secret] = lambda: None
        response = await client.post("/webhooks/github", **signed(push()))
        assert response.status_code == 500

    async def test_invalid_payload(self, client):
        response = await client.post("/webhooks/github", **signed({"ref": "refs/tags/v1"}))
        assert response.status_code == 400

    async def test_tag_push_is_ignored(self, client, repo, session_factory):
        payload = push()
        payload["ref"] = "refs/tags/v1.2.0"

        response = await client.post("/webhooks/github", **signed(payload))

        assert response.status_code == 200
        assert response.json()["message"] == "Event not handled"
        assert not (await load(session_factory, repo.id)).has_updates

    async def test_push_flags_tracking_repositories(self, client, repo, session_factory):
        await add_repo(session_factory, id="other-branch", selected_branch="release")

        response = await client.post("/webhooks/github", **signed(push()))

        assert response.status_code == 200
        assert response.json() == {"message": "Processed", "repos_updated": 1, "syncs_triggered": []}
        flagged = await load(session_factory, repo.id)
        assert flagged.has_updates
        assert flagged.latest_commit_sha == "new-sha"
        assert not (await load(session_factory, "other-branch")).has_updates

    async def test_push_matches_case_insensitively(self, client, repo, session_factory):
        response = await client.post("/webhooks/github", **signed(push(owner="ACME", name="Widgets")))
        assert response.json()["repos_updated"] == 1

    async def test_push_at_synced_commit_is_ignored(self, client, session_factory):
        await add_repo(session_factory, id="current")
        async with session_factory() as session:
            await RepoRepository(session).mark_synced("current", "new-sha")

        response = await client.post("/webhooks/github", **signed(push()))

        assert response.json()["repos_updated"] == 0
        assert not (await load(session_factory, "current")).has_updates

    async def test_push_triggers_auto_sync(self, client, manager, session_factory):
        await add_repo(session_factory, id="auto", auto_sync_enabled=True)

        response = await client.post("/webhooks/github", **signed(push()))

        assert response.json()["syncs_triggered"] == ["auto"]
        await manager.wait("auto")
        synced = await load(session_factory, "auto")
        assert synced.status is SyncStatus.SYNCED
        assert synced.last_synced_commit_sha == "new-sha"
        assert not synced.has_updates

    async def test_unmatched_push(self, client):
        response = await client.post("/webhooks/github", **signed(push(name="unknown")))
        assert response.json()["message"] == "No matching repos"


class TestSync:
    async def test_trigger_and_poll(self, client, manager, repo, session_factory):
        response = await client.post(f"/repos/{repo.id}/sync")
        assert response.status_code == 202
        assert response.json()["status"] == "SYNCING"

        await manager.wait(repo.id)

        response = await client.get(f"/repos/{repo.id}/sync")
        body = response.json()
        assert response.status_code == 200
        assert body["status"] == "SYNCED"
        assert body["last_synced_commit_sha"] == "new-sha"
        assert body["running"] is False

    async def test_conflict_while_running(self, client, manager, repo):
        manager._active.add(repo.id)
        try:
            response = await client.post(f"/repos/{repo.id}/sync")
        finally:
            manager._active.discard(repo.id)
        assert response.status_code == 409

    async def test_unknown_repository(self, client):
        assert (await client.post("/repos/missing/sync")).status_code == 404
        assert (await client.get("/repos/missing/sync")).status_code == 404


class TestDocs:
    async def store_docs(self, session_factory, repo):
        page = make_page(evidence=[("src/app.py", "def create_app():")])
        other = make_page(slug="api/overview", title="API", evidence=[("src/gone.py", "x")])
        output = make_output(page, other)
        summary = verify_documentation(output.pages, FILES, list(FILES))
        async with session_factory() as session:
            await DocBundleRepository(session).replace(repo.id, output, summary, "abc")

    async def test_docs_are_reverified_against_indexed_files(self, client, manager, repo, session_factory):
        await client.post(f"/repos/{repo.id}/sync")
        await manager.wait(repo.id)
        await self.store_docs(session_factory, repo)

        response = await client.get(f"/repos/{repo.id}/docs")

        assert response.status_code == 200
        body = response.json()
        assert body["commit_sha"] == "abc"
        assert [p["slug"] for p in body["pages"]] == ["architecture/overview", "api/overview"]
        assert body["verification"]["overall_score"] == 50
        assert body["verification"]["needs_review"] == 1

    async def test_single_page(self, client, manager, repo, session_factory):
        await client.post(f"/repos/{repo.id}/sync")
        await manager.wait(repo.id)
        await self.store_docs(session_factory, repo)

        response = await client.get(f"/repos/{repo.id}/docs/Architecture/Overview")

        assert response.status_code == 200
        assert response.json()["page"]["slug"] == "architecture/overview"
        assert response.json()["verification"]["verification_score"] == 100

    async def test_page_lookup_errors(self, client, repo, session_factory):
        await self.store_docs(session_factory, repo)
        assert (await client.get(f"/repos/{repo.id}/docs/misc/page")).status_code == 400
        assert (await client.get(f"/repos/{repo.id}/docs/runbook/missing")).status_code == 404

    async def test_no_docs(self, client, repo):
        assert (await client.get(f"/repos/{repo.id}/docs")).status_code == 404


async def test_health_and_metrics(client, repo):
    health = await client.get("/health")
    assert health.json() == {"status": "healthy", "database": "ok", "repositories": 1, "active_syncs": 0}

    metrics = await client.get("/metrics")
    assert metrics.status_code == 200
    assert "repodocs_sync_runs_total" in metrics.text
