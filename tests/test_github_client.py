"""Tests for the GitHub REST client."""

import base64
import json

import httpx
import pytest

from repodocs.errors import GitHubAPIError, GitHubRateLimitError
from repodocs.ingestion.connectors.github import GitHubClient, decode_content


def make_client(handler) -> GitHubClient:
    return GitHubClient(
        token="t0ken",
        base_url="https://api.github.test",
        transport=httpx.MockTransport(handler),
    )


def test_decode_content_handles_wrapped_base64():
    encoded = base64.b64encode("print('hé')\n".encode("utf-8")).decode("ascii")
    wrapped = "\n".join(encoded[i : i + 8] for i in range(0, len(encoded), 8))
    assert decode_content(wrapped) == "print('hé')\n"


async def test_get_tree_is_recursive_and_authenticated():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("authorization")
        return httpx.Response(
            200,
            json={
                "tree": [
                    {"path": "src", "type": "tree", "sha": "t1"},
                    {"path": "src/app.py", "type": "blob", "sha": "b1", "size": 42},
                ],
                "truncated": False,
            },
        )

    async with make_client(handler) as client:
        tree = await client.get_tree("acme", "widgets", "main")

    assert seen["url"] == "https://api.github.test/repos/acme/widgets/git/trees/main?recursive=1"
    assert seen["auth"] == "Bearer t0ken"
    assert [(e.path, e.type, e.size) for e in tree] == [("src", "tree", None), ("src/app.py", "blob", 42)]


async def test_get_latest_commit_and_blob():
    payload = base64.b64encode(b"hello").decode("ascii")

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/commits/dev"):
            return httpx.Response(200, json={"sha": "abc123"})
        return httpx.Response(200, json={"content": payload, "encoding": "base64"})

    async with make_client(handler) as client:
        assert await client.get_latest_commit("acme", "widgets", "dev") == "abc123"
        assert decode_content(await client.get_blob("acme", "widgets", "b1")) == "hello"


async def test_rate_limit_raises_dedicated_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            403,
            headers={"x-ratelimit-remaining": "0"},
            json={"message": "API rate limit exceeded"},
        )

    async with make_client(handler) as client:
        with pytest.raises(GitHubRateLimitError):
            await client.get_latest_commit("acme", "widgets", "main")


async def test_error_status_carries_message():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"message": "Not Found"})

    async with make_client(handler) as client:
        with pytest.raises(GitHubAPIError) as exc_info:
            await client.get_tree("acme", "missing", "main")

    assert exc_info.value.status_code == 404
    assert exc_info.value.message == "Not Found"


async def test_create_webhook_subscribes_to_push():
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["method"] = request.method
        captured["body"] = json.loads(request.content)
        return httpx.Response(201, json={"id": 987})

    async with make_client(handler) as client:
        hook_id = await client.create_webhook("acme", "widgets", "https://docs.test/webhooks/github", "s3cret")

    assert hook_id == 987
    assert captured["method"] == "POST"
    assert captured["body"]["events"] == ["push"]
    assert captured["body"]["config"]["secret"] == "s3cret"
    assert captured["body"]["config"]["content_type"] == "json"
