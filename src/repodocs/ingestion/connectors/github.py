"""GitHub REST client for trees, blobs, commits and push webhooks."""

import base64

import httpx
import structlog

from repodocs.config import get_settings
from repodocs.errors import GitHubAPIError, GitHubRateLimitError
from repodocs.ingestion.connectors.base import BlobSource
from repodocs.models.repository import TreeEntry

logger = structlog.get_logger()


def decode_content(content: str) -> str:
    """Decode a base64 blob payload (GitHub wraps it at 60 columns) to text."""
    raw = base64.b64decode("".join(content.split()))
    return raw.decode("utf-8", errors="replace")


class GitHubClient(BlobSource):
    """
    Client for the GitHub REST API.

    Reads repository trees and blobs for the sync pipeline and
    installs/removes push webhooks.
    """

    API_VERSION = "2022-11-28"

    def __init__(
        self,
        token: str | None = None,
        base_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 30.0,
    ):
        """
        Initialize the GitHub client.

        Args:
            token: Personal access token (defaults to REPODOCS_GITHUB_TOKEN)
            base_url: API root (defaults to https://api.github.com)
            transport: Optional httpx transport, used by tests
            timeout: Per-request timeout in seconds
        """
        settings = get_settings()
        self.token = token or settings.github_token
        self.base_url = (base_url or settings.github_api_base).rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=self._get_headers(),
            timeout=timeout,
            transport=transport,
        )

    def _get_headers(self) -> dict:
        """Get HTTP headers for GitHub API."""
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": self.API_VERSION,
            "User-Agent": "repodocs/0.1.0",
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        response = await self._client.request(method, url, **kwargs)

        if response.status_code == 403 and response.headers.get("x-ratelimit-remaining") == "0":
            raise GitHubRateLimitError()
        if response.is_error:
            try:
                message = response.json().get("message", response.text)
            except ValueError:
                message = response.text
            logger.warning(
                "github_request_failed",
                method=method,
                url=url,
                status=response.status_code,
                message=message,
            )
            raise GitHubAPIError(response.status_code, message)
        return response

    async def get_latest_commit(self, owner: str, repo: str, branch: str) -> str:
        response = await self._request("GET", f"/repos/{owner}/{repo}/commits/{branch}")
        return response.json()["sha"]

    async def get_tree(self, owner: str, repo: str, ref: str) -> list[TreeEntry]:
        response = await self._request(
            "GET",
            f"/repos/{owner}/{repo}/git/trees/{ref}",
            params={"recursive": "1"},
        )
        data = response.json()
        if data.get("truncated"):
            logger.warning("github_tree_truncated", repo=f"{owner}/{repo}", ref=ref)
        return [
            TreeEntry(
                path=item["path"],
                type=item["type"],
                sha=item["sha"],
                size=item.get("size"),
            )
            for item in data.get("tree", [])
        ]

    async def get_blob(self, owner: str, repo: str, sha: str) -> str:
        response = await self._request("GET", f"/repos/{owner}/{repo}/git/blobs/{sha}")
        data = response.json()
        if data.get("encoding", "base64") != "base64":
            # utf-8 encoded blobs come back as plain text
            return base64.b64encode(data["content"].encode("utf-8")).decode("ascii")
        return data["content"]

    async def create_webhook(
        self,
        owner: str,
        repo: str,
        url: str,
        secret: str,
    ) -> int:
        """
        Install a push webhook on the repository.

        Args:
            owner: Repository owner
            repo: Repository name
            url: Publicly reachable URL of POST /webhooks/github
            secret: Shared secret used to sign deliveries

        Returns:
            The id of the created hook
        """
        response = await self._request(
            "POST",
            f"/repos/{owner}/{repo}/hooks",
            json={
                "name": "web",
                "active": True,
                "events": ["push"],
                "config": {
                    "url": url,
                    "content_type": "json",
                    "secret": secret,
                    "insecure_ssl": "0",
                },
            },
        )
        hook_id = response.json()["id"]
        logger.info("github_webhook_created", repo=f"{owner}/{repo}", hook_id=hook_id)
        return hook_id

    async def delete_webhook(self, owner: str, repo: str, hook_id: int) -> None:
        """Remove a previously installed webhook."""
        await self._request("DELETE", f"/repos/{owner}/{repo}/hooks/{hook_id}")
        logger.info("github_webhook_deleted", repo=f"{owner}/{repo}", hook_id=hook_id)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "GitHubClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
