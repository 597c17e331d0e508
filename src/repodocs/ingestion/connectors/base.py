"""Abstract source interface for fetching repository contents."""

from abc import ABC, abstractmethod

from repodocs.models.repository import TreeEntry


class BlobSource(ABC):
    """Abstract base class for git hosts the sync pipeline can read from."""

    @abstractmethod
    async def get_latest_commit(self, owner: str, repo: str, branch: str) -> str:
        """Return the commit SHA at the head of branch."""
        pass

    @abstractmethod
    async def get_tree(self, owner: str, repo: str, ref: str) -> list[TreeEntry]:
        """Return the full recursive file tree at ref."""
        pass

    @abstractmethod
    async def get_blob(self, owner: str, repo: str, sha: str) -> str:
        """
        Fetch a blob by SHA.

        Returns the raw base64 payload; use decode_content() to get text.
        """
        pass

    async def aclose(self) -> None:
        """Release any held connections."""
        pass
