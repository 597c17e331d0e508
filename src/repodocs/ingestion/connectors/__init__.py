"""Git host connectors."""

from repodocs.ingestion.connectors.base import BlobSource
from repodocs.ingestion.connectors.github import GitHubClient, decode_content

__all__ = [
    "BlobSource",
    "GitHubClient",
    "decode_content",
]
