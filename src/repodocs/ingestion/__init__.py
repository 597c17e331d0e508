"""Ingestion package."""

from repodocs.ingestion.chunker import CodeChunker, get_chunker
from repodocs.ingestion.connectors import BlobSource, GitHubClient, decode_content
from repodocs.ingestion.embeddings import (
    EmbeddingClient,
    OpenAIEmbeddingClient,
    SentenceTransformerEmbeddingClient,
    get_embedding_client,
)
from repodocs.ingestion.filters import detect_language, should_index_file
from repodocs.ingestion.pipeline import (
    SyncManager,
    SyncOrchestrator,
    SyncStats,
    create_orchestrator,
    run_sync,
)

__all__ = [
    "BlobSource",
    "CodeChunker",
    "EmbeddingClient",
    "GitHubClient",
    "OpenAIEmbeddingClient",
    "SentenceTransformerEmbeddingClient",
    "SyncManager",
    "SyncOrchestrator",
    "SyncStats",
    "decode_content",
    "detect_language",
    "get_chunker",
    "get_embedding_client",
    "create_orchestrator",
    "run_sync",
    "should_index_file",
]
