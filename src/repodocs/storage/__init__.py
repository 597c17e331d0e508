"""Storage package."""

from repodocs.storage.database import (
    Base,
    ChunkORM,
    DocBundleORM,
    DocPageORM,
    FileRecordORM,
    RepositoryORM,
    get_async_engine,
    get_session,
    get_session_factory,
    init_database,
    init_database_sync,
)
from repodocs.storage.repositories import (
    ChunkRepository,
    DocBundleRepository,
    FileRecordRepository,
    RepoRepository,
    StoredBundle,
)

__all__ = [
    "Base",
    "ChunkORM",
    "ChunkRepository",
    "DocBundleORM",
    "DocBundleRepository",
    "DocPageORM",
    "FileRecordORM",
    "FileRecordRepository",
    "RepoRepository",
    "RepositoryORM",
    "StoredBundle",
    "get_async_engine",
    "get_session",
    "get_session_factory",
    "init_database",
    "init_database_sync",
]
