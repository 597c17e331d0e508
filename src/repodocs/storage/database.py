"""SQLite storage: ORM tables plus the shared async engine and session factory."""

from __future__ import annotations

from typing import AsyncGenerator, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    create_engine,
    func,
)
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, relationship

from repodocs.config import get_settings


class Base(DeclarativeBase):
    """Base class for all ORM models."""
    pass


class RepositoryORM(Base):
    """Repositories table - tracked repos and their sync checkpoint."""

    __tablename__ = "repositories"

    id = Column(String, primary_key=True)
    project_id = Column(String, nullable=False)
    owner = Column(String, nullable=False)
    name = Column(String, nullable=False)
    default_branch = Column(String, nullable=False, default="main")
    selected_branch = Column(String, nullable=True)

    status = Column(String, nullable=False, default="PENDING")  # SyncStatus
    sync_stage = Column(String, nullable=True)
    sync_progress = Column(Integer, default=0, nullable=False)
    sync_total = Column(Integer, default=0, nullable=False)
    sync_error = Column(Text, nullable=True)

    last_synced_commit_sha = Column(String, nullable=True)
    last_synced_at = Column(DateTime(timezone=True), nullable=True)

    auto_sync_enabled = Column(Boolean, default=False, nullable=False)
    latest_commit_sha = Column(String, nullable=True)
    has_updates = Column(Boolean, default=False, nullable=False)
    webhook_id = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    __table_args__ = (
        Index("idx_repositories_owner_name", "owner", "name"),
    )


class FileRecordORM(Base):
    """Repo files table - one row per indexed file."""

    __tablename__ = "repo_files"

    id = Column(Integer, primary_key=True, autoincrement=True)
    repo_id = Column(String, ForeignKey("repositories.id", ondelete="CASCADE"), nullable=False)
    path = Column(String, nullable=False)
    content_hash = Column(String, nullable=False)
    size = Column(Integer, default=0, nullable=False)
    language = Column(String, nullable=True)
    last_indexed_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("repo_id", "path", name="uq_repo_files_repo_path"),
    )


class ChunkORM(Base):
    """Chunks table - embedded slices of file content."""

    __tablename__ = "chunks"

    id = Column(Integer, primary_key=True, autoincrement=True)
    repo_id = Column(String, ForeignKey("repositories.id", ondelete="CASCADE"), nullable=False)
    file_path = Column(String, nullable=False)
    chunk_index = Column(Integer, nullable=False)

    content = Column(Text, nullable=False)
    token_count = Column(Integer, default=0, nullable=False)
    embedding = Column(JSON, nullable=True)  # list[float], null when degraded

    # Named chunk_metadata to avoid clashing with SQLAlchemy's "metadata"
    chunk_metadata = Column(JSON, default=dict)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        Index("idx_chunks_repo", "repo_id"),
        UniqueConstraint("repo_id", "file_path", "chunk_index", name="uq_chunks_repo_file_index"),
    )


class DocBundleORM(Base):
    """Doc bundles table - one generation run's output for a repo."""

    __tablename__ = "doc_bundles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    repo_id = Column(String, ForeignKey("repositories.id", ondelete="CASCADE"), nullable=False)
    commit_sha = Column(String, nullable=True)
    repo_summary = Column(JSON, default=dict)
    warnings = Column(JSON, default=list)
    tasks = Column(JSON, default=list)
    overall_score = Column(Integer, default=0, nullable=False)
    needs_review_count = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    pages = relationship(
        "DocPageORM",
        back_populates="bundle",
        cascade="all, delete-orphan",
        order_by="DocPageORM.id",
    )

    __table_args__ = (
        Index("idx_doc_bundles_repo", "repo_id"),
    )


class DocPageORM(Base):
    """Doc pages table - generated pages with their verification outcome."""

    __tablename__ = "doc_pages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    bundle_id = Column(Integer, ForeignKey("doc_bundles.id", ondelete="CASCADE"), nullable=False)
    category = Column(String, nullable=False)
    slug = Column(String, nullable=False)
    title = Column(String, nullable=False)
    markdown = Column(Text, nullable=False)
    evidence = Column(JSON, default=list)
    verification_score = Column(Integer, default=0, nullable=False)
    needs_review = Column(Boolean, default=False, nullable=False)

    bundle = relationship("DocBundleORM", back_populates="pages")

    __table_args__ = (
        UniqueConstraint("bundle_id", "slug", name="uq_doc_pages_bundle_slug"),
    )


_async_engine = None
_async_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


async def get_async_engine():
    """Get or create the async database engine."""
    global _async_engine
    if _async_engine is None:
        settings = get_settings()
        _async_engine = create_async_engine(settings.database_url, echo=settings.debug)

    return _async_engine


async def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get or create the shared session factory."""
    global _async_session_factory
    if _async_session_factory is None:
        engine = await get_async_engine()
        _async_session_factory = async_sessionmaker(engine, expire_on_commit=False)
    return _async_session_factory


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency that yields an async database session."""
    factory = await get_session_factory()
    async with factory() as session:
        yield session


async def init_database():
    """Initialize the database, creating tables if they don't exist."""
    engine = await get_async_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


def init_database_sync():
    """Create tables through the blocking sqlite3 driver, for CLI commands."""
    settings = get_settings()
    url = make_url(settings.database_url)
    if url.drivername.endswith("+aiosqlite"):
        url = url.set(drivername="sqlite")

    engine = create_engine(url, echo=settings.debug)
    Base.metadata.create_all(engine)
    engine.dispose()
