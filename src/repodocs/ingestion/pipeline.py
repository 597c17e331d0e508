"""Repository sync pipeline orchestration."""

import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from repodocs.config import get_settings
from repodocs.errors import EmbeddingError, RepositoryNotFoundError, SyncInProgressError
from repodocs.generation.service import DocGenerationService
from repodocs.ingestion.chunker import CodeChunker, get_chunker
from repodocs.ingestion.connectors.base import BlobSource
from repodocs.ingestion.connectors.github import GitHubClient, decode_content
from repodocs.ingestion.embeddings import EmbeddingClient, get_embedding_client
from repodocs.ingestion.filters import detect_language, should_index_file
from repodocs.models.docs import RepoContextFile
from repodocs.models.repository import Chunk, FileRecord, Repository, SyncStage, TreeEntry
from repodocs.observability import EMBEDDING_BATCHES, SYNC_DURATION, SYNC_FILES, SYNC_RUNS
from repodocs.storage import (
    ChunkRepository,
    FileRecordRepository,
    RepoRepository,
    get_session_factory,
)

logger = structlog.get_logger()


@dataclass
class SyncStats:
    """Statistics from a sync run."""

    repo_id: str
    commit_sha: str | None = None
    files_discovered: int = 0
    files_indexed: int = 0
    files_failed: int = 0
    chunks_created: int = 0
    chunks_embedded: int = 0
    embedding_failures: int = 0
    docs_generated: bool = False
    duration_seconds: float = 0.0


class SyncOrchestrator:
    """
    Syncs one repository into files, chunks and embeddings.

    Flow:
    1. Resolve branch and commit, list the recursive tree
    2. Filter to indexable blobs
    3. Replace all prior files and chunks for the repository
    4. Fetch, decode and chunk files in bounded concurrent batches
    5. Embed chunks in batches (a failed batch is stored without vectors)
    6. Generate documentation (failures are logged, never fatal)
    7. Mark the repository synced

    Progress is checkpointed on the repository row after every batch.
    """

    def __init__(
        self,
        source: BlobSource,
        embedder: EmbeddingClient | None = None,
        chunker: CodeChunker | None = None,
        doc_generator: DocGenerationService | None = None,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        batch_size: int | None = None,
        embedding_batch_size: int | None = None,
    ):
        settings = get_settings()
        self.source = source
        self.embedder = embedder
        self.chunker = chunker or get_chunker()
        self.doc_generator = doc_generator
        self._session_factory = session_factory
        self.batch_size = batch_size or settings.sync_batch_size
        self.embedding_batch_size = embedding_batch_size or settings.embedding_batch_size

    async def _get_session_factory(self) -> async_sessionmaker[AsyncSession]:
        if self._session_factory is None:
            self._session_factory = await get_session_factory()
        return self._session_factory

    async def sync(self, repo_id: str) -> SyncStats:
        """
        Run a full sync for a repository.

        Args:
            repo_id: ID of a registered repository

        Returns:
            SyncStats for the run

        Raises:
            RepositoryNotFoundError: If repo_id is unknown
            Exception: Any fatal failure, after the repository is marked ERROR
        """
        start_time = datetime.utcnow()
        stats = SyncStats(repo_id=repo_id)
        factory = await self._get_session_factory()

        async with factory() as session:
            repos = RepoRepository(session)
            repo = await repos.get(repo_id)
            if repo is None:
                raise RepositoryNotFoundError(repo_id)

            await repos.mark_syncing(repo_id)
            logger.info("sync_started", repo_id=repo_id, repo=repo.full_name, branch=repo.branch)

            try:
                await self._run(session, repo, stats)
            except Exception as e:
                logger.error("sync_failed", repo_id=repo_id, error=str(e))
                SYNC_RUNS.labels(status="error").inc()
                await session.rollback()
                await repos.mark_error(repo_id, str(e) or type(e).__name__)
                raise

        stats.duration_seconds = (datetime.utcnow() - start_time).total_seconds()
        SYNC_RUNS.labels(status="success").inc()
        SYNC_DURATION.observe(stats.duration_seconds)
        logger.info("sync_complete", repo_id=repo_id, stats=stats.__dict__)
        return stats

    async def _run(self, session: AsyncSession, repo: Repository, stats: SyncStats) -> None:
        repos = RepoRepository(session)
        files = FileRecordRepository(session)
        chunk_repo = ChunkRepository(session)

        # Discover
        commit_sha = await self.source.get_latest_commit(repo.owner, repo.name, repo.branch)
        stats.commit_sha = commit_sha
        tree = await self.source.get_tree(repo.owner, repo.name, repo.branch)
        entries = [
            entry
            for entry in tree
            if entry.type == "blob"
            and entry.size is not None
            and should_index_file(entry.path, entry.size)
        ]
        stats.files_discovered = len(entries)
        logger.info("sync_discovered", repo_id=repo.id, tree=len(tree), indexable=len(entries))

        # Index
        await repos.update_progress(repo.id, stage=SyncStage.INDEXING, processed=0, total=len(entries))
        await chunk_repo.delete_by_repo(repo.id)
        await files.delete_by_repo(repo.id)

        contents: dict[str, str] = {}
        pending_chunks: list[Chunk] = []
        processed = 0

        for i in range(0, len(entries), self.batch_size):
            batch = entries[i : i + self.batch_size]
            results = await asyncio.gather(
                *(self._fetch(repo, entry) for entry in batch),
                return_exceptions=True,
            )

            for entry, result in zip(batch, results):
                if isinstance(result, BaseException):
                    if not isinstance(result, Exception):
                        raise result
                    stats.files_failed += 1
                    SYNC_FILES.labels(result="failed").inc()
                    logger.warning("sync_file_failed", repo_id=repo.id, path=entry.path, error=str(result))
                    continue

                language = detect_language(entry.path)
                await files.upsert(
                    FileRecord(
                        repo_id=repo.id,
                        path=entry.path,
                        content_hash=entry.sha,
                        size=entry.size or len(result),
                        language=language,
                        last_indexed_at=datetime.utcnow(),
                    )
                )
                contents[entry.path] = result
                pending_chunks.extend(self.chunker.chunk(result, entry.path, repo.id, language))
                stats.files_indexed += 1
                SYNC_FILES.labels(result="indexed").inc()

            processed += len(batch)
            await repos.update_progress(repo.id, processed=processed)

        # Embed
        await repos.update_progress(repo.id, stage=SyncStage.EMBEDDING)
        await self._embed_and_store(repo, pending_chunks, chunk_repo, stats)

        # Docs
        if self.doc_generator is not None:
            await repos.update_progress(repo.id, stage=SyncStage.GENERATING_DOCS)
            file_tree = [
                RepoContextFile(path=e.path, size=e.size or 0, language=detect_language(e.path))
                for e in entries
                if e.path in contents
            ]
            try:
                outcome = await self.doc_generator.generate(
                    repo, file_tree, contents, commit_sha=commit_sha
                )
                stats.docs_generated = outcome.success
            except Exception as e:
                logger.error("doc_generation_failed", repo_id=repo.id, error=str(e))

        await repos.mark_synced(repo.id, commit_sha)

    async def _fetch(self, repo: Repository, entry: TreeEntry) -> str:
        """Fetch and decode one blob."""
        payload = await self.source.get_blob(repo.owner, repo.name, entry.sha)
        return decode_content(payload)

    async def _embed_and_store(
        self,
        repo: Repository,
        chunks: list[Chunk],
        chunk_repo: ChunkRepository,
        stats: SyncStats,
    ) -> None:
        for i in range(0, len(chunks), self.embedding_batch_size):
            batch = chunks[i : i + self.embedding_batch_size]

            if self.embedder is not None:
                try:
                    vectors = await self.embedder.embed([c.content for c in batch])
                    if len(vectors) != len(batch):
                        raise EmbeddingError(
                            f"Provider returned {len(vectors)} vectors for {len(batch)} inputs"
                        )
                    for chunk, vector in zip(batch, vectors):
                        chunk.embedding = vector
                    stats.chunks_embedded += len(batch)
                    EMBEDDING_BATCHES.labels(status="success").inc()
                except EmbeddingError as e:
                    # Stored without vectors; search degrades for these chunks
                    stats.embedding_failures += 1
                    EMBEDDING_BATCHES.labels(status="failed").inc()
                    logger.warning(
                        "embedding_batch_failed",
                        repo_id=repo.id,
                        batch_start=i,
                        batch_size=len(batch),
                        error=str(e),
                    )

            await chunk_repo.create_many(batch)
            stats.chunks_created += len(batch)

    async def aclose(self) -> None:
        await self.source.aclose()


class SyncManager:
    """
    Runs at most one sync per repository id as a background task.

    Triggering returns immediately; callers poll the repository row for
    progress. Different repositories sync in parallel.
    """

    def __init__(
        self,
        orchestrator_factory: Callable[[], SyncOrchestrator],
        session_factory: async_sessionmaker[AsyncSession] | None = None,
    ):
        self.orchestrator_factory = orchestrator_factory
        self._session_factory = session_factory
        self._active: set[str] = set()
        self._tasks: dict[str, asyncio.Task] = {}

    def is_running(self, repo_id: str) -> bool:
        return repo_id in self._active

    async def trigger(self, repo_id: str) -> asyncio.Task:
        """
        Mark the repository syncing and start the sync in the background.

        Raises:
            SyncInProgressError: If a sync for repo_id is still running
            RepositoryNotFoundError: If repo_id is unknown
        """
        if repo_id in self._active:
            raise SyncInProgressError(repo_id)
        self._active.add(repo_id)

        try:
            factory = self._session_factory or await get_session_factory()
            async with factory() as session:
                repos = RepoRepository(session)
                if await repos.get(repo_id) is None:
                    raise RepositoryNotFoundError(repo_id)
                await repos.mark_syncing(repo_id)
        except Exception:
            self._active.discard(repo_id)
            raise

        task = asyncio.create_task(self._run(repo_id), name=f"sync:{repo_id}")
        self._tasks[repo_id] = task
        task.add_done_callback(lambda _: self._finish(repo_id))
        logger.info("sync_triggered", repo_id=repo_id)
        return task

    def _finish(self, repo_id: str) -> None:
        self._active.discard(repo_id)
        self._tasks.pop(repo_id, None)

    async def _run(self, repo_id: str) -> SyncStats | None:
        orchestrator = None
        try:
            orchestrator = self.orchestrator_factory()
            return await orchestrator.sync(repo_id)
        except Exception as e:
            logger.error("background_sync_failed", repo_id=repo_id, error=str(e))
            if orchestrator is None:
                # sync() marks its own failures as ERROR
                SYNC_RUNS.labels(status="error").inc()
                await self._mark_error(repo_id, str(e) or type(e).__name__)
            return None
        finally:
            if orchestrator is not None:
                await orchestrator.aclose()

    async def _mark_error(self, repo_id: str, message: str) -> None:
        factory = self._session_factory or await get_session_factory()
        async with factory() as session:
            await RepoRepository(session).mark_error(repo_id, message)

    async def wait(self, repo_id: str) -> SyncStats | None:
        """Wait for a running sync to finish. Returns None if none is running."""
        task = self._tasks.get(repo_id)
        if task is None:
            return None
        return await task

    async def shutdown(self) -> None:
        """Cancel all running syncs."""
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)


def create_orchestrator(
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> SyncOrchestrator:
    """Build a SyncOrchestrator from settings."""
    settings = get_settings()

    embedder = None
    if settings.embedding_provider == "openai" and not settings.openai_api_key:
        logger.warning("embeddings_disabled", reason="REPODOCS_OPENAI_API_KEY is not set")
    else:
        embedder = get_embedding_client(settings.embedding_provider)

    doc_generator = None
    if settings.generate_docs_on_sync:
        doc_generator = DocGenerationService(session_factory=session_factory)

    return SyncOrchestrator(
        source=GitHubClient(),
        embedder=embedder,
        doc_generator=doc_generator,
        session_factory=session_factory,
    )


async def run_sync(repo_id: str) -> SyncStats:
    """Sync one repository in the foreground."""
    orchestrator = create_orchestrator()
    try:
        return await orchestrator.sync(repo_id)
    finally:
        await orchestrator.aclose()
