"""Repository pattern for database operations."""

from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from repodocs.models.docs import DocOutput, DocPage
from repodocs.models.repository import (
    Chunk,
    FileRecord,
    Repository,
    SyncProgress,
    SyncStage,
    SyncStatus,
)
from repodocs.models.verification import VerificationSummary
from repodocs.storage.database import (
    ChunkORM,
    DocBundleORM,
    DocPageORM,
    FileRecordORM,
    RepositoryORM,
)


class RepoRepository:
    """Repository for tracked repositories and their sync checkpoint."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, repo_id: str) -> Repository | None:
        """Get a repository by ID."""
        result = await self.session.execute(
            select(RepositoryORM).where(RepositoryORM.id == repo_id)
        )
        orm = result.scalar_one_or_none()
        return self._to_model(orm) if orm else None

    async def get_all(self) -> list[Repository]:
        """Get all repositories."""
        result = await self.session.execute(select(RepositoryORM).order_by(RepositoryORM.id))
        return [self._to_model(orm) for orm in result.scalars()]

    async def find_by_full_name(self, owner: str, name: str) -> list[Repository]:
        """Find every tracked repository matching owner/name (case-insensitive)."""
        result = await self.session.execute(
            select(RepositoryORM).where(
                func.lower(RepositoryORM.owner) == owner.lower(),
                func.lower(RepositoryORM.name) == name.lower(),
            )
        )
        return [self._to_model(orm) for orm in result.scalars()]

    async def create(self, repo: Repository) -> Repository:
        """Create a new repository."""
        orm = RepositoryORM(
            id=repo.id,
            project_id=repo.project_id,
            owner=repo.owner,
            name=repo.name,
            default_branch=repo.default_branch,
            selected_branch=repo.selected_branch,
            status=repo.status.value,
            auto_sync_enabled=repo.auto_sync_enabled,
        )
        self.session.add(orm)
        await self.session.commit()
        return repo

    async def _update(self, repo_id: str, **values) -> None:
        await self.session.execute(
            RepositoryORM.__table__.update()
            .where(RepositoryORM.id == repo_id)
            .values(updated_at=datetime.utcnow(), **values)
        )
        await self.session.commit()

    async def mark_syncing(self, repo_id: str) -> None:
        """Reset the checkpoint and mark the repository as syncing."""
        await self._update(
            repo_id,
            status=SyncStatus.SYNCING.value,
            sync_stage=SyncStage.DISCOVERING.value,
            sync_progress=0,
            sync_total=0,
            sync_error=None,
        )

    async def update_progress(
        self,
        repo_id: str,
        stage: SyncStage | None = None,
        processed: int | None = None,
        total: int | None = None,
    ) -> None:
        """Persist a progress checkpoint. Only the given fields change."""
        values = {}
        if stage is not None:
            values["sync_stage"] = stage.value
        if processed is not None:
            values["sync_progress"] = processed
        if total is not None:
            values["sync_total"] = total
        if values:
            await self._update(repo_id, **values)

    async def mark_synced(self, repo_id: str, commit_sha: str) -> None:
        """Record a successful sync and clear progress."""
        await self._update(
            repo_id,
            status=SyncStatus.SYNCED.value,
            last_synced_commit_sha=commit_sha,
            last_synced_at=datetime.utcnow(),
            has_updates=False,
            sync_stage=None,
            sync_progress=0,
            sync_total=0,
            sync_error=None,
        )

    async def mark_error(self, repo_id: str, message: str) -> None:
        """Record a failed sync. Progress counters are left as they were."""
        await self._update(repo_id, status=SyncStatus.ERROR.value, sync_error=message)

    async def mark_has_updates(self, repo_id: str, commit_sha: str) -> None:
        """Record that the tracked branch moved past the last synced commit."""
        await self._update(repo_id, latest_commit_sha=commit_sha, has_updates=True)

    async def set_webhook_id(self, repo_id: str, webhook_id: int | None) -> None:
        await self._update(repo_id, webhook_id=webhook_id)

    def _to_model(self, orm: RepositoryORM) -> Repository:
        return Repository(
            id=orm.id,
            project_id=orm.project_id,
            owner=orm.owner,
            name=orm.name,
            default_branch=orm.default_branch,
            selected_branch=orm.selected_branch,
            status=SyncStatus(orm.status),
            progress=SyncProgress(
                stage=SyncStage(orm.sync_stage) if orm.sync_stage else None,
                processed_count=orm.sync_progress or 0,
                total_count=orm.sync_total or 0,
                last_error=orm.sync_error,
            ),
            last_synced_commit_sha=orm.last_synced_commit_sha,
            last_synced_at=orm.last_synced_at,
            auto_sync_enabled=bool(orm.auto_sync_enabled),
            latest_commit_sha=orm.latest_commit_sha,
            has_updates=bool(orm.has_updates),
            webhook_id=orm.webhook_id,
        )


class FileRecordRepository:
    """Repository for indexed file records."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, repo_id: str, path: str) -> FileRecord | None:
        """Get a file record by repository and path."""
        result = await self.session.execute(
            select(FileRecordORM).where(
                FileRecordORM.repo_id == repo_id, FileRecordORM.path == path
            )
        )
        orm = result.scalar_one_or_none()
        return self._to_model(orm) if orm else None

    async def get_by_repo(self, repo_id: str) -> list[FileRecord]:
        """Get all file records for a repository, ordered by path."""
        result = await self.session.execute(
            select(FileRecordORM)
            .where(FileRecordORM.repo_id == repo_id)
            .order_by(FileRecordORM.path)
        )
        return [self._to_model(orm) for orm in result.scalars()]

    async def upsert(self, record: FileRecord) -> FileRecord:
        """Create or update a file record keyed on (repo_id, path)."""
        existing = await self.get(record.repo_id, record.path)
        if existing:
            await self.session.execute(
                FileRecordORM.__table__.update()
                .where(
                    FileRecordORM.repo_id == record.repo_id,
                    FileRecordORM.path == record.path,
                )
                .values(
                    content_hash=record.content_hash,
                    size=record.size,
                    language=record.language,
                    last_indexed_at=record.last_indexed_at,
                )
            )
        else:
            self.session.add(
                FileRecordORM(
                    repo_id=record.repo_id,
                    path=record.path,
                    content_hash=record.content_hash,
                    size=record.size,
                    language=record.language,
                    last_indexed_at=record.last_indexed_at,
                )
            )
        await self.session.commit()
        return record

    async def delete_by_repo(self, repo_id: str) -> int:
        """Delete all file records for a repository."""
        result = await self.session.execute(
            delete(FileRecordORM).where(FileRecordORM.repo_id == repo_id)
        )
        await self.session.commit()
        return result.rowcount

    def _to_model(self, orm: FileRecordORM) -> FileRecord:
        return FileRecord(
            repo_id=orm.repo_id,
            path=orm.path,
            content_hash=orm.content_hash,
            size=orm.size,
            language=orm.language,
            last_indexed_at=orm.last_indexed_at,
        )


class ChunkRepository:
    """Repository for chunk rows."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_repo(self, repo_id: str) -> list[Chunk]:
        """Get all chunks for a repository in file/chunk order."""
        result = await self.session.execute(
            select(ChunkORM)
            .where(ChunkORM.repo_id == repo_id)
            .order_by(ChunkORM.file_path, ChunkORM.chunk_index)
        )
        return [self._to_model(orm) for orm in result.scalars()]

    async def create_many(self, chunks: list[Chunk]) -> list[Chunk]:
        """Create multiple chunks."""
        for chunk in chunks:
            self.session.add(
                ChunkORM(
                    repo_id=chunk.repo_id,
                    file_path=chunk.file_path,
                    chunk_index=chunk.chunk_index,
                    content=chunk.content,
                    token_count=chunk.token_count,
                    embedding=chunk.embedding,
                    chunk_metadata=chunk.metadata,
                )
            )
        await self.session.commit()
        return chunks

    async def delete_by_repo(self, repo_id: str) -> int:
        """Delete all chunks for a repository."""
        result = await self.session.execute(
            delete(ChunkORM).where(ChunkORM.repo_id == repo_id)
        )
        await self.session.commit()
        return result.rowcount

    async def count(self, repo_id: str | None = None) -> int:
        """Count chunks, optionally for a single repository."""
        query = select(func.count(ChunkORM.id))
        if repo_id:
            query = query.where(ChunkORM.repo_id == repo_id)
        result = await self.session.execute(query)
        return result.scalar() or 0

    def _to_model(self, orm: ChunkORM) -> Chunk:
        return Chunk(
            repo_id=orm.repo_id,
            file_path=orm.file_path,
            chunk_index=orm.chunk_index,
            content=orm.content,
            token_count=orm.token_count,
            embedding=orm.embedding,
            metadata=orm.chunk_metadata or {},
        )


@dataclass
class StoredBundle:
    """The latest persisted documentation for a repository."""

    repo_id: str
    commit_sha: str | None
    repo_summary: dict
    warnings: list[str]
    tasks: list[dict]
    overall_score: int
    created_at: datetime | None
    pages: list[DocPage] = field(default_factory=list)


class DocBundleRepository:
    """Repository for generated documentation bundles."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def replace(
        self,
        repo_id: str,
        output: DocOutput,
        summary: VerificationSummary,
        commit_sha: str | None = None,
    ) -> None:
        """Replace the repository's documentation with a new bundle."""
        # Bulk deletes skip ORM cascades, and SQLite may reuse the freed bundle id
        old_bundles = select(DocBundleORM.id).where(DocBundleORM.repo_id == repo_id)
        await self.session.execute(delete(DocPageORM).where(DocPageORM.bundle_id.in_(old_bundles)))
        await self.session.execute(delete(DocBundleORM).where(DocBundleORM.repo_id == repo_id))

        results = {page.slug: page for page in summary.pages}
        bundle = DocBundleORM(
            repo_id=repo_id,
            commit_sha=commit_sha,
            repo_summary=output.repo_summary.model_dump(),
            warnings=list(output.warnings),
            tasks=[task.model_dump(mode="json") for task in output.tasks or []],
            overall_score=summary.overall_score,
            needs_review_count=summary.needs_review,
        )
        for page in output.pages:
            result = results.get(page.slug)
            bundle.pages.append(
                DocPageORM(
                    category=page.category.value,
                    slug=page.slug,
                    title=page.title,
                    markdown=page.markdown,
                    evidence=[e.model_dump() for e in page.evidence],
                    verification_score=result.verification_score if result else 0,
                    needs_review=result.needs_review if result else True,
                )
            )
        self.session.add(bundle)
        await self.session.commit()

    async def get_latest(self, repo_id: str) -> StoredBundle | None:
        """Get the most recent bundle for a repository."""
        result = await self.session.execute(
            select(DocBundleORM)
            .where(DocBundleORM.repo_id == repo_id)
            .options(selectinload(DocBundleORM.pages))
            .order_by(DocBundleORM.id.desc())
            .limit(1)
        )
        orm = result.scalar_one_or_none()
        if orm is None:
            return None
        return StoredBundle(
            repo_id=orm.repo_id,
            commit_sha=orm.commit_sha,
            repo_summary=orm.repo_summary or {},
            warnings=orm.warnings or [],
            tasks=orm.tasks or [],
            overall_score=orm.overall_score,
            created_at=orm.created_at,
            pages=[
                DocPage(
                    category=page.category,
                    slug=page.slug,
                    title=page.title,
                    markdown=page.markdown,
                    evidence=page.evidence or [],
                )
                for page in orm.pages
            ],
        )

