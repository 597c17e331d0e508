"""Generated documentation API routes."""

from collections import defaultdict

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from repodocs.api.schemas import DocBundleResponseSchema, DocPageResponseSchema
from repodocs.generation.parser import category_from_slug, normalize_slug
from repodocs.models.repository import Chunk
from repodocs.storage import ChunkRepository, DocBundleRepository, FileRecordRepository, get_session
from repodocs.verification import verify_documentation, verify_page

router = APIRouter(prefix="/repos", tags=["docs"])


def contents_from_chunks(chunks: list[Chunk]) -> dict[str, str]:
    """Rebuild approximate file text by joining each file's chunks in order."""
    by_file: dict[str, list[Chunk]] = defaultdict(list)
    for chunk in chunks:
        by_file[chunk.file_path].append(chunk)
    return {
        path: "\n".join(c.content for c in sorted(parts, key=lambda c: c.chunk_index))
        for path, parts in by_file.items()
    }


async def _load(repo_id: str, session: AsyncSession):
    bundle = await DocBundleRepository(session).get_latest(repo_id)
    if bundle is None:
        raise HTTPException(status_code=404, detail=f"No documentation for repository {repo_id}")
    files = await FileRecordRepository(session).get_by_repo(repo_id)
    chunks = await ChunkRepository(session).get_by_repo(repo_id)
    return bundle, contents_from_chunks(chunks), [f.path for f in files]


@router.get("/{repo_id}/docs", response_model=DocBundleResponseSchema)
async def get_docs(repo_id: str, session: AsyncSession = Depends(get_session)):
    """
    Get the latest documentation for a repository.

    Evidence is re-verified against the currently indexed files, so the
    summary reflects the repository as of its last sync.
    """
    bundle, contents, available = await _load(repo_id, session)
    summary = verify_documentation(bundle.pages, contents, available)

    return DocBundleResponseSchema(
        repo_id=repo_id,
        commit_sha=bundle.commit_sha,
        generated_at=bundle.created_at,
        repo_summary=bundle.repo_summary,
        warnings=bundle.warnings,
        tasks=bundle.tasks,
        pages=bundle.pages,
        verification=summary,
    )


@router.get("/{repo_id}/docs/{slug:path}", response_model=DocPageResponseSchema)
async def get_doc_page(repo_id: str, slug: str, session: AsyncSession = Depends(get_session)):
    """Get one documentation page by slug, e.g. "architecture/overview"."""
    wanted = normalize_slug(slug)
    if category_from_slug(wanted) is None:
        raise HTTPException(status_code=400, detail=f"Unknown documentation section: {slug}")

    bundle, contents, available = await _load(repo_id, session)
    page = next((p for p in bundle.pages if p.slug == wanted), None)
    if page is None:
        raise HTTPException(status_code=404, detail=f"Page not found: {wanted}")

    return DocPageResponseSchema(
        repo_id=repo_id,
        page=page,
        verification=verify_page(page, contents, available),
    )
