"""Evidence verification: check cited excerpts against real file content."""

import re
from typing import Iterable

import structlog

from repodocs.models.docs import DocPage
from repodocs.models.verification import (
    PageVerificationResult,
    VerificationIssue,
    VerificationSummary,
)

logger = structlog.get_logger()

VERIFIED_THRESHOLD = 0.6
PARTIAL_THRESHOLD = 0.3
MIN_WINDOW_WORDS = 10
REVIEW_SCORE_THRESHOLD = 50
NEEDS_REVIEW_MARKER = "[Needs Review]"

_WHITESPACE_RE = re.compile(r"\s+")


def _round(value: float) -> int:
    """Round half up (values here are never negative)."""
    return int(value + 0.5)


def normalize_text(text: str) -> str:
    """Collapse whitespace runs to single spaces, trim, and case-fold."""
    return _WHITESPACE_RE.sub(" ", text.replace("\r\n", "\n")).strip().casefold()


def normalize_path(path: str) -> str:
    path = path.strip().replace("\\", "/")
    if path.startswith("./"):
        path = path[2:]
    return path.lstrip("/")


def resolve_path(path: str, available: Iterable[str]) -> str | None:
    """
    Find path among available paths.

    Exact match first, then a suffix match in either direction (a citation
    of "api/routes.py" matches "src/api/routes.py" and vice versa).
    """
    candidates = set(available)
    if path in candidates:
        return path
    for candidate in sorted(candidates):
        if candidate.endswith("/" + path) or path.endswith("/" + candidate):
            return candidate
    return None


def jaccard(a: set[str], b: set[str]) -> float:
    if not a and not b:
        return 0.0
    return len(a & b) / len(a | b)


def excerpt_similarity(excerpt: str, content: str) -> float:
    """
    Similarity in [0, 1] between an excerpt and a file's content.

    1.0 when either normalized text contains the other. Otherwise the best
    Jaccard word-set similarity over a sliding window of the file, where the
    window is twice max(excerpt words, MIN_WINDOW_WORDS) and the step half of it.
    """
    norm_excerpt = normalize_text(excerpt)
    norm_content = normalize_text(content)
    if not norm_excerpt or not norm_content:
        return 0.0
    if norm_excerpt in norm_content or norm_content in norm_excerpt:
        return 1.0

    excerpt_words = norm_excerpt.split(" ")
    content_words = norm_content.split(" ")
    chunk = max(len(excerpt_words), MIN_WINDOW_WORDS)
    window = chunk * 2
    step = max(chunk // 2, 1)
    excerpt_set = set(excerpt_words)

    best = 0.0
    for start in range(0, max(len(content_words) - window, 0) + 1, step):
        best = max(best, jaccard(excerpt_set, set(content_words[start : start + window])))
    if len(content_words) > window:
        # The stride can stop short of the end, so always score the final window
        best = max(best, jaccard(excerpt_set, set(content_words[-window:])))
    return best


def verify_page(
    page: DocPage,
    file_contents: dict[str, str],
    available_files: Iterable[str],
    verified_threshold: float = VERIFIED_THRESHOLD,
    partial_threshold: float = PARTIAL_THRESHOLD,
) -> PageVerificationResult:
    """
    Verify every evidence item on a page.

    Args:
        page: Page to check
        file_contents: Fetched file text by path
        available_files: Every path known to exist in the repository
        verified_threshold: Similarity for full credit
        partial_threshold: Similarity for partial credit

    Returns:
        PageVerificationResult; problems are reported as issues, never raised
    """
    contents = {normalize_path(path): text for path, text in file_contents.items()}
    known = {normalize_path(path) for path in available_files} | set(contents)

    issues: list[VerificationIssue] = []
    credit = 0.0
    total = len(page.evidence)

    for index, evidence in enumerate(page.evidence):
        path = normalize_path(evidence.file_path)
        resolved = resolve_path(path, known)
        if resolved is None:
            issues.append(
                VerificationIssue(
                    type="missing_file",
                    severity="error",
                    message=f"Cited file does not exist: {path}",
                    evidence_index=index,
                    file_path=path,
                )
            )
            continue

        content = contents.get(resolved)
        if content is None:
            issues.append(
                VerificationIssue(
                    type="missing_file",
                    severity="warning",
                    message=f"File content was not fetched, excerpt not checked: {resolved}",
                    evidence_index=index,
                    file_path=resolved,
                )
            )
            continue

        similarity = excerpt_similarity(evidence.excerpt, content)
        if similarity >= verified_threshold:
            credit += 1.0
        elif similarity >= partial_threshold:
            credit += similarity
            issues.append(
                VerificationIssue(
                    type="low_similarity",
                    severity="warning",
                    message=f"Excerpt only partially matches {resolved} ({similarity:.0%} similar)",
                    evidence_index=index,
                    file_path=resolved,
                )
            )
        else:
            issues.append(
                VerificationIssue(
                    type="excerpt_not_found",
                    severity="error",
                    message=f"Excerpt not found in {resolved}",
                    evidence_index=index,
                    file_path=resolved,
                )
            )

    if total == 0:
        issues.append(
            VerificationIssue(
                type="no_evidence",
                severity="warning",
                message="Page has no evidence citations",
            )
        )

    has_marker = NEEDS_REVIEW_MARKER in page.markdown
    if has_marker:
        issues.append(
            VerificationIssue(
                type="no_evidence",
                severity="warning",
                message=f"Page contains {NEEDS_REVIEW_MARKER} markers",
            )
        )

    score = _round(100 * credit / total) if total else 0
    needs_review = (
        any(issue.severity == "error" for issue in issues)
        or score < REVIEW_SCORE_THRESHOLD
        or total == 0
        or has_marker
    )

    return PageVerificationResult(
        slug=page.slug,
        title=page.title,
        verified_count=_round(credit),
        verified_credit=credit,
        total_evidence=total,
        verification_score=score,
        issues=issues,
        needs_review=needs_review,
    )


def verify_documentation(
    pages: list[DocPage],
    file_contents: dict[str, str],
    available_files: Iterable[str],
    verified_threshold: float = VERIFIED_THRESHOLD,
    partial_threshold: float = PARTIAL_THRESHOLD,
) -> VerificationSummary:
    """
    Verify a set of pages and aggregate the results.

    The overall score is weighted by evidence count: total credit over total
    evidence across all pages, not the mean of page scores.
    """
    available = list(available_files)
    results = [
        verify_page(page, file_contents, available, verified_threshold, partial_threshold)
        for page in pages
    ]

    total_evidence = sum(r.total_evidence for r in results)
    total_credit = sum(r.verified_credit for r in results)
    summary = VerificationSummary(
        total_pages=len(results),
        fully_verified=sum(1 for r in results if r.verification_score == 100 and not r.needs_review),
        needs_review=sum(1 for r in results if r.needs_review),
        total_evidence=total_evidence,
        verified_evidence=sum(r.verified_count for r in results),
        overall_score=_round(100 * total_credit / total_evidence) if total_evidence else 0,
        pages=results,
    )
    logger.info(
        "documentation_verified",
        pages=summary.total_pages,
        evidence=summary.total_evidence,
        overall_score=summary.overall_score,
        needs_review=summary.needs_review,
    )
    return summary
