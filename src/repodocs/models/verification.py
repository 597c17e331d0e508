"""Data models for evidence verification results."""

from typing import Literal

from pydantic import BaseModel, Field


class VerificationIssue(BaseModel):
    """A problem found while checking one evidence item (or a whole page)."""

    type: Literal["missing_file", "excerpt_not_found", "low_similarity", "no_evidence"]
    severity: Literal["error", "warning"]
    message: str
    evidence_index: int | None = None
    file_path: str | None = None


class PageVerificationResult(BaseModel):
    """Verification outcome for a single page."""

    slug: str
    title: str
    verified_count: int = 0
    verified_credit: float = 0.0
    total_evidence: int = 0
    verification_score: int = Field(default=0, ge=0, le=100)
    issues: list[VerificationIssue] = Field(default_factory=list)
    needs_review: bool = False


class VerificationSummary(BaseModel):
    """Aggregate verification outcome for a set of pages. Always derived."""

    total_pages: int = 0
    fully_verified: int = 0
    needs_review: int = 0
    total_evidence: int = 0
    verified_evidence: int = 0
    overall_score: int = Field(default=0, ge=0, le=100)
    pages: list[PageVerificationResult] = Field(default_factory=list)
