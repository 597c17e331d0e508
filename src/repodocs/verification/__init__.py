"""Verification package."""

from repodocs.verification.report import generate_verification_report
from repodocs.verification.verifier import (
    PARTIAL_THRESHOLD,
    VERIFIED_THRESHOLD,
    excerpt_similarity,
    normalize_text,
    verify_documentation,
    verify_page,
)

__all__ = [
    "PARTIAL_THRESHOLD",
    "VERIFIED_THRESHOLD",
    "excerpt_similarity",
    "generate_verification_report",
    "normalize_text",
    "verify_documentation",
    "verify_page",
]
