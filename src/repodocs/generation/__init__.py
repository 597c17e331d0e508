"""Documentation generation package."""

from repodocs.generation.parser import (
    PARTIAL_WARNING,
    SalvageResult,
    category_from_slug,
    normalize_slug,
    parse_doc_output,
    salvage_truncated,
)
from repodocs.generation.service import DocGenerationService, GenerationOutcome

__all__ = [
    "DocGenerationService",
    "GenerationOutcome",
    "PARTIAL_WARNING",
    "SalvageResult",
    "category_from_slug",
    "normalize_slug",
    "parse_doc_output",
    "salvage_truncated",
]
