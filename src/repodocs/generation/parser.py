"""Parsing, validation and truncation repair of model documentation output."""

import json
import re
from dataclasses import dataclass, field

import structlog
from pydantic import ValidationError

from repodocs.errors import DocOutputError
from repodocs.models.docs import DocCategory, DocOutput, DocPage, DocTask, RepoSummary

logger = structlog.get_logger()

PARTIAL_WARNING = "[Partial] Some documentation may be incomplete due to response truncation"

PAGE_FIELDS = ("category", "slug", "title", "markdown", "evidence")

_OPEN_FENCE_RE = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
_CLOSE_FENCE_RE = re.compile(r"\s*```\s*$")
_PAGE_START_RE = re.compile(r'\{\s*"(?:%s)"\s*:' % "|".join(PAGE_FIELDS))
_decoder = json.JSONDecoder()


def strip_code_fences(text: str) -> str:
    """Remove a leading ```json (or ```) fence and a trailing ``` fence."""
    text = _OPEN_FENCE_RE.sub("", text.strip())
    return _CLOSE_FENCE_RE.sub("", text).strip()


def extract_json_object(text: str) -> str:
    """Return the outermost {...} span of text, or the stripped text if none."""
    text = strip_code_fences(text)
    start, end = text.find("{"), text.rfind("}")
    if start == -1 or end <= start:
        return text
    return text[start : end + 1]


def format_validation_errors(exc: ValidationError) -> list[str]:
    """Flatten pydantic errors to "field.path: message" strings."""
    return [
        f"{'.'.join(str(part) for part in err['loc']) or '<root>'}: {err['msg']}"
        for err in exc.errors()
    ]


def parse_doc_output(raw: str, lenient: bool = False) -> DocOutput:
    """
    Strictly parse and validate model output.

    Args:
        raw: Raw model text, optionally wrapped in code fences
        lenient: Take the outermost {...} span, ignoring surrounding prose

    Raises:
        DocOutputError: If the text is not JSON or fails validation; the
            message lists every failing field path
    """
    text = extract_json_object(raw) if lenient else strip_code_fences(raw)
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise DocOutputError(f"Invalid JSON in model output: {e}") from e

    try:
        return DocOutput.model_validate(data)
    except ValidationError as e:
        errors = format_validation_errors(e)
        raise DocOutputError("Model output failed validation: " + "; ".join(errors), errors) from e


@dataclass
class SalvageResult:
    """Whatever could be recovered from a truncated response."""

    pages: list[DocPage] = field(default_factory=list)
    repo_summary: RepoSummary | None = None
    warnings: list[str] = field(default_factory=list)
    tasks: list[DocTask] = field(default_factory=list)
    needs_more_files: list[str] | None = None

    def to_output(self, fallback_name: str = "unknown") -> DocOutput | None:
        """Build a DocOutput, or None when no page survived."""
        if not self.pages:
            return None
        return DocOutput(
            repo_summary=self.repo_summary or RepoSummary(name=fallback_name),
            warnings=self.warnings,
            needs_more_files=self.needs_more_files,
            pages=self.pages,
            tasks=self.tasks or None,
        )


def _value_after_key(text: str, key: str):
    """Decode the JSON value following the first "key": in text, or None."""
    match = re.search(r'"%s"\s*:\s*' % re.escape(key), text)
    if not match:
        return None
    try:
        value, _ = _decoder.raw_decode(text, match.end())
    except json.JSONDecodeError:
        return None
    return value


def _validate_page(data) -> DocPage | None:
    if not isinstance(data, dict) or not all(k in data for k in PAGE_FIELDS):
        return None
    try:
        return DocPage.model_validate(data)
    except ValidationError as e:
        logger.debug("salvage_page_rejected", slug=data.get("slug"), errors=format_validation_errors(e))
        return None


def _scan_complete_pages(text: str) -> list[DocPage]:
    """Find every complete, closed page object in possibly-truncated text."""
    pages = []
    pos = 0
    while True:
        match = _PAGE_START_RE.search(text, pos)
        if not match:
            break
        try:
            data, end = _decoder.raw_decode(text, match.start())
        except json.JSONDecodeError:
            pos = match.end()
            continue
        page = _validate_page(data)
        if page is not None:
            pages.append(page)
        pos = end
    return pages


def close_open_structures(text: str) -> str:
    """
    Append the closers needed to balance unmatched { and [ in text.

    Brackets inside string literals are ignored. An unterminated string is
    closed and a dangling trailing comma is dropped first.
    """
    stack: list[str] = []
    in_string = False
    escaped = False
    for ch in text:
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch in "{[":
            stack.append(ch)
        elif ch in "}]" and stack:
            stack.pop()

    if in_string:
        if escaped:
            text = text[:-1]
        text += '"'
    text = text.rstrip()
    if text.endswith(","):
        text = text[:-1]
    return text + "".join("}" if opener == "{" else "]" for opener in reversed(stack))


def salvage_truncated(raw: str) -> SalvageResult:
    """
    Recover pages and metadata from output cut off at the token limit.

    Complete page objects are extracted and validated one by one. Only if
    none are found is the text bracket-balanced and parsed as a whole. The
    partial-output warning is always appended.
    """
    text = strip_code_fences(raw)
    result = SalvageResult()

    summary = _value_after_key(text, "repo_summary")
    if isinstance(summary, dict):
        try:
            result.repo_summary = RepoSummary.model_validate(summary)
        except ValidationError:
            result.repo_summary = None

    warnings = _value_after_key(text, "warnings")
    if isinstance(warnings, list):
        result.warnings = [str(w) for w in warnings]

    needs_more = _value_after_key(text, "needs_more_files")
    if isinstance(needs_more, list):
        result.needs_more_files = [str(p) for p in needs_more]

    tasks = _value_after_key(text, "tasks")
    if isinstance(tasks, list):
        for task in tasks:
            try:
                result.tasks.append(DocTask.model_validate(task))
            except ValidationError:
                continue

    result.pages = _scan_complete_pages(text)

    if not result.pages:
        try:
            data = json.loads(close_open_structures(text))
        except json.JSONDecodeError:
            data = None
        if isinstance(data, dict):
            for item in data.get("pages") or []:
                page = _validate_page(item)
                if page is not None:
                    result.pages.append(page)
            if result.repo_summary is None and isinstance(data.get("repo_summary"), dict):
                try:
                    result.repo_summary = RepoSummary.model_validate(data["repo_summary"])
                except ValidationError:
                    pass
            if not result.warnings and isinstance(data.get("warnings"), list):
                result.warnings = [str(w) for w in data["warnings"]]

    result.warnings.append(PARTIAL_WARNING)
    logger.info("salvaged_truncated_output", pages=len(result.pages), chars=len(text))
    return result


def normalize_slug(slug: str) -> str:
    """Lowercase a slug and collapse anything outside [a-z0-9/-] to single hyphens."""
    slug = re.sub(r"[^a-z0-9/-]", "-", slug.lower())
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-")


def category_from_slug(slug: str) -> DocCategory | None:
    """Infer the category from a slug's section ("features/x" -> FEATURE)."""
    section = slug.split("/", 1)[0].upper()
    if section.endswith("S") and section[:-1] in DocCategory.__members__:
        section = section[:-1]
    return DocCategory.__members__.get(section)
