"""Structure-aware chunker for repository files."""

import re

import tiktoken

from repodocs.config import get_settings
from repodocs.ingestion.filters import CODE_EXTENSIONS, DOC_EXTENSIONS, file_extension
from repodocs.models.repository import Chunk

HEADING_RE = re.compile(r"^#{1,3}\s")

# Matched against the stripped line
BLOCK_START_PATTERNS: dict[str, list[re.Pattern]] = {
    "typescript": [
        re.compile(r"^(export\s+)?(default\s+)?(async\s+)?function\s+\w+"),
        re.compile(r"^(export\s+)?(const|let|var)\s+\w+\s*=\s*(async\s+)?\("),
        re.compile(r"^(export\s+)?(default\s+)?(abstract\s+)?class\s+\w+"),
        re.compile(r"^(export\s+)?interface\s+\w+"),
        re.compile(r"^(export\s+)?type\s+\w+"),
    ],
    "python": [
        re.compile(r"^(async\s+)?def\s+\w+"),
        re.compile(r"^class\s+\w+"),
    ],
    "go": [
        re.compile(r"^func\s+(\(\w+\s+\*?\w+\)\s+)?\w+"),
        re.compile(r"^type\s+\w+\s+(struct|interface)"),
    ],
    "java": [
        re.compile(r"^(public|private|protected)?\s*(static\s+)?(class|interface|enum)\s+\w+"),
        re.compile(r"^(public|private|protected)?\s*(static\s+)?[\w<>\[\]]+\s+\w+\s*\("),
    ],
    "rust": [
        re.compile(r"^(pub(\(\w+\))?\s+)?(async\s+)?fn\s+\w+"),
        re.compile(r"^(pub(\(\w+\))?\s+)?(struct|enum|trait|impl)\b"),
    ],
    "ruby": [
        re.compile(r"^(def|class|module)\s+\w+"),
    ],
    "php": [
        re.compile(r"^(public|private|protected)?\s*(static\s+)?function\s+\w+"),
        re.compile(r"^(abstract\s+|final\s+)?class\s+\w+"),
    ],
}
BLOCK_START_PATTERNS["javascript"] = BLOCK_START_PATTERNS["typescript"]

BLOCK_OVERLAP_LINES = 3
SIZE_OVERLAP_LINES = 5
TEXT_OVERLAP_LINES = 3


class CodeChunker:
    """
    Split file content into chunks along its natural structure.

    Strategy depends on the file type:
    1. Markdown/docs: cut at level 1-3 headings, no overlap
    2. Code: cut at function/class/type starts, carrying a few lines of overlap
    3. Everything else: cut on size only, with overlap

    Any chunk is also cut once it reaches max_tokens. Output is
    deterministic for a given input.
    """

    def __init__(
        self,
        min_tokens: int | None = None,
        max_tokens: int | None = None,
        overlap_tokens: int | None = None,
    ):
        settings = get_settings()
        self.min_tokens = min_tokens or settings.chunk_min_tokens
        self.max_tokens = max_tokens or settings.chunk_max_tokens
        self.overlap_tokens = overlap_tokens or settings.chunk_overlap_tokens
        self.tokenizer = tiktoken.get_encoding("cl100k_base")

    def chunk(
        self,
        content: str,
        file_path: str,
        repo_id: str,
        language: str | None = None,
    ) -> list[Chunk]:
        """
        Split a file into chunks.

        Args:
            content: Decoded file text
            file_path: Repository-relative path (selects the strategy)
            repo_id: Owning repository
            language: Detected language, used for code block detection

        Returns:
            List of Chunk objects with contiguous 0-based chunk_index
        """
        if not content.strip():
            return []

        texts = self.split(content, file_path, language)
        return [
            Chunk(
                repo_id=repo_id,
                file_path=file_path,
                chunk_index=i,
                content=text,
                token_count=self._count_tokens(text),
                metadata={"language": language, "total_chunks": len(texts)},
            )
            for i, text in enumerate(texts)
        ]

    def split(self, content: str, file_path: str, language: str | None = None) -> list[str]:
        """Split content into chunk texts using the strategy for file_path."""
        ext = file_extension(file_path)
        if ext in DOC_EXTENSIONS:
            texts = self.split_markdown(content)
        elif ext in CODE_EXTENSIONS:
            texts = self.split_code(content, language)
        else:
            texts = self.split_text(content)
        return [text for text in texts if text.strip()]

    def split_markdown(self, content: str) -> list[str]:
        """Cut at headings once the current chunk is above min_tokens."""
        chunks: list[str] = []
        current: list[str] = []
        current_tokens = 0

        for line in content.split("\n"):
            if HEADING_RE.match(line) and current and current_tokens > self.min_tokens:
                chunks.append("\n".join(current))
                current, current_tokens = [], 0

            current.append(line)
            current_tokens += self._count_tokens(line)

            if current_tokens >= self.max_tokens:
                chunks.append("\n".join(current))
                current, current_tokens = [], 0

        if current:
            chunks.append("\n".join(current))
        return chunks

    def split_code(self, content: str, language: str | None) -> list[str]:
        """Cut at block starts once the current chunk is above min_tokens."""
        patterns = BLOCK_START_PATTERNS.get(language or "", [])
        chunks: list[str] = []
        current: list[str] = []
        current_tokens = 0
        carried = 0

        for line in content.split("\n"):
            stripped = line.strip()
            is_block_start = any(p.match(stripped) for p in patterns)
            if is_block_start and current and current_tokens > self.min_tokens:
                chunks.append("\n".join(current))
                current = self._overlap(current, BLOCK_OVERLAP_LINES)
                current_tokens = self._count_lines(current)
                carried = len(current)

            current.append(line)
            current_tokens += self._count_tokens(line)

            if current_tokens >= self.max_tokens:
                chunks.append("\n".join(current))
                current = self._overlap(current, SIZE_OVERLAP_LINES)
                current_tokens = self._count_lines(current)
                carried = len(current)

        if len(current) > carried:
            chunks.append("\n".join(current))
        return chunks

    def split_text(self, content: str) -> list[str]:
        """Cut on size only."""
        chunks: list[str] = []
        current: list[str] = []
        current_tokens = 0
        carried = 0

        for line in content.split("\n"):
            current.append(line)
            current_tokens += self._count_tokens(line)

            if current_tokens >= self.max_tokens:
                chunks.append("\n".join(current))
                current = self._overlap(current, TEXT_OVERLAP_LINES)
                current_tokens = self._count_lines(current)
                carried = len(current)

        if len(current) > carried:
            chunks.append("\n".join(current))
        return chunks

    def _overlap(self, lines: list[str], count: int) -> list[str]:
        """Trailing lines to carry into the next chunk, capped at overlap_tokens."""
        tail = lines[-count:]
        while tail and self._count_lines(tail) > self.overlap_tokens:
            tail = tail[1:]
        return list(tail)

    def _count_lines(self, lines: list[str]) -> int:
        return sum(self._count_tokens(line) for line in lines)

    def _count_tokens(self, text: str) -> int:
        """Count tokens in text."""
        return len(self.tokenizer.encode(text))


# Singleton chunker instance
_chunker = None


def get_chunker() -> CodeChunker:
    """Get the singleton chunker instance."""
    global _chunker
    if _chunker is None:
        _chunker = CodeChunker()
    return _chunker
