"""File selection and language detection for repository sync."""

from pathlib import PurePosixPath

from repodocs.config import get_settings

SKIP_PATTERNS = (
    "node_modules",
    ".git",
    "dist",
    "build",
    ".next",
    "coverage",
    "__pycache__",
    ".venv",
    "vendor",
    "target",
)

CODE_EXTENSIONS = frozenset(
    {".ts", ".tsx", ".js", ".jsx", ".py", ".go", ".java", ".rs", ".rb", ".php"}
)
DOC_EXTENSIONS = frozenset({".md", ".txt", ".mdx"})
CONFIG_EXTENSIONS = frozenset({".json", ".yaml", ".yml", ".toml"})

INDEXABLE_EXTENSIONS = CODE_EXTENSIONS | DOC_EXTENSIONS | CONFIG_EXTENSIONS

LANGUAGE_BY_EXTENSION = {
    "ts": "typescript",
    "tsx": "typescript",
    "js": "javascript",
    "jsx": "javascript",
    "py": "python",
    "go": "go",
    "java": "java",
    "rs": "rust",
    "rb": "ruby",
    "php": "php",
    "md": "markdown",
    "mdx": "markdown",
    "json": "json",
    "yaml": "yaml",
    "yml": "yaml",
    "toml": "toml",
    "sql": "sql",
    "sh": "bash",
    "css": "css",
    "scss": "scss",
    "html": "html",
    "vue": "vue",
    "svelte": "svelte",
}


def file_extension(path: str) -> str:
    """Lower-cased extension including the dot, or '' when there is none."""
    return PurePosixPath(path).suffix.lower()


def should_index_file(path: str, size: int, max_size: int | None = None) -> bool:
    """
    Decide whether a repository file is worth indexing.

    Args:
        path: Repository-relative path
        size: Blob size in bytes
        max_size: Size cap (defaults to the configured cap)

    Returns:
        True if the file passes the size, skip-list, and extension checks
    """
    if max_size is None:
        max_size = get_settings().max_file_size_bytes
    if size > max_size:
        return False

    # Substring match, so "build" also excludes "rebuild.py"
    if any(pattern in path for pattern in SKIP_PATTERNS):
        return False

    return file_extension(path) in INDEXABLE_EXTENSIONS


def detect_language(path: str) -> str | None:
    """Map a file path to a language name by extension."""
    ext = file_extension(path).lstrip(".")
    return LANGUAGE_BY_EXTENSION.get(ext)
