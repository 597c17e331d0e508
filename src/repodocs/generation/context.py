"""Selection of repository files to show the documentation model."""

from repodocs.ingestion.filters import detect_language
from repodocs.models.docs import RepoContext, RepoContextFile, RepoContextKeyFile
from repodocs.models.repository import Repository

KEY_FILE_PATTERNS = {
    "dependencies": [
        "package.json",
        "cargo.toml",
        "go.mod",
        "requirements.txt",
        "pyproject.toml",
        "setup.cfg",
        "gemfile",
        "composer.json",
    ],
    "config": [
        "tsconfig.json",
        "next.config.js",
        "next.config.mjs",
        "next.config.ts",
        "vite.config.ts",
        "webpack.config.js",
        ".env.example",
        "config/default.json",
        "config/production.json",
        "settings.py",
        "config.py",
    ],
    "entrypoints": [
        "src/index.ts",
        "src/index.tsx",
        "src/main.ts",
        "src/main.tsx",
        "src/app.ts",
        "src/server.ts",
        "main.go",
        "cmd/main.go",
        "app.py",
        "main.py",
        "server.py",
        "__main__.py",
        "cli.py",
        "index.js",
        "server.js",
        "app.js",
    ],
    "docs": [
        "readme.md",
        "contributing.md",
        "architecture.md",
        "docs/readme.md",
        "api.md",
    ],
    "infra": [
        "dockerfile",
        "docker-compose.yml",
        "docker-compose.yaml",
        "vercel.json",
        ".github/workflows/",
        "terraform/",
        "k8s/",
        "kubernetes/",
    ],
    "database": [
        "prisma/schema.prisma",
        "drizzle.config.ts",
        "migrations/",
        "db/schema.rb",
        "alembic/",
        "models.py",
    ],
}

TRUNCATION_MARKER = "\n... (truncated)"


def file_priority(path: str) -> int:
    """Score a path for inclusion in the prompt (higher = more important)."""
    lower = path.lower()

    # Root README and dependency manifests
    if lower == "readme.md" or lower in KEY_FILE_PATTERNS["dependencies"]:
        return 100
    if any(lower.endswith(p) for p in KEY_FILE_PATTERNS["entrypoints"]):
        return 80
    if any(lower.endswith(p) for p in KEY_FILE_PATTERNS["config"]):
        return 70
    if any(p in lower for p in KEY_FILE_PATTERNS["docs"]):
        return 60
    if any(p in lower for p in KEY_FILE_PATTERNS["infra"]):
        return 50
    if any(p in lower for p in KEY_FILE_PATTERNS["database"]):
        return 50

    padded = f"/{lower}"
    if "/api/" in padded or "/routes/" in padded or "/controllers/" in padded:
        return 40
    if "test" in lower or "spec" in lower or "__tests__" in lower:
        return 10
    if "/src/" in padded or "/lib/" in padded or "/app/" in padded:
        return 30
    return 20


def _key_file(path: str, content: str, max_chars: int) -> RepoContextKeyFile:
    if len(content) > max_chars:
        content = content[:max_chars] + TRUNCATION_MARKER
    return RepoContextKeyFile(path=path, content=content, language=detect_language(path))


def select_key_files(
    contents: dict[str, str],
    max_files: int,
    max_chars: int,
) -> list[RepoContextKeyFile]:
    """
    Pick the highest-priority files for the first round.

    Args:
        contents: Decoded file text by path
        max_files: Maximum number of files to include
        max_chars: Per-file character cap; longer files are truncated

    Returns:
        Key files ordered by priority, then path
    """
    ranked = sorted(contents, key=lambda p: (-file_priority(p), p))
    return [_key_file(path, contents[path], max_chars) for path in ranked[:max_files]]


def expand_requested_files(requested: list[str], available: list[str]) -> list[str]:
    """
    Resolve model-requested paths against the synced file list.

    A request may be an exact path, a directory (every file under it), or
    a trailing fragment of a path. Unknown requests are dropped.
    """
    resolved: list[str] = []
    seen: set[str] = set()
    available_sorted = sorted(available)
    available_set = set(available)

    for raw in requested:
        path = raw.strip()
        if path.startswith("./"):
            path = path[2:]
        path = path.lstrip("/")
        if not path:
            continue

        if path in available_set:
            matches = [path]
        else:
            prefix = path.rstrip("/") + "/"
            matches = [p for p in available_sorted if p.startswith(prefix)]
            if not matches:
                matches = [p for p in available_sorted if p.endswith("/" + path)]

        for match in matches:
            if match not in seen:
                seen.add(match)
                resolved.append(match)

    return resolved


def build_context(
    repo: Repository,
    file_tree: list[RepoContextFile],
    key_files: list[RepoContextKeyFile],
    round: int = 1,
    max_rounds: int = 2,
) -> RepoContext:
    """Assemble the runner input for one round."""
    return RepoContext(
        repo_owner=repo.owner,
        repo_name=repo.name,
        default_branch=repo.branch,
        file_tree=file_tree,
        key_files=key_files,
        total_files=len(file_tree),
        round=round,
        max_rounds=max_rounds,
    )
