"""Configuration management using pydantic-settings."""

from pathlib import Path
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="REPODOCS_",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # Paths
    data_dir: Path = Path("data")
    database_url: str = "sqlite+aiosqlite:///data/repodocs.db"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False

    # GitHub API
    github_token: str | None = None
    github_api_base: str = "https://api.github.com"
    github_webhook_secret: str | None = None

    # File discovery
    max_file_size_bytes: int = 500_000

    # Chunking
    chunk_min_tokens: int = 50
    chunk_max_tokens: int = 1000
    chunk_overlap_tokens: int = 100

    # Sync
    sync_batch_size: int = 10
    generate_docs_on_sync: bool = True

    # Embedding
    embedding_provider: str = "openai"  # "openai" | "sentence-transformers"
    embedding_model: str = "text-embedding-3-small"
    embedding_batch_size: int = 50
    openai_api_key: str | None = None

    # Documentation runner
    runner_kind: str | None = None  # "api" | "cli" | "fixture"
    use_claude_cli: bool = False
    claude_cli_path: str = "claude"
    anthropic_api_key: str | None = None
    anthropic_api_base: str = "https://api.anthropic.com"
    llm_model: str = "claude-sonnet-4-20250514"
    llm_max_tokens: int = 16000
    llm_max_continuations: int = 2
    llm_timeout_seconds: float = 300.0

    # Documentation context
    doc_max_rounds: int = 2
    max_key_files: int = 40
    max_key_file_chars: int = 12_000

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        # Ensure directories exist
        self.data_dir.mkdir(parents=True, exist_ok=True)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
