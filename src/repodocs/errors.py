"""Exception hierarchy for repodocs."""


class RepoDocsError(Exception):
    """Base class for all repodocs errors."""


class GitHubAPIError(RepoDocsError):
    """A non-success response from the GitHub REST API."""

    def __init__(self, status_code: int, message: str):
        super().__init__(f"GitHub API error {status_code}: {message}")
        self.status_code = status_code
        self.message = message


class GitHubRateLimitError(GitHubAPIError):
    """GitHub rejected the request because the rate limit is exhausted."""

    def __init__(self, message: str = "GitHub API rate limit exceeded. Set REPODOCS_GITHUB_TOKEN."):
        super().__init__(403, message)


class EmbeddingError(RepoDocsError):
    """The embedding provider failed for a batch."""


class DocOutputError(RepoDocsError):
    """Model output could not be parsed or validated as documentation."""

    def __init__(self, message: str, errors: list[str] | None = None):
        super().__init__(message)
        self.errors = errors or []


class RunnerError(RepoDocsError):
    """A documentation runner failed before producing output."""


class SyncInProgressError(RepoDocsError):
    """A sync is already running for this repository."""

    def __init__(self, repo_id: str):
        super().__init__(f"Sync already in progress for repository {repo_id}")
        self.repo_id = repo_id


class RepositoryNotFoundError(RepoDocsError):
    """No repository is registered with the given id."""

    def __init__(self, repo_id: str):
        super().__init__(f"Repository not found: {repo_id}")
        self.repo_id = repo_id
