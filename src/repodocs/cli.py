"""Command-line interface for RepoDocs."""

import argparse
import asyncio
import logging
import sys
import uuid
from pathlib import Path

import structlog
import uvicorn

from repodocs.config import get_settings
from repodocs.errors import DocOutputError, RepoDocsError
from repodocs.generation.parser import parse_doc_output
from repodocs.ingestion import GitHubClient, run_sync, should_index_file
from repodocs.models.repository import Repository
from repodocs.storage import RepoRepository, get_session_factory, init_database_sync
from repodocs.verification import generate_verification_report, verify_documentation

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer(),
    ],
    wrapper_class=structlog.make_filtering_bound_logger(logging.INFO),
    context_class=dict,
    logger_factory=structlog.PrintLoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()


def cmd_serve(args):
    """Start the API server."""
    settings = get_settings()
    host = args.host or settings.host
    port = args.port or settings.port

    logger.info("starting_server", host=host, port=port)

    uvicorn.run(
        "repodocs.api.app:app",
        host=host,
        port=port,
        reload=args.reload,
    )


def cmd_register(args):
    """Register a GitHub repository for syncing."""
    owner, sep, name = args.repo.partition("/")
    if not sep or not owner or not name:
        logger.error("invalid_repo_name", repo=args.repo, hint="Use OWNER/NAME")
        sys.exit(1)

    init_database_sync()
    repo = Repository(
        id=args.id or uuid.uuid4().hex[:12],
        project_id=args.project,
        owner=owner,
        name=name,
        default_branch=args.default_branch,
        selected_branch=args.branch,
        auto_sync_enabled=args.auto_sync,
    )

    async def _register():
        factory = await get_session_factory()
        async with factory() as session:
            return await RepoRepository(session).create(repo)

    asyncio.run(_register())
    logger.info("repository_registered", repo_id=repo.id, repo=repo.full_name, branch=repo.branch)
    print(repo.id)


def cmd_sync(args):
    """Run a full sync in the foreground."""
    init_database_sync()
    try:
        stats = asyncio.run(run_sync(args.repo_id))
    except RepoDocsError as e:
        logger.error("sync_failed", repo_id=args.repo_id, error=str(e))
        sys.exit(1)

    logger.info(
        "sync_complete",
        repo_id=stats.repo_id,
        commit=stats.commit_sha,
        discovered=stats.files_discovered,
        indexed=stats.files_indexed,
        failed=stats.files_failed,
        chunks=stats.chunks_created,
        embedded=stats.chunks_embedded,
        docs=stats.docs_generated,
        duration=f"{stats.duration_seconds:.2f}s",
    )


def cmd_status(args):
    """Show sync status for one or all repositories."""
    init_database_sync()

    async def _load():
        factory = await get_session_factory()
        async with factory() as session:
            repos = RepoRepository(session)
            if args.repo_id:
                repo = await repos.get(args.repo_id)
                return [repo] if repo else []
            return await repos.get_all()

    repos = asyncio.run(_load())
    if not repos:
        logger.error("no_repositories_found", repo_id=args.repo_id)
        sys.exit(1)

    for repo in repos:
        progress = repo.progress
        print(f"{repo.id}  {repo.full_name}@{repo.branch}  {repo.status.value}")
        if progress.stage:
            print(f"    stage: {progress.stage.value} ({progress.processed_count}/{progress.total_count})")
        if progress.last_error:
            print(f"    error: {progress.last_error}")
        if repo.last_synced_commit_sha:
            print(f"    synced: {repo.last_synced_commit_sha} at {repo.last_synced_at}")
        if repo.has_updates:
            print(f"    updates available: {repo.latest_commit_sha}")


def cmd_install_webhook(args):
    """Install (or remove) the push webhook on GitHub."""
    settings = get_settings()
    init_database_sync()

    async def _install():
        factory = await get_session_factory()
        async with factory() as session:
            repos = RepoRepository(session)
            repo = await repos.get(args.repo_id)
            if repo is None:
                logger.error("repository_not_found", repo_id=args.repo_id)
                return False

            async with GitHubClient() as github:
                if args.remove:
                    if repo.webhook_id is None:
                        logger.error("no_webhook_installed", repo_id=repo.id)
                        return False
                    await github.delete_webhook(repo.owner, repo.name, repo.webhook_id)
                    await repos.set_webhook_id(repo.id, None)
                    return True

                hook_id = await github.create_webhook(
                    repo.owner, repo.name, args.url, settings.github_webhook_secret
                )
                await repos.set_webhook_id(repo.id, hook_id)
                return True

    if not args.remove and not args.url:
        logger.error("webhook_url_required", hint="Pass --url pointing at POST /webhooks/github")
        sys.exit(1)
    if not args.remove and not settings.github_webhook_secret:
        logger.error("webhook_secret_not_configured", hint="Set REPODOCS_GITHUB_WEBHOOK_SECRET")
        sys.exit(1)

    try:
        ok = asyncio.run(_install())
    except RepoDocsError as e:
        logger.error("webhook_install_failed", repo_id=args.repo_id, error=str(e))
        sys.exit(1)
    if not ok:
        sys.exit(1)


def load_local_files(root: Path) -> dict[str, str]:
    """Read every indexable file under root, keyed by POSIX relative path."""
    contents = {}
    for path in sorted(root.rglob("*")):
        if not path.is_file():
            continue
        relative = path.relative_to(root).as_posix()
        if not should_index_file(relative, path.stat().st_size):
            continue
        contents[relative] = path.read_text(encoding="utf-8", errors="replace")
    return contents


def cmd_verify(args):
    """Verify a documentation bundle against a local checkout."""
    bundle_path = Path(args.bundle)
    root = Path(args.root)
    if not bundle_path.exists():
        logger.error("bundle_not_found", path=str(bundle_path))
        sys.exit(1)
    if not root.is_dir():
        logger.error("root_not_found", path=str(root))
        sys.exit(1)

    try:
        output = parse_doc_output(bundle_path.read_text(encoding="utf-8"), lenient=True)
    except DocOutputError as e:
        logger.error("bundle_invalid", path=str(bundle_path), error=str(e))
        sys.exit(1)

    contents = load_local_files(root)
    summary = verify_documentation(output.pages, contents, contents.keys())
    report = generate_verification_report(summary)

    if args.output:
        Path(args.output).write_text(report, encoding="utf-8")
        logger.info("report_written", path=args.output, overall_score=summary.overall_score)
    else:
        print(report)

    if args.min_score is not None and summary.overall_score < args.min_score:
        sys.exit(2)


def main():
    """Main CLI entrypoint."""
    parser = argparse.ArgumentParser(
        prog="repodocs",
        description="Evidence-backed documentation generated from GitHub repositories",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Log debug events")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # serve command
    serve_parser = subparsers.add_parser("serve", help="Start the API server")
    serve_parser.add_argument("--host", type=str, help="Host to bind to")
    serve_parser.add_argument("--port", type=int, help="Port to bind to")
    serve_parser.add_argument("--reload", action="store_true", help="Enable auto-reload")
    serve_parser.set_defaults(func=cmd_serve)

    # register command
    register_parser = subparsers.add_parser("register", help="Register a repository")
    register_parser.add_argument("repo", help="Repository as OWNER/NAME")
    register_parser.add_argument("--id", help="Repository ID (generated when omitted)")
    register_parser.add_argument("--project", default="default", help="Project ID")
    register_parser.add_argument("--default-branch", default="main", help="Default branch")
    register_parser.add_argument("--branch", "-b", help="Branch to sync instead of the default")
    register_parser.add_argument("--auto-sync", action="store_true", help="Sync on push webhooks")
    register_parser.set_defaults(func=cmd_register)

    # sync command
    sync_parser = subparsers.add_parser("sync", help="Sync a repository now")
    sync_parser.add_argument("repo_id", help="Repository ID")
    sync_parser.set_defaults(func=cmd_sync)

    # status command
    status_parser = subparsers.add_parser("status", help="Show sync status")
    status_parser.add_argument("repo_id", nargs="?", help="Repository ID (all when omitted)")
    status_parser.set_defaults(func=cmd_status)

    # install-webhook command
    webhook_parser = subparsers.add_parser("install-webhook", help="Install the push webhook")
    webhook_parser.add_argument("repo_id", help="Repository ID")
    webhook_parser.add_argument("--url", help="Public URL of POST /webhooks/github")
    webhook_parser.add_argument("--remove", action="store_true", help="Remove the installed webhook")
    webhook_parser.set_defaults(func=cmd_install_webhook)

    # verify command
    verify_parser = subparsers.add_parser("verify", help="Verify a bundle against local files")
    verify_parser.add_argument("bundle", help="Path to a documentation bundle JSON file")
    verify_parser.add_argument("root", help="Root directory of the repository checkout")
    verify_parser.add_argument("--output", "-o", help="Write the Markdown report here")
    verify_parser.add_argument("--min-score", type=int, help="Exit 2 below this overall score")
    verify_parser.set_defaults(func=cmd_verify)

    args = parser.parse_args()
    if args.verbose:
        structlog.configure(wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG))
    args.func(args)


if __name__ == "__main__":
    main()
