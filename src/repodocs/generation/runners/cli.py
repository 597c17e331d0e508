"""Runner that shells out to a locally installed `claude` CLI."""

import asyncio
import time

import structlog

from repodocs.errors import DocOutputError
from repodocs.generation.parser import parse_doc_output
from repodocs.generation.prompts import SYSTEM_PROMPT
from repodocs.generation.runners.base import DocRunner, ProgressCallback, RunnerConfig
from repodocs.models.docs import DocOutput, RepoContext, RunnerResult, RunnerStage

logger = structlog.get_logger()

PROMPT_SEPARATOR = "\n\n---\n\n"


def map_cli_error(returncode: int | None, stderr: str, stdout: str = "") -> str:
    """Translate a failed CLI run into an operator-facing message."""
    detail = (stderr or stdout).strip()
    lower = detail.lower()

    if returncode == 127:
        return "Claude CLI not found. Install it or set REPODOCS_CLAUDE_CLI_PATH."
    if "not authenticated" in lower or "login" in lower or "unauthorized" in lower:
        return "Claude CLI is not authenticated. Run `claude login` on the server."
    if "rate limit" in lower or "too many requests" in lower:
        return "Claude CLI rate limit reached. Try again later."
    if "subscription" in lower or "billing" in lower:
        return f"Claude CLI subscription problem: {detail[:200]}"
    return f"Claude CLI exited with code {returncode}: {detail[:500] or 'no output'}"


class CliRunner(DocRunner):
    """
    Runs documentation generation through `claude -p`.

    The full prompt is piped on stdin and the whole stdout is parsed once
    the process exits. There is no truncation salvage on this path.
    """

    name = "cli"

    def __init__(self, config: RunnerConfig, on_progress: ProgressCallback | None = None):
        super().__init__(on_progress)
        self.config = config

    def command(self) -> list[str]:
        return [self.config.cli_path, "-p", "--output-format", "text"]

    async def run(
        self,
        context: RepoContext,
        previous_output: DocOutput | None = None,
    ) -> RunnerResult:
        started = time.monotonic()
        full_prompt = SYSTEM_PROMPT + PROMPT_SEPARATOR + self.build_prompt(context, previous_output)

        await self.emit(RunnerStage.STARTING, f"Preparing documentation request for {context.repo_key}")

        try:
            process = await asyncio.create_subprocess_exec(
                *self.command(),
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError:
            return await self.fail(map_cli_error(127, ""))

        await self.emit(RunnerStage.CALLING_API, "Waiting for Claude CLI")

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(full_prompt.encode("utf-8")),
                timeout=self.config.timeout_seconds,
            )
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            return await self.fail(
                f"Claude CLI timed out after {self.config.timeout_seconds:.0f}s"
            )

        out = stdout.decode("utf-8", errors="replace")
        err = stderr.decode("utf-8", errors="replace")
        if process.returncode != 0:
            logger.warning("claude_cli_failed", returncode=process.returncode, stderr=err[:500])
            return await self.fail(map_cli_error(process.returncode, err, out), raw_output=out or None)

        if not out.strip():
            return await self.fail("Empty response from model")

        await self.emit(
            RunnerStage.PARSING,
            "Parsing documentation output",
            elapsed_seconds=time.monotonic() - started,
        )
        try:
            output = parse_doc_output(out, lenient=True)
        except DocOutputError as e:
            return await self.fail(str(e), raw_output=out)

        return await self.succeed(output, raw_output=out)
