"""Streaming model API runner with truncation salvage and continuation."""

import asyncio
import json
import re
import time

import httpx
import structlog

from repodocs.errors import DocOutputError, RunnerError
from repodocs.generation.parser import parse_doc_output, salvage_truncated
from repodocs.generation.prompts import SYSTEM_PROMPT, build_continuation_prompt
from repodocs.generation.runners.base import DocRunner, ProgressCallback, RunnerConfig
from repodocs.models.docs import (
    DocOutput,
    DocPage,
    DocTask,
    RepoContext,
    RepoSummary,
    RunnerResult,
    RunnerStage,
)
from repodocs.observability import RUNNER_CONTINUATIONS

logger = structlog.get_logger()

ANTHROPIC_VERSION = "2023-06-01"
TITLE_RE = re.compile(r'"title"\s*:\s*"([^"]+)"')


class _Accumulator:
    """Pages and metadata merged across the initial call and continuations."""

    def __init__(self):
        self.pages: dict[str, DocPage] = {}
        self.repo_summary: RepoSummary | None = None
        self.warnings: list[str] = []
        self.tasks: list[DocTask] = []
        self.needs_more_files: list[str] | None = None

    def merge(
        self,
        pages: list[DocPage],
        repo_summary: RepoSummary | None,
        warnings: list[str],
        tasks: list[DocTask] | None,
        needs_more_files: list[str] | None,
    ) -> int:
        """Merge one parse result. Returns the number of new pages."""
        added = 0
        for page in pages:
            # First occurrence of a slug wins
            if page.slug not in self.pages:
                self.pages[page.slug] = page
                added += 1
        if self.repo_summary is None and repo_summary is not None:
            self.repo_summary = repo_summary
        for warning in warnings:
            if warning not in self.warnings:
                self.warnings.append(warning)
        self.tasks.extend(tasks or [])
        if needs_more_files is not None:
            self.needs_more_files = needs_more_files
        return added

    def to_output(self, fallback_name: str) -> DocOutput:
        return DocOutput(
            repo_summary=self.repo_summary or RepoSummary(name=fallback_name),
            warnings=self.warnings,
            needs_more_files=self.needs_more_files,
            pages=list(self.pages.values()),
            tasks=self.tasks or None,
        )


class StreamingApiRunner(DocRunner):
    """
    Runner that streams completions from the Anthropic Messages API.

    A response cut off at max_tokens is salvaged and followed by up to
    max_continuations extra calls that ask only for the missing pages.
    """

    name = "api"

    def __init__(
        self,
        config: RunnerConfig,
        on_progress: ProgressCallback | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(on_progress)
        if not config.api_key:
            raise ValueError("StreamingApiRunner requires an API key")
        self.config = config
        self._transport = transport

    def _headers(self) -> dict:
        return {
            "x-api-key": self.config.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
            "content-type": "application/json",
        }

    async def run(
        self,
        context: RepoContext,
        previous_output: DocOutput | None = None,
    ) -> RunnerResult:
        config = self.config
        started = time.monotonic()
        prompt = self.build_prompt(context, previous_output)
        estimated = (len(prompt) + len(SYSTEM_PROMPT)) / 500 + 60

        await self.emit(
            RunnerStage.STARTING,
            f"Preparing documentation request for {context.repo_key}",
            estimated_total_seconds=estimated,
            max_continuations=config.max_continuations,
        )

        acc = _Accumulator()
        raw_parts: list[str] = []

        async with httpx.AsyncClient(
            transport=self._transport,
            timeout=httpx.Timeout(config.timeout_seconds, connect=30.0),
        ) as client:
            for attempt in range(config.max_continuations + 1):
                if attempt == 0:
                    await self.emit(
                        RunnerStage.CALLING_API,
                        f"Calling {config.model}",
                        estimated_total_seconds=estimated,
                        elapsed_seconds=time.monotonic() - started,
                    )
                else:
                    RUNNER_CONTINUATIONS.inc()
                    prompt = build_continuation_prompt(
                        context, list(acc.pages.values()), attempt, config.max_continuations
                    )
                    await self.emit(
                        RunnerStage.CONTINUATION,
                        f"Response was truncated; requesting remaining pages ({attempt}/{config.max_continuations})",
                        pages_generated=len(acc.pages),
                        continuation_attempt=attempt,
                        max_continuations=config.max_continuations,
                        elapsed_seconds=time.monotonic() - started,
                    )

                try:
                    text, stop_reason = await asyncio.wait_for(
                        self._stream(client, prompt, started, estimated, len(acc.pages)),
                        timeout=config.timeout_seconds,
                    )
                except asyncio.TimeoutError:
                    return await self.fail(
                        f"Model request timed out after {config.timeout_seconds:.0f}s",
                        raw_output="".join(raw_parts) or None,
                    )
                except (httpx.HTTPError, RunnerError) as e:
                    return await self.fail(str(e) or type(e).__name__, raw_output="".join(raw_parts) or None)

                raw_parts.append(text)
                if not text.strip():
                    if attempt == 0:
                        return await self.fail("Empty response from model")
                    break

                await self.emit(
                    RunnerStage.PARSING,
                    "Parsing documentation output",
                    pages_generated=len(acc.pages),
                    elapsed_seconds=time.monotonic() - started,
                )

                truncated = stop_reason == "max_tokens"
                if truncated:
                    salvaged = salvage_truncated(text)
                    added = acc.merge(
                        salvaged.pages,
                        salvaged.repo_summary,
                        salvaged.warnings,
                        salvaged.tasks,
                        salvaged.needs_more_files,
                    )
                    logger.info(
                        "doc_output_truncated",
                        attempt=attempt,
                        recovered=len(salvaged.pages),
                        new_pages=added,
                        total_pages=len(acc.pages),
                    )
                    continue

                try:
                    output = parse_doc_output(text)
                except DocOutputError as e:
                    if attempt == 0:
                        return await self.fail(str(e), raw_output=text)
                    logger.warning("continuation_parse_failed", attempt=attempt, error=str(e))
                    break
                acc.merge(
                    output.pages,
                    output.repo_summary,
                    output.warnings,
                    output.tasks,
                    output.needs_more_files,
                )
                break

        raw_output = "\n".join(raw_parts)
        if not acc.pages:
            return await self.fail("Failed to extract any documentation pages", raw_output=raw_output)

        output = acc.to_output(context.repo_name)
        logger.info(
            "doc_runner_complete",
            runner=self.name,
            pages=len(output.pages),
            warnings=len(output.warnings),
            elapsed=round(time.monotonic() - started, 2),
        )
        return await self.succeed(output, raw_output=raw_output)

    async def _stream(
        self,
        client: httpx.AsyncClient,
        prompt: str,
        started: float,
        estimated: float,
        pages_so_far: int,
    ) -> tuple[str, str | None]:
        """
        Stream one completion.

        Returns:
            (text, stop_reason)

        Raises:
            RunnerError: On an API error status or an error event
        """
        config = self.config
        body = {
            "model": config.model,
            "max_tokens": config.max_tokens,
            "system": SYSTEM_PROMPT,
            "messages": [{"role": "user", "content": prompt}],
            "stream": True,
        }
        parts: list[str] = []
        stop_reason: str | None = None
        output_tokens: int | None = None
        last_report = time.monotonic()

        async with client.stream(
            "POST",
            f"{config.api_base.rstrip('/')}/v1/messages",
            headers=self._headers(),
            json=body,
        ) as response:
            if response.status_code >= 400:
                await response.aread()
                raise RunnerError(f"Model API error {response.status_code}: {_error_message(response)}")

            async for line in response.aiter_lines():
                if not line.startswith("data:"):
                    continue
                payload = line[5:].strip()
                if not payload:
                    continue
                try:
                    event = json.loads(payload)
                except json.JSONDecodeError:
                    logger.debug("stream_event_unparseable", payload=payload[:200])
                    continue

                event_type = event.get("type")
                if event_type == "content_block_delta":
                    delta = event.get("delta", {})
                    if delta.get("type") == "text_delta":
                        parts.append(delta.get("text", ""))
                elif event_type == "message_delta":
                    stop_reason = event.get("delta", {}).get("stop_reason") or stop_reason
                    output_tokens = event.get("usage", {}).get("output_tokens", output_tokens)
                elif event_type == "error":
                    raise RunnerError(
                        f"Model API stream error: {event.get('error', {}).get('message', 'unknown error')}"
                    )

                now = time.monotonic()
                if now - last_report >= config.progress_interval_seconds:
                    last_report = now
                    text = "".join(parts)
                    titles = TITLE_RE.findall(text)
                    await self.emit(
                        RunnerStage.STREAMING,
                        f"Receiving documentation ({len(titles)} pages so far)",
                        pages_generated=pages_so_far + len(titles),
                        estimated_total_seconds=estimated,
                        elapsed_seconds=now - started,
                        tokens_generated=output_tokens or len(text) // 4,
                        streaming_pages=titles[-5:],
                    )

        return "".join(parts), stop_reason


def _error_message(response: httpx.Response) -> str:
    try:
        return response.json().get("error", {}).get("message") or response.text
    except ValueError:
        return response.text
