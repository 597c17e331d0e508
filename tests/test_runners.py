"""Tests for documentation runners and runner selection."""

import asyncio
import json

import httpx
import pytest
from conftest import bundle_text, make_output, make_page

from repodocs.generation.parser import PARTIAL_WARNING
from repodocs.generation.runners import (
    CliRunner,
    FixtureRunner,
    RunnerConfig,
    RunnerKind,
    StreamingApiRunner,
    create_runner,
    map_cli_error,
    select_runner_kind,
)
from repodocs.models.docs import RepoContext, RunnerStage


def sse(text: str, stop_reason: str = "end_turn", pieces: int = 3) -> str:
    """Render text as an Anthropic-style event stream."""
    size = max(len(text) // pieces, 1)
    events = [{"type": "message_start", "message": {"id": "msg_1"}}]
    for i in range(0, len(text), size):
        events.append(
            {
                "type": "content_block_delta",
                "index": 0,
                "delta": {"type": "text_delta", "text": text[i : i + size]},
            }
        )
    events.append({"type": "message_delta", "delta": {"stop_reason": stop_reason}, "usage": {"output_tokens": 10}})
    events.append({"type": "message_stop"})
    return "".join(f"event: {e['type']}\ndata: {json.dumps(e)}\n\n" for e in events)


def streaming_transport(*bodies: str, status_code: int = 200):
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(json.loads(request.content))
        body = bodies[min(len(calls) - 1, len(bodies) - 1)]
        return httpx.Response(status_code, text=body, headers={"content-type": "text/event-stream"})

    return httpx.MockTransport(handler), calls


@pytest.fixture
def context() -> RepoContext:
    return RepoContext(repo_owner="acme", repo_name="widgets", default_branch="main", total_files=3)


def api_config(**kwargs) -> RunnerConfig:
    params = {"api_key": "sk-test", "api_base": "https://llm.test", "max_continuations": 2}
    params.update(kwargs)
    return RunnerConfig(**params)


class TestSelection:
    def test_explicit_kind_wins(self):
        assert select_runner_kind(RunnerConfig(kind=RunnerKind.FIXTURE, api_key="k", use_cli=True)) is RunnerKind.FIXTURE

    def test_cli_flag_beats_api_key(self):
        assert select_runner_kind(RunnerConfig(api_key="k", use_cli=True)) is RunnerKind.CLI

    def test_api_key_selects_api(self):
        assert select_runner_kind(RunnerConfig(api_key="k")) is RunnerKind.API

    def test_falls_back_to_fixture(self):
        assert select_runner_kind(RunnerConfig()) is RunnerKind.FIXTURE
        assert isinstance(create_runner(RunnerConfig()), FixtureRunner)

    def test_api_runner_requires_key(self):
        with pytest.raises(ValueError):
            StreamingApiRunner(RunnerConfig())


class TestStreamingApiRunner:
    async def test_complete_response(self, context):
        transport, calls = streaming_transport(sse(bundle_text("architecture/overview", "api/overview")))
        progress = []
        runner = StreamingApiRunner(api_config(), on_progress=progress.append, transport=transport)

        result = await runner.run(context)

        assert result.success, result.error
        assert [p.slug for p in result.output.pages] == ["architecture/overview", "api/overview"]
        assert len(calls) == 1
        assert calls[0]["stream"] is True
        assert calls[0]["messages"][0]["role"] == "user"
        assert progress[0].stage is RunnerStage.STARTING
        assert progress[-1].stage is RunnerStage.COMPLETE

    async def test_truncated_response_is_continued(self, context):
        full = bundle_text("architecture/overview", "api/overview")
        truncated = full[: full.index('"api/overview"')]
        continuation = bundle_text("architecture/overview", "runbook/local-dev")
        transport, calls = streaming_transport(
            sse(truncated, stop_reason="max_tokens"),
            sse(continuation),
        )
        runner = StreamingApiRunner(api_config(), transport=transport)

        result = await runner.run(context)

        assert result.success, result.error
        # First occurrence of a slug wins across continuations
        assert [p.slug for p in result.output.pages] == ["architecture/overview", "runbook/local-dev"]
        assert PARTIAL_WARNING in result.output.warnings
        assert len(calls) == 2
        assert "Continuation" in calls[1]["messages"][0]["content"]
        assert "architecture/overview" in calls[1]["messages"][0]["content"]

    async def test_continuations_are_bounded(self, context):
        full = bundle_text("architecture/overview", "api/overview")
        truncated = full[: full.index('"api/overview"')]
        transport, calls = streaming_transport(sse(truncated, stop_reason="max_tokens"))
        runner = StreamingApiRunner(api_config(max_continuations=1), transport=transport)

        result = await runner.run(context)

        assert result.success
        assert len(calls) == 2
        assert [p.slug for p in result.output.pages] == ["architecture/overview"]

    async def test_empty_response_fails(self, context):
        transport, _ = streaming_transport(sse(""))
        result = await StreamingApiRunner(api_config(), transport=transport).run(context)
        assert not result.success
        assert result.error == "Empty response from model"

    async def test_truncation_with_no_pages_fails(self, context):
        transport, _ = streaming_transport(sse('{"repo_summary": {"name": "w', stop_reason="max_tokens"))
        result = await StreamingApiRunner(api_config(max_continuations=0), transport=transport).run(context)
        assert not result.success
        assert result.error == "Failed to extract any documentation pages"

    async def test_api_error_status(self, context):
        transport, _ = streaming_transport(
            json.dumps({"error": {"type": "authentication_error", "message": "invalid x-api-key"}}),
            status_code=401,
        )
        result = await StreamingApiRunner(api_config(), transport=transport).run(context)
        assert not result.success
        assert "401" in result.error
        assert "invalid x-api-key" in result.error

    async def test_invalid_json_fails(self, context):
        transport, _ = streaming_transport(sse("not json at all"))
        result = await StreamingApiRunner(api_config(), transport=transport).run(context)
        assert not result.success
        assert "Invalid JSON" in result.error

    async def test_stalled_stream_times_out(self, context):
        head = sse(bundle_text("architecture/overview")).split("event: message_delta")[0]

        async def stalled():
            yield head.encode()
            await asyncio.sleep(60)
            yield b""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=stalled(), headers={"content-type": "text/event-stream"})

        runner = StreamingApiRunner(api_config(timeout_seconds=0.2), transport=httpx.MockTransport(handler))

        result = await runner.run(context)

        assert result.success is False
        assert "timed out" in result.error
        assert result.output is None


class TestCliRunner:
    @pytest.mark.parametrize(
        "returncode,stderr,expected",
        [
            (127, "", "not found"),
            (1, "Error: not authenticated", "not authenticated"),
            (1, "Please run claude login", "not authenticated"),
            (1, "429 Too Many Requests", "rate limit"),
            (2, "segfault", "exited with code 2"),
        ],
    )
    def test_map_cli_error(self, returncode, stderr, expected):
        assert expected in map_cli_error(returncode, stderr)

    async def test_missing_binary(self, context):
        runner = CliRunner(RunnerConfig(cli_path="/nonexistent/claude-binary"))
        result = await runner.run(context)
        assert not result.success
        assert "not found" in result.error


async def test_fixture_runner_uses_registered_output(context):
    runner = FixtureRunner()
    runner.add_fixture("acme/widgets", make_output(make_page(slug="runbook/deploy", title="Deploy")))

    result = await runner.run(context)

    assert result.success
    assert [p.slug for p in result.output.pages] == ["runbook/deploy"]
    assert result.output.repo_summary.name == "widgets"


async def test_fixture_runner_default_bundle(context):
    result = await FixtureRunner().run(context.model_copy(update={"repo_name": "other"}))
    assert len(result.output.pages) == 5
    assert result.output.repo_summary.name == "other"
