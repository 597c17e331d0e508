"""Tests for model output parsing and truncation salvage."""

import json

import pytest
from conftest import bundle_text, page_dict

from repodocs.errors import DocOutputError
from repodocs.generation.parser import (
    PARTIAL_WARNING,
    category_from_slug,
    close_open_structures,
    normalize_slug,
    parse_doc_output,
    salvage_truncated,
)
from repodocs.models.docs import DocCategory


class TestParseDocOutput:
    def test_parses_fenced_json(self):
        output = parse_doc_output("```json\n" + bundle_text("architecture/overview") + "\n```")
        assert output.repo_summary.name == "widgets"
        assert output.pages[0].category is DocCategory.ARCHITECTURE

    def test_strict_mode_rejects_surrounding_prose(self):
        with pytest.raises(DocOutputError):
            parse_doc_output("Here you go:\n" + bundle_text("architecture/overview"))

    def test_lenient_mode_extracts_object(self):
        output = parse_doc_output("Here you go:\n" + bundle_text("api/overview") + "\nDone.", lenient=True)
        assert output.pages[0].slug == "api/overview"

    def test_validation_errors_name_the_field(self):
        data = json.loads(bundle_text("architecture/overview"))
        data["pages"][0]["slug"] = "Not A Slug"
        with pytest.raises(DocOutputError) as exc_info:
            parse_doc_output(json.dumps(data))
        assert any(err.startswith("pages.0.slug") for err in exc_info.value.errors)

    def test_requires_at_least_one_page(self):
        data = json.loads(bundle_text("architecture/overview"))
        data["pages"] = []
        with pytest.raises(DocOutputError):
            parse_doc_output(json.dumps(data))


class TestSalvage:
    def test_recovers_complete_pages_before_cut(self):
        text = bundle_text("architecture/overview", "api/overview", "runbook/local-dev")
        cut = text[: text.index('"runbook/local-dev"') + 5]

        result = salvage_truncated(cut)

        assert [p.slug for p in result.pages] == ["architecture/overview", "api/overview"]
        assert result.repo_summary.name == "widgets"
        assert result.warnings == ["limited context", PARTIAL_WARNING]

    def test_partial_warning_always_added(self):
        result = salvage_truncated('{"repo_summary": {"name": "x"')
        assert result.pages == []
        assert result.warnings == [PARTIAL_WARNING]
        assert result.to_output() is None

    def test_invalid_page_is_dropped_not_fatal(self):
        data = json.loads(bundle_text("architecture/overview", "api/overview"))
        data["pages"][0]["markdown"] = "short"
        text = json.dumps(data)[:-3]

        result = salvage_truncated(text)

        assert [p.slug for p in result.pages] == ["api/overview"]

    def test_to_output_uses_fallback_name(self):
        text = json.dumps({"pages": [page_dict("features/index")]})[:-2]
        output = salvage_truncated(text).to_output("fallback")
        assert output.repo_summary.name == "fallback"
        assert output.pages[0].slug == "features/index"


def test_close_open_structures_balances_brackets_outside_strings():
    closed = close_open_structures('{"a": [1, 2, {"b": "x]}"},')
    assert json.loads(closed) == {"a": [1, 2, {"b": "x]}"}]}


def test_close_open_structures_terminates_string():
    assert json.loads(close_open_structures('{"a": "unfinished')) == {"a": "unfinished"}


def test_normalize_slug():
    assert normalize_slug("  Architecture/Tech Stack!! ") == "architecture/tech-stack"
    assert normalize_slug("api//Overview") == "api//overview"


@pytest.mark.parametrize(
    "slug,expected",
    [
        ("architecture/overview", DocCategory.ARCHITECTURE),
        ("api/endpoints", DocCategory.API),
        ("features/index", DocCategory.FEATURE),
        ("runbook/deploy", DocCategory.RUNBOOK),
        ("misc/page", None),
    ],
)
def test_category_from_slug(slug, expected):
    assert category_from_slug(slug) is expected
