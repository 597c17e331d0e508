"""Tests for the offline verify command."""

import sys

import pytest
from conftest import bundle_text

from repodocs.cli import load_local_files, main


@pytest.fixture
def checkout(tmp_path):
    root = tmp_path / "checkout"
    (root / "src").mkdir(parents=True)
    (root / "src" / "app.py").write_text("from fastapi import FastAPI\n\napp = FastAPI()\n")
    (root / "node_modules" / "lib").mkdir(parents=True)
    (root / "node_modules" / "lib" / "index.js").write_text("module.exports = {}")
    (root / "logo.png").write_bytes(b"\x89PNG")
    return root


def run(monkeypatch, *argv):
    monkeypatch.setattr(sys, "argv", ["repodocs", *argv])
    main()


def test_load_local_files_applies_index_filters(checkout):
    assert list(load_local_files(checkout)) == ["src/app.py"]


def test_verify_writes_report(tmp_path, checkout, monkeypatch):
    bundle = tmp_path / "bundle.json"
    bundle.write_text(bundle_text("architecture/overview", "api/overview"))
    report = tmp_path / "report.md"

    run(monkeypatch, "verify", str(bundle), str(checkout), "--output", str(report), "--min-score", "90")

    text = report.read_text()
    assert "- **Overall Score**: 100%" in text
    assert "`api/overview`" in text


def test_verify_fails_below_min_score(tmp_path, checkout, monkeypatch, capsys):
    (checkout / "src" / "app.py").write_text("print('rewritten')\n")
    bundle = tmp_path / "bundle.json"
    bundle.write_text(bundle_text("architecture/overview"))

    with pytest.raises(SystemExit) as exc:
        run(monkeypatch, "verify", str(bundle), str(checkout), "--min-score", "50")

    assert exc.value.code == 2
    assert "Excerpt not found in src/app.py" in capsys.readouterr().out


def test_verify_rejects_unparseable_bundle(tmp_path, checkout, monkeypatch):
    bundle = tmp_path / "bundle.json"
    bundle.write_text("no json here")

    with pytest.raises(SystemExit) as exc:
        run(monkeypatch, "verify", str(bundle), str(checkout))

    assert exc.value.code == 1
