from __future__ import annotations

import json
from pathlib import Path

import pytest

from stageplan.cli import main

pytestmark = pytest.mark.slow


def test_cli_demo_writes_pdf(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    out = tmp_path / "out" / "plan.pdf"
    rc = main(["demo", "--out", str(out), "--count", "5", "--no-compress", "--landscape"])
    assert rc == 0
    assert out.read_bytes().startswith(b"%PDF-1.4")
    printed = capsys.readouterr().out
    assert "Fixtures: 5" in printed
    assert "Saved:" in printed


def test_cli_layout_writes_pdf(tmp_path: Path) -> None:
    out = tmp_path / "layout.pdf"
    rc = main(["--log-level", "INFO", "layout", "--out", str(out), "--count", "4", "--venue", "Arena", "--no-compress"])
    assert rc == 0
    assert b"(Arena) Tj" in out.read_bytes()


def test_cli_reports_bad_options_file(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    opts = tmp_path / "print.json"
    opts.write_text(json.dumps({"landscape": "sideways"}), encoding="utf-8")
    rc = main(["demo", "--out", str(tmp_path / "p.pdf"), "--options", str(opts)])
    assert rc == 2
    assert "[ERROR]" in capsys.readouterr().out


def test_cli_reports_export_failure(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    target = tmp_path / "taken"
    target.mkdir()
    rc = main(["demo", "--out", str(target), "--count", "2"])
    assert rc == 3
    assert "[ERROR]" in capsys.readouterr().out
