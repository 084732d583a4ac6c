from __future__ import annotations

from pathlib import Path

import pytest

from stageplan.canvas.plot_canvas import render_preview_png
from stageplan.pdf.exporter import record_plan
from stageplan.scene.plan_renderer import demo_scene, draw_plan
from stageplan.symbols.cache import SymbolCache

pytestmark = pytest.mark.slow


def test_preview_png_is_written(tmp_path: Path) -> None:
    scene = demo_scene(count=6)
    cache = SymbolCache()
    buffer = record_plan(lambda canvas: draw_plan(scene, canvas, cache))

    out = render_preview_png(buffer, tmp_path / "preview" / "plan.png", symbols=cache.snapshot(), dpi=60)
    assert out.exists()
    assert out.read_bytes()[:8] == b"\x89PNG\r\n\x1a\n"
