from __future__ import annotations

import re
from pathlib import Path

import pytest

from stageplan.config import PrintOptions
from stageplan.pdf.exporter import export_plan_pdf, record_plan
from stageplan.scene.plan_renderer import Fixture2D, FixtureModel2D, PlanScene, draw_plan, fit_view
from stageplan.symbols.cache import SymbolCache

pytestmark = pytest.mark.slow


def test_ten_thousand_fixtures_share_one_xobject(tmp_path: Path) -> None:
    scene = PlanScene(grid_spacing=0.0)
    scene.add_model(FixtureModel2D("spot-600", "Spot 600", 0.45, 0.35, 0.7))
    for i in range(10_000):
        row, col = divmod(i, 100)
        scene.fixtures.append(Fixture2D(str(i + 1), "spot-600", col * 0.8, row * 0.8, rotation_deg=(i % 4) * 90.0))

    bad_font = tmp_path / "bad.ttf"
    bad_font.write_bytes(b"not a font")
    options = PrintOptions(compress_streams=False, regular_font_path=str(bad_font), bold_font_path=str(bad_font))
    cache = SymbolCache()
    buffer = record_plan(lambda canvas: draw_plan(scene, canvas, cache), options)
    assert len(cache) == 1
    assert cache.hits == 9_999

    out = tmp_path / "rig.pdf"
    result = export_plan_pdf(buffer, fit_view(scene), out, options, symbols=cache.snapshot())
    assert result.success, result.message

    data = out.read_bytes()
    assert data.count(b"/Subtype /Form") == 1
    assert len(re.findall(rb"/SXV0_1 Do\n", data)) == 10_000
