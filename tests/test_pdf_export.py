from __future__ import annotations

import re
from pathlib import Path

from stageplan.canvas import CommandBuffer
from stageplan.config import PrintOptions
from stageplan.pdf import errors
from stageplan.pdf.exporter import export_plan_pdf, record_plan
from stageplan.render.mapping import ViewState
from stageplan.scene.plan_renderer import demo_scene, draw_plan, fit_view
from stageplan.symbols.cache import SymbolCache
from test_pdf_fonts import build_minimal_ttf


def _options(tmp_path: Path, **kwargs) -> PrintOptions:
    # A font cut off mid-table pins the output to the standard Type1 fonts.
    bad_font = tmp_path / "cut.ttf"
    bad_font.write_bytes(build_minimal_ttf()[:150])
    kwargs.setdefault("compress_streams", False)
    return PrintOptions(regular_font_path=str(bad_font), bold_font_path=str(bad_font), **kwargs)


def _capture(count: int, options: PrintOptions):
    scene = demo_scene(count=count)
    cache = SymbolCache()
    buffer = record_plan(lambda canvas: draw_plan(scene, canvas, cache), options)
    return scene, buffer, cache.snapshot(), fit_view(scene)


def check_pdf_structure(data: bytes) -> int:
    """Object numbering, xref offsets and references must agree; returns the object count."""
    assert data.startswith(b"%PDF-1.4\n")
    assert data.endswith(b"%%EOF")
    numbers = [int(n) for n in re.findall(rb"^(\d+) 0 obj$", data, re.M)]
    assert numbers == list(range(1, len(numbers) + 1))

    table = re.search(rb"\nxref\n0 (\d+)\n", data)
    assert table is not None
    assert int(table.group(1)) == len(numbers) + 1
    startxref = int(re.search(rb"startxref\n(\d+)\n", data).group(1))
    assert startxref == table.start() + 1

    offsets = [int(o) for o in re.findall(rb"(\d{10}) 00000 n \n", data)]
    assert len(offsets) == len(numbers)
    for number, offset in enumerate(offsets, start=1):
        assert data[offset:].startswith(f"{number} 0 obj\n".encode("ascii"))

    for ref in re.findall(rb"(\d+) 0 R\b", data):
        assert 1 <= int(ref) <= len(numbers)
    return len(numbers)


def test_plan_export_writes_consistent_pdf(tmp_path: Path) -> None:
    options = _options(tmp_path)
    scene, buffer, symbols, view = _capture(9, options)
    out = tmp_path / "plan.pdf"

    result = export_plan_pdf(buffer, view, out, options, symbols=symbols)
    assert result.success, result.message
    assert result.message == ""

    data = out.read_bytes()
    check_pdf_structure(data)
    assert data.count(b"/Subtype /Form") == len(symbols) == 3
    assert data.count(b" Do\n") == len(scene.fixtures)
    assert b"/Type /Catalog" in data
    assert b"/Subtype /Type1 /BaseFont /Helvetica " in data
    assert b"/FontFile2" not in data
    assert b"/FlateDecode" not in data


def test_compression_flag_filters_streams(tmp_path: Path) -> None:
    options = _options(tmp_path, compress_streams=True)
    _, buffer, symbols, view = _capture(3, options)
    out = tmp_path / "packed.pdf"
    assert export_plan_pdf(buffer, view, out, options, symbols=symbols).success
    data = out.read_bytes()
    check_pdf_structure(data)
    assert b"/Filter /FlateDecode" in data


def test_grid_can_be_left_out(tmp_path: Path) -> None:
    grid_rg = b"0.816 0.831 0.855 RG"
    with_grid = _options(tmp_path)
    _, buffer, symbols, view = _capture(3, with_grid)
    a = tmp_path / "grid.pdf"
    assert export_plan_pdf(buffer, view, a, with_grid, symbols=symbols).success
    assert grid_rg in a.read_bytes()

    without = _options(tmp_path, include_grid=False)
    b = tmp_path / "nogrid.pdf"
    assert export_plan_pdf(buffer, view, b, without, symbols=symbols).success
    assert grid_rg not in b.read_bytes()


def test_empty_buffer_is_rejected_without_output(tmp_path: Path) -> None:
    out = tmp_path / "empty.pdf"
    result = export_plan_pdf(CommandBuffer(), ViewState(800, 600), out)
    assert not result.success
    assert result.message == errors.MSG_NOTHING_TO_EXPORT
    assert not out.exists()


def test_validation_messages(tmp_path: Path) -> None:
    options = _options(tmp_path)
    _, buffer, symbols, view = _capture(3, options)
    out = tmp_path / "x.pdf"

    cases = [
        (ViewState(0, 600), out, options, errors.MSG_VIEWPORT_NOT_READY),
        (ViewState(800, 600, zoom=0.0), out, options, errors.MSG_INVALID_ZOOM),
        (view, None, options, errors.MSG_NO_OUTPUT),
        (view, tmp_path / "missing" / "x.pdf", options, errors.MSG_FOLDER_MISSING),
        (view, out, _options(tmp_path, margin_pt=2000.0), errors.MSG_NO_DRAWING_SPACE),
    ]
    for state, path, opts, message in cases:
        result = export_plan_pdf(buffer, state, path, opts, symbols=symbols)
        assert not result.success
        assert result.message == message
    assert not out.exists()


def test_unwritable_destination_is_reported(tmp_path: Path) -> None:
    options = _options(tmp_path)
    _, buffer, symbols, view = _capture(3, options)
    target = tmp_path / "is_a_dir"
    target.mkdir()
    result = export_plan_pdf(buffer, view, target, options, symbols=symbols)
    assert not result.success
    assert result.message == errors.MSG_OPEN_FAILED


def test_inline_footprints_export_without_symbols(tmp_path: Path) -> None:
    options = _options(tmp_path)
    scene = demo_scene(count=6)
    cache = SymbolCache()
    buffer = record_plan(lambda canvas: draw_plan(scene, canvas, cache, instanced=False), options)
    out = tmp_path / "inline.pdf"
    assert export_plan_pdf(buffer, fit_view(scene), out, options).success
    data = out.read_bytes()
    check_pdf_structure(data)
    assert b"/Subtype /Form" not in data
    assert b" Do\n" not in data
