from __future__ import annotations

import struct
from pathlib import Path

import pytest

from stageplan.pdf.errors import FontParseError
from stageplan.pdf.fonts import encode_win_ansi, load_font_catalog, parse_ttf_metrics
from stageplan.pdf.objects import PdfDocument


def _format4_cmap() -> bytes:
    # Two segments: 'A' -> glyph 1, then the mandatory 0xFFFF terminator.
    seg_x2 = 4
    body = struct.pack(">HH", 65, 0xFFFF) + struct.pack(">H", 0)
    body += struct.pack(">HH", 65, 0xFFFF)
    body += struct.pack(">hh", 1 - 65, 1)
    body += struct.pack(">HH", 0, 0)
    header = struct.pack(">HHHHHHH", 4, 14 + len(body), 0, seg_x2, 4, 1, 0)
    return struct.pack(">HH", 0, 1) + struct.pack(">HHI", 3, 1, 12) + header + body


def build_minimal_ttf() -> bytes:
    head = bytearray(54)
    struct.pack_into(">H", head, 18, 1000)
    struct.pack_into(">hhhh", head, 36, -50, -200, 950, 800)
    hhea = bytearray(36)
    struct.pack_into(">hhh", hhea, 4, 800, -200, 90)
    struct.pack_into(">H", hhea, 34, 2)
    maxp = struct.pack(">IH", 0x00005000, 2)
    hmtx = struct.pack(">HhHh", 500, 0, 600, 0)
    tables = [(b"cmap", _format4_cmap()), (b"head", bytes(head)), (b"hhea", bytes(hhea)), (b"hmtx", hmtx), (b"maxp", maxp)]

    offset = 12 + 16 * len(tables)
    directory = struct.pack(">IHHHH", 0x00010000, len(tables), 64, 2, 16)
    payload = b""
    for tag, data in tables:
        padded = data + b"\0" * (-len(data) % 4)
        directory += tag + struct.pack(">III", 0, offset + len(payload), len(data))
        payload += padded
    return directory + payload


def _write_font(tmp_path: Path, data: bytes, name: str = "mini.ttf") -> Path:
    p = tmp_path / name
    p.write_bytes(data)
    return p


def test_parse_minimal_truetype() -> None:
    m = parse_ttf_metrics(build_minimal_ttf())
    assert m.units_per_em == 1000
    assert (m.ascent, m.descent, m.line_gap) == (800, -200, 90)
    assert m.cap_height == 800
    assert m.advance_widths[ord("A")] == 600
    assert m.advance_widths[ord("B")] == 500
    assert m.widths1000[ord("A")] == 600


def test_truncated_font_raises() -> None:
    with pytest.raises(FontParseError):
        parse_ttf_metrics(build_minimal_ttf()[:40])


def test_embedded_fonts_measure_with_their_own_widths(tmp_path: Path) -> None:
    font = _write_font(tmp_path, build_minimal_ttf())
    doc = PdfDocument()
    fonts = load_font_catalog(doc, font, font)

    assert fonts.regular.embedded and fonts.bold.embedded
    assert len(doc) == 6
    font_dict = doc.objects[fonts.regular.object_id - 1]
    assert b"/Subtype /TrueType" in font_dict
    assert b"/FirstChar 32 /LastChar 255" in font_dict
    assert b"/FontFile2" in doc.objects[fonts.regular.object_id - 2]
    assert abs(fonts.regular.measure(b"AB", 10.0) - 11.0) < 1e-9
    assert fonts.regular.ascent_descent(10.0) == (8.0, 2.0)
    assert fonts.resolve("sans-bold") is fonts.bold
    assert fonts.resolve("sans") is fonts.regular


def test_unreadable_fonts_fall_back_to_type1(tmp_path: Path) -> None:
    broken = _write_font(tmp_path, build_minimal_ttf()[:40], "broken.ttf")
    doc = PdfDocument()
    fonts = load_font_catalog(doc, broken, broken)

    assert not fonts.regular.embedded and not fonts.bold.embedded
    assert len(doc) == 2
    assert b"/BaseFont /Helvetica " in doc.objects[0]
    assert b"/BaseFont /Helvetica-Bold " in doc.objects[1]
    assert fonts.bold.measure(b"Count", 10.0) > fonts.regular.measure(b"C", 10.0)


def test_missing_bold_reuses_embedded_regular(tmp_path: Path) -> None:
    font = _write_font(tmp_path, build_minimal_ttf())
    missing = tmp_path / "nope.ttf"
    doc = PdfDocument()
    fonts = load_font_catalog(doc, font, missing)

    assert fonts.bold.object_id == fonts.regular.object_id
    assert fonts.bold.key == "F2"
    assert len(doc) == 3


def test_win_ansi_encoding_replaces_unmappable() -> None:
    assert encode_win_ansi("café") == b"caf\xe9"
    assert encode_win_ansi("€") == b"\x80"
    assert encode_win_ansi("中") == b"?"
