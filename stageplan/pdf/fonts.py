from __future__ import annotations

import logging
import struct
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from reportlab.pdfbase import pdfmetrics

from stageplan.pdf.errors import FontParseError
from stageplan.pdf.objects import PdfDocument

LOGGER = logging.getLogger(__name__)

REGULAR_BASE_NAME = "StageplanSans"
BOLD_BASE_NAME = "StageplanSansBold"

# First/last character codes written to /Widths.
FIRST_CHAR = 32
LAST_CHAR = 255


if sys.platform.startswith("win"):
    FONT_CANDIDATES: List[Tuple[str, str]] = [
        ("C:/Windows/Fonts/arial.ttf", "C:/Windows/Fonts/arialbd.ttf"),
    ]
elif sys.platform == "darwin":
    FONT_CANDIDATES = [
        ("/Library/Fonts/Arial.ttf", "/Library/Fonts/Arial Bold.ttf"),
        ("/System/Library/Fonts/Supplemental/Arial.ttf", "/System/Library/Fonts/Supplemental/Arial Bold.ttf"),
    ]
else:
    FONT_CANDIDATES = [
        ("/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf", "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf"),
        (
            "/usr/share/fonts/truetype/liberation/LiberationSans-Regular.ttf",
            "/usr/share/fonts/truetype/liberation/LiberationSans-Bold.ttf",
        ),
    ]


def encode_win_ansi(text: str) -> bytes:
    """Single-byte WinAnsi (cp1252) text; unmappable characters become '?'."""
    return str(text).encode("cp1252", errors="replace")


def _win_ansi_codepoint(code: int) -> int:
    try:
        return ord(bytes([code]).decode("cp1252"))
    except UnicodeDecodeError:
        return code


@dataclass(frozen=True)
class TtfFontMetrics:
    units_per_em: int
    ascent: int
    descent: int
    line_gap: int
    cap_height: int
    x_min: int
    y_min: int
    x_max: int
    y_max: int
    # Indexed by WinAnsi code 0..255.
    advance_widths: Tuple[int, ...]
    widths1000: Tuple[int, ...]
    data: bytes


def _u16(data: bytes, offset: int) -> int:
    if offset < 0 or offset + 2 > len(data):
        raise FontParseError(f"Font data truncated at offset {offset}")
    return struct.unpack_from(">H", data, offset)[0]


def _s16(data: bytes, offset: int) -> int:
    if offset < 0 or offset + 2 > len(data):
        raise FontParseError(f"Font data truncated at offset {offset}")
    return struct.unpack_from(">h", data, offset)[0]


def _u32(data: bytes, offset: int) -> int:
    if offset < 0 or offset + 4 > len(data):
        raise FontParseError(f"Font data truncated at offset {offset}")
    return struct.unpack_from(">I", data, offset)[0]


def _table_directory(data: bytes) -> Dict[bytes, Tuple[int, int]]:
    if len(data) < 12:
        raise FontParseError("Font data too short for a table directory")
    num_tables = _u16(data, 4)
    tables: Dict[bytes, Tuple[int, int]] = {}
    for i in range(num_tables):
        rec = 12 + i * 16
        if rec + 16 > len(data):
            raise FontParseError("Table directory truncated")
        tag = bytes(data[rec:rec + 4])
        tables[tag] = (_u32(data, rec + 8), _u32(data, rec + 12))
    return tables


def _require(tables: Dict[bytes, Tuple[int, int]], tag: bytes) -> Tuple[int, int]:
    if tag not in tables:
        raise FontParseError(f"Missing '{tag.decode('latin-1')}' table")
    return tables[tag]


def _format4_lookup(cmap: bytes):
    if len(cmap) < 4:
        raise FontParseError("cmap table truncated")
    count = _u16(cmap, 2)
    chosen = None
    for i in range(count):
        rec = 4 + i * 8
        platform_id = _u16(cmap, rec)
        encoding_id = _u16(cmap, rec + 2)
        sub = _u32(cmap, rec + 4)
        if sub + 2 > len(cmap):
            continue
        if platform_id == 3 and encoding_id in (0, 1) and _u16(cmap, sub) == 4:
            chosen = sub
            break
    if chosen is None:
        raise FontParseError("No usable format 4 cmap subtable")

    seg_count = _u16(cmap, chosen + 6) // 2
    end_off = chosen + 14
    start_off = end_off + 2 * seg_count + 2
    delta_off = start_off + 2 * seg_count
    range_off = delta_off + 2 * seg_count
    if range_off + 2 * seg_count > len(cmap):
        raise FontParseError("cmap segment arrays truncated")

    def glyph_for(code: int) -> int:
        for i in range(seg_count):
            end = _u16(cmap, end_off + 2 * i)
            start = _u16(cmap, start_off + 2 * i)
            if code < start or code > end:
                continue
            delta = _s16(cmap, delta_off + 2 * i)
            ro = _u16(cmap, range_off + 2 * i)
            if ro == 0:
                return (code + delta) & 0xFFFF
            glyph_at = range_off + 2 * i + ro + 2 * (code - start)
            if glyph_at + 2 > len(cmap):
                return 0
            glyph = _u16(cmap, glyph_at)
            return 0 if glyph == 0 else (glyph + delta) & 0xFFFF
        return 0

    return glyph_for


def parse_ttf_metrics(data: bytes) -> TtfFontMetrics:
    """Read the metrics needed for PDF embedding from TrueType tables."""
    tables = _table_directory(data)
    head, _ = _require(tables, b"head")
    hhea, _ = _require(tables, b"hhea")
    maxp, _ = _require(tables, b"maxp")
    hmtx, _ = _require(tables, b"hmtx")
    cmap_off, cmap_len = _require(tables, b"cmap")

    if head + 54 > len(data):
        raise FontParseError("head table truncated")
    units_per_em = _u16(data, head + 18)
    if units_per_em <= 0:
        raise FontParseError("unitsPerEm is zero")
    bbox = [_s16(data, head + off) for off in (36, 38, 40, 42)]

    if hhea + 36 > len(data):
        raise FontParseError("hhea table truncated")
    ascent = _s16(data, hhea + 4)
    descent = _s16(data, hhea + 6)
    line_gap = _s16(data, hhea + 8)
    num_h_metrics = _u16(data, hhea + 34)

    num_glyphs = _u16(data, maxp + 4)
    if num_glyphs == 0 or num_h_metrics == 0:
        raise FontParseError("Font declares no glyph metrics")
    if hmtx + num_h_metrics * 4 > len(data):
        raise FontParseError("hmtx table truncated")
    glyph_advances = [_u16(data, hmtx + i * 4) for i in range(num_h_metrics)]
    # Glyphs past numHMetrics repeat the last advance.
    glyph_advances.extend([glyph_advances[-1]] * max(0, num_glyphs - num_h_metrics))

    cap_height = 0
    if b"OS/2" in tables:
        os2, os2_len = tables[b"OS/2"]
        if os2_len >= 90 and os2 + 90 <= len(data) and _u16(data, os2) >= 2:
            cap_height = _s16(data, os2 + 88)
    if cap_height == 0:
        cap_height = ascent

    cmap = bytes(data[cmap_off:cmap_off + cmap_len])
    glyph_for = _format4_lookup(cmap)

    missing = glyph_advances[0]
    advances: List[int] = []
    for code in range(256):
        glyph = glyph_for(_win_ansi_codepoint(code))
        advances.append(glyph_advances[glyph] if glyph < len(glyph_advances) else missing)
    widths1000 = tuple(int(round(a * 1000.0 / units_per_em)) for a in advances)

    return TtfFontMetrics(
        units_per_em=units_per_em,
        ascent=ascent,
        descent=descent,
        line_gap=line_gap,
        cap_height=cap_height,
        x_min=bbox[0],
        y_min=bbox[1],
        x_max=bbox[2],
        y_max=bbox[3],
        advance_widths=tuple(advances),
        widths1000=widths1000,
        data=bytes(data),
    )


def load_ttf_metrics(path: Path) -> TtfFontMetrics:
    p = Path(path).expanduser()
    try:
        data = p.read_bytes()
    except OSError as e:
        raise FontParseError(f"Unable to read font file {p}: {e}") from e
    return parse_ttf_metrics(data)


def find_font_path(bold: bool) -> Optional[Path]:
    for regular, bold_path in FONT_CANDIDATES:
        p = Path(bold_path if bold else regular)
        if p.exists():
            return p
    return None


@dataclass
class PdfFont:
    """A page font resource (/F1 regular, /F2 bold) and how to measure it."""

    key: str
    base_name: str
    fallback_name: str
    metrics: Optional[TtfFontMetrics] = None
    object_id: int = 0
    embedded: bool = False

    def measure(self, encoded: bytes, size: float) -> float:
        """Width in points of WinAnsi-encoded text; newlines are ignored."""
        if self.embedded and self.metrics is not None:
            units = sum(self.metrics.advance_widths[b] for b in encoded if b != 0x0A)
            return units / float(self.metrics.units_per_em) * size
        text = encoded.decode("cp1252", errors="replace").replace("\n", "")
        return pdfmetrics.stringWidth(text, self.fallback_name, size)

    def ascent_descent(self, size: float) -> Tuple[float, float]:
        """Positive ascent and descent in points at ``size``."""
        if self.embedded and self.metrics is not None:
            upm = float(self.metrics.units_per_em)
            return self.metrics.ascent * size / upm, abs(self.metrics.descent) * size / upm
        ascent, descent = pdfmetrics.getAscentDescent(self.fallback_name, size)
        return float(ascent), abs(float(descent))

    def line_gap(self, size: float) -> float:
        if self.embedded and self.metrics is not None:
            return self.metrics.line_gap * size / float(self.metrics.units_per_em)
        return 0.0


@dataclass
class FontCatalog:
    regular: PdfFont
    bold: PdfFont

    def resolve(self, family: str) -> PdfFont:
        if family and "bold" in family.lower():
            return self.bold
        return self.regular


def append_embedded_font_objects(doc: PdfDocument, font: PdfFont, metrics: TtfFontMetrics) -> None:
    """FontFile2 stream, FontDescriptor and TrueType font dictionary, in that order."""
    scale = 1000.0 / metrics.units_per_em

    def em(v: float) -> int:
        return int(round(v * scale))

    data = metrics.data
    body = data if data.endswith(b"\n") else data + b"\n"
    font_file = doc.add(
        f"<< /Length {len(body)} /Length1 {len(data)} >>\nstream\n".encode("latin-1") + body + b"endstream"
    )
    descriptor = doc.add(
        f"<< /Type /FontDescriptor /FontName /{font.base_name} /Flags 32 "
        f"/FontBBox [{em(metrics.x_min)} {em(metrics.y_min)} {em(metrics.x_max)} {em(metrics.y_max)}] "
        f"/Ascent {em(metrics.ascent)} /Descent {-em(abs(metrics.descent))} /CapHeight {em(metrics.cap_height)} "
        f"/ItalicAngle 0 /StemV 80 /FontFile2 {font_file} 0 R >>"
    )
    widths = " ".join(str(metrics.widths1000[c]) for c in range(FIRST_CHAR, LAST_CHAR + 1))
    font.object_id = doc.add(
        f"<< /Type /Font /Subtype /TrueType /BaseFont /{font.base_name} "
        f"/FirstChar {FIRST_CHAR} /LastChar {LAST_CHAR} /Widths [{widths}] "
        f"/FontDescriptor {descriptor} 0 R /Encoding /WinAnsiEncoding >>"
    )
    font.metrics = metrics
    font.embedded = True


def append_fallback_font(doc: PdfDocument, font: PdfFont, base_font: str) -> None:
    font.object_id = doc.add(f"<< /Type /Font /Subtype /Type1 /BaseFont /{base_font} /Encoding /WinAnsiEncoding >>")
    font.base_name = base_font
    font.fallback_name = base_font
    font.metrics = None
    font.embedded = False


def _try_load(path: Optional[Path]) -> Optional[TtfFontMetrics]:
    if path is None:
        return None
    try:
        return load_ttf_metrics(path)
    except FontParseError as e:
        LOGGER.debug("Font %s not usable: %s", path, e)
        return None


def load_font_catalog(
    doc: PdfDocument,
    regular_path: Optional[Path] = None,
    bold_path: Optional[Path] = None,
) -> FontCatalog:
    """
    Embed the regular and bold fonts into ``doc``.

    Explicit paths are used as given; otherwise the platform candidates are
    searched. A font that cannot be parsed degrades to a standard Type1
    font, and a missing bold face reuses an embedded regular one.
    """
    regular = PdfFont(key="F1", base_name=REGULAR_BASE_NAME, fallback_name="Helvetica")
    bold = PdfFont(key="F2", base_name=BOLD_BASE_NAME, fallback_name="Helvetica-Bold")

    regular_metrics = _try_load(Path(regular_path) if regular_path else find_font_path(False))
    bold_metrics = _try_load(Path(bold_path) if bold_path else find_font_path(True))

    if regular_metrics is not None:
        append_embedded_font_objects(doc, regular, regular_metrics)
    else:
        LOGGER.info("PDF export: falling back to Type1 Helvetica (embedded font not found)")
        append_fallback_font(doc, regular, "Helvetica")

    if bold_metrics is not None:
        append_embedded_font_objects(doc, bold, bold_metrics)
    elif regular.embedded:
        bold.object_id = regular.object_id
        bold.metrics = regular.metrics
        bold.embedded = True
    else:
        LOGGER.info("PDF export: falling back to Type1 Helvetica-Bold (embedded font not found)")
        append_fallback_font(doc, bold, "Helvetica-Bold")

    return FontCatalog(regular=regular, bold=bold)
