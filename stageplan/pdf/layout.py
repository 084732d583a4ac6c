from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Mapping, Optional, Sequence, Tuple

from stageplan.canvas.commands import CommandBuffer
from stageplan.pdf.encoder import escape_pdf_string
from stageplan.pdf.fonts import FontCatalog, PdfFont, encode_win_ansi
from stageplan.pdf.objects import FloatFormatter
from stageplan.render.mapping import ViewState
from stageplan.symbols.cache import (
    SymbolDefinition,
    SymbolViewKind,
    find_symbol_definition_exact,
    find_symbol_definition_preferred,
)


# Legend/table content is drawn at 70% of the on-screen 2/3 point size.
LEGEND_CONTENT_SCALE = 0.7
LEGEND_SYMBOL_SIZE = 96.0 * 2.0 / 3.0 * LEGEND_CONTENT_SCALE
LEGEND_FONT_SCALE = (2.0 / 3.0) * LEGEND_CONTENT_SCALE

TEXT_GRAY = 0.08
ELLIPSIS = b"..."
ITALIC_SKEW = 0.2
FRAME_BORDER_WIDTH = 0.5

EVENT_TABLE_LABELS = ("Venue:", "Location:", "Date:", "Stage:", "Version:", "Design:", "Mail:")


@dataclass(frozen=True)
class LayoutFrame:
    """Element rectangle in points, origin at the top-left of the page."""

    x: float
    y: float
    width: float
    height: float

    def is_valid(self) -> bool:
        return self.width > 0.0 and self.height > 0.0

    def to_page(self, page_height: float) -> Tuple[float, float, float, float]:
        """(x, y, w, h) in PDF space, y measured up from the bottom edge."""
        return (float(self.x), page_height - self.y - self.height, float(self.width), float(self.height))


@dataclass
class LayoutView:
    frame: LayoutFrame
    view_state: ViewState
    buffer: CommandBuffer
    symbols: Optional[Mapping[int, SymbolDefinition]] = None
    z_index: int = 0


@dataclass(frozen=True)
class LegendItem:
    type_name: str
    count: int
    channel_count: Optional[int] = None
    # Model key of the fixture symbol; empty for a text-only row.
    symbol_key: str = ""


@dataclass
class LayoutLegend:
    frame: LayoutFrame
    items: Sequence[LegendItem] = ()
    symbols: Optional[Mapping[int, SymbolDefinition]] = None
    z_index: int = 0


@dataclass
class LayoutEventTable:
    frame: LayoutFrame
    # Values in EVENT_TABLE_LABELS order; missing trailing values are blank.
    fields: Sequence[str] = ()
    z_index: int = 0


class TextAlignment(Enum):
    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"


@dataclass(frozen=True)
class TextRun:
    text: str
    bold: bool = False
    italic: bool = False
    # 0 means the box font size.
    font_size: float = 0.0


@dataclass
class LayoutTextBox:
    frame: LayoutFrame
    lines: Sequence[Sequence[TextRun]] = ()
    alignment: TextAlignment = TextAlignment.LEFT
    font_size: float = 12.0
    solid_background: bool = True
    draw_frame: bool = True
    z_index: int = 0


@dataclass(frozen=True)
class RenderSlot:
    element: object
    z_index: int
    order: int


def render_order(elements: Sequence[object]) -> List[object]:
    """Elements sorted by z-index; equal z keeps insertion order."""
    slots = [RenderSlot(e, int(getattr(e, "z_index", 0)), i) for i, e in enumerate(elements)]
    slots.sort(key=lambda s: (s.z_index, s.order))
    return [s.element for s in slots]


def trim_text_to_width(encoded: bytes, max_width: float, size: float, font: PdfFont) -> bytes:
    if max_width <= 0.0:
        return b""
    if font.measure(encoded, size) <= max_width:
        return encoded
    ellipsis_width = font.measure(ELLIPSIS, size)
    if ellipsis_width >= max_width:
        return ELLIPSIS[:1]
    trimmed = encoded
    while trimmed and font.measure(trimmed, size) + ellipsis_width > max_width:
        trimmed = trimmed[:-1]
    return trimmed + ELLIPSIS


def open_frame(out: List[str], fmt: FloatFormatter, rect: Tuple[float, float, float, float], background: bool = True) -> None:
    box = fmt.join(*rect)
    out.append(f"q\n{box} re W n\n")
    if background:
        out.append(f"1 1 1 rg {box} re f\n")


def close_frame(out: List[str], fmt: FloatFormatter, rect: Tuple[float, float, float, float], border: bool = True) -> None:
    out.append("Q\n")
    if border:
        out.append(f"q\n0 0 0 RG {fmt(FRAME_BORDER_WIDTH)} w {fmt.join(*rect)} re S\nQ\n")


def _text(out: List[str], fmt: FloatFormatter, font_key: str, size: float, x: float, y: float, encoded: bytes) -> None:
    out.append(
        f"BT\n/{font_key} {fmt(size)} Tf\n"
        f"{fmt.join(TEXT_GRAY, TEXT_GRAY, TEXT_GRAY)} rg\n"
        f"{fmt.join(x, y)} Td\n({escape_pdf_string(encoded)}) Tj\nET\n"
    )


def legend_symbol_pair(
    symbols: Optional[Mapping[int, SymbolDefinition]],
    model_key: str,
) -> Tuple[Optional[SymbolDefinition], Optional[SymbolDefinition]]:
    """Top (or best available) and exact front view of a model, for a legend row."""
    if not model_key or symbols is None:
        return None, None
    return (
        find_symbol_definition_preferred(symbols, model_key, SymbolViewKind.TOP),
        find_symbol_definition_exact(symbols, model_key, SymbolViewKind.FRONT),
    )


def legend_xobject_scale(definition: SymbolDefinition) -> float:
    w = definition.bounds.width
    h = definition.bounds.height
    if w <= 0.0 or h <= 0.0:
        return 1.0
    return min(LEGEND_SYMBOL_SIZE / w, LEGEND_SYMBOL_SIZE / h)


def render_legend(
    out: List[str],
    fmt: FloatFormatter,
    legend: LayoutLegend,
    page_height: float,
    fonts: FontCatalog,
    symbols: Optional[Mapping[int, SymbolDefinition]],
    symbol_names: Mapping[int, str],
) -> None:
    """
    Fixture legend: a bold Count/Type/Ch header, a grey rule, then one row
    per item with its top and front symbols side by side.

    Legend XObjects are pre-scaled to LEGEND_SYMBOL_SIZE; rows place them
    with a ``cm`` that rescales to the font-dependent symbol size.
    """
    if not legend.frame.is_valid():
        return
    rect = legend.frame.to_page(page_height)
    fx, fy, fw, fh = rect
    open_frame(out, fmt, rect)

    pad_left, pad_right, pad_top, pad_bottom = 4.0, 4.0, 6.0, 2.0
    column_gap = 8.0
    symbol_column_gap = 2.0
    separator_gap = 2.0
    regular, bold = fonts.regular, fonts.bold

    total_rows = len(legend.items) + 1
    available = fh - pad_top - pad_bottom - separator_gap
    font_size = min(max(available / total_rows - 2.0, 6.0), 14.0) * LEGEND_FONT_SCALE
    font_scale = min(max(font_size / (14.0 * LEGEND_FONT_SCALE), 0.0), 1.0)

    def channel_text(item: LegendItem) -> bytes:
        return encode_win_ansi(str(item.channel_count) if item.channel_count is not None else "-")

    max_count_w = bold.measure(b"Count", font_size)
    max_ch_w = bold.measure(b"Ch", font_size)
    for item in legend.items:
        max_count_w = max(max_count_w, regular.measure(encode_win_ansi(str(item.count)), font_size))
        max_ch_w = max(max_ch_w, regular.measure(channel_text(item), font_size))
    left_trim = regular.measure(b"000", font_size)
    max_ch_w += regular.measure(b"0", font_size)

    row_candidate = available / total_rows
    text_h = font_size * 1.2
    line_h = text_h + separator_gap
    symbol_size = max(4.0, LEGEND_SYMBOL_SIZE * font_scale)
    pair_gap = -max(1.0, symbol_size * 0.5)

    def fitted(definition: Optional[SymbolDefinition]) -> Tuple[float, float]:
        if definition is None:
            return 0.0, 0.0
        w, h = definition.bounds.width, definition.bounds.height
        if w <= 0.0 or h <= 0.0:
            return 0.0, 0.0
        s = min(symbol_size / w, symbol_size / h)
        return w * s, h * s

    def pair_width(top_w: float, front_w: float) -> float:
        if top_w > 0.0 and front_w > 0.0:
            return top_w + front_w + pair_gap
        return max(top_w, front_w)

    max_pair_w = symbol_size
    for item in legend.items:
        top, front = legend_symbol_pair(symbols, item.symbol_key)
        max_pair_w = max(max_pair_w, pair_width(fitted(top)[0], fitted(front)[0]))

    slot = max(4.0, max_pair_w)
    row_h = max(row_candidate, line_h)
    content_gap = max(0.0, max(0.0, available) - row_h * total_rows)
    text_offset = max(0.0, (row_h - text_h) * 0.5)
    x_symbol = fx + pad_left - left_trim
    x_count = x_symbol + slot + symbol_column_gap
    x_type = x_count + max_count_w + column_gap
    x_ch = max(fx + fw - pad_right - max_ch_w, x_type + column_gap)
    type_w = max(0.0, x_ch - x_type - column_gap)

    row_top = fy + fh - pad_top - content_gap
    baseline = row_top - text_offset - font_size
    _text(out, fmt, bold.key, font_size, x_count, baseline, b"Count")
    _text(out, fmt, bold.key, font_size, x_type, baseline, b"Type")
    _text(out, fmt, bold.key, font_size, x_ch, baseline, b"Ch")

    separator_y = row_top - row_h
    out.append(
        f"{fmt.join(0.78, 0.78, 0.78)} RG {fmt(FRAME_BORDER_WIDTH)} w "
        f"{fmt.join(x_symbol, separator_y)} m {fmt.join(fx + fw - pad_right, separator_y)} l S\n"
    )

    def place(definition: SymbolDefinition, draw_h: float, left: float, box_y: float) -> None:
        name = symbol_names.get(definition.symbol_id)
        if name is None:
            return
        w, h = definition.bounds.width, definition.bounds.height
        s = min(symbol_size / w, symbol_size / h)
        k = s / legend_xobject_scale(definition)
        ox = left - definition.bounds.min_x * s
        oy = box_y + (symbol_size - draw_h) * 0.5 - definition.bounds.min_y * s
        out.append(f"q\n{fmt.join(k, 0.0, 0.0, k, ox, oy)} cm\n/{name} Do\nQ\n")

    row_top = separator_y - separator_gap
    for item in legend.items:
        if row_top - row_h < fy + pad_bottom:
            break
        top, front = legend_symbol_pair(symbols, item.symbol_key)
        top_w, top_h = fitted(top)
        front_w, front_h = fitted(front)
        if top_w > 0.0 or front_w > 0.0:
            box_y = row_top - row_h + (row_h - symbol_size) * 0.5
            row_pair = pair_width(top_w, front_w)
            start = x_symbol + max(0.0, (slot - row_pair) * 0.5)
            left_slot = right_slot = row_pair
            front_left = start
            if top_w > 0.0 and front_w > 0.0:
                left_slot, right_slot = top_w, front_w
                front_left = start + top_w + pair_gap
            if top is not None and top_w > 0.0:
                place(top, top_h, start + max(0.0, (left_slot - top_w) * 0.5), box_y)
            if front is not None and front_w > 0.0:
                place(front, front_h, front_left + max(0.0, (right_slot - front_w) * 0.5), box_y)

        baseline = row_top - text_offset - font_size
        _text(out, fmt, regular.key, font_size, x_count, baseline, encode_win_ansi(str(item.count)))
        type_text = trim_text_to_width(encode_win_ansi(item.type_name), type_w, font_size, regular)
        _text(out, fmt, regular.key, font_size, x_type, baseline, type_text)
        _text(out, fmt, regular.key, font_size, x_ch, baseline, channel_text(item))
        row_top -= row_h

    close_frame(out, fmt, rect)


def render_event_table(
    out: List[str],
    fmt: FloatFormatter,
    table: LayoutEventTable,
    page_height: float,
    fonts: FontCatalog,
) -> None:
    """Seven label/value rows; the first value (the venue) is set larger and bold."""
    if not table.frame.is_valid():
        return
    rect = table.frame.to_page(page_height)
    fx, fy, fw, fh = rect
    open_frame(out, fmt, rect)

    padding = 6.0
    column_gap = 10.0
    rows = len(EVENT_TABLE_LABELS)
    available = fh - padding * 2.0
    font_size = min(max(available / rows - 2.0, 6.0), 14.0) * LEGEND_FONT_SCALE
    emphasized = max(font_size + 1.0, font_size * 1.1)

    label_w = max(fonts.bold.measure(encode_win_ansi(label), font_size) for label in EVENT_TABLE_LABELS)
    row_h = available / rows
    text_offset = max(0.0, (row_h - font_size * 1.2) * 0.5)
    label_x = fx + padding
    value_x = label_x + label_w + column_gap
    value_w = max(0.0, fx + fw - padding - value_x)

    for row, label in enumerate(EVENT_TABLE_LABELS):
        row_top = fy + fh - padding - row * row_h
        _text(out, fmt, fonts.bold.key, font_size, label_x, row_top - text_offset - font_size, encode_win_ansi(label))

        value = table.fields[row] if row < len(table.fields) else ""
        font = fonts.bold if row == 0 else fonts.regular
        size = emphasized if row == 0 else font_size
        trimmed = trim_text_to_width(encode_win_ansi(value), value_w, size, font)
        _text(out, fmt, font.key, size, value_x, row_top - text_offset - size, trimmed)

    close_frame(out, fmt, rect)


def render_text_box(
    out: List[str],
    fmt: FloatFormatter,
    box: LayoutTextBox,
    page_height: float,
    fonts: FontCatalog,
) -> None:
    if not box.frame.is_valid():
        return
    rect = box.frame.to_page(page_height)
    fx, fy, fw, fh = rect
    open_frame(out, fmt, rect, background=box.solid_background)

    padding = 4.0
    available = max(0.0, fh - padding * 2.0)
    base_size = box.font_size if box.font_size > 0 else 12.0
    used = 0.0

    for runs in box.lines:
        line_size = base_size
        for run in runs:
            line_size = max(line_size, run.font_size if run.font_size > 0 else line_size)
        line_h = line_size * 1.2
        if used + line_h > available and used > 0.0:
            break
        if not runs:
            used += line_h
            continue

        pieces = []
        for run in runs:
            size = run.font_size if run.font_size > 0 else line_size
            font = fonts.bold if run.bold else fonts.regular
            encoded = encode_win_ansi(run.text)
            pieces.append((run, font, size, encoded, font.measure(encoded, size)))
        line_w = sum(p[4] for p in pieces)

        x = fx + padding
        if box.alignment is TextAlignment.CENTER:
            x = fx + max(0.0, (fw - line_w) * 0.5)
        elif box.alignment is TextAlignment.RIGHT:
            x = fx + fw - padding - line_w
        y = fy + fh - padding - used - line_size

        for run, font, size, encoded, width in pieces:
            out.append(f"BT\n/{font.key} {fmt(size)} Tf\n0 0 0 rg\n")
            if run.italic:
                out.append(f"1 0 {fmt(ITALIC_SKEW)} 1 {fmt.join(x, y)} Tm\n")
            else:
                out.append(f"{fmt.join(x, y)} Td\n")
            out.append(f"({escape_pdf_string(encoded)}) Tj\nET\n")
            x += width
        used += line_h

    close_frame(out, fmt, rect, border=box.draw_frame)


def collect_legend_symbols(
    legends: Sequence[LayoutLegend],
    fallback: Optional[Mapping[int, SymbolDefinition]],
) -> List[Tuple[SymbolDefinition, str]]:
    """Distinct legend symbols with their ``L<id>`` resource names, first use first."""
    found: List[Tuple[SymbolDefinition, str]] = []
    seen = set()
    for legend in legends:
        symbols = legend.symbols if legend.symbols is not None else fallback
        for item in legend.items:
            for definition in legend_symbol_pair(symbols, item.symbol_key):
                if definition is None or definition.symbol_id in seen:
                    continue
                seen.add(definition.symbol_id)
                found.append((definition, f"L{definition.symbol_id}"))
    return found
