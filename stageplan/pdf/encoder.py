from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence

from stageplan.canvas.commands import (
    CanvasColor,
    CanvasCommand,
    CanvasFill,
    CanvasStroke,
    CanvasTransform,
    CircleCommand,
    HorizontalAlign,
    LineCommand,
    Point2,
    PolygonCommand,
    PolylineCommand,
    RectangleCommand,
    TextCommand,
    Transform2D,
    VerticalAlign,
    point_pairs,
)
from stageplan.pdf.fonts import FontCatalog, PdfFont, encode_win_ansi
from stageplan.pdf.objects import FloatFormatter
from stageplan.render.mapping import RenderMapping, map_point


# 4*(sqrt(2)-1)/3: control-point distance for a quarter circle Bezier.
BEZIER_CIRCLE_K = 0.552284749831

_COLOR_EPS = 1e-6
_WIDTH_EPS = 1e-6

# Text offsets used to fake an outline around glyphs.
_OUTLINE_DIRECTIONS = ((-1, 0), (1, 0), (0, -1), (0, 1), (-1, -1), (1, -1), (-1, 1), (1, 1))

_HELVETICA = PdfFont(key="F1", base_name="Helvetica", fallback_name="Helvetica")


def _same_color(a: CanvasColor, b: CanvasColor) -> bool:
    return abs(a.r - b.r) < _COLOR_EPS and abs(a.g - b.g) < _COLOR_EPS and abs(a.b - b.b) < _COLOR_EPS


class GraphicsStateCache:
    """Tracks stroke/fill state so unchanged operators are not written again."""

    def __init__(self) -> None:
        self._join_set = False
        self._cap_set = False
        self._stroke_color: Optional[CanvasColor] = None
        self._line_width: Optional[float] = None
        self._fill_color: Optional[CanvasColor] = None

    def set_stroke(self, out: List[str], stroke: CanvasStroke, fmt: FloatFormatter) -> None:
        if not self._join_set:
            out.append("1 j\n")
            self._join_set = True
        if not self._cap_set:
            out.append("1 J\n")
            self._cap_set = True
        c = stroke.color
        if self._stroke_color is None or not _same_color(c, self._stroke_color):
            out.append(f"{fmt.join(c.r, c.g, c.b)} RG\n")
            self._stroke_color = c
        if self._line_width is None or abs(stroke.width - self._line_width) > _WIDTH_EPS:
            out.append(f"{fmt(stroke.width)} w\n")
            self._line_width = stroke.width

    def set_fill(self, out: List[str], fill: CanvasFill, fmt: FloatFormatter) -> None:
        c = fill.color
        if self._fill_color is None or not _same_color(c, self._fill_color):
            out.append(f"{fmt.join(c.r, c.g, c.b)} rg\n")
            self._fill_color = c

    def forget_fill(self) -> None:
        # Text writes its own rg, so the next fill must re-emit it.
        self._fill_color = None


def append_line(out: List[str], cache: GraphicsStateCache, fmt: FloatFormatter, a: Point2, b: Point2, stroke: CanvasStroke) -> None:
    cache.set_stroke(out, stroke, fmt)
    out.append(f"{fmt.join(*a)} m\n{fmt.join(*b)} l\nS\n")


def append_polyline(out: List[str], cache: GraphicsStateCache, fmt: FloatFormatter, pts: Sequence[Point2], stroke: CanvasStroke) -> None:
    if len(pts) < 2:
        return
    cache.set_stroke(out, stroke, fmt)
    out.append(f"{fmt.join(*pts[0])} m\n")
    for p in pts[1:]:
        out.append(f"{fmt.join(*p)} l\n")
    out.append("S\n")


def append_polygon(
    out: List[str],
    cache: GraphicsStateCache,
    fmt: FloatFormatter,
    pts: Sequence[Point2],
    stroke: CanvasStroke,
    fill: Optional[CanvasFill],
) -> None:
    if len(pts) < 3:
        return

    def path() -> None:
        out.append(f"{fmt.join(*pts[0])} m\n")
        for p in pts[1:]:
            out.append(f"{fmt.join(*p)} l\n")
        out.append("h\n")

    if stroke.width > 0.0:
        cache.set_stroke(out, stroke, fmt)
        path()
        out.append("S\n")
    if fill is not None:
        cache.set_fill(out, fill, fmt)
        path()
        out.append("f\n")


def append_rectangle(
    out: List[str],
    cache: GraphicsStateCache,
    fmt: FloatFormatter,
    origin: Point2,
    w: float,
    h: float,
    stroke: CanvasStroke,
    fill: Optional[CanvasFill],
) -> None:
    rect = f"{fmt.join(origin[0], origin[1], w, h)} re\n"
    if stroke.width > 0.0:
        cache.set_stroke(out, stroke, fmt)
        out.append(rect + "S\n")
    if fill is not None:
        cache.set_fill(out, fill, fmt)
        out.append(rect + "f\n")


def circle_path(fmt: FloatFormatter, center: Point2, radius: float) -> str:
    """Closed circle as four cubic Bezier segments, starting at angle 0."""
    x, y = center
    r = radius
    k = r * BEZIER_CIRCLE_K
    return (
        f"{fmt.join(x + r, y)} m\n"
        f"{fmt.join(x + r, y + k, x + k, y + r, x, y + r)} c\n"
        f"{fmt.join(x - k, y + r, x - r, y + k, x - r, y)} c\n"
        f"{fmt.join(x - r, y - k, x - k, y - r, x, y - r)} c\n"
        f"{fmt.join(x + k, y - r, x + r, y - k, x + r, y)} c\n"
    )


def append_circle(
    out: List[str],
    cache: GraphicsStateCache,
    fmt: FloatFormatter,
    center: Point2,
    radius: float,
    stroke: CanvasStroke,
    fill: Optional[CanvasFill],
) -> None:
    path = circle_path(fmt, center, radius)
    if stroke.width > 0.0:
        cache.set_stroke(out, stroke, fmt)
        out.append(path + "S\n")
    if fill is not None:
        cache.set_fill(out, fill, fmt)
        out.append(path + "f\n")


def escape_pdf_string(encoded: bytes) -> str:
    """PDF literal-string body for single-byte text; non-printables become octal escapes."""
    parts: List[str] = []
    for ch in encoded:
        if ch in (0x28, 0x29, 0x5C):
            parts.append("\\" + chr(ch))
        elif ch == 0x0A:
            parts.append("\\n")
        elif ch == 0x0D:
            parts.append("\\r")
        elif ch == 0x09:
            parts.append("\\t")
        elif ch < 0x20 or ch > 0x7E:
            parts.append(f"\\{ch:03o}")
        else:
            parts.append(chr(ch))
    return "".join(parts)


def line_advance(ascent: float, descent: float) -> float:
    return -(ascent + descent)


@dataclass(frozen=True)
class TextLayout:
    font_key: str
    font_size: float
    dx: float
    dy: float
    advance: float
    lines: List[bytes]


def layout_text(cmd: TextCommand, scale: float, fonts: Optional[FontCatalog]) -> TextLayout:
    """Resolve font, size, alignment offsets and line advance for a text command."""
    style = cmd.style
    font = fonts.resolve(style.font_family) if fonts is not None else _HELVETICA
    size = style.font_size * scale

    # Match the captured glyph height when the embedded font's own height differs.
    if font.embedded and font.metrics is not None and style.ascent > 0.0 and style.descent > 0.0:
        target = (style.ascent + style.descent) * scale
        units = font.metrics.ascent + abs(font.metrics.descent)
        if units > 0:
            natural = units * size / font.metrics.units_per_em
            if natural > 0.0:
                size *= target / natural

    font_ascent, font_descent = font.ascent_descent(size)
    ascent = style.ascent * scale if style.ascent > 0.0 else font_ascent
    descent = style.descent * scale if style.descent > 0.0 else font_descent

    encoded = encode_win_ansi(cmd.text)
    lines = encoded.split(b"\n")
    widest = max(font.measure(line, size) for line in lines)

    dx = 0.0
    if style.h_align is HorizontalAlign.CENTER:
        dx = -widest / 2.0
    elif style.h_align is HorizontalAlign.RIGHT:
        dx = -widest

    dy = 0.0
    if style.v_align is VerticalAlign.TOP:
        dy = -ascent
    elif style.v_align is VerticalAlign.MIDDLE:
        dy = -(ascent - descent) * 0.5
    elif style.v_align is VerticalAlign.BOTTOM:
        dy = descent

    if style.line_height > 0.0:
        advance = -(style.line_height * scale + style.extra_line_spacing * scale)
    else:
        advance = line_advance(ascent, descent)
    # Successive lines always go down the page.
    if advance > 0.0:
        advance = -advance
    return TextLayout(font_key=font.key, font_size=size, dx=dx, dy=dy, advance=advance, lines=lines)


def append_text(
    out: List[str],
    fmt: FloatFormatter,
    pos: Point2,
    cmd: TextCommand,
    scale: float,
    fonts: Optional[FontCatalog],
) -> None:
    layout = layout_text(cmd, scale, fonts)
    style = cmd.style

    def emit(color: CanvasColor, ox: float, oy: float) -> None:
        out.append(f"BT\n/{layout.font_key} {fmt(layout.font_size)} Tf\n")
        out.append(f"{fmt.join(color.r, color.g, color.b)} rg\n")
        out.append(f"{fmt.join(pos[0] + layout.dx + ox, pos[1] + layout.dy + oy)} Td\n")
        out.append(f"({escape_pdf_string(layout.lines[0])}) Tj\n")
        for line in layout.lines[1:]:
            out.append(f"0 {fmt(layout.advance)} Td\n({escape_pdf_string(line)}) Tj\n")
        out.append("ET\n")

    outline = style.outline_width * scale
    if outline > 0.0:
        for ux, uy in _OUTLINE_DIRECTIONS:
            emit(style.outline_color, ux * outline, uy * outline)
    emit(style.color, 0.0, 0.0)


def append_symbol_instance(
    out: List[str],
    fmt: FloatFormatter,
    mapping: RenderMapping,
    current: CanvasTransform,
    transform: Transform2D,
    name: str,
) -> None:
    """
    Invoke a Form XObject whose content is in local units times ``mapping.scale``.

    The matrix carries the instance rotation/scale and the canvas scale; the
    translation is the mapped placement origin.
    """
    cs = current.scale
    a, b, c, d = transform.a * cs, transform.b * cs, transform.c * cs, transform.d * cs
    if mapping.flip_y:
        b, d = -b, -d
    tx, ty = map_point(transform.tx, transform.ty, current, mapping)
    out.append(f"q\n{fmt.join(a, b, c, d, tx, ty)} cm\n/{name} Do\nQ\n")


def _mapped(points: Sequence[float], current: CanvasTransform, mapping: RenderMapping) -> List[Point2]:
    return [map_point(x, y, current, mapping) for x, y in point_pairs(points)]


def _scaled_stroke(stroke: CanvasStroke, factor: float) -> CanvasStroke:
    return CanvasStroke(color=stroke.color, width=stroke.width * factor)


_NO_STROKE_WIDTH = 0.0


def emit_command_stroke(
    out: List[str],
    cache: GraphicsStateCache,
    fmt: FloatFormatter,
    mapping: RenderMapping,
    current: CanvasTransform,
    command: CanvasCommand,
    stroke_scale: float,
) -> None:
    """Stroke part of a geometry command only; fills are a separate pass."""
    factor = mapping.scale * stroke_scale
    if isinstance(command, LineCommand):
        a = map_point(command.x0, command.y0, current, mapping)
        b = map_point(command.x1, command.y1, current, mapping)
        append_line(out, cache, fmt, a, b, _scaled_stroke(command.stroke, factor))
    elif isinstance(command, PolylineCommand):
        append_polyline(out, cache, fmt, _mapped(command.points, current, mapping), _scaled_stroke(command.stroke, factor))
    elif isinstance(command, PolygonCommand):
        append_polygon(out, cache, fmt, _mapped(command.points, current, mapping), _scaled_stroke(command.stroke, factor), None)
    elif isinstance(command, RectangleCommand):
        origin, w, h = _mapped_rect(command, current, mapping)
        append_rectangle(out, cache, fmt, origin, w, h, _scaled_stroke(command.stroke, factor), None)
    elif isinstance(command, CircleCommand):
        center = map_point(command.cx, command.cy, current, mapping)
        radius = command.radius * current.scale * mapping.scale
        append_circle(out, cache, fmt, center, radius, _scaled_stroke(command.stroke, factor), None)


def emit_command_fill(
    out: List[str],
    cache: GraphicsStateCache,
    fmt: FloatFormatter,
    mapping: RenderMapping,
    current: CanvasTransform,
    command: CanvasCommand,
) -> None:
    """Fill part of a geometry command with the outline suppressed."""
    fill = getattr(command, "fill", None)
    if fill is None:
        return
    no_stroke = CanvasStroke(color=command.stroke.color, width=_NO_STROKE_WIDTH)
    if isinstance(command, PolygonCommand):
        append_polygon(out, cache, fmt, _mapped(command.points, current, mapping), no_stroke, fill)
    elif isinstance(command, RectangleCommand):
        origin, w, h = _mapped_rect(command, current, mapping)
        append_rectangle(out, cache, fmt, origin, w, h, no_stroke, fill)
    elif isinstance(command, CircleCommand):
        center = map_point(command.cx, command.cy, current, mapping)
        radius = command.radius * current.scale * mapping.scale
        append_circle(out, cache, fmt, center, radius, no_stroke, fill)


def _mapped_rect(command: RectangleCommand, current: CanvasTransform, mapping: RenderMapping):
    origin = map_point(command.x, command.y, current, mapping)
    w = command.w * current.scale * mapping.scale
    h = command.h * current.scale * mapping.scale
    if mapping.flip_y:
        h = -h
    return origin, w, h
