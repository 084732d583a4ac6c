from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence

import matplotlib
matplotlib.use("Agg")  # headless-safe for servers/CI
import matplotlib.pyplot as plt  # noqa: E402
from matplotlib import patheffects  # noqa: E402
from matplotlib.patches import Circle, Polygon, Rectangle  # noqa: E402

from stageplan.canvas.commands import (  # noqa: E402
    CanvasColor,
    CanvasCommand,
    CanvasFill,
    CanvasStroke,
    CanvasTextStyle,
    CanvasTransform,
    CircleCommand,
    CommandBuffer,
    HorizontalAlign,
    LineCommand,
    PolygonCommand,
    PolylineCommand,
    RectangleCommand,
    Transform2D,
    VerticalAlign,
    is_geometry,
    point_pairs,
)
from stageplan.canvas.replay import replay_command_buffer, transform_geometry  # noqa: E402
from stageplan.render.mapping import PDF_POINTS_PER_PIXEL  # noqa: E402
from stageplan.symbols.cache import SymbolDefinition  # noqa: E402

LOGGER = logging.getLogger(__name__)

_HA = {HorizontalAlign.LEFT: "left", HorizontalAlign.CENTER: "center", HorizontalAlign.RIGHT: "right"}
_VA = {
    VerticalAlign.BASELINE: "baseline",
    VerticalAlign.MIDDLE: "center",
    VerticalAlign.TOP: "top",
    VerticalAlign.BOTTOM: "bottom",
}


def _rgba(color: CanvasColor):
    return color.to_tuple()


class MatplotlibCanvas:
    """
    Immediate canvas drawing straight onto a matplotlib ``Axes``.

    Stroke widths are screen pixels and become points. Commands between
    ``begin_symbol`` and ``end_symbol`` are kept aside and drawn only when the
    key is placed. Symbol instances need a snapshot to be drawn.
    """

    def __init__(self, ax, symbols: Optional[Mapping[int, SymbolDefinition]] = None) -> None:
        self.ax = ax
        self.symbols = symbols
        self._transform = CanvasTransform()
        self._stack: List[CanvasTransform] = []
        self._symbol_key: Optional[str] = None
        self._captured: Dict[str, List[CanvasCommand]] = {}
        self._z = 0

    def begin_frame(self) -> None:
        self._transform = CanvasTransform()
        self._stack.clear()
        self._symbol_key = None
        self._captured.clear()
        self._z = 0

    def end_frame(self) -> None:
        self._symbol_key = None

    def save(self) -> None:
        self._stack.append(self._transform)

    def restore(self) -> None:
        if self._stack:
            self._transform = self._stack.pop()

    def set_transform(self, transform: CanvasTransform) -> None:
        self._transform = transform

    def set_source_key(self, key: str) -> None:
        pass

    def begin_symbol(self, key: str) -> None:
        if self._symbol_key is None:
            self._symbol_key = key
            self._captured.setdefault(key, [])

    def end_symbol(self, key: str) -> None:
        if self._symbol_key == key:
            self._symbol_key = None

    def place_symbol(self, key: str, transform: CanvasTransform) -> None:
        commands = self._captured.get(key)
        if commands is None:
            LOGGER.debug("place_symbol('%s') without a captured definition", key)
            return
        self._draw_local(commands, Transform2D.from_canvas(transform))

    def place_symbol_instance(self, symbol_id: int, transform: Transform2D) -> None:
        definition = self.symbols.get(symbol_id) if self.symbols is not None else None
        if definition is None:
            return
        self._draw_local(definition.local_commands.commands, transform)

    def draw_line(self, x0: float, y0: float, x1: float, y1: float, stroke: CanvasStroke) -> None:
        self._geometry(LineCommand(x0, y0, x1, y1, stroke))

    def draw_polyline(self, points: Sequence[float], stroke: CanvasStroke) -> None:
        self._geometry(PolylineCommand(tuple(points), stroke))

    def draw_polygon(self, points: Sequence[float], stroke: CanvasStroke, fill: Optional[CanvasFill] = None) -> None:
        self._geometry(PolygonCommand(tuple(points), stroke, fill))

    def draw_rectangle(
        self,
        x: float,
        y: float,
        w: float,
        h: float,
        stroke: CanvasStroke,
        fill: Optional[CanvasFill] = None,
    ) -> None:
        self._geometry(RectangleCommand(x, y, w, h, stroke, fill))

    def draw_circle(
        self,
        cx: float,
        cy: float,
        radius: float,
        stroke: CanvasStroke,
        fill: Optional[CanvasFill] = None,
    ) -> None:
        self._geometry(CircleCommand(cx, cy, radius, stroke, fill))

    def draw_text(self, x: float, y: float, text: str, style: CanvasTextStyle) -> None:
        if self._symbol_key is not None:
            return
        px, py = self._transform.apply(x, y)
        effects = None
        if style.outline_width > 0.0:
            effects = [
                patheffects.withStroke(
                    linewidth=style.outline_width * 2.0 * PDF_POINTS_PER_PIXEL,
                    foreground=_rgba(style.outline_color),
                )
            ]
        self.ax.text(
            px,
            py,
            text,
            fontsize=style.font_size * PDF_POINTS_PER_PIXEL,
            color=_rgba(style.color),
            ha=_HA[style.h_align],
            va=_VA[style.v_align],
            family="sans-serif",
            fontweight="bold" if "bold" in style.font_family.lower() else "normal",
            path_effects=effects,
            zorder=self._next_z(),
        )

    def _next_z(self) -> int:
        self._z += 1
        return self._z

    def _geometry(self, command: CanvasCommand) -> None:
        if self._symbol_key is not None:
            self._captured[self._symbol_key].append(command)
            return
        self._paint(transform_geometry(command, Transform2D.from_canvas(self._transform)))

    def _draw_local(self, commands: Sequence[CanvasCommand], placement: Transform2D) -> None:
        t = placement.then(Transform2D.from_canvas(self._transform))
        for command in commands:
            if is_geometry(command):
                self._paint(transform_geometry(command, t))

    def _paint(self, command: CanvasCommand) -> None:
        z = self._next_z()
        lw = command.stroke.width * PDF_POINTS_PER_PIXEL
        edge = _rgba(command.stroke.color)
        if isinstance(command, LineCommand):
            self.ax.plot([command.x0, command.x1], [command.y0, command.y1], color=edge, linewidth=lw, zorder=z)
            return
        if isinstance(command, PolylineCommand):
            pts = point_pairs(command.points)
            if len(pts) < 2:
                return
            self.ax.plot([p[0] for p in pts], [p[1] for p in pts], color=edge, linewidth=lw, zorder=z)
            return

        face = _rgba(command.fill.color) if command.fill is not None else "none"
        if command.stroke.width <= 0.0:
            edge = "none"
        if isinstance(command, PolygonCommand):
            pts = point_pairs(command.points)
            if len(pts) < 3:
                return
            patch = Polygon(pts, closed=True, facecolor=face, edgecolor=edge, linewidth=lw, zorder=z)
        elif isinstance(command, RectangleCommand):
            patch = Rectangle((command.x, command.y), command.w, command.h, facecolor=face, edgecolor=edge, linewidth=lw, zorder=z)
        else:
            patch = Circle((command.cx, command.cy), command.radius, facecolor=face, edgecolor=edge, linewidth=lw, zorder=z)
        self.ax.add_patch(patch)


def render_preview_png(
    buffer: CommandBuffer,
    outpath: Path,
    symbols: Optional[Mapping[int, SymbolDefinition]] = None,
    dpi: int = 150,
) -> Path:
    """Replay a captured buffer onto a matplotlib figure and save it as PNG."""
    outpath = Path(outpath).expanduser().resolve()
    outpath.parent.mkdir(parents=True, exist_ok=True)

    fig = plt.figure(figsize=(8, 8))
    ax = fig.add_subplot(111)
    ax.set_aspect("equal")
    ax.set_axis_off()
    canvas = MatplotlibCanvas(ax, symbols=symbols)
    canvas.begin_frame()
    replay_command_buffer(buffer, canvas)
    canvas.end_frame()
    ax.autoscale_view()
    fig.tight_layout()
    fig.savefig(outpath, dpi=dpi)
    plt.close(fig)
    return outpath
