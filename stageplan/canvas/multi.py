from __future__ import annotations

from typing import Iterable, List, Optional, Sequence

from stageplan.canvas.commands import (
    CanvasFill,
    CanvasStroke,
    CanvasTextStyle,
    CanvasTransform,
    Transform2D,
)
from stageplan.canvas.interface import Canvas


class MultiCanvas:
    """Forwards every call to each wrapped canvas, in registration order."""

    def __init__(self, canvases: Iterable[Canvas] = ()) -> None:
        self.canvases: List[Canvas] = list(canvases)

    def add_canvas(self, canvas: Canvas) -> None:
        self.canvases.append(canvas)

    def begin_frame(self) -> None:
        for c in self.canvases:
            c.begin_frame()

    def end_frame(self) -> None:
        for c in self.canvases:
            c.end_frame()

    def save(self) -> None:
        for c in self.canvases:
            c.save()

    def restore(self) -> None:
        for c in self.canvases:
            c.restore()

    def set_transform(self, transform: CanvasTransform) -> None:
        for c in self.canvases:
            c.set_transform(transform)

    def set_source_key(self, key: str) -> None:
        for c in self.canvases:
            c.set_source_key(key)

    def begin_symbol(self, key: str) -> None:
        for c in self.canvases:
            c.begin_symbol(key)

    def end_symbol(self, key: str) -> None:
        for c in self.canvases:
            c.end_symbol(key)

    def place_symbol(self, key: str, transform: CanvasTransform) -> None:
        for c in self.canvases:
            c.place_symbol(key, transform)

    def place_symbol_instance(self, symbol_id: int, transform: Transform2D) -> None:
        for c in self.canvases:
            c.place_symbol_instance(symbol_id, transform)

    def draw_line(self, x0: float, y0: float, x1: float, y1: float, stroke: CanvasStroke) -> None:
        for c in self.canvases:
            c.draw_line(x0, y0, x1, y1, stroke)

    def draw_polyline(self, points: Sequence[float], stroke: CanvasStroke) -> None:
        for c in self.canvases:
            c.draw_polyline(points, stroke)

    def draw_polygon(self, points: Sequence[float], stroke: CanvasStroke, fill: Optional[CanvasFill] = None) -> None:
        for c in self.canvases:
            c.draw_polygon(points, stroke, fill)

    def draw_rectangle(
        self,
        x: float,
        y: float,
        w: float,
        h: float,
        stroke: CanvasStroke,
        fill: Optional[CanvasFill] = None,
    ) -> None:
        for c in self.canvases:
            c.draw_rectangle(x, y, w, h, stroke, fill)

    def draw_circle(
        self,
        cx: float,
        cy: float,
        radius: float,
        stroke: CanvasStroke,
        fill: Optional[CanvasFill] = None,
    ) -> None:
        for c in self.canvases:
            c.draw_circle(cx, cy, radius, stroke, fill)

    def draw_text(self, x: float, y: float, text: str, style: CanvasTextStyle) -> None:
        for c in self.canvases:
            c.draw_text(x, y, text, style)
