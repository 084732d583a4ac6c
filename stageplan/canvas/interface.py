from __future__ import annotations

from typing import Optional, Protocol, Sequence

from stageplan.canvas.commands import (
    CanvasFill,
    CanvasStroke,
    CanvasTextStyle,
    CanvasTransform,
    Transform2D,
)


class Canvas(Protocol):
    """
    A 2D drawing surface in model space.

    Implementations may draw immediately, record commands or forward calls.
    Malformed nesting (extra ``restore``, mismatched ``end_symbol``) must be
    tolerated without raising.
    """

    def begin_frame(self) -> None: ...

    def end_frame(self) -> None: ...

    def save(self) -> None: ...

    def restore(self) -> None: ...

    def set_transform(self, transform: CanvasTransform) -> None: ...

    def set_source_key(self, key: str) -> None: ...

    def begin_symbol(self, key: str) -> None: ...

    def end_symbol(self, key: str) -> None: ...

    def place_symbol(self, key: str, transform: CanvasTransform) -> None: ...

    def place_symbol_instance(self, symbol_id: int, transform: Transform2D) -> None: ...

    def draw_line(self, x0: float, y0: float, x1: float, y1: float, stroke: CanvasStroke) -> None: ...

    def draw_polyline(self, points: Sequence[float], stroke: CanvasStroke) -> None: ...

    def draw_polygon(self, points: Sequence[float], stroke: CanvasStroke, fill: Optional[CanvasFill] = None) -> None: ...

    def draw_rectangle(
        self,
        x: float,
        y: float,
        w: float,
        h: float,
        stroke: CanvasStroke,
        fill: Optional[CanvasFill] = None,
    ) -> None: ...

    def draw_circle(
        self,
        cx: float,
        cy: float,
        radius: float,
        stroke: CanvasStroke,
        fill: Optional[CanvasFill] = None,
    ) -> None: ...

    def draw_text(self, x: float, y: float, text: str, style: CanvasTextStyle) -> None: ...
