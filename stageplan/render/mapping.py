from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

from stageplan.canvas.commands import CanvasTransform, Point2
from stageplan.symbols.cache import SymbolViewKind


# Screen pixels per model meter at zoom 1.
PIXELS_PER_METER = 25.0

# Screen pixels are 1/96 inch, PDF points 1/72 inch.
PDF_POINTS_PER_PIXEL = 72.0 / 96.0


@dataclass(frozen=True)
class ViewState:
    viewport_width: int
    viewport_height: int
    zoom: float = 1.0
    offset_pixels_x: float = 0.0
    offset_pixels_y: float = 0.0
    view_kind: SymbolViewKind = SymbolViewKind.TOP


@dataclass(frozen=True)
class ViewBounds:
    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y


@dataclass(frozen=True)
class RenderMapping:
    """Model -> target mapping: uniform scale, then offsets; optional Y flip."""

    min_x: float = 0.0
    min_y: float = 0.0
    scale: float = 1.0
    offset_x: float = 0.0
    offset_y: float = 0.0
    draw_height: float = 0.0
    flip_y: bool = False

    def map(self, x: float, y: float) -> Point2:
        px = self.offset_x + (x - self.min_x) * self.scale
        if self.flip_y:
            py = self.offset_y + self.draw_height - (y - self.min_y) * self.scale
        else:
            py = self.offset_y + (y - self.min_y) * self.scale
        return (px, py)

    def shifted(self, dx: float, dy: float) -> "RenderMapping":
        return RenderMapping(
            min_x=self.min_x,
            min_y=self.min_y,
            scale=self.scale,
            offset_x=self.offset_x + dx,
            offset_y=self.offset_y + dy,
            draw_height=self.draw_height,
            flip_y=self.flip_y,
        )


def zoom_is_valid(zoom: float) -> bool:
    return math.isfinite(zoom) and zoom > 0.0


def compute_view_bounds(view: ViewState) -> Optional[ViewBounds]:
    """Visible model rectangle of a viewport, or None when the view is not usable."""
    if view.viewport_width <= 0 or view.viewport_height <= 0:
        return None
    if not zoom_is_valid(float(view.zoom)):
        return None
    ppm = PIXELS_PER_METER * float(view.zoom)
    half_w = float(view.viewport_width) / ppm * 0.5
    half_h = float(view.viewport_height) / ppm * 0.5
    off_x = float(view.offset_pixels_x) / PIXELS_PER_METER
    off_y = float(view.offset_pixels_y) / PIXELS_PER_METER
    bounds = ViewBounds(-half_w - off_x, -half_h - off_y, half_w - off_x, half_h - off_y)
    if bounds.width <= 0.0 or bounds.height <= 0.0:
        return None
    return bounds


def build_view_mapping(
    view: ViewState,
    target_width: float,
    target_height: float,
    margin: float = 0.0,
    flip_y: bool = False,
) -> Optional[RenderMapping]:
    """Fit the visible view into the target rectangle minus margins, centered."""
    bounds = compute_view_bounds(view)
    if bounds is None:
        return None
    if target_width <= 0.0 or target_height <= 0.0:
        return None
    draw_w = target_width - margin * 2.0
    draw_h = target_height - margin * 2.0
    if draw_w <= 0.0 or draw_h <= 0.0:
        return None
    scale = min(draw_w / bounds.width, draw_h / bounds.height)
    return RenderMapping(
        min_x=bounds.min_x,
        min_y=bounds.min_y,
        scale=scale,
        offset_x=margin + (draw_w - bounds.width * scale) * 0.5,
        offset_y=margin + (draw_h - bounds.height * scale) * 0.5,
        draw_height=bounds.height * scale,
        flip_y=flip_y,
    )


def map_point(x: float, y: float, current: CanvasTransform, mapping: RenderMapping) -> Point2:
    ax, ay = current.apply(x, y)
    return mapping.map(ax, ay)
