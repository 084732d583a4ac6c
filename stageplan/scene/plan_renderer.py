from __future__ import annotations

import logging
import math
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from matplotlib.colors import to_rgb

from stageplan.canvas.commands import (
    CanvasColor,
    CanvasFill,
    CanvasStroke,
    CanvasTextStyle,
    HorizontalAlign,
    Point2,
    Transform2D,
    VerticalAlign,
    flatten_points,
    is_geometry,
)
from stageplan.canvas.interface import Canvas
from stageplan.canvas.recording import RecordingCanvas
from stageplan.canvas.replay import replay_command, transform_geometry
from stageplan.pdf.layout import LegendItem
from stageplan.render.mapping import PIXELS_PER_METER, ViewState
from stageplan.symbols.cache import (
    SymbolCache,
    SymbolDefinition,
    SymbolKey,
    SymbolViewKind,
    build_symbol_definition,
)

LOGGER = logging.getLogger(__name__)

GRID_SOURCE = "grid"
SYMBOL_STYLE_VERSION = 1

LABEL_FONT_SIZE = 0.25  # meters
LABEL_GAP = 0.15


def color_from_hex(value: str) -> CanvasColor:
    r, g, b = to_rgb(value)
    return CanvasColor(r, g, b)


_OUTLINE = CanvasStroke(color_from_hex("#1b1b1b"), 1.0)
_GRID = CanvasStroke(color_from_hex("#d0d4da"), 0.5)
_TRUSS = CanvasStroke(color_from_hex("#6b6f76"), 1.0)
_TRUSS_FILL = CanvasFill(color_from_hex("#e4e6ea"))


@dataclass(frozen=True)
class FixtureModel2D:
    """A fixture type with enough size information to draw each projection."""

    model_key: str
    type_name: str
    width: float
    depth: float
    height: float
    channel_count: Optional[int] = None
    body_color: str = "#3d4b5c"
    lens_color: str = "#f2c14e"

    def extent(self, view: SymbolViewKind) -> Tuple[float, float]:
        if view in (SymbolViewKind.TOP, SymbolViewKind.BOTTOM):
            return self.width, self.depth
        if view in (SymbolViewKind.FRONT, SymbolViewKind.BACK):
            return self.width, self.height
        return self.depth, self.height

    def draw(self, canvas: Canvas, view: SymbolViewKind) -> None:
        """Draw the projection centred on the origin, in meters."""
        w, h = self.extent(view)
        body = CanvasFill(color_from_hex(self.body_color))
        lens = CanvasFill(color_from_hex(self.lens_color))
        canvas.draw_rectangle(-w / 2.0, -h / 2.0, w, h, _OUTLINE, body)
        if view in (SymbolViewKind.TOP, SymbolViewKind.BOTTOM):
            canvas.draw_circle(0.0, 0.0, min(w, h) * 0.3, _OUTLINE, lens)
            # Yoke arms.
            canvas.draw_line(-w / 2.0, 0.0, -w / 2.0 - w * 0.1, 0.0, _OUTLINE)
            canvas.draw_line(w / 2.0, 0.0, w / 2.0 + w * 0.1, 0.0, _OUTLINE)
        else:
            lens_w = w * 0.6
            canvas.draw_rectangle(-lens_w / 2.0, -h / 2.0 - h * 0.08, lens_w, h * 0.08, _OUTLINE, lens)
            canvas.draw_polyline(
                flatten_points([(-w / 2.0, h / 2.0), (0.0, h / 2.0 + h * 0.2), (w / 2.0, h / 2.0)]),
                _OUTLINE,
            )


@dataclass(frozen=True)
class Fixture2D:
    fixture_id: str
    model_key: str
    x: float
    y: float
    z: float = 0.0
    rotation_deg: float = 0.0
    label: str = ""


@dataclass(frozen=True)
class Truss2D:
    truss_id: str
    x0: float
    y0: float
    x1: float
    y1: float
    z: float = 0.0
    width: float = 0.3


@dataclass
class PlanScene:
    models: Dict[str, FixtureModel2D] = field(default_factory=dict)
    fixtures: List[Fixture2D] = field(default_factory=list)
    trusses: List[Truss2D] = field(default_factory=list)
    grid_spacing: float = 1.0

    def add_model(self, model: FixtureModel2D) -> FixtureModel2D:
        self.models[model.model_key] = model
        return model

    def bounds(self, view: SymbolViewKind = SymbolViewKind.TOP) -> Tuple[float, float, float, float]:
        pts: List[Point2] = []
        for f in self.fixtures:
            pts.append(_project(view, f.x, f.y, f.z))
        for t in self.trusses:
            pts.append(_project(view, t.x0, t.y0, t.z))
            pts.append(_project(view, t.x1, t.y1, t.z))
        if not pts:
            return (-1.0, -1.0, 1.0, 1.0)
        xs = [p[0] for p in pts]
        ys = [p[1] for p in pts]
        return (min(xs) - 1.0, min(ys) - 1.0, max(xs) + 1.0, max(ys) + 1.0)

    def legend_items(self) -> List[LegendItem]:
        counts = Counter(f.model_key for f in self.fixtures)
        items = []
        for key, count in counts.items():
            model = self.models.get(key)
            if model is None:
                continue
            items.append(LegendItem(model.type_name, count, model.channel_count, key))
        return items


def _project(view: SymbolViewKind, x: float, y: float, z: float) -> Point2:
    if view in (SymbolViewKind.TOP, SymbolViewKind.BOTTOM):
        return (x, y)
    if view in (SymbolViewKind.FRONT, SymbolViewKind.BACK):
        return (x, z)
    return (y, z)


def model_symbol(cache: SymbolCache, model: FixtureModel2D, view: SymbolViewKind) -> SymbolDefinition:
    """Cached symbol for one model projection; geometry is recorded on first use only."""

    def build(key: SymbolKey, symbol_id: int) -> SymbolDefinition:
        recorder = RecordingCanvas()
        recorder.begin_frame()
        recorder.set_source_key(f"model:{model.model_key}")
        model.draw(recorder, view)
        recorder.end_frame()
        LOGGER.debug("Built symbol %d for %s (%s)", symbol_id, model.model_key, view.value)
        return build_symbol_definition(key, symbol_id, recorder.buffer)

    return cache.get_or_create(SymbolKey(model.model_key, view, SYMBOL_STYLE_VERSION), build)


def _draw_grid(scene: PlanScene, canvas: Canvas, view: SymbolViewKind) -> None:
    spacing = scene.grid_spacing
    if spacing <= 0.0:
        return
    min_x, min_y, max_x, max_y = scene.bounds(view)
    # One key per line: a grid line is never part of a simplifiable run.
    x = math.floor(min_x / spacing) * spacing
    i = 0
    while x <= max_x:
        canvas.set_source_key(f"{GRID_SOURCE}:x{i}")
        canvas.draw_line(x, min_y, x, max_y, _GRID)
        x += spacing
        i += 1
    y = math.floor(min_y / spacing) * spacing
    i = 0
    while y <= max_y:
        canvas.set_source_key(f"{GRID_SOURCE}:y{i}")
        canvas.draw_line(min_x, y, max_x, y, _GRID)
        y += spacing
        i += 1


def _truss_outline(truss: Truss2D, view: SymbolViewKind) -> List[Point2]:
    ax, ay = _project(view, truss.x0, truss.y0, truss.z)
    bx, by = _project(view, truss.x1, truss.y1, truss.z)
    length = math.hypot(bx - ax, by - ay)
    half = truss.width / 2.0
    if length <= 0.0:
        return [(ax - half, ay - half), (ax + half, ay - half), (ax + half, ay + half), (ax - half, ay + half)]
    nx, ny = -(by - ay) / length * half, (bx - ax) / length * half
    return [(ax + nx, ay + ny), (bx + nx, by + ny), (bx - nx, by - ny), (ax - nx, ay - ny)]


def draw_plan(
    scene: PlanScene,
    canvas: Canvas,
    cache: SymbolCache,
    view: SymbolViewKind = SymbolViewKind.TOP,
    instanced: bool = True,
) -> None:
    """
    Draw the scene through ``canvas``: grid, trusses, fixtures, then labels.

    Fixtures are placed as symbol instances from ``cache``. With
    ``instanced=False`` their geometry is drawn inline instead, which is what
    the footprint simplifier collapses.
    """
    canvas.save()
    _draw_grid(scene, canvas, view)

    for truss in scene.trusses:
        canvas.set_source_key(f"truss:{truss.truss_id}")
        outline = _truss_outline(truss, view)
        canvas.draw_polygon(flatten_points(outline), _TRUSS, _TRUSS_FILL)
        canvas.draw_line(outline[0][0], outline[0][1], outline[2][0], outline[2][1], _TRUSS)

    placed: List[Tuple[Fixture2D, Point2]] = []
    for fixture in scene.fixtures:
        model = scene.models.get(fixture.model_key)
        if model is None:
            LOGGER.warning("Fixture %s uses unknown model '%s'; skipped", fixture.fixture_id, fixture.model_key)
            continue
        px, py = _project(view, fixture.x, fixture.y, fixture.z)
        rotation = fixture.rotation_deg if view in (SymbolViewKind.TOP, SymbolViewKind.BOTTOM) else 0.0
        placement = Transform2D.from_placement(px, py, rotation)
        definition = model_symbol(cache, model, view)
        canvas.set_source_key(f"fixture:{fixture.fixture_id}")
        if instanced:
            canvas.place_symbol_instance(definition.symbol_id, placement)
        else:
            for command in definition.local_commands.commands:
                if is_geometry(command):
                    replay_command(transform_geometry(command, placement), canvas)
        offset = definition.bounds.height / 2.0 + LABEL_GAP
        placed.append((fixture, (px, py - offset)))

    label_style = CanvasTextStyle(
        font_size=LABEL_FONT_SIZE,
        color=color_from_hex("#101010"),
        outline_color=CanvasColor(1.0, 1.0, 1.0),
        outline_width=0.02,
        h_align=HorizontalAlign.CENTER,
        v_align=VerticalAlign.TOP,
    )
    for fixture, (lx, ly) in placed:
        if not fixture.label:
            continue
        canvas.set_source_key(f"label:{fixture.fixture_id}")
        canvas.draw_text(lx, ly, fixture.label, label_style)
    canvas.restore()


def demo_scene(count: int = 24, per_truss: int = 12) -> PlanScene:
    """A rig of ``count`` fixtures hung on straight trusses, cycling three models."""
    scene = PlanScene()
    models = [
        scene.add_model(FixtureModel2D("spot-600", "Spot 600", 0.45, 0.35, 0.7, channel_count=24)),
        scene.add_model(FixtureModel2D("wash-19", "Wash 19", 0.4, 0.4, 0.5, channel_count=16, lens_color="#7fc8f8")),
        scene.add_model(FixtureModel2D("par-led", "LED Par", 0.25, 0.25, 0.3, channel_count=8, lens_color="#f25f5c")),
    ]
    per_truss = max(1, int(per_truss))
    spacing = 0.8
    rows = max(1, math.ceil(max(0, count) / per_truss))
    for row in range(rows):
        y = row * 3.0
        length = (per_truss - 1) * spacing
        scene.trusses.append(Truss2D(f"T{row + 1}", -0.5, y, length + 0.5, y, z=6.0))
    for i in range(max(0, count)):
        row, col = divmod(i, per_truss)
        model = models[i % len(models)]
        scene.fixtures.append(
            Fixture2D(
                fixture_id=str(i + 1),
                model_key=model.model_key,
                x=col * spacing,
                y=row * 3.0,
                z=6.0,
                rotation_deg=180.0 if row % 2 else 0.0,
                label=str(i + 1),
            )
        )
    return scene


def fit_view(
    scene: PlanScene,
    viewport: Tuple[int, int] = (1600, 1000),
    view: SymbolViewKind = SymbolViewKind.TOP,
) -> ViewState:
    """View state that centres the scene bounds in a viewport of the given pixel size."""
    min_x, min_y, max_x, max_y = scene.bounds(view)
    w = max(max_x - min_x, 1e-6)
    h = max(max_y - min_y, 1e-6)
    vw, vh = viewport
    zoom = min(vw / (PIXELS_PER_METER * w), vh / (PIXELS_PER_METER * h))
    cx = (min_x + max_x) / 2.0
    cy = (min_y + max_y) / 2.0
    return ViewState(
        viewport_width=int(vw),
        viewport_height=int(vh),
        zoom=zoom,
        offset_pixels_x=-cx * PIXELS_PER_METER,
        offset_pixels_y=-cy * PIXELS_PER_METER,
        view_kind=view,
    )
