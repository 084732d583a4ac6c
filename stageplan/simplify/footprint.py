from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from stageplan.canvas.commands import (
    CanvasCommand,
    CanvasFill,
    CanvasStroke,
    CircleCommand,
    LineCommand,
    Point2,
    PolygonCommand,
    PolylineCommand,
    RectangleCommand,
    flatten_points,
    metadata_for,
    point_pairs,
)
from stageplan.simplify.hull import convex_hull, signed_area


# Segment count used when a circle contributes vertices to a run.
CIRCLE_SAMPLE_SEGMENTS = 16

# Relative width/height difference below which a run is drawn as a circle.
# Empirical and tunable.
CIRCLE_ASPECT_TOLERANCE = 0.1

# Hull area over oriented box area below which the hull outline is kept.
# Empirical and tunable.
HULL_AREA_RATIO = 0.6

# Degeneracy epsilon for extents and covariance.
EPS = 1e-9


class FootprintShape(Enum):
    CIRCLE = "circle"
    RECTANGLE = "rectangle"
    HULL = "hull"


@dataclass(frozen=True)
class FootprintMeasure:
    center: Point2
    angle: float
    width: float
    height: float
    hull: Tuple[Point2, ...]
    hull_area: float

    def axes(self) -> Tuple[Point2, Point2]:
        cs, sn = math.cos(self.angle), math.sin(self.angle)
        return (cs, sn), (-sn, cs)

    def to_world(self, u: float, v: float) -> Point2:
        (ax, ay), (px, py) = self.axes()
        return (self.center[0] + u * ax + v * px, self.center[1] + u * ay + v * py)


@dataclass(frozen=True)
class FootprintTemplate:
    kind: FootprintShape
    ref_width: float
    ref_height: float
    # Canonical hull in unit box coordinates, only for HULL.
    hull: Tuple[Point2, ...]
    stroke: CanvasStroke
    fill: Optional[CanvasFill]


def _circle_samples(cx: float, cy: float, radius: float) -> List[Point2]:
    n = CIRCLE_SAMPLE_SEGMENTS
    return [
        (cx + radius * math.cos(2.0 * math.pi * i / n), cy + radius * math.sin(2.0 * math.pi * i / n))
        for i in range(n)
    ]


def collect_run_points(commands: Sequence[CanvasCommand]) -> np.ndarray:
    pts: List[Point2] = []
    for cmd in commands:
        if isinstance(cmd, LineCommand):
            pts.append((cmd.x0, cmd.y0))
            pts.append((cmd.x1, cmd.y1))
        elif isinstance(cmd, (PolylineCommand, PolygonCommand)):
            pts.extend(point_pairs(cmd.points))
        elif isinstance(cmd, RectangleCommand):
            pts.extend(
                [
                    (cmd.x, cmd.y),
                    (cmd.x + cmd.w, cmd.y),
                    (cmd.x + cmd.w, cmd.y + cmd.h),
                    (cmd.x, cmd.y + cmd.h),
                ]
            )
        elif isinstance(cmd, CircleCommand):
            pts.extend(_circle_samples(cmd.cx, cmd.cy, cmd.radius))
    if not pts:
        return np.zeros((0, 2), dtype=float)
    return np.asarray(pts, dtype=float)


def _principal_angle(centered: np.ndarray) -> float:
    cov = centered.T @ centered / float(len(centered))
    trace = float(cov[0, 0] + cov[1, 1])
    if trace <= EPS:
        return 0.0
    evals, evecs = np.linalg.eigh(cov)
    if float(evals[1] - evals[0]) <= EPS * trace:
        return 0.0
    vx, vy = float(evecs[0, 1]), float(evecs[1, 1])
    angle = math.atan2(vy, vx)
    # v and -v describe the same axis; keep the angle in (-pi/2, pi/2].
    if angle <= -math.pi / 2.0:
        angle += math.pi
    elif angle > math.pi / 2.0:
        angle -= math.pi
    return angle


def _skew(values: np.ndarray) -> float:
    """Third moment of a projection, zeroed when it is too small to orient by."""
    m3 = float(np.sum(values ** 3))
    scale = float(np.sum(values ** 2)) ** 1.5
    if abs(m3) <= 1e-6 * scale:
        return 0.0
    return m3


def measure_footprint(points: np.ndarray) -> Optional[FootprintMeasure]:
    """Oriented extent and hull of a vertex cloud, or None when degenerate."""
    pts = np.asarray(points, dtype=float).reshape(-1, 2)
    if len(pts) < 3:
        return None
    centroid = pts.mean(axis=0)
    centered = pts - centroid
    angle = _principal_angle(centered)
    axis = np.array([math.cos(angle), math.sin(angle)])
    perp = np.array([-math.sin(angle), math.cos(angle)])
    u = centered @ axis
    v = centered @ perp
    # The eigenvector fixes the axis only up to sign. Point it along the
    # skew of the cloud so a rotated copy measures the rotated frame.
    skew = _skew(u)
    if skew == 0.0:
        skew = _skew(v)
    if skew < 0.0:
        angle = angle + math.pi if angle <= 0.0 else angle - math.pi
        axis, perp = -axis, -perp
        u, v = -u, -v
    width = float(u.max() - u.min())
    height = float(v.max() - v.min())
    if width <= EPS or height <= EPS:
        return None

    hull = convex_hull([(float(x), float(y)) for x, y in pts])
    if len(hull) < 3:
        return None

    cu = 0.5 * float(u.max() + u.min())
    cv = 0.5 * float(v.max() + v.min())
    center = centroid + cu * axis + cv * perp
    return FootprintMeasure(
        center=(float(center[0]), float(center[1])),
        angle=angle,
        width=width,
        height=height,
        hull=tuple(hull),
        hull_area=abs(signed_area(hull)),
    )


def classify_footprint(measure: FootprintMeasure) -> FootprintShape:
    longest = max(measure.width, measure.height)
    if abs(measure.width - measure.height) / longest < CIRCLE_ASPECT_TOLERANCE:
        return FootprintShape.CIRCLE
    rect_area = measure.width * measure.height
    if rect_area > EPS and measure.hull_area / rect_area < HULL_AREA_RATIO:
        return FootprintShape.HULL
    return FootprintShape.RECTANGLE


def _run_style(commands: Sequence[CanvasCommand]) -> Tuple[CanvasStroke, Optional[CanvasFill]]:
    stroke: Optional[CanvasStroke] = None
    fill: Optional[CanvasFill] = None
    for cmd in commands:
        meta = metadata_for(cmd)
        if stroke is None and meta.has_stroke:
            stroke = cmd.stroke
        if fill is None and meta.has_fill:
            fill = cmd.fill
    if stroke is None:
        stroke = CanvasStroke(width=0.0)
    return stroke, fill


def build_template(measure: FootprintMeasure, commands: Sequence[CanvasCommand]) -> FootprintTemplate:
    kind = classify_footprint(measure)
    hull: Tuple[Point2, ...] = ()
    if kind is FootprintShape.HULL:
        (ax, ay), (px, py) = measure.axes()
        cx, cy = measure.center
        hull = tuple(
            (
                ((x - cx) * ax + (y - cy) * ay) / measure.width,
                ((x - cx) * px + (y - cy) * py) / measure.height,
            )
            for x, y in measure.hull
        )
    stroke, fill = _run_style(commands)
    return FootprintTemplate(
        kind=kind,
        ref_width=measure.width,
        ref_height=measure.height,
        hull=hull,
        stroke=stroke,
        fill=fill,
    )


def emit_footprint(template: FootprintTemplate, measure: FootprintMeasure) -> CanvasCommand:
    """Place the template's shape class at the measured position and extent."""
    if template.kind is FootprintShape.CIRCLE:
        return CircleCommand(
            cx=measure.center[0],
            cy=measure.center[1],
            radius=0.5 * max(measure.width, measure.height),
            stroke=template.stroke,
            fill=template.fill,
        )
    if template.kind is FootprintShape.HULL:
        local = [(u * measure.width, v * measure.height) for u, v in template.hull]
    else:
        hw = 0.5 * measure.width
        hh = 0.5 * measure.height
        local = [(-hw, -hh), (hw, -hh), (hw, hh), (-hw, hh)]
    world = [measure.to_world(u, v) for u, v in local]
    return PolygonCommand(points=flatten_points(world), stroke=template.stroke, fill=template.fill)


class FootprintSimplifier:
    """
    Collapses a run of same-source primitives into one shape.

    The shape class is decided once per source key and reused; size, angle and
    position are measured again for every run.
    """

    def __init__(self) -> None:
        self._templates: Dict[str, FootprintTemplate] = {}
        self.hits = 0
        self.misses = 0

    def reset(self) -> None:
        self._templates.clear()
        self.hits = 0
        self.misses = 0

    def template_for(self, source_key: str) -> Optional[FootprintTemplate]:
        return self._templates.get(source_key)

    def simplify(self, source_key: str, commands: Sequence[CanvasCommand]) -> List[CanvasCommand]:
        measure = measure_footprint(collect_run_points(commands))
        if measure is None:
            return list(commands)
        template = self._templates.get(source_key)
        if template is None:
            template = build_template(measure, commands)
            self._templates[source_key] = template
            self.misses += 1
        else:
            self.hits += 1
        return [emit_footprint(template, measure)]
