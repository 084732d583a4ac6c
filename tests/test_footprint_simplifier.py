from __future__ import annotations

import math

from stageplan.canvas import CanvasColor, CanvasFill, CanvasStroke, RecordingCanvas
from stageplan.canvas.commands import CircleCommand, LineCommand, PolygonCommand, PolylineCommand, RectangleCommand, point_pairs
from stageplan.simplify import FootprintShape, FootprintSimplifier, convex_hull, signed_area
from stageplan.simplify.footprint import classify_footprint, collect_run_points, measure_footprint


STROKE = CanvasStroke(CanvasColor(0.1, 0.1, 0.1), 1.0)
FILL = CanvasFill(CanvasColor(0.5, 0.5, 0.5))


def _extent(points):
    xs = [p[0] for p in points]
    ys = [p[1] for p in points]
    return max(xs) - min(xs), max(ys) - min(ys)


def test_square_run_becomes_circle() -> None:
    simp = FootprintSimplifier()
    out = simp.simplify("fx", [RectangleCommand(-1, -1, 2, 2, STROKE, FILL), CircleCommand(0, 0, 0.5, STROKE)])
    assert len(out) == 1
    circle = out[0]
    assert isinstance(circle, CircleCommand)
    assert abs(circle.cx) < 1e-9 and abs(circle.cy) < 1e-9
    assert circle.fill == FILL and circle.stroke == STROKE


def test_elongated_run_becomes_rectangle() -> None:
    simp = FootprintSimplifier()
    out = simp.simplify("fx", [RectangleCommand(0, 0, 4, 1, STROKE), LineCommand(1, 0.5, 3, 0.5, STROKE)])
    assert len(out) == 1
    poly = out[0]
    assert isinstance(poly, PolygonCommand)
    pts = point_pairs(poly.points)
    assert len(pts) == 4
    w, h = _extent(pts)
    assert abs(w - 4.0) < 1e-6 and abs(h - 1.0) < 1e-6


def test_sparse_run_keeps_hull_outline() -> None:
    tri = PolygonCommand((0.0, 0.0, 4.0, 0.0, 0.0, 1.0), STROKE, FILL)
    measure = measure_footprint(collect_run_points([tri]))
    assert measure is not None
    assert classify_footprint(measure) is FootprintShape.HULL

    out = FootprintSimplifier().simplify("fx", [tri])
    assert len(point_pairs(out[0].points)) == 3
    assert abs(abs(signed_area(point_pairs(out[0].points))) - 2.0) < 1e-6


def test_colinear_run_is_returned_unchanged() -> None:
    run = [
        LineCommand(0, 0, 1, 0, STROKE),
        PolylineCommand((1.0, 0.0, 2.0, 0.0, 3.0, 0.0), STROKE),
    ]
    simp = FootprintSimplifier()
    assert simp.simplify("wire", run) == run
    assert simp.template_for("wire") is None


def test_shape_class_is_reused_per_source() -> None:
    simp = FootprintSimplifier()
    simp.simplify("fx", [RectangleCommand(0, 0, 4, 1, STROKE)])
    # Nearly square, but the source already decided on a rectangle.
    out = simp.simplify("fx", [RectangleCommand(10, 10, 2, 1.9, STROKE)])
    assert isinstance(out[0], PolygonCommand)
    assert simp.hits == 1 and simp.misses == 1


def test_rotated_rectangle_is_measured_along_its_axis() -> None:
    angle = math.radians(30.0)
    cs, sn = math.cos(angle), math.sin(angle)
    corners = [(-2, -0.5), (2, -0.5), (2, 0.5), (-2, 0.5)]
    rotated = [(x * cs - y * sn, x * sn + y * cs) for x, y in corners]
    flat = tuple(v for p in rotated for v in p)
    measure = measure_footprint(collect_run_points([PolygonCommand(flat, STROKE)]))
    assert measure is not None
    assert abs(measure.width - 4.0) < 1e-6
    assert abs(measure.height - 1.0) < 1e-6


def test_simplification_is_idempotent() -> None:
    simp = FootprintSimplifier()
    once = simp.simplify("fx", [RectangleCommand(0, 0, 4, 1, STROKE), CircleCommand(2, 0.5, 0.3, STROKE)])
    twice = FootprintSimplifier().simplify("fx", once)
    a = point_pairs(once[0].points)
    b = point_pairs(twice[0].points)
    assert len(a) == len(b)
    wa, ha = _extent(a)
    wb, hb = _extent(b)
    assert abs(wa - wb) < 1e-6 and abs(ha - hb) < 1e-6


def test_cached_shape_matches_first_result_for_same_run() -> None:
    run = [RectangleCommand(0, 0, 4, 1, STROKE, FILL), CircleCommand(2, 0.5, 0.3, STROKE)]
    simp = FootprintSimplifier()
    first = simp.simplify("fx", run)
    kind = simp.template_for("fx").kind
    second = simp.simplify("fx", run)
    assert second == first
    assert simp.template_for("fx").kind is kind
    assert simp.hits == 1 and simp.misses == 1


def _sorted_vertices(command):
    return sorted((round(x, 6), round(y, 6)) for x, y in point_pairs(command.points))


def test_cached_hull_follows_half_turn_of_later_instance() -> None:
    tri = [(0.0, 0.0), (4.0, 0.0), (0.0, 1.0)]
    # Half turn about (10, 10).
    turned = [(20.0 - x, 20.0 - y) for x, y in tri]
    simp = FootprintSimplifier()

    first = simp.simplify("fx", [PolygonCommand(tuple(v for p in tri for v in p), STROKE, FILL)])
    assert simp.template_for("fx").kind is FootprintShape.HULL
    assert _sorted_vertices(first[0]) == sorted(tri)

    second = simp.simplify("fx", [PolygonCommand(tuple(v for p in turned for v in p), STROKE, FILL)])
    assert simp.hits == 1
    assert _sorted_vertices(second[0]) == sorted(turned)


def test_recording_canvas_collapses_runs_per_source() -> None:
    rec = RecordingCanvas(simplify_footprints=True)
    rec.begin_frame()
    rec.set_source_key("fixture:1")
    rec.draw_rectangle(0, 0, 4, 1, STROKE, FILL)
    rec.draw_circle(2, 0.5, 0.4, STROKE)
    rec.set_source_key("fixture:2")
    rec.draw_rectangle(10, 0, 4, 1, STROKE, FILL)
    rec.draw_line(10, 0, 14, 1, STROKE)
    rec.end_frame()

    assert rec.buffer.sources == ["fixture:1", "fixture:2"]
    assert all(isinstance(c, PolygonCommand) for c in rec.buffer.commands)


def test_convex_hull_drops_interior_points() -> None:
    hull = convex_hull([(0, 0), (2, 0), (2, 2), (0, 2), (1, 1)])
    assert len(hull) == 4
    assert signed_area(hull) > 0.0
