from __future__ import annotations

from stageplan.canvas import (
    CanvasColor,
    CanvasFill,
    CanvasStroke,
    CanvasTextStyle,
    CanvasTransform,
    CommandBuffer,
    MultiCanvas,
    RecordingCanvas,
    Transform2D,
)
from stageplan.canvas.commands import (
    BeginSymbolCommand,
    CircleCommand,
    EndSymbolCommand,
    LineCommand,
    PlaceSymbolCommand,
    PolygonCommand,
    RectangleCommand,
    RestoreCommand,
    SaveCommand,
    SymbolInstanceCommand,
    TextCommand,
    is_barrier,
    metadata_for,
)
from stageplan.canvas.replay import replay_command_buffer, transform_geometry
from stageplan.symbols.cache import SymbolBounds, SymbolDefinition, SymbolKey


RED = CanvasStroke(CanvasColor(1.0, 0.0, 0.0), 2.0)


def _draw_sample(canvas) -> None:
    canvas.save()
    canvas.set_source_key("a")
    canvas.draw_line(0, 0, 1, 1, RED)
    canvas.draw_polygon([0, 0, 1, 0, 1, 1], RED, CanvasFill(CanvasColor(0.0, 1.0, 0.0)))
    canvas.set_transform(CanvasTransform(2.0, 1.0, 1.0))
    canvas.set_source_key("b")
    canvas.draw_circle(0, 0, 0.5, RED)
    canvas.draw_text(0, 0, "hi", CanvasTextStyle())
    canvas.restore()


def test_recording_keeps_order_and_sources() -> None:
    rec = RecordingCanvas()
    rec.begin_frame()
    _draw_sample(rec)
    rec.end_frame()

    buf = rec.buffer
    assert len(buf.commands) == len(buf.sources) == len(buf.metadata)
    assert isinstance(buf.commands[0], SaveCommand)
    assert isinstance(buf.commands[-1], RestoreCommand)
    assert buf.sources[1:3] == ["a", "a"]
    assert buf.sources[4:6] == ["b", "b"]
    assert buf.metadata[2].has_stroke and buf.metadata[2].has_fill
    assert not buf.metadata[1].has_fill


def test_replay_into_recorder_reproduces_buffer() -> None:
    rec = RecordingCanvas()
    rec.begin_frame()
    _draw_sample(rec)
    rec.end_frame()

    copy = RecordingCanvas()
    copy.begin_frame()
    replay_command_buffer(rec.buffer, copy)
    copy.end_frame()

    assert copy.buffer.commands == rec.buffer.commands
    assert copy.buffer.sources == rec.buffer.sources
    assert copy.buffer.metadata == rec.buffer.metadata


def test_begin_frame_resets_buffer() -> None:
    rec = RecordingCanvas()
    rec.begin_frame()
    assert rec.in_frame
    rec.draw_line(0, 0, 1, 1, RED)
    rec.end_frame()
    rec.begin_frame()
    rec.end_frame()
    assert rec.buffer.is_empty()
    assert not rec.in_frame
    assert rec.buffer.current_source_key == "unknown"


def test_malformed_nesting_is_tolerated() -> None:
    rec = RecordingCanvas()
    rec.begin_frame()
    rec.begin_frame()
    rec.restore()
    rec.end_symbol("never-opened")
    rec.begin_symbol("outer")
    rec.begin_symbol("inner")
    rec.draw_line(0, 0, 1, 0, RED)
    rec.end_symbol("inner")
    rec.end_symbol("outer")
    rec.end_frame()

    kinds = [type(c) for c in rec.buffer.commands]
    assert kinds == [BeginSymbolCommand, LineCommand, EndSymbolCommand]
    assert list(rec.symbols) == ["outer"]
    assert len(rec.symbols["outer"]) == 1


def test_first_symbol_capture_wins() -> None:
    rec = RecordingCanvas()
    rec.begin_frame()
    rec.begin_symbol("k")
    rec.draw_line(0, 0, 1, 0, RED)
    rec.end_symbol("k")
    rec.begin_symbol("k")
    rec.draw_circle(0, 0, 1, RED)
    rec.end_symbol("k")
    rec.place_symbol("k", CanvasTransform(1.0, 3.0, 4.0))
    rec.end_frame()

    assert isinstance(rec.symbols["k"].commands[0], LineCommand)
    assert isinstance(rec.buffer.commands[-1], PlaceSymbolCommand)


def test_barrier_classification() -> None:
    assert is_barrier(TextCommand(0, 0, "x"))
    assert is_barrier(SymbolInstanceCommand(1))
    assert not is_barrier(LineCommand(0, 0, 1, 1))
    meta = metadata_for(CircleCommand(0, 0, 1, CanvasStroke(width=0.0), CanvasFill()))
    assert meta.has_fill and not meta.has_stroke


def test_multi_canvas_forwards_to_every_canvas() -> None:
    a, b = RecordingCanvas(), RecordingCanvas()
    multi = MultiCanvas([a])
    multi.add_canvas(b)
    multi.begin_frame()
    _draw_sample(multi)
    multi.end_frame()
    assert a.buffer.commands == b.buffer.commands
    assert len(a.buffer) == 7


def test_replay_expands_instances_with_snapshot() -> None:
    local = CommandBuffer()
    local.append(LineCommand(0.0, 0.0, 1.0, 0.0, RED))
    definition = SymbolDefinition(SymbolKey("m"), 1, SymbolBounds(0, 0, 1, 0), local)

    buf = CommandBuffer()
    buf.append(SymbolInstanceCommand(1, Transform2D.from_placement(5.0, 5.0, 90.0)), source="fixture:1")
    buf.append(SymbolInstanceCommand(99, Transform2D()), source="fixture:2")

    rec = RecordingCanvas()
    rec.begin_frame()
    replay_command_buffer(buf, rec, symbols={1: definition})
    rec.end_frame()

    assert len(rec.buffer) == 1
    line = rec.buffer.commands[0]
    assert abs(line.x1 - 5.0) < 1e-9 and abs(line.y1 - 6.0) < 1e-9
    assert rec.buffer.sources == ["fixture:1"]


def test_transform_geometry_rectangle_becomes_polygon() -> None:
    out = transform_geometry(RectangleCommand(0, 0, 2, 1), Transform2D.from_placement(0, 0, 90.0))
    assert isinstance(out, PolygonCommand)
    assert len(out.points) == 8
