from __future__ import annotations

from typing import Mapping, Optional

from stageplan.canvas.commands import (
    BeginSymbolCommand,
    CanvasCommand,
    CircleCommand,
    CommandBuffer,
    EndSymbolCommand,
    LineCommand,
    PlaceSymbolCommand,
    PolygonCommand,
    PolylineCommand,
    RectangleCommand,
    RestoreCommand,
    SaveCommand,
    SymbolInstanceCommand,
    TextCommand,
    Transform2D,
    TransformCommand,
    flatten_points,
    is_geometry,
    point_pairs,
)
from stageplan.canvas.interface import Canvas
from stageplan.symbols.cache import SymbolDefinition


def replay_command(command: CanvasCommand, canvas: Canvas) -> None:
    if isinstance(command, LineCommand):
        canvas.draw_line(command.x0, command.y0, command.x1, command.y1, command.stroke)
    elif isinstance(command, PolylineCommand):
        canvas.draw_polyline(command.points, command.stroke)
    elif isinstance(command, PolygonCommand):
        canvas.draw_polygon(command.points, command.stroke, command.fill)
    elif isinstance(command, RectangleCommand):
        canvas.draw_rectangle(command.x, command.y, command.w, command.h, command.stroke, command.fill)
    elif isinstance(command, CircleCommand):
        canvas.draw_circle(command.cx, command.cy, command.radius, command.stroke, command.fill)
    elif isinstance(command, TextCommand):
        canvas.draw_text(command.x, command.y, command.text, command.style)
    elif isinstance(command, SaveCommand):
        canvas.save()
    elif isinstance(command, RestoreCommand):
        canvas.restore()
    elif isinstance(command, TransformCommand):
        canvas.set_transform(command.transform)
    elif isinstance(command, BeginSymbolCommand):
        canvas.begin_symbol(command.key)
    elif isinstance(command, EndSymbolCommand):
        canvas.end_symbol(command.key)
    elif isinstance(command, PlaceSymbolCommand):
        canvas.place_symbol(command.key, command.transform)
    elif isinstance(command, SymbolInstanceCommand):
        canvas.place_symbol_instance(command.symbol_id, command.transform)


def transform_geometry(command: CanvasCommand, t: Transform2D) -> CanvasCommand:
    """Map a geometry command through an affine transform; other commands are returned as-is."""
    if isinstance(command, LineCommand):
        x0, y0 = t.apply(command.x0, command.y0)
        x1, y1 = t.apply(command.x1, command.y1)
        return LineCommand(x0, y0, x1, y1, command.stroke)
    if isinstance(command, PolylineCommand):
        return PolylineCommand(flatten_points([t.apply(x, y) for x, y in point_pairs(command.points)]), command.stroke)
    if isinstance(command, PolygonCommand):
        pts = [t.apply(x, y) for x, y in point_pairs(command.points)]
        return PolygonCommand(flatten_points(pts), command.stroke, command.fill)
    if isinstance(command, RectangleCommand):
        # A rotated rectangle is no longer axis-aligned, so it becomes a polygon.
        corners = [
            (command.x, command.y),
            (command.x + command.w, command.y),
            (command.x + command.w, command.y + command.h),
            (command.x, command.y + command.h),
        ]
        pts = [t.apply(x, y) for x, y in corners]
        return PolygonCommand(flatten_points(pts), command.stroke, command.fill)
    if isinstance(command, CircleCommand):
        cx, cy = t.apply(command.cx, command.cy)
        return CircleCommand(cx, cy, command.radius * t.linear_scale(), command.stroke, command.fill)
    return command


def replay_command_buffer(
    buffer: CommandBuffer,
    canvas: Canvas,
    symbols: Optional[Mapping[int, SymbolDefinition]] = None,
) -> None:
    """
    Re-issue every command of ``buffer`` on ``canvas`` with its source key.

    When ``symbols`` is given, symbol instances are expanded inline: the
    definition's local geometry is mapped through the instance transform and
    drawn directly. Unknown ids are skipped. Without ``symbols`` the instance
    commands are forwarded unchanged.
    """
    for command, source in zip(buffer.commands, buffer.sources):
        canvas.set_source_key(source)
        if symbols is not None and isinstance(command, SymbolInstanceCommand):
            definition = symbols.get(command.symbol_id)
            if definition is None:
                continue
            for local in definition.local_commands.commands:
                if not is_geometry(local):
                    continue
                replay_command(transform_geometry(local, command.transform), canvas)
            continue
        replay_command(command, canvas)
