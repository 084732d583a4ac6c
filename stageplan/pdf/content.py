from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Tuple

from stageplan.canvas.commands import (
    BeginSymbolCommand,
    CanvasCommand,
    CanvasTransform,
    CommandBuffer,
    CommandMetadata,
    EndSymbolCommand,
    PlaceSymbolCommand,
    RestoreCommand,
    SaveCommand,
    SymbolInstanceCommand,
    TextCommand,
    Transform2D,
    TransformCommand,
    is_barrier,
)
from stageplan.pdf.encoder import (
    GraphicsStateCache,
    append_symbol_instance,
    append_text,
    emit_command_fill,
    emit_command_stroke,
)
from stageplan.pdf.fonts import FontCatalog
from stageplan.pdf.objects import FloatFormatter, PdfDocument, make_stream_object
from stageplan.render.mapping import RenderMapping, map_point
from stageplan.symbols.cache import SymbolBounds

LOGGER = logging.getLogger(__name__)

GRID_SOURCE_KEY = "grid"

TRACE_LABELS_ENV = "STAGEPLAN_TRACE_LABELS"


def is_grid_source(source: str) -> bool:
    return source == GRID_SOURCE_KEY or source.startswith(GRID_SOURCE_KEY + ":")


@dataclass
class RenderOptions:
    include_text: bool = True
    # Multiplies every stroke width after the mapping scale.
    stroke_scale: float = 1.0
    fonts: Optional[FontCatalog] = None
    symbol_key_names: Mapping[str, str] = field(default_factory=dict)
    symbol_id_names: Mapping[int, str] = field(default_factory=dict)


@dataclass
class PartitionedBuffer:
    """Main-stream commands plus the symbol captures the buffer carried."""

    main: CommandBuffer
    captures: Dict[str, CommandBuffer]
    used_keys: List[str]
    used_ids: List[int]


def partition_buffer(buffer: CommandBuffer, include_grid: bool = True) -> PartitionedBuffer:
    """
    Split a recorded buffer at its BeginSymbol/EndSymbol brackets.

    Commands inside a bracket belong to that symbol's capture, not to the
    page. The first complete capture of a key wins. Placement commands are
    kept in the main stream and their keys/ids are collected in first-use
    order.
    """
    main = CommandBuffer()
    captures: Dict[str, CommandBuffer] = {}
    used_keys: List[str] = []
    used_ids: List[int] = []
    seen_keys = set()
    seen_ids = set()

    capturing: Optional[str] = None
    pending = CommandBuffer()

    for command, source, meta in buffer.entries():
        if isinstance(command, BeginSymbolCommand):
            capturing = command.key
            pending = CommandBuffer()
            continue
        if isinstance(command, EndSymbolCommand):
            if capturing is not None and capturing == command.key and capturing not in captures:
                captures[capturing] = pending
            capturing = None
            pending = CommandBuffer()
            continue

        if isinstance(command, PlaceSymbolCommand) and command.key not in seen_keys:
            seen_keys.add(command.key)
            used_keys.append(command.key)
        if isinstance(command, SymbolInstanceCommand) and command.symbol_id not in seen_ids:
            seen_ids.add(command.symbol_id)
            used_ids.append(command.symbol_id)

        if not include_grid and is_grid_source(source):
            continue
        if capturing is not None:
            pending.append(command, source, meta)
        else:
            main.append(command, source, meta)

    return PartitionedBuffer(main=main, captures=captures, used_keys=used_keys, used_ids=used_ids)


def render_commands_to_stream(
    buffer: CommandBuffer,
    mapping: RenderMapping,
    fmt: FloatFormatter,
    options: Optional[RenderOptions] = None,
) -> str:
    """
    Serialize a command buffer into PDF content-stream operators.

    Geometry is grouped by contiguous source key; each group is written as
    all of its strokes followed by all of its fills. Barrier commands flush
    the pending group first and are then interpreted in order.
    """
    options = options or RenderOptions()
    out: List[str] = []
    cache = GraphicsStateCache()
    current = CanvasTransform()
    stack: List[CanvasTransform] = []
    group: List[Tuple[CanvasCommand, CommandMetadata]] = []
    group_source: Optional[str] = None
    trace = bool(os.environ.get(TRACE_LABELS_ENV))

    def flush() -> None:
        for command, meta in group:
            if meta.has_stroke:
                emit_command_stroke(out, cache, fmt, mapping, current, command, options.stroke_scale)
        for command, meta in group:
            if meta.has_fill:
                emit_command_fill(out, cache, fmt, mapping, current, command)
        group.clear()

    for command, source, meta in buffer.entries():
        if not is_barrier(command):
            if group and source != group_source:
                flush()
            group_source = source
            group.append((command, meta))
            continue

        flush()
        group_source = None

        if isinstance(command, SaveCommand):
            stack.append(current)
        elif isinstance(command, RestoreCommand):
            if stack:
                current = stack.pop()
        elif isinstance(command, TransformCommand):
            current = command.transform
        elif isinstance(command, TextCommand):
            if not options.include_text:
                continue
            pos = map_point(command.x, command.y, current, mapping)
            if trace:
                LOGGER.debug(
                    "label %r source=%s model=(%.3f, %.3f) page=(%.3f, %.3f) size=%.3f",
                    command.text,
                    source,
                    command.x,
                    command.y,
                    pos[0],
                    pos[1],
                    command.style.font_size * mapping.scale,
                )
            append_text(out, fmt, pos, command, mapping.scale, options.fonts)
            cache.forget_fill()
        elif isinstance(command, PlaceSymbolCommand):
            name = options.symbol_key_names.get(command.key)
            if name is not None:
                append_symbol_instance(out, fmt, mapping, current, Transform2D.from_canvas(command.transform), name)
        elif isinstance(command, SymbolInstanceCommand):
            name = options.symbol_id_names.get(command.symbol_id)
            if name is not None:
                append_symbol_instance(out, fmt, mapping, current, command.transform, name)
        # Begin/End symbol markers carry no drawing of their own.

    flush()
    return "".join(out)


def symbol_mapping(scale: float) -> RenderMapping:
    """Mapping for Form XObject content: local units times ``scale``, no offsets."""
    return RenderMapping(scale=scale)


def append_symbol_xobject(
    doc: PdfDocument,
    commands: CommandBuffer,
    bounds: SymbolBounds,
    scale: float,
    fmt: FloatFormatter,
    stroke_scale: float = 1.0,
    compress: bool = False,
) -> int:
    """Render a symbol's local commands into a Form XObject and return its object number."""
    content = render_commands_to_stream(
        commands,
        symbol_mapping(scale),
        fmt,
        RenderOptions(include_text=False, stroke_scale=stroke_scale),
    )
    min_x, max_x = sorted((bounds.min_x * scale, bounds.max_x * scale))
    min_y, max_y = sorted((bounds.min_y * scale, bounds.max_y * scale))
    dictionary = f"/Type /XObject /Subtype /Form /BBox [{fmt.join(min_x, min_y, max_x, max_y)}] /Resources << >>"
    return doc.add(make_stream_object(content.encode("latin-1"), dictionary, compress=compress))


def resources_dictionary(fonts: FontCatalog, xobjects: Mapping[str, int]) -> str:
    text = f"<< /Font << /{fonts.regular.key} {fonts.regular.object_id} 0 R /{fonts.bold.key} {fonts.bold.object_id} 0 R >>"
    if xobjects:
        entries = " ".join(f"/{name} {obj} 0 R" for name, obj in xobjects.items())
        text += f" /XObject << {entries} >>"
    return text + " >>"
