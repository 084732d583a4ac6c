from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Dict, List, Optional, Sequence

from stageplan.canvas.commands import (
    BeginSymbolCommand,
    CanvasCommand,
    CanvasFill,
    CanvasStroke,
    CanvasTextStyle,
    CanvasTransform,
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
    is_geometry,
)

if TYPE_CHECKING:
    from stageplan.simplify.footprint import FootprintSimplifier

LOGGER = logging.getLogger(__name__)


class RecordingCanvas:
    """
    Canvas that captures every call into a ``CommandBuffer``.

    With ``simplify_footprints`` enabled, consecutive geometry sharing a source
    key is held back and collapsed by the footprint simplifier when the run
    ends (barrier, source change, symbol bracket or ``end_frame``).

    ``begin_symbol``/``end_symbol`` brackets stay in the main buffer, and the
    first capture of each key is also kept as a standalone buffer in
    ``symbols``.
    """

    def __init__(self, buffer: Optional[CommandBuffer] = None, simplify_footprints: bool = False) -> None:
        from stageplan.simplify.footprint import FootprintSimplifier

        self.buffer = buffer if buffer is not None else CommandBuffer()
        self.symbols: Dict[str, CommandBuffer] = {}
        self.simplifier: Optional[FootprintSimplifier] = FootprintSimplifier() if simplify_footprints else None
        self._in_frame = False
        self._transform = CanvasTransform()
        self._stack: List[CanvasTransform] = []
        self._capture_key: Optional[str] = None
        self._capture: Optional[CommandBuffer] = None
        self._pending: List[CanvasCommand] = []
        self._pending_source = ""

    @property
    def transform(self) -> CanvasTransform:
        return self._transform

    @property
    def in_frame(self) -> bool:
        return self._in_frame

    def begin_frame(self) -> None:
        if self._in_frame:
            LOGGER.warning("begin_frame called while a frame is already being recorded; ignored")
            return
        self.buffer.clear()
        self.symbols.clear()
        if self.simplifier is not None:
            self.simplifier.reset()
        self._transform = CanvasTransform()
        self._stack.clear()
        self._capture_key = None
        self._capture = None
        self._pending.clear()
        self._in_frame = True

    def end_frame(self) -> None:
        self._flush_pending()
        if self._capture_key is not None:
            LOGGER.debug("Frame ended inside symbol '%s'; capture dropped", self._capture_key)
            self.symbols.pop(self._capture_key, None)
            self._capture_key = None
            self._capture = None
        self._in_frame = False

    def save(self) -> None:
        self._stack.append(self._transform)
        self._record(SaveCommand())

    def restore(self) -> None:
        if not self._stack:
            LOGGER.debug("restore without matching save ignored")
            return
        self._transform = self._stack.pop()
        self._record(RestoreCommand())

    def set_transform(self, transform: CanvasTransform) -> None:
        self._transform = transform
        self._record(TransformCommand(transform))

    def set_source_key(self, key: str) -> None:
        key = str(key)
        if key != self.buffer.current_source_key:
            self._flush_pending()
        self.buffer.current_source_key = key

    def begin_symbol(self, key: str) -> None:
        if self._capture_key is not None:
            LOGGER.debug("begin_symbol('%s') inside '%s' ignored", key, self._capture_key)
            return
        self._flush_pending()
        self._emit(BeginSymbolCommand(key), self.buffer.current_source_key)
        self._capture_key = key
        if key not in self.symbols:
            self._capture = CommandBuffer()
            self.symbols[key] = self._capture
        else:
            self._capture = None

    def end_symbol(self, key: str) -> None:
        if self._capture_key is None or key != self._capture_key:
            LOGGER.debug("end_symbol('%s') does not match open symbol; ignored", key)
            return
        self._flush_pending()
        self._capture_key = None
        self._capture = None
        self._emit(EndSymbolCommand(key), self.buffer.current_source_key)

    def place_symbol(self, key: str, transform: CanvasTransform) -> None:
        self._record(PlaceSymbolCommand(key, transform))

    def place_symbol_instance(self, symbol_id: int, transform: Transform2D) -> None:
        self._record(SymbolInstanceCommand(int(symbol_id), transform))

    def draw_line(self, x0: float, y0: float, x1: float, y1: float, stroke: CanvasStroke) -> None:
        self._record(LineCommand(float(x0), float(y0), float(x1), float(y1), stroke))

    def draw_polyline(self, points: Sequence[float], stroke: CanvasStroke) -> None:
        self._record(PolylineCommand(tuple(float(v) for v in points), stroke))

    def draw_polygon(self, points: Sequence[float], stroke: CanvasStroke, fill: Optional[CanvasFill] = None) -> None:
        self._record(PolygonCommand(tuple(float(v) for v in points), stroke, fill))

    def draw_rectangle(
        self,
        x: float,
        y: float,
        w: float,
        h: float,
        stroke: CanvasStroke,
        fill: Optional[CanvasFill] = None,
    ) -> None:
        self._record(RectangleCommand(float(x), float(y), float(w), float(h), stroke, fill))

    def draw_circle(
        self,
        cx: float,
        cy: float,
        radius: float,
        stroke: CanvasStroke,
        fill: Optional[CanvasFill] = None,
    ) -> None:
        self._record(CircleCommand(float(cx), float(cy), float(radius), stroke, fill))

    def draw_text(self, x: float, y: float, text: str, style: CanvasTextStyle) -> None:
        self._record(TextCommand(float(x), float(y), str(text), style))

    def _record(self, command: CanvasCommand) -> None:
        source = self.buffer.current_source_key
        if self.simplifier is not None and is_geometry(command):
            if self._pending and self._pending_source != source:
                self._flush_pending()
            self._pending.append(command)
            self._pending_source = source
            return
        self._flush_pending()
        self._emit(command, source)

    def _flush_pending(self) -> None:
        if not self._pending:
            return
        run = list(self._pending)
        source = self._pending_source
        self._pending.clear()
        if self.simplifier is not None:
            run = self.simplifier.simplify(source, run)
        for command in run:
            self._emit(command, source)

    def _emit(self, command: CanvasCommand, source: str) -> None:
        self.buffer.append(command, source=source)
        if self._capture is not None and not isinstance(command, (BeginSymbolCommand, EndSymbolCommand)):
            self._capture.append(command, source=source)
