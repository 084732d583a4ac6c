from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, List, Optional, Sequence, Tuple, Union


Point2 = Tuple[float, float]

# Source key assigned to primitives drawn before any set_source_key call.
DEFAULT_SOURCE_KEY = "unknown"


@dataclass(frozen=True)
class CanvasColor:
    r: float = 0.0
    g: float = 0.0
    b: float = 0.0
    a: float = 1.0

    def to_tuple(self) -> Tuple[float, float, float, float]:
        return (float(self.r), float(self.g), float(self.b), float(self.a))


@dataclass(frozen=True)
class CanvasStroke:
    color: CanvasColor = CanvasColor()
    # Screen-pixel width; exporters convert it to their own unit.
    width: float = 1.0


@dataclass(frozen=True)
class CanvasFill:
    color: CanvasColor = CanvasColor()


class HorizontalAlign(Enum):
    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"


class VerticalAlign(Enum):
    BASELINE = "baseline"
    MIDDLE = "middle"
    TOP = "top"
    BOTTOM = "bottom"


@dataclass(frozen=True)
class CanvasTextStyle:
    """
    Text appearance for a text command.

    The anchor passed with the text respects ``h_align`` and ``v_align``.
    ``ascent``, ``descent`` and ``line_height`` are metrics measured by the live
    renderer at capture time, in model units; zero means "not captured" and
    exporters fall back to their own font metrics.
    """

    font_family: str = "sans"
    font_size: float = 12.0
    ascent: float = 0.0
    descent: float = 0.0
    line_height: float = 0.0
    extra_line_spacing: float = 0.0
    color: CanvasColor = CanvasColor()
    outline_color: CanvasColor = CanvasColor()
    outline_width: float = 0.0
    h_align: HorizontalAlign = HorizontalAlign.LEFT
    v_align: VerticalAlign = VerticalAlign.BASELINE


@dataclass(frozen=True)
class CanvasTransform:
    """Uniform scale followed by a translation. Rotation never lives here."""

    scale: float = 1.0
    offset_x: float = 0.0
    offset_y: float = 0.0

    def apply(self, x: float, y: float) -> Point2:
        return (float(x) * self.scale + self.offset_x, float(y) * self.scale + self.offset_y)


@dataclass(frozen=True)
class Transform2D:
    """2x3 affine matrix: x' = a*x + c*y + tx, y' = b*x + d*y + ty."""

    a: float = 1.0
    b: float = 0.0
    c: float = 0.0
    d: float = 1.0
    tx: float = 0.0
    ty: float = 0.0

    @staticmethod
    def from_canvas(transform: CanvasTransform) -> "Transform2D":
        return Transform2D(
            a=transform.scale,
            d=transform.scale,
            tx=transform.offset_x,
            ty=transform.offset_y,
        )

    @staticmethod
    def from_placement(x: float, y: float, rotation_deg: float = 0.0, scale: float = 1.0) -> "Transform2D":
        t = math.radians(float(rotation_deg))
        cs = math.cos(t) * float(scale)
        sn = math.sin(t) * float(scale)
        return Transform2D(a=cs, b=sn, c=-sn, d=cs, tx=float(x), ty=float(y))

    def apply(self, x: float, y: float) -> Point2:
        return (
            self.a * x + self.c * y + self.tx,
            self.b * x + self.d * y + self.ty,
        )

    def then(self, outer: "Transform2D") -> "Transform2D":
        """Compose so that ``outer`` is applied after ``self``."""
        return Transform2D(
            a=outer.a * self.a + outer.c * self.b,
            b=outer.b * self.a + outer.d * self.b,
            c=outer.a * self.c + outer.c * self.d,
            d=outer.b * self.c + outer.d * self.d,
            tx=outer.a * self.tx + outer.c * self.ty + outer.tx,
            ty=outer.b * self.tx + outer.d * self.ty + outer.ty,
        )

    def linear_scale(self) -> float:
        return math.sqrt(abs(self.a * self.d - self.b * self.c))


@dataclass(frozen=True)
class LineCommand:
    x0: float
    y0: float
    x1: float
    y1: float
    stroke: CanvasStroke = CanvasStroke()


@dataclass(frozen=True)
class PolylineCommand:
    points: Tuple[float, ...]
    stroke: CanvasStroke = CanvasStroke()


@dataclass(frozen=True)
class PolygonCommand:
    points: Tuple[float, ...]
    stroke: CanvasStroke = CanvasStroke()
    fill: Optional[CanvasFill] = None


@dataclass(frozen=True)
class RectangleCommand:
    x: float
    y: float
    w: float
    h: float
    stroke: CanvasStroke = CanvasStroke()
    fill: Optional[CanvasFill] = None


@dataclass(frozen=True)
class CircleCommand:
    cx: float
    cy: float
    radius: float
    stroke: CanvasStroke = CanvasStroke()
    fill: Optional[CanvasFill] = None


@dataclass(frozen=True)
class TextCommand:
    x: float
    y: float
    text: str
    style: CanvasTextStyle = CanvasTextStyle()


@dataclass(frozen=True)
class SaveCommand:
    pass


@dataclass(frozen=True)
class RestoreCommand:
    pass


@dataclass(frozen=True)
class TransformCommand:
    transform: CanvasTransform


@dataclass(frozen=True)
class BeginSymbolCommand:
    key: str


@dataclass(frozen=True)
class EndSymbolCommand:
    key: str


@dataclass(frozen=True)
class PlaceSymbolCommand:
    key: str
    transform: CanvasTransform = CanvasTransform()


@dataclass(frozen=True)
class SymbolInstanceCommand:
    symbol_id: int
    transform: Transform2D = Transform2D()


GeometryCommand = Union[LineCommand, PolylineCommand, PolygonCommand, RectangleCommand, CircleCommand]

CanvasCommand = Union[
    LineCommand,
    PolylineCommand,
    PolygonCommand,
    RectangleCommand,
    CircleCommand,
    TextCommand,
    SaveCommand,
    RestoreCommand,
    TransformCommand,
    BeginSymbolCommand,
    EndSymbolCommand,
    PlaceSymbolCommand,
    SymbolInstanceCommand,
]

GEOMETRY_TYPES = (LineCommand, PolylineCommand, PolygonCommand, RectangleCommand, CircleCommand)

# Commands that end a same-source run; nothing is merged across them.
BARRIER_TYPES = (
    SaveCommand,
    RestoreCommand,
    TransformCommand,
    TextCommand,
    BeginSymbolCommand,
    EndSymbolCommand,
    PlaceSymbolCommand,
    SymbolInstanceCommand,
)


def is_barrier(command: CanvasCommand) -> bool:
    return isinstance(command, BARRIER_TYPES)


def is_geometry(command: CanvasCommand) -> bool:
    return isinstance(command, GEOMETRY_TYPES)


def flatten_points(points: Sequence[Point2]) -> Tuple[float, ...]:
    out: List[float] = []
    for x, y in points:
        out.append(float(x))
        out.append(float(y))
    return tuple(out)


def point_pairs(points: Sequence[float]) -> List[Point2]:
    return [(float(points[i]), float(points[i + 1])) for i in range(0, len(points) - 1, 2)]


@dataclass(frozen=True)
class CommandMetadata:
    has_stroke: bool = False
    has_fill: bool = False


def metadata_for(command: CanvasCommand) -> CommandMetadata:
    if isinstance(command, (LineCommand, PolylineCommand)):
        return CommandMetadata(has_stroke=True, has_fill=False)
    if isinstance(command, (PolygonCommand, RectangleCommand, CircleCommand)):
        return CommandMetadata(has_stroke=command.stroke.width > 0.0, has_fill=command.fill is not None)
    return CommandMetadata()


@dataclass
class CommandBuffer:
    """
    Ordered drawing commands with parallel provenance and metadata lists.

    The three lists always have the same length; ``append`` is the only way
    entries are added.
    """

    commands: List[CanvasCommand] = field(default_factory=list)
    sources: List[str] = field(default_factory=list)
    metadata: List[CommandMetadata] = field(default_factory=list)
    current_source_key: str = DEFAULT_SOURCE_KEY

    def append(
        self,
        command: CanvasCommand,
        source: Optional[str] = None,
        metadata: Optional[CommandMetadata] = None,
    ) -> None:
        self.commands.append(command)
        self.sources.append(self.current_source_key if source is None else str(source))
        self.metadata.append(metadata_for(command) if metadata is None else metadata)

    def clear(self) -> None:
        self.commands.clear()
        self.sources.clear()
        self.metadata.clear()
        self.current_source_key = DEFAULT_SOURCE_KEY

    def copy(self) -> "CommandBuffer":
        # Commands are frozen, so copying the lists is enough.
        return CommandBuffer(
            commands=list(self.commands),
            sources=list(self.sources),
            metadata=list(self.metadata),
            current_source_key=self.current_source_key,
        )

    def entries(self) -> Iterator[Tuple[CanvasCommand, str, CommandMetadata]]:
        return zip(self.commands, self.sources, self.metadata)

    def __len__(self) -> int:
        return len(self.commands)

    def is_empty(self) -> bool:
        return not self.commands
