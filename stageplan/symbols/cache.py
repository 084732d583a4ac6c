from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from types import MappingProxyType
from typing import Callable, Dict, Iterator, Mapping, Optional, Sequence

from stageplan.canvas.commands import (
    CanvasCommand,
    CircleCommand,
    CommandBuffer,
    LineCommand,
    PolygonCommand,
    PolylineCommand,
    RectangleCommand,
    point_pairs,
)


class SymbolViewKind(Enum):
    TOP = "top"
    BOTTOM = "bottom"
    FRONT = "front"
    LEFT = "left"
    RIGHT = "right"
    BACK = "back"


# Preference order when a caller asks for "any view" of a model.
_VIEW_RANK = {
    SymbolViewKind.TOP: 0,
    SymbolViewKind.BOTTOM: 1,
    SymbolViewKind.FRONT: 2,
    SymbolViewKind.LEFT: 3,
    SymbolViewKind.RIGHT: 4,
    SymbolViewKind.BACK: 5,
}


def symbol_view_rank(kind: SymbolViewKind) -> int:
    return _VIEW_RANK.get(kind, 5)


@dataclass(frozen=True)
class SymbolKey:
    model_key: str
    view_kind: SymbolViewKind = SymbolViewKind.TOP
    style_version: int = 1


@dataclass(frozen=True)
class SymbolBounds:
    min_x: float = 0.0
    min_y: float = 0.0
    max_x: float = 0.0
    max_y: float = 0.0

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y


@dataclass(frozen=True)
class SymbolDefinition:
    key: SymbolKey
    symbol_id: int
    bounds: SymbolBounds
    local_commands: CommandBuffer


SymbolBuilder = Callable[[SymbolKey, int], SymbolDefinition]


class SymbolSnapshot(Mapping[int, SymbolDefinition]):
    """Read-only id -> definition view, detached from the live cache."""

    def __init__(self, definitions: Mapping[int, SymbolDefinition]) -> None:
        self._definitions = MappingProxyType(dict(definitions))

    def __getitem__(self, symbol_id: int) -> SymbolDefinition:
        return self._definitions[symbol_id]

    def __iter__(self) -> Iterator[int]:
        return iter(self._definitions)

    def __len__(self) -> int:
        return len(self._definitions)


class SymbolCache:
    """
    Content-addressed store of reusable symbols.

    A key is materialized once through its builder; every later request with
    an equal key is a hit and returns the same definition. IDs start at 1 and
    are never reused while the cache lives.
    """

    def __init__(self) -> None:
        self._by_key: Dict[SymbolKey, SymbolDefinition] = {}
        self._by_id: Dict[int, SymbolDefinition] = {}
        self._next_id = 1
        self.hits = 0
        self.misses = 0

    def get_or_create(self, key: SymbolKey, builder: SymbolBuilder) -> SymbolDefinition:
        found = self._by_key.get(key)
        if found is not None:
            self.hits += 1
            return found

        symbol_id = self._next_id
        definition = builder(key, symbol_id)
        if definition.symbol_id != symbol_id or definition.key != key:
            definition = replace(definition, key=key, symbol_id=symbol_id)
        self._by_key[key] = definition
        self._by_id[symbol_id] = definition
        self._next_id += 1
        self.misses += 1
        return definition

    def get(self, key: SymbolKey) -> Optional[SymbolDefinition]:
        return self._by_key.get(key)

    def get_by_id(self, symbol_id: int) -> Optional[SymbolDefinition]:
        return self._by_id.get(int(symbol_id))

    def snapshot(self) -> SymbolSnapshot:
        return SymbolSnapshot(
            {sid: replace(d, local_commands=d.local_commands.copy()) for sid, d in self._by_id.items()}
        )

    def clear(self) -> None:
        self._by_key.clear()
        self._by_id.clear()
        self._next_id = 1
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._by_id)


def find_symbol_definition(symbols: Optional[Mapping[int, SymbolDefinition]], model_key: str) -> Optional[SymbolDefinition]:
    if not symbols or not model_key:
        return None
    best: Optional[SymbolDefinition] = None
    best_rank = 0
    for definition in symbols.values():
        if definition.key.model_key != model_key:
            continue
        rank = symbol_view_rank(definition.key.view_kind)
        if best is None or rank < best_rank:
            best = definition
            best_rank = rank
    return best


def find_symbol_definition_exact(
    symbols: Optional[Mapping[int, SymbolDefinition]],
    model_key: str,
    view: SymbolViewKind,
) -> Optional[SymbolDefinition]:
    if not symbols or not model_key:
        return None
    for definition in symbols.values():
        if definition.key.model_key == model_key and definition.key.view_kind == view:
            return definition
    return None


def find_symbol_definition_preferred(
    symbols: Optional[Mapping[int, SymbolDefinition]],
    model_key: str,
    preferred: SymbolViewKind,
) -> Optional[SymbolDefinition]:
    exact = find_symbol_definition_exact(symbols, model_key, preferred)
    if exact is not None:
        return exact
    return find_symbol_definition(symbols, model_key)


def compute_symbol_bounds(commands: Sequence[CanvasCommand]) -> SymbolBounds:
    """Axis-aligned bounds of the geometry, padded by half of each stroke width."""
    xs = []
    ys = []

    def add(x: float, y: float, pad: float) -> None:
        xs.extend((x - pad, x + pad))
        ys.extend((y - pad, y + pad))

    for cmd in commands:
        if isinstance(cmd, LineCommand):
            pad = max(0.0, cmd.stroke.width * 0.5)
            add(cmd.x0, cmd.y0, pad)
            add(cmd.x1, cmd.y1, pad)
        elif isinstance(cmd, (PolylineCommand, PolygonCommand)):
            pad = max(0.0, cmd.stroke.width * 0.5)
            for x, y in point_pairs(cmd.points):
                add(x, y, pad)
        elif isinstance(cmd, RectangleCommand):
            pad = max(0.0, cmd.stroke.width * 0.5)
            add(cmd.x, cmd.y, pad)
            add(cmd.x + cmd.w, cmd.y + cmd.h, pad)
        elif isinstance(cmd, CircleCommand):
            pad = max(0.0, cmd.stroke.width * 0.5)
            r = cmd.radius + pad
            add(cmd.cx - r, cmd.cy - r, 0.0)
            add(cmd.cx + r, cmd.cy + r, 0.0)

    if not xs:
        return SymbolBounds()
    return SymbolBounds(min(xs), min(ys), max(xs), max(ys))


def build_symbol_definition(key: SymbolKey, symbol_id: int, commands: CommandBuffer) -> SymbolDefinition:
    return SymbolDefinition(
        key=key,
        symbol_id=int(symbol_id),
        bounds=compute_symbol_bounds(commands.commands),
        local_commands=commands,
    )
