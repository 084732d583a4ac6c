from stageplan.symbols.cache import (
    SymbolBounds,
    SymbolCache,
    SymbolDefinition,
    SymbolKey,
    SymbolSnapshot,
    SymbolViewKind,
    build_symbol_definition,
    compute_symbol_bounds,
    find_symbol_definition,
    find_symbol_definition_exact,
    find_symbol_definition_preferred,
)

__all__ = [
    "SymbolBounds",
    "SymbolCache",
    "SymbolDefinition",
    "SymbolKey",
    "SymbolSnapshot",
    "SymbolViewKind",
    "build_symbol_definition",
    "compute_symbol_bounds",
    "find_symbol_definition",
    "find_symbol_definition_exact",
    "find_symbol_definition_preferred",
]
