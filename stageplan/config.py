from __future__ import annotations

import json
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from reportlab.lib.pagesizes import A3, A4, landscape as to_landscape

PAGE_SIZES: Dict[str, Tuple[float, float]] = {
    "A3": A3,
    "A4": A4,
}

DEFAULT_MARGIN_PT = 36.0


@dataclass
class PrintOptions:
    """Page and export settings for a plan or layout PDF."""

    page_width_pt: float = float(A3[0])
    page_height_pt: float = float(A3[1])
    margin_pt: float = DEFAULT_MARGIN_PT
    landscape: bool = False
    compress_streams: bool = True
    float_precision: int = 3
    use_simplified_footprints: bool = True
    include_grid: bool = True
    regular_font_path: Optional[str] = None
    bold_font_path: Optional[str] = None

    def __post_init__(self) -> None:
        self.float_precision = max(0, min(6, int(self.float_precision)))

    def page_size(self) -> Tuple[float, float]:
        """(width, height) in points with the orientation applied."""
        size = (float(self.page_width_pt), float(self.page_height_pt))
        if self.landscape:
            return tuple(float(v) for v in to_landscape(size))
        return size

    @classmethod
    def from_page(cls, name: str, landscape: bool = False, **kwargs: Any) -> "PrintOptions":
        key = str(name).upper()
        if key not in PAGE_SIZES:
            raise ValueError(f"Unsupported page size: {name}")
        w, h = PAGE_SIZES[key]
        return cls(page_width_pt=float(w), page_height_pt=float(h), landscape=landscape, **kwargs)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PrintOptions":
        if not isinstance(data, dict):
            raise ValueError("Print options must be a JSON object")
        kwargs: Dict[str, Any] = {}
        for f in fields(cls):
            if f.name not in data:
                continue
            kwargs[f.name] = _coerce(f.name, data[f.name])
        return cls(**kwargs)


_FLOAT_FIELDS = {"page_width_pt", "page_height_pt", "margin_pt"}
_BOOL_FIELDS = {"landscape", "compress_streams", "use_simplified_footprints", "include_grid"}
_PATH_FIELDS = {"regular_font_path", "bold_font_path"}


def _coerce(name: str, value: Any) -> Any:
    if name in _FLOAT_FIELDS:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError(f"{name} must be a number, got {value!r}")
        return float(value)
    if name in _BOOL_FIELDS:
        if not isinstance(value, bool):
            raise ValueError(f"{name} must be true or false, got {value!r}")
        return value
    if name == "float_precision":
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"float_precision must be an integer, got {value!r}")
        return value
    if name in _PATH_FIELDS:
        if value is not None and not isinstance(value, str):
            raise ValueError(f"{name} must be a path string or null, got {value!r}")
        return value
    return value


def save_print_options(options: PrintOptions, path: Path) -> None:
    path = Path(path).expanduser().resolve()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(options.to_dict(), indent=2, sort_keys=True), encoding="utf-8")


def load_print_options(path: Path) -> PrintOptions:
    path = Path(path).expanduser().resolve()
    data = json.loads(path.read_text(encoding="utf-8"))
    return PrintOptions.from_dict(data)
