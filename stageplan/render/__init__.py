from stageplan.render.mapping import (
    PDF_POINTS_PER_PIXEL,
    PIXELS_PER_METER,
    RenderMapping,
    ViewState,
    build_view_mapping,
    compute_view_bounds,
    map_point,
)

__all__ = [
    "PDF_POINTS_PER_PIXEL",
    "PIXELS_PER_METER",
    "RenderMapping",
    "ViewState",
    "build_view_mapping",
    "compute_view_bounds",
    "map_point",
]
