from stageplan.simplify.footprint import (
    FootprintShape,
    FootprintSimplifier,
    FootprintTemplate,
    classify_footprint,
    measure_footprint,
)
from stageplan.simplify.hull import convex_hull, signed_area

__all__ = [
    "FootprintShape",
    "FootprintSimplifier",
    "FootprintTemplate",
    "classify_footprint",
    "measure_footprint",
    "convex_hull",
    "signed_area",
]
