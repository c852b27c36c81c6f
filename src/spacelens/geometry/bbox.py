"""
Axis-aligned bounding boxes over point coordinates.
"""
import math
from typing import Iterable, Protocol

from spacelens.core.models import AXES, SPAN_FLOOR, BoundingBox

PAD_FRACTION = 0.05


class HasCoords(Protocol):
    x: float
    y: float
    z: float


def build_bbox(points: Iterable[HasCoords]) -> BoundingBox:
    """
    Tight box over points whose three coordinates are all finite.

    Points with any non-finite coordinate are ignored. Returns the unit box
    when no point qualifies.
    """
    lo = [math.inf, math.inf, math.inf]
    hi = [-math.inf, -math.inf, -math.inf]
    found = False

    for p in points:
        coords = (p.x, p.y, p.z)
        if not all(math.isfinite(c) for c in coords):
            continue
        found = True
        for i, c in enumerate(coords):
            if c < lo[i]:
                lo[i] = c
            if c > hi[i]:
                hi[i] = c

    if not found:
        return BoundingBox.unit()

    return BoundingBox(
        min_x=lo[0], max_x=hi[0],
        min_y=lo[1], max_y=hi[1],
        min_z=lo[2], max_z=hi[2],
    )


def pad_bbox(bbox: BoundingBox, fraction: float = PAD_FRACTION) -> BoundingBox:
    """
    Expand each axis around its center so the span grows by ``fraction``.

    Spans are floored at SPAN_FLOOR first, so the result never has a flat axis.
    """
    bounds = {}
    for axis in AXES:
        span = max(SPAN_FLOOR, bbox.maximum(axis) - bbox.minimum(axis))
        center = (bbox.minimum(axis) + bbox.maximum(axis)) / 2.0
        half = span * (1.0 + fraction) / 2.0
        bounds[f"min_{axis}"] = center - half
        bounds[f"max_{axis}"] = center + half
    return BoundingBox(**bounds)
