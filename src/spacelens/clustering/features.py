"""
Feature vectors for density grouping.

Each point becomes a 3-vector chosen by the grouping principle:
- proximity: the point's own x/y/z, min-max normalized per axis
- efficiency: up to three metrics, min-max normalized across the point set
- behavior: up to three text fields hashed onto the unit cube
"""
import math
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np

from spacelens.core.metrics import to_number
from spacelens.core.models import (
    ClusterParams,
    GroupingConfig,
    GroupingPrinciple,
    SpacePoint,
    Vec3,
)
from spacelens.lod.voxel import clamp01, round_half_up
from spacelens.utils.hashing import text_to_vec3

TextLookup = Callable[[SpacePoint, str], str]

NEUTRAL = 0.5
DEGENERATE_RANGE = 1e-9
MAX_FEATURES = 3

EPS_MIN = 0.03
EPS_MAX = 0.18
MIN_PTS_MIN = 3
MIN_PTS_MAX = 12


def default_text_value(point: SpacePoint, field: str) -> str:
    """Text of ``field`` for ``point``: an attribute, else a built-in point field."""
    if field in point.attributes:
        return point.attributes[field]
    if field in ("label", "name"):
        return point.label
    if field == "source_field":
        return point.source_field
    return ""


def _range(values: Sequence[float]) -> Tuple[float, float]:
    finite = [v for v in values if math.isfinite(v)]
    if not finite:
        return 0.0, 1.0
    lo, hi = min(finite), max(finite)
    if abs(hi - lo) < DEGENERATE_RANGE:
        return 0.0, 1.0
    return lo, hi


def _normalize_columns(columns: List[List[float]], n: int) -> np.ndarray:
    vectors = np.full((n, MAX_FEATURES), NEUTRAL, dtype=float)
    for col, values in enumerate(columns[:MAX_FEATURES]):
        lo, hi = _range(values)
        for row, value in enumerate(values):
            if math.isfinite(value):
                vectors[row, col] = (value - lo) / (hi - lo)
    return vectors


def build_feature_vectors(
    points: Sequence[SpacePoint],
    config: GroupingConfig,
    text_value: Optional[TextLookup] = None,
) -> np.ndarray:
    """
    Project points into the feature space of ``config.principle``.

    Args:
        points: Points to project, in label order.
        config: Grouping configuration (principle and feature fields).
        text_value: Text lookup for the behavior principle. Defaults to
            :func:`default_text_value`.

    Returns:
        Array of shape (len(points), 3). Non-finite inputs map to 0.5.
    """
    n = len(points)
    fields = list(config.feature_fields[:MAX_FEATURES])

    if config.principle == GroupingPrinciple.PROXIMITY:
        columns = [[p.x for p in points], [p.y for p in points], [p.z for p in points]]
        return _normalize_columns(columns, n)

    if config.principle == GroupingPrinciple.EFFICIENCY:
        columns = [[to_number(p.metrics.get(f)) for p in points] for f in fields]
        return _normalize_columns(columns, n)

    lookup = text_value or default_text_value
    vectors = np.empty((n, MAX_FEATURES), dtype=float)
    for row, point in enumerate(points):
        vectors[row] = text_to_vec3([lookup(point, f) for f in fields])
    return vectors


def axis_weights(config: GroupingConfig) -> Vec3:
    """Per-axis distance weights; custom weights apply to proximity only."""
    if config.principle != GroupingPrinciple.PROXIMITY or not config.custom_weights:
        return (1.0, 1.0, 1.0)
    return (config.w_x, config.w_y, config.w_z)


def params_from_detail(detail: float) -> ClusterParams:
    """
    Map detail to DBSCAN parameters for unit-cube features.

    Lower detail gives a tight radius and many small clusters, higher detail
    a loose radius and fewer, larger ones.
    """
    d = clamp01(detail)
    eps = EPS_MIN + (EPS_MAX - EPS_MIN) * d
    min_pts = round_half_up(MIN_PTS_MIN + (MIN_PTS_MAX - MIN_PTS_MIN) * d)
    return ClusterParams(eps=eps, min_pts=min_pts)
