"""
Coordinate sanitizer.

Repairs non-finite coordinates and pulls apart points that share the exact
same position, using offsets derived from the point identity so repeated runs
give the same result.
"""
import math
from typing import Dict, List, Sequence

from spacelens.core.models import AXES, SpacePoint, Vec3
from spacelens.utils.hashing import identity_jitter
from spacelens.utils.logger import logger

REPAIR_SCALE = 0.1
DUPLICATE_BASE = 0.02
DUPLICATE_STEP = 0.002


def _repair(point: SpacePoint) -> SpacePoint:
    updates = {
        axis: identity_jitter(point.id, axis) * REPAIR_SCALE
        for axis in AXES
        if not math.isfinite(getattr(point, axis))
    }
    if not updates:
        return point
    return point.model_copy(update=updates)


def _spread(point: SpacePoint, rank: int) -> SpacePoint:
    magnitude = DUPLICATE_BASE + rank * DUPLICATE_STEP
    updates = {
        axis: getattr(point, axis) + magnitude * identity_jitter(point.id, axis)
        for axis in AXES
    }
    return point.model_copy(update=updates)


def sanitize_points(points: Sequence[SpacePoint]) -> List[SpacePoint]:
    """
    Return a sanitized copy of ``points``.

    Points whose coordinates are finite and unique are returned as the very
    same objects. Non-finite coordinates are replaced by a small identity-hash
    offset; every member of a group of exact duplicates is then jittered by
    ``0.02 + rank * 0.002`` times the identity hash.
    """
    repaired = [_repair(p) for p in points]

    positions: Dict[Vec3, List[int]] = {}
    for index, point in enumerate(repaired):
        positions.setdefault(point.coords, []).append(index)

    result = list(repaired)
    jittered = 0
    for indices in positions.values():
        if len(indices) < 2:
            continue
        for rank, index in enumerate(indices):
            result[index] = _spread(repaired[index], rank)
            jittered += 1

    if jittered:
        logger.debug("Separated duplicate positions", jittered=jittered, total=len(result))
    return result
