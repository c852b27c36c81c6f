"""
Approximate hull sampling for cluster cells.

Picks the axis-extremal members plus an evenly strided subset of the rest.
This is not a convex hull: the sample carries no containment guarantee.
"""
from typing import List, Sequence, Set, Tuple

from spacelens.core.models import Vec3
from spacelens.geometry.bbox import HasCoords

HULL_MAX_VERTICES = 24
HULL_MIN_VERTICES = 4
HULL_EPSILON = 1e-3
DEDUP_SCALE = 1e6


def _dedup_key(coords: Vec3) -> Tuple[int, int, int]:
    return (
        round(coords[0] * DEDUP_SCALE),
        round(coords[1] * DEDUP_SCALE),
        round(coords[2] * DEDUP_SCALE),
    )


def sample_hull(
    members: Sequence[HasCoords],
    centroid: Vec3,
    max_vertices: int = HULL_MAX_VERTICES,
) -> List[Vec3]:
    """
    Select up to ``max_vertices`` boundary-representative vertices.

    Args:
        members: Points of one cell (finite coordinates).
        centroid: Mean position of the members.
        max_vertices: Target vertex count.

    Returns:
        Ordered vertices, deduplicated at 1e-6 resolution. When fewer than four
        distinct vertices exist, three points offset from the centroid along
        each axis are appended so the polygon is never degenerate.
    """
    vertices: List[Vec3] = []
    seen: Set[Tuple[int, int, int]] = set()

    def add(coords: Vec3) -> None:
        if len(vertices) >= max_vertices:
            return
        key = _dedup_key(coords)
        if key in seen:
            return
        seen.add(key)
        vertices.append(coords)

    coords = [(p.x, p.y, p.z) for p in members]

    if coords:
        for axis in range(3):
            add(min(coords, key=lambda c: c[axis]))
            add(max(coords, key=lambda c: c[axis]))

        stride = max(1, len(coords) // max_vertices)
        for i in range(0, len(coords), stride):
            if len(vertices) >= max_vertices:
                break
            add(coords[i])

    if len(vertices) < HULL_MIN_VERTICES:
        cx, cy, cz = centroid
        vertices.extend([
            (cx + HULL_EPSILON, cy, cz),
            (cx, cy + HULL_EPSILON, cz),
            (cx, cy, cz + HULL_EPSILON),
        ])

    return vertices[:max_vertices]
