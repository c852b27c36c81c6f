"""
Voxel level-of-detail aggregation.

Buckets each source group into a uniform grid anchored at the group's
bounding-box minimum and merges crowded cells into synthetic cluster points.
A single ``detail`` value in [0, 1] drives both the cell edge and the
occupancy threshold: at 0 nothing merges, at 1 every group collapses into one
cluster point.
"""
import math
from typing import Dict, List, Optional, Sequence, Tuple

from spacelens.core.exceptions import AggregationError
from spacelens.core.metrics import MetricRegistry, default_registry
from spacelens.core.models import (
    AXES,
    SPAN_FLOOR,
    BoundingBox,
    ClusterPoint,
    SpacePoint,
    Span,
    Vec3,
)
from spacelens.geometry.bbox import build_bbox
from spacelens.lod.hull import sample_hull
from spacelens.utils.logger import logger

VoxelKey = Tuple[int, int, int]

MIN_CELL_DIVISOR = 10_000
MIN_CELL_FLOOR = 1e-9
MAX_CELL_FACTOR = 2.0
# Above this detail the threshold slides from base_min_count down to 1
TAIL_START = 0.85


def clamp01(value: float) -> float:
    if not math.isfinite(value):
        return 0.0
    return min(1.0, max(0.0, value))


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def cell_size(detail: float, bbox: BoundingBox) -> float:
    """
    Voxel edge for ``detail``.

    Interpolates linearly from ``max_span / 10000`` at detail 0 to
    ``2 * max_span`` at detail 1, where the whole box fits in one cell.
    """
    d = clamp01(detail)
    max_span = bbox.max_span
    min_size = max(MIN_CELL_FLOOR, max_span / MIN_CELL_DIVISOR)
    max_size = max_span * MAX_CELL_FACTOR
    return min_size + (max_size - min_size) * d


def voxel_key(coords: Vec3, origin: Vec3, size: float) -> VoxelKey:
    """Grid cell of ``coords`` with indexing anchored at ``origin``."""
    return (
        math.floor((coords[0] - origin[0]) / size),
        math.floor((coords[1] - origin[1]) / size),
        math.floor((coords[2] - origin[2]) / size),
    )


def effective_min_count(detail: float, total: int, base_min_count: int) -> int:
    """
    Occupancy at which a cell is merged into a cluster point.

    detail 0 gives ``total + 1`` (never merge) and detail 1 gives 1. Below
    0.85 the threshold blends from ``total + 1`` toward ``base_min_count``;
    above it the blended value slides further down to 1. A group with at most
    one point always gets 2, so a lone point is never wrapped in a cluster.
    """
    d = clamp01(detail)
    if total <= 1:
        return 2

    no_agg = total + 1
    mid = max(2, round_half_up(no_agg * (1 - d) + base_min_count * d))
    if d < TAIL_START:
        return min(no_agg, max(2, mid))

    u = (d - TAIL_START) / (1 - TAIL_START)
    tail = round_half_up(mid * (1 - u) + 1 * u)
    return max(1, min(no_agg, tail))


def cluster_id_for(source_field: str, key: VoxelKey) -> str:
    return f"cluster:{source_field}:{key[0]}|{key[1]}|{key[2]}"


def _common_attributes(members: Sequence[SpacePoint]) -> Dict[str, str]:
    common = dict(members[0].attributes)
    for member in members[1:]:
        common = {k: v for k, v in common.items() if member.attributes.get(k) == v}
        if not common:
            break
    return common


class VoxelAggregator:
    """
    Level-of-detail aggregator over homogeneous source groups.

    Points from different source groups are never merged together; each group
    gets its own bounding box, cell size and threshold.
    """

    def __init__(
        self,
        detail: float = 0.5,
        base_min_count: int = 5,
        registry: Optional[MetricRegistry] = None,
    ):
        """
        Initialize the aggregator.

        Args:
            detail: 0..1, higher merges more aggressively. Out-of-range values
                are clamped.
            base_min_count: Cell occupancy that triggers merging in the middle
                of the detail range.
            registry: Metric rules for merging; defaults to the business
                metric registry.
        """
        if base_min_count < 1:
            raise AggregationError(f"base_min_count must be >= 1, got {base_min_count}")

        self.detail = clamp01(detail)
        self.base_min_count = base_min_count
        self.registry = registry or default_registry()

    def aggregate(self, points: Sequence[SpacePoint]) -> List[SpacePoint]:
        """
        Aggregate ``points`` into a new list.

        Groups are emitted in first-seen order and cells in first-seen order
        within a group. Cells below the threshold pass their members through
        unchanged. Points with non-finite coordinates are never bucketed and
        follow their group's cells as-is.
        """
        groups: Dict[str, List[SpacePoint]] = {}
        for point in points:
            groups.setdefault(point.source_field, []).append(point)

        out: List[SpacePoint] = []
        clusters = 0
        for source_field, members in groups.items():
            group_out = self._aggregate_group(source_field, members)
            clusters += sum(1 for p in group_out if p.is_cluster)
            out.extend(group_out)

        logger.info(
            "Voxel aggregation complete",
            detail=self.detail,
            groups=len(groups),
            input_points=len(points),
            output_points=len(out),
            clusters=clusters,
        )
        return out

    def _aggregate_group(self, source_field: str, members: List[SpacePoint]) -> List[SpacePoint]:
        placeable: List[SpacePoint] = []
        unplaceable: List[SpacePoint] = []
        for point in members:
            if all(math.isfinite(c) for c in point.coords):
                placeable.append(point)
            else:
                unplaceable.append(point)

        bbox = build_bbox(placeable)
        size = cell_size(self.detail, bbox)
        threshold = effective_min_count(self.detail, len(placeable), self.base_min_count)

        cells: Dict[VoxelKey, List[SpacePoint]] = {}
        for point in placeable:
            cells.setdefault(voxel_key(point.coords, bbox.origin, size), []).append(point)

        logger.debug(
            "Bucketed source group",
            source_field=source_field,
            points=len(members),
            cells=len(cells),
            cell_size=size,
            min_count=threshold,
        )

        out: List[SpacePoint] = []
        for key, cell in cells.items():
            if len(cell) < threshold:
                out.extend(cell)
            else:
                out.append(self._merge_cell(source_field, key, cell))
        out.extend(unplaceable)
        return out

    def _merge_cell(self, source_field: str, key: VoxelKey, cell: List[SpacePoint]) -> ClusterPoint:
        n = len(cell)
        centroid: Vec3 = (
            sum(p.x for p in cell) / n,
            sum(p.y for p in cell) / n,
            sum(p.z for p in cell) / n,
        )
        extents = {
            axis: max(SPAN_FLOOR, max(getattr(p, axis) for p in cell) - min(getattr(p, axis) for p in cell))
            for axis in AXES
        }

        return ClusterPoint(
            id=cluster_id_for(source_field, key),
            label=f"{source_field} ×{n}",
            source_field=source_field,
            metrics=self.registry.merge(p.metrics for p in cell),
            attributes=_common_attributes(cell),
            x=centroid[0],
            y=centroid[1],
            z=centroid[2],
            cluster_count=n,
            span=Span(**extents),
            hull=sample_hull(cell, centroid),
        )


def aggregate_points(
    points: Sequence[SpacePoint],
    detail: float,
    base_min_count: int = 5,
    registry: Optional[MetricRegistry] = None,
) -> List[SpacePoint]:
    """Functional shortcut for ``VoxelAggregator(...).aggregate(points)``."""
    return VoxelAggregator(detail, base_min_count, registry).aggregate(points)
