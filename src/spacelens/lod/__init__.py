"""
Level-of-detail aggregation: voxel bucketing and cluster hull sampling.
"""

from spacelens.lod.hull import sample_hull
from spacelens.lod.voxel import (
    VoxelAggregator,
    aggregate_points,
    cell_size,
    effective_min_count,
    voxel_key,
)

__all__ = [
    "VoxelAggregator",
    "aggregate_points",
    "cell_size",
    "effective_min_count",
    "sample_hull",
    "voxel_key",
]
