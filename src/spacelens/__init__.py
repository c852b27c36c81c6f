"""
SpaceLens - level-of-detail aggregation and density clustering for entity point clouds.

This package turns business entities (SKUs, campaigns) projected into 3D metric
space into a manageable point set: voxel LOD aggregation for display and
grid-accelerated DBSCAN for grouping overlays.
"""

__version__ = "0.1.0"

from spacelens.config import settings

__all__ = [
    "settings",
    "__version__",
]
