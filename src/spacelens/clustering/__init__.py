"""
Clustering module for density-based grouping of space points.
Provides feature projection, a spatial hash grid and grid-accelerated DBSCAN.
"""

from spacelens.clustering.dbscan import ClusterStats, DBSCANClusterer, dbscan3
from spacelens.clustering.features import (
    axis_weights,
    build_feature_vectors,
    params_from_detail,
)
from spacelens.clustering.spatial_grid import SpatialHashGrid

__all__ = [
    "ClusterStats",
    "DBSCANClusterer",
    "SpatialHashGrid",
    "axis_weights",
    "build_feature_vectors",
    "dbscan3",
    "params_from_detail",
]
