"""
Grid-accelerated DBSCAN over 3D feature vectors.

Neighborhood queries go through a spatial hash with cell edge eps, so a
full run costs O(n * average neighbors) instead of O(n^2).
"""
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from spacelens.clustering.features import (
    TextLookup,
    axis_weights,
    build_feature_vectors,
    params_from_detail,
)
from spacelens.clustering.spatial_grid import SpatialHashGrid
from spacelens.core.exceptions import ClusteringError, DataValidationError
from spacelens.core.models import (
    ClusterAssignment,
    ClusterParams,
    GroupingConfig,
    SpacePoint,
    Vec3,
)
from spacelens.utils.logger import logger

UNVISITED = -2
NOISE = -1


def _as_vectors(vectors) -> np.ndarray:
    arr = np.asarray(vectors, dtype=float)
    if arr.size == 0:
        return arr.reshape(0, 3)
    if arr.ndim != 2 or arr.shape[1] != 3:
        raise DataValidationError(f"Feature vectors must have shape (n, 3), got {arr.shape}")
    return arr


def dbscan3(
    vectors,
    params: ClusterParams,
    weights: Vec3 = (1.0, 1.0, 1.0),
) -> np.ndarray:
    """
    Label 3D vectors with DBSCAN.

    Points are processed in index order. A point with fewer than ``min_pts``
    neighbors (itself included) within ``eps`` is noise until some core point
    reaches it, at which point it joins that cluster as a border point without
    expanding further. Cluster labels are never reassigned. Rows with a
    non-finite component are noise and never anyone's neighbor.

    Args:
        vectors: Array-like of shape (n, 3).
        params: Neighborhood radius and core-point threshold.
        weights: Per-axis multipliers applied to coordinate differences.

    Returns:
        int32 array of length n: -1 for noise, 0..k-1 for clusters.
    """
    arr = _as_vectors(vectors)
    points = arr.tolist()
    eps2 = params.eps * params.eps
    wx, wy, wz = weights
    grid = SpatialHashGrid(points, params.eps)

    def region_query(index: int) -> List[int]:
        px, py, pz = points[index]
        neighbors = []
        for j in grid.candidates(points[index]):
            qx, qy, qz = points[j]
            dx = (px - qx) * wx
            dy = (py - qy) * wy
            dz = (pz - qz) * wz
            if dx * dx + dy * dy + dz * dz <= eps2:
                neighbors.append(j)
        return neighbors

    finite = np.isfinite(arr).all(axis=1).tolist()
    labels = [UNVISITED if ok else NOISE for ok in finite]
    cluster_id = 0

    for i in range(len(points)):
        if labels[i] != UNVISITED:
            continue

        neighbors = region_query(i)
        if len(neighbors) < params.min_pts:
            labels[i] = NOISE
            continue

        labels[i] = cluster_id
        queue = list(neighbors)
        head = 0
        while head < len(queue):
            j = queue[head]
            head += 1

            if labels[j] == NOISE:
                labels[j] = cluster_id
            if labels[j] != UNVISITED:
                continue

            labels[j] = cluster_id
            expansion = region_query(j)
            if len(expansion) >= params.min_pts:
                queue.extend(expansion)

        cluster_id += 1

    return np.asarray([NOISE if label == UNVISITED else label for label in labels], dtype=np.int32)


def drop_small_clusters(labels: np.ndarray, min_cluster_size: int) -> np.ndarray:
    """
    Relabel clusters with fewer than ``min_cluster_size`` members as noise and
    renumber the survivors 0..k-1 in order of first appearance.
    """
    labels = np.asarray(labels, dtype=np.int32)
    if min_cluster_size <= 1 or labels.size == 0:
        return labels.copy()

    ids, counts = np.unique(labels[labels != NOISE], return_counts=True)
    keep = {int(cid) for cid, count in zip(ids, counts) if count >= min_cluster_size}

    renumber: Dict[int, int] = {}
    out = np.full(labels.shape, NOISE, dtype=np.int32)
    for index, label in enumerate(labels.tolist()):
        if label in keep:
            if label not in renumber:
                renumber[label] = len(renumber)
            out[index] = renumber[label]
    return out


@dataclass
class ClusterStats:
    """Statistics about clustering results."""

    num_clusters: int
    num_noise_points: int
    total_points: int
    cluster_sizes: Dict[int, int]
    avg_cluster_size: float
    largest_cluster_size: int
    smallest_cluster_size: int
    noise_fraction: float


class DBSCANClusterer:
    """
    Density-based grouping of space points.

    Wraps :func:`dbscan3` with the grouping configuration: feature
    projection, detail-derived parameters, axis weights and the minimum
    cluster size filter. Holds the last fit for statistics and lookups.
    """

    def __init__(
        self,
        eps: float = 0.105,
        min_pts: int = 8,
        weights: Vec3 = (1.0, 1.0, 1.0),
        min_cluster_size: int = 1,
    ):
        """
        Initialize the clusterer.

        Args:
            eps: Neighborhood radius in feature space.
            min_pts: Neighbor count (self included) that makes a core point.
            weights: Per-axis distance weights.
            min_cluster_size: Clusters smaller than this are reported as noise.
        """
        if eps < 0 or min_pts < 0:
            raise ClusteringError(f"eps and min_pts must be non-negative, got eps={eps}, min_pts={min_pts}")

        self.params = ClusterParams(eps=eps, min_pts=min_pts)
        self.weights = tuple(float(w) for w in weights)
        self.min_cluster_size = max(1, min_cluster_size)

        self.labels: Optional[np.ndarray] = None
        self.vectors: Optional[np.ndarray] = None

        logger.debug(
            "Initialized DBSCANClusterer",
            eps=eps,
            min_pts=min_pts,
            weights=self.weights,
            min_cluster_size=self.min_cluster_size,
        )

    @classmethod
    def from_config(cls, config: GroupingConfig) -> "DBSCANClusterer":
        """Build a clusterer whose parameters follow ``config.detail``."""
        params = params_from_detail(config.detail)
        return cls(
            eps=params.eps,
            min_pts=params.min_pts,
            weights=axis_weights(config),
            min_cluster_size=config.min_cluster_size,
        )

    def fit(self, vectors) -> np.ndarray:
        """
        Cluster feature vectors and return labels.

        Args:
            vectors: Array of shape (n_samples, 3)

        Returns:
            Cluster labels (1D int32 array, -1 for noise points)
        """
        arr = _as_vectors(vectors)
        labels = dbscan3(arr, self.params, self.weights)
        labels = drop_small_clusters(labels, self.min_cluster_size)

        self.vectors = arr
        self.labels = labels

        num_clusters = len(set(labels.tolist()) - {NOISE})
        logger.info(
            "DBSCAN clustering complete",
            num_clusters=num_clusters,
            num_noise_points=int(np.sum(labels == NOISE)),
            total_points=len(labels),
        )
        return labels

    def cluster_points(
        self,
        points: Sequence[SpacePoint],
        config: GroupingConfig,
        text_value: Optional[TextLookup] = None,
    ) -> Tuple[List[ClusterAssignment], ClusterStats]:
        """
        Project points with ``config``, cluster them and build assignments.

        Returns:
            Tuple of (index-aligned ClusterAssignment list, ClusterStats)
        """
        vectors = build_feature_vectors(points, config, text_value)
        labels = self.fit(vectors)
        stats = self.get_stats()

        centers = {cid: self.get_cluster_center(cid) for cid in stats.cluster_sizes}

        assignments = []
        for index, (point, label) in enumerate(zip(points, labels.tolist())):
            if label == NOISE:
                assignments.append(ClusterAssignment(point_id=point.id, cluster_id=NOISE))
                continue
            distance = float(np.linalg.norm(vectors[index] - centers[label]))
            assignments.append(
                ClusterAssignment(
                    point_id=point.id,
                    cluster_id=label,
                    distance_to_centroid=distance,
                    cluster_size=stats.cluster_sizes[label],
                )
            )

        return assignments, stats

    def get_stats(self) -> ClusterStats:
        """
        Get clustering statistics.

        Raises:
            ClusteringError: If clustering hasn't been run yet
        """
        if self.labels is None:
            raise ClusteringError("Clustering hasn't been fit yet")

        labels = self.labels.tolist()
        total_points = len(labels)
        num_noise = labels.count(NOISE)

        cluster_sizes: Dict[int, int] = {}
        for label in labels:
            if label != NOISE:
                cluster_sizes[label] = cluster_sizes.get(label, 0) + 1

        sizes = list(cluster_sizes.values())
        return ClusterStats(
            num_clusters=len(cluster_sizes),
            num_noise_points=num_noise,
            total_points=total_points,
            cluster_sizes=cluster_sizes,
            avg_cluster_size=float(np.mean(sizes)) if sizes else 0.0,
            largest_cluster_size=max(sizes) if sizes else 0,
            smallest_cluster_size=min(sizes) if sizes else 0,
            noise_fraction=num_noise / total_points if total_points > 0 else 0.0,
        )

    def get_cluster_members(self, cluster_id: int) -> np.ndarray:
        """
        Get indices of points in a cluster.

        Args:
            cluster_id: Cluster ID (-1 for noise)
        """
        if self.labels is None:
            raise ClusteringError("Clustering hasn't been fit yet")

        return np.where(self.labels == cluster_id)[0]

    def get_cluster_center(self, cluster_id: int) -> np.ndarray:
        """
        Get the mean feature vector of a cluster.

        Raises:
            ClusteringError: If cluster doesn't exist or is noise
        """
        if cluster_id == NOISE:
            raise ClusteringError("Cannot get center of noise cluster (-1)")

        if self.vectors is None or self.labels is None:
            raise ClusteringError("Clustering hasn't been fit yet")

        members = self.get_cluster_members(cluster_id)
        if len(members) == 0:
            raise ClusteringError(f"Cluster {cluster_id} has no members")

        return self.vectors[members].mean(axis=0)
