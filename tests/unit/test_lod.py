"""
Unit tests for voxel level-of-detail aggregation and hull sampling.
"""
import math

import pytest

from spacelens.core.exceptions import AggregationError
from spacelens.core.models import BoundingBox, ClusterPoint, PlainPoint
from spacelens.lod.hull import sample_hull
from spacelens.lod.voxel import (
    VoxelAggregator,
    aggregate_points,
    cell_size,
    effective_min_count,
    voxel_key,
)


def make_point(pid, x, y, z, source_field="sku", **metrics):
    return PlainPoint(id=pid, label=pid, source_field=source_field, metrics=metrics, x=x, y=y, z=z)


@pytest.fixture
def line_of_ten():
    """Ten points spread over a max span of 10."""
    return [make_point(f"p{i}", i * 10 / 9, i % 3, 0.5 * (i % 2), revenue=10.0) for i in range(10)]


class TestCellSize:
    """Tests for cell_size."""

    def test_endpoints(self):
        """Test the minimum and maximum cell edge."""
        box = BoundingBox(min_x=0, max_x=10, min_y=0, max_y=1, min_z=0, max_z=1)

        assert cell_size(0.0, box) == pytest.approx(0.001)
        assert cell_size(1.0, box) == pytest.approx(20.0)
        assert cell_size(0.5, box) == pytest.approx(10.0005)

    def test_detail_is_clamped(self):
        """Test that out-of-range detail behaves like the nearest endpoint."""
        box = BoundingBox(min_x=0, max_x=10, min_y=0, max_y=1, min_z=0, max_z=1)

        assert cell_size(-3, box) == cell_size(0, box)
        assert cell_size(7, box) == cell_size(1, box)

    def test_degenerate_box(self):
        """Test that a zero-extent box still yields a positive cell."""
        box = BoundingBox(min_x=2, max_x=2, min_y=2, max_y=2, min_z=2, max_z=2)

        assert cell_size(0.0, box) > 0

    def test_voxel_key_anchored_at_origin(self):
        """Test that negative coordinates index from the box minimum."""
        assert voxel_key((-10.0, -5.0, -1.0), (-10.0, -5.0, -1.0), 2.0) == (0, 0, 0)
        assert voxel_key((-7.0, -5.0, -1.0), (-10.0, -5.0, -1.0), 2.0) == (1, 0, 0)


class TestEffectiveMinCount:
    """Tests for effective_min_count."""

    def test_detail_zero_never_merges(self):
        """Test that detail 0 gives total + 1."""
        assert effective_min_count(0.0, 5, 5) == 6
        assert effective_min_count(0.0, 100, 5) == 101

    def test_detail_one_merges_everything(self):
        """Test that detail 1 gives 1."""
        assert effective_min_count(1.0, 10, 5) == 1

    def test_mid_range_rounds_half_up(self):
        """Test the blended threshold below the tail breakpoint."""
        # 12 * 0.5 + 5 * 0.5 = 8.5
        assert effective_min_count(0.5, 11, 5) == 9

    def test_tail_range(self):
        """Test the slide toward 1 above detail 0.85."""
        # mid = round(1.2 + 4.5) = 6, u = 1/3, round(4 + 1/3) = 4
        assert effective_min_count(0.9, 11, 5) == 4

    def test_lone_point_group(self):
        """Test that a single-point group is never wrapped in a cluster."""
        assert effective_min_count(0.0, 1, 5) == 2
        assert effective_min_count(1.0, 1, 5) == 2

    def test_monotonic_in_detail(self):
        """Test that the threshold never rises as detail grows."""
        values = [effective_min_count(i / 100, 50, 5) for i in range(101)]

        assert all(a >= b for a, b in zip(values, values[1:]))
        assert values[0] == 51
        assert values[-1] == 1


class TestVoxelAggregator:
    """Tests for VoxelAggregator."""

    def test_detail_zero_is_identity(self, line_of_ten):
        """Test that detail 0 returns every input point untouched."""
        result = VoxelAggregator(detail=0.0, base_min_count=1).aggregate(line_of_ten)

        assert len(result) == len(line_of_ten)
        assert all(a is b for a, b in zip(result, line_of_ten))

    def test_five_points_base_five_detail_zero(self):
        """Test that threshold 6 leaves a five-point group alone."""
        points = [make_point(f"p{i}", 0.0, 0.0, i * 1e-5) for i in range(5)]

        result = aggregate_points(points, detail=0.0, base_min_count=5)

        assert len(result) == 5
        assert not any(p.is_cluster for p in result)

    def test_detail_one_single_cluster(self, line_of_ten):
        """Test that detail 1 collapses the group into one cluster point."""
        result = aggregate_points(line_of_ten, detail=1.0)

        assert len(result) == 1
        cluster = result[0]
        assert isinstance(cluster, ClusterPoint)
        assert cluster.cluster_count == 10
        assert cluster.id == "cluster:sku:0|0|0"
        assert cluster.metrics["revenue"] == pytest.approx(100.0)

    def test_detail_one_with_negative_coordinates(self):
        """Test that negative coordinates still land in one cell."""
        points = [make_point(f"n{i}", -50 + i, -3 * i, -0.1 * i) for i in range(8)]

        result = aggregate_points(points, detail=1.0)

        assert len(result) == 1
        assert result[0].cluster_count == 8

    def test_groups_never_mix(self):
        """Test that each source group aggregates on its own."""
        points = [make_point(f"s{i}", i, i, i, source_field="sku") for i in range(4)]
        points += [make_point(f"c{i}", i, i, i, source_field="campaign_id") for i in range(3)]

        result = aggregate_points(points, detail=1.0)

        assert len(result) == 2
        assert {p.source_field for p in result} == {"sku", "campaign_id"}
        counts = {p.source_field: p.cluster_count for p in result}
        assert counts == {"sku": 4, "campaign_id": 3}

    def test_ratios_recomputed_from_sums(self):
        """Test that merged drr/roi follow summed revenue and spend."""
        points = [
            make_point("a", 0, 0, 0, revenue=100, spend=50, drr=50, roi=2, orders=3),
            make_point("b", 1, 1, 1, revenue=300, spend=30, drr=10, roi=10),
        ]

        cluster = aggregate_points(points, detail=1.0)[0]

        assert cluster.metrics["revenue"] == 400
        assert cluster.metrics["spend"] == 80
        assert cluster.metrics["orders"] == 3
        assert cluster.metrics["drr"] == pytest.approx(20.0)
        assert cluster.metrics["roi"] == pytest.approx(5.0)

    def test_sparse_metric_mean(self):
        """Test that averaged metrics count only members that define them."""
        points = [
            make_point("a", 0, 0, 0, cr2=0.4),
            make_point("b", 1, 0, 0),
            make_point("c", 2, 0, 0, cr2=0.2),
        ]

        cluster = aggregate_points(points, detail=1.0)[0]

        assert cluster.metrics["cr2"] == pytest.approx(0.3)

    def test_centroid_and_span(self):
        """Test centroid and floored per-axis span."""
        points = [make_point("a", 0, 2, 5), make_point("b", 4, 2, 5)]

        cluster = aggregate_points(points, detail=1.0)[0]

        assert cluster.coords == (2.0, 2.0, 5.0)
        assert cluster.span.x == pytest.approx(4.0)
        assert cluster.span.y == 0.001
        assert cluster.span.z == 0.001

    def test_mid_detail_merges_dense_cell_only(self):
        """Test that only the crowded cell merges at low detail."""
        blob = [make_point(f"b{i}", i * 0.01, 0.0, 0.0) for i in range(40)]
        outliers = [make_point("o1", 100, 100, 100), make_point("o2", 100, 0, 100)]

        # 42 points: threshold round(43 * 0.9 + 5 * 0.1) = 39, cell edge ~20
        result = aggregate_points(blob + outliers, detail=0.1, base_min_count=5)

        clusters = [p for p in result if p.is_cluster]
        plain = [p for p in result if not p.is_cluster]
        assert len(clusters) == 1
        assert clusters[0].cluster_count == 40
        assert [p.id for p in plain] == ["o1", "o2"]

    def test_deterministic_ids(self, line_of_ten):
        """Test that the same input and settings give the same output."""
        first = aggregate_points(line_of_ten, detail=0.7, base_min_count=2)
        second = aggregate_points(line_of_ten, detail=0.7, base_min_count=2)

        assert [p.id for p in first] == [p.id for p in second]

    def test_non_finite_points_pass_through(self):
        """Test that unplaceable points are kept as-is."""
        broken = make_point("x", math.nan, 0, 0)
        points = [make_point("a", 0, 0, 0), make_point("b", 1, 1, 1), broken]

        result = aggregate_points(points, detail=1.0)

        assert result[-1] is broken
        assert result[0].cluster_count == 2

    def test_threshold_counts_only_placeable_points(self):
        """Test that non-finite points do not raise the merge threshold."""
        points = [
            make_point("a", 0, 0, 0),
            make_point("b", 0.1, 0.1, 0.1),
            make_point("x", math.nan, 0, 0),
        ]

        result = aggregate_points(points, detail=0.5, base_min_count=1)

        assert len(result) == 2
        assert result[0].cluster_count == 2
        assert result[1] is points[2]

    def test_single_point_group(self):
        """Test that a lone point survives every detail value."""
        point = make_point("solo", 3, 3, 3)

        for detail in (0.0, 0.5, 1.0):
            assert aggregate_points([point], detail=detail) == [point]

    def test_shared_attributes_kept(self):
        """Test that text attributes common to all members survive merging."""
        points = [
            PlainPoint(id=f"p{i}", source_field="sku", attributes={"brand": "A", "sku": f"s{i}"}, x=i, y=0, z=0)
            for i in range(3)
        ]

        cluster = aggregate_points(points, detail=1.0)[0]

        assert cluster.attributes == {"brand": "A"}

    def test_invalid_base_min_count(self):
        """Test that a non-positive base count is rejected."""
        with pytest.raises(AggregationError):
            VoxelAggregator(detail=0.5, base_min_count=0)

    def test_empty_input(self):
        """Test aggregating nothing."""
        assert aggregate_points([], detail=0.5) == []


class TestSampleHull:
    """Tests for sample_hull."""

    def test_caps_at_24(self):
        """Test the vertex cap on a large cell."""
        members = [make_point(f"p{i}", i, (i * 7) % 11, (i * 3) % 5) for i in range(200)]

        hull = sample_hull(members, (0.0, 0.0, 0.0))

        assert len(hull) == 24
        assert len(set(hull)) == 24

    def test_includes_extremes(self):
        """Test that axis-extremal members are sampled first."""
        members = [make_point(f"p{i}", i, -i, i * 2) for i in range(30)]

        hull = sample_hull(members, (0.0, 0.0, 0.0))

        assert hull[0] == (0, 0, 0)
        assert hull[1] == (29, -29, 58)

    def test_degenerate_cell_is_padded(self):
        """Test that a collapsed cell gets three synthetic vertices."""
        members = [make_point(f"p{i}", 1.0, 1.0, 1.0) for i in range(5)]

        hull = sample_hull(members, (1.0, 1.0, 1.0))

        assert len(hull) == 4
        assert hull[0] == (1.0, 1.0, 1.0)
        assert hull[1] == pytest.approx((1.001, 1.0, 1.0))

    def test_cluster_hull_attached(self, line_of_ten):
        """Test that merged cells carry a non-degenerate hull."""
        cluster = aggregate_points(line_of_ten, detail=1.0)[0]

        assert 4 <= len(cluster.hull) <= 24
