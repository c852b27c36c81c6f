"""
Unit tests for the row-to-point pipeline and the grouping overlay entry point.
"""
import math

import pytest

from spacelens.core.models import FieldKind, GroupingConfig, SpaceField
from spacelens.pipeline import build_points, cluster_labels, group_rows


@pytest.fixture
def sample_rows():
    """Daily rows for three SKUs and two campaigns."""
    return [
        {"sku": "A1", "campaign_id": "c1", "brand": "North", "revenue": 100, "spend": 10, "orders": 2, "drr": 10, "roi": 10, "cr2": 0.1},
        {"sku": "A1", "campaign_id": "c1", "brand": "North", "revenue": 300, "spend": 90, "orders": 4, "drr": 30, "roi": 3.3, "cr2": 0.3},
        {"sku": "B2", "campaign_id": "c2", "brand": "Lime", "revenue": 50, "spend": 25, "orders": 1, "drr": 50, "roi": 2},
        {"sku": "C3", "campaign_id": "c2", "brand": "Pulse", "revenue": 70, "spend": 0, "orders": 1, "drr": 0, "roi": 0},
        {"sku": "", "campaign_id": "c3", "brand": "Orion", "revenue": 5, "spend": 1},
    ]


class TestGroupRows:
    """Tests for group_rows."""

    def test_groups_by_entity(self, sample_rows):
        """Test first-seen group order and per-group metric merging."""
        groups = group_rows(sample_rows, "sku")

        assert [g.key for g in groups] == ["A1", "B2", "C3"]
        a1 = groups[0]
        assert a1.row_count == 2
        assert a1.metrics["revenue"] == 400
        assert a1.metrics["orders"] == 6
        assert a1.metrics["drr"] == pytest.approx(25.0)
        assert a1.metrics["roi"] == pytest.approx(4.0)
        assert a1.metrics["cr2"] == pytest.approx(0.2)
        assert a1.attributes["brand"] == "North"

    def test_blank_entity_rows_skipped(self, sample_rows):
        """Test that rows without an entity value are ignored."""
        groups = group_rows(sample_rows, "sku")

        assert sum(g.row_count for g in groups) == 4

    def test_field_metadata_controls_kinds(self):
        """Test that declared number fields are coerced even from strings."""
        rows = [{"sku": "A", "revenue": "12.5", "date": "2024-01-01"}]
        fields = [
            SpaceField(code="sku", kind=FieldKind.TEXT),
            SpaceField(code="revenue", kind=FieldKind.NUMBER),
            SpaceField(code="date", kind=FieldKind.DATE),
        ]

        group = group_rows(rows, "sku", fields)[0]

        assert group.metrics["revenue"] == 12.5
        assert "date" not in group.attributes
        assert "date" not in group.metrics

    def test_ratio_only_dataset_keeps_ratios(self):
        """Test that roi survives grouping when the rows carry no revenue."""
        rows = [
            {"campaign_id": "c1", "spend": 10, "roi": 3.5},
            {"campaign_id": "c2", "spend": 20, "roi": 1.2},
        ]

        groups = group_rows(rows, "campaign_id")

        assert groups[0].metrics == {"spend": 10.0, "roi": 3.5}
        assert groups[1].metrics == {"spend": 20.0, "roi": 1.2}

        points = build_points(rows, ["campaign_id"], "spend", "roi", "spend", lod_enabled=False)
        assert [p.y for p in points] == [3.5, 1.2]

    def test_no_registry_metrics_added(self):
        """Test that metrics absent from the rows are not invented."""
        groups = group_rows([{"sku": "a", "clicks": 3}, {"sku": "a", "clicks": 5}], "sku")

        assert groups[0].metrics == {"clicks": 4.0}

    def test_numeric_entity_is_an_attribute(self):
        """Test that a numeric entity id is not merged as a metric."""
        rows = [{"campaign_id": 777, "spend": 5}, {"campaign_id": 777, "spend": 7}]

        group = group_rows(rows, "campaign_id")[0]

        assert group.key == "777"
        assert "campaign_id" not in group.metrics
        assert group.attributes["campaign_id"] == "777"
        assert group.metrics["spend"] == 12.0


class TestBuildPoints:
    """Tests for build_points."""

    def test_projection_without_lod(self, sample_rows):
        """Test that axes come from merged metrics."""
        points = build_points(sample_rows, ["sku"], "revenue", "spend", "roi", lod_enabled=False)

        assert [p.id for p in points] == ["sku:A1", "sku:B2", "sku:C3"]
        assert points[0].coords == pytest.approx((400.0, 100.0, 4.0))
        assert all(p.source_field == "sku" for p in points)
        assert not any(p.is_cluster for p in points)

    def test_each_entity_field_is_a_group(self, sample_rows):
        """Test that several entity fields give separate source groups."""
        points = build_points(sample_rows, ["sku", "campaign_id"], "revenue", "spend", "orders", lod_enabled=False)

        assert [p.source_field for p in points].count("sku") == 3
        assert [p.source_field for p in points].count("campaign_id") == 3

    def test_detail_one_gives_one_cluster_per_group(self, sample_rows):
        """Test full aggregation across two source groups."""
        points = build_points(
            sample_rows, ["sku", "campaign_id"], "revenue", "spend", "orders", lod_detail=1.0
        )

        assert len(points) == 2
        assert all(p.is_cluster for p in points)
        assert {p.source_field: p.cluster_count for p in points} == {"sku": 3, "campaign_id": 3}

    def test_detail_zero_keeps_every_entity(self, sample_rows):
        """Test that detail 0 keeps one point per entity."""
        points = build_points(sample_rows, ["sku"], "revenue", "spend", "roi", lod_detail=0.0)

        assert len(points) == 3

    def test_missing_axis_is_repaired(self, sample_rows):
        """Test that an unknown axis metric yields finite coordinates."""
        points = build_points(sample_rows, ["sku"], "revenue", "spend", "position", lod_enabled=False)

        assert all(math.isfinite(p.z) for p in points)

    def test_search_filter(self, sample_rows):
        """Test case-insensitive label search."""
        points = build_points(sample_rows, ["sku"], "revenue", "spend", "roi", search="b2", lod_enabled=False)

        assert [p.label for p in points] == ["B2"]

    def test_empty_rows(self):
        """Test that no rows give no points."""
        assert build_points([], ["sku"], "revenue", "spend", "roi") == []


class TestClusterLabels:
    """Tests for cluster_labels."""

    def test_disabled_config_is_all_noise(self, sample_rows):
        """Test that disabled grouping labels every point -1."""
        points = build_points(sample_rows, ["sku"], "revenue", "spend", "roi", lod_enabled=False)

        assert cluster_labels(points, GroupingConfig(enabled=False)) == [-1, -1, -1]

    def test_labels_are_index_aligned(self, sample_rows):
        """Test one integer label per input point."""
        points = build_points(sample_rows, ["sku", "campaign_id"], "revenue", "spend", "roi", lod_enabled=False)
        config = GroupingConfig(principle="behavior", feature_fields=["brand"], detail=0.0)

        labels = cluster_labels(points, config)

        assert len(labels) == len(points)
        assert all(isinstance(label, int) and label >= -1 for label in labels)

    def test_behavior_groups_identical_text(self):
        """Test that entities with the same text land in the same cluster."""
        rows = [{"sku": f"s{i}", "brand": "North" if i < 4 else f"Other{i}", "revenue": i} for i in range(8)]
        points = build_points(rows, ["sku"], "revenue", "revenue", "revenue", lod_enabled=False)
        config = GroupingConfig(principle="behavior", feature_fields=["brand"], detail=0.0)

        labels = cluster_labels(points, config)

        assert labels[:4] == [0, 0, 0, 0]

    def test_empty_points(self):
        """Test labeling nothing."""
        assert cluster_labels([], GroupingConfig()) == []
