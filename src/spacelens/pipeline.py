"""
Point pipeline.

rows -> per-entity grouping with metric merging -> axis projection ->
sanitization -> optional voxel LOD, plus the grouping-overlay entry point
that turns points into density cluster labels.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from spacelens.clustering.dbscan import DBSCANClusterer, NOISE
from spacelens.clustering.features import TextLookup, build_feature_vectors
from spacelens.core.metrics import MetricRegistry, default_registry, to_number
from spacelens.core.models import FieldKind, GroupingConfig, PlainPoint, SpaceField, SpacePoint
from spacelens.geometry.sanitizer import sanitize_points
from spacelens.lod.voxel import VoxelAggregator
from spacelens.utils.logger import logger

Row = Mapping[str, Any]


@dataclass
class EntityGroup:
    """All rows of one entity, with merged metrics and first-seen text values."""

    key: str
    metrics: Dict[str, float]
    attributes: Dict[str, str] = field(default_factory=dict)
    row_count: int = 0


def _infer_kind(value: Any) -> Optional[FieldKind]:
    if isinstance(value, (bool, int, float)):
        return FieldKind.NUMBER
    if isinstance(value, str):
        return FieldKind.TEXT
    return None


def group_rows(
    rows: Iterable[Row],
    entity_field: str,
    fields: Optional[Sequence[SpaceField]] = None,
    registry: Optional[MetricRegistry] = None,
) -> List[EntityGroup]:
    """
    Group rows by the value of ``entity_field``.

    Field kinds come from ``fields`` when given, otherwise from each value's
    Python type. Number fields are merged with the metric registry; for text
    fields the first non-empty value wins. Date fields are not carried.
    The entity value itself is kept as a text attribute even when numeric.
    Rows with a missing or blank entity value are skipped.
    """
    registry = registry or default_registry()
    kinds = {f.code: f.kind for f in fields} if fields else {}

    metrics_by_key: Dict[str, List[Dict[str, float]]] = {}
    attributes_by_key: Dict[str, Dict[str, str]] = {}

    for row in rows:
        raw_key = row.get(entity_field)
        key = "" if raw_key is None else str(raw_key).strip()
        if not key:
            continue

        metrics: Dict[str, float] = {}
        attributes = attributes_by_key.setdefault(key, {entity_field: key})
        for code, value in row.items():
            if code == entity_field:
                continue
            kind = kinds.get(code) or _infer_kind(value)
            if kind == FieldKind.NUMBER:
                metrics[code] = to_number(value)
            elif kind == FieldKind.TEXT and value is not None:
                text = str(value).strip()
                if text:
                    attributes.setdefault(code, text)
        metrics_by_key.setdefault(key, []).append(metrics)

    return [
        EntityGroup(
            key=key,
            metrics=registry.merge(members),
            attributes=attributes_by_key[key],
            row_count=len(members),
        )
        for key, members in metrics_by_key.items()
    ]


def build_points(
    rows: Sequence[Row],
    entity_fields: Sequence[str],
    axis_x: str,
    axis_y: str,
    axis_z: str,
    *,
    fields: Optional[Sequence[SpaceField]] = None,
    search: Optional[str] = None,
    lod_enabled: bool = True,
    lod_detail: float = 0.5,
    lod_min_count: int = 5,
    registry: Optional[MetricRegistry] = None,
) -> List[SpacePoint]:
    """
    Build the point set delivered to the renderer.

    Each selected entity field becomes its own source group. Coordinates are
    the merged values of the three axis metrics; missing or invalid values
    are repaired by the sanitizer. ``search`` keeps only points whose label
    contains it (case-insensitive).
    """
    registry = registry or default_registry()
    needle = search.strip().lower() if search else ""

    points: List[SpacePoint] = []
    for entity_field in entity_fields:
        for group in group_rows(rows, entity_field, fields, registry):
            if needle and needle not in group.key.lower():
                continue
            points.append(
                PlainPoint(
                    id=f"{entity_field}:{group.key}",
                    label=group.key,
                    source_field=entity_field,
                    metrics=group.metrics,
                    attributes=group.attributes,
                    x=to_number(group.metrics.get(axis_x)),
                    y=to_number(group.metrics.get(axis_y)),
                    z=to_number(group.metrics.get(axis_z)),
                )
            )

    points = sanitize_points(points)
    if lod_enabled:
        points = VoxelAggregator(lod_detail, lod_min_count, registry).aggregate(points)

    logger.info(
        "Built point set",
        rows=len(rows),
        entity_fields=list(entity_fields),
        axes=[axis_x, axis_y, axis_z],
        points=len(points),
        lod_enabled=lod_enabled,
    )
    return points


def cluster_labels(
    points: Sequence[SpacePoint],
    config: GroupingConfig,
    text_value: Optional[TextLookup] = None,
) -> List[int]:
    """
    Index-aligned density labels for the grouping overlay.

    Returns -1 for every point when grouping is disabled.
    """
    if not config.enabled or not points:
        return [NOISE] * len(points)

    vectors = build_feature_vectors(points, config, text_value)
    labels = DBSCANClusterer.from_config(config).fit(vectors)
    return labels.tolist()
