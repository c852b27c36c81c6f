"""
Pydantic models for type-safe data handling.
Defines the contract for space points, bounding boxes and grouping configuration.
"""
from typing import Annotated, Any, Dict, List, Literal, Optional, Tuple, Union
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

from spacelens.core.metrics import to_number

Vec3 = Tuple[float, float, float]

AXES: Tuple[str, str, str] = ("x", "y", "z")

# Smallest span reported for any axis of a box or a cluster.
SPAN_FLOOR = 0.001


class FieldKind(str, Enum):
    """Value kind of a row field."""
    TEXT = "text"
    NUMBER = "number"
    DATE = "date"


class FieldRole(str, Enum):
    """How a field may be used when building the space."""
    ENTITY = "entity"
    AXIS = "axis"
    FILTER = "filter"


class SpaceField(BaseModel):
    """Metadata describing one column of the row source."""

    code: str = Field(..., min_length=1, description="Field code used as the row key")
    name: str = Field("", description="Display name")
    kind: FieldKind = Field(..., description="Value kind")
    roles: List[FieldRole] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)


class Span(BaseModel):
    """Per-axis extent of a cluster's members."""

    x: float = Field(SPAN_FLOOR, ge=0.0)
    y: float = Field(SPAN_FLOOR, ge=0.0)
    z: float = Field(SPAN_FLOOR, ge=0.0)

    model_config = ConfigDict(frozen=True)


class BoundingBox(BaseModel):
    """
    Axis-aligned bounding box.

    A tight box over a single position has zero raw extent; consumers read
    extents through ``span()`` which never drops below ``SPAN_FLOOR``.
    """

    min_x: float
    max_x: float
    min_y: float
    max_y: float
    min_z: float
    max_z: float

    model_config = ConfigDict(frozen=True)

    @classmethod
    def unit(cls) -> "BoundingBox":
        """The [0,1]^3 box used when no finite point exists."""
        return cls(min_x=0.0, max_x=1.0, min_y=0.0, max_y=1.0, min_z=0.0, max_z=1.0)

    def minimum(self, axis: str) -> float:
        return getattr(self, f"min_{axis}")

    def maximum(self, axis: str) -> float:
        return getattr(self, f"max_{axis}")

    def span(self, axis: str) -> float:
        """Extent along ``axis``, floored at SPAN_FLOOR."""
        return max(SPAN_FLOOR, self.maximum(axis) - self.minimum(axis))

    @property
    def max_span(self) -> float:
        return max(self.span(axis) for axis in AXES)

    @property
    def origin(self) -> Vec3:
        return (self.min_x, self.min_y, self.min_z)


class _PointBase(BaseModel):
    """Fields shared by plain and cluster points."""

    id: str = Field(..., description="Stable point identity")
    label: str = Field("", description="Display label")
    source_field: str = Field(..., description="Source group key (entity field code)")
    metrics: Dict[str, float] = Field(default_factory=dict)
    attributes: Dict[str, str] = Field(
        default_factory=dict,
        description="Text fields of the entity, used for behavior grouping",
    )
    x: float
    y: float
    z: float

    model_config = ConfigDict(frozen=True)

    @field_validator("metrics", mode="before")
    @classmethod
    def coerce_metrics(cls, v: Any) -> Dict[str, float]:
        """Coerce metric values to float; anything non-numeric becomes NaN."""
        if v is None:
            return {}
        return {str(key): to_number(value) for key, value in dict(v).items()}

    @property
    def coords(self) -> Vec3:
        return (self.x, self.y, self.z)


class PlainPoint(_PointBase):
    """A single entity projected into the space."""

    kind: Literal["point"] = "point"

    @property
    def is_cluster(self) -> bool:
        return False


class ClusterPoint(_PointBase):
    """
    Synthetic point standing in for every member of one voxel cell.

    Metrics are merged with the metric registry, ``span`` holds the members'
    per-axis extent and ``hull`` an approximate boundary sample.
    """

    kind: Literal["cluster"] = "cluster"
    cluster_count: int = Field(..., ge=1, description="Number of merged members")
    span: Span = Field(default_factory=Span)
    hull: List[Vec3] = Field(default_factory=list, max_length=24)

    @property
    def is_cluster(self) -> bool:
        return True


SpacePoint = Annotated[Union[PlainPoint, ClusterPoint], Field(discriminator="kind")]

point_list_adapter = TypeAdapter(List[SpacePoint])


class GroupingPrinciple(str, Enum):
    """Feature space used for density grouping."""
    PROXIMITY = "proximity"
    EFFICIENCY = "efficiency"
    BEHAVIOR = "behavior"


class RecomputeMode(str, Enum):
    """Scheduling hint for the caller; the core ignores it."""
    AUTO = "auto"
    FIXED = "fixed"
    MANUAL = "manual"


class GroupingConfig(BaseModel):
    """
    Caller-owned configuration for the grouping overlay.
    """

    enabled: bool = Field(True, description="When False every point is noise")
    principle: GroupingPrinciple = Field(default=GroupingPrinciple.PROXIMITY)
    feature_fields: List[str] = Field(
        default_factory=list,
        max_length=3,
        description="Metric fields (efficiency) or text fields (behavior)",
    )
    detail: float = Field(0.5, ge=0.0, le=1.0, description="0 = fine, 1 = coarse")
    custom_weights: bool = Field(False, description="Apply w_x/w_y/w_z (proximity only)")
    w_x: float = Field(1.0, ge=0.0)
    w_y: float = Field(1.0, ge=0.0)
    w_z: float = Field(1.0, ge=0.0)
    min_cluster_size: int = Field(1, ge=1, description="Smaller clusters become noise")
    recompute: RecomputeMode = Field(default=RecomputeMode.AUTO)

    model_config = ConfigDict(validate_assignment=True)


class ClusterParams(BaseModel):
    """DBSCAN neighborhood radius and core-point threshold."""

    eps: float = Field(..., ge=0.0)
    min_pts: int = Field(..., ge=0)

    model_config = ConfigDict(frozen=True)


class ClusterAssignment(BaseModel):
    """
    Assignment of a point to a density cluster.
    """

    point_id: str = Field(..., description="Reference to SpacePoint.id")
    cluster_id: int = Field(..., ge=-1, description="Cluster label (-1 for noise)")
    distance_to_centroid: Optional[float] = Field(
        None,
        ge=0.0,
        description="Feature-space distance to cluster center",
    )
    cluster_size: Optional[int] = Field(None, ge=1, description="Total points in cluster")

    model_config = ConfigDict(validate_assignment=True)

    @property
    def is_noise(self) -> bool:
        """Check if this point is classified as noise."""
        return self.cluster_id == -1
