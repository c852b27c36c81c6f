"""
Metric-kind registry.

Decides how each named metric is combined when several points (or several
rows of one entity) are merged into one: additive metrics are summed,
averaged metrics take the mean of the members that define them, and derived
metrics are recomputed from the merged values when their inputs are present.
"""
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple


class MetricKind(str, Enum):
    """How a metric combines across merged members."""
    ADDITIVE = "additive"
    AVERAGED = "averaged"
    DERIVED = "derived"


@dataclass(frozen=True)
class MetricRule:
    """Combination rule for one metric name."""

    name: str
    kind: MetricKind
    formula: Optional[Callable[[Mapping[str, float]], float]] = None
    inputs: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self):
        if self.kind == MetricKind.DERIVED and self.formula is None:
            raise ValueError(f"Derived metric '{self.name}' needs a formula")


def to_number(value: Any) -> float:
    """
    Coerce a raw value to float.

    Never raises: anything that is not numeric (None, empty or unparsable
    strings, containers) becomes NaN.
    """
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return math.nan
        try:
            return float(text)
        except ValueError:
            return math.nan
    return math.nan


def drr_formula(merged: Mapping[str, float]) -> float:
    """Advertising cost ratio in percent: spend / revenue * 100."""
    revenue = merged.get("revenue", 0.0)
    spend = merged.get("spend", 0.0)
    return spend / revenue * 100.0 if revenue > 0 else 0.0


def roi_formula(merged: Mapping[str, float]) -> float:
    """Return on ad spend: revenue / spend."""
    revenue = merged.get("revenue", 0.0)
    spend = merged.get("spend", 0.0)
    return revenue / spend if spend > 0 else 0.0


class MetricRegistry:
    """
    Per-name metric rules. Names without a rule are averaged.
    """

    def __init__(self, rules: Iterable[MetricRule] = ()):
        self._rules: Dict[str, MetricRule] = {}
        for rule in rules:
            self.register(rule)

    def register(self, rule: MetricRule) -> None:
        self._rules[rule.name] = rule

    def rule_for(self, name: str) -> MetricRule:
        return self._rules.get(name) or MetricRule(name, MetricKind.AVERAGED)

    def kind_of(self, name: str) -> MetricKind:
        return self.rule_for(name).kind

    def names(self, kind: MetricKind) -> List[str]:
        return [name for name, rule in self._rules.items() if rule.kind == kind]

    def merge(self, members: Iterable[Mapping[str, Any]]) -> Dict[str, float]:
        """
        Merge the metric mappings of several members into one mapping.

        Only keys observed on at least one member appear in the result.
        Additive metrics are summed with missing or invalid values counted as 0.
        Averaged metrics use a per-key count, so members lacking a key do not
        dilute it; a key with no valid value at all stays NaN. A derived metric
        is recomputed from the merged values when every one of its inputs was
        observed; otherwise an observed derived value is averaged like any
        other metric.
        """
        sums: Dict[str, float] = {}
        counts: Dict[str, int] = {}
        order: List[str] = []

        for metrics in members:
            for key, raw in metrics.items():
                if key not in sums:
                    sums[key] = 0.0
                    counts[key] = 0
                    order.append(key)
                value = to_number(raw)
                if math.isfinite(value):
                    sums[key] += value
                    counts[key] += 1

        merged: Dict[str, float] = {}
        for key in order:
            if self.kind_of(key) == MetricKind.ADDITIVE:
                merged[key] = sums[key]
            else:
                merged[key] = sums[key] / counts[key] if counts[key] else math.nan

        for key in self.names(MetricKind.DERIVED):
            rule = self._rules[key]
            if all(name in sums for name in rule.inputs or (key,)):
                merged[key] = float(rule.formula(merged))

        return merged


def default_registry() -> MetricRegistry:
    """Registry with the business metrics of the sales and ads datasets."""
    return MetricRegistry(
        [
            MetricRule("revenue", MetricKind.ADDITIVE),
            MetricRule("spend", MetricKind.ADDITIVE),
            MetricRule("orders", MetricKind.ADDITIVE),
            MetricRule("drr", MetricKind.DERIVED, drr_formula, ("spend", "revenue")),
            MetricRule("roi", MetricKind.DERIVED, roi_formula, ("revenue", "spend")),
        ]
    )
