"""Metered AI features and their static policy table.

Every Feature must appear in FEATURE_POLICIES; the module refuses to import
otherwise so a new feature cannot ship without quota, cost and cooldown.
"""

from dataclasses import dataclass
from enum import Enum

from usage_governor.common.exceptions import UnknownFeatureError


class Feature(str, Enum):
    """Feature identifiers accepted by the admission engine."""

    AI_SEARCH = "ai_search"
    AI_ANALYSIS = "ai_analysis"
    AI_GRANT_WRITING = "ai_grant_writing"
    AI_SYNTHESIS = "ai_synthesis"

    @property
    def label(self) -> str:
        """Human-readable name, e.g. "grant writing"."""
        return self.value.removeprefix("ai_").replace("_", " ")


@dataclass(frozen=True)
class FeaturePolicy:
    free_quota: int
    credit_cost: int
    cooldown_seconds: int


FEATURE_POLICIES: dict[Feature, FeaturePolicy] = {
    Feature.AI_SEARCH: FeaturePolicy(free_quota=20, credit_cost=1, cooldown_seconds=0),
    Feature.AI_ANALYSIS: FeaturePolicy(free_quota=5, credit_cost=3, cooldown_seconds=2 * 60),
    Feature.AI_GRANT_WRITING: FeaturePolicy(free_quota=3, credit_cost=5, cooldown_seconds=5 * 60),
    Feature.AI_SYNTHESIS: FeaturePolicy(free_quota=10, credit_cost=2, cooldown_seconds=0),
}

_unmapped = set(Feature) - set(FEATURE_POLICIES)
if _unmapped:
    raise RuntimeError(f"Features without a policy: {sorted(f.value for f in _unmapped)}")


def resolve_feature(value: "Feature | str") -> Feature:
    """Coerce a raw identifier into a Feature, rejecting anything unknown."""
    if isinstance(value, Feature):
        return value
    try:
        return Feature(value)
    except ValueError as exc:
        valid = ", ".join(f.value for f in Feature)
        raise UnknownFeatureError(
            f"Invalid feature type: {value!r}. Must be one of: {valid}"
        ) from exc
