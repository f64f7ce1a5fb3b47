"""Configuration dataclasses for the workflow ecosystem.

Each config is a frozen ``dataclass`` with a ``validate()`` method that raises
``ValueError`` on invalid values, plus ``to_dict`` / ``from_dict`` helpers.
Every heuristic threshold the services use lives here so that it can be tuned
without touching the algorithms.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field, fields
from typing import Any

from workflow_ecosystem.domain.exceptions import ConfigurationError


def _check_unit(name: str, value: float) -> None:
    if not (0.0 <= value <= 1.0):
        raise ValueError(f"{name} must be in [0, 1], got {value}")


def _check_positive(name: str, value: float) -> None:
    if value <= 0:
        raise ValueError(f"{name} must be > 0, got {value}")


# ===================================================================== #
#  Reputation                                                            #
# ===================================================================== #

@dataclass(frozen=True)
class ReputationWeights:
    """Weights of the reputation blend.

    Performance and reliability carry more weight than raw usage or
    importance.  The five weights must sum to 1 so that a blend of unit
    inputs stays in [0, 1].

    Attributes
    ----------
    quality, reliability, usage, enhancement, importance:
        Blend weights.
    usage_saturation:
        Access count at which the usage input reaches 1.
    enhancement_present, enhancement_absent:
        Enhancement input depending on whether the record advertises one.
    default_importance:
        Importance input when the record carries none.
    """

    quality: float = 0.30
    reliability: float = 0.25
    usage: float = 0.20
    enhancement: float = 0.15
    importance: float = 0.10
    usage_saturation: float = 100.0
    enhancement_present: float = 0.8
    enhancement_absent: float = 0.2
    default_importance: float = 0.5

    def validate(self) -> None:
        """Raise ``ValueError`` if any field is out of valid range."""
        weights = (self.quality, self.reliability, self.usage, self.enhancement, self.importance)
        for name, value in zip(
            ("quality", "reliability", "usage", "enhancement", "importance"), weights
        ):
            _check_unit(name, value)
        if abs(sum(weights) - 1.0) > 1e-6:
            raise ValueError(f"reputation weights must sum to 1, got {sum(weights):.6f}")
        _check_positive("usage_saturation", self.usage_saturation)
        _check_unit("enhancement_present", self.enhancement_present)
        _check_unit("enhancement_absent", self.enhancement_absent)
        _check_unit("default_importance", self.default_importance)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ReputationWeights:
        valid_keys = {f.name for f in fields(cls)}
        filtered = {k: v for k, v in data.items() if k in valid_keys}
        cfg = cls(**filtered)
        cfg.validate()
        return cfg


# ===================================================================== #
#  Performance Tracker                                                   #
# ===================================================================== #

@dataclass(frozen=True)
class TrackerConfig:
    """Parameters of the performance tracker.

    Attributes
    ----------
    max_samples:
        Size of the per-workflow sample ring.
    max_enhancements:
        Size of the per-workflow enhancement history.
    min_samples:
        Samples required before trends or enhancements are computed.
    analysis_window:
        Number of most recent samples the enhancement heuristics inspect.
    stable_slope:
        Trends with ``|slope|`` below this are reported as stable.
    trend_points:
        Number of ``(timestamp, value)`` points kept on each trend.
    execution_degradation:
        Relative execution-time growth between window halves that
        triggers an optimization enhancement.
    error_rate_threshold, memory_threshold, cpu_threshold,
    quality_threshold, satisfaction_threshold:
        Mean-value triggers of the remaining heuristics.
    confident_trend:
        Confidence above which a declining trend becomes a warning.
    validation_confidence:
        Confidence above which an enhancement validates.
    """

    max_samples: int = 100
    max_enhancements: int = 500
    min_samples: int = 5
    analysis_window: int = 10
    stable_slope: float = 0.01
    trend_points: int = 20
    execution_degradation: float = 0.2
    error_rate_threshold: float = 0.1
    memory_threshold: float = 500.0
    cpu_threshold: float = 10000.0
    quality_threshold: float = 0.8
    satisfaction_threshold: float = 0.7
    confident_trend: float = 0.8
    validation_confidence: float = 0.7

    def validate(self) -> None:
        if self.max_samples < 1:
            raise ValueError(f"max_samples must be >= 1, got {self.max_samples}")
        if self.max_enhancements < 1:
            raise ValueError(
                f"max_enhancements must be >= 1, got {self.max_enhancements}"
            )
        if self.min_samples < 2:
            raise ValueError(f"min_samples must be >= 2, got {self.min_samples}")
        if self.analysis_window < self.min_samples:
            raise ValueError(
                f"analysis_window ({self.analysis_window}) must be >= "
                f"min_samples ({self.min_samples})"
            )
        if self.stable_slope < 0.0:
            raise ValueError(f"stable_slope must be >= 0, got {self.stable_slope}")
        if self.trend_points < 1:
            raise ValueError(f"trend_points must be >= 1, got {self.trend_points}")
        _check_positive("execution_degradation", self.execution_degradation)
        _check_unit("error_rate_threshold", self.error_rate_threshold)
        _check_positive("memory_threshold", self.memory_threshold)
        _check_positive("cpu_threshold", self.cpu_threshold)
        _check_unit("quality_threshold", self.quality_threshold)
        _check_unit("satisfaction_threshold", self.satisfaction_threshold)
        _check_unit("confident_trend", self.confident_trend)
        _check_unit("validation_confidence", self.validation_confidence)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TrackerConfig:
        valid_keys = {f.name for f in fields(cls)}
        filtered = {k: v for k, v in data.items() if k in valid_keys}
        cfg = cls(**filtered)
        cfg.validate()
        return cfg


# ===================================================================== #
#  Relationship Manager                                                  #
# ===================================================================== #

@dataclass(frozen=True)
class RelationshipConfig:
    """Thresholds of the relationship graph.

    Attributes
    ----------
    hub_connectivity, hub_influence:
        A node above both is reported as a hub workflow.
    strengthen_above, strengthen_below, strengthen_step:
        Edges to targets scoring above ``strengthen_above`` gain
        ``strengthen_step`` while their strength is below
        ``strengthen_below``.
    weaken_below, weaken_step, weaken_floor:
        Edges to targets scoring below ``weaken_below`` lose
        ``weaken_step``, never dropping under ``weaken_floor``.
    removal_threshold:
        Edges weaker than this are removed.
    propose_above:
        Unlinked workflows scoring above this are proposed as new edges.
    default_score:
        Performance score assumed for workflows missing from the input.
    propagation_min_impact, bug_fix_min_impact:
        Impact gates of enhancement propagation.
    """

    hub_connectivity: float = 0.7
    hub_influence: float = 0.5
    strengthen_above: float = 0.8
    strengthen_below: float = 0.9
    strengthen_step: float = 0.1
    weaken_below: float = 0.3
    weaken_step: float = 0.2
    weaken_floor: float = 0.1
    removal_threshold: float = 0.05
    propose_above: float = 0.8
    default_score: float = 0.5
    propagation_min_impact: float = 0.1
    bug_fix_min_impact: float = 0.2

    def validate(self) -> None:
        for f in fields(self):
            _check_unit(f.name, getattr(self, f.name))
        if self.weaken_below >= self.strengthen_above:
            raise ValueError(
                f"weaken_below ({self.weaken_below}) must be < "
                f"strengthen_above ({self.strengthen_above})"
            )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RelationshipConfig:
        valid_keys = {f.name for f in fields(cls)}
        filtered = {k: v for k, v in data.items() if k in valid_keys}
        cfg = cls(**filtered)
        cfg.validate()
        return cfg


# ===================================================================== #
#  Discovery                                                             #
# ===================================================================== #

WORKFLOW_HUB_ID = "HwMaF8hOPt1xUBkDhI3k00INvr5t4d6V9dLmCGj5YYg"

# Keyword -> coarse capability bucket.  Checked in insertion order; the first
# keyword contained in the lowercased query wins.
DEFAULT_CAPABILITY_MAP: dict[str, str] = {
    "analysis": "data-analysis",
    "analytics": "data-analysis",
    "api": "integration",
    "automation": "workflow-automation",
    "connector": "integration",
    "csv": "format-conversion",
    "insights": "data-analysis",
    "json": "format-conversion",
    "orchestration": "workflow-automation",
    "parsing": "data-processing",
    "pipeline": "workflow-automation",
    "reporting": "data-analysis",
    "transformation": "data-processing",
    "validation": "data-processing",
    "webhook": "integration",
    "xml": "format-conversion",
}


@dataclass(frozen=True)
class DiscoveryConfig:
    """Parameters of the discovery service.

    Attributes
    ----------
    hub_id:
        The dedicated workflow hub queried by the search operations.
    network_hubs:
        Additional hubs known to the network (for hub discovery and
        network statistics).
    query_timeout:
        Seconds a single relay query may take; ``None`` waits forever.
    result_cache_ttl, stats_cache_ttl, hub_discovery_ttl:
        Cache lifetimes in seconds.
    result_cache_max_entries:
        Most search results kept at once; the oldest are evicted first.
    capability_limit, query_limit, requirements_limit, stats_limit,
    enhancement_limit, hub_limit:
        Relay ``limit`` of each query kind.
    high_quality_reputation, high_quality_performance:
        Quality gate of the progressive search.
    quality_gate_size:
        Number of top broad results that must all pass the gate.
    similarity_threshold:
        Overlap a workflow must exceed to count as similar.
    top_capabilities:
        Length of the capability frequency list in statistics.
    max_network_hubs:
        Most active hubs inspected by network-wide operations.
    capability_map, default_capability:
        Query keyword classification.
    """

    hub_id: str = WORKFLOW_HUB_ID
    network_hubs: tuple[str, ...] = ()
    query_timeout: float | None = 10.0
    result_cache_ttl: float = 120.0
    stats_cache_ttl: float = 300.0
    hub_discovery_ttl: float = 300.0
    result_cache_max_entries: int = 256
    capability_limit: int = 100
    query_limit: int = 200
    requirements_limit: int = 100
    stats_limit: int = 500
    enhancement_limit: int = 50
    hub_limit: int = 100
    high_quality_reputation: float = 0.85
    high_quality_performance: float = 0.8
    quality_gate_size: int = 3
    similarity_threshold: float = 0.3
    top_capabilities: int = 10
    max_network_hubs: int = 10
    capability_map: dict[str, str] = field(
        default_factory=lambda: dict(DEFAULT_CAPABILITY_MAP)
    )
    default_capability: str = "data-processing"

    def __post_init__(self) -> None:
        # JSON gives lists; keep the hub tuple hashable and ordered.
        if not isinstance(self.network_hubs, tuple):
            object.__setattr__(self, "network_hubs", tuple(self.network_hubs or ()))
        if self.capability_map is None:
            object.__setattr__(self, "capability_map", dict(DEFAULT_CAPABILITY_MAP))

    def validate(self) -> None:
        if not self.hub_id:
            raise ValueError("hub_id must not be empty")
        if self.query_timeout is not None:
            _check_positive("query_timeout", self.query_timeout)
        for name in ("result_cache_ttl", "stats_cache_ttl", "hub_discovery_ttl"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be >= 0, got {getattr(self, name)}")
        for name in (
            "capability_limit",
            "query_limit",
            "requirements_limit",
            "stats_limit",
            "enhancement_limit",
            "hub_limit",
            "quality_gate_size",
            "result_cache_max_entries",
            "top_capabilities",
            "max_network_hubs",
        ):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be >= 1, got {getattr(self, name)}")
        _check_unit("high_quality_reputation", self.high_quality_reputation)
        _check_unit("high_quality_performance", self.high_quality_performance)
        _check_unit("similarity_threshold", self.similarity_threshold)
        if not self.default_capability:
            raise ValueError("default_capability must not be empty")

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["network_hubs"] = list(self.network_hubs)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DiscoveryConfig:
        valid_keys = {f.name for f in fields(cls)}
        filtered = {k: v for k, v in data.items() if k in valid_keys}
        cfg = cls(**filtered)
        cfg.validate()
        return cfg


# ===================================================================== #
#  Analytics                                                             #
# ===================================================================== #

@dataclass(frozen=True)
class AnalyticsConfig:
    """Parameters of the analytics aggregator.

    Attributes
    ----------
    cache_ttl:
        Lifetime of cached analytics in seconds.
    max_enhancements:
        Enhancement history kept per workflow.
    max_workflow_history:
        Descriptor snapshots kept per workflow.
    learning_window_days:
        Days over which the learning rate is averaged.
    max_recommendations:
        Upper bound on returned recommendations.
    """

    cache_ttl: float = 300.0
    max_enhancements: int = 500
    max_workflow_history: int = 1000
    learning_window_days: int = 7
    max_recommendations: int = 10

    def validate(self) -> None:
        if self.cache_ttl < 0:
            raise ValueError(f"cache_ttl must be >= 0, got {self.cache_ttl}")
        if self.max_enhancements < 1:
            raise ValueError(
                f"max_enhancements must be >= 1, got {self.max_enhancements}"
            )
        if self.max_workflow_history < 1:
            raise ValueError(
                f"max_workflow_history must be >= 1, got {self.max_workflow_history}"
            )
        if self.learning_window_days < 1:
            raise ValueError(
                f"learning_window_days must be >= 1, got {self.learning_window_days}"
            )
        if self.max_recommendations < 1:
            raise ValueError(
                f"max_recommendations must be >= 1, got {self.max_recommendations}"
            )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AnalyticsConfig:
        valid_keys = {f.name for f in fields(cls)}
        filtered = {k: v for k, v in data.items() if k in valid_keys}
        cfg = cls(**filtered)
        cfg.validate()
        return cfg


# ===================================================================== #
#  Unified config loader                                                 #
# ===================================================================== #

_CONFIG_MAP: dict[str, type] = {
    "reputation": ReputationWeights,
    "tracker": TrackerConfig,
    "relationships": RelationshipConfig,
    "discovery": DiscoveryConfig,
    "analytics": AnalyticsConfig,
}


def load_config_from_dict(raw: Any) -> dict[str, Any]:
    """Build typed config sections from an already-parsed mapping.

    Top-level keys are section names (``reputation``, ``tracker``,
    ``relationships``, ``discovery``, ``analytics``).  Unknown sections are
    preserved as raw values.  A section that fails validation raises
    ``ConfigurationError`` naming the section, with the ``ValueError`` as
    its cause.
    """
    if not isinstance(raw, dict):
        raise ConfigurationError("Top-level configuration must be an object")
    result: dict[str, Any] = {}
    for section, data in raw.items():
        cls = _CONFIG_MAP.get(section)
        if cls is not None and isinstance(data, dict):
            try:
                result[section] = cls.from_dict(data)
            except (TypeError, ValueError) as exc:
                raise ConfigurationError(
                    f"Invalid '{section}' configuration: {exc}", section=section
                ) from exc
        else:
            result[section] = data
    return result


def load_config_from_json(json_str: str) -> dict[str, Any]:
    """Parse a JSON string into a dict of typed config objects."""
    try:
        raw = json.loads(json_str)
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"Configuration is not valid JSON: {exc}") from exc
    return load_config_from_dict(raw)
