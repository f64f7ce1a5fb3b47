"""Value objects for the workflow ecosystem.

All types here are frozen dataclasses: immutable, compared by value.  They
represent measurements, descriptors, graph edges and computed reports that
have no identity beyond their content.  Components never hold references to
each other's objects; everything is addressed by workflow id.
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import Any

from .enums import (
    EnhancementType,
    ExecutionStrategy,
    FailureAction,
    Priority,
    RelationshipType,
    RiskLevel,
    TrendDirection,
)

# ---------------------------------------------------------------------------
# Performance samples
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ResourceMetrics:
    """Resources consumed by one workflow execution."""

    memory_usage: float = 0.0  # MB
    cpu_time: float = 0.0  # ms
    network_requests: float = 0.0
    storage_operations: float = 0.0
    tool_calls: float = 0.0


@dataclass(frozen=True)
class PerformanceSample:
    """Metrics of a single workflow execution.

    Samples are stored exactly as given.  Range checking is the caller's
    responsibility; out-of-range values flow into statistics unchanged.
    """

    execution_time: float  # ms
    success: bool = True
    error_rate: float = 0.0
    quality_score: float = 1.0
    completion_rate: float = 1.0
    retry_count: float = 0
    resource_usage: ResourceMetrics = field(default_factory=ResourceMetrics)
    user_satisfaction: float | None = None
    timestamp: float = 0.0


# ---------------------------------------------------------------------------
# Enhancements
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TestResult:
    """Outcome of one validation test run against an enhancement."""

    __test__ = False  # not a pytest test class

    test_name: str
    passed: bool
    score: float | None = None
    details: str = ""
    execution_time: float | None = None


@dataclass(frozen=True)
class ValidationResult:
    """Verdict on whether an enhancement is safe and effective to apply."""

    is_valid: bool = False
    confidence: float = 0.0
    risk_assessment: RiskLevel = RiskLevel.MEDIUM
    test_results: tuple[TestResult, ...] = ()
    validated_at: float = 0.0
    approved_by: str = ""


@dataclass(frozen=True)
class Enhancement:
    """A proposed or applied change to a workflow.

    ``impact`` is the predicted improvement in [0, 1].  ``actual_impact`` is
    attached after the fact by the performance tracker and is the only field
    that ever changes; doing so yields a new instance.
    """

    description: str
    type: EnhancementType = EnhancementType.OPTIMIZATION
    impact: float = 0.0
    id: str = field(default_factory=lambda: f"enhancement_{uuid.uuid4().hex[:12]}")
    validation: ValidationResult = field(default_factory=ValidationResult)
    actual_impact: float | None = None
    parameters: Mapping[str, Any] = field(default_factory=dict)

    @property
    def risk(self) -> RiskLevel:
        """Shortcut for ``validation.risk_assessment``."""
        return self.validation.risk_assessment

    def with_actual_impact(self, actual_impact: float) -> Enhancement:
        """Return a copy carrying the measured impact."""
        return replace(self, actual_impact=actual_impact)

    def with_validation(self, validation: ValidationResult) -> Enhancement:
        """Return a copy carrying *validation*."""
        return replace(self, validation=validation)


# ---------------------------------------------------------------------------
# Performance reports
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PerformanceTrend:
    """OLS trend of one metric against sample index."""

    metric: str
    direction: TrendDirection
    confidence: float  # R^2 clamped to [0, 1]
    slope: float = 0.0
    time_window: str = "24h"
    values: tuple[tuple[float, float], ...] = ()  # (timestamp, value), last 20


@dataclass(frozen=True)
class PerformanceStats:
    """Snapshot of a workflow's retained performance history."""

    current: PerformanceSample | None = None
    average: PerformanceSample | None = None
    trend: tuple[PerformanceTrend, ...] = ()
    improvement_vs_baseline: float = 0.0


@dataclass(frozen=True)
class OptimizationRecommendations:
    """Merged trend warnings and heuristic enhancements for one workflow."""

    recommendations: tuple[str, ...] = ()
    priority: Priority = Priority.LOW
    estimated_impact: float = 0.0


@dataclass(frozen=True)
class PerformanceAnalysis:
    """Everything the tracker knows about one workflow, in one object."""

    workflow_id: str
    metrics: PerformanceSample | None
    health_score: float
    summary: str
    trends: tuple[PerformanceTrend, ...] = ()
    enhancements: tuple[Enhancement, ...] = ()
    recommendations: tuple[str, ...] = ()


# ---------------------------------------------------------------------------
# Workflow descriptors
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PerformanceMetrics:
    """Summary performance advertised by a remote workflow record."""

    quality_score: float = 0.5
    average_execution_time: float = 0.0
    success_rate: float = 0.5
    enhancement_count: int = 0
    user_satisfaction_rating: float = 0.5


@dataclass(frozen=True)
class WorkflowDescriptor:
    """Normalized, queryable view of a workflow instance on some hub.

    ``reputation_score`` is derived: the event adapter recomputes it from the
    raw record every time, so it is never ground truth.
    """

    workflow_id: str
    hub_id: str
    owner_address: str = ""
    name: str = ""
    description: str = ""
    created_at: str = ""
    capabilities: frozenset[str] = frozenset()
    requirements: frozenset[str] = frozenset()
    tags: frozenset[str] = frozenset()
    performance_metrics: PerformanceMetrics = field(default_factory=PerformanceMetrics)
    reputation_score: float = 0.0
    is_public: bool = False
    usage_count: int = 0
    last_enhancement_date: str = ""

    @property
    def identity_key(self) -> tuple[str, str]:
        """``(hub_id, workflow_id)``, the deduplication key."""
        return (self.hub_id, self.workflow_id)


@dataclass(frozen=True)
class DiscoveryFilters:
    """Optional narrowing applied to discovery searches."""

    capabilities: tuple[str, ...] = ()
    requirements: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()
    min_reputation_score: float | None = None
    min_performance_score: float | None = None
    only_open_source: bool = False
    max_response_time: float | None = None


@dataclass(frozen=True)
class EnhancementPattern:
    """An enhancement advertised by a remote workflow for others to adopt."""

    pattern_id: str
    source_workflow_id: str
    source_hub_id: str = ""
    type: str = "optimization"
    description: str = "Performance improvement pattern"
    impact: float = 0.1
    applicable_capabilities: tuple[str, ...] = ()
    risk_level: str = "low"
    implementation_hints: tuple[str, ...] = ()
    validation_steps: tuple[str, ...] = ()


@dataclass(frozen=True)
class HubInfo:
    """What one hub reports about its public workflows."""

    process_id: str
    workflow_count: int = 0
    has_public_workflows: bool = False
    reputation_score: float = 0.0
    last_activity: str = ""
    owner_address: str = ""


@dataclass(frozen=True)
class HubStatistics:
    """Aggregate view of the dedicated workflow hub."""

    total_public_workflows: int = 0
    average_reputation_score: float = 0.0
    top_capabilities: tuple[str, ...] = ()
    network_health_score: float = 0.0


@dataclass(frozen=True)
class NetworkStatistics:
    """Aggregate view across every known hub."""

    total_hubs: int = 0
    total_public_workflows: int = 0
    average_reputation_score: float = 0.0
    top_capabilities: tuple[str, ...] = ()
    network_health_score: float = 0.0


@dataclass(frozen=True)
class SearchOutcome:
    """Search results bundled with suggestions for refining the query."""

    workflows: tuple[WorkflowDescriptor, ...]
    suggestions: tuple[str, ...] = ()
    search_tips: tuple[str, ...] = ()
    duration: float = 0.0
    hubs_searched: int = 0


# ---------------------------------------------------------------------------
# Relationship graph
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Relationship:
    """Directed, typed, weighted edge between two workflow ids."""

    source_id: str
    target_id: str
    type: RelationshipType
    strength: float = 1.0
    metadata: Mapping[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> tuple[str, RelationshipType]:
        """Per-source identity of the edge: ``(target_id, type)``."""
        return (self.target_id, self.type)


@dataclass(frozen=True)
class WorkflowStep:
    """One step of a composition."""

    workflow_id: str
    order: int = 0
    condition: str | None = None
    timeout: float | None = None  # ms
    input_mapping: Mapping[str, str] = field(default_factory=dict)
    output_mapping: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ErrorHandlingPolicy:
    """Failure policy for a composition."""

    on_failure: FailureAction = FailureAction.ABORT
    max_retries: int = 3
    retry_delay: float = 1000  # ms
    fallback_workflow: str | None = None


@dataclass(frozen=True)
class ResourceAllocation:
    """Resource limits for a composition."""

    max_concurrent_workflows: int = 1
    memory_limit: float = 1024  # MB
    time_limit: float = 300000  # ms
    priority: Priority = Priority.MEDIUM


@dataclass(frozen=True)
class WorkflowComposition:
    """A named pipeline of workflow steps."""

    id: str
    name: str
    description: str = ""
    steps: tuple[WorkflowStep, ...] = ()
    execution_strategy: ExecutionStrategy = ExecutionStrategy.SEQUENTIAL
    resource_allocation: ResourceAllocation = field(default_factory=ResourceAllocation)
    error_handling: ErrorHandlingPolicy = field(default_factory=ErrorHandlingPolicy)

    @property
    def workflow_ids(self) -> list[str]:
        """Step workflow ids in execution order."""
        return [s.workflow_id for s in sorted(self.steps, key=lambda s: s.order)]


@dataclass(frozen=True)
class NetworkMetrics:
    """Structural scores of one node, each in [0, 1]."""

    connectivity_score: float = 0.0
    influence_score: float = 0.0
    dependency_score: float = 0.0
    collaboration_potential: float = 0.0


@dataclass(frozen=True)
class EcosystemOverview:
    """Graph-wide structural summary."""

    total_workflows: int = 0
    total_relationships: int = 0
    average_connectivity: float = 0.0
    composition_count: int = 0
    circular_dependencies: tuple[str, ...] = ()
    isolated_workflows: tuple[str, ...] = ()
    hub_workflows: tuple[str, ...] = ()


@dataclass(frozen=True)
class CollaborationOpportunities:
    """Candidates one workflow could partner or compose with."""

    potential_partners: tuple[str, ...] = ()
    composition_opportunities: tuple[str, ...] = ()
    shared_capabilities: tuple[str, ...] = ()
    complementary_skills: tuple[str, ...] = ()


@dataclass(frozen=True)
class RelationshipOptimization:
    """What ``optimize_relationships`` changed or proposes."""

    strengthened: tuple[str, ...] = ()
    weakened: tuple[str, ...] = ()
    new: tuple[str, ...] = ()
    removed: tuple[str, ...] = ()


# ---------------------------------------------------------------------------
# Ecosystem analytics
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class EnhancementBreakdown:
    """Effectiveness of one slice (type or source) of enhancements."""

    count: int = 0
    average_impact: float = 0.0
    success_rate: float = 0.0


@dataclass(frozen=True)
class EnhancementEffectiveness:
    """How well applied enhancements actually worked."""

    average_impact: float = 0.0
    success_rate: float = 0.0
    by_type: Mapping[str, EnhancementBreakdown] = field(default_factory=dict)
    by_source: Mapping[str, EnhancementBreakdown] = field(default_factory=dict)


@dataclass(frozen=True)
class CollaborationMetrics:
    """Ecosystem-wide collaboration signals."""

    workflow_sharing: int = 0
    knowledge_exchange: int = 0
    peer_learning: int = 0
    network_density: float = 0.0
    influence_score: float = 0.0


@dataclass(frozen=True)
class LearningEfficiency:
    """How quickly and durably the ecosystem improves."""

    learning_rate: float = 0.0  # enhancements per day
    knowledge_retention: float = 0.0
    transfer_efficiency: float = 0.0
    adaptability_score: float = 0.0


@dataclass(frozen=True)
class WorkflowAnalytics:
    """Composite analytics for one workflow or the whole ecosystem."""

    workflow_id: str | None
    participant_id: str | None
    time_window: str
    workflow_distribution: Mapping[str, int] = field(default_factory=dict)
    enhancement_effectiveness: EnhancementEffectiveness = field(
        default_factory=EnhancementEffectiveness
    )
    performance_trends: tuple[PerformanceTrend, ...] = ()
    collaboration_metrics: CollaborationMetrics = field(default_factory=CollaborationMetrics)
    learning_efficiency: LearningEfficiency = field(default_factory=LearningEfficiency)
    generated_at: float = 0.0


@dataclass(frozen=True)
class CacheStats:
    """Occupancy of a TTL cache."""

    entries: int = 0
    oldest_entry_age: float = 0.0  # seconds
