"""Domain layer for the workflow ecosystem.

Re-exports all public domain types so that consumers can write::

    from workflow_ecosystem.domain import Enhancement, RelationshipType
"""

# -- Enumerations -------------------------------------------------------------
from .enums import (
    EnhancementType,
    ExecutionStrategy,
    FailureAction,
    LearningSource,
    Priority,
    PropagationStrategy,
    RelationshipType,
    RiskLevel,
    TrendDirection,
    WorkflowCategory,
)

# -- Value Objects ------------------------------------------------------------
from .values import (
    CacheStats,
    CollaborationMetrics,
    CollaborationOpportunities,
    DiscoveryFilters,
    EcosystemOverview,
    Enhancement,
    EnhancementBreakdown,
    EnhancementEffectiveness,
    EnhancementPattern,
    ErrorHandlingPolicy,
    HubInfo,
    HubStatistics,
    LearningEfficiency,
    NetworkMetrics,
    NetworkStatistics,
    OptimizationRecommendations,
    PerformanceAnalysis,
    PerformanceMetrics,
    PerformanceSample,
    PerformanceStats,
    PerformanceTrend,
    Relationship,
    RelationshipOptimization,
    ResourceAllocation,
    ResourceMetrics,
    SearchOutcome,
    TestResult,
    ValidationResult,
    WorkflowAnalytics,
    WorkflowComposition,
    WorkflowDescriptor,
    WorkflowStep,
)

# -- Domain Events ------------------------------------------------------------
from .events import (
    BaselineSet,
    CompositionCreated,
    DomainEvent,
    EnhancementPropagated,
    EnhancementTracked,
    PerformanceRecorded,
    RelationshipCreated,
    RelationshipsOptimized,
)

# -- Exceptions ---------------------------------------------------------------
from .exceptions import (
    ConfigurationError,
    RelayError,
    UnknownOperationError,
    WorkflowEcosystemError,
)

__all__ = [
    # Enumerations
    "EnhancementType",
    "ExecutionStrategy",
    "FailureAction",
    "LearningSource",
    "Priority",
    "PropagationStrategy",
    "RelationshipType",
    "RiskLevel",
    "TrendDirection",
    "WorkflowCategory",
    # Value Objects
    "CacheStats",
    "CollaborationMetrics",
    "CollaborationOpportunities",
    "DiscoveryFilters",
    "EcosystemOverview",
    "Enhancement",
    "EnhancementBreakdown",
    "EnhancementEffectiveness",
    "EnhancementPattern",
    "ErrorHandlingPolicy",
    "HubInfo",
    "HubStatistics",
    "LearningEfficiency",
    "NetworkMetrics",
    "NetworkStatistics",
    "OptimizationRecommendations",
    "PerformanceAnalysis",
    "PerformanceMetrics",
    "PerformanceSample",
    "PerformanceStats",
    "PerformanceTrend",
    "Relationship",
    "RelationshipOptimization",
    "ResourceAllocation",
    "ResourceMetrics",
    "SearchOutcome",
    "TestResult",
    "ValidationResult",
    "WorkflowAnalytics",
    "WorkflowComposition",
    "WorkflowDescriptor",
    "WorkflowStep",
    # Events
    "BaselineSet",
    "CompositionCreated",
    "DomainEvent",
    "EnhancementPropagated",
    "EnhancementTracked",
    "PerformanceRecorded",
    "RelationshipCreated",
    "RelationshipsOptimized",
    # Exceptions
    "ConfigurationError",
    "RelayError",
    "UnknownOperationError",
    "WorkflowEcosystemError",
]
