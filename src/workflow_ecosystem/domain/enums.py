"""Domain enumerations for the workflow ecosystem.

These enums capture the fixed vocabularies used across the domain layer:
enhancement types, risk levels, relationship types, trend directions,
composition strategies, propagation strategies and learning sources.
"""

from enum import Enum


class EnhancementType(Enum):
    """Taxonomy of proposed or applied workflow changes."""

    OPTIMIZATION = "optimization"
    BUG_FIX = "bug_fix"
    FEATURE_ADD = "feature_add"
    REFACTOR = "refactor"
    PARAMETER_TUNE = "parameter_tune"
    LOGIC_IMPROVE = "logic_improve"
    ERROR_HANDLING = "error_handling"
    USER_EXPERIENCE = "user_experience"


class RiskLevel(Enum):
    """Risk assessment attached to a validated enhancement."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class RelationshipType(Enum):
    """Typed edge labels in the workflow relationship graph."""

    INHERITS = "inherits"
    COMPOSES = "composes"
    ENHANCES = "enhances"
    TRIGGERS = "triggers"
    DEPENDS_ON = "depends_on"
    REPLACES = "replaces"
    CAUSES = "causes"
    SUPPORTS = "supports"
    CONTRADICTS = "contradicts"
    EXTENDS = "extends"
    REFERENCES = "references"

    @property
    def is_dependency(self) -> bool:
        """True for edge types that feed the dependency adjacency."""
        return self in _DEPENDENCY_TYPES


_DEPENDENCY_TYPES = frozenset({
    RelationshipType.INHERITS,
    RelationshipType.COMPOSES,
    RelationshipType.DEPENDS_ON,
})


class TrendDirection(Enum):
    """Direction of a regression-fitted performance trend."""

    IMPROVING = "improving"
    DECLINING = "declining"
    STABLE = "stable"


class ExecutionStrategy(Enum):
    """How the steps of a composition are executed."""

    SEQUENTIAL = "sequential"
    PARALLEL = "parallel"
    PIPELINE = "pipeline"  # output of one feeds into next
    CONDITIONAL = "conditional"
    ADAPTIVE = "adaptive"


class FailureAction(Enum):
    """Action a composition takes when a step fails."""

    ABORT = "abort"
    CONTINUE = "continue"
    RETRY = "retry"
    FALLBACK = "fallback"


class PropagationStrategy(Enum):
    """How an inherited enhancement reaches descendant workflows."""

    IMMEDIATE = "immediate"
    GRADUAL = "gradual"
    MANUAL = "manual"


class Priority(Enum):
    """Coarse priority used by recommendations and resource allocation."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class LearningSource(Enum):
    """Where an enhancement is inferred to have come from."""

    SELF = "self"
    PEER = "peer"
    USER = "user"
    ANALYTICS = "analytics"
    ERROR = "error"
    EMERGENT = "emergent"


class WorkflowCategory(Enum):
    """Coarse functional category of a workflow."""

    DATA_PROCESSING = "data_processing"
    ANALYSIS = "analysis"
    COMMUNICATION = "communication"
    AUTOMATION = "automation"
    DECISION_MAKING = "decision_making"
    CREATIVE = "creative"
    PROBLEM_SOLVING = "problem_solving"
    COORDINATION = "coordination"
    MONITORING = "monitoring"
    OPTIMIZATION = "optimization"
