"""Service layer: event adapter, scoring, tracker, graph, discovery, analytics.

Public API
----------
PerformanceTracker
    Per-workflow performance history, trends and enhancement heuristics.
RelationshipManager
    Typed relationship graph with compositions and inheritance.
DiscoveryService
    Relay-backed search, ranking and network statistics.
AnalyticsAggregator
    Ecosystem analytics, recommendations and health.
WorkflowEcosystemAPI
    Plain-data facade over the four services.
"""

from workflow_ecosystem.services.analytics import (
    AnalyticsAggregator,
    classify_workflow,
    infer_learning_source,
    parse_time_window,
)
from workflow_ecosystem.services.api import WorkflowEcosystemAPI
from workflow_ecosystem.services.discovery import (
    DiscoveryService,
    filter_by_similarity,
    matches_additional_filters,
    matches_query,
    rank_workflows,
    remove_duplicates,
)
from workflow_ecosystem.services.event_adapter import (
    extract_performance,
    parse_enhancement_pattern,
    to_descriptor,
)
from workflow_ecosystem.services.performance import PerformanceTracker
from workflow_ecosystem.services.relationships import RelationshipManager, detect_cycle
from workflow_ecosystem.services.scoring import (
    DEFAULT_REPUTATION,
    DEFAULT_WEIGHTS,
    calculate_overlap,
    classify_capability,
    reputation_score,
)

__all__ = [
    # Services
    "AnalyticsAggregator",
    "DiscoveryService",
    "PerformanceTracker",
    "RelationshipManager",
    "WorkflowEcosystemAPI",
    # Event adapter
    "extract_performance",
    "parse_enhancement_pattern",
    "to_descriptor",
    # Scoring & ranking
    "DEFAULT_REPUTATION",
    "DEFAULT_WEIGHTS",
    "calculate_overlap",
    "classify_capability",
    "classify_workflow",
    "detect_cycle",
    "filter_by_similarity",
    "infer_learning_source",
    "matches_additional_filters",
    "matches_query",
    "parse_time_window",
    "rank_workflows",
    "remove_duplicates",
    "reputation_score",
]
