"""Workflow Ecosystem.

Tracks, relates, scores and surfaces workflows across independently
operated hubs: performance trends and enhancement heuristics, a typed
relationship graph, relay-backed discovery with reputation ranking, and
ecosystem analytics.
"""

__version__ = "0.1.0"

from workflow_ecosystem.services import (
    AnalyticsAggregator,
    DiscoveryService,
    PerformanceTracker,
    RelationshipManager,
    WorkflowEcosystemAPI,
)

__all__ = [
    "AnalyticsAggregator",
    "DiscoveryService",
    "PerformanceTracker",
    "RelationshipManager",
    "WorkflowEcosystemAPI",
]
