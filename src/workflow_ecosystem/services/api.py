"""Plain-data facade over the ecosystem services.

``WorkflowEcosystemAPI`` wires one tracker, relationship manager, discovery
service and analytics aggregator around a shared ``EventBus`` and exposes
their operations with dict inputs and JSON-ready dict outputs.  ``call``
dispatches camelCase operation names (``"recordPerformance"``) for hosts
that route requests by name.

Malformed payloads raise ``ValueError``; unknown operation names raise
``UnknownOperationError``.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping
from typing import Any

from workflow_ecosystem.domain.exceptions import UnknownOperationError
from workflow_ecosystem.domain.values import DiscoveryFilters
from workflow_ecosystem.infrastructure.config import (
    AnalyticsConfig,
    DiscoveryConfig,
    RelationshipConfig,
    ReputationWeights,
    TrackerConfig,
    load_config_from_dict,
)
from workflow_ecosystem.infrastructure.event_bus import EventBus, EventStore
from workflow_ecosystem.infrastructure.relay import Relay
from workflow_ecosystem.infrastructure.serialization import (
    discovery_filters_from_dict,
    performance_sample_from_dict,
    to_plain,
)
from workflow_ecosystem.services.analytics import AnalyticsAggregator, register_workflows
from workflow_ecosystem.services.discovery import DiscoveryService
from workflow_ecosystem.services.performance import PerformanceTracker
from workflow_ecosystem.services.relationships import RelationshipManager
from workflow_ecosystem.services.scoring import DEFAULT_WEIGHTS

logger = logging.getLogger(__name__)

Payload = Mapping[str, Any]


def _required(payload: Payload, snake: str, camel: str) -> Any:
    value = payload.get(snake, payload.get(camel))
    if value is None or value == "":
        raise ValueError(f"{snake} is required")
    return value


def _optional(payload: Payload, snake: str, camel: str, default: Any = None) -> Any:
    value = payload.get(snake, payload.get(camel))
    return default if value is None else value


class WorkflowEcosystemAPI:
    """Entry point bundling the four services.

    Parameters
    ----------
    relay:
        External record store used by discovery.
    config:
        Optional mapping of typed config sections, as returned by
        ``load_config_from_json`` (``reputation``, ``tracker``,
        ``relationships``, ``discovery``, ``analytics``).
    clock:
        Zero-argument callable returning seconds, shared by every service.
    event_store_size:
        Events retained by ``event_store`` (0 keeps everything).
    """

    def __init__(
        self,
        relay: Relay,
        config: Mapping[str, Any] | None = None,
        clock: Callable[[], float] | None = None,
        event_store_size: int = 1000,
    ) -> None:
        config = config or {}
        self._clock = clock or time.time
        self.event_bus = EventBus()
        self.event_store = EventStore(max_size=event_store_size)
        self.event_bus.subscribe_all(self.event_store.append)

        weights: ReputationWeights = config.get("reputation") or DEFAULT_WEIGHTS
        self.tracker = PerformanceTracker(
            config.get("tracker") or TrackerConfig(),
            event_bus=self.event_bus,
            clock=self._clock,
        )
        self.relationships = RelationshipManager(
            config.get("relationships") or RelationshipConfig(),
            event_bus=self.event_bus,
        )
        self.discovery = DiscoveryService(
            relay,
            config.get("discovery") or DiscoveryConfig(),
            weights=weights,
            clock=self._clock,
        )
        self.analytics = AnalyticsAggregator(
            self.tracker,
            self.relationships,
            config.get("analytics") or AnalyticsConfig(),
            event_bus=self.event_bus,
            clock=self._clock,
        )
        self._operations: dict[str, Callable[[Payload], dict[str, Any]]] = {
            "recordPerformance": self.record_performance,
            "getPerformanceStats": self.get_performance_stats,
            "identifyEnhancements": self.identify_enhancements,
            "createRelationship": self.create_relationship,
            "getEcosystemOverview": self.get_ecosystem_overview,
            "findWorkflows": self.find_workflows,
            "getHubStatistics": self.get_hub_statistics,
            "getNetworkStatistics": self.get_network_statistics,
            "getWorkflowAnalytics": self.get_workflow_analytics,
            "generateRecommendations": self.generate_recommendations,
        }

    @classmethod
    def from_dict(
        cls,
        relay: Relay,
        raw_config: Mapping[str, Any],
        clock: Callable[[], float] | None = None,
    ) -> WorkflowEcosystemAPI:
        """Build the facade from an untyped config mapping."""
        return cls(relay, load_config_from_dict(dict(raw_config)), clock=clock)

    @property
    def operations(self) -> tuple[str, ...]:
        """CamelCase names accepted by ``call``."""
        return tuple(self._operations)

    def call(self, operation: str, payload: Payload | None = None) -> dict[str, Any]:
        """Dispatch *operation* by its camelCase name.

        Raises
        ------
        UnknownOperationError
            If no operation has that name.
        """
        handler = self._operations.get(operation)
        if handler is None:
            raise UnknownOperationError(operation, available=self.operations)
        logger.debug("Dispatching %s", operation)
        return handler(payload or {})

    # -- performance ----------------------------------------------------------

    def record_performance(self, payload: Payload) -> dict[str, Any]:
        """``{workflow_id, sample}`` -> ``{workflow_id, history_size}``."""
        workflow_id = str(_required(payload, "workflow_id", "workflowId"))
        sample = performance_sample_from_dict(_required(payload, "sample", "sample"))
        self.tracker.record(workflow_id, sample)
        return {"workflow_id": workflow_id, "history_size": len(self.tracker.history(workflow_id))}

    def get_performance_stats(self, payload: Payload) -> dict[str, Any]:
        workflow_id = str(_required(payload, "workflow_id", "workflowId"))
        return {"workflow_id": workflow_id, **to_plain(self.tracker.stats(workflow_id))}

    def identify_enhancements(self, payload: Payload) -> dict[str, Any]:
        workflow_id = str(_required(payload, "workflow_id", "workflowId"))
        enhancements = self.tracker.identify_enhancements(workflow_id)
        return {"workflow_id": workflow_id, "enhancements": to_plain(enhancements)}

    # -- relationships --------------------------------------------------------

    def create_relationship(self, payload: Payload) -> dict[str, Any]:
        """``{source_id, target_id, type, strength?, metadata?}`` -> the edge."""
        relationship = self.relationships.create_relationship(
            str(_required(payload, "source_id", "sourceId")),
            str(_required(payload, "target_id", "targetId")),
            _required(payload, "type", "relationshipType"),
            float(_optional(payload, "strength", "strength", 1.0)),
            _optional(payload, "metadata", "metadata", {}),
        )
        return to_plain(relationship)

    def get_ecosystem_overview(self, payload: Payload) -> dict[str, Any]:
        return to_plain(self.relationships.get_ecosystem_overview())

    # -- discovery ------------------------------------------------------------

    def find_workflows(self, payload: Payload) -> dict[str, Any]:
        """``{query, filters?}`` -> ranked workflows with refinement suggestions.

        Found descriptors are also fed to the analytics aggregator.
        """
        query = str(_optional(payload, "query", "query", ""))
        filters: DiscoveryFilters = discovery_filters_from_dict(
            _optional(payload, "filters", "filters")
        )
        outcome = self.discovery.search_with_suggestions(query, filters)
        register_workflows(self.analytics, outcome.workflows)
        return to_plain(outcome)

    def get_hub_statistics(self, payload: Payload) -> dict[str, Any]:
        return to_plain(self.discovery.get_hub_statistics())

    def get_network_statistics(self, payload: Payload) -> dict[str, Any]:
        return to_plain(self.discovery.get_network_statistics())

    # -- analytics ------------------------------------------------------------

    def get_workflow_analytics(self, payload: Payload) -> dict[str, Any]:
        analytics = self.analytics.get_workflow_analytics(
            _optional(payload, "workflow_id", "workflowId"),
            _optional(payload, "participant_id", "participantId"),
            str(_optional(payload, "time_window", "timeWindow", "7d")),
        )
        return to_plain(analytics)

    def generate_recommendations(self, payload: Payload) -> dict[str, Any]:
        workflow_id = _optional(payload, "workflow_id", "workflowId")
        return {
            "workflow_id": workflow_id,
            "recommendations": self.analytics.generate_recommendations(workflow_id),
        }
