"""Ecosystem-wide analytics over the tracker and the relationship graph.

``AnalyticsAggregator`` keeps its own bounded histories (enhancements and
workflow descriptors per id) and composes them with the performance
tracker's trends and the relationship manager's overview into one
``WorkflowAnalytics`` report, cached per ``(workflow, participant, window)``.

When given an ``EventBus`` the aggregator feeds its enhancement history from
``EnhancementTracked`` events and from applied ``EnhancementPropagated``
events, so callers do not have to report enhancements twice.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from collections.abc import Callable, Iterable
from typing import Any

from workflow_ecosystem.domain.enums import EnhancementType, LearningSource, WorkflowCategory
from workflow_ecosystem.domain.events import (
    DomainEvent,
    EnhancementPropagated,
    EnhancementTracked,
)
from workflow_ecosystem.domain.values import (
    CacheStats,
    CollaborationMetrics,
    Enhancement,
    EnhancementBreakdown,
    EnhancementEffectiveness,
    LearningEfficiency,
    PerformanceTrend,
    WorkflowAnalytics,
    WorkflowDescriptor,
)
from workflow_ecosystem.infrastructure.cache import TTLCache
from workflow_ecosystem.infrastructure.config import AnalyticsConfig
from workflow_ecosystem.services.performance import PerformanceTracker
from workflow_ecosystem.services.relationships import RelationshipManager
from workflow_ecosystem.services.scoring import clamp, classify_capability

logger = logging.getLogger(__name__)

_DAY = 24 * 60 * 60

_WINDOW_UNITS = {"s": 1, "m": 60, "h": 60 * 60, "d": _DAY, "w": 7 * _DAY}

def parse_time_window(time_window: str) -> float:
    """Seconds spanned by a window such as ``"24h"``, ``"7d"`` or ``"2w"``.

    Raises
    ------
    ValueError
        If *time_window* is not a positive count followed by one of
        ``s``, ``m``, ``h``, ``d`` or ``w``.
    """
    text = str(time_window).strip().lower()
    unit = _WINDOW_UNITS.get(text[-1:])
    count = text[:-1]
    if unit is None or not count.isdigit() or int(count) == 0:
        raise ValueError(f"Invalid time window: {time_window!r}")
    return int(count) * unit


# Capability keyword -> workflow category, first match wins.
CATEGORY_KEYWORDS: dict[str, str] = {
    "monitor": WorkflowCategory.MONITORING.value,
    "alert": WorkflowCategory.MONITORING.value,
    "optimiz": WorkflowCategory.OPTIMIZATION.value,
    "analy": WorkflowCategory.ANALYSIS.value,
    "report": WorkflowCategory.ANALYSIS.value,
    "insight": WorkflowCategory.ANALYSIS.value,
    "notif": WorkflowCategory.COMMUNICATION.value,
    "messag": WorkflowCategory.COMMUNICATION.value,
    "email": WorkflowCategory.COMMUNICATION.value,
    "chat": WorkflowCategory.COMMUNICATION.value,
    "automat": WorkflowCategory.AUTOMATION.value,
    "pipeline": WorkflowCategory.AUTOMATION.value,
    "schedul": WorkflowCategory.AUTOMATION.value,
    "decision": WorkflowCategory.DECISION_MAKING.value,
    "classif": WorkflowCategory.DECISION_MAKING.value,
    "generat": WorkflowCategory.CREATIVE.value,
    "design": WorkflowCategory.CREATIVE.value,
    "debug": WorkflowCategory.PROBLEM_SOLVING.value,
    "troubleshoot": WorkflowCategory.PROBLEM_SOLVING.value,
    "coordinat": WorkflowCategory.COORDINATION.value,
    "orchestrat": WorkflowCategory.COORDINATION.value,
    "integrat": WorkflowCategory.COORDINATION.value,
}

DEFAULT_RECOMMENDATIONS = (
    "Continue monitoring workflow performance",
    "Explore new enhancement opportunities",
    "Maintain current optimization practices",
)


# ===================================================================== #
#  Pure helpers                                                          #
# ===================================================================== #

def infer_learning_source(enhancement: Enhancement) -> LearningSource:
    """Guess where an enhancement came from, by description and type.

    Checked in order: error, user, peer, analytics, emergent; ``self``
    otherwise.
    """
    text = enhancement.description.lower()
    etype = enhancement.type
    if "error" in text or etype is EnhancementType.BUG_FIX:
        return LearningSource.ERROR
    if "user" in text or etype is EnhancementType.USER_EXPERIENCE:
        return LearningSource.USER
    if "peer" in text or "adapted" in text:
        return LearningSource.PEER
    if "analytics" in text or etype is EnhancementType.OPTIMIZATION:
        return LearningSource.ANALYTICS
    if "composition" in text or "emergent" in text:
        return LearningSource.EMERGENT
    return LearningSource.SELF


def _succeeded(enhancement: Enhancement) -> bool:
    return (enhancement.actual_impact or 0.0) > 0


def _breakdown(enhancements: list[Enhancement]) -> EnhancementBreakdown:
    if not enhancements:
        return EnhancementBreakdown()
    return EnhancementBreakdown(
        count=len(enhancements),
        average_impact=sum(e.actual_impact or 0.0 for e in enhancements) / len(enhancements),
        success_rate=sum(1 for e in enhancements if _succeeded(e)) / len(enhancements),
    )


def classify_workflow(descriptor: WorkflowDescriptor) -> WorkflowCategory:
    """Category of a workflow from its capabilities (data processing by default)."""
    text = " ".join(sorted(descriptor.capabilities))
    return WorkflowCategory(
        classify_capability(text, CATEGORY_KEYWORDS, WorkflowCategory.DATA_PROCESSING.value)
    )


# ===================================================================== #
#  Aggregator                                                            #
# ===================================================================== #

class AnalyticsAggregator:
    """Ecosystem analytics, recommendations and health.

    Parameters
    ----------
    tracker:
        Source of performance trends and workflow recommendations.
    relationships:
        Source of the ecosystem overview.
    config:
        History bounds, cache lifetime, learning window.
    event_bus:
        Optional ``EventBus`` to subscribe to enhancement events.
    clock:
        Zero-argument callable returning seconds; drives the cache and the
        learning window.
    """

    def __init__(
        self,
        tracker: PerformanceTracker,
        relationships: RelationshipManager,
        config: AnalyticsConfig | None = None,
        event_bus: Any = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self._tracker = tracker
        self._relationships = relationships
        self._config = config or AnalyticsConfig()
        self._config.validate()
        self._clock = clock or time.time
        self._cache = TTLCache(self._config.cache_ttl, clock=self._clock, keep_stale=False)
        self._lock = threading.Lock()
        # (received_at, enhancement) per workflow id
        self._enhancements: dict[str, deque[tuple[float, Enhancement]]] = {}
        self._workflows: dict[str, deque[WorkflowDescriptor]] = {}
        if event_bus is not None:
            event_bus.subscribe(EnhancementTracked, self._on_enhancement_tracked)
            event_bus.subscribe(EnhancementPropagated, self._on_enhancement_propagated)

    @property
    def config(self) -> AnalyticsConfig:
        return self._config

    # -- ingestion ------------------------------------------------------------

    def add_enhancement(self, workflow_id: str, enhancement: Enhancement) -> None:
        """Append to the workflow's enhancement history (oldest evicted)."""
        received_at = self._clock()
        with self._lock:
            history = self._enhancements.get(workflow_id)
            if history is None:
                history = deque(maxlen=self._config.max_enhancements)
                self._enhancements[workflow_id] = history
            history.append((received_at, enhancement))

    def add_workflow(self, descriptor: WorkflowDescriptor) -> None:
        """Record a descriptor snapshot; the latest one per id is current."""
        with self._lock:
            history = self._workflows.get(descriptor.workflow_id)
            if history is None:
                history = deque(maxlen=self._config.max_workflow_history)
                self._workflows[descriptor.workflow_id] = history
            history.append(descriptor)

    # -- report ---------------------------------------------------------------

    def get_workflow_analytics(
        self,
        workflow_id: str | None = None,
        participant_id: str | None = None,
        time_window: str = "7d",
    ) -> WorkflowAnalytics:
        """Full analytics report, served from cache while fresh."""
        parse_time_window(time_window)  # raises on a malformed window
        key = (workflow_id or "all", participant_id or "all", time_window)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        analytics = WorkflowAnalytics(
            workflow_id=workflow_id,
            participant_id=participant_id,
            time_window=time_window,
            workflow_distribution=self.get_workflow_distribution(participant_id),
            enhancement_effectiveness=self.get_enhancement_effectiveness(workflow_id),
            performance_trends=(
                tuple(self.get_performance_trends(workflow_id, time_window)) if workflow_id else ()
            ),
            collaboration_metrics=self.get_collaboration_metrics(),
            learning_efficiency=self.get_learning_efficiency(workflow_id),
            generated_at=self._clock(),
        )
        self._cache.set(key, analytics)
        return analytics

    def get_workflow_distribution(self, participant_id: str | None = None) -> dict[str, int]:
        """Count of current workflows per category.

        With *participant_id*, only workflows owned by that address count.
        """
        distribution = {category.value: 0 for category in WorkflowCategory}
        with self._lock:
            current = [history[-1] for history in self._workflows.values() if history]
        for descriptor in current:
            if participant_id and descriptor.owner_address != participant_id:
                continue
            distribution[classify_workflow(descriptor).value] += 1
        return distribution

    def get_enhancement_effectiveness(self, workflow_id: str | None = None) -> EnhancementEffectiveness:
        """Mean measured impact and success rate, overall, by type and by source.

        An enhancement succeeded if its actual impact is positive; a missing
        actual impact counts as 0.
        """
        enhancements = self._enhancements_for(workflow_id)
        overall = _breakdown(enhancements)
        by_type = {
            etype.value: _breakdown([e for e in enhancements if e.type is etype])
            for etype in EnhancementType
        }
        by_source = {
            source.value: _breakdown(
                [e for e in enhancements if infer_learning_source(e) is source]
            )
            for source in LearningSource
        }
        return EnhancementEffectiveness(
            average_impact=overall.average_impact,
            success_rate=overall.success_rate,
            by_type=by_type,
            by_source=by_source,
        )

    def get_performance_trends(self, workflow_id: str, time_window: str = "7d") -> list[PerformanceTrend]:
        """Metric trends over the samples recorded inside *time_window*."""
        since = self._clock() - parse_time_window(time_window)
        return self._tracker.trends(workflow_id, since=since, time_window=time_window)

    def get_collaboration_metrics(self) -> CollaborationMetrics:
        """Sharing, exchange, peer learning, density and influence of the graph."""
        overview = self._relationships.get_ecosystem_overview()
        total = overview.total_workflows
        possible = total * (total - 1)
        peer = sum(
            1 for e in self._enhancements_for(None)
            if infer_learning_source(e) is LearningSource.PEER
        )
        return CollaborationMetrics(
            workflow_sharing=total - len(overview.isolated_workflows),
            knowledge_exchange=int(overview.total_relationships * 0.3),
            peer_learning=peer,
            network_density=clamp(overview.total_relationships / possible) if possible else 0.0,
            influence_score=clamp(len(overview.hub_workflows) / total) if total else 0.0,
        )

    def get_learning_efficiency(self, workflow_id: str | None = None) -> LearningEfficiency:
        """Learning rate, retention and transfer over the learning window.

        An enhancement is recent if it was validated (or, lacking a
        validation time, received) inside the window.
        """
        days = self._config.learning_window_days
        window_start = self._clock() - days * _DAY
        recent = [
            e for received_at, e in self._entries_for(workflow_id)
            if (e.validation.validated_at or received_at) > window_start
        ]
        count = len(recent)
        retained = sum(
            1 for e in recent
            if (e.actual_impact or 0.0) > 0.1 and e.validation.confidence > 0.7
        )
        transferred = sum(
            1 for e in recent
            if infer_learning_source(e) in (LearningSource.PEER, LearningSource.EMERGENT)
        )
        return LearningEfficiency(
            learning_rate=count / days,
            knowledge_retention=retained / count if count else 0.0,
            transfer_efficiency=transferred / count if count else 0.0,
            adaptability_score=self._adaptability(workflow_id),
        )

    # -- recommendations & health ---------------------------------------------

    def generate_recommendations(self, workflow_id: str | None = None) -> list[str]:
        """Ecosystem-level advice, plus the tracker's advice for *workflow_id*.

        At most ``config.max_recommendations`` items.
        """
        analytics = self.get_workflow_analytics(workflow_id)
        effectiveness = analytics.enhancement_effectiveness
        collaboration = analytics.collaboration_metrics
        learning = analytics.learning_efficiency
        recommendations: list[str] = []

        populated = sorted(
            ((c, n) for c, n in analytics.workflow_distribution.items() if n > 0),
            key=lambda item: item[1],
            reverse=True,
        )
        if populated:
            categories = ", ".join(c for c, _ in populated)
            recommendations.append(f"Focus optimization efforts on {categories} workflows")

        if effectiveness.success_rate < 0.6:
            recommendations.append(
                "Improve enhancement validation process - current success rate is below 60%"
            )
        if effectiveness.average_impact < 0.3:
            recommendations.append("Target higher-impact enhancements - current average impact is low")
        if collaboration.network_density < 0.3:
            recommendations.append("Increase workflow collaboration - network density is low")
        if collaboration.peer_learning < 5:
            recommendations.append("Encourage more peer learning between workflows")
        if learning.learning_rate < 1:
            recommendations.append(
                "Increase learning frequency - currently less than 1 improvement per day"
            )
        if learning.knowledge_retention < 0.7:
            recommendations.append("Improve knowledge retention mechanisms")
        if learning.transfer_efficiency < 0.3:
            recommendations.append("Enhance cross-workflow knowledge transfer")

        if workflow_id:
            advice = self._tracker.generate_optimization_recommendations(workflow_id)
            recommendations.extend(advice.recommendations)

        if not recommendations:
            recommendations.extend(DEFAULT_RECOMMENDATIONS)
        return recommendations[: self._config.max_recommendations]

    def get_ecosystem_health_score(self) -> float:
        """Mean of seven ecosystem scores, in [0, 1]."""
        analytics = self.get_workflow_analytics()
        effectiveness = analytics.enhancement_effectiveness
        collaboration = analytics.collaboration_metrics
        learning = analytics.learning_efficiency
        scores = [
            clamp(effectiveness.success_rate),
            clamp(effectiveness.average_impact),
            collaboration.network_density,
            collaboration.influence_score,
            learning.knowledge_retention,
            learning.transfer_efficiency,
            min(1.0, learning.learning_rate / 2),
        ]
        return sum(scores) / len(scores)

    # -- cache ----------------------------------------------------------------

    def clear_cache(self) -> None:
        self._cache.clear()

    def get_cache_stats(self) -> CacheStats:
        return self._cache.stats()

    # -- internals ------------------------------------------------------------

    def _entries_for(self, workflow_id: str | None) -> list[tuple[float, Enhancement]]:
        with self._lock:
            if workflow_id is not None:
                return list(self._enhancements.get(workflow_id, ()))
            return [entry for history in self._enhancements.values() for entry in history]

    def _enhancements_for(self, workflow_id: str | None) -> list[Enhancement]:
        return [e for _, e in self._entries_for(workflow_id)]

    def _adaptability(self, workflow_id: str | None) -> float:
        enhancements = self._enhancements_for(workflow_id)
        if not enhancements:
            return 0.5
        diversity = len({e.type for e in enhancements}) / len(EnhancementType)
        success = sum(1 for e in enhancements if _succeeded(e)) / len(enhancements)
        return (diversity + success) / 2

    def _on_enhancement_tracked(self, event: DomainEvent) -> None:
        if isinstance(event, EnhancementTracked) and event.enhancement is not None:
            self.add_enhancement(event.source_id, event.enhancement)

    def _on_enhancement_propagated(self, event: DomainEvent) -> None:
        if (
            isinstance(event, EnhancementPropagated)
            and event.applied
            and event.enhancement is not None
        ):
            self.add_enhancement(event.target_id, event.enhancement)


def register_workflows(aggregator: AnalyticsAggregator, descriptors: Iterable[WorkflowDescriptor]) -> int:
    """Feed discovered descriptors into *aggregator*; returns how many."""
    count = 0
    for descriptor in descriptors:
        aggregator.add_workflow(descriptor)
        count += 1
    logger.debug("Registered %d workflow descriptors for analytics", count)
    return count
