"""Workflow discovery and ranking across hubs.

``DiscoveryService`` turns relay records into ranked ``WorkflowDescriptor``
lists.  Three searches hit the dedicated workflow hub (by capability, by
free text, by requirements); ``find_workflows`` combines the first two in a
progressive broad-then-narrow strategy run as a LangGraph ``StateGraph``.

Reads never fail: a relay error or timeout is logged at ``warning`` and
yields an empty result (or the last cached statistics).  The one write,
``publish_enhancement``, raises ``RelayError``.

Caches (all with the service clock):

- search results, 2 minutes, keyed by ``(kind, argument, filters)``;
- hub and network statistics, 5 minutes, stale copy served on failure;
- hub information, 5 minutes per hub.
"""

from __future__ import annotations

import json
import logging
import time
from collections import Counter
from collections.abc import Callable, Iterable, Sequence
from typing import Any

from workflow_ecosystem.domain.exceptions import RelayError
from workflow_ecosystem.domain.values import (
    DiscoveryFilters,
    Enhancement,
    EnhancementPattern,
    HubInfo,
    HubStatistics,
    NetworkStatistics,
    SearchOutcome,
    WorkflowDescriptor,
)
from workflow_ecosystem.graph.graph import build_progressive_search_graph
from workflow_ecosystem.infrastructure.cache import TTLCache
from workflow_ecosystem.infrastructure.config import DiscoveryConfig, ReputationWeights
from workflow_ecosystem.infrastructure.relay import (
    MEMORY_KIND,
    Relay,
    RelayFilter,
    parse_performance_blob,
    parse_record,
    query_with_timeout,
)
from workflow_ecosystem.services.event_adapter import (
    parse_enhancement_pattern,
    to_descriptor,
)
from workflow_ecosystem.services.scoring import (
    DEFAULT_WEIGHTS,
    calculate_overlap,
    clamp,
    classify_capability,
)

logger = logging.getLogger(__name__)

PUBLIC_WORKFLOW_TAGS = ("public", "discoverable")
SHAREABLE_TAGS = ("public", "shareable")
OPEN_SOURCE_TAG = "open-source"

NO_RESULT_SUGGESTIONS = (
    'Try searching for broader terms like "format-conversion", "data-processing", or "automation"',
    'Search by capabilities like "transformation", "validation", or "analysis"',
    'Use specific workflow names if you know them (e.g., "json-processor-v1")',
)

_HUB_STATS_KEY = "hub_statistics"
_NETWORK_STATS_KEY = "network_statistics"


# ===================================================================== #
#  Pure ranking helpers                                                  #
# ===================================================================== #

def rank_workflows(workflows: Iterable[WorkflowDescriptor]) -> list[WorkflowDescriptor]:
    """Stable descending sort by ``(reputation, quality, usage_count)``."""
    return sorted(
        workflows,
        key=lambda w: (
            w.reputation_score,
            w.performance_metrics.quality_score,
            w.usage_count,
        ),
        reverse=True,
    )


def remove_duplicates(workflows: Iterable[WorkflowDescriptor]) -> list[WorkflowDescriptor]:
    """Drop repeated ``(hub_id, workflow_id)`` pairs; the first occurrence wins."""
    seen: set[tuple[str, str]] = set()
    unique = []
    for workflow in workflows:
        if workflow.identity_key in seen:
            continue
        seen.add(workflow.identity_key)
        unique.append(workflow)
    return unique


def matches_query(workflow: WorkflowDescriptor, query: str) -> bool:
    """True if every whitespace-separated term of *query* occurs in the workflow text.

    The text is the lowercased name, description, capabilities and tags.
    """
    text = " ".join(
        [workflow.name, workflow.description, *sorted(workflow.capabilities), *sorted(workflow.tags)]
    ).lower()
    return all(term in text for term in query.lower().split())


def matches_additional_filters(workflow: WorkflowDescriptor, filters: DiscoveryFilters) -> bool:
    """Apply the filters the relay cannot evaluate."""
    if (
        filters.min_reputation_score is not None
        and workflow.reputation_score < filters.min_reputation_score
    ):
        return False
    if (
        filters.min_performance_score is not None
        and workflow.performance_metrics.quality_score < filters.min_performance_score
    ):
        return False
    if filters.capabilities and workflow.capabilities.isdisjoint(filters.capabilities):
        return False
    if filters.requirements and workflow.requirements.isdisjoint(filters.requirements):
        return False
    if filters.only_open_source and OPEN_SOURCE_TAG not in workflow.tags:
        return False
    if filters.tags and not set(filters.tags) <= workflow.tags:
        return False
    if (
        filters.max_response_time is not None
        and workflow.performance_metrics.average_execution_time > filters.max_response_time
    ):
        return False
    return True


def filter_by_similarity(
    workflows: Iterable[WorkflowDescriptor],
    reference: WorkflowDescriptor,
    threshold: float = 0.3,
) -> list[WorkflowDescriptor]:
    """Keep workflows whose capability or requirement overlap with *reference* exceeds *threshold*."""
    return [
        w for w in workflows
        if calculate_overlap(w.capabilities, reference.capabilities) > threshold
        or calculate_overlap(w.requirements, reference.requirements) > threshold
    ]


def top_capabilities(workflows: Iterable[WorkflowDescriptor], limit: int) -> tuple[str, ...]:
    """Most frequent capabilities, ties in first-seen order."""
    counts: Counter[str] = Counter()
    for workflow in workflows:
        counts.update(sorted(workflow.capabilities))
    return tuple(cap for cap, _ in counts.most_common(limit))


# ===================================================================== #
#  Service                                                               #
# ===================================================================== #

class DiscoveryService:
    """Search, rank and summarize workflows published on the relay.

    Parameters
    ----------
    relay:
        The external record store.
    config:
        Hubs, limits, cache lifetimes and quality gate.
    weights:
        Reputation blend used when converting records.
    clock:
        Zero-argument callable returning seconds; drives every cache.
    """

    def __init__(
        self,
        relay: Relay,
        config: DiscoveryConfig | None = None,
        weights: ReputationWeights = DEFAULT_WEIGHTS,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self._relay = relay
        self._config = config or DiscoveryConfig()
        self._config.validate()
        weights.validate()
        self._weights = weights
        self._clock = clock or time.time
        self._results = TTLCache(
            self._config.result_cache_ttl,
            clock=self._clock,
            max_entries=self._config.result_cache_max_entries,
            keep_stale=False,
        )
        self._stats = TTLCache(self._config.stats_cache_ttl, clock=self._clock)
        self._hubs = TTLCache(self._config.hub_discovery_ttl, clock=self._clock)
        self._search_graph = build_progressive_search_graph(self)

    @property
    def config(self) -> DiscoveryConfig:
        return self._config

    # -- ranking (exposed for the search graph) -------------------------------

    rank_workflows = staticmethod(rank_workflows)
    remove_duplicates = staticmethod(remove_duplicates)
    matches_query = staticmethod(matches_query)
    matches_additional_filters = staticmethod(matches_additional_filters)

    def filter_by_similarity(
        self,
        workflows: Iterable[WorkflowDescriptor],
        reference: WorkflowDescriptor,
        threshold: float | None = None,
    ) -> list[WorkflowDescriptor]:
        if threshold is None:
            threshold = self._config.similarity_threshold
        return filter_by_similarity(workflows, reference, threshold)

    def classify_query(self, query: str) -> str:
        """Coarse capability bucket of a free-text query."""
        return classify_capability(
            query, self._config.capability_map, self._config.default_capability
        )

    def passes_quality_gate(self, ranked: Sequence[WorkflowDescriptor]) -> bool:
        """True if the top results are all trustworthy enough to skip narrowing."""
        cfg = self._config
        head = list(ranked[: cfg.quality_gate_size])
        if len(head) < cfg.quality_gate_size:
            return False
        return all(
            w.reputation_score >= cfg.high_quality_reputation
            and w.performance_metrics.quality_score >= cfg.high_quality_performance
            for w in head
        )

    # -- searches -------------------------------------------------------------

    def search_by_capability(
        self,
        capability: str,
        filters: DiscoveryFilters | None = None,
    ) -> list[WorkflowDescriptor]:
        """Public workflows advertising *capability*, ranked."""
        filters = filters or DiscoveryFilters()
        relay_filter = self._workflow_filter(
            filters, self._config.capability_limit, workflow_capability=(capability,)
        )
        return self._search(("capability", capability, filters), relay_filter, filters)

    def search_by_query(
        self,
        query: str,
        filters: DiscoveryFilters | None = None,
    ) -> list[WorkflowDescriptor]:
        """Public workflows whose text contains every term of *query*, ranked."""
        filters = filters or DiscoveryFilters()
        relay_filter = self._workflow_filter(filters, self._config.query_limit)
        return self._search(
            ("query", query, filters),
            relay_filter,
            filters,
            predicate=lambda w: matches_query(w, query),
        )

    def search_by_requirements(
        self,
        requirements: Sequence[str],
        filters: DiscoveryFilters | None = None,
    ) -> list[WorkflowDescriptor]:
        """Public workflows declaring any of *requirements*, ranked."""
        filters = filters or DiscoveryFilters()
        relay_filter = self._workflow_filter(
            filters,
            self._config.requirements_limit,
            workflow_requirement=tuple(requirements),
        )
        return self._search(
            ("requirements", tuple(requirements), filters), relay_filter, filters
        )

    def find_workflows(
        self,
        query: str,
        filters: DiscoveryFilters | None = None,
    ) -> list[WorkflowDescriptor]:
        """Progressive search: broad capability search, narrowed when needed.

        The query is classified to a capability bucket and searched broadly.
        If the top ranked broad results all pass the quality gate they are
        returned as is; otherwise a free-text search runs and both result
        sets are merged, deduplicated and reranked.
        """
        final = self._search_graph.invoke(
            {"query": query, "filters": filters or DiscoveryFilters(), "stages": []}
        )
        logger.debug("find_workflows(%r) stages: %s", query, final.get("stages"))
        return list(final.get("results", []))

    def find_similar_workflows(
        self,
        reference: WorkflowDescriptor,
        filters: DiscoveryFilters | None = None,
    ) -> list[WorkflowDescriptor]:
        """Workflows sharing enough capabilities or requirements with *reference*.

        Searches each capability of the reference, removes duplicates and
        the reference itself, then applies the similarity threshold.
        """
        found: list[WorkflowDescriptor] = []
        for capability in sorted(reference.capabilities):
            found.extend(self.search_by_capability(capability, filters))
        candidates = [
            w for w in remove_duplicates(found)
            if w.identity_key != reference.identity_key
        ]
        return rank_workflows(self.filter_by_similarity(candidates, reference))

    # -- suggestions ----------------------------------------------------------

    def get_search_suggestions(
        self,
        query: str,
        found: Sequence[WorkflowDescriptor],
    ) -> list[str]:
        """Hints for refining a search that returned *found*."""
        if not found:
            return list(NO_RESULT_SUGGESTIONS)
        if len(found) < 3:
            capabilities: dict[str, None] = {}
            for workflow in found:
                for cap in sorted(workflow.capabilities):
                    capabilities.setdefault(cap, None)
            if not capabilities:
                return []
            return [
                f"Try related capabilities: {', '.join(capabilities)}",
                "Search for similar workflows using broader terms",
            ]
        return [
            f"Found {len(found)} workflows! Consider filtering by performance or reputation.",
            "Try the top-ranked workflows first for best results.",
        ]

    def search_with_suggestions(
        self,
        query: str,
        filters: DiscoveryFilters | None = None,
    ) -> SearchOutcome:
        """``find_workflows`` plus refinement suggestions and search tips."""
        started = self._clock()
        workflows = self.find_workflows(query, filters)
        suggestions = self.get_search_suggestions(query, workflows)
        tips = (
            "Use specific terms for better results",
            f"Results are cached for {self._config.result_cache_ttl:g} seconds "
            "for faster subsequent searches",
            "Try capability-based search for precise matching",
        )
        return SearchOutcome(
            workflows=tuple(workflows),
            suggestions=tuple(suggestions),
            search_tips=tips,
            duration=max(0.0, self._clock() - started),
            hubs_searched=1,
        )

    # -- enhancement patterns -------------------------------------------------

    def get_enhancement_patterns(
        self,
        workflow_id: str,
        hub_id: str | None = None,
    ) -> list[EnhancementPattern]:
        """Shareable enhancement patterns published for *workflow_id*.

        Never raises; a relay failure yields an empty list.
        """
        hub = hub_id or self._config.hub_id
        relay_filter = RelayFilter(
            kinds=(MEMORY_KIND,),
            tags={
                "ai_tag": SHAREABLE_TAGS,
                "ai_type": ("enhancement",),
                "workflow_id": (workflow_id,),
            },
            limit=self._config.enhancement_limit,
        )
        try:
            records = self._query(hub, relay_filter)
        except RelayError as exc:
            logger.warning("Failed to get enhancement patterns for %s: %s", workflow_id, exc)
            return []
        return [
            parse_enhancement_pattern(record, workflow_id, hub, index)
            for index, record in enumerate(records)
        ]

    def publish_enhancement(
        self,
        workflow_id: str,
        enhancement: Enhancement,
        signer: Any = None,
        capabilities: Iterable[str] = (),
        hub_id: str | None = None,
    ) -> Any:
        """Publish *enhancement* as a shareable pattern of *workflow_id*.

        Returns the relay acknowledgement.

        Raises
        ------
        RelayError
            If the relay rejects or fails the write.
        """
        hub = hub_id or self._config.hub_id
        blob = {
            "type": enhancement.type.value,
            "description": enhancement.description,
            "impact": enhancement.impact,
            "riskLevel": enhancement.risk.value,
        }
        tags = {
            "Kind": MEMORY_KIND,
            "Content": enhancement.description,
            "ai_type": "enhancement",
            "ai_tag": list(SHAREABLE_TAGS),
            "workflow_id": workflow_id,
            "workflow_capability": sorted(capabilities),
            "workflow_enhancement": json.dumps(blob),
            "enhancement_type": enhancement.type.value,
            "enhancement_impact": str(enhancement.impact),
            "enhancement_risk": enhancement.risk.value,
        }
        try:
            ack = self._relay.publish(tags, signer, hub)
        except Exception as exc:
            raise RelayError(
                f"Failed to publish enhancement {enhancement.id}: {exc}",
                hub_id=hub,
                operation="publish",
                details={"workflow_id": workflow_id},
            ) from exc
        logger.info("Published enhancement %s for %s to %s", enhancement.id, workflow_id, hub)
        return ack

    # -- statistics -----------------------------------------------------------

    def get_hub_statistics(self) -> HubStatistics:
        """Summary of the dedicated workflow hub.

        ``network_health_score = min(1, 0.02 * workflows + 0.8 * mean reputation)``.
        """
        cached = self._stats.get(_HUB_STATS_KEY)
        if cached is not None:
            return cached
        relay_filter = self._workflow_filter(DiscoveryFilters(), self._config.stats_limit)
        try:
            records = self._query(self._config.hub_id, relay_filter)
        except RelayError as exc:
            logger.warning("Failed to get hub statistics: %s", exc)
            return self._stats.get_stale(_HUB_STATS_KEY, HubStatistics())

        workflows = [to_descriptor(r, self._config.hub_id, self._weights) for r in records]
        average = _mean_reputation(workflows)
        stats = HubStatistics(
            total_public_workflows=len(workflows),
            average_reputation_score=average,
            top_capabilities=top_capabilities(workflows, self._config.top_capabilities),
            network_health_score=clamp(len(workflows) * 0.02 + average * 0.8),
        )
        self._stats.set(_HUB_STATS_KEY, stats)
        return stats

    def get_network_statistics(self) -> NetworkStatistics:
        """Summary across the most active hubs of the network.

        ``network_health_score = min(1, 0.1 * hubs + 0.05 * workflows
        + 0.5 * mean reputation)``.
        """
        cached = self._stats.get(_NETWORK_STATS_KEY)
        if cached is not None:
            return cached

        hubs, hub_failures = self._collect_hubs(force_refresh=False)
        public_hubs = [h for h in hubs if h.has_public_workflows]
        active = sorted(public_hubs, key=lambda h: h.workflow_count, reverse=True)[
            : self._config.max_network_hubs
        ]

        workflows: list[WorkflowDescriptor] = []
        failures = 0
        for hub in active:
            relay_filter = self._workflow_filter(DiscoveryFilters(), self._config.stats_limit)
            try:
                records = self._query(hub.process_id, relay_filter)
            except RelayError as exc:
                logger.warning("Failed to query hub %s: %s", hub.process_id, exc)
                failures += 1
                continue
            workflows.extend(to_descriptor(r, hub.process_id, self._weights) for r in records)

        if (active and failures == len(active)) or (not hubs and hub_failures):
            logger.warning("Network statistics unavailable; serving last known values")
            return self._stats.get_stale(_NETWORK_STATS_KEY, NetworkStatistics())

        average = _mean_reputation(workflows)
        stats = NetworkStatistics(
            total_hubs=len(public_hubs),
            total_public_workflows=len(workflows),
            average_reputation_score=average,
            top_capabilities=top_capabilities(workflows, self._config.top_capabilities),
            network_health_score=clamp(
                len(public_hubs) * 0.1 + len(workflows) * 0.05 + average * 0.5
            ),
        )
        self._stats.set(_NETWORK_STATS_KEY, stats)
        return stats

    # -- hubs -----------------------------------------------------------------

    def discover_hubs(self, force_refresh: bool = False) -> list[HubInfo]:
        """Information on every known hub: the workflow hub plus ``network_hubs``.

        Hub information is cached per hub.  A hub that cannot be reached is
        reported from its last known information, or skipped.
        """
        hubs, _ = self._collect_hubs(force_refresh)
        return hubs

    def get_hub_info(self, hub_id: str) -> HubInfo:
        """Query *hub_id* for its public workflows and summarize them.

        ``reputation = 0.7 * mean quality + 0.3 * min(1, 0.02 * workflows)``,
        where the mean counts only records advertising a quality score and
        defaults to 0.5.

        Raises
        ------
        RelayError
            If the hub cannot be queried.
        """
        relay_filter = self._workflow_filter(DiscoveryFilters(), self._config.hub_limit)
        records = self._query(hub_id, relay_filter)
        qualities = []
        for record in records:
            blob = parse_performance_blob(parse_record(record).workflow_performance)
            if blob is not None and blob.qualityScore is not None:
                qualities.append(blob.qualityScore)
        average_quality = sum(qualities) / len(qualities) if qualities else 0.5
        activity = min(1.0, len(records) * 0.02)
        first = parse_record(records[0]) if records else None
        return HubInfo(
            process_id=hub_id,
            workflow_count=len(records),
            has_public_workflows=bool(records),
            reputation_score=clamp(average_quality * 0.7 + activity * 0.3),
            last_activity=first.Timestamp if first else "",
            owner_address=first.p if first else "",
        )

    # -- cache ----------------------------------------------------------------

    def clear_cache(self) -> None:
        """Drop every cached search result, statistic and hub summary."""
        self._results.clear()
        self._stats.clear()
        self._hubs.clear()

    # -- internals ------------------------------------------------------------

    def _known_hubs(self) -> list[str]:
        return list(dict.fromkeys((self._config.hub_id, *self._config.network_hubs)))

    def _collect_hubs(self, force_refresh: bool) -> tuple[list[HubInfo], int]:
        hubs: list[HubInfo] = []
        failures = 0
        for hub_id in self._known_hubs():
            info = None if force_refresh else self._hubs.get(hub_id)
            if info is None:
                try:
                    info = self.get_hub_info(hub_id)
                except RelayError as exc:
                    logger.warning("Failed to query hub %s: %s", hub_id, exc)
                    failures += 1
                    info = self._hubs.get_stale(hub_id)
                else:
                    self._hubs.set(hub_id, info)
            if info is not None:
                hubs.append(info)
        return hubs, failures

    def _workflow_filter(
        self,
        filters: DiscoveryFilters,
        limit: int,
        **extra_tags: tuple[str, ...],
    ) -> RelayFilter:
        tags: dict[str, tuple[str, ...]] = {
            "ai_tag": PUBLIC_WORKFLOW_TAGS + tuple(filters.tags),
            "ai_type": ("workflow",),
            **extra_tags,
        }
        # Searched tags win; filter values narrow in matches_additional_filters.
        if filters.capabilities:
            tags.setdefault("workflow_capability", tuple(filters.capabilities))
        if filters.requirements:
            tags.setdefault("workflow_requirement", tuple(filters.requirements))
        return RelayFilter(kinds=(MEMORY_KIND,), tags=tags, limit=limit)

    def _query(self, hub_id: str, relay_filter: RelayFilter) -> list[dict[str, Any]]:
        return query_with_timeout(self._relay, hub_id, relay_filter, self._config.query_timeout)

    def _search(
        self,
        cache_key: tuple[Any, ...],
        relay_filter: RelayFilter,
        filters: DiscoveryFilters,
        predicate: Callable[[WorkflowDescriptor], bool] | None = None,
    ) -> list[WorkflowDescriptor]:
        cached = self._results.get(cache_key)
        if cached is not None:
            return list(cached)
        try:
            records = self._query(self._config.hub_id, relay_filter)
        except RelayError as exc:
            logger.warning("Failed to search by %s %r: %s", cache_key[0], cache_key[1], exc)
            return []

        workflows = [to_descriptor(r, self._config.hub_id, self._weights) for r in records]
        selected = [
            w for w in workflows
            if (predicate is None or predicate(w)) and matches_additional_filters(w, filters)
        ]
        ranked = rank_workflows(selected)
        self._results.set(cache_key, tuple(ranked))
        logger.debug(
            "Search by %s %r: %d records, %d matches",
            cache_key[0], cache_key[1], len(records), len(ranked),
        )
        return ranked


def _mean_reputation(workflows: Sequence[WorkflowDescriptor]) -> float:
    if not workflows:
        return 0.0
    return sum(w.reputation_score for w in workflows) / len(workflows)
