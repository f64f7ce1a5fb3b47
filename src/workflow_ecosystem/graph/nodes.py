"""Node factories of the progressive search graph.

Each ``make_*_node(service)`` returns a closure over a ``DiscoveryService``
that takes the current ``ProgressiveSearchState`` and returns a partial
update dict.  The nodes delegate to the service rather than reimplementing
any search logic.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from workflow_ecosystem.domain.values import DiscoveryFilters

logger = logging.getLogger(__name__)

NodeFn = Callable[[dict[str, Any]], dict[str, Any]]


def _filters(state: dict[str, Any]) -> DiscoveryFilters:
    return state.get("filters") or DiscoveryFilters()


def make_classify_node(service: Any) -> NodeFn:
    """Resolve the query to its primary capability bucket."""

    def classify_node(state: dict[str, Any]) -> dict[str, Any]:
        capability = service.classify_query(state.get("query", ""))
        logger.debug("Query %r classified as %s", state.get("query", ""), capability)
        return {"primary_capability": capability, "stages": ["classify"]}

    return classify_node


def make_broad_search_node(service: Any) -> NodeFn:
    """Search by the primary capability and evaluate the quality gate."""

    def broad_search_node(state: dict[str, Any]) -> dict[str, Any]:
        broad = service.search_by_capability(state["primary_capability"], _filters(state))
        return {
            "broad_results": broad,
            "passes_quality_gate": service.passes_quality_gate(broad),
            "stages": ["broad_search"],
        }

    return broad_search_node


def make_accept_broad_node(service: Any) -> NodeFn:
    """Return the ranked broad results as the final answer."""

    def accept_broad_node(state: dict[str, Any]) -> dict[str, Any]:
        return {
            "results": service.rank_workflows(state.get("broad_results", [])),
            "stages": ["accept_broad"],
        }

    return accept_broad_node


def make_narrow_search_node(service: Any) -> NodeFn:
    """Run the free-text search on the original query."""

    def narrow_search_node(state: dict[str, Any]) -> dict[str, Any]:
        narrow = service.search_by_query(state.get("query", ""), _filters(state))
        return {"narrow_results": narrow, "stages": ["narrow_search"]}

    return narrow_search_node


def make_merge_node(service: Any) -> NodeFn:
    """Merge broad and narrow results, dedupe and rerank."""

    def merge_node(state: dict[str, Any]) -> dict[str, Any]:
        combined = list(state.get("broad_results", [])) + list(state.get("narrow_results", []))
        merged = service.rank_workflows(service.remove_duplicates(combined))
        return {"results": merged, "stages": ["merge"]}

    return merge_node
