"""Build the progressive search StateGraph.

``build_progressive_search_graph()`` wires classify, broad search, the
quality gate and the narrow/merge branch into a compiled LangGraph::

    START -> classify -> broad_search --(gate passed)--> accept_broad -> END
                                      \\--(otherwise)--> narrow_search -> merge -> END
"""

from typing import Any

from langgraph.graph import END, START, StateGraph

from workflow_ecosystem.graph.edges import should_narrow
from workflow_ecosystem.graph.nodes import (
    make_accept_broad_node,
    make_broad_search_node,
    make_classify_node,
    make_merge_node,
    make_narrow_search_node,
)
from workflow_ecosystem.graph.state import ProgressiveSearchState


def build_progressive_search_graph(service: Any) -> Any:
    """Build and compile the progressive search graph.

    Parameters
    ----------
    service:
        The ``DiscoveryService`` the nodes delegate to.

    Returns
    -------
    CompiledStateGraph
        A compiled graph ready for ``.invoke({"query": ..., "filters": ...})``.
    """
    graph = StateGraph(ProgressiveSearchState)

    graph.add_node("classify", make_classify_node(service))
    graph.add_node("broad_search", make_broad_search_node(service))
    graph.add_node("accept_broad", make_accept_broad_node(service))
    graph.add_node("narrow_search", make_narrow_search_node(service))
    graph.add_node("merge", make_merge_node(service))

    graph.add_edge(START, "classify")
    graph.add_edge("classify", "broad_search")
    graph.add_conditional_edges(
        "broad_search",
        should_narrow,
        {"accept_broad": "accept_broad", "narrow_search": "narrow_search"},
    )
    graph.add_edge("accept_broad", END)
    graph.add_edge("narrow_search", "merge")
    graph.add_edge("merge", END)

    return graph.compile()
