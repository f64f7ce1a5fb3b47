"""LangGraph-native progressive workflow search.

Public API
----------
build_progressive_search_graph
    Build and compile the classify / broad / gate / narrow / merge graph.
ProgressiveSearchState
    The TypedDict state flowing through the graph.

Node factories:
    make_classify_node, make_broad_search_node, make_accept_broad_node,
    make_narrow_search_node, make_merge_node

Edge functions:
    should_narrow
"""

from workflow_ecosystem.graph.edges import should_narrow
from workflow_ecosystem.graph.graph import build_progressive_search_graph
from workflow_ecosystem.graph.nodes import (
    make_accept_broad_node,
    make_broad_search_node,
    make_classify_node,
    make_merge_node,
    make_narrow_search_node,
)
from workflow_ecosystem.graph.state import ProgressiveSearchState

__all__ = [
    "build_progressive_search_graph",
    "ProgressiveSearchState",
    "make_accept_broad_node",
    "make_broad_search_node",
    "make_classify_node",
    "make_merge_node",
    "make_narrow_search_node",
    "should_narrow",
]
