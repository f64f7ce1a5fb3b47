"""LangGraph state of the progressive workflow search.

``ProgressiveSearchState`` flows through the search ``StateGraph``.  The
``stages`` channel is append-only (``Annotated[list, operator.add]``) so
each node records that it ran without overwriting earlier entries.

Note: no ``from __future__ import annotations`` here; LangGraph resolves
the type hints at runtime via ``get_type_hints()``.
"""

import operator
from typing import Annotated, TypedDict

from workflow_ecosystem.domain.values import DiscoveryFilters, WorkflowDescriptor


class ProgressiveSearchState(TypedDict, total=False):
    """State of one ``find_workflows`` run."""

    # -- Input
    query: str
    filters: DiscoveryFilters

    # -- Classification
    primary_capability: str

    # -- Search results
    broad_results: list[WorkflowDescriptor]
    passes_quality_gate: bool
    narrow_results: list[WorkflowDescriptor]

    # -- Output
    results: list[WorkflowDescriptor]

    # -- Trace (append-only)
    stages: Annotated[list[str], operator.add]
