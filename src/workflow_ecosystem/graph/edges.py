"""Conditional edge functions of the progressive search graph."""

from __future__ import annotations

from typing import Any, Literal


def should_narrow(state: dict[str, Any]) -> Literal["accept_broad", "narrow_search"]:
    """After the broad search, decide whether a free-text search is needed.

    Returns ``"accept_broad"`` when the broad results passed the quality
    gate, ``"narrow_search"`` otherwise.
    """
    if state.get("passes_quality_gate"):
        return "accept_broad"
    return "narrow_search"
