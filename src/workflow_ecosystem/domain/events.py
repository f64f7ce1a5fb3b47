"""Domain events for the workflow ecosystem.

Every event is a frozen dataclass inheriting from ``DomainEvent``.  Services
publish them on an optional ``EventBus`` after a mutation has been applied;
the analytics aggregator and the ``EventStore`` are the usual listeners.

All events carry a ``timestamp`` and a ``source_id`` identifying the
workflow (or composition) the event concerns.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field

from .enums import PropagationStrategy, RelationshipType
from .values import Enhancement, PerformanceSample, RelationshipOptimization

# ---------------------------------------------------------------------------
# Base event
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DomainEvent:
    """Base class for all domain events."""

    timestamp: float = field(default_factory=time.time)
    source_id: str = ""


# ---------------------------------------------------------------------------
# Performance events
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PerformanceRecorded(DomainEvent):
    """A performance sample was appended to a workflow's history."""

    sample: PerformanceSample | None = None
    history_size: int = 0


@dataclass(frozen=True)
class BaselineSet(DomainEvent):
    """A workflow's comparison baseline was (re)set."""

    baseline: PerformanceSample | None = None


@dataclass(frozen=True)
class EnhancementTracked(DomainEvent):
    """An enhancement's measured impact was attached and recorded."""

    enhancement: Enhancement | None = None
    actual_impact: float = 0.0


# ---------------------------------------------------------------------------
# Relationship events
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RelationshipCreated(DomainEvent):
    """An edge was created or its strength replaced."""

    target_id: str = ""
    relationship_type: RelationshipType | None = None
    strength: float = 0.0
    replaced: bool = False


@dataclass(frozen=True)
class CompositionCreated(DomainEvent):
    """A composition was created and linked to its steps."""

    composition_id: str = ""
    step_ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class EnhancementPropagated(DomainEvent):
    """An enhancement reached a descendant of the source workflow.

    ``applied`` is ``False`` when the strategy only reports the descendant
    as affected.
    """

    target_id: str = ""
    enhancement: Enhancement | None = None
    strategy: PropagationStrategy = PropagationStrategy.IMMEDIATE
    applied: bool = True


@dataclass(frozen=True)
class RelationshipsOptimized(DomainEvent):
    """Edge strengths of a workflow were adjusted against performance."""

    result: RelationshipOptimization | None = None
