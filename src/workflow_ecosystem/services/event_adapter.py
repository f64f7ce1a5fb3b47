"""Conversion of raw relay records into typed descriptors.

Every "missing field -> default" rule of the package lives here; no other
component parses raw records.  All functions are pure and never raise:

======================  =============================================
Field                   Default
======================  =============================================
workflow_id             ``workflow_id`` tag, else the record ``Id``
name                    ``workflow_id`` tag, else ``workflow-<Id[:8]>``
description             ``Content[:200]``, else ``"Workflow description"``
quality_score           0.5
success_rate            ``successRate``, else ``success`` as 1/0, else 0.5
average_execution_time  0
user_satisfaction       0.5
capabilities, tags      empty
is_public               ``public`` or ``discoverable`` tag present
usage_count             ``ai_access_count``, else 0
created_at              ``Timestamp``, else ``""``
======================  =============================================
"""

from __future__ import annotations

import logging
from typing import Any

from workflow_ecosystem.domain.values import (
    EnhancementPattern,
    PerformanceMetrics,
    WorkflowDescriptor,
)
from workflow_ecosystem.infrastructure.config import ReputationWeights
from workflow_ecosystem.infrastructure.relay import (
    PerformanceBlob,
    RawRecord,
    parse_enhancement_blob,
    parse_performance_blob,
    parse_record,
)
from workflow_ecosystem.services.scoring import DEFAULT_WEIGHTS, clamp, reputation_score

logger = logging.getLogger(__name__)

PUBLIC_TAGS = frozenset({"public", "discoverable"})

DEFAULT_DESCRIPTION = "Workflow description"
DEFAULT_PATTERN_DESCRIPTION = "Performance improvement pattern"
DEFAULT_IMPLEMENTATION_HINTS = (
    "Review current implementation for bottlenecks",
    "Apply optimization incrementally",
    "Monitor performance impact",
)
DEFAULT_VALIDATION_STEPS = (
    "Test with sample data",
    "Measure performance improvement",
    "Validate output quality",
)
_RISK_LEVELS = frozenset({"low", "medium", "high"})


def performance_metrics_from_blob(blob: PerformanceBlob | None) -> PerformanceMetrics:
    """Apply the metric defaults to a parsed (or missing) performance blob.

    Quality, success rate and satisfaction are clamped into [0, 1].
    """
    if blob is None:
        return PerformanceMetrics()
    if blob.successRate is not None:
        success_rate = clamp(blob.successRate)
    elif blob.success is not None:
        success_rate = 1.0 if blob.success else 0.0
    else:
        success_rate = 0.5
    return PerformanceMetrics(
        quality_score=clamp(blob.qualityScore) if blob.qualityScore is not None else 0.5,
        average_execution_time=max(0.0, blob.executionTime or 0.0),
        success_rate=success_rate,
        enhancement_count=max(0, blob.enhancementCount or 0),
        user_satisfaction_rating=(
            clamp(blob.userSatisfaction) if blob.userSatisfaction is not None else 0.5
        ),
    )


def extract_performance(record: Any) -> PerformanceMetrics:
    """Return the performance metrics advertised by *record*, with defaults."""
    raw = parse_record(record)
    return performance_metrics_from_blob(parse_performance_blob(raw.workflow_performance))


def to_descriptor(
    record: Any,
    hub_id: str,
    weights: ReputationWeights = DEFAULT_WEIGHTS,
) -> WorkflowDescriptor:
    """Convert a raw relay record into a ``WorkflowDescriptor``.

    Deterministic: the same record and hub always give the same descriptor,
    including ``reputation_score``.  Malformed fields fall back to the
    defaults in the module table.
    """
    raw: RawRecord = parse_record(record)
    metrics = performance_metrics_from_blob(parse_performance_blob(raw.workflow_performance))
    tags = frozenset(raw.ai_tag)

    return WorkflowDescriptor(
        workflow_id=raw.workflow_id or raw.Id,
        hub_id=hub_id,
        owner_address=raw.p or raw.From,
        name=raw.workflow_id or f"workflow-{raw.Id[:8]}",
        description=raw.Content[:200] if raw.Content else DEFAULT_DESCRIPTION,
        created_at=raw.Timestamp,
        capabilities=frozenset(raw.workflow_capability),
        requirements=frozenset(raw.workflow_requirement),
        tags=tags,
        performance_metrics=metrics,
        reputation_score=reputation_score(raw, metrics, weights),
        is_public=not PUBLIC_TAGS.isdisjoint(tags),
        usage_count=max(0, raw.ai_access_count),
        last_enhancement_date=raw.Timestamp if raw.advertises_enhancement else "",
    )


def parse_enhancement_pattern(
    record: Any,
    workflow_id: str,
    hub_id: str = "",
    index: int = 0,
) -> EnhancementPattern:
    """Extract the enhancement pattern advertised by *record*.

    Values come from the embedded enhancement blob first, then from the
    flat ``enhancement_*`` tags, then from the fixed defaults
    (``optimization``, impact 0.1, risk ``low``).
    """
    raw = parse_record(record)
    blob = parse_enhancement_blob(raw.workflow_enhancement)

    description = (blob.description if blob else None) or raw.Content or DEFAULT_PATTERN_DESCRIPTION
    impact = blob.impact if blob and blob.impact is not None else raw.enhancement_impact
    risk = ((blob.riskLevel if blob else None) or raw.enhancement_risk or "low").lower()
    if risk not in _RISK_LEVELS:
        logger.debug("Unknown risk level %r on %s, using 'low'", risk, raw.Id)
        risk = "low"
    hints = blob.implementationHints if blob and blob.implementationHints else None
    steps = blob.validationSteps if blob and blob.validationSteps else None

    return EnhancementPattern(
        pattern_id=f"pattern_{workflow_id}_{raw.Id or index}",
        source_workflow_id=workflow_id,
        source_hub_id=hub_id,
        type=(blob.type if blob else None) or raw.enhancement_type or "optimization",
        description=description,
        impact=clamp(impact) if impact is not None else 0.1,
        applicable_capabilities=tuple(raw.workflow_capability),
        risk_level=risk,
        implementation_hints=tuple(hints) if hints else DEFAULT_IMPLEMENTATION_HINTS,
        validation_steps=tuple(steps) if steps else DEFAULT_VALIDATION_STEPS,
    )
