"""Scoring formulas shared by the discovery and relationship services.

All functions here are pure: no I/O, no clock, no hidden state.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping

from workflow_ecosystem.domain.values import PerformanceMetrics
from workflow_ecosystem.infrastructure.config import (
    DEFAULT_CAPABILITY_MAP,
    ReputationWeights,
)
from workflow_ecosystem.infrastructure.relay import RawRecord

DEFAULT_WEIGHTS = ReputationWeights()

# Reputation of a record carrying no usable field.
DEFAULT_REPUTATION = 0.355


def clamp(value: float, lo: float = 0.0, hi: float = 1.0) -> float:
    """Clamp *value* into ``[lo, hi]``; non-finite values map to *lo*."""
    if value is None or not math.isfinite(value):
        return lo
    return max(lo, min(hi, value))


def reputation_score(
    record: RawRecord,
    metrics: PerformanceMetrics,
    weights: ReputationWeights = DEFAULT_WEIGHTS,
) -> float:
    """Weighted blend of quality, reliability, usage, enhancement and importance.

    Every input is clamped to [0, 1] before blending and the result is
    clamped again, so the score is in [0, 1] for any record.

    Parameters
    ----------
    record:
        The parsed relay record (usage, enhancement and importance inputs).
    metrics:
        Performance metrics already extracted from the record, with
        defaults applied.
    weights:
        Blend configuration.
    """
    quality = clamp(metrics.quality_score)
    reliability = clamp(metrics.success_rate)
    usage = clamp(record.ai_access_count / weights.usage_saturation)
    enhancement = clamp(
        weights.enhancement_present if record.advertises_enhancement else weights.enhancement_absent
    )
    importance = clamp(
        record.ai_importance if record.ai_importance is not None else weights.default_importance
    )
    score = (
        quality * weights.quality
        + reliability * weights.reliability
        + usage * weights.usage
        + enhancement * weights.enhancement
        + importance * weights.importance
    )
    return clamp(score)


def calculate_overlap(a: Iterable[str], b: Iterable[str]) -> float:
    """Share of the larger set that the two sets have in common.

    ``|a & b| / max(|a|, |b|)``; two empty sets overlap 0.
    """
    set_a, set_b = set(a), set(b)
    largest = max(len(set_a), len(set_b))
    if largest == 0:
        return 0.0
    return len(set_a & set_b) / largest


def classify_capability(
    text: str,
    mapping: Mapping[str, str] = DEFAULT_CAPABILITY_MAP,
    default: str = "data-processing",
) -> str:
    """Resolve free text to one coarse capability bucket.

    The first keyword of *mapping* (in insertion order) contained in the
    lowercased text wins; *default* if none matches.
    """
    lowered = text.lower()
    for keyword, bucket in mapping.items():
        if keyword in lowered:
            return bucket
    return default
