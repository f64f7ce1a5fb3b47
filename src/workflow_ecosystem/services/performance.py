"""Performance tracking and enhancement identification.

``PerformanceTracker`` owns, per workflow id:

- a bounded ring of ``PerformanceSample`` (oldest evicted first),
- an optional baseline sample for improvement comparisons,
- a bounded history of enhancements whose real impact was measured.

From these it derives rolling statistics, OLS trends per metric, heuristic
enhancement proposals, prioritized recommendations and a health score.
Unknown workflow ids are never an error; they yield empty statistics.

Mutations are serialized per workflow id.  Reads copy the ring under the
same lock and compute on the copy.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from collections.abc import Callable, Sequence
from dataclasses import replace
from typing import Any

from workflow_ecosystem.domain.enums import (
    EnhancementType,
    Priority,
    RiskLevel,
    TrendDirection,
)
from workflow_ecosystem.domain.events import (
    BaselineSet,
    DomainEvent,
    EnhancementTracked,
    PerformanceRecorded,
)
from workflow_ecosystem.domain.values import (
    Enhancement,
    OptimizationRecommendations,
    PerformanceAnalysis,
    PerformanceSample,
    PerformanceStats,
    PerformanceTrend,
    ResourceMetrics,
    TestResult,
    ValidationResult,
)
from workflow_ecosystem.infrastructure.config import TrackerConfig
from workflow_ecosystem.infrastructure.locks import KeyedLock
from workflow_ecosystem.measurement.regression import classify_slope, fit_trend

logger = logging.getLogger(__name__)

# (metric name, sample attribute, lower is better)
TRACKED_METRICS: tuple[tuple[str, str, bool], ...] = (
    ("execution_time", "execution_time", True),
    ("error_rate", "error_rate", True),
    ("quality_score", "quality_score", False),
    ("completion_rate", "completion_rate", False),
)


# ===================================================================== #
#  Pure helpers                                                          #
# ===================================================================== #

def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def metric_improvement(baseline: float, current: float, lower_is_better: bool) -> float:
    """Signed relative improvement of *current* over *baseline*, capped to ±1.

    A zero baseline gives 0.
    """
    if baseline == 0:
        return 0.0
    if lower_is_better:
        change = (baseline - current) / baseline
    else:
        change = (current - baseline) / baseline
    return max(-1.0, min(1.0, change))


def sample_improvement(baseline: PerformanceSample, current: PerformanceSample) -> float:
    """Mean of the four tracked metric improvements."""
    improvements = [
        metric_improvement(getattr(baseline, attr), getattr(current, attr), lower)
        for _name, attr, lower in TRACKED_METRICS
    ]
    return _mean(improvements)


def average_sample(samples: Sequence[PerformanceSample]) -> PerformanceSample | None:
    """Field-wise arithmetic mean of *samples*.

    ``success`` is true when more than half of the samples succeeded;
    ``user_satisfaction`` averages only the samples that carry one.
    """
    if not samples:
        return None
    satisfaction = [s.user_satisfaction for s in samples if s.user_satisfaction is not None]
    return PerformanceSample(
        execution_time=_mean([s.execution_time for s in samples]),
        success=sum(1 for s in samples if s.success) / len(samples) > 0.5,
        error_rate=_mean([s.error_rate for s in samples]),
        quality_score=_mean([s.quality_score for s in samples]),
        completion_rate=_mean([s.completion_rate for s in samples]),
        retry_count=_mean([s.retry_count for s in samples]),
        resource_usage=ResourceMetrics(
            memory_usage=_mean([s.resource_usage.memory_usage for s in samples]),
            cpu_time=_mean([s.resource_usage.cpu_time for s in samples]),
            network_requests=_mean([s.resource_usage.network_requests for s in samples]),
            storage_operations=_mean([s.resource_usage.storage_operations for s in samples]),
            tool_calls=_mean([s.resource_usage.tool_calls for s in samples]),
        ),
        user_satisfaction=_mean(satisfaction) if satisfaction else None,
        timestamp=samples[-1].timestamp,
    )


def validation_confidence(test_results: Sequence[TestResult]) -> float:
    """Mean of the pass rate and the mean test score.

    The pass rate stands in for the score when no test reports one; no
    tests at all gives 0.
    """
    if not test_results:
        return 0.0
    pass_rate = sum(1 for t in test_results if t.passed) / len(test_results)
    scores = [t.score for t in test_results if t.score is not None]
    avg_score = _mean(scores) if scores else pass_rate
    return (pass_rate + avg_score) / 2


def assess_enhancement_risk(enhancement: Enhancement) -> RiskLevel:
    """Risk of applying *enhancement*, from its type and predicted impact."""
    if enhancement.type is EnhancementType.BUG_FIX and enhancement.impact < 0.3:
        return RiskLevel.LOW
    if enhancement.type is EnhancementType.PARAMETER_TUNE and enhancement.impact < 0.2:
        return RiskLevel.LOW
    if enhancement.type is EnhancementType.REFACTOR or enhancement.impact > 0.5:
        return RiskLevel.HIGH
    return RiskLevel.MEDIUM


def _health_label(score: float) -> str:
    if score > 0.8:
        return "excellent"
    if score > 0.6:
        return "good"
    if score > 0.4:
        return "fair"
    return "poor"


def _improvement_label(improvement: float) -> str:
    if improvement > 0.1:
        return "improving"
    if improvement < -0.1:
        return "declining"
    return "stable"


# ===================================================================== #
#  Tracker                                                               #
# ===================================================================== #

class PerformanceTracker:
    """Per-workflow performance history and analysis.

    Parameters
    ----------
    config:
        Ring sizes and heuristic thresholds.
    event_bus:
        Optional ``EventBus`` receiving ``PerformanceRecorded``,
        ``BaselineSet`` and ``EnhancementTracked`` events.
    clock:
        Zero-argument callable returning the current time in seconds; used
        to stamp samples recorded without a timestamp and validations.
    """

    def __init__(
        self,
        config: TrackerConfig | None = None,
        event_bus: Any = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self._config = config or TrackerConfig()
        self._config.validate()
        self._event_bus = event_bus
        self._clock = clock or time.time
        self._history: dict[str, deque[PerformanceSample]] = {}
        self._baselines: dict[str, PerformanceSample] = {}
        self._enhancements: dict[str, deque[Enhancement]] = {}
        self._registry_lock = threading.Lock()
        self._locks = KeyedLock()

    @property
    def config(self) -> TrackerConfig:
        return self._config

    # -- recording ------------------------------------------------------------

    def record(self, workflow_id: str, sample: PerformanceSample) -> None:
        """Append *sample* to the workflow's ring.

        Values are stored as given.  A sample without a timestamp is stamped
        with the tracker clock.
        """
        if not sample.timestamp:
            sample = replace(sample, timestamp=self._clock())
        with self._locks(workflow_id):
            ring = self._ring(workflow_id)
            ring.append(sample)
            size = len(ring)
        logger.debug("Recorded sample for %s (history=%d)", workflow_id, size)
        self._publish(PerformanceRecorded(source_id=workflow_id, sample=sample, history_size=size))

    def set_baseline(self, workflow_id: str, sample: PerformanceSample) -> None:
        """Set the sample that ``improvement_vs_baseline`` compares against."""
        with self._locks(workflow_id):
            self._baselines[workflow_id] = sample
        self._publish(BaselineSet(source_id=workflow_id, baseline=sample))

    def track_enhancement_impact(
        self,
        workflow_id: str,
        enhancement: Enhancement,
        before: PerformanceSample,
        after: PerformanceSample,
    ) -> Enhancement:
        """Attach the measured impact of an applied enhancement and keep it.

        The actual impact is the mean signed improvement of *after* over
        *before* across the tracked metrics.  Returns the new enhancement.
        """
        tracked = enhancement.with_actual_impact(sample_improvement(before, after))
        with self._locks(workflow_id):
            with self._registry_lock:
                history = self._enhancements.get(workflow_id)
                if history is None:
                    history = deque(maxlen=self._config.max_enhancements)
                    self._enhancements[workflow_id] = history
            history.append(tracked)
        logger.info(
            "Enhancement %s on %s: predicted %.2f, actual %.2f",
            tracked.id, workflow_id, tracked.impact, tracked.actual_impact,
        )
        self._publish(
            EnhancementTracked(
                source_id=workflow_id,
                enhancement=tracked,
                actual_impact=tracked.actual_impact or 0.0,
            )
        )
        return tracked

    # -- queries --------------------------------------------------------------

    def workflow_ids(self) -> list[str]:
        """Ids of all workflows with at least one recorded sample."""
        with self._registry_lock:
            return list(self._history)

    def history(self, workflow_id: str) -> list[PerformanceSample]:
        """Retained samples, oldest first."""
        with self._locks(workflow_id):
            ring = self._history.get(workflow_id)
            return list(ring) if ring is not None else []

    def get_enhancement_history(self, workflow_id: str) -> list[Enhancement]:
        """Enhancements tracked for *workflow_id*, oldest first."""
        with self._locks(workflow_id):
            history = self._enhancements.get(workflow_id)
            return list(history) if history is not None else []

    def stats(self, workflow_id: str) -> PerformanceStats:
        """Current sample, averages, trends and improvement vs baseline."""
        with self._locks(workflow_id):
            ring = self._history.get(workflow_id)
            samples = list(ring) if ring is not None else []
            baseline = self._baselines.get(workflow_id)
        if not samples:
            return PerformanceStats()
        current = samples[-1]
        return PerformanceStats(
            current=current,
            average=average_sample(samples),
            trend=tuple(self._trends(samples)),
            improvement_vs_baseline=(
                sample_improvement(baseline, current) if baseline is not None else 0.0
            ),
        )

    def trends(
        self,
        workflow_id: str,
        since: float | None = None,
        time_window: str = "24h",
    ) -> list[PerformanceTrend]:
        """Trends over the samples stamped at or after *since*.

        *time_window* only labels the returned trends.
        """
        samples = self.history(workflow_id)
        if since is not None:
            samples = [s for s in samples if s.timestamp >= since]
        return self._trends(samples, time_window)

    def identify_enhancements(self, workflow_id: str) -> list[Enhancement]:
        """Propose enhancements from the most recent samples.

        Requires ``min_samples`` samples; inspects the last
        ``analysis_window``.  Every rule is independent.
        """
        cfg = self._config
        samples = self.history(workflow_id)
        if len(samples) < cfg.min_samples:
            return []
        recent = samples[-cfg.analysis_window:]
        enhancements: list[Enhancement] = []

        if self._execution_degraded(recent):
            enhancements.append(Enhancement(
                description="Performance optimization needed - execution time increasing",
                type=EnhancementType.OPTIMIZATION,
                impact=0.3,
            ))

        if _mean([s.error_rate for s in recent]) > cfg.error_rate_threshold:
            enhancements.append(Enhancement(
                description="Error handling improvement - high error rate detected",
                type=EnhancementType.ERROR_HANDLING,
                impact=0.4,
            ))

        avg_memory = _mean([s.resource_usage.memory_usage for s in recent])
        avg_cpu = _mean([s.resource_usage.cpu_time for s in recent])
        if avg_memory > cfg.memory_threshold or avg_cpu > cfg.cpu_threshold:
            enhancements.append(Enhancement(
                description="Resource optimization - high memory/CPU usage",
                type=EnhancementType.OPTIMIZATION,
                impact=0.25,
            ))

        if _mean([s.quality_score for s in recent]) < cfg.quality_threshold:
            enhancements.append(Enhancement(
                description="Quality improvement - output quality below threshold",
                type=EnhancementType.FEATURE_ADD,
                impact=0.35,
            ))

        satisfaction = [s.user_satisfaction for s in recent if s.user_satisfaction is not None]
        if satisfaction and _mean(satisfaction) < cfg.satisfaction_threshold:
            enhancements.append(Enhancement(
                description="User experience improvement - low satisfaction scores",
                type=EnhancementType.USER_EXPERIENCE,
                impact=0.4,
            ))

        return enhancements

    def generate_optimization_recommendations(
        self, workflow_id: str
    ) -> OptimizationRecommendations:
        """Merge confident declining trends with the proposed enhancements."""
        stats = self.stats(workflow_id)
        enhancements = self.identify_enhancements(workflow_id)
        recommendations: list[str] = []
        total_impact = 0.0
        priority = Priority.LOW

        for trend in stats.trend:
            if (
                trend.direction is TrendDirection.DECLINING
                and trend.confidence > self._config.confident_trend
            ):
                recommendations.append(f"{trend.metric} is declining - investigate and optimize")
                total_impact += 0.2
                priority = Priority.HIGH

        for enhancement in enhancements:
            recommendations.append(enhancement.description)
            total_impact += enhancement.impact
            if enhancement.impact > 0.3:
                priority = Priority.MEDIUM if priority is Priority.LOW else Priority.HIGH

        return OptimizationRecommendations(
            recommendations=tuple(recommendations),
            priority=priority,
            estimated_impact=min(total_impact, 1.0),
        )

    def validate_enhancement(
        self,
        enhancement: Enhancement,
        test_results: Sequence[TestResult],
    ) -> ValidationResult:
        """Judge *enhancement* against its test results.

        Valid iff every test passed and the confidence exceeds
        ``validation_confidence``.  No tests means confidence 0, invalid.
        """
        confidence = validation_confidence(test_results)
        return ValidationResult(
            is_valid=bool(test_results)
            and all(t.passed for t in test_results)
            and confidence > self._config.validation_confidence,
            confidence=confidence,
            risk_assessment=assess_enhancement_risk(enhancement),
            test_results=tuple(test_results),
            validated_at=self._clock(),
        )

    def health_score(self, workflow_id: str) -> float:
        """Health of the most recent execution in [0, 1]; 0 without data."""
        current = self.stats(workflow_id).current
        if current is None:
            return 0.0
        scores = [
            1.0 if current.success else 0.0,
            max(0.0, 1.0 - current.error_rate),
            current.quality_score,
            current.completion_rate,
            current.user_satisfaction if current.user_satisfaction is not None else 0.5,
        ]
        return _mean(scores)

    def get_performance_analysis(self, workflow_id: str) -> PerformanceAnalysis:
        """Everything above, bundled, with a one-line summary."""
        stats = self.stats(workflow_id)
        recommendations = self.generate_optimization_recommendations(workflow_id)
        health = self.health_score(workflow_id)
        if stats.current is None:
            summary = "No performance data available"
        else:
            summary = (
                f"Workflow health: {_health_label(health)} ({health * 100:.1f}%). "
                f"Performance trend: {_improvement_label(stats.improvement_vs_baseline)}. "
                f"Optimization priority: {recommendations.priority.value}."
            )
        return PerformanceAnalysis(
            workflow_id=workflow_id,
            metrics=stats.current,
            health_score=health,
            summary=summary,
            trends=stats.trend,
            enhancements=tuple(self.identify_enhancements(workflow_id)),
            recommendations=recommendations.recommendations,
        )

    # -- internals ------------------------------------------------------------

    def _ring(self, workflow_id: str) -> deque[PerformanceSample]:
        with self._registry_lock:
            ring = self._history.get(workflow_id)
            if ring is None:
                ring = deque(maxlen=self._config.max_samples)
                self._history[workflow_id] = ring
            return ring

    def _trends(
        self, samples: list[PerformanceSample], time_window: str = "24h"
    ) -> list[PerformanceTrend]:
        cfg = self._config
        if len(samples) < cfg.min_samples:
            return []
        trends: list[PerformanceTrend] = []
        for name, attr, lower_is_better in TRACKED_METRICS:
            values = [float(getattr(s, attr)) for s in samples]
            fit = fit_trend(values)
            trends.append(PerformanceTrend(
                metric=name,
                direction=classify_slope(fit.slope, cfg.stable_slope, lower_is_better),
                confidence=fit.r_squared,
                slope=fit.slope,
                time_window=time_window,
                values=tuple(
                    (s.timestamp, v)
                    for s, v in zip(samples[-cfg.trend_points:], values[-cfg.trend_points:])
                ),
            ))
        return trends

    def _execution_degraded(self, recent: list[PerformanceSample]) -> bool:
        if len(recent) < self._config.min_samples:
            return False
        half = len(recent) // 2
        first = _mean([s.execution_time for s in recent[:half]])
        second = _mean([s.execution_time for s in recent[half:]])
        if first <= 0:
            return False
        return (second - first) / first > self._config.execution_degradation

    def _publish(self, event: DomainEvent) -> None:
        if self._event_bus is not None:
            self._event_bus.publish(event)
