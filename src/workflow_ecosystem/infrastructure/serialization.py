"""Serialization utilities for the workflow ecosystem.

``to_plain`` turns any domain value object (or nesting of them) into
JSON-ready data: enums become their values, sets become sorted lists, tuples
become lists.  The ``*_from_dict`` reconstructors build the input value
objects the API facade accepts; they read both ``snake_case`` and
``camelCase`` keys and raise ``ValueError`` for unrecoverable data.

JSON is always available; YAML support is optional (graceful fallback if
``pyyaml`` is not installed).
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import fields, is_dataclass, replace
from enum import Enum
from typing import Any

from workflow_ecosystem.domain.enums import (
    EnhancementType,
    RiskLevel,
)
from workflow_ecosystem.domain.values import (
    DiscoveryFilters,
    Enhancement,
    PerformanceSample,
    ResourceMetrics,
    TestResult,
    ValidationResult,
    WorkflowStep,
)

# --------------------------------------------------------------------------- #
#  Optional YAML support                                                       #
# --------------------------------------------------------------------------- #

try:
    import yaml as _yaml  # type: ignore[import-untyped]

    _HAS_YAML = True
except ImportError:  # pragma: no cover
    _yaml = None  # type: ignore[assignment]
    _HAS_YAML = False


# =========================================================================== #
#  Generic helpers                                                             #
# =========================================================================== #

def to_plain(obj: Any) -> Any:
    """Recursively convert *obj* into JSON-serializable data."""
    if isinstance(obj, Enum):
        return obj.value
    if is_dataclass(obj) and not isinstance(obj, type):
        return {f.name: to_plain(getattr(obj, f.name)) for f in fields(obj)}
    if isinstance(obj, Mapping):
        return {str(to_plain(k)): to_plain(v) for k, v in obj.items()}
    if isinstance(obj, (set, frozenset)):
        return sorted(to_plain(v) for v in obj)
    if isinstance(obj, (list, tuple)):
        return [to_plain(v) for v in obj]
    return obj


def _pick(data: Mapping[str, Any], snake: str, camel: str | None = None, default: Any = None) -> Any:
    """Return ``data[snake]`` or ``data[camel]``, else *default*."""
    if snake in data and data[snake] is not None:
        return data[snake]
    if camel is not None and camel in data and data[camel] is not None:
        return data[camel]
    return default


def _require_mapping(data: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise ValueError(f"{what} must be an object, got {type(data).__name__}")
    return data


def _float(value: Any, name: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{name} must be a number, got {value!r}") from exc


def _optional_float(value: Any, name: str) -> float | None:
    return None if value is None else _float(value, name)


# =========================================================================== #
#  Input value objects                                                         #
# =========================================================================== #

def resource_metrics_from_dict(data: Mapping[str, Any] | None) -> ResourceMetrics:
    if not data:
        return ResourceMetrics()
    data = _require_mapping(data, "resource_usage")
    return ResourceMetrics(
        memory_usage=_float(_pick(data, "memory_usage", "memoryUsage", 0.0), "memory_usage"),
        cpu_time=_float(_pick(data, "cpu_time", "cpuTime", 0.0), "cpu_time"),
        network_requests=_float(
            _pick(data, "network_requests", "networkRequests", 0.0), "network_requests"
        ),
        storage_operations=_float(
            _pick(data, "storage_operations", "storageOperations", 0.0), "storage_operations"
        ),
        tool_calls=_float(_pick(data, "tool_calls", "toolCalls", 0.0), "tool_calls"),
    )


def performance_sample_from_dict(data: Mapping[str, Any]) -> PerformanceSample:
    data = _require_mapping(data, "sample")
    execution_time = _pick(data, "execution_time", "executionTime")
    if execution_time is None:
        raise ValueError("sample requires execution_time")
    return PerformanceSample(
        execution_time=_float(execution_time, "execution_time"),
        success=bool(_pick(data, "success", default=True)),
        error_rate=_float(_pick(data, "error_rate", "errorRate", 0.0), "error_rate"),
        quality_score=_float(_pick(data, "quality_score", "qualityScore", 1.0), "quality_score"),
        completion_rate=_float(
            _pick(data, "completion_rate", "completionRate", 1.0), "completion_rate"
        ),
        retry_count=_float(_pick(data, "retry_count", "retryCount", 0), "retry_count"),
        resource_usage=resource_metrics_from_dict(_pick(data, "resource_usage", "resourceUsage")),
        user_satisfaction=_optional_float(
            _pick(data, "user_satisfaction", "userSatisfaction"), "user_satisfaction"
        ),
        timestamp=_float(_pick(data, "timestamp", default=0.0), "timestamp"),
    )


def parse_test_result(data: Mapping[str, Any]) -> TestResult:
    data = _require_mapping(data, "test result")
    return TestResult(
        test_name=str(_pick(data, "test_name", "testName", "")),
        passed=bool(_pick(data, "passed", default=False)),
        score=_optional_float(_pick(data, "score"), "score"),
        details=str(_pick(data, "details", default="")),
        execution_time=_optional_float(
            _pick(data, "execution_time", "executionTime"), "execution_time"
        ),
    )


def validation_result_from_dict(data: Mapping[str, Any] | None) -> ValidationResult:
    if not data:
        return ValidationResult()
    data = _require_mapping(data, "validation")
    return ValidationResult(
        is_valid=bool(_pick(data, "is_valid", "isValid", False)),
        confidence=_float(_pick(data, "confidence", default=0.0), "confidence"),
        risk_assessment=RiskLevel(
            _pick(data, "risk_assessment", "riskAssessment", RiskLevel.MEDIUM.value)
        ),
        test_results=tuple(
            parse_test_result(t) for t in _pick(data, "test_results", "testResults", [])
        ),
        validated_at=_float(_pick(data, "validated_at", "validatedAt", 0.0), "validated_at"),
        approved_by=str(_pick(data, "approved_by", "approvedBy", "")),
    )


def enhancement_from_dict(data: Mapping[str, Any]) -> Enhancement:
    """Build an ``Enhancement``.

    A top-level ``risk`` key is shorthand for ``validation.risk_assessment``.
    """
    data = _require_mapping(data, "enhancement")
    validation = validation_result_from_dict(_pick(data, "validation"))
    risk = _pick(data, "risk")
    if risk is not None:
        validation = replace(validation, risk_assessment=RiskLevel(risk))
    kwargs: dict[str, Any] = {
        "description": str(_pick(data, "description", default="")),
        "type": EnhancementType(_pick(data, "type", default=EnhancementType.OPTIMIZATION.value)),
        "impact": _float(_pick(data, "impact", default=0.0), "impact"),
        "validation": validation,
        "actual_impact": _optional_float(
            _pick(data, "actual_impact", "actualImpact"), "actual_impact"
        ),
        "parameters": dict(_pick(data, "parameters", default={})),
    }
    enhancement_id = _pick(data, "id")
    if enhancement_id is not None:
        kwargs["id"] = str(enhancement_id)
    return Enhancement(**kwargs)


def discovery_filters_from_dict(data: Mapping[str, Any] | None) -> DiscoveryFilters:
    if not data:
        return DiscoveryFilters()
    data = _require_mapping(data, "filters")
    return DiscoveryFilters(
        capabilities=tuple(str(c) for c in _pick(data, "capabilities", default=())),
        requirements=tuple(str(r) for r in _pick(data, "requirements", default=())),
        tags=tuple(str(t) for t in _pick(data, "tags", default=())),
        min_reputation_score=_optional_float(
            _pick(data, "min_reputation_score", "minReputationScore"), "min_reputation_score"
        ),
        min_performance_score=_optional_float(
            _pick(data, "min_performance_score", "minPerformanceScore"), "min_performance_score"
        ),
        only_open_source=bool(_pick(data, "only_open_source", "onlyOpenSource", False)),
        max_response_time=_optional_float(
            _pick(data, "max_response_time", "maxResponseTime"), "max_response_time"
        ),
    )


def workflow_step_from_dict(data: Mapping[str, Any], order: int = 0) -> WorkflowStep:
    data = _require_mapping(data, "step")
    workflow_id = _pick(data, "workflow_id", "workflowId")
    if not workflow_id:
        raise ValueError("step requires workflow_id")
    return WorkflowStep(
        workflow_id=str(workflow_id),
        order=int(_pick(data, "order", default=order)),
        condition=_pick(data, "condition"),
        timeout=_optional_float(_pick(data, "timeout"), "timeout"),
        input_mapping=dict(_pick(data, "input_mapping", "inputMapping", {})),
        output_mapping=dict(_pick(data, "output_mapping", "outputMapping", {})),
    )


_DESERIALIZERS: dict[type, Any] = {
    PerformanceSample: performance_sample_from_dict,
    Enhancement: enhancement_from_dict,
    TestResult: parse_test_result,
    ValidationResult: validation_result_from_dict,
    DiscoveryFilters: discovery_filters_from_dict,
    WorkflowStep: workflow_step_from_dict,
    ResourceMetrics: resource_metrics_from_dict,
}


def deserialize(data: Mapping[str, Any], target_type: type) -> Any:
    """Deserialize a mapping into *target_type*."""
    from_fn = _DESERIALIZERS.get(target_type)
    if from_fn is not None:
        return from_fn(data)
    if hasattr(target_type, "from_dict"):
        return target_type.from_dict(dict(data))
    raise TypeError(f"No deserializer registered for {target_type.__name__}")


# =========================================================================== #
#  JSON helpers                                                                #
# =========================================================================== #

def to_json(obj: Any, *, indent: int | None = 2) -> str:
    """Serialize a value object (or nesting of them) to a JSON string."""
    return json.dumps(to_plain(obj), indent=indent, default=str)


def from_json(json_str: str, target_type: type) -> Any:
    """Deserialize a JSON string into *target_type*."""
    return deserialize(json.loads(json_str), target_type)


# =========================================================================== #
#  YAML helpers (optional)                                                     #
# =========================================================================== #

def to_yaml(obj: Any) -> str:
    """Serialize a value object to a YAML string.

    Raises ``RuntimeError`` if PyYAML is not installed.
    """
    if not _HAS_YAML:
        raise RuntimeError(
            "PyYAML is not installed. Install it with: pip install pyyaml"
        )
    return _yaml.dump(to_plain(obj), default_flow_style=False, sort_keys=False)


def from_yaml(yaml_str: str, target_type: type) -> Any:
    """Deserialize a YAML string into *target_type*.

    Raises ``RuntimeError`` if PyYAML is not installed.
    """
    if not _HAS_YAML:
        raise RuntimeError(
            "PyYAML is not installed. Install it with: pip install pyyaml"
        )
    return deserialize(_yaml.safe_load(yaml_str), target_type)


def yaml_available() -> bool:
    """Return ``True`` if PyYAML is importable."""
    return _HAS_YAML
