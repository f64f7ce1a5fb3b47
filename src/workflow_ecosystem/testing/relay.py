"""In-memory relays and record builders for tests and examples.

``InMemoryRelay`` evaluates ``RelayFilter`` the way the real relay does:
the record kind must be listed, and for every tag constraint the record
must carry at least one of the listed values (scalar or list field).
"""

from __future__ import annotations

import json
import threading
import time
from collections.abc import Iterable, Mapping
from typing import Any

from workflow_ecosystem.infrastructure.relay import MEMORY_KIND, Relay, RelayFilter


def _values(field: Any) -> set[str]:
    if field is None:
        return set()
    if isinstance(field, (list, tuple, set, frozenset)):
        return {str(v) for v in field}
    return {str(field)}


def record_matches(record: Mapping[str, Any], relay_filter: RelayFilter) -> bool:
    """True if *record* satisfies every constraint of *relay_filter*."""
    kind = str(record.get("Kind", MEMORY_KIND))
    if relay_filter.kinds and kind not in relay_filter.kinds:
        return False
    for name, wanted in relay_filter.tags.items():
        if wanted and _values(record.get(name)).isdisjoint(wanted):
            return False
    return True


class InMemoryRelay(Relay):
    """Relay keeping records per hub in insertion order.

    Every query is recorded in ``queries`` as ``(hub_id, filter)`` so tests
    can assert on what was asked and how often.
    """

    def __init__(self, records: Mapping[str, Iterable[Mapping[str, Any]]] | None = None) -> None:
        self._lock = threading.Lock()
        self._records: dict[str, list[dict[str, Any]]] = {}
        self.queries: list[tuple[str, RelayFilter]] = []
        self.published: list[tuple[str, dict[str, Any], Any]] = []
        for hub_id, hub_records in (records or {}).items():
            for record in hub_records:
                self.add(hub_id, record)

    def add(self, hub_id: str, record: Mapping[str, Any]) -> None:
        with self._lock:
            self._records.setdefault(hub_id, []).append(dict(record))

    def query(self, hub_id: str, relay_filter: RelayFilter) -> list[dict[str, Any]]:
        with self._lock:
            self.queries.append((hub_id, relay_filter))
            matching = [
                dict(r) for r in self._records.get(hub_id, []) if record_matches(r, relay_filter)
            ]
        if relay_filter.limit is not None:
            matching = matching[: relay_filter.limit]
        return matching

    def publish(self, tags: Mapping[str, Any], signer: Any, hub_id: str) -> Any:
        record = dict(tags)
        with self._lock:
            record.setdefault("Id", f"record-{len(self.published) + 1}")
            self.published.append((hub_id, record, signer))
            self._records.setdefault(hub_id, []).append(record)
        return {"id": record["Id"]}


class FailingRelay(Relay):
    """Relay whose every call raises *error*."""

    def __init__(self, error: Exception | None = None) -> None:
        self.error = error or ConnectionError("relay unavailable")
        self.calls = 0

    def query(self, hub_id: str, relay_filter: RelayFilter) -> list[dict[str, Any]]:
        self.calls += 1
        raise self.error

    def publish(self, tags: Mapping[str, Any], signer: Any, hub_id: str) -> Any:
        self.calls += 1
        raise self.error


class SlowRelay(InMemoryRelay):
    """``InMemoryRelay`` that sleeps *delay* seconds before answering a query."""

    def __init__(self, delay: float, records: Mapping[str, Iterable[Mapping[str, Any]]] | None = None) -> None:
        super().__init__(records)
        self.delay = delay

    def query(self, hub_id: str, relay_filter: RelayFilter) -> list[dict[str, Any]]:
        time.sleep(self.delay)
        return super().query(hub_id, relay_filter)


def make_workflow_record(
    workflow_id: str,
    capabilities: Iterable[str] = (),
    requirements: Iterable[str] = (),
    *,
    quality: float | None = None,
    success: bool | None = None,
    success_rate: float | None = None,
    execution_time: float | None = None,
    access_count: int | None = None,
    importance: float | None = None,
    tags: Iterable[str] = ("public", "discoverable"),
    content: str = "",
    owner: str = "owner-address",
    timestamp: str = "1700000000000",
    enhancement: Mapping[str, Any] | None = None,
    record_id: str | None = None,
) -> dict[str, Any]:
    """Build a raw workflow record as the relay would return it.

    Optional fields left as ``None`` are omitted, so the documented defaults
    apply when the record is converted.
    """
    record: dict[str, Any] = {
        "Id": record_id or f"{workflow_id}-record-0001",
        "Kind": MEMORY_KIND,
        "Content": content,
        "Timestamp": timestamp,
        "p": owner,
        "ai_type": "workflow",
        "ai_tag": list(tags),
        "workflow_id": workflow_id,
        "workflow_capability": list(capabilities),
        "workflow_requirement": list(requirements),
    }
    performance = {
        key: value
        for key, value in (
            ("qualityScore", quality),
            ("success", success),
            ("successRate", success_rate),
            ("executionTime", execution_time),
        )
        if value is not None
    }
    if performance:
        record["workflow_performance"] = json.dumps(performance)
    if access_count is not None:
        record["ai_access_count"] = str(access_count)
    if importance is not None:
        record["ai_importance"] = str(importance)
    if enhancement is not None:
        record["workflow_enhancement"] = json.dumps(dict(enhancement))
    return record


def make_enhancement_record(
    workflow_id: str,
    *,
    enhancement: Mapping[str, Any] | str | None = None,
    capabilities: Iterable[str] = (),
    content: str = "",
    record_id: str | None = None,
    **flat_tags: Any,
) -> dict[str, Any]:
    """Build a raw shareable enhancement record.

    *enhancement* may be a mapping (encoded as JSON) or a raw string, which
    lets tests exercise malformed blobs.  Extra keyword arguments become
    flat tags such as ``enhancement_impact``.
    """
    record: dict[str, Any] = {
        "Id": record_id or f"{workflow_id}-enh-0001",
        "Kind": MEMORY_KIND,
        "Content": content,
        "ai_type": "enhancement",
        "ai_tag": ["public", "shareable"],
        "workflow_id": workflow_id,
        "workflow_capability": list(capabilities),
    }
    if isinstance(enhancement, Mapping):
        record["workflow_enhancement"] = json.dumps(dict(enhancement))
    elif enhancement is not None:
        record["workflow_enhancement"] = enhancement
    record.update(flat_tags)
    return record
