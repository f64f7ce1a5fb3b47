"""Boundary with the external relay.

The relay durably stores and replicates workflow records.  This module only
defines the contract the rest of the package depends on:

- ``Relay``: abstract ``query`` / ``publish`` primitives.
- ``RelayFilter``: the query filter (kinds, tag constraints, limit).
- ``RawRecord``: a permissive pydantic model of the flat string-keyed
  records the relay returns.  Scalar-or-list fields become lists and
  stringified numbers become numbers; anything unparseable becomes ``None``
  so that callers can apply their documented defaults.
- ``PerformanceBlob`` / ``EnhancementBlob``: the JSON documents embedded in
  ``workflow_performance`` and ``workflow_enhancement``.
- ``query_with_timeout``: run a relay query with a caller-supplied timeout.
"""

from __future__ import annotations

import concurrent.futures
import json
import logging
import math
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from workflow_ecosystem.domain.exceptions import RelayError

logger = logging.getLogger(__name__)

# Event kind of AI memory records, the only kind workflows are stored as.
MEMORY_KIND = "10"


# ===================================================================== #
#  Relay contract                                                        #
# ===================================================================== #

@dataclass(frozen=True)
class RelayFilter:
    """Query filter understood by the relay.

    A record matches when its kind is in ``kinds`` and, for every tag name
    in ``tags``, the record carries at least one of the listed values.
    """

    kinds: tuple[str, ...] = (MEMORY_KIND,)
    tags: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    limit: int | None = None

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON-ready wire form of the filter."""
        data: dict[str, Any] = {
            "kinds": list(self.kinds),
            "tags": {name: list(values) for name, values in self.tags.items()},
        }
        if self.limit is not None:
            data["limit"] = self.limit
        return data


class Relay(ABC):
    """Abstract record store shared by the hubs.

    Implementations must return an empty list (not raise) when nothing
    matches, and must tolerate records with missing optional fields.
    """

    @abstractmethod
    def query(self, hub_id: str, relay_filter: RelayFilter) -> list[dict[str, Any]]:
        """Return the raw records on *hub_id* matching *relay_filter*."""

    @abstractmethod
    def publish(self, tags: Mapping[str, Any], signer: Any, hub_id: str) -> Any:
        """Write a new record carrying *tags* to *hub_id*; return an ack."""


def query_with_timeout(
    relay: Relay,
    hub_id: str,
    relay_filter: RelayFilter,
    timeout: float | None = None,
) -> list[dict[str, Any]]:
    """Run ``relay.query`` and return its records.

    Raises ``RelayError`` if the query raises or exceeds *timeout* seconds.
    A slow query is abandoned, not cancelled: its worker thread finishes in
    the background.
    """
    try:
        if timeout is None:
            records = relay.query(hub_id, relay_filter)
        else:
            pool = concurrent.futures.ThreadPoolExecutor(max_workers=1)
            try:
                future = pool.submit(relay.query, hub_id, relay_filter)
                records = future.result(timeout=timeout)
            finally:
                pool.shutdown(wait=False)
    except concurrent.futures.TimeoutError as exc:
        raise RelayError(
            f"Relay query timed out after {timeout}s",
            hub_id=hub_id,
            operation="query",
        ) from exc
    except RelayError:
        raise
    except Exception as exc:
        raise RelayError(
            f"Relay query failed: {exc}", hub_id=hub_id, operation="query"
        ) from exc
    return list(records or [])


# ===================================================================== #
#  Raw record model                                                      #
# ===================================================================== #

def _as_list(value: Any) -> list[str]:
    if value is None or value == "":
        return []
    if isinstance(value, (list, tuple, set, frozenset)):
        return [str(v) for v in value if v is not None and v != ""]
    return [str(value)]


def _as_float(value: Any) -> float | None:
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _as_str(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


class RawRecord(BaseModel):
    """Typed but permissive view of a relay record.

    Unknown keys are kept (``extra="allow"``) and never cause a failure.
    """

    model_config = ConfigDict(extra="allow")

    Id: str = ""
    Content: str = ""
    Timestamp: str = ""
    p: str = ""
    From: str = ""
    workflow_id: str = ""
    workflow_capability: list[str] = []
    workflow_requirement: list[str] = []
    workflow_performance: Any = None
    workflow_enhancement: Any = None
    ai_tag: list[str] = []
    ai_type: list[str] = []
    ai_importance: float | None = None
    ai_access_count: int = 0
    enhancement_type: str = ""
    enhancement_impact: float | None = None
    enhancement_risk: str = ""

    @field_validator(
        "Id", "Content", "Timestamp", "p", "From", "workflow_id",
        "enhancement_type", "enhancement_risk",
        mode="before",
    )
    @classmethod
    def _coerce_str(cls, v: Any) -> str:
        return _as_str(v)

    @field_validator(
        "workflow_capability", "workflow_requirement", "ai_tag", "ai_type",
        mode="before",
    )
    @classmethod
    def _coerce_list(cls, v: Any) -> list[str]:
        return _as_list(v)

    @field_validator("ai_importance", "enhancement_impact", mode="before")
    @classmethod
    def _coerce_float(cls, v: Any) -> float | None:
        return _as_float(v)

    @field_validator("ai_access_count", mode="before")
    @classmethod
    def _coerce_count(cls, v: Any) -> int:
        number = _as_float(v)
        return int(number) if number is not None else 0

    @property
    def advertises_enhancement(self) -> bool:
        """True if the record carries a non-empty enhancement blob."""
        return bool(self.workflow_enhancement)


def parse_record(record: Any) -> RawRecord:
    """Parse *record* into a ``RawRecord``; never raises.

    Accepts an existing ``RawRecord``, any mapping, or anything else (which
    yields the empty record).
    """
    if isinstance(record, RawRecord):
        return record
    if not isinstance(record, Mapping):
        logger.warning("Ignoring non-mapping relay record of type %s", type(record).__name__)
        return RawRecord()
    try:
        return RawRecord.model_validate(dict(record))
    except ValidationError as exc:
        logger.warning("Malformed relay record %r: %s", record.get("Id"), exc)
        return RawRecord()


# ===================================================================== #
#  Embedded JSON blobs                                                   #
# ===================================================================== #

class PerformanceBlob(BaseModel):
    """Performance summary embedded in ``workflow_performance``."""

    model_config = ConfigDict(extra="ignore")

    executionTime: float | None = None
    qualityScore: float | None = None
    success: bool | None = None
    successRate: float | None = None
    enhancementCount: int | None = None
    userSatisfaction: float | None = None


class EnhancementBlob(BaseModel):
    """Enhancement advertised in ``workflow_enhancement``."""

    model_config = ConfigDict(extra="ignore")

    type: str | None = None
    description: str | None = None
    impact: float | None = None
    riskLevel: str | None = None
    implementationHints: list[str] | None = None
    validationSteps: list[str] | None = None


def _load_blob(value: Any, model: type[BaseModel]) -> Any:
    if value is None or value == "":
        return None
    data = value
    if isinstance(value, (str, bytes)):
        try:
            data = json.loads(value)
        except ValueError as exc:
            logger.debug("Unparseable %s JSON: %s", model.__name__, exc)
            return None
    if not isinstance(data, Mapping):
        logger.debug("%s is not an object: %r", model.__name__, data)
        return None
    try:
        return model.model_validate(dict(data))
    except ValidationError as exc:
        logger.debug("Invalid %s: %s", model.__name__, exc)
        return None


def parse_performance_blob(value: Any) -> PerformanceBlob | None:
    """Parse a performance blob (JSON string or mapping); ``None`` if malformed."""
    return _load_blob(value, PerformanceBlob)


def parse_enhancement_blob(value: Any) -> EnhancementBlob | None:
    """Parse an enhancement blob (JSON string or mapping); ``None`` if malformed."""
    return _load_blob(value, EnhancementBlob)
