"""Domain exceptions for the workflow ecosystem.

All package-specific exceptions inherit from ``WorkflowEcosystemError`` so
callers can catch the full family with a single ``except`` clause when needed.

Most of the core never raises: malformed records and unknown workflow ids
degrade to documented defaults.  These exceptions cover the few places where
a caller must be told that something did not happen (relay writes, bad
configuration, unknown API operations).
"""

from __future__ import annotations

from typing import Any


class WorkflowEcosystemError(Exception):
    """Base exception for all workflow ecosystem errors."""

    def __init__(self, message: str = "", details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.details: dict[str, Any] = details or {}


class RelayError(WorkflowEcosystemError):
    """Raised when the external relay fails or times out.

    Searches catch it and degrade to an empty result; writes and
    ``get_hub_info`` let it propagate.
    The original exception is available as ``__cause__``.
    """

    def __init__(
        self,
        message: str = "Relay operation failed",
        hub_id: str = "",
        operation: str = "",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.hub_id = hub_id
        self.operation = operation


class ConfigurationError(WorkflowEcosystemError):
    """Raised when a configuration document cannot be interpreted."""

    def __init__(
        self,
        message: str = "Invalid configuration",
        section: str = "",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.section = section


class UnknownOperationError(WorkflowEcosystemError):
    """Raised by the API facade when asked to dispatch an unknown operation."""

    def __init__(
        self,
        operation: str = "",
        available: tuple[str, ...] = (),
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(f"Unknown operation {operation!r}", details)
        self.operation = operation
        self.available = available
