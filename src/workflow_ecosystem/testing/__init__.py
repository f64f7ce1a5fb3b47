"""Test doubles for the relay boundary."""

from workflow_ecosystem.testing.relay import (
    FailingRelay,
    InMemoryRelay,
    SlowRelay,
    make_enhancement_record,
    make_workflow_record,
    record_matches,
)

__all__ = [
    "FailingRelay",
    "InMemoryRelay",
    "SlowRelay",
    "make_enhancement_record",
    "make_workflow_record",
    "record_matches",
]
