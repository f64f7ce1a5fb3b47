"""Shared fixtures for the Workflow Ecosystem test suite."""

from __future__ import annotations

import pytest

from tests.helpers.builders import HUB, FakeClock
from workflow_ecosystem.domain.values import (
    Enhancement,
    PerformanceSample,
    ResourceMetrics,
)
from workflow_ecosystem.infrastructure.config import DiscoveryConfig
from workflow_ecosystem.infrastructure.event_bus import EventBus, EventStore
from workflow_ecosystem.services.discovery import DiscoveryService
from workflow_ecosystem.services.performance import PerformanceTracker
from workflow_ecosystem.services.relationships import RelationshipManager
from workflow_ecosystem.testing import InMemoryRelay

# ---------------------------------------------------------------------------
# Infrastructure fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def store(bus: EventBus) -> EventStore:
    """Event store recording everything published on ``bus``."""
    event_store = EventStore()
    bus.subscribe_all(event_store.append)
    return event_store


@pytest.fixture
def relay() -> InMemoryRelay:
    return InMemoryRelay()


@pytest.fixture
def discovery_config() -> DiscoveryConfig:
    """Discovery against ``HUB`` without a worker thread per query."""
    return DiscoveryConfig(hub_id=HUB, query_timeout=None)


# ---------------------------------------------------------------------------
# Service fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def tracker(bus: EventBus, clock: FakeClock) -> PerformanceTracker:
    return PerformanceTracker(event_bus=bus, clock=clock)


@pytest.fixture
def manager(bus: EventBus) -> RelationshipManager:
    return RelationshipManager(event_bus=bus)


@pytest.fixture
def service(
    relay: InMemoryRelay,
    discovery_config: DiscoveryConfig,
    clock: FakeClock,
) -> DiscoveryService:
    return DiscoveryService(relay, discovery_config, clock=clock)


# ---------------------------------------------------------------------------
# Value-object fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def healthy_sample() -> PerformanceSample:
    """A fast, successful, high-quality execution."""
    return PerformanceSample(
        execution_time=1000.0,
        success=True,
        error_rate=0.0,
        quality_score=0.95,
        completion_rate=1.0,
        resource_usage=ResourceMetrics(memory_usage=100.0, cpu_time=500.0),
        user_satisfaction=0.9,
        timestamp=1.0,
    )


@pytest.fixture
def optimization() -> Enhancement:
    return Enhancement(
        description="Cache parsed schemas",
        impact=0.5,
        id="enh-opt",
    )
