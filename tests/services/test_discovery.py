"""Tests for DiscoveryService: searches, ranking, caching, statistics and hubs."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

import pytest

from tests.helpers.builders import HUB, FakeClock, make_descriptor
from workflow_ecosystem.domain.enums import EnhancementType
from workflow_ecosystem.domain.exceptions import RelayError
from workflow_ecosystem.domain.values import (
    DiscoveryFilters,
    Enhancement,
    HubStatistics,
    NetworkStatistics,
)
from workflow_ecosystem.infrastructure.config import DiscoveryConfig
from workflow_ecosystem.infrastructure.relay import Relay, RelayFilter
from workflow_ecosystem.services.discovery import (
    NO_RESULT_SUGGESTIONS,
    DiscoveryService,
    filter_by_similarity,
    matches_additional_filters,
    matches_query,
    rank_workflows,
    remove_duplicates,
    top_capabilities,
)
from workflow_ecosystem.services.event_adapter import to_descriptor
from workflow_ecosystem.testing import (
    FailingRelay,
    InMemoryRelay,
    SlowRelay,
    make_enhancement_record,
    make_workflow_record,
)


class FlakyRelay(InMemoryRelay):
    """In-memory relay that can be switched into failing."""

    def __init__(self, records: Mapping[str, Any] | None = None) -> None:
        super().__init__(records)
        self.failing = False

    def query(self, hub_id: str, relay_filter: RelayFilter) -> list[dict[str, Any]]:
        if self.failing:
            raise ConnectionError("relay unavailable")
        return super().query(hub_id, relay_filter)


def _trusted(workflow_id: str, capabilities: list[str], **kwargs: Any) -> dict[str, Any]:
    """A record scoring about 0.955 reputation."""
    return make_workflow_record(
        workflow_id,
        capabilities,
        quality=0.95,
        success_rate=1.0,
        access_count=100,
        importance=1.0,
        enhancement={"type": "optimization"},
        **kwargs,
    )


def _mediocre(workflow_id: str, capabilities: list[str], **kwargs: Any) -> dict[str, Any]:
    return make_workflow_record(workflow_id, capabilities, quality=0.5, **kwargs)


# ===================================================================== #
#  Pure ranking helpers                                                  #
# ===================================================================== #


class TestRankWorkflows:

    def test_reputation_then_quality_then_usage(self) -> None:
        workflows = [
            make_descriptor("low", reputation=0.3),
            make_descriptor("tie-less-used", reputation=0.8, quality=0.9, usage=1),
            make_descriptor("best", reputation=0.9),
            make_descriptor("tie-more-used", reputation=0.8, quality=0.9, usage=7),
            make_descriptor("tie-lower-quality", reputation=0.8, quality=0.6, usage=50),
        ]
        assert [w.workflow_id for w in rank_workflows(workflows)] == [
            "best", "tie-more-used", "tie-less-used", "tie-lower-quality", "low",
        ]

    def test_full_ties_keep_input_order(self) -> None:
        workflows = [make_descriptor(f"w{i}") for i in range(4)]
        assert [w.workflow_id for w in rank_workflows(workflows)] == ["w0", "w1", "w2", "w3"]


class TestRemoveDuplicates:

    def test_first_occurrence_wins(self) -> None:
        first = make_descriptor("w1", reputation=0.9)
        again = make_descriptor("w1", reputation=0.1)
        other_hub = make_descriptor("w1", hub_id="elsewhere")
        unique = remove_duplicates([first, again, other_hub])
        assert unique == [first, other_hub]

    def test_idempotent(self) -> None:
        workflows = [make_descriptor("a"), make_descriptor("b"), make_descriptor("a")]
        once = remove_duplicates(workflows)
        assert remove_duplicates(once) == once


class TestMatching:

    def test_all_terms_must_match(self) -> None:
        workflow = make_descriptor("json-processor-v1", capabilities=("format-conversion",))
        assert matches_query(workflow, "JSON conversion")
        assert not matches_query(workflow, "json xml")
        assert matches_query(workflow, "")

    def test_additional_filters(self) -> None:
        workflow = make_descriptor(
            "w", reputation=0.6, quality=0.7, tags=("public", "etl"), execution_time=300
        )
        assert matches_additional_filters(workflow, DiscoveryFilters())
        assert not matches_additional_filters(workflow, DiscoveryFilters(min_reputation_score=0.7))
        assert not matches_additional_filters(workflow, DiscoveryFilters(min_performance_score=0.8))
        assert not matches_additional_filters(workflow, DiscoveryFilters(only_open_source=True))
        assert matches_additional_filters(workflow, DiscoveryFilters(tags=("etl",)))
        assert not matches_additional_filters(workflow, DiscoveryFilters(tags=("etl", "ml")))
        assert matches_additional_filters(workflow, DiscoveryFilters(max_response_time=300))
        assert not matches_additional_filters(workflow, DiscoveryFilters(max_response_time=299))

    def test_capability_and_requirement_filters(self) -> None:
        workflow = make_descriptor("w", capabilities=("csv", "json"), requirements=("database",))
        assert matches_additional_filters(workflow, DiscoveryFilters(capabilities=("json", "xml")))
        assert not matches_additional_filters(workflow, DiscoveryFilters(capabilities=("xml",)))
        assert matches_additional_filters(workflow, DiscoveryFilters(requirements=("database",)))
        assert not matches_additional_filters(workflow, DiscoveryFilters(requirements=("queue",)))

    def test_similarity(self) -> None:
        reference = make_descriptor("ref", capabilities=("a", "b", "c"), requirements=("x",))
        close = make_descriptor("close", capabilities=("b", "c", "d"))
        same_needs = make_descriptor("needs", requirements=("x",))
        far = make_descriptor("far", capabilities=("a", "q", "r", "s"))
        result = filter_by_similarity([close, same_needs, far], reference, 0.3)
        assert result == [close, same_needs]

    def test_top_capabilities(self) -> None:
        workflows = [
            make_descriptor("1", capabilities=("csv", "json")),
            make_descriptor("2", capabilities=("csv",)),
            make_descriptor("3", capabilities=("xml", "csv", "json")),
        ]
        assert top_capabilities(workflows, 2) == ("csv", "json")


# ===================================================================== #
#  Searches                                                              #
# ===================================================================== #


class TestSearches:

    def test_search_by_capability_ranked(
        self, relay: InMemoryRelay, service: DiscoveryService
    ) -> None:
        relay.add(HUB, _mediocre("plain", ["format-conversion"]))
        relay.add(HUB, _trusted("star", ["format-conversion"]))
        relay.add(HUB, _trusted("unrelated", ["painting"]))
        found = service.search_by_capability("format-conversion")
        assert [w.workflow_id for w in found] == ["star", "plain"]
        assert all(w.hub_id == HUB for w in found)

    def test_private_workflows_not_found(
        self, relay: InMemoryRelay, service: DiscoveryService
    ) -> None:
        relay.add(HUB, _trusted("secret", ["csv"], tags=["private"]))
        assert service.search_by_capability("csv") == []

    def test_search_by_query(self, relay: InMemoryRelay, service: DiscoveryService) -> None:
        relay.add(HUB, _mediocre("json-processor-v1", ["format-conversion"], content="Converts JSON"))
        relay.add(HUB, _mediocre("xml-tool", ["format-conversion"], content="Converts XML"))
        found = service.search_by_query("converts json")
        assert [w.workflow_id for w in found] == ["json-processor-v1"]

    def test_search_by_requirements(self, relay: InMemoryRelay, service: DiscoveryService) -> None:
        relay.add(HUB, make_workflow_record("needs-db", requirements=["database"]))
        relay.add(HUB, make_workflow_record("needs-queue", requirements=["queue"]))
        found = service.search_by_requirements(["database", "cache"])
        assert [w.workflow_id for w in found] == ["needs-db"]

    def test_filters_applied(self, relay: InMemoryRelay, service: DiscoveryService) -> None:
        relay.add(HUB, _trusted("open", ["csv"], tags=["public", "open-source"]))
        relay.add(HUB, _trusted("closed", ["csv"]))
        found = service.search_by_capability("csv", DiscoveryFilters(only_open_source=True))
        assert [w.workflow_id for w in found] == ["open"]

    def test_filter_capabilities_narrow_relay_query(
        self, relay: InMemoryRelay, service: DiscoveryService
    ) -> None:
        relay.add(HUB, _mediocre("a", ["csv"]))
        service.search_by_query("", DiscoveryFilters(capabilities=("csv",)))
        _, relay_filter = relay.queries[-1]
        assert relay_filter.tags["workflow_capability"] == ("csv",)
        assert relay_filter.tags["ai_type"] == ("workflow",)
        assert relay_filter.limit == 200

    def test_capability_filter_keeps_searched_capability(
        self, relay: InMemoryRelay, service: DiscoveryService
    ) -> None:
        relay.add(HUB, _mediocre("w-x", ["x", "y"]))
        relay.add(HUB, _mediocre("w-y", ["y"]))
        found = service.search_by_capability("x", DiscoveryFilters(capabilities=("y",)))
        assert [w.workflow_id for w in found] == ["w-x"]
        _, relay_filter = relay.queries[-1]
        assert relay_filter.tags["workflow_capability"] == ("x",)

    def test_requirement_filter_keeps_searched_requirements(
        self, relay: InMemoryRelay, service: DiscoveryService
    ) -> None:
        relay.add(HUB, make_workflow_record("both", requirements=["database", "queue"]))
        relay.add(HUB, make_workflow_record("queue-only", requirements=["queue"]))
        found = service.search_by_requirements(
            ["database"], DiscoveryFilters(requirements=("queue",))
        )
        assert [w.workflow_id for w in found] == ["both"]

    def test_results_cached(
        self, relay: InMemoryRelay, service: DiscoveryService, clock: FakeClock
    ) -> None:
        relay.add(HUB, _mediocre("a", ["csv"]))
        first = service.search_by_capability("csv")
        relay.add(HUB, _mediocre("b", ["csv"]))
        assert service.search_by_capability("csv") == first
        assert len(relay.queries) == 1
        clock.advance(121)
        assert len(service.search_by_capability("csv")) == 2
        assert len(relay.queries) == 2

    def test_result_cache_is_bounded(self, relay: InMemoryRelay, clock: FakeClock) -> None:
        config = DiscoveryConfig(hub_id=HUB, query_timeout=None, result_cache_max_entries=2)
        service = DiscoveryService(relay, config, clock=clock)
        for query in ("a", "b", "c"):
            service.search_by_query(query)
            clock.advance(1)
        service.search_by_query("c")
        assert len(relay.queries) == 3
        service.search_by_query("a")
        assert len(relay.queries) == 4

    def test_clear_cache(self, relay: InMemoryRelay, service: DiscoveryService) -> None:
        service.search_by_capability("csv")
        service.clear_cache()
        service.search_by_capability("csv")
        assert len(relay.queries) == 2

    def test_relay_failure_yields_empty(self, caplog: pytest.LogCaptureFixture) -> None:
        service = DiscoveryService(FailingRelay(), DiscoveryConfig(hub_id=HUB, query_timeout=None))
        with caplog.at_level(logging.WARNING):
            assert service.search_by_capability("csv") == []
            assert service.search_by_query("anything") == []
            assert service.search_by_requirements(["db"]) == []
        assert "Failed to search" in caplog.text

    def test_timeout_yields_empty(self) -> None:
        relay = SlowRelay(0.5, {HUB: [_trusted("late", ["csv"])]})
        service = DiscoveryService(relay, DiscoveryConfig(hub_id=HUB, query_timeout=0.05))
        assert service.search_by_capability("csv") == []


# ===================================================================== #
#  Progressive search                                                    #
# ===================================================================== #


class TestFindWorkflows:

    def test_quality_gate_accepts_broad_results(
        self, relay: InMemoryRelay, service: DiscoveryService
    ) -> None:
        for name in ("t1", "t2", "t3"):
            relay.add(HUB, _trusted(name, ["format-conversion"]))
        found = service.find_workflows("convert csv files")
        assert {w.workflow_id for w in found} == {"t1", "t2", "t3"}
        assert len(relay.queries) == 1

    def test_narrows_when_gate_fails(
        self, relay: InMemoryRelay, service: DiscoveryService
    ) -> None:
        relay.add(HUB, _mediocre("csv-cleaner", ["format-conversion"], content="cleans csv rows"))
        relay.add(HUB, _mediocre("csv-report", ["reporting"], content="csv summary"))
        found = service.find_workflows("csv")
        assert [w.workflow_id for w in found] == ["csv-cleaner", "csv-report"]
        assert len(relay.queries) == 2

    def test_merged_results_deduplicated(
        self, relay: InMemoryRelay, service: DiscoveryService
    ) -> None:
        relay.add(HUB, _mediocre("csv-tool", ["format-conversion"], content="csv tool"))
        found = service.find_workflows("csv")
        assert [w.workflow_id for w in found] == ["csv-tool"]

    def test_gate_needs_enough_results(self, service: DiscoveryService) -> None:
        trusted = [make_descriptor(f"w{i}", reputation=0.9, quality=0.9) for i in range(2)]
        assert not service.passes_quality_gate(trusted)
        trusted.append(make_descriptor("w3", reputation=0.9, quality=0.9))
        assert service.passes_quality_gate(trusted)
        trusted[0] = make_descriptor("w0", reputation=0.84, quality=0.9)
        assert not service.passes_quality_gate(trusted)

    def test_find_similar_workflows(
        self, relay: InMemoryRelay, service: DiscoveryService
    ) -> None:
        reference_record = _mediocre("ref", ["csv", "json", "xml"])
        relay.add(HUB, reference_record)
        relay.add(HUB, _trusted("twin", ["csv", "json"]))
        relay.add(HUB, _mediocre("distant", ["xml", "pdf", "docx", "html"]))
        reference = to_descriptor(reference_record, HUB)
        similar = service.find_similar_workflows(reference)
        assert [w.workflow_id for w in similar] == ["twin"]


# ===================================================================== #
#  Suggestions                                                           #
# ===================================================================== #


class TestSuggestions:

    def test_no_results(self, service: DiscoveryService) -> None:
        assert service.get_search_suggestions("x", []) == list(NO_RESULT_SUGGESTIONS)
        assert any("format-conversion" in s for s in NO_RESULT_SUGGESTIONS)

    def test_few_results(self, service: DiscoveryService) -> None:
        found = [make_descriptor("a", capabilities=("json", "csv"))]
        suggestions = service.get_search_suggestions("x", found)
        assert suggestions[0] == "Try related capabilities: csv, json"

    def test_many_results(self, service: DiscoveryService) -> None:
        found = [make_descriptor(str(i)) for i in range(4)]
        suggestions = service.get_search_suggestions("x", found)
        assert suggestions[0].startswith("Found 4 workflows!")

    def test_search_with_suggestions(
        self, relay: InMemoryRelay, service: DiscoveryService
    ) -> None:
        outcome = service.search_with_suggestions("nothing here")
        assert outcome.workflows == ()
        assert outcome.suggestions == NO_RESULT_SUGGESTIONS
        assert len(outcome.search_tips) == 3
        assert outcome.hubs_searched == 1
        assert outcome.duration >= 0.0


# ===================================================================== #
#  Enhancement patterns                                                  #
# ===================================================================== #


class TestEnhancementPatterns:

    def test_patterns_for_workflow(self, relay: InMemoryRelay, service: DiscoveryService) -> None:
        relay.add(HUB, make_enhancement_record(
            "w1", enhancement={"type": "bug_fix", "impact": 0.3}, record_id="r1"
        ))
        relay.add(HUB, make_enhancement_record("w2", record_id="r2"))
        relay.add(HUB, make_workflow_record("w1"))
        patterns = service.get_enhancement_patterns("w1")
        assert [p.pattern_id for p in patterns] == ["pattern_w1_r1"]
        assert patterns[0].type == "bug_fix"

    def test_failure_yields_empty(self) -> None:
        service = DiscoveryService(FailingRelay(), DiscoveryConfig(hub_id=HUB, query_timeout=None))
        assert service.get_enhancement_patterns("w1") == []

    def test_publish_then_read_back(self, relay: InMemoryRelay, service: DiscoveryService) -> None:
        enh = Enhancement("Retry on timeout", EnhancementType.ERROR_HANDLING, 0.4, id="e1")
        ack = service.publish_enhancement("w1", enh, signer="key", capabilities=["csv"])
        assert ack == {"id": "record-1"}
        hub_id, tags, signer = relay.published[0]
        assert hub_id == HUB
        assert signer == "key"
        assert tags["enhancement_type"] == "error_handling"
        patterns = service.get_enhancement_patterns("w1")
        assert len(patterns) == 1
        assert patterns[0].description == "Retry on timeout"
        assert patterns[0].impact == 0.4
        assert patterns[0].risk_level == "medium"
        assert patterns[0].applicable_capabilities == ("csv",)

    def test_publish_failure_raises(self) -> None:
        service = DiscoveryService(FailingRelay(), DiscoveryConfig(hub_id=HUB, query_timeout=None))
        with pytest.raises(RelayError) as excinfo:
            service.publish_enhancement("w1", Enhancement("x"))
        assert excinfo.value.operation == "publish"
        assert excinfo.value.hub_id == HUB
        assert isinstance(excinfo.value.__cause__, ConnectionError)


# ===================================================================== #
#  Statistics                                                            #
# ===================================================================== #


class TestHubStatistics:

    def test_summary(self, relay: InMemoryRelay, service: DiscoveryService) -> None:
        records = [
            _trusted("a", ["csv", "json"]),
            _mediocre("b", ["csv"]),
        ]
        for record in records:
            relay.add(HUB, record)
        stats = service.get_hub_statistics()
        reputations = [to_descriptor(r, HUB).reputation_score for r in records]
        average = sum(reputations) / 2
        assert stats.total_public_workflows == 2
        assert stats.average_reputation_score == pytest.approx(average)
        assert stats.top_capabilities == ("csv", "json")
        assert stats.network_health_score == pytest.approx(min(1.0, 0.04 + 0.8 * average))

    def test_empty_hub(self, service: DiscoveryService) -> None:
        assert service.get_hub_statistics() == HubStatistics()

    def test_cached_then_stale_on_failure(self, clock: FakeClock) -> None:
        relay = FlakyRelay({HUB: [_trusted("a", ["csv"])]})
        service = DiscoveryService(relay, DiscoveryConfig(hub_id=HUB, query_timeout=None), clock=clock)
        first = service.get_hub_statistics()
        relay.add(HUB, _trusted("b", ["csv"]))
        assert service.get_hub_statistics() == first
        relay.failing = True
        clock.advance(301)
        assert service.get_hub_statistics() == first

    def test_failure_without_cache(self) -> None:
        service = DiscoveryService(FailingRelay(), DiscoveryConfig(hub_id=HUB, query_timeout=None))
        assert service.get_hub_statistics() == HubStatistics()


class TestNetworkStatistics:

    def _service(self, relay: Relay, clock: FakeClock) -> DiscoveryService:
        config = DiscoveryConfig(hub_id=HUB, network_hubs=("h2", "h3"), query_timeout=None)
        return DiscoveryService(relay, config, clock=clock)

    def test_empty_network(self, relay: InMemoryRelay, clock: FakeClock) -> None:
        assert self._service(relay, clock).get_network_statistics() == NetworkStatistics()

    def test_across_hubs(self, relay: InMemoryRelay, clock: FakeClock) -> None:
        relay.add(HUB, _trusted("a", ["csv"]))
        relay.add(HUB, _mediocre("b", ["json"]))
        relay.add("h2", _mediocre("c", ["csv"]))
        stats = self._service(relay, clock).get_network_statistics()
        assert stats.total_hubs == 2
        assert stats.total_public_workflows == 3
        assert stats.top_capabilities[0] == "csv"
        expected = min(1.0, 0.1 * 2 + 0.05 * 3 + 0.5 * stats.average_reputation_score)
        assert stats.network_health_score == pytest.approx(expected)

    def test_stale_on_failure(self, clock: FakeClock) -> None:
        relay = FlakyRelay({HUB: [_trusted("a", ["csv"])]})
        service = self._service(relay, clock)
        first = service.get_network_statistics()
        assert first.total_public_workflows == 1
        relay.failing = True
        clock.advance(301)
        assert service.get_network_statistics() == first

    def test_total_failure_without_cache(self, clock: FakeClock) -> None:
        service = self._service(FailingRelay(), clock)
        assert service.get_network_statistics() == NetworkStatistics()


# ===================================================================== #
#  Hubs                                                                  #
# ===================================================================== #


class TestHubs:

    def test_hub_info(self, relay: InMemoryRelay, service: DiscoveryService) -> None:
        relay.add(HUB, make_workflow_record("a", quality=0.9, owner="alice", timestamp="111"))
        relay.add(HUB, make_workflow_record("b", quality=0.7))
        relay.add(HUB, make_workflow_record("c"))
        info = service.get_hub_info(HUB)
        assert info.process_id == HUB
        assert info.workflow_count == 3
        assert info.has_public_workflows
        assert info.reputation_score == pytest.approx(0.8 * 0.7 + 0.06 * 0.3)
        assert info.owner_address == "alice"
        assert info.last_activity == "111"

    def test_empty_hub_info(self, service: DiscoveryService) -> None:
        info = service.get_hub_info("quiet")
        assert info.workflow_count == 0
        assert not info.has_public_workflows
        assert info.reputation_score == pytest.approx(0.35)

    def test_hub_info_raises(self) -> None:
        service = DiscoveryService(FailingRelay(), DiscoveryConfig(hub_id=HUB, query_timeout=None))
        with pytest.raises(RelayError):
            service.get_hub_info(HUB)

    def test_discover_hubs_cached(self, relay: InMemoryRelay, clock: FakeClock) -> None:
        config = DiscoveryConfig(hub_id=HUB, network_hubs=("h2", HUB), query_timeout=None)
        service = DiscoveryService(relay, config, clock=clock)
        hubs = service.discover_hubs()
        assert [h.process_id for h in hubs] == [HUB, "h2"]
        service.discover_hubs()
        assert len(relay.queries) == 2
        service.discover_hubs(force_refresh=True)
        assert len(relay.queries) == 4

    def test_unreachable_hub_served_stale(self, clock: FakeClock) -> None:
        relay = FlakyRelay({HUB: [_trusted("a", ["csv"])]})
        service = DiscoveryService(relay, DiscoveryConfig(hub_id=HUB, query_timeout=None), clock=clock)
        first = service.discover_hubs()
        relay.failing = True
        assert service.discover_hubs(force_refresh=True) == first

    def test_unreachable_hub_skipped(self) -> None:
        service = DiscoveryService(FailingRelay(), DiscoveryConfig(hub_id=HUB, query_timeout=None))
        assert service.discover_hubs() == []
