"""Tests for configuration dataclasses and the unified loader."""

from __future__ import annotations

import json

import pytest

from workflow_ecosystem.domain.exceptions import ConfigurationError
from workflow_ecosystem.infrastructure.config import (
    WORKFLOW_HUB_ID,
    AnalyticsConfig,
    DiscoveryConfig,
    RelationshipConfig,
    ReputationWeights,
    TrackerConfig,
    load_config_from_dict,
    load_config_from_json,
)


class TestReputationWeights:
    """Blend weights must be unit values summing to 1."""

    def test_defaults_validate(self) -> None:
        ReputationWeights().validate()

    def test_weights_must_sum_to_one(self) -> None:
        with pytest.raises(ValueError, match="sum to 1"):
            ReputationWeights(quality=0.5).validate()

    def test_saturation_must_be_positive(self) -> None:
        with pytest.raises(ValueError, match="usage_saturation"):
            ReputationWeights(usage_saturation=0).validate()

    def test_round_trip(self) -> None:
        weights = ReputationWeights(quality=0.4, reliability=0.15)
        assert ReputationWeights.from_dict(weights.to_dict()) == weights

    def test_from_dict_ignores_unknown_keys(self) -> None:
        weights = ReputationWeights.from_dict({"quality": 0.3, "colour": "blue"})
        assert weights == ReputationWeights()


class TestTrackerConfig:

    def test_defaults(self) -> None:
        cfg = TrackerConfig()
        cfg.validate()
        assert cfg.max_samples == 100
        assert cfg.min_samples == 5
        assert cfg.analysis_window == 10

    @pytest.mark.parametrize(
        "overrides, message",
        [
            ({"max_samples": 0}, "max_samples"),
            ({"min_samples": 1}, "min_samples"),
            ({"analysis_window": 3}, "analysis_window"),
            ({"error_rate_threshold": 1.5}, "error_rate_threshold"),
            ({"memory_threshold": 0}, "memory_threshold"),
        ],
    )
    def test_invalid_values(self, overrides: dict, message: str) -> None:
        with pytest.raises(ValueError, match=message):
            TrackerConfig(**overrides).validate()


class TestRelationshipConfig:

    def test_defaults_validate(self) -> None:
        RelationshipConfig().validate()

    def test_weaken_band_below_strengthen_band(self) -> None:
        with pytest.raises(ValueError, match="weaken_below"):
            RelationshipConfig(weaken_below=0.9).validate()


class TestDiscoveryConfig:

    def test_default_hub(self) -> None:
        cfg = DiscoveryConfig()
        cfg.validate()
        assert cfg.hub_id == WORKFLOW_HUB_ID
        assert cfg.result_cache_ttl == 120.0
        assert cfg.stats_cache_ttl == 300.0
        assert cfg.result_cache_max_entries == 256

    def test_network_hubs_list_becomes_tuple(self) -> None:
        cfg = DiscoveryConfig.from_dict({"network_hubs": ["h1", "h2"]})
        assert cfg.network_hubs == ("h1", "h2")
        assert cfg.to_dict()["network_hubs"] == ["h1", "h2"]

    def test_empty_hub_rejected(self) -> None:
        with pytest.raises(ValueError, match="hub_id"):
            DiscoveryConfig(hub_id="").validate()

    def test_timeout_may_be_disabled(self) -> None:
        DiscoveryConfig(query_timeout=None).validate()

    def test_limits_must_be_positive(self) -> None:
        with pytest.raises(ValueError, match="stats_limit"):
            DiscoveryConfig(stats_limit=0).validate()
        with pytest.raises(ValueError, match="result_cache_max_entries"):
            DiscoveryConfig(result_cache_max_entries=0).validate()


class TestAnalyticsConfig:

    def test_defaults(self) -> None:
        cfg = AnalyticsConfig()
        cfg.validate()
        assert cfg.learning_window_days == 7
        assert cfg.max_recommendations == 10

    def test_negative_ttl_rejected(self) -> None:
        with pytest.raises(ValueError, match="cache_ttl"):
            AnalyticsConfig(cache_ttl=-1).validate()


class TestConfigLoader:
    """``load_config_from_dict`` / ``load_config_from_json``."""

    def test_sections_become_typed(self) -> None:
        config = load_config_from_dict({
            "tracker": {"max_samples": 50},
            "discovery": {"hub_id": "h1"},
            "extra": {"keep": True},
        })
        assert config["tracker"] == TrackerConfig(max_samples=50)
        assert config["discovery"].hub_id == "h1"
        assert config["extra"] == {"keep": True}

    def test_invalid_section_names_the_section(self) -> None:
        with pytest.raises(ConfigurationError) as excinfo:
            load_config_from_dict({"analytics": {"cache_ttl": -5}})
        assert excinfo.value.section == "analytics"
        assert isinstance(excinfo.value.__cause__, ValueError)

    def test_non_object_rejected(self) -> None:
        with pytest.raises(ConfigurationError):
            load_config_from_dict(["tracker"])

    def test_json(self) -> None:
        config = load_config_from_json(json.dumps({"relationships": {"hub_influence": 0.6}}))
        assert config["relationships"].hub_influence == 0.6

    def test_bad_json(self) -> None:
        with pytest.raises(ConfigurationError, match="not valid JSON"):
            load_config_from_json("{tracker:")
