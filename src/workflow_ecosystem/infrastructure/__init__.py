"""Infrastructure layer for the workflow ecosystem.

Re-exports the public API surface for convenience::

    from workflow_ecosystem.infrastructure import (
        EventBus, EventStore, TTLCache, KeyedLock,
        Relay, RelayFilter, RawRecord,
        TrackerConfig, DiscoveryConfig,
    )
"""

from workflow_ecosystem.infrastructure.cache import TTLCache
from workflow_ecosystem.infrastructure.config import (
    DEFAULT_CAPABILITY_MAP,
    WORKFLOW_HUB_ID,
    AnalyticsConfig,
    DiscoveryConfig,
    RelationshipConfig,
    ReputationWeights,
    TrackerConfig,
    load_config_from_dict,
    load_config_from_json,
)
from workflow_ecosystem.infrastructure.event_bus import EventBus, EventStore
from workflow_ecosystem.infrastructure.locks import KeyedLock
from workflow_ecosystem.infrastructure.relay import (
    MEMORY_KIND,
    EnhancementBlob,
    PerformanceBlob,
    RawRecord,
    Relay,
    RelayFilter,
    parse_enhancement_blob,
    parse_performance_blob,
    parse_record,
    query_with_timeout,
)
from workflow_ecosystem.infrastructure.serialization import (
    deserialize,
    from_json,
    from_yaml,
    to_json,
    to_plain,
    to_yaml,
    yaml_available,
)

__all__ = [
    # Cache / locks
    "TTLCache",
    "KeyedLock",
    # Config
    "DEFAULT_CAPABILITY_MAP",
    "WORKFLOW_HUB_ID",
    "AnalyticsConfig",
    "DiscoveryConfig",
    "RelationshipConfig",
    "ReputationWeights",
    "TrackerConfig",
    "load_config_from_dict",
    "load_config_from_json",
    # Event bus
    "EventBus",
    "EventStore",
    # Relay
    "MEMORY_KIND",
    "EnhancementBlob",
    "PerformanceBlob",
    "RawRecord",
    "Relay",
    "RelayFilter",
    "parse_enhancement_blob",
    "parse_performance_blob",
    "parse_record",
    "query_with_timeout",
    # Serialization
    "deserialize",
    "from_json",
    "from_yaml",
    "to_json",
    "to_plain",
    "to_yaml",
    "yaml_available",
]
