from .errors import (
    ConfigurationError,
    KPresetError,
    ProvisioningError,
    SeedingError,
    StartupError,
    StartupTimeout,
)
from .options import (
    preset,
    with_kraft,
    with_messages,
    with_messages_file,
    with_ports,
    with_schema_registry,
    with_topic_configs,
    with_topics,
    with_version,
)
from .orchestrator import Orchestrator, ProvisionedInstance, provision, start, stop
from .types import (
    BROKER_PORT,
    SCHEMA_REGISTRY_PORT,
    Configuration,
    Message,
    ProvisionState,
    TopicConfig,
)

__all__ = [
    "BROKER_PORT",
    "SCHEMA_REGISTRY_PORT",
    "Configuration",
    "Message",
    "TopicConfig",
    "ProvisionState",
    "ProvisionedInstance",
    "Orchestrator",
    "preset",
    "start",
    "stop",
    "provision",
    "with_topics",
    "with_topic_configs",
    "with_messages",
    "with_messages_file",
    "with_version",
    "with_schema_registry",
    "with_ports",
    "with_kraft",
    "KPresetError",
    "ConfigurationError",
    "StartupError",
    "StartupTimeout",
    "ProvisioningError",
    "SeedingError",
]
