from __future__ import annotations

from enum import StrEnum

import msgspec

from .errors import ConfigurationError

BROKER_PORT = "broker"
SCHEMA_REGISTRY_PORT = "registry"

DEFAULT_VERSION = "7.6.1"
DEFAULT_BROKER_PORT = 9093
DEFAULT_REGISTRY_PORT = 8081

# listener the broker advertises on the container network
INTERNAL_BROKER_PORT = 9092
# kraft controller listener and embedded zookeeper inside the broker container
CONTROLLER_PORT = 9094
ZOOKEEPER_PORT = 2181
RESERVED_BROKER_PORTS = frozenset({INTERNAL_BROKER_PORT, CONTROLLER_PORT, ZOOKEEPER_PORT})


class Message(msgspec.Struct, frozen=True):
    topic: str
    key: str
    value: str
    # epoch nanoseconds; 0 lets the producer assign the time
    timestamp: int = 0

    @property
    def timestamp_ms(self) -> int | None:
        if not self.timestamp:
            return None
        return self.timestamp // 1_000_000


class TopicConfig(msgspec.Struct, frozen=True):
    topic: str
    num_partitions: int = 1

    def __post_init__(self) -> None:
        if not self.topic:
            raise ConfigurationError("topic name must not be empty")
        if self.num_partitions < 1:
            raise ConfigurationError(
                f"topic {self.topic!r}: partition count must be >= 1, got {self.num_partitions}"
            )


class Configuration(msgspec.Struct, frozen=True):
    topics: tuple[TopicConfig, ...] = ()
    messages: tuple[Message, ...] = ()
    file_messages: tuple[Message, ...] = ()
    messages_file: str | None = None
    version: str = DEFAULT_VERSION
    schema_registry: bool = False
    broker_port: int = DEFAULT_BROKER_PORT
    registry_port: int = DEFAULT_REGISTRY_PORT
    kraft: bool | None = None

    @property
    def all_messages(self) -> tuple[Message, ...]:
        return self.messages + self.file_messages

    @property
    def resolved_topics(self) -> tuple[TopicConfig, ...]:
        """declared topics followed by single-partition topics that only seed messages name"""
        known = {t.topic for t in self.topics}
        implied: dict[str, TopicConfig] = {}
        for message in self.all_messages:
            if message.topic not in known and message.topic not in implied:
                implied[message.topic] = TopicConfig(message.topic, 1)
        return self.topics + tuple(implied.values())

    @property
    def partitions(self) -> dict[str, int]:
        return {t.topic: t.num_partitions for t in self.resolved_topics}


class ProvisionState(StrEnum):
    CREATED = "created"
    STARTING = "starting"
    PROBING_BROKER = "probing_broker"
    PROVISIONING_TOPICS = "provisioning_topics"
    SEEDING_MESSAGES = "seeding_messages"
    PROBING_REGISTRY = "probing_registry"
    READY = "ready"
    FAILED = "failed"
