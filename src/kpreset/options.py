from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import TypeAlias

from loguru import logger

from .errors import ConfigurationError
from .seedfile import load_messages_file
from .types import (
    DEFAULT_BROKER_PORT,
    DEFAULT_REGISTRY_PORT,
    DEFAULT_VERSION,
    RESERVED_BROKER_PORTS,
    Configuration,
    Message,
    TopicConfig,
)


@dataclass
class ConfigurationDraft:
    """Mutable record the options write into before `freeze` produces a Configuration."""

    # name -> (partition count, declared explicitly)
    topics: dict[str, tuple[int, bool]] = field(default_factory=dict)
    messages: list[Message] = field(default_factory=list)
    file_messages: list[Message] = field(default_factory=list)
    messages_file: str | None = None
    version: str = DEFAULT_VERSION
    schema_registry: bool = False
    broker_port: int = DEFAULT_BROKER_PORT
    registry_port: int = DEFAULT_REGISTRY_PORT
    kraft: bool | None = None

    def declare_topic(self, name: str) -> None:
        if not name:
            raise ConfigurationError("topic name must not be empty")
        # a bare name never downgrades an explicit partition count
        self.topics.setdefault(name, (1, False))

    def configure_topic(self, config: TopicConfig) -> None:
        previous = self.topics.get(config.topic)
        if previous is not None and previous[0] != config.num_partitions:
            logger.debug(
                "topic {} partition count {} -> {}", config.topic, previous[0], config.num_partitions
            )
        self.topics[config.topic] = (config.num_partitions, True)

    def freeze(self) -> Configuration:
        for message in (*self.messages, *self.file_messages):
            if not message.topic:
                raise ConfigurationError(f"message with key {message.key!r} has no topic")

        return Configuration(
            topics=tuple(TopicConfig(name, partitions) for name, (partitions, _) in self.topics.items()),
            messages=tuple(self.messages),
            file_messages=tuple(self.file_messages),
            messages_file=self.messages_file,
            version=self.version,
            schema_registry=self.schema_registry,
            broker_port=self.broker_port,
            registry_port=self.registry_port,
            kraft=self.kraft,
        )


Option: TypeAlias = Callable[[ConfigurationDraft], None]


def with_topics(*names: str) -> Option:
    def apply(draft: ConfigurationDraft) -> None:
        for name in names:
            draft.declare_topic(name)

    return apply


def with_topic_configs(*configs: TopicConfig) -> Option:
    def apply(draft: ConfigurationDraft) -> None:
        for config in configs:
            draft.configure_topic(config)

    return apply


def with_messages(*messages: Message) -> Option:
    def apply(draft: ConfigurationDraft) -> None:
        draft.messages.extend(messages)

    return apply


def with_messages_file(path: str | Path) -> Option:
    """read seed messages from `path`; the file is parsed when the option is applied"""

    def apply(draft: ConfigurationDraft) -> None:
        draft.file_messages = load_messages_file(path)
        draft.messages_file = str(path)

    return apply


def with_version(version: str) -> Option:
    def apply(draft: ConfigurationDraft) -> None:
        if not version:
            raise ConfigurationError("version must not be empty")
        draft.version = version

    return apply


def with_schema_registry(enabled: bool = True) -> Option:
    def apply(draft: ConfigurationDraft) -> None:
        draft.schema_registry = enabled

    return apply


def with_ports(broker: int | None = None, registry: int | None = None) -> Option:
    def apply(draft: ConfigurationDraft) -> None:
        for port in (broker, registry):
            if port is not None and not 0 < port < 65536:
                raise ConfigurationError(f"invalid port: {port}")
        if broker in RESERVED_BROKER_PORTS:
            raise ConfigurationError(f"broker port {broker} is taken by another listener in the broker container")
        if broker is not None:
            draft.broker_port = broker
        if registry is not None:
            draft.registry_port = registry

    return apply


def with_kraft(enabled: bool = True) -> Option:
    def apply(draft: ConfigurationDraft) -> None:
        draft.kraft = enabled

    return apply


def preset(*options: Option | Iterable[Option]) -> Configuration:
    """
    build a frozen Configuration by applying `options` in order

    :raises ConfigurationError: on invalid topics, ports or a malformed messages file
    """
    draft = ConfigurationDraft()

    for option in options:
        if callable(option):
            option(draft)
        else:
            for nested in option:
                nested(draft)

    config = draft.freeze()
    logger.debug(
        "preset: {} topics, {} messages, version {}, schema registry {}",
        len(config.topics),
        len(config.all_messages),
        config.version,
        config.schema_registry,
    )
    return config
