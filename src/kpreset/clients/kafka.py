from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Iterable
from typing import Any

from aiokafka import AIOKafkaProducer
from aiokafka.admin import AIOKafkaAdminClient, NewTopic
from aiokafka.errors import KafkaError, TopicAlreadyExistsError, for_code
from loguru import logger


def _raise_for_topic_errors(topic_errors: Iterable[Any]) -> None:
    # v0 responses carry (topic, code), v1+ carry (topic, code, message)
    for entry in topic_errors:
        topic, code = entry[0], entry[1]
        if code == 0:
            continue
        message = entry[2] if len(entry) > 2 and entry[2] else f"error code {code}"
        error_cls: type[KafkaError] = for_code(code)
        raise error_cls(f"{topic}: {message}")


class AIOKafkaBrokerClient:
    """

    broker client on top of aiokafka's admin client and an acks=all producer

    """

    def __init__(
        self,
        bootstrap_servers: str,
        client_id: str = "kpreset",
        request_timeout_ms: int = 10_000,
        replication_factor: int = 1,
    ) -> None:
        self.bootstrap_servers = bootstrap_servers
        self.client_id = client_id
        self.request_timeout_ms = request_timeout_ms
        self.replication_factor = replication_factor
        self._admin: AIOKafkaAdminClient | None = None
        self._producer: AIOKafkaProducer | None = None
        self._producer_lock = asyncio.Lock()

    @property
    def admin(self) -> AIOKafkaAdminClient:
        if self._admin is None:
            raise RuntimeError("client not started")
        return self._admin

    async def start(self) -> None:
        admin = AIOKafkaAdminClient(
            bootstrap_servers=self.bootstrap_servers,
            client_id=self.client_id,
            request_timeout_ms=self.request_timeout_ms,
        )
        try:
            await admin.start()
        except BaseException:
            with contextlib.suppress(Exception):
                await admin.close()
            raise
        self._admin = admin
        logger.debug("admin client connected to {}", self.bootstrap_servers)

    async def close(self) -> None:
        if self._producer is not None:
            try:
                await self._producer.stop()
            except Exception as e:
                logger.warning("error stopping producer: {}", e)
            self._producer = None

        if self._admin is not None:
            try:
                await self._admin.close()
            except Exception as e:
                logger.warning("error closing admin client: {}", e)
            self._admin = None

    async def list_topics(self) -> set[str]:
        return set(await self.admin.list_topics())

    async def describe_partitions(self, topic: str) -> int | None:
        descriptions = await self.admin.describe_topics([topic])

        if isinstance(descriptions, dict):
            descriptions = list(descriptions.values())

        for description in descriptions:
            if isinstance(description, dict):
                name, error_code, partitions = (
                    description.get("topic"),
                    description.get("error_code", 0),
                    description.get("partitions", []),
                )
            else:
                name, error_code, partitions = description.topic, 0, description.partitions

            if name == topic:
                return None if error_code else len(partitions)

        return None

    async def create_topic(self, topic: str, num_partitions: int) -> bool:
        response = await self.admin.create_topics(
            [NewTopic(name=topic, num_partitions=num_partitions, replication_factor=self.replication_factor)],
            timeout_ms=self.request_timeout_ms,
        )

        try:
            _raise_for_topic_errors(getattr(response, "topic_errors", ()))
        except TopicAlreadyExistsError:
            logger.debug("topic {} already exists", topic)
            return False

        logger.debug("created topic {} ({} partitions)", topic, num_partitions)
        return True

    async def delete_topic(self, topic: str) -> None:
        response = await self.admin.delete_topics([topic], timeout_ms=self.request_timeout_ms)
        _raise_for_topic_errors(getattr(response, "topic_error_codes", ()))
        logger.debug("deleted topic {}", topic)

    async def _ensure_producer(self) -> AIOKafkaProducer:
        async with self._producer_lock:
            if self._producer is None:
                producer = AIOKafkaProducer(
                    bootstrap_servers=self.bootstrap_servers,
                    client_id=self.client_id,
                    acks="all",
                    request_timeout_ms=self.request_timeout_ms,
                )
                await producer.start()
                self._producer = producer
        return self._producer

    async def publish(self, topic: str, key: str, value: str, timestamp_ms: int | None = None) -> None:
        producer = await self._ensure_producer()
        await producer.send_and_wait(topic, value=value.encode(), key=key.encode(), timestamp_ms=timestamp_ms)

    async def flush(self) -> None:
        if self._producer is not None:
            await self._producer.flush()
