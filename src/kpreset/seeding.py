from __future__ import annotations

import asyncio
from collections.abc import Iterable

from loguru import logger

from .abc.client import BrokerClientProtocol
from .errors import SeedingError
from .types import Message


def group_by_topic(messages: Iterable[Message]) -> dict[str, list[Message]]:
    """split messages into per-topic streams, keeping declared order inside each stream"""
    streams: dict[str, list[Message]] = {}
    for message in messages:
        streams.setdefault(message.topic, []).append(message)
    return streams


class SeedPublisher:
    def __init__(self, client: BrokerClientProtocol) -> None:
        self.client = client

    async def publish(self, messages: Iterable[Message]) -> dict[str, int]:
        """
        publish every message and flush; returns topic -> messages written

        topics are published in parallel, each topic strictly in declared order;
        the first rejected write cancels the other topics
        """
        streams = group_by_topic(messages)

        if not streams:
            logger.debug("no seed messages")
            return {}

        try:
            async with asyncio.TaskGroup() as tg:
                for topic, stream in streams.items():
                    tg.create_task(self._publish_stream(topic, stream), name=f"seed-{topic}")
        except* SeedingError as eg:
            raise eg.exceptions[0]

        try:
            await self.client.flush()
        except Exception as exc:
            raise SeedingError("*", "*", f"flush failed: {exc}") from exc

        counts = {topic: len(stream) for topic, stream in streams.items()}
        logger.info("seeded {} messages into {} topics", sum(counts.values()), len(counts))
        return counts

    async def _publish_stream(self, topic: str, stream: list[Message]) -> None:
        for message in stream:
            try:
                await self.client.publish(topic, message.key, message.value, message.timestamp_ms)
            except Exception as exc:
                raise SeedingError(topic, message.key, str(exc) or repr(exc)) from exc
        logger.debug("published {} messages to {}", len(stream), topic)
