import asyncio
import zlib

import msgspec
from loguru import logger


class Record(msgspec.Struct, frozen=True):
    topic: str
    partition: int
    offset: int
    key: str
    value: str
    timestamp_ms: int | None = None


class InMemoryBrokerClient:
    """
    broker client backed by process memory

    stands in for a live broker in unit tests; topics are lists of partitions,
    records land on `crc32(key) % partitions`
    """

    def __init__(self, address: str = "memory:0") -> None:
        self.address = address
        self._topics: dict[str, list[list[Record]]] = {}
        self._lock = asyncio.Lock()
        self._running = False
        self._log: list[Record] = []

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        self._running = True

    async def close(self) -> None:
        self._running = False

    async def list_topics(self) -> set[str]:
        return set(self._topics)

    async def describe_partitions(self, topic: str) -> int | None:
        partitions = self._topics.get(topic)
        return None if partitions is None else len(partitions)

    async def create_topic(self, topic: str, num_partitions: int) -> bool:
        if num_partitions < 1:
            raise ValueError(f"invalid partition count {num_partitions}")

        async with self._lock:
            if topic in self._topics:
                return False
            self._topics[topic] = [[] for _ in range(num_partitions)]

        logger.debug("memory broker: created topic {} with {} partitions", topic, num_partitions)
        return True

    async def delete_topic(self, topic: str) -> None:
        async with self._lock:
            if topic not in self._topics:
                raise KeyError(f"unknown topic: {topic}")
            del self._topics[topic]
            self._log = [r for r in self._log if r.topic != topic]

    async def publish(self, topic: str, key: str, value: str, timestamp_ms: int | None = None) -> None:
        async with self._lock:
            partitions = self._topics.get(topic)
            if partitions is None:
                raise KeyError(f"unknown topic: {topic}")

            partition = zlib.crc32(key.encode()) % len(partitions)
            record = Record(
                topic=topic,
                partition=partition,
                offset=len(partitions[partition]),
                key=key,
                value=value,
                timestamp_ms=timestamp_ms,
            )
            partitions[partition].append(record)
            self._log.append(record)

    async def flush(self) -> None:
        pass

    def read(self, topic: str, partition: int | None = None) -> list[Record]:
        """records of `topic` in publish order, optionally limited to one partition"""
        partitions = self._topics.get(topic)
        if partitions is None:
            raise KeyError(f"unknown topic: {topic}")
        if partition is not None:
            return list(partitions[partition])
        return [r for r in self._log if r.topic == topic]
