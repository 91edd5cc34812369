from typing import Protocol


class BrokerClientProtocol(Protocol):
    async def start(self) -> None: ...

    async def close(self) -> None: ...

    async def list_topics(self) -> set[str]: ...

    async def describe_partitions(self, topic: str) -> int | None: ...

    async def create_topic(self, topic: str, num_partitions: int) -> bool:
        """returns False when the topic already existed"""
        ...

    async def delete_topic(self, topic: str) -> None: ...

    async def publish(self, topic: str, key: str, value: str, timestamp_ms: int | None = None) -> None: ...

    async def flush(self) -> None: ...
