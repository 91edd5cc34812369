from __future__ import annotations

import asyncio
from collections.abc import Iterable

from loguru import logger

from .abc.client import BrokerClientProtocol
from .errors import ProvisioningError
from .types import TopicConfig


class TopicProvisioner:
    def __init__(self, client: BrokerClientProtocol) -> None:
        self.client = client

    async def provision(self, topics: Iterable[TopicConfig]) -> dict[str, bool]:
        """
        create every topic concurrently; returns topic -> created (False if it already existed)

        an existing topic is accepted only when its partition count matches;
        the first rejection cancels the remaining requests
        """
        topics = list(topics)
        results: dict[str, bool] = {}

        if not topics:
            return results

        try:
            async with asyncio.TaskGroup() as tg:
                tasks = {t.topic: tg.create_task(self._create(t)) for t in topics}
        except* ProvisioningError as eg:
            raise eg.exceptions[0]

        for name, task in tasks.items():
            results[name] = task.result()

        logger.info(
            "provisioned {} topics ({} created, {} existing)",
            len(results),
            sum(results.values()),
            len(results) - sum(results.values()),
        )
        return results

    async def _create(self, topic: TopicConfig) -> bool:
        try:
            created = await self.client.create_topic(topic.topic, topic.num_partitions)
        except Exception as exc:
            raise ProvisioningError(topic.topic, f"creation rejected: {exc}") from exc

        if created:
            return True

        try:
            existing = await self.client.describe_partitions(topic.topic)
        except Exception as exc:
            raise ProvisioningError(topic.topic, f"cannot describe existing topic: {exc}") from exc

        if existing != topic.num_partitions:
            raise ProvisioningError(
                topic.topic, f"already exists with {existing} partitions, wanted {topic.num_partitions}"
            )

        logger.debug("topic {} already exists with {} partitions", topic.topic, existing)
        return False

    async def delete(self, *names: str) -> None:
        for name in names:
            try:
                await self.client.delete_topic(name)
            except Exception as exc:
                raise ProvisioningError(name, f"deletion rejected: {exc}") from exc
            logger.debug("deleted topic {}", name)
