from __future__ import annotations

import asyncio

import aiohttp
import pytest
from aiokafka import AIOKafkaConsumer, TopicPartition

import kpreset
from kpreset import BROKER_PORT, SCHEMA_REGISTRY_PORT, Message, ProvisioningError, TopicConfig

pytestmark = pytest.mark.docker


@pytest.fixture(autouse=True)
def _require_docker(docker_available):
	if not docker_available:
		pytest.skip("docker daemon not reachable")


async def consume(address: str, topic: str, expected: int, timeout: float = 30.0) -> list[tuple[str, str]]:
	consumer = AIOKafkaConsumer(topic, bootstrap_servers=address, auto_offset_reset="earliest", group_id=None)
	await consumer.start()
	out: list[tuple[str, str]] = []
	try:
		async with asyncio.timeout(timeout):
			async for record in consumer:
				out.append((record.key.decode(), record.value.decode()))
				if len(out) >= expected:
					break
	finally:
		await consumer.stop()
	return out


async def end_offsets(address: str, topic: str, partitions: int) -> list[int]:
	consumer = AIOKafkaConsumer(bootstrap_servers=address)
	await consumer.start()
	try:
		tps = [TopicPartition(topic, p) for p in range(partitions)]
		offsets = await consumer.end_offsets(tps)
	finally:
		await consumer.stop()
	return [offsets[tp] for tp in tps]


async def test_preset_against_real_broker(messages_file):
	config = kpreset.preset(
		kpreset.with_topics("topic-1"),
		kpreset.with_topic_configs(TopicConfig("topic-2", 3)),
		kpreset.with_messages(
			Message("events", "order", "1"),
			Message("alerts", "CPU", "92"),
		),
		kpreset.with_messages_file(messages_file),
	)

	async with kpreset.provision(config, timeout=600) as instance:
		address = instance.address_of(BROKER_PORT)

		topics = await instance.list_topics()
		assert {"topic-1", "topic-2", "events", "alerts"} <= topics

		async with instance.client() as client:
			assert await client.describe_partitions("topic-1") == 1
			assert await client.describe_partitions("topic-2") == 3

		assert await consume(address, "events", 3) == [("order", "1"), ("order", "2"), ("order", "3")]
		assert await consume(address, "alerts", 2) == [("CPU", "92"), ("MEM", "71")]
		assert await end_offsets(address, "topic-2", 3) == [0, 0, 0]

		await instance.delete_topics("topic-1")
		assert "topic-1" not in await instance.list_topics()

		with pytest.raises(ProvisioningError) as excinfo:
			await instance.delete_topics("unknown-topic")
		assert excinfo.value.topic == "unknown-topic"


async def test_file_timestamps_preserved(messages_file):
	config = kpreset.preset(kpreset.with_messages_file(messages_file))

	async with kpreset.provision(config) as instance:
		consumer = AIOKafkaConsumer(bootstrap_servers=instance.address, auto_offset_reset="earliest")
		await consumer.start()
		try:
			tp = TopicPartition("alerts", 0)
			consumer.assign([tp])
			async with asyncio.timeout(30):
				record = await consumer.getone(tp)
		finally:
			await consumer.stop()

	assert record.timestamp == 1700000001000


async def test_schema_registry_reachable():
	config = kpreset.preset(kpreset.with_topics("topic-1"), kpreset.with_schema_registry())

	async with kpreset.provision(config) as instance:
		url = f"http://{instance.address_of(SCHEMA_REGISTRY_PORT)}/subjects"
		async with aiohttp.ClientSession() as session, session.get(url) as response:
			assert response.status == 200
			assert await response.json() == []
