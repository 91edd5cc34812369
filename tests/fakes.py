"""Test doubles for the container runtime and the broker client."""

from __future__ import annotations

import asyncio
import threading
import time

from kpreset.abc.runtime import ContainerHandle
from kpreset.clients.memory import InMemoryBrokerClient
from kpreset.types import BROKER_PORT, SCHEMA_REGISTRY_PORT, Configuration


class FakeRuntime:
	def __init__(
		self,
		broker_address: str = "127.0.0.1:19093",
		registry_address: str = "127.0.0.1:18081",
		start_delay: float = 0.0,
		broker_error: Exception | None = None,
		registry_error: Exception | None = None,
		stop_error: Exception | None = None,
	) -> None:
		self.broker_address = broker_address
		self.registry_address = registry_address
		self.start_delay = start_delay
		self.broker_error = broker_error
		self.registry_error = registry_error
		self.stop_error = stop_error

		self.started: list[str] = []
		self.stopped: list[str] = []
		self.running: set[str] = set()
		self.configs: list[Configuration] = []
		self._lock = threading.Lock()

	def start_broker(self, config: Configuration, name: str, timeout: float) -> ContainerHandle:
		time.sleep(self.start_delay)
		if self.broker_error is not None:
			raise self.broker_error
		with self._lock:
			self.configs.append(config)
			self.started.append(name)
			self.running.add(name)
		return ContainerHandle(name=name, ports={BROKER_PORT: self.broker_address}, internal_address="kafka:9092")

	def start_registry(
		self, config: Configuration, broker: ContainerHandle, name: str, timeout: float
	) -> ContainerHandle:
		if self.registry_error is not None:
			raise self.registry_error
		with self._lock:
			self.started.append(name)
			self.running.add(name)
		return ContainerHandle(name=name, ports={SCHEMA_REGISTRY_PORT: self.registry_address})

	def stop(self, handle: ContainerHandle) -> None:
		with self._lock:
			self.running.discard(handle.name)
			self.stopped.append(handle.name)
		if self.stop_error is not None:
			raise self.stop_error

	def logs(self, handle: ContainerHandle) -> str:
		return f"output of {handle.name}"


class FlakyBrokerClient(InMemoryBrokerClient):
	"""memory client that refuses connections for a while and rejects chosen topics"""

	def __init__(
		self,
		unavailable_for: int = 0,
		probe_error: Exception | None = None,
		reject_topics: set[str] | None = None,
		reject_publish: set[str] | None = None,
		publish_delays: dict[str, float] | None = None,
	) -> None:
		super().__init__()
		self.unavailable_for = unavailable_for
		self.probe_error = probe_error
		self.reject_topics = reject_topics or set()
		self.reject_publish = reject_publish or set()
		self.publish_delays = publish_delays or {}
		self.probe_attempts = 0
		self.publish_attempts: list[tuple[str, str]] = []

	async def list_topics(self) -> set[str]:
		self.probe_attempts += 1
		if self.probe_error is not None:
			raise self.probe_error
		if self.probe_attempts <= self.unavailable_for:
			raise ConnectionRefusedError("connection refused")
		return await super().list_topics()

	async def create_topic(self, topic: str, num_partitions: int) -> bool:
		if topic in self.reject_topics:
			raise ValueError(f"invalid topic name {topic!r}")
		return await super().create_topic(topic, num_partitions)

	async def publish(self, topic: str, key: str, value: str, timestamp_ms: int | None = None) -> None:
		self.publish_attempts.append((topic, key))
		if topic in self.publish_delays:
			await asyncio.sleep(self.publish_delays[topic])
		if topic in self.reject_publish:
			raise RuntimeError("not enough replicas")
		await super().publish(topic, key, value, timestamp_ms)
