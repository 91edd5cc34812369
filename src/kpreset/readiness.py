"""Bounded readiness probing for the broker and the schema registry."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Protocol

import aiohttp
from aiokafka.errors import KafkaConnectionError, KafkaError, UnrecognizedBrokerVersion
from loguru import logger

from .abc.client import BrokerClientProtocol
from .errors import StartupError, StartupTimeout
from .retry import ProbePolicy


class Probe(Protocol):
    target: str

    async def attempt(self) -> None: ...

    def is_transient(self, exc: BaseException) -> bool: ...


async def wait_until_ready(
    probe: Probe, policy: ProbePolicy, on_retry: Callable[[BaseException], None] | None = None
) -> int:
    """
    call `probe.attempt()` until it succeeds or `policy.deadline` elapses

    :param on_retry: called with every transient error before the next attempt

    :raises StartupTimeout: deadline elapsed; carries the last transient error
    :raises StartupError: the probe reported a non-transient failure
    :returns number of attempts made
    """
    loop = asyncio.get_running_loop()
    started = loop.time()
    deadline_at = started + policy.deadline
    last_error: BaseException | None = None
    attempt = 0

    while True:
        remaining = deadline_at - loop.time()
        if remaining <= 0:
            raise StartupTimeout(probe.target, policy.deadline, last_error) from last_error

        attempt += 1
        try:
            async with asyncio.timeout(min(policy.attempt_timeout, remaining)):
                await probe.attempt()
        except Exception as exc:
            if not probe.is_transient(exc):
                raise StartupError(f"{probe.target} probe failed: {exc!r}") from exc
            last_error = exc
            logger.debug("{} not ready (attempt {}): {!r}", probe.target, attempt, exc)
            if on_retry is not None:
                on_retry(exc)
        else:
            logger.info("{} ready after {} attempt(s) in {:.2f}s", probe.target, attempt, loop.time() - started)
            return attempt

        remaining = deadline_at - loop.time()
        if remaining <= 0:
            raise StartupTimeout(probe.target, policy.deadline, last_error) from last_error
        await asyncio.sleep(policy.delay(attempt - 1, remaining))


class BrokerProbe:
    """fetches topic metadata through a fresh client per attempt"""

    def __init__(self, address: str, client_factory: Callable[[str], BrokerClientProtocol]) -> None:
        self.address = address
        self.target = f"broker {address}"
        self._client_factory = client_factory

    async def attempt(self) -> None:
        client = self._client_factory(self.address)
        try:
            await client.start()
            await client.list_topics()
        finally:
            await client.close()

    def is_transient(self, exc: BaseException) -> bool:
        # refused connections, unresolvable hosts and half-open handshakes are
        # normal while the broker boots
        if isinstance(exc, (OSError, TimeoutError, KafkaConnectionError, UnrecognizedBrokerVersion)):
            return True
        if isinstance(exc, KafkaError):
            return exc.retriable
        return False


class RegistryNotReady(Exception):
    def __init__(self, status: int) -> None:
        super().__init__(f"unexpected status {status}")
        self.status = status


class RegistryProbe:
    """expects HTTP 200 from the registry root"""

    def __init__(self, address: str, path: str = "/") -> None:
        self.url = f"http://{address}{path}"
        self.target = f"schema registry {address}"

    async def attempt(self) -> None:
        async with aiohttp.ClientSession() as session, session.get(self.url) as response:
            if response.status != 200:
                raise RegistryNotReady(response.status)

    def is_transient(self, exc: BaseException) -> bool:
        return isinstance(exc, (aiohttp.ClientError, OSError, TimeoutError, RegistryNotReady))
