from __future__ import annotations

import asyncio
import contextlib
from collections.abc import AsyncIterator, Callable
from datetime import UTC, datetime
from typing import TypeAlias

from loguru import logger
from ulid import ULID

from .abc.client import BrokerClientProtocol
from .abc.runtime import ContainerHandle, ContainerRuntimeProtocol
from .clients.kafka import AIOKafkaBrokerClient
from .containers.launcher import ContainerLauncher
from .errors import KPresetError, StartupError, StartupTimeout
from .readiness import BrokerProbe, wait_until_ready
from .retry import FixedDelayBackoff, ProbePolicy
from .seeding import SeedPublisher
from .sidecar import RegistryCoordinator
from .topics import TopicProvisioner
from .types import BROKER_PORT, SCHEMA_REGISTRY_PORT, Configuration, ProvisionState

ClientFactory: TypeAlias = Callable[[str], BrokerClientProtocol]

_TRANSITIONS: dict[ProvisionState, set[ProvisionState]] = {
    ProvisionState.CREATED: {ProvisionState.STARTING},
    ProvisionState.STARTING: {ProvisionState.PROBING_BROKER},
    ProvisionState.PROBING_BROKER: {ProvisionState.PROVISIONING_TOPICS},
    ProvisionState.PROVISIONING_TOPICS: {ProvisionState.SEEDING_MESSAGES},
    ProvisionState.SEEDING_MESSAGES: {ProvisionState.PROBING_REGISTRY, ProvisionState.READY},
    ProvisionState.PROBING_REGISTRY: {ProvisionState.READY},
    ProvisionState.READY: set(),
    ProvisionState.FAILED: set(),
}


def _primary_error(eg: BaseExceptionGroup) -> BaseException:
    """first non-cancellation leaf of an exception group"""
    pending: list[BaseException] = [eg]
    while pending:
        exc = pending.pop(0)
        if isinstance(exc, BaseExceptionGroup):
            pending[:0] = list(exc.exceptions)
        elif not isinstance(exc, asyncio.CancelledError):
            return exc
    return eg


class ProvisionedInstance:
    def __init__(
        self,
        name: str,
        ports: dict[str, str],
        launcher: ContainerLauncher,
        client_factory: ClientFactory,
    ) -> None:
        self.name = name
        self.ports = ports
        self.ready_since = datetime.now(UTC)
        self._launcher = launcher
        self._client_factory = client_factory
        self._stopped = False

    @property
    def address(self) -> str:
        return self.ports[BROKER_PORT]

    @property
    def registry_address(self) -> str | None:
        return self.ports.get(SCHEMA_REGISTRY_PORT)

    @property
    def stopped(self) -> bool:
        return self._stopped

    def address_of(self, port: str) -> str:
        try:
            return self.ports[port]
        except KeyError:
            raise KeyError(f"instance {self.name} exposes no port named {port!r}") from None

    @contextlib.asynccontextmanager
    async def client(self) -> AsyncIterator[BrokerClientProtocol]:
        client = self._client_factory(self.address)
        await client.start()
        try:
            yield client
        finally:
            await client.close()

    async def list_topics(self) -> set[str]:
        async with self.client() as client:
            return await client.list_topics()

    async def delete_topics(self, *names: str) -> None:
        async with self.client() as client:
            await TopicProvisioner(client).delete(*names)

    async def stop(self) -> None:
        if self._stopped:
            return
        self._stopped = True

        logger.info("stopping instance {}", self.name)
        errors = await self._launcher.teardown()
        self._launcher.shutdown()

        if errors:
            raise KPresetError(f"failed to stop instance {self.name}: {errors[0]}") from errors[0]

    async def __aenter__(self) -> ProvisionedInstance:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()

    def __repr__(self) -> str:
        return f"ProvisionedInstance(name={self.name!r}, ports={self.ports!r})"


class Orchestrator:
    """
    single pass from a Configuration to a ready broker

    created -> starting -> probing_broker -> provisioning_topics -> seeding_messages
    -> [probing_registry] -> ready; any failure moves to `failed` and stops every
    container started so far. when the registry is enabled it is started and probed
    concurrently with topic provisioning and seeding, and either side failing cancels
    the other
    """

    def __init__(
        self,
        config: Configuration,
        *,
        name: str | None = None,
        timeout: float = 600.0,
        probe_policy: ProbePolicy | None = None,
        runtime: ContainerRuntimeProtocol | None = None,
        client_factory: ClientFactory | None = None,
        debug: bool = False,
    ) -> None:
        if runtime is None:
            from .containers.confluent import TestcontainersRuntime

            runtime = TestcontainersRuntime()

        self.config = config
        self.name = name or f"kpreset-{str(ULID()).lower()}"
        self.timeout = timeout
        self.probe_policy = probe_policy or ProbePolicy(deadline=timeout, backoff=FixedDelayBackoff(0.5))
        self.runtime = runtime
        self.client_factory: ClientFactory = client_factory or AIOKafkaBrokerClient
        self.debug = debug

        self.state = ProvisionState.CREATED
        self.history: list[ProvisionState] = [ProvisionState.CREATED]
        self.failed_in: ProvisionState | None = None
        self.last_probe_error: BaseException | None = None

    def _transition(self, state: ProvisionState) -> None:
        if state is ProvisionState.FAILED:
            if self.state in (ProvisionState.READY, ProvisionState.FAILED):
                raise RuntimeError(f"cannot fail from terminal state {self.state}")
            self.failed_in = self.state
        elif state not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"illegal transition {self.state} -> {state}")

        logger.info("{}: {} -> {}", self.name, self.state, state)
        self.state = state
        self.history.append(state)

    async def run(self) -> ProvisionedInstance:
        if self.state is not ProvisionState.CREATED:
            raise RuntimeError(f"orchestrator {self.name} already ran (state {self.state})")

        launcher = ContainerLauncher(self.runtime)
        scope = asyncio.timeout(self.timeout)

        try:
            try:
                async with scope:
                    ports = await self._provision(launcher, scope.when())
            except TimeoutError as exc:
                if scope.expired():
                    raise StartupTimeout(
                        f"provisioning of {self.name}", self.timeout, self.last_probe_error
                    ) from exc
                raise
        except BaseException as exc:
            await self._fail(launcher, exc)
            raise

        self._transition(ProvisionState.READY)
        return ProvisionedInstance(self.name, ports, launcher, self.client_factory)

    def _probe_policy(self, deadline_at: float) -> ProbePolicy:
        remaining = deadline_at - asyncio.get_running_loop().time()
        return self.probe_policy.with_deadline(max(0.0, min(self.probe_policy.deadline, remaining)))

    def _record_probe_error(self, exc: BaseException) -> None:
        self.last_probe_error = exc

    async def _provision(self, launcher: ContainerLauncher, deadline_at: float) -> dict[str, str]:
        config = self.config
        loop = asyncio.get_running_loop()

        self._transition(ProvisionState.STARTING)
        try:
            broker = await launcher.start_broker(config, self.name, deadline_at - loop.time())
        except StartupError:
            raise
        except Exception as exc:
            raise StartupError(f"broker container {self.name} failed to start: {exc}") from exc

        address = broker.address(BROKER_PORT)
        ports = {BROKER_PORT: address}

        self._transition(ProvisionState.PROBING_BROKER)
        await wait_until_ready(
            BrokerProbe(address, self.client_factory), self._probe_policy(deadline_at), self._record_probe_error
        )
        self.last_probe_error = None

        registry_task: asyncio.Task[ContainerHandle] | None = None
        client = self.client_factory(address)
        try:
            await client.start()
        except Exception as exc:
            raise StartupError(f"cannot connect to broker {address}: {exc}") from exc

        try:
            async with asyncio.TaskGroup() as tg:
                if config.schema_registry:
                    coordinator = RegistryCoordinator(
                        launcher, self._probe_policy(deadline_at), self._record_probe_error
                    )
                    registry_task = tg.create_task(
                        coordinator.run(config, broker, f"{self.name}-registry"), name="registry"
                    )

                await self._seed(client)

                if registry_task is not None:
                    self._transition(ProvisionState.PROBING_REGISTRY)
        except BaseExceptionGroup as eg:
            raise _primary_error(eg)
        finally:
            await client.close()

        if registry_task is not None:
            ports[SCHEMA_REGISTRY_PORT] = registry_task.result().address(SCHEMA_REGISTRY_PORT)

        return ports

    async def _seed(self, client: BrokerClientProtocol) -> None:
        self._transition(ProvisionState.PROVISIONING_TOPICS)
        await TopicProvisioner(client).provision(self.config.resolved_topics)

        self._transition(ProvisionState.SEEDING_MESSAGES)
        await SeedPublisher(client).publish(self.config.all_messages)

    async def _fail(self, launcher: ContainerLauncher, exc: BaseException) -> None:
        if self.state not in (ProvisionState.READY, ProvisionState.FAILED):
            self._transition(ProvisionState.FAILED)

        if isinstance(exc, asyncio.CancelledError):
            logger.warning("{}: provisioning cancelled in state {}", self.name, self.failed_in)
        else:
            logger.error("{}: provisioning failed in state {}: {}", self.name, self.failed_in, exc)

        if self.debug:
            for container, text in (await launcher.logs()).items():
                logger.debug("logs of {}:\n{}", container, text)

        errors = await launcher.teardown()
        launcher.shutdown()

        if errors:
            if isinstance(exc, KPresetError):
                exc.teardown_error = errors[0]
            exc.add_note(f"teardown also failed: {errors[0]!r}")


async def start(
    config: Configuration,
    *,
    name: str | None = None,
    timeout: float = 600.0,
    probe_interval: float = 0.5,
    runtime: ContainerRuntimeProtocol | None = None,
    client_factory: ClientFactory | None = None,
    debug: bool = False,
) -> ProvisionedInstance:
    """
    start a broker for `config` and return it once topics and seed messages are in place

    :param name: container name; the registry container gets a `-registry` suffix
    :param timeout: overall budget in seconds for startup, probing, topics and seeding
    :param probe_interval: delay between readiness attempts
    :param runtime: container runtime; testcontainers + docker by default
    :param client_factory: builds a broker client from a `host:port`; aiokafka by default
    :param debug: log container output when provisioning fails
    :raises KPresetError: any provisioning failure; nothing is left running
    """
    orchestrator = Orchestrator(
        config,
        name=name,
        timeout=timeout,
        probe_policy=ProbePolicy(deadline=timeout, backoff=FixedDelayBackoff(probe_interval)),
        runtime=runtime,
        client_factory=client_factory,
        debug=debug,
    )
    return await orchestrator.run()


async def stop(instance: ProvisionedInstance) -> None:
    await instance.stop()


@contextlib.asynccontextmanager
async def provision(config: Configuration, **kwargs) -> AsyncIterator[ProvisionedInstance]:
    instance = await start(config, **kwargs)
    try:
        yield instance
    finally:
        await instance.stop()
