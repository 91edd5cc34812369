from __future__ import annotations

import threading
from typing import TYPE_CHECKING

from loguru import logger
from packaging.version import InvalidVersion, Version
from testcontainers.core.container import DockerContainer
from testcontainers.core.network import Network
from testcontainers.core.waiting_utils import wait_for_logs
from testcontainers.kafka import KafkaContainer

from ..abc.runtime import ContainerHandle
from ..errors import StartupError
from ..types import BROKER_PORT, INTERNAL_BROKER_PORT, SCHEMA_REGISTRY_PORT

if TYPE_CHECKING:
    from ..types import Configuration

MIN_KRAFT_VERSION = Version("7.0.0")

# line the schema registry logs once its http listener is bound
REGISTRY_STARTED_LOG = "Server started, listening for requests"


def use_kraft(config: Configuration) -> bool:
    """kraft unless forced off; tags that do not parse as versions (e.g. `latest`) are assumed recent"""
    if config.kraft is not None:
        return config.kraft
    try:
        return Version(config.version.split("-", 1)[0]) >= MIN_KRAFT_VERSION
    except InvalidVersion:
        return True


class TestcontainersRuntime:
    """

    starts confluent images through testcontainers, one docker network per broker

    """

    __test__ = False

    def __init__(
        self,
        broker_image: str = "confluentinc/cp-kafka",
        registry_image: str = "confluentinc/cp-schema-registry",
        broker_alias: str = "kafka",
    ) -> None:
        self.broker_image = broker_image
        self.registry_image = registry_image
        self.broker_alias = broker_alias
        self._networks: dict[str, Network] = {}
        self._lock = threading.Lock()

    def start_broker(self, config: Configuration, name: str, timeout: float) -> ContainerHandle:
        kraft = use_kraft(config)
        image = f"{self.broker_image}:{config.version}"
        logger.info("starting broker {} ({}, {})", name, image, "kraft" if kraft else "zookeeper")

        network = Network()
        network.create()
        container = (
            KafkaContainer(image, port=config.broker_port)
            .with_name(name)
            .with_network(network)
            .with_network_aliases(self.broker_alias)
            .with_env("KAFKA_AUTO_CREATE_TOPICS_ENABLE", "false")
        )
        if kraft:
            container = container.with_kraft()

        try:
            container.start(timeout=max(1, int(timeout)))
            address = container.get_bootstrap_server()
        except Exception as exc:
            self._discard(container, network)
            raise StartupError(f"broker container {name} failed to start: {exc}") from exc

        with self._lock:
            self._networks[name] = network

        return ContainerHandle(
            name=name,
            ports={BROKER_PORT: address},
            internal_address=f"{self.broker_alias}:{INTERNAL_BROKER_PORT}",
            container=container,
        )

    def start_registry(
        self, config: Configuration, broker: ContainerHandle, name: str, timeout: float
    ) -> ContainerHandle:
        with self._lock:
            network = self._networks.get(broker.name)
        if network is None:
            raise StartupError(f"broker {broker.name} has no network; was it started by this runtime?")

        image = f"{self.registry_image}:{config.version}"
        logger.info("starting schema registry {} ({}) against {}", name, image, broker.internal_address)

        container = (
            DockerContainer(image)
            .with_name(name)
            .with_network(network)
            .with_exposed_ports(config.registry_port)
            .with_env("SCHEMA_REGISTRY_HOST_NAME", name)
            .with_env("SCHEMA_REGISTRY_LISTENERS", f"http://0.0.0.0:{config.registry_port}")
            .with_env("SCHEMA_REGISTRY_KAFKASTORE_BOOTSTRAP_SERVERS", f"PLAINTEXT://{broker.internal_address}")
        )

        try:
            container.start()
            wait_for_logs(container, REGISTRY_STARTED_LOG, timeout=max(1.0, timeout))
            host = container.get_container_host_ip()
            port = container.get_exposed_port(config.registry_port)
        except Exception as exc:
            self._discard(container, None)
            raise StartupError(f"schema registry container {name} failed to start: {exc}") from exc

        return ContainerHandle(name=name, ports={SCHEMA_REGISTRY_PORT: f"{host}:{port}"}, container=container)

    def stop(self, handle: ContainerHandle) -> None:
        with self._lock:
            network = self._networks.pop(handle.name, None)

        try:
            if handle.container is not None:
                handle.container.stop()
                logger.debug("container {} stopped", handle.name)
        finally:
            if network is not None:
                network.remove()

    def logs(self, handle: ContainerHandle) -> str:
        if handle.container is None:
            return ""
        stdout, stderr = handle.container.get_logs()
        return (stdout or b"").decode(errors="replace") + (stderr or b"").decode(errors="replace")

    def _discard(self, container: DockerContainer, network: Network | None) -> None:
        try:
            container.stop()
        except Exception as e:
            logger.warning("error discarding container: {}", e)
        if network is not None:
            try:
                network.remove()
            except Exception as e:
                logger.warning("error removing network: {}", e)
