from __future__ import annotations

from collections.abc import Callable

from loguru import logger

from .abc.runtime import ContainerHandle
from .containers.launcher import ContainerLauncher
from .errors import KPresetError, StartupError
from .readiness import RegistryProbe, wait_until_ready
from .retry import ProbePolicy
from .types import SCHEMA_REGISTRY_PORT, Configuration


class RegistryCoordinator:
    """starts the schema registry next to a running broker and waits for its http endpoint"""

    def __init__(
        self,
        launcher: ContainerLauncher,
        policy: ProbePolicy,
        on_retry: Callable[[BaseException], None] | None = None,
    ) -> None:
        self.launcher = launcher
        self.policy = policy
        self.on_retry = on_retry

    async def run(self, config: Configuration, broker: ContainerHandle, name: str) -> ContainerHandle:
        try:
            handle = await self.launcher.start_registry(config, broker, name, self.policy.deadline)
        except KPresetError:
            raise
        except Exception as exc:
            raise StartupError(f"schema registry container {name} failed to start: {exc}") from exc

        address = handle.address(SCHEMA_REGISTRY_PORT)
        logger.debug("schema registry {} mapped to {}", name, address)

        await wait_until_ready(RegistryProbe(address), self.policy, self.on_retry)
        return handle
