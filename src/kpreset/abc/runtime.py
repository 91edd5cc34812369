from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import msgspec

if TYPE_CHECKING:
    from ..types import Configuration


class ContainerHandle(msgspec.Struct, frozen=True):
    name: str
    # named port -> host:port reachable from the caller
    ports: dict[str, str]
    # host:port reachable from sibling containers
    internal_address: str | None = None
    container: Any = None

    def address(self, port: str) -> str:
        try:
            return self.ports[port]
        except KeyError:
            raise KeyError(f"container {self.name} exposes no port named {port!r}") from None


class ContainerRuntimeProtocol(Protocol):
    """Blocking container operations; callers run them off the event loop."""

    def start_broker(self, config: Configuration, name: str, timeout: float) -> ContainerHandle: ...

    def start_registry(
        self, config: Configuration, broker: ContainerHandle, name: str, timeout: float
    ) -> ContainerHandle: ...

    def stop(self, handle: ContainerHandle) -> None: ...

    def logs(self, handle: ContainerHandle) -> str: ...
