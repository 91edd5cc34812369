from __future__ import annotations

import asyncio
import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING

from loguru import logger

from ..abc.runtime import ContainerHandle, ContainerRuntimeProtocol

if TYPE_CHECKING:
    from ..types import Configuration


class ContainerLauncher:
    """
    runs blocking runtime calls on a single worker thread and records every
    container they start

    teardown is queued on the same worker, so it always runs after a start
    that is still in flight, even when the awaiting coroutine was cancelled
    """

    def __init__(self, runtime: ContainerRuntimeProtocol) -> None:
        self.runtime = runtime
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="kpreset-runtime")
        self._started: list[ContainerHandle] = []
        self._lock = threading.Lock()

    @property
    def started(self) -> list[ContainerHandle]:
        with self._lock:
            return list(self._started)

    async def start_broker(self, config: Configuration, name: str, timeout: float) -> ContainerHandle:
        return await self._launch(self.runtime.start_broker, config, name, timeout)

    async def start_registry(
        self, config: Configuration, broker: ContainerHandle, name: str, timeout: float
    ) -> ContainerHandle:
        return await self._launch(self.runtime.start_registry, config, broker, name, timeout)

    async def _launch(self, fn: Callable[..., ContainerHandle], *args: object) -> ContainerHandle:
        def call() -> ContainerHandle:
            handle = fn(*args)
            with self._lock:
                self._started.append(handle)
            return handle

        return await asyncio.get_running_loop().run_in_executor(self._executor, call)

    async def teardown(self) -> list[Exception]:
        """stop every recorded container, newest first; returns the errors raised while stopping"""

        def stop_all() -> list[Exception]:
            with self._lock:
                handles = list(reversed(self._started))
                self._started.clear()

            errors: list[Exception] = []
            for handle in handles:
                try:
                    self.runtime.stop(handle)
                except Exception as e:
                    logger.warning("failed to stop container {}: {}", handle.name, e)
                    errors.append(e)
            return errors

        return await asyncio.get_running_loop().run_in_executor(self._executor, stop_all)

    async def logs(self) -> dict[str, str]:
        def collect() -> dict[str, str]:
            out: dict[str, str] = {}
            for handle in self.started:
                try:
                    out[handle.name] = self.runtime.logs(handle)
                except Exception as e:
                    out[handle.name] = f"<logs unavailable: {e}>"
            return out

        return await asyncio.get_running_loop().run_in_executor(self._executor, collect)

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False)
