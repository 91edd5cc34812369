from __future__ import annotations


class KPresetError(Exception):
    """base error; `teardown_error` holds a failure raised while cleaning up after this one"""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.teardown_error: BaseException | None = None


class ConfigurationError(KPresetError):
    pass


class StartupError(KPresetError):
    pass


class StartupTimeout(KPresetError):
    def __init__(self, target: str, deadline: float, last_error: BaseException | None = None) -> None:
        message = f"{target} not ready within {deadline:.1f}s"
        if last_error is not None:
            message += f"; last error: {last_error!r}"
        super().__init__(message)
        self.target = target
        self.deadline = deadline
        self.last_error = last_error


class ProvisioningError(KPresetError):
    def __init__(self, topic: str, reason: str) -> None:
        super().__init__(f"topic {topic!r}: {reason}")
        self.topic = topic
        self.reason = reason


class SeedingError(KPresetError):
    def __init__(self, topic: str, key: str, reason: str) -> None:
        super().__init__(f"publish to {topic!r} (key={key!r}) rejected: {reason}")
        self.topic = topic
        self.key = key
        self.reason = reason
