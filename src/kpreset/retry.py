from __future__ import annotations

import random

import msgspec
from msgspec import structs


class ExponentialBackoff(msgspec.Struct, frozen=True):
    base: float = 0.5
    factor: float = 2.0
    max_delay: float = 5.0
    jitter: bool = True

    def calculate_delay(self, attempt: int) -> float:
        delay = min(self.base * self.factor**attempt, self.max_delay)
        if self.jitter:
            delay *= random.uniform(0.5, 1.5)
        return delay


class FixedDelayBackoff(msgspec.Struct, frozen=True):
    delay: float = 0.5

    def calculate_delay(self, attempt: int) -> float:
        return self.delay


class LinearBackoff(msgspec.Struct, frozen=True):
    base: float = 0.5
    increment: float = 0.5
    max_delay: float = 5.0

    def calculate_delay(self, attempt: int) -> float:
        return min(self.base + (self.increment * attempt), self.max_delay)


class ProbePolicy(msgspec.Struct, frozen=True):
    deadline: float = 300.0
    backoff: ExponentialBackoff | FixedDelayBackoff | LinearBackoff = FixedDelayBackoff()
    attempt_timeout: float = 10.0

    def delay(self, attempt: int, remaining: float) -> float:
        """delay before the next attempt, never past the deadline"""
        return max(0.0, min(self.backoff.calculate_delay(attempt), remaining))

    def with_deadline(self, deadline: float) -> ProbePolicy:
        return structs.replace(self, deadline=deadline)
