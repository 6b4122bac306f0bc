"""Injectable randomness.

Every random draw in the engine goes through an object matching the RNG
protocol, so tests can fix outcome rolls and production can pick the source:

    SecureRNG  — backed by secrets.SystemRandom. Used for outcome rolls and
                 story selection, where players must not be able to predict
                 or replay results.
    SeededRNG  — backed by random.Random. Reproducible; fine for narrative
                 flavor numbers and for tests.
"""

from __future__ import annotations

import random
import secrets
from collections.abc import Sequence
from typing import Protocol, TypeVar

T = TypeVar("T")


class RNG(Protocol):
    def randint(self, a: int, b: int) -> int: ...

    def random(self) -> float: ...

    def choice(self, seq: Sequence[T]) -> T: ...


class SecureRNG:
    """Unpredictable RNG for fairness-sensitive draws."""

    def __init__(self) -> None:
        self._rand = secrets.SystemRandom()

    def randint(self, a: int, b: int) -> int:
        return self._rand.randint(a, b)

    def random(self) -> float:
        return self._rand.random()

    def choice(self, seq: Sequence[T]) -> T:
        return self._rand.choice(seq)


class SeededRNG:
    """Deterministic RNG; the same seed yields the same sequence."""

    def __init__(self, seed: int | None = None) -> None:
        self.seed = seed
        self._rand = random.Random(seed)

    def randint(self, a: int, b: int) -> int:
        return self._rand.randint(a, b)

    def random(self) -> float:
        return self._rand.random()

    def choice(self, seq: Sequence[T]) -> T:
        return self._rand.choice(seq)
