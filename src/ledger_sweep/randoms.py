"""Random draws backed by the OS entropy pool.

Amounts and delays must not be predictable from earlier draws, so everything
here goes through ``random.SystemRandom`` rather than the module-level
Mersenne Twister.
"""
import random
from collections.abc import Sequence
from typing import TypeVar

T = TypeVar("T")

_rng = random.SystemRandom()


def secure_random() -> random.Random:
    return _rng


def randrange(start: int, stop: int | None = None) -> int:
    return _rng.randrange(start, stop)


def randint(a: int, b: int) -> int:
    return _rng.randint(a, b)


def uniform(a: float, b: float) -> float:
    return _rng.uniform(a, b)


def choice(seq: Sequence[T]) -> T:
    return _rng.choice(seq)


def sample(seq: Sequence[T], k: int) -> list[T]:
    return _rng.sample(seq, k)
