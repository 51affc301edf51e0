"""
Random Source
=============

The injected random-number capability used by the dice evaluator.

The evaluator never calls the ``random`` module directly. It asks a
RandomSource for each die, one draw at a time:

    value = source.next_int(1, sides)    # inclusive at both ends

Two implementations ship with the package:

    SystemRandomSource     Mersenne Twister via random.Random. Optionally
                           seeded, so a whole session can be replayed.
    ScriptedRandomSource   Replays a fixed sequence of values. Used by the
                           tests to pin every die to a known face.

Each evaluation gets its own instance. The draw cursor inside a source
only moves forward, and two evaluations sharing one source would race
on it.
"""

from __future__ import annotations

import random
from abc import ABC, abstractmethod
from typing import Callable, Iterable, Optional


class RangeError(ValueError):
    """Raised when a draw is requested with low > high.

    A correct parser never produces such a request, so seeing this
    means a bug upstream.
    """


class ExhaustedError(RuntimeError):
    """Raised when a ScriptedRandomSource runs out of values."""


class RandomSource(ABC):
    """Produces uniformly distributed integers in a closed range."""

    def next_int(self, low: int, high: int) -> int:
        """Draw one integer in [low, high].

        Raises
        ------
        RangeError
            If low > high.
        """
        if low > high:
            raise RangeError(f"Invalid range: low {low} is greater than high {high}")
        return self._draw(low, high)

    @abstractmethod
    def _draw(self, low: int, high: int) -> int:
        ...


class SystemRandomSource(RandomSource):
    """Pseudo-random source backed by random.Random.

    Adequate for gaming. Not suitable where fairness has to be proven
    to an adversary.
    """

    def __init__(self, seed: Optional[int] = None):
        self.seed = seed
        self._rng = random.Random(seed)

    def _draw(self, low: int, high: int) -> int:
        return self._rng.randint(low, high)


class ScriptedRandomSource(RandomSource):
    """Deterministic test double that replays a supplied sequence.

    >>> source = ScriptedRandomSource([4, 2])
    >>> source.next_int(1, 6), source.next_int(1, 6)
    (4, 2)
    """

    def __init__(self, values: Iterable[int]):
        self._values = tuple(values)
        self._cursor = 0

    @property
    def remaining(self) -> int:
        """Number of scripted values not yet drawn."""
        return len(self._values) - self._cursor

    def _draw(self, low: int, high: int) -> int:
        if self._cursor >= len(self._values):
            raise ExhaustedError(
                f"Scripted random source exhausted after {len(self._values)} draws"
            )
        value = self._values[self._cursor]
        if not low <= value <= high:
            raise RangeError(
                f"Scripted value {value} at draw {self._cursor + 1} "
                f"is outside [{low}, {high}]"
            )
        self._cursor += 1
        return value


def seeded_factory(seed: Optional[int] = None) -> Callable[[], RandomSource]:
    """Factory handing out a fresh SystemRandomSource per evaluation.

    Without a seed every source is independently seeded by the OS.
    With a seed, a master generator derives each source's seed, so a
    whole session of rolls replays identically.
    """
    if seed is None:
        return SystemRandomSource

    master = random.Random(seed)

    def factory() -> RandomSource:
        return SystemRandomSource(master.getrandbits(64))

    return factory
