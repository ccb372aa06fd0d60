"""Outcome sources for simulated behavior.

Every random draw in phaseops (failure chance, duration jitter, placeholder
dependency readiness, dashboard perturbations) goes through an OutcomeSource
so runs can be made reproducible.
"""

import random
from collections.abc import Iterable
from typing import Protocol


class OutcomeSource(Protocol):
    """Source of uniformly distributed draws."""

    def random(self) -> float:
        """Return a float in [0.0, 1.0)."""
        ...

    def uniform(self, low: float, high: float) -> float:
        """Return a float between low and high."""
        ...


class RandomOutcomeSource:
    """OutcomeSource backed by random.Random.

    Args:
        seed: Optional seed for a reproducible sequence
    """

    def __init__(self, seed: int | None = None) -> None:
        self._rng = random.Random(seed)

    def random(self) -> float:
        return self._rng.random()

    def uniform(self, low: float, high: float) -> float:
        return self._rng.uniform(low, high)


class ScriptedOutcomeSource:
    """Deterministic OutcomeSource that replays a fixed list of draws.

    Draws are consumed in order; once the script is exhausted every further
    draw returns ``default``. ``uniform`` maps the next draw onto the range.

    Example:
        >>> source = ScriptedOutcomeSource([0.9, 0.01])
        >>> source.random()
        0.9
        >>> source.uniform(0, 10)
        0.1
        >>> source.random()
        0.5
    """

    def __init__(self, values: Iterable[float] = (), default: float = 0.5) -> None:
        self._values = list(values)
        self._index = 0
        self.default = default

    @property
    def draws(self) -> int:
        """Number of draws taken so far."""
        return self._index

    def random(self) -> float:
        if self._index < len(self._values):
            value = self._values[self._index]
        else:
            value = self.default
        self._index += 1
        return value

    def uniform(self, low: float, high: float) -> float:
        return low + (high - low) * self.random()
