"""Roll recorder protocol and implementations.

The engine calls ``record`` once per finished roll and otherwise keeps no
history. Collaborators decide what to do with the results: drop them, keep a
bounded log for replay lookups, or forward them to their own storage.
"""

import threading
from collections import deque
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from src.config import get_settings
from src.dice.types import RollResult


@runtime_checkable
class RollRecorder(Protocol):
    """Protocol for receiving finished rolls."""

    def record(self, result: RollResult) -> None:
        """Called after every successful roll."""
        ...


class NullRecorder:
    """No-op recorder for when history is not wanted."""

    def record(self, result: RollResult) -> None:
        pass


@dataclass(frozen=True)
class DieStatistics:
    """Aggregate of every die of one size seen by a history."""

    sides: int
    count: int
    mean: float
    natural_max: int
    natural_min: int

    @property
    def theoretical_mean(self) -> float:
        return (self.sides + 1) / 2


@dataclass(frozen=True)
class HistoryStatistics:
    """Snapshot of a history's counters."""

    total_rolls: int
    by_sides: dict[int, DieStatistics] = field(default_factory=dict)


class RollHistory:
    """Bounded in-memory roll log.

    Keeps the most recent ``max_size`` results (``history_size`` from the
    settings by default) for lookups by id, and tracks per-die-size
    counters over everything recorded since the last clear, including
    results that have since been evicted.

    Example:
        >>> history = RollHistory(max_size=100)
        >>> engine = DiceEngine(recorder=history)
        >>> result = engine.roll("1d20")
        >>> history.find(result.roll_id) is result
        True
    """

    def __init__(self, max_size: int | None = None) -> None:
        if max_size is None:
            max_size = get_settings().history_size
        if max_size < 1:
            raise ValueError(f"History size must be positive, got {max_size}")
        self.max_size = max_size
        self._results: deque[RollResult] = deque(maxlen=max_size)
        self._lock = threading.Lock()
        self._total_rolls = 0
        self._die_counts: dict[int, int] = {}
        self._die_sums: dict[int, int] = {}
        self._natural_max: dict[int, int] = {}
        self._natural_min: dict[int, int] = {}

    def record(self, result: RollResult) -> None:
        with self._lock:
            self._results.append(result)
            self._total_rolls += 1
            for die in result.dice:
                self._die_counts[die.sides] = self._die_counts.get(die.sides, 0) + 1
                self._die_sums[die.sides] = self._die_sums.get(die.sides, 0) + die.value
                if die.is_natural_max:
                    self._natural_max[die.sides] = self._natural_max.get(die.sides, 0) + 1
                if die.is_natural_min:
                    self._natural_min[die.sides] = self._natural_min.get(die.sides, 0) + 1

    def recent(self, limit: int = 10) -> list[RollResult]:
        """Most recent results, newest first."""
        with self._lock:
            items = list(self._results)
        return items[::-1][:limit]

    def find(self, roll_id: str) -> RollResult | None:
        """Look up a retained result by id."""
        with self._lock:
            for result in reversed(self._results):
                if result.roll_id == roll_id:
                    return result
        return None

    def clear(self) -> None:
        """Forget all results and reset the counters."""
        with self._lock:
            self._results.clear()
            self._total_rolls = 0
            self._die_counts.clear()
            self._die_sums.clear()
            self._natural_max.clear()
            self._natural_min.clear()

    def statistics(self) -> HistoryStatistics:
        with self._lock:
            by_sides = {
                sides: DieStatistics(
                    sides=sides,
                    count=count,
                    mean=self._die_sums[sides] / count,
                    natural_max=self._natural_max.get(sides, 0),
                    natural_min=self._natural_min.get(sides, 0),
                )
                for sides, count in sorted(self._die_counts.items())
            }
            return HistoryStatistics(total_rolls=self._total_rolls, by_sides=by_sides)

    def __len__(self) -> int:
        return len(self._results)
