"""Random sources for dice rolling.

The engine never calls a global random function: every roll draws from a
source passed in by the caller. Secure and seeded sources share one
rejection sampler over 32-bit words, so statistical tests written against
one apply to the other.
"""

import logging
import random
import secrets
import threading
from collections.abc import Iterable
from typing import Protocol, runtime_checkable

from src.config import Settings
from src.dice.errors import RngExhaustedError

logger = logging.getLogger(__name__)


WORD_BITS = 32
WORD_RANGE = 1 << WORD_BITS


@runtime_checkable
class RandomSource(Protocol):
    """Protocol for uniform integer providers."""

    def next_in_range(self, low: int, high: int) -> int:
        """Return a uniformly distributed integer in ``[low, high]``."""
        ...


class RejectionSampler:
    """Uniform integers from a stream of 32-bit words, without modulo bias.

    Words at or above the largest multiple of the span are rejected and
    redrawn before reducing modulo the span.
    """

    name = "abstract"

    def next_word(self) -> int:
        """Return a uniformly distributed 32-bit word."""
        raise NotImplementedError

    def next_in_range(self, low: int, high: int) -> int:
        if high < low:
            raise ValueError(f"Empty range [{low}, {high}]")
        span = high - low + 1
        if span > WORD_RANGE:
            raise ValueError(f"Range [{low}, {high}] exceeds {WORD_BITS} bits")

        limit = WORD_RANGE - (WORD_RANGE % span)
        while True:
            word = self.next_word()
            if word < limit:
                return low + word % span


class SecureSource(RejectionSampler):
    """Source backed by the operating system's CSPRNG."""

    name = "secure"

    def next_word(self) -> int:
        return secrets.randbits(WORD_BITS)

    def __repr__(self) -> str:
        return "SecureSource()"


class SeededSource(RejectionSampler):
    """Deterministic source for tests and replaying sessions.

    Wraps a private Mersenne Twister, so the same seed and the same sequence
    of expressions reproduce the same results. A lock keeps draws atomic when
    one instance is shared between threads; the interleaving of concurrent
    callers is still up to the scheduler, so give each worker its own source
    when reproducibility matters.

    Attributes:
        seed: The seed the generator was created from.
        draws: Number of values handed out since the last reset.
    """

    name = "seeded"

    def __init__(self, seed: int) -> None:
        self.seed = seed
        self.draws = 0
        self._random = random.Random(seed)
        self._lock = threading.Lock()

    def next_word(self) -> int:
        return self._random.getrandbits(WORD_BITS)

    def next_in_range(self, low: int, high: int) -> int:
        with self._lock:
            value = super().next_in_range(low, high)
            self.draws += 1
            return value

    def reset(self) -> None:
        """Rewind the generator to its seed."""
        with self._lock:
            self._random.seed(self.seed)
            self.draws = 0

    def __repr__(self) -> str:
        return f"SeededSource(seed={self.seed})"


class ReplaySource:
    """Replays recorded die values in order.

    Scripts exact dice, mainly for tests. Values are consumed in draw order,
    which is not the order dice are listed in a result: a term draws all its
    initial dice first, then each modifier draws in written order. Rerolled
    values and explosion dice (listed right after the die that exploded)
    therefore come after every initial die of their term, and a result's
    die values replay it only when nothing was rerolled or exploded.

    Values are handed out as-is; the evaluator rejects any that fall outside
    the requested range.

    Example:
        >>> source = ReplaySource([2, 5, 6, 3])
        >>> source.next_in_range(1, 6)
        2
    """

    name = "replay"

    def __init__(self, values: Iterable[int]) -> None:
        self._values = list(values)
        self._index = 0

    @property
    def remaining(self) -> int:
        return len(self._values) - self._index

    def next_in_range(self, low: int, high: int) -> int:
        if self._index >= len(self._values):
            raise RngExhaustedError(
                None,
                high,
                message=f"Replay source ran out of values after {len(self._values)} draws",
            )
        value = self._values[self._index]
        self._index += 1
        return value

    def __repr__(self) -> str:
        return f"ReplaySource(remaining={self.remaining})"


def source_from_settings(settings: Settings) -> RandomSource:
    """Build the source the settings ask for.

    Args:
        settings: Engine settings; ``seed`` selects deterministic mode.

    Returns:
        SeededSource when a seed is configured, SecureSource otherwise.
    """
    if settings.seed is not None:
        logger.debug("Using seeded random source (seed=%s)", settings.seed)
        return SeededSource(settings.seed)
    return SecureSource()
