"""Tests for random sources."""

import threading

import pytest

from src.config import Settings
from src.dice.errors import RngExhaustedError
from src.dice.random_source import (
    WORD_RANGE,
    RandomSource,
    RejectionSampler,
    ReplaySource,
    SecureSource,
    SeededSource,
    source_from_settings,
)


class ScriptedWords(RejectionSampler):
    """Sampler fed from a fixed list of 32-bit words."""

    def __init__(self, words):
        self.words = list(words)
        self.consumed = 0

    def next_word(self):
        word = self.words[self.consumed]
        self.consumed += 1
        return word


class TestRejectionSampler:
    """Tests for bias-free range reduction."""

    def test_maps_word_into_range(self):
        """Test a word below the limit is reduced modulo the span."""
        sampler = ScriptedWords([7])
        assert sampler.next_in_range(1, 6) == 2  # 7 % 6 + 1

    def test_rejects_words_in_biased_tail(self):
        """Test words at or above the largest multiple of the span are redrawn."""
        limit = WORD_RANGE - WORD_RANGE % 6
        sampler = ScriptedWords([limit, WORD_RANGE - 1, 0])
        assert sampler.next_in_range(1, 6) == 1
        assert sampler.consumed == 3

    def test_power_of_two_span_never_rejects(self):
        """Test spans dividing 2**32 accept every word."""
        sampler = ScriptedWords([WORD_RANGE - 1])
        assert sampler.next_in_range(1, 8) == 8
        assert sampler.consumed == 1

    def test_single_value_range(self):
        """Test a range of one value."""
        assert ScriptedWords([123456]).next_in_range(1, 1) == 1

    def test_empty_range(self):
        """Test high below low is rejected."""
        with pytest.raises(ValueError, match="Empty range"):
            ScriptedWords([0]).next_in_range(5, 4)

    def test_abstract_word(self):
        """Test the base class has no word source."""
        with pytest.raises(NotImplementedError):
            RejectionSampler().next_in_range(1, 6)


class TestSecureSource:
    """Tests for the OS-backed source."""

    def test_values_in_range(self):
        """Test every value lands within the requested range."""
        source = SecureSource()
        values = [source.next_in_range(1, 20) for _ in range(2000)]
        assert min(values) >= 1
        assert max(values) <= 20

    def test_covers_all_faces(self):
        """Test a d6 shows every face over many draws."""
        source = SecureSource()
        assert {source.next_in_range(1, 6) for _ in range(600)} == {1, 2, 3, 4, 5, 6}

    def test_satisfies_protocol(self):
        """Test runtime protocol check."""
        assert isinstance(SecureSource(), RandomSource)


class TestSeededSource:
    """Tests for the deterministic source."""

    def test_same_seed_same_sequence(self):
        """Test two sources with one seed agree."""
        a, b = SeededSource(7), SeededSource(7)
        assert [a.next_in_range(1, 100) for _ in range(50)] == [
            b.next_in_range(1, 100) for _ in range(50)
        ]

    def test_different_seeds_differ(self):
        """Test different seeds give different sequences."""
        a, b = SeededSource(1), SeededSource(2)
        assert [a.next_in_range(1, 1000) for _ in range(20)] != [
            b.next_in_range(1, 1000) for _ in range(20)
        ]

    def test_reset_rewinds(self):
        """Test reset replays from the seed."""
        source = SeededSource(99)
        first = [source.next_in_range(1, 20) for _ in range(10)]
        assert source.draws == 10
        source.reset()
        assert source.draws == 0
        assert [source.next_in_range(1, 20) for _ in range(10)] == first

    def test_independent_of_global_random(self):
        """Test the module-level random state does not leak in."""
        import random

        a = SeededSource(5)
        random.seed(0)
        first = a.next_in_range(1, 100)
        b = SeededSource(5)
        random.seed(12345)
        assert b.next_in_range(1, 100) == first

    def test_thread_safe_draw_count(self):
        """Test concurrent draws are all counted."""
        source = SeededSource(3)

        def work():
            for _ in range(500):
                source.next_in_range(1, 6)

        threads = [threading.Thread(target=work) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        assert source.draws == 2000

    def test_repr(self):
        """Test repr shows the seed."""
        assert repr(SeededSource(11)) == "SeededSource(seed=11)"


class TestReplaySource:
    """Tests for scripted values."""

    def test_replays_in_order(self):
        """Test values come back in order."""
        source = ReplaySource([2, 5, 6])
        assert [source.next_in_range(1, 6) for _ in range(3)] == [2, 5, 6]
        assert source.remaining == 0

    def test_exhausted(self):
        """Test running out raises."""
        source = ReplaySource([1])
        source.next_in_range(1, 6)
        with pytest.raises(RngExhaustedError, match="ran out"):
            source.next_in_range(1, 6)

    def test_out_of_range_values_passed_through(self):
        """Test replay does not clamp; the evaluator enforces the range."""
        assert ReplaySource([9]).next_in_range(1, 6) == 9

    def test_satisfies_protocol(self):
        """Test runtime protocol check."""
        assert isinstance(ReplaySource([]), RandomSource)


class TestSourceFromSettings:
    """Tests for picking a source from settings."""

    def test_secure_by_default(self):
        """Test no seed selects the secure source."""
        assert isinstance(source_from_settings(Settings(_env_file=None, seed=None)), SecureSource)

    def test_seed_selects_seeded(self):
        """Test a seed selects a seeded source."""
        source = source_from_settings(Settings(_env_file=None, seed=42))
        assert isinstance(source, SeededSource)
        assert source.seed == 42
