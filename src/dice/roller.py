"""Core dice rolling engine.

DiceEngine binds a random source, a roll recorder and settings together and
exposes the operations callers use: single rolls, batches, syntax checks,
fairness validation and distribution analysis.

The module-level functions build a fresh engine per call, so nothing is
shared between callers unless they share an engine or a source explicitly.
"""

import logging
import time
from collections.abc import Callable, Iterable

from src.config import Settings, get_settings
from src.dice.errors import DiceError
from src.dice.evaluator import evaluate
from src.dice.history import NullRecorder, RollRecorder
from src.dice.parser import parse_dice
from src.dice.printer import to_notation
from src.dice.random_source import RandomSource, source_from_settings
from src.dice.types import (
    DistributionSummary,
    ExpressionCheck,
    Node,
    RollResult,
    ValidationReport,
)
from src.dice.validator import summarize_distribution, validate

logger = logging.getLogger(__name__)


# Standard expression for rolling one ability score
ABILITY_SCORE_EXPRESSION = "4d6dl1"


class DiceEngine:
    """Parses and rolls dice expressions against one random source.

    Args:
        source: Random source; defaults to the one the settings select.
        recorder: Receives every finished roll; defaults to a no-op.
        settings: Engine settings; defaults to the cached environment settings.

    Examples:
        >>> engine = DiceEngine(source=SeededSource(42))
        >>> engine.roll("4d6dl1").total  # doctest: +SKIP
        13
    """

    def __init__(
        self,
        source: RandomSource | None = None,
        recorder: RollRecorder | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.source = source if source is not None else source_from_settings(self.settings)
        self.recorder = recorder if recorder is not None else NullRecorder()

    def parse(self, expression: str) -> Node:
        """Parse an expression with this engine's limits and caps.

        Raises:
            DiceLexError: If the expression contains an invalid character.
            DiceParseError: If the expression is malformed.
        """
        return parse_dice(
            expression,
            max_dice=self.settings.max_dice,
            max_sides=self.settings.max_sides,
            explosion_cap=self.settings.explosion_cap,
            reroll_cap=self.settings.reroll_cap,
        )

    def _evaluate(self, node: Node, expression: str) -> RollResult:
        result = evaluate(node, self.source, expression)
        self.recorder.record(result)
        return result

    def roll(self, expression: str) -> RollResult:
        """Parse and roll an expression.

        Args:
            expression: Dice notation (e.g., "1d20+5").

        Returns:
            RollResult with total and per-die breakdown.

        Raises:
            DiceError: If the expression is invalid or cannot be evaluated.
        """
        return self._evaluate(self.parse(expression), expression)

    def roll_batch(
        self,
        expression: str,
        n: int,
        cancelled: Callable[[], bool] | None = None,
    ) -> list[RollResult]:
        """Roll one expression ``n`` times, parsing it only once.

        Args:
            expression: Dice notation.
            n: Number of rolls (0 to ``max_batch_size``).
            cancelled: Checked before each roll; returning True stops the
                batch and returns the rolls made so far.

        Returns:
            Results in roll order.

        Raises:
            ValueError: If ``n`` is out of range.
            DiceError: If the expression is invalid or cannot be evaluated.
        """
        if not 0 <= n <= self.settings.max_batch_size:
            raise ValueError(
                f"Batch size must be between 0 and {self.settings.max_batch_size}, got {n}"
            )

        node = self.parse(expression)
        started = time.perf_counter()
        results = []
        for _ in range(n):
            if cancelled is not None and cancelled():
                logger.info("Batch of %r cancelled after %d of %d rolls", expression, len(results), n)
                break
            results.append(self._evaluate(node, expression))

        self._check_budget(started, len(results), expression)
        return results

    def roll_many(self, expressions: Iterable[str]) -> list[RollResult]:
        """Roll several expressions, parsing each distinct one once.

        Args:
            expressions: Dice notations, rolled in order.

        Returns:
            One result per expression, in the same order.

        Raises:
            DiceError: On the first invalid expression; nothing is returned
                for the ones already rolled.
        """
        parsed: dict[str, Node] = {}
        started = time.perf_counter()
        results = []
        for expression in expressions:
            if expression not in parsed:
                parsed[expression] = self.parse(expression)
            results.append(self._evaluate(parsed[expression], expression))

        self._check_budget(started, len(results), f"{len(parsed)} expressions")
        return results

    def _check_budget(self, started: float, rolls: int, label: str) -> None:
        elapsed_ms = (time.perf_counter() - started) * 1000
        if elapsed_ms > self.settings.batch_budget_ms:
            logger.warning(
                "Batch of %d rolls (%s) took %.2fms, exceeding %.1fms budget",
                rolls,
                label,
                elapsed_ms,
                self.settings.batch_budget_ms,
            )

    def roll_ability_scores(self, count: int = 6) -> list[RollResult]:
        """Roll a set of ability scores (4d6, drop lowest)."""
        return self.roll_batch(ABILITY_SCORE_EXPRESSION, count)

    def check(self, expression: str) -> ExpressionCheck:
        """Check an expression's syntax without rolling it. Never raises."""
        try:
            node = self.parse(expression)
        except DiceError as e:
            return ExpressionCheck(
                expression=expression,
                valid=False,
                error=e.message,
                position=e.position,
            )
        return ExpressionCheck(expression=expression, valid=True, notation=to_notation(node))

    def validate_fairness(
        self,
        sides: int,
        sample_size: int,
        significance: float | None = None,
    ) -> ValidationReport:
        """Chi-square test of this engine's source on one die size."""
        if significance is None:
            significance = self.settings.significance
        return validate(self.source, sides, sample_size, significance)

    def analyze(self, expression: str, iterations: int = 1000) -> DistributionSummary:
        """Roll an expression many times and summarize its totals.

        Analysis rolls are not passed to the recorder.
        """
        node = self.parse(expression)
        return summarize_distribution(node, self.source, iterations, expression)


# =============================================================================
# Module-level API
# =============================================================================


def roll(expression: str, source: RandomSource | None = None) -> RollResult:
    """Parse dice notation and roll.

    Convenience function building a one-off DiceEngine.

    Args:
        expression: Dice notation string (e.g., "2d6+3").
        source: Random source; the one the settings select by default.

    Returns:
        RollResult with total and per-die breakdown.

    Raises:
        DiceError: If the expression is invalid or cannot be evaluated.

    Examples:
        >>> result = roll("1d20+5")
        >>> 6 <= result.total <= 25
        True
    """
    return DiceEngine(source=source).roll(expression)


def roll_batch(expression: str, n: int, source: RandomSource | None = None) -> list[RollResult]:
    """Roll one expression ``n`` times against one source."""
    return DiceEngine(source=source).roll_batch(expression, n)


def validate_expression(expression: str) -> ExpressionCheck:
    """Check an expression's syntax without rolling it. Never raises."""
    return DiceEngine().check(expression)


def validate_fairness(
    sides: int,
    sample_size: int,
    source: RandomSource | None = None,
    significance: float | None = None,
) -> ValidationReport:
    """Chi-square fairness test of a source (the settings' source by default)."""
    return DiceEngine(source=source).validate_fairness(sides, sample_size, significance)


def analyze_expression(
    expression: str,
    iterations: int = 1000,
    source: RandomSource | None = None,
) -> DistributionSummary:
    """Summarize the distribution of an expression's total over many rolls."""
    return DiceEngine(source=source).analyze(expression, iterations)
