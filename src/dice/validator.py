"""Statistical validation of random sources.

Pearson's chi-square goodness-of-fit test against a uniform distribution.
This runs from the test suite and from health checks, never on the per-roll
path: cost is linear in the sample size.
"""

import logging
import math
import statistics

from src.dice.evaluator import evaluate
from src.dice.random_source import RandomSource
from src.dice.types import DistributionSummary, Node, ValidationReport

logger = logging.getLogger(__name__)


DEFAULT_SIGNIFICANCE = 0.01
STANDARD_DICE = (4, 6, 8, 10, 12, 20, 100)

_MAX_ITERATIONS = 500
_EPSILON = 1e-14
_TINY = 1e-300


def _lower_gamma_series(a: float, x: float) -> float:
    """Regularized lower incomplete gamma P(a, x), series form (x < a + 1)."""
    term = 1.0 / a
    total = term
    denominator = a
    for _ in range(_MAX_ITERATIONS):
        denominator += 1.0
        term *= x / denominator
        total += term
        if abs(term) < abs(total) * _EPSILON:
            break
    return total * math.exp(-x + a * math.log(x) - math.lgamma(a))


def _upper_gamma_fraction(a: float, x: float) -> float:
    """Regularized upper incomplete gamma Q(a, x), continued fraction (x >= a + 1)."""
    # Modified Lentz evaluation
    b = x + 1.0 - a
    c = 1.0 / _TINY
    d = 1.0 / b
    h = d
    for i in range(1, _MAX_ITERATIONS):
        an = -i * (i - a)
        b += 2.0
        d = an * d + b
        if abs(d) < _TINY:
            d = _TINY
        c = b + an / c
        if abs(c) < _TINY:
            c = _TINY
        d = 1.0 / d
        delta = d * c
        h *= delta
        if abs(delta - 1.0) < _EPSILON:
            break
    return math.exp(-x + a * math.log(x) - math.lgamma(a)) * h


def chi_square_p_value(statistic: float, degrees_of_freedom: int) -> float:
    """Upper-tail probability of a chi-square statistic.

    Args:
        statistic: Observed chi-square value.
        degrees_of_freedom: Degrees of freedom (at least 1).

    Returns:
        P(X >= statistic) for X ~ chi-square(degrees_of_freedom).

    Examples:
        >>> round(chi_square_p_value(3.841, 1), 3)
        0.05
    """
    if degrees_of_freedom < 1:
        raise ValueError(f"Degrees of freedom must be at least 1, got {degrees_of_freedom}")
    if statistic <= 0:
        return 1.0

    a = degrees_of_freedom / 2.0
    x = statistic / 2.0
    if x < a + 1.0:
        p = 1.0 - _lower_gamma_series(a, x)
    else:
        p = _upper_gamma_fraction(a, x)
    return min(1.0, max(0.0, p))


def chi_square(observed: list[int], expected: float) -> float:
    """Pearson's statistic for counts against one expected frequency."""
    return sum((count - expected) ** 2 / expected for count in observed)


def validate(
    source: RandomSource,
    sides: int,
    sample_size: int,
    significance: float = DEFAULT_SIGNIFICANCE,
) -> ValidationReport:
    """Test a source for uniformity over ``[1, sides]``.

    Args:
        source: Random source to sample.
        sides: Die size (at least 2).
        sample_size: Number of draws.
        significance: Reject uniformity when the p-value is at or below this.

    Returns:
        ValidationReport with the statistic, p-value and verdict.

    Raises:
        ValueError: If sides or sample size are out of range, or the source
            returns a value outside ``[1, sides]``.
    """
    if sides < 2:
        raise ValueError(f"Fairness needs at least 2 sides, got {sides}")
    if sample_size < 1:
        raise ValueError(f"Sample size must be positive, got {sample_size}")
    if not 0.0 < significance < 1.0:
        raise ValueError(f"Significance must be between 0 and 1, got {significance}")

    observed = [0] * sides
    for _ in range(sample_size):
        value = source.next_in_range(1, sides)
        if not 1 <= value <= sides:
            raise ValueError(f"Source returned {value} for a d{sides}")
        observed[value - 1] += 1

    expected = sample_size / sides
    statistic = chi_square(observed, expected)
    degrees_of_freedom = sides - 1
    p_value = chi_square_p_value(statistic, degrees_of_freedom)
    passed = p_value > significance

    logger.debug(
        "d%d fairness over %d draws: chi2=%.3f p=%.4f passed=%s",
        sides,
        sample_size,
        statistic,
        p_value,
        passed,
    )
    return ValidationReport(
        sides=sides,
        sample_size=sample_size,
        chi_square=statistic,
        degrees_of_freedom=degrees_of_freedom,
        p_value=p_value,
        significance=significance,
        passed=passed,
        observed=tuple(observed),
    )


def health_check(
    source: RandomSource,
    sample_size: int = 10_000,
    significance: float = DEFAULT_SIGNIFICANCE,
    dice: tuple[int, ...] = STANDARD_DICE,
) -> list[ValidationReport]:
    """Validate a source on every standard die size.

    Failures are logged as warnings; the caller decides what to do with them.
    With several dice at significance 0.01 an occasional failure is expected
    even from a fair source.
    """
    reports = [validate(source, sides, sample_size, significance) for sides in dice]
    for report in reports:
        if not report.passed:
            logger.warning(
                "Random source failed d%d fairness check (chi2=%.2f, p=%.5f)",
                report.sides,
                report.chi_square,
                report.p_value,
            )
    return reports


def summarize_distribution(
    node: Node,
    source: RandomSource,
    iterations: int = 1000,
    expression: str | None = None,
) -> DistributionSummary:
    """Roll an expression many times and summarize its totals.

    Args:
        node: Parsed expression.
        source: Random source to draw from.
        iterations: Number of rolls.
        expression: Label for the summary (defaults to the notation).

    Returns:
        DistributionSummary with mean, median, extremes and standard deviation.
    """
    if iterations < 1:
        raise ValueError(f"Iterations must be positive, got {iterations}")

    totals = []
    label = expression
    for _ in range(iterations):
        result = evaluate(node, source, expression)
        totals.append(result.total)
        label = result.expression

    return DistributionSummary(
        expression=label,
        iterations=iterations,
        mean=statistics.fmean(totals),
        median=statistics.median(totals),
        minimum=min(totals),
        maximum=max(totals),
        stdev=statistics.pstdev(totals),
    )
