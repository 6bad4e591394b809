"""Expression evaluator.

Walks an expression tree, draws dice from a random source, applies each dice
term's modifiers in written order, and folds the arithmetic into a total.
Apart from consuming entropy the evaluator is a pure function of its input.
"""

import logging
import sys
from collections.abc import Iterator
from dataclasses import replace

from src.dice.errors import DiceEvalError, DivisionByZeroError, RngExhaustedError
from src.dice.parser import parse_dice
from src.dice.printer import term_notation, to_notation
from src.dice.random_source import RandomSource
from src.dice.types import (
    BinaryOp,
    Constant,
    ConstantResult,
    DiceTerm,
    DiceTermResult,
    Die,
    DropHighest,
    DropLowest,
    Explode,
    FailureCount,
    KeepHighest,
    KeepLowest,
    Modifier,
    Node,
    Reroll,
    RollResult,
    ScoringMode,
    SuccessCount,
    TermResult,
    UnaryNegate,
)

logger = logging.getLogger(__name__)


def draw(source: RandomSource, sides: int) -> int:
    """Draw one die value and enforce the source contract.

    Raises:
        RngExhaustedError: If the source returns anything but an int in
            ``[1, sides]``.
    """
    value = source.next_in_range(1, sides)
    if isinstance(value, bool) or not isinstance(value, int) or not 1 <= value <= sides:
        raise RngExhaustedError(value, sides)
    return value


def truncating_divide(dividend: int, divisor: int) -> int:
    """Integer division rounding toward zero (``-7 / 2 == -3``)."""
    quotient = abs(dividend) // abs(divisor)
    return -quotient if (dividend < 0) != (divisor < 0) else quotient


# =============================================================================
# Modifiers
# =============================================================================


def _apply_reroll(dice: list[Die], modifier: Reroll, source: RandomSource) -> list[Die]:
    result = []
    for die in dice:
        if not die.kept or die.value not in modifier.values:
            result.append(die)
            continue

        history = list(die.rerolled_from)
        value = die.value
        limit = 1 if modifier.once else modifier.cap
        for _ in range(limit):
            history.append(value)
            value = draw(source, die.sides)
            if value not in modifier.values:
                break
        else:
            if not modifier.once:
                logger.info("Reroll cap of %d reached on a d%d", modifier.cap, die.sides)

        result.append(replace(die, value=value, rerolled=True, rerolled_from=tuple(history)))
    return result


def _apply_explode(dice: list[Die], modifier: Explode, source: RandomSource) -> list[Die]:
    result = []
    for die in dice:
        if not die.kept or die.from_explosion:
            result.append(die)
            continue

        chain = [die]
        while chain[-1].value >= modifier.threshold:
            if len(chain) - 1 >= modifier.cap:
                chain[-1] = replace(chain[-1], exploded=True, explosion_capped=True)
                logger.info(
                    "Explosion cap of %d reached on a d%d", modifier.cap, die.sides
                )
                break
            chain[-1] = replace(chain[-1], exploded=True)
            chain.append(
                Die(
                    value=draw(source, die.sides),
                    sides=die.sides,
                    term_index=die.term_index,
                    from_explosion=True,
                )
            )
        result.extend(chain)
    return result


def _apply_selection(dice: list[Die], modifier: Modifier) -> list[Die]:
    """Mark dice dropped by a keep/drop modifier.

    Selection runs on a sorted copy of the kept dice (ties broken by roll
    order); the returned list keeps the original order.
    """
    candidates = [i for i, die in enumerate(dice) if die.kept]
    highest_first = isinstance(modifier, (KeepHighest, DropHighest))
    ranked = sorted(
        candidates,
        key=lambda i: (-dice[i].value if highest_first else dice[i].value, i),
    )
    n = min(modifier.count, len(ranked))

    if isinstance(modifier, (KeepHighest, KeepLowest)):
        dropped = set(ranked[n:])
    else:
        dropped = set(ranked[:n])

    return [replace(die, kept=False) if i in dropped else die for i, die in enumerate(dice)]


def _score(dice: list[Die], modifiers: tuple[Modifier, ...]) -> tuple[int, ScoringMode]:
    kept = [die for die in dice if die.kept]
    success = next((m for m in modifiers if isinstance(m, SuccessCount)), None)
    failure = next((m for m in modifiers if isinstance(m, FailureCount)), None)

    if success is None and failure is None:
        return sum(die.value for die in kept), ScoringMode.SUM

    count = 0
    if success is not None:
        count += sum(1 for die in kept if die.value >= success.threshold)
    if failure is not None:
        failures = sum(1 for die in kept if die.value <= failure.threshold)
        # cs and cf together score successes minus failures
        count = count - failures if success is not None else failures
    return count, ScoringMode.SUCCESS_COUNT


def roll_term(term: DiceTerm, source: RandomSource, term_index: int = 0) -> DiceTermResult:
    """Roll one dice term and apply its modifiers.

    Args:
        term: The dice term to roll.
        source: Random source to draw from.
        term_index: Position of the term in the owning result's terms.

    Returns:
        DiceTermResult with every die (dropped ones included) and the subtotal.

    Raises:
        RngExhaustedError: If the source breaks its contract.
    """
    dice = [
        Die(value=draw(source, term.sides), sides=term.sides, term_index=term_index)
        for _ in range(term.count)
    ]

    for modifier in term.modifiers:
        if isinstance(modifier, Reroll):
            dice = _apply_reroll(dice, modifier, source)
        elif isinstance(modifier, Explode):
            dice = _apply_explode(dice, modifier, source)
        elif isinstance(modifier, (KeepHighest, KeepLowest, DropHighest, DropLowest)):
            dice = _apply_selection(dice, modifier)

    subtotal, scoring = _score(dice, term.modifiers)
    return DiceTermResult(
        notation=term_notation(term),
        count=term.count,
        sides=term.sides,
        dice=tuple(dice),
        subtotal=subtotal,
        scoring=scoring,
    )


# =============================================================================
# Arithmetic
# =============================================================================


def _combine(node: BinaryOp, left: int, right: int, expression: str | None) -> int:
    if node.op == "+":
        return left + right
    if node.op == "-":
        return left - right
    if node.op == "*":
        return left * right
    if right == 0:
        span = node.right.span
        if expression and span.end > span.start:
            text = expression[span.start : span.end]
        else:
            text = to_notation(node.right)
        raise DivisionByZeroError(span.start, span.end, text)
    return truncating_divide(left, right)


def _fold(
    node: Node,
    source: RandomSource,
    terms: list[TermResult],
    expression: str | None,
) -> int:
    if isinstance(node, Constant):
        terms.append(ConstantResult(node.value))
        return node.value

    if isinstance(node, DiceTerm):
        result = roll_term(node, source, term_index=len(terms))
        terms.append(result)
        return result.subtotal

    if isinstance(node, UnaryNegate):
        return -_fold(node.operand, source, terms, expression)

    if isinstance(node, BinaryOp):
        left = _fold(node.left, source, terms, expression)
        right = _fold(node.right, source, terms, expression)
        return _combine(node, left, right, expression)

    raise TypeError(f"Unknown node: {node!r}")


def evaluate(node: Node, source: RandomSource, expression: str | None = None) -> RollResult:
    """Evaluate an expression tree.

    Args:
        node: Root of the parsed expression.
        source: Random source to draw dice from.
        expression: Original text, used for error spans and stored on the
            result. Defaults to the canonical notation.

    Returns:
        RollResult whose total is recomputable from its terms.

    Raises:
        DivisionByZeroError: If a divisor evaluates to zero.
        RngExhaustedError: If the source breaks its contract.
    """
    notation = to_notation(node)
    terms: list[TermResult] = []
    total = _fold(node, source, terms, expression)
    logger.debug("Evaluated %s = %d", notation, total)
    return RollResult(
        expression=expression if expression is not None else notation,
        notation=notation,
        total=total,
        terms=tuple(terms),
    )


# =============================================================================
# Audit
# =============================================================================


def _refold(node: Node, terms: Iterator[TermResult]) -> int:
    if isinstance(node, (Constant, DiceTerm)):
        term = next(terms, None)
        if isinstance(node, Constant) and isinstance(term, ConstantResult):
            if term.value != node.value:
                raise DiceEvalError(f"Constant {term.value} does not match its notation")
            return term.value
        if isinstance(node, DiceTerm) and isinstance(term, DiceTermResult):
            if _score(list(term.dice), node.modifiers) != (term.subtotal, term.scoring):
                raise DiceEvalError(f"Subtotal of '{term.notation}' does not match its dice")
            return term.subtotal
        raise DiceEvalError("Roll breakdown does not match its notation")

    if isinstance(node, UnaryNegate):
        return -_refold(node.operand, terms)

    left = _refold(node.left, terms)
    right = _refold(node.right, terms)
    if node.op == "/" and right == 0:
        raise DiceEvalError("Roll breakdown divides by zero")
    return _combine(node, left, right, None)


def recompute_total(result: RollResult) -> int:
    """Recompute a result's total from its notation and term values.

    No dice are drawn: each dice term's subtotal is re-scored from its
    recorded dice, so this audits a stored or received result independently
    of the engine that produced it. Only the nesting depth limit applies to
    the notation; canonical notation can run longer than the input it was
    printed from.

    Raises:
        DiceEvalError: If the terms do not line up with the notation or a
            subtotal does not match its dice.
    """
    node = parse_dice(
        result.notation,
        max_dice=sys.maxsize,
        max_sides=sys.maxsize,
        max_tokens=sys.maxsize,
    )
    terms = iter(result.terms)
    total = _refold(node, terms)
    if next(terms, None) is not None:
        raise DiceEvalError("Roll breakdown has more terms than its notation")
    return total
