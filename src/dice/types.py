"""Dice system type definitions.

Immutable dataclasses for tokens, the expression tree, modifiers, and roll
results. Source spans, roll ids and timestamps are excluded from equality so
that two evaluations of the same expression with the same seed compare equal.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Union


# =============================================================================
# Tokens
# =============================================================================


class TokenKind(str, Enum):
    """Kind of a lexical token."""

    INTEGER = "integer"
    D = "d"
    PLUS = "+"
    MINUS = "-"
    STAR = "*"
    SLASH = "/"
    LPAREN = "("
    RPAREN = ")"
    COMMA = ","
    KEEP_HIGH = "kh"
    KEEP_LOW = "kl"
    DROP_HIGH = "dh"
    DROP_LOW = "dl"
    EXPLODE = "!"
    REROLL = "r"
    REROLL_ONCE = "ro"
    SUCCESS = "cs"
    FAILURE = "cf"
    ALIAS = "alias"  # adv, dis, advantage, disadvantage
    EOF = "eof"


MODIFIER_KINDS = frozenset(
    {
        TokenKind.KEEP_HIGH,
        TokenKind.KEEP_LOW,
        TokenKind.DROP_HIGH,
        TokenKind.DROP_LOW,
        TokenKind.EXPLODE,
        TokenKind.REROLL,
        TokenKind.REROLL_ONCE,
        TokenKind.SUCCESS,
        TokenKind.FAILURE,
    }
)


@dataclass(frozen=True)
class Token:
    """A lexical token.

    Attributes:
        kind: Token kind.
        text: Exact source text (original case).
        position: 0-based offset of the first character.
    """

    kind: TokenKind
    text: str
    position: int

    @property
    def end(self) -> int:
        """Offset just past the token."""
        return self.position + len(self.text)


# =============================================================================
# Modifiers
# =============================================================================


@dataclass(frozen=True)
class KeepHighest:
    """Keep the ``count`` highest dice."""

    count: int = 1


@dataclass(frozen=True)
class KeepLowest:
    """Keep the ``count`` lowest dice."""

    count: int = 1


@dataclass(frozen=True)
class DropHighest:
    """Drop the ``count`` highest dice."""

    count: int = 1


@dataclass(frozen=True)
class DropLowest:
    """Drop the ``count`` lowest dice."""

    count: int = 1


@dataclass(frozen=True)
class Explode:
    """Roll an extra die for every die at or above ``threshold``.

    Attributes:
        threshold: Lowest value that explodes (the die size by default).
        cap: Maximum extra dice spawned per original die.
    """

    threshold: int
    cap: int = 100


@dataclass(frozen=True)
class Reroll:
    """Redraw dice whose value is in ``values``.

    Attributes:
        values: Sorted faces that trigger a redraw.
        once: Redraw at most once per die.
        cap: Maximum redraws per die when ``once`` is False.
    """

    values: tuple[int, ...]
    once: bool = False
    cap: int = 100


@dataclass(frozen=True)
class SuccessCount:
    """Count kept dice with a value of at least ``threshold``."""

    threshold: int


@dataclass(frozen=True)
class FailureCount:
    """Count kept dice with a value of at most ``threshold``."""

    threshold: int


Modifier = Union[
    KeepHighest,
    KeepLowest,
    DropHighest,
    DropLowest,
    Explode,
    Reroll,
    SuccessCount,
    FailureCount,
]

KEEP_MODIFIERS = (KeepHighest, KeepLowest)
DROP_MODIFIERS = (DropHighest, DropLowest)


# =============================================================================
# Expression Tree
# =============================================================================


@dataclass(frozen=True)
class Span:
    """Half-open range of source offsets covered by a node."""

    start: int
    end: int


_NO_SPAN = Span(0, 0)


@dataclass(frozen=True)
class Constant:
    """An integer literal."""

    value: int
    span: Span = field(default=_NO_SPAN, compare=False, repr=False)


@dataclass(frozen=True)
class DiceTerm:
    """A dice term like ``4d6dl1``.

    Attributes:
        count: Number of dice to roll.
        sides: Faces per die.
        modifiers: Modifiers in written order.
    """

    count: int
    sides: int
    modifiers: tuple[Modifier, ...] = ()
    span: Span = field(default=_NO_SPAN, compare=False, repr=False)


@dataclass(frozen=True)
class BinaryOp:
    """Arithmetic combination of two nodes (``+``, ``-``, ``*``, ``/``)."""

    op: str
    left: Node
    right: Node
    span: Span = field(default=_NO_SPAN, compare=False, repr=False)


@dataclass(frozen=True)
class UnaryNegate:
    """Negation of a node."""

    operand: Node
    span: Span = field(default=_NO_SPAN, compare=False, repr=False)


Node = Union[Constant, DiceTerm, BinaryOp, UnaryNegate]


# =============================================================================
# Roll Results
# =============================================================================


class ScoringMode(str, Enum):
    """How a dice term turns its kept dice into a subtotal."""

    SUM = "sum"
    SUCCESS_COUNT = "success_count"


@dataclass(frozen=True)
class Die:
    """One die as it ended up after all modifiers.

    Attributes:
        value: Face showing (after any reroll).
        sides: Die size.
        term_index: Index of the owning term in RollResult.terms.
        kept: Whether the die counts toward the subtotal.
        exploded: This die triggered an extra die.
        rerolled: This die was redrawn at least once.
        from_explosion: This die was spawned by an explosion.
        explosion_capped: The explosion chain stopped here because of the cap.
        rerolled_from: Earlier values replaced by rerolls, oldest first.
    """

    value: int
    sides: int
    term_index: int = 0
    kept: bool = True
    exploded: bool = False
    rerolled: bool = False
    from_explosion: bool = False
    explosion_capped: bool = False
    rerolled_from: tuple[int, ...] = ()

    @property
    def is_natural_max(self) -> bool:
        """Check if the die shows its highest face."""
        return self.value == self.sides

    @property
    def is_natural_min(self) -> bool:
        """Check if the die shows a 1."""
        return self.value == 1


@dataclass(frozen=True)
class DiceTermResult:
    """Evaluated dice term.

    Attributes:
        notation: Canonical notation of the term, e.g. "4d6dl1".
        count: Dice rolled before explosions.
        sides: Die size.
        dice: Every die in roll order, dropped ones included.
        subtotal: Sum of kept dice, or the success count.
        scoring: Whether subtotal is a sum or a success count.
    """

    notation: str
    count: int
    sides: int
    dice: tuple[Die, ...]
    subtotal: int
    scoring: ScoringMode = ScoringMode.SUM

    @property
    def kept_dice(self) -> tuple[Die, ...]:
        return tuple(die for die in self.dice if die.kept)

    @property
    def dropped_dice(self) -> tuple[Die, ...]:
        return tuple(die for die in self.dice if not die.kept)

    @property
    def natural_maxima(self) -> tuple[int, ...]:
        """Indices (within ``dice``) of dice showing their highest face."""
        return tuple(i for i, die in enumerate(self.dice) if die.is_natural_max)


@dataclass(frozen=True)
class ConstantResult:
    """Evaluated integer literal."""

    value: int


TermResult = Union[DiceTermResult, ConstantResult]


def _new_roll_id() -> str:
    return uuid.uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class RollResult:
    """Result of evaluating a dice expression.

    Attributes:
        expression: The expression as the caller wrote it.
        notation: Canonical notation of the parsed expression.
        total: Final value of the expression.
        terms: Dice terms and constants in source order.
        roll_id: Unique id for history lookups.
        timestamp: When the roll was made (UTC).
    """

    expression: str
    notation: str
    total: int
    terms: tuple[TermResult, ...]
    roll_id: str = field(default_factory=_new_roll_id, compare=False)
    timestamp: datetime = field(default_factory=_utcnow, compare=False)

    @property
    def dice_terms(self) -> tuple[DiceTermResult, ...]:
        return tuple(t for t in self.terms if isinstance(t, DiceTermResult))

    @property
    def dice(self) -> tuple[Die, ...]:
        """Every die across all dice terms."""
        return tuple(die for term in self.dice_terms for die in term.dice)

    @property
    def has_dice(self) -> bool:
        return bool(self.dice_terms)


# =============================================================================
# Validation & Analysis
# =============================================================================


@dataclass(frozen=True)
class ValidationReport:
    """Outcome of a chi-square goodness-of-fit test on a random source.

    Attributes:
        sides: Die size that was sampled.
        sample_size: Number of draws.
        chi_square: Pearson's statistic.
        degrees_of_freedom: ``sides - 1``.
        p_value: Probability of a statistic at least this large if fair.
        significance: Threshold the p-value was compared against.
        passed: ``p_value > significance``.
        observed: Frequency of each face, index 0 is face 1.
    """

    sides: int
    sample_size: int
    chi_square: float
    degrees_of_freedom: int
    p_value: float
    significance: float
    passed: bool
    observed: tuple[int, ...] = ()

    @property
    def expected(self) -> float:
        """Expected frequency of every face."""
        return self.sample_size / self.sides


@dataclass(frozen=True)
class DistributionSummary:
    """Summary statistics of an expression's total over many rolls."""

    expression: str
    iterations: int
    mean: float
    median: float
    minimum: int
    maximum: int
    stdev: float


@dataclass(frozen=True)
class ExpressionCheck:
    """Syntax check of an expression without rolling it.

    Attributes:
        expression: The checked expression.
        valid: Whether it parsed.
        notation: Canonical notation when valid.
        error: Error message when invalid.
        position: Offending offset when invalid.
    """

    expression: str
    valid: bool
    notation: str | None = None
    error: str | None = None
    position: int | None = None
