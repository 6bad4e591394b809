"""Serialization schemas for roll results.

A RollResult converts losslessly to plain JSON-compatible data and back, so
callers (session logs, combat logs, UIs) can store and re-render rolls
without the engine. Loading re-checks that the total follows from the terms.
"""

from datetime import datetime
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from src.dice.errors import DiceError
from src.dice.evaluator import recompute_total
from src.dice.types import (
    ConstantResult,
    DiceTermResult,
    Die,
    RollResult,
    ScoringMode,
    TermResult,
)


# =============================================================================
# Term Schemas
# =============================================================================


class DieSchema(BaseModel):
    """One die in a dice term."""

    model_config = ConfigDict(frozen=True)

    value: int = Field(ge=1)
    sides: int = Field(ge=1)
    term_index: int = Field(default=0, ge=0)
    kept: bool = True
    exploded: bool = False
    rerolled: bool = False
    from_explosion: bool = False
    explosion_capped: bool = False  # Advisory: explosion chain hit the cap
    rerolled_from: list[int] = Field(default_factory=list)

    @model_validator(mode="after")
    def _value_fits_die(self) -> "DieSchema":
        if self.value > self.sides:
            raise ValueError(f"Die value {self.value} exceeds d{self.sides}")
        return self


class DiceTermSchema(BaseModel):
    """A rolled dice term."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["dice"] = "dice"
    notation: str
    count: int = Field(ge=1)
    sides: int = Field(ge=1)
    subtotal: int
    scoring: ScoringMode = ScoringMode.SUM
    dice: list[DieSchema]


class ConstantTermSchema(BaseModel):
    """An integer literal."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["constant"] = "constant"
    value: int


TermSchema = Annotated[Union[DiceTermSchema, ConstantTermSchema], Field(discriminator="kind")]


# =============================================================================
# Roll Result Schema
# =============================================================================


class RollResultSchema(BaseModel):
    """Serialized form of a RollResult."""

    model_config = ConfigDict(frozen=True)

    roll_id: str
    expression: str
    notation: str
    total: int
    timestamp: datetime
    terms: list[TermSchema]

    @classmethod
    def from_result(cls, result: RollResult) -> "RollResultSchema":
        return cls(
            roll_id=result.roll_id,
            expression=result.expression,
            notation=result.notation,
            total=result.total,
            timestamp=result.timestamp,
            terms=[_term_to_schema(term) for term in result.terms],
        )

    def to_result(self) -> RollResult:
        return RollResult(
            expression=self.expression,
            notation=self.notation,
            total=self.total,
            terms=tuple(_term_from_schema(term) for term in self.terms),
            roll_id=self.roll_id,
            timestamp=self.timestamp,
        )

    @model_validator(mode="after")
    def _total_matches_terms(self) -> "RollResultSchema":
        try:
            recomputed = recompute_total(self.to_result())
        except DiceError as e:
            raise ValueError(str(e)) from e
        if recomputed != self.total:
            raise ValueError(
                f"Total {self.total} does not match its terms (recomputed {recomputed})"
            )
        return self


def _term_to_schema(term: TermResult) -> DiceTermSchema | ConstantTermSchema:
    if isinstance(term, ConstantResult):
        return ConstantTermSchema(value=term.value)
    return DiceTermSchema(
        notation=term.notation,
        count=term.count,
        sides=term.sides,
        subtotal=term.subtotal,
        scoring=term.scoring,
        dice=[
            DieSchema(
                value=die.value,
                sides=die.sides,
                term_index=die.term_index,
                kept=die.kept,
                exploded=die.exploded,
                rerolled=die.rerolled,
                from_explosion=die.from_explosion,
                explosion_capped=die.explosion_capped,
                rerolled_from=list(die.rerolled_from),
            )
            for die in term.dice
        ],
    )


def _term_from_schema(term: DiceTermSchema | ConstantTermSchema) -> TermResult:
    if isinstance(term, ConstantTermSchema):
        return ConstantResult(term.value)
    return DiceTermResult(
        notation=term.notation,
        count=term.count,
        sides=term.sides,
        dice=tuple(
            Die(
                value=die.value,
                sides=die.sides,
                term_index=die.term_index,
                kept=die.kept,
                exploded=die.exploded,
                rerolled=die.rerolled,
                from_explosion=die.from_explosion,
                explosion_capped=die.explosion_capped,
                rerolled_from=tuple(die.rerolled_from),
            )
            for die in term.dice
        ),
        subtotal=term.subtotal,
        scoring=term.scoring,
    )


def dump_result(result: RollResult) -> dict[str, Any]:
    """Convert a RollResult to JSON-compatible data."""
    return RollResultSchema.from_result(result).model_dump(mode="json")


def load_result(data: dict[str, Any]) -> RollResult:
    """Rebuild a RollResult from ``dump_result`` output.

    Raises:
        pydantic.ValidationError: If the data is malformed or its total does
            not follow from its terms.
    """
    return RollResultSchema.model_validate(data).to_result()
