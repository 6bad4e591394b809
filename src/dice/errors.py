"""Dice exception definitions.

Every failure of the pipeline surfaces as a subclass of DiceError, raised at
the stage that detected it. Positions are 0-based character offsets into the
original expression.
"""


def caret_pointer(expression: str, position: int | None) -> str:
    """Render an expression with a caret under one of its characters.

    Positions past the end point just after the last character.
    """
    if position is None:
        return expression
    column = min(position, len(expression))
    return f"{expression}\n{' ' * column}^"


class DiceError(ValueError):
    """Base exception for dice expressions.

    Attributes:
        position: Offset of the offending character, if known.
    """

    def __init__(self, message: str, position: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.position = position

    def __str__(self) -> str:
        if self.position is None:
            return self.message
        return f"{self.message} (at position {self.position})"

    def pointer(self, expression: str) -> str:
        """Render the expression with a caret under the offending character.

        Args:
            expression: The expression that failed.

        Returns:
            Two lines: the expression and the caret marker. Just the
            expression when the error has no position.

        Examples:
            >>> print(DiceParseError("missing sides", position=2).pointer("2d"))
            2d
              ^
        """
        return caret_pointer(expression, self.position)


class DiceLexError(DiceError):
    """A character that cannot start any token.

    Attributes:
        unexpected_char: The rejected character.
    """

    def __init__(self, position: int, unexpected_char: str) -> None:
        super().__init__(f"Unexpected character {unexpected_char!r}", position)
        self.unexpected_char = unexpected_char


class DiceParseError(DiceError):
    """Structural error in a dice expression.

    Attributes:
        reason: Human-readable description without the position suffix.
    """

    def __init__(self, reason: str, position: int) -> None:
        super().__init__(reason, position)
        self.reason = reason


class ConflictingModifiersError(DiceParseError):
    """Two modifiers on one dice term whose combined effect is undefined."""

    pass


class DiceEvalError(DiceError):
    """Error raised while evaluating a parsed expression."""

    pass


class DivisionByZeroError(DiceEvalError):
    """A divisor evaluated to zero.

    Attributes:
        start: Offset where the divisor begins.
        end: Offset just past the divisor.
        subexpression: Source text of the divisor.
    """

    def __init__(self, start: int, end: int, subexpression: str) -> None:
        super().__init__(f"Division by zero: '{subexpression}' evaluated to 0", start)
        self.start = start
        self.end = end
        self.subexpression = subexpression


class RngExhaustedError(DiceEvalError):
    """The random source broke its contract.

    Raised when a source returns a value outside the requested range, or
    when a replay source runs out of recorded values. Always fatal.

    Attributes:
        value: The offending value (None when the source ran dry).
        sides: The die size that was requested.
    """

    def __init__(self, value: object, sides: int, message: str | None = None) -> None:
        if message is None:
            message = f"Random source returned {value!r} for a d{sides} (expected 1-{sides})"
        super().__init__(message)
        self.value = value
        self.sides = sides
