"""Dice notation parser.

Recursive-descent parser over the token stream produced by the lexer.

Grammar (lowest precedence first)::

    expression := term (("+" | "-") term)*
    term       := factor (("*" | "/") factor)*
    factor     := dice_term | integer | alias | "(" expression ")" | "-" factor
    dice_term  := [integer] "d" integer modifier*
    modifier   := ("kh" | "kl" | "dh" | "dl") [integer]
                | "!" [integer]
                | ("r" | "ro") integer ("," integer)*
                | ("cs" | "cf") integer
"""

import logging
from dataclasses import replace

from src.dice.errors import ConflictingModifiersError, DiceParseError
from src.dice.lexer import ALIASES, tokenize
from src.dice.types import (
    DROP_MODIFIERS,
    KEEP_MODIFIERS,
    MODIFIER_KINDS,
    BinaryOp,
    Constant,
    DiceTerm,
    DropHighest,
    DropLowest,
    Explode,
    FailureCount,
    KeepHighest,
    KeepLowest,
    Modifier,
    Node,
    Reroll,
    Span,
    SuccessCount,
    Token,
    TokenKind,
    UnaryNegate,
)

logger = logging.getLogger(__name__)


# Defaults match src.config.Settings
DEFAULT_MAX_DICE = 1000
DEFAULT_MAX_SIDES = 1000
DEFAULT_EXPLOSION_CAP = 100
DEFAULT_REROLL_CAP = 100

MAX_NESTING_DEPTH = 100
MAX_TOKENS = 1024

_SELECTION_MODIFIERS = {
    TokenKind.KEEP_HIGH: KeepHighest,
    TokenKind.KEEP_LOW: KeepLowest,
    TokenKind.DROP_HIGH: DropHighest,
    TokenKind.DROP_LOW: DropLowest,
}

_ADDITIVE = (TokenKind.PLUS, TokenKind.MINUS)
_MULTIPLICATIVE = (TokenKind.STAR, TokenKind.SLASH)


class _Parser:
    """Single-use parser state over one token list."""

    def __init__(
        self,
        tokens: list[Token],
        max_dice: int,
        max_sides: int,
        explosion_cap: int,
        reroll_cap: int,
        max_tokens: int = MAX_TOKENS,
    ) -> None:
        if not tokens or tokens[-1].kind != TokenKind.EOF:
            end = tokens[-1].end if tokens else 0
            tokens = [*tokens, Token(TokenKind.EOF, "", end)]
        self.tokens = tokens
        self.index = 0
        self.depth = 0
        self.max_dice = max_dice
        self.max_sides = max_sides
        self.explosion_cap = explosion_cap
        self.reroll_cap = reroll_cap
        self.max_tokens = max_tokens

    # -------------------------------------------------------------------------
    # Token helpers
    # -------------------------------------------------------------------------

    @property
    def current(self) -> Token:
        return self.tokens[self.index]

    @property
    def previous(self) -> Token:
        return self.tokens[self.index - 1]

    def peek(self, offset: int = 1) -> Token:
        return self.tokens[min(self.index + offset, len(self.tokens) - 1)]

    def advance(self) -> Token:
        token = self.current
        if token.kind != TokenKind.EOF:
            self.index += 1
        return token

    def unexpected(self, expected: str) -> DiceParseError:
        token = self.current
        if token.kind == TokenKind.EOF:
            return DiceParseError(f"Unexpected end of expression, expected {expected}", token.position)
        return DiceParseError(f"Unexpected '{token.text}', expected {expected}", token.position)

    def expect_integer(self, what: str) -> tuple[int, Token]:
        if self.current.kind != TokenKind.INTEGER:
            raise self.unexpected(what)
        token = self.advance()
        return int(token.text), token

    # -------------------------------------------------------------------------
    # Grammar
    # -------------------------------------------------------------------------

    def parse(self) -> Node:
        if self.current.kind == TokenKind.EOF:
            raise DiceParseError("Dice expression cannot be empty", self.current.position)
        if len(self.tokens) > self.max_tokens:
            raise DiceParseError(
                f"Expression is too long (more than {self.max_tokens} tokens)",
                self.tokens[self.max_tokens].position,
            )

        node = self.expression()

        if self.current.kind != TokenKind.EOF:
            raise self.unexpected("an operator or end of expression")
        return node

    def expression(self) -> Node:
        node = self.term()
        while self.current.kind in _ADDITIVE:
            op = self.advance()
            right = self.term()
            node = BinaryOp(op.kind.value, node, right, span=Span(node.span.start, right.span.end))
        return node

    def term(self) -> Node:
        node = self.factor()
        while self.current.kind in _MULTIPLICATIVE:
            op = self.advance()
            right = self.factor()
            node = BinaryOp(op.kind.value, node, right, span=Span(node.span.start, right.span.end))
        return node

    def factor(self) -> Node:
        self.depth += 1
        if self.depth > MAX_NESTING_DEPTH:
            raise DiceParseError("Expression is nested too deeply", self.current.position)
        try:
            return self._factor()
        finally:
            self.depth -= 1

    def _factor(self) -> Node:
        token = self.current

        if token.kind == TokenKind.MINUS:
            self.advance()
            operand = self.factor()
            return UnaryNegate(operand, span=Span(token.position, operand.span.end))

        if token.kind == TokenKind.LPAREN:
            self.advance()
            inner = self.expression()
            if self.current.kind != TokenKind.RPAREN:
                raise self.unexpected(f"')' to close '(' at position {token.position}")
            closing = self.advance()
            return replace(inner, span=Span(token.position, closing.end))

        if token.kind == TokenKind.INTEGER:
            if self.peek().kind == TokenKind.D:
                return self.dice_term()
            self.advance()
            return Constant(int(token.text), span=Span(token.position, token.end))

        if token.kind == TokenKind.D:
            return self.dice_term()

        if token.kind == TokenKind.ALIAS:
            return self.alias()

        raise self.unexpected("a number, dice term or '('")

    def alias(self) -> DiceTerm:
        token = self.advance()
        expanded = ALIASES[token.text.lower()]
        # Aliases expand to a fixed 2d20 keep-one term
        keep = KeepHighest(1) if expanded.endswith("kh1") else KeepLowest(1)
        return DiceTerm(2, 20, (keep,), span=Span(token.position, token.end))

    def dice_term(self) -> DiceTerm:
        start = self.current.position

        count = 1
        if self.current.kind == TokenKind.INTEGER:
            count_token = self.advance()
            count = int(count_token.text)
            if not 1 <= count <= self.max_dice:
                raise DiceParseError(
                    f"Number of dice must be between 1 and {self.max_dice}, got {count}",
                    count_token.position,
                )

        self.advance()  # the "d"

        if self.current.kind != TokenKind.INTEGER:
            raise DiceParseError("Missing number of sides after 'd'", self.current.position)
        sides_token = self.advance()
        sides = int(sides_token.text)
        if not 1 <= sides <= self.max_sides:
            raise DiceParseError(
                f"Die size must be between 1 and {self.max_sides}, got {sides}",
                sides_token.position,
            )

        modifiers = self.modifiers(sides)
        return DiceTerm(count, sides, modifiers, span=Span(start, self.previous.end))

    def modifiers(self, sides: int) -> tuple[Modifier, ...]:
        parsed: list[tuple[Modifier, Token]] = []
        while self.current.kind in MODIFIER_KINDS:
            token = self.advance()
            parsed.append((self.modifier(token, sides), token))
        _check_conflicts(parsed)
        return tuple(modifier for modifier, _ in parsed)

    def modifier(self, token: Token, sides: int) -> Modifier:
        kind = token.kind

        if kind in _SELECTION_MODIFIERS:
            count = 1
            if self.current.kind == TokenKind.INTEGER:
                count, count_token = self.expect_integer("a dice count")
                if count < 1:
                    raise DiceParseError(
                        f"'{token.text}' must select at least one die", count_token.position
                    )
            return _SELECTION_MODIFIERS[kind](count)

        if kind == TokenKind.EXPLODE:
            threshold = sides
            if self.current.kind == TokenKind.INTEGER:
                threshold, threshold_token = self.expect_integer("an explode threshold")
                _check_face(threshold, sides, threshold_token, "Explode threshold")
            return Explode(threshold=threshold, cap=self.explosion_cap)

        if kind in (TokenKind.REROLL, TokenKind.REROLL_ONCE):
            values = []
            while True:
                value, value_token = self.expect_integer("a value to reroll")
                _check_face(value, sides, value_token, "Reroll value")
                values.append(value)
                if self.current.kind != TokenKind.COMMA:
                    break
                self.advance()
            once = kind == TokenKind.REROLL_ONCE
            unique = tuple(sorted(set(values)))
            if not once and len(unique) >= sides:
                raise DiceParseError(
                    f"Reroll covers every face of a d{sides} and would never settle",
                    token.position,
                )
            return Reroll(values=unique, once=once, cap=self.reroll_cap)

        # SUCCESS / FAILURE
        threshold, threshold_token = self.expect_integer("a threshold")
        _check_face(threshold, sides, threshold_token, "Threshold")
        if kind == TokenKind.SUCCESS:
            return SuccessCount(threshold)
        return FailureCount(threshold)


def _check_face(value: int, sides: int, token: Token, label: str) -> None:
    if not 1 <= value <= sides:
        raise DiceParseError(
            f"{label} must be between 1 and {sides}, got {value}", token.position
        )


def _check_conflicts(parsed: list[tuple[Modifier, Token]]) -> None:
    """Reject modifier combinations with no well-defined combined effect.

    One keep and one drop compose (applied in written order); anything
    else doubled up on one term is ambiguous.
    """
    groups = {
        "keep": KEEP_MODIFIERS,
        "drop": DROP_MODIFIERS,
        "explode": (Explode,),
        "success count": (SuccessCount,),
        "failure count": (FailureCount,),
    }
    for label, types in groups.items():
        seen = [token for modifier, token in parsed if isinstance(modifier, types)]
        if len(seen) > 1:
            raise ConflictingModifiersError(
                f"A dice term accepts at most one {label} modifier, found '{seen[1].text}' after '{seen[0].text}'",
                seen[1].position,
            )


def parse(
    tokens: list[Token],
    *,
    max_dice: int = DEFAULT_MAX_DICE,
    max_sides: int = DEFAULT_MAX_SIDES,
    explosion_cap: int = DEFAULT_EXPLOSION_CAP,
    reroll_cap: int = DEFAULT_REROLL_CAP,
    max_tokens: int = MAX_TOKENS,
) -> Node:
    """Parse a token list into an expression tree.

    Args:
        tokens: Tokens from ``tokenize``.
        max_dice: Largest dice count accepted per term.
        max_sides: Largest die size accepted.
        explosion_cap: Cap stored on every Explode modifier.
        reroll_cap: Cap stored on every repeating Reroll modifier.
        max_tokens: Longest token list accepted, EOF included.

    Returns:
        Root node of the expression tree.

    Raises:
        DiceParseError: If the tokens do not form a valid expression.
    """
    parser = _Parser(tokens, max_dice, max_sides, explosion_cap, reroll_cap, max_tokens)
    return parser.parse()


def parse_dice(
    notation: str,
    *,
    max_dice: int = DEFAULT_MAX_DICE,
    max_sides: int = DEFAULT_MAX_SIDES,
    explosion_cap: int = DEFAULT_EXPLOSION_CAP,
    reroll_cap: int = DEFAULT_REROLL_CAP,
    max_tokens: int = MAX_TOKENS,
) -> Node:
    """Tokenize and parse dice notation.

    Args:
        notation: Dice notation string (e.g., "4d6dl1", "1d20 + 5").

    Returns:
        Root node of the expression tree.

    Raises:
        DiceLexError: If the notation contains an invalid character.
        DiceParseError: If notation is invalid.

    Examples:
        >>> parse_dice("2d20kh1")
        DiceTerm(count=2, sides=20, modifiers=(KeepHighest(count=1),))
        >>> parse_dice("1d20+5")
        BinaryOp(op='+', left=DiceTerm(count=1, sides=20, modifiers=()), right=Constant(value=5))
    """
    node = parse(
        tokenize(notation),
        max_dice=max_dice,
        max_sides=max_sides,
        explosion_cap=explosion_cap,
        reroll_cap=reroll_cap,
        max_tokens=max_tokens,
    )
    logger.debug("Parsed %r into %r", notation, node)
    return node
