"""Dice notation lexer.

Turns an expression like ``4d6dl1 + 3`` into a flat token list. Letters are
case-insensitive and ASCII only; numbers are unsigned (signs belong to the
parser).
"""

import string

from src.dice.errors import DiceLexError
from src.dice.types import Token, TokenKind


_DIGITS = "0123456789"

_SINGLE_CHAR_TOKENS = {
    "+": TokenKind.PLUS,
    "-": TokenKind.MINUS,
    "*": TokenKind.STAR,
    "/": TokenKind.SLASH,
    "(": TokenKind.LPAREN,
    ")": TokenKind.RPAREN,
    ",": TokenKind.COMMA,
    "!": TokenKind.EXPLODE,
}

# Two-letter modifier keywords, checked before the single letters d and r
_KEYWORDS = {
    "kh": TokenKind.KEEP_HIGH,
    "kl": TokenKind.KEEP_LOW,
    "dh": TokenKind.DROP_HIGH,
    "dl": TokenKind.DROP_LOW,
    "ro": TokenKind.REROLL_ONCE,
    "cs": TokenKind.SUCCESS,
    "cf": TokenKind.FAILURE,
}

# Whole words standing for a complete dice term
ALIASES = {
    "adv": "2d20kh1",
    "advantage": "2d20kh1",
    "dis": "2d20kl1",
    "disadvantage": "2d20kl1",
}


def _word_at(text: str, position: int) -> str:
    end = position
    while end < len(text) and text[end] in string.ascii_letters:
        end += 1
    return text[position:end].lower()


def tokenize(text: str) -> list[Token]:
    """Split a dice expression into tokens.

    Args:
        text: Dice expression (e.g., "2d20kh1 + 5").

    Returns:
        Tokens in source order, terminated by an EOF token positioned at
        ``len(text)``.

    Raises:
        DiceLexError: If a character cannot start any token.

    Examples:
        >>> [t.kind.value for t in tokenize("4d6dl1")]
        ['integer', 'd', 'integer', 'dl', 'integer', 'eof']
    """
    tokens: list[Token] = []
    position = 0
    length = len(text)

    while position < length:
        char = text[position]

        if char.isspace():
            position += 1
            continue

        if char in _DIGITS:
            start = position
            while position < length and text[position] in _DIGITS:
                position += 1
            tokens.append(Token(TokenKind.INTEGER, text[start:position], start))
            continue

        if char in _SINGLE_CHAR_TOKENS:
            tokens.append(Token(_SINGLE_CHAR_TOKENS[char], char, position))
            position += 1
            continue

        if char not in string.ascii_letters:
            raise DiceLexError(position, char)

        word = _word_at(text, position)
        if word in ALIASES:
            tokens.append(Token(TokenKind.ALIAS, text[position : position + len(word)], position))
            position += len(word)
            continue

        pair = word[:2]
        if pair in _KEYWORDS:
            tokens.append(Token(_KEYWORDS[pair], text[position : position + 2], position))
            position += 2
            continue

        if char in "dD":
            tokens.append(Token(TokenKind.D, char, position))
            position += 1
            continue

        if char in "rR":
            tokens.append(Token(TokenKind.REROLL, char, position))
            position += 1
            continue

        raise DiceLexError(position, char)

    tokens.append(Token(TokenKind.EOF, "", length))
    return tokens
