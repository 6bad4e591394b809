"""Canonical notation printer.

``parse_dice(to_notation(node)) == node`` for every tree the parser can
produce. Parentheses are only emitted where precedence requires them.
"""

from src.dice.types import (
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
    SuccessCount,
    UnaryNegate,
)


_PRECEDENCE = {"+": 1, "-": 1, "*": 2, "/": 2}
_ATOM = 3

_SELECTION_KEYWORDS = {
    KeepHighest: "kh",
    KeepLowest: "kl",
    DropHighest: "dh",
    DropLowest: "dl",
}


def modifier_notation(modifier: Modifier, sides: int) -> str:
    """Render one modifier as it would be written after ``NdS``."""
    keyword = _SELECTION_KEYWORDS.get(type(modifier))
    if keyword is not None:
        return f"{keyword}{modifier.count}"
    if isinstance(modifier, Explode):
        return "!" if modifier.threshold == sides else f"!{modifier.threshold}"
    if isinstance(modifier, Reroll):
        values = ",".join(str(v) for v in modifier.values)
        return f"{'ro' if modifier.once else 'r'}{values}"
    if isinstance(modifier, SuccessCount):
        return f"cs{modifier.threshold}"
    if isinstance(modifier, FailureCount):
        return f"cf{modifier.threshold}"
    raise TypeError(f"Unknown modifier: {modifier!r}")


def term_notation(term: DiceTerm) -> str:
    """Render a dice term, e.g. ``4d6dl1``."""
    modifiers = "".join(modifier_notation(m, term.sides) for m in term.modifiers)
    return f"{term.count}d{term.sides}{modifiers}"


def _precedence(node: Node) -> int:
    if isinstance(node, BinaryOp):
        return _PRECEDENCE[node.op]
    return _ATOM


def to_notation(node: Node) -> str:
    """Render an expression tree as canonical dice notation.

    Args:
        node: Root of the expression tree.

    Returns:
        Notation string with spaced binary operators.

    Examples:
        >>> to_notation(parse_dice("d20+5"))
        '1d20 + 5'
        >>> to_notation(parse_dice("2*(1d6+1)"))
        '2 * (1d6 + 1)'
    """
    if isinstance(node, Constant):
        return str(node.value)

    if isinstance(node, DiceTerm):
        return term_notation(node)

    if isinstance(node, UnaryNegate):
        operand = to_notation(node.operand)
        if isinstance(node.operand, BinaryOp):
            operand = f"({operand})"
        return f"-{operand}"

    if isinstance(node, BinaryOp):
        precedence = _PRECEDENCE[node.op]
        left = to_notation(node.left)
        right = to_notation(node.right)
        # Left-associative: the right operand needs parentheses on ties
        if _precedence(node.left) < precedence:
            left = f"({left})"
        if _precedence(node.right) <= precedence:
            right = f"({right})"
        return f"{left} {node.op} {right}"

    raise TypeError(f"Unknown node: {node!r}")
