"""Tests for the canonical notation printer."""

import pytest

from src.dice.parser import parse_dice
from src.dice.printer import modifier_notation, term_notation, to_notation
from src.dice.types import BinaryOp, Constant, DiceTerm, Explode, Reroll, UnaryNegate


class TestToNotation:
    """Tests for rendering expression trees."""

    @pytest.mark.parametrize(
        "source,expected",
        [
            ("d20", "1d20"),
            ("1d20+5", "1d20 + 5"),
            ("4D6DL1", "4d6dl1"),
            ("2d20kh", "2d20kh1"),
            ("adv", "2d20kh1"),
            ("dis", "2d20kl1"),
            ("3d6!", "3d6!"),
            ("3d10!9", "3d10!9"),
            ("2d6r2,1", "2d6r1,2"),
            ("1d20ro1", "1d20ro1"),
            ("5d10cs8cf1", "5d10cs8cf1"),
            ("(1d6+1)", "1d6 + 1"),
            ("2*(1d6+1)", "2 * (1d6 + 1)"),
            ("(2*3)+4", "2 * 3 + 4"),
            ("10-(3-2)", "10 - (3 - 2)"),
            ("(10-3)-2", "10 - 3 - 2"),
            ("-(1+2)", "-(1 + 2)"),
            ("5--2", "5 - -2"),
        ],
    )
    def test_canonical_form(self, source, expected):
        """Test printing parsed expressions."""
        assert to_notation(parse_dice(source)) == expected

    def test_right_division_keeps_parentheses(self):
        """Test a grouped divisor is not flattened."""
        tree = BinaryOp("/", Constant(12), BinaryOp("/", Constant(6), Constant(2)))
        assert to_notation(tree) == "12 / (6 / 2)"

    def test_negate_of_constant(self):
        """Test negating an atom needs no parentheses."""
        assert to_notation(UnaryNegate(Constant(4))) == "-4"


class TestRoundTrip:
    """Tests that printing then parsing gives back the same tree."""

    @pytest.mark.parametrize(
        "source",
        [
            "4d6dl1",
            "2d20kh1 + 5",
            "1d20 - 1d4 * 2",
            "(1d8 + 2) * (3 - 1d4) / 2",
            "-(2d6 + 3) - -1",
            "6d6kh4dl1",
            "4d6r1dl1",
            "10d10!9cs7cf1",
            "advantage - disadvantage",
            "((((1))))",
        ],
    )
    def test_parse_print_parse(self, source):
        """Test parse(print(tree)) == tree."""
        tree = parse_dice(source)
        assert parse_dice(to_notation(tree)) == tree

    def test_printing_is_stable(self):
        """Test printing canonical notation reproduces it exactly."""
        once = to_notation(parse_dice("2*(1d6+1)-3"))
        assert to_notation(parse_dice(once)) == once


class TestModifierNotation:
    """Tests for single modifier rendering."""

    def test_explode_on_max_is_bare(self):
        """Test explode threshold equal to sides prints as !."""
        assert modifier_notation(Explode(threshold=8), 8) == "!"

    def test_explode_threshold_printed(self):
        """Test a lower threshold is printed."""
        assert modifier_notation(Explode(threshold=5), 8) == "!5"

    def test_reroll_once(self):
        """Test ro prefix."""
        assert modifier_notation(Reroll(values=(1, 2), once=True), 6) == "ro1,2"

    def test_term_notation(self):
        """Test a full term."""
        assert term_notation(DiceTerm(3, 6, (Explode(threshold=6),))) == "3d6!"

    def test_unknown_modifier(self):
        """Test unknown objects are rejected."""
        with pytest.raises(TypeError):
            modifier_notation(object(), 6)
