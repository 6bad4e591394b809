"""Dice expression engine.

Parses dice notation, evaluates it against an injected random source and
returns auditable results with a per-die breakdown.

Usage:
    >>> from src.dice import roll, DiceEngine, SeededSource
    >>> result = roll("4d6dl1")
    >>> engine = DiceEngine(source=SeededSource(42))
    >>> results = engine.roll_batch("2d20kh1+5", 10)
"""

# Types
from src.dice.types import (
    BinaryOp,
    Constant,
    ConstantResult,
    DiceTerm,
    DiceTermResult,
    Die,
    DistributionSummary,
    DropHighest,
    DropLowest,
    Explode,
    ExpressionCheck,
    FailureCount,
    KeepHighest,
    KeepLowest,
    Reroll,
    RollResult,
    ScoringMode,
    Span,
    SuccessCount,
    Token,
    TokenKind,
    UnaryNegate,
    ValidationReport,
)

# Errors
from src.dice.errors import (
    ConflictingModifiersError,
    DiceError,
    DiceEvalError,
    DiceLexError,
    DiceParseError,
    DivisionByZeroError,
    RngExhaustedError,
)

# Lexer, Parser & Printer
from src.dice.lexer import tokenize
from src.dice.parser import parse, parse_dice
from src.dice.printer import to_notation

# Random Sources
from src.dice.random_source import (
    RandomSource,
    ReplaySource,
    SecureSource,
    SeededSource,
    source_from_settings,
)

# Evaluator
from src.dice.evaluator import evaluate, recompute_total, roll_term

# Statistical Validation
from src.dice.validator import chi_square_p_value, health_check, validate

# History
from src.dice.history import NullRecorder, RollHistory, RollRecorder

# Serialization
from src.dice.schemas import RollResultSchema, dump_result, load_result

# Engine
from src.dice.roller import (
    DiceEngine,
    analyze_expression,
    roll,
    roll_batch,
    validate_expression,
    validate_fairness,
)

__all__ = [
    # Types
    "BinaryOp",
    "Constant",
    "ConstantResult",
    "DiceTerm",
    "DiceTermResult",
    "Die",
    "DistributionSummary",
    "DropHighest",
    "DropLowest",
    "Explode",
    "ExpressionCheck",
    "FailureCount",
    "KeepHighest",
    "KeepLowest",
    "Reroll",
    "RollResult",
    "ScoringMode",
    "Span",
    "SuccessCount",
    "Token",
    "TokenKind",
    "UnaryNegate",
    "ValidationReport",
    # Errors
    "ConflictingModifiersError",
    "DiceError",
    "DiceEvalError",
    "DiceLexError",
    "DiceParseError",
    "DivisionByZeroError",
    "RngExhaustedError",
    # Lexer, Parser & Printer
    "tokenize",
    "parse",
    "parse_dice",
    "to_notation",
    # Random Sources
    "RandomSource",
    "ReplaySource",
    "SecureSource",
    "SeededSource",
    "source_from_settings",
    # Evaluator
    "evaluate",
    "recompute_total",
    "roll_term",
    # Validation
    "chi_square_p_value",
    "health_check",
    "validate",
    # History
    "NullRecorder",
    "RollHistory",
    "RollRecorder",
    # Serialization
    "RollResultSchema",
    "dump_result",
    "load_result",
    # Engine
    "DiceEngine",
    "analyze_expression",
    "roll",
    "roll_batch",
    "validate_expression",
    "validate_fairness",
]
