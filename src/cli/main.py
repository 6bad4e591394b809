"""Main CLI application for the dice engine."""

import logging
from typing import Optional

import typer
from rich.logging import RichHandler

from src.cli.display import (
    console,
    display_batch,
    display_distribution,
    display_error,
    display_expression_check,
    display_pointer,
    display_roll_result,
    display_validation_report,
    progress_spinner,
)
from src.config import get_settings
from src.dice.errors import DiceError, caret_pointer
from src.dice.random_source import RandomSource, SeededSource, source_from_settings
from src.dice.roller import DiceEngine
from src.dice.schemas import dump_result

# Create main app
app = typer.Typer(
    name="dice",
    help="Parse and roll tabletop dice expressions",
    add_completion=True,
)


def _engine(seed: int | None) -> DiceEngine:
    settings = get_settings()
    source: RandomSource = SeededSource(seed) if seed is not None else source_from_settings(settings)
    return DiceEngine(source=source, settings=settings)


def _fail(error: DiceError, expression: str) -> None:
    display_error(error.message)
    display_pointer(error.pointer(expression))
    raise typer.Exit(1)


@app.command()
def roll(
    expression: str = typer.Argument(..., help="Dice expression, e.g. '4d6dl1' or '1d20+5'"),
    seed: Optional[int] = typer.Option(None, "--seed", "-s", help="Seed for a reproducible roll"),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON"),
) -> None:
    """Roll a dice expression."""
    try:
        result = _engine(seed).roll(expression)
    except DiceError as e:
        _fail(e, expression)
        return

    if as_json:
        console.print_json(data=dump_result(result))
    else:
        display_roll_result(result)


@app.command()
def batch(
    expression: str = typer.Argument(..., help="Dice expression"),
    count: int = typer.Option(10, "--count", "-n", help="Number of rolls"),
    seed: Optional[int] = typer.Option(None, "--seed", "-s", help="Seed for reproducible rolls"),
    as_json: bool = typer.Option(False, "--json", help="Print the results as JSON"),
) -> None:
    """Roll the same expression several times."""
    try:
        results = _engine(seed).roll_batch(expression, count)
    except DiceError as e:
        _fail(e, expression)
        return
    except ValueError as e:
        display_error(str(e))
        raise typer.Exit(1)

    if as_json:
        console.print_json(data=[dump_result(r) for r in results])
    else:
        display_batch(results)


@app.command()
def check(
    expression: str = typer.Argument(..., help="Dice expression to check"),
) -> None:
    """Check an expression's syntax without rolling it."""
    result = DiceEngine(settings=get_settings()).check(expression)
    display_expression_check(result)
    if not result.valid:
        if result.position is not None:
            display_pointer(caret_pointer(expression, result.position))
        raise typer.Exit(1)


@app.command()
def fairness(
    sides: int = typer.Option(20, "--sides", help="Die size to test"),
    samples: int = typer.Option(100_000, "--samples", help="Number of draws"),
    seed: Optional[int] = typer.Option(None, "--seed", "-s", help="Test a seeded source instead"),
    significance: Optional[float] = typer.Option(
        None, "--significance", help="Significance level (default from settings)"
    ),
) -> None:
    """Run a chi-square fairness test on the random source."""
    engine = _engine(seed)
    try:
        with progress_spinner(f"Sampling {samples:,} d{sides} rolls..."):
            report = engine.validate_fairness(sides, samples, significance)
    except ValueError as e:
        display_error(str(e))
        raise typer.Exit(1)

    display_validation_report(report)
    if not report.passed:
        raise typer.Exit(2)


@app.command()
def analyze(
    expression: str = typer.Argument(..., help="Dice expression"),
    iterations: int = typer.Option(1000, "--iterations", "-i", help="Number of rolls"),
    seed: Optional[int] = typer.Option(None, "--seed", "-s", help="Seed for reproducible rolls"),
) -> None:
    """Summarize the distribution of an expression's total."""
    try:
        summary = _engine(seed).analyze(expression, iterations)
    except DiceError as e:
        _fail(e, expression)
        return
    except ValueError as e:
        display_error(str(e))
        raise typer.Exit(1)

    display_distribution(summary)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show engine log output"),
) -> None:
    """Dice Engine - tabletop dice notation parser and roller.

    Use 'dice roll 4d6dl1' to roll, or 'dice check' to validate an expression.
    """
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=console, show_path=False)],
        )


if __name__ == "__main__":
    app()
