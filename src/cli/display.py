"""Rich display helpers for CLI output."""

from contextlib import contextmanager

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table

from src.dice.types import (
    DiceTermResult,
    Die,
    DistributionSummary,
    ExpressionCheck,
    RollResult,
    ScoringMode,
    ValidationReport,
)


# Shared console instance
console = Console()


def display_error(message: str) -> None:
    """Display error message.

    Args:
        message: Error message.
    """
    console.print(f"[bold red]Error:[/bold red] {message}")


def display_pointer(pointer: str) -> None:
    """Display an expression with a caret under the offending character."""
    # No markup: expressions may contain brackets
    console.print(pointer, style="yellow", markup=False, highlight=False)


def display_success(message: str) -> None:
    """Display success message.

    Args:
        message: Success message.
    """
    console.print(f"[bold green]{message}[/bold green]")


def display_info(message: str) -> None:
    """Display info message.

    Args:
        message: Info message.
    """
    console.print(f"[dim]{message}[/dim]")


def format_die(die: Die) -> str:
    """Format one die with markup for its state.

    Dropped dice are struck through, natural maxima bold green, natural 1s
    red, exploding dice suffixed with "!", rerolled dice with "r".
    """
    text = str(die.value)
    if die.exploded:
        text += "!"
    if die.rerolled:
        text += "r"

    if not die.kept:
        return f"[dim strike]{text}[/dim strike]"
    if die.is_natural_max:
        return f"[bold green]{text}[/bold green]"
    if die.is_natural_min:
        return f"[red]{text}[/red]"
    return text


def _format_term(term: DiceTermResult) -> str:
    dice = ", ".join(format_die(die) for die in term.dice)
    label = "successes" if term.scoring == ScoringMode.SUCCESS_COUNT else "subtotal"
    return f"[{dice}] → {label} [bold]{term.subtotal}[/bold]"


def display_roll_result(result: RollResult) -> None:
    """Display a roll with its per-term breakdown.

    Args:
        result: The roll to display.
    """
    table = Table(box=box.ROUNDED, show_header=True)
    table.add_column("Term", style="cyan")
    table.add_column("Dice")

    for term in result.terms:
        if isinstance(term, DiceTermResult):
            table.add_row(term.notation, _format_term(term))
        else:
            table.add_row(str(term.value), "[dim]constant[/dim]")

    console.print(table)
    console.print(
        f"  {result.notation} = [bold cyan]{result.total}[/bold cyan]"
    )


def display_batch(results: list[RollResult]) -> None:
    """Display a batch of rolls, one row per roll.

    Args:
        results: Rolls in order.
    """
    if not results:
        display_info("No rolls made.")
        return

    table = Table(title=f"{len(results)} × {results[0].notation}", box=box.SIMPLE)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Dice")
    table.add_column("Total", justify="right", style="bold cyan")

    for i, result in enumerate(results, 1):
        dice = " | ".join(
            ", ".join(format_die(die) for die in term.dice) for term in result.dice_terms
        )
        table.add_row(str(i), dice or "[dim]-[/dim]", str(result.total))

    console.print(table)
    totals = [r.total for r in results]
    display_info(
        f"min {min(totals)}  max {max(totals)}  mean {sum(totals) / len(totals):.2f}"
    )


def display_expression_check(check: ExpressionCheck) -> None:
    """Display the outcome of a syntax check.

    Args:
        check: Result of checking an expression.
    """
    if check.valid:
        display_success(f"Valid: {check.notation}")
    else:
        display_error(check.error or "Invalid expression")


def display_validation_report(report: ValidationReport) -> None:
    """Display a chi-square fairness report.

    Args:
        report: Validation report to display.
    """
    verdict = "[bold green]PASSED[/bold green]" if report.passed else "[bold red]FAILED[/bold red]"

    table = Table(show_header=False, box=box.SIMPLE, padding=(0, 1))
    table.add_column("Key", style="dim")
    table.add_column("Value")
    table.add_row("Die", f"d{report.sides}")
    table.add_row("Samples", f"{report.sample_size:,}")
    table.add_row("Expected per face", f"{report.expected:.1f}")
    table.add_row("Chi-square", f"{report.chi_square:.3f}")
    table.add_row("Degrees of freedom", str(report.degrees_of_freedom))
    table.add_row("p-value", f"{report.p_value:.5f}")
    table.add_row("Significance", f"{report.significance}")

    console.print(Panel(table, title=f"Fairness {verdict}", border_style="cyan"))


def display_distribution(summary: DistributionSummary) -> None:
    """Display distribution statistics for an expression.

    Args:
        summary: Summary of many rolls.
    """
    table = Table(title=summary.expression, box=box.ROUNDED)
    table.add_column("Iterations", justify="right")
    table.add_column("Mean", justify="right")
    table.add_column("Median", justify="right")
    table.add_column("Min", justify="right")
    table.add_column("Max", justify="right")
    table.add_column("Std dev", justify="right")
    table.add_row(
        f"{summary.iterations:,}",
        f"{summary.mean:.2f}",
        f"{summary.median}",
        str(summary.minimum),
        str(summary.maximum),
        f"{summary.stdev:.2f}",
    )
    console.print(table)


@contextmanager
def progress_spinner(description: str = "Processing..."):
    """Context manager for showing a spinner during long operations.

    Args:
        description: Text to show next to spinner.

    Yields:
        Progress instance.
    """
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    ) as progress:
        progress.add_task(description, total=None)
        yield progress
