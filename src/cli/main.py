"""
Typer CLI for the mastery engine.

Commands:
    mastery weaknesses        - Ranked error-type weaknesses with advice
    mastery calibration       - Confidence calibration score and feedback
    mastery due               - Words due for review and review counts
    mastery book N            - Progress summary for one book
    mastery graph build       - Rebuild the encompassing graph from the manifest
    mastery graph reach ID    - What an item encompasses and what encompasses it
    mastery migrate           - Upgrade stored progress to the current format
    mastery reset             - Delete all stored progress

Usage:
    mastery --help
    mastery weaknesses --practice 5
    mastery graph build --output data/graph.json
    mastery graph reach b1-l03 --threshold 0.3
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import typer
from loguru import logger
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from config import get_settings
from src.analysis.calibration import CalibrationTrend, Tendency, get_confidence_level_label
from src.analysis.weakness import get_trend_icon
from src.core.context import EngineContext, get_engine_context
from src.core.exceptions import ContentLoadError, MasteryEngineError
from src.core.models import CURRENT_PROGRESS_VERSION
from src.graph.encompassing import (
    calculate_reach,
    get_all_encompassed,
    get_encompassing_items,
    serialize_graph,
)
from src.progress.store import PROGRESS_KEY

app = typer.Typer(help="Mastery engine: learner progress analytics")
console = Console()


# ========================================
# Helpers
# ========================================


def _context_with_content() -> EngineContext:
    """Engine context with manifest and vocabulary loaded; exits on load failure."""
    context = get_engine_context()
    try:
        asyncio.run(context.load_content())
    except ContentLoadError as e:
        rprint(f"[red]✗[/red] {e}")
        raise typer.Exit(code=1)
    return context


# ========================================
# ANALYSIS COMMANDS
# ========================================


@app.command("weaknesses")
def weaknesses(
    practice: int = typer.Option(
        0, "--practice", "-p", help="Also list up to N practice words for the top weakness"
    ),
) -> None:
    """
    Show recurring error types, ranked by severity then count.
    """
    context = _context_with_content() if practice else get_engine_context()
    analyzer = context.weakness_analyzer()
    report = analyzer.analyze()

    if not report.has_enough_data:
        rprint("[yellow]Keep practicing to identify areas for improvement[/yellow]")
        return
    if not report.top_weaknesses:
        rprint("[green]No significant weaknesses detected[/green]")
        return

    table = Table(title="Weaknesses", show_header=True)
    table.add_column("Type", style="cyan")
    table.add_column("Errors", justify="right")
    table.add_column("Recent", justify="right")
    table.add_column("Severity")
    table.add_column("Trend")
    table.add_column("Words", justify="right")

    severity_style = {"severe": "red", "moderate": "yellow", "mild": "dim"}
    for weakness in report.top_weaknesses:
        style = severity_style[weakness.severity.value]
        table.add_row(
            weakness.label,
            str(weakness.count),
            str(weakness.recent_count),
            f"[{style}]{weakness.severity.value}[/{style}]",
            f"{weakness.trend.value} ({get_trend_icon(weakness.trend)})",
            str(len(weakness.affected_word_ids)),
        )

    console.print(table)
    rprint(f"\n{report.total_errors} errors across {report.words_with_errors} words")

    top = report.top_weaknesses[0]
    rprint(f"\n[bold]Focus area:[/bold] {top.label} - {top.description}")
    rprint(f"[dim]{top.advice}[/dim]")

    if practice:
        items = analyzer.generate_weakness_practice(top, max_items=practice)
        if not items:
            rprint("[yellow]No practice words found in the vocabulary[/yellow]")
            return
        rprint(f"\n[bold]Practice:[/bold] {items[0].instruction}")
        for item in items:
            rprint(f"  {item.arabic}  [dim]{item.english}[/dim]")


@app.command("calibration")
def calibration() -> None:
    """
    Show how well confidence ratings predict correct answers.
    """
    analyzer = get_engine_context().calibration_analyzer()
    stats = analyzer.stats()

    if stats.tendency is Tendency.INSUFFICIENT_DATA:
        rprint(f"[yellow]{stats.feedback_message}[/yellow]")
        return

    table = Table(title="Confidence Calibration", show_header=True)
    table.add_column("Confidence", style="cyan")
    table.add_column("Ratings", justify="right")
    table.add_column("Expected", justify="right")
    table.add_column("Actual", justify="right")

    for level in stats.by_level:
        table.add_row(
            get_confidence_level_label(level.level),
            str(level.count),
            f"{level.expected_accuracy:.0%}",
            f"{level.actual_accuracy:.0%}" if level.count else "-",
        )

    console.print(table)
    rprint(f"\nCalibration score: [bold]{stats.calibration_score:.0%}[/bold] ({stats.tendency.value})")
    rprint(stats.feedback_message)

    trend = analyzer.trend()
    if trend is not CalibrationTrend.INSUFFICIENT_DATA:
        rprint(f"[dim]Trend: {trend.value}[/dim]")


@app.command("due")
def due(
    limit: int = typer.Option(20, "--limit", "-n", help="Maximum words to list"),
) -> None:
    """
    List words due for review, most overdue first.
    """
    context = _context_with_content()
    service = context.progress_service()
    due_words = service.get_due_words()
    review = service.get_review_stats()

    rprint(
        f"Due today: [bold]{review.due_today}[/bold]  "
        f"Overdue: [red]{review.overdue}[/red]  "
        f"Next 7 days: {review.upcoming_week}  "
        f"Reviewed today: [green]{review.reviewed_today}[/green]"
    )
    if not due_words:
        rprint("[green]✓[/green] Nothing due for review")
        return

    table = Table(title="Due for Review", show_header=True)
    table.add_column("Word", style="cyan")
    table.add_column("Meaning")
    table.add_column("Overdue (days)", justify="right")
    table.add_column("Interval", justify="right")
    table.add_column("Ease", justify="right")

    for entry in due_words[:limit]:
        word = context.vocabulary.get_word_by_id(entry.word_id)
        table.add_row(
            word.arabic if word else entry.word_id,
            word.english if word else "",
            str(entry.days_overdue),
            f"{entry.sm2.interval}d",
            f"{entry.sm2.ease_factor:.2f}",
        )

    console.print(table)
    if len(due_words) > limit:
        rprint(f"[dim]... and {len(due_words) - limit} more[/dim]")


@app.command("book")
def book(book_number: int = typer.Argument(..., help="Book number")) -> None:
    """
    Show lesson and word progress for one book.
    """
    service = _context_with_content().progress_service()
    try:
        progress = service.get_book_progress(book_number)
    except MasteryEngineError as e:
        rprint(f"[red]✗[/red] {e}")
        raise typer.Exit(code=1)

    table = Table(title=f"Book {book_number}", show_header=False)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Lessons completed", f"{progress.lessons_completed}/{progress.lessons_total}")
    table.add_row("Words learned", f"{progress.words_learned}/{progress.words_total}")
    table.add_row("Words in progress", str(progress.words_in_progress))
    table.add_row("Mastery", f"{progress.mastery_percent}%")
    console.print(table)


# ========================================
# GRAPH COMMANDS
# ========================================

graph_app = typer.Typer(help="Encompassing graph (build, reach)")
app.add_typer(graph_app, name="graph")


@graph_app.command("build")
def graph_build(
    output: Path | None = typer.Option(None, "--output", "-o", help="Also write the graph JSON here"),
) -> None:
    """
    Rebuild the encompassing graph from the content manifest.
    """
    context = _context_with_content()
    graph = context.get_graph(rebuild=True)
    rprint(f"[green]✓[/green] Built graph: {len(graph.encompasses)} sources, {graph.edge_count} edges")

    if output is not None:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(serialize_graph(graph), encoding="utf-8")
        rprint(f"  Written to {output}")


@graph_app.command("reach")
def graph_reach(
    item_id: str = typer.Argument(..., help="Lesson, word or grammar point id"),
    threshold: float = typer.Option(0.5, "--threshold", "-t", help="Minimum edge weight to follow"),
) -> None:
    """
    Show what practicing an item implicitly exercises.
    """
    graph = _context_with_content().get_graph()
    encompassed = sorted(get_all_encompassed(item_id, graph, threshold))
    parents = get_encompassing_items(item_id, graph)

    rprint(f"[bold]{item_id}[/bold]")
    rprint(f"  Direct reach: {calculate_reach(item_id, graph)}")
    rprint(f"  Encompassed at >= {threshold}: {len(encompassed)}")
    for target in encompassed[:20]:
        rprint(f"    {target}")
    if len(encompassed) > 20:
        rprint(f"    [dim]... and {len(encompassed) - 20} more[/dim]")
    if parents:
        rprint("  Encompassed by:")
        for parent in sorted(parents, key=lambda p: p.weight, reverse=True):
            rprint(f"    {parent.target} [dim]({parent.weight:.2f})[/dim]")


# ========================================
# STORAGE COMMANDS
# ========================================


@app.command("migrate")
def migrate() -> None:
    """
    Upgrade stored progress to the current format.

    Safe to run multiple times (idempotent).
    """
    store = get_engine_context().store
    raw = store.get_blob(PROGRESS_KEY)
    if not isinstance(raw, dict):
        rprint("[dim]No stored progress to migrate[/dim]")
        return

    version = raw.get("version", CURRENT_PROGRESS_VERSION)
    if isinstance(version, int) and version >= CURRENT_PROGRESS_VERSION:
        rprint(f"[green]✓[/green] Progress already at version {CURRENT_PROGRESS_VERSION}")
        return

    store.get_progress()
    stored = store.get_blob(PROGRESS_KEY)
    if not isinstance(stored, dict) or stored.get("version") != CURRENT_PROGRESS_VERSION:
        rprint(f"[red]✗[/red] Migration failed; stored progress is still at version {version}")
        raise typer.Exit(code=1)

    before = raw.get("wordMastery")
    after = stored.get("wordMastery") or {}
    migrated = sum(
        1
        for word_id, record in (before.items() if isinstance(before, dict) else [])
        if isinstance(record, dict) and "sm2" not in record and "sm2" in after.get(word_id, {})
    )
    rprint(f"[green]✓[/green] Migrated progress v{version} -> v{CURRENT_PROGRESS_VERSION} ({migrated} records)")


@app.command("reset")
def reset(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt"),
) -> None:
    """
    Delete all stored progress and the cached graph.
    """
    if not yes and not typer.confirm("Delete all stored progress?"):
        raise typer.Exit(code=1)
    get_engine_context().reset_progress()
    rprint("[green]✓[/green] Progress reset")


def _configure_logging() -> None:
    settings = get_settings()
    logger.remove()
    logger.add(
        sys.stderr,
        level=settings.log_level,
        format="<dim>{time:HH:mm:ss}</dim> | <level>{level: <8}</level> | {message}",
    )
    if settings.log_file:
        logger.add(settings.log_file, level="DEBUG", rotation="10 MB", retention=5)


def main() -> None:
    """Entry point for the CLI."""
    _configure_logging()
    app()


if __name__ == "__main__":
    main()
