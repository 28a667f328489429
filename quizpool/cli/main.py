"""
Typer CLI for the quizpool service.

Commands:
    quizpool db init        - Initialize database tables
    quizpool ingest FILE    - Ingest a JSON file of generated items
    quizpool audit          - Audit items with the configured judge
    quizpool select         - Select a quiz for a learner
    quizpool answer         - Record a graded answer
    quizpool stats          - Show pool statistics and coverage

Usage:
    quizpool --help
    quizpool ingest generated/unit1.json --generated-by gen-v2
    quizpool audit --unit unit-1 --pending-only --limit 50
    quizpool select --unit unit-1 --learner learner-1 --type multiple-choice=0.5 --type writing=0.5
"""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path
from typing import List, Optional
from uuid import UUID

import typer
from loguru import logger
from pydantic import ValidationError
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from quizpool.config import get_settings

app = typer.Typer(
    help="quizpool CLI: generated quiz items -> quality gate -> adaptive quizzes",
    no_args_is_help=True,
)

console = Console()


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logs"),
) -> None:
    """Configure logging for every command."""
    settings = get_settings()
    logger.remove()
    logger.add(
        sys.stderr,
        level="DEBUG" if verbose else settings.log_level,
        format="<level>{level: <8}</level> | <level>{message}</level>",
    )
    if settings.log_file:
        logger.add(settings.log_file, level="DEBUG", rotation="10 MB")


# ========================================
# Database
# ========================================

db_app = typer.Typer(help="Database management")
app.add_typer(db_app, name="db")


@db_app.command("init")
def db_init() -> None:
    """
    Initialize database tables from SQLAlchemy models.

    Safe to run multiple times (idempotent).
    """
    from quizpool.db.database import init_db

    logger.info("Initializing database tables...")
    init_db()
    rprint("[green]✓[/green] Database initialized!")


# ========================================
# Ingestion
# ========================================


def _load_items(path: Path) -> list:
    data = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = data.get("items", data.get("questions", []))
    if not isinstance(data, list):
        raise ValueError("Expected a JSON list of items or an object with an 'items' list")
    return data


@app.command("ingest")
def ingest(
    source: Path = typer.Argument(..., help="JSON file of generated items"),
    generated_by: Optional[str] = typer.Option(None, "--generated-by", "-g", help="Generator identifier"),
) -> None:
    """Insert generated items as pending, skipping duplicates."""
    from quizpool.identity import CollisionLevel, GeneratedItem
    from quizpool.service import QuizPoolService

    if not source.exists():
        console.print(f"[red]Error: Source not found: {source}[/red]")
        raise typer.Exit(1)

    try:
        items = [GeneratedItem.model_validate(raw) for raw in _load_items(source)]
    except (ValueError, ValidationError) as e:
        console.print(f"[red]Error: Invalid item file: {e}[/red]")
        raise typer.Exit(1)

    report = QuizPoolService().ingest(items, source_file=str(source), generated_by=generated_by)

    table = Table(title=f"Batch {report.batch_id}")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Attempted", str(report.attempted))
    table.add_row("Inserted", f"[green]{report.inserted}[/green]")
    table.add_row("Skipped (duplicate)", f"[yellow]{report.skipped}[/yellow]")
    table.add_row("Collision rate", f"{report.collision_rate:.1%}")
    console.print(table)

    level = report.collision_level
    if level != CollisionLevel.OK:
        color = "red" if level == CollisionLevel.STOP else "yellow"
        console.print(f"[{color}]{level.value.upper()}: {level.advice}[/{color}]")


# ========================================
# Audit
# ========================================


@app.command("audit")
def audit(
    unit: Optional[str] = typer.Option(None, "--unit", "-u", help="Only items of this unit"),
    difficulty: Optional[str] = typer.Option(None, "--difficulty", "-d", help="beginner|intermediate|advanced"),
    item_type: Optional[str] = typer.Option(None, "--type", "-t", help="Item type"),
    batch: Optional[str] = typer.Option(None, "--batch", "-b", help="Only items of this batch"),
    pending_only: bool = typer.Option(False, "--pending-only", help="Skip items already audited"),
    limit: Optional[int] = typer.Option(None, "--limit", "-l", help="Max items to audit"),
    auditor: str = typer.Option("judge", "--auditor", help="Auditor identifier recorded on verdicts"),
    kind: str = typer.Option("core", "--kind", "-k", help="Verdict schema: core|extended"),
) -> None:
    """Audit items with the configured judge and apply the quality gate."""
    from quizpool.db.database import session_scope
    from quizpool.domain import Difficulty, ItemStatus, ItemType
    from quizpool.identity import ItemRepository
    from quizpool.quality import HttpJudge
    from quizpool.service import QuizPoolService

    if kind not in ("core", "extended"):
        console.print(f"[red]Error: Unknown verdict kind: {kind}[/red]")
        raise typer.Exit(1)

    settings = get_settings()
    if not settings.has_judge_configured():
        console.print("[red]Error: No judge configured (set JUDGE_URL)[/red]")
        raise typer.Exit(1)

    try:
        difficulty_filter = Difficulty(difficulty) if difficulty else None
        type_filter = ItemType(item_type) if item_type else None
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    with session_scope() as session:
        items = ItemRepository(session).find(
            unit_id=unit,
            difficulty=difficulty_filter,
            item_type=type_filter,
            batch_id=batch,
            status=ItemStatus.PENDING if pending_only else None,
        )
        item_ids = [item.id for item in items]
    if limit is not None:
        item_ids = item_ids[:limit]

    if not item_ids:
        console.print("[yellow]No items match the filters.[/yellow]")
        return

    console.print(f"Auditing {len(item_ids)} items with {auditor} ({kind})...")

    async def run():
        async with HttpJudge(
            settings.judge_url,
            auditor=auditor,
            kind=kind,
            model=settings.judge_model,
            api_key=settings.judge_api_key,
            timeout_seconds=settings.judge_timeout_seconds,
        ) as judge:
            return await QuizPoolService(settings=settings).evaluate(item_ids, judge)

    outcome = asyncio.run(run())
    report = outcome.report

    table = Table(title="Audit Results")
    table.add_column("Outcome", style="cyan")
    table.add_column("Count", justify="right")
    table.add_row("Passed", f"[green]{report.passed}[/green]")
    table.add_row("Flagged", f"[red]{report.flagged}[/red]")
    table.add_row("Tool failures", f"[yellow]{report.tool_failures}[/yellow]")
    table.add_row("Relabeled", str(report.relabeled))
    table.add_row("Variations pruned", str(report.variations_removed))
    console.print(table)

    if report.failures_by_criterion:
        failures = Table(title="Failures by Criterion")
        failures.add_column("Criterion", style="cyan")
        failures.add_column("Count", justify="right")
        for criterion, count in report.failures_by_criterion.most_common():
            failures.add_row(criterion, str(count))
        console.print(failures)


# ========================================
# Selection & Mastery
# ========================================


def _parse_ratios(values: List[str]) -> dict[str, float]:
    ratios: dict[str, float] = {}
    for value in values:
        name, sep, ratio = value.partition("=")
        if not sep:
            raise typer.BadParameter(f"Expected TYPE=RATIO, got {value!r}")
        try:
            ratios[name.strip()] = float(ratio)
        except ValueError:
            raise typer.BadParameter(f"Ratio is not a number: {value!r}")
    return ratios


@app.command("select")
def select_quiz(
    unit: Optional[str] = typer.Option(None, "--unit", "-u", help="Unit id"),
    learner: Optional[str] = typer.Option(None, "--learner", help="Learner id (omit for anonymous)"),
    topic: Optional[str] = typer.Option(None, "--topic", help="Topic (case-insensitive)"),
    difficulty: Optional[str] = typer.Option(None, "--difficulty", "-d", help="beginner|intermediate|advanced"),
    count: Optional[int] = typer.Option(None, "--count", "-n", help="Quiz size"),
    types: List[str] = typer.Option([], "--type", "-t", help="TYPE=RATIO, repeatable"),
    seed: Optional[str] = typer.Option(None, "--seed", help="Seed for a reproducible quiz"),
) -> None:
    """Select a quiz from the active pool."""
    from quizpool.domain import Difficulty
    from quizpool.selection import QuizRequest
    from quizpool.service import QuizPoolService

    try:
        difficulty_filter = Difficulty(difficulty) if difficulty else None
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    request = QuizRequest(
        unit_id=unit,
        learner_id=learner,
        topic=topic,
        difficulty=difficulty_filter,
        count=count,
        type_distribution=_parse_ratios(types),
        seed=seed,
    )
    selection = QuizPoolService().select_quiz(request)

    table = Table(title=f"Quiz ({len(selection.items)}/{selection.requested})")
    table.add_column("#", justify="right")
    table.add_column("ID", style="dim")
    table.add_column("Type", style="cyan")
    table.add_column("Difficulty")
    table.add_column("Question")
    for i, item in enumerate(selection.items, 1):
        table.add_row(str(i), str(item.id), item.item_type, item.difficulty.value, item.question[:60])
    console.print(table)

    for warning in selection.warnings:
        console.print(f"[yellow]Warning: {warning}[/yellow]")


@app.command("answer")
def answer(
    learner: str = typer.Argument(..., help="Learner id"),
    item_id: str = typer.Argument(..., help="Answered item id"),
    correct: bool = typer.Option(..., "--correct/--wrong", help="Grading outcome"),
) -> None:
    """Record a graded answer and show the learner's new box."""
    from quizpool.exceptions import ItemNotFoundError
    from quizpool.service import QuizPoolService

    try:
        parsed_id = UUID(item_id)
    except ValueError:
        console.print(f"[red]Error: Not an item id: {item_id}[/red]")
        raise typer.Exit(1)

    try:
        record = QuizPoolService().record_answer(learner, parsed_id, correct)
    except ItemNotFoundError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    rprint(
        f"[green]✓[/green] Box {record.box} "
        f"(streak {record.consecutive_correct}, {record.correct_count}/{record.review_count} correct)"
    )


@app.command("stats")
def stats(
    unit: Optional[str] = typer.Option(None, "--unit", "-u", help="Unit id (omit for all)"),
    learner: Optional[str] = typer.Option(None, "--learner", help="Show this learner's box distribution"),
) -> None:
    """Show pool statistics and coverage recommendations."""
    from quizpool.db.database import session_scope
    from quizpool.mastery import MasteryTracker
    from quizpool.selection import coverage_recommendations, get_pool_statistics

    settings = get_settings()
    with session_scope() as session:
        pool = get_pool_statistics(session, unit_id=unit, min_items=settings.default_quiz_size)
        boxes = MasteryTracker(session).box_distribution(learner) if learner else None

    table = Table(title=f"Pool: {unit or 'all units'}")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Total", str(pool.total_items))
    table.add_row("Active", f"[green]{pool.active_items}[/green]")
    table.add_row("Pending", str(pool.pending_items))
    table.add_row("Flagged", f"[red]{pool.flagged_items}[/red]")
    for item_type, count in pool.type_distribution.items():
        table.add_row(f"  {item_type}", str(count))
    for difficulty, count in pool.difficulty_distribution.items():
        table.add_row(f"  {difficulty}", str(count))
    console.print(table)

    if boxes is not None:
        box_table = Table(title=f"Leitner boxes: {learner}")
        box_table.add_column("Box", justify="right")
        box_table.add_column("Items", justify="right")
        for box, count in boxes.items():
            box_table.add_row(str(box), str(count))
        console.print(box_table)

    for rec in coverage_recommendations(pool, settings.default_type_distribution):
        console.print(f"[yellow]•[/yellow] {rec}")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
