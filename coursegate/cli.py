"""
coursegate admin CLI.

Commands:
- coursegate serve       - Run the HTTP service
- coursegate init-db     - Create the progress tables
- coursegate validate    - Check a course directory and its knowledge checks
- coursegate dashboard   - Print dashboard metrics for the configured database
"""
from __future__ import annotations

import sys
from pathlib import Path
from typing import List, Optional

import typer
from loguru import logger
from rich.console import Console
from rich.table import Table

from config import get_settings
from coursegate.course.loader import load_course_directory
from coursegate.errors import CoursegateError
from coursegate.knowledge_check.questions import validate_question

app = typer.Typer(
    name="coursegate",
    help="Learner progress and course gating engine",
    no_args_is_help=True,
)
console = Console()
settings = get_settings()


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address (default: settings.api_host)"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port (default: settings.api_port)"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
) -> None:
    """Run the HTTP service."""
    import uvicorn

    uvicorn.run(
        "coursegate.api.main:app",
        host=host or settings.api_host,
        port=port or settings.api_port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


@app.command("init-db")
def init_db_command() -> None:
    """Create the progress tables in the configured database."""
    from coursegate.db.database import init_db

    init_db()
    console.print(f"[green]Tables ready[/green] ({settings.database_url.split('@')[-1]})")


@app.command()
def validate(
    course_dir: Path = typer.Argument(..., exists=True, file_okay=False, help="Course directory (holds course.yaml)"),
) -> None:
    """
    Load a course directory and check every knowledge check question.

    Exits with status 1 when the course fails to load or any question has
    structural problems.
    """
    try:
        course = load_course_directory(course_dir)
    except (CoursegateError, FileNotFoundError) as e:
        console.print(f"[bold red]Invalid course:[/bold red] {e}")
        raise typer.Exit(1)

    table = Table(title=f"{course.slug}: {course.title}")
    table.add_column("Module", style="cyan")
    table.add_column("Lessons", justify="right")
    table.add_column("Questions", justify="right")
    table.add_column("Problems", style="red")

    problem_count = 0
    for module in course.modules:
        problems: list[str] = []
        questions = module.knowledge_check.questions if module.knowledge_check else []
        for question in questions:
            problems += [f"{question.id}: {p}" for p in validate_question(question)]
        problem_count += len(problems)
        table.add_row(module.slug, str(len(module.lessons)), str(len(questions)), "\n".join(problems) or "-")

    console.print(table)
    if problem_count:
        console.print(f"[bold red]{problem_count} problem(s) found[/bold red]")
        raise typer.Exit(1)
    console.print(f"[green]OK[/green] {len(course.modules)} modules, {course.total_lessons} lessons")


@app.command()
def dashboard(
    course: Optional[str] = typer.Option(None, "--course", "-c", help="Course slug (default: first course)"),
    user: Optional[List[str]] = typer.Option(None, "--user", "-u", help="Restrict to these user ids"),
) -> None:
    """Print dashboard metrics."""
    from coursegate.api.main import build_service

    try:
        metrics = build_service().get_dashboard_metrics(course, user or None)
    except CoursegateError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    table = Table(show_header=False, box=None)
    table.add_column("Metric", style="dim")
    table.add_column("Value", style="bold")
    table.add_row("Learners", str(metrics.total_users))
    table.add_row("Completed", str(metrics.completed))
    table.add_row("In progress", str(metrics.in_progress))
    table.add_row("Not started", str(metrics.not_started))
    table.add_row("Avg completion", f"{metrics.avg_completion_pct}%")
    table.add_row("Avg time to completion", f"{metrics.avg_time_to_completion_seconds // 60} min")
    table.add_row("Avg knowledge check score", f"{metrics.avg_kc_score}%")
    console.print(table)

    if metrics.module_funnel:
        funnel = Table(title="Module funnel")
        funnel.add_column("Module")
        funnel.add_column("Completed", justify="right")
        for entry in metrics.module_funnel:
            funnel.add_row(entry.module_title or entry.module_slug, f"{entry.completion_pct}%")
        console.print(funnel)


def main() -> None:
    """CLI entry point."""
    # Configure logging
    logger.remove()
    logger.add(
        sys.stderr,
        level=settings.log_level,
        format="<dim>{time:HH:mm:ss}</dim> | <level>{level: <8}</level> | {message}",
    )

    app()


if __name__ == "__main__":
    main()
