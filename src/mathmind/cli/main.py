"""
Main CLI entry point for the MathMind admin interface.

Usage:
    mathmind db init
    mathmind ingest tasks data/seed_tasks.json
    mathmind attempt start stu-1 cls-1 discount-price
    mathmind analytics mistakes cls-1
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path

import typer

from mathmind.db.connection import close_engine, get_session_factory, init_db
from mathmind.models import ClassroomCreate, StudentCreate
from mathmind.services.errors import MathMindError
from mathmind.settings import get_settings

# Main app
app = typer.Typer(name="mathmind", help="MathMind guided-task admin CLI")


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging")):
    """Configure logging for every command."""
    level = "DEBUG" if verbose else get_settings().log_level
    logging.basicConfig(level=level, format="%(asctime)s - %(levelname)s - %(message)s")


# ============================================================================
# Database Session Helper
# ============================================================================


@asynccontextmanager
async def get_async_session():
    """Get async database session; the engine is disposed with the event loop."""
    try:
        async with get_session_factory()() as session:
            yield session
    finally:
        await close_engine()


def run_async(coro):
    """Run a coroutine, turning engine errors into a clean exit."""
    try:
        return asyncio.run(coro)
    except MathMindError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from e


def _timeout() -> float:
    return get_settings().storage_timeout_seconds


# ============================================================================
# Database Commands
# ============================================================================

db_app = typer.Typer(help="Database operations")
app.add_typer(db_app, name="db")


@db_app.command("init")
def db_init():
    """Create all tables."""

    async def _init():
        try:
            await init_db()
        finally:
            await close_engine()

    typer.echo("Creating database tables...")
    run_async(_init())
    typer.echo("Database initialized successfully")


# ============================================================================
# Ingest Commands
# ============================================================================

ingest_app = typer.Typer(help="Import from files")
app.add_typer(ingest_app, name="ingest")


@ingest_app.command("tasks")
def ingest_tasks(
    file: Path = typer.Argument(..., help="JSON file with topics and task graphs"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Validate without importing"),
):
    """Ingest topics and task graphs from file."""
    from mathmind.services.ingest import ingest_task_file

    async def _ingest():
        async with get_async_session() as session:
            return await ingest_task_file(session, file, dry_run=dry_run)

    try:
        result = run_async(_ingest())
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from e

    if dry_run:
        typer.echo("Dry run - no changes made")
        typer.echo(f"Would create: {result.topic_count} topics")
        typer.echo(f"Would create: {result.task_count} tasks")
        if result.errors:
            typer.echo(f"Errors: {len(result.errors)}")
            for e in result.errors:
                typer.echo(f"  - {e}")
    else:
        typer.echo(f"Topics: {result.topic_count}")
        typer.echo(f"Tasks created: {result.task_count}")
        if result.skipped:
            typer.echo(f"Tasks skipped (already registered): {len(result.skipped)}")


# ============================================================================
# Task Commands
# ============================================================================

task_app = typer.Typer(help="Task graphs")
app.add_typer(task_app, name="task")


@task_app.command("list")
def task_list(topic: str = typer.Option(None, "--topic", "-t", help="Only tasks of this topic")):
    """List registered tasks."""
    from mathmind.services.graph_service import list_tasks

    async def _list():
        async with get_async_session() as session:
            return await list_tasks(session, topic_id=topic)

    tasks = run_async(_list())

    if not tasks:
        typer.echo("No tasks found.")
        return

    for t in tasks:
        typer.echo(f"○ {t.id}: {t.title} [{t.topic_id or '-'}]")


@task_app.command("show")
def task_show(task_id: str = typer.Argument(..., help="Task ID")):
    """Show a task graph."""
    from mathmind.services.graph_service import load_graph

    async def _show():
        async with get_async_session() as session:
            return await load_graph(session, task_id)

    graph = run_async(_show())

    typer.echo(f"Task: {graph.id}")
    typer.echo(f"  Title: {graph.title}")
    typer.echo(f"  Root: {graph.root_node}")
    for node in graph.nodes.values():
        marker = " (terminal)" if node.terminal else ""
        typer.echo(f"  [{node.key}]{marker} {node.prompt}")
        for choice in node.choices:
            target = choice.next_node or "(end)"
            label = f"mistake: {choice.mistake_type}" if choice.is_mistake else "correct"
            typer.echo(f"    {choice.key} -> {target} ({label}) {choice.text}")


# ============================================================================
# Student and Class Commands
# ============================================================================

student_app = typer.Typer(help="Student management")
app.add_typer(student_app, name="student")


@student_app.command("create")
def student_create(
    name: str = typer.Argument(..., help="Student name"),
    student_id: str = typer.Option(None, "--id", help="External student ID"),
):
    """Register a student."""
    from mathmind.services.classroom_service import create_student

    async def _create():
        async with get_async_session() as session:
            return await create_student(session, StudentCreate(id=student_id, name=name))

    student = run_async(_create())
    typer.echo(f"Created student: {student.id}")


class_app = typer.Typer(help="Class management")
app.add_typer(class_app, name="class")


@class_app.command("create")
def class_create(
    name: str = typer.Argument(..., help="Class name"),
    teacher: str = typer.Option(None, "--teacher", help="Teacher ID"),
):
    """Create a class with a fresh invite code."""
    from mathmind.services.classroom_service import create_class

    async def _create():
        async with get_async_session() as session:
            return await create_class(session, ClassroomCreate(name=name, teacher_id=teacher))

    classroom = run_async(_create())
    typer.echo(f"Created class: {classroom.id}")
    typer.echo(f"  Invite code: {classroom.invite_code}")


@class_app.command("join")
def class_join(
    student_id: str = typer.Argument(..., help="Student ID"),
    invite_code: str = typer.Argument(..., help="Invite code"),
):
    """Enroll a student using an invite code."""
    from mathmind.services.classroom_service import join_class

    async def _join():
        async with get_async_session() as session:
            return await join_class(session, student_id, invite_code)

    classroom = run_async(_join())
    typer.echo(f"{student_id} joined {classroom.name} ({classroom.id})")


@class_app.command("students")
def class_students(class_id: str = typer.Argument(..., help="Class ID")):
    """List students enrolled in a class."""
    from mathmind.services.classroom_service import list_class_students

    async def _list():
        async with get_async_session() as session:
            return await list_class_students(session, class_id)

    students = run_async(_list())

    if not students:
        typer.echo("No students enrolled.")
        return

    for s in students:
        typer.echo(f"• {s.id}: {s.name}")


# ============================================================================
# Attempt Commands
# ============================================================================

attempt_app = typer.Typer(help="Walk task graphs")
app.add_typer(attempt_app, name="attempt")


@attempt_app.command("start")
def attempt_start(
    student_id: str = typer.Argument(..., help="Student ID"),
    class_id: str = typer.Argument(..., help="Class ID"),
    task_id: str = typer.Argument(..., help="Task ID"),
):
    """Get or create the student's attempt and show the current prompt."""
    from mathmind.services.attempt_service import get_or_create_attempt
    from mathmind.services.graph_service import get_node, load_graph

    async def _start():
        async with get_async_session() as session:
            attempt = await get_or_create_attempt(
                session, student_id, class_id, task_id, timeout=_timeout()
            )
            graph = await load_graph(session, task_id)
            return attempt, get_node(graph, attempt.current_node)

    attempt, node = run_async(_start())

    typer.echo(f"Attempt: {attempt.id}")
    if attempt.completed:
        typer.echo("  Completed.")
        return
    typer.echo(f"  Node: {node.key}")
    typer.echo(f"  {node.prompt}")
    for choice in node.choices:
        typer.echo(f"    [{choice.key}] {choice.text}")


@attempt_app.command("choose")
def attempt_choose(
    attempt_id: str = typer.Argument(..., help="Attempt ID"),
    node_key: str = typer.Argument(..., help="Node being answered"),
    choice_key: str = typer.Argument(..., help="Chosen option"),
):
    """Submit a choice."""
    from mathmind.services.attempt_service import submit_choice

    async def _choose():
        async with get_async_session() as session:
            return await submit_choice(
                session, attempt_id, node_key, choice_key, timeout=_timeout()
            )

    result = run_async(_choose())

    if result.is_correct:
        typer.echo("Correct!")
    else:
        typer.echo(f"Mistake: {result.mistake_type}")
        if result.hint:
            typer.echo(f"  Hint: {result.hint}")
    if result.completed:
        typer.echo("Task completed.")
    else:
        typer.echo(f"Next node: {result.next_node}")


@attempt_app.command("show")
def attempt_show(attempt_id: str = typer.Argument(..., help="Attempt ID")):
    """Show an attempt and its step history."""
    from mathmind.services.attempt_service import get_attempt, get_attempt_steps

    async def _show():
        async with get_async_session() as session:
            return await get_attempt(session, attempt_id), await get_attempt_steps(
                session, attempt_id
            )

    attempt, steps = run_async(_show())

    typer.echo(f"Attempt: {attempt.id}")
    typer.echo(f"  Task: {attempt.task_id}  Class: {attempt.class_id}")
    typer.echo(f"  Student: {attempt.student_id}")
    typer.echo(f"  Current node: {attempt.current_node}")
    typer.echo(f"  Completed: {attempt.completed}")
    for step in steps:
        mark = "✗" if step.is_mistake else "✓"
        typer.echo(f"  {mark} {step.node_key}/{step.choice_key}")


# ============================================================================
# Analytics Commands
# ============================================================================

analytics_app = typer.Typer(help="Teacher analytics")
app.add_typer(analytics_app, name="analytics")


@analytics_app.command("mistakes")
def analytics_mistakes(class_id: str = typer.Argument(..., help="Class ID")):
    """Mistake frequency for a class."""
    from mathmind.services.analytics_service import mistake_frequency_by_class

    async def _mistakes():
        async with get_async_session() as session:
            return await mistake_frequency_by_class(session, class_id, timeout=_timeout())

    frequencies = run_async(_mistakes())

    if not frequencies:
        typer.echo("No mistakes recorded.")
        return

    for f in frequencies:
        typer.echo(f"{f.count:>4}  {f.mistake_type}")


@analytics_app.command("topics")
def analytics_topics(class_id: str = typer.Argument(..., help="Class ID")):
    """Mistake frequency per topic for a class."""
    from mathmind.services.analytics_service import mistake_frequency_by_topic

    async def _topics():
        async with get_async_session() as session:
            return await mistake_frequency_by_topic(session, class_id, timeout=_timeout())

    frequencies = run_async(_topics())

    if not frequencies:
        typer.echo("No mistakes recorded.")
        return

    current = None
    for f in frequencies:
        if f.topic_id != current:
            typer.echo(f"{f.topic_title} ({f.topic_id})")
            current = f.topic_id
        typer.echo(f"  {f.count:>4}  {f.mistake_type}")


@analytics_app.command("students")
def analytics_students(class_id: str = typer.Argument(..., help="Class ID")):
    """Per-student mistake breakdown for a class."""
    from mathmind.services.analytics_service import student_mistake_breakdown

    async def _students():
        async with get_async_session() as session:
            return await student_mistake_breakdown(session, class_id, timeout=_timeout())

    breakdown = run_async(_students())

    if not breakdown:
        typer.echo("No students found.")
        return

    for entry in breakdown:
        typer.echo(f"• {entry.student_name or entry.student_id}: {entry.total} mistake(s)")
        for mistake_type, count in sorted(entry.mistakes.items()):
            typer.echo(f"    {count:>4}  {mistake_type}")


@analytics_app.command("recent")
def analytics_recent(
    class_id: str = typer.Argument(..., help="Class ID"),
    limit: int = typer.Option(None, "--limit", "-n", help="Maximum records to show"),
):
    """Most recent mistakes in a class."""
    from mathmind.services.ledger_service import recent_for_class

    async def _recent():
        async with get_async_session() as session:
            return await recent_for_class(
                session,
                class_id,
                limit=limit if limit is not None else get_settings().recent_mistakes_limit,
                timeout=_timeout(),
            )

    try:
        records = run_async(_recent())
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from e

    if not records:
        typer.echo("No mistakes recorded.")
        return

    for r in records:
        where = f"{r.task_id}/{r.node_key}"
        typer.echo(f"{r.created_at:%Y-%m-%d %H:%M}  {r.student_id}  {where}  {r.mistake_type}")


# ============================================================================
# Assistant Command
# ============================================================================


@app.command("assistant")
def assistant(
    goal: str = typer.Argument(..., help="plan, homework, test or mistakes"),
    class_id: str = typer.Argument(..., help="Class ID"),
    topic: str = typer.Option("", "--topic", "-t", help="Topic to focus on"),
):
    """Generate teaching material from a class's mistake statistics."""
    from mathmind.services.analytics_service import mistake_frequency_by_class
    from mathmind.services.assistant import AssistantGoal, generate_text

    try:
        selected = AssistantGoal(goal)
    except ValueError as e:
        choices = ", ".join(g.value for g in AssistantGoal)
        typer.echo(f"Unknown goal {goal!r}; choose from {choices}", err=True)
        raise typer.Exit(1) from e

    async def _frequencies():
        async with get_async_session() as session:
            return await mistake_frequency_by_class(session, class_id, timeout=_timeout())

    typer.echo(generate_text(selected, run_async(_frequencies()), topic))


if __name__ == "__main__":
    app()
