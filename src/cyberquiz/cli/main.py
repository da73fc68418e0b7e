"""Main CLI entry point for cyberquiz.

This module defines the Typer application and all CLI commands.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from typing import Annotated, Any, TypeVar

import typer
from pydantic import BaseModel, ValidationError

from cyberquiz import __version__
from cyberquiz.admin import ReviewService, SettingsService
from cyberquiz.core.config import Settings
from cyberquiz.core.exceptions import CyberQuizError
from cyberquiz.pipeline import Pipeline

T = TypeVar("T")

app = typer.Typer(
    name="cyberquiz",
    help="cyberquiz: keeps a pool of AI-generated cybersecurity questions ready for review.",
    add_completion=False,
    no_args_is_help=True,
)
settings_app = typer.Typer(help="Show or change generation settings.", no_args_is_help=True)
review_app = typer.Typer(help="Review generated questions.", no_args_is_help=True)
app.add_typer(settings_app, name="settings")
app.add_typer(review_app, name="review")

# Global state for options
state: dict[str, bool] = {
    "json": False,
}

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"cyberquiz v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[  # noqa: ARG001
        bool | None,
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option(
            "--json",
            help="Output results in JSON format.",
        ),
    ] = False,
) -> None:
    """cyberquiz: AI question generation pipeline.

    Configuration comes from CYBERQUIZ_* environment variables or a .env file.
    """
    state["json"] = json_output


def _load_settings() -> Settings:
    try:
        settings = Settings()
    except ValidationError as e:
        typer.echo(f"Error: invalid configuration: {e}", err=True)
        raise typer.Exit(2) from e
    logging.basicConfig(level=settings.log_level.upper(), format=LOG_FORMAT)
    return settings


def _run(action: Callable[[Pipeline], Awaitable[T]]) -> T:
    """Run ``action`` against a freshly opened pipeline, mapping pipeline errors to exit code 1."""
    settings = _load_settings()

    async def runner() -> T:
        async with Pipeline(settings) as pipeline:
            return await action(pipeline)

    try:
        return asyncio.run(runner())
    except CyberQuizError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from e


def _echo_json(data: BaseModel | list[BaseModel] | dict[str, Any]) -> None:
    if isinstance(data, BaseModel):
        typer.echo(data.model_dump_json(indent=2))
    elif isinstance(data, list):
        typer.echo(json.dumps([item.model_dump(mode="json") for item in data], indent=2))
    else:
        typer.echo(json.dumps(data, indent=2, default=str))


def _short(text: str, width: int = 80) -> str:
    return text if len(text) <= width else text[: width - 3] + "..."


@app.command()
def version() -> None:
    """Show the current version."""
    typer.echo(f"cyberquiz v{__version__}")


@app.command()
def status() -> None:
    """Show the review pool status."""
    result = _run(lambda pipeline: pipeline.maintainer.get_status())

    if state["json"]:
        _echo_json(result)
        return

    typer.echo()
    typer.echo("  Review pool")
    typer.echo("  " + "-" * 40)
    typer.echo(f"    Pending:      {result.current_size}/{result.target_size}")
    typer.echo(f"    Missing:      {result.missing}")
    typer.echo(f"    Auto-refill:  {'on' if result.auto_refill_enabled else 'off'}")
    typer.echo(f"    Queued jobs:  {result.queued_jobs}")
    if result.last_run.last_error:
        typer.echo(f"    Last error:   {result.last_run.last_error}")
    if result.status_error:
        typer.echo(f"    Unavailable:  {result.status_error}")
    typer.echo()


@app.command()
def fill(
    wait: Annotated[
        bool,
        typer.Option(
            "--wait/--no-wait",
            help="Wait for the queued jobs to finish before exiting.",
        ),
    ] = True,
) -> None:
    """Queue generation jobs for the missing questions.

    Without --wait the queued jobs are dropped when the command exits,
    so --no-wait only reports what would be generated.

    Examples:
        cyberquiz fill
        cyberquiz --json fill --no-wait
    """

    async def action(pipeline: Pipeline) -> dict[str, Any]:
        queued = await pipeline.maintainer.force_fill()
        if wait:
            await pipeline.maintainer.wait_idle()
        status = await pipeline.maintainer.get_status()
        return {
            "queued": queued,
            "waited": wait,
            "current_size": status.current_size,
            "target_size": status.target_size,
            "discarded_jobs": status.discarded_jobs,
            "last_error": status.last_run.last_error,
        }

    result = _run(action)

    if state["json"]:
        _echo_json(result)
        return

    typer.echo(f"  Queued {result['queued']} generation job(s).")
    if wait:
        typer.echo(f"  Pool: {result['current_size']}/{result['target_size']}")
        if result["last_error"]:
            typer.echo(f"  Last error: {result['last_error']}")


@app.command()
def generate(
    count: Annotated[
        int,
        typer.Option(
            "--count",
            "-n",
            min=1,
            help="Number of questions to generate.",
        ),
    ] = 1,
) -> None:
    """Generate questions now, regardless of the pool target.

    Example:
        cyberquiz generate -n 3
    """

    async def action(pipeline: Pipeline) -> list[Any]:
        return [await pipeline.worker.generate_one() for _ in range(count)]

    questions = _run(action)

    if state["json"]:
        _echo_json(questions)
        return

    for question in questions:
        typer.echo(f"  [{question.id}] {question.question_text}")
        typer.echo(f"       answer: {question.correct_answer}  difficulty: {question.difficulty:.2f}")
        for similar in question.potential_duplicates:
            typer.echo(f"       similar to #{similar.id} ({similar.similarity:.2f})")


@settings_app.command("show")
def settings_show() -> None:
    """Show the current generation settings."""
    result = _run(lambda pipeline: pipeline.generation_settings.get())

    if state["json"]:
        _echo_json(result)
        return

    typer.echo()
    typer.echo("  Generation settings")
    typer.echo("  " + "-" * 40)
    typer.echo(f"    Buffer size:        {result.buffer_size}")
    typer.echo(f"    Auto-refill:        {'on' if result.auto_refill_enabled else 'off'}")
    typer.echo(f"    Structured space:   {'on' if result.structured_space_enabled else 'off'}")
    typer.echo(f"    Use context:        {'on' if result.use_context else 'off'}")
    typer.echo(f"    Default topic:      {result.default_topic}")
    typer.echo(f"    Domains:            {', '.join(result.enabled_domains)}")
    typer.echo(f"    Skill types:        {', '.join(result.enabled_skill_types)}")
    typer.echo(f"    Difficulties:       {', '.join(result.enabled_difficulties)}")
    typer.echo(f"    Granularities:      {', '.join(result.enabled_granularities)}")
    typer.echo()


@settings_app.command("set")
def settings_set(
    buffer_size: Annotated[int | None, typer.Option("--buffer-size", help="Target number of pending questions.")] = None,
    auto_refill: Annotated[
        bool | None,
        typer.Option("--auto-refill/--no-auto-refill", help="Refill the pool automatically."),
    ] = None,
    structured: Annotated[
        bool | None,
        typer.Option("--structured/--no-structured", help="Sample slots from the enabled dimensions."),
    ] = None,
    use_context: Annotated[
        bool | None,
        typer.Option("--use-context/--no-use-context", help="Add external context to prompts."),
    ] = None,
    topic: Annotated[str | None, typer.Option("--topic", help="Topic used when slots are disabled.")] = None,
    domains: Annotated[list[str] | None, typer.Option("--domain", help="Enabled domain (repeatable).")] = None,
    skill_types: Annotated[
        list[str] | None, typer.Option("--skill-type", help="Enabled skill type (repeatable).")
    ] = None,
    difficulties: Annotated[
        list[str] | None, typer.Option("--difficulty", help="Enabled difficulty (repeatable).")
    ] = None,
    granularities: Annotated[
        list[str] | None, typer.Option("--granularity", help="Enabled granularity (repeatable).")
    ] = None,
) -> None:
    """Change generation settings.

    Examples:
        cyberquiz settings set --buffer-size 20
        cyberquiz settings set --structured --domain Cryptography --domain "Web Security"
    """
    changes: dict[str, Any] = {
        "buffer_size": buffer_size,
        "auto_refill_enabled": auto_refill,
        "structured_space_enabled": structured,
        "use_context": use_context,
        "default_topic": topic,
        "enabled_domains": domains or None,
        "enabled_skill_types": skill_types or None,
        "enabled_difficulties": difficulties or None,
        "enabled_granularities": granularities or None,
    }
    changes = {key: value for key, value in changes.items() if value is not None}
    if not changes:
        typer.echo("Error: nothing to change. Run 'cyberquiz settings set --help' for options.", err=True)
        raise typer.Exit(2)

    # one-shot process: refilling is left to `cyberquiz fill`
    result = _run(lambda pipeline: SettingsService(pipeline.store).update(changes))

    if state["json"]:
        _echo_json(result)
    else:
        typer.echo(f"  Updated: {', '.join(sorted(changes))}")


@review_app.command("list")
def review_list(
    limit: Annotated[int, typer.Option("--limit", "-n", min=1, help="Maximum questions to show.")] = 20,
    category: Annotated[str | None, typer.Option("--category", "-c", help="Only this category.")] = None,
) -> None:
    """List questions waiting for review, newest first."""
    questions = _run(lambda pipeline: pipeline.review.list_pending(limit=limit, category=category))

    if state["json"]:
        _echo_json(questions)
        return

    if not questions:
        typer.echo("  No questions pending review.")
        return
    for question in questions:
        flag = " *" if question.potential_duplicates else ""
        typer.echo(f"  [{question.id}] ({question.category}) {_short(question.question_text)}{flag}")


@review_app.command("accept")
def review_accept(question_id: Annotated[int, typer.Argument(help="Question id.")]) -> None:
    """Accept a pending question."""
    question = _run(lambda pipeline: ReviewService(pipeline.store).accept(question_id))
    if state["json"]:
        _echo_json(question)
    else:
        typer.echo(f"  Question {question.id} accepted.")


@review_app.command("reject")
def review_reject(question_id: Annotated[int, typer.Argument(help="Question id.")]) -> None:
    """Reject a pending question."""
    question = _run(lambda pipeline: ReviewService(pipeline.store).reject(question_id))
    if state["json"]:
        _echo_json(question)
    else:
        typer.echo(f"  Question {question.id} rejected.")


@review_app.command("stats")
def review_stats() -> None:
    """Show review totals and accepted questions per category."""
    result = _run(lambda pipeline: pipeline.review.stats())

    if state["json"]:
        _echo_json(result)
        return

    typer.echo(f"  Pending: {result.pending}  Accepted: {result.accepted}  Rejected: {result.rejected}")
    for category, count in sorted(result.accepted_by_category.items()):
        typer.echo(f"    {category}: {count}")


@review_app.command("similar")
def review_similar(question_id: Annotated[int, typer.Argument(help="Question id.")]) -> None:
    """Show a question next to its possible duplicates."""
    result = _run(lambda pipeline: pipeline.review.similar(question_id))

    if state["json"]:
        _echo_json(result)
        return

    typer.echo(f"  [{result.question.id}] {result.question.question_text}")
    if not result.similar:
        typer.echo("    No similar questions.")
    for entry in result.similar:
        typer.echo(f"    {entry.similarity:.2f}  [{entry.question.id}] {_short(entry.question.question_text)}")


@app.command()
def duplicates(
    hours: Annotated[float, typer.Option("--hours", min=0, help="Time window in hours.")] = 24,
    topic: Annotated[str | None, typer.Option("--topic", "-t", help="Only this topic.")] = None,
    limit: Annotated[int, typer.Option("--limit", "-n", min=0, help="Recent log entries to show.")] = 10,
) -> None:
    """Show duplicate detection statistics and the latest discarded attempts.

    Example:
        cyberquiz duplicates --hours 168 --topic Cryptography
    """

    async def action(pipeline: Pipeline) -> dict[str, Any]:
        stats = await pipeline.duplicate_stats.stats(hours=hours, topic=topic)
        recent = await pipeline.duplicate_stats.recent(limit) if limit else []
        return {
            "stats": stats.model_dump(mode="json"),
            "recent": [entry.model_dump(mode="json") for entry in recent],
        }

    result = _run(action)

    if state["json"]:
        _echo_json(result)
        return

    stats = result["stats"]
    typer.echo()
    typer.echo(f"  Duplicates over the last {stats['window_hours']:g}h")
    typer.echo("  " + "-" * 40)
    typer.echo(f"    Total:        {stats['total_duplicates']}")
    typer.echo(f"    By hash:      {stats['hash_duplicates']}")
    typer.echo(f"    By embedding: {stats['embedding_duplicates']}")
    typer.echo(f"    Generated:    {stats['total_generated']}")
    typer.echo(f"    Cycling rate: {stats['cycling_rate']:.2f}%")
    if result["recent"]:
        typer.echo()
        typer.echo("  Recent")
        for entry in result["recent"]:
            score = f"{entry['similarity_score']:.2f}" if entry["similarity_score"] is not None else "  - "
            typer.echo(f"    {entry['detection_method']:<9} {score}  {_short(entry['attempted_text'], 60)}")
    typer.echo()


if __name__ == "__main__":
    app()
