"""CLI entry point for aichat-assistant."""

import asyncio
from pathlib import Path

import click
import uvicorn

from .api_client import ChatAPIClient
from .attachments import format_bytes
from .config import get_db_path, get_default_model, get_storage_quota
from .exceptions import ChatAPIError, PlanParseError, StorageError
from .export import session_to_json, session_to_markdown
from .planner import PlanExecutor, RunState, StepStatus, generate_plan
from .store import ChatStore

_STATUS_MARKS = {
    StepStatus.PENDING: " ",
    StepStatus.IN_PROGRESS: "~",
    StepStatus.WAITING_INPUT: "?",
    StepStatus.COMPLETED: "x",
    StepStatus.FAILED: "!",
    StepStatus.SKIPPED: "-",
}


def _store(ctx: click.Context) -> ChatStore:
    return ctx.obj["store"]


@click.group()
@click.option("--db", "db_path", type=click.Path(path_type=Path), default=None, help="Chat database path.")
@click.pass_context
def main(ctx: click.Context, db_path: Path | None):
    """Local-first AI chat assistant with plan automation."""
    ctx.ensure_object(dict)
    ctx.obj["store"] = ChatStore(db_path or get_db_path())
    ctx.call_on_close(ctx.obj["store"].close)


@main.command()
@click.option("--port", default=8080, help="Port to serve on.")
@click.option("--host", default="127.0.0.1", help="Host to bind to.")
def serve(port: int, host: str):
    """Start the web API."""
    click.echo(f"Starting aichat-assistant on http://{host}:{port}")
    uvicorn.run("aichat_assistant.server:app", host=host, port=port, reload=False)


@main.command()
@click.pass_context
def sessions(ctx: click.Context):
    """List chat sessions, most recent first."""
    try:
        items = _store(ctx).get_sessions()
    except StorageError as e:
        raise click.ClickException(str(e))
    if not items:
        click.echo("No sessions.")
        return
    for s in items:
        click.echo(f"{s.id}  {s.updated_at:%Y-%m-%d %H:%M}  {s.message_count:>4} msgs  {s.name} [{s.model}]")


@main.command()
@click.argument("session_id")
@click.pass_context
def show(ctx: click.Context, session_id: str):
    """Print a session's messages."""
    store = _store(ctx)
    try:
        session = store.get_session(session_id)
        if session is None:
            raise click.ClickException(f"Session not found: {session_id}")
        messages = store.get_session_messages(session_id)
    except StorageError as e:
        raise click.ClickException(str(e))
    click.echo(session_to_markdown(session, messages))


@main.command()
@click.argument("session_id")
@click.pass_context
def delete(ctx: click.Context, session_id: str):
    """Delete a session and all of its messages."""
    store = _store(ctx)
    try:
        if store.get_session(session_id) is None:
            raise click.ClickException(f"Session not found: {session_id}")
        store.delete_session(session_id)
    except StorageError as e:
        raise click.ClickException(str(e))
    click.echo(f"Deleted {session_id}")


@main.command()
@click.pass_context
def storage(ctx: click.Context):
    """Show approximate local storage use."""
    try:
        size = _store(ctx).get_storage_size()
    except StorageError as e:
        raise click.ClickException(str(e))
    quota = get_storage_quota()
    click.echo(f"Sessions: {format_bytes(size.sessions)}")
    click.echo(f"Messages: {format_bytes(size.messages)}")
    click.echo(f"Total:    {format_bytes(size.total)} / {format_bytes(quota)} ({size.usage(quota):.1%})")


@main.command()
@click.confirmation_option(prompt="Delete ALL sessions and messages?")
@click.pass_context
def clear(ctx: click.Context):
    """Delete every session and message."""
    try:
        _store(ctx).clear_all_data()
    except StorageError as e:
        raise click.ClickException(str(e))
    click.echo("All chat data cleared.")


@main.command()
@click.argument("session_id")
@click.option("--format", "fmt", type=click.Choice(["md", "json"]), default="md", help="Export format.")
@click.option("-o", "--output", type=click.Path(path_type=Path), default=None, help="Write to a file.")
@click.pass_context
def export(ctx: click.Context, session_id: str, fmt: str, output: Path | None):
    """Export a session as Markdown or JSON."""
    store = _store(ctx)
    try:
        session = store.get_session(session_id)
        if session is None:
            raise click.ClickException(f"Session not found: {session_id}")
        messages = store.get_session_messages(session_id)
    except StorageError as e:
        raise click.ClickException(str(e))

    content = session_to_json(session, messages) if fmt == "json" else session_to_markdown(session, messages)
    if output:
        output.write_text(content, encoding="utf-8")
        click.echo(f"Wrote {output}")
    else:
        click.echo(content)


@main.command()
@click.argument("task")
@click.option("--model", default=None, help="Model used to draft the plan.")
def plan(task: str, model: str | None):
    """Draft a plan for TASK with the AI service and run it step by step."""
    try:
        drafted = asyncio.run(generate_plan(ChatAPIClient(), task, model or get_default_model()))
    except (ValueError, ChatAPIError, PlanParseError) as e:
        raise click.ClickException(f"Could not create a plan: {e}")

    click.echo(f"{drafted.title}\n{drafted.description}\n")
    executor = PlanExecutor(drafted)
    state = executor.run()
    while state == RunState.WAITING_INPUT:
        index = executor.waiting_index
        step = drafted.steps[index]
        req = step.required_input
        hint = f" ({req.placeholder})" if req.placeholder else ""
        value = click.prompt(
            f"[{step.title}] {req.prompt or 'Input required'}{hint}, empty to skip",
            default="",
            show_default=False,
            hide_input=req.type == "api-key",
        )
        state = executor.skip(index) if not value.strip() else executor.supply_input(index, value)

    for i, step in enumerate(drafted.steps, 1):
        click.echo(f"[{_STATUS_MARKS[step.status]}] {i}. {step.title}: {step.result or ''}")
    for name in executor.files:
        click.echo(f"    file: {name}")
