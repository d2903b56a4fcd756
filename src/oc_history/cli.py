"""CLI entry point for oc-history."""

import logging
from pathlib import Path

import click
import uvicorn

from .config import load_config
from .core import InvalidIdentifierError, RevertState, validate_message_id, validate_session_id
from .export import format_timestamp, to_json
from .history import HistorySearch
from .revert import RevertExecutor


def _session_id(ctx, param, value):
    if value is None:
        return value
    try:
        return validate_session_id(value)
    except InvalidIdentifierError as e:
        raise click.BadParameter(f"{e} (expected ses_...)") from e


def _message_id(ctx, param, value):
    if value is None:
        return value
    try:
        return validate_message_id(value)
    except InvalidIdentifierError as e:
        raise click.BadParameter(str(e)) from e


@click.group()
@click.option("-v", "--verbose", count=True, help="Increase log verbosity (-v, -vv).")
@click.option("--storage", type=click.Path(path_type=Path), help="OpenCode storage directory.")
@click.option("--snapshots", type=click.Path(path_type=Path), help="OpenCode snapshot directory.")
@click.option("--git", "git_executable", help="git executable to use.")
@click.pass_context
def main(ctx, verbose: int, storage: Path | None, snapshots: Path | None, git_executable: str | None):
    """Inspect and revert file edits made by OpenCode agent sessions."""
    level = logging.WARNING
    if verbose == 1:
        level = logging.INFO
    elif verbose > 1:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

    ctx.obj = HistorySearch(load_config(storage, snapshots, git_executable))


@main.command()
@click.option("--limit", default=5, show_default=True, help="Number of sessions to show.")
@click.option("--json", "as_json", is_flag=True, help="Print JSON.")
@click.pass_obj
def sessions(history: HistorySearch, limit: int, as_json: bool):
    """List recent sessions."""
    found = history.list_recent_sessions(limit)
    if as_json:
        click.echo(to_json(found))
        return

    click.echo("Recent sessions:")
    click.echo("")
    for session in found:
        click.echo(f"[{session.id}]")
        click.echo(f"  Title: {session.title}")
        click.echo(f"  Modified: {format_timestamp(session.modified)} | Messages: {session.message_count}")
        click.echo("")


@main.command()
@click.argument("session_id", callback=_session_id)
@click.option("--page-size", default=10, show_default=True, help="Messages per page.")
@click.option("--json", "as_json", is_flag=True, help="Print JSON (no paging).")
@click.pass_obj
def changes(history: HistorySearch, session_id: str, page_size: int, as_json: bool):
    """List messages with file changes in a session."""
    if as_json:
        click.echo(to_json(history.get_session_messages(session_id)))
        return

    msg_dir = history.index.session_message_dir(session_id)
    if msg_dir is None or not msg_dir.is_dir():
        click.echo(f"Session not found: {session_id}")
        return

    click.echo(f"Messages with file changes in session: {session_id}")
    click.echo("")

    count = 0
    for msg in history.iter_session_messages(session_id):
        click.echo(f"[{msg.id}]")
        click.echo(f"  Time: {format_timestamp(msg.timestamp)}")
        click.echo(f"  Hash: {msg.hash}")
        status = "✓ snapshot available" if msg.has_snapshot else "✗ snapshot missing"
        click.echo(f"  Status: {status}")
        click.echo("")
        count += 1

        if page_size > 0 and count % page_size == 0:
            response = click.prompt(
                f"--- Showing {count} so far. Press Enter to continue (or 'q' to quit)",
                default="", show_default=False,
            )
            click.echo("")
            if response.strip() == "q":
                click.echo(f"Stopped at {count} message(s)")
                return

    if count == 0:
        click.echo("No messages with file changes found")
    else:
        click.echo(f"Total: {count} message(s) with file changes")


def _print_message_diff(history: HistorySearch, message_id: str, file_path: str | None) -> None:
    diff = history.get_message_diff(message_id, file_path)
    if diff == "":
        click.echo("No differences")
        return
    if diff is not None:
        click.echo(diff, nl=False)
        return

    if history.patches.patch_hash(message_id) is None:
        click.echo(f"No file changes in message: {message_id}")
        click.echo("")
        click.echo("=== Tools Used ===")
        for tool in history.tools_used(message_id):
            click.echo(f"- {tool}")
    else:
        click.echo(f"Snapshot not available for message: {message_id}")


@main.command()
@click.argument("message_id", callback=_message_id)
@click.argument("file_path", required=False)
@click.pass_obj
def diff(history: HistorySearch, message_id: str, file_path: str | None):
    """Show the diff for a message, optionally limited to one file."""
    _print_message_diff(history, message_id, file_path)


def _print_session_diff(history: HistorySearch, session_id: str, file_path: str | None) -> None:
    message_id = history.latest_message_id(session_id)
    if message_id is None:
        click.echo(f"No messages found in session: {session_id}")
        return
    click.echo(f"Latest message: {message_id}")
    click.echo("")
    _print_message_diff(history, message_id, file_path)


@main.command("session-diff")
@click.argument("session_id", callback=_session_id)
@click.argument("file_path", required=False)
@click.pass_obj
def session_diff(history: HistorySearch, session_id: str, file_path: str | None):
    """Show the diff for the latest message of a session."""
    _print_session_diff(history, session_id, file_path)


@main.command()
@click.argument("file_path", required=False)
@click.pass_obj
def latest(history: HistorySearch, file_path: str | None):
    """Show the diff for the latest message of the latest session."""
    session_id = history.latest_session_id()
    if session_id is None:
        click.echo("No sessions found")
        return
    click.echo(f"Using session: {session_id}")
    click.echo("")
    _print_session_diff(history, session_id, file_path)


@main.command("file-history")
@click.argument("file_path")
@click.option("--limit", default=10, show_default=True, help="Number of recent sessions to search.")
@click.option("--interactive/--no-interactive", default=True, help="Offer to show each diff.")
@click.option("--json", "as_json", is_flag=True, help="Print JSON.")
@click.pass_obj
def file_history(history: HistorySearch, file_path: str, limit: int, interactive: bool, as_json: bool):
    """Find every recent message that changed FILE_PATH."""
    if as_json:
        click.echo(to_json(history.file_history(file_path, limit)))
        return

    click.echo(f"File history for: {file_path}")
    click.echo(f"Searching last {limit} sessions...")
    click.echo("")

    count = 0
    for entry in history.iter_file_history(file_path, limit):
        click.echo(f"[{entry.message_id}]")
        click.echo(f"  Session: {entry.session_id}")
        click.echo(f"  Title: {entry.session_title}")
        click.echo(f"  Time: {format_timestamp(entry.timestamp)}")
        click.echo("")

        if interactive:
            response = click.prompt(
                "  Show diff? (Enter/s to skip/q to quit)", default="", show_default=False,
            ).strip()
            if response == "q":
                click.echo("")
                click.echo(f"Stopped at {count} change(s)")
                return
            if response != "s":
                click.echo("")
                _print_message_diff(history, entry.message_id, file_path)
                click.echo("")

        count += 1

    if count == 0:
        click.echo(f"No changes found for: {file_path}")
    else:
        click.echo(f"Total: {count} change(s) found")


@main.command()
@click.argument("message_id", callback=_message_id)
@click.argument("file_path")
@click.option("--yes", "-y", is_flag=True, help="Revert without asking.")
@click.pass_obj
def revert(history: HistorySearch, message_id: str, file_path: str, yes: bool):
    """Reverse-apply MESSAGE_ID's changes to FILE_PATH in the working tree."""

    def confirm(diff_text: str) -> bool:
        click.echo(f"Changes to revert in: {file_path}")
        click.echo("")
        click.echo(diff_text, nl=False)
        click.echo("")
        return yes or click.confirm("Revert these changes?", default=False)

    outcome = RevertExecutor(history).revert_file(message_id, file_path, confirm)

    if outcome.succeeded:
        click.echo(f"✓ {outcome.message}")
        return
    if outcome.state is RevertState.CANCELLED:
        click.echo(outcome.message)
        return

    if outcome.state is RevertState.FAILED:
        click.echo(f"✗ {outcome.message}")
    else:
        click.echo(f"Error: {outcome.message}")
    if outcome.stderr:
        click.echo(outcome.stderr, err=True, nl=False)
    if outcome.remediation:
        click.echo("")
        click.echo("Try one of these:")
        for step in outcome.remediation:
            click.echo(f"  - {step}")
    click.get_current_context().exit(1)


@main.command()
@click.option("--port", default=8080, help="Port to serve on.")
@click.option("--host", default="127.0.0.1", help="Host to bind to.")
@click.pass_obj
def serve(history: HistorySearch, port: int, host: str):
    """Start the read-only JSON API."""
    from . import server

    server.configure(history)
    click.echo(f"Starting oc-history on http://{host}:{port}")
    uvicorn.run(server.app, host=host, port=port, reload=False)
