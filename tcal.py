#!/usr/bin/env python3
"""tcal - write calendar entries as text, keep them in a CalDAV calendar."""
from typing import List, Optional

import typer

from utils.config import load_env_vars

__version__ = "0.1.0"

# Load environment variables
load_env_vars()

app = typer.Typer(
    name="tcal",
    help="Text calendar CLI - add tasks, events and reminders as text and sync them with CalDAV.",
    no_args_is_help=True,
)

from commands.add_command import handle_add, handle_parse
from commands.delete_command import handle_delete
from commands.list_command import handle_day, handle_list
from commands.status_command import handle_move, handle_status, handle_undate
from commands.sync_command import handle_sync

TZ_HELP = "Minutes to add to local time to reach UTC (e.g. -120 for UTC+2). Defaults to the system zone."


def _version_callback(value: bool):
    if value:
        typer.echo(f"tcal {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Show the version and exit."
    ),
):
    """Text calendar CLI."""


@app.command("parse")
def parse(
    text: str = typer.Argument(..., help='Entry text, e.g. "Meeting (tomorrow 12:30-14:30) #work @event".'),
    tz_offset: Optional[int] = typer.Option(None, "--tz-offset", help=TZ_HELP),
    json_output: bool = typer.Option(False, "--json", help="Output in JSON format."),
):
    """Show how an entry is understood, without saving it."""
    args = type('Args', (), {'text': text, 'tz_offset': tz_offset, 'json': json_output})
    handle_parse(args)


@app.command("add")
def add(
    text: str = typer.Argument(..., help="Entry text."),
    tz_offset: Optional[int] = typer.Option(None, "--tz-offset", help=TZ_HELP),
):
    """Parse an entry and add it to the calendar."""
    args = type('Args', (), {'text': text, 'tz_offset': tz_offset})
    handle_add(args)


@app.command("list")
def list_tasks(
    show_all: bool = typer.Option(False, "--all", "-a", help="Include done tasks."),
    json_output: bool = typer.Option(False, "--json", help="Output in JSON format."),
):
    """List tasks from the local mirror."""
    args = type('Args', (), {'all': show_all, 'json': json_output})
    handle_list(args)


@app.command("day")
def day(
    day: Optional[str] = typer.Argument(None, help="Day to show (natural language, default today)."),
    tz_offset: Optional[int] = typer.Option(None, "--tz-offset", help=TZ_HELP),
    calendar_ref: Optional[str] = typer.Option(
        None, "--calendar", "-c", help="Show another mirrored calendar instead (read-only)."
    ),
):
    """Show the events of one day."""
    args = type('Args', (), {'day': day, 'tz_offset': tz_offset, 'calendar_ref': calendar_ref})
    handle_day(args)


@app.command("status")
def status(
    status: str = typer.Argument(..., help="back, todo, doing or done."),
    item_ids: List[str] = typer.Argument(..., help="One or more item IDs."),
):
    """Change the status of tasks and reminders."""
    args = type('Args', (), {'status': status, 'item_id': item_ids})
    handle_status(args)


@app.command("move")
def move(
    item_id: str = typer.Argument(..., help="Item ID."),
    start: str = typer.Argument(..., help="New start (natural language)."),
    end: Optional[str] = typer.Option(None, "--end", "-e", help="New end; the current duration is kept otherwise."),
    postpone: bool = typer.Option(False, "--postpone", "-p", help="Count the move as a postponement."),
):
    """Move an item to another date."""
    args = type('Args', (), {'item_id': item_id, 'start': start, 'end': end, 'postpone': postpone})
    handle_move(args)


@app.command("undate")
def undate(item_id: str = typer.Argument(..., help="Item ID.")):
    """Remove the date of an item, turning it into a task."""
    args = type('Args', (), {'item_id': item_id})
    handle_undate(args)


@app.command("delete")
def delete(item_ids: List[str] = typer.Argument(..., help="One or more item IDs.")):
    """Delete items from the calendar."""
    args = type('Args', (), {'item_id': item_ids})
    handle_delete(args)


@app.command("sync")
def sync(tasks: bool = typer.Option(False, "--tasks", "-t", help="Also replace tasks, not only dated items.")):
    """Replace the local mirror with the server contents."""
    args = type('Args', (), {'tasks': tasks})
    handle_sync(args)


if __name__ == "__main__":
    app()
