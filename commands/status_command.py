"""
Handlers for commands that change one field of a stored item:
'status', 'move' and 'undate'.
"""
import dateparser

from calendar_api.data_models import EventStatus

from .common import console, open_engine, reporting_errors


def handle_status(args):
    """Set the status of tasks and reminders. Blocks and events have none."""
    try:
        status = EventStatus(args.status.lower())
    except ValueError:
        choices = ", ".join(s.value for s in EventStatus)
        console.print(f"Error: unknown status '{args.status}' (choose from {choices})", style="red")
        return

    item_ids = args.item_id if isinstance(args.item_id, (list, tuple)) else [args.item_id]
    with reporting_errors():
        engine = open_engine()
        for item_id in item_ids:
            engine.update_status(item_id, status)
            console.print(f"{item_id} -> {status.value}", style="green")
        engine.drain()


def handle_move(args):
    """Move an item to a new start (and optionally end)."""
    settings = {"RETURN_AS_TIMEZONE_AWARE": True, "PREFER_DATES_FROM": "future"}
    start = dateparser.parse(args.start, languages=["en"], settings=settings)
    end = dateparser.parse(args.end, languages=["en"], settings=settings) if args.end else None
    if start is None or (args.end and end is None):
        console.print("Error: could not understand the new date", style="red")
        return

    with reporting_errors():
        engine = open_engine()
        new_id = engine.update_date(args.item_id, start, end, postponing=args.postpone)
        engine.drain()
    console.print(f"Moved {args.item_id} to {start:%a %b %d %H:%M} (ID: {new_id})", style="green")


def handle_undate(args):
    """Turn a dated item back into an undated task."""
    with reporting_errors():
        engine = open_engine()
        new_id = engine.remove_date(args.item_id)
        engine.drain()
    console.print(f"Removed the date of {args.item_id} (ID: {new_id})", style="green")
