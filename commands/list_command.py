"""
Handlers for the 'list' and 'day' commands. Both read the local mirror only.
"""
import json
from datetime import datetime

import dateparser

from .common import console, items_table, open_engine, reporting_errors, tz_offset_or_local


def handle_list(args):
    """List stored tasks."""
    with reporting_errors():
        tasks = open_engine().list_tasks(exclude_done=not args.all)
    if getattr(args, "json", False):
        console.print_json(json.dumps([t.to_dict() for t in tasks], default=str))
        return
    if not tasks:
        console.print("No tasks found.")
        return
    console.print(items_table(tasks))


def handle_day(args):
    """List the events of one day, recurring ones included."""
    offset = tz_offset_or_local(args.tz_offset)
    day = datetime.now().date()
    if args.day:
        parsed = dateparser.parse(args.day, languages=["en"])
        if parsed is None:
            console.print(f"Error: could not understand day '{args.day}'", style="red")
            return
        day = parsed.date()

    with reporting_errors():
        engine = open_engine()
        if args.calendar_ref:
            found = engine.list_external_day_events(day, offset, args.calendar_ref)
        else:
            found = engine.list_day_events(day, offset)

    items = [decoded.item for decoded in found]
    if not items:
        console.print(f"Nothing on {day:%A %B %d}.")
        return
    console.print(items_table(items, title=f"{day:%A %B %d}"))
