"""
Handlers for the 'parse' and 'add' commands.
"""
import json

from entry_parser import parse_entry_text, unparse_entry_text
from utils.logger import get_logger

from .common import console, open_engine, reporting_errors, tz_offset_or_local

log = get_logger(__name__)


def handle_parse(args):
    """Show what an entry parses to, without touching any calendar."""
    offset = tz_offset_or_local(args.tz_offset)
    with reporting_errors():
        item = parse_entry_text(args.text, offset)
    if getattr(args, "json", False):
        console.print_json(json.dumps(item.to_dict(), default=str))
        return
    console.print(f"Title:      {item.title}")
    console.print(f"Type:       {item.type.value}")
    if item.has_status:
        console.print(f"Status:     {item.status.value}")
    if item.date:
        console.print(f"Start:      {item.date.isoformat()}")
    if item.end_date:
        console.print(f"End:        {item.end_date.isoformat()}")
    if item.recur:
        console.print(f"Recurrence: {item.recur}")
    if item.tags:
        console.print(f"Tags:       {', '.join(item.tags)}")
    if item.alarms:
        console.print(f"Alarms:     {len(item.alarms)}")
    console.print(f"Normalized: {unparse_entry_text(item, offset)}", style="dim")


def handle_add(args):
    """Parse an entry and store it in the configured calendar."""
    offset = tz_offset_or_local(args.tz_offset)
    with reporting_errors():
        item = parse_entry_text(args.text, offset)
        engine = open_engine()
        item_id = engine.create_event(item)
        engine.drain()
    log.debug("Added %s from %r", item_id, args.text)
    console.print(f"Created {item.type.value} '{item.title}' (ID: {item_id})", style="green")
