"""
Handles the 'delete' command.
"""
from .common import console, open_engine, reporting_errors


def handle_delete(args):
    """Delete one or more items by id."""
    item_ids = args.item_id if isinstance(args.item_id, (list, tuple)) else [args.item_id]
    with reporting_errors():
        engine = open_engine()
        for item_id in item_ids:
            deleted = engine.delete_event(item_id)
            console.print(f"Deleted '{deleted.title}' ({item_id})", style="green")
        engine.drain()
