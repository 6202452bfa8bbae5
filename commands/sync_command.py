"""
Handles the 'sync' command: replace the local mirror with the server contents.
"""
from .common import console, open_engine, reporting_errors


def handle_sync(args):
    with reporting_errors():
        engine = open_engine()
        token = engine.initial_sync(include_tasks=args.tasks)
        count = len(engine.mirror.find_many(calendar_ref=engine.calendar_ref))
    console.print(f"Synced {engine.calendar_ref}: {count} items in the mirror", style="green")
    if token.sync_token:
        console.print(f"Sync token: {token.sync_token}", style="dim")
