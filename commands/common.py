"""Helpers shared by the command handlers."""
from contextlib import contextmanager
from datetime import datetime
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from calendar_api.data_models import CalendarItem, importance_label, load_label, urgency_label
from calendar_api.errors import TextCalError, ValidationError
from calendar_api.registry import get_engine
from calendar_api.sync_engine import SyncEngine
from utils.config import MissingConfigError, load_calendar_info

console = Console()


def local_tz_offset() -> int:
    """Offset of the local zone, in minutes to add to local time to reach UTC."""
    return -int(datetime.now().astimezone().utcoffset().total_seconds() // 60)


def tz_offset_or_local(offset: Optional[int]) -> int:
    return local_tz_offset() if offset is None else offset


def open_engine() -> SyncEngine:
    return get_engine(load_calendar_info())


@contextmanager
def reporting_errors():
    """Print textcal errors and exit with status 1 instead of a traceback."""
    try:
        yield
    except ValidationError as e:
        console.print("Invalid entry:", style="red")
        for error in e.errors:
            console.print(f"  - {error.field}: {error.message} ({error.rule})")
        raise typer.Exit(code=1)
    except (TextCalError, MissingConfigError) as e:
        console.print(f"Error: {e}", style="red")
        raise typer.Exit(code=1)


def _when(item: CalendarItem) -> str:
    if not item.date:
        return "-"
    start = item.date.astimezone()
    text = f"{start:%a %b %d %H:%M}"
    if item.end_date:
        end = item.end_date.astimezone()
        text += f" - {end:%H:%M}" if end.date() == start.date() else f" - {end:%a %b %d %H:%M}"
    return text


def _ranking(item: CalendarItem) -> str:
    if not item.has_ranking:
        return ""
    labels = [
        importance_label(item.importance, "importance"),
        urgency_label(item.urgency, "urgency"),
        load_label(item.load, "load"),
    ]
    return ", ".join(label for label in labels if label)


def items_table(items: List[CalendarItem], title: Optional[str] = None) -> Table:
    table = Table(show_header=True, header_style="bold", title=title)
    table.add_column("ID", style="cyan")
    table.add_column("Title", style="green")
    table.add_column("When", style="yellow")
    table.add_column("Type")
    table.add_column("Status", style="magenta")
    table.add_column("Tags")
    table.add_column("Ranking")
    for item in items:
        table.add_row(
            item.id or "",
            item.title,
            _when(item),
            item.type.value,
            item.status.value if item.has_status else "",
            " ".join(f"#{t}" for t in item.tags),
            _ranking(item),
        )
    return table
