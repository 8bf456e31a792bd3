"""Formatting of listings, upload results and deletion summaries."""

import json
from collections.abc import Iterable
from datetime import datetime

import rich.table
import rich.text

from .models.objects import StoredObject
from .models.upload import UploadOutcome, UploadStatus

_KIB = 1024
_MIB = 1024 * 1024
_GIB = 1024 * 1024 * 1024


def format_bytes(num_bytes: int | float) -> str:
    if num_bytes < _KIB:
        return f"{int(num_bytes)} B"
    if num_bytes < _MIB:
        return f"{num_bytes / _KIB:.1f} KB"
    if num_bytes < _GIB:
        return f"{num_bytes / _MIB:.1f} MB"
    return f"{num_bytes / _GIB:.1f} GB"


def format_speed(bytes_per_second: float) -> str:
    return f"{format_bytes(bytes_per_second)}/s"


def _iso(timestamp: datetime) -> str:
    return timestamp.isoformat().replace("+00:00", "Z")


def format_list_item(
    key: str, size: int, last_modified: datetime, quiet: bool = False, output_json: bool = False
) -> str:
    """
    Render one listed object.

    JSON lines for machines, tab-separated fields otherwise; quiet mode pads
    the size and shortens the timestamp to the date.
    """
    if output_json:
        return json.dumps({"key": key, "lastModified": _iso(last_modified), "size": size})
    if quiet:
        return f"{key}\t{format_bytes(size):>10}\t{last_modified.date().isoformat()}"
    return f"{key}\t{format_bytes(size)}\t{_iso(last_modified)}"


def format_delete_summary(count: int, total_bytes: int, dry_run: bool) -> str:
    action = "Would delete" if dry_run else "Deleted"
    return f"{action} {count} objects ({format_bytes(total_bytes)})"


def format_dry_run_list(objects: Iterable[StoredObject]) -> str:
    return "\n".join(f"  {o.key} ({format_bytes(o.size)})" for o in objects)


def format_upload_outcome(outcome: UploadOutcome, size: int | None = None) -> str:
    match outcome.status:
        case UploadStatus.SUCCESS:
            suffix = f" ({format_bytes(size)})" if size is not None else ""
            return f"{outcome.key} → {outcome.public_url}{suffix}"
        case UploadStatus.FAILED:
            return f"Error: {outcome.key} - {outcome.error}"
        case _:
            return f"Paused: {outcome.message}"


def objects_table(objects: list[StoredObject]) -> rich.table.Table:
    table = rich.table.Table()
    table.add_column("Key", overflow="fold")
    table.add_column("Size", no_wrap=True, justify="right")
    table.add_column("Last Modified", no_wrap=True)
    for obj in objects:
        table.add_row(
            obj.key,
            format_bytes(obj.size),
            obj.last_modified.astimezone().strftime("%Y-%m-%d %H:%M:%S"),
        )
    return table


def outcomes_table(outcomes: list[UploadOutcome]) -> rich.table.Table:
    table = rich.table.Table()
    table.add_column("Key", overflow="fold")
    table.add_column("Status", no_wrap=True, justify="center")
    table.add_column("Details", overflow="fold")
    for outcome in outcomes:
        match outcome.status:
            case UploadStatus.SUCCESS:
                status_text = rich.text.Text("Uploaded", style="green")
                details = outcome.public_url or ""
            case UploadStatus.FAILED:
                status_text = rich.text.Text("Failed", style="red")
                details = outcome.error or ""
            case _:
                status_text = rich.text.Text("Paused", style="yellow")
                details = outcome.message
        table.add_row(outcome.key, status_text, details)
    return table
