import os
import json
from typing import List, Any, Dict, Sequence, Tuple
from rich.console import Console
from rich.table import Table
from rich.panel import Panel

# Environment variable to control CLI output mode
# Allowed values: 'plain' (default), 'json', 'rich'
OUTPUT_MODE_ENV = "LIB_CLI_OUTPUT"

_console = Console()

# (header, attribute) pairs per listing
BOOK_COLUMNS: Sequence[Tuple[str, str]] = (("ID", "id"), ("Title", "title"), ("Author", "author"), ("Genre", "genre"), ("Due", "due_date"))
MEMBER_COLUMNS: Sequence[Tuple[str, str]] = (("ID", "id"), ("Name", "name"), ("Contact", "contact"))
RECORD_COLUMNS: Sequence[Tuple[str, str]] = (
    ("ID", "id"), ("Book", "book_id"), ("Member", "member_id"),
    ("Borrowed", "borrow_date"), ("Due", "due_date"), ("Returned", "return_date"),
)

def set_output_mode(mode: str) -> None:
    mode = (mode or "").lower().strip()
    if mode in {"plain", "json", "rich"}:
        os.environ[OUTPUT_MODE_ENV] = mode
    # anything else keeps the current mode

def get_output_mode() -> str:
    return os.environ.get(OUTPUT_MODE_ENV, "plain").lower()

def _cell(item: Any, attr: str) -> str:
    value = getattr(item, attr, None)
    return "" if value is None else str(value)

def print_list_result(items: List[Any], columns: Sequence[Tuple[str, str]] = BOOK_COLUMNS,
                      title: str = "Books", empty_message: str = "No books in library.") -> None:
    """Print a listing in the current output mode.
    - plain: one 'ID - field | field ...' line per item, or the empty message
    - json: JSON array of objects keyed by attribute
    - rich: Rich table
    """
    mode = get_output_mode()

    if not items:
        print(empty_message)
        return

    if mode == "json":
        payload = [{attr: getattr(i, attr, None) for _, attr in columns} for i in items]
        print(json.dumps(payload, ensure_ascii=False, default=str))
    elif mode == "rich":
        table = Table(title=f"📚 {title}", show_lines=True, header_style="bold cyan")
        for idx, (header, _) in enumerate(columns):
            table.add_column(header, style="magenta" if idx == 0 else "white", no_wrap=idx == 0)
        for i in items:
            table.add_row(*[_cell(i, attr) for _, attr in columns])
        _console.print(table)
    else:
        for i in items:
            head, *rest = columns
            fields = " | ".join(f"{header}: {_cell(i, attr)}" for header, attr in rest if _cell(i, attr))
            print(f"{_cell(i, head[1])} - {fields}")

def print_stats_result(stats: Dict[str, Any]) -> None:
    """Print library counts in the current output mode."""
    mode = get_output_mode()

    if not stats:
        print("No statistics available.")
        return

    labels = {
        "total_books": "Total Books",
        "total_members": "Total Members",
        "active_loans": "Active Loans",
        "overdue_loans": "Overdue Loans",
    }

    if mode == "json":
        print(json.dumps({k: stats.get(k, 0) for k in labels}, ensure_ascii=False))
    elif mode == "rich":
        content = "\n".join(f"[bold]{label}:[/] {stats.get(key, 0)}" for key, label in labels.items())
        _console.print(Panel.fit(content, title="📊 Stats", border_style="blue"))
    else:
        for key, label in labels.items():
            print(f"{label}: {stats.get(key, 0)}")
