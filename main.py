import subprocess
import sys
import os
from typing import Optional

import typer
from rich.console import Console

from library import Library
import database
from config import settings
from validators import DateValidator
from ui_helpers import (
    set_output_mode,
    print_list_result,
    print_stats_result,
    BOOK_COLUMNS,
    MEMBER_COLUMNS,
    RECORD_COLUMNS,
)

APP_NAME = "Library CLI"

console = Console()


class LibraryManager:
    """Lazily created Library shared by the CLI commands."""
    _instance: Optional[Library] = None
    _db_file_snapshot: Optional[str] = None

    @classmethod
    def get_instance(cls) -> Library:
        current_db = database.DATABASE_FILE
        # Rebuild if the database file was switched (e.g. per-test databases)
        if cls._instance is None or (cls._db_file_snapshot and current_db != cls._db_file_snapshot):
            cls._instance = Library(db_file=current_db)
            cls._db_file_snapshot = current_db
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        if cls._instance is not None:
            cls._instance.close()
        cls._instance = None
        cls._db_file_snapshot = None


# --- Typer CLI Application ---
app = typer.Typer(help=APP_NAME)

@app.callback()
def _global_options(
    output: Optional[str] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output format: plain | json | rich (default: plain)",
    )
):
    """Global CLI options (e.g. output mode)."""
    if output:
        set_output_mode(output)

@app.command("books")
def cli_books():
    """List all books."""
    books = LibraryManager.get_instance().list_books()
    print_list_result(books, BOOK_COLUMNS, title="Books", empty_message="No books in library.")

@app.command("members")
def cli_members():
    """List all members."""
    members = LibraryManager.get_instance().list_members()
    print_list_result(members, MEMBER_COLUMNS, title="Members", empty_message="No members registered.")

@app.command("records")
def cli_records():
    """List all borrowing records."""
    records = LibraryManager.get_instance().list_borrowing_records()
    print_list_result(records, RECORD_COLUMNS, title="Borrowing Records", empty_message="No borrowing records.")

@app.command("due")
def cli_due(due_date: str = typer.Argument(..., help="Date as dd/MM/yyyy, e.g. 20/03/2025")):
    """List books due back on a given day."""
    try:
        parsed = DateValidator.parse_query_date(due_date, settings.due_date_format)
    except ValueError as e:
        print(f"Error: {e}")
        raise typer.Exit(code=1)
    books = LibraryManager.get_instance().get_books_due_on_date(parsed)
    print_list_result(books, BOOK_COLUMNS, title=f"Due on {parsed}", empty_message=f"No books due on {parsed}.")

@app.command("available")
def cli_available(book_id: int):
    """Show the date from which a book can be borrowed."""
    available_on = LibraryManager.get_instance().check_availability(book_id)
    if available_on is None:
        print(f"Book with ID {book_id} not found.")
        raise typer.Exit(code=1)
    print(f"Book {book_id} is available from {available_on.isoformat()}")

@app.command("borrow")
def cli_borrow(book_id: int, member_id: int):
    """Lend a book to a member for the configured loan period."""
    try:
        record = LibraryManager.get_instance().borrow_book(book_id, member_id)
    except LookupError as e:
        print(f"Could not borrow: {e}")
        raise typer.Exit(code=1)
    print(f"Record {record.id}: book {record.book_id} borrowed by member {record.member_id}, due {record.due_date.isoformat()}")

@app.command("return")
def cli_return(record_id: int):
    """Mark a borrowing record as returned today."""
    record = LibraryManager.get_instance().return_book(record_id)
    if not record:
        print(f"Borrowing record with ID {record_id} not found.")
        raise typer.Exit(code=1)
    print(f"Record {record.id} returned on {record.return_date.isoformat()}")

@app.command("stats")
def cli_stats():
    """Show library counts."""
    print_stats_result(LibraryManager.get_instance().get_statistics())

@app.command("serve")
def cli_serve(timeout: int = typer.Option(0, "--timeout", help="Seconds to run before stopping (0 = no timeout)")):
    """Start the API with uvicorn."""
    host = settings.api_host
    port = int(settings.api_port)
    console.print(f"[green]Starting {settings.app_name} on http://{host}:{port}/api[/]")
    args = [
        sys.executable,
        "-m", "uvicorn",
        "api:app",
        "--host", host,
        "--port", str(port),
        "--log-level", settings.log_level.lower(),
    ]
    try:
        if timeout and timeout > 0:
            # No reloader here so terminating the child stops the server
            start_new_session = os.name != "nt"
            proc = subprocess.Popen(args, start_new_session=start_new_session)
            try:
                proc.wait(timeout=timeout)
            except subprocess.TimeoutExpired:
                proc.terminate()
                try:
                    proc.wait(timeout=5)
                except subprocess.TimeoutExpired:
                    proc.kill()
                    proc.wait()
        else:
            if settings.debug:
                args.append("--reload")
            subprocess.run(args, check=False)
    except FileNotFoundError:
        console.print("[bold red]Error:[/] could not launch uvicorn. Make sure it is installed in this environment.")
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
