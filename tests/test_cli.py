import json
from datetime import date, timedelta

import pytest
from typer.testing import CliRunner

from main import app, LibraryManager
from book import Book
from member import Member
from ui_helpers import OUTPUT_MODE_ENV

runner = CliRunner()


@pytest.fixture(autouse=True)
def cli_lib(lib, monkeypatch):
    # Commands resolve the Library through LibraryManager; hand them the test one
    monkeypatch.setattr(LibraryManager, "_instance", lib)
    monkeypatch.setattr(LibraryManager, "_db_file_snapshot", None)
    monkeypatch.setenv(OUTPUT_MODE_ENV, "plain")
    yield lib
    LibraryManager.reset()


def test_books_empty():
    result = runner.invoke(app, ["books"])
    assert result.exit_code == 0
    assert "No books in library." in result.stdout

def test_books_plain(cli_lib):
    cli_lib.add_book(Book("Ulysses", "James Joyce", "Fiction"))
    result = runner.invoke(app, ["books"])
    assert result.exit_code == 0
    assert "1 - Title: Ulysses | Author: James Joyce | Genre: Fiction" in result.stdout

def test_books_json(cli_lib):
    cli_lib.add_book(Book("Ulysses", "James Joyce"))
    result = runner.invoke(app, ["--output", "json", "books"])
    assert result.exit_code == 0
    payload = json.loads(result.stdout.strip())
    assert payload == [{"id": 1, "title": "Ulysses", "author": "James Joyce", "genre": None, "due_date": None}]

def test_members_empty():
    result = runner.invoke(app, ["members"])
    assert result.exit_code == 0
    assert "No members registered." in result.stdout

def test_borrow_and_return(cli_lib):
    cli_lib.add_book(Book("Dune", "Frank Herbert"))
    cli_lib.add_member(Member("Paul Atreides"))

    result = runner.invoke(app, ["borrow", "1", "1"])
    assert result.exit_code == 0
    due = (date.today() + timedelta(days=14)).isoformat()
    assert f"Record 1: book 1 borrowed by member 1, due {due}" in result.stdout

    result = runner.invoke(app, ["return", "1"])
    assert result.exit_code == 0
    assert f"Record 1 returned on {date.today().isoformat()}" in result.stdout

def test_borrow_unknown_book():
    result = runner.invoke(app, ["borrow", "5", "1"])
    assert result.exit_code == 1
    assert "Could not borrow: Book with ID 5 not found." in result.stdout

def test_return_unknown_record():
    result = runner.invoke(app, ["return", "8"])
    assert result.exit_code == 1
    assert "Borrowing record with ID 8 not found." in result.stdout

def test_due_on_date(cli_lib):
    cli_lib.add_book(Book("Dune", "Frank Herbert", due_date=date(2025, 3, 20)))
    result = runner.invoke(app, ["due", "20/03/2025"])
    assert result.exit_code == 0
    assert "Dune" in result.stdout

def test_due_invalid_date():
    result = runner.invoke(app, ["due", "2025-03-20"])
    assert result.exit_code == 1
    assert "Invalid date" in result.stdout

def test_available(cli_lib):
    cli_lib.add_book(Book("Dune", "Frank Herbert"))
    result = runner.invoke(app, ["available", "1"])
    assert result.exit_code == 0
    assert f"Book 1 is available from {date.today().isoformat()}" in result.stdout

    result = runner.invoke(app, ["available", "2"])
    assert result.exit_code == 1
    assert "Book with ID 2 not found." in result.stdout

def test_stats(cli_lib):
    cli_lib.add_book(Book("Dune", "Frank Herbert"))
    result = runner.invoke(app, ["stats"])
    assert result.exit_code == 0
    assert "Total Books: 1" in result.stdout
    assert "Active Loans: 0" in result.stdout

def test_members_and_records_listing(cli_lib):
    cli_lib.add_book(Book("Dune", "Frank Herbert"))
    cli_lib.add_member(Member("Paul Atreides", "paul@arrakis.example"))
    cli_lib.borrow_book(1, 1, borrow_date=date(2025, 3, 6))

    result = runner.invoke(app, ["members"])
    assert result.exit_code == 0
    assert "1 - Name: Paul Atreides | Contact: paul@arrakis.example" in result.stdout

    result = runner.invoke(app, ["records"])
    assert result.exit_code == 0
    assert "1 - Book: 1 | Member: 1 | Borrowed: 2025-03-06 | Due: 2025-03-20" in result.stdout

def test_manager_reset_drops_instance(cli_lib):
    assert LibraryManager.get_instance() is cli_lib
    LibraryManager.reset()
    assert LibraryManager._instance is None
