import logging
import sqlite3
from datetime import date, timedelta
from typing import Iterable, List, Optional, Dict, Any

import database
from book import Book
from member import Member
from borrowing_record import BorrowingRecord
from config import settings
from database import get_db_connection, initialize_database
from validators import DateValidator, TextValidator

logger = logging.getLogger(__name__)


class Library:
    """Manages books, members and borrowing records stored in SQLite."""

    def __init__(self, db_file: Optional[str] = None, loan_period_days: Optional[int] = None) -> None:
        # Tests pass their own file so instances never share state.
        self.db_file = db_file or database.DATABASE_FILE
        self.loan_period_days = loan_period_days if loan_period_days is not None else settings.loan_period_days
        initialize_database(self.db_file)

    def _connect(self) -> sqlite3.Connection:
        return get_db_connection(self.db_file)

    # ------------------------- Books ------------------------- #
    def list_books(self) -> List[Book]:
        return self._query_books("SELECT * FROM books ORDER BY id")

    def find_book(self, book_id: int) -> Optional[Book]:
        books = self._query_books("SELECT * FROM books WHERE id = ?", (book_id,))
        return books[0] if books else None

    def count_books(self) -> int:
        return self._count("books")

    def add_book(self, book: Book) -> Book:
        """Add a single book; the store assigns its id."""
        return self.add_books([book])[0]

    def add_books(self, books: Iterable[Book]) -> List[Book]:
        """Add several books in one transaction.

        Every book is validated before anything is written, so one bad entry
        rejects the whole batch.
        """
        books = list(books)
        for book in books:
            self._validate_book(book)

        conn = self._connect()
        try:
            for book in books:
                cursor = conn.execute(
                    "INSERT INTO books (title, author, genre, due_date) VALUES (?, ?, ?, ?)",
                    (book.title, book.author, book.genre, DateValidator.to_iso(book.due_date))
                )
                book.id = cursor.lastrowid
            conn.commit()
        except sqlite3.IntegrityError as e:
            conn.rollback()
            raise ValueError(f"Could not store books: {e}") from e
        finally:
            conn.close()
        return books

    def update_book(self, book_id: int, book: Book) -> Optional[Book]:
        """Replace the fields of an existing book. Returns None if it doesn't exist."""
        if not self.find_book(book_id):
            return None
        self._validate_book(book)
        book.id = book_id

        conn = self._connect()
        try:
            conn.execute(
                "UPDATE books SET title = ?, author = ?, genre = ?, due_date = ? WHERE id = ?",
                (book.title, book.author, book.genre, DateValidator.to_iso(book.due_date), book_id)
            )
            if book.due_date is None:
                # No explicit date: keep following the active loan
                self._sync_book_due_date(conn, book_id)
                book.due_date = DateValidator.from_iso(
                    conn.execute("SELECT due_date FROM books WHERE id = ?", (book_id,)).fetchone()[0]
                )
            conn.commit()
            return book
        finally:
            conn.close()

    def remove_book(self, book_id: int) -> bool:
        return self._delete("books", book_id)

    def get_books_by_genre(self, genre: str) -> List[Book]:
        genre = TextValidator.optional(genre)
        if genre is None:
            return []
        return self._query_books(
            "SELECT * FROM books WHERE genre = ? COLLATE NOCASE ORDER BY id", (genre,)
        )

    def get_books_by_author_and_genre(self, author: str, genre: Optional[str] = None) -> List[Book]:
        """Books by an author, optionally narrowed to one genre. Both match case-insensitively."""
        author = TextValidator.optional(author)
        if author is None:
            return []
        genre = TextValidator.optional(genre)
        if genre is None:
            return self._query_books(
                "SELECT * FROM books WHERE author = ? COLLATE NOCASE ORDER BY id", (author,)
            )
        return self._query_books(
            "SELECT * FROM books WHERE author = ? COLLATE NOCASE AND genre = ? COLLATE NOCASE ORDER BY id",
            (author, genre)
        )

    def get_books_due_on_date(self, due_date: date) -> List[Book]:
        return self._query_books(
            "SELECT * FROM books WHERE due_date = ? ORDER BY id", (due_date.isoformat(),)
        )

    def check_availability(self, book_id: int, today: Optional[date] = None) -> Optional[date]:
        """Date from which the book can be borrowed, or None if there is no such book.

        A book out on loan becomes available on the loan's due date; otherwise
        it is available today.
        """
        if not self.find_book(book_id):
            return None
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT MAX(due_date) FROM borrowing_records WHERE book_id = ? AND return_date IS NULL",
                (book_id,)
            ).fetchone()
        finally:
            conn.close()
        if row[0]:
            return DateValidator.from_iso(row[0])
        return today or date.today()

    # ------------------------- Members ------------------------- #
    def list_members(self) -> List[Member]:
        return self._query_members("SELECT * FROM members ORDER BY id")

    def find_member(self, member_id: int) -> Optional[Member]:
        members = self._query_members("SELECT * FROM members WHERE id = ?", (member_id,))
        return members[0] if members else None

    def count_members(self) -> int:
        return self._count("members")

    def add_member(self, member: Member) -> Member:
        return self.add_members([member])[0]

    def add_members(self, members: Iterable[Member]) -> List[Member]:
        members = list(members)
        for member in members:
            member.name = TextValidator.require(member.name, "Member name")
            member.contact = TextValidator.optional(member.contact)

        conn = self._connect()
        try:
            for member in members:
                cursor = conn.execute(
                    "INSERT INTO members (name, contact) VALUES (?, ?)",
                    (member.name, member.contact)
                )
                member.id = cursor.lastrowid
            conn.commit()
        except sqlite3.IntegrityError as e:
            conn.rollback()
            raise ValueError(f"Could not store members: {e}") from e
        finally:
            conn.close()
        return members

    def update_member(self, member_id: int, member: Member) -> Optional[Member]:
        if not self.find_member(member_id):
            return None
        member.name = TextValidator.require(member.name, "Member name")
        member.contact = TextValidator.optional(member.contact)
        member.id = member_id

        conn = self._connect()
        try:
            conn.execute(
                "UPDATE members SET name = ?, contact = ? WHERE id = ?",
                (member.name, member.contact, member_id)
            )
            conn.commit()
            return member
        finally:
            conn.close()

    def remove_member(self, member_id: int) -> bool:
        return self._delete("members", member_id)

    # ------------------------- Borrowing records ------------------------- #
    def list_borrowing_records(self) -> List[BorrowingRecord]:
        return self._query_records("SELECT * FROM borrowing_records ORDER BY id")

    def find_borrowing_record(self, record_id: int) -> Optional[BorrowingRecord]:
        records = self._query_records("SELECT * FROM borrowing_records WHERE id = ?", (record_id,))
        return records[0] if records else None

    def add_borrowing_record(self, record: BorrowingRecord) -> BorrowingRecord:
        """Store a record with caller-supplied dates.

        Raises LookupError if the book or member is unknown and ValueError if
        the dates are inconsistent.
        """
        self._validate_record(record)
        conn = self._connect()
        try:
            cursor = conn.execute(
                "INSERT INTO borrowing_records (book_id, member_id, borrow_date, due_date, return_date) "
                "VALUES (?, ?, ?, ?, ?)",
                (record.book_id, record.member_id, DateValidator.to_iso(record.borrow_date),
                 DateValidator.to_iso(record.due_date), DateValidator.to_iso(record.return_date))
            )
            record.id = cursor.lastrowid
            self._sync_book_due_date(conn, record.book_id)
            conn.commit()
            return record
        finally:
            conn.close()

    def update_borrowing_record(self, record_id: int, record: BorrowingRecord) -> Optional[BorrowingRecord]:
        existing = self.find_borrowing_record(record_id)
        if not existing:
            return None
        self._validate_record(record)
        record.id = record_id

        conn = self._connect()
        try:
            conn.execute(
                "UPDATE borrowing_records SET book_id = ?, member_id = ?, borrow_date = ?, due_date = ?, "
                "return_date = ? WHERE id = ?",
                (record.book_id, record.member_id, DateValidator.to_iso(record.borrow_date),
                 DateValidator.to_iso(record.due_date), DateValidator.to_iso(record.return_date), record_id)
            )
            self._sync_book_due_date(conn, record.book_id)
            if existing.book_id != record.book_id:
                self._sync_book_due_date(conn, existing.book_id)
            conn.commit()
            return record
        finally:
            conn.close()

    def remove_borrowing_record(self, record_id: int) -> bool:
        existing = self.find_borrowing_record(record_id)
        if not existing:
            return False
        conn = self._connect()
        try:
            conn.execute("DELETE FROM borrowing_records WHERE id = ?", (record_id,))
            self._sync_book_due_date(conn, existing.book_id)
            conn.commit()
            return True
        finally:
            conn.close()

    def borrow_book(self, book_id: int, member_id: int, borrow_date: Optional[date] = None) -> BorrowingRecord:
        """Lend a book: the loan starts today and runs for the configured loan period."""
        borrow_date = borrow_date or date.today()
        record = BorrowingRecord(
            book_id=book_id,
            member_id=member_id,
            borrow_date=borrow_date,
            due_date=borrow_date + timedelta(days=self.loan_period_days),
        )
        return self.add_borrowing_record(record)

    def return_book(self, record_id: int, return_date: Optional[date] = None) -> Optional[BorrowingRecord]:
        """Close a loan. Returns None if the record doesn't exist.

        Returning an already returned loan keeps its original return date.
        """
        record = self.find_borrowing_record(record_id)
        if not record:
            return None
        if not record.is_active:
            logger.info(f"Record {record_id} was already returned on {record.return_date}")
            return record

        record.return_date = return_date or date.today()
        conn = self._connect()
        try:
            conn.execute(
                "UPDATE borrowing_records SET return_date = ? WHERE id = ?",
                (record.return_date.isoformat(), record_id)
            )
            self._sync_book_due_date(conn, record.book_id)
            conn.commit()
            return record
        finally:
            conn.close()

    # ------------------------- Statistics ------------------------- #
    def get_statistics(self, today: Optional[date] = None) -> Dict[str, Any]:
        today = today or date.today()
        conn = self._connect()
        try:
            cursor = conn.cursor()
            cursor.execute("SELECT COUNT(*) FROM books")
            total_books = cursor.fetchone()[0]

            cursor.execute("SELECT COUNT(*) FROM members")
            total_members = cursor.fetchone()[0]

            cursor.execute("SELECT COUNT(*) FROM borrowing_records WHERE return_date IS NULL")
            active_loans = cursor.fetchone()[0]

            cursor.execute(
                "SELECT COUNT(*) FROM borrowing_records WHERE return_date IS NULL AND due_date < ?",
                (today.isoformat(),)
            )
            overdue_loans = cursor.fetchone()[0]

            return {
                "total_books": total_books,
                "total_members": total_members,
                "active_loans": active_loans,
                "overdue_loans": overdue_loans,
            }
        finally:
            conn.close()

    # ------------------------- Persistence helpers ------------------------- #
    def _query_books(self, sql: str, params: tuple = ()) -> List[Book]:
        return [Book.from_dict(row) for row in self._fetch_all(sql, params)]

    def _query_members(self, sql: str, params: tuple = ()) -> List[Member]:
        return [Member.from_dict(row) for row in self._fetch_all(sql, params)]

    def _query_records(self, sql: str, params: tuple = ()) -> List[BorrowingRecord]:
        return [BorrowingRecord.from_dict(row) for row in self._fetch_all(sql, params)]

    def _fetch_all(self, sql: str, params: tuple) -> List[dict]:
        conn = self._connect()
        try:
            return [dict(row) for row in conn.execute(sql, params).fetchall()]
        except OverflowError:
            # ids beyond SQLite's 64-bit range can't match any row
            return []
        finally:
            conn.close()

    def _count(self, table: str) -> int:
        conn = self._connect()
        try:
            return conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
        finally:
            conn.close()

    def _delete(self, table: str, row_id: int) -> bool:
        conn = self._connect()
        try:
            cursor = conn.execute(f"DELETE FROM {table} WHERE id = ?", (row_id,))
            conn.commit()
            return cursor.rowcount > 0
        except OverflowError:
            return False
        finally:
            conn.close()

    @staticmethod
    def _sync_book_due_date(conn: sqlite3.Connection, book_id: int) -> None:
        # A book's due date follows its active loan and is cleared once nothing is out.
        conn.execute(
            "UPDATE books SET due_date = ("
            "SELECT MAX(due_date) FROM borrowing_records WHERE book_id = ? AND return_date IS NULL"
            ") WHERE id = ?",
            (book_id, book_id)
        )

    # ------------------------- Validation ------------------------- #
    @staticmethod
    def _validate_book(book: Book) -> None:
        book.title = TextValidator.require(book.title, "Title")
        book.author = TextValidator.require(book.author, "Author")
        book.genre = TextValidator.optional(book.genre)

    def _validate_record(self, record: BorrowingRecord) -> None:
        if not self.find_book(record.book_id):
            logger.warning(f"Borrowing rejected: book {record.book_id} does not exist")
            raise LookupError(f"Book with ID {record.book_id} not found.")
        if not self.find_member(record.member_id):
            logger.warning(f"Borrowing rejected: member {record.member_id} does not exist")
            raise LookupError(f"Member with ID {record.member_id} not found.")
        if record.due_date < record.borrow_date:
            raise ValueError("Due date cannot be before the borrow date.")
        if record.return_date is not None and record.return_date < record.borrow_date:
            raise ValueError("Return date cannot be before the borrow date.")

    def close(self) -> None:
        """Compatibility helper: connections are opened per operation, so there is nothing to close."""
        return None
