from __future__ import annotations

from datetime import date

from validators import DateValidator


class BorrowingRecord:
    """One loan of a book to a member.

    ``return_date`` stays empty while the loan is active.
    """

    def __init__(self, book_id: int, member_id: int, borrow_date: date, due_date: date,
                 return_date: date | None = None, id: int | None = None) -> None:
        self.id = id
        self.book_id = book_id
        self.member_id = member_id
        self.borrow_date = borrow_date
        self.due_date = due_date
        self.return_date = return_date

    @property
    def is_active(self) -> bool:
        return self.return_date is None

    def __str__(self) -> str:  # pragma: no cover - string formatting trivial
        status = "active" if self.is_active else f"returned {self.return_date}"
        return f"Record {self.id}: book {self.book_id} -> member {self.member_id}, due {self.due_date} ({status})"

    def __repr__(self) -> str:  # pragma: no cover
        return (f"BorrowingRecord(id={self.id!r}, book_id={self.book_id!r}, member_id={self.member_id!r}, "
                f"borrow_date={self.borrow_date!r}, due_date={self.due_date!r}, return_date={self.return_date!r})")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "book_id": self.book_id,
            "member_id": self.member_id,
            "borrow_date": self.borrow_date,
            "due_date": self.due_date,
            "return_date": self.return_date,
        }

    @staticmethod
    def from_dict(data: dict) -> "BorrowingRecord":
        return BorrowingRecord(
            id=data.get("id"),
            book_id=data["book_id"],
            member_id=data["member_id"],
            borrow_date=DateValidator.from_iso(data["borrow_date"]),
            due_date=DateValidator.from_iso(data["due_date"]),
            return_date=DateValidator.from_iso(data.get("return_date")),
        )
