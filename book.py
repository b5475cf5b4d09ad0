from __future__ import annotations

from datetime import date

from validators import DateValidator


class Book:
    """Represents a single book item in the library."""

    def __init__(self, title: str, author: str, genre: str | None = None,
                 due_date: date | None = None, id: int | None = None) -> None:
        self.id = id
        self.title = title.strip()
        self.author = author.strip()
        self.genre = genre.strip() if genre else None
        self.due_date = due_date

    def __str__(self) -> str:  # pragma: no cover - string formatting trivial
        return f"{self.title} by {self.author} (ID: {self.id})"

    def __repr__(self) -> str:  # pragma: no cover
        return f"Book(id={self.id!r}, title={self.title!r}, author={self.author!r}, genre={self.genre!r})"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "author": self.author,
            "genre": self.genre,
            "due_date": self.due_date,
        }

    @staticmethod
    def from_dict(data: dict) -> "Book":
        # SQLite hands dates back as ISO strings
        return Book(
            id=data.get("id"),
            title=data["title"],
            author=data["author"],
            genre=data.get("genre"),
            due_date=DateValidator.from_iso(data.get("due_date")),
        )
