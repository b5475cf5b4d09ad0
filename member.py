from __future__ import annotations


class Member:
    """A library member who can borrow books."""

    def __init__(self, name: str, contact: str | None = None, id: int | None = None) -> None:
        self.id = id
        self.name = name.strip()
        self.contact = contact.strip() if contact else None

    def __str__(self) -> str:  # pragma: no cover - string formatting trivial
        return f"{self.name} (ID: {self.id})"

    def __repr__(self) -> str:  # pragma: no cover
        return f"Member(id={self.id!r}, name={self.name!r}, contact={self.contact!r})"

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "contact": self.contact}

    @staticmethod
    def from_dict(data: dict) -> "Member":
        return Member(id=data.get("id"), name=data["name"], contact=data.get("contact"))
