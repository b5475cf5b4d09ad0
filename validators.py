from datetime import date, datetime
from typing import Optional, Union


class DateValidator:
    """Date parsing shared by the records, the API and the CLI.

    Stored and JSON dates are ISO-8601 (YYYY-MM-DD); the due-date query
    parameter uses a day-first format (dd/MM/yyyy by default).
    """

    @staticmethod
    def from_iso(value: Union[str, date, None]) -> Optional[date]:
        if value is None or value == "":
            return None
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        return date.fromisoformat(str(value).strip())

    @staticmethod
    def to_iso(value: Optional[date]) -> Optional[str]:
        return value.isoformat() if value else None

    @staticmethod
    def parse_query_date(raw: str, fmt: str = "%d/%m/%Y") -> date:
        """Parse a query-string date such as '20/03/2025'.

        Raises ValueError with a readable message when the value doesn't match.
        """
        if raw is None or not raw.strip():
            raise ValueError("Date cannot be empty.")
        try:
            return datetime.strptime(raw.strip(), fmt).date()
        except ValueError as e:
            raise ValueError(f"Invalid date '{raw}'. Expected format {fmt.replace('%d', 'dd').replace('%m', 'MM').replace('%Y', 'yyyy')}.") from e


class TextValidator:
    """Basic text checks for record fields."""

    @staticmethod
    def is_non_empty(text: Optional[str]) -> bool:
        return text is not None and bool(text.strip())

    @staticmethod
    def require(text: Optional[str], field_name: str) -> str:
        if not TextValidator.is_non_empty(text):
            raise ValueError(f"{field_name} cannot be empty.")
        return text.strip()

    @staticmethod
    def optional(text: Optional[str]) -> Optional[str]:
        # blank strings are stored as NULL
        if text is None:
            return None
        t = text.strip()
        return t or None
