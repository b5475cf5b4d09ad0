from datetime import date, datetime

import pytest

from validators import DateValidator, TextValidator


def test_parse_query_date_day_first():
    assert DateValidator.parse_query_date("20/03/2025") == date(2025, 3, 20)
    assert DateValidator.parse_query_date(" 01/12/2024 ") == date(2024, 12, 1)

@pytest.mark.parametrize("raw", ["2025-03-20", "32/01/2025", "", "   "])
def test_parse_query_date_rejects_bad_input(raw):
    with pytest.raises(ValueError):
        DateValidator.parse_query_date(raw)

def test_parse_query_date_custom_format():
    assert DateValidator.parse_query_date("2025-03-20", "%Y-%m-%d") == date(2025, 3, 20)

def test_from_iso_accepts_strings_dates_and_empty():
    assert DateValidator.from_iso("2025-03-20") == date(2025, 3, 20)
    assert DateValidator.from_iso(date(2025, 3, 20)) == date(2025, 3, 20)
    assert DateValidator.from_iso(datetime(2025, 3, 20, 10, 30)) == date(2025, 3, 20)
    assert DateValidator.from_iso(None) is None
    assert DateValidator.from_iso("") is None

def test_text_validator():
    assert TextValidator.require("  Dune ", "Title") == "Dune"
    with pytest.raises(ValueError, match="Title cannot be empty."):
        TextValidator.require("   ", "Title")
    assert TextValidator.optional("  ") is None
    assert TextValidator.optional(None) is None
    assert TextValidator.optional(" Fiction ") == "Fiction"
