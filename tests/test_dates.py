from datetime import date

import pytest

from dates import normalize_date, parse_form_date, parse_iso_date

TODAY = date(2026, 3, 15)


@pytest.mark.parametrize(
    "value, expected",
    [
        ("10/02/2026", "2026-02-10"),
        ("1-2-2026", "2026-02-01"),
        ("31.12.2025", "2025-12-31"),
        (" 5/6/2030 ", "2030-06-05"),
        ("TODAY", "2026-03-15"),
        ("yesterday", "2026-03-14"),
    ],
)
def test_normalize_date_accepts(value, expected) -> None:
    assert normalize_date(value, today=TODAY) == expected


@pytest.mark.parametrize(
    "value",
    ["", "   ", "2026-02-10", "32/01/2026", "10/13/2026", "10/02/1999", "10/02", "ten/02/2026", "last week", None],
)
def test_normalize_date_rejects(value) -> None:
    assert normalize_date(value, today=TODAY) is None


def test_normalized_dates_round_trip_through_iso_parser() -> None:
    for day, month, year in [(1, 1, 2000), (9, 11, 2024), (28, 2, 2026), (15, 7, 2099)]:
        normalized = normalize_date(f"{day}/{month}/{year}", today=TODAY)
        assert normalized == f"{year:04d}-{month:02d}-{day:02d}"
        assert parse_iso_date(normalized) == date(year, month, day)


def test_group_dates_are_not_checked_against_the_future() -> None:
    assert normalize_date("01/01/2030", today=TODAY) == "2030-01-01"


def test_form_date_formats() -> None:
    assert parse_form_date("10/02/2026", TODAY) == (True, "2026-02-10", "")
    assert parse_form_date("2026-02-10", TODAY) == (True, "2026-02-10", "")
    assert parse_form_date("today", TODAY) == (True, "2026-03-15", "")
    assert parse_form_date("Yesterday", TODAY) == (True, "2026-03-14", "")


def test_form_date_rejects_future_and_garbage() -> None:
    valid, value, error = parse_form_date("16/03/2026", TODAY)
    assert not valid and value is None
    assert error == "Activity date cannot be in the future."

    valid, _, error = parse_form_date("10.02.2026", TODAY)
    assert not valid
    assert "DD/MM/YYYY" in error

    valid, _, _ = parse_form_date("31/02/2026", TODAY)
    assert not valid
