from datetime import date

from utils import (
    format_date,
    format_summary_message,
    format_validation_errors,
    get_month_range,
    get_period_label,
    get_previous_month_range,
    parse_month,
)


def test_month_helpers() -> None:
    assert get_month_range(2024, 2) == ("2024-02-01", "2024-02-29")
    assert get_previous_month_range(date(2026, 1, 5)) == ("2025-12-01", "2025-12-31")
    assert parse_month("2026-02") == ("2026-02-01", "2026-02-28")
    assert parse_month("02/2026") is None


def test_period_labels() -> None:
    assert get_period_label(None, None) == "All time"
    assert get_period_label("2026-02-01", "2026-02-28") == "February 2026"
    assert get_period_label("2026-02-10", "2026-02-10") == "February 10, 2026"
    assert get_period_label("2026-02-01", "2026-03-15") == "February 1, 2026 to March 15, 2026"


def test_format_date() -> None:
    assert format_date("2026-02-10") == "February 10, 2026"
    assert format_date(None) == "N/A"
    assert format_date("someday") == "someday"


def test_validation_errors_message() -> None:
    text = format_validation_errors(["Missing required field: Location"], "@grace")

    assert text.splitlines()[0] == "❌ *Evangelism Report Error* @grace"
    assert "• Missing required field: Location" in text


def test_summary_message() -> None:
    summary = {
        "group_name": "Sakubva Cluster",
        "period": "February 2026",
        "total_outreaches": 2,
        "total_saved": 1200,
        "total_healed": 3,
        "locations": ["Chikanga", "Sakubva"],
        "labourers": [],
        "activity_types": ["Street Evangelism"],
    }
    text = format_summary_message(summary)

    assert "Saved: 1,200" in text
    assert "Locations: Chikanga, Sakubva" in text
    assert "Labourers" not in text
    assert "By Assembly" not in text

    summary["assemblies"] = [{"assembly_name": "Sakubva Cluster", "outreaches": 2, "saved": 1200, "healed": 3}]
    assert "▪️ Sakubva Cluster: 2 outreaches, 1,200 saved" in format_summary_message(summary)
