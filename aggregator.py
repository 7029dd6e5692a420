import logging
from typing import Any, Dict, Iterable, List, Optional

from normalizers import dedupe, generic_key, split_team
from utils import get_period_label

logger = logging.getLogger(__name__)


def _count(value: Any) -> int:
    """Non-negative integer count of a stored numeric field, 0 when unusable"""
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return max(value, 0)
    if isinstance(value, float):
        return max(int(value), 0)
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return 0


def _text(report: Any, field: str) -> Optional[str]:
    if not isinstance(report, dict):
        return None
    value = report.get(field)
    return value if isinstance(value, str) else None


def breakdown(reports: Iterable[Any], field: str) -> List[Dict[str, Any]]:
    """Outreach, saved and healed totals per distinct value of a text field.

    Values are grouped case-insensitively; the first spelling seen is the
    label. Reports without a usable value are left out.
    """
    rows: Dict[str, Dict[str, Any]] = {}
    for report in reports:
        label = (_text(report, field) or "").strip()
        key = generic_key(label)
        if not key:
            continue
        row = rows.setdefault(key, {field: label, "outreaches": 0, "saved": 0, "healed": 0})
        row["outreaches"] += 1
        row["saved"] += _count(report.get("saved"))
        row["healed"] += _count(report.get("healed"))
    return sorted(rows.values(), key=lambda row: row[field])


def aggregate_reports(
    reports: Iterable[Dict[str, Any]],
    group_key: Any = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    group_name: Optional[str] = None,
) -> Dict[str, Any]:
    """Merge a batch of reports into one deduplicated summary.

    The batch is already fetched; nothing here performs I/O. A malformed
    report only drops out of the sets it cannot contribute to.
    """
    reports = list(reports)
    locations: List[Optional[str]] = []
    labourers: List[str] = []
    activity_types: List[Optional[str]] = []
    message_summaries: List[str] = []
    total_saved = 0
    total_healed = 0
    skipped = 0

    for report in reports:
        if not isinstance(report, dict):
            skipped += 1
            continue
        total_saved += _count(report.get("saved"))
        total_healed += _count(report.get("healed"))
        locations.append(_text(report, "location"))
        labourers.extend(split_team(_text(report, "preachers_team")))
        activity_types.append(_text(report, "activity_type"))
        summary = _text(report, "message_summary")
        if summary and summary.strip():
            message_summaries.append(summary.strip())

    summary = {
        "group_key": group_key,
        "group_name": group_name,
        "start_date": start_date,
        "end_date": end_date,
        "period": get_period_label(start_date, end_date),
        "total_outreaches": len(reports) - skipped,
        "total_saved": total_saved,
        "total_healed": total_healed,
        "locations": dedupe(locations, "location"),
        "labourers": dedupe(labourers, "person"),
        "activity_types": dedupe(activity_types, "generic"),
        "activity_breakdown": breakdown(reports, "activity_type"),
        "message_summaries": message_summaries,
    }

    logger.info({
        "event": "reports_aggregated",
        "group_key": group_key,
        "reports": len(reports),
        "skipped": skipped,
        "locations": len(summary["locations"]),
        "labourers": len(summary["labourers"]),
    })
    return summary
