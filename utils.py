import calendar
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from config import get_error_message

DIVIDER = "━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━"


def format_date(value: Optional[str]) -> str:
    """Render a YYYY-MM-DD string as "February 10, 2026"."""
    if not value:
        return "N/A"
    try:
        parsed = datetime.strptime(value, "%Y-%m-%d")
    except ValueError:
        return value
    return f"{parsed.strftime('%B')} {parsed.day}, {parsed.year}"


def format_number(value: int) -> str:
    return f"{value:,}"


def get_month_range(year: int, month: int) -> Tuple[str, str]:
    """First and last day of a month as ISO strings"""
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1).isoformat(), date(year, month, last_day).isoformat()


def get_previous_month_range(today: date) -> Tuple[str, str]:
    last_of_previous = today.replace(day=1) - timedelta(days=1)
    return get_month_range(last_of_previous.year, last_of_previous.month)


def parse_month(value: str) -> Optional[Tuple[str, str]]:
    """Parse "YYYY-MM" into a month range, None when malformed"""
    try:
        parsed = datetime.strptime(value.strip(), "%Y-%m")
    except ValueError:
        return None
    return get_month_range(parsed.year, parsed.month)


def get_period_label(start_date: Optional[str], end_date: Optional[str]) -> str:
    """Human label for a reporting period, e.g. "February 2026"."""
    if not start_date:
        return "All time"
    try:
        start = datetime.strptime(start_date, "%Y-%m-%d").date()
        end = datetime.strptime(end_date, "%Y-%m-%d").date() if end_date else start
    except ValueError:
        return f"{start_date} to {end_date}"
    if start == end:
        return format_date(start_date)
    if (start.year, start.month) == (end.year, end.month) and start.day == 1 \
            and end.day == calendar.monthrange(end.year, end.month)[1]:
        return start.strftime("%B %Y")
    return f"{format_date(start_date)} to {format_date(end_date)}"


def format_validation_errors(errors: List[str], mention: str = "") -> str:
    """Bulleted defect list sent back to the submitter"""
    header = "❌ *Evangelism Report Error*"
    if mention:
        header += f" {mention}"
    lines = [header, "", get_error_message("invalid_report")]
    lines.extend(f"• {error}" for error in errors)
    lines.extend(["", "_Please check the format and try again._"])
    return "\n".join(lines)


def format_saved_confirmation(report: Dict[str, Any], report_id: int, assembly_name: str, mention: str = "") -> str:
    """Acknowledgement posted after a group report has been stored"""
    lines = [
        f"✅ *Evangelism Report Saved!* {mention}".rstrip(),
        "",
        f"📋 Report #{report_id}",
        f"📅 Date: {report.get('activity_date')}",
        f"📍 Location: {report.get('location')}",
        f"🏘️ Area: {report.get('area') or 'N/A'}",
        f"✝️ Saved: {report.get('saved', 0)}",
        f"🙏 Healed: {report.get('healed', 0)}",
        f"🏛️ Cluster: {assembly_name}",
        "",
        "Thank you for your faithfulness! 🙏",
    ]
    return "\n".join(lines)


def format_report_message(report: Dict[str, Any], assembly_name: str) -> str:
    """Full report as posted to the assembly group after a form submission"""
    lines = [
        "📊 EVANGELISM REPORT 📊",
        DIVIDER,
        f"📅 Date: {format_date(report.get('activity_date'))}",
        f"📍 Location: {report.get('location', '')}",
    ]
    if report.get("area"):
        lines.append(f"🏘️ Area: {report['area']}")
    if report.get("city"):
        lines.append(f"🏙️ City: {report['city']}")
    lines.extend([
        f"📋 Activity: {report.get('activity_type', '')}",
        f"👥 Team: {report.get('preachers_team', '')}",
        "",
        f"📖 Summary:\n{report.get('message_summary', '')}",
        "",
    ])
    if report.get("response_moments"):
        lines.extend([f"✨ Notable Moments:\n{report['response_moments']}", ""])
    lines.extend([
        "📈 Results:",
        f"✝️ Saved: {report.get('saved', 0)}",
        f"🙏 Healed: {report.get('healed', 0)}",
        "",
        f"📝 Reporter: {report.get('reporter_name', '')}",
        DIVIDER,
        f"🏛️ Cluster: {assembly_name}",
    ])
    return "\n".join(lines)


def format_summary_message(summary: Dict[str, Any]) -> str:
    """Short chat version of an aggregated summary"""
    title = summary.get("group_name") or "All Assemblies"
    lines = [
        f"📊 *{title}: {summary.get('period', '')} REPORT*",
        DIVIDER,
        "",
        f"📝 Total Outreaches: {summary['total_outreaches']}",
        f"✝️ Saved: {format_number(summary['total_saved'])}",
        f"🙏 Healed: {format_number(summary['total_healed'])}",
        "",
    ]
    if summary.get("assemblies"):
        lines.append("🏛️ By Assembly:")
        lines.extend(
            f"▪️ {row['assembly_name']}: {row['outreaches']} outreaches, {format_number(row['saved'])} saved"
            for row in summary["assemblies"]
        )
        lines.append("")
    if summary["locations"]:
        lines.extend([f"📍 Locations: {', '.join(summary['locations'])}", ""])
    if summary["labourers"]:
        lines.extend([f"👥 Labourers: {', '.join(summary['labourers'])}", ""])
    if summary["activity_types"]:
        lines.extend([f"📋 Activities: {', '.join(summary['activity_types'])}", ""])
    lines.append(DIVIDER)
    return "\n".join(lines)
