import os
import re
import io
import logging
from datetime import date
from typing import Any, Callable, Dict, List, Optional, Tuple

from aggregator import aggregate_reports, breakdown
from dates import get_local_today
from narrative import NarrativeGenerator, generate_narrative, resolve_voice
from pdf_report import render_report_pdf
from storage import ReportStore
from utils import get_previous_month_range

logger = logging.getLogger(__name__)

Clock = Callable[[], date]

CHURCH_WIDE_NAME = "All Assemblies"


def resolve_range(start_date: Optional[str], end_date: Optional[str], clock: Clock = get_local_today) -> Tuple[str, str]:
    """Explicit range, or the previous calendar month when none is given"""
    if start_date and end_date:
        return start_date, end_date
    return get_previous_month_range(clock())


def generate_group_report(
    store: ReportStore,
    assembly: Dict[str, Any],
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    voice: Optional[str] = None,
    generator: Optional[NarrativeGenerator] = None,
    clock: Clock = get_local_today,
) -> Dict[str, Any]:
    """Fetch, aggregate and narrate one assembly's reports for a date range"""
    start_date, end_date = resolve_range(start_date, end_date, clock)
    voice = resolve_voice(voice)
    batch = store.fetch_reports_in_range(assembly["id"], start_date, end_date)
    summary = aggregate_reports(
        batch,
        group_key=assembly["id"],
        start_date=start_date,
        end_date=end_date,
        group_name=assembly["name"],
    )
    narrative = generate_narrative(summary, voice, generator)
    logger.info({
        "event": "group_report_generated",
        "assembly": assembly["name"],
        "start_date": start_date,
        "end_date": end_date,
        "outreaches": summary["total_outreaches"],
        "narrative_source": narrative["source"],
    })
    return {"assembly": assembly, "voice": voice, "summary": summary, "narrative": narrative}


def generate_all_group_reports(
    store: ReportStore,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    voice: Optional[str] = None,
    generator: Optional[NarrativeGenerator] = None,
    clock: Clock = get_local_today,
) -> List[Dict[str, Any]]:
    """Reports for every assembly that has at least one outreach in range"""
    start_date, end_date = resolve_range(start_date, end_date, clock)
    results = []
    for assembly in store.get_all_assemblies():
        report = generate_group_report(store, assembly, start_date, end_date, voice, generator, clock)
        if report["summary"]["total_outreaches"] == 0:
            logger.info({"event": "group_report_skipped", "assembly": assembly["name"], "reason": "no_reports"})
            continue
        results.append(report)
    return results


def generate_church_report(
    store: ReportStore,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    voice: Optional[str] = None,
    generator: Optional[NarrativeGenerator] = None,
    clock: Clock = get_local_today,
) -> Dict[str, Any]:
    """Roll-up of every assembly's reports, with per-assembly statistics"""
    start_date, end_date = resolve_range(start_date, end_date, clock)
    voice = resolve_voice(voice)
    batch = store.fetch_all_reports_in_range(start_date, end_date)
    summary = aggregate_reports(batch, start_date=start_date, end_date=end_date, group_name=CHURCH_WIDE_NAME)
    summary["assemblies"] = breakdown(batch, "assembly_name")
    narrative = generate_narrative(summary, voice, generator)
    logger.info({
        "event": "church_report_generated",
        "start_date": start_date,
        "end_date": end_date,
        "outreaches": summary["total_outreaches"],
        "assemblies": len(summary["assemblies"]),
        "narrative_source": narrative["source"],
    })
    return {"assembly": None, "voice": voice, "summary": summary, "narrative": narrative}


def render_group_report(report: Dict[str, Any]) -> io.BytesIO:
    return render_report_pdf(report["summary"], report["narrative"], report["voice"])


def report_filename(report: Dict[str, Any]) -> str:
    """e.g. "sakubva_cluster_2026-02-01_2026-02-28.pdf"."""
    summary = report["summary"]
    slug = re.sub(r'[^a-z0-9]+', '_', (summary.get("group_name") or "all").lower()).strip("_")
    return f"{slug}_{summary['start_date']}_{summary['end_date']}.pdf"


def save_report_pdf(report: Dict[str, Any], directory: str) -> str:
    """Render a group report into directory and return the file path"""
    os.makedirs(directory, exist_ok=True)
    path = os.path.join(directory, report_filename(report))
    with open(path, "wb") as f:
        f.write(render_group_report(report).getvalue())
    logger.info({"event": "report_pdf_saved", "path": path})
    return path
