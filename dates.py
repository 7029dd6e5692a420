import re
import logging
import pytz

from datetime import date, datetime, timedelta
from typing import Optional, Tuple

from config import CONFIG

logger = logging.getLogger(__name__)

ISO_DATE_PATTERN = re.compile(r'^\d{4}-\d{2}-\d{2}$')
DATE_COMPONENT_SEPARATORS = re.compile(r'[/\-.]')
FORM_DMY_PATTERN = re.compile(r'^\d{1,2}/\d{1,2}/\d{4}$')
MIN_YEAR = 2000


def get_local_today() -> date:
    """Current date in the configured timezone"""
    tz = pytz.timezone(CONFIG["TIMEZONE"])
    return datetime.now(tz).date()


def _resolve_relative(value: str, today: Optional[date]) -> Optional[date]:
    lowered = value.strip().lower()
    if lowered not in ("today", "yesterday"):
        return None
    today = today or get_local_today()
    return today if lowered == "today" else today - timedelta(days=1)


def normalize_date(value: Optional[str], today: Optional[date] = None) -> Optional[str]:
    """Normalize a date typed in a group report to YYYY-MM-DD.

    Accepts "today", "yesterday" and day-first D/M/Y with "/", "-" or "."
    separators. Returns None when the value is not a date.
    """
    if not value or not value.strip():
        return None

    relative = _resolve_relative(value, today)
    if relative:
        return relative.isoformat()

    parts = DATE_COMPONENT_SEPARATORS.split(value.strip())
    if len(parts) != 3:
        logger.info({"event": "date_rejected", "value": value, "reason": "component_count"})
        return None

    try:
        day, month, year = (int(part.strip()) for part in parts)
    except ValueError:
        logger.info({"event": "date_rejected", "value": value, "reason": "not_numeric"})
        return None

    if 1 <= day <= 31 and 1 <= month <= 12 and year >= MIN_YEAR:
        return f"{year:04d}-{month:02d}-{day:02d}"

    logger.info({"event": "date_rejected", "value": value, "reason": "out_of_range"})
    return None


def parse_iso_date(value: Optional[str]) -> Optional[date]:
    """Parse a canonical YYYY-MM-DD string into a date"""
    if not value or not ISO_DATE_PATTERN.match(value.strip()):
        return None
    try:
        return datetime.strptime(value.strip(), "%Y-%m-%d").date()
    except ValueError:
        return None


def parse_form_date(value: str, today: Optional[date] = None) -> Tuple[bool, Optional[str], str]:
    """Validate a date typed into the guided form.

    Unlike group reports, the form also takes YYYY-MM-DD and refuses
    dates in the future.
    """
    today = today or get_local_today()
    text = value.strip()

    parsed = _resolve_relative(text, today)
    if parsed is None:
        if FORM_DMY_PATTERN.match(text):
            day, month, year = (int(part) for part in text.split("/"))
            try:
                parsed = date(year, month, day)
            except ValueError:
                parsed = None
        else:
            parsed = parse_iso_date(text)

    if parsed is None:
        return False, None, 'Invalid date format. Please use DD/MM/YYYY, "today", or "yesterday".'

    if parsed > today:
        return False, None, "Activity date cannot be in the future."

    return True, parsed.isoformat(), ""
