import re
import logging
from datetime import date
from typing import Any, Dict, List, Optional, Pattern, Sequence, Tuple

from config import (
    CONFIG,
    FIELD_ALIASES,
    FIELD_SEPARATORS,
    MARKUP_CHARACTERS,
    NUMERIC_FIELDS,
    TEAM_FALLBACK,
)
from dates import normalize_date

logger = logging.getLogger(__name__)

MARKUP_PATTERN = re.compile(f"[{re.escape(MARKUP_CHARACTERS)}]")
LEADING_INTEGER = re.compile(r'^\s*(\d+)')


def strip_chat_markup(text: str) -> str:
    """Remove bold/italic/strikethrough markers, e.g. "*Evangelism Report*" -> "Evangelism Report"."""
    return MARKUP_PATTERN.sub("", text)


def is_evangelism_report(text: Optional[str], trigger: Optional[str] = None) -> bool:
    """Check whether a group message is a report submission"""
    if not text:
        return False
    trigger = (trigger or CONFIG["REPORT_TRIGGER"]).upper()
    return strip_chat_markup(text).strip().upper().startswith(trigger)


def build_field_pattern(aliases: Sequence[str], separators: str = FIELD_SEPARATORS) -> Pattern:
    """Build one case-insensitive pattern matching any alias followed by a separator."""
    separator_class = f"[{re.escape(separators)}]"
    alternatives = "|".join(f"{re.escape(alias)}\\s*{separator_class}" for alias in aliases)
    return re.compile(f"(?:{alternatives})", re.IGNORECASE)


def compile_field_patterns(aliases=FIELD_ALIASES) -> List[Tuple[str, Pattern]]:
    return [(field, build_field_pattern(field_aliases)) for field, field_aliases in aliases]


FIELD_PATTERNS = compile_field_patterns()


def find_field_labels(text: str, patterns: List[Tuple[str, Pattern]]) -> List[Tuple[int, int, str]]:
    """Locate the first label of every field, ordered as they appear in the text.

    Returns (label_start, value_start, field) triples.
    """
    matches = []
    for field, pattern in patterns:
        match = pattern.search(text)
        if match:
            matches.append((match.start(), match.end(), field))
    # Stable sort keeps table order for labels starting at the same offset
    matches.sort(key=lambda m: m[0])
    return matches


def clean_field_value(value: str) -> str:
    """Collapse whitespace inside a value while keeping meaningful line breaks"""
    value = value.replace("\r\n", "\n").replace("\r", "\n")
    value = re.sub(r'[ \t]+', ' ', value)
    value = re.sub(r'\n\s*\n', '\n', value)
    return value.strip()


def parse_count(value: str) -> int:
    """Leading integer of a numeric field; anything unparseable counts as 0"""
    match = LEADING_INTEGER.match(value)
    return int(match.group(1)) if match else 0


def extract_report(text: str, aliases=FIELD_ALIASES, today: Optional[date] = None) -> Dict[str, Any]:
    """Extract structured report fields from a free-text message.

    A field's value runs from its label up to the next recognised label,
    so multi-line values survive. Missing fields are simply absent.
    """
    text = strip_chat_markup(text)
    patterns = FIELD_PATTERNS if aliases is FIELD_ALIASES else compile_field_patterns(aliases)
    labels = find_field_labels(text, patterns)

    report: Dict[str, Any] = {}
    for index, (_, value_start, field) in enumerate(labels):
        value_end = labels[index + 1][0] if index + 1 < len(labels) else len(text)
        value = clean_field_value(text[value_start:value_end])

        if field in NUMERIC_FIELDS:
            report[field] = parse_count(value)
        elif field == "activity_date":
            # Keep the raw text when it is not a date so validation can flag it
            report[field] = normalize_date(value, today=today) or value
        else:
            report[field] = value

    team = report.get("preachers_team")
    if not isinstance(team, str) or not team.strip():
        report["preachers_team"] = report.get("reporter_name") or TEAM_FALLBACK

    logger.info({"event": "report_extracted", "fields": sorted(report.keys())})
    return report
