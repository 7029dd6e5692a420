import logging
from typing import Any, Dict, Optional, Tuple

from config import FIELD_LABELS, NUMERIC_FIELDS, REQUIRED_FIELDS
from dates import ISO_DATE_PATTERN

logger = logging.getLogger(__name__)

FieldCheck = Tuple[bool, Any, str]

MAX_COUNT = 1000000
SKIP_WORDS = ("none", "skip", "")


def validate_report(report: Dict[str, Any]) -> Dict[str, Any]:
    """Check a parsed report and collect every defect at once.

    Returns {"valid": bool, "errors": [str, ...]} so the submitter can
    fix everything in one pass.
    """
    errors = []

    for field in REQUIRED_FIELDS:
        label = FIELD_LABELS[field]
        value = report.get(field)
        if value is None or (not value and value != 0):
            errors.append(f"Missing required field: {label}")
        elif isinstance(value, str) and not value.strip():
            errors.append(f"Empty required field: {label}")

    activity_date = report.get("activity_date")
    if activity_date and (not isinstance(activity_date, str) or not ISO_DATE_PATTERN.match(activity_date)):
        errors.append("Invalid date format. Use DD/MM/YYYY (e.g. 10/02/2026)")

    for field in NUMERIC_FIELDS:
        if field in report and (isinstance(report[field], bool) or not isinstance(report[field], (int, float))):
            errors.append(f"{FIELD_LABELS[field]} must be a number")

    if errors:
        logger.info({"event": "report_invalid", "errors": errors})
    return {"valid": not errors, "errors": errors}


# --- Form step validators ---
def _check_length(value: str, label: str, minimum: int, maximum: int) -> FieldCheck:
    text = value.strip()
    if len(text) < minimum:
        return False, None, f"{label} must be at least {minimum} characters long."
    if len(text) > maximum:
        return False, None, f"{label} is too long (max {maximum} characters)."
    return True, text, ""


def validate_selection(value: str, options: int) -> FieldCheck:
    """Numbered menu choice, 1-based"""
    try:
        number = int(value.strip())
    except ValueError:
        return False, None, "Please enter a valid number."
    if number < 1 or number > options:
        return False, None, f"Please enter a number between 1 and {options}."
    return True, number, ""


def validate_name(value: str) -> FieldCheck:
    return _check_length(value, "Name", 2, 100)


def validate_location(value: str) -> FieldCheck:
    return _check_length(value, "Location", 2, 200)


def validate_team(value: str) -> FieldCheck:
    return _check_length(value, "Preachers team", 2, 200)


def validate_custom_activity_type(value: str) -> FieldCheck:
    return _check_length(value, "Activity type", 3, 100)


def validate_message_summary(value: str) -> FieldCheck:
    return _check_length(value, "Message summary", 10, 1000)


def validate_optional_text(value: str, label: str = "Response/moments") -> FieldCheck:
    """Optional free text; "none" or "skip" records nothing"""
    if value.strip().lower() in SKIP_WORDS:
        return True, None, ""
    if len(value.strip()) > 1000:
        return False, None, f"{label} are too long (max 1000 characters)."
    return True, value.strip(), ""


def validate_count(value: str, label: str = "Number") -> FieldCheck:
    try:
        number = int(value.strip())
    except ValueError:
        return False, None, f"{label} must be a valid number."
    if number < 0:
        return False, None, f"{label} cannot be negative."
    if number > MAX_COUNT:
        return False, None, f"{label} seems too large. Please verify."
    return True, number, ""


def validate_confirmation(value: str) -> Tuple[bool, Optional[bool], str]:
    answer = value.strip().lower()
    if answer in ("yes", "y"):
        return True, True, ""
    if answer in ("no", "n"):
        return True, False, ""
    return False, None, 'Please reply with "yes" or "no".'
