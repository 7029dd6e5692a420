"""Normalization pipelines for people, places and generic labels.

Each entity type gets two ordered pipelines of small named steps: one
producing the display form a human typed (tidied, casing kept) and one
producing the comparison key used for deduplication.
"""
import re
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from config import MIN_PERSON_NAME_LENGTH, PLACEHOLDER_DENYLIST

Step = Callable[[str], str]

TRAILING_PUNCTUATION = re.compile(r'[\s.,;:!/]+$')
WHITESPACE_RUN = re.compile(r'\s+')
SLASH_SPACING = re.compile(r'\s*/\s*')
TEAM_SEPARATORS = re.compile(r',|\s+and\s+|[\r\n]+', re.IGNORECASE)

# Title prefixes that mean the same person, applied to lowercased names
TITLE_PREFIXES: Tuple[Tuple[re.Pattern, str], ...] = (
    (re.compile(r'^brother\s+'), "br "),
    (re.compile(r'^br\.\s*'), "br "),
    (re.compile(r'^sister\s+'), "sr "),
    (re.compile(r'^sr\.\s*'), "sr "),
    (re.compile(r'^mrs(?:\.\s*|\s+)'), "mrs "),
    (re.compile(r'^mr(?:\.\s*|\s+)'), "mr "),
    (re.compile(r'^pastor\s+'), "pastor "),
)


# --- Steps ---
def trim(value: str) -> str:
    return value.strip()


def lowercase(value: str) -> str:
    return value.lower()


def strip_trailing_punctuation(value: str) -> str:
    """Drop trailing . , ; : ! / (and any whitespace mixed in with them)"""
    return TRAILING_PUNCTUATION.sub("", value)


def collapse_whitespace(value: str) -> str:
    return WHITESPACE_RUN.sub(" ", value).strip()


def normalize_title_prefix(value: str) -> str:
    """Map honorific spellings onto one form, e.g. "brother tadiwa" -> "br tadiwa"."""
    for pattern, replacement in TITLE_PREFIXES:
        if pattern.match(value):
            return pattern.sub(replacement, value, count=1)
    return value


def unwrap_parentheses(value: str) -> str:
    """Remove a single layer of parentheses wrapping the whole value"""
    if len(value) >= 2 and value.startswith("(") and value.endswith(")"):
        return value[1:-1].strip()
    return value


def tighten_slashes(value: str) -> str:
    """"Dangamvura / Chikanga" -> "Dangamvura/Chikanga"."""
    return SLASH_SPACING.sub("/", value)


# --- Pipelines ---
PERSON_DISPLAY_STEPS: Sequence[Step] = (trim, strip_trailing_punctuation, collapse_whitespace)
PERSON_KEY_STEPS: Sequence[Step] = (
    lowercase,
    strip_trailing_punctuation,
    collapse_whitespace,
    normalize_title_prefix,
    collapse_whitespace,
)

LOCATION_DISPLAY_STEPS: Sequence[Step] = (trim, collapse_whitespace)
LOCATION_KEY_STEPS: Sequence[Step] = (
    lowercase,
    strip_trailing_punctuation,
    unwrap_parentheses,
    tighten_slashes,
    collapse_whitespace,
)

GENERIC_DISPLAY_STEPS: Sequence[Step] = (trim,)
GENERIC_KEY_STEPS: Sequence[Step] = (lowercase, trim)

PIPELINES = {
    "person": (PERSON_DISPLAY_STEPS, PERSON_KEY_STEPS),
    "location": (LOCATION_DISPLAY_STEPS, LOCATION_KEY_STEPS),
    "generic": (GENERIC_DISPLAY_STEPS, GENERIC_KEY_STEPS),
}


def run_pipeline(value: str, steps: Iterable[Step]) -> str:
    for step in steps:
        value = step(value)
    return value


def person_key(value: str) -> str:
    return run_pipeline(value, PERSON_KEY_STEPS)


def location_key(value: str) -> str:
    return run_pipeline(value, LOCATION_KEY_STEPS)


def generic_key(value: str) -> str:
    return run_pipeline(value, GENERIC_KEY_STEPS)


def is_placeholder_name(value: str) -> bool:
    """True for names that carry no information ("N/A", "unknown", too short...)"""
    return len(value) < MIN_PERSON_NAME_LENGTH or value.lower() in PLACEHOLDER_DENYLIST


def split_team(value: Optional[str]) -> List[str]:
    """Split a preachers team field into individual cleaned names.

    "Br Tadiwa and Sister Grace, Pastor Moyo" -> ["Br Tadiwa", "Sister Grace", "Pastor Moyo"]
    """
    if not isinstance(value, str):
        return []
    names = []
    for token in TEAM_SEPARATORS.split(value):
        name = run_pipeline(token, PERSON_DISPLAY_STEPS)
        if not is_placeholder_name(name):
            names.append(name)
    return names


def dedupe(values: Iterable[Optional[str]], kind: str = "generic") -> List[str]:
    """Deduplicate display strings under the key of the given entity kind.

    The first spelling seen for a key is the one kept; the result is sorted
    by display value only once all inputs have been absorbed.
    """
    display_steps, key_steps = PIPELINES[kind]
    seen = {}
    for raw in values:
        if not isinstance(raw, str):
            continue
        display = run_pipeline(raw, display_steps)
        if not display:
            continue
        if kind == "person" and is_placeholder_name(display):
            continue
        key = run_pipeline(display, key_steps)
        if key and key not in seen:
            seen[key] = display
    return sorted(seen.values())
