"""Narrative text for aggregated evangelism summaries.

A narrative is {"narrative": str, "themes": [str], "conclusion": str,
"source": "ai" | "fallback"}. Generation is delegated to a pluggable
generator callable; whenever it is missing or misbehaves the templated
fallback built straight from the summary is returned instead.
"""
import logging
from typing import Any, Callable, Dict, List, Optional

from config import AUTHORITY_VOICES, CONFIG
from utils import format_number

logger = logging.getLogger(__name__)

# generator(prompt, system_prompt) -> {"narrative", "themes", "conclusion"}
NarrativeGenerator = Callable[[str, str], Dict[str, Any]]

MAX_THEMES = 5
MAX_PROMPT_SUMMARIES = 30

SYSTEM_PROMPT = (
    "You are a church reporting assistant who turns evangelism field reports into a "
    "faithful monthly narrative. Never invent people, places, numbers or events that "
    "are not in the data. Respond with JSON only."
)

FALLBACK_THEMES = [
    "The Gospel of Jesus Christ was preached",
    "Souls were called to repentance and salvation",
    "Prayer was offered for the sick and those in need",
]

FALLBACK_CONCLUSION = (
    "We give thanks to God for every soul reached and every labourer who went out. "
    "May the work continue to bear fruit."
)


def resolve_voice(voice: Optional[str]) -> str:
    """Known voice key, defaulting to the configured voice"""
    if voice in AUTHORITY_VOICES:
        return voice
    default = CONFIG["DEFAULT_VOICE"]
    return default if default in AUTHORITY_VOICES else "first_person"


def _join(items: List[str]) -> str:
    if not items:
        return ""
    if len(items) == 1:
        return items[0]
    return f"{', '.join(items[:-1])} and {items[-1]}"


def build_narrative_prompt(summary: Dict[str, Any], voice: Optional[str] = None) -> str:
    """User prompt for the generator: voice rules plus the aggregated data"""
    voice_config = AUTHORITY_VOICES[resolve_voice(voice)]
    lines = [
        f"Write the evangelism report for {summary.get('group_name') or CONFIG['CHURCH_NAME']}.",
        "",
        f"AUTHORITY VOICE: {voice_config['name']} ({voice_config['description']})",
    ]
    lines.extend(f"- {guideline}" for guideline in voice_config["guidelines"])
    lines.extend([
        "",
        f"PERIOD: {summary.get('period', '')}",
        f"OUTREACHES: {summary['total_outreaches']}",
        f"SAVED: {summary['total_saved']}",
        f"HEALED: {summary['total_healed']}",
        f"LOCATIONS: {', '.join(summary['locations']) or 'None recorded'}",
        f"LABOURERS: {', '.join(summary['labourers']) or 'None recorded'}",
        f"ACTIVITY TYPES: {', '.join(summary['activity_types']) or 'None recorded'}",
    ])
    for title, rows, field in (
        ("BY ACTIVITY", summary.get("activity_breakdown", []), "activity_type"),
        ("BY ASSEMBLY", summary.get("assemblies", []), "assembly_name"),
    ):
        if rows:
            lines.append(f"{title}:")
            lines.extend(
                f"- {row[field]}: {row['outreaches']} outreaches, {row['saved']} saved, {row['healed']} healed"
                for row in rows
            )
    lines.extend([
        "",
        "MESSAGE SUMMARIES:",
    ])
    summaries = summary["message_summaries"][:MAX_PROMPT_SUMMARIES]
    lines.extend(f"- {text}" for text in summaries)
    if not summaries:
        lines.append("- None recorded")
    lines.extend([
        "",
        'Return a JSON object with keys "narrative" (2-4 paragraphs of prose), '
        '"themes" (3-5 short bullet strings on the message emphasis) and '
        '"conclusion" (one closing statement).',
    ])
    return "\n".join(lines)


def build_fallback_narrative(summary: Dict[str, Any], voice: Optional[str] = None) -> Dict[str, Any]:
    """Deterministic narrative assembled from the summary fields"""
    subject = AUTHORITY_VOICES[resolve_voice(voice)]["subject"]
    period = summary.get("period") or "this period"
    outreaches = summary["total_outreaches"]

    if outreaches == 0:
        return {
            "narrative": f"No evangelism reports were submitted for {period}.",
            "themes": [],
            "conclusion": FALLBACK_CONCLUSION,
            "source": "fallback",
        }

    plural = "outreach" if outreaches == 1 else "outreaches"
    paragraphs = [
        f"During {period}, {subject} carried out {outreaches} evangelism {plural}.",
    ]
    if summary["locations"]:
        paragraphs.append(f"The Gospel was preached in {_join(summary['locations'])}.")
    if summary["activity_types"]:
        paragraphs.append(f"Activities included {_join(summary['activity_types'])}.")
    paragraphs.append(
        f"By the grace of God, {format_number(summary['total_saved'])} souls were saved "
        f"and {format_number(summary['total_healed'])} were healed."
    )
    if summary["labourers"]:
        paragraphs.append(f"Labourers in the field: {_join(summary['labourers'])}.")

    themes = []
    seen = set()
    for text in summary["message_summaries"]:
        key = text.strip().lower()
        if key and key not in seen:
            seen.add(key)
            themes.append(text.strip())
        if len(themes) == MAX_THEMES:
            break

    return {
        "narrative": " ".join(paragraphs),
        "themes": themes or list(FALLBACK_THEMES),
        "conclusion": FALLBACK_CONCLUSION,
        "source": "fallback",
    }


def _coerce_generated(result: Any) -> Dict[str, Any]:
    """Validate generator output; raises ValueError when unusable"""
    if not isinstance(result, dict):
        raise ValueError("generator returned a non-object")
    narrative = result.get("narrative")
    if not isinstance(narrative, str) or not narrative.strip():
        raise ValueError("generator returned no narrative")
    themes = result.get("themes") or []
    if isinstance(themes, str):
        themes = [themes]
    if not isinstance(themes, list):
        raise ValueError("generator returned malformed themes")
    conclusion = result.get("conclusion")
    return {
        "narrative": narrative.strip(),
        "themes": [str(theme).strip() for theme in themes if str(theme).strip()][:MAX_THEMES],
        "conclusion": conclusion.strip() if isinstance(conclusion, str) and conclusion.strip() else FALLBACK_CONCLUSION,
        "source": "ai",
    }


def generate_narrative(
    summary: Dict[str, Any],
    voice: Optional[str] = None,
    generator: Optional[NarrativeGenerator] = None,
) -> Dict[str, Any]:
    """Narrative for a summary; never raises because of the generator"""
    voice = resolve_voice(voice)
    if generator is None or summary["total_outreaches"] == 0:
        return build_fallback_narrative(summary, voice)

    try:
        result = _coerce_generated(generator(build_narrative_prompt(summary, voice), SYSTEM_PROMPT))
    except Exception as e:
        logger.error({"event": "narrative_generation_failed", "group_key": summary.get("group_key"), "error": str(e)})
        return build_fallback_narrative(summary, voice)

    logger.info({"event": "narrative_generated", "group_key": summary.get("group_key"), "voice": voice})
    return result
