from decouple import config, Csv

# Environment variables
ENV_VARS = {
    "required": ["TELEGRAM_BOT_TOKEN"],
    "optional": ["OPENAI_API_KEY", "CHURCH_NAME", "DATABASE_PATH", "SESSION_FILE", "REPORTS_DIR", "ADMIN_CHAT_IDS"]
}

CONFIG = {
    # Core settings
    "TELEGRAM_BOT_TOKEN": config("TELEGRAM_BOT_TOKEN", default=""),
    "CHURCH_NAME": config("CHURCH_NAME", default="Our Church"),
    "TIMEZONE": config("TIMEZONE", default="Africa/Harare"),
    "LOG_LEVEL": config("LOG_LEVEL", default="INFO"),
    "DATABASE_PATH": config("DATABASE_PATH", default="/tmp/evangelism_reports.db"),
    "SESSION_FILE": config("SESSION_FILE", default="/tmp/form_sessions.json"),
    "REPORTS_DIR": config("REPORTS_DIR", default="/tmp/reports"),
    "ADMIN_CHAT_IDS": config("ADMIN_CHAT_IDS", default="", cast=Csv()),
    # Triggers
    "REPORT_TRIGGER": config("REPORT_TRIGGER", default="EVANGELISM REPORT"),
    "FORM_TRIGGER": config("FORM_TRIGGER", default="evangelism"),
    # Narrative generation
    "OPENAI_API_KEY": config("OPENAI_API_KEY", default=""),
    "ENABLE_AI_NARRATIVE": config("ENABLE_AI_NARRATIVE", default=True, cast=bool),
    "OPENAI_MODEL": config("OPENAI_MODEL", default="gpt-4o-mini"),
    "OPENAI_TEMPERATURE": config("OPENAI_TEMPERATURE", default=0.7, cast=float),
    "OPENAI_MAX_TOKENS": config("OPENAI_MAX_TOKENS", default=1500, cast=int),
    "DEFAULT_VOICE": config("DEFAULT_VOICE", default="first_person"),
    # Rate limiting
    "RATE_LIMIT_CALLS": config("RATE_LIMIT_CALLS", default=30, cast=int),
    "RATE_LIMIT_WINDOW": config("RATE_LIMIT_WINDOW", default=60, cast=int),
    # PDF settings
    "PDF_LOGO_PATH": config("PDF_LOGO_PATH", default=""),
    "PDF_LOGO_WIDTH": config("PDF_LOGO_WIDTH", default=1.5, cast=float),
}

# Field keyword aliases, in scan precedence order.
# Each alias counts as a label only when followed by one of FIELD_SEPARATORS.
FIELD_ALIASES = (
    ("activity_date", ("Date",)),
    ("location", ("Location", "Place", "Venue")),
    ("area", ("Area", "Neighbourhood", "Neighborhood")),
    ("city", ("City", "Town")),
    ("activity_type", ("Type of Activity", "Activity Type", "Type of Evangelism", "Activity", "Type")),
    ("preachers_team", ("Preacher(s) Team", "Preachers Team", "Preacher", "Preachers", "Team", "Minister", "Ministers")),
    ("message_summary", ("Message Summary", "Summary", "Message")),
    ("response_moments", ("Response/Notable Moments", "Notable Moments", "Response", "Moments", "Highlights")),
    ("saved", ("Saved", "Converts", "Convert", "Souls Won", "Souls")),
    ("healed", ("Healed", "Healing", "Sick prayed for", "Prayed for", "Sick")),
    ("reporter_name", ("Reporter", "Reported by", "Submitted by", "Name")),
)

FIELD_SEPARATORS = ":="

# Chat inline markup (bold, italic, strikethrough)
MARKUP_CHARACTERS = "*_~"

NUMERIC_FIELDS = ("saved", "healed")

# Human readable labels used in defects and summaries
FIELD_LABELS = {
    "activity_date": "Date",
    "location": "Location",
    "area": "Area",
    "city": "City",
    "activity_type": "Type of Activity",
    "preachers_team": "Preachers Team",
    "message_summary": "Message Summary",
    "response_moments": "Notable Moments",
    "saved": "Saved",
    "healed": "Healed",
    "reporter_name": "Reporter",
}

REQUIRED_FIELDS = ("activity_date", "location", "activity_type", "message_summary")

TEAM_FALLBACK = "Not specified"

PLACEHOLDER_DENYLIST = frozenset({"not specified", "unknown", "n/a", "none", "-", ""})

MIN_PERSON_NAME_LENGTH = 3

ACTIVITY_TYPES = [
    "Street Evangelism",
    "Door-to-Door",
    "Church Event",
    "Community Outreach",
    "School Visit",
    "Hospital Visit",
    "Prison Ministry",
    "Taxi Evangelism",
    "Other",
]

# Authority voices for narrative generation
AUTHORITY_VOICES = {
    "first_person": {
        "name": "[Executor Report]",
        "authority": "executor",
        "subject": "we",
        "description": "Writer was physically present with first-hand authority",
        "guidelines": [
            'Use first person ("we", "our", "the team")',
            "Authority remains eyewitness",
            "Authoritative yet descriptive narrative",
            "No invented details",
        ],
    },
    "third_person": {
        "name": "[Compiled Testimony]",
        "authority": "testimony",
        "subject": "the team",
        "description": "Compiled from field reports, writer was not present",
        "guidelines": [
            "Third person narrative voice",
            "Faithful to the submitted testimony",
            "No invented details",
            'Attribution: "Compiled from eyewitness testimony and field reports."',
        ],
    },
    "neutral": {
        "name": "[Cluster Compilation]",
        "authority": "compilation",
        "subject": "the assembly",
        "description": "Multiple evangelists, neutral compilation",
        "guidelines": [
            "Neutral collective voice",
            "Simple, clear English",
            "Highlight the most significant moments",
            "Do not overwrite the evangelists' testimony",
        ],
    },
}

# Error message templates
ERROR_MESSAGES = {
    "invalid_report": "The report could not be saved due to the following issues:",
    "unknown_group": "This group is not configured as a cluster group. Please contact the administrator.",
    "save_failed": "An error occurred while saving the report. Please try again or contact the administrator.",
    "no_assemblies": "No assemblies configured. Please contact the administrator.",
    "generic": "An error occurred while processing your request. Please try again.",
    "rate_limited": "Too many requests. Please wait a moment before trying again.",
    "no_reports": "No evangelism reports found for {assembly} in {period}.",
    "invalid_month": "Please use the format YYYY-MM, e.g. 'report 2026-02'.",
}


def get_error_message(error_type: str, **kwargs) -> str:
    """Get formatted error message"""
    template = ERROR_MESSAGES.get(error_type, "An error occurred")
    return template.format(**kwargs)
