import logging
from datetime import date
from enum import IntEnum
from typing import Any, Callable, Dict, List, Optional, Sequence

from config import ACTIVITY_TYPES, get_error_message
from dates import get_local_today, parse_form_date
from storage import ReportStore, SessionStore
from utils import DIVIDER, format_date, format_report_message
from validator import (
    validate_confirmation,
    validate_count,
    validate_custom_activity_type,
    validate_location,
    validate_message_summary,
    validate_name,
    validate_optional_text,
    validate_selection,
    validate_team,
)

logger = logging.getLogger(__name__)

CANCEL_WORD = "cancel"
OTHER_ACTIVITY = "Other"


class Step(IntEnum):
    ASSEMBLY = 0
    DATE = 1
    LOCATION = 2
    ACTIVITY_TYPE = 3
    CUSTOM_ACTIVITY_TYPE = 4
    PREACHERS_TEAM = 5
    MESSAGE_SUMMARY = 6
    RESPONSE_MOMENTS = 7
    SAVED = 8
    HEALED = 9
    REPORTER_NAME = 10
    CONFIRMATION = 11


def _truncate(text: str, limit: int = 100) -> str:
    return text if len(text) <= limit else f"{text[:limit]}..."


class ReportForm:
    """Linear guided report form driven one chat message at a time.

    All per-user state lives in the injected session store; the form object
    itself is shared by every user.
    """

    def __init__(
        self,
        session_store: SessionStore,
        report_store: ReportStore,
        activity_types: Sequence[str] = ACTIVITY_TYPES,
        clock: Callable[[], date] = get_local_today,
    ) -> None:
        self.sessions = session_store
        self.reports = report_store
        self.activity_types = list(activity_types)
        self.clock = clock
        self._handlers = {
            Step.ASSEMBLY: self._assembly_step,
            Step.DATE: self._date_step,
            Step.LOCATION: self._location_step,
            Step.ACTIVITY_TYPE: self._activity_type_step,
            Step.CUSTOM_ACTIVITY_TYPE: self._custom_activity_type_step,
            Step.PREACHERS_TEAM: self._team_step,
            Step.MESSAGE_SUMMARY: self._summary_step,
            Step.RESPONSE_MOMENTS: self._moments_step,
            Step.SAVED: self._saved_step,
            Step.HEALED: self._healed_step,
            Step.REPORTER_NAME: self._reporter_step,
            Step.CONFIRMATION: self._confirmation_step,
        }

    # --- Public API ---
    def has_active_form(self, user_id: str) -> bool:
        return self.sessions.get(user_id) is not None

    def start(self, user_id: str, reporter_phone: Optional[str] = None) -> Dict[str, Any]:
        """Begin a fresh form, discarding any unfinished one"""
        self.sessions.clear(user_id)
        assemblies = self.reports.get_all_assemblies()
        if not assemblies:
            return self._result([f"❌ {get_error_message('no_assemblies')}"])

        self.sessions.save(user_id, Step.ASSEMBLY, {"reporter_phone": reporter_phone or user_id})
        logger.info({"event": "form_started", "user_id": user_id})
        lines = ["📋 *EVANGELISM REPORT FORM*", "", "🏛️ *Select your assembly:*", ""]
        lines.extend(f"▪️ {index}. {assembly['name']}" for index, assembly in enumerate(assemblies, 1))
        lines.extend(["", "🔢 Reply with the number of your assembly", "", '_Type "cancel" anytime to cancel._'])
        return self._result(["\n".join(lines)])

    def process_response(self, user_id: str, text: str) -> Dict[str, Any]:
        """Feed one user message to the active form step"""
        if text.strip().lower() == CANCEL_WORD:
            self.sessions.clear(user_id)
            logger.info({"event": "form_cancelled", "user_id": user_id})
            return self._result(['❌ Form cancelled. Send "evangelism" to start a new report.'])

        session = self.sessions.get(user_id)
        if session is None:
            logger.warning({"event": "form_state_missing", "user_id": user_id})
            return self._result([])

        step = Step(session["step"])
        return self._handlers[step](user_id, text, dict(session["data"]))

    # --- Helpers ---
    @staticmethod
    def _result(replies: List[str], **kwargs) -> Dict[str, Any]:
        result = {"replies": replies, "report_id": None, "group_chat_id": None, "group_message": None}
        result.update(kwargs)
        return result

    def _advance(self, user_id: str, step: Step, data: Dict[str, Any], reply: str) -> Dict[str, Any]:
        self.sessions.save(user_id, step, data)
        return self._result([reply])

    @staticmethod
    def _error(message: str) -> Dict[str, Any]:
        return ReportForm._result([f"❌ {message}"])

    @staticmethod
    def _team_prompt() -> str:
        return '👥 *Who were the preachers/team members involved?*\n(Enter names, e.g., "John, Mary, Peter")'

    # --- Steps ---
    def _assembly_step(self, user_id: str, text: str, data: Dict[str, Any]) -> Dict[str, Any]:
        assemblies = self.reports.get_all_assemblies()
        if not assemblies:
            self.sessions.clear(user_id)
            return self._error(get_error_message("no_assemblies"))
        valid, number, error = validate_selection(text, len(assemblies))
        if not valid:
            return self._error(error)

        assembly = assemblies[number - 1]
        data.update(assembly_id=assembly["id"], assembly_name=assembly["name"])
        return self._advance(
            user_id, Step.DATE, data,
            f"✅ Assembly: *{assembly['name']}*\n\n📅 *When did this evangelism activity take place?*\n"
            '(Enter date as DD/MM/YYYY, or type "today" or "yesterday")',
        )

    def _date_step(self, user_id: str, text: str, data: Dict[str, Any]) -> Dict[str, Any]:
        valid, value, error = parse_form_date(text, self.clock())
        if not valid:
            return self._error(error)
        data["activity_date"] = value
        return self._advance(
            user_id, Step.LOCATION, data,
            f"✅ Date: {format_date(value)}\n\n📍 Where did this activity take place?\n(Enter location/area name)",
        )

    def _location_step(self, user_id: str, text: str, data: Dict[str, Any]) -> Dict[str, Any]:
        valid, value, error = validate_location(text)
        if not valid:
            return self._error(error)
        data["location"] = value
        lines = [f"✅ Location: *{value}*", "", "📋 *What type of evangelism activity was this?*", ""]
        lines.extend(f"▪️ {index}. {activity}" for index, activity in enumerate(self.activity_types, 1))
        lines.extend(["", "🔢 Reply with the number:"])
        return self._advance(user_id, Step.ACTIVITY_TYPE, data, "\n".join(lines))

    def _activity_type_step(self, user_id: str, text: str, data: Dict[str, Any]) -> Dict[str, Any]:
        valid, number, error = validate_selection(text, len(self.activity_types))
        if not valid:
            return self._error(error)

        selected = self.activity_types[number - 1]
        if selected == OTHER_ACTIVITY:
            return self._advance(
                user_id, Step.CUSTOM_ACTIVITY_TYPE, data,
                "✅ Activity Type: *Other*\n\n📝 *Please specify the type of evangelism activity:*\n"
                '(e.g., "Bus Evangelism", "Market Outreach")',
            )
        data["activity_type"] = selected
        return self._advance(
            user_id, Step.PREACHERS_TEAM, data,
            f"✅ Activity Type: *{selected}*\n\n{self._team_prompt()}",
        )

    def _custom_activity_type_step(self, user_id: str, text: str, data: Dict[str, Any]) -> Dict[str, Any]:
        valid, value, error = validate_custom_activity_type(text)
        if not valid:
            return self._error(error)
        data["activity_type"] = value
        return self._advance(
            user_id, Step.PREACHERS_TEAM, data,
            f"✅ Activity Type: {value}\n\n{self._team_prompt()}",
        )

    def _team_step(self, user_id: str, text: str, data: Dict[str, Any]) -> Dict[str, Any]:
        valid, value, error = validate_team(text)
        if not valid:
            return self._error(error)
        data["preachers_team"] = value
        return self._advance(
            user_id, Step.MESSAGE_SUMMARY, data,
            f"✅ Preachers/Team: {value}\n\n📖 Please provide a summary of what happened during the activity:\n"
            "(Describe the message, events, etc. - minimum 10 characters)",
        )

    def _summary_step(self, user_id: str, text: str, data: Dict[str, Any]) -> Dict[str, Any]:
        valid, value, error = validate_message_summary(text)
        if not valid:
            return self._error(error)
        data["message_summary"] = value
        return self._advance(
            user_id, Step.RESPONSE_MOMENTS, data,
            "✅ Summary recorded\n\n✨ Any notable responses or moments?\n"
            '(Describe memorable moments, testimonies, etc., or type "none" to skip)',
        )

    def _moments_step(self, user_id: str, text: str, data: Dict[str, Any]) -> Dict[str, Any]:
        valid, value, error = validate_optional_text(text)
        if not valid:
            return self._error(error)
        data["response_moments"] = value
        header = "✅ Notable moments recorded" if value else "No notable moments"
        return self._advance(
            user_id, Step.SAVED, data,
            f"{header}\n\n✝️ How many people were saved?\n(Enter a number, or 0 if none)",
        )

    def _saved_step(self, user_id: str, text: str, data: Dict[str, Any]) -> Dict[str, Any]:
        valid, value, error = validate_count(text, "Saved")
        if not valid:
            return self._error(error)
        data["saved"] = value
        return self._advance(
            user_id, Step.HEALED, data,
            f"✅ Saved: {value}\n\n🙏 How many people were healed?\n(Enter a number, or 0 if none)",
        )

    def _healed_step(self, user_id: str, text: str, data: Dict[str, Any]) -> Dict[str, Any]:
        valid, value, error = validate_count(text, "Healed")
        if not valid:
            return self._error(error)
        data["healed"] = value
        return self._advance(
            user_id, Step.REPORTER_NAME, data,
            f"✅ Healed: {value}\n\n📝 Finally, please enter your full name (reporter):",
        )

    def _reporter_step(self, user_id: str, text: str, data: Dict[str, Any]) -> Dict[str, Any]:
        valid, value, error = validate_name(text)
        if not valid:
            return self._error(error)
        data["reporter_name"] = value
        return self._advance(user_id, Step.CONFIRMATION, data, self._confirmation_summary(data))

    @staticmethod
    def _confirmation_summary(data: Dict[str, Any]) -> str:
        lines = [
            "📖 REPORT SUMMARY 📖",
            DIVIDER,
            f"🏛️ Assembly: {data['assembly_name']}",
            f"📅 Date: {format_date(data['activity_date'])}",
            f"📍 Location: {data['location']}",
            f"📋 Activity Type: {data['activity_type']}",
            f"👥 Preachers/Team: {data['preachers_team']}",
            f"📖 Summary: {_truncate(data['message_summary'])}",
        ]
        if data.get("response_moments"):
            lines.append(f"✨ Notable Moments: {_truncate(data['response_moments'])}")
        lines.extend([
            f"✝️ Saved: {data['saved']}",
            f"🙏 Healed: {data['healed']}",
            f"📝 Reporter: {data['reporter_name']}",
            DIVIDER,
            "",
            '✅ Reply with *"yes"* to submit',
            '❌ Reply with *"no"* to cancel',
        ])
        return "\n".join(lines)

    def _confirmation_step(self, user_id: str, text: str, data: Dict[str, Any]) -> Dict[str, Any]:
        valid, confirmed, error = validate_confirmation(text)
        if not valid:
            return self._error(error)

        self.sessions.clear(user_id)
        if not confirmed:
            logger.info({"event": "form_declined", "user_id": user_id})
            return self._result(['❌ Report cancelled. Send "evangelism" to start a new report.'])

        report_id = self.reports.create_report(
            data["assembly_id"],
            data,
            source="form",
            reporter_phone=data.get("reporter_phone"),
        )
        assembly = self.reports.get_assembly(data["assembly_id"])
        logger.info({"event": "form_submitted", "user_id": user_id, "report_id": report_id})
        return self._result(
            [
                "✅ Report submitted successfully!\n\nYour evangelism report has been saved and will be "
                "posted to your assembly group.\n\nThank you for your faithfulness! 🙏"
            ],
            report_id=report_id,
            group_chat_id=assembly.get("chat_id") if assembly else None,
            group_message=format_report_message(data, data["assembly_name"]),
        )
