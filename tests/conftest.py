import os
import tempfile
from datetime import date

import pytest

_TMP = tempfile.mkdtemp(prefix="evangelism-bot-tests-")
os.environ.setdefault("TELEGRAM_BOT_TOKEN", "test-token")
os.environ["OPENAI_API_KEY"] = ""
os.environ["DATABASE_PATH"] = os.path.join(_TMP, "app.db")
os.environ["SESSION_FILE"] = os.path.join(_TMP, "sessions.json")
os.environ["REPORTS_DIR"] = os.path.join(_TMP, "reports")
os.environ["DEFAULT_VOICE"] = "first_person"

from storage import MemorySessionStore, ReportStore  # noqa: E402


FIXED_TODAY = date(2026, 3, 15)


def fixed_clock() -> date:
    return FIXED_TODAY


@pytest.fixture
def store(tmp_path) -> ReportStore:
    report_store = ReportStore(str(tmp_path / "reports.db"))
    report_store.init_db()
    return report_store


@pytest.fixture
def sessions() -> MemorySessionStore:
    return MemorySessionStore()


def make_report(**overrides):
    report = {
        "activity_date": "2026-02-10",
        "location": "Sakubva",
        "activity_type": "Street Evangelism",
        "preachers_team": "Br Tadiwa and Sister Grace",
        "message_summary": "Preached on repentance",
        "saved": 3,
        "healed": 1,
        "reporter_name": "Tadiwa Moyo",
    }
    report.update(overrides)
    return report
