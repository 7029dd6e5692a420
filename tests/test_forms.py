from forms import ReportForm, Step

from conftest import fixed_clock

ANSWERS = [
    "1",                # assembly
    "yesterday",        # date
    "Sakubva Market",   # location
    "1",                # Street Evangelism
    "Br Tadiwa, Sister Grace",
    "Preached on repentance and the grace of God",
    "none",
    "3",
    "1",
    "Tadiwa Moyo",
]


def _form(store, sessions, **kwargs) -> ReportForm:
    return ReportForm(sessions, store, clock=fixed_clock, **kwargs)


def _fill(form, user_id="user-1"):
    form.start(user_id)
    result = None
    for answer in ANSWERS:
        result = form.process_response(user_id, answer)
    return result


def test_full_form_stores_report(store, sessions) -> None:
    assembly_id = store.create_assembly("Sakubva Cluster", "-100123")
    form = _form(store, sessions)

    summary = _fill(form)
    assert "REPORT SUMMARY" in summary["replies"][0]
    assert sessions.get("user-1")["step"] == Step.CONFIRMATION

    result = form.process_response("user-1", "yes")

    assert result["report_id"] is not None
    assert result["group_chat_id"] == "-100123"
    assert "EVANGELISM REPORT" in result["group_message"]
    assert not form.has_active_form("user-1")

    stored = store.get_report(result["report_id"])
    assert stored["assembly_id"] == assembly_id
    assert stored["activity_date"] == "2026-03-14"
    assert stored["activity_type"] == "Street Evangelism"
    assert stored["response_moments"] is None
    assert stored["saved"] == 3
    assert stored["healed"] == 1
    assert stored["source"] == "form"
    assert stored["reporter_phone"] == "user-1"


def test_invalid_answer_keeps_step(store, sessions) -> None:
    store.create_assembly("Sakubva Cluster")
    form = _form(store, sessions)
    form.start("user-1")
    form.process_response("user-1", "1")

    result = form.process_response("user-1", "01/01/2030")

    assert result["replies"] == ["❌ Activity date cannot be in the future."]
    assert sessions.get("user-1")["step"] == Step.DATE


def test_other_activity_asks_for_custom_type(store, sessions) -> None:
    store.create_assembly("Sakubva Cluster")
    form = _form(store, sessions, activity_types=["Street Evangelism", "Other"])
    form.start("user-1")
    for answer in ["1", "today", "Sakubva", "2"]:
        form.process_response("user-1", answer)

    assert sessions.get("user-1")["step"] == Step.CUSTOM_ACTIVITY_TYPE
    form.process_response("user-1", "Bus Evangelism")

    session = sessions.get("user-1")
    assert session["step"] == Step.PREACHERS_TEAM
    assert session["data"]["activity_type"] == "Bus Evangelism"


def test_cancel_at_any_step(store, sessions) -> None:
    store.create_assembly("Sakubva Cluster")
    form = _form(store, sessions)
    form.start("user-1")
    form.process_response("user-1", "1")

    result = form.process_response("user-1", "Cancel")

    assert "cancelled" in result["replies"][0]
    assert not form.has_active_form("user-1")


def test_declining_confirmation_stores_nothing(store, sessions) -> None:
    assembly_id = store.create_assembly("Sakubva Cluster")
    form = _form(store, sessions)
    _fill(form)

    result = form.process_response("user-1", "no")

    assert result["report_id"] is None
    assert store.fetch_reports_in_range(assembly_id, "2000-01-01", "2100-01-01") == []


def test_start_without_assemblies(store, sessions) -> None:
    form = _form(store, sessions)

    result = form.start("user-1")

    assert "No assemblies configured" in result["replies"][0]
    assert not form.has_active_form("user-1")


def test_sessions_are_independent_per_user(store, sessions) -> None:
    store.create_assembly("Sakubva Cluster")
    form = _form(store, sessions)
    form.start("user-1")
    form.start("user-2")
    form.process_response("user-1", "1")

    assert sessions.get("user-1")["step"] == Step.DATE
    assert sessions.get("user-2")["step"] == Step.ASSEMBLY
