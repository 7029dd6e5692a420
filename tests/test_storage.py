import json
import threading

import pytest

from errors import StorageError
from storage import JsonSessionStore, MemorySessionStore

from conftest import make_report


def test_assembly_crud(store) -> None:
    assembly_id = store.create_assembly("Sakubva Cluster", "-100123")

    assert store.get_assembly(assembly_id) == {"id": assembly_id, "name": "Sakubva Cluster", "chat_id": "-100123"}
    assert store.get_assembly_by_chat_id("-100123")["id"] == assembly_id

    store.update_assembly(assembly_id, "Sakubva", "-100999")
    assert store.get_assembly_by_chat_id("-100123") is None
    assert store.get_assembly(assembly_id)["name"] == "Sakubva"

    store.delete_assembly(assembly_id)
    assert store.get_all_assemblies() == []


def test_update_unknown_assembly_raises(store) -> None:
    with pytest.raises(StorageError):
        store.update_assembly(99, "Nowhere", None)


def test_create_and_get_report(store) -> None:
    assembly_id = store.create_assembly("Sakubva Cluster", "-100123")
    report_id = store.create_report(assembly_id, make_report(), source="group_message", message_id="55")

    stored = store.get_report(report_id)
    assert stored["location"] == "Sakubva"
    assert stored["saved"] == 3
    assert stored["source"] == "group_message"
    assert stored["assembly_name"] == "Sakubva Cluster"
    assert stored["posted_to_group"] == 0

    store.mark_report_posted(report_id)
    assert store.get_report(report_id)["posted_to_group"] == 1


def test_report_for_unknown_assembly_raises(store) -> None:
    with pytest.raises(StorageError):
        store.create_report(42, make_report())


def test_fetch_reports_in_range_is_ordered_and_scoped(store) -> None:
    sakubva = store.create_assembly("Sakubva Cluster")
    chikanga = store.create_assembly("Chikanga Cluster")
    late = store.create_report(sakubva, make_report(activity_date="2026-02-20"))
    early = store.create_report(sakubva, make_report(activity_date="2026-02-01"))
    same_day = store.create_report(sakubva, make_report(activity_date="2026-02-20"))
    store.create_report(sakubva, make_report(activity_date="2026-03-01"))
    store.create_report(chikanga, make_report(activity_date="2026-02-10"))

    rows = store.fetch_reports_in_range(sakubva, "2026-02-01", "2026-02-28")

    assert [row["id"] for row in rows] == [early, late, same_day]

    everything = store.fetch_all_reports_in_range("2026-02-01", "2026-02-28")
    assert [row["assembly_name"] for row in everything] == [
        "Sakubva Cluster", "Chikanga Cluster", "Sakubva Cluster", "Sakubva Cluster",
    ]


def test_delete_report_by_message_id(store) -> None:
    assembly_id = store.create_assembly("Sakubva Cluster")
    report_id = store.create_report(assembly_id, make_report(), message_id="77")

    assert store.delete_report_by_message_id(assembly_id, "77")["id"] == report_id
    assert store.get_report(report_id) is None
    assert store.delete_report_by_message_id(assembly_id, "77") is None


def test_message_ids_are_scoped_to_their_assembly(store) -> None:
    first = store.create_assembly("Sakubva Cluster", "-1001")
    second = store.create_assembly("Dangamvura Cluster", "-1002")
    first_report = store.create_report(first, make_report(), message_id="10")
    second_report = store.create_report(second, make_report(), message_id="10")

    assert store.delete_report_by_message_id(second, "10")["id"] == second_report
    assert store.get_report(first_report) is not None

    store.create_report(second, make_report(saved=9), message_id="10", replace_existing=True)
    assert [row["saved"] for row in store.fetch_reports_in_range(first, "2026-02-01", "2026-02-28")] == [3]


def test_replace_existing_swaps_the_report_for_a_message(store) -> None:
    assembly_id = store.create_assembly("Sakubva Cluster")
    store.create_report(assembly_id, make_report(), message_id="77")
    store.create_report(assembly_id, make_report(saved=5), message_id="77", replace_existing=True)
    store.create_report(assembly_id, make_report(saved=1), message_id="78", replace_existing=True)

    rows = store.fetch_reports_in_range(assembly_id, "2026-02-01", "2026-02-28")
    assert sorted((row["message_id"], row["saved"]) for row in rows) == [("77", 5), ("78", 1)]


def test_memory_session_store_copies_data() -> None:
    sessions = MemorySessionStore()
    data = {"location": "Sakubva"}
    sessions.save("user", 2, data)
    data["location"] = "changed"

    assert sessions.get("user")["data"] == {"location": "Sakubva"}
    sessions.clear("user")
    assert sessions.get("user") is None


def test_json_session_store_persists_and_recovers(tmp_path) -> None:
    path = tmp_path / "sessions.json"
    sessions = JsonSessionStore(str(path))
    sessions.save("user", 1, {"assembly_id": 1})
    sessions.save("user", 2, {"assembly_id": 1, "activity_date": "2026-02-10"})

    assert JsonSessionStore(str(path)).get("user")["step"] == 2
    assert json.loads((tmp_path / "sessions.json.bak").read_text())["user"]["step"] == 1

    path.write_text("{not json")
    assert sessions.get("user")["step"] == 1

    sessions.clear("user")
    assert sessions.get("user") is None


def test_json_session_store_keeps_concurrent_sessions(tmp_path) -> None:
    sessions = JsonSessionStore(str(tmp_path / "sessions.json"))

    def fill(user):
        for step in range(1, 6):
            sessions.save(user, step, {"user": user})

    threads = [threading.Thread(target=fill, args=(f"user-{n}",)) for n in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    stored = json.loads((tmp_path / "sessions.json").read_text())
    assert sorted(stored) == sorted(f"user-{n}" for n in range(8))
    assert all(session["step"] == 5 for session in stored.values())
    assert list(tmp_path.glob("*.tmp")) == []
