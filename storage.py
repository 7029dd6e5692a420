"""Persistence for assemblies, reports and guided-form sessions.

The report store is a thin SQLite wrapper exposing the small CRUD surface the
bot needs. Form sessions live behind the SessionStore protocol so the form
logic never holds user state itself.
"""
import os
import json
import sqlite3
import logging
import tempfile
import threading
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol

from errors import StorageError

logger = logging.getLogger(__name__)

REPORT_COLUMNS = (
    "activity_date", "location", "area", "city", "activity_type", "preachers_team",
    "message_summary", "response_moments", "saved", "healed", "reporter_name",
)


class ReportStore:
    """SQLite-backed store for assemblies and evangelism reports"""

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def init_db(self) -> None:
        """Create tables if they do not exist"""
        directory = os.path.dirname(self._db_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS assemblies (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL UNIQUE,
                    chat_id TEXT UNIQUE
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS reports (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    assembly_id INTEGER NOT NULL REFERENCES assemblies(id) ON DELETE CASCADE,
                    activity_date TEXT NOT NULL,
                    location TEXT NOT NULL,
                    area TEXT,
                    city TEXT,
                    activity_type TEXT NOT NULL,
                    preachers_team TEXT NOT NULL,
                    message_summary TEXT NOT NULL,
                    response_moments TEXT,
                    saved INTEGER NOT NULL DEFAULT 0,
                    healed INTEGER NOT NULL DEFAULT 0,
                    reporter_name TEXT,
                    reporter_phone TEXT,
                    source TEXT NOT NULL DEFAULT 'form',
                    message_id TEXT,
                    posted_to_group INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL
                )
                """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_reports_assembly_date ON reports (assembly_id, activity_date)"
            )
        logger.info({"event": "database_initialized", "path": self._db_path})

    # --- Assemblies ---
    def create_assembly(self, name: str, chat_id: Optional[str] = None) -> int:
        with self._connect() as conn:
            cur = conn.execute(
                "INSERT INTO assemblies (name, chat_id) VALUES (?, ?)",
                (name, chat_id),
            )
            return int(cur.lastrowid)

    def get_assembly(self, assembly_id: int) -> Optional[Dict[str, Any]]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM assemblies WHERE id = ?", (assembly_id,)).fetchone()
        return dict(row) if row else None

    def get_all_assemblies(self) -> List[Dict[str, Any]]:
        with self._connect() as conn:
            rows = conn.execute("SELECT * FROM assemblies ORDER BY name ASC").fetchall()
        return [dict(row) for row in rows]

    def get_assembly_by_chat_id(self, chat_id: str) -> Optional[Dict[str, Any]]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM assemblies WHERE chat_id = ?", (str(chat_id),)).fetchone()
        return dict(row) if row else None

    def update_assembly(self, assembly_id: int, name: str, chat_id: Optional[str]) -> None:
        with self._connect() as conn:
            cur = conn.execute(
                "UPDATE assemblies SET name = ?, chat_id = ? WHERE id = ?",
                (name, chat_id, assembly_id),
            )
            if cur.rowcount == 0:
                raise StorageError(f"Unknown assembly: {assembly_id}")

    def delete_assembly(self, assembly_id: int) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM assemblies WHERE id = ?", (assembly_id,))

    # --- Reports ---
    def create_report(
        self,
        assembly_id: int,
        report: Dict[str, Any],
        source: str = "form",
        reporter_phone: Optional[str] = None,
        message_id: Optional[str] = None,
        posted_to_group: bool = False,
        replace_existing: bool = False,
    ) -> int:
        """Insert a validated report and return its id.

        With replace_existing, an earlier report from the same message in the
        same assembly is deleted in the same transaction as the insert.
        """
        if self.get_assembly(assembly_id) is None:
            raise StorageError(f"Unknown assembly: {assembly_id}")

        values = {column: report.get(column) for column in REPORT_COLUMNS}
        values["saved"] = values["saved"] or 0
        values["healed"] = values["healed"] or 0
        values["preachers_team"] = values["preachers_team"] or values["reporter_name"]
        placeholders = ", ".join("?" for _ in range(len(REPORT_COLUMNS) + 6))
        with self._connect() as conn:
            if replace_existing and message_id:
                replaced = conn.execute(
                    "DELETE FROM reports WHERE assembly_id = ? AND message_id = ?",
                    (assembly_id, str(message_id)),
                ).rowcount
                logger.info({"event": "report_replaced", "assembly_id": assembly_id, "message_id": message_id, "rows": replaced})
            cur = conn.execute(
                f"""
                INSERT INTO reports (
                    assembly_id, {", ".join(REPORT_COLUMNS)},
                    reporter_phone, source, message_id, posted_to_group, created_at
                ) VALUES ({placeholders})
                """,
                (
                    assembly_id,
                    *(values[column] for column in REPORT_COLUMNS),
                    reporter_phone,
                    source,
                    message_id,
                    int(posted_to_group),
                    datetime.now(timezone.utc).isoformat(),
                ),
            )
            report_id = int(cur.lastrowid)
        logger.info({"event": "report_stored", "report_id": report_id, "assembly_id": assembly_id, "source": source})
        return report_id

    def get_report(self, report_id: int) -> Optional[Dict[str, Any]]:
        """Report joined with its assembly name and chat"""
        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT reports.*, assemblies.name AS assembly_name, assemblies.chat_id AS assembly_chat_id
                FROM reports JOIN assemblies ON assemblies.id = reports.assembly_id
                WHERE reports.id = ?
                """,
                (report_id,),
            ).fetchone()
        return dict(row) if row else None

    def fetch_reports_in_range(self, group_key: int, start_date: str, end_date: str) -> List[Dict[str, Any]]:
        """Reports of one assembly with start_date <= activity_date <= end_date"""
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT * FROM reports
                WHERE assembly_id = ? AND activity_date >= ? AND activity_date <= ?
                ORDER BY activity_date ASC, id ASC
                """,
                (group_key, start_date, end_date),
            ).fetchall()
        return [dict(row) for row in rows]

    def fetch_all_reports_in_range(self, start_date: str, end_date: str) -> List[Dict[str, Any]]:
        """Reports of every assembly in range, each carrying its assembly_name"""
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT reports.*, assemblies.name AS assembly_name
                FROM reports JOIN assemblies ON assemblies.id = reports.assembly_id
                WHERE reports.activity_date >= ? AND reports.activity_date <= ?
                ORDER BY reports.activity_date ASC, reports.id ASC
                """,
                (start_date, end_date),
            ).fetchall()
        return [dict(row) for row in rows]

    def mark_report_posted(self, report_id: int) -> None:
        with self._connect() as conn:
            conn.execute("UPDATE reports SET posted_to_group = 1 WHERE id = ?", (report_id,))

    def delete_report_by_message_id(self, assembly_id: int, message_id: str) -> Optional[Dict[str, Any]]:
        """Delete the report created from a message in one assembly's chat.

        Chat message ids are only unique within a chat, so the assembly is
        part of the lookup. Returns the deleted row.
        """
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM reports WHERE assembly_id = ? AND message_id = ?",
                (assembly_id, str(message_id)),
            ).fetchone()
            if row is None:
                return None
            conn.execute("DELETE FROM reports WHERE id = ?", (row["id"],))
        logger.info({"event": "report_deleted", "report_id": row["id"], "assembly_id": assembly_id, "message_id": message_id})
        return dict(row)


# --- Session Management ---
class SessionStore(Protocol):
    """Keyed store of guided-form sessions: session id -> {"step", "data"}"""

    def get(self, session_id: str) -> Optional[Dict[str, Any]]:
        ...

    def save(self, session_id: str, step: int, data: Dict[str, Any]) -> None:
        ...

    def clear(self, session_id: str) -> None:
        ...


class MemorySessionStore:
    """Process-local session store, used for tests and single-instance runs"""

    def __init__(self) -> None:
        self._sessions: Dict[str, Dict[str, Any]] = {}

    def get(self, session_id: str) -> Optional[Dict[str, Any]]:
        session = self._sessions.get(session_id)
        return json.loads(json.dumps(session)) if session else None

    def save(self, session_id: str, step: int, data: Dict[str, Any]) -> None:
        self._sessions[session_id] = {
            "step": step,
            "data": json.loads(json.dumps(data)),
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }

    def clear(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)


class JsonSessionStore:
    """Session store persisted to a JSON file with a .bak copy of the previous state.

    Every read-modify-write cycle holds a lock, and the file is replaced
    atomically, so concurrent webhook threads never drop each other's sessions.
    """

    def __init__(self, path: str) -> None:
        self._path = path
        self._lock = threading.Lock()

    def _load(self) -> Dict[str, Any]:
        try:
            if os.path.exists(self._path):
                with open(self._path, "r") as f:
                    return json.load(f)
            return {}
        except json.JSONDecodeError as e:
            logger.error({"event": "session_json_error", "error": str(e)})
            # Try to recover from corrupt JSON
            backup_file = f"{self._path}.bak"
            if os.path.exists(backup_file):
                with open(backup_file, "r") as f:
                    data = json.load(f)
                logger.info({"event": "session_loaded_from_backup", "file": backup_file})
                return data
            return {}

    def _write(self, sessions: Dict[str, Any]) -> None:
        if os.path.exists(self._path):
            with open(self._path, "r") as src, open(f"{self._path}.bak", "w") as dst:
                dst.write(src.read())
        directory = os.path.dirname(self._path) or "."
        os.makedirs(directory, exist_ok=True)
        with tempfile.NamedTemporaryFile("w", delete=False, dir=directory, suffix=".tmp") as f:
            json.dump(sessions, f, indent=2)
            temp_name = f.name
        os.replace(temp_name, self._path)

    def get(self, session_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            return self._load().get(session_id)

    def save(self, session_id: str, step: int, data: Dict[str, Any]) -> None:
        with self._lock:
            sessions = self._load()
            sessions[session_id] = {
                "step": step,
                "data": data,
                "updated_at": datetime.now(timezone.utc).isoformat(),
            }
            self._write(sessions)
        logger.info({"event": "session_saved", "session_id": session_id, "step": step})

    def clear(self, session_id: str) -> None:
        with self._lock:
            sessions = self._load()
            if sessions.pop(session_id, None) is None:
                return
            self._write(sessions)
        logger.info({"event": "session_cleared", "session_id": session_id})
