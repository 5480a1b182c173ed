"""
SQLite store for work entries, their target links, and targets.

Each method runs on its own connection and commits on its own. Callers that
need several writes to happen together order them and handle partial failure
themselves (see PersistenceTransaction).
"""

from __future__ import annotations
import json
import logging
import sqlite3
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from sharplog.core.models import Target, WorkEntryRecord, WorkEntryTargetRow

logger = logging.getLogger("sharplog.store")

BUSY_TIMEOUT = 30.0   # seconds to wait on a locked database


class WorkLogStore:
    """SQLite store for SharpLog data."""

    def __init__(self, db_path: Path | str):
        """
        Args:
            db_path: Path to the SQLite database file.
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        """Commit on success, roll back on error, always close."""
        conn = sqlite3.connect(self.db_path, timeout=BUSY_TIMEOUT)
        conn.row_factory = sqlite3.Row
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def _init_schema(self) -> None:
        with self._connection() as conn:
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS targets (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    name TEXT NOT NULL,
                    description TEXT,
                    type TEXT NOT NULL DEFAULT 'goal',
                    target_value REAL,
                    current_value REAL NOT NULL DEFAULT 0,
                    unit TEXT,
                    deadline TEXT,
                    is_active INTEGER NOT NULL DEFAULT 1,
                    created_at REAL NOT NULL,
                    updated_at REAL NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_targets_user
                    ON targets(user_id, is_active);

                CREATE TABLE IF NOT EXISTS work_entries (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    redacted_summary TEXT NOT NULL,
                    encrypted_original TEXT NOT NULL,
                    skills TEXT NOT NULL,
                    achievements TEXT NOT NULL,
                    metrics TEXT NOT NULL,
                    category TEXT,
                    target_ids TEXT NOT NULL,
                    created_at REAL NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_work_entries_user
                    ON work_entries(user_id, created_at);

                CREATE TABLE IF NOT EXISTS work_entry_targets (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    work_entry_id TEXT NOT NULL REFERENCES work_entries(id) ON DELETE CASCADE,
                    target_id TEXT NOT NULL,
                    contribution_value REAL,
                    contribution_note TEXT,
                    smart_data TEXT,
                    created_at REAL NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_work_entry_targets_entry
                    ON work_entry_targets(work_entry_id);
            """)

    # --- Targets ---

    def add_target(self, target: Target) -> Target:
        now = time.time()
        with self._connection() as conn:
            conn.execute(
                """
                INSERT INTO targets (id, user_id, name, description, type, target_value,
                                     current_value, unit, deadline, is_active, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    target.id, target.user_id, target.name, target.description, target.type,
                    target.target_value, target.current_value, target.unit, target.deadline,
                    int(target.is_active), now, now,
                ),
            )
        return target

    def get_target(self, target_id: str) -> Target | None:
        with self._connection() as conn:
            row = conn.execute("SELECT * FROM targets WHERE id = ?", (target_id,)).fetchone()
        return self._row_to_target(row) if row else None

    def list_active_targets(self, user_id: str) -> list[Target]:
        with self._connection() as conn:
            rows = conn.execute(
                """
                SELECT * FROM targets
                WHERE user_id = ? AND is_active = 1
                ORDER BY created_at DESC
                """,
                (user_id,),
            ).fetchall()
        return [self._row_to_target(r) for r in rows]

    def increment_target_progress(self, target_id: str, increment_by: float) -> float:
        """Add increment_by to a target's current value and return the new value."""
        # The UPDATE opens the write transaction, so the read-back sees only our increment
        with self._connection() as conn:
            cursor = conn.execute(
                "UPDATE targets SET current_value = current_value + ?, updated_at = ? WHERE id = ?",
                (increment_by, time.time(), target_id),
            )
            if cursor.rowcount == 0:
                raise KeyError(f"Target {target_id} not found")
            row = conn.execute(
                "SELECT current_value FROM targets WHERE id = ?", (target_id,)
            ).fetchone()
        return row["current_value"]

    @staticmethod
    def _row_to_target(row: sqlite3.Row) -> Target:
        return Target(
            id=row["id"],
            user_id=row["user_id"],
            name=row["name"],
            description=row["description"],
            type=row["type"],
            target_value=row["target_value"],
            current_value=row["current_value"],
            unit=row["unit"],
            deadline=row["deadline"],
            is_active=bool(row["is_active"]),
        )

    # --- Work entries ---

    def insert_work_entry(self, record: WorkEntryRecord) -> WorkEntryRecord:
        with self._connection() as conn:
            conn.execute(
                """
                INSERT INTO work_entries (id, user_id, redacted_summary, encrypted_original,
                                          skills, achievements, metrics, category, target_ids, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.id, record.user_id, record.redacted_summary, record.encrypted_original,
                    json.dumps(record.skills), json.dumps(record.achievements),
                    json.dumps(record.metrics), record.category,
                    json.dumps(record.target_ids), record.created_at,
                ),
            )
        return record

    def get_work_entry(self, entry_id: str) -> WorkEntryRecord | None:
        with self._connection() as conn:
            row = conn.execute("SELECT * FROM work_entries WHERE id = ?", (entry_id,)).fetchone()
        return self._row_to_entry(row) if row else None

    def list_work_entries(self, user_id: str) -> list[WorkEntryRecord]:
        with self._connection() as conn:
            rows = conn.execute(
                "SELECT * FROM work_entries WHERE user_id = ? ORDER BY created_at DESC",
                (user_id,),
            ).fetchall()
        return [self._row_to_entry(r) for r in rows]

    def delete_work_entry(self, entry_id: str) -> bool:
        with self._connection() as conn:
            conn.execute("DELETE FROM work_entry_targets WHERE work_entry_id = ?", (entry_id,))
            cursor = conn.execute("DELETE FROM work_entries WHERE id = ?", (entry_id,))
        return cursor.rowcount > 0

    @staticmethod
    def _row_to_entry(row: sqlite3.Row) -> WorkEntryRecord:
        return WorkEntryRecord(
            id=row["id"],
            user_id=row["user_id"],
            redacted_summary=row["redacted_summary"],
            encrypted_original=row["encrypted_original"],
            skills=json.loads(row["skills"]),
            achievements=json.loads(row["achievements"]),
            metrics=json.loads(row["metrics"]),
            category=row["category"],
            target_ids=json.loads(row["target_ids"]),
            created_at=row["created_at"],
        )

    # --- Work entry ↔ target links ---

    def insert_target_mappings(self, rows: list[WorkEntryTargetRow]) -> int:
        if not rows:
            return 0
        now = time.time()
        with self._connection() as conn:
            conn.executemany(
                """
                INSERT INTO work_entry_targets (work_entry_id, target_id, contribution_value,
                                                contribution_note, smart_data, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        r.work_entry_id, r.target_id, r.contribution_value, r.contribution_note,
                        json.dumps(r.smart_data) if r.smart_data is not None else None, now,
                    )
                    for r in rows
                ],
            )
        return len(rows)

    def list_target_mappings(self, work_entry_id: str) -> list[WorkEntryTargetRow]:
        with self._connection() as conn:
            rows = conn.execute(
                "SELECT * FROM work_entry_targets WHERE work_entry_id = ? ORDER BY id",
                (work_entry_id,),
            ).fetchall()
        return [
            WorkEntryTargetRow(
                work_entry_id=r["work_entry_id"],
                target_id=r["target_id"],
                contribution_value=r["contribution_value"],
                contribution_note=r["contribution_note"],
                smart_data=json.loads(r["smart_data"]) if r["smart_data"] else None,
            )
            for r in rows
        ]
