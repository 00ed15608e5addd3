"""Local history of committed sessions for offline review.

Every successfully saved session is mirrored into a small SQLite table so the
history screen works without the network. Only the newest
:data:`~core.MAX_HISTORY_RECORDS` rows are kept.
"""

from __future__ import annotations

import json
import sqlite3
from pathlib import Path

from core import DEFAULT_DB_PATH, MAX_HISTORY_RECORDS

SCHEMA = """
CREATE TABLE IF NOT EXISTS session_history (
    id TEXT PRIMARY KEY,
    finished_at TEXT NOT NULL,
    title TEXT,
    location TEXT,
    duration_min INTEGER,
    payload_json TEXT NOT NULL
)
"""


def _connect(db_path: Path) -> sqlite3.Connection:
    path = Path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    conn.execute(SCHEMA)
    return conn


def append_history_record(record: dict, db_path: Path = DEFAULT_DB_PATH) -> None:
    """Store ``record`` and drop the oldest rows beyond the history cap."""

    with _connect(db_path) as conn:
        conn.execute(
            """
            INSERT OR REPLACE INTO session_history
                (id, finished_at, title, location, duration_min, payload_json)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                record["id"],
                record["finishedAt"],
                record.get("title"),
                record.get("location"),
                record.get("durationMin"),
                json.dumps(record),
            ),
        )
        conn.execute(
            """
            DELETE FROM session_history
             WHERE id NOT IN (
                SELECT id FROM session_history
                 ORDER BY finished_at DESC, rowid DESC
                 LIMIT ?
             )
            """,
            (MAX_HISTORY_RECORDS,),
        )
    conn.close()


def get_session_history(limit: int | None = None, db_path: Path = DEFAULT_DB_PATH) -> list[dict]:
    """Return stored sessions, most recent first.

    Each item contains ``id``, ``title`` and ``finished_at``.
    """

    query = (
        "SELECT id, title, finished_at FROM session_history "
        "ORDER BY finished_at DESC, rowid DESC"
    )
    with _connect(db_path) as conn:
        if limit is not None:
            rows = conn.execute(query + " LIMIT ?", (limit,)).fetchall()
        else:
            rows = conn.execute(query).fetchall()
    conn.close()
    return [{"id": sid, "title": title, "finished_at": ts} for sid, title, ts in rows]


def get_session_details(session_id: str, db_path: Path = DEFAULT_DB_PATH) -> dict:
    """Return the full stored record for ``session_id`` or ``{}``."""

    with _connect(db_path) as conn:
        row = conn.execute(
            "SELECT payload_json FROM session_history WHERE id = ?",
            (session_id,),
        ).fetchone()
    conn.close()
    if row is None:
        return {}
    return json.loads(row[0])
