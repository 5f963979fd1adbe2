from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
import sqlite3


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class Storage:
    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS conversation (
                  id INTEGER PRIMARY KEY AUTOINCREMENT,
                  content TEXT NOT NULL,
                  from_user INTEGER NOT NULL,
                  timestamp REAL NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS alarms (
                  id INTEGER PRIMARY KEY AUTOINCREMENT,
                  hour INTEGER NOT NULL,
                  minute INTEGER NOT NULL,
                  label TEXT NOT NULL,
                  created_at TEXT NOT NULL
                )
                """
            )
            conn.commit()

    def add_turn(self, content: str, from_user: bool, timestamp: float) -> int:
        with self._connect() as conn:
            cursor = conn.execute(
                "INSERT INTO conversation(content, from_user, timestamp) VALUES (?, ?, ?)",
                (content, 1 if from_user else 0, timestamp),
            )
            conn.commit()
            return int(cursor.lastrowid)

    def list_turns(self, limit: int | None = None) -> list[dict[str, object]]:
        query = "SELECT id, content, from_user, timestamp FROM conversation ORDER BY id ASC"
        args: tuple[int, ...] | tuple[()] = ()
        if limit is not None:
            query = (
                "SELECT * FROM ("
                "SELECT id, content, from_user, timestamp FROM conversation ORDER BY id DESC LIMIT ?"
                ") ORDER BY id ASC"
            )
            args = (limit,)

        with self._connect() as conn:
            rows = conn.execute(query, args).fetchall()
            return [
                {
                    "id": int(row["id"]),
                    "content": str(row["content"]),
                    "from_user": bool(row["from_user"]),
                    "timestamp": float(row["timestamp"]),
                }
                for row in rows
            ]

    def count_turns(self) -> int:
        with self._connect() as conn:
            row = conn.execute("SELECT COUNT(*) AS total FROM conversation").fetchone()
            return int(row["total"])

    def clear_turns(self) -> int:
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM conversation")
            conn.commit()
            return cursor.rowcount

    def add_alarm(self, hour: int, minute: int, label: str) -> int:
        with self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO alarms(hour, minute, label, created_at)
                VALUES (?, ?, ?, ?)
                """,
                (hour, minute, label, _utc_now_iso()),
            )
            conn.commit()
            return int(cursor.lastrowid)

    def list_alarms(self) -> list[dict[str, str | int]]:
        with self._connect() as conn:
            rows = conn.execute("SELECT * FROM alarms ORDER BY hour ASC, minute ASC").fetchall()
            result: list[dict[str, str | int]] = []
            for row in rows:
                result.append(
                    {
                        "id": int(row["id"]),
                        "hour": int(row["hour"]),
                        "minute": int(row["minute"]),
                        "label": str(row["label"]),
                        "created_at": str(row["created_at"]),
                    }
                )
            return result
