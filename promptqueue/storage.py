import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol

from .errors import PromptQueueError

SCHEMA_VERSION = 1

DEFAULT_DB_PATH = Path.home() / ".config" / "promptqueue" / "promptqueue.db"


class Persistence(Protocol):
    def load(self, key: str) -> Any | None: ...

    def save(self, key: str, value: Any) -> None: ...


class MemoryStorage:
    """In-process persistence, used for tests and throwaway sessions."""

    def __init__(self):
        self._data: dict[str, str] = {}

    def load(self, key: str) -> Any | None:
        raw = self._data.get(key)
        return None if raw is None else json.loads(raw)

    def save(self, key: str, value: Any) -> None:
        self._data[key] = json.dumps(value)


class SqliteStorage:
    """JSON documents stored by key in a SQLite database."""

    def __init__(self, db_path: Path | None = None):
        self.db_path = db_path or DEFAULT_DB_PATH
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(self.db_path))
        except (OSError, sqlite3.Error) as e:
            raise PromptQueueError.persistence_failure(str(e)) from e
        self._conn.row_factory = sqlite3.Row
        self.init_db()

    def init_db(self) -> None:
        try:
            self._conn.executescript("""
                CREATE TABLE IF NOT EXISTS meta (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS documents (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );
            """)
            row = self._conn.execute(
                "SELECT value FROM meta WHERE key = 'schema_version'"
            ).fetchone()
            if row is None:
                self._conn.execute(
                    "INSERT INTO meta (key, value) VALUES ('schema_version', ?)",
                    (str(SCHEMA_VERSION),),
                )
                self._conn.commit()
            else:
                self.check_schema_version(int(row["value"]))
        except sqlite3.Error as e:
            raise PromptQueueError.persistence_failure(str(e)) from e

    def check_schema_version(self, version: int) -> None:
        if version != SCHEMA_VERSION:
            raise PromptQueueError.schema_version(SCHEMA_VERSION, version)

    def load(self, key: str) -> Any | None:
        try:
            row = self._conn.execute(
                "SELECT value FROM documents WHERE key = ?", (key,)
            ).fetchone()
        except sqlite3.Error as e:
            raise PromptQueueError.persistence_failure(str(e)) from e
        if row is None:
            return None
        try:
            return json.loads(row["value"])
        except json.JSONDecodeError as e:
            raise PromptQueueError.persistence_failure(f"corrupt value for {key}: {e}") from e

    def save(self, key: str, value: Any) -> None:
        now = datetime.now(timezone.utc).isoformat()
        try:
            self._conn.execute(
                """INSERT INTO documents (key, value, updated_at) VALUES (?, ?, ?)
                   ON CONFLICT(key) DO UPDATE SET
                       value = excluded.value,
                       updated_at = excluded.updated_at""",
                (key, json.dumps(value, ensure_ascii=False), now),
            )
            self._conn.commit()
        except (sqlite3.Error, TypeError, ValueError) as e:
            raise PromptQueueError.persistence_failure(str(e)) from e

    def close(self) -> None:
        self._conn.close()
