# voicescribe/core/db.py
"""
Database module for transcriptions and settings.

The whole database lives in an in-memory SQLite connection. After every
mutating call the complete database is serialized and written over the
snapshot file before the call returns, so the file on disk is always a full
copy of the current state and readers never see stale data.

Writing the whole file on each mutation costs O(database size) disk I/O;
this is fine for a low-volume inbox but is the scaling ceiling of the store.
"""
import datetime as dt
import logging
import os
import sqlite3
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional

from .errors import PersistenceError
from .pubsub import Channel, channel as default_channel
from ..schemas.transcription import (
    LanguageCount,
    Pagination,
    StatsOut,
    TranscriptionPage,
    TranscriptionRecord,
)

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
MAX_PAGE_SIZE = 100

# Settings the API is allowed to change, with the values seeded on first start
DEFAULT_SETTINGS: Dict[str, str] = {
    "auto_reply": "true",
    "default_language": "auto",
}
ALLOWED_SETTINGS = frozenset(DEFAULT_SETTINGS)

SCHEMA = """
CREATE TABLE IF NOT EXISTS transcriptions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    sender TEXT,
    sender_name TEXT,
    timestamp INTEGER,
    transcription TEXT,
    language TEXT,
    duration REAL,
    source TEXT DEFAULT 'whatsapp',
    created_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS settings (
    key TEXT PRIMARY KEY,
    value TEXT
);
"""


def _contains(haystack: Optional[str], needle: str) -> int:
    # Registered as an SQL function; casefold() handles accented letters that LIKE does not
    if haystack is None:
        return 0
    return int(needle.casefold() in haystack.casefold())


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def setting_value(value) -> str:
    """Settings are stored as text; booleans become "true"/"false"."""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class TranscriptionStore:
    """
    Single-writer store for transcription records and key-value settings.

    Every successful `save_transcription` publishes the full record on the
    pubsub channel so live listeners are notified.
    """

    def __init__(
        self,
        db_path: str | Path,
        events: Optional[Channel] = None,
        clock: Callable[[], dt.datetime] = _utcnow,
    ):
        self.db_path = Path(db_path)
        self.events = events if events is not None else default_channel
        self._clock = clock
        self._conn: Optional[sqlite3.Connection] = None
        self._snapshot: Optional[bytes] = None  # Last bytes written to db_path

    # -------- lifecycle --------
    def open(self) -> "TranscriptionStore":
        """
        Load the snapshot file if present, create tables and seed default settings.
        """
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(":memory:", check_same_thread=False)
            if self.db_path.exists():
                conn.deserialize(self.db_path.read_bytes())
            conn.row_factory = sqlite3.Row
            conn.create_function("contains_ci", 2, _contains, deterministic=True)
            conn.executescript(SCHEMA)
            for key, value in DEFAULT_SETTINGS.items():
                conn.execute("INSERT OR IGNORE INTO settings (key, value) VALUES (?, ?)", (key, value))
            conn.commit()
        except (sqlite3.Error, OSError) as e:
            raise PersistenceError(f"Could not open database at {self.db_path}: {e}") from e
        self._conn = conn
        self.persist()
        logger.info("[db] database initialized | path=%s", self.db_path)
        return self

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise PersistenceError("Database is not initialized; call open() first")
        return self._conn

    def persist(self) -> None:
        """
        Write the complete database to disk (temp file + atomic rename).

        If the write fails, the in-memory database is reset to the last
        snapshot that reached the disk, so a failed mutation is never visible.
        """
        tmp_path = self.db_path.with_name(self.db_path.name + ".tmp")
        try:
            self.conn.commit()
            data = self.conn.serialize()
            with open(tmp_path, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.db_path)
        except (sqlite3.Error, OSError) as e:
            self._restore_snapshot()
            tmp_path.unlink(missing_ok=True)
            raise PersistenceError(f"Could not write snapshot to {self.db_path}: {e}") from e
        self._snapshot = data

    def _restore_snapshot(self) -> None:
        conn = self.conn
        if conn.in_transaction:
            conn.rollback()
        if self._snapshot is not None:
            conn.deserialize(self._snapshot)
        logger.warning("[db] snapshot write failed, reverted to last saved state | path=%s", self.db_path)

    def _execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        try:
            return self.conn.execute(sql, params)
        except sqlite3.Error as e:
            # Statements earlier in the same mutation must not reach the next snapshot
            if self.conn.in_transaction:
                self.conn.rollback()
            raise PersistenceError(str(e)) from e

    # -------- transcriptions --------
    def save_transcription(
        self,
        *,
        sender: Optional[str],
        sender_name: Optional[str],
        timestamp: Optional[int],
        transcription: str,
        language: Optional[str],
        duration: Optional[float],
        source: str,
    ) -> int:
        """
        Insert a record, persist, then publish it. Returns the new id.
        """
        created_at = self._clock().strftime(TIMESTAMP_FORMAT)
        cur = self._execute(
            """INSERT INTO transcriptions
               (sender, sender_name, timestamp, transcription, language, duration, source, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (sender, sender_name, timestamp, transcription, language, duration, source, created_at),
        )
        record_id = cur.lastrowid
        self.persist()

        record = self.get_transcription(record_id)
        if record is not None:
            self.events.publish(record.model_dump())
        return record_id

    def get_transcription(self, record_id: int) -> Optional[TranscriptionRecord]:
        row = self._execute("SELECT * FROM transcriptions WHERE id = ?", (record_id,)).fetchone()
        return TranscriptionRecord(**dict(row)) if row else None

    def list_transcriptions(
        self,
        page: int = 1,
        limit: int = 20,
        source: Optional[str] = None,
        search: Optional[str] = None,
    ) -> TranscriptionPage:
        """
        Newest first. `source="all"` or None disables the source filter;
        `search` matches text or sender name, case-insensitively.
        """
        page = max(page, 1)
        limit = min(max(limit, 1), MAX_PAGE_SIZE)

        where: List[str] = []
        params: list = []
        if source and source != "all":
            where.append("source = ?")
            params.append(source)
        if search:
            where.append("(contains_ci(transcription, ?) OR contains_ci(sender_name, ?))")
            params.extend([search, search])
        where_sql = f"WHERE {' AND '.join(where)}" if where else ""

        total = self._execute(f"SELECT COUNT(*) FROM transcriptions {where_sql}", tuple(params)).fetchone()[0]
        rows = self._execute(
            f"SELECT * FROM transcriptions {where_sql} ORDER BY created_at DESC, id DESC LIMIT ? OFFSET ?",
            tuple(params) + (limit, (page - 1) * limit),
        ).fetchall()

        return TranscriptionPage(
            data=[TranscriptionRecord(**dict(r)) for r in rows],
            pagination=Pagination(
                page=page,
                limit=limit,
                total=total,
                totalPages=max(-(-total // limit), 1),
            ),
        )

    def update_transcription(self, record_id: int, text: str) -> bool:
        """Replace the text of a record. False if the id does not exist."""
        cur = self._execute("UPDATE transcriptions SET transcription = ? WHERE id = ?", (text, record_id))
        if cur.rowcount == 0:
            return False
        self.persist()
        return True

    def delete_transcription(self, record_id: int) -> bool:
        """False if the id does not exist (including when already deleted)."""
        cur = self._execute("DELETE FROM transcriptions WHERE id = ?", (record_id,))
        if cur.rowcount == 0:
            return False
        self.persist()
        return True

    def delete_all_transcriptions(self) -> int:
        cur = self._execute("DELETE FROM transcriptions")
        self.persist()
        return cur.rowcount

    def export_all(self) -> List[TranscriptionRecord]:
        rows = self._execute("SELECT * FROM transcriptions ORDER BY created_at DESC, id DESC").fetchall()
        return [TranscriptionRecord(**dict(r)) for r in rows]

    def get_stats(self) -> StatsOut:
        total = self._execute("SELECT COUNT(*) FROM transcriptions").fetchone()[0]
        total_duration = self._execute("SELECT COALESCE(SUM(duration), 0) FROM transcriptions").fetchone()[0]

        by_source = {
            row["source"]: row["count"]
            for row in self._execute("SELECT source, COUNT(*) AS count FROM transcriptions GROUP BY source")
        }
        by_language = [
            LanguageCount(language=row["language"], count=row["count"])
            for row in self._execute(
                """SELECT language, COUNT(*) AS count FROM transcriptions
                   WHERE language IS NOT NULL
                   GROUP BY language ORDER BY count DESC, language LIMIT 10"""
            )
        ]

        cutoff = (self._clock() - dt.timedelta(hours=24)).strftime(TIMESTAMP_FORMAT)
        last_24h = self._execute(
            "SELECT COUNT(*) FROM transcriptions WHERE created_at >= ?", (cutoff,)
        ).fetchone()[0]

        disk_usage = self.db_path.stat().st_size if self.db_path.exists() else 0

        return StatsOut(
            totalTranscriptions=total,
            totalDurationSeconds=total_duration,
            totalDurationMinutes=round(total_duration / 60, 1),
            totalDurationHours=round(total_duration / 3600, 1),
            last24Hours=last_24h,
            bySource=by_source,
            byLanguage=by_language,
            diskUsageBytes=disk_usage,
            diskUsageMB=round(disk_usage / 1024 / 1024, 2),
        )

    # -------- settings --------
    def get_setting(self, key: str) -> Optional[str]:
        row = self._execute("SELECT value FROM settings WHERE key = ?", (key,)).fetchone()
        return row["value"] if row else None

    def get_all_settings(self) -> Dict[str, str]:
        return {row["key"]: row["value"] for row in self._execute("SELECT key, value FROM settings")}

    def update_settings(self, changes: Mapping[str, object]) -> Dict[str, str]:
        """
        Apply the allow-listed keys of `changes` in one snapshot write.
        Returns the settings that were actually applied.
        """
        applied = {k: setting_value(v) for k, v in changes.items() if k in ALLOWED_SETTINGS}
        if not applied:
            return {}
        for key, value in applied.items():
            self._execute("INSERT OR REPLACE INTO settings (key, value) VALUES (?, ?)", (key, value))
        self.persist()
        return applied


# Process-wide store, opened on startup
_store: Optional[TranscriptionStore] = None


def init_db(db_path: str | Path, events: Optional[Channel] = None) -> TranscriptionStore:
    """
    Open the store at `db_path` and make it the process-wide instance.
    This function should be called during application startup.
    """
    global _store
    _store = TranscriptionStore(db_path, events=events).open()
    return _store


def close_db() -> None:
    """
    Close the process-wide store. Called during application shutdown.
    """
    global _store
    if _store is not None:
        _store.close()
        _store = None
