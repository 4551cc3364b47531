"""SQLite-backed profile repository for local development.

Design notes
------------
- Each profile is stored verbatim as the model's ``to_document()`` JSON in a ``data`` column.
- A tiny snapshot shim lets ``User.from_document(...)`` read rows exactly like Firestore snapshots.
- Updates run inside ``BEGIN IMMEDIATE`` so concurrent tip saves never lose each other's writes.
- WAL mode is enabled. Suitable for single-host use.

Default location (if not provided):  ~/wellness/data/profiles.db
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import date, datetime, timezone
import json
import logging
from pathlib import Path
import secrets
import sqlite3
import threading
from typing import Any, Final, TypeVar

from wellness.models.profile import User
from wellness.services.errors import NotFoundError, StoreError

DEFAULT_DB_PATH: Final[Path] = Path.home() / "wellness" / "data" / "profiles.db"
DEFAULT_USERS_TABLE: Final[str] = "users"

logger = logging.getLogger(__name__)

T = TypeVar("T")


class _DictSnapshot:
    """Duck-type of DocumentSnapshot for model.from_document(...)"""

    __slots__ = ("id", "_data", "exists")

    def __init__(self, doc_id: str, data: dict[str, Any]) -> None:
        self.id = doc_id
        self._data = data
        self.exists = True

    def to_dict(self) -> dict[str, Any]:
        return dict(self._data)


def _to_iso8601(value: datetime | date) -> str:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).isoformat()
    return datetime(value.year, value.month, value.day, tzinfo=timezone.utc).isoformat()


def _json_default(o: object):
    if isinstance(o, (datetime, date)):
        return _to_iso8601(o)
    raise TypeError(f"Object of type {type(o).__name__} is not JSON serialisable")


def _json(obj: Any) -> str:
    return json.dumps(obj, ensure_ascii=False, separators=(",", ":"), default=_json_default)


def _json_or_none(txt: str | None) -> dict[str, Any] | None:
    if not txt:
        return None
    return json.loads(txt)


class LocalSQLiteProfileRepository:
    """SQLite repository that mirrors the FirestoreProfileRepository surface."""

    def __init__(
        self,
        db_path: str | Path | None = None,
        *,
        table: str = DEFAULT_USERS_TABLE,
    ) -> None:
        if not table.isidentifier():
            raise ValueError(f"Invalid table name: {table!r}")
        self._db_path = Path(db_path) if db_path else DEFAULT_DB_PATH
        self._table = table
        self._lock = threading.RLock()

        if str(self._db_path) != ":memory:":
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        # Autocommit mode; write transactions are opened explicitly.
        self._conn = sqlite3.connect(self._db_path, check_same_thread=False, isolation_level=None)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode = WAL;")
        self._bootstrap()

    # --- schema ----------------------------------------------------------------

    def _bootstrap(self) -> None:
        """Create the users table if it doesn't exist."""
        self._conn.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {self._table} (
                id TEXT PRIMARY KEY,
                data TEXT NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );
            """
        )

    # --- Profile helpers --------------------------------------------------------

    def create_user(self, user: User) -> User:
        user_id = self._generate_id()
        document = user.to_document()
        try:
            with self._lock:
                self._conn.execute(
                    f"INSERT INTO {self._table} (id, data, created_at, updated_at) VALUES (?, ?, ?, ?);",
                    (user_id, _json(document), _to_iso8601(user.created_at), _to_iso8601(user.updated_at)),
                )
        except sqlite3.Error as exc:
            raise _store_error("create", exc) from exc
        return self._row_to_user({"id": user_id, "data": _json(document)})

    def get_user(self, user_id: str) -> User | None:
        try:
            with self._lock:
                row = self._conn.execute(
                    f"SELECT id, data FROM {self._table} WHERE id = ?;",
                    (user_id,),
                ).fetchone()
        except sqlite3.Error as exc:
            raise _store_error("read", exc) from exc
        return self._row_to_user(row) if row else None

    def update_user(self, user_id: str, mutate: Callable[[User], T]) -> T:
        with self._lock:
            try:
                self._conn.execute("BEGIN IMMEDIATE;")
            except sqlite3.Error as exc:
                raise _store_error("update", exc) from exc
            try:
                row = self._conn.execute(
                    f"SELECT id, data FROM {self._table} WHERE id = ?;",
                    (user_id,),
                ).fetchone()
                if not row:
                    raise NotFoundError(user_id)
                user = self._row_to_user(row)
                result = mutate(user)
                user.touch()
                self._conn.execute(
                    f"UPDATE {self._table} SET data = ?, updated_at = ? WHERE id = ?;",
                    (_json(user.to_document()), _to_iso8601(user.updated_at), user_id),
                )
            except BaseException as exc:
                self._conn.execute("ROLLBACK;")
                if isinstance(exc, sqlite3.Error):
                    raise _store_error("update", exc) from exc
                raise
            try:
                self._conn.execute("COMMIT;")
            except sqlite3.Error as exc:
                raise _store_error("update", exc) from exc
            return result

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    # --- Conversions ------------------------------------------------------------

    def _row_to_user(self, row: sqlite3.Row | dict) -> User:
        data = _json_or_none(row["data"]) or {}
        return User.from_document(_DictSnapshot(str(row["id"]), data))

    # --- IDs --------------------------------------------------------------------

    @staticmethod
    def _generate_id() -> str:
        # Compact, URL-safe 20-char id
        return secrets.token_urlsafe(15).replace("-", "_")


def _store_error(operation: str, exc: Exception) -> StoreError:
    logger.exception(
        "SQLite %s failed",
        operation,
        extra={"event": "store.error", "backend": "sqlite", "operation": operation},
    )
    return StoreError(f"SQLite {operation} failed")
