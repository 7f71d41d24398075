"""SQLite repository for local development and single-node deployments."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Iterator

from .domain.account import Account, AccountStatus
from .domain.contracts import NewAccount, storable_id
from .errors import ConfigurationError, DuplicateIdentity, NotFound

_ACCOUNT_COLUMNS = "id, name, email, password_hash, status, registration_time, last_login"

# Fixed-width UTC timestamps so text comparison in SQL matches time order.
_TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%f+00:00"

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    email TEXT NOT NULL UNIQUE,
    password_hash TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'active' CHECK (status IN ('active', 'blocked')),
    registration_time TEXT NOT NULL,
    last_login TEXT NULL
)
"""


def sqlite_path_from_url(url: str) -> str:
    """Return the file path encoded in ``sqlite:///relative`` or ``sqlite:////absolute`` URLs.

    A bare filesystem path is accepted unchanged.
    """
    if url.startswith("sqlite:///"):
        path = url[len("sqlite:///"):]
    elif url.startswith("sqlite://"):
        path = url[len("sqlite://"):]
    else:
        path = url
    if not path or path == ":memory:":
        raise ConfigurationError("sqlite store needs a database file, not an in-memory database")
    return path


def _format_ts(value: datetime) -> str:
    return value.astimezone(timezone.utc).strftime(_TIMESTAMP_FORMAT)


def _parse_ts(value: str | None) -> datetime | None:
    if value is None:
        return None
    return datetime.fromisoformat(value)


class SqliteAccountRepository:
    """SQLite-backed account persistence using one short-lived connection per call."""

    def __init__(self, path: str | Path, *, timeout: float = 5.0) -> None:
        self._path = str(path)
        self._timeout = timeout

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self._path, timeout=self._timeout)
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def init_schema(self) -> None:
        parent = Path(self._path).parent
        parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as conn:
            conn.execute(SCHEMA_SQL)

    def insert(self, payload: NewAccount) -> int:
        now = _format_ts(datetime.now(timezone.utc))
        try:
            with self._connect() as conn:
                cur = conn.execute(
                    """
                    INSERT INTO users (name, email, password_hash, status, registration_time)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (
                        payload.display_name,
                        payload.email,
                        payload.password_hash,
                        AccountStatus.ACTIVE.value,
                        now,
                    ),
                )
                return int(cur.lastrowid)
        except sqlite3.IntegrityError as exc:
            raise DuplicateIdentity(payload.email) from exc

    def find_by_email(self, email: str) -> Account | None:
        return self._fetch_one(f"SELECT {_ACCOUNT_COLUMNS} FROM users WHERE email = ?", (email,))

    def find_by_id(self, account_id: int) -> Account | None:
        if not storable_id(account_id):
            return None
        return self._fetch_one(f"SELECT {_ACCOUNT_COLUMNS} FROM users WHERE id = ?", (int(account_id),))

    def list_all(self) -> list[Account]:
        with self._connect() as conn:
            rows = conn.execute(f"SELECT {_ACCOUNT_COLUMNS} FROM users ORDER BY id").fetchall()
        return [self._map_record(row) for row in rows]

    def update_status(self, account_id: int, status: AccountStatus) -> None:
        if not storable_id(account_id):
            raise NotFound(f"account {account_id}")
        self._execute_update(
            "UPDATE users SET status = ? WHERE id = ?",
            (status.value, int(account_id)),
            missing=f"account {account_id}",
        )

    def update_status_by_email(self, email: str, status: AccountStatus) -> None:
        self._execute_update(
            "UPDATE users SET status = ? WHERE email = ?",
            (status.value, email),
            missing=f"account {email}",
        )

    def touch_last_login(self, account_id: int) -> datetime:
        if not storable_id(account_id):
            raise NotFound(f"account {account_id}")
        now = _format_ts(datetime.now(timezone.utc))
        with self._connect() as conn:
            cur = conn.execute(
                """
                UPDATE users
                SET last_login = CASE
                    WHEN last_login IS NULL OR last_login < ? THEN ?
                    ELSE last_login
                END
                WHERE id = ?
                """,
                (now, now, int(account_id)),
            )
            if cur.rowcount == 0:
                raise NotFound(f"account {account_id}")
            row = conn.execute("SELECT last_login FROM users WHERE id = ?", (int(account_id),)).fetchone()
        return _parse_ts(row[0])

    def delete_many(self, account_ids: Iterable[int]) -> int:
        ids = [(int(account_id),) for account_id in account_ids if storable_id(int(account_id))]
        if not ids:
            return 0
        with self._connect() as conn:
            before = conn.total_changes
            conn.executemany("DELETE FROM users WHERE id = ?", ids)
            return conn.total_changes - before

    def _fetch_one(self, query: str, params: tuple) -> Account | None:
        with self._connect() as conn:
            row = conn.execute(query, params).fetchone()
        if not row:
            return None
        return self._map_record(row)

    def _execute_update(self, query: str, params: tuple, *, missing: str) -> None:
        with self._connect() as conn:
            cur = conn.execute(query, params)
            updated = cur.rowcount
        if updated == 0:
            raise NotFound(missing)

    def _map_record(self, row: tuple) -> Account:
        """Convert a raw database tuple into the domain ``Account`` dataclass."""
        return Account(
            account_id=row[0],
            display_name=row[1],
            email=row[2],
            password_hash=row[3],
            status=AccountStatus(row[4]),
            registered_at=_parse_ts(row[5]),
            last_login_at=_parse_ts(row[6]),
        )
