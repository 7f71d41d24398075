"""Postgres repository for account data."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

from psycopg import errors
from psycopg.rows import tuple_row
from psycopg_pool import ConnectionPool

from .domain.account import Account, AccountStatus
from .domain.contracts import NewAccount, storable_id
from .errors import DuplicateIdentity, NotFound

_ACCOUNT_COLUMNS = "id, name, email, password_hash, status, registration_time, last_login"

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS users (
    id BIGSERIAL PRIMARY KEY,
    name VARCHAR(255) NOT NULL,
    email VARCHAR(255) NOT NULL,
    password_hash VARCHAR(255) NOT NULL,
    status VARCHAR(20) NOT NULL DEFAULT 'active' CHECK (status IN ('active', 'blocked')),
    registration_time TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    last_login TIMESTAMPTZ NULL,
    CONSTRAINT users_email_key UNIQUE (email)
)
"""


@dataclass(slots=True)
class AccountRecord:
    """Row projection used when mapping database tuples to domain aggregates."""

    account_id: int
    name: str
    email: str
    password_hash: str
    status: str
    registration_time: datetime
    last_login: datetime | None

    def to_domain(self) -> Account:
        return Account(
            account_id=self.account_id,
            display_name=self.name,
            email=self.email,
            password_hash=self.password_hash,
            status=AccountStatus(self.status),
            registered_at=self.registration_time,
            last_login_at=self.last_login,
        )


class PostgresAccountRepository:
    """Postgres-backed account persistence; the email constraint arbitrates concurrent inserts."""

    def __init__(self, pool: ConnectionPool) -> None:
        """Store the connection pool used for all database interactions."""
        self._pool = pool

    def init_schema(self) -> None:
        with self._pool.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(SCHEMA_SQL)
            conn.commit()

    def insert(self, payload: NewAccount) -> int:
        """Insert an active account and return the id allocated by the sequence."""
        with self._pool.connection() as conn:
            try:
                with conn.cursor(row_factory=tuple_row) as cur:
                    cur.execute(
                        """
                        INSERT INTO users (name, email, password_hash, status)
                        VALUES (%s, %s, %s, %s)
                        RETURNING id
                        """,
                        (
                            payload.display_name,
                            payload.email,
                            payload.password_hash,
                            AccountStatus.ACTIVE.value,
                        ),
                    )
                    row = cur.fetchone()
            except errors.UniqueViolation as exc:
                conn.rollback()
                raise DuplicateIdentity(payload.email) from exc
            conn.commit()
        return int(row[0])

    def find_by_email(self, email: str) -> Account | None:
        return self._fetch_one(f"SELECT {_ACCOUNT_COLUMNS} FROM users WHERE email = %s", (email,))

    def find_by_id(self, account_id: int) -> Account | None:
        if not storable_id(account_id):
            return None
        return self._fetch_one(f"SELECT {_ACCOUNT_COLUMNS} FROM users WHERE id = %s", (account_id,))

    def list_all(self) -> list[Account]:
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(f"SELECT {_ACCOUNT_COLUMNS} FROM users ORDER BY id")
                rows = cur.fetchall()
        return [AccountRecord(*row).to_domain() for row in rows]

    def update_status(self, account_id: int, status: AccountStatus) -> None:
        if not storable_id(account_id):
            raise NotFound(f"account {account_id}")
        self._execute_update(
            "UPDATE users SET status = %s WHERE id = %s",
            (status.value, account_id),
            missing=f"account {account_id}",
        )

    def update_status_by_email(self, email: str, status: AccountStatus) -> None:
        self._execute_update(
            "UPDATE users SET status = %s WHERE email = %s",
            (status.value, email),
            missing=f"account {email}",
        )

    def touch_last_login(self, account_id: int) -> datetime:
        """Advance ``last_login`` to now; GREATEST keeps the column from moving backwards."""
        if not storable_id(account_id):
            raise NotFound(f"account {account_id}")
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(
                    """
                    UPDATE users
                    SET last_login = GREATEST(last_login, NOW())
                    WHERE id = %s
                    RETURNING last_login
                    """,
                    (account_id,),
                )
                row = cur.fetchone()
            conn.commit()
        if row is None:
            raise NotFound(f"account {account_id}")
        return row[0]

    def delete_many(self, account_ids: Iterable[int]) -> int:
        ids = [int(account_id) for account_id in account_ids if storable_id(int(account_id))]
        if not ids:
            return 0
        with self._pool.connection() as conn:
            with conn.cursor() as cur:
                cur.execute("DELETE FROM users WHERE id = ANY(%s)", (ids,))
                deleted = cur.rowcount
            conn.commit()
        return deleted

    def _fetch_one(self, query: str, params: tuple) -> Account | None:
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(query, params)
                row = cur.fetchone()
        if not row:
            return None
        return AccountRecord(*row).to_domain()

    def _execute_update(self, query: str, params: tuple, *, missing: str) -> None:
        with self._pool.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(query, params)
                updated = cur.rowcount
            conn.commit()
        if updated == 0:
            raise NotFound(missing)
