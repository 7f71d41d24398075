from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class AccountStatus(str, Enum):
    ACTIVE = "active"
    BLOCKED = "blocked"


class BulkAction(str, Enum):
    BLOCK = "block"
    UNBLOCK = "unblock"
    DELETE = "delete"


@dataclass(slots=True)
class Account:
    """Aggregate root for a registered user account."""

    account_id: int
    display_name: str
    email: str
    password_hash: str
    status: AccountStatus
    registered_at: datetime
    last_login_at: datetime | None = None

    @property
    def is_blocked(self) -> bool:
        return self.status is AccountStatus.BLOCKED


@dataclass(slots=True, frozen=True)
class AccountSummary:
    """Account projection safe to hand to callers; never carries the hash."""

    account_id: int
    display_name: str
    email: str
    status: AccountStatus
    registered_at: datetime
    last_login_at: datetime | None

    @classmethod
    def from_account(cls, account: Account) -> "AccountSummary":
        return cls(
            account_id=account.account_id,
            display_name=account.display_name,
            email=account.email,
            status=account.status,
            registered_at=account.registered_at,
            last_login_at=account.last_login_at,
        )
