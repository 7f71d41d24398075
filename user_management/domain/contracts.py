"""Domain-level contracts shared by the service and the store backends."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Protocol

from .account import Account, AccountStatus


@dataclass(slots=True)
class NewAccount:
    """Validated inputs required to persist a new account."""

    display_name: str
    email: str
    password_hash: str


class AccountStore(Protocol):
    """Capability set every credential store backend provides.

    Each method touches a single record (or a single statement for
    ``delete_many``); nothing here spans a cross-record transaction.
    """

    def init_schema(self) -> None:
        """Create the accounts table when it does not exist yet."""

    def insert(self, payload: NewAccount) -> int:
        """Persist an active account and return its id; raise ``DuplicateIdentity`` on a taken email."""

    def find_by_email(self, email: str) -> Account | None:
        ...

    def find_by_id(self, account_id: int) -> Account | None:
        ...

    def list_all(self) -> list[Account]:
        ...

    def update_status(self, account_id: int, status: AccountStatus) -> None:
        """Set the status of one account; raise ``NotFound`` when no row matches."""

    def update_status_by_email(self, email: str, status: AccountStatus) -> None:
        ...

    def touch_last_login(self, account_id: int) -> datetime:
        """Record a successful login and return the stored, never decreasing, timestamp."""

    def delete_many(self, account_ids: Iterable[int]) -> int:
        """Hard-delete matching accounts and return how many rows went away."""


# Both backends store ids as signed 64-bit integers; anything outside cannot match a row.
MIN_ACCOUNT_ID = -(2**63)
MAX_ACCOUNT_ID = 2**63 - 1


def storable_id(account_id: int) -> bool:
    return MIN_ACCOUNT_ID <= account_id <= MAX_ACCOUNT_ID
