"""Account service orchestrating persistence, password checks, and token issuance."""

from __future__ import annotations

from dataclasses import dataclass
import logging
import re
import secrets
from typing import Iterable

from .account import Account, AccountStatus, AccountSummary, BulkAction
from .contracts import AccountStore, NewAccount
from ..errors import (
    AccountBlocked,
    DuplicateIdentity,
    EmailTaken,
    InvalidCredentials,
    NotFound,
    ValidationError,
)
from ..security.passwords import PasswordHasher
from ..security.tokens import TokenIssuer

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


@dataclass(slots=True)
class Registration:
    """Outcome of a successful registration."""

    account_id: int
    token: str
    expires_in: int


@dataclass(slots=True)
class LoginResult:
    """Authenticated account summary plus the bearer token issued for it."""

    account: AccountSummary
    token: str
    expires_in: int


@dataclass(slots=True)
class BulkActionResult:
    action: BulkAction
    requested: int
    affected: int


def _require(value: str | None, field: str) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise ValidationError(field, f"{field} is required")
    return cleaned


def parse_status(raw: str | None) -> AccountStatus:
    value = (raw or "").strip().lower()
    try:
        return AccountStatus(value)
    except ValueError:
        raise ValidationError("status", 'status must be "active" or "blocked"') from None


def parse_action(raw: str | None) -> BulkAction:
    value = (raw or "").strip().lower()
    try:
        return BulkAction(value)
    except ValueError:
        raise ValidationError("action", 'action must be "block", "unblock" or "delete"') from None


class AccountService:
    """Account workflows over an injected credential store.

    The store is the only shared mutable state; the service itself holds no
    locks, so slow password hashing never serialises other requests.
    """

    def __init__(self, store: AccountStore, hasher: PasswordHasher, tokens: TokenIssuer) -> None:
        """Store dependencies used to orchestrate persistence and token issuance."""
        self._store = store
        self._hasher = hasher
        self._tokens = tokens
        # Verified against when the email is unknown so both failure paths cost one hash check.
        self._dummy_hash = hasher.hash(secrets.token_urlsafe(16))

    def register(self, display_name: str | None, email: str | None, password: str | None) -> Registration:
        """Create an active account and issue its first token."""
        name = _require(display_name, "name")
        email = _require(email, "email")
        if not password:
            raise ValidationError("password", "password is required")
        if not EMAIL_PATTERN.match(email):
            raise ValidationError("email", "email must look like local@domain.tld")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                "password", f"password must be at least {MIN_PASSWORD_LENGTH} characters long"
            )

        password_hash = self._hasher.hash(password)
        try:
            account_id = self._store.insert(
                NewAccount(display_name=name, email=email, password_hash=password_hash)
            )
        except DuplicateIdentity as exc:
            logger.info("registration rejected, email already registered")
            raise EmailTaken("email is already registered") from exc

        token, expires_in = self._tokens.issue(account_id, email)
        logger.info("registered account %s", account_id)
        return Registration(account_id=account_id, token=token, expires_in=expires_in)

    def login(self, email: str | None, password: str | None) -> LoginResult:
        """Check credentials, then status, and record the login.

        The password is verified before the status is looked at, so a blocked
        account with a wrong password reports :class:`InvalidCredentials` just
        like an unknown email does.
        """
        email = _require(email, "email")
        if not password:
            raise ValidationError("password", "password is required")

        account = self._store.find_by_email(email)
        if account is None:
            self._hasher.verify(password, self._dummy_hash)
            logger.info("login failed: invalid credentials")
            raise InvalidCredentials("invalid email or password")
        if not self._hasher.verify(password, account.password_hash):
            logger.info("login failed for account %s: invalid credentials", account.account_id)
            raise InvalidCredentials("invalid email or password")
        if account.is_blocked:
            logger.info("login refused for blocked account %s", account.account_id)
            raise AccountBlocked("account is blocked")

        try:
            account.last_login_at = self._store.touch_last_login(account.account_id)
        except NotFound as exc:
            # Deleted between the lookup and the login update.
            raise InvalidCredentials("invalid email or password") from exc
        token, expires_in = self._tokens.issue(account.account_id, account.email)
        logger.info("account %s logged in", account.account_id)
        return LoginResult(
            account=AccountSummary.from_account(account),
            token=token,
            expires_in=expires_in,
        )

    def get_account(self, account_id: int) -> Account | None:
        return self._store.find_by_id(account_id)

    def list_accounts(self) -> list[AccountSummary]:
        return [AccountSummary.from_account(account) for account in self._store.list_all()]

    def set_status(self, email: str, status: str | None) -> AccountStatus:
        email = _require(email, "email")
        new_status = parse_status(status)
        self._store.update_status_by_email(email, new_status)
        logger.info("status of %s set to %s", email, new_status.value)
        return new_status

    def bulk_action(self, account_ids: Iterable[int], action: str) -> BulkActionResult:
        """Apply block, unblock or delete to every id; unknown ids are skipped.

        The batch is best-effort and not atomic: concurrent readers may see it
        partially applied.
        """
        bulk = parse_action(action)
        ids = list(dict.fromkeys(int(account_id) for account_id in account_ids))
        if not ids:
            raise ValidationError("userIds", "at least one account id is required")

        if bulk is BulkAction.DELETE:
            affected = self._store.delete_many(ids)
        else:
            status = AccountStatus.BLOCKED if bulk is BulkAction.BLOCK else AccountStatus.ACTIVE
            affected = 0
            for account_id in ids:
                try:
                    self._store.update_status(account_id, status)
                except NotFound:
                    continue
                affected += 1

        logger.info("bulk %s: %d requested, %d affected", bulk.value, len(ids), affected)
        return BulkActionResult(action=bulk, requested=len(ids), affected=affected)

    def delete_account(self, account_id: int) -> None:
        if self._store.delete_many([account_id]) == 0:
            raise NotFound(f"account {account_id}")
        logger.info("deleted account %s", account_id)
