"""Error taxonomy shared by the store, security and service layers."""

from __future__ import annotations


class AccountError(Exception):
    """Base class for failures raised by the account core."""


class ValidationError(AccountError):
    """Malformed input the caller can correct."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message


class EmailTaken(AccountError):
    """Registration attempted with an email that already has an account."""


class InvalidCredentials(AccountError):
    """Unknown email or wrong password; the two cases are indistinguishable."""


class AccountBlocked(AccountError):
    """Correct credentials for an account an administrator has blocked."""


class NotFound(AccountError):
    """No account matches the given id or email."""


class Unauthenticated(AccountError):
    """Request carries no usable bearer token or the account is unavailable."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class DuplicateIdentity(AccountError):
    """The store refused an insert because the email is already present."""


class InvalidToken(AccountError):
    """Token signature, structure or expiry check failed."""


class CorruptHash(AccountError):
    """A stored password hash could not be parsed."""


class ConfigurationError(AccountError):
    """Process configuration is missing or inconsistent."""
