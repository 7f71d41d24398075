"""Bearer-token gate in front of the authenticated account operations."""

from __future__ import annotations

import logging

from ..domain.account import Account
from ..domain.contracts import AccountStore
from ..errors import InvalidToken, Unauthenticated
from .tokens import TokenIssuer

logger = logging.getLogger(__name__)


def extract_bearer_token(authorization: str | None) -> str:
    """Return the credential from an ``Authorization: Bearer <token>`` header value."""
    if not authorization:
        raise Unauthenticated("missing_token")
    scheme, _, credentials = authorization.strip().partition(" ")
    if scheme.lower() != "bearer" or not credentials.strip():
        raise Unauthenticated("missing_token")
    return credentials.strip()


class AccessGuard:
    """Resolves the calling account for a request, rejecting unknown or blocked accounts.

    Tokens are not revoked when an account is blocked or deleted; this lookup
    on every call is what turns those changes away.
    """

    def __init__(self, tokens: TokenIssuer, store: AccountStore) -> None:
        self._tokens = tokens
        self._store = store

    def authenticate(self, authorization: str | None) -> Account:
        token = extract_bearer_token(authorization)
        try:
            claims = self._tokens.verify(token)
        except InvalidToken as exc:
            logger.info("rejected bearer token: %s", exc)
            raise Unauthenticated("token_invalid") from exc

        account = self._store.find_by_id(claims.account_id)
        if account is None or account.is_blocked:
            logger.info("rejected token for unavailable account %s", claims.account_id)
            raise Unauthenticated("account_unavailable")
        return account
