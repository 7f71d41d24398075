"""Utilities for issuing and validating application JWTs."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
import time
from typing import Any

import jwt

from ..errors import InvalidToken

_ALGORITHM = "HS256"


@dataclass(slots=True, frozen=True)
class TokenClaims:
    """Identity carried by a verified bearer token."""

    account_id: int
    email: str
    issued_at: datetime
    expires_at: datetime


class TokenIssuer:
    """Signs and verifies HS256 bearer tokens with a process-wide secret."""

    def __init__(self, secret: str, *, issuer: str, ttl_seconds: int = 3600) -> None:
        if not secret:
            raise ValueError("token signing secret must not be empty")
        if ttl_seconds <= 0:
            raise ValueError("token ttl must be positive")
        self._secret = secret
        self._issuer = issuer
        self._ttl_seconds = ttl_seconds

    @property
    def ttl_seconds(self) -> int:
        return self._ttl_seconds

    def issue(self, account_id: int, email: str, ttl_seconds: int | None = None) -> tuple[str, int]:
        """Create a signed JWT representing an authenticated account.

        Parameters
        ----------
        account_id:
            Account identifier to embed in the token `sub` claim.
        email:
            Login identifier of the account, carried for the caller's convenience.
        ttl_seconds:
            Optional lifetime override; defaults to the issuer's configured TTL.

        Returns
        -------
        tuple[str, int]
            A tuple containing the encoded JWT string and its TTL (in seconds).
        """

        expires_in = self._ttl_seconds if ttl_seconds is None else ttl_seconds
        if expires_in <= 0:
            raise ValueError("token ttl must be positive")
        now = int(time.time())
        payload: dict[str, Any] = {
            "iss": self._issuer,
            "sub": str(account_id),
            "email": email,
            "iat": now,
            "exp": now + expires_in,
        }
        return jwt.encode(payload, self._secret, algorithm=_ALGORITHM), expires_in

    def verify(self, token: str) -> TokenClaims:
        """Decode and verify a JWT returning the identity it carries.

        Raises
        ------
        InvalidToken
            When the signature, issuer, structure or expiry check fails.
        """

        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[_ALGORITHM],
                issuer=self._issuer,
                options={"require": ["sub", "iat", "exp", "iss"]},
            )
        except jwt.ExpiredSignatureError as exc:
            raise InvalidToken("token expired") from exc
        except jwt.PyJWTError as exc:
            raise InvalidToken("token invalid") from exc

        subject = payload["sub"]
        email = payload.get("email")
        numeric_subject = isinstance(subject, str) and subject.isascii() and subject.isdigit()
        if not numeric_subject or not isinstance(email, str):
            raise InvalidToken("token claims malformed")
        return TokenClaims(
            account_id=int(subject),
            email=email,
            issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        )
