from __future__ import annotations

import time

import jwt
import pytest

from user_management.errors import CorruptHash, InvalidToken
from user_management.security.passwords import PasswordHasher
from user_management.security.tokens import TokenIssuer

from conftest import TEST_ISSUER, TEST_SECRET


@pytest.mark.parametrize("plaintext", ["a", "secret1", "pässwörd ✓", "x" * 200])
def test_hash_then_verify(hasher, plaintext):
    hashed = hasher.hash(plaintext)
    assert hasher.verify(plaintext, hashed)
    assert not hasher.verify(plaintext + "!", hashed)


def test_hash_is_salted(hasher):
    assert hasher.hash("secret1") != hasher.hash("secret1")


def test_long_passwords_sharing_a_prefix_do_not_collide(hasher):
    prefix = "p" * 100
    hashed = hasher.hash(prefix + "a")
    assert not hasher.verify(prefix + "b", hashed)


def test_hash_uses_configured_work_factor():
    hasher = PasswordHasher(rounds=5)
    assert hasher.hash("secret1").startswith("$2b$05$")


@pytest.mark.parametrize("rounds", [3, 32])
def test_rejects_out_of_range_rounds(rounds):
    with pytest.raises(ValueError):
        PasswordHasher(rounds=rounds)


@pytest.mark.parametrize("stored", ["", "not-a-hash", "$2b$04$short"])
def test_verify_malformed_hash_raises(hasher, stored):
    with pytest.raises(CorruptHash):
        hasher.verify("secret1", stored)


def test_issue_and_verify_token(tokens):
    token, expires_in = tokens.issue(7, "ann@x.com")

    claims = tokens.verify(token)

    assert expires_in == 3600
    assert claims.account_id == 7
    assert claims.email == "ann@x.com"
    assert (claims.expires_at - claims.issued_at).total_seconds() == 3600


def test_issue_with_custom_ttl(tokens):
    token, expires_in = tokens.issue(7, "ann@x.com", ttl_seconds=60)
    claims = tokens.verify(token)
    assert expires_in == 60
    assert (claims.expires_at - claims.issued_at).total_seconds() == 60


def test_verify_rejects_token_signed_with_another_secret(tokens):
    other = TokenIssuer("another-secret-with-enough-bytes-too", issuer=TEST_ISSUER)
    token, _ = other.issue(7, "ann@x.com")
    with pytest.raises(InvalidToken):
        tokens.verify(token)


def test_verify_rejects_tampered_token(tokens):
    token, _ = tokens.issue(7, "ann@x.com")
    header, payload, signature = token.split(".")
    forged = jwt.encode(
        {"iss": TEST_ISSUER, "sub": "8", "email": "ann@x.com", "iat": 0, "exp": 2**31},
        "wrong-key-wrong-key-wrong-key-wrong",
        algorithm="HS256",
    ).split(".")[1]
    with pytest.raises(InvalidToken):
        tokens.verify(".".join([header, forged, signature]))


def test_verify_rejects_expired_token(tokens):
    now = int(time.time())
    token = jwt.encode(
        {"iss": TEST_ISSUER, "sub": "7", "email": "ann@x.com", "iat": now - 120, "exp": now - 60},
        TEST_SECRET,
        algorithm="HS256",
    )
    with pytest.raises(InvalidToken, match="expired"):
        tokens.verify(token)


@pytest.mark.parametrize("token", ["", "garbage", "a.b.c"])
def test_verify_rejects_malformed_token(tokens, token):
    with pytest.raises(InvalidToken):
        tokens.verify(token)


def test_verify_rejects_non_numeric_subject(tokens):
    now = int(time.time())
    token = jwt.encode(
        {"iss": TEST_ISSUER, "sub": "ann", "email": "ann@x.com", "iat": now, "exp": now + 60},
        TEST_SECRET,
        algorithm="HS256",
    )
    with pytest.raises(InvalidToken):
        tokens.verify(token)


def test_issuer_requires_secret():
    with pytest.raises(ValueError):
        TokenIssuer("", issuer=TEST_ISSUER)


def test_verify_rejects_non_ascii_digit_subject(tokens):
    now = int(time.time())
    token = jwt.encode(
        {"iss": TEST_ISSUER, "sub": "²", "email": "ann@x.com", "iat": now, "exp": now + 60},
        TEST_SECRET,
        algorithm="HS256",
    )
    with pytest.raises(InvalidToken):
        tokens.verify(token)
