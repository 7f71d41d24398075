from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

import pytest

from user_management.domain.account import AccountStatus
from user_management.domain.contracts import NewAccount
from user_management.errors import ConfigurationError, DuplicateIdentity, NotFound
from user_management.sqlite_repository import sqlite_path_from_url


def _new(email: str = "ann@x.com") -> NewAccount:
    return NewAccount(display_name="Ann", email=email, password_hash="$2b$04$hash")


def test_insert_and_find(store):
    account_id = store.insert(_new())

    by_id = store.find_by_id(account_id)
    by_email = store.find_by_email("ann@x.com")

    assert by_id == by_email
    assert by_id.status is AccountStatus.ACTIVE
    assert by_id.registered_at.tzinfo is not None
    assert by_id.last_login_at is None


def test_find_missing_returns_none(store):
    assert store.find_by_id(1) is None
    assert store.find_by_email("ghost@x.com") is None


def test_email_lookup_is_case_sensitive(store):
    store.insert(_new("Ann@x.com"))
    assert store.find_by_email("ann@x.com") is None


def test_duplicate_email_rejected(store):
    store.insert(_new())
    with pytest.raises(DuplicateIdentity):
        store.insert(_new())


def test_concurrent_inserts_with_same_email_have_one_winner(store):
    def attempt(_: int) -> str:
        try:
            store.insert(_new())
        except DuplicateIdentity:
            return "duplicate"
        return "inserted"

    with ThreadPoolExecutor(max_workers=8) as pool:
        outcomes = list(pool.map(attempt, range(8)))

    assert outcomes.count("inserted") == 1
    assert outcomes.count("duplicate") == 7
    assert len(store.list_all()) == 1


def test_update_status(store):
    account_id = store.insert(_new())

    store.update_status(account_id, AccountStatus.BLOCKED)
    assert store.find_by_id(account_id).status is AccountStatus.BLOCKED

    store.update_status_by_email("ann@x.com", AccountStatus.ACTIVE)
    assert store.find_by_id(account_id).status is AccountStatus.ACTIVE


def test_update_status_missing_raises(store):
    with pytest.raises(NotFound):
        store.update_status(5, AccountStatus.BLOCKED)
    with pytest.raises(NotFound):
        store.update_status_by_email("ghost@x.com", AccountStatus.BLOCKED)


def test_touch_last_login_is_monotonic(store):
    account_id = store.insert(_new())

    first = store.touch_last_login(account_id)
    second = store.touch_last_login(account_id)

    assert second >= first
    assert store.find_by_id(account_id).last_login_at == second


def test_touch_last_login_missing_raises(store):
    with pytest.raises(NotFound):
        store.touch_last_login(99)


def test_delete_many_ignores_missing(store):
    first = store.insert(_new("a@x.com"))
    second = store.insert(_new("b@x.com"))

    assert store.delete_many([first, 404]) == 1
    assert store.delete_many([]) == 0
    assert [account.account_id for account in store.list_all()] == [second]


def test_init_schema_is_idempotent(store):
    store.insert(_new())
    store.init_schema()
    assert store.find_by_email("ann@x.com") is not None


@pytest.mark.parametrize(
    ("url", "path"),
    [
        ("sqlite:///./users.db", "./users.db"),
        ("sqlite:////var/lib/users.db", "/var/lib/users.db"),
        ("data/users.db", "data/users.db"),
    ],
)
def test_sqlite_path_from_url(url, path):
    assert sqlite_path_from_url(url) == path


@pytest.mark.parametrize("url", ["sqlite://", "sqlite:///:memory:", ":memory:"])
def test_sqlite_path_rejects_memory(url):
    with pytest.raises(ConfigurationError):
        sqlite_path_from_url(url)


def test_ids_beyond_64_bits_match_nothing(store):
    account_id = store.insert(_new())
    huge = 2**63

    assert store.find_by_id(huge) is None
    assert store.find_by_id(-(2**63) - 1) is None
    with pytest.raises(NotFound):
        store.update_status(huge, AccountStatus.BLOCKED)
    with pytest.raises(NotFound):
        store.touch_last_login(huge)
    assert store.delete_many([huge, account_id]) == 1
