from datetime import datetime, timezone

import pytest

from app.db.sql_connector import create_engine_for_url
from app.db.wallet_store import SqlWalletStore
from app.services.crawl.base import CredentialRecord
from app.services.errors import PersistenceError, ValidationError


T1 = datetime(2024, 11, 1, 12, 0, 0, tzinfo=timezone.utc)
T2 = datetime(2024, 11, 2, 8, 30, 0, tzinfo=timezone.utc)
WALLET = "https://www.credential.net/profile/abc/wallet"


def _naive(dt):
    return dt.replace(tzinfo=None)


@pytest.fixture
def store(tmp_path):
    s = SqlWalletStore(create_engine_for_url(f"sqlite:///{tmp_path / 'wallet.db'}"))
    s.init_schema()
    yield s
    s.engine.dispose()


def test_profile_insert_sets_defaults(store):
    row = store.upsert_profile("u1", WALLET, auto_sync=True, synced_at=T1)
    assert row["user_id"] == "u1"
    assert row["wallet_url"] == WALLET
    assert row["platform"] == "accredible"
    assert row["auto_sync"] is True
    assert row["status"] == "active"
    assert _naive(row["last_synced_at"]) == _naive(T1)


def test_profile_upsert_updates_in_place(store):
    first = store.upsert_profile("u1", WALLET, auto_sync=True, synced_at=T1)
    second = store.upsert_profile("u1", WALLET, auto_sync=False, synced_at=T2)
    assert second["id"] == first["id"]
    assert second["user_id"] == "u1"
    assert second["wallet_url"] == WALLET
    assert second["auto_sync"] is False
    assert _naive(second["last_synced_at"]) == _naive(T2)
    assert store.get_profile("u1")["id"] == first["id"]


def test_credential_insert_or_ignore_counts(store):
    rec = CredentialRecord("3fa85f64-5717-4562-b3fc-2c963f66afa6", "https://credential.net/3fa85f64-5717-4562-b3fc-2c963f66afa6", "credential.net")
    assert store.insert_credential("u1", rec, created_at=T1) == 1
    assert store.insert_credential("u1", rec, created_at=T2) == 0
    # Same uuid for a different user is a separate row
    assert store.insert_credential("u2", rec, created_at=T1) == 1
    assert len(store.list_credentials("u1")) == 1


def test_credential_first_write_wins(store):
    uuid = "3fa85f64-5717-4562-b3fc-2c963f66afa6"
    store.insert_credential("u1", CredentialRecord(uuid, f"https://credential.net/{uuid}", "credential.net"), created_at=T1)
    store.insert_credential(
        "u1", CredentialRecord(uuid, f"https://badges.accredible.com/{uuid}", "badges.accredible.com"), created_at=T2
    )
    rows = store.list_credentials("u1")
    assert len(rows) == 1
    assert rows[0]["credential_url"] == f"https://credential.net/{uuid}"
    assert rows[0]["issuer_domain"] == "credential.net"
    assert _naive(rows[0]["created_at"]) == _naive(T1)


def test_credential_uuid_must_be_canonical(store):
    with pytest.raises(ValidationError):
        store.insert_credential("u1", CredentialRecord("not-a-uuid", "https://credential.net/x", "credential.net"), created_at=T1)
    assert store.list_credentials("u1") == []


def test_set_auto_sync_and_missing_profile(store):
    assert store.get_profile("nobody") is None
    store.upsert_profile("u1", WALLET, auto_sync=False, synced_at=T1)
    assert store.set_auto_sync("u1", True) == 1
    assert store.get_profile("u1")["auto_sync"] is True
    assert store.set_auto_sync("nobody", True) == 0


def test_store_failure_is_persistence_error(tmp_path):
    broken = SqlWalletStore(create_engine_for_url(f"sqlite:///{tmp_path / 'empty.db'}"))
    rec = CredentialRecord("3fa85f64-5717-4562-b3fc-2c963f66afa6", "https://credential.net/x", "credential.net")
    with pytest.raises(PersistenceError):
        broken.insert_credential("u1", rec, created_at=T1)
    with pytest.raises(PersistenceError):
        broken.upsert_profile("u1", WALLET, auto_sync=False, synced_at=T1)
