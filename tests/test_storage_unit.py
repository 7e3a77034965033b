import json
from datetime import datetime, timezone
from pathlib import Path

import pytest

from accounts.checkout import CheckoutCancelled, CheckoutCompleted, apply_checkout
from accounts.models import SubscriptionPlan
from accounts.storage import AccountError, AccountStore, hash_password


def test_register_and_find_is_case_insensitive(store: AccountStore) -> None:
    record = store.register_account("Ada Lovelace", "Ada@Example.com", "s3cret")

    assert record.subscription_plan is SubscriptionPlan.NONE
    assert record.free_uses_consumed == 0
    assert record.credential_digest == hash_password("s3cret")
    assert len(record.credential_digest) == 64

    found = store.find_by_email("  ada@EXAMPLE.com ")
    assert found == record
    assert store.find_by_email("nobody@example.com") is None


def test_register_rejects_duplicates_and_blank_fields(store: AccountStore) -> None:
    store.register_account("Ada", "ada@example.com", "pw")
    with pytest.raises(AccountError, match="already exists"):
        store.register_account("Other", "ADA@example.com", "pw2")
    with pytest.raises(AccountError, match="required"):
        store.register_account("  ", "b@example.com", "pw")


def test_authenticate(store: AccountStore) -> None:
    store.register_account("Ada", "ada@example.com", "pw")
    assert store.authenticate("ADA@example.com", "pw").name == "Ada"
    with pytest.raises(AccountError, match="Incorrect password"):
        store.authenticate("ada@example.com", "wrong")
    with pytest.raises(AccountError, match="not found"):
        store.authenticate("who@example.com", "pw")


def test_update_builds_on_committed_record(store: AccountStore) -> None:
    store.register_account("Ada", "ada@example.com", "pw")

    def _bump(r):
        r.free_uses_consumed += 1
        return r

    store.update("ada@example.com", _bump)
    updated = store.update("ADA@example.com", _bump)
    assert updated.free_uses_consumed == 2
    assert store.find_by_email("ada@example.com").free_uses_consumed == 2

    with pytest.raises(KeyError):
        store.update("missing@example.com", _bump)


def test_persisted_shape(store: AccountStore) -> None:
    store.register_account("Ada", "Ada@Example.com", "pw")
    content = json.loads(Path(store.path).read_text(encoding="utf-8"))
    assert list(content["accounts"]) == ["ada@example.com"]
    assert content["accounts"]["ada@example.com"]["email"] == "Ada@Example.com"
    assert content["accounts"]["ada@example.com"]["freeUsesConsumed"] == 0


def test_load_db_handles_invalid_json(tmp_path: Path) -> None:
    data_file = tmp_path / "accounts.json"
    data_file.write_text("{not-json", encoding="utf-8")
    store = AccountStore(str(data_file))
    assert store.find_by_email("ada@example.com") is None
    assert store._load_db() == {"accounts": {}}


def test_checkout_completed_sets_subscription(store: AccountStore) -> None:
    store.register_account("Ada", "ada@example.com", "pw")
    now = datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)

    record = apply_checkout(store, "ADA@example.com", SubscriptionPlan.ANNUAL,
                            CheckoutCompleted("ref_123"), now)

    assert record.subscription_plan is SubscriptionPlan.ANNUAL
    assert record.subscription_started_at == now
    assert record.subscription_reference == "ref_123"
    assert store.find_by_email("ada@example.com") == record


def test_checkout_cancelled_changes_nothing(store: AccountStore) -> None:
    before = store.register_account("Ada", "ada@example.com", "pw")
    after = apply_checkout(store, "ada@example.com", SubscriptionPlan.MONTHLY,
                           CheckoutCancelled())
    assert after == before
    assert after.subscription_started_at is None
