"""
Tests for encryption, the SQLite store and the accept-time persistence
transaction, including its partial-failure policy.
"""

import base64
import json
import sqlite3
import threading
from unittest.mock import MagicMock, patch

import pytest

from conftest import TEST_ITERATIONS
from sharplog.core.errors import EncryptionError, PersistenceError
from sharplog.core.models import SummaryDraft, TargetMapping, Turn, WorkEntryRecord, WorkEntryTargetRow
from sharplog.persistence.encryption import ConversationEncryptor, SALT_LENGTH, IV_LENGTH, TAG_LENGTH
from sharplog.persistence.transaction import PersistenceTransaction, serialize_conversation
from sharplog.targets.service import TargetProgressCommand, TargetService

MESSAGES = [
    Turn(role="user", text="Shipped CSV export for the finance team", timestamp=1_700_000_000.0),
    Turn(role="assistant", text="Nice! How many users?", timestamp=1_700_000_005.0),
    Turn(role="user", text="About 40, email jane@acme.io for details", timestamp=1_700_000_030.0),
    Turn(role="assistant", text="Great, ready to summarize.", timestamp=1_700_000_031.0),
]


def make_draft(*mappings):
    return SummaryDraft(
        redacted_summary="Shipped CSV export used by about 40 people.",
        skills=["Python", "CSV"],
        achievements=["Shipped CSV export"],
        metrics={"users": 40},
        category="Development",
        target_mappings=list(mappings),
    )


@pytest.fixture
def service(store):
    return TargetService(store, "alice")


@pytest.fixture
def transaction(store, encryptor, service):
    return PersistenceTransaction(store=store, encryptor=encryptor, targets=service)


# --- Encryption ---

def test_encrypt_round_trip(encryptor):
    token = encryptor.encrypt("hello, world")
    assert token != "hello, world"
    assert encryptor.decrypt(token) == "hello, world"


def test_payload_layout(encryptor):
    plaintext = "twelve bytes"
    raw = base64.b64decode(encryptor.encrypt(plaintext))
    assert len(raw) == SALT_LENGTH + IV_LENGTH + TAG_LENGTH + len(plaintext.encode())


def test_fresh_salt_and_iv_each_time(encryptor):
    assert encryptor.encrypt("same") != encryptor.encrypt("same")


def test_other_user_cannot_decrypt(encryptor):
    token = encryptor.encrypt("private")
    bob = ConversationEncryptor.for_user("test-secret", "bob", iterations=TEST_ITERATIONS)
    with pytest.raises(EncryptionError):
        bob.decrypt(token)


def test_tampered_payload_rejected(encryptor):
    raw = bytearray(base64.b64decode(encryptor.encrypt("private")))
    raw[-1] ^= 0x01
    with pytest.raises(EncryptionError):
        encryptor.decrypt(base64.b64encode(bytes(raw)).decode())


def test_empty_key_material_rejected():
    with pytest.raises(ValueError):
        ConversationEncryptor("")


# --- Store ---

def test_active_targets_are_per_user(store, targets):
    alice = {t.name for t in store.list_active_targets("alice")}
    assert alice == {"Ship 10 features", "Review 50 PRs"}
    assert [t.name for t in store.list_active_targets("bob")] == ["Close 5 deals"]


def test_increment_progress(store, targets):
    target_id = targets["features"].id
    assert store.increment_target_progress(target_id, 2) == 2
    assert store.increment_target_progress(target_id, 1.5) == 3.5
    assert store.get_target(target_id).current_value == 3.5


def test_concurrent_increments_are_not_lost(store, targets):
    target_id = targets["features"].id
    errors = []

    def bump():
        try:
            for _ in range(50):
                store.increment_target_progress(target_id, 1)
        except Exception as e:
            errors.append(e)

    workers = [threading.Thread(target=bump) for _ in range(8)]
    for w in workers:
        w.start()
    for w in workers:
        w.join()

    assert errors == []
    assert store.get_target(target_id).current_value == 400


def test_increment_unknown_target(store):
    with pytest.raises(KeyError):
        store.increment_target_progress("nope", 1)


def test_work_entry_round_trip(store):
    record = WorkEntryRecord(
        user_id="alice",
        redacted_summary="Did things",
        encrypted_original="cipher",
        skills=["Go"],
        achievements=["Thing"],
        metrics={"n": 3},
        category="Development",
        target_ids=["t1"],
    )
    store.insert_work_entry(record)
    loaded = store.get_work_entry(record.id)
    assert loaded == record
    assert [e.id for e in store.list_work_entries("alice")] == [record.id]
    assert store.list_work_entries("bob") == []

    store.insert_target_mappings([WorkEntryTargetRow(record.id, "t1", 2.0, "note", {"specific": "x"})])
    rows = store.list_target_mappings(record.id)
    assert rows[0].smart_data == {"specific": "x"}

    assert store.delete_work_entry(record.id)
    assert store.get_work_entry(record.id) is None
    assert store.list_target_mappings(record.id) == []


# --- Target service ---

def test_progress_command_compensates(targets):
    cache = {targets["features"].id: targets["features"]}
    command = TargetProgressCommand(targets["features"].id, 3)
    command.apply(cache)
    assert cache[targets["features"].id].current_value == 3
    command.compensate(cache)
    assert cache[targets["features"].id].current_value == 0


def test_service_rolls_back_cache_on_store_failure(store, targets, service):
    target_id = targets["features"].id
    service.list_active()
    with patch.object(store, "increment_target_progress", side_effect=sqlite3.OperationalError("locked")):
        with pytest.raises(sqlite3.OperationalError):
            service.increment_progress(target_id, 4)
    cached = {t.id: t for t in service.list_active()}
    assert cached[target_id].current_value == 0


def test_service_updates_cache(store, targets, service):
    target_id = targets["reviews"].id
    assert service.increment_progress(target_id, 5) == 5
    assert {t.id: t for t in service.list_active()}[target_id].current_value == 5
    assert store.get_target(target_id).current_value == 5


# --- Transaction ---

def test_serialize_conversation_has_every_message():
    payload = json.loads(serialize_conversation(MESSAGES))
    assert [m["role"] for m in payload] == ["user", "assistant", "user", "assistant"]
    assert payload[2]["content"] == "About 40, email jane@acme.io for details"
    assert payload[0]["timestamp"] == "2023-11-14T22:13:20+00:00"


def test_commit_happy_path(store, targets, transaction, encryptor):
    features, reviews = targets["features"], targets["reviews"]
    draft = make_draft(
        TargetMapping(features.id, contribution_value=1, contribution_note="CSV export"),
        TargetMapping(reviews.id),
    )
    result = transaction.commit("alice", MESSAGES, draft)

    assert result.fully_saved
    entry = store.get_work_entry(result.work_entry.id)
    assert entry.redacted_summary == draft.redacted_summary
    assert entry.target_ids == [features.id, reviews.id]
    assert entry.category == "Development"

    # Raw conversation is only stored encrypted
    assert "jane@acme.io" not in entry.encrypted_original
    original = json.loads(encryptor.decrypt(entry.encrypted_original))
    assert original[2]["content"] == "About 40, email jane@acme.io for details"

    rows = store.list_target_mappings(entry.id)
    assert [(r.target_id, r.contribution_value) for r in rows] == [(features.id, 1), (reviews.id, None)]

    # Only positive contributions move progress
    assert store.get_target(features.id).current_value == 1
    assert store.get_target(reviews.id).current_value == 0


def test_encryption_failure_writes_nothing(store, targets, service):
    broken = MagicMock()
    broken.encrypt.side_effect = RuntimeError("no key")
    transaction = PersistenceTransaction(store=store, encryptor=broken, targets=service)

    with pytest.raises(EncryptionError):
        transaction.commit("alice", MESSAGES, make_draft(TargetMapping(targets["features"].id, contribution_value=1)))

    assert store.list_work_entries("alice") == []
    assert store.get_target(targets["features"].id).current_value == 0


def test_encryption_error_is_a_persistence_error():
    assert issubclass(EncryptionError, PersistenceError)


def test_entry_insert_failure_is_fatal(store, transaction):
    with patch.object(store, "insert_work_entry", side_effect=sqlite3.OperationalError("disk full")):
        with pytest.raises(PersistenceError):
            transaction.commit("alice", MESSAGES, make_draft())


def test_target_lookup_failure_is_fatal(store, transaction):
    with patch.object(store, "list_active_targets", side_effect=sqlite3.OperationalError("locked")):
        with pytest.raises(PersistenceError):
            transaction.commit("alice", MESSAGES, make_draft())
    assert store.list_work_entries("alice") == []


def test_mapping_row_failure_keeps_entry(store, targets, transaction):
    features = targets["features"]
    with patch.object(store, "insert_target_mappings", side_effect=sqlite3.OperationalError("locked")):
        result = transaction.commit("alice", MESSAGES, make_draft(TargetMapping(features.id, contribution_value=2)))

    assert result.mappings_saved is False
    assert not result.fully_saved
    assert store.get_work_entry(result.work_entry.id) is not None
    # Progress is independent of the link rows
    assert store.get_target(features.id).current_value == 2


def test_one_progress_failure_does_not_block_others(store, targets, transaction):
    features, reviews = targets["features"], targets["reviews"]
    real_increment = store.increment_target_progress

    def flaky(target_id, increment_by):
        if target_id == features.id:
            raise sqlite3.OperationalError("locked")
        return real_increment(target_id, increment_by)

    draft = make_draft(
        TargetMapping(features.id, contribution_value=1),
        TargetMapping(reviews.id, contribution_value=3),
    )
    with patch.object(store, "increment_target_progress", side_effect=flaky):
        result = transaction.commit("alice", MESSAGES, draft)

    assert result.failed_progress_targets == [features.id]
    assert result.mappings_saved
    assert store.get_target(features.id).current_value == 0
    assert store.get_target(reviews.id).current_value == 3


def test_stale_mappings_dropped_at_commit(store, targets, transaction):
    draft = make_draft(
        TargetMapping(targets["retired"].id, contribution_value=1),
        TargetMapping(targets["bobs"].id, contribution_value=1),
    )
    result = transaction.commit("alice", MESSAGES, draft)

    assert result.work_entry.target_ids == []
    assert store.list_target_mappings(result.work_entry.id) == []
    assert store.get_target(targets["bobs"].id).current_value == 0
