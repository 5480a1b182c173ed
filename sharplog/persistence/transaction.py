"""
Persistence Transaction: turns an accepted summary into stored rows.

The store has no multi-table transaction, so the steps are ordered and each
one has its own failure policy:

  1. encrypt the raw conversation        fatal, nothing written yet
  2. insert the work entry               fatal
  3. insert target mapping rows          logged, entry stays
  4. increment target progress           logged per target
"""

from __future__ import annotations
import json
import logging
import datetime
from typing import Protocol

from sharplog.core.errors import EncryptionError, PersistenceError
from sharplog.core.models import (
    Turn, SummaryDraft, WorkEntryRecord, WorkEntryTargetRow, AcceptResult,
)
from sharplog.persistence.store import WorkLogStore
from sharplog.targets.service import TargetService
from sharplog.targets.validator import TargetMappingValidator

logger = logging.getLogger("sharplog.persistence")


class Encryptor(Protocol):
    def encrypt(self, plaintext: str) -> str: ...


def serialize_conversation(messages: list[Turn]) -> str:
    """Full raw conversation as JSON: role, content and ISO timestamp per message."""
    return json.dumps([
        {
            "role": m.role,
            "content": m.text,
            "timestamp": datetime.datetime.fromtimestamp(
                m.timestamp, tz=datetime.timezone.utc
            ).isoformat(),
        }
        for m in messages
    ])


class PersistenceTransaction:
    """Writes one accepted conversation to the store."""

    def __init__(
        self,
        store: WorkLogStore,
        encryptor: Encryptor,
        targets: TargetService,
        validator: TargetMappingValidator | None = None,
    ):
        self.store = store
        self.encryptor = encryptor
        self.targets = targets
        self.validator = validator or TargetMappingValidator()

    def commit(self, user_id: str, messages: list[Turn], draft: SummaryDraft) -> AcceptResult:
        """
        Persist the draft. Raises PersistenceError if the entry itself could
        not be saved; everything after that point only logs.
        """
        # Step 1: encrypt before touching the database
        try:
            encrypted_original = self.encryptor.encrypt(serialize_conversation(messages))
        except EncryptionError:
            logger.error(f"Encryption failed for user {user_id}, aborting save")
            raise
        except Exception as e:
            logger.error(f"Encryption failed for user {user_id}, aborting save: {e}")
            raise EncryptionError(f"Could not encrypt conversation: {e}") from e

        # Step 2: work entry, linked only to targets that are still live
        try:
            live_targets = self.targets.list_active(refresh=True)
        except Exception as e:
            logger.error(f"Could not load targets for user {user_id}: {e}")
            raise PersistenceError(f"Failed to load targets: {e}") from e
        mappings = self.validator.validate(draft.target_mappings, live_targets, user_id=user_id)

        record = WorkEntryRecord(
            user_id=user_id,
            redacted_summary=draft.redacted_summary,
            encrypted_original=encrypted_original,
            skills=list(draft.skills),
            achievements=list(draft.achievements),
            metrics=dict(draft.metrics),
            category=draft.category,
            target_ids=[m.target_id for m in mappings],
        )
        try:
            self.store.insert_work_entry(record)
        except Exception as e:
            logger.error(f"Work entry insert failed for user {user_id}: {e}")
            raise PersistenceError(f"Failed to save work entry: {e}") from e

        logger.info(f"Saved work entry {record.id} ({len(mappings)} target link(s))")
        result = AcceptResult(work_entry=record)

        if not mappings:
            return result

        # Step 3: link rows
        rows = [
            WorkEntryTargetRow(
                work_entry_id=record.id,
                target_id=m.target_id,
                contribution_value=m.contribution_value,
                contribution_note=m.contribution_note,
                smart_data=m.smart.to_dict() if m.smart else None,
            )
            for m in mappings
        ]
        try:
            self.store.insert_target_mappings(rows)
        except Exception as e:
            logger.error(f"Saving target mappings for entry {record.id} failed: {e}")
            result.mappings_saved = False

        # Step 4: progress, one independent call per target
        for m in mappings:
            if m.contribution_value is None or m.contribution_value <= 0:
                continue
            try:
                self.targets.increment_progress(m.target_id, m.contribution_value)
            except Exception as e:
                logger.error(f"Progress update for target {m.target_id} failed: {e}")
                result.failed_progress_targets.append(m.target_id)

        return result
