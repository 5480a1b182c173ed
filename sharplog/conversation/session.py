"""
Conversation Session — the turn-taking state machine.

    idle → in_progress → summarizing → review → completed → (idle)

Owns the message history, exchange count, merged extraction and summary
draft for one user's logging conversation. Every mutation is written to the
scoped state store so a restart resumes mid-conversation. Collaborators
(turn executor, summarizer, persistence) are injected so tests can swap in
deterministic fakes.
"""

from __future__ import annotations
import logging
import threading
from contextlib import contextmanager
from typing import Iterator, Protocol

from sharplog.config import SharpLogConfig, ConversationConfig
from sharplog.core.errors import ConversationBusyError, ConversationStateError
from sharplog.core.extraction import merge_extracted_data
from sharplog.core.llm import TextGenerator, build_llm_client
from sharplog.core.models import (
    AcceptResult, ConversationState, ConversationStatus, ExtractedData, Role,
    SummaryDraft, Target, Turn, TurnResult, UserProfile,
)
from sharplog.core.redaction import redact_pii
from sharplog.persistence.encryption import ConversationEncryptor
from sharplog.persistence.store import WorkLogStore
from sharplog.persistence.transaction import PersistenceTransaction
from sharplog.targets.service import TargetService
from sharplog.targets.validator import TargetMappingValidator
from .state_store import ConversationStateStore, StateScope
from .summarize import SummarizationStage
from .turn import TurnExecutor

logger = logging.getLogger("sharplog.session")

Status = ConversationStatus


class TurnRunner(Protocol):
    def run_turn(
        self, messages: list[Turn], exchange_count: int, industry: str, targets: list[Target] | None = None,
    ) -> TurnResult: ...


class Summarizer(Protocol):
    def summarize(
        self,
        messages: list[Turn],
        extracted: ExtractedData,
        industry: str,
        employment_status: str | None = None,
        targets: list[Target] | None = None,
        user_id: str | None = None,
    ) -> SummaryDraft: ...


class ConversationSession:
    """One user's work-logging conversation."""

    def __init__(
        self,
        profile: UserProfile,
        turn_executor: TurnRunner,
        summarizer: Summarizer,
        state_store: ConversationStateStore,
        targets: TargetService,
        transaction: PersistenceTransaction,
        config: ConversationConfig | None = None,
    ):
        if state_store.scope.user_id != profile.user_id:
            raise ValueError("State store scope does not belong to this user")

        self.profile = profile
        self.turn_executor = turn_executor
        self.summarizer = summarizer
        self.state_store = state_store
        self.targets = targets
        self.transaction = transaction
        self.config = config or ConversationConfig()

        self._lock = threading.Lock()
        self._reset_timer: threading.Timer | None = None
        self.state = self._restore()

    # --- Read-only views ---

    @property
    def user_id(self) -> str:
        return self.profile.user_id

    @property
    def status(self) -> ConversationStatus:
        return self.state.status

    @property
    def messages(self) -> list[Turn]:
        return list(self.state.messages)

    @property
    def exchange_count(self) -> int:
        return self.state.exchange_count

    @property
    def extracted_data(self) -> ExtractedData:
        return self.state.extracted_data

    @property
    def summary(self) -> SummaryDraft | None:
        return self.state.summary_draft

    @property
    def max_exchanges(self) -> int:
        return self.config.max_exchanges

    @property
    def is_loading(self) -> bool:
        return self._lock.locked()

    # --- Transitions ---

    def send_message(self, text: str) -> TurnResult:
        """
        Record a user message and get the assistant's reply.

        Moves on to summarization by itself when the model says the user is
        done or the turn budget is used up. If the turn call fails, the user
        message is withdrawn and the status is left as it was.
        """
        text = (text or "").strip()
        if not text:
            raise ValueError("Message must not be empty")

        with self._busy():
            self._require({Status.IDLE, Status.IN_PROGRESS}, "send a message")
            if self.state.exchange_count >= self.max_exchanges:
                raise ConversationStateError(
                    f"All {self.max_exchanges} exchanges used; skip to the summary or undo"
                )

            previous_status = self.state.status
            self.state.messages.append(Turn(role=Role.USER.value, text=text))
            self.state.status = Status.IN_PROGRESS
            self._save()

            try:
                result = self.turn_executor.run_turn(
                    messages=list(self.state.messages),
                    exchange_count=self.state.exchange_count,
                    industry=self.profile.industry,
                    targets=self._live_targets(),
                )
            except Exception as e:
                logger.warning(f"Turn failed for user {self.user_id}: {e}")
                self.state.messages.pop()
                self.state.status = previous_status
                self._save()
                raise

            self.state.messages.append(Turn(role=Role.ASSISTANT.value, text=result.message))
            self.state.exchange_count += 1
            self.state.extracted_data = merge_extracted_data(self.state.extracted_data, result.extracted_data)
            self._save()

            logger.info(
                f"Exchange {self.state.exchange_count}/{self.max_exchanges} for user {self.user_id} "
                f"({len(self.state.extracted_data.skills)} skills, "
                f"{len(self.state.extracted_data.achievements)} achievements so far)"
            )

            if result.should_summarize or self.state.exchange_count >= self.max_exchanges:
                self._summarize()

            return result

    def skip_to_summary(self) -> SummaryDraft:
        """Summarize now instead of waiting for the turn budget."""
        with self._busy():
            if not self.state.messages:
                raise ConversationStateError("Nothing to summarize yet")
            self._require({Status.IN_PROGRESS}, "summarize")
            return self._summarize()

    def undo_last_exchange(self) -> int:
        """
        Drop the latest assistant reply and the user message before it.

        Extraction merged from that exchange is kept. Returns the number of
        messages removed.
        """
        with self._busy():
            self._require({Status.IDLE, Status.IN_PROGRESS, Status.REVIEW}, "undo")
            messages = self.state.messages
            removed = 0
            if messages and messages[-1].role == Role.ASSISTANT.value:
                messages.pop()
                removed += 1
            if messages and messages[-1].role == Role.USER.value:
                messages.pop()
                removed += 1

            self.state.exchange_count = max(0, self.state.exchange_count - 1)
            self.state.summary_draft = None
            self.state.status = Status.IN_PROGRESS if messages else Status.IDLE
            self._save()
            logger.info(f"Undid last exchange for user {self.user_id} ({removed} message(s) removed)")
            return removed

    def update_summary(self, text: str) -> SummaryDraft:
        """Replace the draft's summary text with the user's edit."""
        with self._busy():
            self._require({Status.REVIEW}, "edit the summary")
            cleaned = redact_pii((text or "").strip())
            if not cleaned:
                raise ValueError("Summary must not be empty")
            self.state.summary_draft.redacted_summary = cleaned
            self._save()
            return self.state.summary_draft

    def remove_target_mapping(self, target_id: str) -> bool:
        """Unlink a proposed target from the draft."""
        with self._busy():
            self._require({Status.REVIEW}, "edit target links")
            draft = self.state.summary_draft
            kept = [m for m in draft.target_mappings if m.target_id != target_id]
            changed = len(kept) != len(draft.target_mappings)
            draft.target_mappings = kept
            self._save()
            return changed

    def accept_summary(self) -> AcceptResult:
        """
        Persist the reviewed draft.

        On failure the conversation stays in review so the user can try
        again. On success it is marked completed and cleared after the
        configured delay.
        """
        with self._busy():
            self._require({Status.REVIEW}, "accept the summary")
            result = self.transaction.commit(
                user_id=self.user_id,
                messages=list(self.state.messages),
                draft=self.state.summary_draft,
            )
            self.state.status = Status.COMPLETED
            self._save()
            if not result.fully_saved:
                logger.warning(
                    f"Work entry {result.work_entry.id} saved with partial failures "
                    f"(mappings_saved={result.mappings_saved}, "
                    f"failed_progress={result.failed_progress_targets})"
                )

        self._schedule_reset()
        return result

    def reset_conversation(self) -> None:
        """Forget everything, including the persisted copy. Allowed from any state."""
        if self._reset_timer is not None:
            self._reset_timer.cancel()
            self._reset_timer = None
        self.state = ConversationState()
        self.state_store.clear()
        logger.info(f"Conversation reset for user {self.user_id}")

    # --- Internals ---

    def _summarize(self) -> SummaryDraft:
        self.state.status = Status.SUMMARIZING
        self._save()
        try:
            draft = self.summarizer.summarize(
                messages=list(self.state.messages),
                extracted=self.state.extracted_data,
                industry=self.profile.industry,
                employment_status=self.profile.employment_status,
                targets=self._live_targets(),
                user_id=self.user_id,
            )
        except Exception as e:
            logger.warning(f"Summary failed for user {self.user_id}: {e}")
            self.state.status = Status.IN_PROGRESS
            self._save()
            raise

        self.state.summary_draft = draft
        self.state.status = Status.REVIEW
        self._save()
        return draft

    def _live_targets(self) -> list[Target]:
        # Targets are context only; a lookup failure must not cost the user a turn
        try:
            return self.targets.list_active(refresh=True)
        except Exception as e:
            logger.warning(f"Could not load targets for user {self.user_id}: {e}")
            return []

    def _schedule_reset(self) -> None:
        delay = self.config.reset_delay_seconds
        if delay <= 0:
            self._reset_if_completed()
            return
        self._reset_timer = threading.Timer(delay, self._reset_if_completed)
        self._reset_timer.daemon = True
        self._reset_timer.start()

    def _reset_if_completed(self) -> None:
        if self.state.status == Status.COMPLETED:
            self.reset_conversation()

    def _restore(self) -> ConversationState:
        state = self.state_store.load()
        if state is None:
            return ConversationState()
        if state.status == Status.SUMMARIZING:
            # The summary call never finished; let the user ask again
            state.status = Status.IN_PROGRESS
        elif state.status == Status.COMPLETED:
            # Already persisted before the restart
            self.state_store.clear()
            return ConversationState()
        logger.info(
            f"Resumed conversation for user {self.user_id}: {state.status.value}, "
            f"{len(state.messages)} messages"
        )
        return state

    def _save(self) -> None:
        self.state_store.save(self.state)

    def _require(self, allowed: set[ConversationStatus], action: str) -> None:
        if self.state.status not in allowed:
            raise ConversationStateError(f"Cannot {action} while {self.state.status.value}")

    @contextmanager
    def _busy(self) -> Iterator[None]:
        if not self._lock.acquire(blocking=False):
            raise ConversationBusyError("Another request is still in progress")
        try:
            yield
        finally:
            self._lock.release()


def build_session(
    config: SharpLogConfig,
    profile: UserProfile,
    llm: TextGenerator | None = None,
    store: WorkLogStore | None = None,
    conversation_id: str = "log",
    remote: TurnRunner | None = None,
) -> ConversationSession:
    """
    Wire a session. AI calls run in-process through llm, or through remote
    (anything with run_turn and summarize, e.g. an APIClient) when given.
    """
    store = store or WorkLogStore(config.storage.database_path)
    validator = TargetMappingValidator()
    targets = TargetService(store, profile.user_id)

    if remote is not None:
        turn_executor, summarizer = remote, remote
    else:
        llm = llm or build_llm_client(config.llm)
        turn_executor = TurnExecutor(llm, config.llm, config.conversation)
        summarizer = SummarizationStage(llm, config.llm, validator)

    return ConversationSession(
        profile=profile,
        turn_executor=turn_executor,
        summarizer=summarizer,
        state_store=ConversationStateStore(
            config.storage.state_dir, StateScope(profile.user_id, conversation_id)
        ),
        targets=targets,
        transaction=PersistenceTransaction(
            store=store,
            encryptor=ConversationEncryptor.for_user(config.storage.encryption_secret, profile.user_id),
            targets=targets,
            validator=validator,
        ),
        config=config.conversation,
    )
