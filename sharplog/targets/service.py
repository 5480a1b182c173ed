"""
Target service: the user's live target list plus progress increments.

Increments are applied optimistically to the cached list so callers see the
new value immediately. Each increment is a command object that knows how to
undo its own cache change if the store rejects the write.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass, field

from sharplog.core.models import Target
from sharplog.persistence.store import WorkLogStore

logger = logging.getLogger("sharplog.targets")


@dataclass
class TargetProgressCommand:
    """Optimistic +increment_by on one cached target."""
    target_id: str
    increment_by: float
    _snapshot: float | None = field(default=None, init=False, repr=False)

    def apply(self, cache: dict[str, Target]) -> None:
        target = cache.get(self.target_id)
        if target is None:
            return
        self._snapshot = target.current_value
        target.current_value = (target.current_value or 0) + self.increment_by

    def compensate(self, cache: dict[str, Target]) -> None:
        target = cache.get(self.target_id)
        if target is None or self._snapshot is None:
            return
        target.current_value = self._snapshot
        self._snapshot = None

    def commit(self, store: WorkLogStore) -> float:
        return store.increment_target_progress(self.target_id, self.increment_by)


class TargetService:
    """Per-user view over the store's targets."""

    def __init__(self, store: WorkLogStore, user_id: str):
        self.store = store
        self.user_id = user_id
        self._cache: dict[str, Target] | None = None

    def list_active(self, refresh: bool = False) -> list[Target]:
        """Active targets owned by this user, newest first."""
        if self._cache is None or refresh:
            targets = self.store.list_active_targets(self.user_id)
            self._cache = {t.id: t for t in targets}
        return list(self._cache.values())

    def increment_progress(self, target_id: str, increment_by: float) -> float:
        """
        Add increment_by to a target's current value.

        The cached value moves first; if the store write fails the cache is
        restored and the error propagates.
        """
        if self._cache is None:
            self.list_active()
        command = TargetProgressCommand(target_id=target_id, increment_by=increment_by)
        command.apply(self._cache)
        try:
            new_value = command.commit(self.store)
        except Exception:
            command.compensate(self._cache)
            raise
        cached = self._cache.get(target_id)
        if cached is not None:
            cached.current_value = new_value
        logger.info(f"Target {target_id} progress +{increment_by:g} -> {new_value:g}")
        return new_value
