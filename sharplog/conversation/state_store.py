"""
Persisted conversation state, scoped per user and conversation.

Each scope maps to its own JSON file, so one user's draft can never be
loaded by another. State is written after every mutation and removed on
reset or after a successful save.
"""

from __future__ import annotations
import json
import hashlib
import logging
import os
from dataclasses import dataclass
from pathlib import Path

from sharplog.core.models import ConversationState

logger = logging.getLogger("sharplog.state")


@dataclass(frozen=True)
class StateScope:
    """Key space for one persisted conversation."""
    user_id: str
    conversation_id: str = "log"

    def __post_init__(self):
        if not self.user_id:
            raise ValueError("StateScope requires a user_id")

    @property
    def key(self) -> str:
        # Hashed so arbitrary ids are safe as file names
        digest = hashlib.sha256(f"{self.user_id}\x00{self.conversation_id}".encode()).hexdigest()
        return digest[:32]


class ConversationStateStore:
    """JSON-file persistence for a single scoped ConversationState."""

    def __init__(self, base_dir: str | Path, scope: StateScope):
        self.base_dir = Path(base_dir)
        self.scope = scope
        self.base_dir.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        return self.base_dir / f"{self.scope.key}.json"

    def load(self) -> ConversationState | None:
        """Return the saved state, or None if there is none or it is unreadable."""
        if not self.path.exists():
            return None
        try:
            with open(self.path) as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to read conversation state {self.path}: {e}")
            return None

        if not isinstance(data, dict):
            logger.error(f"Ignoring conversation state {self.path}: not a JSON object")
            return None
        if data.get("user_id") != self.scope.user_id:
            logger.warning(f"Ignoring conversation state {self.path}: scope mismatch")
            return None
        try:
            return ConversationState.from_dict(data.get("state", {}))
        except (KeyError, ValueError, TypeError, AttributeError) as e:
            logger.error(f"Failed to restore conversation state {self.path}: {e}")
            return None

    def save(self, state: ConversationState) -> None:
        data = {
            "user_id": self.scope.user_id,
            "conversation_id": self.scope.conversation_id,
            "state": state.to_dict(),
        }
        tmp_path = self.path.with_suffix(".tmp")
        with open(tmp_path, "w") as f:
            json.dump(data, f, indent=2)
        os.replace(tmp_path, self.path)

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)
