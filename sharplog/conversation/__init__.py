"""
SharpLog Conversation — turn-taking, summarization and resumable state.
"""

from .session import ConversationSession, build_session
from .state_store import ConversationStateStore, StateScope
from .summarize import SummarizationStage
from .turn import TurnExecutor

__all__ = [
    "ConversationSession",
    "build_session",
    "ConversationStateStore",
    "StateScope",
    "SummarizationStage",
    "TurnExecutor",
]
