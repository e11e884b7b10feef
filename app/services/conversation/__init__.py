"""
Per-user conversation plumbing: sessions, human-takeover pauses, duplicate
suppression, routing and periodic cleanup.
"""

from app.services.conversation.cleanup import CleanupScheduler
from app.services.conversation.dispatcher import DispatchOutcome, MessageDispatcher
from app.services.conversation.inflight import InFlightTracker
from app.services.conversation.pause_store import PauseStore
from app.services.conversation.session_store import (
    ConversationStep,
    Session,
    SessionStore,
)

__all__ = [
    "CleanupScheduler",
    "ConversationStep",
    "DispatchOutcome",
    "InFlightTracker",
    "MessageDispatcher",
    "PauseStore",
    "Session",
    "SessionStore",
]
