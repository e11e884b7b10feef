import asyncio
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, Field

from app.config import settings
from app.logging import setup_logger
from app.utils import utcnow


class ConversationStep(str, Enum):
    START = "start"
    AWAITING_CATEGORY = "awaiting_category"
    AWAITING_SUBTYPE = "awaiting_subtype"
    AWAITING_HAS_DESIGN = "awaiting_has_design"
    AWAITING_MEETING_KIND = "awaiting_meeting_kind"
    AWAITING_PHOTO = "awaiting_photo"
    AWAITING_SCHEDULE_CHOICE = "awaiting_schedule_choice"
    AWAITING_DATETIME = "awaiting_datetime"
    FINALIZE = "finalize"


class HistoryEntry(BaseModel):
    role: str  # "user" or "bot"
    text: str
    timestamp: datetime = Field(default_factory=utcnow)


class Session(BaseModel):
    """In-progress conversation for one WhatsApp user"""

    user_id: str
    display_name: str = "Cliente"
    step: ConversationStep = ConversationStep.START
    fields: Dict[str, Any] = Field(default_factory=dict)
    started_at: datetime = Field(default_factory=utcnow)
    history: List[HistoryEntry] = Field(default_factory=list)

    # AI mode only
    intent: Optional[str] = None
    intake_saved: bool = False


class SessionStore:
    """
    In-memory sessions keyed by user id, with one asyncio lock per user.

    Callers hold ``lock(user_id)`` around any read-modify-write of a session;
    unrelated users never share a lock.
    """

    def __init__(
        self,
        history_limit: Optional[int] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.logger = setup_logger(__name__)
        self.history_limit = (
            settings.HISTORY_LIMIT if history_limit is None else history_limit
        )
        self._clock = clock
        self._sessions: Dict[str, Session] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def lock(self, user_id: str) -> asyncio.Lock:
        """Get or create the lock guarding a user's session."""
        if user_id not in self._locks:
            self._locks[user_id] = asyncio.Lock()
        return self._locks[user_id]

    def get(self, user_id: str) -> Optional[Session]:
        return self._sessions.get(user_id)

    def get_or_create(self, user_id: str, display_name: str = "Cliente") -> Session:
        """
        Get the session for a user, creating a fresh one at START if needed.

        Args:
            user_id: The user identifier
            display_name: Name shown by WhatsApp, stored on new sessions

        Returns:
            The user's session
        """
        session = self._sessions.get(user_id)
        if session is None:
            session = Session(
                user_id=user_id,
                display_name=display_name or "Cliente",
                started_at=self._clock(),
                fields={"customer_name": display_name or "Cliente", "phone": user_id},
            )
            self._sessions[user_id] = session
            self.logger.info(f"Created session for {user_id}")
        return session

    def set_step(self, session: Session, step: ConversationStep) -> None:
        prev_step = session.step
        session.step = step
        self.logger.info(
            f"Step transition for {session.user_id}: {prev_step.name} -> {step.name}"
        )

    def append_history(self, session: Session, role: str, text: str) -> None:
        """Record a message, keeping only the most recent entries."""
        session.history.append(
            HistoryEntry(role=role, text=text, timestamp=self._clock())
        )
        if len(session.history) > self.history_limit:
            session.history = session.history[-self.history_limit :]

    def reset(self, user_id: str) -> Session:
        """Put a user back at START with only the identity fields kept."""
        session = self._sessions.get(user_id)
        display_name = session.display_name if session else "Cliente"
        self._sessions.pop(user_id, None)
        self.logger.info(f"Reset session for {user_id}")
        return self.get_or_create(user_id, display_name)

    def delete(self, user_id: str) -> bool:
        removed = self._sessions.pop(user_id, None) is not None
        if removed:
            self.logger.info(f"Deleted session for {user_id}")
        self._drop_idle_lock(user_id)
        return removed

    def evict_stale(self, max_age: timedelta) -> int:
        """Delete sessions started more than ``max_age`` ago."""
        cutoff = self._clock() - max_age
        stale = [
            user_id
            for user_id, session in self._sessions.items()
            if session.started_at < cutoff and not self._is_locked(user_id)
        ]
        for user_id in stale:
            self._sessions.pop(user_id, None)
            self._drop_idle_lock(user_id)
            self.logger.info(f"Evicted stale session for {user_id}")

        for user_id in list(self._locks):
            if user_id not in self._sessions:
                self._drop_idle_lock(user_id)
        return len(stale)

    def count(self) -> int:
        return len(self._sessions)

    def _is_locked(self, user_id: str) -> bool:
        lock = self._locks.get(user_id)
        return lock is not None and lock.locked()

    def _drop_idle_lock(self, user_id: str) -> None:
        lock = self._locks.get(user_id)
        if lock is not None and not lock.locked():
            del self._locks[user_id]
