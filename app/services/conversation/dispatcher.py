"""
Routes inbound WhatsApp events to the conversation engine.

Order matters: group chats are dropped, the reactivation command is honoured
even while paused, operator messages pause automation, paused users and
duplicate deliveries are discarded, and only then does the engine run under
the user's session lock, where the pause is checked again. Operator pauses
take the same lock.
"""

from enum import Enum
from typing import Optional, Protocol

from app.config import settings
from app.constants import MESSAGES, fallback_message
from app.logging import log_exception, setup_logger
from app.services.conversation.inflight import InFlightTracker
from app.services.conversation.pause_store import PauseStore
from app.services.conversation.session_store import Session, SessionStore
from app.services.messaging.client import MessagingClient
from app.services.types import InboundEvent


class ConversationEngine(Protocol):
    async def handle(self, session: Session, message: str) -> None: ...


class DispatchOutcome(str, Enum):
    IGNORED_GROUP = "ignored_group"
    RESUMED = "resumed"
    NOT_PAUSED = "not_paused"
    RESUME_FAILED = "resume_failed"
    PAUSED_BY_OPERATOR = "paused_by_operator"
    PAUSE_FAILED = "pause_failed"
    IGNORED_PAUSED = "ignored_paused"
    IGNORED_EMPTY = "ignored_empty"
    IGNORED_DUPLICATE = "ignored_duplicate"
    PROCESSED = "processed"
    FAILED = "failed"


class MessageDispatcher:
    def __init__(
        self,
        engine: ConversationEngine,
        sessions: SessionStore,
        pauses: PauseStore,
        client: MessagingClient,
        inflight: Optional[InFlightTracker] = None,
        reactivation_command: Optional[str] = None,
        pause_hours: Optional[float] = None,
    ):
        self.logger = setup_logger(__name__)
        self.engine = engine
        self.sessions = sessions
        self.pauses = pauses
        self.client = client
        self.inflight = inflight or InFlightTracker()
        self.reactivation_command = (
            reactivation_command or settings.REACTIVATION_COMMAND
        ).lower()
        self.pause_hours = (
            settings.PAUSE_HOURS if pause_hours is None else pause_hours
        )

    def is_reactivation_command(self, content: str) -> bool:
        return content.strip().lower() == self.reactivation_command

    async def dispatch(self, event: InboundEvent) -> DispatchOutcome:
        """
        Apply the routing policy to one inbound event.

        Args:
            event: Normalized inbound message

        Returns:
            Which path the event took
        """
        user_id = event.user_id

        if event.is_group_chat:
            self.logger.debug(f"Ignoring group message from {user_id}")
            return DispatchOutcome.IGNORED_GROUP

        if self.is_reactivation_command(event.content):
            return await self._reactivate(event)

        if event.is_from_operator:
            return await self._pause_for_operator(event)

        if await self._is_paused(user_id):
            return DispatchOutcome.IGNORED_PAUSED

        if not event.content.strip():
            self.logger.info(f"Ignoring empty message from {user_id}")
            return DispatchOutcome.IGNORED_EMPTY

        if not self.inflight.try_acquire(user_id):
            return DispatchOutcome.IGNORED_DUPLICATE

        try:
            return await self._run_engine(event)
        finally:
            self.inflight.release_later(user_id)

    async def _is_paused(self, user_id: str) -> bool:
        try:
            status = await self.pauses.is_paused(user_id)
        except Exception as e:
            # Fail open
            log_exception(self.logger, f"Pause lookup failed for {user_id}", e)
            return False
        if status.paused:
            self.logger.info(
                f"{user_id} is paused, {status.minutes_remaining} min remaining"
            )
        return status.paused

    async def _reactivate(self, event: InboundEvent) -> DispatchOutcome:
        try:
            was_paused = await self.pauses.resume(event.user_id)
        except Exception as e:
            log_exception(self.logger, f"Failed to resume {event.user_id}", e)
            await self.client.send_text(
                event.user_id, fallback_message(event.display_name)
            )
            return DispatchOutcome.RESUME_FAILED

        if was_paused:
            self.logger.info(f"Bot reactivated for {event.user_id}")
            await self.client.send_text(event.user_id, MESSAGES["reactivated"])
            return DispatchOutcome.RESUMED

        await self.client.send_text(event.user_id, MESSAGES["already_active"])
        return DispatchOutcome.NOT_PAUSED

    async def _pause_for_operator(self, event: InboundEvent) -> DispatchOutcome:
        try:
            async with self.sessions.lock(event.user_id):
                record = await self.pauses.pause(
                    event.user_id, event.display_name, self.pause_hours
                )
        except Exception as e:
            log_exception(self.logger, f"Failed to pause {event.user_id}", e)
            return DispatchOutcome.PAUSE_FAILED

        self.logger.info(
            f"Operator took over {event.user_id}, paused until {record.resume_at}"
        )
        return DispatchOutcome.PAUSED_BY_OPERATOR

    async def _run_engine(self, event: InboundEvent) -> DispatchOutcome:
        user_id = event.user_id
        async with self.sessions.lock(user_id):
            # An operator may have taken over while we waited for the lock
            if await self._is_paused(user_id):
                return DispatchOutcome.IGNORED_PAUSED
            session = self.sessions.get_or_create(user_id, event.display_name)
            try:
                await self.engine.handle(session, event.content)
            except Exception as e:
                log_exception(self.logger, f"Error processing message for {user_id}", e)
                self.sessions.reset(user_id)
                await self.client.send_text(user_id, fallback_message(session.display_name))
                return DispatchOutcome.FAILED
        return DispatchOutcome.PROCESSED
