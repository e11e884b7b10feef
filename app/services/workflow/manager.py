from typing import Optional

from app.constants import MESSAGES
from app.logging import setup_logger
from app.services.conversation.session_store import (
    ConversationStep,
    Session,
    SessionStore,
)
from app.services.integrations.calendar import GoogleCalendarService
from app.services.integrations.intake_repository import IntakeRepository
from app.services.messaging.client import MessagingClient
from app.services.workflow.flows import FlowDefinition, get_flow
from app.services.workflow.handlers.category import CategoryHandler
from app.services.workflow.handlers.finalize import FinalizeHandler
from app.services.workflow.handlers.options import OptionStepHandler
from app.services.workflow.handlers.scheduling import SchedulingHandler


class ConversationStateMachine:
    """
    Menu-driven conversation engine.

    Routes each message to the handler of the session's current step. The
    caller holds the user's session lock for the whole call.
    """

    def __init__(
        self,
        client: MessagingClient,
        sessions: SessionStore,
        repository: IntakeRepository,
        calendar: Optional[GoogleCalendarService] = None,
        flow: Optional[FlowDefinition] = None,
    ):
        self.logger = setup_logger(__name__)
        self.client = client
        self.sessions = sessions
        self.flow = flow or get_flow()

        self.finalize_handler = FinalizeHandler(
            client, sessions, self.flow, repository=repository
        )
        self.category_handler = CategoryHandler(
            client, sessions, self.flow, finalizer=self.finalize_handler
        )
        self.option_handler = OptionStepHandler(
            client, sessions, self.flow, finalizer=self.finalize_handler
        )
        self.scheduling_handler = SchedulingHandler(
            client, sessions, self.flow, finalizer=self.finalize_handler, calendar=calendar
        )

        # Map steps to their handlers
        self.handler_map = {
            ConversationStep.START: self.category_handler.start,
            ConversationStep.AWAITING_CATEGORY: self.category_handler.handle,
            ConversationStep.AWAITING_SUBTYPE: self.option_handler.handle,
            ConversationStep.AWAITING_HAS_DESIGN: self.option_handler.handle,
            ConversationStep.AWAITING_MEETING_KIND: self.option_handler.handle,
            ConversationStep.AWAITING_PHOTO: self.option_handler.handle,
            ConversationStep.AWAITING_SCHEDULE_CHOICE: self.option_handler.handle,
            ConversationStep.AWAITING_DATETIME: self.scheduling_handler.handle,
            ConversationStep.FINALIZE: self.finalize_handler.handle,
        }

    async def handle(self, session: Session, message: str) -> None:
        """Process one customer message for an existing session."""
        message = message.strip()
        self.sessions.append_history(session, "user", message)
        self.logger.info(
            f"Processing message in step {getattr(session.step, 'name', session.step)} "
            f"for {session.user_id}: {message[:20]}..."
        )

        handler = self.handler_map.get(session.step)
        if handler is None or not self._step_belongs_to_session(session):
            self.logger.warning(
                f"No handler for step {session.step} of {session.user_id}, restarting"
            )
            await self.restart(session)
            return

        await handler(session, message)

    async def restart(self, session: Session) -> None:
        """Reset the user to START and send the menu again."""
        fresh = self.sessions.reset(session.user_id)
        await self.client.send_text(fresh.user_id, MESSAGES["restart"])
        await self.category_handler.start(fresh)

    def _step_belongs_to_session(self, session: Session) -> bool:
        if session.step in (ConversationStep.START, ConversationStep.AWAITING_CATEGORY):
            return True

        category = self.flow.find_category(session.fields.get("category"))
        if category is None:
            return False
        if session.step == ConversationStep.AWAITING_DATETIME:
            return category.ask_datetime
        if session.step == ConversationStep.FINALIZE:
            return True
        return category.find_step(session.step) is not None
