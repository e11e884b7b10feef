from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Optional

from app.constants import MESSAGES
from app.logging import setup_logger
from app.services.conversation.session_store import (
    ConversationStep,
    Session,
    SessionStore,
)
from app.services.messaging.client import MessagingClient
from app.services.workflow.flows import (
    FlowCategory,
    FlowDefinition,
    FlowStep,
    to_buttons,
    to_menu_options,
)

if TYPE_CHECKING:
    from app.services.workflow.handlers.finalize import FinalizeHandler


class BaseHandler(ABC):
    """Base class for conversation step handlers"""

    def __init__(
        self,
        client: MessagingClient,
        sessions: SessionStore,
        flow: FlowDefinition,
        finalizer: Optional["FinalizeHandler"] = None,
    ):
        self.client = client
        self.sessions = sessions
        self.flow = flow
        self.finalizer = finalizer
        self.logger = setup_logger(__name__)

    @abstractmethod
    async def handle(self, session: Session, message: str) -> None:
        """Handle a message in the current step"""
        pass

    async def send_message(self, session: Session, text: str) -> bool:
        """Send a text message and record it in the history"""
        self.sessions.append_history(session, "bot", text)
        return await self.client.send_text(session.user_id, text)

    async def send_step_prompt(self, session: Session, flow_step: FlowStep) -> bool:
        self.sessions.append_history(session, "bot", flow_step.prompt)
        if not flow_step.options:
            return await self.client.send_text(session.user_id, flow_step.prompt)
        if flow_step.style == "menu":
            return await self.client.send_menu(
                session.user_id, flow_step.prompt, to_menu_options(flow_step.options)
            )
        return await self.client.send_buttons(
            session.user_id, flow_step.prompt, to_buttons(flow_step.options)
        )

    async def send_category_menu(self, session: Session, prompt: str) -> bool:
        self.sessions.append_history(session, "bot", prompt)
        return await self.client.send_menu(
            session.user_id, prompt, to_menu_options(self.flow.category_options())
        )

    def current_category(self, session: Session) -> Optional[FlowCategory]:
        return self.flow.find_category(session.fields.get("category"))

    async def advance(
        self,
        session: Session,
        category: FlowCategory,
        after: Optional[ConversationStep] = None,
    ) -> None:
        """
        Move to whatever comes after ``after`` in the category's branch.

        The next option step if there is one, then the date prompt when the
        category asks for it, otherwise the intake is finalized.
        """
        next_step = category.next_step(after)
        if next_step is not None:
            self.sessions.set_step(session, next_step.step)
            await self.send_step_prompt(session, next_step)
            return

        if category.ask_datetime and after != ConversationStep.AWAITING_DATETIME:
            self.sessions.set_step(session, ConversationStep.AWAITING_DATETIME)
            await self.send_message(session, MESSAGES["datetime_prompt"])
            return

        await self.finish(session)

    async def finish(self, session: Session) -> None:
        self.sessions.set_step(session, ConversationStep.FINALIZE)
        if self.finalizer is None:
            raise RuntimeError("No finalizer configured for this handler")
        await self.finalizer.finalize(session)
