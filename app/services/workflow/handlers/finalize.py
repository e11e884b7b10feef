import asyncio
from typing import List

from app.config import settings
from app.constants import MESSAGES
from app.logging import log_exception
from app.services.conversation.session_store import ConversationStep, Session
from app.services.integrations.intake_repository import IntakeRepository
from app.services.types import IntakeRecord
from app.services.workflow.flows import FlowCategory
from app.services.workflow.handlers.base import BaseHandler


class FinalizeHandler(BaseHandler):
    """
    Persists the intake and closes the conversation.

    Reached right after the last answer of a branch, and again for any
    message that arrives while a previous save attempt has failed.
    """

    def __init__(self, *args, repository: IntakeRepository, **kwargs):
        super().__init__(*args, **kwargs)
        self.repository = repository

    async def handle(self, session: Session, message: str) -> None:
        await self.finalize(session, retry=True)

    async def finalize(self, session: Session, retry: bool = False) -> bool:
        category = self.current_category(session)
        if category is None:
            raise LookupError(f"No category selected for {session.user_id}")

        record = self.build_record(session, category)
        try:
            intake_id = await asyncio.wait_for(
                self.repository.save_intake(record),
                timeout=settings.PERSISTENCE_TIMEOUT,
            )
        except Exception as e:
            log_exception(self.logger, f"Failed to save intake for {session.user_id}", e)
            self.sessions.set_step(session, ConversationStep.FINALIZE)
            await self.send_message(session, MESSAGES["finalize_failed"])
            return False

        self.logger.info(f"Intake {intake_id} saved for {session.user_id}")
        self.sessions.delete(session.user_id)
        closing = category.closing
        if closing is None and retry:
            # The intro was sent on an earlier message
            closing = MESSAGES["finalized"]
        if closing:
            await self.client.send_text(
                session.user_id, closing.format(business=settings.BUSINESS_NAME)
            )
        return True

    def build_record(self, session: Session, category: FlowCategory) -> IntakeRecord:
        return IntakeRecord(
            customer_name=session.fields.get("customer_name", session.display_name),
            phone=session.fields.get("phone", session.user_id),
            service=category.service,
            details=self.build_details(session, category),
            requested_at=session.started_at,
            scheduled_for=session.fields.get("scheduled_for", "N/A"),
        )

    @staticmethod
    def build_details(session: Session, category: FlowCategory) -> str:
        parts: List[str] = []
        for flow_step in category.steps:
            value = session.fields.get(flow_step.field)
            if value:
                parts.append(f"{flow_step.label}: {value}")
        return " | ".join(parts) or category.service
