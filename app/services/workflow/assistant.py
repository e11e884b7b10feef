"""
AI-driven conversation engine.

Instead of walking a menu, every customer message is answered by the model.
The intent is classified once per session, and once the conversation has
enough substance an intake is saved so the team can follow up.
"""

import asyncio
from typing import Any, Dict, Optional

from app.config import settings
from app.constants import (
    DEFAULT_INTENT_SERVICE,
    INTENT_SERVICES,
    MESSAGES,
    NON_INTAKE_INTENTS,
    SCHEDULING_KEYWORDS,
    fallback_message,
)
from app.logging import log_exception, setup_logger
from app.services.conversation.session_store import Session, SessionStore
from app.services.integrations.ai import AIService
from app.services.integrations.intake_repository import IntakeRepository
from app.services.messaging.client import MessagingClient
from app.services.types import IntakeRecord

CONTEXT_MESSAGES = 5


def mentions_scheduling(text: str) -> bool:
    lowered = text.lower()
    return any(keyword in lowered for keyword in SCHEDULING_KEYWORDS)


class AssistantEngine:
    def __init__(
        self,
        client: MessagingClient,
        sessions: SessionStore,
        repository: IntakeRepository,
        ai: AIService,
        min_messages: Optional[int] = None,
    ):
        self.logger = setup_logger(__name__)
        self.client = client
        self.sessions = sessions
        self.repository = repository
        self.ai = ai
        self.min_messages = (
            settings.AI_MIN_MESSAGES if min_messages is None else min_messages
        )

    async def handle(self, session: Session, message: str) -> None:
        message = message.strip()
        self.sessions.append_history(session, "user", message)

        if session.intent is None:
            session.intent = await self._classify(message)
            self.logger.info(f"Intent for {session.user_id}: {session.intent}")

        try:
            reply = await asyncio.wait_for(
                self.ai.generate_reply(message, self.build_context(session)),
                timeout=settings.AI_TIMEOUT,
            )
        except Exception as e:
            log_exception(self.logger, f"AI reply failed for {session.user_id}", e)
            await self._send(session, fallback_message(session.display_name))
            return

        if mentions_scheduling(reply):
            session.fields["needs_scheduling"] = True
            reply = f"{reply}\n\n{MESSAGES['scheduling_note']}"

        if self.should_save(session):
            await self.save_intake(session)

        await self._send(session, reply)

    def build_context(self, session: Session) -> Dict[str, Any]:
        # The current message is sent separately
        previous = session.history[:-1][-CONTEXT_MESSAGES:]
        return {
            "customer_name": session.display_name,
            "intent": session.intent,
            "previous_messages": " | ".join(
                f"{entry.role}: {entry.text}" for entry in previous
            ),
            "session_data": {
                key: value
                for key, value in session.fields.items()
                if key not in ("customer_name", "phone")
            },
        }

    def should_save(self, session: Session) -> bool:
        return (
            not session.intake_saved
            and session.intent is not None
            and session.intent not in NON_INTAKE_INTENTS
            and len(session.history) >= self.min_messages
        )

    async def save_intake(self, session: Session) -> None:
        user_messages = [entry.text for entry in session.history if entry.role == "user"]
        record = IntakeRecord(
            customer_name=session.display_name,
            phone=session.user_id,
            service=INTENT_SERVICES.get(session.intent, DEFAULT_INTENT_SERVICE),
            details=" | ".join(user_messages),
            requested_at=session.started_at,
        )
        try:
            intake_id = await asyncio.wait_for(
                self.repository.save_intake(record),
                timeout=settings.PERSISTENCE_TIMEOUT,
            )
        except Exception as e:
            # Retried on the next message
            log_exception(self.logger, f"Failed to save intake for {session.user_id}", e)
            return

        session.intake_saved = True
        self.logger.info(f"Intake {intake_id} saved for {session.user_id}")

    async def _classify(self, message: str) -> str:
        try:
            return await asyncio.wait_for(
                self.ai.classify_intent(message), timeout=settings.AI_TIMEOUT
            )
        except Exception as e:
            log_exception(self.logger, "Intent classification failed", e)
            return "unknown"

    async def _send(self, session: Session, text: str) -> None:
        self.sessions.append_history(session, "bot", text)
        await self.client.send_text(session.user_id, text)
