import asyncio
from datetime import datetime
from typing import Optional

from app.config import settings
from app.constants import MESSAGES
from app.logging import log_exception
from app.services.conversation.session_store import ConversationStep, Session
from app.services.integrations.calendar import GoogleCalendarService
from app.services.types import CalendarEventRequest
from app.services.workflow.handlers.base import BaseHandler
from app.utils import DATETIME_FORMAT, parse_schedule


class SchedulingHandler(BaseHandler):
    """Handler for the date and time step"""

    def __init__(self, *args, calendar: Optional[GoogleCalendarService] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.calendar = calendar

    async def handle(self, session: Session, message: str) -> None:
        when = parse_schedule(message)
        if when is None:
            await self.send_message(session, MESSAGES["datetime_invalid"])
            return

        scheduled_for = when.strftime(DATETIME_FORMAT)
        session.fields["scheduled_for"] = scheduled_for
        await self.send_message(
            session, MESSAGES["datetime_confirmed"].format(when=scheduled_for)
        )
        await self.book(session, when)

        category = self.current_category(session)
        if category is None:
            raise LookupError(f"No category selected for {session.user_id}")
        await self.advance(session, category, after=ConversationStep.AWAITING_DATETIME)

    async def book(self, session: Session, when: datetime) -> None:
        """Best-effort calendar booking; failures are only logged"""
        if self.calendar is None:
            return

        request = CalendarEventRequest(
            summary=f"{session.fields.get('service', 'Atendimento')} - {session.display_name}",
            description=f"Cliente: {session.display_name}\nTelefone: {session.user_id}",
            start=when,
        )
        try:
            result = await asyncio.wait_for(
                self.calendar.create_event(request), timeout=settings.CALENDAR_TIMEOUT
            )
        except Exception as e:
            log_exception(
                self.logger, f"Calendar booking failed for {session.user_id}", e
            )
            return

        if result.ok:
            session.fields["calendar_event_id"] = result.event_id
        else:
            self.logger.warning(
                f"Calendar booking not created for {session.user_id}: {result.error}"
            )
