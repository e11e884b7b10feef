from app.config import settings
from app.constants import MESSAGES
from app.services.conversation.session_store import ConversationStep, Session
from app.services.workflow.flows import match_option
from app.services.workflow.handlers.base import BaseHandler


class CategoryHandler(BaseHandler):
    """Greets new sessions and handles the first menu"""

    async def start(self, session: Session, message: str = "") -> None:
        """Send the greeting with the category menu"""
        greeting = MESSAGES["greeting"].format(
            name=session.display_name, business=settings.BUSINESS_NAME
        )
        self.sessions.set_step(session, ConversationStep.AWAITING_CATEGORY)
        await self.send_category_menu(session, greeting)

    async def handle(self, session: Session, message: str) -> None:
        option = match_option(message, self.flow.category_options())
        if option is None:
            await self.send_category_menu(session, MESSAGES["invalid_option"])
            return

        category = self.flow.find_category(option.id)
        session.fields["category"] = category.option.id
        session.fields["service"] = category.service
        self.logger.info(f"{session.user_id} selected category {category.option.id}")

        if category.intro:
            await self.send_message(session, category.intro)
        await self.advance(session, category)
