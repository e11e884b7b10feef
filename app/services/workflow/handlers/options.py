from app.constants import MESSAGES
from app.services.conversation.session_store import Session
from app.services.workflow.flows import is_media_message, match_option
from app.services.workflow.handlers.base import BaseHandler


class OptionStepHandler(BaseHandler):
    """
    Handles every step that offers a fixed set of options.

    The step definition (prompt, options and the field the answer is stored
    in) comes from the session's category in the active flow.
    """

    async def handle(self, session: Session, message: str) -> None:
        category = self.current_category(session)
        flow_step = category.find_step(session.step) if category else None
        if flow_step is None:
            raise LookupError(
                f"Step {session.step} is not part of category {session.fields.get('category')}"
            )

        if flow_step.accepts_media and is_media_message(message):
            media_id = message.split(":", 2)[-1]
            session.fields[flow_step.field] = f"Foto recebida ({media_id})"
            self.logger.info(f"Received photo {media_id} from {session.user_id}")
            await self.advance(session, category, after=flow_step.step)
            return

        option = match_option(message, flow_step.options)
        if option is None:
            if flow_step.accepts_media:
                await self.send_message(session, MESSAGES["photo_text_instead"])
            else:
                await self.send_message(session, MESSAGES["invalid_option"])
            await self.send_step_prompt(session, flow_step)
            return

        session.fields[flow_step.field] = option.stored_value
        if option.ends_branch:
            await self.finish(session)
            return
        await self.advance(session, category, after=flow_step.step)
