# This file makes the workflow directory a Python package

"""
Conversation engines for the WhatsApp intake bot.

The menu state machine walks customers through the configured flow; the
assistant engine answers with the AI model instead.
"""

from app.services.workflow.assistant import AssistantEngine
from app.services.workflow.manager import ConversationStateMachine

__all__ = ["AssistantEngine", "ConversationStateMachine"]
