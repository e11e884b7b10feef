from app.services.integrations.ai import AIService, AIServiceError
from app.services.integrations.calendar import GoogleCalendarService
from app.services.integrations.intake_repository import IntakeRepository

__all__ = [
    "AIService",
    "AIServiceError",
    "GoogleCalendarService",
    "IntakeRepository",
]
