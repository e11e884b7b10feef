from app.models.intake import Intake
from app.models.pause import PausedUser

__all__ = ["Intake", "PausedUser"]
