from sqlalchemy import Column, String, DateTime

from app.db import Base
from app.utils import utcnow


class PausedUser(Base):
    """
    Human-takeover pause for a single WhatsApp user.

    The user id is the primary key, so a user holds at most one record;
    pausing again overwrites it.
    """

    __tablename__ = "paused_users"

    user_id = Column(String(32), primary_key=True, index=True)
    user_name = Column(String(120), nullable=True)
    paused_at = Column(DateTime, default=utcnow, nullable=False)
    resume_at = Column(DateTime, nullable=False, index=True)

    def __repr__(self):
        return f"<PausedUser user_id={self.user_id} resume_at={self.resume_at}>"
