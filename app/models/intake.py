from sqlalchemy import Column, Integer, String, DateTime, Text

from app.db import Base
from app.utils import utcnow


class Intake(Base):
    """
    Customer request captured by the bot, one row per finished conversation.
    """

    __tablename__ = "intakes"

    id = Column(Integer, primary_key=True, autoincrement=True)

    customer_name = Column(String(120), nullable=False)
    phone = Column(String(32), nullable=False, index=True)
    service = Column(String(120), nullable=False)
    details = Column(Text, nullable=True)

    requested_at = Column(DateTime, default=utcnow, nullable=False)
    scheduled_for = Column(String(32), nullable=False, default="N/A")
    status = Column(String(32), nullable=False, default="Pendente")

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f"<Intake id={self.id} service={self.service}>"
