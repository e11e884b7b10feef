from datetime import datetime
from typing import Optional, TypedDict

from pydantic import BaseModel, ConfigDict, Field

from app.utils import utcnow


class ButtonItem(TypedDict):
    """Type definition for a reply button"""

    id: str
    title: str


class MenuOption(TypedDict):
    """Type definition for a list-menu row"""

    id: str
    title: str
    description: str


class InboundEvent(BaseModel):
    """Transport-neutral inbound message, built by the webhook layer."""

    user_id: str
    display_name: str = "Cliente"
    is_group_chat: bool = False
    is_from_operator: bool = False
    content: str = ""


class IntakeRecord(BaseModel):
    """Finished customer request handed to the persistence collaborator."""

    customer_name: str
    phone: str
    service: str
    details: str = ""
    requested_at: datetime = Field(default_factory=utcnow)
    scheduled_for: str = "N/A"
    status: str = "Pendente"

    model_config = ConfigDict(from_attributes=True)


class PauseStatus(BaseModel):
    paused: bool
    minutes_remaining: int = 0


class PauseRecord(BaseModel):
    """Active pause as reported to callers, with the computed countdown."""

    user_id: str
    user_name: Optional[str] = None
    paused_at: datetime
    resume_at: datetime
    minutes_remaining: int = 0


class CalendarEventRequest(BaseModel):
    summary: str
    description: str = ""
    start: datetime
    attendee: Optional[str] = None


class CalendarResult(BaseModel):
    ok: bool
    event_id: Optional[str] = None
    event_link: Optional[str] = None
    error: Optional[str] = None
