from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.services.types import PauseRecord


class PauseUserRequest(BaseModel):
    user_id: str
    user_name: Optional[str] = None
    hours: Optional[float] = Field(default=None, gt=0)


class PausedUsersResponse(BaseModel):
    count: int
    users: List[PauseRecord]


class ResumeUserResponse(BaseModel):
    user_id: str
    resumed: bool


class IntakeOut(BaseModel):
    id: int
    customer_name: str
    phone: str
    service: str
    details: Optional[str] = None
    requested_at: datetime
    scheduled_for: str
    status: str
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class IntakeListResponse(BaseModel):
    total: int
    intakes: List[IntakeOut]


class BotStatusResponse(BaseModel):
    mode: str
    flow: str
    transport: str
    active_sessions: int
    paused_users: int
    cleanup_running: bool


class HealthResponse(BaseModel):
    status: str
    database: str
    timestamp: datetime
