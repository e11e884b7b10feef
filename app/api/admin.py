from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import settings
from app.logging import log_exception, setup_logger
from app.schemas import (
    BotStatusResponse,
    HealthResponse,
    IntakeListResponse,
    IntakeOut,
    PausedUsersResponse,
    PauseUserRequest,
    ResumeUserResponse,
)
from app.services.conversation.cleanup import CleanupScheduler
from app.services.conversation.pause_store import PauseStore
from app.services.conversation.session_store import SessionStore
from app.services.integrations.intake_repository import IntakeRepository
from app.services.types import PauseRecord
from app.utils import normalize_user_id, utcnow

router = APIRouter(prefix="/api", tags=["admin"])
logger = setup_logger(__name__)


def get_pause_store(request: Request) -> PauseStore:
    return request.app.state.pauses


def get_session_store(request: Request) -> SessionStore:
    return request.app.state.sessions


def get_intake_repository(request: Request) -> IntakeRepository:
    return request.app.state.repository


def get_session_factory(request: Request) -> async_sessionmaker[AsyncSession]:
    return request.app.state.session_factory


def get_scheduler(request: Request) -> Optional[CleanupScheduler]:
    return getattr(request.app.state, "scheduler", None)


@router.get("/bot/status", response_model=BotStatusResponse)
async def bot_status(
    pauses: PauseStore = Depends(get_pause_store),
    sessions: SessionStore = Depends(get_session_store),
    scheduler: Optional[CleanupScheduler] = Depends(get_scheduler),
) -> BotStatusResponse:
    """Current engine mode and live counters."""
    try:
        paused = await pauses.count_active()
    except SQLAlchemyError as e:
        log_exception(logger, "Error counting paused users", e)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Pause store unavailable",
        )

    return BotStatusResponse(
        mode=settings.BOT_MODE,
        flow=settings.FLOW_NAME,
        transport=settings.TRANSPORT,
        active_sessions=sessions.count(),
        paused_users=paused,
        cleanup_running=bool(scheduler and scheduler.running),
    )


@router.get("/bot/paused-users", response_model=PausedUsersResponse)
async def paused_users(
    pauses: PauseStore = Depends(get_pause_store),
) -> PausedUsersResponse:
    users = await pauses.list_active()
    return PausedUsersResponse(count=len(users), users=users)


@router.post(
    "/bot/pause-user", response_model=PauseRecord, status_code=status.HTTP_201_CREATED
)
async def pause_user(
    body: PauseUserRequest, pauses: PauseStore = Depends(get_pause_store)
) -> PauseRecord:
    """Pause automation for a customer, as if an operator had written to them."""
    user_id = normalize_user_id(body.user_id)
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="user_id is empty"
        )
    record = await pauses.pause(
        user_id, body.user_name or "Cliente", body.hours or settings.PAUSE_HOURS
    )
    logger.info(f"Paused {user_id} via admin API until {record.resume_at}")
    return record


@router.post("/bot/resume-user/{user_id}", response_model=ResumeUserResponse)
async def resume_user(
    user_id: str, pauses: PauseStore = Depends(get_pause_store)
) -> ResumeUserResponse:
    user_id = normalize_user_id(user_id)
    resumed = await pauses.resume(user_id)
    if not resumed:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"User {user_id} is not paused",
        )
    logger.info(f"Resumed {user_id} via admin API")
    return ResumeUserResponse(user_id=user_id, resumed=True)


@router.get("/intakes", response_model=IntakeListResponse)
async def list_intakes(
    status_filter: Optional[str] = Query(None, alias="status"),
    phone: Optional[str] = None,
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    repository: IntakeRepository = Depends(get_intake_repository),
) -> IntakeListResponse:
    intakes = await repository.list_intakes(
        status=status_filter, phone=phone, limit=limit, offset=offset
    )
    total = await repository.count_intakes(status=status_filter)
    return IntakeListResponse(
        total=total, intakes=[IntakeOut.model_validate(row) for row in intakes]
    )


@router.get("/health", response_model=HealthResponse)
async def health(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> HealthResponse:
    try:
        async with session_factory() as db:
            await db.execute(text("SELECT 1"))
        database = "ok"
    except SQLAlchemyError as e:
        log_exception(logger, "Database health check failed", e)
        database = "unavailable"

    return HealthResponse(
        status="ok" if database == "ok" else "degraded",
        database=database,
        timestamp=utcnow(),
    )
