from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.params import Query
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from app.api.admin import router as admin_router
from app.api.webhook import handle_message, verify_webhook
from app.config import settings
from app.db import async_session_factory, engine, init_models
from app.logging import setup_logger
from app.services.conversation.cleanup import CleanupScheduler
from app.services.conversation.dispatcher import MessageDispatcher
from app.services.conversation.inflight import InFlightTracker
from app.services.conversation.pause_store import PauseStore
from app.services.conversation.session_store import SessionStore
from app.services.integrations.ai import AIService
from app.services.integrations.calendar import GoogleCalendarService
from app.services.integrations.intake_repository import IntakeRepository
from app.services.messaging.client import MessagingClient, build_messaging_client
from app.services.workflow.assistant import AssistantEngine
from app.services.workflow.manager import ConversationStateMachine

logger = setup_logger(__name__)


def create_app(
    db_engine: Optional[AsyncEngine] = None,
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    client: Optional[MessagingClient] = None,
    calendar: Optional[GoogleCalendarService] = None,
    ai_service: Optional[AIService] = None,
    enable_cleanup: Optional[bool] = None,
) -> FastAPI:
    """
    Build the application. Collaborators default to the configured ones;
    tests pass their own.
    """
    db_engine = db_engine or engine
    session_factory = session_factory or async_session_factory
    if enable_cleanup is None:
        enable_cleanup = settings.CLEANUP_ENABLED

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application startup and shutdown events handler
        - Creates database tables
        - Wires the conversation components
        - Starts and stops the cleanup loops
        """
        await init_models(db_engine)
        logger.info("Database tables created")

        messaging = client or build_messaging_client()
        booking = calendar
        if booking is None and settings.GOOGLE_REFRESH_TOKEN:
            booking = GoogleCalendarService()

        sessions = SessionStore()
        pauses = PauseStore(session_factory)
        repository = IntakeRepository(session_factory)

        if settings.BOT_MODE == "ai":
            conversation_engine = AssistantEngine(
                messaging, sessions, repository, ai_service or AIService()
            )
        else:
            conversation_engine = ConversationStateMachine(
                messaging, sessions, repository, calendar=booking
            )

        inflight = InFlightTracker()
        app.state.session_factory = session_factory
        app.state.sessions = sessions
        app.state.pauses = pauses
        app.state.repository = repository
        app.state.dispatcher = MessageDispatcher(
            conversation_engine, sessions, pauses, messaging, inflight=inflight
        )
        app.state.scheduler = CleanupScheduler(pauses, sessions)
        if enable_cleanup:
            app.state.scheduler.start()

        logger.info(
            f"Bot started in {settings.BOT_MODE} mode, flow {settings.FLOW_NAME}, "
            f"transport {settings.TRANSPORT}"
        )
        yield

        await app.state.scheduler.stop()
        inflight.clear()
        if client is None:
            await messaging.close()
        if calendar is None and booking is not None:
            await booking.close()
        await db_engine.dispose()
        logger.info("Application shutdown")

    app = FastAPI(
        title=settings.PROJECT_NAME,
        description=settings.PROJECT_DESCRIPTION,
        lifespan=lifespan,
    )

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            origin.strip() for origin in settings.BACKEND_CORS_ORIGINS.split(",")
        ],
        allow_origin_regex=r"http://(localhost|127\.0\.0\.1)(:\d+)?",
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(admin_router)

    # Root endpoint
    @app.get("/", tags=["root"])
    async def root():
        return JSONResponse(
            content={"status": "ok", "service": settings.PROJECT_NAME},
            status_code=status.HTTP_200_OK,
        )

    # WhatsApp webhook endpoints
    @app.get("/webhook")
    async def webhook_verification(
        hub_mode: str = Query(None, alias="hub.mode"),
        hub_verify_token: str = Query(None, alias="hub.verify_token"),
        hub_challenge: str = Query(None, alias="hub.challenge"),
    ) -> Response:
        return await verify_webhook(hub_mode, hub_verify_token, hub_challenge)

    @app.post("/webhook")
    async def webhook_handler(request: Request):
        try:
            data = await request.json()
        except ValueError as e:
            logger.error(f"Error handling webhook: {e}")
            return JSONResponse(
                content={"status": "error", "message": "Invalid JSON body"},
                status_code=status.HTTP_400_BAD_REQUEST,
            )
        if not isinstance(data, dict):
            return JSONResponse(
                content={"status": "error", "message": "Expected a JSON object"},
                status_code=status.HTTP_400_BAD_REQUEST,
            )
        return await handle_message(data, request.app.state.dispatcher)

    return app


app = create_app()
