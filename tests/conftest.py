from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.db import init_models
from app.services.conversation.pause_store import PauseStore
from app.services.conversation.session_store import SessionStore
from app.services.messaging.client import MessagingClient
from app.services.types import CalendarResult
from app.services.workflow.flows import CLASSICO_FLOW, ESTOFADOS_FLOW
from app.services.workflow.manager import ConversationStateMachine

CUSTOMER_ID = "5583999990000"
CUSTOMER_NAME = "Maria"


class FakeClock:
    """Settable naive-UTC clock"""

    def __init__(self, start: datetime = datetime(2025, 10, 20, 12, 0, 0)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@dataclass
class SentMessage:
    user_id: str
    kind: str
    text: str
    option_ids: List[str] = field(default_factory=list)


class RecordingClient(MessagingClient):
    """Messaging client that keeps everything it was asked to send"""

    def __init__(self):
        super().__init__()
        self.sent: List[SentMessage] = []

    async def send_text(self, user_id: str, text: str) -> bool:
        self.sent.append(SentMessage(user_id, "text", text))
        return True

    async def send_menu(self, user_id, prompt, options) -> bool:
        self.sent.append(
            SentMessage(user_id, "menu", prompt, [option["id"] for option in options])
        )
        return True

    async def send_buttons(self, user_id, prompt, buttons) -> bool:
        self.sent.append(
            SentMessage(user_id, "buttons", prompt, [button["id"] for button in buttons])
        )
        return True

    def texts(self) -> List[str]:
        return [message.text for message in self.sent]

    @property
    def last(self) -> Optional[SentMessage]:
        return self.sent[-1] if self.sent else None


class FakeRepository:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.saved = []

    async def save_intake(self, record) -> int:
        if self.fail:
            raise RuntimeError("database is down")
        self.saved.append(record)
        return len(self.saved)


class FakeCalendar:
    def __init__(self, ok: bool = True, error: Optional[Exception] = None):
        self.ok = ok
        self.error = error
        self.requests = []

    async def create_event(self, request) -> CalendarResult:
        self.requests.append(request)
        if self.error:
            raise self.error
        if not self.ok:
            return CalendarResult(ok=False, error="calendar rejected")
        return CalendarResult(ok=True, event_id=f"evt-{len(self.requests)}")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def messaging():
    return RecordingClient()


@pytest.fixture
def repository():
    return FakeRepository()


@pytest.fixture
def calendar():
    return FakeCalendar()


@pytest.fixture
def sessions(clock):
    return SessionStore(clock=clock)


@pytest.fixture
def machine(messaging, sessions, repository, calendar):
    """Menu engine on the default fabrication / repair flow"""
    return ConversationStateMachine(
        messaging, sessions, repository, calendar=calendar, flow=ESTOFADOS_FLOW
    )


@pytest.fixture
def classic_machine(messaging, sessions, repository, calendar):
    return ConversationStateMachine(
        messaging, sessions, repository, calendar=calendar, flow=CLASSICO_FLOW
    )


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    """Throwaway SQLite file per test"""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'bot.db'}")
    await init_models(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def pauses(session_factory, clock):
    return PauseStore(session_factory, clock=clock)


async def say(machine, text: str, user_id: str = CUSTOMER_ID, name: str = CUSTOMER_NAME):
    """Feed one customer message to an engine, as the dispatcher would"""
    session = machine.sessions.get_or_create(user_id, name)
    await machine.handle(session, text)
    return machine.sessions.get(user_id)
