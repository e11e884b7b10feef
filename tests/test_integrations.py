import json
from datetime import datetime

import httpx
import pytest

from app.config import settings
from app.services.integrations.ai import AIService, AIServiceError, build_context_prompt
from app.services.integrations.calendar import GoogleCalendarService
from app.services.integrations.intake_repository import IntakeRepository
from app.services.types import CalendarEventRequest, IntakeRecord


def record(phone="5583999990000", service="Fabricação", status="Pendente"):
    return IntakeRecord(
        customer_name="Maria",
        phone=phone,
        service=service,
        details="Móvel: Sofá",
        requested_at=datetime(2025, 10, 20, 12, 0),
        scheduled_for="25/10/2025 14:30",
        status=status,
    )


async def test_intake_repository_save_and_list(session_factory):
    repository = IntakeRepository(session_factory)

    first = await repository.save_intake(record())
    second = await repository.save_intake(record(phone="5583911112222", service="Reforma"))
    await repository.save_intake(record(status="Concluído"))

    assert second > first
    assert await repository.count_intakes() == 3
    assert await repository.count_intakes(status="Pendente") == 2

    rows = await repository.list_intakes(phone="5583911112222")
    assert [row.service for row in rows] == ["Reforma"]
    assert rows[0].scheduled_for == "25/10/2025 14:30"

    latest = await repository.list_intakes(limit=1)
    assert latest[0].status == "Concluído"


def calendar_transport(event_status=200):
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if request.url.host == "oauth2.googleapis.com":
            return httpx.Response(200, json={"access_token": "at-1", "expires_in": 3600})
        return httpx.Response(
            event_status, json={"id": "evt-1", "htmlLink": "https://calendar/evt-1"}
        )

    return calls, httpx.MockTransport(handler)


def make_calendar(transport):
    return GoogleCalendarService(
        client_id="cid",
        client_secret="secret",
        refresh_token="rt",
        calendar_id="primary",
        http_client=httpx.AsyncClient(transport=transport),
    )


async def test_calendar_creates_event_with_cached_token():
    calls, transport = calendar_transport()
    service = make_calendar(transport)
    request = CalendarEventRequest(
        summary="Fabricação - Maria", start=datetime(2025, 10, 25, 14, 30)
    )

    result = await service.create_event(request)
    await service.create_event(request)

    assert result.ok
    assert result.event_id == "evt-1"
    token_calls = [c for c in calls if c.url.host == "oauth2.googleapis.com"]
    assert len(token_calls) == 1

    event = json.loads(calls[1].content)
    assert calls[1].headers["Authorization"] == "Bearer at-1"
    assert event["start"] == {
        "dateTime": "2025-10-25T14:30:00",
        "timeZone": "America/Sao_Paulo",
    }
    assert event["end"]["dateTime"] == "2025-10-25T15:30:00"
    await service.close()


async def test_calendar_api_error_is_reported_not_raised():
    _, transport = calendar_transport(event_status=403)
    service = make_calendar(transport)

    result = await service.create_event(
        CalendarEventRequest(summary="x", start=datetime(2025, 10, 25, 14, 30))
    )

    assert not result.ok
    assert "Calendar API error" in result.error
    await service.close()


async def test_unconfigured_calendar_skips(monkeypatch):
    monkeypatch.setattr(settings, "GOOGLE_REFRESH_TOKEN", "")
    service = GoogleCalendarService(client_id="cid", client_secret="secret")
    assert not service.is_configured

    result = await service.create_event(
        CalendarEventRequest(summary="x", start=datetime(2025, 10, 25, 14, 30))
    )

    assert not result.ok
    await service.close()


def test_ai_requires_api_key(monkeypatch):
    monkeypatch.setattr(settings, "OPENAI_API_KEY", "")
    with pytest.raises(ValueError):
        AIService()


async def test_classify_intent_normalizes_answer(monkeypatch):
    service = AIService(api_key="sk-test")

    async def answer(messages, model=None, **kwargs):
        return " Reforma.\n"

    monkeypatch.setattr(service, "create_chat_completion", answer)
    assert await service.classify_intent("quero reformar meu sofá") == "reforma"


async def test_classify_intent_unknown_label(monkeypatch):
    service = AIService(api_key="sk-test")

    async def answer(messages, model=None, **kwargs):
        return "não sei"

    monkeypatch.setattr(service, "create_chat_completion", answer)
    assert await service.classify_intent("???") == "unknown"


async def test_empty_reply_raises(monkeypatch):
    service = AIService(api_key="sk-test")

    async def answer(messages, model=None, **kwargs):
        return ""

    monkeypatch.setattr(service, "create_chat_completion", answer)
    with pytest.raises(AIServiceError):
        await service.generate_reply("oi", {})


def test_context_prompt():
    prompt = build_context_prompt(
        {
            "customer_name": "Maria",
            "intent": "reforma",
            "previous_messages": "user: oi",
            "session_data": {"needs_scheduling": True},
        }
    )

    assert "Nome do cliente: Maria" in prompt
    assert "Intenção identificada: reforma" in prompt
    assert '"needs_scheduling": true' in prompt
