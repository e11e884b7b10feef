import pytest
from fastapi import status
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.config import settings
from app.main import create_app
from conftest import RecordingClient

CUSTOMER = "5583999990000"


@pytest.fixture
def outbound():
    return RecordingClient()


@pytest.fixture
def client(tmp_path, monkeypatch, outbound):
    """Test client for an app wired to a throwaway database and fake transport"""
    monkeypatch.setattr(settings, "INFLIGHT_RELEASE_SECONDS", 0)
    monkeypatch.setattr(settings, "WHATSAPP_VERIFY_TOKEN", "verify-me")
    monkeypatch.setattr(settings, "BOT_MODE", "menu")
    monkeypatch.setattr(settings, "FLOW_NAME", "estofados")

    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'api.db'}")
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    app = create_app(
        db_engine=engine,
        session_factory=factory,
        client=outbound,
        enable_cleanup=False,
    )
    with TestClient(app) as test_client:
        yield test_client


def zapi(text, **overrides):
    payload = {
        "type": "ReceivedCallback",
        "phone": CUSTOMER,
        "senderName": "Maria",
        "isGroup": False,
        "fromMe": False,
        "text": {"message": text},
    }
    payload.update(overrides)
    return payload


def test_root(client):
    response = client.get("/")
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["status"] == "ok"


def test_webhook_verification(client):
    response = client.get(
        "/webhook",
        params={
            "hub.mode": "subscribe",
            "hub.verify_token": "verify-me",
            "hub.challenge": "12345",
        },
    )
    assert response.status_code == status.HTTP_200_OK
    assert response.text == "12345"


def test_webhook_verification_wrong_token(client):
    response = client.get(
        "/webhook",
        params={"hub.mode": "subscribe", "hub.verify_token": "nope", "hub.challenge": "1"},
    )
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_webhook_rejects_invalid_json(client):
    response = client.post(
        "/webhook", content=b"not json", headers={"Content-Type": "application/json"}
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_customer_message_gets_menu(client, outbound):
    response = client.post("/webhook", json=zapi("oi"))

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["outcomes"] == ["processed"]
    assert outbound.last.kind == "menu"
    assert outbound.last.user_id == CUSTOMER


def test_bot_echo_does_not_pause_customer(client, outbound):
    client.post("/webhook", json=zapi("oi"))

    response = client.post(
        "/webhook", json=zapi("Olá Maria! Bem-vindo(a)", fromMe=True, fromApi=True)
    )
    assert response.json()["message"] == "Non-message event processed"
    assert client.get("/api/bot/paused-users").json()["count"] == 0

    response = client.post("/webhook", json=zapi("fabricacao"))
    assert response.json()["outcomes"] == ["processed"]


def test_operator_takeover_and_resume(client, outbound):
    response = client.post("/webhook", json=zapi("Oi Maria, aqui é a Ana", fromMe=True))
    assert response.json()["outcomes"] == ["paused_by_operator"]
    assert outbound.sent == []

    paused = client.get("/api/bot/paused-users").json()
    assert paused["count"] == 1
    assert paused["users"][0]["user_id"] == CUSTOMER
    assert paused["users"][0]["minutes_remaining"] in (119, 120)

    response = client.post("/webhook", json=zapi("alô?"))
    assert response.json()["outcomes"] == ["ignored_paused"]
    assert outbound.sent == []

    response = client.post(f"/api/bot/resume-user/{CUSTOMER}")
    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"user_id": CUSTOMER, "resumed": True}

    response = client.post(f"/api/bot/resume-user/{CUSTOMER}")
    assert response.status_code == status.HTTP_404_NOT_FOUND

    response = client.post("/webhook", json=zapi("alô?"))
    assert response.json()["outcomes"] == ["processed"]


def test_reactivation_command_over_webhook(client, outbound):
    client.post("/webhook", json=zapi("deixa comigo", fromMe=True))

    response = client.post("/webhook", json=zapi("#ativar"))

    assert response.json()["outcomes"] == ["resumed"]
    assert "reativado" in outbound.last.text


def test_admin_pause_user(client):
    response = client.post(
        "/api/bot/pause-user", json={"user_id": "5583911112222@c.us", "hours": 1}
    )

    assert response.status_code == status.HTTP_201_CREATED
    body = response.json()
    assert body["user_id"] == "5583911112222"
    assert body["minutes_remaining"] == 60

    assert client.get("/api/bot/status").json()["paused_users"] == 1


def test_admin_pause_user_rejects_bad_hours(client):
    response = client.post("/api/bot/pause-user", json={"user_id": "1", "hours": 0})
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_full_conversation_creates_intake(client, outbound):
    for text in ["oi", "fabricacao", "sofa", "sim", "presencial", "25/10/2025 14:30"]:
        response = client.post("/webhook", json=zapi(text))
        assert response.json()["outcomes"] == ["processed"]

    intakes = client.get("/api/intakes").json()

    assert intakes["total"] == 1
    intake = intakes["intakes"][0]
    assert intake["service"] == "Fabricação"
    assert intake["scheduled_for"] == "25/10/2025 14:30"
    assert intake["status"] == "Pendente"
    assert intake["phone"] == CUSTOMER
    assert "registrada com sucesso" in outbound.last.text

    assert client.get("/api/intakes", params={"status": "Concluído"}).json()["total"] == 0


def test_bot_status(client):
    client.post("/webhook", json=zapi("oi"))

    body = client.get("/api/bot/status").json()

    assert body["mode"] == "menu"
    assert body["flow"] == "estofados"
    assert body["active_sessions"] == 1
    assert body["paused_users"] == 0
    assert body["cleanup_running"] is False


def test_health(client):
    body = client.get("/api/health").json()
    assert body["status"] == "ok"
    assert body["database"] == "ok"
