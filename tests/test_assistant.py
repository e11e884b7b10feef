import pytest

from app.constants import MESSAGES
from app.services.workflow.assistant import AssistantEngine, mentions_scheduling
from conftest import CUSTOMER_ID, say


class FakeAI:
    def __init__(self, intent="fabricacao", reply="Claro! Que tipo de sofá você procura?"):
        self.intent = intent
        self.reply = reply
        self.fail = False
        self.classify_calls = 0
        self.contexts = []

    async def classify_intent(self, text):
        self.classify_calls += 1
        return self.intent

    async def generate_reply(self, text, context):
        self.contexts.append(context)
        if self.fail:
            raise RuntimeError("openai unavailable")
        return self.reply


@pytest.fixture
def ai():
    return FakeAI()


@pytest.fixture
def assistant(messaging, sessions, repository, ai):
    return AssistantEngine(messaging, sessions, repository, ai, min_messages=3)


async def test_reply_is_sent_and_recorded(assistant, messaging, ai):
    session = await say(assistant, "Quero fazer um sofá")

    assert messaging.last.text == ai.reply
    assert [entry.role for entry in session.history] == ["user", "bot"]
    assert session.intent == "fabricacao"


async def test_intent_is_classified_once(assistant, ai):
    await say(assistant, "Quero fazer um sofá")
    await say(assistant, "De três lugares")

    assert ai.classify_calls == 1


async def test_intake_saved_once_after_enough_messages(assistant, repository):
    await say(assistant, "Quero fazer um sofá")
    assert repository.saved == []

    session = await say(assistant, "De três lugares, cinza")
    assert len(repository.saved) == 1
    assert session.intake_saved

    await say(assistant, "Pode ser veludo")
    assert len(repository.saved) == 1

    record = repository.saved[0]
    assert record.service == "Fabricação de Móveis"
    assert record.phone == CUSTOMER_ID
    assert record.status == "Pendente"
    assert record.details == "Quero fazer um sofá | De três lugares, cinza"


async def test_greetings_are_not_saved(messaging, sessions, repository):
    assistant = AssistantEngine(
        messaging, sessions, repository, FakeAI(intent="cumprimento"), min_messages=3
    )
    for text in ["oi", "tudo bem?", "boa tarde"]:
        await say(assistant, text)

    assert repository.saved == []


async def test_failed_save_is_retried_on_next_message(assistant, repository):
    repository.fail = True
    await say(assistant, "Quero fazer um sofá")
    session = await say(assistant, "De três lugares")
    assert not session.intake_saved

    repository.fail = False
    session = await say(assistant, "Cinza")
    assert session.intake_saved
    assert len(repository.saved) == 1


async def test_scheduling_reply_gets_note(messaging, sessions, repository):
    ai = FakeAI(reply="Podemos agendar uma visita técnica.")
    assistant = AssistantEngine(messaging, sessions, repository, ai)

    session = await say(assistant, "Vocês vão até minha casa?")

    assert messaging.last.text.endswith(MESSAGES["scheduling_note"])
    assert session.fields["needs_scheduling"] is True


async def test_ai_failure_sends_fallback(assistant, messaging, ai):
    ai.fail = True

    await say(assistant, "Quero reformar uma cadeira")

    assert "Maria" in messaging.last.text
    assert "(83) 3241-1234" in messaging.last.text


async def test_context_carries_previous_messages(assistant, ai):
    await say(assistant, "Quero fazer um sofá")
    await say(assistant, "De três lugares")

    context = ai.contexts[-1]
    assert context["customer_name"] == "Maria"
    assert context["intent"] == "fabricacao"
    assert "user: Quero fazer um sofá" in context["previous_messages"]
    assert "De três lugares" not in context["previous_messages"]


def test_mentions_scheduling():
    assert mentions_scheduling("Qual a melhor DATA para você?")
    assert not mentions_scheduling("Temos vários tecidos disponíveis")
