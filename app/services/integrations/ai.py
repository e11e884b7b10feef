import json
from typing import Any, Dict, List, Optional, Union

from openai import AsyncOpenAI

from app.config import settings
from app.logging import setup_logger

INTENT_LABELS = [
    "fabricacao",
    "reforma",
    "orcamento",
    "agendamento",
    "duvida",
    "cumprimento",
    "outros",
]

SYSTEM_PROMPT = """Você é o assistente virtual da {business}, empresa de fabricação e reforma de móveis estofados.

Dados da empresa:
- Telefone: {phone}
- Email: {email}
- Especialidades: sofás, cadeiras, poltronas e camas estofadas

Serviços:
1. Fabricação sob medida de móveis estofados
2. Reforma: troca de espuma, revestimento novo, reparo estrutural e modernização

Como atender:
- Seja cordial e objetivo, com poucos emojis
- Descubra se o cliente quer fabricar ou reformar e colete os detalhes do móvel
- Peça fotos quando ajudar na avaliação
- Sugira uma visita técnica ou reunião quando fizer sentido

Não faça:
- Não informe valores sem avaliar o projeto
- Não confirme horários, apenas registre a preferência do cliente
- Não prometa prazos

Se o assunto fugir de estofados, redirecione a conversa com educação."""

INTENT_PROMPT = """Classifique a intenção da mensagem do cliente em uma destas categorias:
- fabricacao: quer fabricar um móvel novo
- reforma: quer reformar um móvel existente
- orcamento: quer saber preços
- agendamento: quer agendar visita ou reunião
- duvida: tem dúvidas gerais
- cumprimento: está apenas cumprimentando
- outros: nenhuma das anteriores

Responda somente com a categoria."""


class AIServiceError(Exception):
    """The model returned no usable answer."""


class AIService:
    """Reply generation and intent classification backed by OpenAI."""

    def __init__(self, api_key: Optional[str] = None):
        self.logger = setup_logger(__name__)
        api_key = api_key or settings.OPENAI_API_KEY
        if not api_key:
            raise ValueError("OpenAI API key not provided.")

        self._client = AsyncOpenAI(
            api_key=api_key,
            timeout=settings.OPENAI_TIMEOUT,
            max_retries=settings.OPENAI_MAX_RETRIES,
        )

    async def create_chat_completion(
        self,
        messages: List[Dict[str, Union[str, Any]]],
        model: str = settings.OPENAI_MODEL,
        **kwargs: Any,
    ) -> str:
        """Create a chat completion; empty string when the call fails"""
        try:
            completion = await self._client.chat.completions.create(
                model=model,
                messages=messages,
                **kwargs,
            )
            if not completion.choices:
                return ""
            return (completion.choices[0].message.content or "").strip()
        except Exception as e:
            self.logger.error(f"Error creating chat completion: {e}")
            return ""

    async def generate_reply(self, text: str, context: Dict[str, Any]) -> str:
        """
        Generate the assistant's answer to a customer message.

        Args:
            text: The customer's latest message
            context: customer_name, intent, previous_messages and session_data

        Returns:
            The reply text

        Raises:
            AIServiceError: When the model gave no answer
        """
        messages = [
            {
                "role": "system",
                "content": SYSTEM_PROMPT.format(
                    business=settings.BUSINESS_NAME,
                    phone=settings.BUSINESS_PHONE,
                    email=settings.BUSINESS_EMAIL,
                ),
            },
            {"role": "system", "content": build_context_prompt(context)},
            {"role": "user", "content": text},
        ]
        reply = await self.create_chat_completion(
            messages,
            model=settings.OPENAI_MODEL,
            max_tokens=settings.OPENAI_MAX_TOKENS,
            temperature=settings.OPENAI_TEMPERATURE,
        )
        if not reply:
            raise AIServiceError("Empty reply from OpenAI")
        return reply

    async def classify_intent(self, text: str) -> str:
        """Return one of INTENT_LABELS, or "unknown"."""
        answer = await self.create_chat_completion(
            [
                {"role": "system", "content": INTENT_PROMPT},
                {"role": "user", "content": text},
            ],
            model=settings.OPENAI_INTENT_MODEL,
            max_tokens=10,
            temperature=0.1,
        )
        label = answer.strip().lower().strip(".")
        return label if label in INTENT_LABELS else "unknown"


def build_context_prompt(context: Dict[str, Any]) -> str:
    lines = ["Contexto da conversa:"]
    if context.get("customer_name"):
        lines.append(f"- Nome do cliente: {context['customer_name']}")
    if context.get("previous_messages"):
        lines.append(f"- Mensagens anteriores: {context['previous_messages']}")
    if context.get("intent"):
        lines.append(f"- Intenção identificada: {context['intent']}")
    if context.get("session_data"):
        lines.append(
            f"- Dados da sessão: {json.dumps(context['session_data'], ensure_ascii=False, default=str)}"
        )
    return "\n".join(lines)
