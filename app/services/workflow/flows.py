"""
Menu flow definitions.

A flow is a list of categories shown on the first menu. Each category walks
through its own option steps, optionally asks for a date and time, and then
finishes the intake. Two flows ship with the bot: ``estofados``
(fabrication / repair) and ``classico`` (quote / visit / order / attendant).
"""

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from app.config import settings
from app.constants import MESSAGES
from app.services.conversation.session_store import ConversationStep
from app.services.types import ButtonItem, MenuOption
from app.utils import normalize_text

MEDIA_PREFIX = "MEDIA_MESSAGE:"


class FlowOption(BaseModel):
    id: str
    label: str
    description: str = ""
    aliases: List[str] = Field(default_factory=list)
    # Stored in the session fields; defaults to the label
    value: Optional[str] = None
    # Skip the rest of the branch (including the date) and finish
    ends_branch: bool = False

    @property
    def stored_value(self) -> str:
        return self.value or self.label


class FlowStep(BaseModel):
    step: ConversationStep
    field: str
    label: str
    prompt: str
    options: List[FlowOption] = Field(default_factory=list)
    style: Literal["menu", "buttons"] = "buttons"
    accepts_media: bool = False


class FlowCategory(BaseModel):
    option: FlowOption
    service: str
    steps: List[FlowStep] = Field(default_factory=list)
    intro: Optional[str] = None
    ask_datetime: bool = False
    closing: Optional[str] = MESSAGES["finalized"]

    def find_step(self, step: ConversationStep) -> Optional[FlowStep]:
        for flow_step in self.steps:
            if flow_step.step == step:
                return flow_step
        return None

    def next_step(self, after: Optional[ConversationStep]) -> Optional[FlowStep]:
        """The step following ``after``; the first step when ``after`` is None."""
        if after is None:
            return self.steps[0] if self.steps else None
        for index, flow_step in enumerate(self.steps):
            if flow_step.step == after:
                following = index + 1
                return self.steps[following] if following < len(self.steps) else None
        return None


class FlowDefinition(BaseModel):
    name: str
    categories: List[FlowCategory]

    def category_options(self) -> List[FlowOption]:
        return [category.option for category in self.categories]

    def find_category(self, category_id: Optional[str]) -> Optional[FlowCategory]:
        for category in self.categories:
            if category.option.id == category_id:
                return category
        return None


def match_option(
    message: str, options: List[FlowOption], allow_numeric: Optional[bool] = None
) -> Optional[FlowOption]:
    """
    Resolve a reply to one of the options.

    Accepts the option id (rich menu / button reply), its label, any alias,
    and, when enabled, the 1-based position in the list.
    """
    if allow_numeric is None:
        allow_numeric = settings.ACCEPT_NUMERIC_SHORTCUTS

    text = normalize_text(message)
    if not text:
        return None

    if allow_numeric and text.isdigit():
        position = int(text)
        if 1 <= position <= len(options):
            return options[position - 1]
        return None

    for option in options:
        candidates = [option.id, option.label, *option.aliases]
        if text in {normalize_text(candidate) for candidate in candidates}:
            return option
    return None


def to_menu_options(options: List[FlowOption]) -> List[MenuOption]:
    return [
        {"id": option.id, "title": option.label, "description": option.description}
        for option in options
    ]


def to_buttons(options: List[FlowOption]) -> List[ButtonItem]:
    return [{"id": option.id, "title": option.label} for option in options]


def is_media_message(message: str) -> bool:
    return message.startswith(MEDIA_PREFIX)


def _furniture_step(action: str) -> FlowStep:
    return FlowStep(
        step=ConversationStep.AWAITING_SUBTYPE,
        field="furniture",
        label="Móvel",
        prompt=MESSAGES["subtype_prompt"].format(action=action),
        style="menu",
        options=[
            FlowOption(id="sofa", label="Sofá", aliases=["sofas", "sofá"]),
            FlowOption(id="cadeira", label="Cadeira", aliases=["cadeiras"]),
            FlowOption(id="poltrona", label="Poltrona", aliases=["poltronas"]),
            FlowOption(id="cama", label="Cama", aliases=["camas", "cama estofada"]),
        ],
    )


YES_ALIASES = ["sim", "s", "yes"]
NO_ALIASES = ["nao", "n", "não", "no"]


ESTOFADOS_FLOW = FlowDefinition(
    name="estofados",
    categories=[
        FlowCategory(
            option=FlowOption(
                id="fabricacao",
                label="Fabricação",
                description="Móveis estofados sob medida",
                aliases=["fabricar", "fabrication", "novo"],
            ),
            service="Fabricação",
            ask_datetime=True,
            steps=[
                _furniture_step("fabricar"),
                FlowStep(
                    step=ConversationStep.AWAITING_HAS_DESIGN,
                    field="has_design",
                    label="Possui projeto",
                    prompt=MESSAGES["has_design_prompt"],
                    options=[
                        FlowOption(
                            id="com_projeto",
                            label="Sim, tenho",
                            value="Sim",
                            aliases=YES_ALIASES + ["tenho"],
                        ),
                        FlowOption(
                            id="sem_projeto",
                            label="Não tenho",
                            value="Não",
                            aliases=NO_ALIASES + ["nao tenho", "no design"],
                        ),
                    ],
                ),
                FlowStep(
                    step=ConversationStep.AWAITING_MEETING_KIND,
                    field="meeting_kind",
                    label="Reunião",
                    prompt=MESSAGES["meeting_kind_prompt"],
                    options=[
                        FlowOption(
                            id="online",
                            label="Reunião online",
                            value="Online",
                            aliases=["online", "video", "chamada"],
                        ),
                        FlowOption(
                            id="presencial",
                            label="Presencial",
                            value="Presencial",
                            aliases=["loja", "visita", "pessoalmente"],
                        ),
                    ],
                ),
            ],
        ),
        FlowCategory(
            option=FlowOption(
                id="reforma",
                label="Reforma",
                description="Restauração de móveis existentes",
                aliases=["reformar", "repair", "conserto"],
            ),
            service="Reforma",
            ask_datetime=True,
            steps=[
                _furniture_step("reformar"),
                FlowStep(
                    step=ConversationStep.AWAITING_PHOTO,
                    field="photo",
                    label="Foto",
                    prompt=MESSAGES["photo_prompt"],
                    accepts_media=True,
                    options=[
                        FlowOption(
                            id="foto_depois",
                            label="Enviar depois",
                            value="Enviará depois",
                            aliases=["depois", "pular", "sem foto"],
                        ),
                    ],
                ),
            ],
        ),
    ],
)


CLASSICO_FLOW = FlowDefinition(
    name="classico",
    categories=[
        FlowCategory(
            option=FlowOption(
                id="orcamento",
                label="Solicitar orçamento",
                description="Receba um orçamento personalizado",
                aliases=["orçamento"],
            ),
            service="Orçamento",
            ask_datetime=True,
            steps=[
                FlowStep(
                    step=ConversationStep.AWAITING_SCHEDULE_CHOICE,
                    field="wants_visit",
                    label="Deseja visita",
                    prompt=MESSAGES["schedule_choice_prompt"],
                    options=[
                        FlowOption(id="sim", label="Sim", aliases=YES_ALIASES),
                        FlowOption(
                            id="nao", label="Não", aliases=NO_ALIASES, ends_branch=True
                        ),
                    ],
                ),
            ],
        ),
        FlowCategory(
            option=FlowOption(
                id="agendar",
                label="Agendar visita",
                description="Agende uma visita técnica",
                aliases=["agendamento", "visita"],
            ),
            service="Agendamento de visita",
            ask_datetime=True,
        ),
        FlowCategory(
            option=FlowOption(
                id="consultar",
                label="Consultar pedido",
                description="Verifique o status do seu pedido",
                aliases=["pedido", "status"],
            ),
            service="Consulta de pedido",
            intro=MESSAGES["order_status"].format(phone=settings.BUSINESS_PHONE),
            closing=None,
        ),
        FlowCategory(
            option=FlowOption(
                id="atendente",
                label="Falar com atendente",
                description="Fale diretamente com nossa equipe",
                aliases=["atendente", "humano"],
            ),
            service="Atendimento humano",
            intro=MESSAGES["human_handoff"],
            closing=None,
        ),
    ],
)


FLOWS: Dict[str, FlowDefinition] = {
    ESTOFADOS_FLOW.name: ESTOFADOS_FLOW,
    CLASSICO_FLOW.name: CLASSICO_FLOW,
}


def get_flow(name: Optional[str] = None) -> FlowDefinition:
    return FLOWS[name or settings.FLOW_NAME]
