from app.config import settings

# WhatsApp message templates
MESSAGES = {
    "greeting": "Olá {name}! 👋\n\nBem-vindo(a) à *{business}*! 🛋️\n\nComo posso ajudá-lo(a) hoje?",
    "invalid_option": "Opção inválida. Por favor, selecione uma das opções abaixo.",
    "numbered_hint": "Digite o número da opção desejada.",
    "menu_button": "Ver opções",
    "menu_section": "Menu de Opções",
    # Menu flow prompts
    "subtype_prompt": "Qual móvel você deseja {action}?",
    "has_design_prompt": "Você já tem um projeto ou modelo do móvel? 📐",
    "meeting_kind_prompt": "Como prefere conversar com nossa equipe sobre o projeto?",
    "photo_prompt": "Envie uma foto do móvel que precisa de reforma 📸\n\nSe preferir, escolha *Enviar depois*.",
    "photo_text_instead": "Ainda não recebi a foto. Envie uma imagem do móvel ou escolha *Enviar depois*.",
    "schedule_choice_prompt": "Ótimo! Vou registrar sua solicitação de orçamento. 📋\n\nGostaria de agendar uma visita?",
    "datetime_prompt": "Por favor, informe a data e horário desejado no formato:\nDD/MM/AAAA HH:MM\n\nExemplo: 15/10/2025 14:30",
    "datetime_invalid": "Data inválida. Por favor, use o formato: DD/MM/AAAA HH:MM\n\nExemplo: 15/10/2025 14:30",
    "datetime_confirmed": "Agendamento registrado para: {when} ✅\n\nEm breve confirmaremos seu horário.",
    "order_status": "Para consultar seu pedido, entre em contato pelo telefone: {phone}\n\nOu aguarde que um atendente irá lhe ajudar em breve.",
    "human_handoff": "Um de nossos atendentes irá lhe responder em breve. 👤\n\nAguarde um momento, por favor.",
    "finalized": "Sua solicitação foi registrada com sucesso! ✅\n\nEm breve nossa equipe entrará em contato.\n\nObrigado por escolher a {business}! 🛋️",
    "finalize_failed": "Erro ao registrar atendimento. Por favor, envie qualquer mensagem para tentar novamente.",
    "restart": "Vamos recomeçar o atendimento. 🔄",
    # Pause control
    "reactivated": "✅ Bot reativado com sucesso!\n\nO atendimento automático está funcionando novamente.",
    "already_active": "ℹ️ O bot já está ativo para este chat.",
    # Degraded paths
    "fallback": "Desculpe, {name}! 😅\n\nTive um probleminha técnico, mas nossa equipe irá retornar seu contato em breve.\n\n📞 Para urgências: {phone}",
    "scheduling_note": "📅 Nossa equipe entrará em contato para confirmar o melhor horário!",
}

# Intent labels returned by the classifier and the service they map to
INTENT_SERVICES = {
    "fabricacao": "Fabricação de Móveis",
    "reforma": "Reforma de Móveis",
    "orcamento": "Solicitação de Orçamento",
    "agendamento": "Agendamento de Visita",
    "duvida": "Dúvidas Gerais",
}
DEFAULT_INTENT_SERVICE = "Atendimento Geral"
NON_INTAKE_INTENTS = {"cumprimento", "unknown", ""}

SCHEDULING_KEYWORDS = [
    "agendar",
    "visita",
    "reunião",
    "horário",
    "data",
    "quando",
    "disponibilidade",
]


def fallback_message(name: str) -> str:
    return MESSAGES["fallback"].format(name=name, phone=settings.BUSINESS_PHONE)
