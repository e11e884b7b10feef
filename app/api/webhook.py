from typing import Any, Dict, List, Optional

from fastapi import Response

from app.config import settings
from app.logging import log_exception, setup_logger
from app.services.conversation.dispatcher import MessageDispatcher
from app.services.types import InboundEvent
from app.services.workflow.flows import MEDIA_PREFIX
from app.utils import normalize_user_id

logger = setup_logger(__name__)

ZAPI_RECEIVED_CALLBACK = "ReceivedCallback"
CLOUD_MEDIA_TYPES = ["image", "video", "document"]


async def verify_webhook(
    hub_mode: str, hub_verify_token: str, hub_challenge: str
) -> Response:
    """
    Verify webhook request from WhatsApp Cloud API
    """
    if hub_verify_token and hub_verify_token == settings.WHATSAPP_VERIFY_TOKEN:
        logger.info(f"Verified webhook with mode: {hub_mode}")
        return Response(content=hub_challenge, media_type="text/plain")

    logger.error("Webhook verification failed")
    return Response(content="Invalid verification token", status_code=403)


async def handle_message(
    data: Dict[str, Any], dispatcher: MessageDispatcher
) -> Dict[str, Any]:
    """
    Process an incoming webhook from either transport
    """
    events = extract_events(data)
    if not events:
        return {"status": "success", "message": "Non-message event processed"}

    outcomes = []
    for event in events:
        try:
            outcome = await dispatcher.dispatch(event)
        except Exception as e:
            log_exception(logger, f"Error dispatching message from {event.user_id}", e)
            outcomes.append("error")
            continue
        logger.info(f"Message from {event.user_id}: {outcome.value}")
        outcomes.append(outcome.value)

    return {"status": "success", "outcomes": outcomes}


def extract_events(data: Dict[str, Any]) -> List[InboundEvent]:
    """
    Normalize a webhook payload into inbound events.
    Returns an empty list for status callbacks and unknown payloads
    """
    if data.get("object") == "whatsapp_business_account":
        return extract_cloud_events(data)
    if "phone" in data:
        event = extract_zapi_event(data)
        return [event] if event else []

    logger.warning(f"Unrecognized webhook payload keys: {list(data)[:10]}")
    return []


def extract_zapi_event(data: Dict[str, Any]) -> Optional[InboundEvent]:
    """
    Z-API "on message received" callback. Messages the business sends from
    its own phone arrive here too, flagged with ``fromMe``; messages the bot
    sent through the API also carry ``fromApi`` and are dropped.
    """
    callback_type = data.get("type", ZAPI_RECEIVED_CALLBACK)
    if callback_type != ZAPI_RECEIVED_CALLBACK:
        logger.debug(f"Ignoring Z-API callback of type {callback_type}")
        return None

    phone = str(data.get("phone") or "")
    if not phone:
        return None

    # Our own sends through the API come back as fromMe + fromApi
    if data.get("fromApi"):
        logger.debug(f"Ignoring API echo to {phone}")
        return None

    return InboundEvent(
        user_id=normalize_user_id(phone),
        display_name=data.get("senderName") or data.get("chatName") or "Cliente",
        is_group_chat=bool(data.get("isGroup")) or phone.endswith("-group"),
        is_from_operator=bool(data.get("fromMe")),
        content=extract_zapi_content(data),
    )


def extract_zapi_content(data: Dict[str, Any]) -> str:
    list_reply = data.get("listResponseMessage") or {}
    if list_reply.get("selectedRowId"):
        return list_reply["selectedRowId"]

    button_reply = data.get("buttonsResponseMessage") or {}
    if button_reply.get("buttonId"):
        return button_reply["buttonId"]

    text = data.get("text") or {}
    if text.get("message"):
        return text["message"]

    image = data.get("image") or {}
    if image:
        reference = data.get("messageId") or image.get("imageUrl", "")
        return f"{MEDIA_PREFIX}image:{reference}"

    return ""


def extract_cloud_events(data: Dict[str, Any]) -> List[InboundEvent]:
    """
    Meta Cloud API webhook. Customer messages come in ``messages``; messages
    typed by staff in the WhatsApp Business app come in ``message_echoes``.
    """
    events: List[InboundEvent] = []
    for entry in data.get("entry", []):
        for change in entry.get("changes", []):
            value = change.get("value", {})
            if not value or value.get("messaging_product") != "whatsapp":
                continue

            names = {
                contact.get("wa_id"): contact.get("profile", {}).get("name")
                for contact in value.get("contacts", [])
            }

            for message in value.get("messages", []):
                sender_id = message.get("from")
                if not sender_id:
                    continue
                events.append(
                    InboundEvent(
                        user_id=normalize_user_id(sender_id),
                        display_name=names.get(sender_id) or "Cliente",
                        content=extract_cloud_content(message),
                    )
                )

            for echo in value.get("message_echoes", []):
                customer_id = echo.get("to")
                if not customer_id:
                    continue
                events.append(
                    InboundEvent(
                        user_id=normalize_user_id(customer_id),
                        display_name=names.get(customer_id) or "Cliente",
                        is_from_operator=True,
                        content=extract_cloud_content(echo),
                    )
                )
    return events


def extract_cloud_content(message: Dict[str, Any]) -> str:
    message_type = message.get("type", "unknown")

    if message_type == "text":
        return message.get("text", {}).get("body", "")
    if message_type == "interactive":
        return extract_interactive_message(message)
    if message_type == "button":
        return message.get("button", {}).get("payload", "")
    if message_type in CLOUD_MEDIA_TYPES:
        media_id = message.get(message_type, {}).get("id")
        if not media_id:
            logger.error(f"Missing media ID for {message_type} message")
            return ""
        return f"{MEDIA_PREFIX}{message_type}:{media_id}"

    logger.info(f"Unprocessed message type: {message_type}")
    return ""


def extract_interactive_message(message: Dict[str, Any]) -> str:
    """Extract the selected id from interactive replies (buttons/lists)"""
    interactive = message.get("interactive", {})

    if "button_reply" in interactive:
        return interactive.get("button_reply", {}).get("id", "")
    elif "list_reply" in interactive:
        return interactive.get("list_reply", {}).get("id", "")
    else:
        logger.error(f"Unknown interactive format: {interactive}")
        return ""
