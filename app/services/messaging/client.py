"""
WhatsApp messaging clients for sending replies to customers.

Two transports are supported: the Meta WhatsApp Cloud API and Z-API. Both
speak the same small interface (text, list menu, reply buttons); a transport
that only knows how to send text gets menus as numbered lists.
"""

from __future__ import annotations

from typing import Any, Dict, List

import httpx

from app.config import settings
from app.constants import MESSAGES
from app.logging import setup_logger
from app.services.types import ButtonItem, MenuOption

REQUEST_TIMEOUT = 15.0


def render_numbered_options(prompt: str, titles: List[str]) -> str:
    """Plain-text fallback for menus and buttons."""
    lines = [prompt, ""]
    for index, title in enumerate(titles, start=1):
        lines.append(f"{index}. {title}")
    lines.append("")
    lines.append(MESSAGES["numbered_hint"])
    return "\n".join(lines)


class MessagingClient:
    """
    Base class for messaging clients defining the interface for sending messages.

    Subclasses must implement ``send_text``. ``send_menu`` and
    ``send_buttons`` degrade to a numbered text list unless overridden.
    """

    def __init__(self):
        self.logger = setup_logger(__name__)

    async def send_text(self, user_id: str, text: str) -> bool:
        """
        Send a text message to a recipient.

        Args:
            user_id: Identifier for the message recipient
            text: Text content to send

        Returns:
            True when the platform accepted the message
        """
        raise NotImplementedError("Subclasses must implement this method")

    async def send_menu(
        self, user_id: str, prompt: str, options: List[MenuOption]
    ) -> bool:
        """Send a selectable list of options."""
        titles = []
        for option in options:
            description = option.get("description")
            titles.append(
                f"{option['title']} - {description}" if description else option["title"]
            )
        return await self.send_text(user_id, render_numbered_options(prompt, titles))

    async def send_buttons(
        self, user_id: str, prompt: str, buttons: List[ButtonItem]
    ) -> bool:
        """Send quick-reply buttons."""
        titles = [button["title"] for button in buttons]
        return await self.send_text(user_id, render_numbered_options(prompt, titles))

    async def close(self) -> None:
        return None


class HttpMessagingClient(MessagingClient):
    """Shared HTTP plumbing for the concrete transports."""

    def __init__(self):
        super().__init__()
        self._client = httpx.AsyncClient(timeout=httpx.Timeout(REQUEST_TIMEOUT))

    async def close(self) -> None:
        await self._client.aclose()

    async def _post(
        self,
        url: str,
        payload: Dict[str, Any],
        headers: Dict[str, str],
        user_id: str,
        content_type: str,
    ) -> bool:
        try:
            response = await self._client.post(url, headers=headers, json=payload)
        except httpx.HTTPError as e:
            self.logger.error(f"Exception sending {content_type} to {user_id}: {e}")
            return False

        if response.status_code >= 300:
            self._handle_api_error(response, user_id, content_type)
            return False

        self.logger.info(f"Sent {content_type} to {user_id}")
        return True

    def _handle_api_error(
        self, response: httpx.Response, user_id: str, content_type: str
    ) -> None:
        """Log a provider error response."""
        try:
            response_data = response.json()
        except ValueError:
            response_data = {"error": {"message": response.text}}

        error_info = response_data.get("error", {})
        if not isinstance(error_info, dict):
            error_info = {"message": str(error_info)}
        error_code = error_info.get("code", response.status_code)
        error_message = error_info.get("message", "Unknown error")

        if error_code == 131030:
            # Test numbers must be allow-listed in the Meta developer portal
            self.logger.error(
                f"WhatsApp API Error {error_code}: recipient {user_id} is not in the allowed list"
            )
        else:
            self.logger.error(
                f"Failed to send {content_type} to {user_id}: {error_message} (Code: {error_code})"
            )


class WhatsAppCloudClient(HttpMessagingClient):
    """WhatsApp Business Cloud API (graph.facebook.com) client."""

    MAX_REPLY_BUTTONS = 3
    MAX_TITLE_LENGTH = 20

    def __init__(self, token: str, phone_number_id: str):
        super().__init__()
        self.url = f"https://graph.facebook.com/v19.0/{phone_number_id}/messages"
        self.headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {token}",
        }

    async def send_text(self, user_id: str, text: str) -> bool:
        payload = {
            "messaging_product": "whatsapp",
            "recipient_type": "individual",
            "to": user_id,
            "type": "text",
            "text": {"preview_url": False, "body": text},
        }
        return await self._post(self.url, payload, self.headers, user_id, "message")

    async def send_buttons(
        self, user_id: str, prompt: str, buttons: List[ButtonItem]
    ) -> bool:
        if len(buttons) > self.MAX_REPLY_BUTTONS:
            options = [
                {"id": btn["id"], "title": btn["title"], "description": ""}
                for btn in buttons
            ]
            return await self.send_menu(user_id, prompt, options)

        payload = {
            "messaging_product": "whatsapp",
            "recipient_type": "individual",
            "to": user_id,
            "type": "interactive",
            "interactive": {
                "type": "button",
                "body": {"text": prompt},
                "action": {
                    "buttons": [
                        {
                            "type": "reply",
                            "reply": {
                                "id": btn["id"],
                                "title": btn["title"][: self.MAX_TITLE_LENGTH],
                            },
                        }
                        for btn in buttons
                    ]
                },
            },
        }
        return await self._post(
            self.url, payload, self.headers, user_id, "interactive buttons"
        )

    async def send_menu(
        self, user_id: str, prompt: str, options: List[MenuOption]
    ) -> bool:
        payload = {
            "messaging_product": "whatsapp",
            "recipient_type": "individual",
            "to": user_id,
            "type": "interactive",
            "interactive": {
                "type": "list",
                "body": {"text": prompt},
                "action": {
                    "button": MESSAGES["menu_button"],
                    "sections": [
                        {
                            "title": MESSAGES["menu_section"],
                            "rows": [
                                {
                                    "id": option["id"],
                                    "title": option["title"][:24],
                                    "description": option.get("description", "")[:72],
                                }
                                for option in options
                            ],
                        }
                    ],
                },
            },
        }
        return await self._post(
            self.url, payload, self.headers, user_id, "interactive list"
        )


class ZApiClient(HttpMessagingClient):
    """Z-API (api.z-api.io) client, the transport that reports operator echoes."""

    def __init__(self, instance_id: str, token: str, client_token: str = ""):
        super().__init__()
        self.base_url = f"https://api.z-api.io/instances/{instance_id}/token/{token}"
        self.headers = {"Content-Type": "application/json"}
        if client_token:
            self.headers["Client-Token"] = client_token

    async def send_text(self, user_id: str, text: str) -> bool:
        payload = {"phone": user_id, "message": text}
        return await self._post(
            f"{self.base_url}/send-text", payload, self.headers, user_id, "message"
        )

    async def send_menu(
        self, user_id: str, prompt: str, options: List[MenuOption]
    ) -> bool:
        payload = {
            "phone": user_id,
            "message": prompt,
            "optionList": {
                "title": MESSAGES["menu_section"],
                "buttonLabel": MESSAGES["menu_button"],
                "options": [
                    {
                        "id": option["id"],
                        "title": option["title"],
                        "description": option.get("description", ""),
                    }
                    for option in options
                ],
            },
        }
        return await self._post(
            f"{self.base_url}/send-option-list",
            payload,
            self.headers,
            user_id,
            "option list",
        )

    async def send_buttons(
        self, user_id: str, prompt: str, buttons: List[ButtonItem]
    ) -> bool:
        payload = {
            "phone": user_id,
            "message": prompt,
            "buttonList": {
                "buttons": [{"id": btn["id"], "label": btn["title"]} for btn in buttons]
            },
        }
        return await self._post(
            f"{self.base_url}/send-button-list",
            payload,
            self.headers,
            user_id,
            "button list",
        )


def build_messaging_client() -> MessagingClient:
    """Create the outbound client for the configured transport."""
    if settings.TRANSPORT == "cloud":
        return WhatsAppCloudClient(
            settings.WHATSAPP_TOKEN, settings.WHATSAPP_PHONE_NUMBER_ID
        )
    return ZApiClient(
        settings.ZAPI_INSTANCE_ID, settings.ZAPI_TOKEN, settings.ZAPI_CLIENT_TOKEN
    )
