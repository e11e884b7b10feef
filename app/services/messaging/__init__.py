"""
Outbound WhatsApp messaging for the intake bot.

Sends replies through the Meta Cloud API or Z-API, degrading menus and
buttons to numbered text where the transport cannot render them.
"""

from app.services.messaging.client import (
    MessagingClient,
    WhatsAppCloudClient,
    ZApiClient,
    build_messaging_client,
)

__all__ = [
    "MessagingClient",
    "WhatsAppCloudClient",
    "ZApiClient",
    "build_messaging_client",
]
