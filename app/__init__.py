"""
Artestofados bot: WhatsApp customer-service assistant for an upholstery shop.

This package provides a FastAPI application that receives WhatsApp webhooks,
walks customers through a menu-driven (or AI-assisted) intake conversation,
hands conversations over to human operators and records service requests.
"""

__version__ = "0.1.0"
