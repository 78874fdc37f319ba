"""
SDK for Scam Guard.

Adapters to the external analysis engine and notification channel.
"""

from .openai_engine import OpenAIScanEngine
from .webhook import WebhookNotificationChannel

__all__ = ["OpenAIScanEngine", "WebhookNotificationChannel"]
