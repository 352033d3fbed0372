"""Transports between the engine and customers or sellers."""

from .rate_limit import InMemoryRateLimiter, RateLimiter, RedisRateLimiter
from .templates import MessageTemplates, order_status_message
from .webchat import WebChatPayloadError, WebChatTurn, parse_webchat_payload
from .whatsapp import (
    InboundMessage,
    InboundPayloadError,
    SendResult,
    TextChannel,
    WhatsAppClient,
    WhatsAppConfigurationError,
    parse_inbound_payload,
    verify_signature,
    verify_webhook_token,
)

__all__ = [
    "InMemoryRateLimiter",
    "InboundMessage",
    "InboundPayloadError",
    "MessageTemplates",
    "RateLimiter",
    "RedisRateLimiter",
    "SendResult",
    "TextChannel",
    "WebChatPayloadError",
    "WebChatTurn",
    "WhatsAppClient",
    "WhatsAppConfigurationError",
    "order_status_message",
    "parse_inbound_payload",
    "parse_webchat_payload",
    "verify_signature",
    "verify_webhook_token",
]
