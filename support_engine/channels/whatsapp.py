"""WhatsApp Cloud API adapter: outbound sends and inbound webhook parsing."""

from __future__ import annotations

import hashlib
import hmac
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping, Protocol, Sequence

import httpx
from redis.exceptions import RedisError

from support_engine.contacts import format_phone_for_whatsapp, is_valid_whatsapp_number
from support_engine.core.config import Settings
from support_engine.metrics import MetricsRegistry, metrics_registry

from .rate_limit import RateLimiter

logger = logging.getLogger(__name__)


class WhatsAppConfigurationError(RuntimeError):
    """Raised when the adapter is built without Cloud API credentials."""


class InboundPayloadError(ValueError):
    """Raised when a webhook body does not look like a Cloud API notification."""


@dataclass(slots=True, frozen=True)
class SendResult:
    success: bool
    message_id: str | None = None
    error: str | None = None


@dataclass(slots=True, frozen=True)
class InboundMessage:
    """One inbound WhatsApp message, normalized out of the webhook envelope."""

    sender: str
    message_id: str
    type: str
    text: str | None = None
    timestamp: datetime | None = None
    context_message_id: str | None = None


def _extract_error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text or "unknown error"

    if isinstance(data, Mapping):
        error = data.get("error")
        if isinstance(error, Mapping) and "message" in error:
            return str(error["message"])
    return "unknown error"


@dataclass(slots=True)
class WhatsAppClient:
    """Cloud API client.

    Sends never raise: delivery problems come back as a failed
    :class:`SendResult` after being logged and counted, so callers can keep
    their transcript bookkeeping going regardless of the transport.
    """

    phone_number_id: str | None
    access_token: str | None
    rate_limiter: RateLimiter
    api_base: str = "https://graph.facebook.com/v18.0"
    language_code: str = "ro"
    timeout: float = 10.0
    http_client: httpx.AsyncClient | None = None
    metrics: MetricsRegistry = field(default=metrics_registry)

    def __post_init__(self) -> None:
        if not self.phone_number_id or not self.access_token:
            raise WhatsAppConfigurationError("WhatsApp phone number id and access token must both be configured")
        if self.http_client is None:
            self.http_client = httpx.AsyncClient(timeout=self.timeout)

    @classmethod
    def from_settings(cls, settings: Settings, rate_limiter: RateLimiter) -> "WhatsAppClient":
        return cls(
            phone_number_id=settings.whatsapp_phone_number_id,
            access_token=settings.whatsapp_access_token,
            rate_limiter=rate_limiter,
            api_base=settings.whatsapp_api_base,
            language_code=settings.whatsapp_language_code,
            timeout=settings.whatsapp_timeout_seconds,
        )

    @property
    def messages_url(self) -> str:
        return f"{self.api_base.rstrip('/')}/{self.phone_number_id}/messages"

    async def send_text(self, to: str, body: str) -> SendResult:
        recipient = self._recipient(to)
        if recipient is None:
            return self._failed("invalid_recipient", to)
        payload = {
            "messaging_product": "whatsapp",
            "to": recipient,
            "type": "text",
            "text": {"body": body},
        }
        return await self._send(recipient, payload)

    async def send_template(
        self,
        to: str,
        template_name: str,
        parameters: Sequence[str] = (),
        *,
        language_code: str | None = None,
    ) -> SendResult:
        recipient = self._recipient(to)
        if recipient is None:
            return self._failed("invalid_recipient", to)
        template: dict[str, Any] = {
            "name": template_name,
            "language": {"code": language_code or self.language_code},
        }
        if parameters:
            template["components"] = [
                {
                    "type": "body",
                    "parameters": [{"type": "text", "text": str(value)} for value in parameters],
                }
            ]
        payload = {
            "messaging_product": "whatsapp",
            "to": recipient,
            "type": "template",
            "template": template,
        }
        return await self._send(recipient, payload)

    async def aclose(self) -> None:
        if self.http_client is not None:
            await self.http_client.aclose()

    def _recipient(self, to: str) -> str | None:
        if not is_valid_whatsapp_number(to):
            return None
        return format_phone_for_whatsapp(to)

    async def _send(self, recipient: str, payload: Mapping[str, Any]) -> SendResult:
        try:
            allowed = await self.rate_limiter.hit(recipient)
        except RedisError as exc:
            logger.error("Rate limiter unavailable, WhatsApp send to %s skipped: %s", recipient, exc)
            return self._failed("rate_limiter_unavailable", recipient)
        if not allowed:
            logger.warning("WhatsApp send to %s dropped: rate limit reached", recipient)
            return self._failed("rate_limited", recipient)

        headers = {
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": "application/json",
        }
        try:
            response = await self.http_client.post(self.messages_url, headers=headers, json=payload)
        except httpx.HTTPError as exc:
            logger.error("WhatsApp send to %s failed: %s", recipient, exc)
            return self._failed("network_error", recipient)

        if response.status_code >= 400:
            logger.error(
                "WhatsApp API rejected send to %s [%s]: %s",
                recipient,
                response.status_code,
                _extract_error_message(response),
            )
            return self._failed(f"http_{response.status_code}", recipient)

        message_id: str | None = None
        try:
            message_id = response.json()["messages"][0]["id"]
        except (ValueError, KeyError, IndexError, TypeError):
            logger.warning("WhatsApp API response for %s carried no message id", recipient)

        self.metrics.counter("support_whatsapp_sends_total").inc(labels={"outcome": "sent"})
        logger.info("WhatsApp message sent to %s", recipient)
        return SendResult(success=True, message_id=message_id)

    def _failed(self, error: str, recipient: str) -> SendResult:
        self.metrics.counter("support_whatsapp_sends_total").inc(labels={"outcome": error})
        if error == "invalid_recipient":
            logger.warning("Refusing WhatsApp send to non-Romanian or malformed number %r", recipient)
        return SendResult(success=False, error=error)


def _parse_timestamp(value: Any) -> datetime | None:
    try:
        return datetime.fromtimestamp(int(value), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError):
        return None


def parse_inbound_payload(body: Any) -> list[InboundMessage]:
    """Flatten a Cloud API webhook notification into inbound messages.

    Only ``text`` messages are returned; status callbacks and other message
    types are skipped. A body without an ``entry`` list is rejected.
    """

    if not isinstance(body, Mapping) or not isinstance(body.get("entry"), list):
        raise InboundPayloadError("Webhook body has no entry list")

    messages: list[InboundMessage] = []
    for entry in body["entry"]:
        if not isinstance(entry, Mapping):
            continue
        for change in entry.get("changes") or []:
            value = change.get("value") if isinstance(change, Mapping) else None
            if not isinstance(value, Mapping):
                continue
            for raw in value.get("messages") or []:
                message = _parse_message(raw)
                if message is not None:
                    messages.append(message)
    return messages


def _parse_message(raw: Any) -> InboundMessage | None:
    if not isinstance(raw, Mapping):
        return None
    message_type = raw.get("type")
    if message_type != "text":
        logger.debug("Ignoring inbound WhatsApp message of type %r", message_type)
        return None
    text = raw.get("text")
    body = text.get("body") if isinstance(text, Mapping) else None
    sender = raw.get("from")
    if not isinstance(body, str) or not isinstance(sender, str) or not body.strip():
        return None
    context = raw.get("context")
    return InboundMessage(
        sender=sender,
        message_id=str(raw.get("id") or ""),
        type="text",
        text=body,
        timestamp=_parse_timestamp(raw.get("timestamp")),
        context_message_id=context.get("id") if isinstance(context, Mapping) else None,
    )


def verify_webhook_token(mode: str | None, token: str | None, expected: str | None) -> bool:
    """Check the subscription handshake Meta performs when the webhook is registered."""

    if mode != "subscribe" or not token or not expected:
        return False
    return hmac.compare_digest(token, expected)


def verify_signature(payload: bytes, signature: str | None, secret: str) -> bool:
    """Validate the ``X-Hub-Signature-256`` header against the raw body."""

    if not signature or not signature.startswith("sha256="):
        return False
    expected = hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature[len("sha256="):])


class TextChannel(Protocol):
    """Anything that can deliver a plain text message to a WhatsApp number."""

    async def send_text(self, to: str, body: str) -> SendResult:
        ...
