"""Web chat adapter.

There is no connection state: every request is one full turn, correlated
only by the client's ``session_id``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping


class WebChatPayloadError(ValueError):
    """Raised when a chat request lacks the fields needed for a turn."""


@dataclass(slots=True, frozen=True)
class WebChatTurn:
    message: str
    session_id: str
    user_id: str | None = None
    phone: str | None = None
    email: str | None = None


def _optional_text(payload: Mapping[str, Any], key: str) -> str | None:
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, (str, int)):
        raise WebChatPayloadError(f"Field '{key}' must be a string")
    text = str(value).strip()
    return text or None


def parse_webchat_payload(payload: Any) -> WebChatTurn:
    if not isinstance(payload, Mapping):
        raise WebChatPayloadError("Request body must be a JSON object")

    message = payload.get("message")
    session_id = payload.get("session_id")
    if not isinstance(message, str) or not message.strip():
        raise WebChatPayloadError("Missing message")
    if not isinstance(session_id, (str, int)) or not str(session_id).strip():
        raise WebChatPayloadError("Missing session_id")

    return WebChatTurn(
        message=message.strip(),
        session_id=str(session_id).strip(),
        user_id=_optional_text(payload, "user_id"),
        phone=_optional_text(payload, "phone"),
        email=_optional_text(payload, "email"),
    )
