from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from support_engine.channels import WebChatPayloadError, parse_webchat_payload
from support_engine.dependencies.services import EngineDep
from support_engine.nlu import Intent

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["chat"])


class ChatWebhookResponse(BaseModel):
    response: str
    order_id: str | None = None
    intent: Intent
    confidence: float


@router.post("/webhook", response_model=ChatWebhookResponse)
async def chat_webhook(request: Request, engine: EngineDep) -> ChatWebhookResponse | JSONResponse:
    try:
        payload = await request.json()
    except ValueError:
        return JSONResponse(status_code=400, content={"error": "Invalid JSON body"})

    try:
        turn = parse_webchat_payload(payload)
    except WebChatPayloadError as exc:
        logger.info("Rejected web chat request: %s", exc)
        return JSONResponse(status_code=400, content={"error": "Missing required fields"})

    reply = await engine.handle_webchat(turn)
    return ChatWebhookResponse(
        response=reply.response,
        order_id=reply.order_id,
        intent=reply.intent,
        confidence=reply.confidence,
    )
