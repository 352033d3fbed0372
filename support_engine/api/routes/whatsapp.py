from __future__ import annotations

import json
import logging
from typing import Annotated

from fastapi import APIRouter, Header, Query, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from support_engine.channels import (
    InboundPayloadError,
    parse_inbound_payload,
    verify_signature,
    verify_webhook_token,
)
from support_engine.dependencies.auth import SettingsDep
from support_engine.dependencies.services import EngineDep

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/whatsapp", tags=["whatsapp"])


@router.get("/webhook", response_class=PlainTextResponse)
async def verify_webhook(
    settings: SettingsDep,
    mode: Annotated[str | None, Query(alias="hub.mode")] = None,
    token: Annotated[str | None, Query(alias="hub.verify_token")] = None,
    challenge: Annotated[str | None, Query(alias="hub.challenge")] = None,
) -> PlainTextResponse:
    if mode is None or token is None or challenge is None:
        return PlainTextResponse("Missing verification parameters", status_code=400)
    if verify_webhook_token(mode, token, settings.whatsapp_verify_token):
        logger.info("WhatsApp webhook verified")
        return PlainTextResponse(challenge)
    logger.warning("WhatsApp webhook verification failed")
    return PlainTextResponse("Forbidden", status_code=403)


@router.post("/webhook")
async def receive_webhook(
    request: Request,
    engine: EngineDep,
    settings: SettingsDep,
    signature: Annotated[str | None, Header(alias="X-Hub-Signature-256")] = None,
) -> JSONResponse:
    raw_body = await request.body()
    if settings.whatsapp_app_secret and not verify_signature(raw_body, signature, settings.whatsapp_app_secret):
        logger.warning("Rejected WhatsApp webhook with a bad signature")
        return JSONResponse(status_code=403, content={"error": "Invalid signature"})

    try:
        messages = parse_inbound_payload(json.loads(raw_body))
    except (ValueError, InboundPayloadError):
        return JSONResponse(status_code=400, content={"error": "Invalid webhook payload"})

    processed = 0
    for message in messages:
        # Meta redelivers the whole batch on a non-2xx answer, so one bad
        # message must not fail the others.
        try:
            await engine.handle_whatsapp(message)
        except Exception:
            logger.exception("Failed to handle WhatsApp message %s", message.message_id)
            continue
        processed += 1
    return JSONResponse(content={"status": "ok", "processed": processed})
