from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import asyncpg
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from support_engine.api.routes import chat, metrics, ping, queue, tickets, whatsapp
from support_engine.channels import (
    InMemoryRateLimiter,
    MessageTemplates,
    RateLimiter,
    RedisRateLimiter,
    WhatsAppClient,
    WhatsAppConfigurationError,
)
from support_engine.core.config import Settings, get_settings
from support_engine.core.logging import configure_logging, init_tracer, shutdown_tracer
from support_engine.ingest import ConversationEngine
from support_engine.nlu import IntentClassifier, LLMClassifier
from support_engine.orders import OrderLocator, PostgresOrderGateway
from support_engine.queue import QueueWorker
from support_engine.tickets import TicketRepository, TicketService

logger = logging.getLogger(__name__)


def build_rate_limiter(settings: Settings) -> RateLimiter:
    if settings.redis_url:
        return RedisRateLimiter.from_url(
            settings.redis_url, settings.whatsapp_rate_limit, settings.whatsapp_rate_window_seconds
        )
    logger.warning("REDIS_URL not set; WhatsApp rate limits are enforced per process only")
    return InMemoryRateLimiter(settings.whatsapp_rate_limit, settings.whatsapp_rate_window_seconds)


def build_whatsapp_client(settings: Settings, rate_limiter: RateLimiter) -> WhatsAppClient | None:
    try:
        return WhatsAppClient.from_settings(settings, rate_limiter)
    except WhatsAppConfigurationError as exc:
        logger.warning("WhatsApp channel disabled: %s", exc)
        return None


@asynccontextmanager
async def lifespan(app: FastAPI):  # pragma: no cover - executed by framework
    settings = get_settings()
    app.state.logger = configure_logging(settings)
    tracer_provider = init_tracer(settings)
    app.state.tracer_provider = tracer_provider

    rate_limiter = build_rate_limiter(settings)
    whatsapp_client = build_whatsapp_client(settings, rate_limiter)
    llm_classifier = LLMClassifier.from_settings(settings)
    if llm_classifier is None:
        logger.info("OPENAI_API_KEY not set; intent classification uses keyword rules only")

    app.state.whatsapp_client = whatsapp_client
    app.state.ticket_service = None
    app.state.engine = None
    app.state.queue_worker = None
    pool: asyncpg.Pool | None = None
    try:
        pool = await asyncpg.create_pool(dsn=settings.postgres_dsn, min_size=1, max_size=5)
        ticket_service = TicketService(TicketRepository(pool))
        await ticket_service.ensure_schema()
        order_gateway = PostgresOrderGateway(pool)
        templates = MessageTemplates.from_settings(settings)

        app.state.ticket_service = ticket_service
        app.state.engine = ConversationEngine(
            classifier=IntentClassifier(llm=llm_classifier),
            locator=OrderLocator(order_gateway),
            orders=order_gateway,
            tickets=ticket_service,
            channel=whatsapp_client,
            templates=templates,
        )
        app.state.queue_worker = QueueWorker.from_settings(
            settings,
            tickets=ticket_service,
            orders=order_gateway,
            channel=whatsapp_client,
        )
    except Exception:  # pragma: no cover - service initialisation best effort
        logger.exception("Database initialisation failed; ticket endpoints will answer 503")
        if pool is not None:
            await pool.close()
            pool = None
    try:
        yield
    finally:
        if whatsapp_client is not None:
            await whatsapp_client.aclose()
        if llm_classifier is not None:
            await llm_classifier.aclose()
        if isinstance(rate_limiter, RedisRateLimiter):
            await rate_limiter.close()
        if pool is not None:
            await pool.close()
        shutdown_tracer(tracer_provider)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.info("Rejected malformed request to %s: %s", request.url.path, exc.errors())
    return JSONResponse(status_code=400, content={"error": "Invalid request"})


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
    app.include_router(ping.router)
    app.include_router(metrics.router)
    app.include_router(chat.router)
    app.include_router(whatsapp.router)
    app.include_router(queue.router)
    app.include_router(tickets.router)
    return app


app = create_app()
