"""Routing of inbound customer and seller messages.

Customer text is classified, the order is located and either answered from
the ETA on file or forwarded to the seller through an ``order_eta`` ticket.
Seller text arriving on WhatsApp is read as the answer to their most recent
waiting ticket, unless it names the order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import assert_never

from opentelemetry import trace

from support_engine.channels import InboundMessage, MessageTemplates, SendResult, TextChannel, WebChatTurn
from support_engine.contacts import phone_variants
from support_engine.metrics import MetricsRegistry, metrics_registry
from support_engine.nlu import Intent, IntentClassifier, NLUResult, extract_entities, parse_romanian_eta, validate_eta
from support_engine.orders import OrderGateway, OrderLocator, OrderView
from support_engine.tickets import (
    InvalidTicketTransitionError,
    MessageChannel,
    MessageSender,
    Ticket,
    TicketService,
    TicketState,
    TicketType,
)

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


@dataclass(slots=True, frozen=True)
class CustomerContact:
    session_id: str | None = None
    phone: str | None = None
    email: str | None = None
    buyer_id: str | None = None


@dataclass(slots=True, frozen=True)
class ChatReply:
    response: str
    intent: Intent
    confidence: float
    order_id: str | None = None


class SellerReplyOutcome(str, Enum):
    ETA_RECORDED = "eta_recorded"
    INVALID_FORMAT = "invalid_format"
    LATE_REPLY = "late_reply"
    NO_TICKET = "no_ticket"


@dataclass(slots=True)
class ConversationEngine:
    classifier: IntentClassifier
    locator: OrderLocator
    orders: OrderGateway
    tickets: TicketService
    channel: TextChannel | None = None
    templates: MessageTemplates = field(default_factory=MessageTemplates)
    metrics: MetricsRegistry = field(default=metrics_registry)

    async def handle_webchat(self, turn: WebChatTurn) -> ChatReply:
        buyer_id = await self.locator.resolve_buyer_for_user(turn.user_id)
        contact = CustomerContact(
            session_id=turn.session_id,
            phone=turn.phone,
            email=turn.email,
            buyer_id=buyer_id,
        )
        return await self.handle_customer_message(turn.message, MessageChannel.WEB, contact)

    async def handle_whatsapp(self, message: InboundMessage) -> ChatReply | SellerReplyOutcome:
        """Handle one inbound WhatsApp text, from a seller or from a customer."""

        text = message.text or ""
        seller_id = await self.orders.find_seller_id_by_phone(phone_variants(message.sender))
        if seller_id is not None:
            return await self.handle_seller_reply(seller_id, message.sender, text)

        reply = await self.handle_customer_message(
            text, MessageChannel.WHATSAPP, CustomerContact(phone=message.sender)
        )
        result = await self._send(message.sender, reply.response)
        if not result.success:
            logger.warning("Reply to %s not delivered: %s", message.sender, result.error)
        return reply

    async def handle_customer_message(
        self,
        text: str,
        channel: MessageChannel,
        contact: CustomerContact,
    ) -> ChatReply:
        self.metrics.counter("support_inbound_messages_total").inc(labels={"channel": channel.value})
        with tracer.start_as_current_span("support.customer_message") as span:
            nlu = await self.classifier.classify(text)
            span.set_attribute("support.intent", nlu.intent.value)
            span.set_attribute("support.channel", channel.value)

            match nlu.intent:
                case Intent.ORDER_STATUS:
                    response, order_id = await self._order_status(text, nlu, channel, contact)
                case Intent.ORDER_CANCEL:
                    response, order_id = await self._order_cancel(text, nlu, channel, contact)
                case Intent.RETURN_POLICY:
                    response, order_id = self.templates.return_policy(), nlu.entities.order_id
                case Intent.UNKNOWN:
                    response, order_id = self.templates.unknown_intent(), nlu.entities.order_id
                case _:
                    assert_never(nlu.intent)

        logger.info("Handled %s message: intent=%s order=%s", channel.value, nlu.intent.value, order_id)
        return ChatReply(response=response, intent=nlu.intent, confidence=nlu.confidence, order_id=order_id)

    async def handle_seller_reply(self, seller_id: str, sender: str, text: str) -> SellerReplyOutcome:
        self.metrics.counter("support_inbound_messages_total").inc(labels={"channel": "seller"})
        order_hint = extract_entities(text).order_id
        ticket = await self.tickets.find_waiting_for_seller(seller_id, order_id=order_hint)
        if ticket is None and order_hint is not None:
            ticket = await self.tickets.find_waiting_for_seller(seller_id)
        if ticket is None:
            return await self._late_seller_reply(seller_id, sender, text)

        await self.tickets.append_message(
            ticket.id, sender=MessageSender.SELLER, body=text, channel=MessageChannel.WHATSAPP
        )
        if not validate_eta(text):
            await self._send(sender, self.templates.invalid_eta_format())
            return SellerReplyOutcome.INVALID_FORMAT

        eta = parse_romanian_eta(text)
        log_entry = self.templates.eta_log_entry(eta)
        if not await self.orders.update_eta(ticket.order_id, eta):
            logger.warning("Order %s vanished before its ETA could be stored", ticket.order_id)
        try:
            await self.tickets.transition(ticket.id, TicketState.ANSWERED, last_message=log_entry)
        except InvalidTicketTransitionError:
            logger.warning("Ticket %s was closed while the seller was answering", ticket.id)
            return await self._late_seller_reply(seller_id, sender, text, ticket=ticket, already_logged=True)
        await self.tickets.append_message(
            ticket.id, sender=MessageSender.BOT, body=log_entry, channel=MessageChannel.SYSTEM
        )

        order = await self.orders.get_order(ticket.order_id)
        buyer_recipient = order.buyer.whatsapp_recipient if order is not None else None
        if buyer_recipient is not None:
            update = self.templates.order_update(ticket.order_id, eta)
            result = await self._send(buyer_recipient, update)
            if not result.success:
                logger.warning("ETA update for order %s not delivered: %s", ticket.order_id, result.error)
            await self.tickets.append_message(
                ticket.id, sender=MessageSender.BOT, body=update, channel=MessageChannel.WHATSAPP
            )

        await self._send(sender, self.templates.seller_confirmation(eta))
        logger.info("Seller %s answered ticket %s with ETA %r", seller_id, ticket.id, eta)
        return SellerReplyOutcome.ETA_RECORDED

    async def _late_seller_reply(
        self,
        seller_id: str,
        sender: str,
        text: str,
        *,
        ticket: Ticket | None = None,
        already_logged: bool = False,
    ) -> SellerReplyOutcome:
        # Escalated tickets stay closed; the reply is kept for the support team.
        escalated = ticket or await self.tickets.find_latest_escalated_for_seller(seller_id)
        if escalated is None:
            logger.info("Message from seller %s matches no waiting ticket; ignoring", seller_id)
            return SellerReplyOutcome.NO_TICKET
        if not already_logged:
            await self.tickets.append_message(
                escalated.id, sender=MessageSender.SELLER, body=text, channel=MessageChannel.WHATSAPP
            )
        await self._send(sender, self.templates.seller_late_reply(escalated.order_id))
        logger.info("Late seller reply stored on closed ticket %s", escalated.id)
        return SellerReplyOutcome.LATE_REPLY

    async def _locate(self, nlu: NLUResult, contact: CustomerContact) -> OrderView | None:
        return await self.locator.locate(
            order_id=nlu.entities.order_id,
            email=contact.email or nlu.entities.email,
            phone=contact.phone or nlu.entities.phone,
            buyer_id=contact.buyer_id,
        )

    async def _order_status(
        self,
        text: str,
        nlu: NLUResult,
        channel: MessageChannel,
        contact: CustomerContact,
    ) -> tuple[str, str | None]:
        try:
            order = await self._locate(nlu, contact)
            if order is None:
                return self.templates.order_not_found(nlu.entities.order_id), nlu.entities.order_id

            if order.has_eta:
                response = self.templates.order_status(order.id, order.status, order.eta_text)
                ticket = await self.tickets.find_active(order.id, TicketType.ORDER_ETA)
                if ticket is not None:
                    await self._log_exchange(ticket, text, response, channel)
                return response, order.id

            response = self.templates.eta_request_to_customer(order.id)
            ticket, _ = await self.tickets.open_or_get(order.id, TicketType.ORDER_ETA, seller_id=order.seller.id)
            await self.tickets.append_message(
                ticket.id, sender=MessageSender.CUSTOMER, body=text, channel=channel
            )
            if ticket.state is TicketState.OPEN:
                await self._forward_to_seller(ticket, order, text)
            else:
                logger.info("Order %s already has ticket %s waiting on the seller", order.id, ticket.id)
            await self.tickets.append_message(
                ticket.id, sender=MessageSender.BOT, body=response, channel=channel
            )
            return response, order.id
        except Exception:
            logger.exception("Order status lookup failed")
            return self.templates.apology(), nlu.entities.order_id

    async def _forward_to_seller(self, ticket: Ticket, order: OrderView, text: str) -> None:
        try:
            await self.tickets.transition(ticket.id, TicketState.WAITING_SELLER, last_message=text)
        except InvalidTicketTransitionError:
            # A concurrent request moved it first and notified the seller.
            logger.info("Ticket %s left open before this request could forward it", ticket.id)
            return

        body = self.templates.eta_request_to_seller(order.seller.name, order.id)
        recipient = order.seller.whatsapp_recipient
        if recipient is None:
            logger.warning("Seller %s has no WhatsApp number; ETA request for %s not sent", order.seller.id, order.id)
        else:
            result = await self._send(recipient, body)
            if not result.success:
                logger.warning("ETA request for order %s not delivered: %s", order.id, result.error)
        await self.tickets.append_message(
            ticket.id, sender=MessageSender.BOT, body=body, channel=MessageChannel.WHATSAPP
        )

    async def _order_cancel(
        self,
        text: str,
        nlu: NLUResult,
        channel: MessageChannel,
        contact: CustomerContact,
    ) -> tuple[str, str | None]:
        response = self.templates.cancel_request()
        try:
            order = await self._locate(nlu, contact)
            if order is None:
                return response, nlu.entities.order_id
            ticket, _ = await self.tickets.open_or_get(
                order.id, TicketType.ORDER_CANCEL, seller_id=order.seller.id
            )
            await self._log_exchange(ticket, text, response, channel)
            return response, order.id
        except Exception:
            logger.exception("Recording cancellation request failed")
            return response, nlu.entities.order_id

    async def _log_exchange(self, ticket: Ticket, text: str, response: str, channel: MessageChannel) -> None:
        await self.tickets.append_message(ticket.id, sender=MessageSender.CUSTOMER, body=text, channel=channel)
        await self.tickets.append_message(ticket.id, sender=MessageSender.BOT, body=response, channel=channel)

    async def _send(self, to: str, body: str) -> SendResult:
        if self.channel is None:
            logger.warning("No outbound WhatsApp channel configured; message to %s dropped", to)
            return SendResult(success=False, error="channel_unavailable")
        return await self.channel.send_text(to, body)
