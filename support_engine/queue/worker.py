"""Sweeps over tickets waiting for a seller: timeouts, reminders, escalations.

The sweep is driven by an external scheduler hitting the queue endpoint, so
each task must be safe to run any number of times. Every action is gated on
its own marker on the ticket (``timeout_checked_at``, ``last_reminder_at``,
``escalated_at``) and the marker is claimed before the side effect happens.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, assert_never

from opentelemetry import trace

from support_engine.channels import MessageTemplates, SendResult, TextChannel
from support_engine.channels.templates import TIMEOUT_CHECK_NOTE
from support_engine.core.config import Settings
from support_engine.metrics import MetricsRegistry, metrics_registry
from support_engine.orders import OrderGateway
from support_engine.tickets import MessageChannel, MessageSender, Ticket, TicketService

from .notifier import EscalationNotifier, LoggingEscalationNotifier

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class QueueTask(str, Enum):
    CHECK_TIMEOUTS = "check_timeouts"
    SEND_REMINDERS = "send_reminders"
    ESCALATE_TICKETS = "escalate_tickets"


@dataclass(slots=True)
class SweepReport:
    task: QueueTask
    examined: int = 0
    processed: list[str] = field(default_factory=list)

    def as_dict(self) -> dict[str, Any]:
        return {"task": self.task.value, "examined": self.examined, "processed": len(self.processed)}


@dataclass(slots=True)
class QueueWorker:
    tickets: TicketService
    orders: OrderGateway
    channel: TextChannel | None = None
    notifier: EscalationNotifier = field(default_factory=LoggingEscalationNotifier)
    templates: MessageTemplates = field(default_factory=MessageTemplates)
    reminder_after: timedelta = timedelta(hours=2)
    reminder_before: timedelta = timedelta(hours=4)
    escalate_after: timedelta = timedelta(hours=6)
    metrics: MetricsRegistry = field(default=metrics_registry)

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> "QueueWorker":
        return cls(
            reminder_after=timedelta(minutes=settings.reminder_after_minutes),
            reminder_before=timedelta(minutes=settings.reminder_before_minutes),
            escalate_after=timedelta(minutes=settings.escalate_after_minutes),
            templates=MessageTemplates.from_settings(settings),
            **kwargs,
        )

    # Eligibility windows are open intervals: a ticket exactly two hours old
    # is not yet due for anything.
    def age(self, ticket: Ticket, now: datetime) -> timedelta:
        return now - ticket.created_at

    def is_timed_out(self, ticket: Ticket, now: datetime) -> bool:
        return self.age(ticket, now) > self.reminder_after

    def is_reminder_due(self, ticket: Ticket, now: datetime) -> bool:
        return ticket.last_reminder_at is None and self.reminder_after < self.age(ticket, now) < self.reminder_before

    def is_escalation_due(self, ticket: Ticket, now: datetime) -> bool:
        return ticket.escalated_at is None and self.age(ticket, now) > self.escalate_after

    async def run(self, task: QueueTask) -> SweepReport:
        with tracer.start_as_current_span("support.queue_sweep") as span:
            span.set_attribute("support.task", task.value)
            match task:
                case QueueTask.CHECK_TIMEOUTS:
                    report = await self.check_timeouts()
                case QueueTask.SEND_REMINDERS:
                    report = await self.send_reminders()
                case QueueTask.ESCALATE_TICKETS:
                    report = await self.escalate_tickets()
                case _:
                    assert_never(task)
            span.set_attribute("support.processed", len(report.processed))
        return report

    async def run_all(self) -> list[SweepReport]:
        return [await self.run(task) for task in QueueTask]

    async def check_timeouts(self) -> SweepReport:
        report = SweepReport(QueueTask.CHECK_TIMEOUTS)
        now = self.tickets.now()
        for ticket in await self.tickets.list_waiting():
            report.examined += 1
            if ticket.timeout_checked_at is not None or not self.is_timed_out(ticket, now):
                continue
            if await self.tickets.mark_timeout_checked(ticket.id) is None:
                continue
            await self.tickets.append_message(
                ticket.id,
                sender=MessageSender.BOT,
                body=TIMEOUT_CHECK_NOTE,
                channel=MessageChannel.SYSTEM,
            )
            report.processed.append(str(ticket.id))
        logger.info("check_timeouts: %s of %s waiting tickets flagged", len(report.processed), report.examined)
        return report

    async def send_reminders(self) -> SweepReport:
        report = SweepReport(QueueTask.SEND_REMINDERS)
        now = self.tickets.now()
        for ticket in await self.tickets.list_waiting():
            report.examined += 1
            if not self.is_reminder_due(ticket, now):
                continue

            order = await self.orders.get_order(ticket.order_id)
            recipient = order.seller.whatsapp_recipient if order is not None else None
            if recipient is None:
                logger.warning("No WhatsApp contact for the seller of order %s; reminder skipped", ticket.order_id)
                continue
            if await self.tickets.claim_reminder(ticket.id) is None:
                continue

            body = self.templates.seller_reminder(ticket.order_id)
            result = await self._send(recipient, body)
            if not result.success:
                logger.warning("Reminder for ticket %s not delivered: %s", ticket.id, result.error)
            await self.tickets.append_message(
                ticket.id,
                sender=MessageSender.BOT,
                body=body,
                channel=MessageChannel.WHATSAPP,
            )
            self.metrics.counter("support_reminders_sent_total").inc()
            report.processed.append(str(ticket.id))
        logger.info("send_reminders: %s reminders issued", len(report.processed))
        return report

    async def escalate_tickets(self) -> SweepReport:
        report = SweepReport(QueueTask.ESCALATE_TICKETS)
        now = self.tickets.now()
        hours = int(self.escalate_after.total_seconds() // 3600)
        for ticket in await self.tickets.list_waiting():
            report.examined += 1
            if not self.is_escalation_due(ticket, now):
                continue

            order = await self.orders.get_order(ticket.order_id)
            if order is not None:
                seller_name = order.seller.name
            else:
                seller_name = ticket.assigned_seller_id or "necunoscut"
            body = self.templates.escalation(seller_name, ticket.order_id, hours)

            escalated = await self.tickets.escalate(ticket.id, note=body)
            if escalated is None:
                continue
            await self.tickets.append_message(
                ticket.id,
                sender=MessageSender.BOT,
                body=body,
                channel=MessageChannel.SYSTEM,
            )
            try:
                await self.notifier.notify(escalated, body)
            except Exception:
                logger.exception("Escalation notifier failed for ticket %s", ticket.id)
            self.metrics.counter("support_escalations_total").inc()
            report.processed.append(str(ticket.id))
        logger.info("escalate_tickets: %s tickets escalated", len(report.processed))
        return report

    async def stats(self) -> dict[str, Any]:
        now = self.tickets.now()
        waiting = await self.tickets.list_waiting()
        rows = [
            {
                "id": str(ticket.id),
                "order_id": ticket.order_id,
                "age_minutes": int(self.age(ticket, now).total_seconds() // 60),
                "status": ticket.state.value,
                "created_at": ticket.created_at.isoformat(),
                "needs_reminder": self.is_reminder_due(ticket, now),
                "needs_escalation": self.is_escalation_due(ticket, now),
            }
            for ticket in waiting
        ]
        return {
            "total_waiting": len(rows),
            "needs_reminder": sum(1 for row in rows if row["needs_reminder"]),
            "needs_escalation": sum(1 for row in rows if row["needs_escalation"]),
            "tickets": rows,
        }

    async def _send(self, recipient: str, body: str) -> SendResult:
        if self.channel is None:
            return SendResult(success=False, error="channel_unavailable")
        return await self.channel.send_text(recipient, body)
