"""Scheduled sweeps over tickets waiting for a seller."""

from .notifier import EscalationNotifier, LoggingEscalationNotifier
from .worker import QueueTask, QueueWorker, SweepReport

__all__ = [
    "EscalationNotifier",
    "LoggingEscalationNotifier",
    "QueueTask",
    "QueueWorker",
    "SweepReport",
]
