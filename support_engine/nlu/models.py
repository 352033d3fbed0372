from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class Intent(str, Enum):
    ORDER_STATUS = "order_status"
    ORDER_CANCEL = "order_cancel"
    RETURN_POLICY = "return_policy"
    UNKNOWN = "unknown"


class ClassificationSource(str, Enum):
    RULES = "rules"
    LLM = "llm"


@dataclass(slots=True, frozen=True)
class Entities:
    order_id: str | None = None
    email: str | None = None
    phone: str | None = None


@dataclass(slots=True, frozen=True)
class NLUResult:
    intent: Intent
    confidence: float
    entities: Entities = field(default_factory=Entities)
    source: ClassificationSource = ClassificationSource.RULES
