from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Protocol

from support_engine.metrics import MetricsRegistry, metrics_registry, track_duration

from .models import Entities, NLUResult
from .rules import RuleBasedClassifier

logger = logging.getLogger(__name__)


class SecondPassClassifier(Protocol):
    async def classify(self, text: str) -> NLUResult | None:
        ...


def _merge_entities(preferred: Entities, fallback: Entities) -> Entities:
    return Entities(
        order_id=preferred.order_id or fallback.order_id,
        email=preferred.email or fallback.email,
        phone=preferred.phone or fallback.phone,
    )


@dataclass(slots=True)
class IntentClassifier:
    """Two stage classifier: keyword rules first, the LLM only when they are unsure.

    The LLM is skipped when the rule pass is confident (strictly above
    ``skip_llm_above``) and found an order id. When both run, the LLM result
    is used only if its confidence is strictly higher; ties go to the rules.
    Entities the winning pass missed are filled in from the other one.
    """

    rules: RuleBasedClassifier = field(default_factory=RuleBasedClassifier)
    llm: SecondPassClassifier | None = None
    skip_llm_above: float = 0.8
    metrics: MetricsRegistry = field(default=metrics_registry)

    def needs_llm(self, result: NLUResult) -> bool:
        return result.confidence <= self.skip_llm_above or result.entities.order_id is None

    async def classify(self, text: str) -> NLUResult:
        with track_duration(self.metrics.distribution("support_nlu_classify_seconds")):
            rule_result = self.rules.classify(text)
            if self.llm is None or not self.needs_llm(rule_result):
                return rule_result

            try:
                llm_result = await self.llm.classify(text)
            except Exception:
                # The chat reply must never fail because of the second pass.
                logger.warning("LLM classifier raised; keeping rule result", exc_info=True)
                self.metrics.counter("support_nlu_llm_fallbacks_total").inc(labels={"reason": "error"})
                return rule_result

            if llm_result is None or llm_result.confidence <= rule_result.confidence:
                return rule_result

            logger.debug(
                "LLM result %s (%.2f) preferred over rules %s (%.2f)",
                llm_result.intent.value,
                llm_result.confidence,
                rule_result.intent.value,
                rule_result.confidence,
            )
            return replace(llm_result, entities=_merge_entities(llm_result.entities, rule_result.entities))
