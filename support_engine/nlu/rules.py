"""Keyword and regex based first pass of intent classification."""

from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass
from typing import Iterable

from support_engine.contacts import ROMANIAN_PHONE_PATTERN

from .models import ClassificationSource, Entities, Intent, NLUResult

KEYWORD_CONFIDENCE = 0.8
FALLBACK_CONFIDENCE = 0.5

# Checked in this order: "vreau să anulez comanda" mentions an order but asks
# for a cancellation, so cancel and return keywords win over status ones.
INTENT_KEYWORDS: tuple[tuple[Intent, tuple[str, ...]], ...] = (
    (Intent.ORDER_CANCEL, ("anulez", "anulare", "cancel", "renunț", "nu mai vreau")),
    (Intent.RETURN_POLICY, ("retur", "return", "restitui", "bani înapoi", "garantie")),
    (
        Intent.ORDER_STATUS,
        ("status", "comanda", "unde", "când", "durează", "vine", "livrare", "tracking"),
    ),
)

EMAIL_PATTERN = re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}")
MARKED_ORDER_ID_PATTERN = re.compile(
    r"(?:#|\b(?:comanda|comandă|comenzii|comenzi|order)\s*(?:nr\.?|#)?\s*)(\d{3,6})(?!\d)",
    re.IGNORECASE,
)
BARE_ORDER_ID_PATTERN = re.compile(r"(?<!\d)(\d{3,6})(?!\d)")


def fold(text: str) -> str:
    """Lowercase and strip diacritics so "când" and "cand" compare equal."""

    decomposed = unicodedata.normalize("NFKD", text.lower())
    return "".join(char for char in decomposed if not unicodedata.combining(char))


def _keyword_pattern(keywords: Iterable[str]) -> re.Pattern[str]:
    alternatives = "|".join(re.escape(fold(keyword)) for keyword in keywords)
    # Keywords match at the start of a word so "livrare" also covers "livrarea".
    return re.compile(rf"(?<!\w)(?:{alternatives})")


_INTENT_PATTERNS = tuple((intent, _keyword_pattern(words)) for intent, words in INTENT_KEYWORDS)


def extract_entities(text: str) -> Entities:
    """Pull the order id, email and Romanian phone number out of ``text``.

    Phone numbers and emails are masked before the order id search so their
    digits are never read as an order. Ids carrying a marker (``#``,
    "comanda", "order") take precedence over bare digit runs; among equals the
    first one in the text wins.
    """

    email_match = EMAIL_PATTERN.search(text)
    phone_match = ROMANIAN_PHONE_PATTERN.search(text)

    masked = EMAIL_PATTERN.sub(" ", text)
    masked = ROMANIAN_PHONE_PATTERN.sub(" ", masked)

    order_match = MARKED_ORDER_ID_PATTERN.search(masked) or BARE_ORDER_ID_PATTERN.search(masked)

    return Entities(
        order_id=order_match.group(1) if order_match else None,
        email=email_match.group(0) if email_match else None,
        phone=phone_match.group(0) if phone_match else None,
    )


def detect_intent(text: str) -> Intent | None:
    folded = fold(text)
    for intent, pattern in _INTENT_PATTERNS:
        if pattern.search(folded):
            return intent
    return None


@dataclass(slots=True, frozen=True)
class RuleBasedClassifier:
    keyword_confidence: float = KEYWORD_CONFIDENCE
    fallback_confidence: float = FALLBACK_CONFIDENCE

    def classify(self, text: str) -> NLUResult:
        entities = extract_entities(text)
        intent = detect_intent(text)
        if intent is None:
            return NLUResult(
                intent=Intent.UNKNOWN,
                confidence=self.fallback_confidence,
                entities=entities,
                source=ClassificationSource.RULES,
            )
        return NLUResult(
            intent=intent,
            confidence=self.keyword_confidence,
            entities=entities,
            source=ClassificationSource.RULES,
        )
