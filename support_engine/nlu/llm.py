"""LLM backed second pass of intent classification."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from support_engine.core.config import Settings
from support_engine.metrics import MetricsRegistry, metrics_registry

from .models import ClassificationSource, Entities, Intent, NLUResult

logger = logging.getLogger(__name__)

ORDER_ID_REGEX = r"^\d{3,6}$"

FEW_SHOT_EXAMPLES: tuple[tuple[str, Intent, str | None], ...] = (
    ("Cât mai durează comanda #1234?", Intent.ORDER_STATUS, "1234"),
    ("Status comanda 5678", Intent.ORDER_STATUS, "5678"),
    ("Unde e comanda mea?", Intent.ORDER_STATUS, None),
    ("Când vine comanda #9999?", Intent.ORDER_STATUS, "9999"),
    ("Vreau să anulez comanda #1234", Intent.ORDER_CANCEL, "1234"),
    ("Care e politica de retur?", Intent.RETURN_POLICY, None),
    ("Bună ziua", Intent.UNKNOWN, None),
    ("Mulțumesc pentru ajutor", Intent.UNKNOWN, None),
)

SYSTEM_PROMPT = (
    "Ești un clasificator de intenții pentru suportul unui marketplace de flori din România. "
    "Clasifică mesajul clientului într-una din intențiile: order_status, order_cancel, "
    "return_policy, unknown. Extrage ID-ul comenzii (3-6 cifre), emailul și telefonul dacă apar. "
    "Răspunde DOAR cu un obiect JSON de forma "
    '{"intent": "...", "order_id": "1234" sau null, "confidence": 0.0-1.0, '
    '"entities": {"order_id": "1234" sau null, "email": null, "phone": null}}.'
)

_CODE_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$")


class LLMEntities(BaseModel):
    model_config = ConfigDict(extra="forbid", strict=True)

    order_id: str | None = Field(default=None, pattern=ORDER_ID_REGEX)
    email: str | None = Field(default=None)
    phone: str | None = Field(default=None)


class LLMClassification(BaseModel):
    """Exact shape the model must answer with; anything else is rejected."""

    model_config = ConfigDict(extra="forbid", strict=True)

    intent: Intent
    confidence: float = Field(..., ge=0.0, le=1.0)
    order_id: str | None = Field(default=None, pattern=ORDER_ID_REGEX)
    entities: LLMEntities

    def to_result(self) -> NLUResult:
        return NLUResult(
            intent=self.intent,
            confidence=self.confidence,
            entities=Entities(
                order_id=self.entities.order_id or self.order_id,
                email=self.entities.email,
                phone=self.entities.phone,
            ),
            source=ClassificationSource.LLM,
        )


def build_messages(text: str) -> list[dict[str, str]]:
    messages = [{"role": "system", "content": SYSTEM_PROMPT}]
    for example, intent, order_id in FEW_SHOT_EXAMPLES:
        answer = {
            "intent": intent.value,
            "order_id": order_id,
            "confidence": 0.95,
            "entities": {"order_id": order_id, "email": None, "phone": None},
        }
        messages.append({"role": "user", "content": example})
        messages.append({"role": "assistant", "content": json.dumps(answer, ensure_ascii=False)})
    messages.append({"role": "user", "content": text})
    return messages


@dataclass(slots=True)
class LLMClassifier:
    """Chat-completions classifier.

    One bounded request per call and no retries. Every failure mode ends in
    ``None`` so the caller keeps the rule result.
    """

    api_key: str
    base_url: str = "https://api.openai.com/v1"
    model: str = "gpt-4o-mini"
    timeout: float = 5.0
    http_client: httpx.AsyncClient | None = None
    metrics: MetricsRegistry = field(default=metrics_registry)

    def __post_init__(self) -> None:
        if self.http_client is None:
            self.http_client = httpx.AsyncClient(timeout=self.timeout)

    @classmethod
    def from_settings(cls, settings: Settings) -> "LLMClassifier | None":
        if not settings.openai_api_key:
            return None
        return cls(
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
            model=settings.nlu_model,
            timeout=settings.nlu_timeout_seconds,
        )

    async def classify(self, text: str) -> NLUResult | None:
        payload = {
            "model": self.model,
            "messages": build_messages(text),
            "temperature": 0.1,
            "max_tokens": 200,
        }
        headers = {"Authorization": f"Bearer {self.api_key}"}
        url = f"{self.base_url.rstrip('/')}/chat/completions"

        try:
            response = await self.http_client.post(url, headers=headers, json=payload, timeout=self.timeout)
            response.raise_for_status()
            content = response.json()["choices"][0]["message"]["content"]
            parsed = LLMClassification.model_validate_json(_CODE_FENCE_RE.sub("", content.strip()))
        except httpx.TimeoutException:
            return self._fallback("timeout")
        except httpx.HTTPStatusError as exc:
            return self._fallback(f"http_{exc.response.status_code}")
        except httpx.HTTPError:
            return self._fallback("network")
        except ValidationError:
            return self._fallback("schema")
        except (KeyError, IndexError, TypeError, AttributeError, ValueError):
            return self._fallback("malformed")

        return parsed.to_result()

    async def aclose(self) -> None:
        if self.http_client is not None:
            await self.http_client.aclose()

    def _fallback(self, reason: str) -> None:
        logger.warning("LLM classification abandoned (%s); keeping rule result", reason)
        label = "http" if reason.startswith("http_") else reason
        self.metrics.counter("support_nlu_llm_fallbacks_total").inc(labels={"reason": label})
        return None
