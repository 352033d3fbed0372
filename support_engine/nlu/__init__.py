"""Intent classification of inbound customer text."""

from .classifier import IntentClassifier, SecondPassClassifier
from .eta import parse_romanian_eta, validate_eta
from .llm import LLMClassification, LLMClassifier, LLMEntities
from .models import ClassificationSource, Entities, Intent, NLUResult
from .rules import RuleBasedClassifier, detect_intent, extract_entities, fold

__all__ = [
    "ClassificationSource",
    "Entities",
    "Intent",
    "IntentClassifier",
    "LLMClassification",
    "LLMClassifier",
    "LLMEntities",
    "NLUResult",
    "RuleBasedClassifier",
    "SecondPassClassifier",
    "detect_intent",
    "extract_entities",
    "fold",
    "parse_romanian_eta",
    "validate_eta",
]
