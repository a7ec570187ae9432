"""
Escalation Detector — Decide si una respuesta necesita un humano.

Heurística léxica: si el texto compuesto contiene frases de duda o
imposibilidad, la interacción se escala y se registra un ticket.
"""

import re
from typing import Protocol

ESCALATION_PHRASES = [
    "unable to",
    "cannot",
    "can't",
    "do not know",
    "don't know",
    "unsure",
    "not sure",
    "no information",
    "not possible",
    "impossible",
    "help you with that",
]

_ESCALATION_RE = re.compile(
    "|".join(re.escape(phrase) for phrase in ESCALATION_PHRASES), re.IGNORECASE
)


class EscalationClassifier(Protocol):
    def needs_human(self, text: str) -> bool: ...


class LexicalEscalationDetector:
    """Clasificador por frases fijas (case-insensitive)."""

    def needs_human(self, text: str) -> bool:
        if not text:
            return False
        # Los LLM suelen devolver apóstrofes tipográficos ("don’t")
        return _ESCALATION_RE.search(text.replace("’", "'")) is not None
