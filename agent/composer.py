"""
Response Composer — Decide el texto de la respuesta.

Flujo:
1. Buscar candidatos en la base de conocimiento
2. Si hay uno con score >= umbral → usar su respuesta tal cual
3. Si no → generar con el LLM usando los candidatos como contexto
4. Truncar al largo máximo del transporte sin cortar oraciones
"""

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional, Protocol, Sequence

from agent.errors import RetrievalError
from rag.query.retriever import CandidateAnswer

logger = logging.getLogger(__name__)


SOURCE_KNOWLEDGE = "knowledge"
SOURCE_GENERATED = "generated"

_SENTENCE_END_RE = re.compile(r"[.?!](?=\s|$)")


class KnowledgeSearch(Protocol):
    def search(self, query: str) -> List[CandidateAnswer]: ...


class FallbackGenerator(Protocol):
    def generate(self, user_text: str, context: str) -> str: ...


@dataclass
class ComposedReply:
    text: str
    source: str
    candidates: List[CandidateAnswer] = field(default_factory=list)
    truncated: bool = False


def truncate_at_sentence(text: str, max_length: int) -> str:
    """
    Trunca ``text`` a ``max_length`` caracteres como máximo.

    Corta en el último fin de oración (., ? o ! seguido de espacio o fin)
    que entre en el límite; si no hay, en el último espacio; si tampoco,
    corte duro en ``max_length``.
    """
    if len(text) <= max_length:
        return text

    cut = -1
    for match in _SENTENCE_END_RE.finditer(text):
        end = match.start() + 1
        if end > max_length:
            break
        cut = end

    if cut == -1:
        last_space = text.rfind(" ", 0, max_length + 1)
        cut = last_space if last_space > 0 else max_length

    return text[:cut].strip()


def build_context(candidates: Sequence[CandidateAnswer]) -> str:
    """Una línea "Q: ... A: ..." por candidato (vacío si no hay)."""
    return "\n".join(f"Q: {c.question} A: {c.answer}" for c in candidates)


def pick_confident(
    candidates: Sequence[CandidateAnswer], threshold: float
) -> Optional[CandidateAnswer]:
    """Mejor candidato con score >= threshold; en empates, el primero."""
    best = None
    for candidate in candidates:
        if candidate.score < threshold:
            continue
        if best is None or candidate.score > best.score:
            best = candidate
    return best


class ResponseComposer:
    """Compone la respuesta a partir de la base de conocimiento o del LLM."""

    def __init__(
        self,
        retriever: KnowledgeSearch,
        responder: FallbackGenerator,
        max_length: int = 700,
        confidence_threshold: float = 0.5,
    ):
        self._retriever = retriever
        self._responder = responder
        self.max_length = max_length
        self.confidence_threshold = confidence_threshold

    def compose(self, user_text: str) -> ComposedReply:
        """
        Compone la respuesta para un mensaje entrante.

        Raises:
            GenerationError: si hace falta el LLM y falla
        """
        try:
            candidates = list(self._retriever.search(user_text))
        except RetrievalError as e:
            # Sin base de conocimiento igual se puede responder con el LLM
            logger.warning(f"Retrieval falló, sigo sin candidatos: {e}")
            candidates = []

        confident = pick_confident(candidates, self.confidence_threshold)
        if confident is not None:
            logger.info(
                f"Respuesta de la base de conocimiento (score={confident.score:.2f})"
            )
            text, source = confident.answer, SOURCE_KNOWLEDGE
        else:
            logger.info(f"Sin respuesta confiable ({len(candidates)} candidatos) → LLM")
            text = self._responder.generate(user_text, build_context(candidates))
            source = SOURCE_GENERATED

        final = truncate_at_sentence(text, self.max_length)
        return ComposedReply(
            text=final,
            source=source,
            candidates=candidates,
            truncated=final != text,
        )
