"""
Retriever - Búsqueda léxica sobre la base de conocimiento Q&A.

Este módulo:
1. Indexa question + answer + keywords de cada entrada con BM25
2. Devuelve candidatos {question, answer, score} ordenados por score
3. Traduce fallas del almacenamiento a RetrievalError
"""

import logging
import re
import sqlite3
import threading
from dataclasses import dataclass
from typing import List, Optional

import numpy as np
from rank_bm25 import BM25Okapi

from agent.db_service import DBService
from agent.errors import RetrievalError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CandidateAnswer:
    question: str
    answer: str
    score: float


# Stop words en inglés que no aportan al ranking
_STOP_WORDS = frozenset(
    """
    a an and are as at be by do does for from how i in is it me my of on or
    our so that the this to was we what when where which who why will with
    you your
    """.split()
)


def _tokenize(text: str) -> list[str]:
    """Lowercase + split en no-alfanuméricos, sin stop words."""
    return [
        t for t in re.findall(r"[a-z0-9]+", text.lower()) if t not in _STOP_WORDS
    ]


class KnowledgeRetriever:
    """Búsqueda BM25 sobre la tabla knowledge_base.

    El índice se construye la primera vez que se busca y se
    reconstruye con ``refresh()`` cuando cambia el corpus.
    """

    def __init__(self, db: DBService, top_k: int = 5):
        self._db = db
        self.top_k = top_k
        self._lock = threading.Lock()
        self._entries: Optional[List[dict]] = None
        self._bm25: Optional[BM25Okapi] = None

    def refresh(self) -> int:
        """(Re)construye el índice desde la DB. Devuelve cuántas entradas indexó."""
        try:
            entries = self._db.get_knowledge_entries()
        except sqlite3.Error as e:
            raise RetrievalError(f"Base de conocimiento no disponible: {e}") from e

        corpus = [
            _tokenize(f"{e['question']} {e['answer']} {e.get('keywords') or ''}")
            for e in entries
        ]

        with self._lock:
            self._entries = entries
            # BM25Okapi no acepta corpus vacío
            self._bm25 = BM25Okapi(corpus) if corpus else None

        logger.info(f"BM25 index construido ({len(entries)} entradas)")
        return len(entries)

    def search(self, query: str) -> List[CandidateAnswer]:
        """
        Busca candidatos para una consulta.

        Returns:
            Lista ordenada por score descendente (puede ser vacía).
            Solo incluye entradas con score positivo.
        """
        if self._entries is None:
            self.refresh()

        with self._lock:
            entries, bm25 = self._entries, self._bm25

        tokens = _tokenize(query)
        if bm25 is None or not tokens:
            return []

        scores = bm25.get_scores(tokens)
        # Orden estable: en empates gana la entrada insertada primero
        ranked = np.argsort(-scores, kind="stable")[: self.top_k]

        results: List[CandidateAnswer] = []
        for idx in ranked:
            idx = int(idx)
            if scores[idx] <= 0:
                break
            entry = entries[idx]
            results.append(
                CandidateAnswer(
                    question=entry["question"],
                    answer=entry["answer"],
                    score=float(scores[idx]),
                )
            )

        logger.info(f"Knowledge search: '{query[:40]}' → {len(results)} candidatos")
        return results
