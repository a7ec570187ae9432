"""
Ticket Recorder y Archive Store sobre DBService.

Traducen errores de SQLite a PersistenceError para que el
orquestador no dependa del motor de almacenamiento.
"""

import logging
import sqlite3

from agent.db_service import DBService
from agent.errors import PersistenceError

logger = logging.getLogger(__name__)


class TicketRecorder:
    """Persiste un ticket de escalamiento por mensaje que lo dispara."""

    def __init__(self, db: DBService):
        self._db = db

    def record(self, question: str, answer: str, from_identity: str) -> int:
        try:
            ticket = self._db.create_ticket(
                question=question, answer=answer, from_identity=from_identity
            )
        except sqlite3.Error as e:
            raise PersistenceError(f"No se pudo registrar el ticket: {e}") from e

        logger.info(f"[{from_identity}] Ticket #{ticket['id']} creado")
        return ticket["id"]


class ArchiveStore:
    """Marca de "archivado/resuelto" por conversación."""

    def __init__(self, db: DBService):
        self._db = db

    def unarchive(self, conversation_sid: str) -> bool:
        try:
            removed = self._db.delete_archive(conversation_sid)
        except sqlite3.Error as e:
            raise PersistenceError(
                f"No se pudo restaurar la conversación {conversation_sid}: {e}"
            ) from e

        if removed:
            logger.info(f"[{conversation_sid}] conversación desarchivada")
        return removed
