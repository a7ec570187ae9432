"""
DB Service — Capa de acceso a datos SQLite.

Encapsula TODAS las operaciones SQLite en métodos tipados:
- knowledge_base: pares pregunta/respuesta indexados por el retriever
- tickets: escalamientos a un humano (append-only)
- archives: conversaciones archivadas/resueltas desde el panel de agentes
"""

import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)


SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS knowledge_base (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    question TEXT NOT NULL,
    answer TEXT NOT NULL,
    keywords TEXT NOT NULL DEFAULT ''
);

CREATE TABLE IF NOT EXISTS tickets (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    question TEXT NOT NULL,
    answer TEXT NOT NULL,
    from_identity TEXT NOT NULL,
    created_at TEXT NOT NULL,
    open INTEGER NOT NULL DEFAULT 1
);

CREATE INDEX IF NOT EXISTS idx_tickets_open ON tickets (open, created_at);

CREATE TABLE IF NOT EXISTS archives (
    conversation_sid TEXT PRIMARY KEY,
    archived_at TEXT NOT NULL
);
"""


class DBService:
    """Servicio de acceso a datos SQLite para el bot."""

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)

    # helpers

    def _conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=10.0)
        conn.row_factory = sqlite3.Row
        return conn

    def init_schema(self) -> None:
        """Crea las tablas si no existen (idempotente)."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._conn() as conn:
            conn.executescript(SCHEMA_SQL)
        logger.info(f"Schema verificado en {self.db_path}")

    # Knowledge base

    def add_knowledge_entry(self, question: str, answer: str, keywords: str = "") -> int:
        """Agrega un par Q&A y devuelve su id."""
        with self._conn() as conn:
            cursor = conn.execute(
                "INSERT INTO knowledge_base (question, answer, keywords) VALUES (?, ?, ?)",
                (question, answer, keywords),
            )
            conn.commit()
            return cursor.lastrowid

    def get_knowledge_entries(self) -> List[Dict]:
        """Todas las entradas, en orden de inserción."""
        with self._conn() as conn:
            rows = conn.execute(
                "SELECT id, question, answer, keywords FROM knowledge_base ORDER BY id"
            ).fetchall()
            return [dict(r) for r in rows]

    def clear_knowledge_base(self) -> int:
        with self._conn() as conn:
            cursor = conn.execute("DELETE FROM knowledge_base")
            conn.commit()
            return cursor.rowcount

    # Tickets

    def create_ticket(self, question: str, answer: str, from_identity: str) -> Dict:
        """Crea un ticket abierto y lo devuelve."""
        now = datetime.now(timezone.utc).isoformat()
        with self._conn() as conn:
            cursor = conn.execute(
                """
                INSERT INTO tickets (question, answer, from_identity, created_at, open)
                VALUES (?, ?, ?, ?, 1)
                """,
                (question, answer, from_identity, now),
            )
            conn.commit()
            ticket_id = cursor.lastrowid
            row = conn.execute(
                "SELECT * FROM tickets WHERE id = ?", (ticket_id,)
            ).fetchone()
            return self._ticket_dict(row)

    def get_ticket(self, ticket_id: int) -> Optional[Dict]:
        with self._conn() as conn:
            row = conn.execute(
                "SELECT * FROM tickets WHERE id = ?", (ticket_id,)
            ).fetchone()
            return self._ticket_dict(row) if row else None

    def get_open_tickets(self, limit: int = 50) -> List[Dict]:
        """Tickets abiertos, más recientes primero."""
        with self._conn() as conn:
            rows = conn.execute(
                """
                SELECT * FROM tickets
                WHERE open = 1
                ORDER BY created_at DESC, id DESC
                LIMIT ?
                """,
                (limit,),
            ).fetchall()
            return [self._ticket_dict(r) for r in rows]

    @staticmethod
    def _ticket_dict(row: sqlite3.Row) -> Dict:
        d = dict(row)
        d["open"] = bool(d["open"])
        return d

    # Archives

    def archive_conversation(self, conversation_sid: str) -> None:
        """Marca una conversación como archivada (la usa el panel de agentes)."""
        now = datetime.now(timezone.utc).isoformat()
        with self._conn() as conn:
            conn.execute(
                """
                INSERT INTO archives (conversation_sid, archived_at)
                VALUES (?, ?)
                ON CONFLICT(conversation_sid) DO UPDATE SET
                    archived_at = excluded.archived_at
                """,
                (conversation_sid, now),
            )
            conn.commit()

    def is_archived(self, conversation_sid: str) -> bool:
        with self._conn() as conn:
            row = conn.execute(
                "SELECT 1 FROM archives WHERE conversation_sid = ?",
                (conversation_sid,),
            ).fetchone()
            return row is not None

    def delete_archive(self, conversation_sid: str) -> bool:
        """Quita la marca de archivado. True si existía."""
        with self._conn() as conn:
            cursor = conn.execute(
                "DELETE FROM archives WHERE conversation_sid = ?", (conversation_sid,)
            )
            conn.commit()
            return cursor.rowcount > 0
