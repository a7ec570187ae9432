"""
Participant Synchronizer — Mantiene el roster de cada conversación.

Por cada (conversación, identidad) hay dos estados: ausente / presente.
La transición ausente → presente es idempotente: se consulta primero
y se crea solo si falta. Si el proveedor responde "ya existe" (otra
entrega del mismo webhook ganó la carrera) se toma como éxito.
"""

import logging
from typing import Dict, List, Optional, Protocol

from agent.errors import ParticipantAlreadyExistsError
from agent.provider import ConversationThread, Participant

logger = logging.getLogger(__name__)


class ConversationDirectory(Protocol):
    def fetch_conversation(self, conversation_sid: str) -> ConversationThread: ...

    def update_conversation(self, conversation_sid: str, friendly_name: str) -> None: ...

    def list_participants(self, conversation_sid: str) -> List[Participant]: ...

    def create_participant(
        self, conversation_sid: str, identity: str, attributes: Dict
    ) -> Participant: ...


class ParticipantSynchronizer:
    """Operaciones "ensure" sobre conversaciones del proveedor."""

    def __init__(self, directory: ConversationDirectory):
        self._directory = directory

    def ensure_display_name(self, conversation_sid: str, name: str) -> bool:
        """
        Setea el nombre visible solo si la conversación no tiene uno.

        Nunca pisa un nombre existente ni escribe un nombre vacío.
        Devuelve True si lo actualizó.
        """
        if not name or not name.strip():
            return False

        thread = self._directory.fetch_conversation(conversation_sid)
        if thread.friendly_name.strip():
            return False

        self._directory.update_conversation(conversation_sid, name)
        logger.info(f"[{conversation_sid}] friendly_name → {name}")
        return True

    def is_participant(self, conversation_sid: str, identity: str) -> bool:
        return any(
            p.identity == identity
            for p in self._directory.list_participants(conversation_sid)
        )

    def ensure_participant(
        self,
        conversation_sid: str,
        identity: str,
        attributes: Optional[Dict] = None,
    ) -> bool:
        """
        Agrega ``identity`` a la conversación si no está.

        Devuelve True si lo creó esta llamada.

        Raises:
            DirectoryError: si la lectura o la creación fallan por otro motivo
        """
        if self.is_participant(conversation_sid, identity):
            return False

        try:
            self._directory.create_participant(
                conversation_sid, identity, attributes or {"name": identity}
            )
        except ParticipantAlreadyExistsError:
            logger.info(f"[{conversation_sid}] {identity} ya existía (carrera)")
            return False

        logger.info(f"[{conversation_sid}] participante agregado: {identity}")
        return True

    def ensure_required_roster(
        self,
        conversation_sid: str,
        customer_identity: str,
        bot_identity: str,
        agent_identity: str,
        agent_attributes: Optional[Dict] = None,
    ) -> List[str]:
        """
        Garantiza cliente, bot y agente en la conversación.

        El cliente va primero para que el agente lo vea cuanto antes.
        Devuelve las identidades que hubo que crear.
        """
        created = []
        for identity, attributes in (
            (customer_identity, None),
            (bot_identity, None),
            (agent_identity, agent_attributes),
        ):
            if self.ensure_participant(conversation_sid, identity, attributes):
                created.append(identity)
        return created
