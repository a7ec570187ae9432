"""
Orchestrator — Punto de entrada del bot para cada evento entrante.

Eventos:
- SMS directo (inbound-message): responder por SMS
- onMessageAdded: responder dentro de la conversación como el número del bot
- onParticipantAdded: completar nombre visible y roster, sin responder

Flujo para mensajes:
1. Ignorar mensajes del agente humano (o del propio bot)
2. Ignorar si un humano tomó la conversación (ActivationRegistry)
3. Componer respuesta y evaluar escalamiento
4. Despachar (en conversaciones, asegurar el roster antes)
5. Registrar ticket si corresponde, desarchivar la conversación

Cualquier error fatal corta el evento y se propaga al handler HTTP.
No hay reintentos internos.
"""

import logging
import re
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Protocol

from agent.activation import ActivationRegistry
from agent.composer import ResponseComposer
from agent.escalation import EscalationClassifier
from agent.participants import ParticipantSynchronizer
from agent.tickets import ArchiveStore, TicketRecorder

logger = logging.getLogger(__name__)


# Phone normalization

_PHONE_CLEAN_RE = re.compile(r"[^\d]")


def normalize_phone(raw: str) -> str:
    """
    Normaliza un teléfono a su forma canónica (solo dígitos).

    Ejemplos:
        '+1 (555) 123-4567' → '15551234567'
        '15551234567'       → '15551234567'
    """
    return _PHONE_CLEAN_RE.sub("", raw or "")


# Motivos por los que un evento no genera respuesta
SKIP_EMPTY = "empty_message"
SKIP_AGENT_AUTHOR = "agent_author"
SKIP_BOT_AUTHOR = "bot_author"
SKIP_BOT_SUPPRESSED = "bot_suppressed"
SKIP_NO_ADDRESS = "no_address"


class MessageTransport(Protocol):
    def send_sms(self, to: str, body: str) -> str: ...

    def post_message(self, conversation_sid: str, author: str, body: str) -> str: ...


@dataclass
class InboundResult:
    replied: bool = False
    reply: Optional[str] = None
    ticket_id: Optional[int] = None
    skipped: Optional[str] = None
    roster_created: List[str] = field(default_factory=list)


class InboundOrchestrator:
    """Orquestador de eventos entrantes del proveedor de mensajería."""

    def __init__(
        self,
        registry: ActivationRegistry,
        composer: ResponseComposer,
        detector: EscalationClassifier,
        tickets: TicketRecorder,
        archives: ArchiveStore,
        synchronizer: ParticipantSynchronizer,
        transport: MessageTransport,
        bot_identity: str,
        agent_identity: str,
        agent_display_name: str = "",
        reply_delay_seconds: float = 0.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._registry = registry
        self._composer = composer
        self._detector = detector
        self._tickets = tickets
        self._archives = archives
        self._sync = synchronizer
        self._transport = transport
        self.bot_identity = bot_identity
        self.agent_identity = agent_identity
        self._agent_attributes: Dict = {"name": agent_display_name or agent_identity}
        self.reply_delay_seconds = reply_delay_seconds
        self._sleep = sleep

        logger.info(
            f"InboundOrchestrator inicializado (bot={bot_identity}, agente={agent_identity})"
        )

    # Entry points

    def handle_inbound_sms(self, from_address: str, body: str) -> InboundResult:
        """
        Procesa un SMS directo y responde por SMS.

        Args:
            from_address: Número tal cual lo manda el proveedor (ej: '+15551234567')
            body: Texto del mensaje
        """
        identity = normalize_phone(from_address)
        message = (body or "").strip()
        logger.info(f"[{identity}] SMS: {message[:60]}")

        skipped = self._skip_reason(from_address, identity, message)
        if skipped:
            return InboundResult(skipped=skipped)

        composed = self._composer.compose(message)
        needs_human = self._detector.needs_human(composed.text)

        # Primero se envía: un ticket perdido es menos grave que una respuesta perdida
        self._transport.send_sms(from_address, composed.text)
        result = InboundResult(replied=True, reply=composed.text)

        if needs_human:
            result.ticket_id = self._escalate(message, composed.text, from_address)
        return result

    def handle_message_added(
        self, conversation_sid: str, author: str, body: str
    ) -> InboundResult:
        """Procesa un mensaje nuevo dentro de una conversación."""
        identity = normalize_phone(author)
        message = (body or "").strip()
        logger.info(f"[{conversation_sid}] mensaje de {author}: {message[:60]}")

        skipped = self._skip_reason(author, identity, message)
        if skipped:
            return InboundResult(skipped=skipped)

        composed = self._composer.compose(message)
        needs_human = self._detector.needs_human(composed.text)

        # El roster tiene que estar completo antes de publicar la respuesta
        self._sync.ensure_display_name(conversation_sid, identity)
        created = self._ensure_roster(conversation_sid, identity)

        if self.reply_delay_seconds > 0:
            # Deja asentar los cambios de roster del lado del proveedor
            self._sleep(self.reply_delay_seconds)

        self._transport.post_message(conversation_sid, self.bot_identity, composed.text)
        result = InboundResult(
            replied=True, reply=composed.text, roster_created=created
        )

        if needs_human:
            result.ticket_id = self._escalate(message, composed.text, author)

        # Un mensaje nuevo reabre la conversación
        self._archives.unarchive(conversation_sid)
        return result

    def handle_participant_added(
        self, conversation_sid: str, address: Optional[str]
    ) -> InboundResult:
        """Completa nombre visible y roster cuando se suma un participante."""
        identity = normalize_phone(address)
        if not identity:
            # Participantes de chat (agente, bot) no traen dirección de mensajería
            logger.info(f"[{conversation_sid}] participante sin dirección, nada que hacer")
            return InboundResult(skipped=SKIP_NO_ADDRESS)

        logger.info(f"[{conversation_sid}] participante agregado: {identity}")
        self._sync.ensure_display_name(conversation_sid, identity)
        created = self._ensure_roster(conversation_sid, identity)
        return InboundResult(roster_created=created)

    # Internals

    def _skip_reason(self, author: str, identity: str, message: str) -> Optional[str]:
        author_key = (author or "").strip().lower()

        if author_key == self.agent_identity.strip().lower():
            logger.info("Mensaje del agente humano, no se responde")
            return SKIP_AGENT_AUTHOR

        if identity and identity == normalize_phone(self.bot_identity):
            logger.info("Mensaje del propio bot, no se responde")
            return SKIP_BOT_AUTHOR

        if not identity:
            # Sin dígitos no hay a quién responder ni a quién sumar al roster
            logger.info(f"Autor sin dirección de mensajería ({author!r}), no se responde")
            return SKIP_NO_ADDRESS

        if self._registry.is_active(identity):
            logger.info(f"[{identity}] bot inactivo (atiende un humano)")
            return SKIP_BOT_SUPPRESSED

        if not message:
            logger.info(f"[{identity}] mensaje vacío, no se responde")
            return SKIP_EMPTY

        return None

    def _ensure_roster(self, conversation_sid: str, customer_identity: str) -> List[str]:
        return self._sync.ensure_required_roster(
            conversation_sid,
            customer_identity=customer_identity,
            bot_identity=self.bot_identity,
            agent_identity=self.agent_identity,
            agent_attributes=self._agent_attributes,
        )

    def _escalate(self, question: str, answer: str, from_identity: str) -> int:
        logger.info(f"[{from_identity}] respuesta requiere un humano → ticket")
        return self._tickets.record(question, answer, from_identity)
