"""
Cliente del proveedor de mensajería (Twilio REST API).

Cubre las dos superficies que usa el bot:
- SMS directo (Programmable Messaging)
- Conversaciones multi-participante (Conversations API)

Cada llamada lleva timeout y no se reintenta: la reentrega del
webhook por parte del proveedor es el único mecanismo de retry.
"""

import json
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

import httpx

from agent.errors import DeliveryError, DirectoryError, ParticipantAlreadyExistsError

logger = logging.getLogger(__name__)


TWILIO_API_BASE = "https://api.twilio.com/2010-04-01"
CONVERSATIONS_API_BASE = "https://conversations.twilio.com/v1"

# Código de Twilio para "Participant already exists"
PARTICIPANT_EXISTS_CODE = 50433


@dataclass(frozen=True)
class ConversationThread:
    sid: str
    friendly_name: str


@dataclass(frozen=True)
class Participant:
    sid: str
    identity: Optional[str]
    attributes: Dict


def _error_code(response: httpx.Response) -> Optional[int]:
    try:
        return response.json().get("code")
    except ValueError:
        return None


class TwilioClient:
    """Cliente HTTP sincrónico para Twilio."""

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        from_number: str,
        timeout: float = 20.0,
        http_client: Optional[httpx.Client] = None,
    ):
        self.account_sid = account_sid
        self.from_number = from_number
        self._http = http_client or httpx.Client(
            auth=(account_sid, auth_token), timeout=timeout
        )

    def close(self) -> None:
        self._http.close()

    # SMS

    def send_sms(self, to: str, body: str) -> str:
        """Envía un SMS y devuelve el SID del mensaje."""
        url = f"{TWILIO_API_BASE}/Accounts/{self.account_sid}/Messages.json"
        try:
            response = self._http.post(
                url, data={"To": to, "From": self.from_number, "Body": body}
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise DeliveryError(f"Error enviando SMS a {to}: {e}") from e

        sid = response.json().get("sid", "")
        logger.info(f"✅ SMS enviado a {to} ({sid})")
        return sid

    # Conversations

    def _conversation_url(self, conversation_sid: str) -> str:
        return f"{CONVERSATIONS_API_BASE}/Conversations/{conversation_sid}"

    def fetch_conversation(self, conversation_sid: str) -> ConversationThread:
        try:
            response = self._http.get(self._conversation_url(conversation_sid))
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise DirectoryError(
                f"Error leyendo conversación {conversation_sid}: {e}"
            ) from e

        data = response.json()
        return ConversationThread(
            sid=data.get("sid", conversation_sid),
            friendly_name=data.get("friendly_name") or "",
        )

    def update_conversation(self, conversation_sid: str, friendly_name: str) -> None:
        try:
            response = self._http.post(
                self._conversation_url(conversation_sid),
                data={"FriendlyName": friendly_name},
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise DirectoryError(
                f"Error actualizando conversación {conversation_sid}: {e}"
            ) from e

    def list_participants(self, conversation_sid: str) -> List[Participant]:
        """Lista todos los participantes (sigue la paginación)."""
        url = f"{self._conversation_url(conversation_sid)}/Participants"
        params = {"PageSize": 100}
        participants: List[Participant] = []

        try:
            while url:
                response = self._http.get(url, params=params)
                response.raise_for_status()
                data = response.json()
                for p in data.get("participants", []):
                    participants.append(
                        Participant(
                            sid=p.get("sid", ""),
                            identity=p.get("identity"),
                            attributes=_parse_attributes(p.get("attributes")),
                        )
                    )
                # next_page_url ya trae los query params
                url = (data.get("meta") or {}).get("next_page_url")
                params = None
        except httpx.HTTPError as e:
            raise DirectoryError(
                f"Error listando participantes de {conversation_sid}: {e}"
            ) from e

        return participants

    def create_participant(
        self, conversation_sid: str, identity: str, attributes: Dict
    ) -> Participant:
        url = f"{self._conversation_url(conversation_sid)}/Participants"
        try:
            response = self._http.post(
                url,
                data={"Identity": identity, "Attributes": json.dumps(attributes)},
            )
        except httpx.HTTPError as e:
            raise DirectoryError(
                f"Error creando participante {identity} en {conversation_sid}: {e}"
            ) from e

        if response.status_code == 409 or _error_code(response) == PARTICIPANT_EXISTS_CODE:
            raise ParticipantAlreadyExistsError(
                f"{identity} ya es participante de {conversation_sid}"
            )

        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise DirectoryError(
                f"Error creando participante {identity} en {conversation_sid}: {e}"
            ) from e

        data = response.json()
        return Participant(
            sid=data.get("sid", ""),
            identity=data.get("identity", identity),
            attributes=_parse_attributes(data.get("attributes")),
        )

    def post_message(self, conversation_sid: str, author: str, body: str) -> str:
        """Publica un mensaje en la conversación y devuelve su SID."""
        url = f"{self._conversation_url(conversation_sid)}/Messages"
        try:
            response = self._http.post(url, data={"Author": author, "Body": body})
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise DeliveryError(
                f"Error publicando mensaje en {conversation_sid}: {e}"
            ) from e

        sid = response.json().get("sid", "")
        logger.info(f"✅ Mensaje publicado en {conversation_sid} ({sid})")
        return sid


def _parse_attributes(raw) -> Dict:
    """Twilio devuelve attributes como string JSON."""
    if isinstance(raw, dict):
        return raw
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError):
        return {}
    return parsed if isinstance(parsed, dict) else {}
