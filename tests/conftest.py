"""
Configuración compartida de fixtures para los tests del bot.

Provee:
- Settings de prueba (sin necesidad de .env real)
- DB SQLite temporal con schema
- Fakes en memoria del retriever, del LLM y del proveedor de mensajería
- Orchestrator armado con los fakes
- TestClient de FastAPI con dependency overrides
"""

import sys
import threading
from pathlib import Path
from typing import Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

# Agregar raíz del proyecto al path
project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_root))

from agent.activation import ActivationRegistry
from agent.composer import ResponseComposer
from agent.db_service import DBService
from agent.errors import ParticipantAlreadyExistsError
from agent.escalation import LexicalEscalationDetector
from agent.orchestrator import InboundOrchestrator
from agent.participants import ParticipantSynchronizer
from agent.provider import ConversationThread, Participant
from agent.tickets import ArchiveStore, TicketRecorder
from api import main
from api.config import Settings, get_settings
from api.dedup import RecentMessageCache
from rag.query.retriever import CandidateAnswer

BOT_NUMBER = "+19995550100"
AGENT_IDENTITY = "agent@example.com"


# Settings de prueba


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    """Settings con valores seguros para testing (no necesita .env)."""
    return Settings(
        GROQ_API_KEY="test-key-fake-12345",
        TWILIO_ACCOUNT_SID="ACtest",
        TWILIO_AUTH_TOKEN="token",
        TWILIO_PHONE_NUMBER=BOT_NUMBER,
        AGENT_IDENTITY=AGENT_IDENTITY,
        THREAD_REPLY_DELAY_SECONDS=0,
        DATABASE_PATH=str(tmp_path / "test.db"),
    )


# Fakes


class FakeRetriever:
    def __init__(self):
        self.candidates: List[CandidateAnswer] = []
        self.error: Optional[Exception] = None
        self.queries: List[str] = []

    def search(self, query: str) -> List[CandidateAnswer]:
        self.queries.append(query)
        if self.error is not None:
            raise self.error
        return list(self.candidates)


class FakeResponder:
    def __init__(self):
        self.reply = "Our team will get back to you shortly."
        self.error: Optional[Exception] = None
        self.calls: List[Dict[str, str]] = []

    def generate(self, user_text: str, context: str) -> str:
        self.calls.append({"user_text": user_text, "context": context})
        if self.error is not None:
            raise self.error
        return self.reply


class FakeProvider:
    """Proveedor de mensajería en memoria (thread-safe).

    ``race_barrier`` fuerza que N hilos terminen de listar
    participantes antes de que cualquiera cree uno.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self.friendly_names: Dict[str, str] = {}
        self.participants: Dict[str, List[Participant]] = {}
        self.create_calls = 0
        self.sms: List[Dict[str, str]] = []
        self.posts: List[Dict[str, str]] = []
        self.race_barrier: Optional[threading.Barrier] = None
        self.delivery_error: Optional[Exception] = None
        self.directory_error: Optional[Exception] = None

    def fetch_conversation(self, conversation_sid: str) -> ConversationThread:
        if self.directory_error is not None:
            raise self.directory_error
        with self._lock:
            return ConversationThread(
                sid=conversation_sid,
                friendly_name=self.friendly_names.get(conversation_sid, ""),
            )

    def update_conversation(self, conversation_sid: str, friendly_name: str) -> None:
        with self._lock:
            self.friendly_names[conversation_sid] = friendly_name

    def list_participants(self, conversation_sid: str) -> List[Participant]:
        if self.directory_error is not None:
            raise self.directory_error
        with self._lock:
            current = list(self.participants.get(conversation_sid, []))
        if self.race_barrier is not None:
            self.race_barrier.wait(timeout=5)
        return current

    def create_participant(
        self, conversation_sid: str, identity: str, attributes: Dict
    ) -> Participant:
        with self._lock:
            self.create_calls += 1
            roster = self.participants.setdefault(conversation_sid, [])
            if any(p.identity == identity for p in roster):
                raise ParticipantAlreadyExistsError(identity)
            participant = Participant(
                sid=f"MB{len(roster):04d}", identity=identity, attributes=attributes
            )
            roster.append(participant)
            return participant

    def identities(self, conversation_sid: str) -> List[str]:
        return [p.identity for p in self.participants.get(conversation_sid, [])]

    def send_sms(self, to: str, body: str) -> str:
        if self.delivery_error is not None:
            raise self.delivery_error
        self.sms.append({"to": to, "body": body})
        return f"SM{len(self.sms):04d}"

    def post_message(self, conversation_sid: str, author: str, body: str) -> str:
        if self.delivery_error is not None:
            raise self.delivery_error
        self.posts.append(
            {"conversation_sid": conversation_sid, "author": author, "body": body}
        )
        return f"IM{len(self.posts):04d}"


# Fixtures de componentes


@pytest.fixture
def db(tmp_path) -> DBService:
    """DBService con schema en un DB temporal."""
    service = DBService(tmp_path / "test.db")
    service.init_schema()
    return service


@pytest.fixture
def registry() -> ActivationRegistry:
    return ActivationRegistry()


@pytest.fixture
def retriever() -> FakeRetriever:
    return FakeRetriever()


@pytest.fixture
def responder() -> FakeResponder:
    return FakeResponder()


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def sleeps() -> List[float]:
    return []


@pytest.fixture
def orchestrator(db, registry, retriever, responder, provider, sleeps):
    """Orchestrator con DB real y fakes para retriever, LLM y proveedor."""
    return InboundOrchestrator(
        registry=registry,
        composer=ResponseComposer(retriever, responder, max_length=700),
        detector=LexicalEscalationDetector(),
        tickets=TicketRecorder(db),
        archives=ArchiveStore(db),
        synchronizer=ParticipantSynchronizer(provider),
        transport=provider,
        bot_identity=BOT_NUMBER,
        agent_identity=AGENT_IDENTITY,
        agent_display_name="Support Agent",
        reply_delay_seconds=3.0,
        sleep=sleeps.append,
    )


# TestClient con DI overrides


@pytest.fixture
def client(test_settings, orchestrator, registry, monkeypatch) -> TestClient:
    """
    TestClient de FastAPI con dependency overrides.

    Reemplaza las dependencias reales por fakes:
    - get_settings → test_settings (sin .env)
    - get_orchestrator → orchestrator con fakes
    - get_registry → registry compartido con el orchestrator
    """
    cache = RecentMessageCache()
    # El lifespan llama get_orchestrator() directamente
    monkeypatch.setattr(main, "_orchestrator", orchestrator)

    main.app.dependency_overrides[get_settings] = lambda: test_settings
    main.app.dependency_overrides[main.get_orchestrator] = lambda: orchestrator
    main.app.dependency_overrides[main.get_registry] = lambda: registry
    main.app.dependency_overrides[main.get_message_cache] = lambda: cache

    with TestClient(main.app, raise_server_exceptions=False) as c:
        yield c

    # Limpiar overrides después del test
    main.app.dependency_overrides.clear()
