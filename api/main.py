"""
FastAPI Application - API del bot de soporte por SMS
- Settings centralizado (Pydantic BaseSettings via config.py)
- Dependency Injection con Depends()
- Error Handler global con ErrorResponse
- Async con asyncio.to_thread para el core (llamadas bloqueantes con timeout)

Endpoints:
- GET  /               → Raíz informativa
- GET  /health         → Health check
- GET  /serviceStatus  → ¿Está el bot silenciado para un número?
- POST /toggleService  → Silenciar/reactivar el bot para un número
- POST /sms            → SMS entrantes (webhook de Twilio Messaging)
- POST /webhook        → Eventos de Twilio Conversations
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from agent.activation import ActivationRegistry
from agent.composer import ResponseComposer
from agent.db_service import DBService
from agent.errors import PersistenceError
from agent.escalation import LexicalEscalationDetector
from agent.orchestrator import InboundOrchestrator, normalize_phone
from agent.participants import ParticipantSynchronizer
from agent.provider import TwilioClient
from agent.tickets import ArchiveStore, TicketRecorder
from api.config import Settings, get_settings
from api.dedup import RecentMessageCache
from api.models import (
    ErrorResponse,
    HealthResponse,
    ServiceStatusResponse,
    ToggleServiceRequest,
    ToggleServiceResponse,
)
from rag.query.responder import GroqResponder
from rag.query.retriever import KnowledgeRetriever

# Logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"
EMPTY_TWIML = "<Response></Response>"

EVENT_PARTICIPANT_ADDED = "onParticipantAdded"
EVENT_MESSAGE_ADDED = "onMessageAdded"


# Dependency Injection
# Singletons inyectables via Depends() para facilitar testing

_registry = ActivationRegistry()
_db: DBService | None = None
_provider: TwilioClient | None = None
_orchestrator: InboundOrchestrator | None = None
_message_cache: RecentMessageCache | None = None


def get_registry() -> ActivationRegistry:
    """Registro de números con el bot silenciado (vive lo que vive el proceso)."""
    return _registry


def get_db(settings: Settings = Depends(get_settings)) -> DBService:
    global _db
    if _db is None:
        _db = DBService(settings.db_full_path)
        _db.init_schema()
    return _db


def get_message_cache(
    settings: Settings = Depends(get_settings),
) -> Optional[RecentMessageCache]:
    global _message_cache
    if not settings.DEDUP_ENABLED:
        return None
    if _message_cache is None:
        _message_cache = RecentMessageCache(
            ttl_seconds=settings.DEDUP_TTL_SECONDS,
            max_entries=settings.DEDUP_MAX_ENTRIES,
        )
    return _message_cache


def get_orchestrator(settings: Settings = Depends(get_settings)) -> InboundOrchestrator:
    """
    Dependency que provee el InboundOrchestrator.

    Permite override en tests via app.dependency_overrides[get_orchestrator].
    """
    global _orchestrator, _provider
    if _orchestrator is None:
        db = get_db(settings)
        logger.info("Inicializando InboundOrchestrator...")

        _provider = TwilioClient(
            account_sid=settings.TWILIO_ACCOUNT_SID,
            auth_token=settings.TWILIO_AUTH_TOKEN,
            from_number=settings.TWILIO_PHONE_NUMBER,
            timeout=settings.PROVIDER_TIMEOUT_SECONDS,
        )
        composer = ResponseComposer(
            retriever=KnowledgeRetriever(db, top_k=settings.TOP_K_RETRIEVAL),
            responder=GroqResponder(
                api_key=settings.GROQ_API_KEY,
                model=settings.LLM_MODEL,
                target_words=settings.LLM_TARGET_WORDS,
                temperature=settings.LLM_TEMPERATURE,
                max_tokens=settings.LLM_MAX_TOKENS,
                timeout=settings.LLM_TIMEOUT_SECONDS,
            ),
            max_length=settings.MAX_REPLY_LENGTH,
            confidence_threshold=settings.CONFIDENCE_THRESHOLD,
        )
        _orchestrator = InboundOrchestrator(
            registry=get_registry(),
            composer=composer,
            detector=LexicalEscalationDetector(),
            tickets=TicketRecorder(db),
            archives=ArchiveStore(db),
            synchronizer=ParticipantSynchronizer(_provider),
            transport=_provider,
            bot_identity=settings.TWILIO_PHONE_NUMBER,
            agent_identity=settings.AGENT_IDENTITY,
            agent_display_name=settings.AGENT_DISPLAY_NAME,
            reply_delay_seconds=settings.THREAD_REPLY_DELAY_SECONDS,
        )
        logger.info("InboundOrchestrator inicializado correctamente")
    return _orchestrator


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan event handler: pre-carga el orquestador al startup."""
    logger.info("Support bot API iniciando...")
    try:
        get_orchestrator(get_settings())
        logger.info("Orchestrator pre-cargado")
    except Exception as e:
        logger.error(f"Error inicializando orchestrator: {e}")

    yield

    if _provider is not None:
        _provider.close()
    logger.info("Support bot API cerrando...")


# FastAPI App

app = FastAPI(
    title="SMS Support Bot API",
    description="Bot de soporte por SMS con base de conocimiento y escalamiento a humanos",
    version=API_VERSION,
    lifespan=lifespan,
    responses={
        422: {"model": ErrorResponse, "description": "Error de validación"},
        500: {"model": ErrorResponse, "description": "Error interno"},
    },
)

# CORS middleware (el panel de agentes consulta /serviceStatus desde el navegador)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error(status: int, type_: str, title: str, detail: str) -> JSONResponse:
    return JSONResponse(
        status_code=status,
        content=ErrorResponse(
            type=type_, title=title, status=status, detail=detail
        ).model_dump(),
    )


# Global Error Handlers


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Errores de validación Pydantic → 422 con formato ErrorResponse."""
    return _error(422, "validation_error", "Datos de entrada inválidos", str(exc.errors()))


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """HTTPException → ErrorResponse con el status original."""
    detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    return _error(exc.status_code, "http_error", detail, detail)


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    """
    Excepción no manejada → 500 genérico.

    Loguea el error real pero devuelve mensaje genérico al cliente.
    """
    logger.error(f"Error no manejado en {request.url.path}: {exc}", exc_info=True)
    return _error(
        500,
        "internal_error",
        "Error Interno",
        "Error interno del servidor. Intenta nuevamente más tarde.",
    )


# Endpoints


@app.get("/", tags=["Root"])
async def root():
    """Endpoint raíz"""
    return {
        "message": "SMS Support Bot API",
        "version": API_VERSION,
        "docs": "/docs",
        "health": "/health",
    }


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check(settings: Settings = Depends(get_settings)):
    """
    Health check endpoint.

    Verifica el estado de:
    - Base de datos
    - Groq API (via API key)
    - Credenciales de Twilio
    """
    components = {}
    overall_status = "healthy"

    if settings.db_full_path.exists():
        components["database"] = "ok"
    else:
        components["database"] = "missing"
        overall_status = "degraded"

    if settings.GROQ_API_KEY:
        components["groq_api"] = "ok"
    else:
        components["groq_api"] = "no_api_key"
        overall_status = "degraded"

    if settings.TWILIO_ACCOUNT_SID and settings.TWILIO_AUTH_TOKEN:
        components["twilio"] = "ok"
    else:
        components["twilio"] = "no_credentials"
        overall_status = "degraded"

    return HealthResponse(
        status=overall_status, version=API_VERSION, components=components
    )


# Service control


@app.get("/serviceStatus", response_model=ServiceStatusResponse, tags=["Service"])
async def service_status(
    phoneNumber: Optional[str] = Query(default=None),
    registry: ActivationRegistry = Depends(get_registry),
):
    """¿Está el bot silenciado para este número?"""
    identity = normalize_phone(phoneNumber)
    if not identity:
        raise HTTPException(status_code=400, detail="Phone number is required")

    is_active = registry.is_active(identity)
    logger.info(f"Estado de {identity}: isActive={is_active}")
    return ServiceStatusResponse(isActive=is_active)


@app.post("/toggleService", response_model=ToggleServiceResponse, tags=["Service"])
async def toggle_service(
    request: ToggleServiceRequest,
    registry: ActivationRegistry = Depends(get_registry),
):
    """Silencia (isActive=true) o reactiva (false) el bot para un número."""
    identity = normalize_phone(request.phoneNumber)
    if not identity:
        raise HTTPException(status_code=400, detail="Invalid phone number")

    registry.set_active(identity, request.isActive)
    return ToggleServiceResponse(
        message=f"Service for {identity} is now {request.isActive}",
        isActive=request.isActive,
    )


# Webhooks


@app.post("/sms", tags=["Webhook"])
async def handle_sms(
    request: Request,
    orchestrator: InboundOrchestrator = Depends(get_orchestrator),
    message_cache: Optional[RecentMessageCache] = Depends(get_message_cache),
):
    """
    Recibe SMS entrantes desde Twilio Messaging.

    Responde con TwiML vacío: la respuesta se envía por la API REST.
    """
    form = await request.form()
    from_address = str(form.get("From", ""))
    body = str(form.get("Body", ""))
    msg_id = str(form.get("MessageSid", ""))

    if message_cache is not None and message_cache.seen(msg_id):
        logger.info(f"SMS duplicado ignorado: {msg_id}")
        return Response(content=EMPTY_TWIML, media_type="text/xml")

    try:
        result = await asyncio.to_thread(
            orchestrator.handle_inbound_sms, from_address, body
        )
    except PersistenceError as e:
        # La respuesta ya salió: una reentrega no debe reenviarla
        if message_cache is not None:
            message_cache.remember(msg_id)
        logger.error(f"SMS respondido pero sin registrar para {from_address}: {e}", exc_info=True)
        return _error(
            500, "webhook_error", "Error procesando SMS", "Failed to process your message."
        )
    except Exception as e:
        logger.error(f"Error procesando SMS de {from_address}: {e}", exc_info=True)
        return _error(
            500, "webhook_error", "Error procesando SMS", "Failed to process your message."
        )

    if message_cache is not None:
        message_cache.remember(msg_id)
    logger.info(f"SMS procesado: replied={result.replied} skipped={result.skipped}")
    return Response(content=EMPTY_TWIML, media_type="text/xml")


@app.post("/webhook", tags=["Webhook"])
async def handle_conversation_event(
    request: Request,
    orchestrator: InboundOrchestrator = Depends(get_orchestrator),
    message_cache: Optional[RecentMessageCache] = Depends(get_message_cache),
):
    """
    Recibe eventos de Twilio Conversations.

    - onParticipantAdded → nombre visible + roster
    - onMessageAdded     → roster + respuesta del bot en la conversación
    """
    form = await request.form()
    event_type = str(form.get("EventType", ""))
    conversation_sid = str(form.get("ConversationSid", ""))
    msg_id = str(form.get("MessageSid", ""))

    logger.info(f"Webhook {event_type} para {conversation_sid}")

    if event_type not in (EVENT_PARTICIPANT_ADDED, EVENT_MESSAGE_ADDED):
        logger.info(f"Evento ignorado: {event_type}")
        return {"status": "ignored"}

    if not conversation_sid:
        raise HTTPException(status_code=400, detail="ConversationSid is required")

    if (
        event_type == EVENT_MESSAGE_ADDED
        and message_cache is not None
        and message_cache.seen(msg_id)
    ):
        logger.info(f"Mensaje duplicado ignorado: {msg_id}")
        return {"status": "duplicate"}

    try:
        if event_type == EVENT_PARTICIPANT_ADDED:
            await asyncio.to_thread(
                orchestrator.handle_participant_added,
                conversation_sid,
                str(form.get("MessagingBinding.Address", "")),
            )
        else:
            await asyncio.to_thread(
                orchestrator.handle_message_added,
                conversation_sid,
                str(form.get("Author", "")),
                str(form.get("Body", "")),
            )
    except PersistenceError as e:
        # El mensaje ya se publicó: una reentrega no debe publicarlo otra vez
        if event_type == EVENT_MESSAGE_ADDED and message_cache is not None:
            message_cache.remember(msg_id)
        logger.error(f"Webhook respondido pero sin registrar en {conversation_sid}: {e}", exc_info=True)
        return _error(
            500,
            "webhook_error",
            "Error procesando webhook",
            "Error interno procesando el evento.",
        )
    except Exception as e:
        logger.error(f"Webhook error en {conversation_sid}: {e}", exc_info=True)
        return _error(
            500,
            "webhook_error",
            "Error procesando webhook",
            "Error interno procesando el evento.",
        )

    if event_type == EVENT_MESSAGE_ADDED and message_cache is not None:
        message_cache.remember(msg_id)
    return {"status": "ok"}


# Error Handler 404


@app.exception_handler(404)
async def not_found_handler(request: Request, exc):
    """Handler para 404"""
    return _error(
        404,
        "not_found",
        "No Encontrado",
        f"El endpoint '{request.url.path}' no existe.",
    )


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "api.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        log_level="info",
    )
