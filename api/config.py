"""
Configuración centralizada del bot de soporte SMS.

Usa Pydantic BaseSettings para:
- Validar TODAS las variables de entorno al startup
- Proveer tipos seguros y defaults documentados
- Fallar rápido si falta config crítica (GROQ_API_KEY)
"""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


# Raíz del proyecto (donde vive .env)
PROJECT_ROOT = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    """Configuración tipada y validada del bot."""

    model_config = SettingsConfigDict(
        env_file=str(PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",  # Ignorar env vars no declaradas
    )

    # LLM / Groq
    GROQ_API_KEY: str  # Requerida: falla al startup si falta
    LLM_MODEL: str = "llama-3.3-70b-versatile"
    LLM_TEMPERATURE: float = 0.1
    LLM_MAX_TOKENS: int = 140
    LLM_TARGET_WORDS: int = 100
    LLM_TIMEOUT_SECONDS: float = 60.0

    # Composer
    CONFIDENCE_THRESHOLD: float = 0.5
    MAX_REPLY_LENGTH: int = 700
    TOP_K_RETRIEVAL: int = 5

    # Twilio
    TWILIO_ACCOUNT_SID: str = ""
    TWILIO_AUTH_TOKEN: str = ""
    TWILIO_PHONE_NUMBER: str = ""
    PROVIDER_TIMEOUT_SECONDS: float = 20.0
    THREAD_REPLY_DELAY_SECONDS: float = 3.0

    # Agente humano que se suma a cada conversación
    AGENT_IDENTITY: str = "support@example.com"
    AGENT_DISPLAY_NAME: str = "Support Agent"

    # Deduplicación de reentregas del webhook
    DEDUP_ENABLED: bool = True
    DEDUP_TTL_SECONDS: int = 300
    DEDUP_MAX_ENTRIES: int = 500

    # Database
    DATABASE_PATH: str = "database/sqlite/supportbot.db"

    # API
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000

    @property
    def db_full_path(self) -> Path:
        """Ruta absoluta a la base de datos."""
        db = Path(self.DATABASE_PATH)
        if db.is_absolute():
            return db
        return PROJECT_ROOT / db


@lru_cache
def get_settings() -> Settings:
    """
    Singleton de configuración (cacheado).

    Falla inmediatamente si faltan variables requeridas (GROQ_API_KEY).
    """
    return Settings()
