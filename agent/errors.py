"""
Errores del bot de soporte.

Taxonomía:
- RetrievalError: la base de conocimiento no respondió (se recupera con el fallback generativo)
- GenerationError: el servicio de completions falló (fatal para el evento)
- ProviderError: el proveedor de mensajería falló
    - DirectoryError: lectura/creación de conversaciones o participantes
        - ParticipantAlreadyExistsError: benigno, el synchronizer lo trata como éxito
    - DeliveryError: envío de SMS o post en el hilo
- PersistenceError: escritura de tickets/archivos
"""


class SupportBotError(Exception):
    """Base de todos los errores del core."""


class RetrievalError(SupportBotError):
    pass


class GenerationError(SupportBotError):
    pass


class ProviderError(SupportBotError):
    pass


class DirectoryError(ProviderError):
    pass


class ParticipantAlreadyExistsError(DirectoryError):
    pass


class DeliveryError(ProviderError):
    pass


class PersistenceError(SupportBotError):
    pass
