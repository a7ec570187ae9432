"""
Activation Registry — Números para los que el bot está silenciado.

Un número "activo" significa que un humano tomó la conversación
y el bot no debe responder. Vive solo en memoria: un reinicio lo limpia.
"""

import logging
import threading
from typing import FrozenSet

logger = logging.getLogger(__name__)


class ActivationRegistry:
    """Set de identidades normalizadas con el bot suprimido.

    Lecturas frecuentes, escrituras raras (toggles administrativos).
    Las escrituras se serializan con un lock; las lecturas ven un
    frozenset que se reemplaza entero en cada cambio.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._active: FrozenSet[str] = frozenset()

    def is_active(self, identity: str) -> bool:
        """True si el bot debe quedarse callado para esta identidad."""
        return identity in self._active

    def set_active(self, identity: str, active: bool) -> bool:
        """
        Activa/desactiva la supresión del bot para una identidad.

        Idempotente. Devuelve True si el estado cambió.
        """
        with self._lock:
            if active == (identity in self._active):
                logger.info(f"[{identity}] ya estaba en estado active={active}")
                return False

            if active:
                self._active = self._active | {identity}
            else:
                self._active = self._active - {identity}

        logger.info(f"[{identity}] active → {active} ({len(self._active)} suprimidos)")
        return True

    def snapshot(self) -> FrozenSet[str]:
        return self._active
