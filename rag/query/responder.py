"""
Responder - Genera respuestas de fallback usando LLM (Groq API).

Este módulo:
1. Integra con Groq API para generación de texto
2. Arma el prompt con el contexto Q&A recuperado
3. Acota longitud (palabras objetivo + techo de tokens) y latencia (timeout)
4. Traduce errores de la API a GenerationError
"""

import logging
from typing import Dict, List

from groq import Groq, GroqError

from agent.errors import GenerationError

logger = logging.getLogger(__name__)


class GroqResponder:
    """Genera respuestas usando Groq LLM API"""

    def __init__(
        self,
        api_key: str = None,
        model: str = None,
        target_words: int = 100,
        temperature: float = 0.1,
        max_tokens: int = 140,
        timeout: float = 60.0,
    ):
        """
        Inicializa el responder con Groq client.

        Args:
            api_key: API key de Groq (requerida)
            model: Modelo a usar (default: llama-3.3-70b-versatile)
            target_words: Largo objetivo de la respuesta en palabras
            temperature: Temperatura de muestreo (baja = casi determinística)
            max_tokens: Techo duro de tokens de salida
            timeout: Timeout del cliente en segundos
        """
        if not api_key:
            raise ValueError("GROQ_API_KEY no encontrada.")

        # Sin reintentos: la política de reentrega del proveedor manda
        self.client = Groq(api_key=api_key, timeout=timeout, max_retries=0)
        self.model = model or "llama-3.3-70b-versatile"
        self.target_words = target_words
        self.temperature = temperature
        self.max_tokens = max_tokens

        logger.info(f"Groq Responder inicializado (modelo: {self.model})")

    def generate(self, user_text: str, context: str) -> str:
        """
        Genera una respuesta para el mensaje del usuario.

        Args:
            user_text: Mensaje tal cual lo escribió el cliente
            context: Bloque "Q: ... A: ..." (puede ser vacío)

        Raises:
            GenerationError: si la API falla o devuelve una respuesta vacía
        """
        messages = self._build_messages(user_text, context)

        try:
            completion = self.client.chat.completions.create(
                messages=messages,
                model=self.model,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except GroqError as e:
            raise GenerationError(f"Error al generar respuesta: {e}") from e

        if not completion.choices:
            raise GenerationError("Respuesta del LLM sin choices")

        content = completion.choices[0].message.content
        if not content or not content.strip():
            raise GenerationError("Respuesta del LLM vacía")

        # Limpiar comillas envolventes que el LLM a veces agrega
        return content.strip().strip('"“”')

    def _build_messages(self, user_text: str, context: str) -> List[Dict[str, str]]:
        lower = max(self.target_words - 10, 1)
        messages = [
            {
                "role": "system",
                "content": (
                    "Provide a clear, concise, and informative response within "
                    f"{lower} to {self.target_words} words and ensure the response "
                    "ends at a complete sentence."
                ),
            }
        ]
        if context:
            messages.append({"role": "system", "content": context})
        messages.append({"role": "user", "content": user_text})
        return messages
