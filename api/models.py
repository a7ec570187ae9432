"""
Pydantic models para validación de requests/responses.
"""

from typing import Dict

from pydantic import BaseModel, Field, StrictBool


# Error Response (RFC 7807 simplificado)


class ErrorResponse(BaseModel):
    """
    Modelo de error estructurado inspirado en RFC 7807.

    Se usa en todos los errores para garantizar un formato consistente.
    """

    type: str = Field(
        ..., description="Categoría del error (ej: 'validation_error', 'webhook_error')"
    )
    title: str = Field(..., description="Título breve del error")
    status: int = Field(..., description="Código HTTP del error")
    detail: str = Field(..., description="Descripción legible del error")


# Service control


class ToggleServiceRequest(BaseModel):
    """Activa/desactiva la supresión del bot para un número."""

    phoneNumber: str = Field(..., min_length=1, description="Número del cliente")
    isActive: StrictBool = Field(
        ..., description="True = un humano atiende, el bot se calla"
    )

    model_config = {
        "json_schema_extra": {
            "examples": [{"phoneNumber": "+1 555 123 4567", "isActive": True}]
        }
    }


class ServiceStatusResponse(BaseModel):
    isActive: bool


class ToggleServiceResponse(BaseModel):
    message: str
    isActive: bool


class HealthResponse(BaseModel):
    """Response del health check"""

    status: str = Field(..., description="Estado del servicio")
    version: str = Field(..., description="Versión de la API")
    components: Dict[str, str] = Field(..., description="Estado de componentes")
