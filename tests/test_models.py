"""
Tests para los modelos Pydantic de la API y del loader de FAQ.

Cubre:
- ToggleServiceRequest (campos requeridos, booleano estricto)
- ErrorResponse (formato RFC 7807)
- FAQEntry (keywords como lista o string)
"""

import pytest
from pydantic import ValidationError

from api.models import ErrorResponse, HealthResponse, ToggleServiceRequest
from rag.ingest.load_faq import FAQEntry


class TestToggleServiceRequest:
    def test_request_valido(self):
        req = ToggleServiceRequest(phoneNumber="+1 555 123 4567", isActive=True)
        assert req.isActive is True

    def test_sin_phone(self):
        with pytest.raises(ValidationError):
            ToggleServiceRequest(isActive=True)

    def test_phone_vacio(self):
        with pytest.raises(ValidationError):
            ToggleServiceRequest(phoneNumber="", isActive=True)

    def test_is_active_string_rechazado(self):
        with pytest.raises(ValidationError):
            ToggleServiceRequest(phoneNumber="15551234567", isActive="yes")

    def test_is_active_int_rechazado(self):
        with pytest.raises(ValidationError):
            ToggleServiceRequest(phoneNumber="15551234567", isActive=1)


class TestErrorResponse:
    def test_formato(self):
        err = ErrorResponse(type="webhook_error", title="Error", status=500, detail="x")
        assert err.model_dump() == {
            "type": "webhook_error",
            "title": "Error",
            "status": 500,
            "detail": "x",
        }

    def test_campos_requeridos(self):
        with pytest.raises(ValidationError):
            ErrorResponse(type="x", title="y")


class TestHealthResponse:
    def test_estructura(self):
        resp = HealthResponse(status="healthy", version="1.0.0", components={"database": "ok"})
        assert resp.components["database"] == "ok"


class TestFAQEntry:
    def test_keywords_lista(self):
        entry = FAQEntry(question="Q?", answer="A.", keywords=["hours", " open ", ""])
        assert entry.keywords == "hours open"

    def test_keywords_default(self):
        assert FAQEntry(question="Q?", answer="A.").keywords == ""

    def test_answer_requerida(self):
        with pytest.raises(ValidationError):
            FAQEntry(question="Q?", answer="")
