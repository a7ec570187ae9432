"""
Tests para rag/query/responder.py — Fallback generativo con Groq.

El cliente de Groq se mockea: no hay llamadas reales a la API.
"""

from types import SimpleNamespace
from unittest.mock import patch

import pytest
from groq import GroqError

from agent.errors import GenerationError
from rag.query.responder import GroqResponder


def _completion(content):
    message = SimpleNamespace(content=content)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)])


@pytest.fixture
def groq_client():
    with patch("rag.query.responder.Groq") as groq_cls:
        yield groq_cls.return_value


@pytest.fixture
def responder(groq_client):
    return GroqResponder(api_key="test-key", model="test-model", target_words=100)


class TestInit:
    def test_requires_api_key(self):
        with pytest.raises(ValueError):
            GroqResponder(api_key="")

    def test_client_without_retries(self):
        with patch("rag.query.responder.Groq") as groq_cls:
            GroqResponder(api_key="k", timeout=12.5)
        groq_cls.assert_called_once_with(api_key="k", timeout=12.5, max_retries=0)


class TestGenerate:
    def test_messages_with_context(self, responder, groq_client):
        groq_client.chat.completions.create.return_value = _completion("We open at 9.")

        reply = responder.generate("When do you open?", "Q: Hours? A: 9 to 5.")

        assert reply == "We open at 9."
        kwargs = groq_client.chat.completions.create.call_args.kwargs
        messages = kwargs["messages"]
        assert [m["role"] for m in messages] == ["system", "system", "user"]
        assert "90 to 100 words" in messages[0]["content"]
        assert "complete sentence" in messages[0]["content"]
        assert messages[1]["content"] == "Q: Hours? A: 9 to 5."
        assert messages[2]["content"] == "When do you open?"
        assert kwargs["model"] == "test-model"
        assert kwargs["max_tokens"] == 140

    def test_no_context_message_when_empty(self, responder, groq_client):
        groq_client.chat.completions.create.return_value = _completion("Hello!")

        responder.generate("Hi", "")

        messages = groq_client.chat.completions.create.call_args.kwargs["messages"]
        assert [m["role"] for m in messages] == ["system", "user"]

    def test_strips_wrapping_quotes(self, responder, groq_client):
        groq_client.chat.completions.create.return_value = _completion('  "Sure thing."  ')
        assert responder.generate("Hi", "") == "Sure thing."

    def test_api_error_becomes_generation_error(self, responder, groq_client):
        groq_client.chat.completions.create.side_effect = GroqError("timeout")
        with pytest.raises(GenerationError):
            responder.generate("Hi", "")

    def test_empty_content(self, responder, groq_client):
        groq_client.chat.completions.create.return_value = _completion("   ")
        with pytest.raises(GenerationError):
            responder.generate("Hi", "")

    def test_no_choices(self, responder, groq_client):
        groq_client.chat.completions.create.return_value = SimpleNamespace(choices=[])
        with pytest.raises(GenerationError):
            responder.generate("Hi", "")
