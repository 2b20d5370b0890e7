"""Tests for the Gemini insight and chat collaborator."""
import json
from datetime import date
from decimal import Decimal

import httpx
import pytest
from google.genai import errors as genai_errors

from finviz.config import Settings
from finviz.exceptions import ChatSessionError, ConfigError, LLMError
from finviz.insights import InsightsService, simplify_transactions
from finviz.langfuse_tracer import LangfuseTracer
from finviz.models import Transaction


@pytest.fixture
def transactions():
    return [
        Transaction(date=date(2023, 1, 5), income=Decimal("2000"), category="Income"),
        Transaction(date=date(2023, 1, 12), expense=Decimal("85.40"), category="Comida"),
    ]


def api_error():
    return genai_errors.APIError(500, {"error": {"message": "boom", "status": "INTERNAL"}})


class TestSimplifyTransactions:
    def test_projection(self, transactions):
        assert simplify_transactions(transactions) == [
            {"fecha": "2023-01-05", "tipo": "ingreso", "categoria": "Income", "monto": 2000.0},
            {"fecha": "2023-01-12", "tipo": "gasto", "categoria": "Comida", "monto": 85.4},
        ]

    def test_capped_at_limit(self):
        many = [
            Transaction(date=date(2023, 1, 1), expense=Decimal(i + 1), category="X")
            for i in range(600)
        ]

        simplified = simplify_transactions(many)

        assert len(simplified) == 500
        assert simplified[-1]["monto"] == 500.0


class TestInsightsService:
    def test_generate_insights(self, insights_service, fake_genai, transactions):
        text = insights_service.generate_insights(transactions)

        assert text.startswith("## Resumen General")
        call = fake_genai.models.calls[0]
        assert call["model"] == "gemini-test"
        assert "Recomendaciones Accionables" in call["contents"]
        assert '"categoria": "Comida"' in call["contents"]

    def test_prompt_respects_record_cap(self, fake_genai, transactions):
        service = InsightsService(Settings(gemini_api_key="k", llm_max_records=1), client=fake_genai)

        service.generate_insights(transactions)

        payload = fake_genai.models.calls[0]["contents"].split("Datos de Transacciones:\n", 1)[1]
        assert len(json.loads(payload)) == 1

    def test_api_error_becomes_llm_error(self, insights_service, fake_genai, transactions):
        fake_genai.models.error = api_error()

        with pytest.raises(LLMError, match="No se pudieron generar los insights"):
            insights_service.generate_insights(transactions)

    def test_missing_api_key(self, transactions):
        service = InsightsService(Settings(gemini_api_key=None))

        with pytest.raises(ConfigError):
            service.generate_insights(transactions)


class TestChatSession:
    def test_system_instruction_carries_data(self, insights_service, fake_genai, transactions):
        insights_service.start_chat(transactions)

        instruction = fake_genai.chats.created[0].config.system_instruction
        assert "FinancIA" in instruction
        assert '"fecha": "2023-01-12"' in instruction

    def test_send(self, insights_service, fake_genai, transactions):
        chat = insights_service.start_chat(transactions)

        reply = chat.send("¿Cuánto gasté en comida?")

        assert reply == "Respuesta a: ¿Cuánto gasté en comida?"
        assert fake_genai.chats.created[0].messages == ["¿Cuánto gasté en comida?"]

    def test_send_after_close(self, insights_service, transactions):
        chat = insights_service.start_chat(transactions)
        chat.close()

        assert chat.is_open is False
        with pytest.raises(ChatSessionError):
            chat.send("hola")

    def test_api_error_becomes_llm_error(self, insights_service, fake_genai, transactions):
        chat = insights_service.start_chat(transactions)
        fake_genai.chats.created[0].error = api_error()

        with pytest.raises(LLMError, match="No se pudo obtener una respuesta"):
            chat.send("hola")


class TestModelFailures:
    """Transport failures and tracing around failed model calls."""

    def test_transport_error_becomes_llm_error(self, insights_service, fake_genai, transactions):
        fake_genai.models.error = httpx.ConnectError("connection refused")

        with pytest.raises(LLMError):
            insights_service.generate_insights(transactions)

    def test_chat_timeout_becomes_llm_error(self, insights_service, fake_genai, transactions):
        chat = insights_service.start_chat(transactions)
        fake_genai.chats.created[0].error = httpx.ReadTimeout("timed out")

        with pytest.raises(LLMError):
            chat.send("hola")

    def test_trace_ended_when_insights_fail(self, settings, fake_genai, fake_langfuse, transactions):
        service = InsightsService(settings, client=fake_genai,
                                  tracer=LangfuseTracer(client=fake_langfuse))
        fake_genai.models.error = api_error()

        with pytest.raises(LLMError):
            service.generate_insights(transactions, "abc")

        assert ("end", "financial_insights") in fake_langfuse.log
        assert fake_langfuse.log[-1] == ("flush",)

    def test_trace_ended_when_chat_fails(self, settings, fake_genai, fake_langfuse, transactions):
        service = InsightsService(settings, client=fake_genai,
                                  tracer=LangfuseTracer(client=fake_langfuse))
        chat = service.start_chat(transactions, "abc")
        fake_genai.chats.created[0].error = httpx.ConnectError("connection refused")

        with pytest.raises(LLMError):
            chat.send("hola")

        assert ("end", "chat_message") in fake_langfuse.log
        assert fake_langfuse.log[-1] == ("flush",)
