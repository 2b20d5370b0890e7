"""Pytest configuration and fixtures for testing the Finance Visualizer API."""
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from finviz.config import Settings
from finviz.insights import InsightsService
from finviz.main import app
from finviz.sessions import SessionStore


class FakeChat:
    """Stands in for a google-genai chat object."""

    def __init__(self, config):
        self.config = config
        self.messages = []
        self.error = None

    def send_message(self, message):
        if self.error:
            raise self.error
        self.messages.append(message)
        return SimpleNamespace(text=f"Respuesta a: {message}")


class FakeModels:
    def __init__(self):
        self.calls = []
        self.error = None

    def generate_content(self, model, contents):
        if self.error:
            raise self.error
        self.calls.append({"model": model, "contents": contents})
        return SimpleNamespace(text="## Resumen General\nTodo bien.")


class FakeChats:
    def __init__(self):
        self.created = []

    def create(self, model, config):
        chat = FakeChat(config)
        self.created.append(chat)
        return chat


class FakeGenaiClient:
    """Minimal google-genai Client with models and chats namespaces."""

    def __init__(self):
        self.models = FakeModels()
        self.chats = FakeChats()


class FakeSpan:
    def __init__(self, log, name):
        self.log = log
        self.name = name

    def update(self, **kwargs):
        self.log.append(("update", self.name, kwargs))

    def end(self):
        self.log.append(("end", self.name))


class FakeLangfuse:
    """Records the Langfuse v3 calls the tracer makes."""

    def __init__(self):
        self.log = []

    def create_trace_id(self):
        return "trace-1"

    def start_span(self, trace_context, name, metadata):
        self.log.append(("span", name, metadata))
        return FakeSpan(self.log, name)

    def start_generation(self, trace_context, name, model, input, metadata):
        self.log.append(("generation", name, model))
        return FakeSpan(self.log, name)

    def flush(self):
        self.log.append(("flush",))


@pytest.fixture
def fake_langfuse():
    return FakeLangfuse()


@pytest.fixture
def settings():
    return Settings(gemini_api_key="test-key", gemini_model="gemini-test")


@pytest.fixture
def fake_genai():
    return FakeGenaiClient()


@pytest.fixture
def insights_service(settings, fake_genai):
    return InsightsService(settings, client=fake_genai)


@pytest.fixture
def client(insights_service):
    """Create a test client with fresh sessions and a fake Gemini client."""
    original_sessions = app.state.sessions
    original_insights = app.state.insights

    app.state.sessions = SessionStore()
    app.state.insights = insights_service

    yield TestClient(app)

    app.state.sessions = original_sessions
    app.state.insights = original_insights


@pytest.fixture
def sample_csv_content():
    """Sample semicolon CSV content for testing."""
    return """Fecha;Descripción;Ingreso;Gasto;Categoría
2023-01-05;Nómina;2000,00;;
2023-01-12;Supermercado;;85,40;Comida
2023-01-20;Cine;;12,00;Ocio
2023-02-03;Alquiler;;700;Vivienda
2023-02-15;Restaurante;;45,60;Comida
2022-12-28;Regalo;150;;"""


@pytest.fixture
def sample_csv_file(sample_csv_content, tmp_path):
    """Create a temporary CSV file for testing."""
    csv_file = tmp_path / "movimientos.csv"
    csv_file.write_text(sample_csv_content, encoding="utf-8")
    return csv_file
