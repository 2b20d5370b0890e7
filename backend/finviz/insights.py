"""Gemini-backed financial insights and chat assistant."""
import json
import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from .config import Settings
from .exceptions import ChatSessionError, LLMError
from .langfuse_tracer import LangfuseTracer
from .models import Transaction

logger = logging.getLogger(__name__)

# API errors from Gemini plus transport failures (timeouts, refused connections)
MODEL_ERRORS = (genai_errors.APIError, httpx.HTTPError)

INSIGHTS_PROMPT = """
Eres un experto analista financiero. Analiza los siguientes datos de transacciones (en formato JSON simplificado) de un usuario y proporciona un informe conciso en español y en formato Markdown.

El informe debe incluir:
1.  **Resumen General:** Una breve descripción de la salud financiera general basada en los datos (ingresos vs. gastos, balance neto).
2.  **Insights Clave:** 3 a 5 puntos destacados y fáciles de entender sobre patrones de gasto, las categorías más significativas, o tendencias a lo largo del tiempo.
3.  **Recomendaciones Accionables:** 3 a 5 consejos prácticos y realistas para que el usuario pueda optimizar sus gastos, aumentar sus ahorros o mejorar su gestión financiera.

Sé amigable, alentador y profesional en tu tono.

Datos de Transacciones:
{data}
"""

CHAT_INSTRUCTION = (
    "Eres un asistente financiero amigable y experto llamado 'FinancIA'. "
    "Tu propósito es responder preguntas del usuario basándote únicamente en los "
    "siguientes datos de transacciones. Sé conciso, claro y utiliza los datos para "
    "respaldar tus respuestas. No inventes información. Responde siempre en español."
    "\n\nDATOS DE TRANSACCIONES:\n{data}"
)


def simplify_transactions(
    transactions: Sequence[Transaction], limit: int = 500
) -> List[Dict[str, Any]]:
    """
    Project transactions onto the compact shape sent to the model.

    Args:
        transactions: Parsed transactions
        limit: Maximum number of records, to bound the request size

    Returns:
        Dicts with fecha (ISO date), tipo, categoria and monto
    """
    simplified = []
    for txn in transactions[:limit]:
        is_income = txn.income > 0
        simplified.append({
            "fecha": txn.date.isoformat(),
            "tipo": "ingreso" if is_income else "gasto",
            "categoria": txn.category,
            "monto": float(txn.income if is_income else txn.expense),
        })
    return simplified


def _dump(records: List[Dict[str, Any]]) -> str:
    return json.dumps(records, indent=2, ensure_ascii=False)


class ChatSession:
    """A follow-up conversation grounded on one uploaded dataset."""

    def __init__(self, chat: Any, model: str, tracer: Optional[LangfuseTracer] = None,
                 session_id: Optional[str] = None):
        self._chat = chat
        self.model = model
        self.tracer = tracer
        self.session_id = session_id

    @property
    def is_open(self) -> bool:
        return self._chat is not None

    def send(self, message: str) -> str:
        """
        Send a user question and return the assistant's reply.

        Raises:
            ChatSessionError: if the session was closed
            LLMError: if the model call fails
        """
        if self._chat is None:
            raise ChatSessionError("El chat no ha sido inicializado. Sube un archivo primero.")

        trace = self.tracer.create_trace("chat_message", self.session_id) if self.tracer else None
        try:
            response = self._chat.send_message(message)
            reply = response.text or ""
            if self.tracer:
                self.tracer.add_generation(trace, "gemini_chat", self.model, message, reply)
        except MODEL_ERRORS as e:
            logger.error(f"Error sending chat message: {e}")
            raise LLMError("No se pudo obtener una respuesta del asistente.") from e
        finally:
            if self.tracer:
                self.tracer.end_trace(trace)
        return reply

    def close(self):
        """Invalidate the session; later sends raise ChatSessionError."""
        self._chat = None


class InsightsService:
    """Talks to Gemini for the insight report and chat sessions."""

    def __init__(self, settings: Settings, client: Optional[Any] = None,
                 tracer: Optional[LangfuseTracer] = None):
        """
        Args:
            settings: Model name, record cap and API key
            client: Prebuilt genai client; created lazily from the API key otherwise
            tracer: Optional Langfuse tracer for the model calls
        """
        self.settings = settings
        self._client = client
        self.tracer = tracer

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = genai.Client(api_key=self.settings.require_api_key())
        return self._client

    def generate_insights(self, transactions: Sequence[Transaction],
                          session_id: Optional[str] = None) -> str:
        """
        Ask the model for a Markdown report on the transactions.

        Raises:
            ConfigError: no API key configured
            LLMError: the model call failed
        """
        data = simplify_transactions(transactions, self.settings.llm_max_records)
        prompt = INSIGHTS_PROMPT.format(data=_dump(data))

        trace = self.tracer.create_trace("financial_insights", session_id,
                                         {"records": len(data)}) if self.tracer else None
        try:
            response = self.client.models.generate_content(
                model=self.settings.gemini_model,
                contents=prompt,
            )
            text = response.text or ""
            if self.tracer:
                self.tracer.add_generation(trace, "gemini_insights", self.settings.gemini_model,
                                           prompt, text)
        except MODEL_ERRORS as e:
            logger.error(f"Error calling Gemini API: {e}")
            raise LLMError(
                "No se pudieron generar los insights. Por favor, inténtalo de nuevo."
            ) from e
        finally:
            if self.tracer:
                self.tracer.end_trace(trace)
        logger.info(f"Generated insights from {len(data)} records")
        return text

    def start_chat(self, transactions: Sequence[Transaction],
                   session_id: Optional[str] = None) -> ChatSession:
        """Open a chat whose system instruction carries the transaction data."""
        data = simplify_transactions(transactions, self.settings.llm_max_records)
        chat = self.client.chats.create(
            model=self.settings.gemini_model,
            config=types.GenerateContentConfig(
                system_instruction=CHAT_INSTRUCTION.format(data=_dump(data)),
            ),
        )
        return ChatSession(chat, self.settings.gemini_model, self.tracer, session_id)
