"""
Langfuse tracing integration for the finance visualizer.

This module provides utilities to trace the Gemini calls behind the insight
report and the chat assistant.
"""

import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

from langfuse import Langfuse
from langfuse.types import TraceContext

logger = logging.getLogger(__name__)


@dataclass
class TraceHandle:
    """Lightweight wrapper for Langfuse trace context."""

    client: Any
    trace_context: TraceContext
    root_span: Optional[object] = None

    def end(self):
        """End the root span if it is still open."""
        if self.root_span:
            try:
                self.root_span.end()
            except Exception as e:
                logger.warning(f"Failed to end root span: {e}")
            finally:
                self.root_span = None


class LangfuseTracer:
    """Wrapper for the Langfuse client, configured from the environment."""

    def __init__(self, client: Optional[Any] = None):
        """
        Initialize the tracer.

        Args:
            client: Prebuilt Langfuse client; when omitted one is created if
                LANGFUSE_PUBLIC_KEY is set
        """
        self.client = client
        self.enabled = client is not None

        if client is None and os.getenv("LANGFUSE_PUBLIC_KEY") is not None:
            try:
                debug_mode = os.getenv("LANGFUSE_DEBUG", "false").lower() == "true"
                self.client = Langfuse(
                    public_key=os.getenv("LANGFUSE_PUBLIC_KEY"),
                    secret_key=os.getenv("LANGFUSE_SECRET_KEY"),
                    host=os.getenv("LANGFUSE_HOST", "http://localhost:3001"),
                    debug=debug_mode,
                )
                self.enabled = True
                logger.info(f"Langfuse client initialized with host: {os.getenv('LANGFUSE_HOST')}")
            except Exception:
                logger.warning("Failed to initialize Langfuse", exc_info=True)
                self.client = None
                self.enabled = False

    def is_enabled(self) -> bool:
        """Check if Langfuse tracing is enabled and available."""
        return self.enabled

    def create_trace(
        self,
        name: str,
        session_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Optional[TraceHandle]:
        """
        Create a new trace for monitoring an operation.

        Args:
            name: Name of the operation (e.g., "financial_insights")
            session_id: Upload session the operation belongs to
            metadata: Optional metadata dictionary

        Returns:
            TraceHandle or None if tracing is disabled
        """
        if not self.enabled or not self.client:
            return None

        try:
            trace_id = self.client.create_trace_id()
            trace_context = TraceContext(trace_id=trace_id)
            root_span = self.client.start_span(
                trace_context=trace_context,
                name=name,
                metadata={**(metadata or {}), "session_id": session_id or "none"},
            )
            logger.debug(f"Created trace: {name} (ID: {trace_id})")
            return TraceHandle(
                client=self.client, trace_context=trace_context, root_span=root_span
            )
        except Exception:
            logger.warning("Failed to create trace", exc_info=True)
            return None

    def add_generation(
        self,
        trace: Optional[TraceHandle],
        name: str,
        model: str,
        input_text: str,
        output_text: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Log an LLM generation (API call) to the trace.

        Args:
            trace: Trace object from create_trace()
            name: Name of the generation (e.g., "gemini_chat")
            model: Model name (e.g., "gemini-2.5-flash")
            input_text: Prompt or message sent to the model
            output_text: Text returned by the model
            metadata: Optional additional metadata
        """
        if not trace or not self.client:
            return

        try:
            generation = self.client.start_generation(
                trace_context=trace.trace_context,
                name=name,
                model=model,
                input=input_text,
                metadata=metadata or {},
            )
            generation.update(output=output_text)
            generation.end()
        except Exception:
            logger.warning("Failed to add generation to trace", exc_info=True)

    def end_trace(self, trace: Optional[TraceHandle]) -> None:
        """Close the root span and flush pending events."""
        if not trace:
            return
        trace.end()
        try:
            if self.client:
                self.client.flush()
        except Exception:
            logger.warning("Failed to flush trace", exc_info=True)
