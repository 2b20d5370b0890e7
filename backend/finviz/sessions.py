"""In-memory upload sessions tying a dataset to its chat."""
import logging
import threading
import uuid
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from .exceptions import ChatSessionError, SessionNotFoundError
from .insights import ChatSession
from .models import AnalysisResult, Transaction

logger = logging.getLogger(__name__)


@dataclass
class UploadSession:
    """One successfully parsed upload and the chat opened on it."""

    session_id: str
    transactions: List[Transaction]
    analysis: AnalysisResult
    chat: Optional[ChatSession] = None
    insights: Optional[str] = field(default=None, repr=False)
    closed: bool = False
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def open_chat(self, start_chat: Callable[[], ChatSession]) -> ChatSession:
        """
        Return the session's chat, starting it on first use.

        Args:
            start_chat: Builds a new ChatSession; called at most once

        Raises:
            ChatSessionError: if the session was already closed
        """
        with self._lock:
            if self.closed:
                raise ChatSessionError(f"Session {self.session_id} has been reset")
            if self.chat is None:
                self.chat = start_chat()
            return self.chat

    def close(self):
        with self._lock:
            self.closed = True
            if self.chat is not None:
                self.chat.close()
                self.chat = None


class SessionStore:
    """Thread-safe registry of upload sessions, owned by the application."""

    def __init__(self):
        self._sessions: Dict[str, UploadSession] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._sessions)

    def create(self, transactions: List[Transaction], analysis: AnalysisResult) -> UploadSession:
        session = UploadSession(uuid.uuid4().hex, list(transactions), analysis)
        with self._lock:
            self._sessions[session.session_id] = session
        logger.info(f"Created session {session.session_id} with {len(transactions)} transactions")
        return session

    def get(self, session_id: str) -> UploadSession:
        with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def discard(self, session_id: str) -> None:
        """Remove a session and invalidate its chat."""
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is None:
            raise SessionNotFoundError(session_id)
        session.close()
        logger.info(f"Discarded session {session_id}")
