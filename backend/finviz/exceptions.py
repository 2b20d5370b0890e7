"""Custom exception classes for the finance visualizer."""
from typing import List


class FinvizError(Exception):
    """Base exception for the finance visualizer."""
    pass


class ConfigError(FinvizError):
    """Configuration-related errors."""
    pass


class ParseError(FinvizError):
    """The uploaded text could not be turned into transactions."""
    pass


class EmptyInputError(ParseError):
    """The file has no header or no data rows."""

    def __init__(self, message: str = "The CSV file is empty or has no data rows."):
        super().__init__(message)


class MissingColumnsError(ParseError):
    """One or more required columns are absent from the header."""

    def __init__(self, found: List[str], missing: List[str]):
        self.found = list(found)
        self.missing = list(missing)
        super().__init__(
            "The CSV file must contain at least the columns: Fecha, Ingreso, Gasto. "
            f"Missing: {', '.join(self.missing)}. "
            f"Columns found: {', '.join(self.found)}"
        )


class InvalidDateError(ParseError):
    """A kept row carries a date that cannot be read."""

    def __init__(self, line_number: int, value: str):
        self.line_number = line_number
        self.value = value
        super().__init__(f"Invalid date {value!r} on line {line_number}")


class LLMError(FinvizError):
    """Language model call failed."""
    pass


class ChatSessionError(LLMError):
    """Chat used before it was started or after it was closed."""
    pass


class SessionNotFoundError(FinvizError):
    """No upload session with the given id."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Session not found: {session_id}")
