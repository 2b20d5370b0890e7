"""Application settings read from environment variables."""
import os
from dataclasses import dataclass, field
from typing import List, Optional

from .exceptions import ConfigError


def _split_origins(value: str) -> List[str]:
    return [origin.strip() for origin in value.split(",") if origin.strip()]


@dataclass
class Settings:
    """Runtime settings for the API and its language model collaborator."""

    gemini_api_key: Optional[str] = None
    gemini_model: str = "gemini-2.5-flash"
    llm_max_records: int = 500
    cors_origins: List[str] = field(default_factory=lambda: ["http://localhost:13030"])
    max_upload_bytes: int = 5 * 1024 * 1024
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the process environment."""
        try:
            llm_max_records = int(os.getenv("LLM_MAX_RECORDS", "500"))
            max_upload_bytes = int(os.getenv("MAX_UPLOAD_BYTES", str(5 * 1024 * 1024)))
        except ValueError as e:
            raise ConfigError(f"Invalid numeric setting: {e}") from e

        return cls(
            gemini_api_key=os.getenv("GEMINI_API_KEY") or os.getenv("API_KEY"),
            gemini_model=os.getenv("GEMINI_MODEL", "gemini-2.5-flash"),
            llm_max_records=llm_max_records,
            cors_origins=_split_origins(os.getenv("CORS_ORIGINS", "http://localhost:13030")),
            max_upload_bytes=max_upload_bytes,
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )

    def require_api_key(self) -> str:
        """Return the Gemini key or raise ConfigError when it is not set."""
        if not self.gemini_api_key:
            raise ConfigError("GEMINI_API_KEY environment variable not set.")
        return self.gemini_api_key
