"""Simplified configuration management using environment variables."""
from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


def _load_environment() -> None:
    """Load the first .env file found in the current or parent directory."""
    for env_path in (Path(".env"), Path("../.env")):
        if env_path.exists():
            load_dotenv(env_path, override=False)
            logger.debug(f"Loaded environment from {env_path}")
            break


_load_environment()


def _parse_bool(value: str | bool | None) -> bool:
    """Parse boolean value from various formats."""
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return value.strip().lower() in ("true", "1", "yes", "on", "enabled")


def _parse_list(value: str | List[str] | None, delimiter: str = ",") -> List[str]:
    """Parse list value from string or return as-is if already a list."""
    if isinstance(value, list):
        return value
    if isinstance(value, str):
        return [item.strip() for item in value.split(delimiter) if item.strip()]
    return []


def _getenv(key: str, default: str = "") -> str:
    """Get environment variable with default."""
    return os.getenv(key, default)


def _getenv_int(key: str, default: int) -> int:
    """Get integer environment variable with validation.

    Raises:
        ValueError: If value cannot be parsed as integer
    """
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError as e:
        raise ValueError(
            f"Invalid integer value for {key}='{value}'. "
            f"Expected integer, got: {value}"
        ) from e


def _getenv_float(key: str, default: float) -> float:
    """Get float environment variable with validation.

    Raises:
        ValueError: If value cannot be parsed as float
    """
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError as e:
        raise ValueError(
            f"Invalid float value for {key}='{value}'. "
            f"Expected float, got: {value}"
        ) from e


@dataclass
class Config:
    """Application configuration loaded from environment variables."""

    # ========== Application Settings ==========
    app_name: str = field(default_factory=lambda: _getenv("APP_NAME", "meetsync"))
    environment: str = field(default_factory=lambda: _getenv("ENVIRONMENT", "production"))

    # ========== Logging ==========
    log_level: str = field(default_factory=lambda: _getenv("LOG_LEVEL", "INFO").upper())
    log_dir: Path = field(default_factory=lambda: Path(_getenv("LOG_DIR", "logs")))

    # ========== Backend Selection ==========
    transcription_backend: str = field(
        default_factory=lambda: _getenv("TRANSCRIPTION_BACKEND", "deepgram").lower()
    )
    language_backend: str = field(default_factory=lambda: _getenv("LANGUAGE_BACKEND", "openai").lower())
    tracker_backend: str = field(default_factory=lambda: _getenv("TRACKER_BACKEND", "github").lower())
    record_store: str = field(default_factory=lambda: _getenv("RECORD_STORE", "memory").lower())
    record_db_path: Path = field(
        default_factory=lambda: Path(_getenv("RECORD_DB_PATH", "./data/records.db"))
    )

    # ========== Pipeline ==========
    stage_deadline: float = field(default_factory=lambda: _getenv_float("PIPELINE_STAGE_DEADLINE", 0.0))
    default_page_size: int = field(default_factory=lambda: _getenv_int("DEFAULT_PAGE_SIZE", 20))

    # ========== API Keys ==========
    DEEPGRAM_API_KEY: Optional[str] = field(default_factory=lambda: _getenv("DEEPGRAM_API_KEY") or None)
    OPENAI_API_KEY: Optional[str] = field(default_factory=lambda: _getenv("OPENAI_API_KEY") or None)
    GITHUB_TOKEN: Optional[str] = field(default_factory=lambda: _getenv("GITHUB_TOKEN") or None)

    # ========== Deepgram Settings ==========
    DEEPGRAM_MODEL: str = field(default_factory=lambda: _getenv("DEEPGRAM_MODEL", "nova-3"))
    DEEPGRAM_LANGUAGE: str = field(default_factory=lambda: _getenv("DEEPGRAM_LANGUAGE", "en"))

    # ========== OpenAI Settings ==========
    OPENAI_BASE_URL: Optional[str] = field(default_factory=lambda: _getenv("OPENAI_BASE_URL") or None)
    OPENAI_MODEL: str = field(default_factory=lambda: _getenv("OPENAI_MODEL", "gpt-4o-mini"))

    # ========== GitHub Settings ==========
    GITHUB_API_URL: str = field(default_factory=lambda: _getenv("GITHUB_API_URL", "https://api.github.com"))
    GITHUB_USER_AGENT: str = field(default_factory=lambda: _getenv("GITHUB_USER_AGENT", "meetsync/1.0"))
    default_labels: List[str] = field(default_factory=lambda: _parse_list(_getenv("GITHUB_DEFAULT_LABELS", "")))

    # ========== Timeout Settings ==========
    request_timeout: int = field(default_factory=lambda: _getenv_int("REQUEST_TIMEOUT", 30))

    # ========== Retry Settings ==========
    max_retries: int = field(default_factory=lambda: _getenv_int("MAX_API_RETRIES", 3))
    retry_delay: float = field(default_factory=lambda: _getenv_float("API_RETRY_DELAY", 1.0))
    max_retry_delay: float = field(default_factory=lambda: _getenv_float("MAX_RETRY_DELAY", 60.0))
    retry_exponential_base: float = field(default_factory=lambda: _getenv_float("RETRY_EXPONENTIAL_BASE", 2.0))
    retry_jitter: bool = field(default_factory=lambda: _parse_bool(_getenv("RETRY_JITTER_ENABLED", "true")))

    # ========== Circuit Breaker Settings ==========
    circuit_breaker_failure_threshold: int = field(
        default_factory=lambda: _getenv_int("CIRCUIT_BREAKER_FAILURE_THRESHOLD", 5)
    )
    circuit_breaker_recovery_timeout: float = field(
        default_factory=lambda: _getenv_float("CIRCUIT_BREAKER_RECOVERY_TIMEOUT", 60.0)
    )

    def __repr__(self) -> str:
        """Return repr with redacted API keys for security."""
        sensitive_fields = {"DEEPGRAM_API_KEY", "OPENAI_API_KEY", "GITHUB_TOKEN"}
        items = []
        for field_name in self.__dataclass_fields__:
            value = getattr(self, field_name)
            if field_name in sensitive_fields and value:
                items.append(f"{field_name}='***REDACTED***'")
            else:
                items.append(f"{field_name}={value!r}")
        return f"Config({', '.join(items)})"

    @property
    def stage_deadline_seconds(self) -> Optional[float]:
        """Per-pipeline deadline in seconds, or None when unbounded."""
        return self.stage_deadline if self.stage_deadline > 0 else None

    def validate(self) -> None:
        """Validate the selected backends have what they need.

        Raises:
            ValueError: If a selected backend is missing its credentials
        """
        if self.transcription_backend == "deepgram" and not self.DEEPGRAM_API_KEY:
            raise ValueError(
                "DEEPGRAM_API_KEY environment variable not found or invalid. "
                "Set it in your environment or create a .env file with: "
                "DEEPGRAM_API_KEY=your-api-key-here"
            )
        if self.language_backend == "openai" and not self.OPENAI_API_KEY:
            raise ValueError(
                "OPENAI_API_KEY environment variable not found or invalid. "
                "Set it in your environment or create a .env file with: "
                "OPENAI_API_KEY=your-api-key-here"
            )
        if self.record_store not in ("memory", "sqlite"):
            raise ValueError(f"Unknown record store: {self.record_store}")
        if self.default_page_size < 1:
            raise ValueError("DEFAULT_PAGE_SIZE must be at least 1")


# Singleton instance with thread-safe initialization
_config_instance: Optional[Config] = None
_config_lock = threading.Lock()


def get_config() -> Config:
    """Get global config instance (singleton pattern, thread-safe)."""
    global _config_instance
    if _config_instance is None:
        with _config_lock:
            # Double-check pattern to prevent race conditions
            if _config_instance is None:
                _config_instance = Config()
    return _config_instance


def reset_config() -> None:
    """Drop the cached instance so the next get_config() re-reads the environment."""
    global _config_instance
    with _config_lock:
        _config_instance = None


__all__ = ["Config", "get_config", "reset_config"]
