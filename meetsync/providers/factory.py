"""Factory for creating the backends and record store selected by configuration.

Each backend category keeps a registry of name -> builder. Builders take the
application Config plus the shared circuit breaker and retry policies, so
tests and alternative deployments can register their own implementations.

Example:
    >>> config = get_config()
    >>> transcriber = BackendFactory.create_transcription_backend(config)
    >>> pipeline = BackendFactory.create_pipeline(config)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, Tuple

from ..config import Config, get_config
from ..utils.retry import RetryConfig
from .base import (
    BaseLanguageBackend,
    BaseTrackerBackend,
    BaseTranscriptionBackend,
    CircuitBreakerConfig,
)

if TYPE_CHECKING:
    from ..orchestration.pipeline import TranscriptionPipeline
    from ..orchestration.record_store import RecordStore
    from ..orchestration.sync import SyncOrchestrator

logger = logging.getLogger(__name__)

Policies = Tuple[CircuitBreakerConfig, RetryConfig]
TranscriptionBuilder = Callable[[Config, CircuitBreakerConfig, RetryConfig], BaseTranscriptionBackend]
LanguageBuilder = Callable[[Config, CircuitBreakerConfig, RetryConfig], BaseLanguageBackend]
TrackerBuilder = Callable[[Config, CircuitBreakerConfig, RetryConfig], BaseTrackerBackend]


def _build_deepgram(config: Config, circuit: CircuitBreakerConfig, retry: RetryConfig) -> BaseTranscriptionBackend:
    from .deepgram import DeepgramTranscriber

    return DeepgramTranscriber(
        api_key=config.DEEPGRAM_API_KEY,
        model=config.DEEPGRAM_MODEL,
        language=config.DEEPGRAM_LANGUAGE,
        circuit_config=circuit,
        retry_config=retry,
    )


def _build_openai(config: Config, circuit: CircuitBreakerConfig, retry: RetryConfig) -> BaseLanguageBackend:
    from .openai_language import OpenAILanguageBackend

    return OpenAILanguageBackend(
        api_key=config.OPENAI_API_KEY,
        model=config.OPENAI_MODEL,
        base_url=config.OPENAI_BASE_URL,
        timeout=config.request_timeout,
        circuit_config=circuit,
        retry_config=retry,
    )


def _build_github(config: Config, circuit: CircuitBreakerConfig, retry: RetryConfig) -> BaseTrackerBackend:
    from .github import GitHubTracker

    return GitHubTracker(
        api_url=config.GITHUB_API_URL,
        user_agent=config.GITHUB_USER_AGENT,
        timeout=config.request_timeout,
        circuit_config=circuit,
        retry_config=retry,
    )


class BackendFactory:
    """Registry-based factory for backends; all methods are class methods."""

    _transcription: Dict[str, TranscriptionBuilder] = {"deepgram": _build_deepgram}
    _language: Dict[str, LanguageBuilder] = {"openai": _build_openai}
    _tracker: Dict[str, TrackerBuilder] = {"github": _build_github}

    @classmethod
    def register_transcription_backend(cls, name: str, builder: TranscriptionBuilder) -> None:
        cls._transcription[name] = builder
        logger.debug(f"Registered transcription backend: {name}")

    @classmethod
    def register_language_backend(cls, name: str, builder: LanguageBuilder) -> None:
        cls._language[name] = builder
        logger.debug(f"Registered language backend: {name}")

    @classmethod
    def register_tracker_backend(cls, name: str, builder: TrackerBuilder) -> None:
        cls._tracker[name] = builder
        logger.debug(f"Registered tracker backend: {name}")

    @classmethod
    def get_available_backends(cls) -> Dict[str, List[str]]:
        return {
            "transcription": sorted(cls._transcription),
            "language": sorted(cls._language),
            "tracker": sorted(cls._tracker),
        }

    @staticmethod
    def _policies(config: Config) -> Policies:
        """Circuit breaker and retry policies from Config."""
        circuit = CircuitBreakerConfig(
            failure_threshold=config.circuit_breaker_failure_threshold,
            recovery_timeout=config.circuit_breaker_recovery_timeout,
        )
        return circuit, RetryConfig.from_config(config)

    @classmethod
    def _create(cls, kind: str, registry: Dict[str, Callable], name: str, config: Config):
        if name not in registry:
            available = ", ".join(sorted(registry))
            raise ValueError(f"Unknown {kind} backend '{name}'. Available backends: {available}")

        circuit, retry = cls._policies(config)
        try:
            backend = registry[name](config, circuit, retry)
        except ValueError as e:
            logger.error(f"Failed to create {kind} backend '{name}': {e}")
            raise
        logger.info(f"Created {kind} backend: {backend.get_provider_name()}")
        return backend

    @classmethod
    def create_transcription_backend(cls, config: Optional[Config] = None) -> BaseTranscriptionBackend:
        config = config or get_config()
        return cls._create("transcription", cls._transcription, config.transcription_backend, config)

    @classmethod
    def create_language_backend(cls, config: Optional[Config] = None) -> BaseLanguageBackend:
        config = config or get_config()
        return cls._create("language", cls._language, config.language_backend, config)

    @classmethod
    def create_tracker_backend(cls, config: Optional[Config] = None) -> BaseTrackerBackend:
        config = config or get_config()
        return cls._create("tracker", cls._tracker, config.tracker_backend, config)

    @classmethod
    def create_record_store(cls, config: Optional[Config] = None) -> "RecordStore":
        from ..orchestration.record_store import InMemoryRecordStore, SQLiteRecordStore

        config = config or get_config()
        if config.record_store == "sqlite":
            return SQLiteRecordStore(config.record_db_path)
        if config.record_store == "memory":
            return InMemoryRecordStore()
        raise ValueError(f"Unknown record store: {config.record_store}")

    @classmethod
    def create_pipeline(
        cls, config: Optional[Config] = None, store: Optional["RecordStore"] = None
    ) -> "TranscriptionPipeline":
        """Wire a TranscriptionPipeline from the configured store and backends."""
        from ..orchestration.pipeline import TranscriptionPipeline

        config = config or get_config()
        return TranscriptionPipeline(
            store=store or cls.create_record_store(config),
            transcriber=cls.create_transcription_backend(config),
            language=cls.create_language_backend(config),
            default_deadline=config.stage_deadline_seconds,
            page_size=config.default_page_size,
        )

    @classmethod
    def create_sync_orchestrator(
        cls, config: Optional[Config] = None, language: Optional[BaseLanguageBackend] = None
    ) -> "SyncOrchestrator":
        from ..orchestration.sync import SyncOrchestrator

        config = config or get_config()
        return SyncOrchestrator(
            tracker=cls.create_tracker_backend(config),
            language=language or cls.create_language_backend(config),
        )
