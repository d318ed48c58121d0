"""Backend capability interfaces and their concrete adapters.

Concrete adapters (deepgram, openai_language, github) import their SDKs and
are loaded by BackendFactory on demand.
"""

from .base import (
    BaseBackend,
    BaseLanguageBackend,
    BaseTrackerBackend,
    BaseTranscriptionBackend,
    CircuitBreakerConfig,
    CircuitBreakerError,
    CircuitState,
)

__all__ = [
    "BaseBackend",
    "BaseLanguageBackend",
    "BaseTrackerBackend",
    "BaseTranscriptionBackend",
    "CircuitBreakerConfig",
    "CircuitBreakerError",
    "CircuitState",
]
