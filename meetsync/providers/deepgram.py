"""Deepgram speech-to-text backend.

Uses the Deepgram v3 SDK prerecorded API. The SDK client is synchronous, so
requests run in a worker thread to keep the event loop free.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Optional

from deepgram import DeepgramClient, PrerecordedOptions

from ..utils.retry import RetryConfig
from .base import BaseTranscriptionBackend, CircuitBreakerConfig

logger = logging.getLogger(__name__)

MIMETYPES = {
    ".mp3": "audio/mp3",
    ".wav": "audio/wav",
    ".m4a": "audio/mp4",
    ".mp4": "audio/mp4",
    ".aac": "audio/aac",
    ".flac": "audio/flac",
    ".ogg": "audio/ogg",
    ".webm": "audio/webm",
}


def detect_mimetype(file_name: str) -> str:
    """MIME type for an audio file name, 'audio/mp3' when the extension is unknown."""
    return MIMETYPES.get(Path(file_name).suffix.lower(), "audio/mp3")


class DeepgramTranscriber(BaseTranscriptionBackend):
    """Deepgram Nova transcription backend."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "nova-3",
        language: str = "en",
        circuit_config: Optional[CircuitBreakerConfig] = None,
        retry_config: Optional[RetryConfig] = None,
    ):
        """Initialize the transcriber.

        Args:
            api_key: Deepgram API key
            model: Deepgram model name
            language: ISO 639-1 language code
            circuit_config: Circuit breaker configuration
            retry_config: Retry configuration

        Raises:
            ValueError: If no API key is given
        """
        super().__init__(circuit_config, retry_config)
        if not api_key:
            raise ValueError(
                "DEEPGRAM_API_KEY not found. Set it as environment variable or pass to constructor."
            )
        self.api_key = api_key
        self.model = model
        self.language = language
        self._client: Optional[DeepgramClient] = None

    def get_provider_name(self) -> str:
        return f"Deepgram {self.model}"

    def _get_client(self) -> DeepgramClient:
        if self._client is None:
            self._client = DeepgramClient(self.api_key)
        return self._client

    def _build_options(self) -> PrerecordedOptions:
        return PrerecordedOptions(
            model=self.model,
            smart_format=True,
            punctuate=True,
            paragraphs=True,
            language=self.language,
        )

    @staticmethod
    def _extract_transcript(response: Any) -> str:
        try:
            return response.results.channels[0].alternatives[0].transcript or ""
        except (AttributeError, IndexError, TypeError) as e:
            raise ValueError(f"Deepgram response has no transcript: {e}") from e

    async def _request(self, submit: Any, *args: Any) -> str:
        """Run a blocking SDK call in a thread and map its errors for retrying."""
        try:
            response = await asyncio.to_thread(submit, *args)
        except (ValueError, ConnectionError, TimeoutError):
            raise
        except OSError as e:
            logger.error(f"System error during transcription: {e}")
            raise ConnectionError(f"System error: {e}") from e
        except Exception as e:
            logger.error(f"Unexpected transcription error: {e}")
            raise ConnectionError(f"Unexpected error: {e}") from e
        return self._extract_transcript(response)

    async def transcribe(self, audio: bytes, file_name: str) -> str:
        if not audio:
            raise ValueError(f"Audio file {file_name} is empty")

        mimetype = detect_mimetype(file_name)
        logger.info(
            f"Sending {file_name} ({len(audio) / (1024 * 1024):.2f} MB, {mimetype}) to {self.get_provider_name()}"
        )
        prerecorded = self._get_client().listen.prerecorded.v("1")
        transcript = await self._call(
            self._request,
            prerecorded.transcribe_file,
            {"buffer": audio, "mimetype": mimetype},
            self._build_options(),
        )
        logger.info(f"Transcription of {file_name} completed ({len(transcript)} chars)")
        return transcript

    async def transcribe_from_url(self, audio_url: str) -> str:
        logger.info(f"Sending {audio_url} to {self.get_provider_name()}")
        prerecorded = self._get_client().listen.prerecorded.v("1")
        transcript = await self._call(
            self._request, prerecorded.transcribe_url, {"url": audio_url}, self._build_options()
        )
        logger.info(f"Transcription of {audio_url} completed ({len(transcript)} chars)")
        return transcript
