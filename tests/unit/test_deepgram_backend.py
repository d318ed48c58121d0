"""Tests for the Deepgram transcription backend."""

from types import SimpleNamespace
from unittest.mock import Mock, patch

import pytest

from meetsync.providers.deepgram import DeepgramTranscriber, detect_mimetype
from meetsync.utils.retry import RetryConfig, RetryExhaustedError


def _response(transcript):
    alternative = SimpleNamespace(transcript=transcript)
    channel = SimpleNamespace(alternatives=[alternative])
    return SimpleNamespace(results=SimpleNamespace(channels=[channel]))


@pytest.fixture
def deepgram_client():
    """Patched DeepgramClient; yields the prerecorded v1 endpoint mock."""
    with patch("meetsync.providers.deepgram.DeepgramClient") as client_cls, patch(
        "meetsync.providers.deepgram.PrerecordedOptions"
    ) as options_cls:
        endpoint = client_cls.return_value.listen.prerecorded.v.return_value
        endpoint.client_cls = client_cls
        endpoint.options_cls = options_cls
        yield endpoint


def _transcriber(**kwargs):
    return DeepgramTranscriber(
        api_key="dg-test", retry_config=kwargs.pop("retry_config", RetryConfig(max_attempts=1)), **kwargs
    )


class TestDetectMimetype:
    @pytest.mark.parametrize(
        "name,expected",
        [("standup.wav", "audio/wav"), ("Call.M4A", "audio/mp4"), ("notes.flac", "audio/flac"), ("blob", "audio/mp3")],
    )
    def test_known_and_unknown_extensions(self, name, expected):
        assert detect_mimetype(name) == expected


class TestDeepgramTranscriber:
    """Tests for DeepgramTranscriber."""

    def test_requires_api_key(self):
        with pytest.raises(ValueError, match="DEEPGRAM_API_KEY not found"):
            DeepgramTranscriber(api_key=None)

    def test_provider_name(self):
        assert _transcriber(model="nova-2").get_provider_name() == "Deepgram nova-2"

    @pytest.mark.asyncio
    async def test_transcribe_file(self, deepgram_client):
        deepgram_client.transcribe_file.return_value = _response("Let's sync on the migration.")

        transcript = await _transcriber().transcribe(b"RIFF", "standup.wav")

        assert transcript == "Let's sync on the migration."
        deepgram_client.client_cls.assert_called_once_with("dg-test")
        source, options = deepgram_client.transcribe_file.call_args.args
        assert source == {"buffer": b"RIFF", "mimetype": "audio/wav"}
        assert options is deepgram_client.options_cls.return_value
        deepgram_client.options_cls.assert_called_once_with(
            model="nova-3", smart_format=True, punctuate=True, paragraphs=True, language="en"
        )

    @pytest.mark.asyncio
    async def test_transcribe_url(self, deepgram_client):
        deepgram_client.transcribe_url.return_value = _response("From a URL.")

        transcript = await _transcriber().transcribe_from_url("https://cdn.example.com/a.mp3")

        assert transcript == "From a URL."
        assert deepgram_client.transcribe_url.call_args.args[0] == {"url": "https://cdn.example.com/a.mp3"}

    @pytest.mark.asyncio
    async def test_empty_audio_rejected(self, deepgram_client):
        with pytest.raises(ValueError, match="is empty"):
            await _transcriber().transcribe(b"", "standup.wav")
        deepgram_client.transcribe_file.assert_not_called()

    @pytest.mark.asyncio
    async def test_sdk_errors_are_retried(self, deepgram_client):
        deepgram_client.transcribe_file.side_effect = [
            RuntimeError("502 Bad Gateway"),
            _response("second time lucky"),
        ]
        transcriber = _transcriber(retry_config=RetryConfig(max_attempts=2, base_delay=0.0, jitter=False))

        assert await transcriber.transcribe(b"RIFF", "standup.wav") == "second time lucky"
        assert deepgram_client.transcribe_file.call_count == 2

    @pytest.mark.asyncio
    async def test_exhausted_retries(self, deepgram_client):
        deepgram_client.transcribe_file.side_effect = OSError("network unreachable")

        with pytest.raises(RetryExhaustedError) as exc_info:
            await _transcriber().transcribe(b"RIFF", "standup.wav")

        assert isinstance(exc_info.value.last_exception, ConnectionError)

    @pytest.mark.asyncio
    async def test_response_without_transcript(self, deepgram_client):
        deepgram_client.transcribe_file.return_value = SimpleNamespace(results=SimpleNamespace(channels=[]))

        with pytest.raises(ValueError, match="no transcript"):
            await _transcriber().transcribe(b"RIFF", "standup.wav")
