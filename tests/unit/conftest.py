"""Pytest configuration for unit tests.

Key Fixtures:
    - clear_credentials: Ensures no real API credentials leak into unit tests
"""

import pytest


@pytest.fixture(autouse=True)
def clear_credentials(monkeypatch):
    """Ensure backend credentials are absent by default.

    Individual tests can explicitly set a key if needed using monkeypatch.setenv().

    Args:
        monkeypatch: Pytest's monkeypatch fixture for modifying environment variables.
    """
    for key in ("DEEPGRAM_API_KEY", "OPENAI_API_KEY", "GITHUB_TOKEN"):
        monkeypatch.delenv(key, raising=False)
