"""
Shared fixtures: fake Gemini streaming responses and a clean environment.
"""
from types import SimpleNamespace
from unittest.mock import Mock

import pytest

ENV_KEYS = [
    "GEMINI_API_KEY", "GOOGLE_API_KEY", "ADMIN_EMAILS", "LOG_LEVEL",
    "R2_ENDPOINT", "R2_BUCKET", "R2_REGION", "R2_ACCESS_KEY_ID", "R2_SECRET_ACCESS_KEY",
    "R2_FORCE_PATH_STYLE", "R2_PREFIX", "AWS_ACCESS_KEY_ID", "AWS_SECRET_ACCESS_KEY",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep developer settings (.env, shell) out of the tests"""
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


class EmptyChunk:
    """A stream chunk with no parts; the SDK raises ValueError on .text"""

    @property
    def text(self):
        raise ValueError("no parts")


class FakeResponse:
    def __init__(self, pieces, reason="STOP"):
        self.chunks = [p if isinstance(p, EmptyChunk) else SimpleNamespace(text=p) for p in pieces]
        self.candidates = [SimpleNamespace(finish_reason=SimpleNamespace(name=reason))]

    def __iter__(self):
        return iter(self.chunks)


@pytest.fixture
def fake_model():
    """Build a model mock whose generate_content returns the given responses in order"""
    def _build(*responses):
        model = Mock()
        model.generate_content.side_effect = list(responses)
        return model
    return _build
