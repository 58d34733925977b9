"""Pytest fixtures for zai-gateway tests."""

import json
import os
from unittest.mock import patch

import pytest

from zai_gateway.config import Settings, TranscodeOptions


@pytest.fixture
def mock_env_vars():
    """Mock environment variables for testing."""
    env_vars = {
        "UPSTREAM_URL": "https://upstream.test/api/chat/completions",
        "HOST": "127.0.0.1",
        "PORT": "8080",
        "LOG_LEVEL": "DEBUG",
    }
    with patch.dict(os.environ, env_vars, clear=False):
        yield env_vars


@pytest.fixture
def settings(mock_env_vars) -> Settings:
    """Create Settings instance with mocked environment."""
    return Settings(_env_file=None)


@pytest.fixture
def options() -> TranscodeOptions:
    return TranscodeOptions(debug_logging_enabled=True, normalization_mode="strip", model="glm-4.5")


def frame_line(phase=None, content=None, done=None, edit_content=None) -> str:
    """Render one upstream `data:` line in the chat.z.ai shape."""
    data = {}
    if phase is not None:
        data["phase"] = phase
    if content is not None:
        data["delta_content"] = content
    if edit_content is not None:
        data["edit_content"] = edit_content
    if done is not None:
        data["done"] = done
    return "data: " + json.dumps({"type": "chat:completion", "data": data}, ensure_ascii=False) + "\n"


def byte_stream(*chunks):
    """Async byte iterator yielding the given chunks (str chunks are UTF-8 encoded)."""
    async def _stream():
        for c in chunks:
            yield c.encode("utf-8") if isinstance(c, str) else c

    return _stream()


class RecordingSink:
    """ByteSink that keeps everything written to it."""

    def __init__(self) -> None:
        self.data = b""
        self.eof_count = 0

    async def write(self, data: bytes) -> None:
        self.data += data

    async def write_eof(self) -> None:
        self.eof_count += 1

    @property
    def records(self) -> list[str]:
        """Payloads of each `data:` record, in order."""
        text = self.data.decode("utf-8")
        assert text.endswith("\n\n")
        return [r[len("data: "):] for r in text[:-2].split("\n\n")]

    @property
    def chunks(self) -> list[dict]:
        return [json.loads(r) for r in self.records if r != "[DONE]"]


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()
