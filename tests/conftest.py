"""Pytest configuration and shared fixtures."""
from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Dict, List, Optional

import pytest

# Ensure src/ is on the import path (for local imports without installing as package)
SRC_PATH = Path(__file__).resolve().parent.parent / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from webchat.errors import ProviderError  # noqa: E402
from webchat.identity import IdentityClaim  # noqa: E402
from webchat.store import HistoryStore  # noqa: E402


class FakeVerifier:
    """Accepts only the tokens it was given; records every call."""

    def __init__(self, tokens: Optional[Dict[str, IdentityClaim]] = None):
        self.tokens = tokens or {}
        self.calls: List[Optional[str]] = []

    async def verify(self, token: Optional[str]) -> Optional[IdentityClaim]:
        self.calls.append(token)
        return self.tokens.get(token) if token else None


class FakeProvider:
    """Returns a canned reply, or raises the given error."""

    def __init__(self, reply: str = "ok", error: Optional[Exception] = None):
        self.reply = reply
        self.error = error
        self.prompts: List[str] = []

    async def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.reply


class SpyStore(HistoryStore):
    """HistoryStore that counts reads and writes."""

    def __init__(self, data_dir: str):
        super().__init__(data_dir)
        self.appends = 0
        self.reads = 0

    def append(self, identity, record):
        self.appends += 1
        return super().append(identity, record)

    def read_all(self, identity):
        self.reads += 1
        return super().read_all(identity)


ALICE = IdentityClaim(subject="1001", email="alice@example.com")


@pytest.fixture(scope="function")
def tmp_data_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for history files during tests."""
    d = tmp_path / "data"
    d.mkdir(parents=True, exist_ok=True)
    return d


@pytest.fixture(scope="function")
def store(tmp_data_dir: Path) -> SpyStore:
    return SpyStore(str(tmp_data_dir))


@pytest.fixture(scope="function")
def verifier() -> FakeVerifier:
    return FakeVerifier({"good": ALICE})


@pytest.fixture(scope="function")
def failing_provider() -> FakeProvider:
    return FakeProvider(error=ProviderError("OpenAI API error", details="rate limited"))


@pytest.fixture(scope="function")
def clean_env(monkeypatch: pytest.MonkeyPatch):
    """Ensure tests run with a clean environment (no leftover vars)."""
    for var in ["WEBCHAT_CONFIG", "OPENAI_API_KEY", "GOOGLE_CLIENT_ID"]:
        monkeypatch.delenv(var, raising=False)
    for var in [k for k in os.environ if k.startswith("WEBCHAT__")]:
        monkeypatch.delenv(var, raising=False)
    yield
