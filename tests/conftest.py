from __future__ import annotations

import json
import sys
from pathlib import Path

import pytest

# Ensure tests always import the local src tree, not an older installed wheel.
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
sys.path.insert(0, str(SRC))


class StubResponse:
    def __init__(self, status_code: int = 200, payload=None, text: str | None = None):
        self.status_code = status_code
        self._payload = payload
        if text is None:
            text = json.dumps(payload) if payload is not None else ""
        self.text = text

    def json(self):
        if self._payload is None:
            return json.loads(self.text)
        return self._payload


class StubSession:
    """Records calls and replays queued responses (or raises queued exceptions)."""

    def __init__(self, *, post=None, get=None):
        self.post_responses = list(post or [])
        self.get_responses = list(get or [])
        self.posts: list[dict] = []
        self.gets: list[dict] = []

    @staticmethod
    def _next(queue):
        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(item, Exception):
            raise item
        return item

    def post(self, url, **kwargs):
        self.posts.append({"url": url, **kwargs})
        return self._next(self.post_responses)

    def get(self, url, **kwargs):
        self.gets.append({"url": url, **kwargs})
        return self._next(self.get_responses)


@pytest.fixture
def stub_session():
    return StubSession


@pytest.fixture
def stub_response():
    return StubResponse


@pytest.fixture
def token_ok():
    return StubResponse(200, {"access_token": "tok-1", "token_type": "Bearer"})


@pytest.fixture(autouse=True)
def _isolated_home(tmp_path, monkeypatch):
    monkeypatch.setenv("UCACCESS_HOME", str(tmp_path / "home"))
    monkeypatch.delenv("UCACCESS_HTTP_TIMEOUT", raising=False)
