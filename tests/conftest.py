"""Shared fixtures for Axis-Archive tests."""

import os
import threading

import pytest

from axis_archive.errors import FetchUnavailable
from axis_archive.fetcher import Fetcher

ENV_KEYS = (
    "SITE_URL",
    "OUTPUT_DIR",
    "RELAY_URL",
    "MAX_WORKERS",
    "FETCH_TIMEOUT",
    "LOG_MAX_ENTRIES",
    "PREVIEW_CHARS",
    "VERBOSE",
    "USER_AGENT",
    "OPTIMIZE_HTML",
    "OPTIMIZE_IMAGES",
    "MINIFY_JS",
    "MINIFY_CSS",
)


class FakeFetcher(Fetcher):
    """In-memory transport: unknown URLs fail like a 404."""

    def __init__(self, responses=None, on_fetch=None):
        self.responses = dict(responses or {})
        self.on_fetch = on_fetch
        self.calls = []
        self._lock = threading.Lock()

    def _lookup(self, url):
        with self._lock:
            self.calls.append(url)
        if self.on_fetch is not None:
            self.on_fetch(url)
        value = self.responses.get(url)
        if value is None:
            raise FetchUnavailable(url, "HTTP 404")
        if isinstance(value, Exception):
            raise value
        return value

    def fetch_text(self, url):
        value = self._lookup(url)
        return value.decode("utf-8") if isinstance(value, bytes) else value

    def fetch_blob(self, url):
        value = self._lookup(url)
        return value.encode("utf-8") if isinstance(value, str) else value


@pytest.fixture
def fake_fetcher():
    """Factory for FakeFetcher instances."""
    return FakeFetcher


@pytest.fixture(autouse=True)
def clean_env():
    """Keep Axis-Archive environment variables from leaking between tests."""
    saved = {key: os.environ.pop(key, None) for key in ENV_KEYS}
    yield
    for key, value in saved.items():
        os.environ.pop(key, None)
        if value is not None:
            os.environ[key] = value
