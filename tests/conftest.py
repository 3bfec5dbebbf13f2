import os
import threading
from pathlib import Path

import pytest
from typer.testing import CliRunner

from tiercache.domain.interfaces.cache import RemoteStore
from tiercache.domain.models.common import MISSING
from tiercache.domain.models.errors import RemoteStoreError
from tiercache.infrastructure.cache.bounded_cache import BoundedCache
from tiercache.infrastructure.cache.memory_store import InMemoryStore
from tiercache.infrastructure.config import settings


class DictStore(RemoteStore):
    """Thread-safe dict-backed remote tier for tests."""

    def __init__(self, initial=None):
        self.data = dict(initial or {})
        self._lock = threading.Lock()
        self.reads = 0

    def read(self, key):
        with self._lock:
            self.reads += 1
            return self.data.get(key, MISSING)

    def write(self, key, value):
        with self._lock:
            self.data[key] = value

    def delete(self, key):
        with self._lock:
            self.data.pop(key, None)

    def clear(self):
        with self._lock:
            self.data.clear()


class FailingStore(RemoteStore):
    """Remote tier whose every operation fails like a dropped connection."""

    def __init__(self):
        self.calls = []

    def _fail(self, operation, key=None):
        self.calls.append((operation, key))
        raise RemoteStoreError(operation, key=key, original_exception=ConnectionError("connection reset"))

    def read(self, key):
        self._fail("read", key)

    def write(self, key, value):
        self._fail("write", key)

    def delete(self, key):
        self._fail("delete", key)

    def clear(self):
        self._fail("clear")


@pytest.fixture
def remote_store():
    return DictStore()


@pytest.fixture
def failing_store():
    return FailingStore()


@pytest.fixture
def local_store():
    """Local tier holding at most three entries."""
    return InMemoryStore(BoundedCache(3))


@pytest.fixture(scope="session")
def runner():
    """Provides a Typer CliRunner instance."""
    return CliRunner()


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch):
    """Keeps configuration state and TIERCACHE_ variables from leaking between tests."""
    for name in list(os.environ):
        if name.startswith(settings.ENV_PREFIX):
            monkeypatch.delenv(name)
    monkeypatch.setattr(settings, "_config", {})
    monkeypatch.setattr(settings, "_loaded", False)
    yield
    settings.clear_test_config()


@pytest.fixture
def disk_dir(tmp_path: Path) -> Path:
    return tmp_path / "disk"
