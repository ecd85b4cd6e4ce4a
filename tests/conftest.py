"""Shared test fixtures for the fileserve test suite."""

from __future__ import annotations

import io
from collections.abc import Iterator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from fileserve.config import get_settings
from fileserve.services import archive_service, download_service, storage, temp_store

HELLO_BYTES = bytes(i % 251 for i in range(10000))
SMALL_BYTES = bytes(i % 7 for i in range(1000))


class FakeSource:
    """In-memory seekable source recording reads and close calls."""

    def __init__(self, data: bytes, fail_after_reads: int | None = None) -> None:
        self._buffer = io.BytesIO(data)
        self.reads: list[int] = []
        self.close_calls = 0
        self.fail_after_reads = fail_after_reads

    async def seek(self, offset: int) -> int:
        return self._buffer.seek(offset)

    async def read(self, size: int) -> bytes:
        if self.fail_after_reads is not None and len(self.reads) >= self.fail_after_reads:
            raise OSError("disk went away")
        self.reads.append(size)
        return self._buffer.read(size)

    async def close(self) -> None:
        self.close_calls += 1


class FakeSink:
    """Sink collecting written bytes; optionally fails after N writes."""

    def __init__(self, fail_after_writes: int | None = None) -> None:
        self.data = bytearray()
        self.writes = 0
        self.flushes = 0
        self.fail_after_writes = fail_after_writes

    async def write(self, data: bytes) -> int:
        if self.fail_after_writes is not None and self.writes >= self.fail_after_writes:
            raise ConnectionResetError("client disconnected")
        self.writes += 1
        self.data += data
        return len(data)

    async def flush(self) -> None:
        self.flushes += 1


@pytest.fixture
def storage_root(tmp_path: Path) -> Path:
    """Populate a storage root with a small, known tree.

    Returns:
        Path of the storage root.
    """
    root = tmp_path / "storage"
    (root / "docs" / "sub").mkdir(parents=True)
    (root / "docs" / "empty").mkdir()
    (root / "hello.txt").write_bytes(HELLO_BYTES)
    (root / "small.bin").write_bytes(SMALL_BYTES)
    (root / "docs" / "report.pdf").write_bytes(b"%PDF-1.4 fake report")
    (root / "docs" / "sub" / "notes.md").write_text("# notes\n", encoding="utf-8")
    (root / "Zürich notes.txt").write_text("grüezi", encoding="utf-8")
    (tmp_path / "secret.txt").write_text("outside the root", encoding="utf-8")
    return root


@pytest.fixture
def app_env(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, storage_root: Path
) -> Iterator[Path]:
    """Point settings at the test storage root and reset service singletons.

    Yields:
        Temp store directory used by the application.
    """
    tmp_dir = tmp_path / "tmpstore"
    monkeypatch.setenv("STORAGE_ROOT", str(storage_root))
    monkeypatch.setenv("TMP_DIR", str(tmp_dir))
    monkeypatch.setenv("APP_DATA_DIR", str(tmp_path / "appdata"))
    monkeypatch.delenv("DOWNLOAD_INLINE", raising=False)
    monkeypatch.delenv("CORS_ORIGINS", raising=False)
    get_settings.cache_clear()

    monkeypatch.setattr(storage, "_storage", None)
    monkeypatch.setattr(temp_store, "_temp_store", None)
    monkeypatch.setattr(download_service, "_download_service", None)
    monkeypatch.setattr(archive_service, "_ticket_service", None)
    monkeypatch.setattr(archive_service, "_delivery_service", None)

    yield tmp_dir

    get_settings.cache_clear()


@pytest.fixture
def test_client(app_env: Path) -> TestClient:
    """Build the application without running its lifespan.

    Returns:
        Test client for exercising the HTTP routes.
    """
    from fileserve.main import create_app

    return TestClient(create_app())
