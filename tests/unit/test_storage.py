"""Unit tests for the scoped storage adapter."""

from __future__ import annotations

import asyncio
import os
from pathlib import Path

import pytest
from conftest import HELLO_BYTES

from fileserve.services.storage import (
    EntryNotFoundError,
    PathOutsideRootError,
    ScopedStorage,
    StorageError,
)


@pytest.mark.parametrize(
    ("relpath", "expected"),
    [
        ("hello.txt", "hello.txt"),
        ("/hello.txt", "hello.txt"),
        ("docs//sub/./notes.md", "docs/sub/notes.md"),
        ("docs\\report.pdf", "docs/report.pdf"),
        ("", ""),
        ("/", ""),
    ],
)
def test_normalize__produces_relative_posix_paths(
    storage_root: Path, relpath: str, expected: str
) -> None:
    """Leading slashes, dots and backslashes should normalize away."""
    assert ScopedStorage(storage_root).normalize(relpath) == expected


@pytest.mark.parametrize("relpath", ["../secret.txt", "docs/../../secret.txt", "/../secret.txt"])
def test_resolve__rejects_traversal(storage_root: Path, relpath: str) -> None:
    """Parent-directory segments must never escape the root."""
    with pytest.raises(PathOutsideRootError):
        ScopedStorage(storage_root).resolve(relpath)


def test_resolve__rejects_symlink_escaping_root(storage_root: Path, tmp_path: Path) -> None:
    """A symlink inside the root pointing outside it should be rejected."""
    link = storage_root / "escape.txt"
    try:
        os.symlink(tmp_path / "secret.txt", link)
    except (OSError, NotImplementedError):
        pytest.skip("symlinks not supported")

    with pytest.raises(PathOutsideRootError):
        ScopedStorage(storage_root).resolve("escape.txt")


def test_resolve__rejects_nul_byte(storage_root: Path) -> None:
    """NUL bytes in a path should be refused before touching the filesystem."""
    with pytest.raises(StorageError):
        ScopedStorage(storage_root).resolve("hello\x00.txt")


def test_open_stream__returns_seekable_handle(storage_root: Path) -> None:
    """Opening a file should report its name and size and allow seeking."""

    async def scenario() -> bytes:
        handle = await ScopedStorage(storage_root).open_stream("/hello.txt")
        try:
            assert handle.filename == "hello.txt"
            assert handle.size == len(HELLO_BYTES)
            assert handle.extension == "txt"
            await handle.stream.seek(10)
            return await handle.stream.read(5)
        finally:
            await handle.close()

    assert asyncio.run(scenario()) == HELLO_BYTES[10:15]


@pytest.mark.parametrize("relpath", ["missing.txt", "docs", ""])
def test_open_stream__missing_or_directory_raises(storage_root: Path, relpath: str) -> None:
    """Only regular files can be opened for streaming."""
    with pytest.raises(EntryNotFoundError):
        asyncio.run(ScopedStorage(storage_root).open_stream(relpath))


def test_walk__yields_directories_before_contents_in_sorted_order(storage_root: Path) -> None:
    """Directory walk should be depth-first, sorted and root-relative."""
    entries = list(ScopedStorage(storage_root).walk("docs"))

    assert [(e.relpath, e.path.is_dir()) for e in entries] == [
        ("docs", True),
        ("docs/empty", True),
        ("docs/report.pdf", False),
        ("docs/sub", True),
        ("docs/sub/notes.md", False),
    ]


def test_walk__missing_directory_raises(storage_root: Path) -> None:
    """Walking a file or missing directory should fail."""
    with pytest.raises(EntryNotFoundError):
        list(ScopedStorage(storage_root).walk("hello.txt"))
