"""Scoped storage: every path is resolved inside a single root directory."""

import stat
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Any, Iterator, Optional

import aiofiles
import aiofiles.os

from fileserve.config import get_settings


class StorageError(Exception):
    """A storage path could not be resolved or opened."""


class PathOutsideRootError(StorageError):
    """The requested path escapes the storage root."""


class EntryNotFoundError(StorageError):
    """The requested path does not exist (or has the wrong type)."""


@dataclass
class FileHandle:
    """An open, seekable read stream owned by a single request."""

    stream: Any
    filename: str
    size: int

    @property
    def extension(self) -> str:
        return Path(self.filename).suffix.lstrip(".")

    async def close(self) -> None:
        await self.stream.close()


@dataclass(frozen=True)
class TreeEntry:
    path: Path
    relpath: str


class ScopedStorage:
    """Read-only view of the filesystem below ``root``."""

    def __init__(self, root: Path):
        self.root = Path(root).resolve()

    def normalize(self, relpath: str) -> str:
        """Return the storage-relative POSIX form of ``relpath`` ("" for root)."""
        parts = [
            p for p in PurePosixPath(relpath.replace("\\", "/")).parts if p.strip("/") not in ("", ".")
        ]
        if ".." in parts:
            raise PathOutsideRootError(f"Path escapes storage root: {relpath!r}")
        return "/".join(parts)

    def resolve(self, relpath: str) -> Path:
        """Map a relative path to an absolute one inside the root."""
        if "\x00" in relpath:
            raise StorageError("Path contains a NUL byte")
        normalized = self.normalize(relpath)
        candidate = (self.root / normalized).resolve()
        # Symlinks may still point outside the root.
        if not candidate.is_relative_to(self.root):
            raise PathOutsideRootError(f"Path escapes storage root: {relpath!r}")
        return candidate

    async def open_stream(self, relpath: str) -> FileHandle:
        """Open a file for streaming.

        Raises:
            StorageError: path is outside the root, missing, not a regular
                file, or cannot be opened.
        """
        path = self.resolve(relpath)
        try:
            st = await aiofiles.os.stat(path)
        except FileNotFoundError as e:
            raise EntryNotFoundError(f"File not found: {relpath!r}") from e
        except OSError as e:
            raise StorageError(f"Cannot stat {relpath!r}: {e}") from e

        if not stat.S_ISREG(st.st_mode):
            raise EntryNotFoundError(f"Not a file: {relpath!r}")

        try:
            stream = await aiofiles.open(path, "rb")
        except OSError as e:
            raise StorageError(f"Cannot open {relpath!r}: {e}") from e

        return FileHandle(stream=stream, filename=path.name, size=st.st_size)

    def file_entry(self, relpath: str) -> TreeEntry:
        path = self.resolve(relpath)
        if not path.is_file():
            raise EntryNotFoundError(f"File not found: {relpath!r}")
        return TreeEntry(path=path, relpath=self.normalize(relpath))

    def walk(self, relpath: str) -> Iterator[TreeEntry]:
        """
        Yield a directory and everything below it, depth-first in sorted order.

        Directory entries come before their contents.
        """
        path = self.resolve(relpath)
        if not path.is_dir():
            raise EntryNotFoundError(f"Directory not found: {relpath!r}")

        base = self.normalize(relpath)
        yield TreeEntry(path=path, relpath=base)
        yield from self._walk_children(path, base)

    def _walk_children(self, directory: Path, base: str) -> Iterator[TreeEntry]:
        for child in sorted(directory.iterdir(), key=lambda p: p.name):
            relpath = f"{base}/{child.name}" if base else child.name
            if child.is_symlink() and (child.is_dir() or not child.resolve().is_relative_to(self.root)):
                continue
            if child.is_dir():
                yield TreeEntry(path=child, relpath=relpath)
                yield from self._walk_children(child, relpath)
            elif child.is_file():
                yield TreeEntry(path=child, relpath=relpath)


# Singleton
_storage: Optional[ScopedStorage] = None


def get_storage() -> ScopedStorage:
    global _storage
    if _storage is None:
        _storage = ScopedStorage(get_settings().storage_root)
    return _storage
