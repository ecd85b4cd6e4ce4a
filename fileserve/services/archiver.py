"""ZIP archive writer fed from scoped storage.

Members keep their storage-relative paths, in the order they are added.
"""

from __future__ import annotations

import pathlib
import zipfile

from fileserve.services.storage import ScopedStorage


class ArchiveNotOpenError(RuntimeError):
    """An add/close call was made without an open archive."""


class ZipArchiver:
    """Writes storage entries into a ZIP file on disk.

    Examples:
        >>> archiver = ZipArchiver(storage)
        >>> archiver.create_archive(Path("/tmp/bundle.zip"))
        >>> archiver.add_directory("docs")
        >>> archiver.add_file("readme.txt")
        >>> archiver.close_archive()
    """

    def __init__(
        self,
        storage: ScopedStorage,
        compression: int = zipfile.ZIP_DEFLATED,
        compression_level: int = 6,
    ) -> None:
        """Initialize the archiver.

        Args:
            storage: Storage the archive members are read from.
            compression: Compression method (default: ZIP_DEFLATED).
            compression_level: Compression level 0-9.
        """
        self.storage = storage
        self.compression = compression
        self.compression_level = compression_level
        self._zip: zipfile.ZipFile | None = None

    @property
    def is_open(self) -> bool:
        return self._zip is not None

    def create_archive(self, output_path: pathlib.Path) -> None:
        """Open a new, empty archive at ``output_path``."""
        if self._zip is not None:
            raise RuntimeError("An archive is already open")
        self._zip = zipfile.ZipFile(
            output_path,
            mode="w",
            compression=self.compression,
            compresslevel=self.compression_level,
        )

    def _archive(self) -> zipfile.ZipFile:
        if self._zip is None:
            raise ArchiveNotOpenError("create_archive() has not been called")
        return self._zip

    def add_file(self, relpath: str) -> None:
        """Add a single file under its storage-relative path.

        Raises:
            StorageError: the file is missing or outside the storage root.
        """
        archive = self._archive()
        entry = self.storage.file_entry(relpath)
        archive.write(entry.path, arcname=entry.relpath)

    def add_directory(self, relpath: str) -> int:
        """Add a directory and everything below it.

        Returns:
            Number of members written.
        """
        archive = self._archive()
        written = 0
        for entry in self.storage.walk(relpath):
            if not entry.relpath:
                # Storage root itself has no member name.
                continue
            # ZipFile.write emits "name/" entries for directories.
            archive.write(entry.path, arcname=entry.relpath)
            written += 1
        return written

    def close_archive(self) -> None:
        """Seal the archive (writes the central directory)."""
        archive = self._archive()
        self._zip = None
        archive.close()
