"""Unified storage abstraction using fsspec for local and GCS access."""

from pathlib import Path

import fsspec


class StorageBackend:
    """Filesystem abstraction that provides identical API for local and GCS paths.

    Uses fsspec internally.  Filesystem instances are lazily created and
    cached per protocol (``file`` for local, ``gcs`` for Cloud Storage).
    Dataset files are read and export artifacts written through it.
    """

    def __init__(self) -> None:
        self._filesystems: dict[str, fsspec.AbstractFileSystem] = {}

    def _get_fs(self, path: str) -> tuple[fsspec.AbstractFileSystem, str]:
        """Resolve the fsspec filesystem and normalised path for *path*."""
        if path.startswith("gs://"):
            protocol = "gcs"
            norm_path = path
        else:
            protocol = "file"
            norm_path = str(Path(path).resolve())

        if protocol not in self._filesystems:
            self._filesystems[protocol] = fsspec.filesystem(protocol)

        return self._filesystems[protocol], norm_path

    def exists(self, path: str) -> bool:
        """Return ``True`` if *path* exists on the resolved filesystem."""
        fs, norm_path = self._get_fs(path)
        return fs.exists(norm_path)

    def read_text(self, path: str, encoding: str = "utf-8") -> str:
        """Read the entire contents of *path* as text."""
        fs, norm_path = self._get_fs(path)
        return fs.cat(norm_path).decode(encoding)

    def write_text(self, path: str, text: str, encoding: str = "utf-8") -> str:
        """Write *text* to *path*, creating parent directories.

        Returns the normalised path that was written.
        """
        fs, norm_path = self._get_fs(path)
        parent = norm_path.rsplit("/", 1)[0]
        if parent:
            fs.makedirs(parent, exist_ok=True)
        with fs.open(norm_path, "w", encoding=encoding) as f:
            f.write(text)
        return norm_path

    def join(self, base_path: str, file_name: str) -> str:
        """Construct a full path from a base directory and filename."""
        if base_path.startswith("gs://"):
            return f"{base_path.rstrip('/')}/{file_name}"
        return str(Path(base_path) / file_name)
