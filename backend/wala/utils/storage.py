"""Filesystem storage for uploaded images (product pictures, avatars)."""

from __future__ import annotations

import logging
import re
import shutil
import time
from pathlib import Path

_LOGGER = logging.getLogger("wala.storage")
FILES_PREFIX = "/files/"


class StorageError(Exception):
    """Raised when a file cannot be stored, read or removed."""


class StorageFileNotFoundError(StorageError):
    """Raised when a requested stored file does not exist."""


class FileSystemStorage:
    """Store files flat under a single root directory.

    Stored names are `<millis>_<stem>.<ext>`; callers only ever get
    bare file names back, never paths.
    """

    def __init__(self, root: Path):
        self.root = Path(root).expanduser().resolve()

    def initialize(self, profile: str) -> None:
        """Prepare the root on start-up: wiped in `dev`, kept otherwise."""
        if profile == "dev":
            _LOGGER.info("profile dev: wiping upload directory %s", self.root)
            self.delete_all()
            self.init()
        elif not self.root.exists():
            _LOGGER.info("profile %s: creating upload directory %s", profile, self.root)
            self.init()
        else:
            _LOGGER.info("profile %s: keeping existing upload directory %s", profile, self.root)

    def init(self) -> None:
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError("could not initialize storage") from exc

    def delete_all(self) -> None:
        shutil.rmtree(self.root, ignore_errors=True)

    def store(self, data: bytes, filename: str) -> str:
        """Write `data` and return the stored file name."""
        filename = (filename or "").strip()
        if not data:
            raise StorageError(f"failed to store empty file {filename}")
        if ".." in filename:
            raise StorageError(f"cannot store file with relative path outside current directory {filename}")
        stem, dot, ext = filename.rpartition(".")
        if not dot:
            stem, ext = filename, ""
        stem = re.sub(r"[/\\]", "_", stem)
        stem = re.sub(r"[^\w.-]", "_", stem) or "file"
        ext = re.sub(r"[^\w]", "", ext).lower()
        stored = f"{int(time.time() * 1000)}_{stem}" + (f".{ext}" if ext else "")
        target = (self.root / stored).resolve()
        if target.parent != self.root:
            raise StorageError("cannot store file outside current directory")
        self.init()
        try:
            target.write_bytes(data)
        except OSError as exc:
            raise StorageError(f"failed to store file {filename}") from exc
        _LOGGER.info("stored %s (%d bytes)", stored, len(data))
        return stored

    def load(self, filename: str) -> Path:
        """Resolve a stored file name to its path, refusing traversal."""
        if not filename or ".." in filename or "/" in filename or "\\" in filename:
            raise StorageError(f"cannot load file with relative or absolute path: {filename}")
        return self.root / filename

    def load_bytes(self, filename: str) -> bytes:
        path = self.load(filename)
        if not path.is_file():
            raise StorageFileNotFoundError(f"could not read file: {filename}")
        return path.read_bytes()

    def exists(self, filename: str) -> bool:
        try:
            return self.load(filename).is_file()
        except StorageError:
            return False

    def delete(self, name_or_url: str) -> None:
        """Delete a stored file given its name or its `/files/<name>` URL."""
        name = name_or_url.rsplit("/", 1)[-1]
        try:
            self.load(name).unlink(missing_ok=True)
        except OSError as exc:
            raise StorageError(f"error deleting file {name}") from exc

    @staticmethod
    def url_for(stored_name: str) -> str:
        return f"{FILES_PREFIX}{stored_name}"

    @staticmethod
    def is_local(url: str | None) -> bool:
        """True when `url` points at a file we stored (not an external link)."""
        return bool(url) and url.startswith(FILES_PREFIX)


def get_storage() -> FileSystemStorage:
    from ..config import settings
    return FileSystemStorage(settings.UPLOAD_DIR)
