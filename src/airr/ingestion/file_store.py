"""Local filesystem storage for uploaded artifacts."""

from __future__ import annotations

from pathlib import Path, PurePosixPath
from typing import Protocol
from uuid import uuid4


class FileStore(Protocol):
    """Binary storage collaborator."""

    def store(self, data: bytes, *, file_name: str, media_type: str) -> str:
        """Persist bytes and return a storage locator."""

    def fetch(self, locator: str) -> bytes:
        """Return bytes previously stored under ``locator``."""


class LocalFileStore:
    """Store uploads under ``<root>/raw/<uuid>.<ext>``."""

    def __init__(self, root: Path) -> None:
        self.root = root

    def store(self, data: bytes, *, file_name: str, media_type: str) -> str:  # noqa: ARG002
        suffix = PurePosixPath(file_name).suffix.lower()
        locator = f"raw/{uuid4()}{suffix}"
        path = self._resolve(locator)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        return locator

    def fetch(self, locator: str) -> bytes:
        return self._resolve(locator).read_bytes()

    def _resolve(self, locator: str) -> Path:
        relative = PurePosixPath(locator)
        if relative.is_absolute() or ".." in relative.parts:
            raise ValueError(f"Invalid storage locator: {locator!r}")
        return self.root.joinpath(*relative.parts)
