"""
Contract storage (``studio_modules.collaborators.storage``).

Responsibility
--------------
The object-storage seam for signed contract PDFs.  Services depend on the
``ContractStorage`` protocol; ``InMemoryContractStorage`` backs tests and
local runs.  Objects are keyed ``<project_id>/<filename>``.

Failure modes
-------------
* ``StorageError`` -- upload of an empty blob, bad path, or unknown object.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Protocol, runtime_checkable
from uuid import UUID

from studio_kernel.domain.clock import Clock, SystemClock
from studio_kernel.exceptions import StorageError
from studio_kernel.logging_config import get_logger

logger = get_logger("modules.collaborators.storage")

DEFAULT_SIGNED_URL_TTL = 3600


def contract_path(project_id: UUID | str, filename: str) -> str:
    """Storage key for a project's contract file."""
    name = filename.strip().lstrip("/")
    if not name or "/" in name:
        raise StorageError(f"{project_id}/{filename}", "filename must be a plain file name")
    return f"{project_id}/{name}"


@dataclass(frozen=True)
class StoredObject:
    path: str
    url: str
    size: int = 0
    content_type: str = "application/pdf"


@runtime_checkable
class ContractStorage(Protocol):
    """Object storage capability used for contract files."""

    def upload(self, path: str, blob: bytes, content_type: str = ...) -> StoredObject: ...

    def get_signed_url(self, path: str, ttl_seconds: int = ...) -> str: ...

    def list(self, prefix: str) -> list[StoredObject]: ...

    def delete(self, path: str) -> None: ...


class InMemoryContractStorage:
    """
    Dict-backed ``ContractStorage``.

    Signed URLs embed an expiry computed from the injected clock.
    """

    def __init__(
        self,
        base_url: str = "memory://contracts",
        clock: Clock | None = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._clock = clock or SystemClock()
        self._objects: dict[str, tuple[bytes, str]] = {}

    def upload(
        self,
        path: str,
        blob: bytes,
        content_type: str = "application/pdf",
    ) -> StoredObject:
        if not blob:
            raise StorageError(path, "empty file")
        self._objects[path] = (bytes(blob), content_type)
        logger.info("contract_uploaded", extra={"path": path, "size": len(blob)})
        return StoredObject(
            path=path,
            url=f"{self._base_url}/{path}",
            size=len(blob),
            content_type=content_type,
        )

    def download(self, path: str) -> bytes:
        try:
            return self._objects[path][0]
        except KeyError:
            raise StorageError(path, "object not found") from None

    def get_signed_url(self, path: str, ttl_seconds: int = DEFAULT_SIGNED_URL_TTL) -> str:
        if path not in self._objects:
            raise StorageError(path, "object not found")
        if ttl_seconds <= 0:
            raise StorageError(path, f"ttl must be positive, got {ttl_seconds}")
        expires: datetime = self._clock.now() + timedelta(seconds=ttl_seconds)
        return f"{self._base_url}/{path}?expires={int(expires.timestamp())}"

    def list(self, prefix: str) -> list[StoredObject]:
        return [
            StoredObject(
                path=path,
                url=f"{self._base_url}/{path}",
                size=len(blob),
                content_type=content_type,
            )
            for path, (blob, content_type) in sorted(self._objects.items())
            if path.startswith(prefix)
        ]

    def delete(self, path: str) -> None:
        if self._objects.pop(path, None) is None:
            raise StorageError(path, "object not found")
        logger.info("contract_deleted", extra={"path": path})
