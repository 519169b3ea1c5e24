"""Guidepost - Abstract Blob Store.

Holds uploaded PDFs, private guide versions and the public slug-addressed
copies. Paths are plain ``/``-separated keys.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional


class BlobNotFound(Exception):
    """Raised when a path has no stored object."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Blob not found: {path}")


class BlobStoreError(Exception):
    """Raised when the backing store fails for any other reason."""


class BlobExists(BlobStoreError):
    """Raised by an exclusive ``put`` when ``path`` is already taken."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Blob already exists: {path}")


@dataclass
class BlobInfo:
    path: str
    size: int
    created: Optional[str] = None  # ISO timestamp when the backend knows it


class BlobStore(ABC):
    """Minimal object-store contract used by the orchestrators."""

    @abstractmethod
    def put(
        self,
        path: str,
        data: bytes,
        content_type: str = "application/octet-stream",
        cache_control: Optional[str] = None,
        overwrite: bool = True,
    ) -> None:
        """Durably write ``data`` at ``path``.

        With ``overwrite=False`` the write is create-only and raises
        ``BlobExists`` if another writer got there first.
        """
        ...

    @abstractmethod
    def get(self, path: str) -> bytes:
        """Return the object bytes or raise ``BlobNotFound``."""
        ...

    @abstractmethod
    def exists(self, path: str) -> bool: ...

    @abstractmethod
    def copy(self, src: str, dst: str, cache_control: Optional[str] = None) -> None:
        """Copy ``src`` over ``dst``. Raises ``BlobNotFound`` for a missing source."""
        ...

    @abstractmethod
    def make_public(self, path: str) -> str:
        """Make ``path`` world-readable and return its public URL."""
        ...

    @abstractmethod
    def delete(self, path: str) -> None: ...

    @abstractmethod
    def list(self, prefix: str) -> List[BlobInfo]: ...

    def close(self) -> None:
        """Release client resources. Default is a no-op."""
        return None
