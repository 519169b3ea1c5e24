"""Guidepost - Filesystem Blob Store (local development and tests)."""

import os
import tempfile
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Set

from guidepost.connectors.storage.base import (
    BlobExists,
    BlobInfo,
    BlobNotFound,
    BlobStore,
    BlobStoreError,
)
from guidepost.core.logging import get_logger

logger = get_logger("storage.local")


class LocalBlobStore(BlobStore):
    """Stores each object as a file under ``root``.

    Writes go to a temp file followed by ``os.replace`` so a reader never
    sees a half-written artifact.
    """

    def __init__(self, root: str | Path, public_base_url: str = ""):
        self.root = Path(root).resolve()
        self.root.mkdir(parents=True, exist_ok=True)
        self.public_base_url = public_base_url.rstrip("/")
        self._public: Set[str] = set()
        self._lock = threading.Lock()

    def _resolve(self, path: str) -> Path:
        if not path or path.startswith("/"):
            raise BlobStoreError(f"Invalid blob path: {path!r}")
        target = (self.root / path).resolve()
        if self.root not in target.parents:
            raise BlobStoreError(f"Blob path escapes store root: {path!r}")
        return target

    def put(
        self,
        path: str,
        data: bytes,
        content_type: str = "application/octet-stream",
        cache_control: Optional[str] = None,
        overwrite: bool = True,
    ) -> None:
        target = self._resolve(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=target.parent, prefix=".tmp-")
            with os.fdopen(fd, "wb") as fh:
                fh.write(data)
                fh.flush()
                os.fsync(fh.fileno())
            if overwrite:
                os.replace(tmp, target)
                return
            # link() refuses an existing target, so exactly one creator wins
            try:
                os.link(tmp, target)
            finally:
                os.unlink(tmp)
        except FileExistsError as e:
            raise BlobExists(path) from e
        except OSError as e:
            raise BlobStoreError(f"Write failed for {path}: {e}") from e

    def get(self, path: str) -> bytes:
        target = self._resolve(path)
        if not target.is_file():
            raise BlobNotFound(path)
        try:
            return target.read_bytes()
        except OSError as e:
            raise BlobStoreError(f"Read failed for {path}: {e}") from e

    def exists(self, path: str) -> bool:
        return self._resolve(path).is_file()

    def copy(self, src: str, dst: str, cache_control: Optional[str] = None) -> None:
        self.put(dst, self.get(src), content_type="application/json")

    def make_public(self, path: str) -> str:
        if not self.exists(path):
            raise BlobNotFound(path)
        with self._lock:
            self._public.add(path)
        return self.public_url(path)

    def public_url(self, path: str) -> str:
        return f"{self.public_base_url}/{path}"

    def is_public(self, path: str) -> bool:
        with self._lock:
            return path in self._public

    def delete(self, path: str) -> None:
        target = self._resolve(path)
        if not target.is_file():
            raise BlobNotFound(path)
        try:
            target.unlink()
        except OSError as e:
            raise BlobStoreError(f"Delete failed for {path}: {e}") from e
        with self._lock:
            self._public.discard(path)

    def list(self, prefix: str) -> List[BlobInfo]:
        base = self._resolve(prefix.rstrip("/")) if prefix.strip("/") else self.root
        if not base.is_dir():
            return []
        results: List[BlobInfo] = []
        for file in sorted(base.rglob("*")):
            if not file.is_file() or file.name.startswith(".tmp-"):
                continue
            stat = file.stat()
            results.append(
                BlobInfo(
                    path=file.relative_to(self.root).as_posix(),
                    size=stat.st_size,
                    created=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc).isoformat(),
                )
            )
        return results
