"""Guidepost - Google Cloud Storage Blob Store."""

import os
from typing import List, Optional

from google.api_core import exceptions as gcs_exceptions
from google.auth import default as google_auth_default
from google.cloud import storage
from google.oauth2 import service_account

from guidepost.connectors.storage.base import (
    BlobExists,
    BlobInfo,
    BlobNotFound,
    BlobStore,
    BlobStoreError,
)
from guidepost.core.logging import get_logger

logger = get_logger("storage.gcs")


class GCSBlobStore(BlobStore):
    """Blob store over a single GCS bucket."""

    def __init__(self, bucket_name: str, client: Optional[storage.Client] = None):
        if not bucket_name:
            raise BlobStoreError("GCS_BUCKET_NAME is not configured")
        self.bucket_name = bucket_name
        self.client = client or storage.Client(credentials=self._build_creds())
        self.bucket = self.client.bucket(bucket_name)

    # -------- GCP auth / creds --------
    @staticmethod
    def _build_creds():
        key_path = os.environ.get("GOOGLE_APPLICATION_CREDENTIALS")
        scopes = ["https://www.googleapis.com/auth/cloud-platform"]
        if key_path and os.path.exists(key_path):
            return service_account.Credentials.from_service_account_file(key_path, scopes=scopes)
        creds, _ = google_auth_default(scopes=scopes)
        return creds

    def put(
        self,
        path: str,
        data: bytes,
        content_type: str = "application/octet-stream",
        cache_control: Optional[str] = None,
        overwrite: bool = True,
    ) -> None:
        blob = self.bucket.blob(path)
        if cache_control:
            blob.cache_control = cache_control
        # Generation 0 means "only if no live object exists"
        kwargs = {} if overwrite else {"if_generation_match": 0}
        try:
            blob.upload_from_string(data, content_type=content_type, **kwargs)
        except gcs_exceptions.PreconditionFailed as e:
            raise BlobExists(path) from e
        except gcs_exceptions.GoogleAPIError as e:
            raise BlobStoreError(f"Upload failed for {path}: {e}") from e

    def get(self, path: str) -> bytes:
        try:
            return self.bucket.blob(path).download_as_bytes()
        except gcs_exceptions.NotFound as e:
            raise BlobNotFound(path) from e
        except gcs_exceptions.GoogleAPIError as e:
            raise BlobStoreError(f"Download failed for {path}: {e}") from e

    def exists(self, path: str) -> bool:
        try:
            return self.bucket.blob(path).exists()
        except gcs_exceptions.GoogleAPIError as e:
            raise BlobStoreError(f"Existence check failed for {path}: {e}") from e

    def copy(self, src: str, dst: str, cache_control: Optional[str] = None) -> None:
        try:
            copied = self.bucket.copy_blob(self.bucket.blob(src), self.bucket, dst)
            if cache_control:
                copied.cache_control = cache_control
                copied.patch()
        except gcs_exceptions.NotFound as e:
            raise BlobNotFound(src) from e
        except gcs_exceptions.GoogleAPIError as e:
            raise BlobStoreError(f"Copy {src} -> {dst} failed: {e}") from e

    def make_public(self, path: str) -> str:
        blob = self.bucket.blob(path)
        try:
            blob.make_public()
        except gcs_exceptions.NotFound as e:
            raise BlobNotFound(path) from e
        except gcs_exceptions.GoogleAPIError as e:
            raise BlobStoreError(f"Could not make {path} public: {e}") from e
        return f"https://storage.googleapis.com/{self.bucket_name}/{path}"

    def delete(self, path: str) -> None:
        try:
            self.bucket.blob(path).delete()
        except gcs_exceptions.NotFound as e:
            raise BlobNotFound(path) from e
        except gcs_exceptions.GoogleAPIError as e:
            raise BlobStoreError(f"Delete failed for {path}: {e}") from e

    def list(self, prefix: str) -> List[BlobInfo]:
        try:
            blobs = list(self.client.list_blobs(self.bucket_name, prefix=prefix))
        except gcs_exceptions.GoogleAPIError as e:
            raise BlobStoreError(f"List failed for {prefix}: {e}") from e
        return [
            BlobInfo(
                path=b.name,
                size=int(b.size or 0),
                created=b.time_created.isoformat() if b.time_created else None,
            )
            for b in blobs
        ]

    def close(self) -> None:
        close = getattr(self.client, "close", None)
        if callable(close):
            close()
