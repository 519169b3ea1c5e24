"""Guidepost - Application Context.

Owns every client the orchestrators use. Built once by the process entry
point (``init()``) and torn down on shutdown (``dispose()``); tests build
their own with injected collaborators.
"""

from typing import Optional

from sqlalchemy.engine import Engine

from guidepost.ai.base_provider import TransformProvider, TransformProviderError
from guidepost.ai.provider_registry import select_provider
from guidepost.config import Settings
from guidepost.connectors.storage.base import BlobStore
from guidepost.connectors.venue_store import VenueStore
from guidepost.core.feed import VenueFeed
from guidepost.core.logging import get_logger
from guidepost.database import create_db_engine, init_db, test_connection
from guidepost.engine.editors import Actor, EditorSet
from guidepost.engine.publish_pipeline import PublishOrchestrator
from guidepost.engine.rate_limiter import UsageTracker
from guidepost.engine.transform_pipeline import TransformOrchestrator
from guidepost.engine.venues import VenueRegistry

logger = get_logger("context")


def build_blob_store(settings: Settings) -> BlobStore:
    """Pick the blob backend named by ``blob_backend``."""
    if settings.blob_backend == "gcs":
        from guidepost.connectors.storage.gcs_store import GCSBlobStore

        if not settings.gcs_bucket_name:
            raise ValueError("GCS_BUCKET_NAME is required when BLOB_BACKEND=gcs")
        return GCSBlobStore(settings.gcs_bucket_name)

    if settings.blob_backend == "local":
        from guidepost.connectors.storage.local_store import LocalBlobStore

        return LocalBlobStore(settings.blob_root, settings.public_base_url)

    raise ValueError(f"Unknown blob backend: {settings.blob_backend}")


class AppContext:
    """Explicitly constructed clients, passed into every route and job."""

    def __init__(
        self,
        settings: Settings,
        engine: Optional[Engine] = None,
        blobs: Optional[BlobStore] = None,
        provider: Optional[TransformProvider] = None,
    ):
        self.settings = settings
        self._engine = engine
        self._blobs = blobs
        self._provider = provider
        self._ready = False

    def init(self) -> "AppContext":
        if self._ready:
            return self

        if self._engine is None:
            self._engine = create_db_engine(self.settings.effective_database_url)
        if test_connection(self._engine):
            init_db(self._engine)
        else:
            logger.error("❌ Database NOT connected, endpoints will fail")

        if self._blobs is None:
            self._blobs = build_blob_store(self.settings)

        if self._provider is None:
            try:
                self._provider = select_provider(
                    self.settings.default_transform_provider, self.settings
                )
                logger.info(f"🤖 Transform provider: {self._provider.name}")
            except TransformProviderError as e:
                logger.warning(f"Transforms disabled: {e}")

        self.engine = self._engine
        self.blobs = self._blobs
        self.provider = self._provider
        self.feed = VenueFeed()
        self.store = VenueStore(self.engine, self.feed)
        self.venues = VenueRegistry(self.store, self.blobs)
        self.editors = EditorSet(self.store, self.settings.max_editors)
        self.usage = UsageTracker(self.engine, self.settings.daily_transform_limit)
        self.transforms = TransformOrchestrator(
            self.engine,
            self.store,
            self.blobs,
            self.usage,
            self.provider,
            timeout_seconds=self.settings.transform_timeout_seconds,
            max_upload_bytes=self.settings.max_upload_bytes,
        )
        self.publisher = PublishOrchestrator(self.store, self.blobs)
        self._ready = True
        return self

    def actor(self, email: Optional[str]) -> Actor:
        """Identity adapter: the privileged flag comes from configuration."""
        email = (email or "").strip()
        return Actor(email=email, privileged=self.settings.is_super_admin(email))

    def dispose(self) -> None:
        if not self._ready:
            return
        self.feed.clear()
        self.blobs.close()
        self.engine.dispose()
        self._ready = False
        logger.info("Application context disposed")
