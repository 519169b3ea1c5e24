"""Shared fixtures: in-memory database, tmp-path blob store, scripted provider."""

import asyncio
import copy
from typing import Any, Optional

import pytest

from guidepost.ai.base_provider import ProviderResult, TransformProvider
from guidepost.config import Settings
from guidepost.connectors.storage.local_store import LocalBlobStore
from guidepost.context import AppContext
from guidepost.database import create_db_engine, init_db
from guidepost.engine.editors import Actor

OWNER = "owner@example.com"
EDITOR = "editor@example.com"
STRANGER = "stranger@example.com"
ADMIN = "admin@guidepost.org"

PDF_BYTES = b"%PDF-1.4\n1 0 obj << /Type /Catalog >> endobj\n%%EOF\n"

VALID_GUIDE = {
    "schemaVersion": "1.0",
    "venue": {
        "name": "City Museum",
        "address": "1 Museum Way, Adelaide SA 5000",
        "contact": "hello@citymuseum.example",
        "summary": "A large museum with quiet galleries and a busy foyer.",
    },
    "categories": ["Sounds", "Light", "Crowds"],
    "areas": [
        {
            "id": "entry",
            "name": "Entry Foyer",
            "order": 0,
            "summary": "Busy and echoey at opening time.",
            "badges": ["Sounds", "Crowds"],
            "details": [
                {
                    "category": "Sounds",
                    "level": "high",
                    "description": "Loud echoes from the tiled floor when busy.",
                },
                {
                    "category": "Light",
                    "level": "medium",
                    "description": "Bright natural light through the glass roof.",
                    "imageUrl": "https://cdn.example.com/foyer.jpg",
                },
            ],
            "images": [],
        },
        {
            "id": "gallery-1",
            "name": "Gallery One",
            "order": 1,
            "badges": [],
            "details": [
                {"category": "Crowds", "level": "low", "description": "Usually quiet."}
            ],
        },
    ],
    "facilities": {
        "exits": [{"description": "Main doors on the north side"}],
        "bathrooms": [{"description": "Accessible bathroom next to the cloakroom"}],
        "quietZones": [{"description": "Reading room on level 2"}],
    },
    "suggestions": ["Add opening hours", "Add photos of the quiet room"],
    "generatedAt": "2026-01-28T10:30:00.000Z",
}


def valid_guide() -> dict:
    return copy.deepcopy(VALID_GUIDE)


class ScriptedProvider(TransformProvider):
    """Returns whatever the test scripts; counts calls."""

    name = "scripted"

    def __init__(
        self,
        data: Any = None,
        error: Optional[Exception] = None,
        delay: float = 0.0,
        tokens: int = 1234,
    ):
        self.data = valid_guide() if data is None else data
        self.error = error
        self.delay = delay
        self.tokens = tokens
        self.calls = 0

    def is_available(self) -> bool:
        return True

    async def transform(self, pdf_bytes: bytes, venue_name: str) -> ProviderResult:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return ProviderResult(data=copy.deepcopy(self.data), tokens_used=self.tokens)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        database_url="sqlite://",
        blob_root=str(tmp_path / "blobs"),
        public_base_url="http://testserver/files",
        super_admin_emails=[ADMIN],
        daily_transform_limit=20,
        scheduler_enabled=False,
        transform_timeout_seconds=5.0,
    )


@pytest.fixture
def engine():
    engine = create_db_engine("sqlite://")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def blobs(tmp_path):
    return LocalBlobStore(tmp_path / "blobs", "http://testserver/files")


@pytest.fixture
def provider():
    return ScriptedProvider()


@pytest.fixture
def ctx(settings, engine, blobs, provider):
    context = AppContext(settings, engine=engine, blobs=blobs, provider=provider).init()
    yield context
    context.dispose()


@pytest.fixture
def owner():
    return Actor(OWNER)


@pytest.fixture
def stranger():
    return Actor(STRANGER)


@pytest.fixture
def admin():
    return Actor(ADMIN, privileged=True)


@pytest.fixture
def venue(ctx, owner):
    return ctx.venues.create_venue("City Museum", owner)


@pytest.fixture
def upload(ctx, venue, owner):
    """A registered PDF upload for ``venue``."""
    return ctx.transforms.register_upload(venue.id, PDF_BYTES, "application/pdf", owner)


def run(coro):
    return asyncio.run(coro)

