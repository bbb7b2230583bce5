"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import pytest

from gallery_sync.db.session import DatabaseSessionManager
from gallery_sync.domain.models.item import CollectionKind, CollectionRef
from gallery_sync.infrastructure.messaging.event_bus import EventBus
from tests.fakes import FakeAssetStorage, FakeItemStore, FakePreviewService


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    """Keep a developer's .env and shell variables out of the tests."""
    monkeypatch.chdir(tmp_path)
    for name in (
        "DB_PATH",
        "LOG_LEVEL",
        "LOG_JSON",
        "LOG_FILE",
        "STORAGE_API_BASE_URL",
        "DB_OPERATION_TIMEOUT",
        "DB_MAX_RETRIES",
        "STORAGE_PUBLIC_DOMAIN",
        "STORAGE_UPLOAD_TIMEOUT",
        "PAGE_THUMBNAIL_FOLDER",
        "POST_THUMBNAIL_FOLDER",
        "PREVIEW_CDN_BASE_URL",
        "PREVIEW_WIDTH",
        "PREVIEW_QUALITY",
        "PREVIEW_BLUR",
        "PREVIEW_TIMEOUT",
        "SYNC_REINDEX_ON_DRAIN",
        "SYNC_RECONCILE_COUNT_ON_DRAIN",
        "SYNC_REFRESH_ON_DRAIN",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def pages_ref() -> CollectionRef:
    return CollectionRef(kind=CollectionKind.PAGES, key="user-1", owner_id="user-1")


@pytest.fixture
def posts_ref() -> CollectionRef:
    return CollectionRef(kind=CollectionKind.POSTS, key="page-1", owner_id="user-1")


@pytest.fixture
def item_store() -> FakeItemStore:
    return FakeItemStore()


@pytest.fixture
def asset_storage() -> FakeAssetStorage:
    return FakeAssetStorage()


@pytest.fixture
def previews() -> FakePreviewService:
    return FakePreviewService()


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def db_session(tmp_path) -> DatabaseSessionManager:
    """File-backed SQLite; every worker thread opens its own connection to it."""
    session = DatabaseSessionManager(path=str(tmp_path / "gallery.db"), operation_timeout=10.0)
    session.migrate()
    yield session
    session.close()
