"""Shared test fixtures."""

import asyncio
import sqlite3

import pytest

from smart_bookmarks.core.database.schema import migrate_schema
from smart_bookmarks.core.store.sqlite_store import SqliteBookmarkStore
from smart_bookmarks.models.folder import Bookmark
from tests.unit.fakes import SAMPLE_BOOKMARKS


@pytest.fixture
def sample_bookmarks() -> list[Bookmark]:
    return list(SAMPLE_BOOKMARKS)


@pytest.fixture
def db() -> sqlite3.Connection:
    """Return an empty in-memory DB with the system folder in place."""
    conn = sqlite3.connect(":memory:")
    migrate_schema(conn)
    return conn


@pytest.fixture
def populated_db(db: sqlite3.Connection) -> sqlite3.Connection:
    """Return an in-memory DB holding the sample bookmarks."""
    store = SqliteBookmarkStore(db)
    for bookmark in SAMPLE_BOOKMARKS:
        asyncio.run(store.add(bookmark))
    return db
