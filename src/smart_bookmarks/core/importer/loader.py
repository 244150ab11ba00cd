"""Import bookmark export files into the SQLite store."""

import json
import sqlite3
from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from smart_bookmarks.core.importer.html_reader import parse_netscape_html
from smart_bookmarks.core.importer.json_reader import ImportBatch, parse_export_data
from smart_bookmarks.core.importer.urls import normalize_url
from smart_bookmarks.core.store.sqlite_store import SqliteBookmarkStore, SqliteFolderStore

HTML_SUFFIXES = (".html", ".htm")


@dataclass(frozen=True)
class ImportStats:
    """Summary of an import operation."""

    bookmarks_imported: int
    bookmarks_skipped: int
    folders_created: int = 0


def read_import_file(path: Path) -> ImportBatch:
    """Parse ``path`` as a Netscape HTML file or, for any other suffix, as JSON.

    Raises:
        ValueError: The file is not valid JSON or has an unexpected shape.
    """
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() in HTML_SUFFIXES:
        return parse_netscape_html(text)
    return parse_export_data(json.loads(text))


async def store_import_batch(conn: sqlite3.Connection, batch: ImportBatch) -> ImportStats:
    """Write folders, then every bookmark whose normalized url is not stored yet.

    Duplicates are detected after normalization, so ``http://www.a.com/x/``
    and ``https://a.com/x?utm_source=feed`` count as the same bookmark.
    """
    folder_store = SqliteFolderStore(conn)
    for folder in batch.folders:
        await folder_store.put(folder)

    store = SqliteBookmarkStore(conn)
    known_urls = {normalize_url(url) for url in await store.urls()}

    imported = 0
    skipped = 0
    for bookmark in batch.bookmarks:
        key = normalize_url(bookmark.url)
        if key in known_urls:
            skipped += 1
            continue
        await store.add(bookmark)
        known_urls.add(key)
        imported += 1
        logger.debug("Imported {}", bookmark.url)

    logger.info(
        "Import complete: {} imported, {} skipped, {} folders created",
        imported,
        skipped,
        len(batch.folders),
    )
    return ImportStats(
        bookmarks_imported=imported,
        bookmarks_skipped=skipped,
        folders_created=len(batch.folders),
    )


async def import_bookmarks_file(conn: sqlite3.Connection, path: Path) -> ImportStats:
    """Import bookmarks from a JSON or Netscape HTML file, skipping known urls.

    Args:
        conn: SQLite connection (schema must already exist).
        path: A JSON list of bookmark objects, a JSON export envelope, or a
            browser's HTML bookmark export.

    Returns:
        ImportStats with counts of imported/skipped bookmarks and new folders.
    """
    return await store_import_batch(conn, read_import_file(path))
