"""SQLite-backed bookmark and folder stores."""

import json
import sqlite3
from typing import Any

from loguru import logger

from smart_bookmarks.models.folder import SYSTEM_FOLDER_ID, Bookmark, Folder

_BOOKMARK_COLUMNS = "id, url, title, domain, favicon, folder_id, summary, tags, created_at"
_FOLDER_COLUMNS = "id, name, icon, parent_id, sort_order, created_at"

# Fields a caller may change through SqliteBookmarkStore.update.
UPDATABLE_BOOKMARK_FIELDS = frozenset({"folder_id", "title", "summary", "tags", "favicon"})


def _row_to_bookmark(row: tuple) -> Bookmark:
    return Bookmark(
        id=row[0], url=row[1], title=row[2], domain=row[3], favicon=row[4],
        folder_id=row[5], summary=row[6], tags=tuple(json.loads(row[7])),
        created_at=row[8],
    )


def _row_to_folder(row: tuple) -> Folder:
    return Folder(
        id=row[0], name=row[1], icon=row[2], parent_id=row[3], order=row[4], created_at=row[5]
    )


class SqliteBookmarkStore:
    """Bookmark records in the ``bookmarks`` table."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    async def get_all(self) -> list[Bookmark]:
        """Return all bookmarks, newest first."""
        rows = self.conn.execute(
            f"SELECT {_BOOKMARK_COLUMNS} FROM bookmarks ORDER BY created_at DESC, rowid DESC"
        ).fetchall()
        return [_row_to_bookmark(r) for r in rows]

    async def get(self, bookmark_id: str) -> Bookmark | None:
        row = self.conn.execute(
            f"SELECT {_BOOKMARK_COLUMNS} FROM bookmarks WHERE id = ?", (bookmark_id,)
        ).fetchone()
        return _row_to_bookmark(row) if row else None

    async def add(self, bookmark: Bookmark) -> None:
        self.conn.execute(
            f"INSERT INTO bookmarks ({_BOOKMARK_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                bookmark.id, bookmark.url, bookmark.title, bookmark.domain, bookmark.favicon,
                bookmark.folder_id, bookmark.summary, json.dumps(list(bookmark.tags)),
                bookmark.created_at,
            ),
        )
        self.conn.commit()

    async def update(self, bookmark_id: str, **fields: Any) -> None:
        """Update some fields of a bookmark.

        Raises:
            ValueError: A field is not one of UPDATABLE_BOOKMARK_FIELDS.
            KeyError: No bookmark has this id.
        """
        unknown = set(fields) - UPDATABLE_BOOKMARK_FIELDS
        if unknown:
            msg = f"Cannot update bookmark fields: {sorted(unknown)!r}"
            raise ValueError(msg)
        if not fields:
            return
        if "tags" in fields:
            fields["tags"] = json.dumps(list(fields["tags"]))

        assignments = ", ".join(f"{name} = ?" for name in fields)
        cursor = self.conn.execute(
            f"UPDATE bookmarks SET {assignments} WHERE id = ?",
            [*fields.values(), bookmark_id],
        )
        if cursor.rowcount == 0:
            self.conn.rollback()
            msg = f"Bookmark not found: {bookmark_id!r}"
            raise KeyError(msg)
        self.conn.commit()

    async def urls(self) -> set[str]:
        return {r[0] for r in self.conn.execute("SELECT url FROM bookmarks").fetchall()}

    async def count_by_folder(self) -> dict[str, int]:
        """Bookmark count per folder id. The system folder counts every bookmark."""
        rows = self.conn.execute(
            "SELECT folder_id, COUNT(*) FROM bookmarks GROUP BY folder_id"
        ).fetchall()
        counts = {folder_id: n for folder_id, n in rows}
        counts[SYSTEM_FOLDER_ID] = sum(n for _, n in rows)
        return counts


class SqliteFolderStore:
    """Folder records in the ``folders`` table."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    async def get_all(self) -> list[Folder]:
        """Return all folders ordered by ``order``."""
        rows = self.conn.execute(
            f"SELECT {_FOLDER_COLUMNS} FROM folders ORDER BY sort_order, rowid"
        ).fetchall()
        return [_row_to_folder(r) for r in rows]

    async def put(self, folder: Folder) -> None:
        """Insert or replace a folder."""
        self.conn.execute(
            f"INSERT OR REPLACE INTO folders ({_FOLDER_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?)",
            (
                folder.id, folder.name, folder.icon, folder.parent_id, folder.order,
                folder.created_at,
            ),
        )
        self.conn.commit()

    async def delete(self, folder_id: str) -> None:
        """Delete a folder and its descendants.

        Bookmarks of every deleted folder move to the system folder first.

        Raises:
            ValueError: ``folder_id`` is the system folder.
        """
        if folder_id == SYSTEM_FOLDER_ID:
            msg = "The system folder cannot be deleted"
            raise ValueError(msg)

        try:
            self._delete_subtree(folder_id, visited=set())
            self.conn.commit()
        except Exception:
            self.conn.rollback()
            raise

    def _delete_subtree(self, folder_id: str, visited: set[str]) -> None:
        if folder_id in visited:
            return
        visited.add(folder_id)
        self.conn.execute(
            "UPDATE bookmarks SET folder_id = ? WHERE folder_id = ?", (SYSTEM_FOLDER_ID, folder_id)
        )
        children = self.conn.execute(
            "SELECT id FROM folders WHERE parent_id = ?", (folder_id,)
        ).fetchall()
        for (child_id,) in children:
            if child_id != SYSTEM_FOLDER_ID:
                self._delete_subtree(child_id, visited)
        self.conn.execute("DELETE FROM folders WHERE id = ?", (folder_id,))
        logger.debug("Deleted folder {}", folder_id)
