"""Export the stored folders and bookmarks as JSON or Netscape HTML."""

import io
import json
import sqlite3
from collections.abc import Iterable
from dataclasses import asdict
from datetime import UTC, datetime
from html import escape

from smart_bookmarks.core.store.sqlite_store import SqliteBookmarkStore, SqliteFolderStore
from smart_bookmarks.core.tree.folder_tree import build_folder_tree
from smart_bookmarks.models.folder import SYSTEM_FOLDER_ID, Bookmark, FolderWithChildren

EXPORT_VERSION = "1.0.0"

_NETSCAPE_HEADER = """\
<!DOCTYPE NETSCAPE-Bookmark-file-1>
<!-- This is an automatically generated file.
     It will be read and overwritten.
     DO NOT EDIT! -->
<META HTTP-EQUIV="Content-Type" CONTENT="text/html; charset=UTF-8">
<TITLE>Smart Bookmarks Export</TITLE>
<H1>Smart Bookmarks</H1>
"""


async def export_json(conn: sqlite3.Connection, *, now: datetime | None = None) -> str:
    """Serialize every folder and bookmark into an export envelope.

    The envelope reads back with ``parse_export_data``.
    """
    folders = await SqliteFolderStore(conn).get_all()
    bookmarks = await SqliteBookmarkStore(conn).get_all()
    data = {
        "version": EXPORT_VERSION,
        "exported_at": (now or datetime.now(UTC)).isoformat(),
        "folders": [asdict(f) for f in folders],
        "bookmarks": [asdict(b) for b in bookmarks],
    }
    return json.dumps(data, indent=2, ensure_ascii=False)


def _add_date(bookmark: Bookmark) -> str:
    try:
        return str(int(datetime.fromisoformat(bookmark.created_at).timestamp()))
    except ValueError:
        return "0"


def _write_links(out: io.StringIO, bookmarks: Iterable[Bookmark], indent: str) -> None:
    for b in bookmarks:
        out.write(
            f'{indent}<DT><A HREF="{escape(b.url)}" ADD_DATE="{_add_date(b)}">'
            f"{escape(b.title)}</A>\n"
        )


async def export_html(conn: sqlite3.Connection) -> str:
    """Render the folder tree as a Netscape bookmark file browsers can import.

    Bookmarks of the system folder, and of folders that no longer exist, sit
    at the top level. Every other folder becomes a nested ``<H3>`` section.
    """
    folders = await SqliteFolderStore(conn).get_all()
    bookmarks = await SqliteBookmarkStore(conn).get_all()
    known = {f.id for f in folders}

    by_folder: dict[str, list[Bookmark]] = {}
    for b in bookmarks:
        folder_id = b.folder_id if b.folder_id in known else SYSTEM_FOLDER_ID
        by_folder.setdefault(folder_id, []).append(b)

    out = io.StringIO()
    out.write(_NETSCAPE_HEADER)
    out.write("<DL><p>\n")

    def write_folder(node: FolderWithChildren, level: int) -> None:
        indent = "    " * level
        out.write(f"{indent}<DT><H3>{escape(node.folder.name)}</H3>\n")
        out.write(f"{indent}<DL><p>\n")
        for child in node.children:
            write_folder(child, level + 1)
        _write_links(out, by_folder.get(node.folder.id, []), indent + "    ")
        out.write(f"{indent}</DL><p>\n")

    roots = build_folder_tree(folders)
    for node in roots:
        if node.folder.id == SYSTEM_FOLDER_ID:
            for child in node.children:
                write_folder(child, 1)
        else:
            write_folder(node, 1)
    _write_links(out, by_folder.get(SYSTEM_FOLDER_ID, []), "    ")
    out.write("</DL><p>\n")
    return out.getvalue()
