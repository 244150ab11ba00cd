"""Parse bookmark export files into domain models."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from loguru import logger

from smart_bookmarks.core.importer.urls import extract_domain, is_web_url
from smart_bookmarks.models.folder import SYSTEM_FOLDER_ID, Bookmark, Folder

DEFAULT_FOLDER_NAME = "Untitled Folder"


@dataclass
class ImportBatch:
    """Folders and bookmarks read from one export file, ready to store.

    Folders come parents first, so they can be written in list order.
    """

    folders: list[Folder] = field(default_factory=list)
    bookmarks: list[Bookmark] = field(default_factory=list)


def new_bookmark_id() -> str:
    return f"bm_{uuid4().hex[:16]}"


def new_folder_id() -> str:
    return f"fld_{uuid4().hex[:16]}"


def _text(raw: dict[str, Any], key: str) -> str:
    """String value of ``raw[key]``; missing, null and non-string values give ""."""
    value = raw.get(key)
    return value.strip() if isinstance(value, str) else ""


def parse_bookmark_entry(
    raw: Any, *, now: str, folder_id: str = SYSTEM_FOLDER_ID
) -> Bookmark | None:
    """Build a bookmark from one JSON object, or None if it has no usable url."""
    if not isinstance(raw, dict):
        return None
    url = _text(raw, "url")
    if not is_web_url(url):
        return None
    tags = raw.get("tags")
    if not isinstance(tags, list):
        tags = ()
    return Bookmark(
        id=new_bookmark_id(),
        url=url,
        title=_text(raw, "title") or url,
        domain=extract_domain(url),
        favicon=_text(raw, "favicon"),
        folder_id=folder_id,
        summary=_text(raw, "summary"),
        tags=tuple(str(t) for t in tags if t is not None),
        created_at=_text(raw, "created_at") or now,
    )


def parse_bookmarks_data(data: Any) -> list[Bookmark]:
    """Parse a JSON list of bookmark objects.

    Each entry needs an http(s) ``url``; ``title``, ``favicon``, ``summary``,
    ``tags`` and ``created_at`` are optional and fall back to defaults when
    they are null or of the wrong type. Every bookmark starts in the system
    folder.

    Raises:
        ValueError: ``data`` is not a list.
    """
    if not isinstance(data, list):
        msg = f"Expected a list of bookmarks, got {type(data).__name__}"
        raise ValueError(msg)

    now = datetime.now(UTC).isoformat()
    result: list[Bookmark] = []
    for i, raw in enumerate(data):
        bookmark = parse_bookmark_entry(raw, now=now)
        if bookmark is None:
            logger.warning("Skipping entry {}: no usable http(s) url", i)
            continue
        result.append(bookmark)
    return result


def _parse_folders(data: list[Any], now: str) -> tuple[list[Folder], dict[str, str]]:
    """Copy exported folders under fresh ids, parents before children.

    Returns the folders and a map from exported id to new id. The exported
    system folder maps onto the local one and is not copied.
    """
    entries: dict[str, dict[str, Any]] = {}
    for raw in data:
        if isinstance(raw, dict) and isinstance(raw.get("id"), str):
            entries.setdefault(raw["id"], raw)
    id_map = {SYSTEM_FOLDER_ID: SYSTEM_FOLDER_ID}
    folders: list[Folder] = []

    def visit(old_id: str, trail: set[str]) -> None:
        if old_id in id_map:
            return
        trail = trail | {old_id}
        raw = entries[old_id]
        parent = raw.get("parent_id")
        if not isinstance(parent, str):
            parent = None
        elif parent in entries and parent not in trail:
            visit(parent, trail)
        new_parent = id_map.get(parent) if parent else None
        order = raw.get("order")
        folder = Folder(
            id=new_folder_id(),
            name=_text(raw, "name") or DEFAULT_FOLDER_NAME,
            icon=_text(raw, "icon") or "folder",
            parent_id=None if new_parent == SYSTEM_FOLDER_ID else new_parent,
            order=order if isinstance(order, int) else 0,
            created_at=_text(raw, "created_at") or now,
        )
        id_map[old_id] = folder.id
        folders.append(folder)

    for old_id in entries:
        visit(old_id, set())
    return folders, id_map


def parse_export_data(data: Any) -> ImportBatch:
    """Parse either a bare list of bookmarks or an export envelope.

    The envelope is an object ``{"version", "bookmarks", "folders"}`` as
    written by the JSON exporter. Its folders are copied under new ids with
    their parent links remapped, and each bookmark keeps its folder when that
    folder was part of the envelope.

    Raises:
        ValueError: ``data`` is neither a list nor an envelope with a
            ``bookmarks`` list.
    """
    if isinstance(data, list):
        return ImportBatch(bookmarks=parse_bookmarks_data(data))
    if not isinstance(data, dict) or not isinstance(data.get("bookmarks"), list):
        msg = f"Expected a list of bookmarks or an export object, got {type(data).__name__}"
        raise ValueError(msg)

    now = datetime.now(UTC).isoformat()
    raw_folders = data.get("folders")
    folders, id_map = _parse_folders(raw_folders if isinstance(raw_folders, list) else [], now)

    bookmarks: list[Bookmark] = []
    for i, raw in enumerate(data["bookmarks"]):
        old_folder = raw.get("folder_id") if isinstance(raw, dict) else None
        folder_id = SYSTEM_FOLDER_ID
        if isinstance(old_folder, str):
            folder_id = id_map.get(old_folder, SYSTEM_FOLDER_ID)
        bookmark = parse_bookmark_entry(raw, now=now, folder_id=folder_id)
        if bookmark is None:
            logger.warning("Skipping entry {}: no usable http(s) url", i)
            continue
        bookmarks.append(bookmark)
    logger.debug(
        "Read export version {}: {} folders, {} bookmarks",
        data.get("version", "?"),
        len(folders),
        len(bookmarks),
    )
    return ImportBatch(folders=folders, bookmarks=bookmarks)
