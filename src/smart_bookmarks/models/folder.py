"""Domain models for bookmarks and the persisted folder structure."""

from dataclasses import dataclass

# The protected default folder. Never deleted, never reparented.
SYSTEM_FOLDER_ID = "all"
SYSTEM_FOLDER_NAME = "All Bookmarks"
SYSTEM_FOLDER_ICON = "folder-open"


@dataclass(frozen=True)
class Bookmark:
    """A saved bookmark as held by the record store."""

    id: str
    url: str
    title: str
    domain: str
    favicon: str = ""
    folder_id: str = SYSTEM_FOLDER_ID
    summary: str = ""
    tags: tuple[str, ...] = ()
    created_at: str = ""


@dataclass(frozen=True)
class Folder:
    """A persisted folder. ``parent_id`` is None for top-level folders."""

    id: str
    name: str
    icon: str
    parent_id: str | None
    order: int
    created_at: str


@dataclass(frozen=True)
class FolderWithChildren:
    """A folder annotated with its ordered children. View-only, never stored."""

    folder: Folder
    children: tuple["FolderWithChildren", ...] = ()
    count: int | None = None


@dataclass(frozen=True)
class FolderEntry:
    """One row of a flattened folder tree, with its indentation level."""

    folder: Folder
    level: int
    count: int | None = None
