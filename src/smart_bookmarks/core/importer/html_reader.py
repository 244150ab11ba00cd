"""Parse Netscape bookmark files exported by browsers."""

from collections import defaultdict
from datetime import UTC, datetime
from html.parser import HTMLParser

from loguru import logger

from smart_bookmarks.core.importer.json_reader import (
    DEFAULT_FOLDER_NAME,
    ImportBatch,
    new_bookmark_id,
    new_folder_id,
)
from smart_bookmarks.core.importer.urls import extract_domain, is_web_url
from smart_bookmarks.models.folder import SYSTEM_FOLDER_ID, Bookmark, Folder

# Browser root folders. Their contents are imported into the enclosing folder.
BROWSER_SYSTEM_FOLDERS = frozenset(
    {
        "Bookmarks Bar",
        "Other Bookmarks",
        "Favorites",
        "Favorites bar",
        "Bookmarks Menu",
        "Bookmarks Toolbar",
        "书签栏",
        "其他书签",
        "Barre de favoris",
        "Autres favoris",
        "Lesezeichenleiste",
        "Weitere Lesezeichen",
        "Barra de marcadores",
        "Otros marcadores",
    }
)


def _timestamp(value: str | None, default: str) -> str:
    """ISO time for an ADD_DATE attribute (seconds since the epoch)."""
    try:
        return datetime.fromtimestamp(int(value or ""), UTC).isoformat()
    except (ValueError, OverflowError, OSError):
        return default


class NetscapeBookmarkParser(HTMLParser):
    """Build folders and bookmarks from ``<DL>``/``<DT>``/``<H3>``/``<A>`` markup.

    A ``<H3>`` names the folder whose items are in the next ``<DL>``. Items
    outside any named folder belong to the system folder.
    """

    def __init__(self, *, now: str) -> None:
        super().__init__(convert_charrefs=True)
        self.now = now
        self.batch = ImportBatch()
        self.skipped = 0
        self.stack: list[str] = []
        self.pending_folder_id: str | None = None
        self.next_order: defaultdict[str, int] = defaultdict(lambda: 1)
        self.heading: list[str] | None = None
        self.heading_attrs: dict[str, str] = {}
        self.link: list[str] | None = None
        self.link_attrs: dict[str, str] = {}

    @property
    def current_folder_id(self) -> str:
        return self.stack[-1] if self.stack else SYSTEM_FOLDER_ID

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        if tag == "dl":
            self.stack.append(self.pending_folder_id or self.current_folder_id)
            self.pending_folder_id = None
        elif tag == "h3":
            self.heading = []
            self.heading_attrs = {k: v or "" for k, v in attrs}
        elif tag == "a":
            self.pending_folder_id = None
            self.link = []
            self.link_attrs = {k: v or "" for k, v in attrs}

    def handle_endtag(self, tag: str) -> None:
        if tag == "dl" and self.stack:
            self.stack.pop()
        elif tag == "h3" and self.heading is not None:
            self._close_folder("".join(self.heading).strip())
            self.heading = None
        elif tag == "a" and self.link is not None:
            self._close_link("".join(self.link).strip())
            self.link = None

    def handle_data(self, data: str) -> None:
        if self.link is not None:
            self.link.append(data)
        elif self.heading is not None:
            self.heading.append(data)

    def _close_folder(self, name: str) -> None:
        parent_id = self.current_folder_id
        toolbar = self.heading_attrs.get("personal_toolbar_folder", "").lower() == "true"
        if toolbar or name in BROWSER_SYSTEM_FOLDERS:
            logger.debug("Flattening browser folder {!r}", name)
            self.pending_folder_id = parent_id
            return

        folder = Folder(
            id=new_folder_id(),
            name=name or DEFAULT_FOLDER_NAME,
            icon="folder",
            parent_id=None if parent_id == SYSTEM_FOLDER_ID else parent_id,
            order=self.next_order[parent_id],
            created_at=_timestamp(self.heading_attrs.get("add_date"), self.now),
        )
        self.next_order[parent_id] += 1
        self.batch.folders.append(folder)
        self.pending_folder_id = folder.id

    def _close_link(self, title: str) -> None:
        url = self.link_attrs.get("href", "").strip()
        if not is_web_url(url):
            logger.warning("Skipping link {!r}: no usable http(s) url", url[:80])
            self.skipped += 1
            return
        self.batch.bookmarks.append(
            Bookmark(
                id=new_bookmark_id(),
                url=url,
                title=title or url,
                domain=extract_domain(url),
                folder_id=self.current_folder_id,
                created_at=_timestamp(self.link_attrs.get("add_date"), self.now),
            )
        )


def parse_netscape_html(text: str) -> ImportBatch:
    """Parse a Netscape bookmark file into folders and bookmarks.

    Folders keep their nesting through ``parent_id``; browser root folders
    such as "Bookmarks Bar" are not created and their contents move up a
    level. Links that are not http(s), such as ``javascript:`` bookmarklets,
    are skipped.
    """
    parser = NetscapeBookmarkParser(now=datetime.now(UTC).isoformat())
    parser.feed(text)
    parser.close()
    logger.debug(
        "Parsed {} folders, {} bookmarks, {} links skipped",
        len(parser.batch.folders),
        len(parser.batch.bookmarks),
        parser.skipped,
    )
    return parser.batch
