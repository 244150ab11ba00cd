"""Models for a classification proposal and the drag interaction."""

from dataclasses import dataclass
from enum import StrEnum

UNCATEGORIZED_FOLDER_ID = "uncategorized"
UNCATEGORIZED_FOLDER_NAME = "Uncategorized"

# Session-minted folder ids carry this prefix until the commit gives them a durable id.
NEW_FOLDER_PREFIX = "new_"


@dataclass(frozen=True)
class ClassifiedFolder:
    """A proposed folder and the ordered bookmark ids it would contain."""

    id: str
    name: str
    icon: str = "folder"
    bookmark_ids: tuple[str, ...] = ()

    @property
    def is_new(self) -> bool:
        return self.id.startswith(NEW_FOLDER_PREFIX)

    @property
    def is_uncategorized(self) -> bool:
        return (
            self.id == UNCATEGORIZED_FOLDER_ID
            or self.name.strip().lower() == UNCATEGORIZED_FOLDER_NAME.lower()
        )


@dataclass(frozen=True)
class ClassificationResult:
    """The full proposal: folders in display order."""

    folders: tuple[ClassifiedFolder, ...] = ()

    def find(self, folder_id: str) -> ClassifiedFolder | None:
        return next((f for f in self.folders if f.id == folder_id), None)

    def owner_of(self, bookmark_id: str) -> ClassifiedFolder | None:
        """Return the folder whose membership contains ``bookmark_id``."""
        return next((f for f in self.folders if bookmark_id in f.bookmark_ids), None)


class DragItemType(StrEnum):
    BOOKMARK = "bookmark"
    FOLDER = "folder"


@dataclass(frozen=True)
class DragItem:
    """The item currently being dragged and the folder it was picked up from."""

    type: DragItemType
    id: str
    source_folder_id: str
