"""Drag-and-drop reassignment of bookmarks between proposed folders."""

from enum import StrEnum

from loguru import logger

from smart_bookmarks.core.session.session import ClassificationSession
from smart_bookmarks.models.classification import DragItem, DragItemType


class DragPhase(StrEnum):
    IDLE = "idle"
    DRAGGING = "dragging"
    HOVERING = "hovering"


class DragController:
    """Interaction state for one drag at a time, layered over a session.

    Presentation code forwards pointer events here; only ``drop`` mutates
    the session, and only for bookmark items.
    """

    def __init__(self, session: ClassificationSession) -> None:
        self.session = session
        self.item: DragItem | None = None
        self.hover_folder_id: str | None = None

    @property
    def phase(self) -> DragPhase:
        if self.item is None:
            return DragPhase.IDLE
        if self.hover_folder_id is not None:
            return DragPhase.HOVERING
        return DragPhase.DRAGGING

    def start(self, item_type: DragItemType | str, item_id: str, source_folder_id: str) -> bool:
        """Pick up an item. Refused while another drag is active."""
        if self.item is not None:
            logger.debug("Ignoring drag of {}: {} is already being dragged", item_id, self.item.id)
            return False
        self.item = DragItem(
            type=DragItemType(item_type), id=item_id, source_folder_id=source_folder_id
        )
        self.hover_folder_id = None
        return True

    def over(self, folder_id: str) -> None:
        """The pointer is over ``folder_id``; highlight it unless it is the source."""
        if self.item is not None and self.item.source_folder_id != folder_id:
            self.hover_folder_id = folder_id

    def leave(self) -> None:
        """The pointer left the highlighted folder; the drag goes on."""
        self.hover_folder_id = None

    def drop(self, target_folder_id: str) -> bool:
        """Finish the drag on ``target_folder_id``.

        Returns True if a bookmark changed folders. Drag and hover state are
        cleared either way. Folder items have no reparenting rules, so dropping
        one only clears the drag and leaves the proposal as it was.
        """
        item = self.item
        self.item = None
        self.hover_folder_id = None
        if item is None or item.type is not DragItemType.BOOKMARK:
            return False
        return self.session.move_bookmark(item.id, item.source_folder_id, target_folder_id)

    def end(self) -> None:
        """The drag ended without a drop."""
        self.item = None
        self.hover_folder_id = None
