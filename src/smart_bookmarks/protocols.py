"""Protocols for the collaborators a classification session depends on."""

from collections.abc import Callable, Sequence
from typing import Any, Protocol, runtime_checkable

from smart_bookmarks.models.classification import ClassificationResult
from smart_bookmarks.models.folder import Bookmark, Folder

ProgressCallback = Callable[[int, int], None]


@runtime_checkable
class BookmarkStoreProtocol(Protocol):
    """Record store for bookmarks."""

    async def get_all(self) -> list[Bookmark]:
        """Return every stored bookmark."""
        ...

    async def update(self, bookmark_id: str, **fields: Any) -> None:
        """Update fields of one bookmark. Raises on failure."""
        ...


@runtime_checkable
class FolderStoreProtocol(Protocol):
    """Record store for folders."""

    async def get_all(self) -> list[Folder]:
        """Return every stored folder."""
        ...

    async def put(self, folder: Folder) -> None:
        """Insert or replace a folder. Raises on failure."""
        ...

    async def delete(self, folder_id: str) -> None:
        """Delete a folder. Raises on failure."""
        ...


@runtime_checkable
class ClassifierProtocol(Protocol):
    """Proposes a grouping for a set of bookmarks."""

    async def classify(
        self,
        bookmarks: Sequence[Bookmark],
        on_progress: ProgressCallback | None = None,
    ) -> ClassificationResult:
        """Return a proposed grouping. May raise with a descriptive error."""
        ...


@runtime_checkable
class ChatApiProtocol(Protocol):
    """Protocol for LLM clients used by the classifier."""

    def complete(self, prompt: str) -> str:
        """Send a prompt and return the reply text."""
        ...
