"""The classification session: one editable folder proposal per run."""

from collections.abc import Iterable, Sequence
from dataclasses import replace
from enum import StrEnum
from typing import Any
from uuid import uuid4

from loguru import logger

from smart_bookmarks.core.session.committer import CommitReport, commit_classification
from smart_bookmarks.errors import ClassifierFailure, SessionClosedError
from smart_bookmarks.models.classification import (
    NEW_FOLDER_PREFIX,
    UNCATEGORIZED_FOLDER_ID,
    UNCATEGORIZED_FOLDER_NAME,
    ClassificationResult,
    ClassifiedFolder,
)
from smart_bookmarks.models.folder import SYSTEM_FOLDER_ID, Bookmark
from smart_bookmarks.protocols import (
    BookmarkStoreProtocol,
    ClassifierProtocol,
    FolderStoreProtocol,
    ProgressCallback,
)

DEFAULT_NEW_FOLDER_NAME = "New Folder"


class SessionState(StrEnum):
    EMPTY = "empty"
    PROPOSED = "proposed"
    COMMITTED = "committed"
    DISCARDED = "discarded"


def seed_result(
    bookmarks: Iterable[Bookmark], proposal: ClassificationResult
) -> ClassificationResult:
    """Turn untrusted classifier output into a proposal that partitions ``bookmarks``.

    Unknown ids are dropped, an id listed twice stays with its first folder,
    and bookmarks the classifier left out go to the uncategorized folder.
    """
    source_ids = [b.id for b in bookmarks]
    known = set(source_ids)
    assigned: set[str] = set()
    dropped = 0

    folders: list[ClassifiedFolder] = []
    seen_folder_ids: set[str] = set()
    for position, proposed in enumerate(proposal.folders):
        folder_id = proposed.id
        if folder_id in seen_folder_ids:
            folder_id = f"{proposed.id}_{position}"
        seen_folder_ids.add(folder_id)
        members: list[str] = []
        for bookmark_id in proposed.bookmark_ids:
            if bookmark_id not in known or bookmark_id in assigned:
                dropped += 1
                continue
            assigned.add(bookmark_id)
            members.append(bookmark_id)
        folders.append(
            ClassifiedFolder(
                id=folder_id,
                name=proposed.name,
                icon=proposed.icon,
                bookmark_ids=tuple(members),
            )
        )

    missing = tuple(b for b in source_ids if b not in assigned)
    if missing:
        index = next((i for i, f in enumerate(folders) if f.is_uncategorized), None)
        if index is None:
            folders.append(
                ClassifiedFolder(
                    id=UNCATEGORIZED_FOLDER_ID,
                    name=UNCATEGORIZED_FOLDER_NAME,
                    icon="folder",
                    bookmark_ids=missing,
                )
            )
        else:
            folders[index] = replace(
                folders[index], bookmark_ids=folders[index].bookmark_ids + missing
            )

    if dropped or missing:
        logger.debug(
            "Seeded proposal: dropped {} unknown/duplicate ids, {} unassigned bookmarks",
            dropped,
            len(missing),
        )
    return ClassificationResult(folders=tuple(folders))


class ClassificationSession:
    """Owns one proposal and the edits applied to it before commit.

    Every edit replaces ``result`` with a new immutable value in one step and
    bumps ``version``, so a bookmark is never seen in zero or two folders.
    Edits return True when they changed the proposal.
    """

    def __init__(self, bookmarks: Sequence[Bookmark]) -> None:
        self.bookmarks: tuple[Bookmark, ...] = tuple(bookmarks)
        self.result: ClassificationResult | None = None
        self.state = SessionState.EMPTY
        self.version = 0
        self.editing_folder_id: str | None = None
        self._progress_ignored = False
        self._by_id = {b.id: b for b in self.bookmarks}

    def bookmark(self, bookmark_id: str) -> Bookmark | None:
        return self._by_id.get(bookmark_id)

    def find_folder(self, ref: str) -> ClassifiedFolder | None:
        """Look a proposed folder up by id, falling back to a case-insensitive name match."""
        result = self._require_result()
        found = result.find(ref)
        if found is None:
            wanted = ref.strip().lower()
            found = next((f for f in result.folders if f.name.strip().lower() == wanted), None)
        return found

    def snapshot(self) -> dict[str, Any]:
        """Plain-data view of the session for display or serialization."""
        folders = []
        for folder in self.result.folders if self.result else ():
            folders.append(
                {
                    "id": folder.id,
                    "name": folder.name,
                    "icon": folder.icon,
                    "is_new": folder.is_new,
                    "count": len(folder.bookmark_ids),
                    "bookmarks": [
                        {"id": b.id, "title": b.title, "url": b.url, "domain": b.domain}
                        for b in map(self.bookmark, folder.bookmark_ids)
                        if b is not None
                    ],
                }
            )
        return {
            "state": str(self.state),
            "version": self.version,
            "editing_folder_id": self.editing_folder_id,
            "folders": folders,
        }

    # --- Seeding ---

    def seed(self, proposal: ClassificationResult) -> ClassificationResult:
        """Install the classifier's proposal as the session's starting point."""
        if self.state in (SessionState.COMMITTED, SessionState.DISCARDED):
            msg = f"Session is {self.state}; start a new one"
            raise SessionClosedError(msg)
        self._replace(seed_result(self.bookmarks, proposal))
        self.state = SessionState.PROPOSED
        self.editing_folder_id = None
        return self._require_result()

    async def classify(
        self,
        classifier: ClassifierProtocol,
        on_progress: ProgressCallback | None = None,
    ) -> ClassificationResult:
        """Run the classifier over the session's bookmarks and seed from its output.

        Raises:
            ClassifierFailure: The classifier raised. The session stays as it was.
        """
        self._progress_ignored = False

        def forward(current: int, total: int) -> None:
            if on_progress is not None and not self._progress_ignored:
                on_progress(current, total)

        try:
            proposal = await classifier.classify(self.bookmarks, forward)
        except Exception as e:
            logger.error("Classification failed: {}", e)
            raise ClassifierFailure(str(e)) from e
        return self.seed(proposal)

    def ignore_progress(self) -> None:
        """Stop forwarding progress updates from a running classification."""
        self._progress_ignored = True

    # --- Edits ---

    def add_folder(
        self,
        name: str = DEFAULT_NEW_FOLDER_NAME,
        icon: str = "folder",
        *,
        editing: bool = True,
    ) -> ClassifiedFolder:
        """Append an empty folder.

        The folder enters edit mode unless ``editing`` is False, which callers
        that already know the final name use.
        """
        result = self._require_result()
        folder = ClassifiedFolder(id=f"{NEW_FOLDER_PREFIX}{uuid4().hex}", name=name, icon=icon)
        self._replace(ClassificationResult(folders=result.folders + (folder,)))
        if editing:
            self.editing_folder_id = folder.id
        return folder

    def rename_folder(self, folder_id: str, new_name: str) -> bool:
        result = self._require_result()
        self.editing_folder_id = None
        name = new_name.strip()
        target = result.find(folder_id)
        if not name or target is None or target.name == name:
            return False
        self._replace(
            ClassificationResult(
                folders=tuple(
                    replace(f, name=name) if f.id == folder_id else f for f in result.folders
                )
            )
        )
        return True

    def delete_folder(self, folder_id: str) -> bool:
        """Remove a folder, handing its bookmarks to the fallback folder.

        The fallback is the uncategorized folder if there is one, else the
        first remaining folder. The system folder and the last folder stay.
        """
        result = self._require_result()
        doomed = result.find(folder_id)
        if doomed is None or folder_id == SYSTEM_FOLDER_ID:
            return False

        remaining = [f for f in result.folders if f.id != folder_id]
        if not remaining:
            return False
        fallback = next((f for f in remaining if f.is_uncategorized), remaining[0])

        self._replace(
            ClassificationResult(
                folders=tuple(
                    replace(f, bookmark_ids=f.bookmark_ids + doomed.bookmark_ids)
                    if f.id == fallback.id
                    else f
                    for f in remaining
                )
            )
        )
        if self.editing_folder_id == folder_id:
            self.editing_folder_id = None
        logger.debug(
            "Deleted folder {}; {} bookmarks moved to {}",
            folder_id,
            len(doomed.bookmark_ids),
            fallback.id,
        )
        return True

    def move_bookmark(self, bookmark_id: str, source_folder_id: str, target_folder_id: str) -> bool:
        """Move one bookmark from the end of ``source`` to the end of ``target``."""
        result = self._require_result()
        if source_folder_id == target_folder_id:
            return False
        source = result.find(source_folder_id)
        target = result.find(target_folder_id)
        if source is None or target is None or bookmark_id not in source.bookmark_ids:
            return False

        def moved(folder: ClassifiedFolder) -> ClassifiedFolder:
            if folder.id == source_folder_id:
                return replace(
                    folder, bookmark_ids=tuple(b for b in folder.bookmark_ids if b != bookmark_id)
                )
            if folder.id == target_folder_id:
                return replace(folder, bookmark_ids=folder.bookmark_ids + (bookmark_id,))
            return folder

        self._replace(ClassificationResult(folders=tuple(moved(f) for f in result.folders)))
        return True

    # --- Lifecycle ---

    async def commit(
        self,
        folder_store: FolderStoreProtocol,
        bookmark_store: BookmarkStoreProtocol,
    ) -> CommitReport:
        """Persist the proposal and close the session.

        Raises:
            CommitFailure: A store call failed; the session stays open for a retry.
        """
        result = self._require_result()
        report = await commit_classification(result, folder_store, bookmark_store)
        self.state = SessionState.COMMITTED
        self.result = None
        return report

    def discard(self) -> None:
        self.result = None
        self.editing_folder_id = None
        self.state = SessionState.DISCARDED

    # --- Internals ---

    def _require_result(self) -> ClassificationResult:
        if self.result is None or self.state != SessionState.PROPOSED:
            msg = f"No proposal to work on (session is {self.state})"
            raise SessionClosedError(msg)
        return self.result

    def _replace(self, result: ClassificationResult) -> None:
        self.result = result
        self.version += 1

