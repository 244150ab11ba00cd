"""Replace the persisted folder structure with a classification proposal."""

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

from loguru import logger

from smart_bookmarks.errors import CommitFailure
from smart_bookmarks.models.classification import ClassificationResult
from smart_bookmarks.models.folder import SYSTEM_FOLDER_ID, Folder
from smart_bookmarks.protocols import BookmarkStoreProtocol, FolderStoreProtocol

FolderIdFactory = Callable[[int], str]


@dataclass
class CommitReport:
    """What a commit has written so far."""

    folders_deleted: int = 0
    folders_written: int = 0
    bookmarks_updated: int = 0
    # Session folder id -> durable folder id
    folder_ids: dict[str, str] = field(default_factory=dict)


def default_folder_id(index: int) -> str:
    return f"folder_{int(time.time() * 1000)}_{index}"


async def commit_classification(
    result: ClassificationResult,
    folder_store: FolderStoreProtocol,
    bookmark_store: BookmarkStoreProtocol,
    *,
    now: datetime | None = None,
    id_factory: FolderIdFactory = default_folder_id,
) -> CommitReport:
    """Make ``result`` the persisted folder structure.

    Deletes every non-system folder, then writes the proposed folders in
    order (``order`` is 1-based, ``parent_id`` is None) and points each
    member bookmark at its folder. Calls are awaited one by one and nothing
    is rolled back: on the first failure the already-written folders and
    bookmarks stay, the rest of the proposal is not applied.

    Args:
        result: The proposal to apply.
        folder_store: Persisted folders.
        bookmark_store: Persisted bookmarks.
        now: Commit time for newly created folders (defaults to the current UTC time).
        id_factory: Mints a durable id from a folder's 0-based position, for new
            folders and for any proposed folder that reuses the system folder id.

    Raises:
        CommitFailure: Validation failed or a store call raised.
    """
    report = CommitReport()

    blank = [f.id for f in result.folders if not f.name.strip()]
    if blank:
        msg = f"Folders need a name before saving: {blank!r}"
        raise CommitFailure(msg, step="validate", item_id=blank[0], report=report)

    created_at = (now or datetime.now(UTC)).isoformat()

    step = "delete_folder"
    item_id: str | None = None
    try:
        for existing in await folder_store.get_all():
            if existing.id == SYSTEM_FOLDER_ID:
                continue
            item_id = existing.id
            await folder_store.delete(existing.id)
            report.folders_deleted += 1

        for index, proposed in enumerate(result.folders):
            # The system folder is never overwritten by a proposal.
            keep_id = not proposed.is_new and proposed.id != SYSTEM_FOLDER_ID
            folder = Folder(
                id=proposed.id if keep_id else id_factory(index),
                name=proposed.name.strip(),
                icon=proposed.icon,
                parent_id=None,
                order=index + 1,
                created_at=created_at,
            )
            step, item_id = "put_folder", proposed.id
            await folder_store.put(folder)
            report.folders_written += 1
            report.folder_ids[proposed.id] = folder.id

            step = "update_bookmark"
            for bookmark_id in proposed.bookmark_ids:
                item_id = bookmark_id
                await bookmark_store.update(bookmark_id, folder_id=folder.id)
                report.bookmarks_updated += 1
    except Exception as e:
        logger.exception("Commit stopped at {} ({})", step, item_id)
        msg = f"Saving failed at {step} for {item_id!r}: {e}"
        raise CommitFailure(msg, step=step, item_id=item_id, report=report) from e

    logger.info(
        "Committed {} folders, {} bookmarks moved, {} old folders removed",
        report.folders_written,
        report.bookmarks_updated,
        report.folders_deleted,
    )
    return report
