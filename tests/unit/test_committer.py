"""Tests for committing a proposal to the folder and bookmark stores."""

import asyncio
from datetime import UTC, datetime

import pytest

from smart_bookmarks.core.session.committer import commit_classification, default_folder_id
from smart_bookmarks.core.session.session import ClassificationSession, SessionState
from smart_bookmarks.errors import CommitFailure
from smart_bookmarks.models.classification import ClassificationResult, ClassifiedFolder
from smart_bookmarks.models.folder import Folder
from tests.unit.fakes import FakeBookmarkStore, FakeFolderStore, make_bookmark

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)


def _stored_folder(folder_id: str, order: int) -> Folder:
    return Folder(
        id=folder_id,
        name=folder_id,
        icon="folder",
        parent_id=None,
        order=order,
        created_at="2023-01-01T00:00:00+00:00",
    )


def _stores(
    *, fail_on_put: int | None = None, fail_on_update: str | None = None
) -> tuple[FakeFolderStore, FakeBookmarkStore]:
    folders = FakeFolderStore(
        [_stored_folder("all", 0), _stored_folder("old1", 1), _stored_folder("old2", 2)],
        fail_on_put=fail_on_put,
    )
    bookmarks = FakeBookmarkStore(
        [make_bookmark(b) for b in ("b1", "b2", "b3")], fail_on_update=fail_on_update
    )
    return folders, bookmarks


PROPOSAL = ClassificationResult(
    folders=(
        ClassifiedFolder(id="folder_0", name="Dev", icon="code", bookmark_ids=("b1", "b2")),
        ClassifiedFolder(id="new_x", name=" Reading ", bookmark_ids=("b3",)),
    )
)


def _commit(result, folder_store, bookmark_store):  # type: ignore[no-untyped-def]
    return asyncio.run(
        commit_classification(
            result, folder_store, bookmark_store, now=NOW, id_factory=lambda i: f"durable_{i}"
        )
    )


def test_commit_replaces_folders_and_reassigns_bookmarks() -> None:
    folder_store, bookmark_store = _stores()

    report = _commit(PROPOSAL, folder_store, bookmark_store)

    assert set(folder_store.folders) == {"all", "folder_0", "durable_1"}
    dev = folder_store.folders["folder_0"]
    assert (dev.name, dev.icon, dev.order, dev.parent_id) == ("Dev", "code", 1, None)
    reading = folder_store.folders["durable_1"]
    assert (reading.name, reading.order) == ("Reading", 2)
    assert reading.created_at == NOW.isoformat()

    assert bookmark_store.bookmarks["b1"].folder_id == "folder_0"
    assert bookmark_store.bookmarks["b3"].folder_id == "durable_1"
    assert report.folders_deleted == 2
    assert report.folders_written == 2
    assert report.bookmarks_updated == 3
    assert report.folder_ids == {"folder_0": "folder_0", "new_x": "durable_1"}


def test_commit_never_deletes_system_folder() -> None:
    folder_store, bookmark_store = _stores()
    _commit(PROPOSAL, folder_store, bookmark_store)
    assert ("delete", "all") not in folder_store.calls
    assert "all" in folder_store.folders


def test_proposed_folder_with_system_id_gets_a_new_id() -> None:
    folder_store, bookmark_store = _stores()
    proposal = ClassificationResult(
        folders=(ClassifiedFolder(id="all", name="Everything", bookmark_ids=("b1", "b2")),)
    )

    report = _commit(proposal, folder_store, bookmark_store)

    assert folder_store.folders["all"].name == "all"
    assert folder_store.folders["durable_0"].name == "Everything"
    assert ("put", "all") not in folder_store.calls
    assert bookmark_store.bookmarks["b1"].folder_id == "durable_0"
    assert report.folder_ids == {"all": "durable_0"}


def test_commit_deletes_before_writing() -> None:
    folder_store, bookmark_store = _stores()
    _commit(PROPOSAL, folder_store, bookmark_store)
    assert folder_store.calls == [
        ("delete", "old1"),
        ("delete", "old2"),
        ("put", "folder_0"),
        ("put", "durable_1"),
    ]


def test_empty_proposal_only_clears_folders() -> None:
    folder_store, bookmark_store = _stores()
    report = _commit(ClassificationResult(), folder_store, bookmark_store)
    assert set(folder_store.folders) == {"all"}
    assert report.folders_written == 0
    assert bookmark_store.calls == []


def test_failure_on_second_put_keeps_earlier_writes() -> None:
    folder_store, bookmark_store = _stores(fail_on_put=2)

    with pytest.raises(CommitFailure) as exc_info:
        _commit(PROPOSAL, folder_store, bookmark_store)

    err = exc_info.value
    assert err.step == "put_folder"
    assert err.item_id == "new_x"
    assert err.report.folders_written == 1
    assert err.report.bookmarks_updated == 2
    assert set(folder_store.folders) == {"all", "folder_0"}
    assert bookmark_store.bookmarks["b1"].folder_id == "folder_0"
    assert bookmark_store.bookmarks["b3"].folder_id == "all"
    assert isinstance(err.__cause__, OSError)


def test_failure_on_bookmark_update_names_the_bookmark() -> None:
    folder_store, bookmark_store = _stores(fail_on_update="b2")

    with pytest.raises(CommitFailure) as exc_info:
        _commit(PROPOSAL, folder_store, bookmark_store)

    assert exc_info.value.step == "update_bookmark"
    assert exc_info.value.item_id == "b2"
    assert exc_info.value.report.bookmarks_updated == 1


def test_blank_name_fails_before_any_write() -> None:
    folder_store, bookmark_store = _stores()
    proposal = ClassificationResult(folders=(ClassifiedFolder(id="f", name="  "),))

    with pytest.raises(CommitFailure) as exc_info:
        _commit(proposal, folder_store, bookmark_store)

    assert exc_info.value.step == "validate"
    assert folder_store.calls == []


def test_default_folder_id_embeds_position() -> None:
    first, second = default_folder_id(0), default_folder_id(1)
    assert first.startswith("folder_")
    assert first.endswith("_0")
    assert second.endswith("_1")
    assert first != second


def test_commit_persists_exactly_the_session_folders() -> None:
    folder_store = FakeFolderStore([_stored_folder("folder_0", 1), _stored_folder("stale", 2)])
    bookmark_store = FakeBookmarkStore([make_bookmark(b) for b in ("b1", "b2", "b3")])

    _commit(PROPOSAL, folder_store, bookmark_store)

    assert len(folder_store.folders) == len(PROPOSAL.folders)
    for bookmark in bookmark_store.bookmarks.values():
        assert bookmark.folder_id in folder_store.folders


def test_session_commit_closes_session_and_failure_keeps_it_open() -> None:
    session = ClassificationSession([make_bookmark(b) for b in ("b1", "b2", "b3")])
    session.seed(PROPOSAL)

    failing_folders, bookmark_store = _stores(fail_on_put=1)
    with pytest.raises(CommitFailure):
        asyncio.run(session.commit(failing_folders, bookmark_store))
    assert session.state == SessionState.PROPOSED

    folder_store, bookmark_store = _stores()
    report = asyncio.run(session.commit(folder_store, bookmark_store))
    assert report.folders_written == 2
    assert session.state == SessionState.COMMITTED
    assert session.result is None
