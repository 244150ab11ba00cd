"""Tests for the classification session."""

import asyncio
from collections import Counter

import pytest

from smart_bookmarks.core.session.session import (
    DEFAULT_NEW_FOLDER_NAME,
    ClassificationSession,
    SessionState,
    seed_result,
)
from smart_bookmarks.errors import ClassifierFailure, SessionClosedError
from smart_bookmarks.models.classification import ClassificationResult, ClassifiedFolder
from smart_bookmarks.models.folder import Bookmark
from tests.unit.fakes import FakeClassifier, make_bookmark


def _proposal(*folders: tuple[str, str, tuple[str, ...]]) -> ClassificationResult:
    return ClassificationResult(
        folders=tuple(ClassifiedFolder(id=i, name=n, bookmark_ids=ids) for i, n, ids in folders)
    )


def _seeded(bookmark_ids: list[str], *folders: tuple[str, str, tuple[str, ...]]):
    session = ClassificationSession([make_bookmark(b) for b in bookmark_ids])
    session.seed(_proposal(*folders))
    return session


def _membership(session: ClassificationSession) -> dict[str, list[str]]:
    assert session.result is not None
    return {f.id: list(f.bookmark_ids) for f in session.result.folders}


def _assert_partition(session: ClassificationSession) -> None:
    """Every session bookmark sits in exactly one folder."""
    assert session.result is not None
    seen = Counter(b for f in session.result.folders for b in f.bookmark_ids)
    assert set(seen) == {b.id for b in session.bookmarks}
    assert all(n == 1 for n in seen.values())


# --- Seeding ---


def test_seed_keeps_classifier_order() -> None:
    session = _seeded(
        ["b1", "b2", "b3"],
        ("f1", "Dev", ("b2", "b1")),
        ("f2", "Docs", ("b3",)),
    )
    assert session.state == SessionState.PROPOSED
    assert _membership(session) == {"f1": ["b2", "b1"], "f2": ["b3"]}
    _assert_partition(session)


def test_seed_drops_unknown_and_duplicate_ids() -> None:
    session = _seeded(
        ["b1", "b2"],
        ("f1", "Dev", ("b1", "ghost")),
        ("f2", "Docs", ("b1", "b2")),
    )
    assert _membership(session) == {"f1": ["b1"], "f2": ["b2"]}
    _assert_partition(session)


def test_seed_puts_unassigned_bookmarks_in_new_uncategorized_folder() -> None:
    session = _seeded(["b1", "b2", "b3"], ("f1", "Dev", ("b1",)))
    membership = _membership(session)
    assert membership["uncategorized"] == ["b2", "b3"]
    _assert_partition(session)


def test_seed_appends_unassigned_to_existing_uncategorized_folder() -> None:
    session = _seeded(
        ["b1", "b2", "b3"],
        ("f1", "Dev", ("b1",)),
        ("misc", "Uncategorized", ("b2",)),
    )
    assert _membership(session) == {"f1": ["b1"], "misc": ["b2", "b3"]}


def test_seed_renames_duplicate_folder_ids() -> None:
    result = seed_result(
        [make_bookmark("b1"), make_bookmark("b2")],
        _proposal(("f", "A", ("b1",)), ("f", "B", ("b2",))),
    )
    assert [f.id for f in result.folders] == ["f", "f_1"]


def test_seed_after_discard_is_refused() -> None:
    session = _seeded(["b1"], ("f1", "Dev", ("b1",)))
    session.discard()
    with pytest.raises(SessionClosedError):
        session.seed(_proposal(("f1", "Dev", ("b1",))))


# --- Classification ---


def test_classify_seeds_from_classifier_output(sample_bookmarks: list[Bookmark]) -> None:
    classifier = FakeClassifier(_proposal(("f1", "Code", ("b1", "b2"))))
    session = ClassificationSession(sample_bookmarks)

    asyncio.run(session.classify(classifier))

    assert classifier.calls == [["b1", "b2", "b3", "b4", "b5"]]
    assert _membership(session)["f1"] == ["b1", "b2"]
    _assert_partition(session)


def test_classify_forwards_progress() -> None:
    classifier = FakeClassifier(progress=[(0, 2), (2, 2)])
    session = ClassificationSession([make_bookmark("b1"), make_bookmark("b2")])
    updates: list[tuple[int, int]] = []

    asyncio.run(session.classify(classifier, on_progress=lambda c, t: updates.append((c, t))))

    assert updates == [(0, 2), (2, 2)]


def test_ignored_progress_is_not_forwarded() -> None:
    session = ClassificationSession([make_bookmark("b1")])
    updates: list[tuple[int, int]] = []

    class CancellingClassifier(FakeClassifier):
        async def classify(self, bookmarks, on_progress=None):  # type: ignore[no-untyped-def]
            assert on_progress is not None
            on_progress(0, 1)
            session.ignore_progress()
            on_progress(1, 1)
            return self.result

    asyncio.run(
        session.classify(CancellingClassifier(), on_progress=lambda c, t: updates.append((c, t)))
    )
    assert updates == [(0, 1)]


def test_classifier_failure_leaves_session_empty() -> None:
    session = ClassificationSession([make_bookmark("b1")])
    classifier = FakeClassifier(error=RuntimeError("rate limited"))

    with pytest.raises(ClassifierFailure, match="rate limited"):
        asyncio.run(session.classify(classifier))

    assert session.state == SessionState.EMPTY
    assert session.result is None


def test_edits_without_proposal_are_refused() -> None:
    session = ClassificationSession([make_bookmark("b1")])
    with pytest.raises(SessionClosedError):
        session.add_folder()
    with pytest.raises(SessionClosedError):
        session.move_bookmark("b1", "a", "b")


# --- AddFolder ---


def test_add_folder_appends_empty_new_folder_in_edit_mode() -> None:
    session = _seeded(["b1"], ("f1", "Dev", ("b1",)))
    version = session.version

    folder = session.add_folder()

    assert session.result is not None
    assert session.result.folders[-1] == folder
    assert folder.is_new
    assert folder.name == DEFAULT_NEW_FOLDER_NAME
    assert folder.bookmark_ids == ()
    assert session.editing_folder_id == folder.id
    assert session.version == version + 1


def test_add_folder_ids_are_unique() -> None:
    session = _seeded(["b1"], ("f1", "Dev", ("b1",)))
    ids = {session.add_folder().id for _ in range(20)}
    assert len(ids) == 20


def test_add_folder_with_known_name_skips_edit_mode() -> None:
    session = _seeded(["b1"], ("f1", "Dev", ("b1",)))

    folder = session.add_folder("Reading", editing=False)

    assert folder.name == "Reading"
    assert session.editing_folder_id is None


# --- RenameFolder ---


def test_rename_folder_trims_and_leaves_edit_mode() -> None:
    session = _seeded(["b1"], ("f1", "Dev", ("b1",)))
    folder = session.add_folder()

    assert session.rename_folder(folder.id, "  Reading  ")

    assert session.result is not None
    assert session.result.find(folder.id).name == "Reading"  # type: ignore[union-attr]
    assert session.editing_folder_id is None


def test_rename_to_blank_keeps_old_name() -> None:
    session = _seeded(["b1"], ("f1", "Dev", ("b1",)))
    folder = session.add_folder()
    version = session.version

    assert not session.rename_folder(folder.id, "   ")

    assert session.find_folder(folder.id) == folder
    assert session.editing_folder_id is None
    assert session.version == version


def test_rename_unknown_folder_is_noop() -> None:
    session = _seeded(["b1"], ("f1", "Dev", ("b1",)))
    result = session.result
    assert not session.rename_folder("nope", "X")
    assert session.result is result


# --- DeleteFolder ---


def test_delete_folder_moves_bookmarks_to_uncategorized() -> None:
    session = _seeded(
        ["b1", "b2", "b3"],
        ("f1", "Dev", ("b1", "b2")),
        ("uncategorized", "Uncategorized", ("b3",)),
    )

    assert session.delete_folder("f1")

    assert _membership(session) == {"uncategorized": ["b3", "b1", "b2"]}
    _assert_partition(session)


def test_delete_folder_without_uncategorized_uses_first_remaining() -> None:
    session = _seeded(
        ["b1", "b2"],
        ("f1", "Dev", ("b1",)),
        ("f2", "Docs", ("b2",)),
    )
    assert session.delete_folder("f2")
    assert _membership(session) == {"f1": ["b1", "b2"]}


def test_delete_uncategorized_folder_uses_first_remaining() -> None:
    session = _seeded(
        ["b1", "b2"],
        ("f1", "Dev", ("b1",)),
        ("uncategorized", "Uncategorized", ("b2",)),
    )
    assert session.delete_folder("uncategorized")
    assert _membership(session) == {"f1": ["b1", "b2"]}


def test_delete_last_folder_is_refused() -> None:
    session = _seeded(["b1"], ("f1", "Dev", ("b1",)))
    assert not session.delete_folder("f1")
    assert _membership(session) == {"f1": ["b1"]}


def test_delete_system_folder_is_refused() -> None:
    session = _seeded(["b1", "b2"], ("all", "All", ("b1",)), ("f1", "Dev", ("b2",)))
    version = session.version

    assert not session.delete_folder("all")

    assert _membership(session) == {"all": ["b1"], "f1": ["b2"]}
    assert session.version == version


def test_delete_unknown_folder_is_noop() -> None:
    session = _seeded(["b1"], ("f1", "Dev", ("b1",)))
    version = session.version
    assert not session.delete_folder("missing")
    assert session.version == version


def test_delete_folder_in_edit_mode_clears_it() -> None:
    session = _seeded(["b1"], ("f1", "Dev", ("b1",)))
    folder = session.add_folder()
    assert session.delete_folder(folder.id)
    assert session.editing_folder_id is None


# --- MoveBookmark ---


def test_move_bookmark_appends_to_target() -> None:
    session = _seeded(
        ["b1", "b2", "b3"],
        ("f1", "Dev", ("b1", "b2")),
        ("f2", "Docs", ("b3",)),
    )
    assert session.move_bookmark("b1", "f1", "f2")
    assert _membership(session) == {"f1": ["b2"], "f2": ["b3", "b1"]}
    _assert_partition(session)


def test_move_into_empty_new_folder() -> None:
    session = _seeded(["b1"], ("f1", "Dev", ("b1",)))
    folder = session.add_folder()
    assert session.move_bookmark("b1", "f1", folder.id)
    assert _membership(session) == {"f1": [], folder.id: ["b1"]}


@pytest.mark.parametrize(
    ("bookmark_id", "source", "target"),
    [
        ("b1", "f1", "f1"),
        ("b1", "f2", "f1"),
        ("b1", "f1", "missing"),
        ("b1", "missing", "f2"),
        ("ghost", "f1", "f2"),
    ],
)
def test_invalid_moves_are_noops(bookmark_id: str, source: str, target: str) -> None:
    session = _seeded(["b1", "b2"], ("f1", "Dev", ("b1",)), ("f2", "Docs", ("b2",)))
    result = session.result
    assert not session.move_bookmark(bookmark_id, source, target)
    assert session.result is result


def test_move_there_and_back_restores_membership_order() -> None:
    session = _seeded(
        ["b1", "b2", "b3"],
        ("f1", "Dev", ("b1", "b2")),
        ("f2", "Docs", ("b3",)),
    )
    session.move_bookmark("b2", "f1", "f2")
    session.move_bookmark("b2", "f2", "f1")
    assert _membership(session) == {"f1": ["b1", "b2"], "f2": ["b3"]}


def test_partition_holds_across_edit_sequence() -> None:
    ids = [f"b{i}" for i in range(10)]
    session = _seeded(
        ids,
        ("f1", "A", tuple(ids[:4])),
        ("f2", "B", tuple(ids[4:7])),
    )
    new = session.add_folder()
    session.rename_folder(new.id, "C")
    session.move_bookmark("b0", "f1", new.id)
    session.move_bookmark("b8", "uncategorized", "f2")
    session.delete_folder("f1")
    session.move_bookmark("b5", "f2", new.id)
    session.delete_folder(new.id)
    _assert_partition(session)


# --- Snapshot and lifecycle ---


def test_snapshot_lists_folders_with_bookmarks() -> None:
    session = _seeded(["b1"], ("f1", "Dev", ("b1",)))
    snapshot = session.snapshot()
    assert snapshot["state"] == "proposed"
    assert snapshot["folders"][0]["count"] == 1
    assert snapshot["folders"][0]["bookmarks"][0]["id"] == "b1"
    assert snapshot["folders"][0]["is_new"] is False


def test_find_folder_by_id_or_name() -> None:
    session = _seeded(["b1"], ("f1", "Dev Tools", ("b1",)))
    assert session.find_folder("f1").id == "f1"  # type: ignore[union-attr]
    assert session.find_folder("dev tools").id == "f1"  # type: ignore[union-attr]
    assert session.find_folder("nothing") is None


def test_discard_closes_session() -> None:
    session = _seeded(["b1"], ("f1", "Dev", ("b1",)))
    session.discard()
    assert session.state == SessionState.DISCARDED
    assert session.result is None
    with pytest.raises(SessionClosedError):
        session.delete_folder("f1")


# --- Scenarios ---


def test_drag_into_new_reading_folder() -> None:
    session = _seeded(["b1", "b2"], ("work", "work", ("b1", "b2")))
    reading = session.add_folder()
    session.rename_folder(reading.id, "reading")

    assert session.move_bookmark("b1", "work", reading.id)

    assert _membership(session) == {"work": ["b2"], reading.id: ["b1"]}


def test_delete_only_preexisting_folder_falls_back_to_added_folder() -> None:
    session = _seeded(["b1"], ("f1", "Dev", ("b1",)))
    x = session.add_folder("x")

    assert session.delete_folder("f1")

    assert _membership(session) == {x.id: ["b1"]}


def test_delete_keeps_total_membership() -> None:
    session = _seeded(
        ["b1", "b2", "b3", "b4"],
        ("f1", "A", ("b1", "b2")),
        ("f2", "B", ("b3",)),
        ("f3", "C", ("b4",)),
    )
    session.delete_folder("f2")
    session.delete_folder("f1")
    assert session.result is not None
    assert sum(len(f.bookmark_ids) for f in session.result.folders) == 4
    assert len(session.result.folders) == 1
    assert not session.delete_folder("f3")
