"""Error types surfaced by classification sessions."""

from typing import Any


class ClassifierFailure(RuntimeError):
    """The external classifier raised; the session is left without a proposal."""


class SessionClosedError(RuntimeError):
    """An operation needs a live proposal, but the session has none."""


class CommitFailure(RuntimeError):
    """A persistence call failed part-way through a commit.

    Writes made before the failing step are kept. ``step`` and ``item_id``
    name the call that failed, ``report`` holds what was already written.
    """

    def __init__(self, message: str, *, step: str, item_id: str | None, report: Any) -> None:
        super().__init__(message)
        self.step = step
        self.item_id = item_id
        self.report = report
