"""Classify saved bookmarks into folders and commit the result."""

from smart_bookmarks.core.session.drag import DragController
from smart_bookmarks.core.session.session import ClassificationSession
from smart_bookmarks.models.classification import ClassificationResult, ClassifiedFolder
from smart_bookmarks.protocols import (
    BookmarkStoreProtocol,
    ClassifierProtocol,
    FolderStoreProtocol,
)

__all__ = [
    "BookmarkStoreProtocol",
    "ClassificationResult",
    "ClassificationSession",
    "ClassifiedFolder",
    "ClassifierProtocol",
    "DragController",
    "FolderStoreProtocol",
]
