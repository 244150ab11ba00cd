"""Classifiers that propose a folder grouping for a set of bookmarks."""

import asyncio
from collections import Counter
from collections.abc import Sequence
from dataclasses import replace

from loguru import logger

from smart_bookmarks.api import ChatApi
from smart_bookmarks.config import (
    CLASSIFY_BATCH_SIZE,
    CLASSIFY_CONCURRENCY,
    load_classifier_settings,
)
from smart_bookmarks.core.classify.prompt import build_prompt, parse_classification_text
from smart_bookmarks.models.classification import (
    UNCATEGORIZED_FOLDER_ID,
    UNCATEGORIZED_FOLDER_NAME,
    ClassificationResult,
    ClassifiedFolder,
)
from smart_bookmarks.models.folder import Bookmark
from smart_bookmarks.protocols import ChatApiProtocol, ClassifierProtocol, ProgressCallback


class LlmClassifier:
    """Classify bookmarks with an LLM, in concurrent batches.

    Folders from different batches are merged by case-insensitive name and
    renumbered ``folder_0``, ``folder_1``, ... in order of first appearance.
    """

    def __init__(
        self,
        api: ChatApiProtocol,
        *,
        batch_size: int = CLASSIFY_BATCH_SIZE,
        concurrency: int = CLASSIFY_CONCURRENCY,
    ) -> None:
        if batch_size < 1 or concurrency < 1:
            msg = f"batch_size and concurrency must be positive, got {batch_size}, {concurrency}"
            raise ValueError(msg)
        self.api = api
        self.batch_size = batch_size
        self.concurrency = concurrency

    def _classify_batch(self, batch: Sequence[Bookmark]) -> ClassificationResult:
        return parse_classification_text(self.api.complete(build_prompt(batch)))

    async def classify(
        self,
        bookmarks: Sequence[Bookmark],
        on_progress: ProgressCallback | None = None,
    ) -> ClassificationResult:
        total = len(bookmarks)
        if on_progress:
            on_progress(0, total)

        batches = [
            bookmarks[i : i + self.batch_size] for i in range(0, total, self.batch_size)
        ]
        merged: dict[str, ClassifiedFolder] = {}
        processed = 0

        for i in range(0, len(batches), self.concurrency):
            chunk = batches[i : i + self.concurrency]
            results = await asyncio.gather(
                *(asyncio.to_thread(self._classify_batch, batch) for batch in chunk)
            )
            for batch, result in zip(chunk, results, strict=True):
                _merge_into(merged, result)
                processed += len(batch)
                logger.debug("Classified {}/{} bookmarks", processed, total)
                if on_progress:
                    on_progress(processed, total)

        return ClassificationResult(folders=tuple(merged.values()))


def _merge_into(merged: dict[str, ClassifiedFolder], result: ClassificationResult) -> None:
    for folder in result.folders:
        key = folder.name.strip().lower()
        existing = merged.get(key)
        if existing is None:
            merged[key] = ClassifiedFolder(
                id=f"folder_{len(merged)}",
                name=folder.name,
                icon=folder.icon,
                bookmark_ids=folder.bookmark_ids,
            )
        else:
            merged[key] = replace(
                existing, bookmark_ids=existing.bookmark_ids + folder.bookmark_ids
            )


class DomainClassifier:
    """Offline classifier: one folder per domain with at least ``min_size`` bookmarks."""

    def __init__(self, min_size: int = 2) -> None:
        self.min_size = min_size

    async def classify(
        self,
        bookmarks: Sequence[Bookmark],
        on_progress: ProgressCallback | None = None,
    ) -> ClassificationResult:
        total = len(bookmarks)
        if on_progress:
            on_progress(0, total)

        sizes = Counter(b.domain for b in bookmarks if b.domain)
        grouped: dict[str, list[str]] = {}
        leftovers: list[str] = []
        for b in bookmarks:
            if b.domain and sizes[b.domain] >= self.min_size:
                grouped.setdefault(b.domain, []).append(b.id)
            else:
                leftovers.append(b.id)

        folders = [
            ClassifiedFolder(
                id=f"folder_{i}", name=domain, icon="globe", bookmark_ids=tuple(ids)
            )
            for i, (domain, ids) in enumerate(sorted(grouped.items(), key=lambda kv: -len(kv[1])))
        ]
        if leftovers:
            folders.append(
                ClassifiedFolder(
                    id=UNCATEGORIZED_FOLDER_ID,
                    name=UNCATEGORIZED_FOLDER_NAME,
                    icon="folder",
                    bookmark_ids=tuple(leftovers),
                )
            )

        if on_progress:
            on_progress(total, total)
        return ClassificationResult(folders=tuple(folders))


def make_classifier(*, offline: bool = False, cache: bool = False) -> ClassifierProtocol:
    """Pick the classifier for the current configuration.

    Falls back to DomainClassifier when offline or when no API key is set.

    Raises:
        ValueError: The provider configuration is invalid.
        RuntimeError: The provider needs settings that are missing.
    """
    if offline:
        return DomainClassifier()
    settings = load_classifier_settings()
    if not settings.api_key:
        logger.warning("No API key configured, grouping by domain instead")
        return DomainClassifier()
    return LlmClassifier(
        ChatApi(settings, from_cache=cache),
        batch_size=settings.batch_size,
        concurrency=settings.concurrency,
    )
