"""Prompt construction and reply parsing for LLM classification."""

import json
import re
from collections.abc import Iterable

from smart_bookmarks.models.classification import ClassificationResult, ClassifiedFolder
from smart_bookmarks.models.folder import Bookmark

FOLDER_ICONS = (
    "folder, briefcase, code, book-open, globe, shopping-cart, heart, star, music, video, "
    "image, file-text, tool, coffee, home, map, users, lightbulb, rocket, wrench, palette, "
    "database, server, cloud, lock, shield, zap, trending-up, bar-chart, gift, calendar, "
    "clock, mail, phone, camera, headphones, monitor, smartphone, tablet, watch, printer, "
    "wifi, bluetooth, battery, sun, moon, umbrella, thermometer"
)

_PROMPT_TEMPLATE = """\
You are a bookmark organization expert. Analyze the following bookmarks and create \
meaningful folder categories to organize them.

## Requirements:

1. Create 5-15 folders based on the content (fewer if there are few bookmarks)
2. Each folder should have a clear, descriptive name (2-4 words)
3. Folder names should be in the same language as the majority of bookmark titles
4. Assign each bookmark to exactly one folder
5. Create an "Uncategorized" folder for bookmarks that don't fit elsewhere
6. Choose appropriate icons from: {icons}

## Bookmarks to classify:

{bookmarks}

## Output format:

Return ONLY a valid JSON object with this structure (no markdown, no explanation):
{{
  "folders": [
    {{
      "id": "unique_folder_id",
      "name": "Folder Name",
      "icon": "icon-name",
      "bookmarkIds": ["bookmark_id_1", "bookmark_id_2"]
    }}
  ]
}}"""


def build_prompt(bookmarks: Iterable[Bookmark]) -> str:
    lines = "\n".join(
        f"[{b.id}] {b.title} | {b.domain} | {b.summary} | tags: {', '.join(b.tags)}"
        for b in bookmarks
    )
    return _PROMPT_TEMPLATE.format(icons=FOLDER_ICONS, bookmarks=lines)


def parse_classification_text(text: str) -> ClassificationResult:
    """Pull the JSON proposal out of a model reply.

    Raises:
        ValueError: No JSON object, or it has no ``folders`` list.
    """
    match = re.search(r"\{.*\}", text, flags=re.DOTALL)
    if not match:
        msg = "Classifier reply contains no JSON object"
        raise ValueError(msg)
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        msg = f"Classifier reply is not valid JSON: {e}"
        raise ValueError(msg) from e

    folders = data.get("folders") if isinstance(data, dict) else None
    if not isinstance(folders, list):
        msg = "Classifier reply has no 'folders' list"
        raise ValueError(msg)

    return ClassificationResult(
        folders=tuple(
            ClassifiedFolder(
                id=str(f.get("id") or f"folder_{i}"),
                name=str(f.get("name") or "Unnamed"),
                icon=str(f.get("icon") or "folder"),
                bookmark_ids=tuple(str(b) for b in f.get("bookmarkIds") or []),
            )
            for i, f in enumerate(folders)
            if isinstance(f, dict)
        )
    )
