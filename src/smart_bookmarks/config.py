"""Configuration constants for smart-bookmarks."""

import os
from dataclasses import dataclass
from pathlib import Path

# Directory holding the bookmark database. Overridden by SMART_BOOKMARKS_DATA_DIR.
DEFAULT_DATA_DIR: Path = Path("~/.local/share/smart-bookmarks").expanduser()
DATABASE_FILENAME: str = "bookmarks.db"

# API key location, used when SMART_BOOKMARKS_API_KEY is unset. First file found is used.
API_KEY_FILES: list[Path] = [
    Path("~/.config/smart-bookmarks-api-key.txt").expanduser(),
    Path("~/.config/secret/smart-bookmarks-api-key.txt").expanduser(),
]

# Response cache, used only when the classifier is started with caching on.
API_CACHE_PREFIX: str = "/tmp/smart-bookmarks-cache/cache-"

DEFAULT_PROVIDER: str = "anthropic"
DEFAULT_MODELS: dict[str, str] = {
    "anthropic": "claude-3-5-haiku-latest",
    "openai": "gpt-4o-mini",
    "gemini": "gemini-2.0-flash",
    "grok": "grok-2-latest",
}
DEFAULT_BASE_URLS: dict[str, str] = {
    "anthropic": "https://api.anthropic.com/v1",
    "openai": "https://api.openai.com/v1",
    "gemini": "https://generativelanguage.googleapis.com/v1beta/openai",
    "grok": "https://api.x.ai/v1",
}
PROVIDERS: tuple[str, ...] = ("anthropic", "openai", "gemini", "grok", "custom")

CLASSIFY_BATCH_SIZE: int = 30
CLASSIFY_CONCURRENCY: int = 3
REQUEST_TIMEOUT: float = 120.0


@dataclass(frozen=True)
class ClassifierSettings:
    """Which LLM provider to call and how."""

    provider: str
    model: str
    base_url: str | None
    api_key: str | None
    batch_size: int = CLASSIFY_BATCH_SIZE
    concurrency: int = CLASSIFY_CONCURRENCY


def resolve_data_directory() -> Path:
    """Return the data directory, honouring SMART_BOOKMARKS_DATA_DIR."""
    env_dir = os.environ.get("SMART_BOOKMARKS_DATA_DIR")
    return Path(env_dir).expanduser() if env_dir else DEFAULT_DATA_DIR


def _read_api_key() -> str | None:
    env_key = os.environ.get("SMART_BOOKMARKS_API_KEY")
    if env_key:
        return env_key.strip()
    for key_path in API_KEY_FILES:
        try:
            return key_path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            pass
    return None


def load_classifier_settings() -> ClassifierSettings:
    """Build classifier settings from the environment.

    Raises:
        ValueError: If SMART_BOOKMARKS_PROVIDER names an unknown provider.
    """
    provider = os.environ.get("SMART_BOOKMARKS_PROVIDER", DEFAULT_PROVIDER).strip().lower()
    if provider not in PROVIDERS:
        msg = f"Unknown provider {provider!r}, expected one of {PROVIDERS!r}"
        raise ValueError(msg)
    model = os.environ.get("SMART_BOOKMARKS_MODEL") or DEFAULT_MODELS.get(provider, "")
    base_url = os.environ.get("SMART_BOOKMARKS_BASE_URL") or None
    return ClassifierSettings(
        provider=provider,
        model=model,
        base_url=base_url,
        api_key=_read_api_key(),
    )
