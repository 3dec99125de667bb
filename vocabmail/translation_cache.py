"""Persistent cache of sentence translations, keyed by normalized source text."""

import json
from pathlib import Path
from typing import Optional

import config
from vocabmail.logger import get_logger
from vocabmail.models import normalize_text
from vocabmail.state_store import atomic_write_json


def is_acceptable_translation(text: Optional[str]) -> bool:
    """
    Reject translations that are blank, too long, look like markup or URLs,
    or have fewer than MIN_TRANSLATION_LETTERS letters.
    """
    if text is None or not text.strip():
        return False
    if len(text) > config.MAX_TRANSLATION_LENGTH:
        return False
    if "<" in text or ">" in text or "http" in text.lower():
        return False
    return sum(1 for ch in text if ch.isalpha()) >= config.MIN_TRANSLATION_LETTERS


class TranslationCache:
    """Normalized source sentence -> translated sentence, shared across runs."""

    def __init__(self, cache_path: Path):
        self.cache_path = cache_path
        self._entries: Optional[dict[str, str]] = None

    def load(self) -> dict[str, str]:
        """Load the cache file; a missing or corrupt file yields an empty cache."""
        if self._entries is not None:
            return self._entries

        self._entries = {}
        if not self.cache_path.exists():
            return self._entries

        try:
            with open(self.cache_path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            get_logger().warning(f"  Translation cache {self.cache_path} is unreadable ({e}). Starting empty.")
            return self._entries

        if isinstance(raw, dict):
            for key, value in raw.items():
                norm = normalize_text(key)
                text = value.strip() if isinstance(value, str) else ""
                if norm and text:
                    self._entries[norm] = text

        return self._entries

    def get(self, sentence: str) -> Optional[str]:
        """Return a cached translation if present and acceptable."""
        value = self.load().get(normalize_text(sentence))
        return value if is_acceptable_translation(value) else None

    def put(self, sentence: str, translation: str) -> bool:
        """Store an acceptable translation. Returns False if it was rejected."""
        key = normalize_text(sentence)
        translation = (translation or "").strip()
        if not key or not is_acceptable_translation(translation):
            return False
        self.load()[key] = translation
        return True

    def save(self) -> None:
        """Persist the cache atomically. Failures are logged, never raised."""
        if self._entries is None:
            return
        try:
            atomic_write_json(self.cache_path, self._entries)
        except OSError as e:
            get_logger().warning(f"  Could not save translation cache {self.cache_path}: {e}")

    def __len__(self) -> int:
        return len(self.load())
