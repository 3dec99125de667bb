"""Pydantic data models for the daily vocabulary mailer.

The persisted state file uses camelCase keys, so every model serializes
by alias.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def normalize_text(text: Optional[str]) -> str:
    """Normalize a vocabulary line or sentence for comparisons and keys."""
    return (text or "").strip().lower()


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Category(str, Enum):
    """Word class assigned by the generator."""

    VERB = "Verb"
    PHRASAL_VERB = "PhrasalVerb"
    NOUN = "Noun"
    ADJECTIVE = "Adjective"
    ADVERB = "Adverb"
    PRONOUN = "Pronoun"
    PREPOSITION = "Preposition"
    CONJUNCTION = "Conjunction"
    DETERMINER = "Determiner"
    EXPRESSION = "Expression"
    OTHER = "Other"

    @classmethod
    def parse(cls, value: object) -> "Category":
        """Case-insensitive lookup; unknown, missing or non-string values become Other."""
        wanted = value.strip().lower() if isinstance(value, str) else ""
        for category in cls:
            if category.value.lower() == wanted:
                return category
        return cls.OTHER

    @property
    def is_verb(self) -> bool:
        return self in (Category.VERB, Category.PHRASAL_VERB)


class VerbForms(CamelModel):
    present: str = ""
    past_simple: str = ""
    past_participle: str = ""

    @property
    def is_complete(self) -> bool:
        return all(v.strip() for v in (self.present, self.past_simple, self.past_participle))


class ItemTranslations(CamelModel):
    """Word-level translations (general meaning and per verb tense)."""

    general: list[str] = Field(default_factory=list)
    present: list[str] = Field(default_factory=list)
    past_simple: list[str] = Field(default_factory=list)
    past_participle: list[str] = Field(default_factory=list)


class GeneratedItem(CamelModel):
    """One picked line enriched by the generator."""

    source_text: str
    category: Category = Category.OTHER
    verb_forms: Optional[VerbForms] = None
    translations: ItemTranslations = Field(default_factory=ItemTranslations)
    examples_source: list[str] = Field(default_factory=list)
    examples_translated: list[str] = Field(default_factory=list)

    @property
    def needs_translation(self) -> bool:
        """True when some source example has no translated counterpart yet."""
        if not self.examples_source:
            return False
        if len(self.examples_translated) != len(self.examples_source):
            return True
        return any(not t.strip() for t in self.examples_translated)


class DailyAnalysis(CamelModel):
    items: list[GeneratedItem] = Field(default_factory=list)

    @property
    def needs_translation(self) -> bool:
        return any(item.needs_translation for item in self.items)


class BlockedEntry(CamelModel):
    """A line the generator could not process."""

    original_text: str
    last_failure_reason: str = ""
    first_seen: Optional[str] = None
    last_seen: Optional[str] = None
    failure_count: int = 0


class DispatchRun(CamelModel):
    """One day's attempt, from pick to delivery."""

    date: str
    iteration: int
    pick: list[str] = Field(default_factory=list)
    analysis: Optional[DailyAnalysis] = None
    rendered_subject: Optional[str] = None
    rendered_body: Optional[str] = None
    delivered: bool = False
    created_at: Optional[str] = None
    payload_ready_at: Optional[str] = None
    delivered_at: Optional[str] = None
    audio_path: Optional[str] = None
    audio_ready_at: Optional[str] = None


class SentState(CamelModel):
    """Root persisted aggregate: delivered lines, blocklist and the in-flight run."""

    sent: list[str] = Field(default_factory=list)
    blocked: dict[str, BlockedEntry] = Field(default_factory=dict)
    last_completed_date: Optional[str] = None
    last_run_timestamp: Optional[str] = None
    completed_iteration_count: int = 0
    current: Optional[DispatchRun] = None

    @field_validator("sent")
    @classmethod
    def _normalize_sent(cls, value: list[str]) -> list[str]:
        seen = set()
        result = []
        for line in value:
            key = normalize_text(line)
            if key and key not in seen:
                seen.add(key)
                result.append(key)
        return result

    @field_validator("blocked")
    @classmethod
    def _normalize_blocked(cls, value: dict[str, BlockedEntry]) -> dict[str, BlockedEntry]:
        result = {}
        for key, entry in value.items():
            norm = normalize_text(key)
            if norm and norm not in result:
                result[norm] = entry
        return result

    def excluded_keys(self) -> set[str]:
        """Normalized keys that must never be picked again."""
        return set(self.sent) | set(self.blocked)

    def add_sent(self, lines: list[str]) -> None:
        """Fold delivered lines into the sent set (grows, never shrinks)."""
        existing = set(self.sent)
        for line in lines:
            key = normalize_text(line)
            if key and key not in existing:
                existing.add(key)
                self.sent.append(key)

    def mark_blocked(self, line: str, reason: str, timestamp: str) -> BlockedEntry:
        """Record a generation failure for a line, bumping the count if already blocked."""
        key = normalize_text(line)
        entry = self.blocked.get(key)
        if entry is None:
            entry = BlockedEntry(
                original_text=line.strip(),
                last_failure_reason=reason.strip(),
                first_seen=timestamp,
                last_seen=timestamp,
                failure_count=1,
            )
            self.blocked[key] = entry
        else:
            entry.last_failure_reason = reason.strip()
            entry.last_seen = timestamp
            entry.failure_count += 1
        return entry


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string, as stored in the state file."""
    return datetime.now(timezone.utc).isoformat()
