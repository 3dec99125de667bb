"""
Pytest configuration and fixtures for all tests.

Provides fakes for the network collaborators (generator, translator,
mail sender) so the pipeline can be exercised without any I/O besides
temporary files.
"""

import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import pytest

from vocabmail.groq_client import ItemGenerationError
from vocabmail.mail_client import MailDeliveryError
from vocabmail.models import Category, DailyAnalysis, GeneratedItem, ItemTranslations, normalize_text
from vocabmail.state_store import StateStore


def make_item(line: str, examples: int = 5) -> GeneratedItem:
    """A valid noun item for a line."""
    return GeneratedItem(
        source_text=line,
        category=Category.NOUN,
        translations=ItemTranslations(general=[f"tradução de {line}"]),
        examples_source=[f"Example number {i} uses {line} here." for i in range(1, examples + 1)],
    )


def make_analysis(pick: list[str]) -> DailyAnalysis:
    return DailyAnalysis(items=[make_item(line) for line in pick])


class FakeGenerator:
    """Generator that fails for configured lines, otherwise returns a valid analysis."""

    def __init__(self, reject: set[str] | None = None, reject_all: bool = False):
        self.reject = {normalize_text(x) for x in (reject or set())}
        self.reject_all = reject_all
        self.calls: list[list[str]] = []

    def __call__(self, pick: list[str]) -> DailyAnalysis:
        self.calls.append(list(pick))
        for line in pick:
            if self.reject_all or normalize_text(line) in self.reject:
                raise ItemGenerationError(line, f"Item '{line}' must return exactly 5 examples, got 3.")
        return make_analysis(pick)


class FakeTranslator:
    """Batch translator recording every backend call."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls: list[list[str]] = []

    def __call__(self, texts: list[str]) -> list:
        self.calls.append(list(texts))
        if self.fail:
            return [None] * len(texts)
        return [f"Frase traduzida: {text}" for text in texts]


class FakeSender:
    """Mail sender recording messages; can fail a number of times first."""

    def __init__(self, failures: int = 0):
        self.failures = failures
        self.sent: list[tuple[str, str, str | None]] = []

    def __call__(self, subject: str, html_body: str, audio_path: str | None) -> None:
        if self.failures > 0:
            self.failures -= 1
            raise MailDeliveryError("SMTP unavailable")
        self.sent.append((subject, html_body, audio_path))


@pytest.fixture
def write_vocabulary(tmp_path):
    """Factory writing vocabulary lines to a temporary file."""

    def _write(lines: list[str], name: str = "vocabulary.txt") -> Path:
        path = tmp_path / name
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return path

    return _write


@pytest.fixture
def state_path(tmp_path) -> Path:
    return tmp_path / "state" / "sent_state.json"


@pytest.fixture
def store(state_path) -> StateStore:
    return StateStore(state_path)


@pytest.fixture
def generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture
def translator() -> FakeTranslator:
    return FakeTranslator()


@pytest.fixture
def sender() -> FakeSender:
    return FakeSender()
