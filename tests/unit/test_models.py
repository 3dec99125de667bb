"""Tests for the persisted models and their invariants."""

from vocabmail.models import Category, DailyAnalysis, DispatchRun, GeneratedItem, SentState, normalize_text


class TestNormalizeText:
    def test_trims_and_lowercases(self):
        assert normalize_text("  Give Up ") == "give up"

    def test_none_is_empty(self):
        assert normalize_text(None) == ""


class TestCategory:
    def test_parse_is_case_insensitive(self):
        assert Category.parse("phrasalverb") == Category.PHRASAL_VERB
        assert Category.parse(" Noun ") == Category.NOUN

    def test_unknown_becomes_other(self):
        assert Category.parse("Interjection") == Category.OTHER
        assert Category.parse(None) == Category.OTHER

    def test_is_verb(self):
        assert Category.VERB.is_verb
        assert Category.PHRASAL_VERB.is_verb
        assert not Category.EXPRESSION.is_verb


class TestSentState:
    def test_sent_is_normalized_and_deduplicated_on_load(self):
        state = SentState.model_validate({"sent": ["Apple", " apple ", "Banana", ""]})
        assert state.sent == ["apple", "banana"]

    def test_blocked_keys_are_normalized(self):
        state = SentState.model_validate(
            {"blocked": {" Foo ": {"originalText": "Foo", "failureCount": 2}}}
        )
        assert list(state.blocked) == ["foo"]
        assert state.blocked["foo"].failure_count == 2

    def test_add_sent_grows_without_duplicates(self):
        state = SentState(sent=["apple"])
        state.add_sent(["APPLE", "Banana", "banana "])
        assert state.sent == ["apple", "banana"]

    def test_mark_blocked_counts_repeats(self):
        state = SentState()
        state.mark_blocked(" Foo ", "first", "t1")
        entry = state.mark_blocked("foo", "second", "t2")
        assert entry.failure_count == 2
        assert entry.original_text == "Foo"
        assert entry.first_seen == "t1"
        assert entry.last_seen == "t2"
        assert entry.last_failure_reason == "second"
        assert "foo" in state.excluded_keys()

    def test_dump_uses_camel_case_keys(self):
        state = SentState(current=DispatchRun(date="2026-01-01", iteration=1, pick=["a"]))
        data = state.model_dump(mode="json", by_alias=True)
        assert "lastCompletedDate" in data
        assert "completedIterationCount" in data
        assert "renderedSubject" in data["current"]
        assert "payloadReadyAt" in data["current"]

    def test_reload_from_dump(self):
        item = GeneratedItem(source_text="run", category=Category.VERB, examples_source=["x"] * 5)
        run = DispatchRun(date="2026-01-01", iteration=3, pick=["run"], analysis=DailyAnalysis(items=[item]))
        state = SentState(sent=["a"], current=run)
        reloaded = SentState.model_validate(state.model_dump(mode="json", by_alias=True))
        assert reloaded == state


class TestGeneratedItem:
    def test_needs_translation_when_slots_missing_or_blank(self):
        item = GeneratedItem(source_text="a", examples_source=["one", "two"])
        assert item.needs_translation
        item.examples_translated = ["um", " "]
        assert item.needs_translation
        item.examples_translated = ["um", "dois"]
        assert not item.needs_translation

    def test_expression_never_needs_translation(self):
        item = GeneratedItem(source_text="by the way", category=Category.EXPRESSION)
        assert not item.needs_translation
