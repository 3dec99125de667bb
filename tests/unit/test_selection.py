"""Tests for vocabulary loading and random picking."""

from vocabmail.models import SentState
from vocabmail.step1_selection import (
    load_vocabulary_lines,
    pick_one_replacement,
    pick_random_lines,
    remaining_candidates,
)


class TestLoadVocabularyLines:
    def test_trims_and_skips_blanks_and_comments(self, write_vocabulary):
        path = write_vocabulary(["  apple  ", "", "   ", "# a comment", "banana"])
        assert load_vocabulary_lines(path) == ["apple", "banana"]

    def test_dedupes_case_insensitively_keeping_first(self, write_vocabulary):
        path = write_vocabulary(["Give up", "give up", "GIVE UP ", "look after"])
        assert load_vocabulary_lines(path) == ["Give up", "look after"]

    def test_handles_utf8_bom(self, tmp_path):
        path = tmp_path / "vocab.txt"
        path.write_bytes("\ufeffcafé\nnaïve\n".encode("utf-8"))
        assert load_vocabulary_lines(path) == ["café", "naïve"]


class TestPickRandomLines:
    def test_picks_quota_of_distinct_lines(self):
        lines = [f"word{i}" for i in range(12)]
        pick = pick_random_lines(lines, SentState(), 10)
        assert len(pick) == 10
        assert len(set(pick)) == 10
        assert set(pick) <= set(lines)

    def test_excludes_sent_and_blocked_case_insensitively(self):
        state = SentState(sent=["apple"])
        state.mark_blocked("Cherry", "bad", "2026-01-01T00:00:00+00:00")
        pick = pick_random_lines(["APPLE", "banana", "cherry", "date"], state, 10)
        assert sorted(pick) == ["banana", "date"]

    def test_short_pick_when_candidates_run_out(self):
        state = SentState(sent=[f"word{i}" for i in range(10)])
        lines = [f"word{i}" for i in range(12)]
        assert sorted(pick_random_lines(lines, state, 10)) == ["word10", "word11"]

    def test_empty_when_everything_sent(self):
        state = SentState(sent=["a", "b"])
        assert pick_random_lines(["a", "b"], state, 10) == []


class TestPickOneReplacement:
    def test_excludes_current_pick(self):
        state = SentState(sent=["a"])
        replacement = pick_one_replacement(["a", "b", "c"], state, ["B"])
        assert replacement == "c"

    def test_none_when_no_candidates(self):
        state = SentState(sent=["a"])
        assert pick_one_replacement(["a", "b"], state, ["b"]) is None

    def test_remaining_candidates_keeps_order(self):
        state = SentState(sent=["b"])
        assert remaining_candidates(["a", "b", "c", "d"], state, exclude=["d"]) == ["a", "c"]
