"""Step 1: Vocabulary selection - load candidate lines and draw the daily pick."""

import secrets
from pathlib import Path

from vocabmail.models import SentState, normalize_text


def load_vocabulary_lines(path: Path) -> list[str]:
    """
    Load vocabulary lines from a flat text file.

    Lines are trimmed; blank lines and '#' comments are skipped; duplicates are
    dropped case-insensitively, keeping the first occurrence.

    Args:
        path: Path to the vocabulary file (one entry per line)

    Returns:
        Ordered list of unique lines
    """
    lines = []
    seen = set()
    with open(path, "r", encoding="utf-8-sig") as f:
        for raw in f:
            line = raw.strip()
            if not line or line.startswith("#"):
                continue
            key = normalize_text(line)
            if key not in seen:
                seen.add(key)
                lines.append(line)
    return lines


def remaining_candidates(
    all_lines: list[str],
    state: SentState,
    exclude: list[str] | None = None,
) -> list[str]:
    """Lines that are neither sent, blocked, nor in the exclude list."""
    excluded = state.excluded_keys()
    if exclude:
        excluded |= {normalize_text(x) for x in exclude}
    return [line for line in all_lines if normalize_text(line) not in excluded]


def pick_random_lines(all_lines: list[str], state: SentState, count: int) -> list[str]:
    """
    Draw up to `count` distinct lines uniformly at random, without replacement.

    Uses the OS entropy source so a restarted process cannot reproduce a pick.

    Args:
        all_lines: Candidate vocabulary lines
        state: Persisted state providing the sent and blocked sets
        count: Daily quota

    Returns:
        The pick (shorter than count when candidates run out, possibly empty)
    """
    remaining = remaining_candidates(all_lines, state)
    pick = []
    while len(pick) < count and remaining:
        pick.append(remaining.pop(secrets.randbelow(len(remaining))))
    return pick


def pick_one_replacement(
    all_lines: list[str],
    state: SentState,
    current_pick: list[str],
) -> str | None:
    """Draw one line not sent, not blocked and not already in the pick."""
    remaining = remaining_candidates(all_lines, state, exclude=current_pick)
    if not remaining:
        return None
    return remaining[secrets.randbelow(len(remaining))]
