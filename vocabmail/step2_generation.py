"""Step 2: Resilient generation - swap out lines the generator cannot handle."""

from pathlib import Path
from typing import Callable, Optional

import config
from vocabmail.groq_client import ItemGenerationError
from vocabmail.logger import get_logger
from vocabmail.models import DailyAnalysis, DispatchRun, SentState, normalize_text, utc_now_iso
from vocabmail.state_store import StateStore
from vocabmail.step1_selection import pick_one_replacement

Generator = Callable[[list[str]], DailyAnalysis]


class GenerationAbortedError(Exception):
    """Raised when repairs cannot produce a payload (pick emptied or too many replacements)."""

    pass


def append_blocked_log(log_path: Optional[Path], line: str, reason: str) -> None:
    """Append a diagnostic line for a blocked entry. Never raises."""
    if log_path is None:
        return
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        flat_reason = reason.replace("\r", " ").replace("\n", " ")
        with open(log_path, "a", encoding="utf-8") as f:
            f.write(f"{utc_now_iso()}\t{line}\t{flat_reason}\n")
    except OSError as e:
        get_logger().warning(f"  Could not append to blocked log {log_path}: {e}")


def generate_payload_resilient(
    run: DispatchRun,
    state: SentState,
    store: StateStore,
    vocabulary_lines: list[str],
    generate: Generator,
    blocked_log_path: Optional[Path] = None,
    max_replacements: int = config.MAX_REPLACEMENTS,
) -> DailyAnalysis:
    """
    Generate the analysis for a run, replacing lines that fail generation.

    Each ItemGenerationError blocks the offending line, removes it from the
    pick, draws a replacement when one is available and persists the state
    before retrying with the new pick. Any other error propagates unchanged.

    Args:
        run: The in-flight run (its pick is mutated)
        state: Persisted state owning the run and the blocklist
        store: Store used to persist after every repair
        vocabulary_lines: All candidate lines, for replacements
        generate: Callable producing a validated analysis for a pick
        blocked_log_path: Optional append-only diagnostic log
        max_replacements: Repairs allowed before giving up

    Returns:
        Analysis covering every line of the final pick

    Raises:
        GenerationAbortedError: If the pick empties or the replacement ceiling is reached
    """
    logger = get_logger()
    replacements = 0

    while True:
        if not run.pick:
            raise GenerationAbortedError("No valid lines left to build the email (all failed).")

        try:
            return generate(list(run.pick))
        except ItemGenerationError as e:
            problem, reason = e.item, e.reason

        state.mark_blocked(problem, reason, utc_now_iso())
        append_blocked_log(blocked_log_path, problem, reason)

        key = normalize_text(problem)
        run.pick = [line for line in run.pick if normalize_text(line) != key]

        replacement = pick_one_replacement(vocabulary_lines, state, run.pick)
        if replacement:
            run.pick.append(replacement)

        store.save(state)

        replacements += 1
        logger.warning(
            f"  Skipping '{problem}' ({reason}). "
            f"Replacement: {replacement or 'none available'}. "
            f"Replacements so far: {replacements}/{max_replacements}"
        )

        if not run.pick:
            raise GenerationAbortedError("No valid lines left to build the email (all failed).")
        if replacements >= max_replacements:
            raise GenerationAbortedError(f"Too many replacements for malformed payloads. Last error: {reason}")
