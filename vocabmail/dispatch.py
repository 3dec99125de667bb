"""Daily dispatch: the persisted run-state machine driving pick, payload and delivery.

Each invocation moves today's run forward from its last durable milestone:

    NoRunToday -> RunCreated -> PayloadBuilt -> Delivered -> Finalized

State is written in full after every milestone, so a process killed at any
point resumes from the last write without re-picking, regenerating or
re-sending.
"""

from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

import config
from vocabmail.groq_client import GroqGenerationError
from vocabmail.logger import get_logger
from vocabmail.mail_client import MailDeliveryError
from vocabmail.models import DispatchRun, SentState, utc_now_iso
from vocabmail.state_store import StateStore
from vocabmail.step1_selection import load_vocabulary_lines, pick_random_lines
from vocabmail.step2_generation import GenerationAbortedError, Generator, generate_payload_resilient
from vocabmail.step3_translation import BatchTranslator, fill_translated_examples
from vocabmail.step4_delivery import build_html, build_subject, ensure_audio_for_run, remove_audio_file
from vocabmail.translation_cache import TranslationCache
from vocabmail.tts_client import SpeechSynthesizer

# send(subject, html_body, audio_path)
Sender = Callable[[str, str, Optional[str]], None]


class DispatchOutcome(str, Enum):
    """Stable state reached by one invocation."""

    FINALIZED = "finalized"
    ALREADY_FINALIZED = "already_finalized"
    EXHAUSTED = "exhausted"
    PENDING = "pending"


class Dispatcher:
    """Runs one invocation of the daily pipeline against a state store."""

    def __init__(
        self,
        store: StateStore,
        vocabulary_path: Path,
        generate: Generator,
        send: Sender,
        translate: Optional[BatchTranslator] = None,
        cache: Optional[TranslationCache] = None,
        synthesizer: Optional[SpeechSynthesizer] = None,
        audio_dir: Optional[Path] = None,
        blocked_log_path: Optional[Path] = None,
        items_per_day: int = config.ITEMS_PER_DAY,
        max_replacements: int = config.MAX_REPLACEMENTS,
        today: Optional[str] = None,
    ):
        """
        Args:
            store: Persisted SentState store
            vocabulary_path: Flat vocabulary list
            generate: Produces a validated analysis for a pick
            send: Transmits the rendered email
            translate: Batch sentence translator; None skips translation
            cache: Translation cache, required when translate is given
            synthesizer: Optional speech synthesizer for the study audio
            audio_dir: Where audio files are written
            blocked_log_path: Append-only diagnostic log of blocked lines
            items_per_day: Daily quota
            max_replacements: Repair ceiling for the generation loop
            today: Override for today's date (YYYY-MM-DD)
        """
        self.store = store
        self.vocabulary_path = vocabulary_path
        self.generate = generate
        self.send = send
        self.translate = translate
        self.cache = cache
        self.synthesizer = synthesizer
        self.audio_dir = audio_dir
        self.blocked_log_path = blocked_log_path
        self.items_per_day = items_per_day
        self.max_replacements = max_replacements
        self.today = today
        self._vocabulary: Optional[list[str]] = None

    @property
    def vocabulary(self) -> list[str]:
        if self._vocabulary is None:
            self._vocabulary = load_vocabulary_lines(self.vocabulary_path)
        return self._vocabulary

    def run(self) -> DispatchOutcome:
        """
        Execute one invocation.

        Returns:
            The stable state reached

        Raises:
            StateStoreError: If state cannot be persisted
        """
        logger = get_logger()
        today = self.today or datetime.now().strftime("%Y-%m-%d")
        state = self.store.load()

        # 1) Finish a pending run first, without picking anything new
        if state.current is not None:
            run = state.current
            if run.delivered:
                logger.info(f"Run {run.date} (iteration {run.iteration}) was delivered but not finalized. Finalizing.")
                self._finalize(state, run)
                self.store.save(state)
            elif not run.pick and run.analysis is None:
                logger.warning(f"Pending run {run.date} has no lines left. Closing it with zero items.")
                state.current = None
                state.last_completed_date = run.date
                state.last_run_timestamp = utc_now_iso()
                self.store.save(state)
            else:
                logger.info(f"Found pending run (date={run.date}, iteration={run.iteration}). Resuming delivery.")
                outcome = self._advance(state, run)
                if outcome != DispatchOutcome.FINALIZED or run.date == today:
                    return outcome

        # 2) Already finalized today
        if state.last_completed_date == today:
            logger.info("Already finalized today. Nothing to do.")
            state.last_run_timestamp = utc_now_iso()
            self.store.save(state)
            return DispatchOutcome.ALREADY_FINALIZED

        # 3) Create today's run and persist it before any network call
        pick = pick_random_lines(self.vocabulary, state, self.items_per_day)
        if not pick:
            logger.info("No lines left to send (all sent or blocked).")
            state.last_completed_date = today
            state.last_run_timestamp = utc_now_iso()
            self.store.save(state)
            return DispatchOutcome.EXHAUSTED

        run = DispatchRun(
            date=today,
            iteration=state.completed_iteration_count + 1,
            pick=pick,
            created_at=utc_now_iso(),
        )
        state.current = run
        self.store.save(state)
        logger.info(f"Created run {today} (iteration {run.iteration}) with {len(pick)} lines.")

        # 4) Drive it to delivery
        return self._advance(state, run)

    def _advance(self, state: SentState, run: DispatchRun) -> DispatchOutcome:
        """Build the payload if needed, deliver, finalize. Upstream failures leave the run pending."""
        logger = get_logger()
        try:
            self._build_payload(state, run)
            self._deliver(run)
        except (GroqGenerationError, GenerationAbortedError, MailDeliveryError) as e:
            logger.error(f"Run {run.date} stopped: {e}")
            logger.info("State saved. The next scheduled run will resume from the last milestone.")
            state.last_run_timestamp = utc_now_iso()
            self.store.save(state)
            return DispatchOutcome.PENDING

        self._finalize(state, run)
        self.store.save(state)
        logger.info(f"Delivered {len(run.pick)} lines and updated state.")
        return DispatchOutcome.FINALIZED

    def _build_payload(self, state: SentState, run: DispatchRun) -> None:
        logger = get_logger()

        if run.analysis is None:
            logger.info("Generating analysis: categories, verb forms, translations and examples...")
            run.analysis = generate_payload_resilient(
                run=run,
                state=state,
                store=self.store,
                vocabulary_lines=self.vocabulary,
                generate=self.generate,
                blocked_log_path=self.blocked_log_path,
                max_replacements=self.max_replacements,
            )
            self.store.save(state)

            self._translate(run)
            run.rendered_subject = build_subject(run)
            self._ensure_audio(run)
            run.rendered_body = build_html(run)
            run.payload_ready_at = utc_now_iso()
            self.store.save(state)
            logger.info("Payload built.")
            return

        logger.info("Reusing the generated payload.")
        run.rendered_subject = run.rendered_subject or build_subject(run)
        if run.analysis.needs_translation:
            logger.info("Completing missing example translations...")
            self._translate(run)
        self._ensure_audio(run)
        run.rendered_body = build_html(run)
        if run.payload_ready_at is None:
            run.payload_ready_at = utc_now_iso()
        self.store.save(state)

    def _translate(self, run: DispatchRun) -> None:
        if self.translate is None or self.cache is None:
            get_logger().warning("No translation backend configured. Translated examples stay empty.")
            return
        get_logger().info("Translating example sentences...")
        fill_translated_examples(run.analysis, self.cache, self.translate)

    def _ensure_audio(self, run: DispatchRun) -> None:
        if self.synthesizer is None or self.audio_dir is None:
            return
        ensure_audio_for_run(run, self.synthesizer, self.audio_dir)

    def _deliver(self, run: DispatchRun) -> None:
        logger = get_logger()
        if run.delivered:
            logger.info("Email already sent for this run. Skipping.")
            return

        logger.info("Sending email...")
        subject = run.rendered_subject or build_subject(run)
        body = run.rendered_body or build_html(run)
        self.send(subject, body, run.audio_path)

        run.delivered = True
        run.delivered_at = utc_now_iso()
        remove_audio_file(run.audio_path)
        run.audio_path = None

    def _finalize(self, state: SentState, run: DispatchRun) -> None:
        """Fold the delivered pick into the sent set and clear the run."""
        state.add_sent(run.pick)
        state.last_completed_date = run.date
        state.last_run_timestamp = utc_now_iso()
        state.completed_iteration_count = max(state.completed_iteration_count, run.iteration)
        state.current = None
