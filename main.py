#!/usr/bin/env python3
"""Daily Vocabulary Mailer - Main Entry Point."""

import argparse
import logging
import sys
from datetime import datetime
from functools import partial

import httpx

import config
from vocabmail import deepl_client, groq_client
from vocabmail.dispatch import Dispatcher, DispatchOutcome
from vocabmail.logger import log_section, setup_logger
from vocabmail.mail_client import send_email
from vocabmail.state_store import StateStore, StateStoreError
from vocabmail.translation_cache import TranslationCache
from vocabmail.tts_client import EdgeTTSSynthesizer


def parse_date(date_str: str) -> str:
    """Validate a 'YYYY-MM-DD' date."""
    try:
        return datetime.strptime(date_str, "%Y-%m-%d").strftime("%Y-%m-%d")
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid date: {date_str}. Use format: YYYY-MM-DD")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Daily Vocabulary Mailer",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Normal scheduled run (settings from environment / .env)
  python main.py

  # Use a different state file and skip the audio attachment
  python main.py --state-path data/sent_state.json --no-audio

  # Run for a specific day
  python main.py --date 2026-01-31
        """,
    )
    parser.add_argument("--state-path", type=str, help="State JSON file (overrides STATE_PATH)")
    parser.add_argument("--vocabulary-path", type=str, help="Vocabulary list (overrides VOCABULARY_PATH)")
    parser.add_argument("--no-audio", action="store_true", help="Do not synthesize the study audio")
    parser.add_argument("--date", type=parse_date, help="Treat this date as today (YYYY-MM-DD)")
    parser.add_argument("--verbose", action="store_true", help="Debug logging")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    logger = setup_logger(level=logging.DEBUG if args.verbose else logging.INFO)

    try:
        settings = config.load_settings()
        overrides = {}
        if args.state_path:
            overrides["state_path"] = config.resolve_path(args.state_path)
        if args.vocabulary_path:
            overrides["vocabulary_path"] = config.resolve_path(args.vocabulary_path)
        if args.no_audio:
            overrides["audio_enabled"] = False
        settings = settings.model_copy(update=overrides)
        config.check_vocabulary_file(settings.vocabulary_path)
    except config.ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 1

    log_section(logger, "Daily Vocabulary Mailer")
    log_section(
        logger,
        f"Vocabulary: {settings.vocabulary_path}",
        f"State: {settings.state_path}",
        f"Model: {settings.groq_model}",
        f"Translation: {'DeepL ' + settings.deepl_endpoint if settings.deepl_auth_key else 'disabled'}",
        f"Audio: {'enabled' if settings.audio_enabled else 'disabled'}",
    )

    send = partial(
        send_email,
        settings.smtp_host,
        settings.smtp_port,
        settings.smtp_user,
        settings.smtp_pass,
        settings.email_to,
    )

    with groq_client.create_client(settings.groq_api_key) as groq_http, httpx.Client() as deepl_http:
        translate = None
        cache = None
        if settings.deepl_auth_key:
            translate = partial(
                deepl_client.translate_batch,
                deepl_http,
                settings.deepl_auth_key,
                settings.deepl_endpoint,
            )
            cache = TranslationCache(settings.cache_path)
        else:
            logger.warning("DEEPL_AUTH_KEY not set. Example translations will be empty.")

        store = StateStore(settings.state_path)
        dispatcher = Dispatcher(
            store=store,
            vocabulary_path=settings.vocabulary_path,
            generate=partial(groq_client.generate_daily_analysis, groq_http, settings.groq_model),
            send=send,
            translate=translate,
            cache=cache,
            synthesizer=EdgeTTSSynthesizer(settings.voice_name) if settings.audio_enabled else None,
            audio_dir=settings.audio_dir,
            blocked_log_path=settings.blocked_log_path,
            today=args.date,
        )

        try:
            outcome = dispatcher.run()
        except StateStoreError as e:
            logger.error(f"Storage error: {e}")
            return 1
        except KeyboardInterrupt:
            logger.warning("Interrupted by user. The next run resumes from the last saved milestone.")
            return 1
        except Exception as e:
            logger.error(f"Unexpected error: {e}", exc_info=True)
            return 1

    if outcome == DispatchOutcome.PENDING:
        summary = "Run finished with the email still pending. The next run will resume it."
    else:
        summary = f"Run finished: {outcome.value}"
    log_section(logger, summary, f"Lines sent so far: {store.sent_count} | Blocked: {store.blocked_count}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
