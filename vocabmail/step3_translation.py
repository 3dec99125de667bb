"""Step 3: Sentence translation - fill translated examples via cache and DeepL."""

import time
from typing import Callable, Optional

from tqdm import tqdm

import config
from vocabmail.deepl_client import DeepLError
from vocabmail.logger import get_logger
from vocabmail.models import DailyAnalysis, GeneratedItem, normalize_text
from vocabmail.translation_cache import TranslationCache, is_acceptable_translation

BatchTranslator = Callable[[list[str]], list[Optional[str]]]


def _ensure_size(item: GeneratedItem) -> None:
    size = len(item.examples_source)
    item.examples_translated = item.examples_translated[:size]
    while len(item.examples_translated) < size:
        item.examples_translated.append("")


def collect_pending(analysis: DailyAnalysis) -> list[tuple[GeneratedItem, int, str]]:
    """List (item, index, source sentence) for every example still lacking a translation."""
    pending = []
    for item in analysis.items:
        if not item.examples_source:
            continue
        _ensure_size(item)
        for idx, source in enumerate(item.examples_source):
            source = (source or "").strip()
            if not source or item.examples_translated[idx].strip():
                continue
            pending.append((item, idx, source))
    return pending


def fill_translated_examples(
    analysis: DailyAnalysis,
    cache: TranslationCache,
    translate: BatchTranslator,
    batch_size: int = config.TRANSLATION_BATCH_SIZE,
    batch_delay: float = config.TRANSLATION_BATCH_DELAY,
) -> int:
    """
    Fill examples_translated for every item, consulting the cache first.

    Uncached sentences are sent in batches; each accepted translation goes
    into the item and the cache, which is saved after every batch. Rejected
    or failed translations leave the slot blank.

    Args:
        analysis: The run's analysis (mutated in place)
        cache: Shared translation cache
        translate: Callable translating a batch of sentences
        batch_size: Maximum sentences per backend call
        batch_delay: Pause between batches in seconds

    Returns:
        Number of slots still blank afterwards
    """
    logger = get_logger()

    pending = collect_pending(analysis)
    if not pending:
        return 0

    # normalized source -> (sentence sent to the backend, slots waiting for it)
    uncached: dict[str, tuple[str, list[tuple[GeneratedItem, int]]]] = {}
    hits = 0
    for item, idx, source in pending:
        cached = cache.get(source)
        if cached is not None:
            item.examples_translated[idx] = cached
            hits += 1
            continue
        key = normalize_text(source)
        if key not in uncached:
            uncached[key] = (source, [])
        uncached[key][1].append((item, idx))

    logger.info(f"  Cache hits: {hits}/{len(pending)}")

    if not uncached:
        return 0

    to_translate = list(uncached.values())
    missing = 0
    with tqdm(total=len(to_translate), desc="  Translating") as pbar:
        for start in range(0, len(to_translate), batch_size):
            batch = to_translate[start:start + batch_size]

            try:
                translated = translate([source for source, _ in batch])
            except DeepLError as e:
                logger.warning(f"  Translation batch failed: {e}")
                translated = []

            for j, (source, slots) in enumerate(batch):
                text = (translated[j] or "").strip() if j < len(translated) else ""
                if not is_acceptable_translation(text):
                    missing += len(slots)
                    continue
                for item, idx in slots:
                    item.examples_translated[idx] = text
                cache.put(source, text)

            cache.save()
            pbar.update(len(batch))

            if batch_delay and start + batch_size < len(to_translate):
                time.sleep(batch_delay)

    if missing:
        logger.warning(f"  {missing} example(s) left without translation")
    return missing
