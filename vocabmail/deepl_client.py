"""DeepL API client for sentence translation."""

from typing import Optional

import httpx
from tenacity import RetryError, retry, stop_after_attempt, wait_exponential, retry_if_exception_type

import config
from vocabmail.logger import get_logger

TRANSIENT_STATUS_CODES = {429, 500, 502, 503, 504}


class DeepLError(Exception):
    """Raised when a DeepL request fails."""

    pass


class DeepLTransientError(DeepLError):
    """Raised on timeouts, transport errors, rate limits and 5xx responses."""

    pass


def build_form(
    auth_key: str,
    texts: list[str],
    source_lang: str = config.DEEPL_SOURCE_LANG,
    target_lang: str = config.DEEPL_TARGET_LANG,
) -> dict:
    """Build the form fields for a /v2/translate request (one 'text' field per sentence)."""
    return {
        "auth_key": auth_key,
        "target_lang": target_lang,
        "source_lang": source_lang,
        "preserve_formatting": "1",
        "text": list(texts),
    }


def parse_translations(data, expected_count: int) -> list[Optional[str]]:
    """
    Parse a DeepL response into a list parallel to the request.

    Args:
        data: Decoded JSON response
        expected_count: Number of texts sent

    Returns:
        Translated strings, None where a translation is missing
    """
    if not isinstance(data, dict) or not isinstance(data.get("translations"), list):
        return [None] * expected_count

    result = []
    for entry in data["translations"][:expected_count]:
        text = entry.get("text") if isinstance(entry, dict) else None
        result.append(text if isinstance(text, str) else None)

    result.extend([None] * (expected_count - len(result)))
    return result


@retry(
    stop=stop_after_attempt(config.MAX_RETRIES),
    wait=wait_exponential(multiplier=0.5, min=0.5, max=15),
    retry=retry_if_exception_type(DeepLTransientError),
)
def _post_translate(client: httpx.Client, endpoint: str, form: dict, expected_count: int) -> list[Optional[str]]:
    try:
        response = client.post(endpoint, data=form, timeout=config.DEEPL_TIMEOUT)
    except httpx.TransportError as e:
        raise DeepLTransientError(f"DeepL request failed: {e}") from e

    if response.status_code in TRANSIENT_STATUS_CODES:
        raise DeepLTransientError(f"DeepL returned {response.status_code}")
    if response.is_error:
        raise DeepLError(f"DeepL request failed: {response.status_code} {response.text[:500]}")

    try:
        data = response.json()
    except ValueError:
        return [None] * expected_count
    return parse_translations(data, expected_count)


def translate_batch(
    client: httpx.Client,
    auth_key: str,
    endpoint: str,
    texts: list[str],
    source_lang: str = config.DEEPL_SOURCE_LANG,
    target_lang: str = config.DEEPL_TARGET_LANG,
) -> list[Optional[str]]:
    """
    Translate a batch of sentences.

    Args:
        client: HTTP client
        auth_key: DeepL authentication key
        endpoint: Free or pro /v2/translate URL
        texts: Up to TRANSLATION_BATCH_SIZE sentences
        source_lang: Source language code
        target_lang: Target language code

    Returns:
        Translations parallel to texts; all None if retries are exhausted

    Raises:
        DeepLError: On a non-retryable error response (e.g. bad key)
    """
    if not texts:
        return []

    form = build_form(auth_key, texts, source_lang, target_lang)
    try:
        return _post_translate(client, endpoint, form, len(texts))
    except RetryError as e:
        get_logger().warning(f"  DeepL unavailable after {config.MAX_RETRIES} attempts: {e.last_attempt.exception()}")
        return [None] * len(texts)
