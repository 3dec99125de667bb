"""Groq (OpenAI-compatible) client for generating the daily analysis."""

import json
import re

import httpx
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

import config
from vocabmail.models import (
    Category,
    DailyAnalysis,
    GeneratedItem,
    ItemTranslations,
    VerbForms,
    normalize_text,
)

SYSTEM_PROMPT = (
    "You are an English teacher and lexicographer. "
    "Answer ONLY with valid JSON in the requested format. "
    "Do not include any text outside the JSON."
)

PROMPT_TEMPLATE = """
Analyze each LINE below (one item per line). For each line:
1) Classify it into ONE category:
   Verb, PhrasalVerb, Noun, Adjective, Adverb, Pronoun, Preposition, Conjunction, Determiner, Expression, Other
2) If it is a Verb or PhrasalVerb:
   - Provide: present (base), pastSimple, pastParticiple.
   - Provide 2-6 Brazilian Portuguese translations in translations.general
   - And translations per form: translations.present/pastSimple/pastParticiple (0-6)
3) If it is NOT an Expression:
   - Write EXACTLY 5 short English sentences (B1-B2, 6-12 words),
     each containing the ORIGINAL line exactly as given.
   - Do NOT translate the sentences: examplesPt must be [] (empty array).
4) For an Expression:
   - Do NOT write examples: examplesEn and examplesPt must be [].
   - Only translations.general (Brazilian Portuguese).

Answer ONLY with valid JSON exactly like this:

{
  "items": [
    {
      "input": "...",
      "category": "Verb|PhrasalVerb|Noun|Adjective|Adverb|Pronoun|Preposition|Conjunction|Determiner|Expression|Other",
      "verbForms": { "present": "...", "pastSimple": "...", "pastParticiple": "..." },
      "translations": {
        "general": ["...", "..."],
        "present": ["..."],
        "pastSimple": ["..."],
        "pastParticiple": ["..."]
      },
      "examplesEn": ["...", "...", "...", "...", "..."],
      "examplesPt": []
    }
  ]
}

Lines:
"""

TRANSIENT_STATUS_CODES = {429, 500, 502, 503, 504}


class GroqGenerationError(Exception):
    """Raised when Groq generation fails."""

    pass


class GroqTransientError(GroqGenerationError):
    """Raised on timeouts, transport errors, rate limits and 5xx responses."""

    pass


class GroqAPIError(GroqGenerationError):
    """Raised on a non-retryable HTTP error response."""

    def __init__(self, status_code: int, body: str):
        super().__init__(f"Groq request failed: {status_code} {body[:500]}")
        self.status_code = status_code
        self.body = body


class GroqParseError(GroqGenerationError):
    """Raised when the response is not a JSON object with items."""

    pass


class ItemGenerationError(GroqGenerationError):
    """Raised when the response is unusable because of one specific input line."""

    def __init__(self, item: str, reason: str):
        super().__init__(reason)
        self.item = item
        self.reason = reason


def build_prompt(pick: list[str]) -> str:
    """Build the user prompt listing every picked line."""
    return PROMPT_TEMPLATE + "\n".join(f" - {line}" for line in pick)


@retry(
    stop=stop_after_attempt(config.MAX_RETRIES),
    wait=wait_exponential(multiplier=1, min=config.RETRY_MIN_WAIT, max=config.RETRY_MAX_WAIT),
    retry=retry_if_exception_type(GroqTransientError),
    reraise=True,
)
def request_completion(client: httpx.Client, model: str, prompt: str) -> str:
    """
    Send one chat-completions request and return the message content.

    Args:
        client: HTTP client carrying the Authorization header
        model: Model id
        prompt: User prompt

    Returns:
        Raw message content (expected to be a JSON document)

    Raises:
        GroqTransientError: On timeout, transport error, 429 or 5xx (retried)
        GroqAPIError: On other non-2xx responses
        GroqParseError: If the envelope has no message content
    """
    payload = {
        "model": model,
        "temperature": config.GROQ_TEMPERATURE,
        "response_format": {"type": "json_object"},
        "messages": [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": prompt},
        ],
    }

    try:
        response = client.post(config.GROQ_ENDPOINT, json=payload, timeout=config.GROQ_TIMEOUT)
    except httpx.TransportError as e:
        raise GroqTransientError(f"Groq request failed: {e}") from e

    if response.status_code in TRANSIENT_STATUS_CODES:
        raise GroqTransientError(f"Groq returned {response.status_code}: {response.text[:200]}")
    if response.is_error:
        raise GroqAPIError(response.status_code, response.text)

    try:
        content = response.json()["choices"][0]["message"]["content"]
    except (ValueError, KeyError, IndexError, TypeError) as e:
        raise GroqParseError(f"Unexpected Groq response envelope: {response.text[:500]}") from e

    if not isinstance(content, str) or not content.strip():
        raise GroqParseError("Empty response from Groq.")

    return content


def extract_json_from_response(content: str) -> dict:
    """
    Extract a JSON object from the model's response.

    The response might contain markdown code blocks or other text.

    Args:
        content: Raw response content

    Returns:
        Parsed JSON dictionary
    """
    try:
        data = json.loads(content)
        if isinstance(data, dict):
            return data
    except json.JSONDecodeError:
        pass

    # Look for ```json ... ``` blocks
    json_match = re.search(r"```(?:json)?\s*(\{[\s\S]*?\})\s*```", content)
    if json_match:
        try:
            return json.loads(json_match.group(1))
        except json.JSONDecodeError:
            pass

    # Look for raw JSON object
    json_match = re.search(r"\{[\s\S]*\}", content)
    if json_match:
        try:
            return json.loads(json_match.group(0))
        except json.JSONDecodeError:
            pass

    raise GroqParseError(f"Could not extract JSON from response: {content[:500]}...")


def _string_list(value) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(v).strip() for v in value if v is not None and str(v).strip()]


def build_item(raw: dict, source_text: str) -> GeneratedItem:
    """
    Normalize one raw response item against its picked line.

    Args:
        raw: Item object from the model's JSON
        source_text: The picked line the item answers

    Returns:
        GeneratedItem with category-specific fields cleared where they do not apply
    """
    category = Category.parse(raw.get("category"))
    translations = raw.get("translations") if isinstance(raw.get("translations"), dict) else {}
    forms = raw.get("verbForms") if isinstance(raw.get("verbForms"), dict) else None

    item = GeneratedItem(
        source_text=source_text.strip(),
        category=category,
        translations=ItemTranslations(
            general=_string_list(translations.get("general")),
            present=_string_list(translations.get("present")),
            past_simple=_string_list(translations.get("pastSimple")),
            past_participle=_string_list(translations.get("pastParticiple")),
        ),
        examples_source=_string_list(raw.get("examplesEn")),
        examples_translated=[],
    )

    if category.is_verb and forms is not None:
        item.verb_forms = VerbForms(
            present=str(forms.get("present") or "").strip(),
            past_simple=str(forms.get("pastSimple") or "").strip(),
            past_participle=str(forms.get("pastParticiple") or "").strip(),
        )
    elif not category.is_verb:
        item.translations.present = []
        item.translations.past_simple = []
        item.translations.past_participle = []

    if category == Category.EXPRESSION:
        item.examples_source = []

    return item


def validate_item(item: GeneratedItem) -> None:
    """
    Check the structural invariants of a generated item.

    Raises:
        ItemGenerationError: Naming the item's source text
    """
    text = item.source_text
    if item.category.is_verb:
        if item.verb_forms is None or not item.verb_forms.is_complete:
            raise ItemGenerationError(text, f"Item '{text}' was classified as a verb, but verbForms is incomplete.")
        if not item.translations.general:
            raise ItemGenerationError(text, f"Item '{text}' has no translations.general.")

    if item.category == Category.EXPRESSION:
        if not item.translations.general:
            raise ItemGenerationError(text, f"Expression '{text}' has no translations.general.")
    elif len(item.examples_source) != config.EXAMPLES_PER_ITEM:
        raise ItemGenerationError(
            text,
            f"Item '{text}' must return exactly {config.EXAMPLES_PER_ITEM} examples, "
            f"got {len(item.examples_source)}.",
        )


def parse_analysis(data: dict, pick: list[str]) -> DailyAnalysis:
    """
    Match the response items to the pick and validate each one.

    Args:
        data: Parsed JSON response
        pick: The picked lines, in order

    Returns:
        DailyAnalysis with one item per picked line, in pick order

    Raises:
        GroqParseError: If the response has no items at all
        ItemGenerationError: If a picked line is missing or its item is malformed
    """
    raw_items = data.get("items")
    if not isinstance(raw_items, list) or not raw_items:
        raise GroqParseError("Unexpected JSON from Groq (items missing or empty).")

    by_input = {}
    for raw in raw_items:
        if not isinstance(raw, dict):
            continue
        key = normalize_text(str(raw.get("input") or ""))
        if key and key not in by_input:
            by_input[key] = raw

    items = []
    for line in pick:
        raw = by_input.get(normalize_text(line))
        if raw is None:
            raise ItemGenerationError(line, f"Groq returned no item for '{line}'.")
        item = build_item(raw, line)
        validate_item(item)
        items.append(item)

    return DailyAnalysis(items=items)


def generate_daily_analysis(client: httpx.Client, model: str, pick: list[str]) -> DailyAnalysis:
    """
    Generate and validate the analysis for a pick.

    Args:
        client: HTTP client carrying the Authorization header
        model: Model id
        pick: The picked lines

    Returns:
        Validated DailyAnalysis
    """
    content = request_completion(client, model, build_prompt(pick))
    return parse_analysis(extract_json_from_response(content), pick)


def create_client(api_key: str) -> httpx.Client:
    """Create an HTTP client authorized for the Groq API."""
    return httpx.Client(headers={"Authorization": f"Bearer {api_key}"}, timeout=config.GROQ_TIMEOUT)
