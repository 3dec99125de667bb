"""Configuration settings for the daily vocabulary mailer."""

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel

# Base paths
PROJECT_ROOT = Path(__file__).parent
LOGS_DIR = PROJECT_ROOT / "logs"

# Default file names (resolved against the work directory)
DEFAULT_VOCABULARY_FILE = "english-vocabulary.txt"
DEFAULT_STATE_FILE = "sent_state.json"
DEFAULT_CACHE_FILE = "deepl_sentence_cache.json"
DEFAULT_BLOCKED_LOG_FILE = "blocked_words.log"
DEFAULT_AUDIO_DIR = "audio"

# Daily run settings
ITEMS_PER_DAY = 10
MAX_REPLACEMENTS = 50  # Per-item repairs before a run is aborted
EXAMPLES_PER_ITEM = 5

# Groq (OpenAI-compatible) settings
GROQ_ENDPOINT = "https://api.groq.com/openai/v1/chat/completions"
DEFAULT_GROQ_MODEL = "llama-3.1-8b-instant"
GROQ_TIMEOUT = 90  # seconds
GROQ_TEMPERATURE = 0.2

# DeepL settings
DEEPL_FREE_ENDPOINT = "https://api-free.deepl.com/v2/translate"
DEEPL_PRO_ENDPOINT = "https://api.deepl.com/v2/translate"
DEEPL_SOURCE_LANG = "EN"
DEEPL_TARGET_LANG = "PT-BR"
DEEPL_TIMEOUT = 60  # seconds
TRANSLATION_BATCH_SIZE = 50  # DeepL accepts up to 50 texts per request
TRANSLATION_BATCH_DELAY = 0.15  # seconds between batches
MAX_TRANSLATION_LENGTH = 240
MIN_TRANSLATION_LETTERS = 4

# SMTP settings
SMTP_TIMEOUT = 60  # seconds

# Retry settings (exponential backoff, doubling per attempt)
MAX_RETRIES = 8
RETRY_MIN_WAIT = 1  # seconds
RETRY_MAX_WAIT = 60  # seconds

# Audio settings
DEFAULT_VOICE_NAME = "en-US-AriaNeural"

TRUTHY_VALUES = {"1", "true", "yes", "y", "on"}


class ConfigurationError(Exception):
    """Raised when a required setting is missing or invalid."""

    pass


class Settings(BaseModel):
    """Runtime settings loaded from the environment."""

    groq_api_key: str
    groq_model: str = DEFAULT_GROQ_MODEL
    smtp_host: str
    smtp_port: int
    smtp_user: str
    smtp_pass: str
    email_to: str
    deepl_auth_key: Optional[str] = None
    deepl_endpoint: str = DEEPL_FREE_ENDPOINT
    vocabulary_path: Path
    state_path: Path
    cache_path: Path
    blocked_log_path: Path
    audio_enabled: bool = True
    audio_dir: Path
    voice_name: str = DEFAULT_VOICE_NAME


def get_work_dir() -> Path:
    """Base directory for relative paths (the checked-out workspace on CI)."""
    workspace = os.getenv("GITHUB_WORKSPACE")
    return Path(workspace) if workspace else Path.cwd()


def resolve_path(path_or_relative: str | Path) -> Path:
    """Resolve a relative path against the work directory."""
    path = Path(str(path_or_relative).strip())
    if path.is_absolute():
        return path
    return get_work_dir() / path


def env(name: str, *aliases: str, required: bool = False) -> Optional[str]:
    """Read the first non-blank environment variable among name and aliases."""
    for key in (name, *aliases):
        value = os.getenv(key)
        if value is not None and value.strip():
            return value.strip()
    if required:
        raise ConfigurationError(f"Missing environment variable: {name}")
    return None


def env_bool(name: str, *aliases: str, default: bool) -> bool:
    value = env(name, *aliases)
    if value is None:
        return default
    return value.lower() in TRUTHY_VALUES


def resolve_deepl_endpoint(auth_key: Optional[str]) -> str:
    """Pick the DeepL endpoint: explicit override, else free for ':fx' keys."""
    override = env("DEEPL_ENDPOINT")
    if override:
        return override
    if not auth_key or auth_key.strip().lower().endswith(":fx"):
        return DEEPL_FREE_ENDPOINT
    return DEEPL_PRO_ENDPOINT


def load_settings(env_file: Optional[Path] = None) -> Settings:
    """
    Load runtime settings from the environment (and a .env file if present).

    Args:
        env_file: Optional .env file to load. Defaults to .env in the work directory.

    Returns:
        Validated Settings

    Raises:
        ConfigurationError: If a required variable is missing or invalid
    """
    load_dotenv(env_file or get_work_dir() / ".env")

    port = env("SMTP_PORT", required=True)
    try:
        smtp_port = int(port)
    except ValueError:
        raise ConfigurationError(f"SMTP_PORT must be an integer, got: {port}")

    deepl_auth_key = env("DEEPL_AUTH_KEY")

    settings = Settings(
        groq_api_key=env("OPENAI_API_KEY", "GROQ_API_KEY", required=True),
        groq_model=env("GROQ_MODEL") or DEFAULT_GROQ_MODEL,
        smtp_host=env("SMTP_HOST", required=True),
        smtp_port=smtp_port,
        smtp_user=env("SMTP_USER", required=True),
        smtp_pass=env("SMTP_PASS", required=True),
        email_to=env("EMAIL_TO", required=True),
        deepl_auth_key=deepl_auth_key,
        deepl_endpoint=resolve_deepl_endpoint(deepl_auth_key),
        vocabulary_path=resolve_path(env("VOCABULARY_PATH") or DEFAULT_VOCABULARY_FILE),
        state_path=resolve_path(env("STATE_PATH") or DEFAULT_STATE_FILE),
        cache_path=resolve_path(env("DEEPL_CACHE_PATH") or DEFAULT_CACHE_FILE),
        blocked_log_path=resolve_path(env("BLOCKED_LOG_PATH") or DEFAULT_BLOCKED_LOG_FILE),
        audio_enabled=env_bool("EMAIL_AUDIO_ENABLED", "AUDIO_ENABLED", default=True),
        audio_dir=resolve_path(env("EMAIL_AUDIO_DIR", "AUDIO_DIR") or DEFAULT_AUDIO_DIR),
        voice_name=env("EMAIL_AUDIO_VOICE_NAME", "AUDIO_VOICE_NAME") or DEFAULT_VOICE_NAME,
    )
    return settings


def check_vocabulary_file(path: Path) -> None:
    """Fail fast when the vocabulary file is missing."""
    if not path.is_file():
        raise ConfigurationError(f"Vocabulary file not found: {path}")
