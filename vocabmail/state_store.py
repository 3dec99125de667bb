"""Persisted run state: the sent set, the blocklist and the in-flight run."""

import json
import os
import tempfile
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from vocabmail.logger import get_logger
from vocabmail.models import SentState


class StateStoreError(Exception):
    """Raised when the state file cannot be written."""

    pass


def atomic_write_json(path: Path, data) -> None:
    """
    Write JSON to a temp file in the same directory, then rename over the target.

    A process killed mid-write leaves either the old file or the new one, never
    a truncated mix.

    Args:
        path: Destination file
        data: JSON-serializable data
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


class StateStore:
    """Loads and saves the whole SentState document."""

    def __init__(self, state_path: Path):
        """
        Initialize the state store.

        Args:
            state_path: Path to the state JSON file
        """
        self.state_path = state_path
        self._data: Optional[SentState] = None

    def load(self) -> SentState:
        """
        Load state from file, or create a fresh one.

        An unreadable or corrupt file yields a fresh state: losing the sent
        history is preferred over never sending again.
        """
        if self._data is not None:
            return self._data

        if not self.state_path.exists():
            self._data = SentState()
            return self._data

        try:
            with open(self.state_path, "r", encoding="utf-8") as f:
                data = json.load(f)
            self._data = SentState.model_validate(data or {})
        except (OSError, UnicodeDecodeError, json.JSONDecodeError, ValidationError) as e:
            get_logger().warning(f"State file {self.state_path} is unreadable ({e}). Starting from a fresh state.")
            self._data = SentState()

        return self._data

    def save(self, state: Optional[SentState] = None) -> None:
        """
        Write the full state snapshot atomically.

        Raises:
            StateStoreError: If the file cannot be written
        """
        if state is not None:
            self._data = state
        if self._data is None:
            return

        try:
            atomic_write_json(self.state_path, self._data.model_dump(mode="json", by_alias=True))
        except OSError as e:
            raise StateStoreError(f"Failed to write state file {self.state_path}: {e}") from e

    @property
    def sent_count(self) -> int:
        return len(self.load().sent)

    @property
    def blocked_count(self) -> int:
        return len(self.load().blocked)
