"""Persistence for the current batch and the processing history."""

import json
import logging
import os
from pathlib import Path
from typing import Any, Optional

from .models import BatchState, ProcessingResult

logger = logging.getLogger(__name__)

STATE_FILE = "batch_state.json"
HISTORY_FILE = "history.json"
MAX_HISTORY = 100


def atomic_write_json(path: Path, data: Any) -> None:
    tmp_path = path.with_suffix(path.suffix + f".{os.getpid()}.tmp")
    tmp_path.parent.mkdir(parents=True, exist_ok=True)
    with open(tmp_path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)
        f.flush()
        os.fsync(f.fileno())
    os.replace(tmp_path, path)


def _read_json(path: Path) -> Any:
    if not path.exists():
        return None
    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Ignoring unreadable %s: %s", path, e)
        return None


class BatchStateStore:
    """JSON files under ``state_dir``: the current BatchState (overwritten
    per batch) and the history of results, newest first."""

    def __init__(self, state_dir: Path):
        self.state_dir = Path(state_dir)

    @property
    def state_path(self) -> Path:
        return self.state_dir / STATE_FILE

    @property
    def history_path(self) -> Path:
        return self.state_dir / HISTORY_FILE

    def save_state(self, state: BatchState) -> None:
        atomic_write_json(self.state_path, state.to_dict())

    def load_state(self) -> Optional[BatchState]:
        data = _read_json(self.state_path)
        if not isinstance(data, dict):
            return None
        try:
            return BatchState.from_dict(data)
        except (KeyError, ValueError, TypeError) as e:
            logger.warning("Ignoring malformed batch state: %s", e)
            return None

    def append_history(self, results: list[ProcessingResult]) -> None:
        if not results:
            return
        entries = [r.to_dict() for r in reversed(results)]
        history = self._raw_history()
        atomic_write_json(self.history_path, (entries + history)[:MAX_HISTORY])

    def get_history(self, limit: Optional[int] = None) -> list[ProcessingResult]:
        history = []
        for entry in self._raw_history():
            try:
                history.append(ProcessingResult.from_dict(entry))
            except (KeyError, ValueError, TypeError) as e:
                logger.debug("Skipping malformed history entry: %s", e)
        return history[:limit] if limit is not None else history

    def _raw_history(self) -> list[dict]:
        data = _read_json(self.history_path)
        if not isinstance(data, list):
            return []
        return [entry for entry in data if isinstance(entry, dict)]
