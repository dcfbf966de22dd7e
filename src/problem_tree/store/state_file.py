# src/problem_tree/store/state_file.py

from __future__ import annotations

import contextlib
import json
import logging
import os
from pathlib import Path

from ..core.models import INBOX_ID, AppState, default_state
from ..core.serialization import state_from_dict, state_to_dict

logger = logging.getLogger(__name__)


class PersistenceError(RuntimeError):
    """The snapshot could not be written."""


class JsonStateFile:
    """
    Whole-state JSON snapshot on disk.

    - load(): read once at startup; missing/unreadable/malformed -> default state
    - save(): atomic replace (write temp file, then os.replace)
    """

    def __init__(self, path: str | Path = "state.json") -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> AppState:
        if not self._path.exists():
            logger.info("No state file at %s, starting with an empty inbox.", self._path)
            return default_state()
        try:
            data = json.loads(self._path.read_text("utf-8"))
            state = state_from_dict(data)
        except Exception:
            logger.exception("Failed to load state from %s; falling back to default state.", self._path)
            return default_state()

        n_problems = sum(_count_nodes(x.problems) for x in state.lists)
        logger.info("Loaded state: %d lists, %d problems from %s", len(state.lists), n_problems, self._path)
        return state

    def save(self, state: AppState) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self._path.with_suffix(".tmp")
            tmp.write_text(json.dumps(state_to_dict(state), ensure_ascii=False, indent=2), "utf-8")
            os.replace(tmp, self._path)
            with contextlib.suppress(OSError):
                os.chmod(self._path, 0o600)
        except OSError as e:
            logger.exception("Failed to save state to %s", self._path)
            raise PersistenceError(f"could not write {self._path}") from e
        logger.debug("Saved state: %d lists to %s", len(state.lists), self._path)


def _count_nodes(problems) -> int:
    return sum(1 + _count_nodes(p.subproblems) for p in problems)


def has_inbox(state: AppState) -> bool:
    return state.get_list(INBOX_ID) is not None
