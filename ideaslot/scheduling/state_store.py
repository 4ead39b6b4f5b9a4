"""
Persistence for the single ``ProcessingState`` blob of the batch processor.

Two interchangeable stores share one interface:

- :class:`FileStateStore` writes the whole blob to a JSON file through a
  temporary file and ``os.replace``, so a reader never sees a partial
  write.  A missing file means "no prior state".
- :class:`InMemoryStateStore` keeps the blob in process memory.  It is used
  when the data directory cannot be written; state is lost on restart.

:func:`create_state_store` picks one at startup.
"""

import json
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional

from ideaslot.scheduling.models import ProcessingState
from ideaslot.utils import isoformat_utc

logger = logging.getLogger(__name__)


class StateStore(ABC):
    """Save, load and clear exactly one :class:`ProcessingState`."""

    durable: bool = False

    @abstractmethod
    def save_state(self, state: ProcessingState) -> bool:
        """Replace the stored blob.  Returns ``False`` if the write failed."""

    @abstractmethod
    def load_state(self) -> Optional[ProcessingState]:
        """Return the stored state, or ``None`` when nothing is stored."""

    @abstractmethod
    def clear_state(self) -> bool:
        """Remove the stored blob.  Clearing an empty store succeeds."""

    @staticmethod
    def _stamp(state: ProcessingState) -> Dict[str, Any]:
        state.saved_at = isoformat_utc()
        return state.to_dict()


class FileStateStore(StateStore):
    """JSON file store.

    Args:
        path: Location of the state file.  Parent directories are created
            on first save.
    """

    durable = True

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def save_state(self, state: ProcessingState) -> bool:
        payload = self._stamp(state)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as fh:
                json.dump(payload, fh, indent=2, default=str)
            os.replace(tmp_path, self.path)
        except (OSError, TypeError) as exc:
            logger.error("[STATE] Failed to save state to %s: %s", self.path, exc)
            self._discard(tmp_path)
            return False
        logger.debug("[STATE] Saved state to %s", self.path)
        return True

    @staticmethod
    def _discard(tmp_path: Path) -> None:
        try:
            tmp_path.unlink()
        except FileNotFoundError:
            return
        except OSError as exc:
            logger.warning("[STATE] Could not remove temp file %s: %s", tmp_path, exc)

    def load_state(self) -> Optional[ProcessingState]:
        try:
            with open(self.path, "r", encoding="utf-8") as fh:
                payload = json.load(fh)
        except FileNotFoundError:
            return None
        except (OSError, json.JSONDecodeError) as exc:
            logger.error("[STATE] Failed to load state from %s: %s", self.path, exc)
            return None
        if not isinstance(payload, dict):
            logger.error("[STATE] Ignoring malformed state file %s", self.path)
            return None
        return ProcessingState.from_dict(payload)

    def clear_state(self) -> bool:
        try:
            self.path.unlink()
        except FileNotFoundError:
            return True
        except OSError as exc:
            logger.error("[STATE] Failed to clear state at %s: %s", self.path, exc)
            return False
        logger.info("[STATE] Cleared state at %s", self.path)
        return True


class InMemoryStateStore(StateStore):
    """Process-local store with the same contract as :class:`FileStateStore`."""

    def __init__(self) -> None:
        self._payload: Optional[str] = None

    def save_state(self, state: ProcessingState) -> bool:
        try:
            self._payload = json.dumps(self._stamp(state), default=str)
        except TypeError as exc:
            logger.error("[STATE] Failed to serialize state: %s", exc)
            return False
        return True

    def load_state(self) -> Optional[ProcessingState]:
        if self._payload is None:
            return None
        return ProcessingState.from_dict(json.loads(self._payload))

    def clear_state(self) -> bool:
        self._payload = None
        return True


def create_state_store(path: Path) -> StateStore:
    """Use a file store at *path* when its directory is writable, else memory."""
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        logger.warning(
            "[STATE] Cannot create %s (%s); falling back to in-memory state",
            path.parent,
            exc,
        )
        return InMemoryStateStore()
    if not os.access(path.parent, os.W_OK):
        logger.warning(
            "[STATE] %s is not writable; falling back to in-memory state", path.parent
        )
        return InMemoryStateStore()
    return FileStateStore(path)
