"""State persistence backends: load/save of the raw state document."""

import json
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional
from ..utils.errors import StateError
from ..utils.logging import get_logger

logger = get_logger("state.backends")


class StateBackend(ABC):
    """
    Durable key/value storage for the state document.

    Backends only load and save. Locking across separate engine processes is
    the responsibility of whatever hosts the backend.
    """

    @abstractmethod
    def load(self) -> Optional[Dict[str, Any]]:
        """
        Load the raw state document.

        Returns:
            Decoded document, or None if no state has been saved yet
        """
        pass

    @abstractmethod
    def save(self, document: Dict[str, Any]) -> None:
        """Persist the raw state document, replacing the previous one."""
        pass


class MemoryStateBackend(StateBackend):
    """Keeps the document in memory. Useful for tests and dry runs."""

    def __init__(self, document: Optional[Dict[str, Any]] = None):
        self.document = json.loads(json.dumps(document)) if document is not None else None
        self.save_count = 0

    def load(self) -> Optional[Dict[str, Any]]:
        if self.document is None:
            return None
        return json.loads(json.dumps(self.document))

    def save(self, document: Dict[str, Any]) -> None:
        self.document = json.loads(json.dumps(document))
        self.save_count += 1


class LocalStateBackend(StateBackend):
    """JSON file on local disk, replaced atomically on every save."""

    def __init__(self, path: str):
        self.path = Path(path)

    def load(self) -> Optional[Dict[str, Any]]:
        if not self.path.exists():
            logger.debug(f"No state file at {self.path}, starting empty")
            return None
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            raise StateError(f"State file {self.path} is not valid JSON: {e}")
        except OSError as e:
            raise StateError(f"Error reading state file {self.path}: {e}")

    def save(self, document: Dict[str, Any]) -> None:
        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=str(self.path.parent))
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(document, f, indent=2, sort_keys=True)
                f.write("\n")
            os.replace(tmp_name, self.path)
        except (OSError, TypeError) as e:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise StateError(f"Failed to write state file {self.path}: {e}")
        logger.debug(f"Saved state to {self.path}")
