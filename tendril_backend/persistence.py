"""
Persistence ports - where the serialized diagram tree is kept between sessions.

The editor only talks to a port: `load()` once at startup, `save()` on an
explicit save. What the text looks like is the codec's business.
"""

import logging
from pathlib import Path
from typing import Optional, Protocol

logger = logging.getLogger(__name__)


class PersistencePort(Protocol):
    """Storage for one serialized diagram tree."""

    def load(self) -> Optional[str]:
        """Return the stored text, or None if nothing was saved yet."""
        ...

    def save(self, snapshot: str) -> None:
        """Replace the stored text."""
        ...


class InMemoryPersistence:
    """Keeps the snapshot in process memory (the session-storage equivalent)."""

    def __init__(self, initial: Optional[str] = None):
        self._snapshot = initial

    def load(self) -> Optional[str]:
        return self._snapshot

    def save(self, snapshot: str) -> None:
        self._snapshot = snapshot


class JsonFilePersistence:
    """Keeps the snapshot in a JSON file on disk."""

    def __init__(self, path: str | Path):
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> Optional[str]:
        if not self._path.exists():
            return None
        with open(self._path, "r", encoding="utf-8") as f:
            return f.read()

    def save(self, snapshot: str) -> None:
        # Ensure parent directory exists
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with open(self._path, "w", encoding="utf-8") as f:
            f.write(snapshot)
        logger.info("Saved diagram to %s", self._path)
