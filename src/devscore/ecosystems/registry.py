"""Process-wide, hot-reloadable holder of the ecosystem definition table."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from devscore.ecosystems.loader import load_ecosystems
from devscore.errors import ConfigError
from devscore.models import EcosystemSnapshot

logger = logging.getLogger(__name__)


class EcosystemRegistry:
    """Serve the current EcosystemSnapshot; reloads swap in a new one.

    Readers call ``snapshot()`` once per computation and keep that object,
    so a reload never changes tags mid-computation and never blocks readers.
    A reload that fails to parse leaves the previous snapshot in place.
    """

    def __init__(self, path: str | Path | None = None) -> None:
        self._path = Path(path) if path else None
        self._snapshot = load_ecosystems(self._path)
        self._mtime = self._current_mtime()
        logger.info(
            "Loaded %d ecosystem definitions from %s",
            len(self._snapshot.definitions),
            self._snapshot.source,
        )

    def snapshot(self) -> EcosystemSnapshot:
        return self._snapshot

    def reload(self) -> bool:
        """Re-read the definition file. Returns True if the snapshot was replaced."""
        try:
            fresh = load_ecosystems(self._path)
        except ConfigError as exc:
            logger.error("Ecosystem reload failed, keeping previous definitions: %s", exc)
            return False
        self._snapshot = fresh
        self._mtime = self._current_mtime()
        logger.info("Reloaded %d ecosystem definitions", len(fresh.definitions))
        return True

    def refresh_if_changed(self) -> bool:
        """Reload only when the backing file's mtime moved."""
        if self._path is None:
            return False
        mtime = self._current_mtime()
        if mtime is None or mtime == self._mtime:
            return False
        return self.reload()

    async def watch(self, interval_seconds: float) -> None:
        """Poll the backing file forever; run as a background task."""
        while True:
            await asyncio.sleep(interval_seconds)
            self.refresh_if_changed()

    def _current_mtime(self) -> float | None:
        if self._path is None:
            return None
        try:
            return self._path.stat().st_mtime
        except OSError:
            return None
