"""Port: ecosystem definition source."""

from __future__ import annotations

from typing import Protocol

from devscore.models import EcosystemSnapshot


class EcosystemSourcePort(Protocol):
    """Port for reading the current ecosystem definition table."""

    def snapshot(self) -> EcosystemSnapshot:
        """Return the current immutable snapshot without blocking."""
        ...
