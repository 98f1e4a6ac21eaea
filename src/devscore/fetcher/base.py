"""Ports: activity fetching and repository metadata resolution."""

from __future__ import annotations

from collections.abc import AsyncIterator, Iterable
from typing import Protocol

from devscore.deadline import Deadline
from devscore.models import RawEvent, RepoRef, TimeWindow


class EventStreamPort(Protocol):
    """Single-use async stream of raw events with a partial-data advisory."""

    partial: bool
    partial_reason: str

    def __aiter__(self) -> AsyncIterator[RawEvent]: ...


class ActivityFetcherPort(Protocol):
    """Port for listing a user's activity inside a time window."""

    def fetch(self, username: str, window: TimeWindow, deadline: Deadline) -> EventStreamPort:
        """Return a lazy stream of events newest-first, bounded by the window."""
        ...


class RepoResolverPort(Protocol):
    """Port for hydrating repository stubs with classification metadata."""

    async def resolve_all(
        self,
        repos: Iterable[RepoRef],
        deadline: Deadline,
    ) -> dict[str, RepoRef]:
        """Resolve each distinct repository once, keyed by lowercase full name."""
        ...

    def clear(self) -> None:
        """Drop memoized lookups at the end of a computation."""
        ...
