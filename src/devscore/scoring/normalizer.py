"""Turn raw activity events into weighted Contribution records."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from devscore.config import ScoringConfig
from devscore.errors import MalformedEventError
from devscore.models import Contribution, EventKind, RawEvent

logger = logging.getLogger(__name__)

# author_association values that imply write access to the repository
_MAINTAINER_ASSOCIATIONS = frozenset({"OWNER", "MEMBER", "COLLABORATOR"})


def normalize(event: RawEvent, config: ScoringConfig) -> Contribution:
    """Normalize one event. Pure; raises MalformedEventError on incomplete input."""
    if event.repository is None:
        raise MalformedEventError(f"{event.kind.value} event has no repository")
    if event.timestamp is None:
        raise MalformedEventError(
            f"{event.kind.value} event on {event.repository.full_name} has no timestamp"
        )
    return Contribution(
        kind=event.kind,
        repo=event.repository,
        timestamp=event.timestamp,
        weight=config.weight_for(event.kind),
        is_maintainer_action=is_maintainer_action(event),
    )


def normalize_all(events: Iterable[RawEvent], config: ScoringConfig) -> list[Contribution]:
    """Normalize a batch, dropping malformed events with a logged diagnostic."""
    contributions: list[Contribution] = []
    dropped = 0
    for event in events:
        try:
            contributions.append(normalize(event, config))
        except MalformedEventError as exc:
            dropped += 1
            logger.warning("Dropping malformed event %s: %s", event.metadata.get("event_id"), exc)
    if dropped:
        logger.info("Normalized %d events, dropped %d malformed", len(contributions), dropped)
    return contributions


def is_maintainer_action(event: RawEvent) -> bool:
    """Decide whether an event shows review/merge authority over someone else's work.

    True only for a review, or a merge performed by the actor, on a pull
    request authored by someone else, where the actor owns the repository or
    holds a maintainer association. Missing metadata means False.
    """
    meta = event.metadata
    actor = meta.get("actor")
    author = meta.get("author")
    if not isinstance(actor, str) or not actor or not isinstance(author, str) or not author:
        return False
    if author.lower() == actor.lower() or event.repository is None:
        return False

    if event.kind == EventKind.PULL_REQUEST:
        merged_by = meta.get("merged_by")
        # Merging requires write access, so a merge of another author's PR qualifies.
        return bool(meta.get("merged")) and isinstance(merged_by, str) and (
            merged_by.lower() == actor.lower()
        )

    if event.kind == EventKind.REVIEW:
        if event.repository.owner.lower() == actor.lower():
            return True
        association = meta.get("author_association")
        return isinstance(association, str) and association.upper() in _MAINTAINER_ASSOCIATIONS

    return False
