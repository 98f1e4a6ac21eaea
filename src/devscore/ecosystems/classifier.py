"""Classify repositories into ecosystems with ordered declarative matcher rules.

Each definition is checked against the rules in order; the first rule that
matches decides why the repository qualifies for that definition. Rules, in
decreasing strength:

1. ``allow_list``       -- owner or full name on the curated allow-list
2. ``topics``           -- repository topics intersect the definition's topics
3. ``language_keyword`` -- primary language listed AND a keyword in the repo
                           name; never sufficient for ``strict`` definitions
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable

from devscore.models import (
    Classification,
    EcosystemDefinition,
    EcosystemSnapshot,
    MatchRuleKind,
    RepoRef,
)

logger = logging.getLogger(__name__)

_NAME_SPLIT_RE = re.compile(r"[-_.\s]+")


def _name_tokens(repo: RepoRef) -> set[str]:
    name = repo.name.lower()
    return {token for token in _NAME_SPLIT_RE.split(name) if token} | {name}


def matches_allow_list(definition: EcosystemDefinition, repo: RepoRef) -> bool:
    full_name = repo.full_name.lower()
    owner = repo.owner.lower()
    for entry in definition.repos:
        if entry.endswith("*"):
            if full_name.startswith(entry[:-1]):
                return True
        elif entry.endswith("/"):
            if full_name.startswith(entry):
                return True
        elif "/" in entry:
            if full_name == entry:
                return True
        elif owner == entry:
            return True
    return False


def matches_topics(definition: EcosystemDefinition, repo: RepoRef) -> bool:
    return not definition.topics.isdisjoint(repo.topics)


def matches_language_keyword(definition: EcosystemDefinition, repo: RepoRef) -> bool:
    if definition.strict:
        return False
    if not repo.primary_language or repo.primary_language.lower() not in definition.languages:
        return False
    return not definition.keywords.isdisjoint(_name_tokens(repo))


MATCH_RULES: tuple[tuple[MatchRuleKind, Callable[[EcosystemDefinition, RepoRef], bool]], ...] = (
    (MatchRuleKind.ALLOW_LIST, matches_allow_list),
    (MatchRuleKind.TOPICS, matches_topics),
    (MatchRuleKind.LANGUAGE_KEYWORD, matches_language_keyword),
)


class EcosystemClassifier:
    """Memoized classifier bound to one EcosystemSnapshot.

    Create one per scorecard computation: the memo guarantees a repository
    yields the same tag set for the computation's lifetime, and the bound
    snapshot is unaffected by concurrent registry reloads.
    """

    def __init__(self, snapshot: EcosystemSnapshot) -> None:
        self._snapshot = snapshot
        self._memo: dict[str, Classification] = {}

    def classify(self, repo: RepoRef) -> Classification:
        key = repo.full_name.lower()
        cached = self._memo.get(key)
        if cached is not None:
            return cached
        result = classify_repo(repo, self._snapshot)
        self._memo[key] = result
        return result

    def tags_for(self, repo: RepoRef) -> frozenset[str]:
        return self.classify(repo).tags

    @property
    def classified_count(self) -> int:
        return len(self._memo)


def classify_repo(repo: RepoRef, snapshot: EcosystemSnapshot) -> Classification:
    """Evaluate every definition against ``repo`` (unmemoized)."""
    matched_by: dict[str, MatchRuleKind] = {}
    for definition in snapshot.definitions:
        for rule_kind, rule in MATCH_RULES:
            if rule(definition, repo):
                matched_by[definition.tag] = rule_kind
                break
    if matched_by:
        logger.debug("Classified %s as %s", repo.full_name, sorted(matched_by))
    return Classification(tags=frozenset(matched_by), matched_by=matched_by)
