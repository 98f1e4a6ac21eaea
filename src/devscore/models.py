"""Domain models for devscore. All frozen dataclasses -- no mutation after creation."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import StrEnum

# ─── Enumerations ─────────────────────────────────────────────


class EventKind(StrEnum):
    COMMIT = "commit"
    PULL_REQUEST = "pull_request"
    REVIEW = "review"
    ISSUE = "issue"


class MatchRuleKind(StrEnum):
    ALLOW_LIST = "allow_list"
    TOPICS = "topics"
    LANGUAGE_KEYWORD = "language_keyword"


# ─── Window ───────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class TimeWindow:
    """Trailing interval ``[since, until]``, both ends inclusive."""

    days: int
    since: datetime
    until: datetime

    @classmethod
    def resolve(
        cls,
        days: int,
        *,
        now: datetime | None = None,
        granularity_seconds: int = 60,
    ) -> TimeWindow:
        """Resolve a window ending at ``now`` truncated to ``granularity_seconds``.

        Truncating "now" makes repeated computations inside the same
        granule share identical boundaries.
        """
        if days <= 0:
            raise ValueError(f"window days must be positive, got {days}")
        current = now or datetime.now(tz=UTC)
        if current.tzinfo is None:
            current = current.replace(tzinfo=UTC)
        epoch = int(current.timestamp())
        if granularity_seconds > 1:
            epoch -= epoch % granularity_seconds
        until = datetime.fromtimestamp(epoch, tz=UTC)
        return cls(days=days, since=until - timedelta(days=days), until=until)

    def contains(self, ts: datetime) -> bool:
        return self.since <= ts <= self.until


# ─── Activity Models ──────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class RepoRef:
    """A repository as seen by the classifier."""

    owner: str
    name: str
    topics: frozenset[str] = frozenset()
    primary_language: str = ""
    is_fork: bool = False
    stars: int = 0
    forks: int = 0

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"


@dataclass(frozen=True, slots=True)
class RawEvent:
    """One unit of activity as returned by the events API.

    ``repository`` and ``timestamp`` may be None for malformed upstream
    entries; the normalizer drops those.
    """

    kind: EventKind
    repository: RepoRef | None
    timestamp: datetime | None
    metadata: Mapping[str, object] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class Contribution:
    kind: EventKind
    repo: RepoRef
    timestamp: datetime
    weight: float
    is_maintainer_action: bool = False
    ecosystems: frozenset[str] = frozenset()


# ─── Ecosystem Models ─────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class EcosystemDefinition:
    """A curated ecosystem and the signals that qualify a repository for it."""

    tag: str
    description: str = ""
    repos: tuple[str, ...] = ()
    topics: frozenset[str] = frozenset()
    languages: frozenset[str] = frozenset()
    keywords: frozenset[str] = frozenset()
    strict: bool = False  # language+keyword alone never qualifies


@dataclass(frozen=True, slots=True)
class EcosystemSnapshot:
    """Immutable view of the ecosystem table at one point in time."""

    definitions: tuple[EcosystemDefinition, ...]
    source: str = ""
    loaded_at: float = 0.0

    @property
    def tags(self) -> list[str]:
        return [d.tag for d in self.definitions]


@dataclass(frozen=True, slots=True)
class Classification:
    tags: frozenset[str]
    matched_by: dict[str, MatchRuleKind] = field(default_factory=dict)


# ─── Score Models ─────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class ScoreBreakdown:
    base_by_kind: dict[str, float] = field(default_factory=dict)
    maintainer_bonus: float = 0.0
    cross_ecosystem_bonus: float = 0.0
    ecosystem_counts: dict[str, int] = field(default_factory=dict)
    total: float = 0.0


@dataclass(frozen=True, slots=True)
class RepoSummary:
    """Per-repository explanation line for a scorecard."""

    full_name: str
    contributions: int
    weight: float
    ecosystems: list[str] = field(default_factory=list)
    is_fork: bool = False
    maintainer_actions: int = 0
    stars: int = 0
    forks: int = 0
    trust: float = 0.0  # popularity signal in [0, 100]; not part of the score


@dataclass(frozen=True, slots=True)
class Scorecard:
    username: str
    window_days: int
    contributions_considered: int
    breakdown: ScoreBreakdown
    generated_at: str
    partial: bool = False
    partial_reason: str = ""
    tier: str = ""
    explanations: list[str] = field(default_factory=list)
    repositories: list[RepoSummary] = field(default_factory=list)
