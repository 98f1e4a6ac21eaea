"""Human-readable explanations, tiers, and per-repository summaries."""

from __future__ import annotations

import math
from collections import defaultdict
from collections.abc import Sequence

from devscore.config import ScoringConfig
from devscore.models import Contribution, RepoSummary, ScoreBreakdown
from devscore.scoring.aggregator import effective_weight


def repo_trust(stars: int, forks: int) -> float:
    """Popularity-based trust in [0, 100] from star and fork counts (log scale)."""
    return min(100.0, math.log10(stars + 1) * 10 + math.log10(forks + 1) * 5)


def tier_for(total: float, config: ScoringConfig) -> str:
    """Map a total to the first tier whose threshold it reaches (thresholds descending).

    Returns an empty string when the total is below every threshold.
    """
    for threshold, name in config.tiers:
        if total >= threshold:
            return name
    return ""


def explain(
    breakdown: ScoreBreakdown,
    contributions: Sequence[Contribution],
    config: ScoringConfig,
) -> list[str]:
    """List the reasons behind a breakdown, one line per scoring component."""
    reasons: list[str] = []
    for kind, value in breakdown.base_by_kind.items():
        count = sum(1 for c in contributions if c.kind.value == kind)
        reasons.append(f"{count} {kind} contribution(s) worth {value:.2f}")

    forks = sum(1 for c in contributions if c.repo.is_fork)
    if forks and config.fork_discount != 1.0:
        reasons.append(f"{forks} contribution(s) on forks scaled by {config.fork_discount:g}")

    maintainer_actions = sum(1 for c in contributions if c.is_maintainer_action)
    if maintainer_actions:
        line = (
            f"Maintainer bonus +{breakdown.maintainer_bonus:.2f} "
            f"({maintainer_actions} review/merge action(s))"
        )
        if math.isclose(breakdown.maintainer_bonus, config.maintainer_bonus_cap):
            line += ", capped"
        reasons.append(line)

    distinct = len(breakdown.ecosystem_counts)
    if distinct:
        tags = ", ".join(breakdown.ecosystem_counts)
        reasons.append(
            f"Cross-ecosystem bonus +{breakdown.cross_ecosystem_bonus:.2f} "
            f"({distinct} ecosystem(s): {tags})"
        )
    return reasons


def summarize_repositories(
    contributions: Sequence[Contribution],
    config: ScoringConfig,
    *,
    limit: int = 10,
) -> list[RepoSummary]:
    """Per-repository totals, heaviest first, ties broken by name."""
    grouped: dict[str, list[Contribution]] = defaultdict(list)
    for contribution in contributions:
        grouped[contribution.repo.full_name].append(contribution)

    summaries = [
        RepoSummary(
            full_name=full_name,
            contributions=len(items),
            weight=math.fsum(effective_weight(c, config) for c in items),
            ecosystems=sorted(items[0].ecosystems),
            is_fork=items[0].repo.is_fork,
            maintainer_actions=sum(1 for c in items if c.is_maintainer_action),
            stars=items[0].repo.stars,
            forks=items[0].repo.forks,
            trust=repo_trust(items[0].repo.stars, items[0].repo.forks),
        )
        for full_name, items in grouped.items()
    ]
    summaries.sort(key=lambda s: (-s.weight, s.full_name))
    return summaries[:limit]
