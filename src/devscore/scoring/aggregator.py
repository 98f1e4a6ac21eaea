"""Reduce classified contributions into a ScoreBreakdown.

Scoring components:
- base_by_kind[k]: sum of contribution weights of kind k (forks scaled by
  ``fork_discount``)
- maintainer_bonus: ``rate * maintainer_actions``, capped at ``maintainer_bonus_cap``
- cross_ecosystem_bonus: ``scale * sqrt(distinct_ecosystems)``, capped at
  ``cross_ecosystem_cap``; each extra ecosystem adds less than the previous one
- total: sum of the above, never negative

Every sum goes through ``math.fsum``, which is exactly rounded, so the
result is bit-identical under any permutation of the input.
"""

from __future__ import annotations

import math
from collections import Counter, defaultdict
from collections.abc import Iterable

from devscore.config import ScoringConfig
from devscore.models import Contribution, ScoreBreakdown


def effective_weight(contribution: Contribution, config: ScoringConfig) -> float:
    if contribution.repo.is_fork:
        return contribution.weight * config.fork_discount
    return contribution.weight


def maintainer_bonus(maintainer_actions: int, config: ScoringConfig) -> float:
    return min(config.maintainer_bonus_rate * maintainer_actions, config.maintainer_bonus_cap)


def cross_ecosystem_bonus(distinct_ecosystems: int, config: ScoringConfig) -> float:
    if distinct_ecosystems <= 0:
        return 0.0
    return min(
        config.cross_ecosystem_scale * math.sqrt(distinct_ecosystems),
        config.cross_ecosystem_cap,
    )


def aggregate(contributions: Iterable[Contribution], config: ScoringConfig) -> ScoreBreakdown:
    """Compute the breakdown. Empty input yields an all-zero breakdown."""
    weights_by_kind: dict[str, list[float]] = defaultdict(list)
    ecosystem_counts: Counter[str] = Counter()
    maintainer_actions = 0

    for contribution in contributions:
        weights_by_kind[contribution.kind.value].append(effective_weight(contribution, config))
        ecosystem_counts.update(contribution.ecosystems)
        if contribution.is_maintainer_action:
            maintainer_actions += 1

    base_by_kind = {kind: math.fsum(weights) for kind, weights in sorted(weights_by_kind.items())}
    m_bonus = maintainer_bonus(maintainer_actions, config)
    x_bonus = cross_ecosystem_bonus(len(ecosystem_counts), config)
    total = math.fsum([*base_by_kind.values(), m_bonus, x_bonus])

    return ScoreBreakdown(
        base_by_kind=base_by_kind,
        maintainer_bonus=m_bonus,
        cross_ecosystem_bonus=x_bonus,
        ecosystem_counts=dict(sorted(ecosystem_counts.items())),
        total=max(0.0, total),
    )
