"""Neighbor-based (collaborative) scoring from what similar learners saved.

Candidates come only from neighbors' saved offerings, never from the
wider catalog.
"""

import logging

from recengine.core.config import CollaborativeConfig
from recengine.core.schemas import (
    Learner,
    OfferingRef,
    Profile,
    Reason,
    ScoredCandidate,
    StrategyName,
)
from recengine.pipeline.strategy import ScoringStrategy, StrategyContext

logger = logging.getLogger(__name__)


def score_co_saves(
    profile: Profile,
    neighbors: list[Learner],
    min_co_saves: int = 2,
) -> list[ScoredCandidate]:
    """Score offerings of the learner's target kind saved by several neighbors.

    score = min(neighbor_count / len(neighbors), 1.0). Offerings the learner
    already saved are skipped. Output keeps first-seen order.
    """
    neighbors = [n for n in neighbors if n.id != profile.learner_id]
    if not neighbors:
        return []

    kind = profile.target_kind
    counts: dict[OfferingRef, int] = {}
    for neighbor in neighbors:
        # A neighbor who saved the same offering twice still counts once.
        for ref in dict.fromkeys(neighbor.saved):
            if ref.kind is kind:
                counts[ref] = counts.get(ref, 0) + 1

    total = len(neighbors)
    return [
        ScoredCandidate(
            offering=ref,
            score=min(count / total, 1.0),
            reasons=[Reason(
                text=f"Saved by {count} of {total} learners with similar interests",
                weight=0.5,
                strategy=StrategyName.COLLABORATIVE,
            )],
            strategy=StrategyName.COLLABORATIVE,
        )
        for ref, count in counts.items()
        if count >= min_co_saves and ref not in profile.saved
    ]


class CollaborativeStrategy(ScoringStrategy):
    """Recommends what learners with overlapping interests have saved."""

    def __init__(self, config: CollaborativeConfig) -> None:
        self._config = config

    @property
    def name(self) -> StrategyName:
        return StrategyName.COLLABORATIVE

    def score(self, profile: Profile, neighbors: list[Learner]) -> list[ScoredCandidate]:
        return score_co_saves(profile, neighbors, self._config.min_co_saves)

    async def generate(
        self, profile: Profile, context: StrategyContext,
    ) -> list[ScoredCandidate]:
        if not profile.interests:
            return []
        neighbors = await context.directory.find_by_interests(
            sorted(profile.interests),
            exclude_id=profile.learner_id,
            limit=self._config.max_neighbors,
        )
        scored = self.score(profile, neighbors)
        logger.debug(
            "Collaborative: %d candidates from %d neighbors for '%s'",
            len(scored), len(neighbors), profile.learner_id,
        )
        return scored
