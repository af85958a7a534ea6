"""Hybrid merger: fold several strategies' outputs into one ranked list."""

import logging

from recengine.core.schemas import ScoredCandidate, StrategyName

logger = logging.getLogger(__name__)

DEFAULT_CAP = 50


def merge(
    scored_lists: list[list[ScoredCandidate]],
    cap: int = DEFAULT_CAP,
) -> list[ScoredCandidate]:
    """Deduplicate by offering, average repeated scores, rank, and truncate.

    The first occurrence of an offering is kept as-is. Each repeat sets the
    score to the mean of the stored and incoming scores, appends the
    incoming reasons, and relabels the entry ``hybrid``. Sorting is stable,
    so equal scores keep first-seen order. Inputs are not modified.
    """
    merged: dict[tuple[str, str], ScoredCandidate] = {}
    repeats = 0

    for scored in scored_lists:
        for candidate in scored:
            key = candidate.offering.key
            existing = merged.get(key)
            if existing is None:
                merged[key] = candidate
                continue
            repeats += 1
            merged[key] = existing.model_copy(update={
                "score": (existing.score + candidate.score) / 2,
                "reasons": [*existing.reasons, *candidate.reasons],
                "strategy": StrategyName.HYBRID,
            })

    ranked = sorted(merged.values(), key=lambda s: s.score, reverse=True)
    if repeats:
        logger.debug("Merged %d repeated candidates into %d entries", repeats, len(merged))
    return ranked[:cap]
