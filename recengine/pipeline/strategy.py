"""Abstract base class for scoring strategies."""

from abc import ABC, abstractmethod

from recengine.catalog.base import CandidateSource, LearnerDirectory
from recengine.core.config import GenerationConfig
from recengine.core.schemas import OfferingKind, Profile, ScoredCandidate, StrategyName


class StrategyContext:
    """Collaborators a strategy may read from during a generation run."""

    def __init__(self, source: CandidateSource, directory: LearnerDirectory) -> None:
        self.source = source
        self.directory = directory


class ScoringStrategy(ABC):
    """Base class that every scoring strategy must implement.

    ``generate`` fetches whatever inputs the strategy needs and scores them.
    Implementations must not share mutable state: the orchestrator runs
    them concurrently and joins the results in the merger.
    """

    @property
    @abstractmethod
    def name(self) -> StrategyName:
        """Identifier recorded on every candidate this strategy emits."""

    @abstractmethod
    async def generate(
        self, profile: Profile, context: StrategyContext,
    ) -> list[ScoredCandidate]:
        """Return scored candidates for ``profile``. Empty input yields an empty list."""


def candidate_limit(kind: OfferingKind, generation: GenerationConfig) -> int:
    """How many active offerings of ``kind`` a strategy may pull per run."""
    if kind is OfferingKind.EXAM:
        return generation.exam_candidate_limit
    return generation.opportunity_candidate_limit
