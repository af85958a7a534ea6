"""Abstract interfaces for the collaborators the engine reads from."""

from abc import ABC, abstractmethod
from collections.abc import Iterable

from recengine.core.schemas import (
    Examination,
    Learner,
    OfferingKind,
    OfferingOrder,
    OfferingRef,
    Opportunity,
)


class CandidateSource(ABC):
    """Read-only access to the catalog of offerings."""

    @abstractmethod
    async def fetch_active_offerings(
        self, kind: OfferingKind, limit: int, order_by: OfferingOrder | None = None,
    ) -> list[Examination | Opportunity]:
        """Return up to ``limit`` active, not-yet-closed offerings of one kind.

        With ``order_by`` the whole active pool is ordered before the limit
        applies: NEWEST by ``created_at`` desc, MOST_POPULAR by popularity
        then ``created_at``, both desc. Without it the order is unspecified.
        Transport or backend failures must surface as UpstreamUnavailable.
        """

    @abstractmethod
    async def get_offerings(
        self, refs: Iterable[OfferingRef],
    ) -> list[Examination | Opportunity]:
        """Look offerings up by reference. Unknown references are skipped."""


class LearnerDirectory(ABC):
    """Learner lookups owned by the user service."""

    @abstractmethod
    async def get_learner(self, learner_id: str) -> Learner:
        """Return the learner or raise NotFound."""

    @abstractmethod
    async def find_by_interests(
        self, interests: Iterable[str], exclude_id: str, limit: int,
    ) -> list[Learner]:
        """Learners sharing at least one declared interest, excluding ``exclude_id``.

        Like every method here, transport failures must surface as
        UpstreamUnavailable.
        """
