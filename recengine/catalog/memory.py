"""In-memory catalog and learner directory, loadable from a YAML snapshot.

Expected YAML layout::

    exams:
      - id: jee-main
        name: JEE Main
        subjects: [Physics, Chemistry, Maths]
        popularity: 150
        deadline: 2030-01-15T00:00:00
    opportunities:
      - id: hack-1
        title: Smart India Hackathon
        opportunity_type: hackathon
        skills: [Python]
    learners:
      - id: u1
        stage: pre_tertiary
        stream: Science
        interests: [Physics]
        saved: [{kind: exam, id: jee-main}]
"""

import logging
from collections.abc import Callable, Iterable
from datetime import datetime
from pathlib import Path
from typing import Any

import yaml
from pydantic import TypeAdapter

from recengine.catalog.base import CandidateSource, LearnerDirectory
from recengine.core.errors import NotFound
from recengine.core.schemas import (
    Examination,
    Learner,
    Offering,
    OfferingKind,
    OfferingOrder,
    OfferingRef,
    Opportunity,
)

logger = logging.getLogger(__name__)

_OFFERINGS = TypeAdapter(list[Offering])
_LEARNERS = TypeAdapter(list[Learner])


class InMemoryCatalog(CandidateSource, LearnerDirectory):
    """Serves offerings and learners from process memory.

    ``clock`` decides which offerings are still open; tests pin it.
    """

    def __init__(
        self,
        offerings: Iterable[Examination | Opportunity] = (),
        learners: Iterable[Learner] = (),
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._offerings: dict[tuple[str, str], Examination | Opportunity] = {
            o.ref.key: o for o in offerings
        }
        self._learners: dict[str, Learner] = {u.id: u for u in learners}
        self._clock = clock

    @classmethod
    def from_yaml(cls, path: str | Path) -> "InMemoryCatalog":
        """Load a catalog snapshot from a YAML file."""
        path = Path(path)
        if not path.exists():
            msg = f"Catalog file not found: {path}"
            raise FileNotFoundError(msg)
        raw: dict[str, Any] = yaml.safe_load(path.read_text()) or {}
        exams = [{**e, "kind": "exam"} for e in raw.get("exams") or []]
        opportunities = [{**o, "kind": "opportunity"} for o in raw.get("opportunities") or []]
        offerings = _OFFERINGS.validate_python(exams + opportunities)
        learners = _LEARNERS.validate_python(raw.get("learners") or [])
        logger.info(
            "Loaded catalog from %s: %d offerings, %d learners",
            path, len(offerings), len(learners),
        )
        return cls(offerings, learners)

    def add_offering(self, offering: Examination | Opportunity) -> None:
        self._offerings[offering.ref.key] = offering

    def add_learner(self, learner: Learner) -> None:
        self._learners[learner.id] = learner

    async def fetch_active_offerings(
        self, kind: OfferingKind, limit: int, order_by: OfferingOrder | None = None,
    ) -> list[Examination | Opportunity]:
        now = self._clock()
        result = [
            o for o in self._offerings.values()
            if o.kind == kind.value and o.is_open(now)
        ]
        if order_by is OfferingOrder.NEWEST:
            result.sort(key=lambda o: o.created_at, reverse=True)
        elif order_by is OfferingOrder.MOST_POPULAR:
            result.sort(key=lambda o: (o.popularity, o.created_at), reverse=True)
        return result[:limit]

    async def get_offerings(
        self, refs: Iterable[OfferingRef],
    ) -> list[Examination | Opportunity]:
        result: list[Examination | Opportunity] = []
        for ref in refs:
            offering = self._offerings.get(ref.key)
            if offering is None:
                logger.debug("Unknown offering %s:%s skipped", ref.kind.value, ref.id)
                continue
            result.append(offering)
        return result

    async def get_learner(self, learner_id: str) -> Learner:
        learner = self._learners.get(learner_id)
        if learner is None:
            msg = f"Learner '{learner_id}' not found"
            raise NotFound(msg)
        return learner

    async def find_by_interests(
        self, interests: Iterable[str], exclude_id: str, limit: int,
    ) -> list[Learner]:
        wanted = set(interests)
        if not wanted:
            return []
        result = [
            u for u in self._learners.values()
            if u.id != exclude_id and wanted.intersection(u.interests)
        ]
        return result[:limit]
