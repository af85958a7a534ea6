"""Orchestrator: wires learner lookup, profile, strategies, merger, and store write.

Generation data flow:
  1. Learner lookup (errors surface to the caller)
  2. Profile extraction
  3. Strategy fan-out, concurrent, each under its own timeout
  4. Hybrid merge (the only join point)
  5. Atomic replace of the learner's active recommendation set

Generation runs are serialized per learner; different learners never wait
on each other.
"""

import asyncio
import logging
import sqlite3
import weakref
from collections.abc import Callable
from datetime import datetime

from recengine.catalog.base import CandidateSource, LearnerDirectory
from recengine.core.config import Settings
from recengine.core.db import (
    learner_analytics,
    list_recommendations,
    list_unseen_top,
    replace_all,
    strategy_metrics,
)
from recengine.core.errors import InvalidArgument, UpstreamUnavailable
from recengine.core.schemas import (
    Examination,
    GenerationResult,
    InteractionKind,
    KindAnalytics,
    Learner,
    MetricsSummary,
    OfferingKind,
    OfferingOrder,
    Opportunity,
    Profile,
    RecommendationRecord,
    ScoredCandidate,
    StrategyName,
)
from recengine.pipeline.collaborative import CollaborativeStrategy
from recengine.pipeline.content import ContentBasedStrategy
from recengine.pipeline.merger import merge
from recengine.pipeline.scorer import RuleBasedStrategy
from recengine.pipeline.strategy import ScoringStrategy, StrategyContext
from recengine.pipeline.tracker import InteractionTracker
from recengine.profile.extractor import extract_profile

logger = logging.getLogger(__name__)

_STRATEGY_FACTORIES: dict[StrategyName, Callable[[Settings], ScoringStrategy]] = {
    StrategyName.RULE_BASED: lambda s: RuleBasedStrategy(s.rules, s.generation),
    StrategyName.CONTENT_BASED: lambda s: ContentBasedStrategy(s.content, s.generation),
    StrategyName.COLLABORATIVE: lambda s: CollaborativeStrategy(s.collaborative),
}


def build_strategies(settings: Settings) -> list[ScoringStrategy]:
    """Instantiate the configured strategies, in configured order."""
    return [_STRATEGY_FACTORIES[name](settings) for name in settings.generation.strategies]


class LearnerLocks:
    """One asyncio.Lock per learner so generation runs for a learner never overlap.

    Locks are held weakly: once no run holds or waits on a learner's lock,
    it is dropped.
    """

    def __init__(self) -> None:
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    def __len__(self) -> int:
        return len(self._locks)

    def for_learner(self, learner_id: str) -> asyncio.Lock:
        lock = self._locks.get(learner_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[learner_id] = lock
        return lock


async def run_strategy(
    strategy: ScoringStrategy,
    profile: Profile,
    context: StrategyContext,
    timeout_s: float,
) -> tuple[list[ScoredCandidate], str | None]:
    """Run one strategy, absorbing timeouts and failures.

    Returns (candidates, warning). A failed strategy contributes no
    candidates; the warning says why. Unexpected errors are logged with
    their traceback so one broken strategy cannot abort the run.
    """
    name = strategy.name.value
    try:
        scored = await asyncio.wait_for(strategy.generate(profile, context), timeout_s)
    except asyncio.TimeoutError:
        warning = f"{name} timed out after {timeout_s:g}s"
    except UpstreamUnavailable as e:
        warning = f"{name} upstream unavailable: {e}"
    except Exception as e:
        logger.warning(
            "Strategy %s for '%s' raised unexpectedly", name, profile.learner_id, exc_info=True,
        )
        warning = f"{name} failed: {type(e).__name__}: {e}"
    else:
        return scored, None

    logger.warning("Strategy %s for '%s' contributed nothing: %s", name, profile.learner_id, warning)
    return [], warning


class RecommendationEngine:
    """Entry point for generation, serving, interactions, and reporting.

    Usage::

        engine = RecommendationEngine(catalog, catalog, conn, settings)
        result = await engine.generate("learner-1")
        records = await engine.list_for_learner("learner-1", limit=10)
    """

    def __init__(
        self,
        source: CandidateSource,
        directory: LearnerDirectory,
        conn: sqlite3.Connection,
        settings: Settings,
        strategies: list[ScoringStrategy] | None = None,
    ) -> None:
        self._context = StrategyContext(source, directory)
        self._conn = conn
        self._settings = settings
        self._strategies = strategies if strategies is not None else build_strategies(settings)
        self._locks = LearnerLocks()
        self._tracker = InteractionTracker(conn)

    @property
    def strategies(self) -> list[ScoringStrategy]:
        return list(self._strategies)

    async def generate(self, learner_id: str, now: datetime | None = None) -> GenerationResult:
        """Run all strategies for a learner and replace their stored set."""
        async with self._locks.for_learner(learner_id):
            return await self._generate(learner_id, now)

    async def _generate(self, learner_id: str, now: datetime | None) -> GenerationResult:
        started_at = datetime.now()
        generation = self._settings.generation

        # Step 1: Learner lookup
        learner = await self._get_learner(learner_id)

        # Step 2: Profile
        profile = extract_profile(learner)

        # Step 3: Strategy fan-out
        outcomes = await asyncio.gather(*(
            run_strategy(s, profile, self._context, generation.strategy_timeout_s)
            for s in self._strategies
        ))
        by_strategy = {
            s.name.value: len(scored) for s, (scored, _) in zip(self._strategies, outcomes)
        }
        warnings = [w for _, w in outcomes if w is not None]

        # Step 4: Merge
        merged = merge([scored for scored, _ in outcomes], cap=generation.merge_cap)

        # Step 5: Replace stored set
        replace_all(
            self._conn, learner_id, merged, now=now, expiry_days=generation.expiry_days,
        )

        finished_at = datetime.now()
        logger.info(
            "Generated %d recommendations for '%s' (%s)",
            len(merged), learner_id,
            ", ".join(f"{k}={v}" for k, v in by_strategy.items()),
        )
        return GenerationResult(
            learner_id=learner_id,
            generated_count=len(merged),
            by_strategy=by_strategy,
            warnings=warnings,
            started_at=started_at,
            finished_at=finished_at,
        )

    async def list_for_learner(
        self,
        learner_id: str,
        kind: OfferingKind | None = None,
        limit: int = 20,
        now: datetime | None = None,
    ) -> list[RecommendationRecord]:
        """Servable records for a learner, best first, with offering details attached."""
        self._check_limit(limit)
        await self._get_learner(learner_id)
        records = list_recommendations(self._conn, learner_id, kind=kind, limit=limit, now=now)
        return await self._with_details(records)

    async def top(
        self, learner_id: str, limit: int = 10, now: datetime | None = None,
    ) -> list[RecommendationRecord]:
        """Servable records the learner has not viewed yet, best first."""
        self._check_limit(limit)
        await self._get_learner(learner_id)
        records = list_unseen_top(self._conn, learner_id, limit=limit, now=now)
        return await self._with_details(records)

    def record_interaction(
        self, record_id: int, kind: str | InteractionKind, now: datetime | None = None,
    ) -> RecommendationRecord:
        return self._tracker.record(record_id, kind, now=now)

    async def trending(
        self, kind: OfferingKind | None = None, limit: int = 10,
    ) -> list[Examination | Opportunity]:
        """Open offerings independent of any learner.

        Exams rank by creation date; opportunities by popularity, then
        creation date. The combined list is ordered by creation date.
        """
        self._check_limit(limit)
        source = self._context.source
        items: list[Examination | Opportunity] = []

        if kind in (None, OfferingKind.EXAM):
            items.extend(await source.fetch_active_offerings(
                OfferingKind.EXAM, limit, order_by=OfferingOrder.NEWEST,
            ))

        if kind in (None, OfferingKind.OPPORTUNITY):
            items.extend(await source.fetch_active_offerings(
                OfferingKind.OPPORTUNITY, limit, order_by=OfferingOrder.MOST_POPULAR,
            ))

        items.sort(key=lambda o: o.created_at, reverse=True)
        return items[:limit]

    async def similar_learners(self, learner_id: str, limit: int = 10) -> list[Learner]:
        """Learners whose declared interests overlap this learner's."""
        self._check_limit(limit)
        learner = await self._get_learner(learner_id)
        profile = extract_profile(learner)
        if not profile.interests:
            return []
        return await self._context.directory.find_by_interests(
            sorted(profile.interests), exclude_id=learner_id, limit=limit,
        )

    async def analytics(self, learner_id: str) -> list[KindAnalytics]:
        await self._get_learner(learner_id)
        return learner_analytics(self._conn, learner_id)

    def metrics(self, now: datetime | None = None) -> MetricsSummary:
        return strategy_metrics(self._conn, now=now)

    async def _with_details(
        self, records: list[RecommendationRecord],
    ) -> list[RecommendationRecord]:
        # Offerings the source no longer knows keep offering_details=None.
        if not records:
            return records
        offerings = await self._context.source.get_offerings([r.offering for r in records])
        by_key = {o.ref.key: o for o in offerings}
        return [
            r.model_copy(update={"offering_details": by_key.get(r.offering.key)})
            for r in records
        ]

    async def _get_learner(self, learner_id: str) -> Learner:
        timeout_s = self._settings.generation.strategy_timeout_s
        try:
            return await asyncio.wait_for(
                self._context.directory.get_learner(learner_id), timeout_s,
            )
        except asyncio.TimeoutError:
            msg = f"Learner lookup for '{learner_id}' timed out after {timeout_s:g}s"
            raise UpstreamUnavailable(msg) from None

    def _check_limit(self, limit: int) -> None:
        max_limit = self._settings.api.max_limit
        if not 1 <= limit <= max_limit:
            msg = f"limit must be between 1 and {max_limit}, got {limit}"
            raise InvalidArgument(msg)
