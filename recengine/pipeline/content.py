"""Content-based scoring: similarity of unseen offerings to what the learner saved."""

import logging

from pydantic import BaseModel, ConfigDict

from recengine.core.config import ContentScoringConfig, GenerationConfig
from recengine.core.schemas import (
    Examination,
    Opportunity,
    Profile,
    Reason,
    ScoredCandidate,
    StrategyName,
)
from recengine.pipeline.strategy import ScoringStrategy, StrategyContext, candidate_limit

logger = logging.getLogger(__name__)


class PreferenceSet(BaseModel):
    """Attributes seen across a learner's saved offerings (no frequencies)."""

    model_config = ConfigDict(frozen=True)

    subjects: frozenset[str] = frozenset()
    skills: frozenset[str] = frozenset()
    domains: frozenset[str] = frozenset()
    tags: frozenset[str] = frozenset()
    exam_types: frozenset[str] = frozenset()
    companies: frozenset[str] = frozenset()
    organizers: frozenset[str] = frozenset()

    @property
    def is_empty(self) -> bool:
        return not (
            self.subjects or self.skills or self.domains or self.tags
            or self.exam_types or self.companies or self.organizers
        )


def analyze_preferences(saved: list[Examination | Opportunity]) -> PreferenceSet:
    """Collect the subjects, skills, domains, tags and sponsors of saved offerings."""
    subjects: set[str] = set()
    skills: set[str] = set()
    domains: set[str] = set()
    tags: set[str] = set()
    exam_types: set[str] = set()
    companies: set[str] = set()
    organizers: set[str] = set()

    for offering in saved:
        tags.update(offering.tags)
        if isinstance(offering, Examination):
            subjects.update(offering.subjects)
            if offering.exam_type:
                exam_types.add(offering.exam_type)
        else:
            skills.update(offering.skills)
            domains.update(offering.domains)
            if offering.company:
                companies.add(offering.company)
            if offering.organizer:
                organizers.add(offering.organizer)

    return PreferenceSet(
        subjects=frozenset(subjects),
        skills=frozenset(skills),
        domains=frozenset(domains),
        tags=frozenset(tags),
        exam_types=frozenset(exam_types),
        companies=frozenset(companies),
        organizers=frozenset(organizers),
    )


def content_similarity(
    offering: Examination | Opportunity,
    preferences: PreferenceSet,
    config: ContentScoringConfig,
) -> tuple[float, list[Reason]]:
    """Weighted-average facet overlap between an offering and the preferences.

    A facet counts only when the offering carries it; its contribution is
    the share of the offering's values also found in the preferences.
    Returns (similarity, reasons for the facets that overlapped).
    """
    weighted = 0.0
    total_weight = 0.0
    reasons: list[Reason] = []

    for label, weight, values, preferred in _facets(offering, preferences, config):
        if not values:
            continue
        overlap = len(values & preferred) / len(values)
        weighted += overlap * weight
        total_weight += weight
        if overlap > 0:
            reasons.append(Reason(
                text=f"Shares {label} with your saved offerings",
                weight=weight,
                strategy=StrategyName.CONTENT_BASED,
            ))

    if total_weight == 0:
        return 0.0, []
    return weighted / total_weight, reasons


def score_similar(
    profile: Profile,
    candidates: list[Examination | Opportunity],
    preferences: PreferenceSet,
    config: ContentScoringConfig,
) -> list[ScoredCandidate]:
    """Score unseen candidates, keeping those strictly above the similarity threshold."""
    if preferences.is_empty:
        return []

    result: list[ScoredCandidate] = []
    for candidate in candidates:
        if candidate.ref in profile.saved:
            continue
        similarity, reasons = content_similarity(candidate, preferences, config)
        if similarity > config.threshold:
            result.append(ScoredCandidate(
                offering=candidate.ref,
                score=similarity,
                reasons=reasons,
                strategy=StrategyName.CONTENT_BASED,
            ))
    result.sort(key=lambda s: s.score, reverse=True)
    return result


class ContentBasedStrategy(ScoringStrategy):
    """Recommends offerings that resemble the ones the learner already saved.

    A learner with nothing saved gets no content-based candidates.
    """

    def __init__(self, config: ContentScoringConfig, generation: GenerationConfig) -> None:
        self._config = config
        self._generation = generation

    @property
    def name(self) -> StrategyName:
        return StrategyName.CONTENT_BASED

    def score(
        self,
        profile: Profile,
        candidates: list[Examination | Opportunity],
        preferences: PreferenceSet,
    ) -> list[ScoredCandidate]:
        return score_similar(profile, candidates, preferences, self._config)

    async def generate(
        self, profile: Profile, context: StrategyContext,
    ) -> list[ScoredCandidate]:
        if not profile.saved:
            return []

        saved_refs = sorted(profile.saved, key=lambda r: r.key)
        saved = await context.source.get_offerings(saved_refs)
        preferences = analyze_preferences(saved)

        kind = profile.target_kind
        candidates = await context.source.fetch_active_offerings(
            kind, candidate_limit(kind, self._generation),
        )
        scored = self.score(profile, candidates, preferences)
        logger.debug(
            "Content-based: %d/%d candidates similar to %d saved for '%s'",
            len(scored), len(candidates), len(saved), profile.learner_id,
        )
        return scored


def _facets(
    offering: Examination | Opportunity,
    preferences: PreferenceSet,
    config: ContentScoringConfig,
) -> list[tuple[str, float, set[str], frozenset[str]]]:
    if isinstance(offering, Examination):
        return [("subjects", config.subjects_weight, set(offering.subjects), preferences.subjects)]
    return [
        ("skills", config.skills_weight, set(offering.skills), preferences.skills),
        ("domains", config.domains_weight, set(offering.domains), preferences.domains),
        ("company", config.company_weight, _single(offering.company), preferences.companies),
        ("organizer", config.organizer_weight, _single(offering.organizer), preferences.organizers),
    ]


def _single(value: str | None) -> set[str]:
    return {value} if value else set()
