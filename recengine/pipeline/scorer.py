"""Rule-based relevance scoring for examinations and opportunities.

Score starts at ``base_score`` and collects additive bonuses from
RuleScoringConfig. Only candidates strictly above ``threshold`` are kept;
the emitted score is clamped to 1.0.
"""

import logging

from recengine.core.config import GenerationConfig, RuleScoringConfig
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

_ANY_DEGREE = "any"
_ANY_YEAR = 0


def score_offering(
    offering: Examination | Opportunity,
    profile: Profile,
    config: RuleScoringConfig,
) -> ScoredCandidate | None:
    """Score a single offering using rule-based bonuses.

    Args:
        offering: The examination or opportunity to score.
        profile: The learner's preference profile.
        config: Scoring weights from settings.

    Returns:
        ScoredCandidate when the accumulated score is strictly above the
        threshold, otherwise None.
    """
    # Nothing declared and nothing saved: no signal to rank against.
    if _is_blank(profile):
        return None

    if isinstance(offering, Examination):
        score, reasons = _score_exam(offering, profile, config)
    else:
        score, reasons = _score_opportunity(offering, profile, config)

    # Strictly greater: a candidate sitting exactly on the threshold is dropped.
    if score <= config.threshold:
        return None

    return ScoredCandidate(
        offering=offering.ref,
        score=min(score, 1.0),
        reasons=reasons,
        strategy=StrategyName.RULE_BASED,
    )


def score_offerings(
    profile: Profile,
    candidates: list[Examination | Opportunity],
    config: RuleScoringConfig,
) -> list[ScoredCandidate]:
    """Score a batch of offerings, returning survivors sorted by score desc."""
    scored = [s for c in candidates if (s := score_offering(c, profile, config)) is not None]
    scored.sort(key=lambda s: s.score, reverse=True)
    return scored


class RuleBasedStrategy(ScoringStrategy):
    """Fetches active offerings of the learner's target kind and applies the rules."""

    def __init__(self, config: RuleScoringConfig, generation: GenerationConfig) -> None:
        self._config = config
        self._generation = generation

    @property
    def name(self) -> StrategyName:
        return StrategyName.RULE_BASED

    def score(
        self, profile: Profile, candidates: list[Examination | Opportunity],
    ) -> list[ScoredCandidate]:
        return score_offerings(profile, candidates, self._config)

    async def generate(
        self, profile: Profile, context: StrategyContext,
    ) -> list[ScoredCandidate]:
        kind = profile.target_kind
        candidates = await context.source.fetch_active_offerings(
            kind, candidate_limit(kind, self._generation),
        )
        scored = self.score(profile, candidates)
        logger.debug(
            "Rule-based: %d/%d candidates above threshold for '%s'",
            len(scored), len(candidates), profile.learner_id,
        )
        return scored


def _score_exam(
    exam: Examination, profile: Profile, config: RuleScoringConfig,
) -> tuple[float, list[Reason]]:
    score = config.base_score
    reasons: list[Reason] = []

    # Stream alignment
    if profile.pretertiary_attrs is not None:
        stream = profile.pretertiary_attrs.stream
        aligned = _alignment_subjects(stream, config)
        if aligned and any(_contains(subject, a) for subject in exam.subjects for a in aligned):
            score += config.stream_bonus
            reasons.append(_reason(f"Matches your {stream} stream", config.stream_bonus))

    # Interest overlap
    fraction = _interest_fraction(profile, [exam.name, *exam.subjects])
    if fraction > 0:
        score += fraction * config.exam_interest_weight
        reasons.append(_reason("Aligns with your interests", config.exam_interest_weight))

    # Popularity
    if exam.popularity > config.exam_popularity_threshold:
        score += config.popularity_bonus
        reasons.append(_reason("Popular among students", config.popularity_bonus))

    return score, reasons


def _score_opportunity(
    opportunity: Opportunity, profile: Profile, config: RuleScoringConfig,
) -> tuple[float, list[Reason]]:
    score = config.base_score
    reasons: list[Reason] = []

    # Interest overlap
    fields = [opportunity.title, *opportunity.skills, *opportunity.domains]
    fraction = _interest_fraction(profile, fields)
    if fraction > 0:
        score += fraction * config.opportunity_interest_weight
        reasons.append(_reason("Matches your interests", config.opportunity_interest_weight))

    # Degree / year eligibility (internships only); "Any" and 0 admit everyone
    if opportunity.opportunity_type == "internship":
        attrs = profile.tertiary_attrs
        program = attrs.program if attrs is not None else None
        year = attrs.year if attrs is not None else None

        degrees = {d.strip().lower() for d in opportunity.degree_required}
        if _ANY_DEGREE in degrees or (program is not None and program.lower() in degrees):
            score += config.degree_bonus
            reasons.append(_reason("Suitable for your degree", config.degree_bonus))

        years = set(opportunity.year_of_study)
        if _ANY_YEAR in years or (year is not None and year in years):
            score += config.year_bonus
            reasons.append(_reason("Perfect for your year", config.year_bonus))

    # Popularity
    if opportunity.popularity > config.opportunity_popularity_threshold:
        score += config.popularity_bonus
        reasons.append(_reason("Popular opportunity", config.popularity_bonus))

    return score, reasons


def _is_blank(profile: Profile) -> bool:
    return not (
        profile.interests or profile.saved
        or profile.tertiary_attrs or profile.pretertiary_attrs
    )


def _interest_fraction(profile: Profile, fields: list[str]) -> float:
    """Share of declared interests found (substring, case-insensitive) in any field."""
    if not profile.interests:
        return 0.0
    matched = sum(
        1 for interest in profile.interests
        if any(_contains(field, interest) for field in fields)
    )
    return matched / len(profile.interests)


def _alignment_subjects(stream: str, config: RuleScoringConfig) -> list[str]:
    wanted = stream.strip().lower()
    for name, subjects in config.stream_alignment.items():
        if name.strip().lower() == wanted:
            return subjects
    return []


def _contains(haystack: str, needle: str) -> bool:
    return needle.lower() in haystack.lower()


def _reason(text: str, weight: float) -> Reason:
    return Reason(text=text, weight=weight, strategy=StrategyName.RULE_BASED)
