"""Tests for the rule-based scorer."""

import pytest

from recengine.core.config import GenerationConfig, RuleScoringConfig
from recengine.core.schemas import (
    Examination,
    OfferingKind,
    OfferingRef,
    Opportunity,
    PreTertiaryAttrs,
    Profile,
    Stage,
    StrategyName,
    TertiaryAttrs,
)
from recengine.pipeline.scorer import RuleBasedStrategy, score_offering, score_offerings


def _exam(
    *,
    id: str = "e1",
    name: str = "National Entrance Test",
    subjects: list[str] | None = None,
    popularity: int = 0,
) -> Examination:
    return Examination(
        id=id,
        name=name,
        subjects=subjects if subjects is not None else ["Physics", "Chemistry"],
        popularity=popularity,
    )


def _opportunity(
    *,
    id: str = "o1",
    title: str = "Data Internship",
    opportunity_type: str = "internship",
    skills: list[str] | None = None,
    domains: list[str] | None = None,
    degree_required: list[str] | None = None,
    year_of_study: list[int] | None = None,
    popularity: int = 0,
) -> Opportunity:
    return Opportunity(
        id=id,
        title=title,
        opportunity_type=opportunity_type,  # type: ignore[arg-type]
        skills=skills or [],
        domains=domains or [],
        degree_required=degree_required or [],
        year_of_study=year_of_study or [],
        popularity=popularity,
    )


def _school_profile(*, stream: str | None = "Science", interests: set[str] | None = None) -> Profile:
    return Profile(
        learner_id="u1",
        stage=Stage.PRE_TERTIARY,
        interests=frozenset(interests or set()),
        pretertiary_attrs=PreTertiaryAttrs(stream=stream) if stream else None,
    )


def _university_profile(
    *,
    program: str | None = "B.Tech",
    year: int | None = 3,
    interests: set[str] | None = None,
) -> Profile:
    return Profile(
        learner_id="u2",
        stage=Stage.TERTIARY,
        interests=frozenset(interests or set()),
        tertiary_attrs=TertiaryAttrs(program=program, year=year),
    )


def _config(**kwargs: object) -> RuleScoringConfig:
    return RuleScoringConfig(**kwargs)  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# Examinations
# ---------------------------------------------------------------------------


class TestExamRules:
    def test_full_match_clamped_to_one(self) -> None:
        """Base 0.5 + stream 0.3 + interest 0.2 + popularity 0.1 = 1.1 → 1.0."""
        profile = _school_profile(interests={"Physics"})
        exam = _exam(subjects=["Physics", "Chemistry"], popularity=150)
        result = score_offering(exam, profile, _config())
        assert result is not None
        assert result.score == 1.0
        assert result.strategy is StrategyName.RULE_BASED
        texts = [r.text for r in result.reasons]
        assert "Matches your Science stream" in texts
        assert "Aligns with your interests" in texts
        assert "Popular among students" in texts

    def test_stream_alignment_alone_passes(self) -> None:
        result = score_offering(_exam(), _school_profile(), _config())
        assert result is not None
        assert result.score == pytest.approx(0.8)

    def test_stream_alignment_is_substring_case_insensitive(self) -> None:
        exam = _exam(subjects=["applied mathsematics"])
        result = score_offering(exam, _school_profile(), _config())
        assert result is not None

    def test_unknown_stream_no_alignment(self) -> None:
        result = score_offering(_exam(), _school_profile(stream="Arts"), _config())
        assert result is None

    def test_stream_lookup_ignores_case(self) -> None:
        result = score_offering(_exam(), _school_profile(stream="science"), _config())
        assert result is not None

    def test_partial_interest_overlap_is_fractional(self) -> None:
        profile = _school_profile(stream=None, interests={"Physics", "Law"})
        exam = _exam(popularity=150)
        # 0.5 + 0.2 * 1/2 + 0.1
        result = score_offering(exam, profile, _config())
        assert result is not None
        assert result.score == pytest.approx(0.7)

    def test_interest_matches_exam_name(self) -> None:
        profile = _school_profile(stream=None, interests={"entrance"})
        exam = _exam(name="National Entrance Test", subjects=["History"], popularity=150)
        result = score_offering(exam, profile, _config())
        assert result is not None
        assert result.score == pytest.approx(0.8)

    def test_popularity_at_threshold_gives_no_bonus(self) -> None:
        profile = _school_profile(stream=None, interests={"Physics"})
        result = score_offering(_exam(popularity=100), profile, _config())
        # 0.5 + 0.2 = 0.7, no popularity bonus
        assert result is not None
        assert result.score == pytest.approx(0.7)


# ---------------------------------------------------------------------------
# Threshold edge cases
# ---------------------------------------------------------------------------


class TestThreshold:
    def test_exactly_threshold_excluded(self) -> None:
        """0.5 base + 0.1 popularity lands exactly on 0.6 and is dropped."""
        profile = _school_profile(stream=None, interests={"Law"})
        result = score_offering(_exam(popularity=150), profile, _config())
        assert result is None

    def test_just_above_threshold_included(self) -> None:
        profile = _school_profile(stream=None, interests={"Law"})
        config = _config(popularity_bonus=0.10001)
        result = score_offering(_exam(popularity=150), profile, config)
        assert result is not None
        assert result.score == pytest.approx(0.60001)

    def test_base_score_only_excluded(self) -> None:
        result = score_offering(_exam(), _school_profile(stream=None), _config())
        assert result is None


# ---------------------------------------------------------------------------
# Opportunities
# ---------------------------------------------------------------------------


class TestOpportunityRules:
    def test_degree_and_year_match(self) -> None:
        opp = _opportunity(degree_required=["B.Tech"], year_of_study=[3])
        result = score_offering(opp, _university_profile(), _config())
        assert result is not None
        assert result.score == pytest.approx(0.9)
        texts = [r.text for r in result.reasons]
        assert texts == ["Suitable for your degree", "Perfect for your year"]

    def test_any_degree_and_year_zero_are_wildcards(self) -> None:
        opp = _opportunity(degree_required=["Any"], year_of_study=[0])
        result = score_offering(opp, _university_profile(program="B.Sc", year=1), _config())
        assert result is not None
        assert result.score == pytest.approx(0.9)

    def test_wildcards_apply_without_declared_program_or_year(self) -> None:
        opp = _opportunity(degree_required=["Any"], year_of_study=[0])
        profile = Profile(learner_id="u", stage=Stage.TERTIARY, interests=frozenset({"Robotics"}))
        result = score_offering(opp, profile, _config())
        assert result is not None
        assert result.score == pytest.approx(0.9)

    def test_specific_degree_needs_declared_program(self) -> None:
        opp = _opportunity(degree_required=["B.Tech"], year_of_study=[0])
        profile = Profile(learner_id="u", stage=Stage.TERTIARY, interests=frozenset({"Robotics"}))
        result = score_offering(opp, profile, _config())
        # only the year wildcard applies: 0.5 + 0.2
        assert result is not None
        assert result.score == pytest.approx(0.7)
        assert [r.text for r in result.reasons] == ["Perfect for your year"]

    def test_eligibility_only_for_internships(self) -> None:
        opp = _opportunity(
            opportunity_type="hackathon", degree_required=["B.Tech"], year_of_study=[3],
        )
        result = score_offering(opp, _university_profile(), _config())
        assert result is None

    def test_interest_weight_for_opportunities(self) -> None:
        opp = _opportunity(
            opportunity_type="hackathon",
            title="AI Hackathon",
            skills=["Python"],
            domains=["Healthcare"],
        )
        profile = _university_profile(interests={"python", "healthcare", "robotics"})
        result = score_offering(opp, profile, _config())
        # 0.5 + 0.3 * 2/3 = 0.7
        assert result is not None
        assert result.score == pytest.approx(0.7)

    def test_popularity_threshold_for_opportunities(self) -> None:
        opp = _opportunity(opportunity_type="hackathon", skills=["Go"], popularity=51)
        profile = _university_profile(interests={"go"})
        result = score_offering(opp, profile, _config())
        # 0.5 + 0.3 + 0.1
        assert result is not None
        assert result.score == pytest.approx(0.9)


# ---------------------------------------------------------------------------
# Empty signal
# ---------------------------------------------------------------------------


class TestEmptyProfile:
    def test_empty_interests_no_division_error(self) -> None:
        profile = Profile(learner_id="u", stage=Stage.PRE_TERTIARY)
        result = score_offering(_exam(popularity=1000), profile, _config())
        assert result is None

    def test_saved_items_alone_count_as_signal(self) -> None:
        profile = Profile(
            learner_id="u",
            stage=Stage.TERTIARY,
            saved=frozenset({OfferingRef(kind=OfferingKind.OPPORTUNITY, id="other")}),
        )
        opp = _opportunity(degree_required=["Any"], year_of_study=[0])
        result = score_offering(opp, profile, _config())
        assert result is not None
        assert result.score == pytest.approx(0.9)

    def test_empty_learner_gets_nothing(self) -> None:
        profile = Profile(learner_id="u", stage=Stage.TERTIARY)
        candidates = [
            _opportunity(id="a", degree_required=["Any"], year_of_study=[0], popularity=500),
            _opportunity(id="b", opportunity_type="hackathon", popularity=500),
        ]
        assert score_offerings(profile, candidates, _config()) == []


# ---------------------------------------------------------------------------
# Batch scoring and strategy wrapper
# ---------------------------------------------------------------------------


class TestScoreOfferings:
    def test_sorted_desc_and_filtered(self) -> None:
        profile = _school_profile(interests={"Physics"})
        candidates = [
            _exam(id="low", subjects=["History"]),
            _exam(id="mid", subjects=["Chemistry"]),
            _exam(id="high", subjects=["Physics"], popularity=500),
        ]
        result = score_offerings(profile, candidates, _config())
        assert [s.offering.id for s in result] == ["high", "mid"]

    def test_scores_in_unit_interval(self) -> None:
        profile = _school_profile(interests={"Physics", "Chemistry"})
        candidates = [_exam(id=str(i), popularity=i * 50) for i in range(6)]
        for s in score_offerings(profile, candidates, _config()):
            assert 0.0 <= s.score <= 1.0


class _StubSource:
    def __init__(self, offerings: list[Examination | Opportunity]) -> None:
        self.offerings = offerings
        self.calls: list[tuple[OfferingKind, int]] = []

    async def fetch_active_offerings(self, kind: OfferingKind, limit: int) -> list:
        self.calls.append((kind, limit))
        return [o for o in self.offerings if o.kind == kind.value][:limit]


class _Context:
    def __init__(self, source: _StubSource) -> None:
        self.source = source
        self.directory = None


class TestRuleBasedStrategy:
    async def test_fetches_target_kind_with_limit(self) -> None:
        source = _StubSource([_exam(), _opportunity()])
        strategy = RuleBasedStrategy(_config(), GenerationConfig(exam_candidate_limit=7))
        result = await strategy.generate(_school_profile(), _Context(source))  # type: ignore[arg-type]
        assert source.calls == [(OfferingKind.EXAM, 7)]
        assert [s.offering.id for s in result] == ["e1"]

    async def test_empty_source_yields_nothing(self) -> None:
        strategy = RuleBasedStrategy(_config(), GenerationConfig())
        result = await strategy.generate(_university_profile(), _Context(_StubSource([])))  # type: ignore[arg-type]
        assert result == []
