"""Tests for core data models."""

from datetime import datetime, timedelta

import pytest
from pydantic import TypeAdapter, ValidationError

from recengine.core.schemas import (
    Examination,
    Offering,
    OfferingKind,
    OfferingRef,
    Opportunity,
    Profile,
    Reason,
    RecommendationRecord,
    ScoredCandidate,
    Stage,
    StrategyName,
)


def _record(**kw: object) -> RecommendationRecord:
    now = datetime.now()
    defaults: dict[str, object] = {
        "id": 1,
        "learner_id": "u1",
        "offering": OfferingRef(kind=OfferingKind.EXAM, id="e1"),
        "score": 0.8,
        "strategy": StrategyName.RULE_BASED,
        "created_at": now,
        "expires_at": now + timedelta(days=30),
    }
    defaults.update(kw)
    return RecommendationRecord(**defaults)  # type: ignore[arg-type]


class TestOfferingRef:
    def test_key(self) -> None:
        ref = OfferingRef(kind=OfferingKind.OPPORTUNITY, id="o1")
        assert ref.key == ("opportunity", "o1")

    def test_hashable_and_equal_by_value(self) -> None:
        a = OfferingRef(kind=OfferingKind.EXAM, id="x")
        b = OfferingRef(kind="exam", id="x")  # type: ignore[arg-type]
        assert a == b
        assert len({a, b}) == 1

    def test_frozen(self) -> None:
        ref = OfferingRef(kind=OfferingKind.EXAM, id="x")
        with pytest.raises(ValidationError):
            ref.id = "y"  # type: ignore[misc]


class TestOfferings:
    def test_exam_ref_and_name(self) -> None:
        e = Examination(id="e1", name="JEE Main")
        assert e.ref == OfferingRef(kind=OfferingKind.EXAM, id="e1")
        assert e.display_name == "JEE Main"

    def test_opportunity_type_restricted(self) -> None:
        with pytest.raises(ValidationError):
            Opportunity(id="o1", title="X", opportunity_type="job")  # type: ignore[arg-type]

    def test_popularity_non_negative(self) -> None:
        with pytest.raises(ValidationError):
            Examination(id="e1", name="X", popularity=-1)

    def test_is_open(self) -> None:
        now = datetime(2026, 1, 1)
        assert Examination(id="a", name="A").is_open(now)
        assert not Examination(id="a", name="A", is_active=False).is_open(now)
        assert not Examination(id="a", name="A", deadline=now).is_open(now)
        assert Examination(id="a", name="A", deadline=now + timedelta(days=1)).is_open(now)

    def test_discriminated_union(self) -> None:
        adapter = TypeAdapter(list[Offering])
        items = adapter.validate_python([
            {"kind": "exam", "id": "e", "name": "E"},
            {"kind": "opportunity", "id": "o", "title": "O"},
        ])
        assert isinstance(items[0], Examination)
        assert isinstance(items[1], Opportunity)


class TestProfile:
    def test_target_kind(self) -> None:
        assert Profile(learner_id="a", stage=Stage.PRE_TERTIARY).target_kind is OfferingKind.EXAM
        assert Profile(learner_id="a", stage=Stage.TERTIARY).target_kind is OfferingKind.OPPORTUNITY

    def test_empty_defaults(self) -> None:
        p = Profile(learner_id="a", stage=Stage.TERTIARY)
        assert p.interests == frozenset()
        assert p.saved == frozenset()
        assert p.tertiary_attrs is None


class TestScoredCandidate:
    def _ref(self) -> OfferingRef:
        return OfferingRef(kind=OfferingKind.EXAM, id="e1")

    def test_score_clamped_high(self) -> None:
        s = ScoredCandidate(offering=self._ref(), score=1.3, strategy=StrategyName.RULE_BASED)
        assert s.score == 1.0

    def test_score_clamped_low(self) -> None:
        s = ScoredCandidate(offering=self._ref(), score=-0.2, strategy=StrategyName.RULE_BASED)
        assert s.score == 0.0

    def test_reasons_preserved(self) -> None:
        r = Reason(text="Popular", weight=0.1, strategy=StrategyName.RULE_BASED)
        s = ScoredCandidate(
            offering=self._ref(), score=0.7, reasons=[r], strategy=StrategyName.RULE_BASED,
        )
        assert s.reasons == [r]


class TestRecommendationRecord:
    def test_servable_until_expiry(self) -> None:
        now = datetime(2026, 1, 1)
        rec = _record(created_at=now, expires_at=now + timedelta(days=1))
        assert rec.is_servable(now)
        assert not rec.is_servable(now + timedelta(days=1))

    def test_inactive_not_servable(self) -> None:
        assert not _record(is_active=False).is_servable()

    def test_score_bounds_enforced(self) -> None:
        with pytest.raises(ValidationError):
            _record(score=1.2)

    def test_freshness_buckets(self) -> None:
        now = datetime.now()
        assert _record(created_at=now).freshness == "fresh"
        assert _record(created_at=now - timedelta(days=5)).freshness == "recent"
        assert _record(created_at=now - timedelta(days=20)).freshness == "stale"
        assert _record(created_at=now - timedelta(days=45)).freshness == "expired"

    def test_age_and_freshness_serialized(self) -> None:
        dumped = _record(created_at=datetime.now() - timedelta(days=3)).model_dump(mode="json")
        assert dumped["age_days"] == 3
        assert dumped["freshness"] == "recent"
        assert dumped["strategy"] == "rule_based"
        assert dumped["offering"] == {"kind": "exam", "id": "e1"}
