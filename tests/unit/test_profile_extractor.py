"""Tests for profile extraction from learner records."""

from recengine.core.schemas import Learner, OfferingKind, OfferingRef, Stage
from recengine.profile.extractor import extract_profile


def _learner(**kw: object) -> Learner:
    defaults: dict[str, object] = {"id": "u1", "stage": Stage.PRE_TERTIARY}
    defaults.update(kw)
    return Learner(**defaults)  # type: ignore[arg-type]


class TestInterests:
    def test_stripped_and_deduped(self) -> None:
        p = extract_profile(_learner(interests=[" Physics ", "Physics", "", "  ", "Maths"]))
        assert p.interests == frozenset({"Physics", "Maths"})

    def test_empty_learner(self) -> None:
        p = extract_profile(_learner())
        assert p.interests == frozenset()
        assert p.saved == frozenset()
        assert p.pretertiary_attrs is None
        assert p.tertiary_attrs is None


class TestStageAttributes:
    def test_pretertiary_stream(self) -> None:
        p = extract_profile(_learner(stream=" Science "))
        assert p.pretertiary_attrs is not None
        assert p.pretertiary_attrs.stream == "Science"
        assert p.tertiary_attrs is None

    def test_blank_stream_ignored(self) -> None:
        assert extract_profile(_learner(stream="   ")).pretertiary_attrs is None

    def test_tertiary_program_and_year(self) -> None:
        p = extract_profile(_learner(stage=Stage.TERTIARY, program="B.Tech", year=2))
        assert p.tertiary_attrs is not None
        assert p.tertiary_attrs.program == "B.Tech"
        assert p.tertiary_attrs.year == 2
        assert p.pretertiary_attrs is None

    def test_tertiary_year_only(self) -> None:
        p = extract_profile(_learner(stage=Stage.TERTIARY, program="  ", year=1))
        assert p.tertiary_attrs is not None
        assert p.tertiary_attrs.program is None

    def test_tertiary_without_attrs(self) -> None:
        p = extract_profile(_learner(stage=Stage.TERTIARY))
        assert p.tertiary_attrs is None

    def test_stream_ignored_for_tertiary(self) -> None:
        p = extract_profile(_learner(stage=Stage.TERTIARY, stream="Science"))
        assert p.pretertiary_attrs is None


class TestSaved:
    def test_saved_refs_become_set(self) -> None:
        ref = OfferingRef(kind=OfferingKind.EXAM, id="jee")
        p = extract_profile(_learner(saved=[ref, ref]))
        assert p.saved == frozenset({ref})

    def test_pure(self) -> None:
        learner = _learner(interests=["A"], stream="Science")
        assert extract_profile(learner) == extract_profile(learner)
