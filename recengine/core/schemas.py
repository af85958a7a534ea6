"""Core data models for the recommendation engine."""

from datetime import datetime
from enum import Enum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator


class OfferingKind(str, Enum):
    EXAM = "exam"
    OPPORTUNITY = "opportunity"


class OfferingOrder(str, Enum):
    """Orderings a candidate source applies before truncating to a limit."""

    NEWEST = "newest"
    MOST_POPULAR = "most_popular"


class Stage(str, Enum):
    PRE_TERTIARY = "pre_tertiary"
    TERTIARY = "tertiary"


class StrategyName(str, Enum):
    RULE_BASED = "rule_based"
    CONTENT_BASED = "content_based"
    COLLABORATIVE = "collaborative"
    HYBRID = "hybrid"


class InteractionKind(str, Enum):
    VIEWED = "viewed"
    SAVED = "saved"
    APPLIED = "applied"


class OfferingRef(BaseModel):
    """Discriminated reference to an offering owned by the candidate source."""

    model_config = ConfigDict(frozen=True)

    kind: OfferingKind
    id: str

    @property
    def key(self) -> tuple[str, str]:
        return (self.kind.value, self.id)


class Examination(BaseModel):
    """An examination as exposed by the candidate source."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["exam"] = "exam"
    id: str
    name: str
    subjects: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    exam_type: str = ""
    popularity: int = Field(default=0, ge=0)
    deadline: datetime | None = None
    created_at: datetime = Field(default_factory=datetime.now)
    is_active: bool = True

    @property
    def ref(self) -> OfferingRef:
        return OfferingRef(kind=OfferingKind.EXAM, id=self.id)

    @property
    def display_name(self) -> str:
        return self.name

    def is_open(self, now: datetime) -> bool:
        return self.is_active and (self.deadline is None or self.deadline > now)


class Opportunity(BaseModel):
    """A hackathon or internship as exposed by the candidate source.

    ``degree_required`` may contain ``"Any"`` and ``year_of_study`` may
    contain ``0``; both mean the field does not restrict eligibility.
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["opportunity"] = "opportunity"
    id: str
    title: str
    opportunity_type: Literal["hackathon", "internship"] = "hackathon"
    skills: list[str] = Field(default_factory=list)
    domains: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    company: str | None = None
    organizer: str | None = None
    degree_required: list[str] = Field(default_factory=list)
    year_of_study: list[int] = Field(default_factory=list)
    popularity: int = Field(default=0, ge=0)
    deadline: datetime | None = None
    created_at: datetime = Field(default_factory=datetime.now)
    is_active: bool = True

    @property
    def ref(self) -> OfferingRef:
        return OfferingRef(kind=OfferingKind.OPPORTUNITY, id=self.id)

    @property
    def display_name(self) -> str:
        return self.title

    def is_open(self, now: datetime) -> bool:
        return self.is_active and (self.deadline is None or self.deadline > now)


Offering = Annotated[Examination | Opportunity, Field(discriminator="kind")]


class Learner(BaseModel):
    """Learner record as returned by the learner directory."""

    id: str
    name: str = ""
    stage: Stage
    interests: list[str] = Field(default_factory=list)
    stream: str | None = None
    program: str | None = None
    year: int | None = None
    saved: list[OfferingRef] = Field(default_factory=list)


class TertiaryAttrs(BaseModel):
    model_config = ConfigDict(frozen=True)

    program: str | None = None
    year: int | None = None


class PreTertiaryAttrs(BaseModel):
    model_config = ConfigDict(frozen=True)

    stream: str


class Profile(BaseModel):
    """Normalized preference profile derived from a learner snapshot."""

    model_config = ConfigDict(frozen=True)

    learner_id: str
    stage: Stage
    interests: frozenset[str] = frozenset()
    tertiary_attrs: TertiaryAttrs | None = None
    pretertiary_attrs: PreTertiaryAttrs | None = None
    saved: frozenset[OfferingRef] = frozenset()

    @property
    def target_kind(self) -> OfferingKind:
        """Pre-tertiary learners get examinations, tertiary learners opportunities."""
        if self.stage is Stage.PRE_TERTIARY:
            return OfferingKind.EXAM
        return OfferingKind.OPPORTUNITY


class Reason(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str
    weight: float
    strategy: StrategyName | None = None


class ScoredCandidate(BaseModel):
    """An offering paired with a relevance score in [0, 1].

    Frozen: the merger builds new instances instead of mutating.
    """

    model_config = ConfigDict(frozen=True)

    offering: OfferingRef
    score: float = Field(default=0.0, ge=0.0, le=1.0)
    reasons: list[Reason] = Field(default_factory=list)
    strategy: StrategyName

    @field_validator("score", mode="before")
    @classmethod
    def clamp_score(cls, v: float) -> float:
        return max(0.0, min(1.0, float(v)))


class Interaction(BaseModel):
    viewed: bool = False
    saved: bool = False
    applied: bool = False
    viewed_at: datetime | None = None
    saved_at: datetime | None = None
    applied_at: datetime | None = None


class RecommendationRecord(BaseModel):
    """A stored recommendation, one per (learner, offering) among active records."""

    id: int
    learner_id: str
    offering: OfferingRef
    score: float = Field(ge=0.0, le=1.0)
    strategy: StrategyName
    reasons: list[Reason] = Field(default_factory=list)
    interaction: Interaction = Field(default_factory=Interaction)
    created_at: datetime
    expires_at: datetime
    is_active: bool = True
    # Filled in at read time from the candidate source; never stored.
    offering_details: Offering | None = None

    def is_servable(self, now: datetime | None = None) -> bool:
        return self.is_active and (now or datetime.now()) < self.expires_at

    @computed_field  # type: ignore[prop-decorator]
    @property
    def age_days(self) -> int:
        return (datetime.now() - self.created_at).days

    @computed_field  # type: ignore[prop-decorator]
    @property
    def freshness(self) -> str:
        age = self.age_days
        if age <= 1:
            return "fresh"
        if age <= 7:
            return "recent"
        if age <= 30:
            return "stale"
        return "expired"


class GenerationResult(BaseModel):
    """Summary of a single generation run for one learner."""

    learner_id: str
    generated_count: int
    by_strategy: dict[str, int] = Field(default_factory=dict)
    warnings: list[str] = Field(default_factory=list)
    started_at: datetime
    finished_at: datetime


class StrategyMetrics(BaseModel):
    strategy: StrategyName
    total_recommendations: int
    avg_score: float
    viewed_count: int
    saved_count: int
    applied_count: int


class MetricsSummary(BaseModel):
    total_recommendations: int
    active_recommendations: int
    by_strategy: list[StrategyMetrics] = Field(default_factory=list)


class KindAnalytics(BaseModel):
    kind: OfferingKind
    total: int
    viewed: int
    saved: int
    applied: int
    avg_score: float
