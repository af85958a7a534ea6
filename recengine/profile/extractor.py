"""Build a normalized preference Profile from a learner snapshot."""

from recengine.core.schemas import (
    Learner,
    PreTertiaryAttrs,
    Profile,
    Stage,
    TertiaryAttrs,
)


def extract_profile(learner: Learner) -> Profile:
    """Derive a Profile from declared attributes and saved offerings.

    Pure function of the learner record. Empty interests or saved items
    produce empty sets; stage-specific attributes are attached only when
    the learner is at that stage and has filled them in.
    """
    interests = frozenset(i.strip() for i in learner.interests if i and i.strip())

    tertiary: TertiaryAttrs | None = None
    pretertiary: PreTertiaryAttrs | None = None
    if learner.stage is Stage.TERTIARY:
        program = (learner.program or "").strip() or None
        if program is not None or learner.year is not None:
            tertiary = TertiaryAttrs(program=program, year=learner.year)
    elif learner.stream and learner.stream.strip():
        pretertiary = PreTertiaryAttrs(stream=learner.stream.strip())

    return Profile(
        learner_id=learner.id,
        stage=learner.stage,
        interests=interests,
        tertiary_attrs=tertiary,
        pretertiary_attrs=pretertiary,
        saved=frozenset(learner.saved),
    )
