"""Interaction tracker: records viewed/saved/applied events on stored recommendations.

Flags are cumulative and independent: recording ``applied`` does not imply
``saved``. Each flag's timestamp is written once, on its first transition.
"""

import logging
import sqlite3
from datetime import datetime

from recengine.core.db import record_interaction
from recengine.core.errors import InvalidArgument
from recengine.core.schemas import InteractionKind, RecommendationRecord

logger = logging.getLogger(__name__)


def parse_interaction_kind(value: str | InteractionKind) -> InteractionKind:
    """Validate an interaction kind coming from a caller."""
    if isinstance(value, InteractionKind):
        return value
    try:
        return InteractionKind(value.strip().lower())
    except ValueError:
        valid = ", ".join(k.value for k in InteractionKind)
        msg = f"Unsupported interaction kind '{value}'. Expected one of: {valid}"
        raise InvalidArgument(msg) from None


class InteractionTracker:
    """Validates and records learner interactions.

    Usage::

        tracker = InteractionTracker(conn)
        record = tracker.record(42, "viewed")
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def record(
        self,
        record_id: int,
        kind: str | InteractionKind,
        now: datetime | None = None,
    ) -> RecommendationRecord:
        """Set the interaction flag on an active record and return the updated record."""
        interaction = parse_interaction_kind(kind)
        record = record_interaction(self._conn, record_id, interaction, now=now)
        logger.info(
            "Recorded '%s' on recommendation %d (learner '%s', %s:%s)",
            interaction.value, record_id, record.learner_id,
            record.offering.kind.value, record.offering.id,
        )
        return record
