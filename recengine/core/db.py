"""SQLite recommendation store: generation swaps, serving queries, interactions, metrics."""

import json
import logging
import sqlite3
from datetime import datetime, timedelta
from pathlib import Path

from recengine.core.errors import Internal, NotFound
from recengine.core.schemas import (
    Interaction,
    InteractionKind,
    KindAnalytics,
    MetricsSummary,
    OfferingKind,
    OfferingRef,
    Reason,
    RecommendationRecord,
    ScoredCandidate,
    StrategyMetrics,
    StrategyName,
)

logger = logging.getLogger(__name__)

_RECOMMENDATIONS_TABLE = """
CREATE TABLE IF NOT EXISTS recommendations (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    learner_id      TEXT    NOT NULL,
    offering_kind   TEXT    NOT NULL,
    offering_id     TEXT    NOT NULL,
    score           REAL    NOT NULL,
    strategy        TEXT    NOT NULL,
    reasons_json    TEXT    NOT NULL DEFAULT '[]',
    viewed          INTEGER NOT NULL DEFAULT 0,
    saved           INTEGER NOT NULL DEFAULT 0,
    applied         INTEGER NOT NULL DEFAULT 0,
    viewed_at       TEXT,
    saved_at        TEXT,
    applied_at      TEXT,
    created_at      TEXT    NOT NULL,
    expires_at      TEXT    NOT NULL,
    is_active       INTEGER NOT NULL DEFAULT 1
);
"""

# At most one live recommendation per (learner, offering).
_ACTIVE_UNIQUE_INDEX = """
CREATE UNIQUE INDEX IF NOT EXISTS ux_recommendations_active
    ON recommendations (learner_id, offering_kind, offering_id)
    WHERE is_active = 1;
"""

_LEARNER_INDEX = """
CREATE INDEX IF NOT EXISTS ix_recommendations_learner
    ON recommendations (learner_id, is_active, score DESC);
"""

_SERVABLE = "learner_id = ? AND is_active = 1 AND expires_at > ?"
_ORDER = "ORDER BY score DESC, created_at DESC, id ASC"


def init_db(path: str | Path) -> sqlite3.Connection:
    """Create the database and tables, returning a connection."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute(_RECOMMENDATIONS_TABLE)
    conn.execute(_ACTIVE_UNIQUE_INDEX)
    conn.execute(_LEARNER_INDEX)
    conn.commit()
    return conn


def replace_all(
    conn: sqlite3.Connection,
    learner_id: str,
    scored: list[ScoredCandidate],
    now: datetime | None = None,
    expiry_days: int = 30,
) -> list[int]:
    """Retire the learner's active records and insert ``scored`` as the new set.

    Both steps run in one transaction: on failure nothing changes and
    ``Internal`` is raised. Returns the new record IDs in insertion order.
    """
    created_at = now or datetime.now()
    expires_at = created_at + timedelta(days=expiry_days)
    ids: list[int] = []
    try:
        with conn:
            retired = conn.execute(
                "UPDATE recommendations SET is_active = 0 WHERE learner_id = ? AND is_active = 1",
                (learner_id,),
            ).rowcount
            for s in scored:
                cursor = conn.execute(
                    """
                    INSERT INTO recommendations
                        (learner_id, offering_kind, offering_id, score, strategy,
                         reasons_json, created_at, expires_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        learner_id,
                        s.offering.kind.value,
                        s.offering.id,
                        s.score,
                        s.strategy.value,
                        _dump_reasons(s.reasons),
                        _ts(created_at),
                        _ts(expires_at),
                    ),
                )
                ids.append(cursor.lastrowid or 0)
    except sqlite3.Error as e:
        msg = f"Failed to replace recommendations for learner '{learner_id}': {e}"
        raise Internal(msg) from e

    logger.debug(
        "Learner '%s': retired %d, inserted %d recommendations",
        learner_id, retired, len(ids),
    )
    return ids


def get_record(conn: sqlite3.Connection, record_id: int) -> RecommendationRecord:
    """Fetch one record by ID regardless of state. Raises NotFound."""
    row = conn.execute(
        "SELECT * FROM recommendations WHERE id = ?", (record_id,),
    ).fetchone()
    if row is None:
        msg = f"Recommendation {record_id} not found"
        raise NotFound(msg)
    return _row_to_record(row)


def list_recommendations(
    conn: sqlite3.Connection,
    learner_id: str,
    kind: OfferingKind | None = None,
    limit: int = 20,
    now: datetime | None = None,
) -> list[RecommendationRecord]:
    """Active, unexpired records for a learner, best first."""
    params: list[object] = [learner_id, _ts(now or datetime.now())]
    query = f"SELECT * FROM recommendations WHERE {_SERVABLE}"
    if kind is not None:
        query += " AND offering_kind = ?"
        params.append(kind.value)
    query += f" {_ORDER} LIMIT ?"
    params.append(limit)
    rows = conn.execute(query, params).fetchall()
    return [_row_to_record(r) for r in rows]


def list_unseen_top(
    conn: sqlite3.Connection,
    learner_id: str,
    limit: int = 10,
    now: datetime | None = None,
) -> list[RecommendationRecord]:
    """Like list_recommendations, restricted to records the learner has not viewed."""
    rows = conn.execute(
        f"SELECT * FROM recommendations WHERE {_SERVABLE} AND viewed = 0 {_ORDER} LIMIT ?",
        (learner_id, _ts(now or datetime.now()), limit),
    ).fetchall()
    return [_row_to_record(r) for r in rows]


def record_interaction(
    conn: sqlite3.Connection,
    record_id: int,
    kind: InteractionKind,
    now: datetime | None = None,
) -> RecommendationRecord:
    """Set an interaction flag on an active record.

    The timestamp is written only on the first transition; repeating an
    interaction leaves the original timestamp in place. Raises NotFound if
    the record does not exist or is no longer active.
    """
    row = conn.execute(
        "SELECT id FROM recommendations WHERE id = ? AND is_active = 1", (record_id,),
    ).fetchone()
    if row is None:
        msg = f"Active recommendation {record_id} not found"
        raise NotFound(msg)

    # Column names come from the InteractionKind enum, never from caller text.
    flag = kind.value
    try:
        with conn:
            conn.execute(
                f"UPDATE recommendations SET {flag} = 1, "
                f"{flag}_at = COALESCE({flag}_at, ?) WHERE id = ?",
                (_ts(now or datetime.now()), record_id),
            )
    except sqlite3.Error as e:
        msg = f"Failed to record '{flag}' on recommendation {record_id}: {e}"
        raise Internal(msg) from e
    return get_record(conn, record_id)


def strategy_metrics(
    conn: sqlite3.Connection,
    now: datetime | None = None,
) -> MetricsSummary:
    """Aggregate counts and average score per strategy across all records."""
    rows = conn.execute(
        """
        SELECT strategy,
               COUNT(*)     AS total,
               AVG(score)   AS avg_score,
               SUM(viewed)  AS viewed,
               SUM(saved)   AS saved,
               SUM(applied) AS applied
        FROM recommendations
        GROUP BY strategy
        ORDER BY strategy
        """,
    ).fetchall()
    total = conn.execute("SELECT COUNT(*) FROM recommendations").fetchone()[0]
    active = conn.execute(
        "SELECT COUNT(*) FROM recommendations WHERE is_active = 1 AND expires_at > ?",
        (_ts(now or datetime.now()),),
    ).fetchone()[0]
    return MetricsSummary(
        total_recommendations=total,
        active_recommendations=active,
        by_strategy=[
            StrategyMetrics(
                strategy=StrategyName(r["strategy"]),
                total_recommendations=r["total"],
                avg_score=round(r["avg_score"] or 0.0, 4),
                viewed_count=r["viewed"] or 0,
                saved_count=r["saved"] or 0,
                applied_count=r["applied"] or 0,
            )
            for r in rows
        ],
    )


def learner_analytics(conn: sqlite3.Connection, learner_id: str) -> list[KindAnalytics]:
    """Per-offering-kind interaction counts for one learner's full history."""
    rows = conn.execute(
        """
        SELECT offering_kind,
               COUNT(*)     AS total,
               SUM(viewed)  AS viewed,
               SUM(saved)   AS saved,
               SUM(applied) AS applied,
               AVG(score)   AS avg_score
        FROM recommendations
        WHERE learner_id = ?
        GROUP BY offering_kind
        ORDER BY offering_kind
        """,
        (learner_id,),
    ).fetchall()
    return [
        KindAnalytics(
            kind=OfferingKind(r["offering_kind"]),
            total=r["total"],
            viewed=r["viewed"] or 0,
            saved=r["saved"] or 0,
            applied=r["applied"] or 0,
            avg_score=round(r["avg_score"] or 0.0, 4),
        )
        for r in rows
    ]


def _ts(dt: datetime) -> str:
    # Fixed width so stored timestamps compare correctly as text.
    return dt.isoformat(timespec="microseconds")


def _parse_ts(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _dump_reasons(reasons: list[Reason]) -> str:
    return json.dumps([r.model_dump(mode="json") for r in reasons])


def _row_to_record(row: sqlite3.Row) -> RecommendationRecord:
    return RecommendationRecord(
        id=row["id"],
        learner_id=row["learner_id"],
        offering=OfferingRef(kind=OfferingKind(row["offering_kind"]), id=row["offering_id"]),
        score=row["score"],
        strategy=StrategyName(row["strategy"]),
        reasons=[Reason.model_validate(r) for r in json.loads(row["reasons_json"])],
        interaction=Interaction(
            viewed=bool(row["viewed"]),
            saved=bool(row["saved"]),
            applied=bool(row["applied"]),
            viewed_at=_parse_ts(row["viewed_at"]),
            saved_at=_parse_ts(row["saved_at"]),
            applied_at=_parse_ts(row["applied_at"]),
        ),
        created_at=datetime.fromisoformat(row["created_at"]),
        expires_at=datetime.fromisoformat(row["expires_at"]),
        is_active=bool(row["is_active"]),
    )
