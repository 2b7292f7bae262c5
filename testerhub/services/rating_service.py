"""
Tester rating.

A tester's rating is the sum of the priority weights of the bugs they
currently own.  ``Tester.rating`` and ``Tester.bugs_count`` are
denormalised copies refreshed by the bug service after every create,
priority change and delete; this module never commits.
"""

import logging

from flask import current_app
from sqlalchemy import case, func

from testerhub.core.exceptions import NotFoundError
from testerhub.models import db
from testerhub.models.bug import Bug
from testerhub.models.tester import Tester

logger = logging.getLogger(__name__)

PRIORITY_WEIGHTS = {
    "critical": 4,
    "high": 3,
    "medium": 2,
    "low": 1,
}


def calculate_rating(tester_id: int) -> dict:
    """Compute a tester's rating from their bugs without persisting it.

    Returns:
        Dict with rating, bugs_count and by_priority counts.

    Raises:
        NotFoundError: tester does not exist.
    """
    if db.session.get(Tester, tester_id) is None:
        raise NotFoundError(resource="Tester", resource_id=tester_id)

    rows = (
        db.session.query(Bug.priority, func.count(Bug.id))
        .filter(Bug.tester_id == tester_id)
        .group_by(Bug.priority)
        .all()
    )
    by_priority = {p: 0 for p in PRIORITY_WEIGHTS}
    for priority, count in rows:
        by_priority[priority] = count

    rating = sum(PRIORITY_WEIGHTS.get(p, 0) * n for p, n in by_priority.items())
    return {
        "tester_id": tester_id,
        "rating": rating,
        "bugs_count": sum(by_priority.values()),
        "by_priority": by_priority,
    }


def refresh_tester_rating(tester_id: int) -> Tester:
    """Recalculate and store rating and bugs_count on the Tester row (flush only)."""
    result = calculate_rating(tester_id)
    tester = db.session.get(Tester, tester_id)
    tester.rating = result["rating"]
    tester.bugs_count = result["bugs_count"]
    db.session.flush()
    logger.debug(
        "Rating refreshed tester=%s rating=%s bugs=%s",
        tester_id, tester.rating, tester.bugs_count,
    )
    return tester


def top_testers(limit: int | None = None) -> list[Tester]:
    """Highest-rated testers with a non-zero rating.

    Ties go to the one with more bugs, then the earlier registration.
    """
    if limit is None:
        limit = current_app.config.get("TOP_TESTERS_LIMIT", 10)
    return (
        Tester.query
        .filter(Tester.rating > 0)
        .order_by(
            Tester.rating.desc(),
            Tester.bugs_count.desc(),
            Tester.registration_date.asc(),
            Tester.id.asc(),
        )
        .limit(limit)
        .all()
    )


# Upper bound (inclusive) → bucket label; anything above the last is "50+"
RATING_BUCKETS = (
    (0, "0"),
    (10, "1-10"),
    (25, "11-25"),
    (50, "26-50"),
)
RATING_BUCKET_OVERFLOW = "50+"


def rating_statistics() -> dict:
    """Leaderboard summary: rated testers, average and max rating, distribution.

    The average and count cover only testers with a non-zero rating; the
    distribution covers everyone, with every bucket present.
    """
    rated, average = (
        db.session.query(func.count(Tester.id), func.avg(Tester.rating))
        .filter(Tester.rating > 0)
        .one()
    )
    max_rating = db.session.query(func.max(Tester.rating)).scalar()

    bucket = case(
        *[(Tester.rating <= upper, label) for upper, label in RATING_BUCKETS],
        else_=RATING_BUCKET_OVERFLOW,
    )
    rows = db.session.query(bucket, func.count(Tester.id)).group_by(bucket).all()
    distribution = {label: 0 for _, label in RATING_BUCKETS}
    distribution[RATING_BUCKET_OVERFLOW] = 0
    for label, count in rows:
        distribution[label] = count

    return {
        "rated_testers": rated or 0,
        "average_rating": round(float(average), 2) if average is not None else 0,
        "max_rating": max_rating or 0,
        "distribution": distribution,
    }
