"""
Tally maintenance for the denormalized `contestants.votes` counter.

Every mutation is a single SQL statement evaluated by the database
(`votes = votes + 1`, a clamped CASE, a plain assignment), never a
read-then-write from Python. Admin overrides do not touch the ledger, so
they deliberately leave the counter out of step with the vote count; each
one is recorded in the audit log with its before/after values.
"""
from flask import current_app
from sqlalchemy import case, delete, func, update
from sqlalchemy.exc import SQLAlchemyError

from ..errors import ContestantNotFound, ElectionError, StorageFailure, ValidationError
from ..extensions import db, change_feed
from ..models.contestant import Contestant
from ..models.vote import Vote
from ..utils.audit import audit_log
from .feed import RESET, UPDATE


def _require_int(value, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(details={field: ["Must be an integer."]})
    return value


def increment(contestant_id, by: int = 1) -> int:
    """
    Atomic `votes = votes + by` inside the caller's transaction (no commit).
    Returns the counter as the database left it.
    """
    votes = db.session.execute(
        update(Contestant)
        .where(Contestant.id == contestant_id)
        .values(votes=Contestant.votes + by)
        .returning(Contestant.votes)
        .execution_options(synchronize_session=False)
    ).scalar_one_or_none()
    if votes is None:
        raise ContestantNotFound(details={"contestant_id": str(contestant_id)})
    return votes


def _get_contestant(contestant_id) -> Contestant:
    contestant = db.session.get(Contestant, contestant_id)
    if contestant is None:
        raise ContestantNotFound(details={"contestant_id": str(contestant_id)})
    return contestant


def _publish_tally(contestant: Contestant, before: int) -> None:
    change_feed.publish(
        "contestants",
        UPDATE,
        contestant.id,
        old={"votes": before},
        new=contestant.to_event(),
        fields=("votes",),
    )


def adjust_votes(contestant_id, delta: int, reason: str | None = None) -> Contestant:
    """votes = max(0, votes + delta), computed by the database."""
    delta = _require_int(delta, "delta")
    try:
        contestant = _get_contestant(contestant_id)
        before = contestant.votes

        shifted = Contestant.votes + delta
        db.session.execute(
            update(Contestant)
            .where(Contestant.id == contestant.id)
            .values(votes=case((shifted < 0, 0), else_=shifted))
            .execution_options(synchronize_session=False)
        )
        db.session.refresh(contestant)
        after = contestant.votes

        audit_log(
            action="TALLY_ADJUSTED",
            entity_type="CONTESTANT",
            entity_id=str(contestant.id),
            details={"delta": delta, "before": before, "after": after, "reason": reason},
        )
        db.session.commit()
    except ElectionError:
        db.session.rollback()
        raise
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("DB error adjusting votes for contestant %s", contestant_id)
        raise StorageFailure("Failed to adjust votes")

    current_app.logger.warning(
        "Tally override: contestant=%s delta=%+d %d -> %d reason=%r",
        contestant.id, delta, before, after, reason,
    )
    _publish_tally(contestant, before)
    return contestant


def set_votes(contestant_id, value: int, reason: str | None = None) -> Contestant:
    """
    votes = max(0, value). Setting the current value writes nothing and
    publishes nothing.
    """
    target = max(0, _require_int(value, "votes"))
    try:
        contestant = _get_contestant(contestant_id)
        before = contestant.votes
        if before == target:
            db.session.rollback()
            current_app.logger.debug("set_votes no-op for contestant %s (already %d)", contestant.id, target)
            return contestant

        db.session.execute(
            update(Contestant)
            .where(Contestant.id == contestant.id)
            .values(votes=target)
            .execution_options(synchronize_session=False)
        )
        audit_log(
            action="TALLY_SET",
            entity_type="CONTESTANT",
            entity_id=str(contestant.id),
            details={"before": before, "after": target, "requested": value, "reason": reason},
        )
        db.session.commit()
    except ElectionError:
        db.session.rollback()
        raise
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("DB error setting votes for contestant %s", contestant_id)
        raise StorageFailure("Failed to set votes")

    current_app.logger.warning(
        "Tally override: contestant=%s set %d -> %d reason=%r", contestant.id, before, target, reason
    )
    _publish_tally(contestant, before)
    return contestant


def reset_all() -> dict:
    """
    Clear the ledger and zero every counter in one transaction.
    """
    try:
        votes_deleted = db.session.execute(
            delete(Vote).execution_options(synchronize_session=False)
        ).rowcount
        contestants_reset = db.session.execute(
            update(Contestant).values(votes=0).execution_options(synchronize_session=False)
        ).rowcount

        audit_log(
            action="ELECTION_RESET",
            entity_type="ELECTION",
            details={"votes_deleted": votes_deleted, "contestants_reset": contestants_reset},
        )
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("DB error resetting votes")
        raise StorageFailure("Failed to reset votes")

    db.session.expire_all()
    current_app.logger.warning(
        "All votes reset: %d ledger entries deleted, %d counters zeroed", votes_deleted, contestants_reset
    )
    change_feed.publish("votes", RESET, new={"deleted": votes_deleted})
    change_feed.publish("contestants", RESET, new={"reset": contestants_reset}, fields=("votes",))
    return {"votes_deleted": votes_deleted, "contestants_reset": contestants_reset}


def ledger_discrepancies() -> list:
    """
    Contestants whose counter differs from the number of ledger entries for
    them, e.g. after an admin override.
    """
    counts = (
        db.session.query(Vote.contestant_id.label("contestant_id"), func.count(Vote.id).label("n"))
        .group_by(Vote.contestant_id)
        .subquery()
    )
    try:
        rows = (
            db.session.query(Contestant, func.coalesce(counts.c.n, 0))
            .outerjoin(counts, counts.c.contestant_id == Contestant.id)
            .order_by(Contestant.post_id, Contestant.created_at)
            .all()
        )
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("DB error computing ledger discrepancies")
        raise StorageFailure("Failed to compare tallies with the ledger")

    return [
        {
            "contestant_id": str(c.id),
            "post_id": str(c.post_id),
            "name": c.name,
            "counter": c.votes,
            "ledger": int(n),
            "drift": c.votes - int(n),
        }
        for c, n in rows
        if c.votes != int(n)
    ]
