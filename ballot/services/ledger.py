"""
Vote ledger: one append-only row per (voter, post).

The `uq_votes_voter_post` constraint is the guarantee; the "already voted"
lookup in `cast_vote` only saves a write in the common case. The ledger
insert and the counter increment commit together, so a vote is either
recorded and counted or neither.
"""
from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..errors import ContestantNotFound, DuplicateVote, ElectionClosed, ElectionError, StorageFailure
from ..extensions import db, change_feed
from ..models.contestant import Contestant
from ..models.vote import Vote
from ..utils.audit import audit_log
from . import election, tally
from .feed import INSERT, UPDATE


def has_voted(voter_id: str, post_id) -> bool:
    return (
        db.session.query(Vote.id)
        .filter(Vote.voter_id == str(voter_id), Vote.post_id == post_id)
        .first()
        is not None
    )


def cast_vote(voter_id: str, contestant_id) -> Vote:
    voter_id = str(voter_id)
    post_id = None
    try:
        # Shared row lock: an announce waits for in-flight votes to commit
        if election.get_status(lock=election.LOCK_SHARE).results_announced:
            raise ElectionClosed()

        contestant = db.session.get(Contestant, contestant_id)
        if contestant is None:
            raise ContestantNotFound(details={"contestant_id": str(contestant_id)})
        post_id = contestant.post_id

        if has_voted(voter_id, post_id):
            raise DuplicateVote(details={"post_id": str(post_id)})

        vote = Vote(voter_id=voter_id, contestant_id=contestant.id, post_id=post_id)
        db.session.add(vote)
        db.session.flush()  # unique constraint fires here, before the counter moves

        votes = tally.increment(contestant.id)

        audit_log(
            action="VOTE_CAST",
            entity_type="VOTE",
            entity_id=str(vote.id),
            details={"post_id": str(post_id), "contestant_id": str(contestant.id)},
        )
        # Commit expires both instances; publish what this transaction wrote
        vote_event = vote.to_event()
        tally_event = {**contestant.to_event(), "votes": votes}
        db.session.commit()

    except ElectionError as e:
        db.session.rollback()
        if isinstance(e, (DuplicateVote, ElectionClosed)):
            current_app.logger.info("Vote rejected voter=%s contestant=%s: %s", voter_id, contestant_id, e.code)
        raise

    except IntegrityError:
        db.session.rollback()
        _raise_for_integrity_failure(voter_id, contestant_id, post_id)

    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("DB error while casting vote voter=%s contestant=%s", voter_id, contestant_id)
        raise StorageFailure("Failed to record vote")

    current_app.logger.info(
        "Vote recorded voter=%s post=%s contestant=%s", voter_id, post_id, tally_event["id"]
    )
    change_feed.publish("votes", INSERT, vote_event["id"], new=vote_event)
    change_feed.publish("contestants", UPDATE, tally_event["id"], new=tally_event, fields=("votes",))
    return vote


def _raise_for_integrity_failure(voter_id: str, contestant_id, post_id):
    """
    The insert lost a race. Decide which one: a concurrent vote for the same
    post, or the contestant being deleted underneath us.
    """
    try:
        duplicate = (
            db.session.query(Vote.id).filter_by(voter_id=voter_id, post_id=post_id).first() is not None
        )
        contestant_gone = db.session.get(Contestant, contestant_id) is None
        db.session.rollback()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("DB error while classifying rejected vote")
        raise StorageFailure("Failed to record vote")

    if duplicate:
        current_app.logger.info("Duplicate vote rejected by constraint voter=%s post=%s", voter_id, post_id)
        raise DuplicateVote(details={"post_id": str(post_id)})
    if contestant_gone:
        raise ContestantNotFound(details={"contestant_id": str(contestant_id)})

    current_app.logger.error("Vote insert rejected for an unknown reason voter=%s post=%s", voter_id, post_id)
    raise StorageFailure("Failed to record vote")


def get_voted_posts(voter_id: str) -> set:
    """Post ids this voter already has a ledger entry for, read from storage."""
    try:
        rows = db.session.query(Vote.post_id).filter(Vote.voter_id == str(voter_id)).all()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("DB error reading votes for voter %s", voter_id)
        raise StorageFailure("Failed to read votes")
    return {row.post_id for row in rows}


def list_votes(post_id=None, contestant_id=None, voter_id=None, limit: int = 50, offset: int = 0):
    """
    Vote history, newest first. Returns (total, votes).
    """
    q = Vote.query
    if post_id:
        q = q.filter(Vote.post_id == post_id)
    if contestant_id:
        q = q.filter(Vote.contestant_id == contestant_id)
    if voter_id:
        q = q.filter(Vote.voter_id == str(voter_id))

    try:
        total = q.count()
        votes = (
            q.order_by(Vote.cast_at.desc(), Vote.id.desc())
            .limit(limit)
            .offset(offset)
            .all()
        )
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("DB error querying vote history")
        raise StorageFailure("Failed to query vote history")
    return total, votes


def count_votes(post_id=None) -> int:
    q = db.session.query(Vote.id)
    if post_id:
        q = q.filter(Vote.post_id == post_id)
    return q.count()
