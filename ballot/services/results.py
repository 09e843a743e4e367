"""
Winner computation. Read-only: nothing here writes to the store.

Ordering rule, used everywhere a ranking is shown:
  1. votes, highest first
  2. contestant created_at, earliest first
  3. contestant id (string form), ascending
so a tie always goes to the contestant registered first, independent of the
order rows come back from the database.
"""
from collections import OrderedDict
from datetime import datetime
from typing import Iterable, List, Optional

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from ..errors import PostNotFound, ResultsNotAnnounced, StorageFailure
from ..extensions import db
from ..models.contestant import Contestant
from ..models.post import Post
from ..models.vote import Vote
from . import election


def rank_key(contestant) -> tuple:
    return (-(contestant.votes or 0), contestant.created_at or datetime.min, str(contestant.id))


def rank(contestants: Iterable) -> list:
    return sorted(contestants, key=rank_key)


def _get_post(post_id) -> Post:
    post = db.session.get(Post, post_id)
    if post is None:
        raise PostNotFound(details={"post_id": str(post_id)})
    return post


def ranking_for(post_id) -> List[Contestant]:
    try:
        _get_post(post_id)
        contestants = Contestant.query.filter_by(post_id=post_id).all()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("DB error ranking post %s", post_id)
        raise StorageFailure("Failed to load contestants")
    return rank(contestants)


def winner_for(post_id) -> Optional[Contestant]:
    ranking = ranking_for(post_id)
    return ranking[0] if ranking else None


def standings() -> list:
    """
    Every post (by name) with its total, winner and the other contestants in
    ranking order. A post without contestants has winner None.
    """
    try:
        posts = Post.query.order_by(Post.name.asc()).all()
        contestants = Contestant.query.all()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("DB error computing standings")
        raise StorageFailure("Failed to compute standings")

    by_post = OrderedDict((p.id, []) for p in posts)
    for c in contestants:
        by_post.setdefault(c.post_id, []).append(c)

    result = []
    for post in posts:
        ranking = rank(by_post[post.id])
        result.append({
            "post": post,
            "total_votes": sum(c.votes for c in ranking),
            "winner": ranking[0] if ranking else None,
            "others": ranking[1:],
        })
    return result


def summary() -> dict:
    """Dashboard counters."""
    try:
        total_votes = db.session.query(func.coalesce(func.sum(Contestant.votes), 0)).scalar() or 0
        total_contestants = db.session.query(func.count(Contestant.id)).scalar() or 0
        total_posts = db.session.query(func.count(Post.id)).scalar() or 0
        ledger_votes = db.session.query(func.count(Vote.id)).scalar() or 0
        total_voters = db.session.query(func.count(func.distinct(Vote.voter_id))).scalar() or 0
        status = election.get_status()
        announced = status.results_announced
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("DB error computing summary")
        raise StorageFailure("Failed to compute summary")

    return {
        "total_votes": int(total_votes),
        "ledger_votes": int(ledger_votes),
        "total_contestants": total_contestants,
        "total_posts": total_posts,
        "total_voters": total_voters,
        "results_announced": announced,
    }


def announced_standings() -> list:
    """Public results; only visible once the election is announced."""
    try:
        announced = election.is_announced()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("DB error reading election status")
        raise StorageFailure("Failed to read election status")
    if not announced:
        raise ResultsNotAnnounced()
    return standings()
