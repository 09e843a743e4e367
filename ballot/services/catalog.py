"""
Posts and contestants, as managed from the admin console.
"""
import uuid

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..errors import ContestantNotFound, ElectionError, PostNotFound, StorageFailure, ValidationError
from ..extensions import db, change_feed, read_cache
from ..models.contestant import Contestant
from ..models.post import Post
from ..utils.audit import audit_log
from ..utils.images import get_image_store
from .cache import ignoring_fields
from .feed import DELETE, INSERT

BALLOT_CACHE_KEY = "ballot"
CONTESTANTS_CACHE_KEY = "contestants"


def _required(value, field: str) -> str:
    value = (value or "").strip() if isinstance(value, str) else value
    if not value:
        raise ValidationError(f"{field} is required", details={field: ["Missing data for required field."]})
    return value


def _as_uuid(value, field: str) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise ValidationError(f"{field} is not a valid id", details={field: ["Not a valid UUID."]}) from None


def create_post(name: str, description: str | None = None) -> Post:
    name = _required(name, "name")
    description = (description or "").strip() or None

    post = Post(name=name, description=description)
    try:
        db.session.add(post)
        db.session.flush()
        audit_log(
            action="POST_CREATED",
            entity_type="POST",
            entity_id=str(post.id),
            details={"name": post.name},
        )
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ValidationError("A post with this name already exists", details={"name": ["Must be unique."]})
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("DB error creating post")
        raise StorageFailure("Failed to create post")

    current_app.logger.info("Post created: %s (%s)", post.name, post.id)
    change_feed.publish("posts", INSERT, post.id, new=post.to_event())
    return post


def delete_post(post_id) -> None:
    """Deletes the post, its contestants and every vote cast for it."""
    try:
        post = db.session.get(Post, post_id)
        if post is None:
            raise PostNotFound(details={"post_id": str(post_id)})
        snapshot = post.to_event()
        removed = {"contestants": len(post.contestants), "votes": len(post.votes)}

        audit_log(
            action="POST_DELETED",
            entity_type="POST",
            entity_id=str(post.id),
            details={"name": post.name, **removed},
        )
        db.session.delete(post)
        db.session.commit()
    except ElectionError:
        db.session.rollback()
        raise
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("DB error deleting post %s", post_id)
        raise StorageFailure("Failed to delete post")

    current_app.logger.info("Post deleted: %s, cascaded %s", snapshot["name"], removed)
    change_feed.publish("posts", DELETE, post_id, old=snapshot)
    if removed["contestants"]:
        change_feed.publish("contestants", DELETE, old={"post_id": str(post_id)})
    if removed["votes"]:
        change_feed.publish("votes", DELETE, old={"post_id": str(post_id), "count": removed["votes"]})


def list_posts() -> list:
    return Post.query.order_by(Post.name.asc()).all()


def upload_image(upload) -> str | None:
    """
    Store an uploaded image and return its URI. Failures are logged and
    yield None so the contestant can still be created without a picture.
    """
    store = get_image_store()
    if store is None:
        current_app.logger.warning("Image upload ignored: no image store configured")
        return None
    try:
        return store.save(upload)
    except (OSError, ValueError) as e:
        current_app.logger.warning("Image upload failed, continuing without image: %s", e)
        return None


def create_contestant(name: str, post_id, bio: str = "", image: str = "") -> Contestant:
    name = _required(name, "name")
    post_id = _as_uuid(_required(post_id, "post_id"), "post_id")

    try:
        post = db.session.get(Post, post_id)
        if post is None:
            raise PostNotFound(details={"post_id": str(post_id)})

        contestant = Contestant(
            name=name,
            post_id=post.id,
            bio=(bio or "").strip(),
            image=image or "",
            votes=0,
        )
        db.session.add(contestant)
        db.session.flush()
        audit_log(
            action="CONTESTANT_CREATED",
            entity_type="CONTESTANT",
            entity_id=str(contestant.id),
            details={"name": contestant.name, "post_id": str(post.id)},
        )
        db.session.commit()
    except ElectionError:
        db.session.rollback()
        raise
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("DB error creating contestant")
        raise StorageFailure("Failed to create contestant")

    current_app.logger.info("Contestant created: %s for post %s", contestant.name, contestant.post_id)
    change_feed.publish("contestants", INSERT, contestant.id, new=contestant.to_event())
    return contestant


def delete_contestant(contestant_id) -> None:
    try:
        contestant = db.session.get(Contestant, contestant_id)
        if contestant is None:
            raise ContestantNotFound(details={"contestant_id": str(contestant_id)})
        snapshot = contestant.to_event()
        ballots = len(contestant.ballots)

        audit_log(
            action="CONTESTANT_DELETED",
            entity_type="CONTESTANT",
            entity_id=str(contestant.id),
            details={**snapshot, "ledger_votes_removed": ballots},
        )
        db.session.delete(contestant)
        db.session.commit()
    except ElectionError:
        db.session.rollback()
        raise
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("DB error deleting contestant %s", contestant_id)
        raise StorageFailure("Failed to delete contestant")

    current_app.logger.info("Contestant deleted: %s (%d ledger votes removed)", snapshot["name"], ballots)
    change_feed.publish("contestants", DELETE, contestant_id, old=snapshot)
    if ballots:
        change_feed.publish("votes", DELETE, old={"contestant_id": str(contestant_id), "count": ballots})


def list_contestants(post_id=None) -> list:
    q = Contestant.query
    if post_id:
        q = q.filter(Contestant.post_id == post_id)
    return q.order_by(Contestant.post_id, Contestant.created_at, Contestant.id).all()


def ballot(dump) -> list:
    """
    Posts with their contestants for the voting booth, cached until a post
    or a contestant's profile changes. Tally movements do not invalidate it.
    """
    def load():
        return [dump(post) for post in list_posts()]

    return read_cache.get_or_load(
        BALLOT_CACHE_KEY,
        load,
        depends_on=("posts", "contestants"),
        relevant=ignoring_fields("votes"),
    )


def contestants_with_tallies(dump) -> list:
    """Admin listing, including counters; any contestant change invalidates it."""
    return read_cache.get_or_load(
        CONTESTANTS_CACHE_KEY,
        lambda: [dump(c) for c in list_contestants()],
        depends_on=("posts", "contestants"),
    )
