"""
Election state machine: LIVE (voting open) <-> ANNOUNCED (results public).

Both transitions are admin-only and unconditional; a tied post can be
announced. Repeating a transition is a no-op.
"""
from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..errors import ElectionClosed, StorageFailure
from ..extensions import db, change_feed
from ..models.election_status import ElectionStatus
from ..utils.audit import audit_log
from .feed import UPDATE

LOCK_NONE = None
LOCK_SHARE = "share"
LOCK_UPDATE = "update"


def get_status(lock: str | None = LOCK_NONE) -> ElectionStatus:
    """
    Load the status singleton, creating it when the store was not seeded.
    Call it first in a transaction: losing the seeding race rolls back.
    `lock` takes a row lock where the engine supports one (FOR SHARE / FOR UPDATE).
    """
    query = ElectionStatus.query.filter_by(id=ElectionStatus.SINGLETON_ID)
    if lock == LOCK_SHARE:
        query = query.with_for_update(read=True)
    elif lock == LOCK_UPDATE:
        query = query.with_for_update()

    status = query.first()
    if status is not None:
        return status

    db.session.add(ElectionStatus(id=ElectionStatus.SINGLETON_ID, results_announced=False))
    try:
        db.session.flush()
    except IntegrityError:
        # Another request seeded it first; nothing else is pending this early
        db.session.rollback()
        current_app.logger.debug("Election status seeded concurrently")
    return query.one()


def is_announced() -> bool:
    return get_status().results_announced


def current_state() -> dict:
    try:
        status = get_status()
        state = status.to_event()
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("DB error reading election status")
        raise StorageFailure("Failed to read election status")
    return state


def _transition(target: bool, action: str) -> dict:
    try:
        status = get_status(lock=LOCK_UPDATE)
        before = status.to_event()
        changed = status.announce() if target else status.withdraw()
        if changed:
            audit_log(
                action=action,
                entity_type="ELECTION",
                entity_id=str(status.id),
                details={"from_state": before["state"], "to_state": status.state},
            )
        after = status.to_event()
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("DB error during %s", action)
        raise StorageFailure("Failed to change election state")

    if changed:
        current_app.logger.info("Election state %s -> %s", before["state"], after["state"])
        change_feed.publish("election_status", UPDATE, ElectionStatus.SINGLETON_ID, before, after,
                            fields=("results_announced",))
    return {**after, "changed": changed}


def announce() -> dict:
    return _transition(True, "RESULTS_ANNOUNCED")


def withdraw() -> dict:
    return _transition(False, "RESULTS_WITHDRAWN")


def toggle() -> dict:
    try:
        announced = get_status().results_announced
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("DB error reading election status")
        raise StorageFailure("Failed to read election status")
    return withdraw() if announced else announce()


def require_open() -> None:
    """
    Reject early once results are announced, before the ballot is even
    validated. `ledger.cast_vote` checks again under the status row lock.
    """
    if current_state()["results_announced"]:
        current_app.logger.info("Vote rejected before validation: results announced")
        raise ElectionClosed()
