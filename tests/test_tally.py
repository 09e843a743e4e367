import uuid

import pytest
from sqlalchemy.exc import OperationalError

from ballot.errors import ContestantNotFound, StorageFailure, ValidationError
from ballot.extensions import change_feed, db
from ballot.models import AuditLog, Contestant, Vote
from ballot.services import ledger, tally


def _votes(contestant_id):
    return db.session.get(Contestant, contestant_id).votes


def test_adjust_clamps_at_zero(president):
    _, a, _ = president
    ledger.cast_vote("v1", a.id)
    ledger.cast_vote("v2", a.id)
    assert _votes(a.id) == 2

    tally.adjust_votes(a.id, -5)

    assert _votes(a.id) == 0


def test_adjust_does_not_touch_ledger(president):
    post, a, _ = president
    ledger.cast_vote("v1", a.id)

    tally.adjust_votes(a.id, 10, reason="paper ballots")

    assert _votes(a.id) == 11
    assert ledger.count_votes(post.id) == 1
    entry = AuditLog.query.filter_by(action="TALLY_ADJUSTED").one()
    assert entry.details == {"delta": 10, "before": 1, "after": 11, "reason": "paper ballots"}


@pytest.mark.parametrize("deltas", [
    [-1],
    [3, -10, 2, -1, -1, -1],
    [-(10 ** 9), 5, -(2 ** 31)],
])
def test_counter_never_negative(president, deltas):
    _, a, _ = president
    for delta in deltas:
        tally.adjust_votes(a.id, delta)
        assert _votes(a.id) >= 0


def test_adjust_rejects_non_integer_before_storage(president):
    _, a, _ = president
    with pytest.raises(ValidationError):
        tally.adjust_votes(a.id, 1.5)
    with pytest.raises(ValidationError):
        tally.adjust_votes(a.id, True)


def test_adjust_unknown_contestant(president):
    with pytest.raises(ContestantNotFound):
        tally.adjust_votes(uuid.uuid4(), 1)


def test_set_votes(president):
    _, a, _ = president
    tally.set_votes(a.id, 7)
    assert _votes(a.id) == 7

    tally.set_votes(a.id, -4)
    assert _votes(a.id) == 0


def test_set_to_current_value_is_a_no_op(president):
    _, a, _ = president
    tally.set_votes(a.id, 3)
    seq_before = change_feed.last_seq
    audits_before = AuditLog.query.count()

    with change_feed.subscribe("contestants") as sub:
        tally.set_votes(a.id, 3)
        assert sub.drain() == []

    assert change_feed.last_seq == seq_before
    assert AuditLog.query.count() == audits_before
    assert _votes(a.id) == 3


def test_set_negative_at_zero_is_a_no_op(president):
    _, a, _ = president
    seq_before = change_feed.last_seq
    tally.set_votes(a.id, -1)
    assert change_feed.last_seq == seq_before


def test_overrides_publish_tally_events(president):
    _, a, _ = president
    with change_feed.subscribe("contestants") as sub:
        tally.adjust_votes(a.id, 2)
        tally.set_votes(a.id, 9)
        events = sub.drain()

    assert [(e.old["votes"], e.new["votes"]) for e in events] == [(0, 2), (2, 9)]
    assert all(e.fields == ("votes",) for e in events)


def test_reset_all(president, make_post, make_contestant):
    _, a, b = president
    t = make_contestant(make_post("Treasurer"), "T")
    for i, c in enumerate([a, b, t, a]):
        ledger.cast_vote(f"v{i}", c.id)
    tally.adjust_votes(b.id, 4)

    counts = tally.reset_all()

    assert counts == {"votes_deleted": 4, "contestants_reset": 3}
    assert Vote.query.count() == 0
    assert [c.votes for c in Contestant.query.all()] == [0, 0, 0]
    assert AuditLog.query.filter_by(action="ELECTION_RESET").count() == 1


def test_reset_is_all_or_nothing(president, monkeypatch):
    _, a, b = president
    ledger.cast_vote("v1", a.id)
    ledger.cast_vote("v2", b.id)

    def fail(**kwargs):
        # Both statements have run by now
        raise OperationalError("INSERT INTO audit_logs", {}, Exception("connection lost"))

    monkeypatch.setattr(tally, "audit_log", fail)

    with pytest.raises(StorageFailure):
        tally.reset_all()

    assert Vote.query.count() == 2
    assert _votes(a.id) == 1 and _votes(b.id) == 1


def test_discrepancies_show_overrides(president):
    _, a, b = president
    ledger.cast_vote("v1", a.id)
    ledger.cast_vote("v2", b.id)
    assert tally.ledger_discrepancies() == []

    tally.adjust_votes(b.id, 3)

    rows = tally.ledger_discrepancies()
    assert len(rows) == 1
    assert rows[0]["contestant_id"] == str(b.id)
    assert (rows[0]["counter"], rows[0]["ledger"], rows[0]["drift"]) == (4, 1, 3)
