"""
In-process change feed for live dashboards.

One channel per watched table. Services publish after their transaction
commits, so subscribers never observe rolled-back writes. The feed is a
convenience layer only: nothing in the vote path depends on it.
"""
import itertools
import queue
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional

from flask import current_app

TABLES = ("posts", "contestants", "votes", "election_status")

INSERT = "INSERT"
UPDATE = "UPDATE"
DELETE = "DELETE"
RESET = "RESET"


@dataclass(frozen=True)
class ChangeEvent:
    seq: int
    table: str
    kind: str
    row_id: Optional[str] = None
    old: Optional[Dict[str, Any]] = None
    new: Optional[Dict[str, Any]] = None
    fields: Optional[tuple] = None  # changed columns, None when unknown
    at: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "seq": self.seq,
            "table": self.table,
            "kind": self.kind,
            "row_id": self.row_id,
            "old": self.old,
            "new": self.new,
            "fields": list(self.fields) if self.fields else None,
            "at": self.at.isoformat() + "Z",
        }


class Subscription:
    """A bounded mailbox of events for the tables it watches."""

    def __init__(self, state: "_FeedState", tables, maxsize: int, predicate=None):
        self._state = state
        self.tables = frozenset(tables)
        self.predicate = predicate
        self.queue: "queue.Queue[ChangeEvent]" = queue.Queue(maxsize=maxsize)
        self.dropped = 0
        self.closed = False

    def wants(self, event: ChangeEvent) -> bool:
        if event.table not in self.tables:
            return False
        return self.predicate is None or bool(self.predicate(event))

    def _offer(self, event: ChangeEvent) -> None:
        try:
            self.queue.put_nowait(event)
        except queue.Full:
            # Slow consumer: keep the newest events
            try:
                self.queue.get_nowait()
            except queue.Empty:
                pass
            self.dropped += 1
            self.queue.put_nowait(event)

    def get(self, timeout: Optional[float] = None) -> Optional[ChangeEvent]:
        try:
            return self.queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def drain(self) -> List[ChangeEvent]:
        events = []
        while True:
            try:
                events.append(self.queue.get_nowait())
            except queue.Empty:
                return events

    def close(self) -> None:
        if not self.closed:
            self._state.remove(self)
            self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


class _FeedState:
    def __init__(self, history_size: int, queue_size: int):
        self.lock = threading.Lock()
        self.counter = itertools.count(1)
        self.history: "deque[ChangeEvent]" = deque(maxlen=history_size)
        self.queue_size = queue_size
        self.subscriptions: List[Subscription] = []
        self.listeners: List[tuple] = []
        self.last_seq = 0

    def remove(self, sub: Subscription) -> None:
        with self.lock:
            if sub in self.subscriptions:
                self.subscriptions.remove(sub)


def _validate_tables(tables: Iterable[str]) -> tuple:
    tables = tuple(tables) or TABLES
    unknown = [t for t in tables if t not in TABLES]
    if unknown:
        raise ValueError(f"Unknown table(s): {', '.join(unknown)}")
    return tables


class ChangeFeed:
    """Flask extension holding one feed per application."""

    def __init__(self, app=None):
        if app is not None:
            self.init_app(app)

    def init_app(self, app):
        app.extensions["change_feed"] = _FeedState(
            history_size=app.config.get("CHANGE_FEED_HISTORY", 500),
            queue_size=app.config.get("CHANGE_FEED_QUEUE_SIZE", 100),
        )

    @staticmethod
    def _state() -> _FeedState:
        return current_app.extensions["change_feed"]

    def subscribe(self, *tables: str, predicate: Optional[Callable[[ChangeEvent], bool]] = None) -> Subscription:
        state = self._state()
        sub = Subscription(state, _validate_tables(tables), state.queue_size, predicate)
        with state.lock:
            state.subscriptions.append(sub)
        return sub

    def listen(self, callback: Callable[[ChangeEvent], None], *tables: str, state: _FeedState = None) -> None:
        """Register a synchronous callback, invoked in the publishing thread."""
        state = state or self._state()
        with state.lock:
            state.listeners.append((frozenset(_validate_tables(tables)), callback))

    def publish(self, table: str, kind: str, row_id=None, old=None, new=None, fields=None) -> ChangeEvent:
        if table not in TABLES:
            raise ValueError(f"Unknown table: {table}")
        state = self._state()
        with state.lock:
            event = ChangeEvent(
                seq=next(state.counter),
                table=table,
                kind=kind,
                row_id=str(row_id) if row_id is not None else None,
                old=old,
                new=new,
                fields=tuple(fields) if fields else None,
            )
            state.history.append(event)
            state.last_seq = event.seq
            for sub in state.subscriptions:
                if sub.wants(event):
                    sub._offer(event)
            listeners = [cb for watched, cb in state.listeners if table in watched]

        for callback in listeners:
            try:
                callback(event)
            except Exception:
                current_app.logger.exception("Change listener failed for %s %s", table, kind)
        return event

    def events_since(self, seq: int, tables: Iterable[str] = ()) -> List[ChangeEvent]:
        wanted = frozenset(_validate_tables(tables))
        state = self._state()
        with state.lock:
            return [e for e in state.history if e.seq > seq and e.table in wanted]

    @property
    def last_seq(self) -> int:
        return self._state().last_seq
