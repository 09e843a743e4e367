"""
Read-through cache for ballot listings.

Each entry declares the tables it is derived from and, optionally, a
predicate deciding which change events actually affect it. Entries are
dropped only on a relevant event, and expire after CACHE_TTL_SECONDS so
that writes made by other worker processes become visible. A load that a
relevant event overtakes is returned to its caller but not stored.
"""
import threading
import time
from typing import Any, Callable, Dict, Iterable, Optional, Set

from flask import current_app

from .feed import RESET, UPDATE, ChangeEvent

Predicate = Callable[[ChangeEvent], bool]


def is_relevant(event: ChangeEvent) -> bool:
    # An UPDATE that carries identical old/new payloads changed nothing
    if event.kind == UPDATE and event.old is not None and event.old == event.new:
        return False
    return True


def ignoring_fields(*ignored: str) -> Predicate:
    """Relevance predicate that skips UPDATEs touching only `ignored` columns."""
    ignored_set = frozenset(ignored)

    def predicate(event: ChangeEvent) -> bool:
        if event.kind not in (UPDATE, RESET) or not event.fields:
            return True
        return bool(set(event.fields) - ignored_set)

    return predicate


class _Entry:
    __slots__ = ("value", "tables", "predicate", "stored_at")

    def __init__(self, value, tables, predicate, stored_at):
        self.value = value
        self.tables = tables
        self.predicate = predicate
        self.stored_at = stored_at

    def affected_by(self, event: ChangeEvent) -> bool:
        return event.table in self.tables and (self.predicate is None or self.predicate(event))


class _Load(_Entry):
    """A loader in progress; marked stale when a relevant change lands before it stores."""
    __slots__ = ("stale",)

    def __init__(self, tables, predicate):
        super().__init__(None, tables, predicate, None)
        self.stale = False


class _CacheState:
    def __init__(self, ttl: float):
        self.ttl = ttl
        self.lock = threading.Lock()
        self.entries: Dict[str, _Entry] = {}
        self.loading: Set[_Load] = set()
        self.hits = 0
        self.misses = 0

    def on_event(self, event: ChangeEvent) -> None:
        if not is_relevant(event):
            return
        with self.lock:
            for load in self.loading:
                if load.affected_by(event):
                    load.stale = True
            stale = [key for key, entry in self.entries.items() if entry.affected_by(event)]
            for key in stale:
                del self.entries[key]

    def drop_tables(self, tables: Iterable[str]) -> None:
        tables = set(tables)
        with self.lock:
            for load in self.loading:
                if load.tables & tables:
                    load.stale = True
            for key in [k for k, e in self.entries.items() if e.tables & tables]:
                del self.entries[key]


class ReadThroughCache:
    def __init__(self, app=None, feed=None):
        self.feed = feed
        if app is not None:
            self.init_app(app)

    def init_app(self, app):
        state = _CacheState(ttl=app.config.get("CACHE_TTL_SECONDS", 5))
        app.extensions["read_cache"] = state
        if self.feed is not None:
            self.feed.listen(state.on_event, state=app.extensions["change_feed"])

    @staticmethod
    def _state() -> _CacheState:
        return current_app.extensions["read_cache"]

    def get_or_load(
        self,
        key: str,
        loader: Callable[[], Any],
        depends_on: Iterable[str],
        relevant: Optional[Predicate] = None,
    ) -> Any:
        state = self._state()
        now = time.monotonic()
        load = _Load(frozenset(depends_on), relevant)
        with state.lock:
            entry = state.entries.get(key)
            if entry is not None and now - entry.stored_at < state.ttl:
                state.hits += 1
                return entry.value
            state.misses += 1
            state.loading.add(load)

        try:
            value = loader()
        except Exception:
            with state.lock:
                state.loading.discard(load)
            raise

        with state.lock:
            state.loading.discard(load)
            if load.stale:
                # A write landed mid-load; the value may predate it
                current_app.logger.debug("Cache entry %r not stored: invalidated while loading", key)
            else:
                state.entries[key] = _Entry(value, load.tables, relevant, now)
        return value

    def invalidate(self, *tables: str) -> None:
        state = self._state()
        if tables:
            state.drop_tables(tables)
        else:
            with state.lock:
                for load in state.loading:
                    load.stale = True
                state.entries.clear()

    def stats(self) -> Dict[str, int]:
        state = self._state()
        with state.lock:
            return {"entries": len(state.entries), "hits": state.hits, "misses": state.misses}
