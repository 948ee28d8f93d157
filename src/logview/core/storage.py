import logging
from collections import deque
from itertools import islice
from typing import Iterable, Optional, Tuple

from .filters import matches, visible_slice
from .models import FilterSpec, LogRecord, Pagination

logger = logging.getLogger(__name__)


class LocalLogStore:
    """
    Session history of log records, newest first, plus the derived visible slice.

    History is fed from two sources: a REST snapshot replaces it wholesale,
    a pushed record is prepended. The visible slice is always the first
    `limit` records of the history that pass the filter. `recompute` is the
    one authoritative way to derive it; `visible_slice` memoizes that result
    per (history version, filter) and `prepend` may advance the memo
    incrementally when it can do so exactly.

    Attributes:
        max_history: Oldest records are evicted past this many. None means
                     unbounded.
    """

    def __init__(self, max_history: Optional[int] = None):
        if max_history is not None and max_history <= 0:
            raise ValueError("max_history must be positive or None")
        self.max_history = max_history
        self._history = deque(maxlen=max_history)
        self._pagination = Pagination()
        self._pagination_stale = False
        self._version = 0
        self._memo_key = None
        self._memo_visible: Tuple[LogRecord, ...] = ()

    def __len__(self) -> int:
        return len(self._history)

    @property
    def history(self) -> Tuple[LogRecord, ...]:
        return tuple(self._history)

    @property
    def version(self) -> int:
        return self._version

    @property
    def pagination(self) -> Pagination:
        return self._pagination

    @property
    def pagination_stale(self) -> bool:
        """True once pushed records have arrived since the last snapshot."""
        return self._pagination_stale

    def replace_all(self, records: Iterable[LogRecord], pagination: Optional[Pagination] = None) -> None:
        if self.max_history is not None:
            records = islice(records, self.max_history)
        self._history = deque(records, maxlen=self.max_history)
        self._pagination = pagination if pagination is not None else Pagination(total=len(self._history))
        self._pagination_stale = False
        self._bump()
        logger.debug("History replaced with %d records", len(self._history))

    def prepend(self, record: LogRecord, spec: Optional[FilterSpec] = None) -> None:
        """
        Insert a record at the front of history, whether or not it matches.

        With a spec, the memoized slice for that spec is advanced in place
        when it was current. Any eviction forces the next read to recompute.
        """
        evicting = self.max_history is not None and len(self._history) == self.max_history
        memo_current = spec is not None and self._memo_key == (self._version, spec.key())

        self._history.appendleft(record)
        self._pagination_stale = True
        self._bump()

        if evicting or not memo_current:
            return
        if matches(record, spec):
            self._memo_visible = (record,) + self._memo_visible[: spec.limit - 1]
        self._memo_key = (self._version, spec.key())

    def visible_slice(self, spec: FilterSpec) -> Tuple[LogRecord, ...]:
        key = (self._version, spec.key())
        if self._memo_key != key:
            self._memo_visible = self.recompute(spec)
            self._memo_key = key
        return self._memo_visible

    def recompute(self, spec: FilterSpec) -> Tuple[LogRecord, ...]:
        return visible_slice(self._history, spec)

    def clear(self) -> None:
        self.replace_all(())

    def _bump(self) -> None:
        self._version += 1
        self._memo_key = None
