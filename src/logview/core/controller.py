import asyncio
import logging
import math
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Tuple

from .models import (
    DEFAULT_COLOR,
    LEVEL_COLORS,
    ChartPoint,
    FilterSpec,
    Level,
    LogRecord,
    Pagination,
    StatsSnapshot,
)
from .storage import LocalLogStore

logger = logging.getLogger(__name__)


@dataclass
class SessionState:
    """Everything the view shows. Owned by one ViewController."""

    filters: FilterSpec
    store: LocalLogStore
    stats: StatsSnapshot = field(default_factory=StatsSnapshot)
    visible: Tuple[LogRecord, ...] = ()
    loading: bool = False
    realtime_enabled: bool = True
    last_error: Optional[str] = None


class ViewController:
    """
    Coordinates the snapshot fetcher, the push channel and the local store.

    In real-time mode the view is driven by pushed records; in polling mode
    the backend is re-queried every `poll_interval` seconds and on every
    filter or page change. Every mutation goes through `_commit`, which
    re-derives the visible slice, so after any transition
    visible == first `limit` records of history passing the filter.

    Args:
        fetcher: A SnapshotFetcher (or anything with the same `fetch` and
                 `fetch_stats`). Called off the event loop thread.
        subscriber_factory: Called once as factory(on_record, on_stats) to
                            build the push channel. None disables pushes.
    """

    def __init__(
        self,
        fetcher,
        store: Optional[LocalLogStore] = None,
        subscriber_factory: Optional[Callable[..., Any]] = None,
        poll_interval: float = 5.0,
        stats_window: int = 60,
        default_limit: int = 50,
        realtime: bool = True,
    ):
        self.fetcher = fetcher
        self.poll_interval = poll_interval
        self.stats_window = stats_window
        self.default_limit = default_limit
        self.state = SessionState(
            filters=FilterSpec(limit=default_limit),
            store=store if store is not None else LocalLogStore(),
            realtime_enabled=realtime,
        )
        self._subscriber_factory = subscriber_factory
        self.subscriber = None
        self._listeners: List[Callable[[SessionState], Any]] = []
        self._poll_task: Optional[asyncio.Task] = None
        self._pending: set = set()
        self._generation = 0
        self._started = False

    @classmethod
    def from_settings(cls, settings, fetcher, subscriber_factory=None) -> "ViewController":
        return cls(
            fetcher,
            store=LocalLogStore(max_history=settings.history_cap),
            subscriber_factory=subscriber_factory,
            poll_interval=settings.poll_interval,
            stats_window=settings.stats_window,
            default_limit=settings.default_limit,
            realtime=settings.realtime,
        )

    # -- view ---------------------------------------------------------------

    @property
    def filters(self) -> FilterSpec:
        return self.state.filters

    @property
    def visible(self) -> Tuple[LogRecord, ...]:
        return self.state.visible

    @property
    def stats(self) -> StatsSnapshot:
        return self.state.stats

    @property
    def pagination(self) -> Pagination:
        return self.state.store.pagination

    @property
    def loading(self) -> bool:
        return self.state.loading

    @property
    def realtime_enabled(self) -> bool:
        return self.state.realtime_enabled

    @property
    def total_pages(self) -> int:
        return max(1, math.ceil(self.state.stats.total / self.state.filters.limit))

    @property
    def chart_data(self) -> List[ChartPoint]:
        counts = self.state.stats.counts()
        return [
            ChartPoint(name=level.value, count=counts[level], color=LEVEL_COLORS.get(level, DEFAULT_COLOR))
            for level in Level
        ]

    def subscribe(self, callback: Callable[[SessionState], Any]) -> Callable[[], None]:
        """Register a change listener; returns a function that removes it."""
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    # -- lifecycle ----------------------------------------------------------

    async def start(self) -> None:
        if self._started:
            return
        self._started = True
        if self._subscriber_factory is not None:
            self.subscriber = self._subscriber_factory(self.on_new_log, self.on_stats_update)
            try:
                await self.subscriber.connect()
            except Exception as e:
                # fetch path still works without the push channel
                logger.error("Push channel unavailable: %s", e)
        await self.refresh()
        if not self.state.realtime_enabled:
            self._start_polling()

    async def close(self) -> None:
        tasks = list(self._pending)
        if self._poll_task is not None:
            tasks.append(self._poll_task)
        self._stop_polling()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._pending.clear()
        if self.subscriber is not None:
            await self.subscriber.close()
        self._started = False

    async def __aenter__(self) -> "ViewController":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # -- user input ---------------------------------------------------------

    def set_filter(self, key: str, value: Any) -> None:
        if key == "page":
            self.set_page(value)
        else:
            self.update_filters(**{key: value})

    def update_filters(self, **changes: Any) -> None:
        changed = self._commit("filters", lambda state: state.filters.update(**changes))
        if changed:
            self._generation += 1
            self._fetch_if_polling()

    def set_page(self, page: int) -> None:
        changed = self._commit("page", lambda state: state.filters.update(page=page))
        if changed:
            self._generation += 1
            self._fetch_if_polling()

    def clear_filters(self) -> None:
        def reset(state):
            before = state.filters.key()
            state.filters = FilterSpec(limit=self.default_limit)
            return state.filters.key() != before

        if self._commit("clear", reset):
            self._generation += 1
            self._fetch_if_polling()

    async def set_realtime(self, enabled: bool) -> None:
        if enabled == self.state.realtime_enabled:
            return

        def toggle(state):
            state.realtime_enabled = enabled

        self._commit("mode", toggle)
        if not self._started:
            return
        if enabled:
            self._stop_polling()
            logger.info("Real-time mode on")
        else:
            logger.info("Polling mode on (every %ss)", self.poll_interval)
            await self.refresh()
            # may have been toggled back to real-time while the fetch was in flight
            if not self.state.realtime_enabled:
                self._start_polling()

    # -- data sources -------------------------------------------------------

    async def refresh(self) -> None:
        """Fetch the current page and stats, keeping prior data on failure."""
        generation = self._generation
        spec = self.state.filters.model_copy()

        def begin(state):
            state.loading = True

        self._commit("loading", begin)
        try:
            try:
                snapshot = await asyncio.to_thread(self.fetcher.fetch, spec)
            except Exception as e:
                logger.error("Error fetching logs: %s", e)
                self._commit("error", lambda state: setattr(state, "last_error", str(e)))
            else:
                if generation != self._generation:
                    logger.debug("Discarding logs fetched for superseded filters %s", spec.key())
                else:
                    def replace(state):
                        state.store.replace_all(snapshot.records, snapshot.pagination)
                        state.last_error = None

                    self._commit("snapshot", replace)

            try:
                stats = await asyncio.to_thread(self.fetcher.fetch_stats, self.stats_window)
            except Exception as e:
                logger.error("Error fetching stats: %s", e)
            else:
                self.on_stats_update(stats)
        finally:
            self._commit("loaded", lambda state: setattr(state, "loading", False))

    def on_new_log(self, record: LogRecord) -> None:
        if not self.state.realtime_enabled:
            logger.debug("Real-time disabled, dropping pushed log %s", record.id)
            return
        self._commit("push", lambda state: state.store.prepend(record, state.filters))

    def on_stats_update(self, stats: StatsSnapshot) -> None:
        self._commit("stats", lambda state: setattr(state, "stats", stats))

    # -- internals ----------------------------------------------------------

    def _commit(self, reason: str, mutate: Callable[[SessionState], Any]) -> Any:
        """Single update entry point: mutate, re-derive the visible slice, notify."""
        try:
            return mutate(self.state)
        finally:
            self.state.visible = self.state.store.visible_slice(self.state.filters)
            for listener in list(self._listeners):
                try:
                    listener(self.state)
                except Exception:
                    logger.exception("State listener failed after %s", reason)

    def _fetch_if_polling(self) -> None:
        if self.state.realtime_enabled or not self._started:
            return
        task = asyncio.get_running_loop().create_task(self.refresh())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    def _start_polling(self) -> None:
        if self._poll_task is None or self._poll_task.done():
            self._poll_task = asyncio.get_running_loop().create_task(self._poll_loop())

    def _stop_polling(self) -> None:
        if self._poll_task is not None:
            self._poll_task.cancel()
            self._poll_task = None

    async def _poll_loop(self) -> None:
        while True:
            await asyncio.sleep(self.poll_interval)
            if self.state.realtime_enabled:
                return
            await self.refresh()
