"""
Pagination controller - Windowed browsing over batched search results

The backend answers in large batches while the user pages through small
windows. The controller owns the cache for the active search lineage,
applies client filters, fetches batches in the foreground when a page
cannot render without them and prefetches the next batch in the
background when the user nears the end of what is loaded.
"""
import asyncio
import logging
import math
from typing import Any, Callable, List, Mapping, Optional

from ..config import settings
from ..domain.cache import WindowedCache
from ..domain.errors import NetworkError, StaleResponseError
from ..domain.fetcher import IBatchFetcher
from ..domain.filters import apply_filters, has_active_filters
from ..domain.models import (
    Batch,
    ClientFilters,
    ControllerState,
    Page,
    PageView,
    Query,
    Record,
)
from ..domain.scheduler import FetchDecision, PrefetchScheduler, slice_page
from .canceller import RequestCanceller, new_lineage_token

logger = logging.getLogger(__name__)

Listener = Callable[[PageView], Any]


class PaginationController:
    """State machine driving one browse session"""

    def __init__(
        self,
        fetcher: IBatchFetcher,
        page_size: Optional[int] = None,
        batch_size: Optional[int] = None,
        max_bedroom_bucket: Optional[int] = None,
        max_batches_per_navigation: Optional[int] = None
    ):
        self._fetcher = fetcher
        self._page_size = settings.DEFAULT_PAGE_SIZE if page_size is None else page_size
        self._batch_size = settings.BATCH_SIZE if batch_size is None else batch_size
        self._max_bedroom_bucket = (
            settings.MAX_BEDROOM_BUCKET if max_bedroom_bucket is None else max_bedroom_bucket
        )
        self._max_batches = (
            settings.MAX_BATCHES_PER_NAVIGATION
            if max_batches_per_navigation is None
            else max_batches_per_navigation
        )
        if self._max_batches < 1:
            raise ValueError("max_batches_per_navigation must be positive")

        self._scheduler = PrefetchScheduler(self._page_size, self._batch_size)
        self._cache = WindowedCache()
        self._canceller = RequestCanceller()
        self._listeners: List[Listener] = []

        # State
        self._state = ControllerState.IDLE
        self._query: Optional[Query] = None
        self._filters = ClientFilters()
        self._filtered: List[Record] = []
        self._page_number = 1
        self._error: Optional[str] = None
        self._retry_state = ControllerState.SEARCHING

    # -- properties --------------------------------------------------------

    @property
    def state(self) -> ControllerState:
        return self._state

    @property
    def query(self) -> Optional[Query]:
        return self._query

    @property
    def filters(self) -> ClientFilters:
        return self._filters

    @property
    def page_number(self) -> int:
        return self._page_number

    @property
    def page_size(self) -> int:
        return self._page_size

    @property
    def batch_size(self) -> int:
        return self._batch_size

    @property
    def lineage(self) -> Optional[str]:
        return self._canceller.lineage

    @property
    def cache(self) -> WindowedCache:
        return self._cache

    @property
    def scheduler(self) -> PrefetchScheduler:
        return self._scheduler

    # -- subscriptions -----------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener called with every new view; returns an unsubscriber"""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        if not self._listeners:
            return
        view = self.view()
        for listener in list(self._listeners):
            try:
                listener(view)
            except Exception:
                logger.exception("Page view listener failed")

    # -- search ------------------------------------------------------------

    async def search(
        self,
        text: str = "",
        structured_filters: Optional[Mapping[str, Optional[str]]] = None
    ) -> PageView:
        """
        Start a new search lineage and load its first page

        Repeating the active query does not restart it; after a failure it
        retries instead.
        """
        query = Query.create(text, structured_filters)
        if query == self._query and self._canceller.lineage is not None:
            if self._state == ControllerState.ERROR:
                return await self.retry()
            if self._state in (ControllerState.READY, ControllerState.PAGINATING):
                logger.debug("Query unchanged, keeping current lineage")
                return self.view()
            if self._state == ControllerState.SEARCHING:
                await self._wait_in_flight()
                return self.view()
        return await self._start_lineage(query)

    async def refresh(self) -> PageView:
        """Restart the active query from the first batch"""
        if self._query is None:
            return self.view()
        return await self._start_lineage(self._query)

    async def retry(self) -> PageView:
        """Re-issue the request that failed"""
        lineage = self._canceller.lineage
        if self._state != ControllerState.ERROR or lineage is None:
            return self.view()
        logger.info(f"Retrying page {self._page_number} for lineage {lineage[:8]}")
        self._error = None
        await self._load_page(lineage, self._page_number, self._retry_state)
        return self.view()

    def reset(self) -> PageView:
        """Return to the landing state, abandoning the current lineage"""
        self._canceller.begin(None)
        self._cache.reset(None)
        self._query = None
        self._page_number = 1
        self._error = None
        self._refilter()
        self._set_state(ControllerState.IDLE)
        return self.view()

    def close(self) -> None:
        """Cancel outstanding work and drop listeners"""
        self._canceller.begin(None)
        self._listeners.clear()

    async def _start_lineage(self, query: Query) -> PageView:
        lineage = new_lineage_token()
        self._canceller.begin(lineage)
        self._cache.reset(lineage)
        self._query = query
        self._page_number = 1
        self._error = None
        self._refilter()
        logger.info(
            f"New search lineage {lineage[:8]}: text={query.text!r} filters={query.filters}"
        )
        await self._load_page(lineage, 1, ControllerState.SEARCHING)
        return self.view()

    # -- navigation --------------------------------------------------------

    async def go_to_page(self, page_number: int) -> PageView:
        lineage = self._canceller.lineage
        if lineage is None:
            return self.view()
        await self._load_page(lineage, max(1, page_number), ControllerState.PAGINATING)
        return self.view()

    async def go_to_next(self) -> PageView:
        if not self._has_next():
            return self.view()
        return await self.go_to_page(self._page_number + 1)

    async def go_to_previous(self) -> PageView:
        if self._page_number <= 1:
            return self.view()
        return await self.go_to_page(self._page_number - 1)

    # -- client filters ----------------------------------------------------

    def set_filters(self, filters: ClientFilters) -> PageView:
        """Replace client filters; re-slices from cache without fetching"""
        self._filters = filters
        self._page_number = 1
        self._refilter()
        self._notify()
        return self.view()

    def set_location(self, location: str) -> PageView:
        return self.set_filters(self._filters.with_changes(location=location))

    def set_agent(self, agent: str) -> PageView:
        return self.set_filters(self._filters.with_changes(agent=agent))

    def set_bedroom_count(self, bedroom_count: str) -> PageView:
        return self.set_filters(self._filters.with_changes(bedroom_count=bedroom_count))

    def set_exact_match(self, exact_match: bool) -> PageView:
        return self.set_filters(self._filters.with_changes(exact_match=exact_match))

    def reset_filters(self) -> PageView:
        return self.set_filters(ClientFilters())

    # -- read model --------------------------------------------------------

    def view(self) -> PageView:
        """Snapshot of everything the rendering layer needs"""
        page = Page(self._page_number, self._page_size)
        records = slice_page(self._filtered, page.page_number, page.page_size)
        start_index = page.start_index if self._filtered else 0
        in_flight = self._canceller.in_flight

        return PageView(
            state=self._state,
            records=tuple(records),
            page_number=self._page_number,
            page_size=self._page_size,
            total_pages=self._total_pages(),
            start_index=start_index,
            end_index=start_index + len(records),
            has_next=self._has_next(),
            has_previous=self._page_number > 1,
            is_loading=self._state in (ControllerState.SEARCHING, ControllerState.PAGINATING),
            is_prefetching=in_flight is not None and in_flight.background,
            is_empty=self._state == ControllerState.READY and not self._filtered,
            error=self._error,
            can_retry=self._state == ControllerState.ERROR,
            filtered_count=len(self._filtered),
            cached_count=self._cache.size(),
            total_count_hint=self._cache.total_count_hint,
            has_active_filters=has_active_filters(self._filters),
            query=self._query,
            filters=self._filters,
        )

    def _has_next(self) -> bool:
        if self._query is None:
            return False
        if self._page_number * self._page_size < len(self._filtered):
            return True
        return self._cache.size() > 0 and not self._cache.is_exhausted

    def _total_pages(self) -> Optional[int]:
        if self._cache.is_exhausted:
            return math.ceil(len(self._filtered) / self._page_size)
        if self._cache.total_count_hint is not None and not has_active_filters(self._filters):
            return math.ceil(self._cache.total_count_hint / self._page_size)
        return None

    # -- internals ---------------------------------------------------------

    def _set_state(self, state: ControllerState) -> None:
        if state != self._state:
            logger.debug(f"Controller state {self._state.value} -> {state.value}")
        self._state = state
        self._notify()

    def _refilter(self) -> None:
        self._filtered = apply_filters(self._cache.items, self._filters, self._max_bedroom_bucket)

    def _clamp_page(self) -> None:
        last_page = max(1, math.ceil(len(self._filtered) / self._page_size))
        if self._page_number > last_page:
            self._page_number = last_page

    def _fail(self, error: NetworkError, loading_state: ControllerState) -> None:
        logger.error(f"Failed to load page {self._page_number}: {error.reason}")
        self._error = "Failed to load listings. Please try again."
        self._retry_state = loading_state
        self._set_state(ControllerState.ERROR)

    async def _wait_in_flight(self) -> None:
        in_flight = self._canceller.in_flight
        if in_flight is None:
            return
        try:
            await self._canceller.wait(in_flight)
        except (NetworkError, StaleResponseError):
            # Reported by whoever started the request
            pass

    async def _load_page(self, lineage: str, page_number: int, loading_state: ControllerState) -> None:
        """Make ``page_number`` renderable, fetching batches as needed"""
        self._page_number = page_number
        fetched = 0

        while self._canceller.is_current(lineage):
            plan = self._scheduler.plan(self._page_number, self._cache, len(self._filtered))
            if plan.decision != FetchDecision.BLOCKING:
                break

            self._set_state(loading_state)
            in_flight = self._canceller.in_flight
            try:
                if in_flight is not None and in_flight.lineage == lineage:
                    # Join the request already loading this lineage
                    await self._canceller.wait(in_flight)
                    continue

                if fetched >= self._max_batches:
                    logger.info(
                        f"Stopping after {fetched} batches for page {self._page_number}"
                    )
                    break

                request = self._canceller.start(
                    lineage,
                    plan.offset,
                    self._load_batch(lineage, self._query, plan.offset, plan.limit),
                )
                fetched += 1
                await self._canceller.wait(request)
            except StaleResponseError:
                return
            except NetworkError as e:
                if self._canceller.is_current(lineage):
                    self._fail(e, loading_state)
                return

        if not self._canceller.is_current(lineage):
            logger.debug(f"Lineage {lineage[:8]} superseded while loading")
            return

        self._clamp_page()
        self._error = None
        self._set_state(ControllerState.READY)
        self._maybe_prefetch(lineage)

    async def _load_batch(self, lineage: str, query: Query, offset: int, limit: int) -> Batch:
        """Fetch one batch and merge it if its lineage is still active"""
        try:
            batch = await self._fetcher.fetch(query, offset, limit)
        except NetworkError:
            if not self._canceller.is_current(lineage):
                raise StaleResponseError(lineage) from None
            raise

        if not self._canceller.is_current(lineage):
            logger.debug(f"Dropping stale batch at offset {offset} for lineage {lineage[:8]}")
            raise StaleResponseError(lineage)

        self._cache.merge(batch)
        self._refilter()
        return batch

    def _maybe_prefetch(self, lineage: str) -> None:
        if self._canceller.in_flight is not None:
            return
        plan = self._scheduler.plan(self._page_number, self._cache, len(self._filtered))
        if plan.decision != FetchDecision.PREFETCH:
            return

        logger.debug(f"Prefetching batch at offset {plan.offset} for lineage {lineage[:8]}")
        request = self._canceller.start(
            lineage,
            plan.offset,
            self._prefetch(lineage, self._query, plan.offset, plan.limit),
            background=True,
        )
        request.task.add_done_callback(lambda task: self._on_prefetch_done(lineage, task))

    async def _prefetch(self, lineage: str, query: Query, offset: int, limit: int) -> Optional[Batch]:
        try:
            return await self._load_batch(lineage, query, offset, limit)
        except StaleResponseError:
            return None
        except NetworkError as e:
            logger.warning(f"Background prefetch at offset {offset} failed: {e.reason}")
            return None
        except Exception as e:
            logger.error(f"Unexpected error prefetching offset {offset}: {e}")
            return None

    def _on_prefetch_done(self, lineage: str, task: "asyncio.Task[Any]") -> None:
        if task.cancelled() or not self._canceller.is_current(lineage):
            return
        self._notify()
