"""
Prefetch scheduling - decides when the next backend batch is needed
"""
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence

from .cache import WindowedCache
from .models import Record


class FetchDecision(str, Enum):
    """What the controller should do about the next batch"""
    NONE = "none"
    PREFETCH = "prefetch"  # background, not awaited
    BLOCKING = "blocking"  # page cannot render until it completes


@dataclass(frozen=True)
class FetchPlan:
    decision: FetchDecision
    offset: Optional[int] = None
    limit: Optional[int] = None


NO_FETCH = FetchPlan(FetchDecision.NONE)


def slice_page(records: Sequence[Record], page_number: int, page_size: int) -> List[Record]:
    """Return the records shown on a 1-based page"""
    start = (max(1, page_number) - 1) * page_size
    return list(records[start:start + page_size])


class PrefetchScheduler:
    """
    Maps the current page onto backend batches

    Pages are ``page_size`` records over the filtered sequence; batches are
    ``batch_size`` records of raw backend results.
    """

    def __init__(self, page_size: int, batch_size: int):
        if page_size < 1 or batch_size < 1:
            raise ValueError("page_size and batch_size must be positive")
        self.page_size = page_size
        self.batch_size = batch_size

    @property
    def pages_per_batch(self) -> int:
        return max(1, self.batch_size // self.page_size)

    def position_in_batch(self, page_number: int) -> int:
        """1-based position of a page inside its batch"""
        return ((page_number - 1) % self.pages_per_batch) + 1

    def next_batch_offset(self, page_number: int) -> int:
        """Backend offset of the batch after the one ``page_number`` falls in"""
        return ((page_number - 1) // self.pages_per_batch + 1) * self.batch_size

    def should_prefetch(self, page_number: int, cache: WindowedCache) -> bool:
        if cache.is_exhausted:
            return False
        if self.position_in_batch(page_number) < self.pages_per_batch - 1:
            return False
        # Only when the batch following the current one is still missing
        next_offset = self.next_batch_offset(page_number)
        return next_offset >= cache.fetched_up_to and not cache.has(next_offset, 1)

    def needs_blocking_fetch(self, page_number: int, visible_count: int, cache: WindowedCache) -> bool:
        start_index = (page_number - 1) * self.page_size
        return start_index >= visible_count and not cache.is_exhausted

    def plan(
        self,
        page_number: int,
        cache: WindowedCache,
        visible_count: Optional[int] = None
    ) -> FetchPlan:
        """
        Decide the fetch needed to show ``page_number``

        ``visible_count`` is the number of records being paged over after
        client filters; it defaults to the cache size.
        """
        if visible_count is None:
            visible_count = cache.size()
        if self.needs_blocking_fetch(page_number, visible_count, cache):
            return FetchPlan(FetchDecision.BLOCKING, cache.fetched_up_to, self.batch_size)
        if self.should_prefetch(page_number, cache):
            return FetchPlan(FetchDecision.PREFETCH, cache.fetched_up_to, self.batch_size)
        return NO_FETCH
