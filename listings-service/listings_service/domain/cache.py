"""
Windowed cache of records fetched for the current search lineage
"""
import logging
from typing import List, Optional, Set, Tuple

from .models import Batch, Record, record_id

logger = logging.getLogger(__name__)


class WindowedCache:
    """
    Append-only, id-deduplicated buffer of fetched records

    Records keep fetch order and are never reordered. Fetched backend
    ranges are tracked so the scheduler can tell which offsets are loaded.
    """

    def __init__(self, lineage: Optional[str] = None):
        self.lineage: Optional[str] = lineage
        self._items: List[Record] = []
        self._ids: Set[str] = set()
        self._ranges: List[Tuple[int, int]] = []
        self.fetched_up_to: int = 0
        self.total_count_hint: Optional[int] = None
        self.exhausted: bool = False

    @property
    def items(self) -> Tuple[Record, ...]:
        return tuple(self._items)

    @property
    def fetched_ranges(self) -> Tuple[Tuple[int, int], ...]:
        return tuple(self._ranges)

    @property
    def is_exhausted(self) -> bool:
        """True when the backend has nothing beyond what is cached"""
        if self.exhausted:
            return True
        if self.total_count_hint is not None:
            return self.fetched_up_to >= self.total_count_hint
        return False

    def size(self) -> int:
        return len(self._items)

    def has(self, offset: int, count: int) -> bool:
        """Check whether backend range [offset, offset + count) was fetched"""
        if count <= 0:
            return True
        end = offset + count
        for start, stop in self._ranges:
            if start <= offset and end <= stop:
                return True
        return False

    def reset(self, lineage: Optional[str]) -> None:
        """Drop all state and bind the cache to a new lineage"""
        self.lineage = lineage
        self._items = []
        self._ids = set()
        self._ranges = []
        self.fetched_up_to = 0
        self.total_count_hint = None
        self.exhausted = False

    def merge(self, batch: Batch) -> int:
        """
        Append a batch's records, skipping ids already cached

        Replaying a batch is harmless: nothing is duplicated and
        ``fetched_up_to`` only moves forward.

        Returns:
            Number of records appended
        """
        added = 0
        for item in batch.items:
            item_id = record_id(item)
            if item_id is None or item_id in self._ids:
                continue
            self._ids.add(item_id)
            self._items.append(item)
            added += 1

        if batch.returned_count:
            self._add_range(batch.offset, batch.end)
        else:
            self.exhausted = True

        self.fetched_up_to = max(self.fetched_up_to, batch.end)

        hint = batch.total_count_hint
        if hint is not None and (self.total_count_hint is None or hint > self.total_count_hint):
            self.total_count_hint = hint

        logger.debug(
            f"Merged batch at offset {batch.offset}: {added}/{batch.returned_count} new, "
            f"fetched_up_to={self.fetched_up_to}, total={self.total_count_hint}"
        )
        return added

    def _add_range(self, start: int, stop: int) -> None:
        ranges = sorted(self._ranges + [(start, stop)])
        merged: List[Tuple[int, int]] = []
        for lo, hi in ranges:
            if merged and lo <= merged[-1][1]:
                merged[-1] = (merged[-1][0], max(merged[-1][1], hi))
            else:
                merged.append((lo, hi))
        self._ranges = merged
