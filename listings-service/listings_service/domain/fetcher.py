"""
Batch fetcher interface - Contract for the remote search call
"""
from abc import ABC, abstractmethod

from .models import Batch, Query


class IBatchFetcher(ABC):
    """Fetches one batch of search results"""

    @abstractmethod
    async def fetch(self, query: Query, offset: int, limit: int) -> Batch:
        """
        Fetch up to ``limit`` records for ``query`` starting at ``offset``

        Raises:
            ValueError: offset is negative or limit is not positive
            NetworkError: the transport or the backend failed
            asyncio.CancelledError: the request was cancelled mid-flight
        """
        pass


def validate_window(offset: int, limit: int) -> None:
    """Check fetch window arguments"""
    if offset < 0:
        raise ValueError(f"offset must be >= 0, got {offset}")
    if limit <= 0:
        raise ValueError(f"limit must be > 0, got {limit}")
