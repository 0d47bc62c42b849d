"""
Shared fixtures for Listings Service tests
"""
import asyncio
from typing import Dict, List, Optional

import pytest

from listings_service.domain.errors import NetworkError
from listings_service.domain.fetcher import IBatchFetcher, validate_window
from listings_service.domain.models import Batch, Query

LOCATIONS = ["Indiranagar", "Whitefield", "Koramangala", "HSR Layout"]


def make_listing(index: int, **overrides) -> dict:
    """Build a listing record; location cycles through LOCATIONS"""
    listing = {
        "id": f"listing-{index}",
        "location": LOCATIONS[index % len(LOCATIONS)],
        "agent_name": f"Agent {index % 7}",
        "company_name": f"Realty {index % 3}",
        "bedroom_count": (index % 8) + 1,
        "price": 1_000_000 + index,
    }
    listing.update(overrides)
    return listing


def make_listings(count: int, start: int = 0) -> List[dict]:
    return [make_listing(i) for i in range(start, start + count)]


class FakeBatchFetcher(IBatchFetcher):
    """
    In-memory search backend

    ``hold(offset)`` makes fetches at that offset wait until the returned
    event is set; ``fail(offset)`` makes the next fetches there raise.
    """

    def __init__(
        self,
        records: Optional[List[dict]] = None,
        by_query: Optional[Dict[str, List[dict]]] = None,
        report_total: bool = True
    ):
        self.records = records if records is not None else []
        self.by_query = by_query or {}
        self.report_total = report_total
        self.calls: List[tuple] = []
        self.gates: Dict[int, asyncio.Event] = {}
        self.failures: Dict[int, int] = {}

    @property
    def offsets(self) -> List[int]:
        return [offset for _, offset, _ in self.calls]

    def hold(self, offset: int) -> asyncio.Event:
        gate = asyncio.Event()
        self.gates[offset] = gate
        return gate

    def fail(self, offset: int, times: int = 1) -> None:
        self.failures[offset] = times

    def dataset(self, query: Query) -> List[dict]:
        return self.by_query.get(query.text, self.records)

    async def fetch(self, query: Query, offset: int, limit: int) -> Batch:
        validate_window(offset, limit)
        self.calls.append((query, offset, limit))

        gate = self.gates.get(offset)
        if gate is not None:
            await gate.wait()
        await asyncio.sleep(0)

        if self.failures.get(offset):
            self.failures[offset] -= 1
            raise NetworkError(f"backend unavailable at offset {offset}", status_code=503)

        records = self.dataset(query)
        items = tuple(records[offset:offset + limit])
        total = len(records) if self.report_total else None
        return Batch(offset=offset, items=items, requested_limit=limit, total_count_hint=total)


async def settle(rounds: int = 20) -> None:
    """Let pending fetch tasks run to completion"""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def listings():
    return make_listings(500)


@pytest.fixture
def fetcher(listings):
    return FakeBatchFetcher(listings)
