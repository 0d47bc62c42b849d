"""
HTTP client for the remote listings search endpoint
"""
import httpx
from typing import Optional, List, Dict, Any
import logging

from ..config import settings
from ..domain.errors import NetworkError
from ..domain.fetcher import IBatchFetcher, validate_window
from ..domain.models import Batch, Query, Record, record_id

logger = logging.getLogger(__name__)


def parse_total_count(count: Any, returned: int) -> Optional[int]:
    """
    Interpret the backend's ``count`` field

    A count equal to the number of returned records is what the backend
    sends when it cannot compute the total cheaply, so it means "unknown".
    Any other non-negative integer is the authoritative total.
    """
    if count is None or isinstance(count, bool):
        return None
    try:
        count = int(count)
    except (TypeError, ValueError):
        return None
    if count < 0 or count == returned:
        return None
    return count


def parse_records(data: Any) -> List[Record]:
    """Keep records that carry an id, normalizing the id to a string"""
    if not isinstance(data, list):
        raise NetworkError("Malformed search response: 'data' is not a list")

    records = []
    for item in data:
        if not isinstance(item, dict):
            logger.warning("Skipping non-object record in search response")
            continue
        item_id = record_id(item)
        if item_id is None:
            logger.warning("Skipping record without id in search response")
            continue
        records.append({**item, "id": item_id})
    return records


class HttpBatchFetcher(IBatchFetcher):
    """Fetches listing batches from the search service over HTTP"""

    def __init__(
        self,
        base_url: Optional[str] = None,
        search_path: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.base_url = (base_url or settings.SEARCH_API_URL).rstrip("/")
        self.search_path = search_path or settings.SEARCH_PATH
        self.timeout = httpx.Timeout(
            settings.SEARCH_TIMEOUT_SECONDS,
            connect=settings.SEARCH_CONNECT_TIMEOUT_SECONDS
        )
        self._transport = transport
        self.client: Optional[httpx.AsyncClient] = None

    async def start(self):
        """Initialize HTTP client"""
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self._transport,
        )
        logger.info(f"Search client initialized for {self.base_url}")

    async def stop(self):
        """Close HTTP client"""
        if self.client:
            await self.client.aclose()
            self.client = None
            logger.info("Search client closed")

    def build_params(self, query: Query, offset: int, limit: int) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "query": query.text,
            "limit": limit,
            "offset": offset,
        }
        params.update(query.filters)
        return params

    async def fetch(self, query: Query, offset: int, limit: int) -> Batch:
        """Fetch one batch; cancelling the calling task aborts the request"""
        validate_window(offset, limit)
        if not self.client:
            raise NetworkError("Search client not initialized")

        params = self.build_params(query, offset, limit)
        try:
            response = await self.client.get(self.search_path, params=params)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"HTTP error {e.response.status_code} for {self.search_path}: {e}")
            raise NetworkError(
                f"Search failed with status {e.response.status_code}",
                status_code=e.response.status_code
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"Request failed for {self.search_path}: {e}")
            raise NetworkError(f"Search request failed: {e}") from e
        except ValueError as e:
            logger.error(f"Undecodable search response: {e}")
            raise NetworkError("Search response is not valid JSON") from e

        if not isinstance(payload, dict):
            raise NetworkError("Malformed search response: expected an object")

        data = payload.get("data", [])
        records = parse_records(data)
        returned = len(data)
        total = parse_total_count(payload.get("count"), returned)

        logger.debug(
            f"Fetched {len(records)}/{returned} usable records at offset {offset} "
            f"(limit {limit}, total {total})"
        )
        return Batch(
            offset=offset,
            items=tuple(records),
            requested_limit=limit,
            total_count_hint=total,
            returned=returned,
        )
