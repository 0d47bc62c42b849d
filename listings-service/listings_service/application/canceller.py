"""
Single-flight request tracking per search lineage
"""
import asyncio
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Coroutine, Optional

logger = logging.getLogger(__name__)


def new_lineage_token() -> str:
    """Generate an opaque token identifying one search lineage"""
    return uuid.uuid4().hex


@dataclass
class InFlightRequest:
    """A fetch task tagged with the lineage and window it serves"""
    lineage: str
    offset: int
    background: bool
    task: "asyncio.Task[Any]"

    @property
    def done(self) -> bool:
        return self.task.done()


class RequestCanceller:
    """
    Keeps at most one fetch in flight

    Starting a new lineage cancels whatever is running for the previous
    one. Every result must be checked with :meth:`is_current` before it
    touches shared state.
    """

    def __init__(self):
        self._lineage: Optional[str] = None
        self._in_flight: Optional[InFlightRequest] = None

    @property
    def lineage(self) -> Optional[str]:
        return self._lineage

    @property
    def in_flight(self) -> Optional[InFlightRequest]:
        if self._in_flight is not None and self._in_flight.done:
            self._in_flight = None
        return self._in_flight

    def is_current(self, lineage: Optional[str]) -> bool:
        return lineage is not None and lineage == self._lineage

    def begin(self, lineage: Optional[str]) -> None:
        """Make ``lineage`` the active one, cancelling any older request"""
        self.cancel()
        self._lineage = lineage

    def start(
        self,
        lineage: str,
        offset: int,
        coro: Coroutine[Any, Any, Any],
        background: bool = False
    ) -> InFlightRequest:
        """Schedule a fetch coroutine as the single in-flight request"""
        if not self.is_current(lineage):
            coro.close()
            raise RuntimeError(f"Cannot start request for inactive lineage {lineage}")

        current = self.in_flight
        if current is not None:
            logger.debug(f"Superseding in-flight request at offset {current.offset}")
            current.task.cancel()

        task = asyncio.ensure_future(coro)
        request = InFlightRequest(lineage=lineage, offset=offset, background=background, task=task)
        task.add_done_callback(self._on_done)
        self._in_flight = request
        return request

    async def wait(self, request: InFlightRequest) -> Optional[Any]:
        """
        Wait for a request without being cancelled along with it

        Returns None when the request was cancelled; re-raises the
        request's own exception otherwise.
        """
        await asyncio.wait({request.task})
        if request.task.cancelled():
            return None
        return request.task.result()

    def cancel(self) -> None:
        """Cancel the in-flight request, if any"""
        current = self.in_flight
        if current is not None:
            logger.info(f"Cancelling in-flight request at offset {current.offset}")
            current.task.cancel()
        self._in_flight = None

    def _on_done(self, task: "asyncio.Task[Any]") -> None:
        if not task.cancelled():
            # Mark the exception as retrieved; waiters re-raise it themselves
            task.exception()
        if self._in_flight is not None and self._in_flight.task is task:
            self._in_flight = None
