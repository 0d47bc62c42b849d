"""
Domain errors for the listings browser
"""
from typing import Optional


class ListingsError(Exception):
    """Base class for listings browser errors"""


class NetworkError(ListingsError):
    """Transport failure while fetching a batch (retryable)"""

    def __init__(self, reason: str, status_code: Optional[int] = None):
        super().__init__(reason)
        self.reason = reason
        self.status_code = status_code


class StaleResponseError(ListingsError):
    """A response arrived for a lineage that is no longer active"""

    def __init__(self, lineage: str):
        super().__init__(f"Response for superseded lineage {lineage}")
        self.lineage = lineage


class SessionNotFoundError(ListingsError):
    """No browse session with the given id"""

    def __init__(self, session_id: str):
        super().__init__(f"Session {session_id} not found")
        self.session_id = session_id
