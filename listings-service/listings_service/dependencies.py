"""
FastAPI dependencies for Listings Service
"""
from fastapi import Depends, HTTPException, Path, status

from .application.sessions import BrowseSession, SessionRegistry
from .domain.errors import SessionNotFoundError
from .infrastructure.search_client import HttpBatchFetcher

# Global search client and session registry
search_client = HttpBatchFetcher()
session_registry = SessionRegistry(search_client)


async def get_session_registry() -> SessionRegistry:
    """Dependency for getting the session registry"""
    return session_registry


async def get_session(
    session_id: str = Path(..., description="Browse session id"),
    registry: SessionRegistry = Depends(get_session_registry),
) -> BrowseSession:
    """
    Resolve a browse session from the path
    """
    try:
        return registry.get(session_id)
    except SessionNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Session not found",
        )
