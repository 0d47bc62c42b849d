"""
FastAPI application for Listings Service
"""
from fastapi import FastAPI, Depends, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from typing import Optional
import logging

from .config import settings
from .application.sessions import BrowseSession, SessionRegistry
from .dependencies import (
    get_session,
    get_session_registry,
    search_client,
    session_registry,
)
from .domain.errors import SessionNotFoundError
from .schemas import (
    CreateSessionRequest,
    FilterUpdate,
    MessageResponse,
    PageResponse,
    SearchRequest,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO if not settings.DEBUG else logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    # Startup
    logger.info("Starting Listings Service...")

    await search_client.start()
    logger.info("Search client initialized")

    logger.info(f"Listings Service started successfully on port {settings.PORT}")

    yield

    # Shutdown
    logger.info("Shutting down Listings Service...")

    session_registry.close_all()

    await search_client.stop()

    logger.info("Listings Service shut down successfully")


# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Listings browser - windowed pagination over batched search results",
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def page_response(session: BrowseSession, view=None) -> PageResponse:
    return PageResponse.from_view(session.id, view or session.controller.view())


# Health check endpoint
@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "sessions": len(session_registry),
    }


# Session endpoints
@app.post(
    "/api/v1/sessions",
    response_model=PageResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Sessions"],
    summary="Open a browse session",
)
async def create_session(
    request: Optional[CreateSessionRequest] = None,
    registry: SessionRegistry = Depends(get_session_registry),
):
    """
    Open a browse session in the landing state

    - Each session keeps its own in-memory cache of fetched listings
    - Idle sessions expire after SESSION_TTL_SECONDS
    """
    page_size = request.page_size if request else None
    session = registry.create(page_size=page_size)
    return page_response(session)


@app.get(
    "/api/v1/sessions/{session_id}",
    response_model=PageResponse,
    tags=["Sessions"],
    summary="Get current page",
)
async def get_current_page(session: BrowseSession = Depends(get_session)):
    """Current page of the session, as last rendered"""
    return page_response(session)


@app.delete(
    "/api/v1/sessions/{session_id}",
    response_model=MessageResponse,
    tags=["Sessions"],
    summary="Close a browse session",
)
async def close_session(
    session_id: str,
    registry: SessionRegistry = Depends(get_session_registry),
):
    """Close the session and cancel its in-flight request"""
    try:
        registry.close(session_id)
    except SessionNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Session not found",
        )
    return MessageResponse(message="Session closed")


# Search endpoints
@app.post(
    "/api/v1/sessions/{session_id}/search",
    response_model=PageResponse,
    tags=["Search"],
    summary="Run a search",
)
async def search(
    request: SearchRequest,
    session: BrowseSession = Depends(get_session),
):
    """
    Start a new search and return its first page

    - Cancels the request of the previous search
    - A failed search returns state "error" with can_retry set
    - An empty result returns state "ready" with is_empty set
    """
    view = await session.controller.search(request.query, request.structured_filters())
    return page_response(session, view)


@app.post(
    "/api/v1/sessions/{session_id}/retry",
    response_model=PageResponse,
    tags=["Search"],
    summary="Retry the failed request",
)
async def retry(session: BrowseSession = Depends(get_session)):
    """Re-issue the request that put the session in the error state"""
    view = await session.controller.retry()
    return page_response(session, view)


@app.post(
    "/api/v1/sessions/{session_id}/refresh",
    response_model=PageResponse,
    tags=["Search"],
    summary="Refresh the current search",
)
async def refresh(session: BrowseSession = Depends(get_session)):
    """Drop cached results and fetch the current search again"""
    view = await session.controller.refresh()
    return page_response(session, view)


@app.post(
    "/api/v1/sessions/{session_id}/reset",
    response_model=PageResponse,
    tags=["Search"],
    summary="Return to landing",
)
async def reset(session: BrowseSession = Depends(get_session)):
    """Abandon the current search and return to the landing state"""
    view = session.controller.reset()
    return page_response(session, view)


# Navigation endpoints
@app.post(
    "/api/v1/sessions/{session_id}/pages/{page}",
    response_model=PageResponse,
    tags=["Navigation"],
    summary="Go to page",
)
async def go_to_page(page: int, session: BrowseSession = Depends(get_session)):
    """
    Go to a 1-based page

    Pages already in the cache render immediately; pages beyond it wait
    for the next batch.
    """
    if page < 1:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Page must be >= 1",
        )
    view = await session.controller.go_to_page(page)
    return page_response(session, view)


@app.post(
    "/api/v1/sessions/{session_id}/next",
    response_model=PageResponse,
    tags=["Navigation"],
    summary="Next page",
)
async def go_to_next(session: BrowseSession = Depends(get_session)):
    view = await session.controller.go_to_next()
    return page_response(session, view)


@app.post(
    "/api/v1/sessions/{session_id}/previous",
    response_model=PageResponse,
    tags=["Navigation"],
    summary="Previous page",
)
async def go_to_previous(session: BrowseSession = Depends(get_session)):
    view = await session.controller.go_to_previous()
    return page_response(session, view)


# Client filter endpoints
@app.patch(
    "/api/v1/sessions/{session_id}/filters",
    response_model=PageResponse,
    tags=["Filters"],
    summary="Update client filters",
)
async def update_filters(
    update: FilterUpdate,
    session: BrowseSession = Depends(get_session),
):
    """
    Narrow cached listings without contacting the search backend

    - Resets to page 1
    - bedroom_count equal to the top bucket (6) means "6 or more"
    """
    controller = session.controller
    try:
        filters = controller.filters.with_changes(
            location=update.location,
            agent=update.agent,
            bedroom_count=update.bedroom_count,
            exact_match=update.exact_match,
        )
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e),
        )
    view = controller.set_filters(filters)
    return page_response(session, view)


@app.delete(
    "/api/v1/sessions/{session_id}/filters",
    response_model=PageResponse,
    tags=["Filters"],
    summary="Clear client filters",
)
async def reset_filters(session: BrowseSession = Depends(get_session)):
    view = session.controller.reset_filters()
    return page_response(session, view)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "listings_service.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
    )
