"""
Pydantic schemas for Listings Service
"""
from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any

from .config import settings
from .domain.models import PageView


# Request schemas
class CreateSessionRequest(BaseModel):
    """Open a browse session"""
    page_size: Optional[int] = Field(
        None, ge=1, le=settings.MAX_PAGE_SIZE, description="Records per page"
    )


class SearchRequest(BaseModel):
    """Start a new search lineage"""
    query: str = ""
    property_type: Optional[str] = None
    message_type: Optional[str] = None

    def structured_filters(self) -> Dict[str, Optional[str]]:
        return {
            "property_type": self.property_type,
            "message_type": self.message_type,
        }


class FilterUpdate(BaseModel):
    """Client filter changes; omitted fields keep their value"""
    location: Optional[str] = None
    agent: Optional[str] = None
    bedroom_count: Optional[str] = None
    exact_match: Optional[bool] = None


# Response schemas
class QueryResponse(BaseModel):
    text: str
    structured_filters: Dict[str, str] = {}


class FiltersResponse(BaseModel):
    location: str = ""
    agent: str = ""
    bedroom_count: str = ""
    exact_match: bool = False


class PageResponse(BaseModel):
    """Current page of a browse session"""
    session_id: str
    state: str
    records: List[Dict[str, Any]]
    page: int
    page_size: int
    total_pages: Optional[int] = None
    start_index: int
    end_index: int
    has_next: bool
    has_previous: bool
    is_loading: bool
    is_prefetching: bool
    is_empty: bool
    error: Optional[str] = None
    can_retry: bool
    filtered_count: int
    cached_count: int
    total_count: Optional[int] = None
    has_active_filters: bool
    query: Optional[QueryResponse] = None
    filters: FiltersResponse

    @classmethod
    def from_view(cls, session_id: str, view: PageView) -> "PageResponse":
        query = None
        if view.query is not None:
            query = QueryResponse(
                text=view.query.text,
                structured_filters=view.query.filters,
            )
        return cls(
            session_id=session_id,
            state=view.state.value,
            records=[dict(record) for record in view.records],
            page=view.page_number,
            page_size=view.page_size,
            total_pages=view.total_pages,
            start_index=view.start_index,
            end_index=view.end_index,
            has_next=view.has_next,
            has_previous=view.has_previous,
            is_loading=view.is_loading,
            is_prefetching=view.is_prefetching,
            is_empty=view.is_empty,
            error=view.error,
            can_retry=view.can_retry,
            filtered_count=view.filtered_count,
            cached_count=view.cached_count,
            total_count=view.total_count_hint,
            has_active_filters=view.has_active_filters,
            query=query,
            filters=FiltersResponse(
                location=view.filters.location,
                agent=view.filters.agent,
                bedroom_count=view.filters.bedroom_count,
                exact_match=view.filters.exact_match,
            ),
        )


class MessageResponse(BaseModel):
    """Generic message response"""
    message: str
