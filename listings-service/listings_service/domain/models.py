"""
Domain models - Core browsing entities
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

Record = Dict[str, Any]


def record_id(record: Mapping[str, Any]) -> Optional[str]:
    """Return the record's id as a string, or None when it has none"""
    value = record.get("id")
    if value is None or value == "":
        return None
    return str(value)


@dataclass(frozen=True)
class Query:
    """A search lineage: free text plus filters sent to the backend"""
    text: str = ""
    structured_filters: Tuple[Tuple[str, str], ...] = ()

    @classmethod
    def create(
        cls,
        text: str = "",
        structured_filters: Optional[Mapping[str, Optional[str]]] = None
    ) -> "Query":
        """Build a normalized query so equal searches compare equal"""
        pairs = []
        for key, value in (structured_filters or {}).items():
            if value is None:
                continue
            value = str(value).strip()
            if value:
                pairs.append((key, value))
        return cls(text=(text or "").strip(), structured_filters=tuple(sorted(pairs)))

    @property
    def filters(self) -> Dict[str, str]:
        return dict(self.structured_filters)


@dataclass(frozen=True)
class Batch:
    """
    One backend response: records fetched at an offset

    ``returned`` is how many records the backend sent, including any
    dropped while parsing; it defaults to ``len(items)``.
    """
    offset: int
    items: Tuple[Record, ...]
    requested_limit: int
    total_count_hint: Optional[int] = None
    returned: Optional[int] = None

    @property
    def returned_count(self) -> int:
        return len(self.items) if self.returned is None else self.returned

    @property
    def end(self) -> int:
        return self.offset + self.returned_count


@dataclass(frozen=True)
class ClientFilters:
    """Filters applied locally to cached records, never sent to the backend"""
    location: str = ""
    agent: str = ""
    bedroom_count: str = ""
    exact_match: bool = False

    def __post_init__(self):
        bedrooms = (self.bedroom_count or "").strip()
        if bedrooms:
            try:
                count = int(bedrooms)
            except ValueError:
                raise ValueError(f"Invalid bedroom count: {self.bedroom_count!r}")
            if count < 0:
                raise ValueError("Bedroom count must not be negative")

    def with_changes(self, **changes: Any) -> "ClientFilters":
        values = {
            "location": self.location,
            "agent": self.agent,
            "bedroom_count": self.bedroom_count,
            "exact_match": self.exact_match,
        }
        values.update({k: v for k, v in changes.items() if v is not None})
        return ClientFilters(**values)


@dataclass(frozen=True)
class Page:
    """Display window over the filtered record sequence"""
    page_number: int = 1
    page_size: int = 20

    def __post_init__(self):
        if self.page_number < 1:
            raise ValueError("page_number must be >= 1")
        if self.page_size < 1:
            raise ValueError("page_size must be >= 1")

    @property
    def start_index(self) -> int:
        return (self.page_number - 1) * self.page_size


class ControllerState(str, Enum):
    """Pagination controller states"""
    IDLE = "idle"
    SEARCHING = "searching"
    READY = "ready"
    PAGINATING = "paginating"
    ERROR = "error"


@dataclass(frozen=True)
class PageView:
    """Read-only snapshot handed to the rendering layer"""
    state: ControllerState
    records: Tuple[Record, ...] = ()
    page_number: int = 1
    page_size: int = 20
    total_pages: Optional[int] = None
    start_index: int = 0
    end_index: int = 0
    has_next: bool = False
    has_previous: bool = False
    is_loading: bool = False
    is_prefetching: bool = False
    is_empty: bool = False
    error: Optional[str] = None
    can_retry: bool = False
    filtered_count: int = 0
    cached_count: int = 0
    total_count_hint: Optional[int] = None
    has_active_filters: bool = False
    query: Optional[Query] = None
    filters: ClientFilters = field(default_factory=ClientFilters)
