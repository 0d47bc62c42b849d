"""
Client-side filtering of cached listings

Filters are conjunctive: a record is kept only if it passes every active
filter. A record missing the field a filter targets never passes it.
"""
from typing import Any, Callable, Iterable, List, Mapping, Optional, Sequence

from ..config import settings
from .models import ClientFilters, Record

LOCATION_FIELDS = ("location",)
AGENT_FIELDS = ("agent_name", "company_name")
BEDROOM_FIELDS = ("bedroom_count", "bedrooms")

Predicate = Callable[[Mapping[str, Any]], bool]


def _normalize(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def _text_matcher(fields: Sequence[str], wanted: str, exact: bool) -> Predicate:
    def matches(record: Mapping[str, Any]) -> bool:
        for name in fields:
            value = record.get(name)
            if value is None:
                continue
            text = _normalize(str(value))
            if not text:
                continue
            if (text == wanted) if exact else (wanted in text):
                return True
        return False

    return matches


def _bedroom_value(record: Mapping[str, Any]) -> Optional[int]:
    for name in BEDROOM_FIELDS:
        value = record.get(name)
        if value is None or isinstance(value, bool):
            continue
        try:
            return int(float(value))
        except (TypeError, ValueError):
            return None
    return None


def _bedroom_matcher(wanted: int, max_bucket: int) -> Predicate:
    def matches(record: Mapping[str, Any]) -> bool:
        value = _bedroom_value(record)
        if value is None:
            return False
        if wanted == max_bucket:
            return value >= max_bucket
        return value == wanted

    return matches


def build_predicates(
    filters: ClientFilters,
    max_bedroom_bucket: Optional[int] = None
) -> List[Predicate]:
    """Return one predicate per active filter"""
    if max_bedroom_bucket is None:
        max_bedroom_bucket = settings.MAX_BEDROOM_BUCKET

    predicates: List[Predicate] = []

    location = _normalize(filters.location)
    if location:
        predicates.append(_text_matcher(LOCATION_FIELDS, location, filters.exact_match))

    agent = _normalize(filters.agent)
    if agent:
        predicates.append(_text_matcher(AGENT_FIELDS, agent, filters.exact_match))

    bedrooms = (filters.bedroom_count or "").strip()
    if bedrooms:
        predicates.append(_bedroom_matcher(int(bedrooms), max_bedroom_bucket))

    return predicates


def has_active_filters(filters: ClientFilters) -> bool:
    """Exact-match mode on its own does not count as a filter"""
    return bool(
        _normalize(filters.location)
        or _normalize(filters.agent)
        or (filters.bedroom_count or "").strip()
    )


def apply_filters(
    records: Iterable[Record],
    filters: ClientFilters,
    max_bedroom_bucket: Optional[int] = None
) -> List[Record]:
    """Narrow records by client filters, preserving order"""
    predicates = build_predicates(filters, max_bedroom_bucket)
    if not predicates:
        return list(records)
    return [record for record in records if all(p(record) for p in predicates)]
