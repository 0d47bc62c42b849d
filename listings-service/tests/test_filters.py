"""
Unit tests for client-side listing filters.
"""
import itertools

import pytest

from listings_service.domain.filters import apply_filters, has_active_filters
from listings_service.domain.models import ClientFilters

from conftest import make_listing, make_listings


@pytest.fixture
def records():
    return [
        make_listing(1, location="Whitefield", agent_name="Ravi Kumar", company_name="Prime Homes", bedroom_count=2),
        make_listing(2, location="Whitefield Main Road", agent_name="Anita", company_name="Ravi Estates", bedroom_count=3),
        make_listing(3, location="Indiranagar", agent_name="Suresh", company_name=None, bedroom_count=6),
        make_listing(4, location="indiranagar", agent_name=None, company_name=None, bedroom_count=8),
        make_listing(5, location=None, agent_name="Ravi", company_name="Solo", bedroom_count=None),
        make_listing(6, location="HSR Layout", agent_name="Meera", company_name="Nest", bedroom_count="3"),
    ]


def ids(records):
    return [r["id"] for r in records]


class TestNoFilters:

    def test_identity_when_nothing_active(self, records):
        result = apply_filters(records, ClientFilters())
        assert result == records
        assert result is not records

    def test_blank_values_are_inactive(self, records):
        filters = ClientFilters(location="   ", agent="", bedroom_count=" ")
        assert apply_filters(records, filters) == records
        assert not has_active_filters(filters)

    def test_exact_mode_alone_is_not_a_filter(self, records):
        filters = ClientFilters(exact_match=True)
        assert not has_active_filters(filters)
        assert apply_filters(records, filters) == records


class TestLocationFilter:

    def test_substring_is_case_insensitive(self, records):
        result = apply_filters(records, ClientFilters(location="whitefield"))
        assert ids(result) == ["listing-1", "listing-2"]

    def test_exact_match_requires_equality(self, records):
        result = apply_filters(records, ClientFilters(location="WHITEFIELD", exact_match=True))
        assert ids(result) == ["listing-1"]

    def test_surrounding_whitespace_is_ignored(self, records):
        result = apply_filters(records, ClientFilters(location="  Indiranagar ", exact_match=True))
        assert ids(result) == ["listing-3", "listing-4"]

    def test_missing_location_never_matches(self, records):
        result = apply_filters(records, ClientFilters(location="a"))
        assert "listing-5" not in ids(result)


class TestAgentFilter:

    def test_matches_agent_or_company(self, records):
        result = apply_filters(records, ClientFilters(agent="ravi"))
        assert ids(result) == ["listing-1", "listing-2", "listing-5"]

    def test_exact_agent_match(self, records):
        result = apply_filters(records, ClientFilters(agent="ravi", exact_match=True))
        assert ids(result) == ["listing-5"]

    def test_record_without_agent_or_company_is_excluded(self, records):
        result = apply_filters(records, ClientFilters(agent="e"))
        assert "listing-4" not in ids(result)


class TestBedroomFilter:

    def test_exact_count(self, records):
        result = apply_filters(records, ClientFilters(bedroom_count="3"))
        assert ids(result) == ["listing-2", "listing-6"]

    def test_top_bucket_means_or_more(self, records):
        result = apply_filters(records, ClientFilters(bedroom_count="6"))
        assert ids(result) == ["listing-3", "listing-4"]

    def test_top_bucket_is_configurable(self, records):
        result = apply_filters(records, ClientFilters(bedroom_count="3"), max_bedroom_bucket=3)
        assert ids(result) == ["listing-2", "listing-3", "listing-4", "listing-6"]

    def test_missing_count_is_excluded(self, records):
        result = apply_filters(records, ClientFilters(bedroom_count="2"))
        assert "listing-5" not in ids(result)

    def test_falls_back_to_bedrooms_field(self):
        record = {"id": "x", "bedrooms": 4}
        assert apply_filters([record], ClientFilters(bedroom_count="4")) == [record]

    def test_unparseable_count_is_excluded(self):
        record = {"id": "x", "bedroom_count": "studio"}
        assert apply_filters([record], ClientFilters(bedroom_count="1")) == []

    def test_invalid_filter_value_is_rejected(self):
        with pytest.raises(ValueError):
            ClientFilters(bedroom_count="three")
        with pytest.raises(ValueError):
            ClientFilters(bedroom_count="-1")


class TestConjunction:
    """A record passes iff it passes every active filter on its own."""

    CANDIDATES = {
        "location": ["", "indiranagar", "Whitefield"],
        "agent": ["", "Agent 3", "realty 1"],
        "bedroom_count": ["", "2", "6"],
    }

    def test_combined_filters_equal_intersection(self):
        records = make_listings(120)
        for location, agent, bedrooms in itertools.product(*self.CANDIDATES.values()):
            for exact in (False, True):
                combined = ClientFilters(location, agent, bedrooms, exact)
                singles = [
                    ClientFilters(location=location, exact_match=exact),
                    ClientFilters(agent=agent, exact_match=exact),
                    ClientFilters(bedroom_count=bedrooms, exact_match=exact),
                ]
                expected = [
                    r for r in records
                    if all(apply_filters([r], single) for single in singles)
                ]
                assert apply_filters(records, combined) == expected

    def test_adding_a_filter_never_grows_the_result(self):
        records = make_listings(120)
        base = apply_filters(records, ClientFilters(location="Whitefield"))
        narrower = apply_filters(records, ClientFilters(location="Whitefield", bedroom_count="2"))

        assert len(narrower) <= len(base)
        assert all(r in base for r in narrower)
