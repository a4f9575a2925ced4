"""Tests for the analyze and search-filter flows."""
from datetime import datetime

import pytest

from jobfilter.config import ProviderConfigError
from jobfilter.filters import ListingFilters
from jobfilter.models import Criteria, ScoredListing, ScoreResult
from jobfilter.pipeline import analyze_listings, hiring_filter, search_filter, select_passing
from jobfilter.providers import JudgeAdapter, ProviderError


@pytest.fixture
def adapter_for(local_config, fake_client):
    def _build(replies):
        return JudgeAdapter(local_config, client=fake_client(replies), sleep=lambda s: None)
    return _build


def test_analyze_without_provider_uses_heuristic(star_listing, neutral_listing, star_criteria):
    outcome = analyze_listings([neutral_listing, star_listing], star_criteria)

    assert [s.score for s in outcome.scored] == [50, 100]
    assert outcome.errors == []
    assert outcome.fallback_count == 2


def test_analyze_with_adapter(neutral_listing, adapter_for, verdicts):
    adapter = adapter_for([verdicts({"jobIndex": 1, "score": 88, "reason": "fits"})])

    outcome = analyze_listings([neutral_listing], Criteria(user_query="accountant"), adapter=adapter)

    assert outcome.scored[0].score == 88
    assert outcome.scored[0].judged_by == "lm-studio"


def test_select_passing_sorts_and_keeps_tie_order(make_listing):
    def scored(id_, score):
        return ScoredListing(make_listing(id=id_), ScoreResult(score, [], score >= 60))

    ranked = select_passing([scored("a", 60), scored("b", 90), scored("c", 59), scored("d", 60)])

    assert [s.listing.id for s in ranked] == ["b", "a", "d"]
    assert [s.listing.id for s in select_passing([scored("c", 59)], threshold=50)] == ["c"]


class TestHiringFilter:
    @pytest.fixture
    def listings(self, make_listing):
        return [
            make_listing(id="a", description="We are hiring nurses", location="Austin, TX"),
            make_listing(id="b", description="Now hiring clerks"),
            make_listing(id="c", description="Company news"),
        ]

    def test_unknown_mode(self, listings):
        with pytest.raises(ValueError, match="Unknown filter mode"):
            hiring_filter(listings, "fuzzy")

    def test_none_and_keyword_modes(self, listings):
        kept, errors = hiring_filter(listings, "none")
        assert [j.id for j in kept] == ["a", "b", "c"]
        kept, errors = hiring_filter(listings, "hiring")
        assert [j.id for j in kept] == ["a", "b"]
        assert errors == []

    def test_ai_mode_needs_provider(self, listings):
        with pytest.raises(ProviderConfigError):
            hiring_filter(listings, "ai")

    def test_ai_mode_applies_confidence(self, make_listing, adapter_for, verdicts):
        listings = [
            make_listing(id="sure"),
            make_listing(id="unsure"),
            make_listing(id="no"),
            make_listing(id="fallback", description="Vacancy: payroll clerk"),
        ]
        adapter = adapter_for([verdicts(
            {"jobIndex": 1, "isHiring": True, "confidence": 90},
            {"jobIndex": 2, "isHiring": True, "confidence": 40},
            {"jobIndex": 3, "isHiring": False, "confidence": 95},
        )])

        kept, errors = hiring_filter(listings, "ai", min_confidence=60, adapter=adapter)

        assert [j.id for j in kept] == ["sure", "fallback"]
        assert errors == []

    def test_search_filter_report(self, listings):
        report = search_filter(listings, "hiring", ListingFilters(location="austin"))

        assert report.to_dict() == {
            "filter": {
                "applied": True,
                "type": "quick-hiring",
                "originalCount": 3,
                "filteredCount": 2,
                "additionalFilters": {"location": "austin"},
                "additionalFilteredCount": 1,
            },
            "data": [listings[0].to_dict()],
        }

    def test_search_filter_passthrough(self, listings):
        report = search_filter(listings, "none", ListingFilters())

        assert report.applied is False
        assert report.filtered_count == 3
        assert report.to_dict()["filter"] == {"applied": False, "type": "none"}

    def test_search_filter_reports_provider_errors(self, listings, adapter_for):
        adapter = adapter_for([ProviderError("AI server error: 502", 502)])

        report = search_filter(listings, "ai", adapter=adapter)

        assert report.type == "ai-hiring"
        assert [j.id for j in report.data] == ["a", "b"]
        assert report.to_dict()["errors"] == ["AI server error: 502"]


def test_report_uses_response_key_names(make_listing):
    listings = [make_listing(id="a", title="Payroll Accountant", extra={"engine": "bing"}, published_date="2026-10-10")]
    filters = ListingFilters(job_type="payroll", engine="bing", has_date=True, posted_after="2026-10-01")

    report = search_filter(listings, "none", filters, now=datetime(2026, 10, 18))

    assert report.to_dict()["filter"]["additionalFilters"] == {
        "jobType": "payroll",
        "searchEngine": "bing",
        "hasDate": True,
        "postedAfter": "2026-10-01",
    }
    assert report.additional_filtered_count == 1


def test_ai_filter_passes_location_hint(make_listing, local_config, fake_client, verdicts):
    client = fake_client([verdicts({"jobIndex": 1, "isHiring": True, "confidence": 90})])
    adapter = JudgeAdapter(local_config, client=client, sleep=lambda s: None)

    search_filter([make_listing(location="Austin, TX")], "ai", ListingFilters(location="Austin"), adapter=adapter)

    assert client.calls[0]["user"].endswith("Also consider location relevance for: Austin.")
