"""
Caller-facing operations: analyze → threshold, and hiring filter → structured filters.

These are the flows the web handlers run. They take an explicit provider
config (or None for heuristic-only) and never raise for provider trouble;
only an unusable config raises ``ProviderConfigError``.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from jobfilter.classifier import quick_hiring_filter
from jobfilter.config import ProviderConfig, ProviderConfigError
from jobfilter.filters import ListingFilters, apply_filters
from jobfilter.log import get_logger
from jobfilter.models import PASS_THRESHOLD, Criteria, Listing, ScoredListing
from jobfilter.providers import BatchOutcome, JudgeAdapter, ProviderError
from jobfilter.scorer import score_listings

log = get_logger(__name__)

FILTER_MODES: tuple[str, ...] = ("none", "hiring", "ai")

# ListingFilters field -> key used in the search response
_REPORT_KEYS: dict[str, str] = {
    "job_type": "jobType",
    "engine": "searchEngine",
    "has_date": "hasDate",
    "min_salary": "minSalary",
    "max_salary": "maxSalary",
    "posted_after": "postedAfter",
    "posted_before": "postedBefore",
}


@dataclass
class FilterReport:
    type: str
    original_count: int
    data: list[Listing]
    additional_filters: dict[str, Any] = field(default_factory=dict)
    additional_filtered_count: int | None = None
    errors: list[ProviderError] = field(default_factory=list)
    hiring_count: int = 0

    @property
    def applied(self) -> bool:
        return self.type != "none"

    @property
    def filtered_count(self) -> int:
        return len(self.data)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "filter": {"applied": self.applied, "type": self.type},
            "data": [j.to_dict() for j in self.data],
        }
        if self.applied:
            out["filter"]["originalCount"] = self.original_count
            out["filter"]["filteredCount"] = self.hiring_count
        if self.additional_filters:
            out["filter"]["additionalFilters"] = {
                _REPORT_KEYS.get(k, k): v for k, v in self.additional_filters.items()
            }
            out["filter"]["additionalFilteredCount"] = self.additional_filtered_count
        if self.errors:
            out["errors"] = [e.reason for e in self.errors]
        return out


def analyze_listings(
    listings: list[Listing],
    criteria: Criteria,
    config: ProviderConfig | None = None,
    *,
    adapter: JudgeAdapter | None = None,
) -> BatchOutcome:
    """Score every listing, through the provider when one is configured."""
    if adapter is None and config is not None:
        adapter = JudgeAdapter(config)
    if adapter is None:
        return BatchOutcome(scored=score_listings(listings, criteria))
    return adapter.score_batch(listings, criteria)


def select_passing(scored: list[ScoredListing], threshold: int = PASS_THRESHOLD) -> list[ScoredListing]:
    """Listings at or above *threshold*, best first; ties keep input order."""
    kept = [s for s in scored if s.score >= threshold]
    return sorted(kept, key=lambda s: -s.score)


def hiring_filter(
    listings: list[Listing],
    mode: str = "hiring",
    config: ProviderConfig | None = None,
    *,
    min_confidence: int = PASS_THRESHOLD,
    adapter: JudgeAdapter | None = None,
    location: str | None = None,
) -> tuple[list[Listing], list[ProviderError]]:
    """Narrow to hiring posts by keyword (``hiring``) or by provider (``ai``).

    *location* is passed to the provider as a relevance hint only; the
    location filter itself is applied by ``apply_filters``.
    """
    if mode not in FILTER_MODES:
        raise ValueError(f"Unknown filter mode {mode!r}; expected one of {FILTER_MODES}")
    if mode == "none":
        return list(listings), []
    if mode == "hiring":
        return quick_hiring_filter(listings), []

    if adapter is None:
        if config is None:
            raise ProviderConfigError("No AI provider configured")
        adapter = JudgeAdapter(config)
    outcome = adapter.classify_batch(listings, min_confidence=min_confidence, location=location)
    kept = [
        listing
        for listing, verdict in outcome.results
        if verdict.is_hiring_post
        and (verdict.confidence is None or verdict.confidence >= min_confidence)
    ]
    return kept, outcome.errors


def search_filter(
    listings: list[Listing],
    mode: str = "none",
    filters: ListingFilters | None = None,
    config: ProviderConfig | None = None,
    *,
    min_confidence: int = PASS_THRESHOLD,
    adapter: JudgeAdapter | None = None,
    now: datetime | None = None,
) -> FilterReport:
    """Hiring filter in the given mode, then the structured filters."""
    narrowed, errors = hiring_filter(
        listings,
        mode,
        config,
        min_confidence=min_confidence,
        adapter=adapter,
        location=filters.location if filters is not None else None,
    )
    report = FilterReport(
        type={"none": "none", "hiring": "quick-hiring", "ai": "ai-hiring"}[mode],
        original_count=len(listings),
        data=narrowed,
        errors=errors,
        hiring_count=len(narrowed),
    )
    if filters is not None:
        kept, applied = apply_filters(narrowed, filters, now=now)
        report.data = kept
        if applied:
            report.additional_filters = applied
            report.additional_filtered_count = len(kept)

    log.info(
        "Filter %s: %d → %d listings%s",
        report.type, report.original_count, report.filtered_count,
        f" ({len(errors)} provider error(s))" if errors else "",
    )
    return report
