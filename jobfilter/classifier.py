"""Keyword check for listings that read like an active hiring call."""
from __future__ import annotations

from typing import Iterable

from jobfilter.log import get_logger
from jobfilter.models import ClassificationResult, Listing

log = get_logger(__name__)

HIRING_KEYWORDS: tuple[str, ...] = (
    "hiring", "recruiting", "looking for", "seeking", "join our team",
    "we are hiring", "now hiring", "immediate opening", "urgent requirement",
    "apply now", "send resume", "send cv", "job opening", "vacancy",
    "position available", "career opportunity",
)


def matched_keywords(text: str) -> list[str]:
    low = (text or "").lower()
    return [kw for kw in HIRING_KEYWORDS if kw in low]


def is_hiring_post(listing: Listing) -> bool:
    low = listing.text.lower()
    return any(kw in low for kw in HIRING_KEYWORDS)


def classify(listing: Listing) -> ClassificationResult:
    hits = matched_keywords(listing.text)
    if not hits:
        return ClassificationResult(is_hiring_post=False, reason="No hiring keywords found")
    return ClassificationResult(is_hiring_post=True, reason="Hiring keywords: " + ", ".join(hits[:3]))


def quick_hiring_filter(listings: Iterable[Listing]) -> list[Listing]:
    listings = list(listings)
    kept = [j for j in listings if is_hiring_post(j)]
    log.debug("Hiring keyword filter kept %d/%d listings", len(kept), len(listings))
    return kept
