"""Structured post-filters applied independently of the relevance score."""
from __future__ import annotations

import re
from dataclasses import asdict, dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any

from jobfilter.log import get_logger
from jobfilter.models import Listing

log = get_logger(__name__)

_LOCATION_RE = re.compile(r"(?:location|based in|in)\s*:?\s*([a-z\s,]+)(?:\s|$)")
_COMPANY_RE = re.compile(r"(?:company|at)\s*:?\s*([a-z\s&.]+)(?:\s|$)")
_SALARY_RE = re.compile(
    r"\$(\d+(?:,\d+)?(?:\.\d{2})?)(?:\s*(?:-|to)\s*\$(\d+(?:,\d+)?(?:\.\d{2})?))?"
)
# The salary field itself may omit the currency sign
_SALARY_FIELD_RE = re.compile(
    r"\$?(\d[\d,]*(?:\.\d{2})?)(?:\s*(?:-|to)\s*\$?(\d[\d,]*(?:\.\d{2})?))?"
)
_DAYS_AGO_RE = re.compile(r"(\d+)\s+days?\s+ago")
_WEEKS_AGO_RE = re.compile(r"(\d+)\s+weeks?\s+ago")

# Field names a search hit may carry its post date under, besides published_date
_DATE_KEYS: tuple[str, ...] = ("postedDate", "posted_date", "date")
_RECENT_WINDOW = timedelta(days=2)
# Non-ISO forms seen in search-hit metadata, tried after fromisoformat
_DATE_FORMATS: tuple[str, ...] = (
    "%b %d, %Y",
    "%B %d, %Y",
    "%d %b %Y",
    "%d %B %Y",
    "%m/%d/%Y",
    "%Y/%m/%d",
    "%a, %d %b %Y %H:%M:%S GMT",
)


@dataclass
class ListingFilters:
    location: str | None = None
    job_type: str | None = None
    remote: bool | None = None
    company: str | None = None
    engine: str | None = None
    has_date: bool | None = None
    min_salary: int | None = None
    max_salary: int | None = None
    posted_after: str | None = None
    posted_before: str | None = None

    def active(self) -> dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


def _content(listing: Listing) -> str:
    return f"{listing.title} {listing.content}".lower()


def extract_location(listing: Listing) -> str | None:
    m = _LOCATION_RE.search(_content(listing))
    return m.group(1).strip() if m else None


def extract_company(listing: Listing) -> str | None:
    m = _COMPANY_RE.search(_content(listing))
    return m.group(1).strip() if m else None


def _money(s: str) -> int:
    return int(float(s.replace(",", "")))


def salary_range(listing: Listing) -> tuple[int, int] | None:
    """(min, max) from the salary field, else from a ``$N`` / ``$N - $M`` mention."""
    for pattern, text in ((_SALARY_FIELD_RE, listing.salary or ""), (_SALARY_RE, _content(listing))):
        m = pattern.search(text)
        if m:
            low = _money(m.group(1))
            high = _money(m.group(2)) if m.group(2) else low
            return low, high
    return None


def _parse_text_date(s: str) -> datetime | None:
    try:
        return datetime.fromisoformat(s.replace("Z", "+00:00"))
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(s, fmt)
        except ValueError:
            continue
    return None


def parse_date(value: Any) -> datetime | None:
    """ISO-8601 or a common written form ("Oct 1, 2025", "10/01/2025"); naive values are UTC."""
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime(value.year, value.month, value.day)
    elif isinstance(value, str) and value.strip():
        dt = _parse_text_date(value.strip())
        if dt is None:
            return None
    else:
        return None
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def _as_utc(now: datetime | None) -> datetime:
    now = now or datetime.now(timezone.utc)
    return now if now.tzinfo else now.replace(tzinfo=timezone.utc)


def date_from_content(listing: Listing, now: datetime) -> datetime | None:
    text = f"{listing.title} {listing.content} {listing.description}".lower()
    if "today" in text:
        return now
    if "yesterday" in text:
        return now - timedelta(days=1)
    m = _DAYS_AGO_RE.search(text)
    if m:
        return now - timedelta(days=int(m.group(1)))
    m = _WEEKS_AGO_RE.search(text)
    if m:
        return now - timedelta(weeks=int(m.group(1)))
    return None


def listing_date(listing: Listing, now: datetime | None = None) -> datetime:
    """Best guess at when a listing was posted.

    Provisional heuristic: search engines often stamp hits with the crawl time,
    so the earliest candidate date field wins, and when that is under two days
    old an earlier relative date in the text ("3 days ago") overrides it.
    Without any usable field the text is parsed; failing that, ``now``.
    """
    now = _as_utc(now)
    metadata = listing.extra.get("metadata")
    candidates = [listing.published_date]
    candidates += [listing.extra.get(k) for k in _DATE_KEYS]
    if isinstance(metadata, dict):
        candidates.append(metadata.get("publishedDate"))
    dates = [d for d in (parse_date(c) for c in candidates) if d is not None]

    from_text = date_from_content(listing, now)
    if dates:
        earliest = min(dates)
        if now - earliest < _RECENT_WINDOW and from_text is not None and from_text < earliest:
            return from_text
        return earliest
    return from_text or now


def _contains(haystack: str | None, needle: str) -> bool:
    return bool(haystack) and needle.lower() in haystack.lower()


def _utc_day(dt: datetime) -> date:
    return dt.astimezone(timezone.utc).date()


def _salary_at_least(listing: Listing, floor: int) -> bool:
    r = salary_range(listing)
    return r is not None and r[0] >= floor


def _salary_at_most(listing: Listing, ceiling: int) -> bool:
    r = salary_range(listing)
    return r is not None and r[1] <= ceiling


def apply_filters(
    listings: list[Listing], filters: ListingFilters, now: datetime | None = None
) -> tuple[list[Listing], dict[str, Any]]:
    """Return the listings passing every active filter, plus the filters applied."""
    now = _as_utc(now)
    kept = list(listings)
    f = filters

    if f.location:
        kept = [j for j in kept if _contains(j.location or extract_location(j), f.location)]
    if f.job_type:
        kept = [j for j in kept if _contains(j.title, f.job_type)]
    if f.remote is not None:
        kept = [j for j in kept if ("remote" in _content(j)) == f.remote]
    if f.company:
        kept = [j for j in kept if _contains(j.company or extract_company(j), f.company)]
    if f.engine:
        kept = [j for j in kept if _contains(str(j.extra.get("engine") or j.source or ""), f.engine)]
    if f.has_date:
        kept = [j for j in kept if parse_date(j.published_date) is not None]
    if f.min_salary is not None:
        kept = [j for j in kept if _salary_at_least(j, f.min_salary)]
    if f.max_salary is not None:
        kept = [j for j in kept if _salary_at_most(j, f.max_salary)]
    if f.posted_after:
        after = parse_date(f.posted_after)
        if after is None:
            log.warning("Ignoring unparsable posted_after=%r", f.posted_after)
        else:
            kept = [j for j in kept if _utc_day(listing_date(j, now)) > _utc_day(after)]
    if f.posted_before:
        before = parse_date(f.posted_before)
        if before is None:
            log.warning("Ignoring unparsable posted_before=%r", f.posted_before)
        else:
            kept = [j for j in kept if listing_date(j, now) <= before]

    applied = f.active()
    if applied:
        log.debug("Structured filters %s kept %d/%d", applied, len(kept), len(listings))
    return kept, applied
