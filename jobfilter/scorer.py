"""Rule-based scoring of listings against user criteria."""
from __future__ import annotations

import math
import re
from typing import Iterable

from jobfilter.log import get_logger
from jobfilter.models import PASS_THRESHOLD, Criteria, Listing, ScoredListing, ScoreResult

log = get_logger(__name__)

BASE_SCORE = 50.0
FALLBACK_REASON = "Basic job analysis completed"

QUERY_WEIGHT = 30
LOCATION_BONUS = 15
SKILLS_WEIGHT = 25
EXPERIENCE_BONUS = 10
SALARY_BONUS = 15
SALARY_PENALTY = 10
COMPANY_BONUS = 10
REMOTE_BONUS = 5

TOP_COMPANIES: tuple[str, ...] = (
    "google", "microsoft", "apple", "amazon", "meta",
    "netflix", "tesla", "uber", "airbnb",
)

# (criteria keyword, description keywords, reason label), checked in order
EXPERIENCE_LEVELS: tuple[tuple[str, tuple[str, ...], str], ...] = (
    ("entry", ("entry", "junior"), "entry/junior"),
    ("senior", ("senior",), "senior"),
    ("mid", ("mid", "intermediate"), "mid-level"),
)

_NON_DIGITS = re.compile(r"[^0-9]")


def _normalize(s: str | None) -> str:
    return (s or "").lower()


def parse_amount(value: str | None) -> int | None:
    """Digits of *value* as an integer, or None when there are none."""
    digits = _NON_DIGITS.sub("", value or "")
    return int(digits) if digits else None


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def _query_overlap(query: str | None, title: str) -> tuple[int, int]:
    words = _normalize(query).split()
    return sum(1 for w in words if w in title), len(words)


def _skill_overlap(skills: str | None, desc: str) -> tuple[int, int]:
    wanted = [s.strip() for s in _normalize(skills).split(",")]
    wanted = [s for s in wanted if s]
    return sum(1 for s in wanted if s in desc), len(wanted)


def _experience_match(experience: str | None, desc: str) -> str | None:
    exp = _normalize(experience)
    if not exp:
        return None
    for key, needles, label in EXPERIENCE_LEVELS:
        if key in exp and any(n in desc for n in needles):
            return label
    return None


def score_listing(listing: Listing, criteria: Criteria) -> ScoreResult:
    """Score one listing against *criteria*.

    Starts from 50 and applies independent additive rules in a fixed order:
    title/query overlap, location, skills, experience level, salary floor,
    well-known company, remote work. The total is clamped to 0-100 and rounded.
    Missing or unparsable fields skip their rule.
    """
    reasons: list[str] = []
    score = BASE_SCORE
    title = _normalize(listing.title)
    desc = _normalize(listing.description)
    location = _normalize(listing.location)

    # --- Title vs. search query ---
    matched, total = _query_overlap(criteria.user_query, title)
    if matched:
        score += matched / total * QUERY_WEIGHT
        reasons.append(f"Title matches {matched}/{total} search terms")

    # --- Location ---
    wanted_loc = _normalize(criteria.location)
    if wanted_loc and wanted_loc in location:
        score += LOCATION_BONUS
        reasons.append("Location matches preference")

    # --- Skills ---
    matched, total = _skill_overlap(criteria.skills, desc)
    if matched:
        score += matched / total * SKILLS_WEIGHT
        reasons.append(f"Found {matched}/{total} required skills")

    # --- Experience level ---
    level = _experience_match(criteria.experience, desc)
    if level:
        score += EXPERIENCE_BONUS
        reasons.append(f"Experience level matches ({level})")

    # --- Salary floor ---
    wanted_salary = parse_amount(criteria.min_salary)
    offered_salary = parse_amount(listing.salary)
    if wanted_salary is not None and offered_salary is not None:
        if offered_salary >= wanted_salary:
            score += SALARY_BONUS
            reasons.append("Salary meets minimum requirement")
        else:
            score -= SALARY_PENALTY
            reasons.append("Salary below minimum requirement")

    # --- Company ---
    company = _normalize(listing.company)
    if any(c in company for c in TOP_COMPANIES):
        score += COMPANY_BONUS
        reasons.append("Well-known company")

    # --- Remote ---
    if "remote" in location or "remote" in desc:
        score += REMOTE_BONUS
        reasons.append("Remote work available")

    final = _round_half_up(max(0.0, min(100.0, score)))
    return ScoreResult(
        score=final,
        reasons=reasons or [FALLBACK_REASON],
        passes=final >= PASS_THRESHOLD,
    )


def score_listings(listings: Iterable[Listing], criteria: Criteria) -> list[ScoredListing]:
    return [ScoredListing(listing=j, result=score_listing(j, criteria)) for j in listings]


def filter_and_rank(
    listings: list[Listing], criteria: Criteria, threshold: int = PASS_THRESHOLD
) -> list[ScoredListing]:
    scored = score_listings(listings, criteria)
    result = sorted([s for s in scored if s.score >= threshold], key=lambda s: -s.score)
    log.info("Scored %d listings → %d at or above %d", len(listings), len(result), threshold)
    return result
