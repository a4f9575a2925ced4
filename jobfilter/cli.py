"""Command-line entry: score, filter or write cover letters for a JSON file of listings."""
from __future__ import annotations

import argparse
import json
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from jobfilter.config import ProviderConfigError, load_criteria, load_profile, load_provider_config
from jobfilter.cover_letter import generate_cover_letter
from jobfilter.filters import ListingFilters
from jobfilter.log import get_logger
from jobfilter.models import PASS_THRESHOLD, Criteria, Listing
from jobfilter.pipeline import FILTER_MODES, analyze_listings, search_filter, select_passing
from jobfilter.providers import JudgeAdapter

log = get_logger(__name__)

HEALTH_PROBE = "We are hiring a Senior JavaScript Developer with 5+ years experience."


def load_listings(path: Path) -> list[Listing]:
    """Listings from a JSON array, or from the ``jobs``/``results``/``data`` key of an object."""
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, dict):
        for key in ("jobs", "results", "data"):
            if isinstance(data.get(key), list):
                data = data[key]
                break
    if not isinstance(data, list):
        raise ValueError(f"{path.name}: expected a list of listings")
    return [Listing.from_dict(item) for item in data if isinstance(item, dict)]


def _criteria_from_args(args: argparse.Namespace) -> Criteria:
    base = load_criteria(args.criteria) if args.criteria else Criteria()
    overrides = {
        "userQuery": args.query or base.user_query,
        "location": args.location or base.location,
        "skills": args.skills or base.skills,
        "experience": args.experience or base.experience,
        "minSalary": args.min_salary or base.min_salary,
        "jobTypes": base.job_types,
    }
    return Criteria.from_dict(overrides)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="jobfilter", description=__doc__)
    parser.add_argument("--provider-config", type=Path, default=None,
                        help="YAML provider config (defaults to config/provider.yaml + env)")
    sub = parser.add_subparsers(dest="command", required=True)

    analyze = sub.add_parser("analyze", help="score listings against criteria")
    analyze.add_argument("listings", type=Path)
    analyze.add_argument("--criteria", type=Path, help="criteria YAML file")
    analyze.add_argument("--query")
    analyze.add_argument("--location")
    analyze.add_argument("--skills", help="comma-separated")
    analyze.add_argument("--experience")
    analyze.add_argument("--min-salary")
    analyze.add_argument("--threshold", type=int, default=PASS_THRESHOLD)
    analyze.add_argument("--only-passing", action="store_true")
    analyze.add_argument("--heuristic", action="store_true", help="ignore any configured provider")

    search = sub.add_parser("search", help="hiring filter plus structured filters")
    search.add_argument("listings", type=Path)
    search.add_argument("--filter", choices=FILTER_MODES, default="none")
    search.add_argument("--min-confidence", type=int, default=PASS_THRESHOLD)
    search.add_argument("--location")
    search.add_argument("--job-type")
    search.add_argument("--remote", choices=("true", "false"))
    search.add_argument("--company")
    search.add_argument("--engine")
    search.add_argument("--has-date", action="store_true", default=None)
    search.add_argument("--min-salary", type=int)
    search.add_argument("--max-salary", type=int)
    search.add_argument("--posted-after")
    search.add_argument("--posted-before")

    letter = sub.add_parser("cover-letter", help="write a cover letter for one listing")
    letter.add_argument("listings", type=Path)
    letter.add_argument("--index", type=int, default=0, help="0-based position in the listings file")
    letter.add_argument("--profile", type=Path, required=True, help="candidate profile YAML")
    letter.add_argument("--heuristic", action="store_true", help="use the template letter only")

    sub.add_parser("health", help="probe the configured provider")
    return parser


def _run_analyze(args: argparse.Namespace) -> dict[str, Any]:
    listings = load_listings(args.listings)
    criteria = _criteria_from_args(args)
    config = None if args.heuristic else load_provider_config(args.provider_config)
    outcome = analyze_listings(listings, criteria, config)
    scored = select_passing(outcome.scored, args.threshold) if args.only_passing else outcome.scored
    result: dict[str, Any] = {"data": [s.to_dict() for s in scored]}
    if outcome.errors:
        result["errors"] = [e.reason for e in outcome.errors]
    return result


def _run_search(args: argparse.Namespace) -> dict[str, Any]:
    listings = load_listings(args.listings)
    filters = ListingFilters(
        location=args.location,
        job_type=args.job_type,
        remote=None if args.remote is None else args.remote == "true",
        company=args.company,
        engine=args.engine,
        has_date=args.has_date,
        min_salary=args.min_salary,
        max_salary=args.max_salary,
        posted_after=args.posted_after,
        posted_before=args.posted_before,
    )
    config = load_provider_config(args.provider_config) if args.filter == "ai" else None
    report = search_filter(
        listings, args.filter, filters, config, min_confidence=args.min_confidence
    )
    return {"success": True, **report.to_dict()}


def _run_cover_letter(args: argparse.Namespace) -> dict[str, Any]:
    listings = load_listings(args.listings)
    if not 0 <= args.index < len(listings):
        raise ValueError(f"--index {args.index} out of range for {len(listings)} listing(s)")
    listing = listings[args.index]
    profile = load_profile(args.profile)
    config = None if args.heuristic else load_provider_config(args.provider_config)
    return {
        "coverLetter": generate_cover_letter(listing, profile, config),
        "jobId": listing.id,
        "generatedAt": datetime.now(timezone.utc).isoformat(),
    }


def _run_health(args: argparse.Namespace) -> dict[str, Any]:
    config = load_provider_config(args.provider_config)
    if config is None:
        raise ProviderConfigError("No AI provider configured")
    analysis = JudgeAdapter(config).analyze_content(HEALTH_PROBE)
    healthy = analysis["confidence"] > 0
    return {
        "status": "healthy" if healthy else "unhealthy",
        "ai_service": "available" if healthy else "unavailable",
        "test_analysis": analysis,
    }


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    handlers = {
        "analyze": _run_analyze,
        "search": _run_search,
        "health": _run_health,
        "cover-letter": _run_cover_letter,
    }
    try:
        result = handlers[args.command](args)
    except ProviderConfigError as exc:
        log.error("Provider configuration error: %s", exc)
        return 2
    except (OSError, ValueError) as exc:
        log.error("%s", exc)
        return 1
    json.dump(result, sys.stdout, indent=2, default=str)
    sys.stdout.write("\n")
    if args.command == "health" and result["status"] != "healthy":
        return 3
    return 0
