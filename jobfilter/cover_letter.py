"""Generate tailored cover letters through the configured provider (or a template)."""
from __future__ import annotations

import os
from typing import Any

from jobfilter.config import ProviderConfig
from jobfilter.log import get_logger
from jobfilter.models import Listing
from jobfilter.providers import JudgeAdapter, ProviderError

log = get_logger(__name__)

SYSTEM_PROMPT = (
    "You are an expert career counselor and professional writer. Write a personalized, "
    "professional cover letter of 3-4 paragraphs: introduce the candidate and their interest, "
    "highlight relevant experience and skills, close with a call to action. "
    "Only output the cover letter text, no explanations."
)


def _field(profile: dict[str, Any], *keys: str) -> Any:
    """First non-empty value among *keys* (profiles come in camelCase or snake_case)."""
    for key in keys:
        value = profile.get(key)
        if value not in (None, "", [], 0):
            return value
    return None


def _candidate_name(profile: dict[str, Any]) -> str:
    return (
        os.environ.get("CANDIDATE_NAME", "").strip()
        or _field(profile, "name")
        or "Candidate"
    )


def _skills(profile: dict[str, Any]) -> list[str]:
    skills = _field(profile, "skills") or []
    if isinstance(skills, str):
        skills = [s.strip() for s in skills.split(",") if s.strip()]
    return list(skills)


def _experience_years(profile: dict[str, Any]) -> Any:
    return _field(profile, "experienceYears", "experience_years", "experience")


def build_prompt(listing: Listing, profile: dict[str, Any]) -> str:
    name = _candidate_name(profile)
    experience = _experience_years(profile)
    lines = [
        "Please generate a professional cover letter for the following:",
        "",
        "Job Information:",
        f"- Position: {listing.title}",
        f"- Company: {listing.company}",
        f"- Location: {listing.location or 'Not specified'}",
        f"- Job Description: {(listing.description or 'Not provided')[:1500]}",
        "",
        "Candidate Profile:",
        f"- Name: {name}",
        f"- Current Role: {_field(profile, 'currentRole', 'current_role', 'title') or ''}",
    ]
    if experience is not None:
        lines.append(f"- Years of Experience: {experience} years")
    lines += [
        f"- Skills: {', '.join(_skills(profile)[:8])}",
        f"- Bio/Summary: {_field(profile, 'bio', 'summary') or ''}",
        "",
        f'End the letter with "Best regards," followed by {name}. '
        "Do not use placeholders like [Your Name].",
    ]
    return "\n".join(lines)


def generate_cover_letter(
    listing: Listing,
    profile: dict[str, Any],
    config: ProviderConfig | None = None,
    *,
    adapter: JudgeAdapter | None = None,
) -> str:
    if adapter is None and config is not None:
        adapter = JudgeAdapter(config)
    if adapter is None:
        log.debug("No AI provider, using template cover letter")
        return fallback_letter(listing, profile)

    outcome = adapter.complete(SYSTEM_PROMPT, build_prompt(listing, profile), max_tokens=600)
    if isinstance(outcome, ProviderError):
        log.warning("Cover letter generation failed (%s), using template", outcome.reason)
        return fallback_letter(listing, profile)
    log.info("Cover letter generated for %s @ %s", listing.title, listing.company)
    return outcome.text


def fallback_letter(listing: Listing, profile: dict[str, Any]) -> str:
    """Plain letter assembled from the profile when no provider text is available."""
    role = _field(profile, "currentRole", "current_role", "title")
    years = _experience_years(profile)
    bio = _field(profile, "bio", "summary")
    skills = _skills(profile)[:5]

    where = f" ({listing.location})" if listing.location else ""
    paragraphs = [f"Dear {listing.company or 'Hiring'} Team,"]
    paragraphs.append(
        f"Please consider me for the {listing.title} opening at {listing.company}{where}."
    )
    if role and years:
        paragraphs.append(f"I currently work as a {role} and bring {years} years of experience.")
    elif role:
        paragraphs.append(f"I currently work as a {role}.")
    elif years:
        paragraphs.append(f"I bring {years} years of professional experience.")
    if bio:
        paragraphs.append(str(bio).strip())
    if skills:
        paragraphs.append(f"Skills I would put to work in this role: {', '.join(skills)}.")
    paragraphs.append("Thank you for your time. I look forward to hearing from you.")
    paragraphs.append(f"Best regards,\n{_candidate_name(profile)}")
    return "\n\n".join(paragraphs)
