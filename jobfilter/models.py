"""Data models for listings, criteria and derived scores."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

PASS_THRESHOLD = 60

# camelCase keys used by API payloads → dataclass field names
_LISTING_KEYS: dict[str, str] = {
    "id": "id",
    "_id": "id",
    "title": "title",
    "company": "company",
    "location": "location",
    "salary": "salary",
    "type": "type",
    "jobType": "type",
    "job_type": "type",
    "description": "description",
    "url": "url",
    "publishedDate": "published_date",
    "published_date": "published_date",
    "source": "source",
    "content": "content",
}

_CRITERIA_KEYS: dict[str, str] = {
    "userQuery": "user_query",
    "user_query": "user_query",
    "location": "location",
    "skills": "skills",
    "experience": "experience",
    "minSalary": "min_salary",
    "min_salary": "min_salary",
    "jobTypes": "job_types",
    "job_types": "job_types",
    "jobType": "job_types",
}


def _text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def _optional_text(value: Any) -> str | None:
    if value is None:
        return None
    text = _text(value).strip()
    return text or None


@dataclass(frozen=True)
class Listing:
    id: str
    title: str
    company: str = ""
    location: str = ""
    salary: str | None = None
    type: str = ""
    description: str = ""
    url: str = ""
    published_date: str | None = None
    source: str | None = None
    content: str = ""
    extra: dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Listing":
        """Build a listing from a loose API/search-hit dict.

        Known keys (camelCase or snake_case) map onto fields; everything else
        is kept in ``extra`` so provider- or UI-specific data survives.
        """
        known: dict[str, Any] = {}
        extra: dict[str, Any] = {}
        for key, value in data.items():
            name = _LISTING_KEYS.get(key)
            if name is None:
                extra[key] = value
            elif name not in known or known[name] in (None, ""):
                known[name] = value
        return cls(
            id=_text(known.get("id") or data.get("url") or known.get("title")),
            title=_text(known.get("title")),
            company=_text(known.get("company")),
            location=_text(known.get("location")),
            salary=_optional_text(known.get("salary")),
            type=_text(known.get("type")),
            description=_text(known.get("description")),
            url=_text(known.get("url")),
            published_date=_optional_text(known.get("published_date")),
            source=_optional_text(known.get("source")),
            content=_text(known.get("content")),
            extra=extra,
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = dict(self.extra)
        out.update(
            {
                "id": self.id,
                "title": self.title,
                "company": self.company,
                "location": self.location,
                "salary": self.salary,
                "type": self.type,
                "description": self.description,
                "url": self.url,
                "publishedDate": self.published_date,
                "source": self.source,
            }
        )
        if self.content:
            out["content"] = self.content
        return out

    @property
    def text(self) -> str:
        """Concatenated free text used by the hiring classifier."""
        return " ".join(
            part for part in (self.title, self.company, self.content, self.description) if part
        )


@dataclass(frozen=True)
class Criteria:
    user_query: str | None = None
    location: str | None = None
    skills: str | None = None
    experience: str | None = None
    min_salary: str | None = None
    job_types: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "Criteria":
        values: dict[str, Any] = {}
        for key, value in (data or {}).items():
            name = _CRITERIA_KEYS.get(key)
            if name is not None:
                values[name] = value
        job_types = values.pop("job_types", None) or []
        if isinstance(job_types, str):
            job_types = [t.strip() for t in job_types.split(",") if t.strip()]
        return cls(
            **{k: _optional_text(v) for k, v in values.items()},
            job_types=tuple(job_types),
        )

    def is_empty(self) -> bool:
        return not any(
            (self.user_query, self.location, self.skills, self.experience,
             self.min_salary, self.job_types)
        )


@dataclass(frozen=True)
class ScoreResult:
    score: int
    reasons: list[str]
    passes: bool

    @property
    def reason(self) -> str:
        return "; ".join(self.reasons)


@dataclass(frozen=True)
class ClassificationResult:
    is_hiring_post: bool
    confidence: int | None = None
    reason: str = ""


@dataclass
class ScoredListing:
    listing: Listing
    result: ScoreResult
    judged_by: str = "heuristic"

    @property
    def score(self) -> int:
        return self.result.score

    def to_dict(self) -> dict[str, Any]:
        """Listing dict with the derived ``aiScore``/``aiReason``/``isFiltered`` fields merged on."""
        out = self.listing.to_dict()
        out.update(
            {
                "aiScore": self.result.score,
                "aiReason": self.result.reason,
                "aiReasons": list(self.result.reasons),
                "isFiltered": self.result.passes,
                "judgedBy": self.judged_by,
            }
        )
        return out
