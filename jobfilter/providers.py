"""External judge: score or classify listings through a text-generation provider.

Two envelopes are supported. Local servers (LM Studio, Ollama) speak the
OpenAI chat-completions protocol and are reached with the ``openai`` SDK;
Gemini is called over its REST ``generateContent`` endpoint with ``requests``.

Every call returns a value instead of raising: ``Completion`` on success,
``ProviderError`` otherwise. ``JudgeAdapter`` turns provider errors and
malformed verdicts into heuristic results, so a batch always comes back
complete and in order.
"""
from __future__ import annotations

import json
import math
import re
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Union

import openai
import requests
from openai import OpenAI

from jobfilter.classifier import classify
from jobfilter.config import ProviderConfig
from jobfilter.log import get_logger
from jobfilter.models import (
    PASS_THRESHOLD,
    ClassificationResult,
    Criteria,
    Listing,
    ScoredListing,
    ScoreResult,
)
from jobfilter.retry import retry
from jobfilter.scorer import score_listing

log = get_logger(__name__)

CHUNK_SIZE = 5
CHUNK_DELAY = 0.5
TEMPERATURE = 0.3
REQUEST_TIMEOUT = 30
_DESC_LIMIT = 1500

SCORING_SYSTEM_PROMPT = (
    "You are a job matching AI. Decide how well each job matches the user's "
    "criteria and give it a score from 0-100.\n"
    "Consider: job title relevance to the target role, location preferences, "
    "salary requirements, required skills, experience level fit, company preferences.\n"
    "Return STRICT JSON only, no prose."
)
HIRING_SYSTEM_PROMPT = (
    "You are a job analysis AI. Analyze job postings and return structured JSON responses."
)
CONTENT_SYSTEM_PROMPT = (
    "You are a job analysis AI. Analyze the given content and determine if it's a hiring post."
)

_JSON_ARRAY = re.compile(r"\[[\s\S]*\]")


# --- Outcome values ---------------------------------------------------------


@dataclass(frozen=True)
class Completion:
    text: str


@dataclass(frozen=True)
class ProviderError:
    reason: str
    status: int | None = None


@dataclass
class JudgeVerdicts:
    """Per-listing verdicts for one chunk; None marks an item the provider botched."""

    items: list[ScoreResult | None]


@dataclass
class HiringVerdicts:
    items: list[ClassificationResult | None]


CompletionOutcome = Union[Completion, ProviderError]


@dataclass
class BatchOutcome:
    scored: list[ScoredListing]
    errors: list[ProviderError] = field(default_factory=list)

    @property
    def fallback_count(self) -> int:
        return sum(1 for s in self.scored if s.judged_by == "heuristic")


@dataclass
class ClassificationOutcome:
    results: list[tuple[Listing, ClassificationResult]]
    errors: list[ProviderError] = field(default_factory=list)


# --- Transports -------------------------------------------------------------


def _is_client_error(exc: BaseException) -> bool:
    status = getattr(getattr(exc, "response", None), "status_code", None)
    if status is None:
        status = getattr(exc, "status_code", None)
    return status is not None and 400 <= status < 500 and status != 429


class ChatCompletionsClient:
    """OpenAI-compatible local server (LM Studio, Ollama)."""

    def __init__(self, config: ProviderConfig, timeout: float = REQUEST_TIMEOUT) -> None:
        self.config = config
        self.timeout = timeout
        self._client: OpenAI | None = None

    def _get_client(self) -> OpenAI:
        if self._client is None:
            self._client = OpenAI(
                api_key=self.config.api_key or "not-needed",
                base_url=f"{self.config.base_url}/v1",
                timeout=self.timeout,
                max_retries=0,
            )
        return self._client

    @retry(
        max_attempts=2,
        base_delay=1.0,
        retryable=(openai.APIError, OSError),
        give_up=_is_client_error,
    )
    def _call(self, system: str, user: str, max_tokens: int) -> str:
        r = self._get_client().chat.completions.create(
            model=self.config.resolved_model,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            temperature=TEMPERATURE,
            max_tokens=max_tokens,
        )
        return (r.choices[0].message.content or "").strip()

    def complete(self, system: str, user: str, *, max_tokens: int = 1000) -> CompletionOutcome:
        try:
            text = self._call(system, user, max_tokens)
        except openai.APIStatusError as exc:
            return ProviderError(f"AI server error: {exc.status_code}", exc.status_code)
        except (openai.APIError, OSError) as exc:
            return ProviderError(f"AI request failed: {exc}")
        except (AttributeError, IndexError, TypeError) as exc:
            return ProviderError(f"Unexpected response shape: {exc}")
        if not text:
            return ProviderError("No AI response received")
        return Completion(text)


class GeminiClient:
    """Cloud ``generateContent`` endpoint."""

    def __init__(self, config: ProviderConfig, timeout: float = REQUEST_TIMEOUT) -> None:
        self.config = config
        self.timeout = timeout

    @retry(
        max_attempts=2,
        base_delay=1.0,
        retryable=(requests.RequestException,),
        give_up=_is_client_error,
    )
    def _call(self, system: str, user: str, max_tokens: int) -> dict[str, Any]:
        url = f"{self.config.base_url}/{self.config.resolved_model}:generateContent"
        body = {
            "systemInstruction": {"parts": [{"text": system}]},
            "contents": [{"role": "user", "parts": [{"text": user}]}],
            "generationConfig": {"temperature": TEMPERATURE, "maxOutputTokens": max_tokens},
        }
        headers = {"x-goog-api-key": self.config.api_key or "", "Content-Type": "application/json"}
        r = requests.post(url, json=body, headers=headers, timeout=self.timeout)
        r.raise_for_status()
        return r.json()

    def complete(self, system: str, user: str, *, max_tokens: int = 1000) -> CompletionOutcome:
        try:
            data = self._call(system, user, max_tokens)
        except requests.HTTPError as exc:
            status = exc.response.status_code if exc.response is not None else None
            return ProviderError(f"AI server error: {status}", status)
        except requests.RequestException as exc:
            return ProviderError(f"AI request failed: {exc}")
        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            return ProviderError("Unexpected response shape")
        text = (text or "").strip()
        if not text:
            return ProviderError("No AI response received")
        return Completion(text)


def make_client(config: ProviderConfig) -> ChatCompletionsClient | GeminiClient:
    config.validate()
    if config.is_local:
        return ChatCompletionsClient(config)
    return GeminiClient(config)


# --- Prompts and parsing ----------------------------------------------------


def _or(value: str | None, default: str) -> str:
    return value if value else default


def build_scoring_prompt(listings: list[Listing], criteria: Criteria) -> str:
    jobs = "\n".join(
        f"Job {i}:\n"
        f"Title: {j.title}\n"
        f"Company: {j.company}\n"
        f"Location: {_or(j.location, 'Not specified')}\n"
        f"Salary: {_or(j.salary, 'Not specified')}\n"
        f"Description: {(j.description or j.content)[:_DESC_LIMIT]}\n"
        for i, j in enumerate(listings, start=1)
    )
    return f"""Jobs:
{jobs}
User Criteria:
Target Role: {_or(criteria.user_query, 'Not specified')}
Location Preference: {_or(criteria.location, 'Any')}
Minimum Salary: {_or(criteria.min_salary, 'Not specified')}
Required Skills: {_or(criteria.skills, 'Not specified')}
Experience Level: {_or(criteria.experience, 'Not specified')}
Job Types: {', '.join(criteria.job_types) or 'Any'}

Respond with a JSON array where each object has:
- jobIndex: number (1-based index)
- score: number (0-100)
- reason: string (brief explanation)
- isMatch: boolean
"""


def build_hiring_prompt(listings: list[Listing], min_confidence: int, location: str | None = None) -> str:
    jobs = "\n".join(
        f"Job {i}:\nTitle: {j.title}\nCompany: {j.company}\n"
        f"Content: {(j.content or j.description)[:_DESC_LIMIT]}\n"
        for i, j in enumerate(listings, start=1)
    )
    prompt = f"""Analyze these job postings and determine which ones are actual hiring posts (not just company descriptions or news). For each job, provide a confidence score (0-100) and brief reason.

{jobs}
Please respond with a JSON array where each object has:
- jobIndex: number (1-based index)
- isHiring: boolean
- confidence: number (0-100)
- reason: string (brief explanation)

Focus on identifying genuine hiring posts with confidence >= {min_confidence}."""
    if location:
        prompt += f" Also consider location relevance for: {location}."
    return prompt


def _coerce_percent(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        try:
            value = float(value.strip().rstrip("%"))
        except ValueError:
            return None
    if not isinstance(value, (int, float)) or math.isnan(value):
        return None
    return int(math.floor(max(0.0, min(100.0, float(value))) + 0.5))


def parse_verdict_array(text: str, size: int) -> list[dict[str, Any] | None] | ProviderError:
    """Locate the JSON array in a model reply and index its objects by ``jobIndex``."""
    m = _JSON_ARRAY.search(text or "")
    if not m:
        return ProviderError("No JSON found in AI response")
    try:
        raw = json.loads(m.group(0))
    except ValueError as exc:
        return ProviderError(f"Unparsable AI response: {exc}")
    if not isinstance(raw, list):
        return ProviderError("AI response is not a JSON array")

    slots: list[dict[str, Any] | None] = [None] * size
    for item in raw:
        if not isinstance(item, dict):
            continue
        idx = item.get("jobIndex")
        if isinstance(idx, bool) or not isinstance(idx, int):
            continue
        if 1 <= idx <= size and slots[idx - 1] is None:
            slots[idx - 1] = item
    return slots


def _score_verdict(item: dict[str, Any] | None) -> ScoreResult | None:
    if item is None:
        return None
    score = _coerce_percent(item.get("score"))
    if score is None:
        return None
    reason = item.get("reason")
    reasons = [reason.strip()] if isinstance(reason, str) and reason.strip() else ["AI analysis completed"]
    return ScoreResult(
        score=score,
        reasons=reasons,
        passes=item.get("isMatch") is True or score >= PASS_THRESHOLD,
    )


def _hiring_verdict(item: dict[str, Any] | None) -> ClassificationResult | None:
    if item is None or not isinstance(item.get("isHiring"), bool):
        return None
    reason = item.get("reason")
    return ClassificationResult(
        is_hiring_post=item["isHiring"],
        confidence=_coerce_percent(item.get("confidence")),
        reason=reason if isinstance(reason, str) else "",
    )


# --- Adapter ----------------------------------------------------------------


def _chunks(items: list[Listing], size: int) -> list[list[Listing]]:
    return [items[i:i + size] for i in range(0, len(items), size)]


class JudgeAdapter:
    """Delegate scoring and hiring classification to a configured provider.

    The config is validated up front; ``ProviderConfigError`` is the only
    exception this class raises. Everything after that degrades to the
    heuristic scorer or keyword classifier.
    """

    def __init__(
        self,
        config: ProviderConfig,
        *,
        client: ChatCompletionsClient | GeminiClient | None = None,
        chunk_size: int = CHUNK_SIZE,
        delay: float = CHUNK_DELAY,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        self.config = config.validate()
        self.client = client or make_client(self.config)
        self.chunk_size = max(1, chunk_size)
        self.delay = delay
        self._sleep = sleep or time.sleep

    @property
    def name(self) -> str:
        return self.config.provider

    def complete(self, system: str, user: str, *, max_tokens: int = 1000) -> CompletionOutcome:
        return self.client.complete(system, user, max_tokens=max_tokens)

    def _pause(self, index: int, total: int) -> None:
        if index < total - 1 and self.delay > 0:
            self._sleep(self.delay)

    # scoring

    def judge_chunk(self, listings: list[Listing], criteria: Criteria) -> JudgeVerdicts | ProviderError:
        outcome = self.complete(
            SCORING_SYSTEM_PROMPT, build_scoring_prompt(listings, criteria), max_tokens=1000
        )
        if isinstance(outcome, ProviderError):
            return outcome
        parsed = parse_verdict_array(outcome.text, len(listings))
        if isinstance(parsed, ProviderError):
            return parsed
        return JudgeVerdicts(items=[_score_verdict(item) for item in parsed])

    def score_batch(self, listings: list[Listing], criteria: Criteria) -> BatchOutcome:
        outcome = BatchOutcome(scored=[])
        chunks = _chunks(list(listings), self.chunk_size)
        for n, chunk in enumerate(chunks):
            verdicts = self.judge_chunk(chunk, criteria)
            if isinstance(verdicts, ProviderError):
                log.warning(
                    "%s chunk %d/%d failed (%s), using heuristic",
                    self.name, n + 1, len(chunks), verdicts.reason,
                )
                outcome.errors.append(verdicts)
                items: list[ScoreResult | None] = [None] * len(chunk)
            else:
                items = verdicts.items
            for listing, verdict in zip(chunk, items):
                if verdict is None:
                    outcome.scored.append(ScoredListing(listing, score_listing(listing, criteria)))
                else:
                    outcome.scored.append(ScoredListing(listing, verdict, judged_by=self.name))
            self._pause(n, len(chunks))
        log.info(
            "%s scored %d listings (%d via heuristic fallback)",
            self.name, len(outcome.scored), outcome.fallback_count,
        )
        return outcome

    # hiring classification

    def classify_chunk(
        self,
        listings: list[Listing],
        min_confidence: int = PASS_THRESHOLD,
        location: str | None = None,
    ) -> HiringVerdicts | ProviderError:
        outcome = self.complete(
            HIRING_SYSTEM_PROMPT,
            build_hiring_prompt(listings, min_confidence, location),
            max_tokens=1000,
        )
        if isinstance(outcome, ProviderError):
            return outcome
        parsed = parse_verdict_array(outcome.text, len(listings))
        if isinstance(parsed, ProviderError):
            return parsed
        return HiringVerdicts(items=[_hiring_verdict(item) for item in parsed])

    def classify_batch(
        self,
        listings: list[Listing],
        min_confidence: int = PASS_THRESHOLD,
        location: str | None = None,
    ) -> ClassificationOutcome:
        outcome = ClassificationOutcome(results=[])
        chunks = _chunks(list(listings), self.chunk_size)
        for n, chunk in enumerate(chunks):
            verdicts = self.classify_chunk(chunk, min_confidence, location)
            if isinstance(verdicts, ProviderError):
                log.warning("%s hiring check failed (%s), using keywords", self.name, verdicts.reason)
                outcome.errors.append(verdicts)
                items: list[ClassificationResult | None] = [None] * len(chunk)
            else:
                items = verdicts.items
            for listing, verdict in zip(chunk, items):
                outcome.results.append((listing, verdict if verdict is not None else classify(listing)))
            self._pause(n, len(chunks))
        return outcome

    def analyze_content(self, content: str) -> dict[str, Any]:
        """Single-text probe used to check the provider is alive."""
        outcome = self.complete(
            CONTENT_SYSTEM_PROMPT,
            f'Analyze this content and determine if it\'s a hiring post: "{content}"',
            max_tokens=200,
        )
        if isinstance(outcome, ProviderError):
            log.warning("%s content analysis failed: %s", self.name, outcome.reason)
            return {
                "content": content,
                "analysis": f"AI analysis failed: {outcome.reason}",
                "isHiring": False,
                "confidence": 0,
            }
        return {
            "content": content,
            "analysis": outcome.text,
            "isHiring": "hiring" in outcome.text.lower(),
            "confidence": 75,
        }
