"""Shared fixtures: listing factories and a scripted provider client."""
import json
import os
import sys
from pathlib import Path

import pytest

# Keep test runs from writing log files
os.environ.setdefault("JOBFILTER_LOG_FILE", "0")

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from jobfilter.config import ProviderConfig
from jobfilter.models import Criteria, Listing
from jobfilter.providers import Completion, ProviderError

AI_ENV_VARS = ("AI_PROVIDER", "AI_SERVER_URL", "AI_MODEL", "AI_API_KEY", "GEMINI_API_KEY")


@pytest.fixture(autouse=True)
def no_backoff_sleep(monkeypatch):
    """Retry backoff must not slow the suite down."""
    import jobfilter.retry as retry_mod

    monkeypatch.setattr(retry_mod.time, "sleep", lambda s: None)


@pytest.fixture
def clean_ai_env(monkeypatch):
    for var in AI_ENV_VARS:
        monkeypatch.delenv(var, raising=False)


def _make_listing(**overrides) -> Listing:
    """A listing that triggers no scoring rule unless overridden."""
    fields = {
        "id": "job-1",
        "title": "Accountant",
        "company": "Acme Corp",
        "location": "Denver, CO",
        "salary": None,
        "type": "full-time",
        "description": "Manage ledgers and monthly close.",
        "url": "https://example.com/jobs/1",
    }
    fields.update(overrides)
    return Listing(**fields)


@pytest.fixture
def neutral_listing() -> Listing:
    return _make_listing()


@pytest.fixture
def star_listing() -> Listing:
    return _make_listing(
        id="job-star",
        title="Senior React Developer",
        company="Google",
        location="Remote",
        salary="$150,000",
        description="Looking for a senior engineer, remote role, apply now",
    )


@pytest.fixture
def star_criteria() -> Criteria:
    return Criteria(
        user_query="React Developer",
        location="Remote",
        skills="react",
        experience="senior",
        min_salary="$100,000",
    )


@pytest.fixture
def local_config() -> ProviderConfig:
    return ProviderConfig(provider="lm-studio", api_url="http://localhost:1234")


@pytest.fixture
def make_listing():
    return _make_listing


class FakeClient:
    """Provider client that replays scripted replies (strings or ProviderError)."""

    def __init__(self, replies):
        self.replies = list(replies)
        self.calls = []

    def complete(self, system, user, *, max_tokens=1000):
        self.calls.append({"system": system, "user": user, "max_tokens": max_tokens})
        reply = self.replies.pop(0)
        if isinstance(reply, ProviderError):
            return reply
        return Completion(reply)


def verdict_reply(*items) -> str:
    return json.dumps(list(items))


@pytest.fixture
def fake_client():
    """Factory: fake_client(["reply", ProviderError(...), ...])."""
    return FakeClient


@pytest.fixture
def verdicts():
    return verdict_reply
