"""Provider configuration, criteria files and env helpers."""
from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from jobfilter.log import get_logger
from jobfilter.models import Criteria

log = get_logger(__name__)

load_dotenv()

CONFIG_DIR: Path = Path(__file__).resolve().parent.parent / "config"
PROVIDER_CONFIG_PATH: Path = CONFIG_DIR / "provider.yaml"

LOCAL_PROVIDERS: tuple[str, ...] = ("lm-studio", "ollama")
CLOUD_PROVIDERS: tuple[str, ...] = ("gemini",)

DEFAULT_LOCAL_URLS: dict[str, str] = {
    "lm-studio": "http://localhost:1234",
    "ollama": "http://localhost:11434",
}
GEMINI_ENDPOINT = "https://generativelanguage.googleapis.com/v1beta/models"
DEFAULT_MODELS: dict[str, str] = {
    "lm-studio": "local-model",
    "ollama": "local-model",
    "gemini": "gemini-2.0-flash",
}


class ProviderConfigError(ValueError):
    """The provider configuration cannot be used for any request."""


@dataclass(frozen=True)
class ProviderConfig:
    provider: str
    api_url: str | None = None
    model: str | None = None
    api_key: str | None = field(default=None, repr=False)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProviderConfig":
        def pick(*keys: str) -> str | None:
            for k in keys:
                v = data.get(k)
                if v:
                    return str(v).strip() or None
            return None

        return cls(
            provider=(pick("provider") or "").lower(),
            api_url=pick("apiUrl", "api_url", "url"),
            model=pick("model", "aiModel", "ai_model"),
            api_key=pick("apiKey", "api_key"),
        )

    @property
    def is_local(self) -> bool:
        return self.provider in LOCAL_PROVIDERS

    @property
    def resolved_model(self) -> str:
        return self.model or DEFAULT_MODELS.get(self.provider, "local-model")

    @property
    def base_url(self) -> str:
        if self.is_local:
            return (self.api_url or "").rstrip("/")
        return (self.api_url or GEMINI_ENDPOINT).rstrip("/")

    def validate(self) -> "ProviderConfig":
        if not self.provider:
            raise ProviderConfigError("No AI provider configured")
        if self.provider not in LOCAL_PROVIDERS + CLOUD_PROVIDERS:
            raise ProviderConfigError(f"Unknown AI provider: {self.provider!r}")
        if self.provider in CLOUD_PROVIDERS and not self.api_key:
            raise ProviderConfigError(f"Provider {self.provider!r} requires an API key")
        if self.is_local and not self.api_url:
            raise ProviderConfigError(f"Provider {self.provider!r} requires a base URL")
        return self


def get_env(key: str, default: str = "") -> str:
    return os.environ.get(key, default).strip()


def _read_yaml(path: Path) -> dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path.name} must contain a mapping")
    return data


def load_provider_config(path: Path | None = None) -> ProviderConfig | None:
    """Build a provider config from ``provider.yaml`` overlaid with env vars.

    Returns None when no provider is named anywhere, meaning heuristic-only
    scoring. Local providers without a URL get their usual localhost port.
    """
    path = path or PROVIDER_CONFIG_PATH
    data: dict[str, Any] = _read_yaml(path) if path.exists() else {}

    env_overrides = {
        "provider": get_env("AI_PROVIDER"),
        "apiUrl": get_env("AI_SERVER_URL"),
        "model": get_env("AI_MODEL"),
        "apiKey": get_env("AI_API_KEY") or get_env("GEMINI_API_KEY"),
    }
    data.update({k: v for k, v in env_overrides.items() if v})

    if not data.get("provider"):
        log.debug("No AI provider configured, heuristic scoring only")
        return None

    cfg = ProviderConfig.from_dict(data)
    if cfg.is_local and not cfg.api_url:
        cfg = replace(cfg, api_url=DEFAULT_LOCAL_URLS[cfg.provider])
    log.info("AI provider: %s (model=%s)", cfg.provider, cfg.resolved_model)
    return cfg


def load_criteria(path: Path) -> Criteria:
    """Read search criteria from a YAML file (camelCase or snake_case keys)."""
    data = _read_yaml(path)
    return Criteria.from_dict(data.get("criteria", data))


def load_profile(path: Path) -> dict[str, Any]:
    """Candidate profile for cover letters; a top-level ``profile`` key is unwrapped."""
    data = _read_yaml(path)
    profile = data.get("profile", data)
    if not isinstance(profile, dict):
        raise ValueError(f"{path.name}: profile must be a mapping")
    return profile
