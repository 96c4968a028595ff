"""Environment-driven settings for the completion service."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Mapping

logger = logging.getLogger(__name__)

ENV_PREFIX = "SOV_DOCTOR_"

DEFAULT_DEPLOYMENT = "o3-mini"
DEFAULT_API_VERSION = "2024-12-01-preview"
DEFAULT_MAX_TOKENS = 2000
DEFAULT_TEMPERATURE = 0.1
DEFAULT_TIMEOUT_SECONDS = 60.0


def _float_setting(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(ENV_PREFIX + name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Invalid %s%s=%r, using default %s", ENV_PREFIX, name, raw, default)
        return default


def safe_timeout(value: float) -> float | None:
    # requests treats None as "wait forever"
    if value <= 0:
        return None
    if value > 300:
        logger.warning("Very long completion timeout configured: %ss", value)
    return value


@dataclass(frozen=True)
class CompletionSettings:
    endpoint: str | None = None
    api_key: str | None = None
    deployment: str = DEFAULT_DEPLOYMENT
    api_version: str = DEFAULT_API_VERSION
    max_tokens: int = DEFAULT_MAX_TOKENS
    temperature: float = DEFAULT_TEMPERATURE
    timeout: float | None = DEFAULT_TIMEOUT_SECONDS

    @property
    def is_configured(self) -> bool:
        return bool(self.endpoint and self.api_key)

    @property
    def chat_completions_url(self) -> str:
        base = (self.endpoint or "").rstrip("/")
        return f"{base}/openai/deployments/{self.deployment}/chat/completions?api-version={self.api_version}"

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "CompletionSettings":
        env = os.environ if env is None else env
        return cls(
            endpoint=env.get(ENV_PREFIX + "OPENAI_ENDPOINT") or None,
            api_key=env.get(ENV_PREFIX + "OPENAI_API_KEY") or None,
            deployment=env.get(ENV_PREFIX + "OPENAI_DEPLOYMENT") or DEFAULT_DEPLOYMENT,
            api_version=env.get(ENV_PREFIX + "OPENAI_API_VERSION") or DEFAULT_API_VERSION,
            max_tokens=int(_float_setting(env, "MAX_TOKENS", DEFAULT_MAX_TOKENS)),
            temperature=_float_setting(env, "TEMPERATURE", DEFAULT_TEMPERATURE),
            timeout=safe_timeout(_float_setting(env, "TIMEOUT", DEFAULT_TIMEOUT_SECONDS)),
        )
