"""Completion-service client: prompt in, free text out."""

from __future__ import annotations

import logging
import time
from typing import Any, Optional, Protocol

import requests

from sov_doctor.config import CompletionSettings

logger = logging.getLogger(__name__)

PROVIDER = "azure-openai"
SYSTEM_PROMPT = (
    "You are an expert insurance data processor and Excel file analyzer. "
    "Provide clear, accurate responses in JSON format when requested."
)
PING_PROMPT = 'Hello, this is a test. Please respond with "Test successful".'


class ServiceError(RuntimeError):
    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class CompletionService(Protocol):
    def complete(self, prompt: str) -> str:
        """Return the completion text or raise ServiceError."""
        ...


def log_llm_request(model: str, prompt: str) -> None:
    logger.info(
        f"LLM request to {PROVIDER}/{model}",
        extra={"event": "llm_request", "provider": PROVIDER, "model": model, "prompt_chars": len(prompt)},
    )


def log_llm_response(model: str, duration_ms: float, success: bool, error: Optional[str] = None) -> None:
    log_data: dict[str, Any] = {
        "event": "llm_response",
        "provider": PROVIDER,
        "model": model,
        "duration_ms": round(duration_ms, 2),
        "success": success,
    }
    if error:
        log_data["error"] = error
    if success:
        logger.info(f"LLM response from {PROVIDER}/{model} ({duration_ms:.0f}ms)", extra=log_data)
    else:
        logger.warning(f"LLM request failed: {error}", extra=log_data)


def extract_message_content(payload: Any) -> str:
    try:
        content = payload["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as exc:
        raise ServiceError(f"Completion response missing choices[0].message.content: {exc!r}") from exc
    if not isinstance(content, str):
        raise ServiceError("Completion content is not text")
    return content


class AzureOpenAICompletion:
    """One-shot chat-completions call. No retries; the callers own the fallback."""

    def __init__(self, settings: CompletionSettings, session: Optional[requests.Session] = None) -> None:
        self.settings = settings
        self.session = session or requests.Session()

    def _body(self, prompt: str, max_tokens: Optional[int] = None) -> dict[str, Any]:
        return {
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "max_tokens": max_tokens or self.settings.max_tokens,
            "temperature": self.settings.temperature,
        }

    def complete(self, prompt: str, max_tokens: Optional[int] = None) -> str:
        if not self.settings.is_configured:
            raise ServiceError("Completion service is not configured (endpoint and API key required)")

        model = self.settings.deployment
        log_llm_request(model, prompt)
        started = time.time()
        try:
            response = self.session.post(
                self.settings.chat_completions_url,
                json=self._body(prompt, max_tokens),
                headers={"Content-Type": "application/json", "api-key": self.settings.api_key or ""},
                timeout=self.settings.timeout,
            )
        except requests.RequestException as exc:
            log_llm_response(model, (time.time() - started) * 1000, success=False, error=str(exc))
            raise ServiceError(f"Completion request failed: {exc}") from exc

        duration_ms = (time.time() - started) * 1000
        if not response.ok:
            error = f"HTTP {response.status_code} - {response.text[:500]}"
            log_llm_response(model, duration_ms, success=False, error=error)
            raise ServiceError(f"Completion service error: {error}", status_code=response.status_code)

        try:
            payload = response.json()
        except ValueError as exc:
            log_llm_response(model, duration_ms, success=False, error="non-JSON response body")
            raise ServiceError("Completion service returned a non-JSON body", status_code=response.status_code) from exc

        content = extract_message_content(payload)
        log_llm_response(model, duration_ms, success=True)
        return content


class UnavailableCompletion:
    """Stands in when no service is configured; every stage takes its fallback."""

    def __init__(self, reason: str = "Completion service disabled") -> None:
        self.reason = reason

    def complete(self, prompt: str) -> str:
        raise ServiceError(self.reason)


def build_completion_service(settings: CompletionSettings, *, offline: bool = False) -> CompletionService:
    if offline:
        return UnavailableCompletion("Offline mode: completion service disabled")
    if not settings.is_configured:
        logger.info("Completion service not configured; rule-based fallbacks will be used")
        return UnavailableCompletion("Completion service is not configured")
    return AzureOpenAICompletion(settings)


def ping(service: CompletionService) -> str:
    return service.complete(PING_PROMPT)
