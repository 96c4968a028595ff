"""
Pull a JSON value out of free-text model output.

Models wrap JSON in prose or markdown fences more often than not. The parser
tries, in order:
  1. the body of the first fenced code block (```json ... ``` or ``` ... ```)
  2. the span from the first '{' or '[' to the last '}' or ']'
and hands each candidate to json.loads until one parses. A fence that holds
prose (```text ... ```) therefore does not hide JSON written after it.
Failure is a value, not an exception, so callers can branch straight to their
rule-based fallback.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any

FENCED_BLOCK_RE = re.compile(r"```(?:json|JSON)?\s*([\s\S]*?)\s*```")


@dataclass(frozen=True)
class LooseJson:
    ok: bool
    value: Any = None
    reason: str = ""


def _unparseable(reason: str) -> LooseJson:
    return LooseJson(ok=False, reason=reason)


def _fenced_body(text: str) -> str | None:
    fenced = FENCED_BLOCK_RE.search(text)
    if fenced:
        return fenced.group(1).strip()
    return None


def _bracket_span(text: str) -> str | None:
    starts = [idx for idx in (text.find("{"), text.find("[")) if idx != -1]
    if not starts:
        return None
    start = min(starts)
    end = max(text.rfind("}"), text.rfind("]"))
    if end < start:
        return None
    return text[start : end + 1]


def json_candidates(text: str) -> list[str]:
    cleaned = text.strip()
    candidates: list[str] = []
    for candidate in (_fenced_body(cleaned), _bracket_span(cleaned)):
        if candidate and candidate not in candidates:
            candidates.append(candidate)
    return candidates


def extract_json_text(text: str) -> str | None:
    candidates = json_candidates(text)
    return candidates[0] if candidates else None


def parse_loose_json(text: Any) -> LooseJson:
    if not isinstance(text, str) or not text.strip():
        return _unparseable("empty response")
    candidates = json_candidates(text)
    if not candidates:
        return _unparseable("no JSON object or array found")
    reason = ""
    for candidate in candidates:
        try:
            return LooseJson(ok=True, value=json.loads(candidate))
        except json.JSONDecodeError as exc:
            if not reason:
                reason = f"invalid JSON: {exc.msg} at position {exc.pos}"
    return _unparseable(reason)
