from __future__ import annotations

import math
import re
from datetime import date, datetime, time
from typing import Any

from sov_doctor.schema import NUMERIC_TEXT_RE, SENTINEL_NULLS

CURRENCY_SYMBOLS = ("$", "€", "£", "¥", "₹")
CURRENCY_CODE_PREFIX_RE = re.compile(r"^[A-Z]{3}(?=[\d(+-])")
CURRENCY_CODE_SUFFIX_RE = re.compile(r"(USD|EUR|INR|GBP|JPY|CAD|AUD|NZD|AED|CHF|SGD|HKD)$", re.IGNORECASE)
PLAIN_NUMBER_RE = re.compile(r"[+-]?\d+(?:\.\d+)?")
LEADING_NUMBER_RE = re.compile(r"^\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


def is_missing(value: Any) -> bool:
    """Missing / blank / undefined, as far as a required field is concerned."""
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return isinstance(value, str) and value.strip() == ""


def parse_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        if isinstance(value, float) and (math.isnan(value) or math.isinf(value)):
            return None
        return float(value)
    if isinstance(value, (datetime, date, time)) or value is None:
        return None

    text = str(value).strip()
    if text.lower() in SENTINEL_NULLS:
        return None

    negative = False
    if text.startswith("(") and text.endswith(")"):
        negative = True
        text = text[1:-1].strip()

    text = text.replace(" ", "").replace("\u00a0", "")
    text = CURRENCY_CODE_PREFIX_RE.sub("", text)
    text = CURRENCY_CODE_SUFFIX_RE.sub("", text)
    for symbol in CURRENCY_SYMBOLS:
        text = text.replace(symbol, "")
    if text.startswith("-") and negative:
        return None

    if "," in text and "." in text:
        if text.rfind(",") > text.rfind("."):
            text = text.replace(".", "").replace(",", ".")
        else:
            text = text.replace(",", "")
    elif text.count(",") == 1:
        left, right = text.split(",", 1)
        if len(right) == 2:
            text = f"{left}.{right}"
        elif len(right) == 3:
            text = text.replace(",", "")
    else:
        text = text.replace(",", "")

    if not PLAIN_NUMBER_RE.fullmatch(text):
        return None
    number = float(text)
    return -number if negative else number


def is_numeric_like(value: Any) -> bool:
    return parse_number(value) is not None


def looks_like_numeric_text(text: str) -> bool:
    return bool(NUMERIC_TEXT_RE.match(text))


def starts_with_number(value: Any) -> bool:
    """True for text with a numeric prefix, e.g. "1 George St" or "1e5 sqm"."""
    return isinstance(value, str) and LEADING_NUMBER_RE.match(value) is not None
