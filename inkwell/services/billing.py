"""Gemini pricing lookup with a process-wide, time-boxed read-through cache.

Pricing only decorates the model picker; generation never depends on it. The
cache is keyed by whether the caller supplied their own API key and entries
expire after ``GEMINI_PRICING_TTL_SECONDS`` (24 hours by default).
"""

from __future__ import annotations

import time
from typing import Dict, Optional, Tuple

from flask import current_app

DEFAULT_TTL_SECONDS = 24 * 60 * 60

STATIC_GEMINI_PRICING: Dict[str, str] = {
    "gemini-1.5-pro": " (In: $1.25 | Out: $5.00)",
    "gemini-1.5-flash": " (In: $0.075 | Out: $0.30)",
    "gemini-1.5-flash-8b": " (In: $0.0375 | Out: $0.15)",
    "gemini-pro": " (In: $0.50 | Out: $1.50)",
    "gemini-2.0-flash": " (In: $0.10 | Out: $0.40)",
    "gemini-2.0-flash-lite": " (In: $0.075 | Out: $0.30)",
    "gemini-3.1-pro-preview": " (In: $2.00 | Out: $12.00)",
    "gemini-3-pro-preview": " (In: $2.00 | Out: $12.00)",
    "gemini-3-flash-preview": " (In: $0.50 | Out: $3.00)",
    "gemini-3-pro-image-preview": " (In: $2.00 | Out: $0.134/img)",
    "gemini-flash-latest": " (In: $0.30 | Out: $2.50)",
    "gemini-flash-lite-latest": " (In: $0.10 | Out: $0.40)",
    "imagen-4.0-generate-001": " (Pricing on request)",
    "imagen-4.0-ultra-generate-001": " (Pricing on request)",
}

_PRICING_CACHE: Dict[bool, Tuple[float, Dict[str, str]]] = {}


def get_gemini_pricing(user_api_key: Optional[str] = None, *, now: Optional[float] = None) -> Dict[str, str]:
    has_key = bool(user_api_key)
    ttl = current_app.config.get("GEMINI_PRICING_TTL_SECONDS", DEFAULT_TTL_SECONDS)
    timestamp = time.monotonic() if now is None else now

    cached = _PRICING_CACHE.get(has_key)
    if cached is not None and timestamp - cached[0] < ttl:
        return cached[1]

    pricing = _fetch_gemini_pricing(user_api_key)
    _PRICING_CACHE[has_key] = (timestamp, pricing)
    return pricing


def clear_pricing_cache() -> None:
    _PRICING_CACHE.clear()


def _fetch_gemini_pricing(user_api_key: Optional[str]) -> Dict[str, str]:
    # Static table; the key only selects the cache slot.
    return dict(STATIC_GEMINI_PRICING)
