"""
Rate limit extraction from backend response headers.

Backends in the OpenAI header family disclose quota as
x-ratelimit-{limit,remaining,reset}-{requests,tokens}. Reset values are
either bare seconds ("12.5") or compound durations ("1m0s", "2h3m", "250ms").
"""

import math
import re
import time
from typing import Optional, Mapping

from ..models.events import RateLimitSnapshot, RateLimitWindow

HEADER_PREFIX = "x-ratelimit-"

_BARE_SECONDS = re.compile(r"\d+(?:\.\d+)?")
_DURATION_SEGMENT = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h|d)")

_UNIT_SECONDS = {
    "ms": 0.001,
    "s": 1,
    "m": 60,
    "h": 3600,
    "d": 86400,
}


def parse_int_header(headers: Mapping[str, str], name: str) -> Optional[int]:
    """Integer header value, or None when absent or not a number."""
    raw = headers.get(name)
    if raw is None:
        return None
    try:
        value = float(raw.strip())
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    return int(value)


def parse_reset_seconds(raw: Optional[str]) -> Optional[float]:
    """
    Parse a reset duration into seconds.

    All matched unit segments are summed, so "1m3s" is 63. Returns None for
    an empty string or one with no recognizable segment.
    """
    if raw is None:
        return None
    value = raw.strip()
    if not value:
        return None

    if _BARE_SECONDS.fullmatch(value):
        return float(value)

    segments = _DURATION_SEGMENT.findall(value)
    if not segments:
        return None
    return sum(float(amount) * _UNIT_SECONDS[unit] for amount, unit in segments)


def _window(headers: Mapping[str, str], resource: str, now_ms: int) -> RateLimitWindow:
    reset_seconds = parse_reset_seconds(headers.get(f"{HEADER_PREFIX}reset-{resource}"))
    return RateLimitWindow(
        limit=parse_int_header(headers, f"{HEADER_PREFIX}limit-{resource}"),
        remaining=parse_int_header(headers, f"{HEADER_PREFIX}remaining-{resource}"),
        reset_at=now_ms + round(reset_seconds * 1000) if reset_seconds is not None else None,
    )


def extract_rate_limit(
    headers: Mapping[str, str],
    source: str,
    observed_at_ms: Optional[int] = None,
) -> RateLimitSnapshot:
    """
    Build a snapshot from response headers.

    Args:
        headers: Response headers (case-insensitive mapping, e.g. httpx.Headers)
        source: Origin tag, e.g. "groq:headers"
        observed_at_ms: Observation time; defaults to now

    Returns:
        Snapshot with None for every value the backend did not disclose
    """
    now_ms = observed_at_ms if observed_at_ms is not None else int(time.time() * 1000)
    return RateLimitSnapshot(
        requests=_window(headers, "requests", now_ms),
        tokens=_window(headers, "tokens", now_ms),
        observed_at=now_ms,
        source=source,
    )
