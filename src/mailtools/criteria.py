"""
Search Criteria
===============

Builds IMAP SEARCH criteria for the climap flags. Durations use the
"72h" / "1h30m" / "90s" notation; dates are handed to imapclient as
datetime.date objects so the library does the DD-Mon-YYYY formatting
and quoting.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta
from decimal import Decimal

from contracts import InvalidDurationError

# Nanoseconds per unit.
_UNITS = {
    "ns": 1,
    "us": 1_000,
    "µs": 1_000,
    "μs": 1_000,
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60 * 1_000_000_000,
    "h": 3600 * 1_000_000_000,
}

# Durations are bounded by a signed 64-bit nanosecond count (about 2562047h).
MAX_DURATION_NS = 2**63 - 1

_DURATION_RE = re.compile(r"^[-+]?(?:(?:\d+\.?\d*|\.\d+)(?:ns|us|µs|μs|ms|s|m|h))+$")
_GROUP_RE = re.compile(r"(\d+\.?\d*|\.\d+)(ns|us|µs|μs|ms|s|m|h)")


def parse_duration(text: str) -> timedelta:
    """
    Parse a duration such as "72h", "1h30m", "1.5h" or "-10m".

    A bare "0" is accepted; every other value needs a unit. Precision below
    one microsecond is truncated.

    ERRORS:
    - InvalidDurationError: text is empty, malformed or out of range
    """
    value = (text or "").strip()
    if value in ("0", "+0", "-0"):
        return timedelta(0)
    if not _DURATION_RE.match(value):
        raise InvalidDurationError(f"time: invalid duration {text!r}")

    total_ns = Decimal(0)
    for number, unit in _GROUP_RE.findall(value):
        total_ns += Decimal(number) * _UNITS[unit]
    if total_ns > MAX_DURATION_NS:
        raise InvalidDurationError(f"time: invalid duration {text!r}")

    total = timedelta(microseconds=int(total_ns) // 1000)
    if value.startswith("-"):
        return -total
    return total


def since_date(duration: timedelta | str, now: datetime | None = None) -> date:
    """Calendar date of now minus duration."""
    if isinstance(duration, str):
        duration = parse_duration(duration)
    if now is None:
        now = datetime.now()
    try:
        return (now - duration).date()
    except OverflowError as e:
        raise InvalidDurationError(f"duration {duration} reaches outside the calendar") from e


def build_criteria(
    newer: str | timedelta | None = None,
    subject: str | None = None,
    now: datetime | None = None,
) -> list:
    """
    Build SEARCH criteria from the optional --newer and --subject values.

    POST: SINCE comes before SUBJECT when both are given
    POST: Returns an empty list when neither is given
    """
    criteria: list = []
    if newer:
        criteria.extend(["SINCE", since_date(newer, now=now)])
    if subject:
        criteria.extend(["SUBJECT", subject])
    return criteria
