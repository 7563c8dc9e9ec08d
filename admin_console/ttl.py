from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

from .errors import ValidationError


SECONDS_PER_DAY = 86400
SECONDS_PER_HOUR = 3600
SECONDS_PER_MINUTE = 60

MIN_TTL_SECONDS = 1
MAX_TTL_SECONDS = 30 * SECONDS_PER_DAY

_DIGITS = re.compile(r"[0-9]+")


@dataclass(frozen=True)
class TtlParts:
    """Raw text of the four duration fields of a TTL form."""

    days: Any = ""
    hours: Any = ""
    minutes: Any = ""
    seconds: Any = ""

    @classmethod
    def from_seconds(cls, total: int) -> "TtlParts":
        if total < 0:
            raise ValueError("total must be non-negative")
        days, rest = divmod(total, SECONDS_PER_DAY)
        hours, rest = divmod(rest, SECONDS_PER_HOUR)
        minutes, seconds = divmod(rest, SECONDS_PER_MINUTE)
        return cls(days=str(days), hours=str(hours), minutes=str(minutes), seconds=str(seconds))


def _field_value(label: str, raw: Any) -> int:
    text = "" if raw is None else str(raw).strip()
    if not text:
        return 0
    if not _DIGITS.fullmatch(text):
        raise ValidationError(f"{label} must be a non-negative integer", field=label.lower())
    return int(text)


def to_seconds(parts: TtlParts) -> int:
    """Convert TTL form fields into a bounded number of seconds.

    Blank fields count as zero. Anything other than plain digits is rejected,
    as is a total outside 1 second .. 30 days.
    """
    days = _field_value("Days", parts.days)
    hours = _field_value("Hours", parts.hours)
    minutes = _field_value("Minutes", parts.minutes)
    seconds = _field_value("Seconds", parts.seconds)

    total = days * SECONDS_PER_DAY + hours * SECONDS_PER_HOUR + minutes * SECONDS_PER_MINUTE + seconds
    if total < MIN_TTL_SECONDS:
        raise ValidationError("TTL must be at least 1 second", field="ttl")
    if total > MAX_TTL_SECONDS:
        raise ValidationError("TTL must be ≤ 30 days", field="ttl")
    return total
