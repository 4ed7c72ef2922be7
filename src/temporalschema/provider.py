"""Date/time provider backed by pendulum.

Parsing, the current instant and ISO rendering live here so the rest of the
package never talks to pendulum's parser directly.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from functools import lru_cache
from typing import Any, Callable

import pendulum
from pendulum import DateTime

from temporalschema.config import DEFAULT_TIMEZONE

INVALID_DATE = "Invalid date"

# UTC with millisecond precision, e.g. 2010-10-31T00:00:00.000Z
ISO_FORMAT = "YYYY-MM-DD[T]HH:mm:ss.SSS[Z]"

# Longest tokens first; "." falls through to a literal character
_FORMAT_TOKENS = re.compile(
    r"\[([^\]]*)\]|YYYY|YY|MMMM|MMM|MM|M|DDDD|DDD|Do|DD|D|dddd|ddd|dd|do|d"
    r"|HH|H|hh|h|kk|k|mm|m|ss|s|S+|ZZ|Z|zz|z|Qo|Q|A|a|X|x|.",
    re.DOTALL,
)

# Numeric tokens have a fixed width under strict parsing
_STRICT_WIDTHS = {
    "YYYY": r"\d{4}",
    "YY": r"\d{2}",
    "MM": r"\d{2}",
    "M": r"\d{1,2}",
    "DDDD": r"\d{3}",
    "DDD": r"\d{1,3}",
    "DD": r"\d{2}",
    "D": r"\d{1,2}",
    "HH": r"\d{2}",
    "H": r"\d{1,2}",
    "hh": r"\d{2}",
    "h": r"\d{1,2}",
    "kk": r"\d{2}",
    "k": r"\d{1,2}",
    "mm": r"\d{2}",
    "m": r"\d{1,2}",
    "ss": r"\d{2}",
    "s": r"\d{1,2}",
    "Q": r"\d",
}


@lru_cache(maxsize=128)
def _strict_pattern(fmt: str) -> re.Pattern[str]:
    """Build a whole-string pattern enforcing the width of each numeric token.

    pendulum's own token patterns accept both widths (``MM`` matches ``1``),
    so a format is only tried once the raw value has the exact shape.
    Non-numeric tokens (month names, offsets, meridiems) are left to pendulum.
    """
    parts = []
    for match in _FORMAT_TOKENS.finditer(fmt):
        token = match.group(0)
        if match.group(1) is not None:
            parts.append(re.escape(match.group(1)))
        elif token in _STRICT_WIDTHS:
            parts.append(_STRICT_WIDTHS[token])
        elif token.startswith("S"):
            parts.append(r"\d{%d}" % len(token))
        elif len(token) > 1 or token in "DdMQAaXxZz":
            parts.append(r".+?")
        else:
            parts.append(re.escape(token))
    return re.compile("".join(parts), re.DOTALL)


class DateProvider:
    """Parses raw values into pendulum DateTimes in a fixed time zone.

    Usage:
        provider = DateProvider("Europe/Paris")
        d = provider.parse("12-01-2010", ["MM-DD-YYYY"])
        provider.to_iso_string(d)  # "2010-11-30T23:00:00.000Z"

    Args:
        timezone: Zone that naive inputs are read in and results converted to
        clock: Optional zero-argument callable returning "now"; used by tests
    """

    def __init__(
        self,
        timezone: str = DEFAULT_TIMEZONE,
        clock: Callable[[], DateTime] | None = None,
    ):
        self.timezone = timezone
        self._clock = clock

    def now(self) -> DateTime:
        """Return the current instant. Read on every call."""
        if self._clock is not None:
            return self._clock().in_timezone(self.timezone)
        return pendulum.now(self.timezone)

    def parse(self, raw: Any, formats: Sequence[str] = ()) -> DateTime | None:
        """Parse a raw value, returning None when it is not a valid date.

        With no formats, the value must be ISO-8601. With formats, each is
        tried in order against the whole string and the first match wins.
        Numeric tokens must have their exact width: ``MM-DD-YYYY`` rejects
        ``12-1-2010`` and ``12-01-10``.
        """
        # pendulum.parse maps the literal "now" to the current time
        if not isinstance(raw, str) or raw == "now":
            return None

        if not formats:
            try:
                parsed = pendulum.parse(raw, tz=self.timezone)
                if not isinstance(parsed, DateTime):
                    # Durations, intervals and bare times are not instants
                    return None
                return parsed.in_timezone(self.timezone)
            except (ValueError, OverflowError):
                return None

        for fmt in formats:
            if _strict_pattern(fmt).fullmatch(raw) is None:
                continue
            try:
                return pendulum.from_format(raw, fmt, tz=self.timezone).in_timezone(self.timezone)
            except (ValueError, OverflowError):
                continue
        return None

    @staticmethod
    def is_valid(value: Any) -> bool:
        return isinstance(value, DateTime)

    @staticmethod
    def to_iso_string(value: DateTime | None) -> str:
        """Render as UTC ISO-8601 with milliseconds, or "Invalid date"."""
        if not isinstance(value, DateTime):
            return INVALID_DATE
        try:
            return value.in_timezone("UTC").format(ISO_FORMAT)
        except (ValueError, OverflowError):
            # The UTC instant is past year 9999; keep the local offset instead
            return value.format("YYYY-MM-DD[T]HH:mm:ss.SSSZ")
