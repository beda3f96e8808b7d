"""Human-readable duration parsing (``"1ms"``, ``"5s"``, ``"1h 30m"``).

Byte sizes are handled by :class:`pydantic.ByteSize`; durations need their
own parser because pydantic only understands ISO-8601 and ``HH:MM:SS``.
"""

from __future__ import annotations

import re
from datetime import timedelta

# nanoseconds per unit
_UNITS: dict[str, int] = {}

for _names, _ns in (
    (("nsec", "ns"), 1),
    (("usec", "us", "µs"), 1_000),
    (("msec", "ms"), 1_000_000),
    (("seconds", "second", "sec", "s"), 1_000_000_000),
    (("minutes", "minute", "min", "m"), 60 * 1_000_000_000),
    (("hours", "hour", "hr", "h"), 3_600 * 1_000_000_000),
    (("days", "day", "d"), 86_400 * 1_000_000_000),
    (("weeks", "week", "w"), 7 * 86_400 * 1_000_000_000),
):
    for _name in _names:
        _UNITS[_name] = _ns

_PART = re.compile(r"(\d+)\s*([a-zµ]+)", re.IGNORECASE)
_SEPARATORS = " \t,"


def parse_duration(text: str) -> timedelta:
    """Parse a duration made of one or more ``<integer><unit>`` parts.

    Raises :class:`ValueError` when a part has no unit or an unknown one.
    Nanosecond precision is rounded to the nearest microsecond.
    """
    text = text.strip()
    if not text:
        raise ValueError("expected a duration, got an empty string")

    total_ns = 0
    pos = 0
    while pos < len(text):
        match = _PART.match(text, pos)
        if match is None:
            raise ValueError(f"invalid value {text!r}, expected a duration")
        number, unit = match.groups()
        scale = _UNITS.get(unit.lower())
        if scale is None:
            raise ValueError(f"unknown time unit {unit!r} in {text!r}")
        total_ns += int(number) * scale
        pos = match.end()
        while pos < len(text) and text[pos] in _SEPARATORS:
            pos += 1

    return timedelta(microseconds=round(total_ns / 1000))


def format_duration(value: timedelta) -> str:
    """Render a duration in the compact form :func:`parse_duration` accepts."""
    micros = value // timedelta(microseconds=1)
    if micros == 0:
        return "0s"
    parts = []
    for unit, size in (
        ("d", 86_400_000_000),
        ("h", 3_600_000_000),
        ("m", 60_000_000),
        ("s", 1_000_000),
        ("ms", 1_000),
        ("us", 1),
    ):
        count, micros = divmod(micros, size)
        if count:
            parts.append(f"{count}{unit}")
    return " ".join(parts)
