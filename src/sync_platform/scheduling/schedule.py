"""Parsing of job schedule strings such as ``"90s"`` or ``"1h30m"``."""

import re

from sync_platform.shared.errors import ScheduleParseError


_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}

_COMPONENT = r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)"
_DURATION = re.compile(rf"(?:{_COMPONENT})+")
_PART = re.compile(_COMPONENT)


def parse_schedule(schedule: str) -> float:
    """
    Parse a duration string into a repeat interval in seconds.

    Components are a decimal number followed by a unit (``h``, ``m``, ``s``,
    ``ms``, ``us`` or ``ns``) and may be chained, as in ``"1h15m30.5s"``.

    Raises:
        ScheduleParseError: if the string is not a duration or is not positive
    """
    text = (schedule or "").strip()
    if text.startswith("+"):
        text = text[1:]
    if not _DURATION.fullmatch(text):
        raise ScheduleParseError(f"Invalid schedule: {schedule!r}")

    seconds = sum(float(number) * _UNITS[unit] for number, unit in _PART.findall(text))
    if seconds <= 0:
        raise ScheduleParseError(f"Invalid schedule: {schedule!r} is not a positive duration")
    return seconds
