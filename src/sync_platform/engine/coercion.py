"""Adapt values to a declared target field type."""

from typing import Any, Dict, Optional
import math

from sync_platform.engine.functions import stringify
from sync_platform.engine.paths import field_name


MEDIA_KEYS = ("src", "url", "link", "href")


def _media_url(value: Any) -> Optional[str]:
    if isinstance(value, list) and value and isinstance(value[0], dict):
        value = value[0]
    if isinstance(value, dict):
        for key in MEDIA_KEYS:
            url = value.get(key)
            if isinstance(url, str):
                return url
    return None


def to_number(value: Any) -> Any:
    """Parse numeric strings; anything non-numeric passes through."""
    if isinstance(value, bool):
        return 1 if value else 0
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return value
    return value


def to_boolean(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "1")
    if isinstance(value, (int, float)):
        return value != 0
    return value


def adapt_to_type(value: Any, target_type: Optional[str]) -> Any:
    """
    Convert ``value`` to match ``target_type``.

    Unknown or empty target types leave the value untouched, as do values
    that cannot be converted.
    """
    if value is None or not target_type:
        return value

    kind = target_type.lower()
    if kind == "string":
        url = _media_url(value)
        if url is not None:
            return url
        return value if isinstance(value, str) else stringify(value)

    if kind in ("number", "float"):
        return to_number(value)

    if kind in ("integer", "int"):
        number = to_number(value)
        if isinstance(number, float) and math.isfinite(number):
            return int(number)
        return number

    if kind in ("boolean", "bool"):
        return to_boolean(value)

    if kind.startswith("array"):
        if isinstance(value, (list, dict)):
            return value
        return [value]

    return value


class TargetTypes:
    """Type lookup for a target shape: exact path first, then bare field name."""

    def __init__(self, by_path: Optional[Dict[str, str]] = None):
        self._by_path = dict(by_path or {})
        self._by_name: Dict[str, str] = {}
        for path, kind in self._by_path.items():
            self._by_name.setdefault(field_name(path), kind)

    def __bool__(self) -> bool:
        return bool(self._by_path)

    def lookup(self, path: str) -> Optional[str]:
        if path in self._by_path:
            return self._by_path[path]
        return self._by_name.get(field_name(path))
