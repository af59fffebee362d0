"""Named functions used by transformer programs."""

from typing import Any, Callable, Dict, List, Optional
import json

from sync_platform.shared.errors import MappingError


def stringify(value: Any) -> str:
    """Render a value the way targets expect to see it as text."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=str)
    return str(value)


def _first(args: List[Any]) -> Any:
    return args[0] if args else None


def concatenate(args: List[Any]) -> str:
    return "".join(stringify(arg) for arg in args if arg is not None)


def uppercase(args: List[Any]) -> Optional[str]:
    value = _first(args)
    return None if value is None else stringify(value).upper()


def lowercase(args: List[Any]) -> Optional[str]:
    value = _first(args)
    return None if value is None else stringify(value).lower()


def trim(args: List[Any]) -> Optional[str]:
    value = _first(args)
    return None if value is None else stringify(value).strip()


FUNCTIONS: Dict[str, Callable[[List[Any]], Any]] = {
    "concatenate": concatenate,
    "uppercase": uppercase,
    "lowercase": lowercase,
    "trim": trim,
}


# Per-mapping transforms operate on a single value.

def _parse_float(value: Any) -> Any:
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return value
    return value


def _round(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    try:
        if isinstance(value, (int, float)):
            return int(value + 0.5)
        if isinstance(value, str):
            return int(float(value) + 0.5)
    except (ValueError, OverflowError):
        return value
    return value


def _split_first(value: Any) -> Any:
    if isinstance(value, list):
        return value[0] if value else value
    if isinstance(value, str):
        return value.split(" ")[0]
    return value


def _text(fn: Callable[[str], str]) -> Callable[[Any], Any]:
    def apply(value: Any) -> Any:
        return fn(value) if isinstance(value, str) else value
    return apply


MAPPING_TRANSFORMS: Dict[str, Callable[[Any], Any]] = {
    "identity": lambda value: value,
    "parseFloat": _parse_float,
    "toString": stringify,
    "trim": _text(str.strip),
    "uppercase": _text(str.upper),
    "lowercase": _text(str.lower),
    "round": _round,
    "splitFirst": _split_first,
}


def call_function(name: str, args: List[Any], target_field: str) -> Any:
    """Apply a named function; unknown names are fatal."""
    fn = FUNCTIONS.get(name)
    if fn is None:
        raise MappingError(f"unknown function: {name}", field_path=target_field)
    return fn(args)


def apply_mapping_transform(name: Optional[str], value: Any, target_field: str) -> Any:
    """Apply a per-mapping transform to a single value."""
    if not name:
        return value
    fn = MAPPING_TRANSFORMS.get(name)
    if fn is None:
        raise MappingError(f"unknown transform: {name}", field_path=target_field)
    return None if value is None else fn(value)
