"""Nested-path reads and writes over DataPayload values.

Paths use ``.`` between keys and ``[n]`` for list positions; ``[]`` means the
first element.
"""

from typing import Any, List, Optional, Tuple
import re

from sync_platform.shared.errors import PathResolutionError


_SEGMENT = re.compile(r"^([^\[\]]*)((?:\[\d*\])*)$")
_INDEX = re.compile(r"\[(\d*)\]")

Segment = Tuple[str, List[int]]


def parse_path(path: str) -> List[Segment]:
    """Split a path into (key, [indexes]) segments."""
    if not path:
        raise PathResolutionError(path, "empty path")

    segments: List[Segment] = []
    for raw in path.split("."):
        match = _SEGMENT.match(raw)
        if match is None or (not match.group(1) and not match.group(2)):
            raise PathResolutionError(path, f"malformed segment {raw!r}")
        indexes = [int(i) if i else 0 for i in _INDEX.findall(match.group(2))]
        segments.append((match.group(1), indexes))
    return segments


def field_name(path: str) -> str:
    """Return the last key of a path without any index suffix."""
    last = path.rsplit(".", 1)[-1]
    bracket = last.find("[")
    return last if bracket == -1 else last[:bracket]


def resolve_path(data: Any, path: str) -> Any:
    """
    Read the value at ``path``.

    Raises:
        PathResolutionError: when a key or index is missing, or a non-container blocks the way
    """
    current = data
    for key, indexes in parse_path(path):
        if key:
            if not isinstance(current, dict):
                raise PathResolutionError(path, f"cannot read {key!r} from non-map value")
            if key not in current:
                raise PathResolutionError(path, f"key not found: {key}")
            current = current[key]
        for index in indexes:
            if not isinstance(current, list) or index >= len(current):
                raise PathResolutionError(path, f"no element {index} at {key or 'root'}")
            current = current[index]
    return current


def try_resolve(data: Any, path: str) -> Tuple[bool, Optional[Any]]:
    """Resolve a path, returning (found, value) instead of raising."""
    try:
        return True, resolve_path(data, path)
    except PathResolutionError:
        return False, None


def set_path(target: dict, path: str, value: Any) -> None:
    """
    Write ``value`` at ``path``, creating intermediate maps and lists.

    Raises:
        PathResolutionError: when an existing non-container value sits on the path
    """
    segments = parse_path(path)
    current: Any = target

    for position, (key, indexes) in enumerate(segments):
        is_last = position == len(segments) - 1
        if not key:
            raise PathResolutionError(path, "cannot write through a bare index")
        if not isinstance(current, dict):
            raise PathResolutionError(path, f"cannot write {key!r} into non-map value")

        if not indexes:
            if is_last:
                current[key] = value
                return
            current = current.setdefault(key, {})
            continue

        if current.get(key) is None:
            current[key] = []
        container = current[key]
        for depth, index in enumerate(indexes):
            if not isinstance(container, list):
                raise PathResolutionError(path, f"cannot index non-list value at {key!r}")
            while len(container) <= index:
                container.append(None)
            if depth < len(indexes) - 1:
                if container[index] is None:
                    container[index] = []
                container = container[index]
                continue
            if is_last:
                container[index] = value
                return
            if container[index] is None:
                container[index] = {}
            current = container[index]
