"""Safe nested-field access.

Every component that reads a field by name goes through :func:`resolve_path`.
Column ids can come from stored or request-supplied configuration, so a path
must never reach object internals: only mapping items are read, and the
segments in :data:`BLOCKED_SEGMENTS` end resolution.
"""

from collections.abc import Mapping
from typing import Any

BLOCKED_SEGMENTS: frozenset[str] = frozenset({"__proto__", "constructor", "prototype"})


def is_blocked_path(path: str) -> bool:
    """Return ``True`` if any segment of *path* is on the deny-list."""
    return any(segment in BLOCKED_SEGMENTS for segment in str(path).split("."))


def resolve_path(row: Any, path: str) -> Any:
    """Read the value at dot-separated *path* inside *row*.

    Examples:
        ``resolve_path({"a": {"b": 1}}, "a.b")`` -> ``1``
        ``resolve_path({"a": 1}, "a.b")`` -> ``None``
        ``resolve_path({"constructor": 1}, "constructor")`` -> ``None``

    Args:
        row: The row (any mapping).  It is never modified.
        path: Field path such as ``"customer.address.city"``.

    Returns:
        The value, or ``None`` when the path is blocked, unreachable, or
        crosses a non-mapping value.  Never raises.
    """
    if not isinstance(path, str):
        return None

    current: Any = row
    for segment in path.split("."):
        if segment in BLOCKED_SEGMENTS:
            return None
        if not isinstance(current, Mapping):
            return None
        try:
            current = current[segment]
        except (KeyError, TypeError, IndexError):
            return None
    return current
