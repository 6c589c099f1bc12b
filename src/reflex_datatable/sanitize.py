"""Markup escaping and filename cleanup for generated documents."""

import html
import re
from typing import Any

FILENAME_BASIC_PATTERN = re.compile(r"[^A-Za-z0-9._-]+")


def escape_markup(value: Any) -> str:
    """HTML/XML-escape *value* for insertion into generated markup.

    ``None`` becomes ``""``.  Anything else is stringified and the characters
    ``& < > " '`` are replaced by entities.

    Examples:
        >>> escape_markup("<b>Hi</b>")
        '&lt;b&gt;Hi&lt;/b&gt;'
        >>> escape_markup(None)
        ''
    """
    if value is None:
        return ""
    return html.escape(str(value), quote=True)


def resolve_trusted(value: Any, allow_unsafe: bool = False) -> str:
    """Return *value* raw when *allow_unsafe* is set, escaped otherwise.

    ``allow_unsafe`` must come from application code, never from input a
    user controls.
    """
    if value is None:
        return ""
    if allow_unsafe:
        return str(value)
    return escape_markup(value)


def sanitize_filename(filename: str | None, *, default: str = "export") -> str:
    """Reduce *filename* to letters, digits, dot, underscore and dash.

    Path separators and other characters collapse into ``_``; leading and
    trailing dots/underscores are stripped so the result cannot climb out of
    a directory.
    """
    if not filename:
        return default
    cleaned = FILENAME_BASIC_PATTERN.sub("_", str(filename)).strip("._")
    return cleaned or default
