"""
Path template handling shared by the client emitter, the server emitter and
the runtime helpers.

A template is a URL path with ``{name}`` placeholders, e.g.
``/api/users/{userId}/posts/{postId}``. Values are always paired with
placeholders by name.
"""
from __future__ import annotations

import re
from typing import Any, Mapping
from urllib.parse import quote

PLACEHOLDER = re.compile(r"\{(\w+)\}")
_INTEGER = re.compile(r"[+-]?[0-9]+")

INTEGER_KIND = "int"
STRING_KIND = "str"


def placeholders(path: str) -> list[str]:
    """Placeholder names in order of appearance (greedy, non-overlapping)."""
    return PLACEHOLDER.findall(path or "")


def join(base_path: str, path: str) -> str:
    # Plain concatenation: this string is the route both sides agree on.
    return f"{base_path or ''}{path or ''}"


def expand(template: str, values: Mapping[str, Any]) -> str:
    """
    Substitute every placeholder in ``template`` with the value stored under
    the same name. Integers are formatted as decimal numbers, strings are
    percent-encoded and may not be empty or contain "/".
    """
    names = placeholders(template)
    missing = [n for n in names if n not in values]
    if missing:
        raise KeyError(f"missing path values for: {', '.join(missing)}")
    extra = sorted(set(values) - set(names))
    if extra:
        raise ValueError(f"no placeholder for path values: {', '.join(extra)}")

    return PLACEHOLDER.sub(lambda m: _format_segment(m.group(1), values[m.group(1)]), template)


def _format_segment(name: str, value: Any) -> str:
    if isinstance(value, bool):
        raise TypeError(f"path value {name!r} must be int or str, not bool")
    if isinstance(value, int):
        return "%d" % value
    if isinstance(value, str):
        # servers decode the path before routing, so "/" would split the segment
        if not value or "/" in value:
            raise ValueError(f"path value {name!r} must be a non-empty string without '/'")
        return quote(value, safe="")
    raise TypeError(f"path value {name!r} must be int or str, not {type(value).__name__}")


def convert(kind: str, name: str, raw: str) -> int | str:
    if kind == INTEGER_KIND:
        if raw is None or not _INTEGER.fullmatch(raw):
            raise ValueError(f"invalid {name}: must be an integer")
        return int(raw)
    return raw
