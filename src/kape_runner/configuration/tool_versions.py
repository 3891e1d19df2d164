"""Dotted numeric tool versions."""

from __future__ import annotations

import re

_VERSION_PATTERN = re.compile(r"^\s*v?(\d+(?:\.\d+)*)\s*$", re.IGNORECASE)


def parse_version(text: str) -> tuple[int, ...]:
    """Parse `1.3.0.2` (optionally prefixed with `v`) into a comparable tuple.

    Trailing zero components are dropped so that `1.3` and `1.3.0` compare equal.

    Raises:
      ValueError: If the text is not a dotted numeric version.
    """
    match = _VERSION_PATTERN.match(text)
    if match is None:
        raise ValueError(f"Not a numeric version: {text!r}")
    parts = [int(part) for part in match.group(1).split(".")]
    while len(parts) > 1 and parts[-1] == 0:
        parts.pop()
    return tuple(parts)


def format_version(version: tuple[int, ...]) -> str:
    return ".".join(str(part) for part in version)
