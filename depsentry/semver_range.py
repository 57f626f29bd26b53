"""Operator prefixes of npm declared ranges."""

import re

_PREFIX_RE = re.compile(r"^[\^~><=]*")


def strip_range_operators(declared_range: str) -> str:
    """Remove leading ``^ ~ > = <`` characters from a declared range."""
    return _PREFIX_RE.sub("", declared_range.strip())


def range_prefix(declared_range: str) -> str:
    """Return the leading operator characters of a declared range."""
    return _PREFIX_RE.match(declared_range.strip()).group(0)
