"""Update decisions for a single declared dependency."""

from dataclasses import dataclass

import nodesemver

from .errors import UnresolvableVersionError
from .semver_range import strip_range_operators


@dataclass(frozen=True)
class VersionResolution:
    """Whether an update is available and which version to recommend."""

    is_outdated: bool
    wanted_version: str


def parse_version(value: str) -> "nodesemver.SemVer":
    """Parse a full ``major.minor.patch`` version, as npm does.

    Raises:
        UnresolvableVersionError: If the value is not a valid semantic version.
    """
    parsed = nodesemver.parse(value.strip(), False) if isinstance(value, str) else None
    if parsed is None:
        raise UnresolvableVersionError(f"Invalid semantic version: {value!r}")
    return parsed


def resolve(declared_range: str, latest_version: str) -> VersionResolution:
    """Reconcile a declared range with the latest published version.

    The declared range is reduced to a bare version by stripping its leading
    operators. The dependency is outdated when the latest version is strictly
    greater than that bare version. The wanted version is the latest version
    when it satisfies the declared range; when it does not (for example a major
    bump under a caret range) the latest version is still surfaced and the
    caller decides whether to accept it.

    Args:
        declared_range: Range as written in the manifest, e.g. ``^1.2.0``
        latest_version: Latest published version, e.g. ``1.3.0``

    Returns:
        VersionResolution for the pair

    Raises:
        UnresolvableVersionError: If either version is not valid semver.
    """
    current = strip_range_operators(declared_range)
    parse_version(current)
    parse_version(latest_version)
    latest = latest_version.strip()

    wanted = nodesemver.max_satisfying([latest], declared_range.strip(), False) or latest
    return VersionResolution(
        is_outdated=nodesemver.gt(latest, current, False),
        wanted_version=wanted,
    )
