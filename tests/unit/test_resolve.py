"""Tests for update decisions."""

import pytest

from depsentry.errors import UnresolvableVersionError
from depsentry.resolve import VersionResolution, parse_version, resolve


class TestResolve:
    """Test reconciling declared ranges with latest versions."""

    def test_minor_update_within_range(self):
        """A newer compatible version is wanted as-is."""
        assert resolve("^1.2.0", "1.3.0") == VersionResolution(is_outdated=True, wanted_version="1.3.0")

    def test_major_update_falls_back_to_latest(self):
        """A version outside the range is still surfaced as wanted."""
        assert resolve("^1.2.0", "2.0.0") == VersionResolution(is_outdated=True, wanted_version="2.0.0")

    def test_same_version_is_not_outdated(self):
        assert resolve("^1.2.0", "1.2.0").is_outdated is False

    def test_older_latest_is_not_outdated(self):
        """A registry latest below the declared version is not an update."""
        assert resolve("^2.0.0", "1.9.0").is_outdated is False

    def test_exact_pin(self):
        result = resolve("1.2.0", "1.2.1")
        assert result.is_outdated is True
        assert result.wanted_version == "1.2.1"

    def test_comparison_operators_are_stripped(self):
        assert resolve(">=1.2.0", "1.2.1").is_outdated is True
        assert resolve("~1.2.0", "1.2.0").is_outdated is False

    def test_prerelease_orders_below_release(self):
        """1.0.0 is newer than the 1.0.0-beta the range names."""
        assert resolve("^1.0.0-beta.1", "1.0.0").is_outdated is True
        assert resolve("^1.0.0", "1.0.1-alpha").is_outdated is True
        assert resolve("^1.0.0", "1.0.0-rc.1").is_outdated is False

    def test_unresolvable_declared_range(self):
        with pytest.raises(UnresolvableVersionError):
            resolve("latest", "1.0.0")

    def test_unresolvable_partial_version(self):
        with pytest.raises(UnresolvableVersionError):
            resolve("^1.2", "1.3.0")

    def test_unresolvable_latest_version(self):
        with pytest.raises(UnresolvableVersionError):
            resolve("^1.2.0", "garbage")

    def test_leading_v_is_accepted(self):
        """npm accepts a ``v`` before the version number."""
        result = resolve("v1.2.3", "1.3.0")
        assert result.is_outdated is True
        assert result.wanted_version == "1.3.0"

    def test_wanted_follows_tilde_range(self):
        assert resolve("~1.2.0", "1.2.9").wanted_version == "1.2.9"
        assert resolve("~1.2.0", "1.3.0").wanted_version == "1.3.0"

    def test_prerelease_latest_outside_range(self):
        """A pre-release latest is still reported as wanted."""
        result = resolve("^1.2.0", "1.3.0-beta.1")
        assert result.is_outdated is True
        assert result.wanted_version == "1.3.0-beta.1"

    @pytest.mark.parametrize("declared,latest", [
        ("^1.2.0", "1.3.0"),
        ("~0.4.1", "0.5.0"),
        ("2.0.0", "2.0.0"),
        (">=3.1.4", "4.0.0-beta.1"),
    ])
    def test_deterministic(self, declared, latest):
        assert resolve(declared, latest) == resolve(declared, latest)


class TestParseVersion:
    """Test strict version parsing."""

    def test_full_version(self):
        assert parse_version("1.2.3").major == 1

    @pytest.mark.parametrize("value", ["1.2", "latest", "", "^1.2.0", None])
    def test_rejects_non_versions(self, value):
        with pytest.raises(UnresolvableVersionError):
            parse_version(value)
