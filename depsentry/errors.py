"""Exception types raised by DepSentry."""


class DepSentryError(Exception):
    """Base class for all DepSentry errors."""


class ManifestError(DepSentryError):
    """The project manifest is missing or is not a valid JSON object."""


class UnresolvableVersionError(DepSentryError):
    """A declared or published version is not a valid semantic version."""


class RegistryError(DepSentryError):
    """A registry request failed or returned an unexpected payload."""
