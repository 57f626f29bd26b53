"""Core data models for DepSentry."""

import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Generic, TypeVar

T = TypeVar("T")

NO_FIX_AVAILABLE = "No fix available"

SEVERITIES = ("critical", "high", "moderate", "low", "info")

# Range prefixes that point outside the registry
NON_REGISTRY_PREFIXES = (
    "file:",
    "link:",
    "portal:",
    "workspace:",
    "git+",
    "git:",
    "github:",
    "gitlab:",
    "bitbucket:",
    "http://",
    "https://",
    "./",
    "../",
    "~/",
    "/",
)

# GitHub shorthand such as "user/repo" or "user/repo#v1.0.0"
GITHUB_SHORTHAND_RE = re.compile(r"^[\w.-]+/[\w.-]+(#.*)?$")


class DependencyType(str, Enum):
    """Manifest bucket a dependency was declared in."""

    PROD = "prod"
    DEV = "dev"
    PEER = "peer"

    @property
    def section(self) -> str:
        return _SECTIONS[self]


_SECTIONS = {
    DependencyType.PROD: "dependencies",
    DependencyType.DEV: "devDependencies",
    DependencyType.PEER: "peerDependencies",
}


@dataclass(frozen=True)
class DependencyDeclaration:
    """A single dependency entry read from package.json."""

    name: str
    declared_range: str
    dependency_type: DependencyType = DependencyType.PROD

    @property
    def is_registry(self) -> bool:
        """False for local paths and version-control sources."""
        declared = self.declared_range.strip()
        return not (declared.startswith(NON_REGISTRY_PREFIXES) or GITHUB_SHORTHAND_RE.match(declared))


@dataclass
class Manifest:
    """A parsed package.json manifest."""

    path: Path | None
    data: dict[str, Any]
    declarations: list[DependencyDeclaration]


@dataclass(frozen=True)
class OutdatedPackage:
    """A declared dependency with a newer published version."""

    name: str
    current: str
    latest: str
    wanted: str
    dependency_type: DependencyType

    def to_dict(self) -> dict[str, str]:
        return {
            "name": self.name,
            "current": self.current,
            "wanted": self.wanted,
            "latest": self.latest,
            "type": self.dependency_type.value,
        }


@dataclass(frozen=True)
class Vulnerability:
    """A known advisory affecting an installed or declared version."""

    name: str
    version: str
    severity: str = "moderate"
    title: str = "Unknown vulnerability"
    advisory: str = ""
    vulnerable_versions: str = "*"
    patched_versions: str = NO_FIX_AVAILABLE
    url: str | None = None
    source: str = "npm-audit"

    def to_dict(self) -> dict[str, str | None]:
        return {
            "name": self.name,
            "version": self.version,
            "severity": self.severity,
            "title": self.title,
            "advisory": self.advisory,
            "vulnerable_versions": self.vulnerable_versions,
            "patched_versions": self.patched_versions,
            "url": self.url,
            "source": self.source,
        }


class LookupStatus(str, Enum):
    OK = "ok"
    EMPTY = "empty"
    FAILED = "failed"


@dataclass(frozen=True)
class LookupResult(Generic[T]):
    """Outcome of one per-package query against an external source."""

    status: LookupStatus
    value: T | None = None
    reason: str = ""

    @classmethod
    def ok(cls, value: T) -> "LookupResult[T]":
        return cls(LookupStatus.OK, value)

    @classmethod
    def empty(cls, reason: str = "") -> "LookupResult[T]":
        return cls(LookupStatus.EMPTY, None, reason)

    @classmethod
    def failed(cls, reason: str) -> "LookupResult[T]":
        return cls(LookupStatus.FAILED, None, reason)

    @property
    def succeeded(self) -> bool:
        return self.status is LookupStatus.OK


@dataclass
class UpdateOutcome:
    """Result of applying a selection of updates to package.json."""

    updated: list[OutdatedPackage] = field(default_factory=list)
    package_manager: str = "npm"
    installed: bool = False
    install_error: str | None = None

    @property
    def manifest_changed(self) -> bool:
        return bool(self.updated)
