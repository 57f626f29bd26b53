"""Runtime settings, overridable from the environment."""

import os
from dataclasses import dataclass, field

VERSION = "0.1.0"

DEFAULT_REGISTRY = "https://registry.npmjs.org"


def _env_float(name: str, default: float) -> float:
    value = os.environ.get(name)
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {value!r}") from None


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}") from None


@dataclass(frozen=True)
class Settings:
    """Settings shared by the registry client, checker and aggregator."""

    registry_url: str = DEFAULT_REGISTRY
    timeout: float = 5.0
    audit_timeout: float = 10.0
    max_concurrency: int = 8
    audit_command: tuple[str, ...] = field(default=("npm", "audit", "--json"))

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from DEPSENTRY_* environment variables."""
        command = os.environ.get("DEPSENTRY_AUDIT_COMMAND")
        return cls(
            registry_url=os.environ.get("DEPSENTRY_REGISTRY", DEFAULT_REGISTRY).rstrip("/"),
            timeout=_env_float("DEPSENTRY_TIMEOUT", cls.timeout),
            audit_timeout=_env_float("DEPSENTRY_AUDIT_TIMEOUT", cls.audit_timeout),
            max_concurrency=_env_int("DEPSENTRY_MAX_CONCURRENCY", cls.max_concurrency),
            audit_command=tuple(command.split()) if command else ("npm", "audit", "--json"),
        )
