"""Vulnerability collection from npm audit and registry advisories."""

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from dataclasses import replace
from pathlib import Path
from typing import Any

from .errors import ManifestError, RegistryError, UnresolvableVersionError
from .manifest import load_manifest
from .models import NO_FIX_AVAILABLE, SEVERITIES, LookupResult, LookupStatus, Manifest, Vulnerability
from .registry import NpmRegistryClient
from .resolve import parse_version
from .semver_range import strip_range_operators

logger = logging.getLogger(__name__)

AUDIT_SOURCE = "npm-audit"
REGISTRY_SOURCE = "registry-advisories"
UNKNOWN_VERSION = "unknown"
AUDIT_FIX_HINT = "Run npm audit fix"


def _severity(value: Any) -> str:
    if isinstance(value, str) and value.lower() in SEVERITIES:
        return value.lower()
    return "moderate"


def _text(value: Any, default: str = "") -> str:
    return value if isinstance(value, str) and value else default


def _patched_versions(name: str, fixed_in: str, fix: Any) -> str:
    """Describe the fix npm audit knows about for a finding.

    ``fixAvailable`` is either a bool or the package (often a parent of the
    vulnerable one) whose upgrade resolves the finding.
    """
    if fixed_in:
        return f">={fixed_in}"
    if isinstance(fix, dict):
        fix_name = _text(fix.get("name"))
        fix_version = _text(fix.get("version"))
        if fix_version and fix_name in ("", name):
            return f">={fix_version}"
        if fix_version:
            return f"upgrade {fix_name} to {fix_version}"
        return AUDIT_FIX_HINT
    if fix is True:
        return AUDIT_FIX_HINT
    return NO_FIX_AVAILABLE


def _audit_v2_record(name: str, finding: dict) -> Vulnerability | None:
    """Normalize one entry of an npm audit v2 ``vulnerabilities`` map."""
    via = finding.get("via")
    if not isinstance(via, list) or not via:
        return None

    # The first cause stands for the whole finding
    cause = via[0]
    if isinstance(cause, dict):
        title = _text(cause.get("title"), "Unknown vulnerability")
        advisory = _text(cause.get("advisory")) or _text(cause.get("overview"))
        url = _text(cause.get("url")) or None
        fixed_in = _text(cause.get("fixedIn"))
    else:
        title = f"Vulnerable through dependency {cause}"
        advisory = ""
        url = None
        fixed_in = ""

    patched = _patched_versions(name, fixed_in, finding.get("fixAvailable"))

    return Vulnerability(
        name=name,
        version=_text(finding.get("version"), UNKNOWN_VERSION),
        severity=_severity(finding.get("severity")),
        title=title,
        advisory=advisory,
        vulnerable_versions=_text(finding.get("range"), "*"),
        patched_versions=patched,
        url=url,
        source=AUDIT_SOURCE,
    )


def _audit_v1_record(advisory: dict) -> Vulnerability | None:
    """Normalize one entry of an npm audit v1 ``advisories`` map."""
    name = _text(advisory.get("module_name"))
    if not name:
        return None

    version = UNKNOWN_VERSION
    findings = advisory.get("findings")
    if isinstance(findings, list) and findings and isinstance(findings[0], dict):
        version = _text(findings[0].get("version"), UNKNOWN_VERSION)

    patched = _text(advisory.get("patched_versions"))
    return Vulnerability(
        name=name,
        version=version,
        severity=_severity(advisory.get("severity")),
        title=_text(advisory.get("title"), "Unknown vulnerability"),
        advisory=_text(advisory.get("overview")),
        vulnerable_versions=_text(advisory.get("vulnerable_versions"), "*"),
        patched_versions=patched if patched and patched != "<0.0.0" else NO_FIX_AVAILABLE,
        url=_text(advisory.get("url")) or None,
        source=AUDIT_SOURCE,
    )


def parse_audit_output(output: str) -> dict | None:
    """Return the audit payload if the output has a recognizable shape."""
    try:
        payload = json.loads(output)
    except (json.JSONDecodeError, TypeError):
        return None

    if not isinstance(payload, dict):
        return None
    if isinstance(payload.get("vulnerabilities"), dict) or isinstance(payload.get("advisories"), dict):
        return payload
    return None


def normalize_audit_report(payload: dict) -> list[Vulnerability]:
    """Normalize an npm audit report (v1 or v2 format) into records."""
    records: list[Vulnerability | None] = []

    vulnerabilities = payload.get("vulnerabilities")
    if isinstance(vulnerabilities, dict):
        for name, finding in vulnerabilities.items():
            if isinstance(finding, dict):
                records.append(_audit_v2_record(name, finding))
    else:
        advisories = payload.get("advisories")
        if isinstance(advisories, dict):
            for advisory in advisories.values():
                if isinstance(advisory, dict):
                    records.append(_audit_v1_record(advisory))

    return [record for record in records if record is not None]


def normalize_bulk_advisories(payload: dict, version: str) -> list[Vulnerability]:
    """Normalize a bulk advisory response ``{name: [advisory, ...]}``."""
    records = []
    for name, advisories in payload.items():
        if not isinstance(advisories, list):
            continue
        for advisory in advisories:
            if not isinstance(advisory, dict):
                continue
            records.append(
                Vulnerability(
                    name=name,
                    version=version,
                    severity=_severity(advisory.get("severity")),
                    title=_text(advisory.get("title"), "Unknown vulnerability"),
                    advisory=_text(advisory.get("overview")),
                    vulnerable_versions=_text(advisory.get("vulnerable_versions"), "*"),
                    patched_versions=_text(advisory.get("patched_versions"), NO_FIX_AVAILABLE),
                    url=_text(advisory.get("url")) or None,
                    source=REGISTRY_SOURCE,
                )
            )
    return records


async def run_audit_command(
    command: tuple[str, ...], cwd: Path | str = ".", timeout: float = 10.0
) -> LookupResult[dict]:
    """Run the audit command and parse its JSON report.

    A non-zero exit status is expected when vulnerabilities are found, so
    the output is parsed regardless of the status. The call only fails when
    no structured report is produced.
    """
    try:
        process = await asyncio.create_subprocess_exec(
            *command,
            cwd=str(cwd),
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        return LookupResult.failed(f"Could not run {' '.join(command)}: {e}")

    try:
        stdout, _ = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        return LookupResult.failed(f"{' '.join(command)} timed out after {timeout:g}s")

    payload = parse_audit_output(stdout.decode("utf-8", errors="replace"))
    if payload is None:
        return LookupResult.failed(
            f"{' '.join(command)} exited with status {process.returncode} without a usable report"
        )

    if process.returncode:
        logger.debug("Audit exited with status %d, using its report", process.returncode)
    return LookupResult.ok(payload)


class AdvisoryCache:
    """Advisory lookups for one run, keyed by ``name@version``.

    Concurrent callers asking for the same key share one in-flight task.
    """

    def __init__(self):
        self._tasks: dict[str, asyncio.Future] = {}

    def __contains__(self, key: str) -> bool:
        return key in self._tasks

    def __len__(self) -> int:
        return len(self._tasks)

    async def get_or_fetch(self, key: str, fetch: Callable[[], Awaitable[Any]]) -> Any:
        task = self._tasks.get(key)
        if task is None:
            task = asyncio.ensure_future(fetch())
            self._tasks[key] = task
        return await task


class VulnerabilityAggregator:
    """Collects vulnerability records from the available advisory sources."""

    def __init__(
        self,
        registry: NpmRegistryClient,
        project_dir: Path | str | None = ".",
        audit_command: tuple[str, ...] = ("npm", "audit", "--json"),
        audit_timeout: float = 10.0,
        use_audit: bool = True,
        max_concurrency: int = 8,
    ):
        """Initialize the aggregator.

        Args:
            registry: Client for the fallback advisory endpoint
            project_dir: Project root the audit command runs in, or None when
                checking manifest content without a checkout
            audit_command: Command producing an npm audit JSON report
            audit_timeout: Upper bound in seconds for the audit command
            use_audit: Set to False to go straight to the registry
            max_concurrency: Maximum concurrent advisory requests
        """
        self.registry = registry
        self.project_dir = Path(project_dir) if project_dir is not None else None
        self.audit_command = tuple(audit_command)
        self.audit_timeout = audit_timeout
        self.use_audit = use_audit
        self.cache = AdvisoryCache()
        self.warnings: list[str] = []
        self.source: str | None = None
        self.complete = False
        self._semaphore = asyncio.Semaphore(max_concurrency)

    def _warn(self, message: str) -> None:
        logger.warning(message)
        self.warnings.append(message)

    def installed_version(self, name: str) -> str | None:
        """Version of a package installed under node_modules, if any."""
        if self.project_dir is None:
            return None
        package_json = self.project_dir / "node_modules" / name / "package.json"
        try:
            data = json.loads(package_json.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return None
        version = data.get("version") if isinstance(data, dict) else None
        return version if isinstance(version, str) and version else None

    def _fill_versions(self, records: list[Vulnerability]) -> list[Vulnerability]:
        filled = []
        for record in records:
            if record.version == UNKNOWN_VERSION:
                installed = self.installed_version(record.name)
                if installed:
                    record = replace(record, version=installed)
            filled.append(record)
        return filled

    async def collect(self, manifest: Manifest | None = None) -> list[Vulnerability]:
        """Collect vulnerabilities, falling back when npm audit is unusable.

        Never raises for advisory source problems. ``complete`` is False
        whenever the result may be missing findings.
        """
        if self.use_audit:
            audit = await run_audit_command(self.audit_command, self.project_dir or ".", self.audit_timeout)
            if audit.succeeded:
                self.source = AUDIT_SOURCE
                self.complete = True
                return self._fill_versions(normalize_audit_report(audit.value))
            self._warn(f"npm audit unavailable, using registry advisories: {audit.reason}")

        self.complete = False
        if manifest is None:
            try:
                manifest = load_manifest(self.project_dir or ".")
            except ManifestError as e:
                self._warn(f"Skipping vulnerability check: {e}")
                return []

        self.source = REGISTRY_SOURCE
        return await self.collect_from_registry(manifest)

    async def collect_from_registry(self, manifest: Manifest) -> list[Vulnerability]:
        """Query advisories for every registry dependency concurrently."""
        targets = []
        for declaration in manifest.declarations:
            if not declaration.is_registry:
                continue
            version = self.installed_version(declaration.name) or strip_range_operators(
                declaration.declared_range
            )
            targets.append((declaration.name, version))

        results = await asyncio.gather(*(self.lookup_advisories(name, version) for name, version in targets))

        vulnerabilities = []
        for (name, version), result in zip(targets, results):
            if result.succeeded:
                vulnerabilities.extend(result.value)
            elif result.status is LookupStatus.FAILED:
                self._warn(f"Could not check advisories for {name}@{version}: {result.reason}")
        return vulnerabilities

    async def lookup_advisories(self, name: str, version: str) -> LookupResult[list[Vulnerability]]:
        """Advisories for one ``name@version``, fetched at most once per run."""
        return await self.cache.get_or_fetch(
            f"{name}@{version}", lambda: self._fetch_advisories(name, version)
        )

    async def _fetch_advisories(self, name: str, version: str) -> LookupResult[list[Vulnerability]]:
        try:
            parse_version(version)
        except UnresolvableVersionError as e:
            return LookupResult.failed(str(e))

        async with self._semaphore:
            try:
                payload = await self.registry.fetch_advisories(name, version)
            except RegistryError as e:
                return LookupResult.failed(str(e))

        records = normalize_bulk_advisories(payload, version)
        return LookupResult.ok(records) if records else LookupResult.empty()
