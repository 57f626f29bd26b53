"""Combined outdated and vulnerability report for one project."""

import asyncio
from dataclasses import dataclass, field
from pathlib import Path

from .audit import VulnerabilityAggregator
from .config import Settings
from .manifest import load_manifest
from .models import Manifest, OutdatedPackage, Vulnerability
from .outdated import OutdatedChecker
from .registry import NpmRegistryClient


@dataclass
class ProjectReport:
    """Everything one run found, plus the warnings it collected."""

    outdated: list[OutdatedPackage] = field(default_factory=list)
    vulnerabilities: list[Vulnerability] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    checked_outdated: bool = False
    checked_vulnerabilities: bool = False
    vulnerability_source: str | None = None
    vulnerabilities_complete: bool = True

    def to_dict(self) -> dict:
        return {
            "outdated": [p.to_dict() for p in self.outdated],
            "vulnerabilities": [v.to_dict() for v in self.vulnerabilities],
            "warnings": list(self.warnings),
            "vulnerability_source": self.vulnerability_source,
            "complete": self.vulnerabilities_complete,
        }


async def build_report(
    manifest: Manifest,
    settings: Settings,
    project_dir: Path | str | None = ".",
    check_outdated: bool = True,
    check_vulnerabilities: bool = True,
    use_audit: bool = True,
) -> ProjectReport:
    """Run the outdated and vulnerability checks concurrently."""
    report = ProjectReport(
        checked_outdated=check_outdated,
        checked_vulnerabilities=check_vulnerabilities,
    )

    async with NpmRegistryClient(settings.registry_url, timeout=settings.timeout) as registry:
        checker = OutdatedChecker(registry, max_concurrency=settings.max_concurrency)
        aggregator = VulnerabilityAggregator(
            registry,
            project_dir=project_dir,
            audit_command=settings.audit_command,
            audit_timeout=settings.audit_timeout,
            use_audit=use_audit,
            max_concurrency=settings.max_concurrency,
        )

        tasks = []
        if check_outdated:
            tasks.append(checker.build_outdated_set(manifest))
        if check_vulnerabilities:
            tasks.append(aggregator.collect(manifest))
        results = list(await asyncio.gather(*tasks))

    if check_outdated:
        report.outdated = results.pop(0)
        report.warnings.extend(checker.warnings)
    if check_vulnerabilities:
        report.vulnerabilities = results.pop(0)
        report.warnings.extend(aggregator.warnings)
        report.vulnerability_source = aggregator.source
        report.vulnerabilities_complete = aggregator.complete
    return report


async def check_project(
    project_dir: Path | str = ".",
    settings: Settings | None = None,
    check_outdated: bool = True,
    check_vulnerabilities: bool = True,
    use_audit: bool = True,
) -> ProjectReport:
    """Load the project's package.json and build its report.

    Raises:
        ManifestError: If package.json is missing or invalid.
    """
    manifest = load_manifest(project_dir)
    return await build_report(
        manifest,
        settings or Settings.from_env(),
        project_dir=project_dir,
        check_outdated=check_outdated,
        check_vulnerabilities=check_vulnerabilities,
        use_audit=use_audit,
    )
