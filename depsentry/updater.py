"""Applying selected updates to package.json."""

import json
import logging
import subprocess
from pathlib import Path

from .detect import detect_package_manager
from .errors import ManifestError
from .manifest import MANIFEST_FILENAME, load_manifest
from .models import DependencyType, OutdatedPackage, UpdateOutcome
from .semver_range import range_prefix

logger = logging.getLogger(__name__)


def partition_by_type(selection: list[OutdatedPackage]) -> dict[DependencyType, list[OutdatedPackage]]:
    """Group selected packages by the manifest bucket they belong to."""
    groups: dict[DependencyType, list[OutdatedPackage]] = {t: [] for t in DependencyType}
    for package in selection:
        groups[package.dependency_type].append(package)
    return groups


def update_section(data: dict, dependency_type: DependencyType, packages: list[OutdatedPackage]) -> list[OutdatedPackage]:
    """Rewrite ranges in one manifest section, keeping each range's prefix.

    Returns:
        The packages that were present in the section and rewritten
    """
    section = data.get(dependency_type.section)
    if not isinstance(section, dict):
        return []

    updated = []
    for package in packages:
        current = section.get(package.name)
        if not isinstance(current, str):
            continue
        new_range = f"{range_prefix(current)}{package.latest}"
        section[package.name] = new_range
        logger.info("Updated %s from %s to %s (%s)", package.name, current, new_range, dependency_type.section)
        updated.append(package)
    return updated


def run_install(package_manager: str, project_dir: Path | str = ".") -> None:
    """Run ``<package manager> install`` in the project.

    Raises:
        subprocess.CalledProcessError: If the install exits non-zero.
        OSError: If the package manager cannot be executed.
    """
    subprocess.run([package_manager, "install"], cwd=str(project_dir), check=True)


def apply_updates(
    project_dir: Path | str,
    selection: list[OutdatedPackage],
    include_dev: bool = False,
    include_peer: bool = False,
    install: bool = True,
) -> UpdateOutcome:
    """Write selected updates to package.json and install them.

    Production dependencies are always updated; development and peer
    dependencies only when their flag is set. An install failure is reported
    in the outcome and leaves the rewritten manifest in place.

    Raises:
        ManifestError: If package.json cannot be read or written.
    """
    project_dir = Path(project_dir)
    manifest = load_manifest(project_dir)
    groups = partition_by_type(selection)
    enabled = {
        DependencyType.PROD: True,
        DependencyType.DEV: include_dev,
        DependencyType.PEER: include_peer,
    }

    outcome = UpdateOutcome(package_manager=detect_package_manager(project_dir))
    for dependency_type, packages in groups.items():
        if enabled[dependency_type] and packages:
            outcome.updated.extend(update_section(manifest.data, dependency_type, packages))

    if not outcome.manifest_changed:
        logger.info("No updates were made")
        return outcome

    path = project_dir / MANIFEST_FILENAME
    try:
        path.write_text(json.dumps(manifest.data, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
    except OSError as e:
        raise ManifestError(f"Could not write {path}: {e}") from e
    logger.info("Updated %s", path)

    if not install:
        return outcome

    try:
        run_install(outcome.package_manager, project_dir)
        outcome.installed = True
    except (subprocess.CalledProcessError, OSError) as e:
        outcome.install_error = str(e)
        logger.error("Error installing updated dependencies: %s", e)
    return outcome
