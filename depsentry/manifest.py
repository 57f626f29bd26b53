"""package.json loading and parsing."""

import json
import logging
from pathlib import Path

from .errors import ManifestError
from .models import DependencyDeclaration, DependencyType, Manifest

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = "package.json"


class PackageJsonParser:
    """Parser for npm package.json manifests."""

    def __init__(self):
        # First bucket wins when a package is declared more than once
        self.precedence = [DependencyType.PROD, DependencyType.DEV, DependencyType.PEER]

    def _load_json(self, content: str) -> dict:
        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise ManifestError(f"package.json is not valid JSON: {e}") from e

        if not isinstance(data, dict):
            raise ManifestError("package.json must contain a JSON object")
        return data

    def _bucket_entries(self, data: dict, dependency_type: DependencyType) -> list[DependencyDeclaration]:
        """Read one dependency section, skipping malformed entries."""
        section = data.get(dependency_type.section) or {}
        if not isinstance(section, dict):
            logger.warning("Ignoring %s: expected an object", dependency_type.section)
            return []

        entries = []
        for name, declared_range in section.items():
            if not isinstance(declared_range, str):
                logger.warning("Ignoring %s in %s: range is not a string", name, dependency_type.section)
                continue
            entries.append(DependencyDeclaration(name, declared_range, dependency_type))
        return entries

    def parse(self, content: str, path: Path | None = None) -> Manifest:
        """Parse package.json content into a Manifest."""
        data = self._load_json(content)
        declarations: list[DependencyDeclaration] = []
        seen: set[str] = set()

        for dependency_type in self.precedence:
            for entry in self._bucket_entries(data, dependency_type):
                if entry.name in seen:
                    logger.debug("%s already declared, ignoring %s entry", entry.name, dependency_type.value)
                    continue
                seen.add(entry.name)
                declarations.append(entry)

        return Manifest(path=path, data=data, declarations=declarations)


def parse_package_json(content: str, path: Path | None = None) -> Manifest:
    """Parse package.json content into Manifest.

    Args:
        content: The package.json file content
        path: Where the content was read from, if anywhere

    Returns:
        Parsed Manifest object

    Raises:
        ManifestError: If the content is not a JSON object.
    """
    parser = PackageJsonParser()
    return parser.parse(content, path)


def load_manifest(project_dir: Path | str = ".") -> Manifest:
    """Read and parse the package.json at the root of a project.

    Raises:
        ManifestError: If the file is missing, unreadable or invalid.
    """
    path = Path(project_dir) / MANIFEST_FILENAME
    if not path.is_file():
        raise ManifestError(f"package.json not found in {Path(project_dir).resolve()}")

    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ManifestError(f"Could not read {path}: {e}") from e

    manifest = parse_package_json(content, path)
    logger.debug("Loaded %d declarations from %s", len(manifest.declarations), path)
    return manifest
