"""Detection of declared dependencies with newer published versions."""

import asyncio
import logging

from .errors import UnresolvableVersionError
from .models import DependencyDeclaration, LookupResult, Manifest, OutdatedPackage
from .registry import NpmRegistryClient
from .resolve import resolve

logger = logging.getLogger(__name__)


class OutdatedChecker:
    """Builds the set of updatable packages for a manifest."""

    def __init__(self, registry: NpmRegistryClient, max_concurrency: int = 8):
        """Initialize the checker.

        Args:
            registry: Source of latest published versions
            max_concurrency: Maximum concurrent registry requests
        """
        self.registry = registry
        self.max_concurrency = max_concurrency
        self.warnings: list[str] = []
        self._semaphore = asyncio.Semaphore(max_concurrency)

    def _warn(self, message: str) -> None:
        logger.warning(message)
        self.warnings.append(message)

    async def check_declaration(self, declaration: DependencyDeclaration) -> LookupResult[OutdatedPackage]:
        """Decide whether one declaration is outdated.

        Returns:
            ok with the record when an update exists, empty when the package
            is current, failed when the version could not be determined
        """
        async with self._semaphore:
            latest = await self.registry.get_latest_version(declaration.name)

        if not latest.succeeded:
            return LookupResult.failed(latest.reason or f"No version information for {declaration.name}")

        try:
            resolution = resolve(declaration.declared_range, latest.value)
        except UnresolvableVersionError as e:
            return LookupResult.failed(f"{declaration.name}: {e}")

        if not resolution.is_outdated:
            return LookupResult.empty()

        return LookupResult.ok(
            OutdatedPackage(
                name=declaration.name,
                current=declaration.declared_range,
                latest=latest.value,
                wanted=resolution.wanted_version,
                dependency_type=declaration.dependency_type,
            )
        )

    async def build_outdated_set(self, manifest: Manifest) -> list[OutdatedPackage]:
        """Query every registry dependency concurrently.

        Local-path and version-control dependencies are skipped. A package
        whose lookup fails is left out and reported in ``warnings``.

        Args:
            manifest: Parsed package.json

        Returns:
            Outdated packages in declaration order
        """
        declarations = []
        for declaration in manifest.declarations:
            if declaration.is_registry:
                declarations.append(declaration)
            else:
                logger.debug("Skipping %s (%s)", declaration.name, declaration.declared_range)

        results = await asyncio.gather(*(self.check_declaration(d) for d in declarations))

        outdated = []
        for declaration, result in zip(declarations, results):
            if result.succeeded:
                outdated.append(result.value)
            elif result.reason:
                self._warn(f"Could not check updates for {declaration.name}: {result.reason}")
        return outdated
