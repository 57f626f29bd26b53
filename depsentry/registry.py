"""npm registry client."""

import asyncio
import logging
from urllib.parse import quote

import httpx

from .config import DEFAULT_REGISTRY, VERSION
from .errors import RegistryError
from .models import LookupResult

logger = logging.getLogger(__name__)

# Abbreviated packument: dist-tags and versions without readmes
ABBREVIATED_METADATA = "application/vnd.npm.install-v1+json; q=1.0, application/json; q=0.8"
BULK_ADVISORY_PATH = "/-/npm/v1/security/advisories/bulk"


class NpmRegistryClient:
    """Async client for package metadata and advisories on an npm registry."""

    def __init__(
        self,
        registry_url: str = DEFAULT_REGISTRY,
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the registry client.

        Args:
            registry_url: Base URL of the registry
            timeout: Upper bound in seconds for each request
            transport: Optional httpx transport, used by tests
        """
        self.registry_url = registry_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "NpmRegistryClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
                follow_redirects=True,
                headers={"User-Agent": f"depsentry/{VERSION}"},
            )
        return self._client

    def package_url(self, name: str) -> str:
        # Scoped packages keep their @ but encode the slash
        return f"{self.registry_url}/{quote(name, safe='@')}"

    async def _send(self, description: str, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            return await asyncio.wait_for(
                self._get_client().request(method, url, **kwargs), timeout=self.timeout
            )
        except (httpx.TimeoutException, asyncio.TimeoutError) as e:
            raise RegistryError(f"Timeout fetching {description}") from e
        except httpx.HTTPError as e:
            raise RegistryError(f"Network error fetching {description}: {e}") from e

    @staticmethod
    def _json_object(response: httpx.Response, description: str) -> dict:
        try:
            data = response.json()
        except ValueError as e:
            raise RegistryError(f"Malformed response for {description}") from e
        if not isinstance(data, dict):
            raise RegistryError(f"Unexpected response shape for {description}")
        return data

    async def fetch_packument(self, name: str) -> dict | None:
        """Fetch package metadata.

        Returns:
            Metadata dict or None if the package does not exist

        Raises:
            RegistryError: On timeouts, network errors and malformed payloads.
        """
        response = await self._send(
            f"metadata for {name}", "GET", self.package_url(name),
            headers={"Accept": ABBREVIATED_METADATA},
        )
        if response.status_code == 404:
            return None
        if response.is_error:
            raise RegistryError(f"HTTP {response.status_code} fetching metadata for {name}")
        return self._json_object(response, f"metadata for {name}")

    async def get_latest_version(self, name: str) -> LookupResult[str]:
        """Look up the version behind the ``latest`` dist-tag."""
        try:
            packument = await self.fetch_packument(name)
        except RegistryError as e:
            return LookupResult.failed(str(e))

        if packument is None:
            return LookupResult.empty(f"Package {name} not found")

        dist_tags = packument.get("dist-tags")
        latest = dist_tags.get("latest") if isinstance(dist_tags, dict) else None
        if not isinstance(latest, str) or not latest:
            return LookupResult.failed(f"No latest version published for {name}")
        return LookupResult.ok(latest)

    async def fetch_advisories(self, name: str, version: str) -> dict:
        """Query the bulk advisory endpoint for one ``name@version``.

        Returns:
            Mapping of package name to a list of advisories

        Raises:
            RegistryError: On timeouts, network errors and malformed payloads.
        """
        description = f"advisories for {name}@{version}"
        response = await self._send(
            description, "POST", f"{self.registry_url}{BULK_ADVISORY_PATH}",
            json={name: [version]},
        )
        if response.is_error:
            raise RegistryError(f"HTTP {response.status_code} fetching {description}")
        return self._json_object(response, description)
