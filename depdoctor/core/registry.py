"""npm registry metadata store for depdoctor.

Provides an async-safe store for registry packuments so that the
classifier and the solution generator share a single HTTP fetch per
package. Parsed metadata lives in a :class:`MetadataCache`, an explicit
object with a time-to-live, an injectable clock and a lock guarding every
read and write.

A failed lookup is logged and reported as ``None`` ("unknown"); it never
prevents other packages from being fetched.

Typical usage::

    from depdoctor.utils.http import HTTPClient
    from depdoctor.core.registry import RegistryMetadataStore

    async with HTTPClient() as client:
        store = RegistryMetadataStore(client)
        await store.prefetch(["react", "lodash"])
        react = store.get_cached("react")
        print(react.latest_version)           # e.g. "18.2.0"
"""

from __future__ import annotations

import time
import asyncio
import threading
from urllib.parse import quote
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from depdoctor.exceptions import DepDoctorError
from depdoctor.utils.http import HTTPClient
from depdoctor.utils.logger import get_logger
from depdoctor.utils.version_utils import sort_versions
from depdoctor.constants import (
    DEFAULT_CACHE_TTL,
    DEFAULT_CONCURRENT_LIMIT,
    DEFAULT_REGISTRY_URL,
)

logger = get_logger("registry")

__all__ = [
    "MetadataCache",
    "PackageMetadata",
    "RegistryMetadataStore",
    "VersionMetadata",
]


# ---------------------------------------------------------------------------
# Data containers
# ---------------------------------------------------------------------------


@dataclass
class VersionMetadata:
    """Registry facts about one published version.

    Attributes:
        version: Version string.
        peer_dependencies: Declared peer ranges.
        peer_optional: Peers marked optional in ``peerDependenciesMeta``.
        engines: ``engines`` section (``node``, ``npm``, ...).
        deprecated: Deprecation message, if the version is deprecated.
    """

    version: str
    peer_dependencies: Dict[str, str] = field(default_factory=dict)
    peer_optional: Dict[str, bool] = field(default_factory=dict)
    engines: Dict[str, str] = field(default_factory=dict)
    deprecated: Optional[str] = None


@dataclass
class PackageMetadata:
    """Parsed npm packument for one package.

    Attributes:
        name: Package name.
        latest_version: ``dist-tags.latest``, if published.
        versions: Per-version facts keyed by version string.
    """

    name: str
    latest_version: Optional[str] = None
    versions: Dict[str, VersionMetadata] = field(default_factory=dict)

    @property
    def all_versions(self) -> List[str]:
        """Published versions in ascending semver order."""
        return sort_versions(self.versions)

    def version(self, version: Optional[str]) -> Optional[VersionMetadata]:
        if version is None:
            return None
        return self.versions.get(version)

    @classmethod
    def from_packument(cls, name: str, data: Mapping[str, Any]) -> "PackageMetadata":
        """Build metadata from a raw (full or abbreviated) packument.

        Malformed per-version entries are skipped.
        """
        dist_tags = data.get("dist-tags")
        latest = dist_tags.get("latest") if isinstance(dist_tags, Mapping) else None

        versions: Dict[str, VersionMetadata] = {}
        raw_versions = data.get("versions")
        if isinstance(raw_versions, Mapping):
            for version, entry in raw_versions.items():
                if not isinstance(entry, Mapping):
                    continue
                versions[str(version)] = _parse_version_entry(str(version), entry)

        return cls(
            name=name,
            latest_version=latest if isinstance(latest, str) else None,
            versions=versions,
        )


def _parse_version_entry(version: str, entry: Mapping[str, Any]) -> VersionMetadata:
    def strings(value: Any) -> Dict[str, str]:
        if not isinstance(value, Mapping):
            return {}
        return {str(k): v for k, v in value.items() if isinstance(v, str)}

    optional: Dict[str, bool] = {}
    meta = entry.get("peerDependenciesMeta")
    if isinstance(meta, Mapping):
        for peer, flags in meta.items():
            if isinstance(flags, Mapping):
                optional[str(peer)] = bool(flags.get("optional", False))

    deprecated = entry.get("deprecated")
    return VersionMetadata(
        version=version,
        peer_dependencies=strings(entry.get("peerDependencies")),
        peer_optional=optional,
        engines=strings(entry.get("engines")),
        deprecated=deprecated if isinstance(deprecated, str) and deprecated else None,
    )


# ---------------------------------------------------------------------------
# Time-bounded cache
# ---------------------------------------------------------------------------


@dataclass
class _CacheEntry:
    value: PackageMetadata
    expires_at: float


class MetadataCache:
    """Thread-safe TTL cache of :class:`PackageMetadata` keyed by package name.

    Args:
        ttl: Seconds an entry stays fresh.
        clock: Monotonic time source; injectable for tests.

    Example::

        >>> now = [0.0]
        >>> cache = MetadataCache(ttl=300, clock=lambda: now[0])
        >>> cache.set("react", PackageMetadata("react", "18.2.0"))
        >>> now[0] = 301.0
        >>> cache.get("react") is None
        True
    """

    def __init__(
        self,
        ttl: float = DEFAULT_CACHE_TTL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl = ttl
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: Dict[str, _CacheEntry] = {}

    def get(self, name: str) -> Optional[PackageMetadata]:
        """Return the fresh entry for *name*, evicting it if it has expired."""
        with self._lock:
            entry = self._entries.get(name)
            if entry is None:
                return None
            if self._clock() >= entry.expires_at:
                del self._entries[name]
                return None
            return entry.value

    def set(self, name: str, value: PackageMetadata) -> None:
        """Insert or overwrite the entry for *name*."""
        with self._lock:
            self._entries[name] = _CacheEntry(value, self._clock() + self.ttl)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.get(name) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


# ---------------------------------------------------------------------------
# Async store with double-checked locking
# ---------------------------------------------------------------------------


class RegistryMetadataStore:
    """Async-safe store for npm registry metadata.

    Each package name triggers at most one HTTP request per cache
    lifetime. A :class:`asyncio.Semaphore` limits concurrent fetches and a
    second cache check inside the semaphore prevents duplicate requests
    when several coroutines ask for the same package at once.

    Args:
        http_client: A configured :class:`HTTPClient`.
        cache: Cache to use; a fresh :class:`MetadataCache` by default.
        registry_url: Base URL of an npm-compatible registry.
        concurrent_limit: Maximum number of fetches in flight.
    """

    def __init__(
        self,
        http_client: HTTPClient,
        cache: Optional[MetadataCache] = None,
        registry_url: str = DEFAULT_REGISTRY_URL,
        concurrent_limit: int = DEFAULT_CONCURRENT_LIMIT,
    ) -> None:
        self.http_client = http_client
        self.cache = cache if cache is not None else MetadataCache()
        self.registry_url = registry_url.rstrip("/")
        self._semaphore = asyncio.Semaphore(concurrent_limit)

    # ------------------------------------------------------------------
    # Public async accessors
    # ------------------------------------------------------------------

    async def get_package_metadata(self, name: str) -> Optional[PackageMetadata]:
        """Fetch (or return cached) metadata for *name*.

        Returns:
            Parsed metadata, or ``None`` if the lookup failed.
        """
        cached = self.cache.get(name)
        if cached is not None:
            return cached

        async with self._semaphore:
            cached = self.cache.get(name)
            if cached is not None:
                return cached

            try:
                data = await self.http_client.get_json(self.packument_url(name))
            except DepDoctorError as exc:
                logger.warning("Registry lookup failed for %s: %s", name, exc.message)
                return None

            metadata = PackageMetadata.from_packument(name, data)
            self.cache.set(name, metadata)
            logger.debug(
                "Fetched %s: latest=%s, %d versions",
                name,
                metadata.latest_version,
                len(metadata.versions),
            )
            return metadata

    async def prefetch(self, names: Iterable[str]) -> Dict[str, PackageMetadata]:
        """Concurrently fetch metadata for *names*.

        Returns:
            Metadata for every package whose lookup succeeded.
        """
        unique = list(dict.fromkeys(names))
        results = await asyncio.gather(
            *(self.get_package_metadata(name) for name in unique),
            return_exceptions=True,
        )

        fetched: Dict[str, PackageMetadata] = {}
        for name, result in zip(unique, results):
            if isinstance(result, BaseException):
                logger.warning("Registry lookup failed for %s: %s", name, result)
            elif result is not None:
                fetched[name] = result
        return fetched

    # ------------------------------------------------------------------
    # Synchronous accessors (cache-only, no I/O)
    # ------------------------------------------------------------------

    def get_cached(self, name: str) -> Optional[PackageMetadata]:
        return self.cache.get(name)

    def packument_url(self, name: str) -> str:
        """Return the packument URL; scoped names keep their ``@``.

        Example::

            >>> store.packument_url("@types/node")
            'https://registry.npmjs.org/@types%2Fnode'
        """
        return f"{self.registry_url}/{quote(name, safe='@')}"
