"""TTL cache for compiled schemas and model capability probes."""

import logging
import threading
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_SCHEMA_TTL = 3600
DEFAULT_CAPABILITY_TTL = DEFAULT_SCHEMA_TTL * 24


@dataclass(frozen=True)
class CacheEntry:
    """A cached value and the clock reading after which it is stale."""

    value: Any
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now > self.expires_at


@dataclass
class _Table:
    """One keyed table with its own lock and hit/miss counters.

    Entries and counters are only touched while ``lock`` is held.
    """

    ttl: float
    entries: dict[str, CacheEntry] = field(default_factory=dict)
    lock: threading.Lock = field(default_factory=threading.Lock)
    hits: int = 0
    misses: int = 0

    def snapshot(self) -> tuple[int, int, int]:
        """Entry count, hits and misses read under the lock."""
        with self.lock:
            return len(self.entries), self.hits, self.misses


class SchemaCache:
    """Caches compiled schemas and capability probe results with expiry.

    Schemas are keyed by ``schema:<provider>:<signature>`` plus any sorted
    dialect parameters; capabilities by ``capability:<model>:<capability>``.
    Each table has its own lock. Expired entries are evicted on read.

    The cache is an explicitly constructed service: create one and inject it
    into the compiler and capability probe that should share it.
    """

    def __init__(
        self,
        schema_ttl: float = DEFAULT_SCHEMA_TTL,
        capability_ttl: float = DEFAULT_CAPABILITY_TTL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize SchemaCache.

        Args:
            schema_ttl: Seconds a compiled schema stays valid
            capability_ttl: Seconds a capability probe stays valid
            clock: Monotonic clock returning seconds; injectable for tests
        """
        self._clock = clock
        self._schemas = _Table(schema_ttl)
        self._capabilities = _Table(capability_ttl)

    @property
    def schema_ttl(self) -> float:
        return self._schemas.ttl

    @property
    def capability_ttl(self) -> float:
        return self._capabilities.ttl

    def cache_schema(
        self,
        signature_id: str,
        provider: str,
        schema: Any,
        params: Mapping[str, Any] | None = None,
    ) -> None:
        """Store a compiled schema.

        Args:
            signature_id: Signature name
            provider: Provider the schema was compiled for
            schema: The compiled schema
            params: Extra parameters distinguishing variants (e.g. dialect)
        """
        key = self._schema_key(signature_id, provider, params)
        self._write(self._schemas, key, schema)
        logger.debug("Cached schema %s", key)

    def get_schema(
        self,
        signature_id: str,
        provider: str,
        params: Mapping[str, Any] | None = None,
    ) -> Any | None:
        """Get a cached schema, or ``None`` if absent or expired."""
        key = self._schema_key(signature_id, provider, params)
        return self._read(self._schemas, key)

    def cache_capability(self, model: str, capability: str, result: bool) -> None:
        """Store the result of a capability probe."""
        key = self._capability_key(model, capability)
        self._write(self._capabilities, key, result)
        logger.debug("Cached capability %s = %s", key, result)

    def get_capability(self, model: str, capability: str) -> bool | None:
        """Get a cached capability probe result, or ``None`` if unknown."""
        key = self._capability_key(model, capability)
        return self._read(self._capabilities, key)

    def clear(self) -> None:
        """Drop every entry and reset the hit/miss counters."""
        for table in (self._schemas, self._capabilities):
            with table.lock:
                table.entries.clear()
                table.hits = 0
                table.misses = 0

    def stats(self) -> dict[str, int]:
        """Entry counts per table plus hit/miss counters.

        Returns:
            Dictionary with schema_entries, capability_entries, total_entries,
            hits and misses
        """
        schema_entries, schema_hits, schema_misses = self._schemas.snapshot()
        capability_entries, capability_hits, capability_misses = (
            self._capabilities.snapshot()
        )
        return {
            "schema_entries": schema_entries,
            "capability_entries": capability_entries,
            "total_entries": schema_entries + capability_entries,
            "hits": schema_hits + capability_hits,
            "misses": schema_misses + capability_misses,
        }

    def _write(self, table: _Table, key: str, value: Any) -> None:
        with table.lock:
            table.entries[key] = CacheEntry(value, self._clock() + table.ttl)

    def _read(self, table: _Table, key: str) -> Any | None:
        with table.lock:
            entry = table.entries.get(key)
            if entry is None:
                table.misses += 1
                return None
            if entry.is_expired(self._clock()):
                del table.entries[key]
                table.misses += 1
                logger.debug("Evicted expired cache entry %s", key)
                return None
            table.hits += 1
        logger.debug("Cache hit %s", key)
        return entry.value

    @staticmethod
    def _schema_key(
        signature_id: str, provider: str, params: Mapping[str, Any] | None
    ) -> str:
        key = f"schema:{provider}:{signature_id}"
        if params:
            key += "".join(f":{k}:{v}" for k, v in sorted(params.items()))
        return key

    @staticmethod
    def _capability_key(model: str, capability: str) -> str:
        return f"capability:{model}:{capability}"
