"""
Cache Storage Layer

RESPONSIBILITY: Key/value access to the timeline cache, endpoint selection
ALLOWED INPUTS: Keys and serialized series bodies
OUTPUTS: Live CacheStore handles, stored values

WHAT THIS LAYER MUST NOT DO:
============================
- Interpret or transform stored values
- Retry beyond the fixed endpoint fallback order
- Impose timeouts of its own (the client's socket timeouts apply)

ENDPOINT FALLBACK:
==================
Candidates are tried in a fixed order, the first one answering PING wins:
    1. explicit override URL (only when configured)
    2. primary named host
    3. loopback host
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Mapping, Optional
import os
import threading

import redis

# ONLY import from contracts - never from other layers' implementations
from ..contracts.base import Error, ErrorCode, Result


DEFAULT_PORT = 6379


class CacheStoreError(Exception):
    """A single cache operation failed after a connection was chosen."""


# =============================================================================
# STORAGE INTERFACES (Dependency Inversion)
# =============================================================================

class CacheStore:
    """
    Abstract key/value store.

    ping() never raises. get() and set() raise CacheStoreError.
    """

    def ping(self) -> bool:
        """Liveness check, PING."""
        raise NotImplementedError

    def get(self, key: str) -> Optional[str]:
        """Stored value, or None when the key does not exist."""
        raise NotImplementedError

    def set(self, key: str, value: str) -> None:
        """Write (or overwrite) a value."""
        raise NotImplementedError


# =============================================================================
# IN-MEMORY STORAGE BACKEND (Reference Implementation)
# =============================================================================

class InMemoryCacheStore(CacheStore):
    """
    In-memory implementation of the cache store.

    Suitable for testing and single-process deployments.
    Writes are serialized by a lock, so concurrent publishers see
    last-writer-wins on shared pointer keys.
    """

    def __init__(self, initial: Optional[Mapping[str, str]] = None, alive: bool = True):
        self._data: Dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()
        self.alive = alive

    def ping(self) -> bool:
        return self.alive

    def get(self, key: str) -> Optional[str]:
        if not self.alive:
            raise CacheStoreError("store is down")
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        if not self.alive:
            raise CacheStoreError("store is down")
        with self._lock:
            self._data[key] = value

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._data.keys())

    def snapshot(self) -> Dict[str, str]:
        with self._lock:
            return dict(self._data)


# =============================================================================
# REDIS STORAGE BACKEND
# =============================================================================

class RedisCacheStore(CacheStore):
    """Cache store backed by a redis-py client."""

    def __init__(self, client: redis.Redis):
        self._client = client

    @staticmethod
    def for_endpoint(endpoint: CacheEndpoint, config: CacheConfig) -> RedisCacheStore:
        timeout = config.socket_timeout_seconds
        try:
            if endpoint.url:
                client = redis.Redis.from_url(
                    endpoint.url,
                    socket_timeout=timeout,
                    socket_connect_timeout=timeout,
                    decode_responses=True
                )
            else:
                client = redis.Redis(
                    host=endpoint.host,
                    port=endpoint.port,
                    db=config.db,
                    socket_timeout=timeout,
                    socket_connect_timeout=timeout,
                    decode_responses=True
                )
        except ValueError as e:
            raise CacheStoreError(f"invalid endpoint {endpoint.describe()}: {e}") from e
        return RedisCacheStore(client)

    def ping(self) -> bool:
        try:
            return bool(self._client.ping())
        except redis.RedisError:
            return False

    def get(self, key: str) -> Optional[str]:
        try:
            return self._client.get(key)
        except redis.RedisError as e:
            raise CacheStoreError(f"GET {key} failed: {e}") from e

    def set(self, key: str, value: str) -> None:
        try:
            self._client.set(key, value)
        except redis.RedisError as e:
            raise CacheStoreError(f"SET {key} failed: {e}") from e


# =============================================================================
# ENDPOINTS & CONFIG
# =============================================================================

@dataclass(frozen=True)
class CacheEndpoint:
    """One candidate cache location."""
    name: str  # "override" | "primary" | "loopback"
    host: Optional[str] = None
    port: int = DEFAULT_PORT
    url: Optional[str] = None

    def describe(self) -> str:
        if self.url:
            return f"{self.name}({self.url})"
        return f"{self.name}({self.host}:{self.port})"


@dataclass
class CacheConfig:
    """Configuration for cache access."""
    backend_type: str = "redis"  # "redis" or "memory"
    override_url: Optional[str] = None
    primary_host: str = "redis"
    loopback_host: str = "127.0.0.1"
    port: int = DEFAULT_PORT
    db: int = 0
    socket_timeout_seconds: float = 2.0

    @staticmethod
    def from_env(environ: Optional[Mapping[str, str]] = None) -> CacheConfig:
        env = os.environ if environ is None else environ
        config = CacheConfig()
        config.backend_type = env.get("VISS_CACHE_BACKEND") or config.backend_type
        config.override_url = env.get("VISS_REDIS_URL") or None
        config.primary_host = env.get("VISS_REDIS_HOST") or config.primary_host
        port = env.get("VISS_REDIS_PORT")
        if port:
            config.port = int(port)
        return config

    def endpoints(self) -> List[CacheEndpoint]:
        """Candidates in fallback order."""
        candidates = []
        if self.override_url:
            candidates.append(CacheEndpoint(name="override", url=self.override_url))
        candidates.append(CacheEndpoint(name="primary", host=self.primary_host, port=self.port))
        candidates.append(CacheEndpoint(name="loopback", host=self.loopback_host, port=self.port))
        return candidates


# =============================================================================
# CONNECTOR
# =============================================================================

StoreFactory = Callable[[CacheEndpoint, CacheConfig], CacheStore]


@dataclass(frozen=True)
class CacheConnection:
    """A store that answered PING, and where it lives."""
    endpoint: CacheEndpoint
    store: CacheStore
    attempted: tuple = field(default_factory=tuple)


class CacheConnector:
    """
    Walks the endpoint list with a single try_connect capability.

    No hidden control flow: each candidate is built, pinged, and either
    returned or skipped.
    """

    def __init__(
        self,
        config: Optional[CacheConfig] = None,
        store_factory: Optional[StoreFactory] = None
    ):
        self._config = config or CacheConfig()

        if store_factory is None and self._config.backend_type == "memory":
            # Process-local store, served as the primary endpoint
            store_factory = fixed_store_factory({"primary": InMemoryCacheStore()})

        self._store_factory = store_factory or RedisCacheStore.for_endpoint

    @property
    def config(self) -> CacheConfig:
        return self._config

    def try_connect(self, endpoint: CacheEndpoint) -> Optional[CacheStore]:
        try:
            store = self._store_factory(endpoint, self._config)
        except CacheStoreError:
            return None
        return store if store.ping() else None

    def connect(self) -> Result:
        """Result.success(CacheConnection) or CACHE_UNREACHABLE."""
        attempted = []
        for endpoint in self._config.endpoints():
            attempted.append(endpoint.describe())
            store = self.try_connect(endpoint)
            if store is not None:
                return Result.success(CacheConnection(
                    endpoint=endpoint,
                    store=store,
                    attempted=tuple(attempted)
                ))

        return Result.failure(Error.create(
            ErrorCode.CACHE_UNREACHABLE,
            "No cache endpoint answered PING",
            attempted=", ".join(attempted)
        ))


def fixed_store_factory(stores: Mapping[str, CacheStore]) -> StoreFactory:
    """
    Factory resolving endpoints by name from a prepared mapping.

    Endpoints missing from the mapping fail to connect.
    """
    def factory(endpoint: CacheEndpoint, config: CacheConfig) -> CacheStore:
        store = stores.get(endpoint.name)
        if store is None:
            raise CacheStoreError(f"no store registered for {endpoint.name}")
        return store
    return factory
