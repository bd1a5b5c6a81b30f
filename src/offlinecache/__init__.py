"""offlinecache -- Offline-resilience caching layer for HTTP clients.

This package sits between a client application and the network. Every
outbound request is classified and answered from a versioned local store,
from the network, or from both concurrently, so that a client can keep
serving its shell page and already-fetched assets while connectivity is
absent or degraded.

Typical usage::

    from offlinecache import EngineConfig, OfflineCacheEngine, create_client

    async with OfflineCacheEngine(EngineConfig(origin="https://example.com")) as engine:
        await engine.start()
        async with create_client(engine) as client:
            response = await client.get("https://example.com/song/")

Modules:
    engine: Wiring of lifecycle, routing and strategies behind one dispatch point.
    lifecycle: Install / activate transitions for cache versions.
    routing: Exclusion filter and request classifier.
    strategies: Network-first, cache-first and stale-while-revalidate.
    store: Named asynchronous key-value stores for response snapshots.
    transport: ``httpx`` transport that routes a client through the engine.
    models: Pydantic configuration models and enumerations.
    config: XDG-aware configuration loading and precedence resolution.
    exceptions: Exception hierarchy with exit-code mapping.
    output: stdout/stderr diagnostics with Rich support.
"""

__version__ = "0.1.0"

from offlinecache.engine import OfflineCacheEngine  # noqa: E402
from offlinecache.models import CacheVersion, EngineConfig, LifecycleState, Strategy  # noqa: E402
from offlinecache.transport import OfflineCacheTransport, create_client  # noqa: E402

__all__ = [
    "CacheVersion",
    "EngineConfig",
    "LifecycleState",
    "OfflineCacheEngine",
    "OfflineCacheTransport",
    "Strategy",
    "create_client",
]
