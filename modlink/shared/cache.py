"""In-process read cache for repository lookups.

Backed by cachetools.TTLCache. Each repository owns its cache instances;
nothing is shared across processes. When the database stops answering,
reads fall back to the last value seen for the key (stale tier) so the
auth site and the bot can keep serving already-linked users.
"""

import asyncio
import functools
import logging
import time
from collections import OrderedDict
from collections.abc import Callable
from typing import Any, TypeVar

from cachetools import TTLCache  # type: ignore[import-untyped]

logger = logging.getLogger(__name__)

# Distinguishes "not cached" from a cached None (account not linked)
MISSING = object()

F = TypeVar("F", bound=Callable[..., Any])


class AsyncTTLCache:
    """TTL cache with a bounded last-known-good tier.

    ``_fresh`` answers normal reads until *ttl* passes. ``_stale`` keeps the
    most recent value per key (LRU, bounded by *maxsize*) and is only read
    by :func:`cached` after the wrapped call has failed.
    """

    def __init__(
        self,
        maxsize: int = 128,
        ttl: float = 60.0,
        timer: Callable[[], float] = time.monotonic,
    ):
        self._maxsize = maxsize
        self._fresh: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl, timer=timer)
        self._stale: OrderedDict[str, Any] = OrderedDict()
        self._locks: dict[str, asyncio.Lock] = {}

    def lock_for(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
            if len(self._locks) > self._maxsize * 2:
                live = set(self._stale)
                for k in [k for k in self._locks if k not in live]:
                    del self._locks[k]
        return lock

    def get(self, key: str) -> Any:
        return self._fresh.get(key, MISSING)

    def set(self, key: str, value: Any) -> None:
        self._fresh[key] = value
        self._stale[key] = value
        self._stale.move_to_end(key)
        while len(self._stale) > self._maxsize:
            self._stale.popitem(last=False)

    def invalidate(self, key: str) -> None:
        """Drop the fresh value and the stale copy (the row changed)."""
        self._fresh.pop(key, None)
        self._stale.pop(key, None)

    def get_stale(self, key: str) -> Any:
        return self._stale.get(key, MISSING)

    def clear(self) -> None:
        self._fresh.clear()
        self._stale.clear()

    def __len__(self) -> int:
        return len(self._fresh)


def cached(
    cache: AsyncTTLCache,
    key_func: Callable[..., str],
    *,
    retry: int = 2,
    retry_delay: float = 0.5,
):
    """Cache the result of an async read, with retry and stale fallback.

    *key_func* receives the same arguments as the decorated coroutine and
    returns the cache key. After *retry* failed attempts the last-known-good
    value is returned if there is one, otherwise the last error propagates.
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            key = key_func(*args, **kwargs)

            result = cache.get(key)
            if result is not MISSING:
                return result

            async with cache.lock_for(key):
                result = cache.get(key)
                if result is not MISSING:
                    return result

                last_exc: BaseException | None = None
                for attempt in range(1, retry + 1):
                    try:
                        result = await func(*args, **kwargs)
                    except asyncio.CancelledError:
                        raise
                    except Exception as exc:
                        last_exc = exc
                        if attempt < retry:
                            logger.warning(
                                "Read attempt %d/%d failed for %s: %s",
                                attempt,
                                retry,
                                key,
                                type(exc).__name__,
                            )
                            await asyncio.sleep(retry_delay * attempt)
                        continue
                    cache.set(key, result)
                    return result

                stale = cache.get_stale(key)
                if stale is not MISSING:
                    logger.warning("Serving stale value for %s (%s)", key, type(last_exc).__name__)
                    return stale

                raise last_exc  # type: ignore[misc]

        wrapper.cache = cache  # type: ignore[attr-defined]
        return wrapper  # type: ignore[return-value]

    return decorator
