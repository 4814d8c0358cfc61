"""Pending-link store: Discord halves of links awaiting the Nexus callback.

Operations are synchronous on purpose. ``consume`` removes the entry before
the caller can await anything, so two concurrent callbacks carrying the same
correlation token cannot both get it.
"""

import logging
import time
from collections.abc import Callable
from typing import Protocol

from cachetools import TTLCache  # type: ignore[import-untyped]

from modlink.core.exceptions import DuplicateToken, PendingLinksFull
from modlink.shared.models import PendingLink

logger = logging.getLogger(__name__)


class PendingLinkStore(Protocol):
    def put(self, correlation_token: str, link: PendingLink) -> None: ...

    def consume(self, correlation_token: str) -> PendingLink | None: ...

    def sweep(self) -> None: ...


class InMemoryPendingLinkStore:
    """TTL-bound map of correlation token -> pending link.

    Entries past *ttl* seconds read as absent whether or not they were swept.
    A live entry only leaves through ``consume`` or expiry: when all *maxsize*
    slots are live, ``put`` raises PendingLinksFull instead of evicting.
    """

    def __init__(
        self,
        ttl: float = 300.0,
        maxsize: int = 4096,
        timer: Callable[[], float] = time.monotonic,
    ):
        self.maxsize = maxsize
        self._entries: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl, timer=timer)

    def put(self, correlation_token: str, link: PendingLink) -> None:
        if correlation_token in self._entries:
            raise DuplicateToken()
        if len(self._entries) >= self.maxsize:
            self._entries.expire()
            if len(self._entries) >= self.maxsize:
                logger.error(f"Pending-link store full ({self.maxsize} live entries)")
                raise PendingLinksFull()
        self._entries[correlation_token] = link

    def consume(self, correlation_token: str) -> PendingLink | None:
        """Return and remove the entry in one step."""
        link = self._entries.pop(correlation_token, None)
        if link is None:
            logger.debug("No live pending link for correlation token")
        return link

    def sweep(self) -> None:
        self._entries.expire()

    def __len__(self) -> int:
        return len(self._entries)
