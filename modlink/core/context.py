"""Process-wide service graph shared by the HTTP app and the bot"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta

import httpx

from modlink.core.clock import Clock, utcnow
from modlink.core.config import Settings
from modlink.shared.database import DatabaseManager
from modlink.shared.models import Provider
from modlink.shared.repositories import AccountStore
from modlink.services import (
    CookieSigner,
    DiscordOAuthClient,
    DownloadStatsCache,
    InMemoryPendingLinkStore,
    LinkOrchestrator,
    MetadataSynchronizer,
    NexusAPIClient,
    NexusOAuthClient,
    PendingLinkStore,
    ReconciliationEngine,
    TokenManager,
)

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    """Everything a request or a bot interaction needs, built once."""

    settings: Settings
    store: AccountStore
    discord: DiscordOAuthClient
    nexus: NexusOAuthClient
    nexus_api: NexusAPIClient
    tokens: TokenManager
    pending: PendingLinkStore
    stats_cache: DownloadStatsCache
    cookies: CookieSigner
    orchestrator: LinkOrchestrator
    metadata: MetadataSynchronizer
    reconciler: ReconciliationEngine
    database: DatabaseManager | None = None

    @classmethod
    def build(
        cls,
        settings: Settings,
        store: AccountStore,
        *,
        database: DatabaseManager | None = None,
        http: httpx.AsyncClient | None = None,
        clock: Clock = utcnow,
    ) -> AppContext:
        """Wire the services together. *http* replaces every upstream client."""
        discord = DiscordOAuthClient(
            settings.discord_client_id,
            settings.discord_client_secret,
            settings.discord_redirect_uri,
            http=http,
            clock=clock,
        )
        nexus = NexusOAuthClient(
            settings.nexus_client_id,
            settings.nexus_client_secret,
            settings.nexus_redirect_uri,
            http=http,
            clock=clock,
        )
        stats_cache = DownloadStatsCache(
            ttl=timedelta(seconds=settings.download_stats_ttl_seconds), clock=clock
        )
        nexus_api = NexusAPIClient(stats_cache, http=http)
        tokens = TokenManager(
            store,
            {Provider.DISCORD: discord, Provider.NEXUS: nexus},
            skew=timedelta(seconds=settings.token_expiry_skew_seconds),
            clock=clock,
        )
        pending = InMemoryPendingLinkStore(ttl=settings.pending_link_ttl_seconds)
        metadata = MetadataSynchronizer(discord, nexus, tokens)

        return cls(
            settings=settings,
            store=store,
            discord=discord,
            nexus=nexus,
            nexus_api=nexus_api,
            tokens=tokens,
            pending=pending,
            stats_cache=stats_cache,
            cookies=CookieSigner(settings.cookie_secret, clock=clock),
            orchestrator=LinkOrchestrator(store, pending, discord, nexus, metadata, clock=clock),
            metadata=metadata,
            reconciler=ReconciliationEngine(
                store,
                tokens,
                nexus,
                nexus_api,
                metadata,
                cooldown=timedelta(seconds=settings.refresh_cooldown_seconds),
                clock=clock,
            ),
            database=database,
        )

    def sweep(self) -> None:
        """Drop expired pending links and download stats."""
        self.pending.sweep()
        removed = self.stats_cache.sweep()
        if removed:
            logger.debug(f"Swept {removed} expired download stats entries")

    async def close(self) -> None:
        """Close HTTP clients and the database pool. Call on shutdown."""
        for client in (self.discord, self.nexus, self.nexus_api):
            try:
                await client.close()
            except Exception as e:
                logger.warning(f"Error closing {type(client).__name__}: {e}")
        if self.database is not None:
            await self.database.disconnect()
