"""Services layer - OAuth clients, link flow, token lifecycle and reconciliation

Services are built once per process in :class:`modlink.core.context.AppContext`
and shared by the HTTP routes and the bot.
"""

from .cookies import ERROR_COOKIE, STATE_COOKIE, CookieSigner
from .discord_oauth import DiscordOAuthClient
from .download_stats import ALL_MODS, DownloadStatsCache, DownloadStatsStore
from .link_flow import LinkOrchestrator, LinkState
from .metadata import MetadataSynchronizer
from .nexus_api import ModInfo, NexusAPIClient
from .nexus_oauth import NexusOAuthClient
from .pending_links import InMemoryPendingLinkStore, PendingLinkStore
from .reconcile import ReconciliationEngine, RefreshStatus, RefreshSummary
from .tokens import TokenManager

__all__ = [
    "ALL_MODS",
    "ERROR_COOKIE",
    "STATE_COOKIE",
    "CookieSigner",
    "DiscordOAuthClient",
    "DownloadStatsCache",
    "DownloadStatsStore",
    "InMemoryPendingLinkStore",
    "LinkOrchestrator",
    "LinkState",
    "MetadataSynchronizer",
    "ModInfo",
    "NexusAPIClient",
    "NexusOAuthClient",
    "PendingLinkStore",
    "ReconciliationEngine",
    "RefreshStatus",
    "RefreshSummary",
    "TokenManager",
]
