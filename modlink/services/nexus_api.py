"""Nexus Mods v1 API and live download stats client.

Mod info comes from the v1 REST API (authorized with the user's OAuth
token). Download counters come from the public static stats CSV, one file
per game, cached through :class:`DownloadStatsCache`.
"""

import logging
from dataclasses import dataclass

import httpx

from modlink import __version__
from modlink.core.exceptions import AuthExpired, ProviderError, ProviderUnavailable
from modlink.shared.models import ModDownloadInfo

from .download_stats import DownloadStatsStore, parse_stats_csv

logger = logging.getLogger(__name__)

NEXUS_API_URL = "https://api.nexusmods.com/v1"
NEXUS_STATS_URL = "https://staticstats.nexusmods.com/live_download_counts/mods"

WITHDRAWN_STATUSES = frozenset({"removed", "wastebinned"})


@dataclass
class ModInfo:
    """The parts of a v1 mod record reconciliation cares about."""

    mod_id: int
    name: str
    game_id: int
    domain_name: str
    status: str

    @property
    def is_withdrawn(self) -> bool:
        return self.status in WITHDRAWN_STATUSES


class NexusAPIClient:
    """Client for mod info and download counters."""

    def __init__(self, stats_cache: DownloadStatsStore, *, http: httpx.AsyncClient | None = None):
        self.stats_cache = stats_cache
        self._http = http or httpx.AsyncClient(
            timeout=15.0,
            headers={
                "Application-Name": "Nexus Mods Discord Link",
                "Application-Version": __version__,
            },
        )

    async def close(self) -> None:
        await self._http.aclose()

    async def _get(self, url: str, **kwargs) -> httpx.Response:
        try:
            response = await self._http.get(url, **kwargs)
        except httpx.TimeoutException as e:
            raise ProviderUnavailable("Nexus Mods did not respond in time") from e
        except httpx.HTTPError as e:
            raise ProviderUnavailable("Could not reach Nexus Mods") from e
        if response.status_code >= 500 or response.status_code == 429:
            raise ProviderUnavailable(f"Nexus Mods is unavailable ({response.status_code})")
        return response

    async def mod_info(self, access_token: str, domain: str, mod_id: int) -> ModInfo:
        """Fetch a mod's current name, game and status."""
        response = await self._get(
            f"{NEXUS_API_URL}/games/{domain}/mods/{mod_id}.json",
            headers={"Authorization": f"Bearer {access_token}"},
        )
        if response.status_code == 401:
            raise AuthExpired()
        if response.status_code != 200:
            logger.error(f"Mod info {domain}/{mod_id} failed: {response.status_code}")
            raise ProviderError(f"Could not get mod info for {domain}/{mod_id}")

        data = response.json()
        return ModInfo(
            mod_id=int(data.get("mod_id", mod_id)),
            name=data.get("name") or "",
            game_id=int(data["game_id"]),
            domain_name=data.get("domain_name") or domain,
            status=data.get("status") or "published",
        )

    async def get_downloads(self, game_id: int, mod_id: int) -> ModDownloadInfo:
        """Download counters for a mod, from cache or a fresh CSV fetch."""
        cached = self.stats_cache.get_stats(game_id, mod_id)
        if isinstance(cached, ModDownloadInfo):
            self.stats_cache.sweep()
            return cached

        response = await self._get(f"{NEXUS_STATS_URL}/{game_id}.csv")
        if response.status_code != 200:
            logger.error(f"Download stats for game {game_id} failed: {response.status_code}")
            raise ProviderError(f"Could not retrieve download data for game {game_id}")

        rows = parse_stats_csv(response.text, game_id)
        self.stats_cache.save_stats(game_id, rows)
        self.stats_cache.sweep()
        logger.debug(f"Cached download stats for game {game_id} ({len(rows)} mods)")

        stats = self.stats_cache.get_stats(game_id, mod_id)
        if isinstance(stats, ModDownloadInfo):
            return stats
        return ModDownloadInfo(id=mod_id)
