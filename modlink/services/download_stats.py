"""Download-stats cache.

Per-game download counters come from a CSV that is expensive to fetch and
only changes slowly, so each game's rows are kept for a fixed window
(5 minutes by default) and replaced wholesale on the next fetch.
"""

from __future__ import annotations

import csv
import io
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Final, Literal, Protocol

from modlink.core.clock import Clock, utcnow
from modlink.shared.models import ModDownloadInfo

logger = logging.getLogger(__name__)

# Pass as mod_id to get every row of a game
ALL_MODS: Final = "all"

# mod_id, total_downloads, unique_downloads, page_views
CSV_FIELD_COUNT = 4

ModSelector = int | Literal["all"]


def parse_stats_csv(text: str, game_id: int | None = None) -> list[ModDownloadInfo]:
    """Parse the live download-count CSV.

    Rows with the wrong field count or non-numeric values are logged and
    skipped; the rest of the file is still used.
    """
    rows: list[ModDownloadInfo] = []
    for values in csv.reader(io.StringIO(text)):
        if not values or values == [""]:
            continue
        if len(values) != CSV_FIELD_COUNT:
            logger.warning(f"Invalid stats CSV row for game {game_id}: {','.join(values)}")
            continue
        try:
            mod_id, total, unique = (int(v) for v in values[:3])
        except ValueError:
            logger.warning(f"Non-numeric stats CSV row for game {game_id}: {','.join(values)}")
            continue
        rows.append(ModDownloadInfo(id=mod_id, unique_downloads=unique, total_downloads=total))
    return rows


@dataclass
class DownloadStatsEntry:
    rows: list[ModDownloadInfo]
    expires_at: datetime


class DownloadStatsStore(Protocol):
    def get_stats(
        self, game_id: int, mod_id: ModSelector
    ) -> list[ModDownloadInfo] | ModDownloadInfo | None: ...

    def save_stats(self, game_id: int, rows: list[ModDownloadInfo]) -> None: ...

    def sweep(self) -> int: ...


class DownloadStatsCache:
    """In-memory download counters keyed by game id."""

    def __init__(self, ttl: timedelta = timedelta(minutes=5), clock: Clock = utcnow):
        self.ttl = ttl
        self.clock = clock
        self._entries: dict[int, DownloadStatsEntry] = {}

    def get_stats(
        self, game_id: int, mod_id: ModSelector
    ) -> list[ModDownloadInfo] | ModDownloadInfo | None:
        """Cached counters for one mod, or all rows with ``ALL_MODS``.

        ``None`` means nothing usable is cached for the game. A game that is
        cached but has no row for *mod_id* yields zeroed counters instead.
        """
        entry = self._entries.get(game_id)
        if entry is None:
            return None
        if entry.expires_at < self.clock():
            del self._entries[game_id]
            logger.debug(f"Cleared expired download stats for game {game_id}")
            return None

        if mod_id == ALL_MODS:
            return entry.rows
        for row in entry.rows:
            if row.id == mod_id:
                return row
        return ModDownloadInfo(id=int(mod_id), unique_downloads=0, total_downloads=0)

    def save_stats(self, game_id: int, rows: list[ModDownloadInfo]) -> None:
        """Replace the game's rows and restart its window."""
        self._entries[game_id] = DownloadStatsEntry(list(rows), self.clock() + self.ttl)

    def sweep(self) -> int:
        """Drop every expired game. Returns how many were removed."""
        now = self.clock()
        expired = [gid for gid, entry in self._entries.items() if entry.expires_at < now]
        for gid in expired:
            del self._entries[gid]
        if expired:
            logger.debug(f"Removed expired download stats for {len(expired)} game(s)")
        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)
