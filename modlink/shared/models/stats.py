"""Data models for per-mod download counters."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class ModDownloadInfo:
    """Download counters for one mod, from the live stats CSV."""

    id: int
    unique_downloads: int = 0
    total_downloads: int = 0
