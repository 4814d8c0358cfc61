"""Data models for linked accounts, OAuth tokens and mod subscriptions."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import StrEnum


class Provider(StrEnum):
    """OAuth providers taking part in a link."""

    DISCORD = "discord"
    NEXUS = "nexus"


@dataclass
class TokenBundle:
    """Access/refresh token pair with an absolute expiry."""

    access_token: str
    refresh_token: str
    expires_at: datetime

    def is_fresh(self, now: datetime, skew: timedelta) -> bool:
        return now < self.expires_at - skew

    @classmethod
    def from_response(cls, data: dict, now: datetime, previous_refresh: str = "") -> TokenBundle:
        """Build a bundle from an OAuth token endpoint response."""
        return cls(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token") or previous_refresh,
            expires_at=now + timedelta(seconds=int(data.get("expires_in", 0))),
        )


@dataclass
class LinkedAccount:
    """A Discord user linked to a Nexus Mods account."""

    discord_id: str
    nexus_id: int
    name: str
    avatar_url: str | None = None
    supporter: bool = False
    premium: bool = False
    modauthor: bool = False
    discord_tokens: TokenBundle | None = None
    nexus_tokens: TokenBundle | None = None
    last_reconciled: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def tokens_for(self, provider: Provider) -> TokenBundle | None:
        if provider is Provider.DISCORD:
            return self.discord_tokens
        return self.nexus_tokens

    @classmethod
    def from_row(cls, row: dict) -> LinkedAccount:
        """Map a ``linked_accounts`` row onto the model."""

        def bundle(prefix: str) -> TokenBundle | None:
            access = row.get(f"{prefix}_access")
            refresh = row.get(f"{prefix}_refresh")
            expires = row.get(f"{prefix}_expires")
            if not access or not refresh or not expires:
                return None
            return TokenBundle(access, refresh, expires)

        return cls(
            discord_id=row["discord_id"],
            nexus_id=row["nexus_id"],
            name=row["name"],
            avatar_url=row.get("avatar_url"),
            supporter=row.get("supporter", False),
            premium=row.get("premium", False),
            modauthor=row.get("modauthor", False),
            discord_tokens=bundle("discord"),
            nexus_tokens=bundle("nexus"),
            last_reconciled=row.get("last_reconciled"),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )


@dataclass
class ModSubscription:
    """A mod tracked for an account, with cached download counters."""

    discord_id: str
    domain: str
    mod_id: int
    name: str = ""
    game_id: int | None = None
    unique_downloads: int = 0
    total_downloads: int = 0
