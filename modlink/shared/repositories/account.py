"""Repository for the linked_accounts and mod_subscriptions tables."""

from __future__ import annotations

import logging
from typing import Any, Protocol

import asyncpg

from modlink.shared.cache import AsyncTTLCache, cached
from modlink.shared.models.account import LinkedAccount, ModSubscription, Provider, TokenBundle

logger = logging.getLogger(__name__)

_account_cache = AsyncTTLCache(maxsize=256, ttl=60)

_ACCOUNT_COLUMNS = (
    "discord_id, nexus_id, name, avatar_url, supporter, premium, modauthor, "
    "discord_access, discord_refresh, discord_expires, "
    "nexus_access, nexus_refresh, nexus_expires, "
    "last_reconciled, created_at, updated_at"
)

_SUBSCRIPTION_COLUMNS = (
    "discord_id, domain, mod_id, name, game_id, unique_downloads, total_downloads"
)

# Columns callers may change through update()
UPDATABLE_ACCOUNT_FIELDS = frozenset(
    {
        "nexus_id",
        "name",
        "avatar_url",
        "supporter",
        "premium",
        "modauthor",
        "discord_access",
        "discord_refresh",
        "discord_expires",
        "nexus_access",
        "nexus_refresh",
        "nexus_expires",
        "last_reconciled",
    }
)

UPDATABLE_SUBSCRIPTION_FIELDS = frozenset(
    {"name", "game_id", "unique_downloads", "total_downloads"}
)


def token_fields(provider: Provider, bundle: TokenBundle) -> dict[str, Any]:
    """Column values storing *bundle* for *provider*."""
    prefix = provider.value
    return {
        f"{prefix}_access": bundle.access_token,
        f"{prefix}_refresh": bundle.refresh_token,
        f"{prefix}_expires": bundle.expires_at,
    }


def _set_clause(fields: dict[str, Any], allowed: frozenset[str], start: int) -> tuple[str, list]:
    unknown = set(fields) - allowed
    if unknown:
        raise ValueError(f"Cannot update column(s): {', '.join(sorted(unknown))}")
    names = sorted(fields)
    clause = ", ".join(f"{name} = ${i}" for i, name in enumerate(names, start=start))
    return clause, [fields[name] for name in names]


class AccountStore(Protocol):
    """Persistence contract used by the link flow and reconciliation."""

    async def get_by_discord_id(self, discord_id: str) -> LinkedAccount | None: ...

    async def get_by_nexus_id(self, nexus_id: int) -> list[LinkedAccount]: ...

    async def create(self, account: LinkedAccount) -> LinkedAccount: ...

    async def update(self, discord_id: str, fields: dict[str, Any]) -> None: ...

    async def save_tokens(self, discord_id: str, provider: Provider, bundle: TokenBundle) -> None: ...

    async def delete(self, discord_id: str) -> bool: ...

    async def get_subscriptions_by_account(self, discord_id: str) -> list[ModSubscription]: ...

    async def update_subscription(self, sub: ModSubscription, fields: dict[str, Any]) -> None: ...

    async def delete_subscription(self, sub: ModSubscription) -> None: ...


class AccountRepository:
    """Pure SQL operations for linked accounts and their subscriptions."""

    def __init__(self, pool: asyncpg.Pool) -> None:
        self.pool = pool

    # ==================== Account Operations ====================

    @cached(cache=_account_cache, key_func=lambda self, discord_id: f"account:{discord_id}")
    async def get_by_discord_id(self, discord_id: str) -> LinkedAccount | None:
        """Get the account linked to a Discord user."""
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {_ACCOUNT_COLUMNS} FROM linked_accounts WHERE discord_id = $1",  # noqa: S608
                discord_id,
            )
            if not row:
                return None
            return LinkedAccount.from_row(dict(row))

    async def get_by_nexus_id(self, nexus_id: int) -> list[LinkedAccount]:
        """All accounts linked to a Nexus Mods user."""
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                f"SELECT {_ACCOUNT_COLUMNS} FROM linked_accounts WHERE nexus_id = $1",  # noqa: S608
                nexus_id,
            )
            return [LinkedAccount.from_row(dict(r)) for r in rows]

    async def create(self, account: LinkedAccount) -> LinkedAccount:
        """Insert a new account row."""
        fields: dict[str, Any] = {
            "discord_id": account.discord_id,
            "nexus_id": account.nexus_id,
            "name": account.name,
            "avatar_url": account.avatar_url,
            "supporter": account.supporter,
            "premium": account.premium,
            "modauthor": account.modauthor,
            "last_reconciled": account.last_reconciled,
        }
        if account.discord_tokens:
            fields.update(token_fields(Provider.DISCORD, account.discord_tokens))
        if account.nexus_tokens:
            fields.update(token_fields(Provider.NEXUS, account.nexus_tokens))

        names = list(fields)
        placeholders = ", ".join(f"${i}" for i in range(1, len(names) + 1))
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"INSERT INTO linked_accounts ({', '.join(names)}) VALUES ({placeholders}) "  # noqa: S608
                f"RETURNING {_ACCOUNT_COLUMNS}",
                *fields.values(),
            )
        _account_cache.invalidate(f"account:{account.discord_id}")
        logger.info(f"Created link {account.discord_id} -> {account.nexus_id} ({account.name})")
        return LinkedAccount.from_row(dict(row))

    async def update(self, discord_id: str, fields: dict[str, Any]) -> None:
        """Update selected columns of an account, keeping its primary key."""
        if not fields:
            return
        clause, values = _set_clause(fields, UPDATABLE_ACCOUNT_FIELDS, start=2)
        async with self.pool.acquire() as conn:
            await conn.execute(
                f"UPDATE linked_accounts SET {clause}, updated_at = NOW() "  # noqa: S608
                "WHERE discord_id = $1",
                discord_id,
                *values,
            )
        _account_cache.invalidate(f"account:{discord_id}")

    async def save_tokens(self, discord_id: str, provider: Provider, bundle: TokenBundle) -> None:
        """Persist a refreshed token bundle."""
        await self.update(discord_id, token_fields(provider, bundle))

    async def delete(self, discord_id: str) -> bool:
        """Delete an account; subscriptions go with it (ON DELETE CASCADE)."""
        async with self.pool.acquire() as conn:
            result = await conn.execute(
                "DELETE FROM linked_accounts WHERE discord_id = $1",
                discord_id,
            )
        _account_cache.invalidate(f"account:{discord_id}")
        return result != "DELETE 0"

    # ==================== Subscription Operations ====================

    async def get_subscriptions_by_account(self, discord_id: str) -> list[ModSubscription]:
        """All mods tracked for an account."""
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                f"SELECT {_SUBSCRIPTION_COLUMNS} FROM mod_subscriptions "  # noqa: S608
                "WHERE discord_id = $1 ORDER BY domain, mod_id",
                discord_id,
            )
            return [ModSubscription(**dict(r)) for r in rows]

    async def update_subscription(self, sub: ModSubscription, fields: dict[str, Any]) -> None:
        """Update cached name/counters of one subscription."""
        if not fields:
            return
        clause, values = _set_clause(fields, UPDATABLE_SUBSCRIPTION_FIELDS, start=4)
        async with self.pool.acquire() as conn:
            await conn.execute(
                f"UPDATE mod_subscriptions SET {clause}, updated_at = NOW() "  # noqa: S608
                "WHERE discord_id = $1 AND domain = $2 AND mod_id = $3",
                sub.discord_id,
                sub.domain,
                sub.mod_id,
                *values,
            )

    async def delete_subscription(self, sub: ModSubscription) -> None:
        """Remove a subscription (mod withdrawn upstream)."""
        async with self.pool.acquire() as conn:
            await conn.execute(
                "DELETE FROM mod_subscriptions WHERE discord_id = $1 AND domain = $2 AND mod_id = $3",
                sub.discord_id,
                sub.domain,
                sub.mod_id,
            )
