"""On-demand account refresh.

Diffs the stored account and its mod subscriptions against Nexus Mods,
writes only what changed, and re-pushes role metadata when membership or
mods changed. The identity pass and each subscription are isolated: a
failure is noted in the summary and the rest of the work carries on.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import StrEnum

from modlink.core.clock import Clock, utcnow
from modlink.core.exceptions import ModLinkError
from modlink.shared.models import (
    LinkedAccount,
    ModSubscription,
    NexusProfile,
    Provider,
    RoleMetadata,
)
from modlink.shared.repositories import AccountStore

from .metadata import MetadataSynchronizer
from .nexus_api import NexusAPIClient
from .nexus_oauth import NexusOAuthClient
from .tokens import TokenManager

logger = logging.getLogger(__name__)

ROLE_FIELDS = frozenset({"supporter", "premium", "modauthor"})


class RefreshStatus(StrEnum):
    COMPLETED = "completed"
    COOLDOWN = "cooldown"
    NOT_LINKED = "not_linked"


@dataclass
class RefreshSummary:
    """What a refresh did, for presentation to the user."""

    discord_id: str
    status: RefreshStatus = RefreshStatus.COMPLETED
    fields_updated: list[str] = field(default_factory=list)
    roles_changed: bool = False
    subscriptions_updated: list[ModSubscription] = field(default_factory=list)
    subscriptions_removed: list[ModSubscription] = field(default_factory=list)
    subscription_count: int = 0
    unique_download_total: int = 0
    failures: list[str] = field(default_factory=list)
    metadata_pushed: bool = False
    next_refresh_at: datetime | None = None

    @property
    def subscriptions_changed(self) -> bool:
        return bool(self.subscriptions_updated or self.subscriptions_removed)


def _describe(exc: Exception) -> str:
    if isinstance(exc, ModLinkError):
        return exc.detail
    return f"{type(exc).__name__}: {exc}"


class ReconciliationEngine:
    """Refreshes one linked account against Nexus Mods."""

    def __init__(
        self,
        store: AccountStore,
        tokens: TokenManager,
        nexus: NexusOAuthClient,
        nexus_api: NexusAPIClient,
        metadata: MetadataSynchronizer,
        *,
        cooldown: timedelta = timedelta(seconds=60),
        clock: Clock = utcnow,
    ):
        self.store = store
        self.tokens = tokens
        self.nexus = nexus
        self.nexus_api = nexus_api
        self.metadata = metadata
        self.cooldown = cooldown
        self.clock = clock

    async def refresh_account(self, discord_id: str) -> RefreshSummary:
        summary = RefreshSummary(discord_id=discord_id)

        account = await self.store.get_by_discord_id(discord_id)
        if account is None:
            summary.status = RefreshStatus.NOT_LINKED
            return summary

        # Best-effort gate; two requests racing here both do idempotent work
        now = self.clock()
        if account.last_reconciled and now - account.last_reconciled < self.cooldown:
            summary.status = RefreshStatus.COOLDOWN
            summary.next_refresh_at = account.last_reconciled + self.cooldown
            logger.debug(f"Refresh for {discord_id} skipped, cooling down")
            return summary

        await self.store.update(discord_id, {"last_reconciled": now})
        account.last_reconciled = now

        profile: NexusProfile | None = None
        try:
            profile = await self._reconcile_identity(account, summary)
        except Exception as e:
            logger.warning(f"Identity refresh failed for {discord_id}: {_describe(e)}")
            summary.failures.append(f"User info: {_describe(e)}")

        try:
            await self._reconcile_subscriptions(account, summary)
        except Exception as e:
            logger.warning(f"Mod refresh failed for {discord_id}: {_describe(e)}")
            summary.failures.append(f"Mods: {_describe(e)}")

        if summary.roles_changed or summary.subscriptions_changed:
            metadata = (
                RoleMetadata.from_profile(profile) if profile else RoleMetadata.from_account(account)
            )
            try:
                await self.metadata.push(account, metadata)
                summary.metadata_pushed = True
            except Exception as e:
                logger.warning(f"Metadata push failed for {discord_id}: {_describe(e)}")
                summary.failures.append(f"Roles: {_describe(e)}")
        else:
            logger.info(f"No changes for {discord_id}, role metadata left as is")

        return summary

    async def _reconcile_identity(
        self, account: LinkedAccount, summary: RefreshSummary
    ) -> NexusProfile:
        access_token = await self.tokens.get_valid_access_token(account, Provider.NEXUS)
        profile = await self.nexus.get_profile(access_token)

        fresh = {
            "nexus_id": profile.id,
            "name": profile.name,
            "avatar_url": profile.avatar,
            "supporter": profile.is_supporter,
            "premium": profile.is_premium,
            "modauthor": profile.is_modauthor,
        }
        delta = {k: v for k, v in fresh.items() if getattr(account, k) != v}
        if delta:
            await self.store.update(account.discord_id, delta)
            for k, v in delta.items():
                setattr(account, k, v)
            summary.fields_updated = list(delta)
            summary.roles_changed = bool(ROLE_FIELDS & delta.keys())
            logger.info(f"Updated {account.discord_id}: {', '.join(delta)}")
        return profile

    async def _reconcile_subscriptions(
        self, account: LinkedAccount, summary: RefreshSummary
    ) -> None:
        subs = await self.store.get_subscriptions_by_account(account.discord_id)
        summary.subscription_count = len(subs)
        if not subs:
            return

        # One token for the whole pass so the subscriptions don't race to refresh it
        access_token = await self.tokens.get_valid_access_token(account, Provider.NEXUS)
        await asyncio.gather(
            *(self._reconcile_one(access_token, sub, summary) for sub in subs)
        )

        summary.unique_download_total = sum(
            sub.unique_downloads
            for sub in subs
            if not any(sub is removed for removed in summary.subscriptions_removed)
        )

    async def _reconcile_one(
        self, access_token: str, sub: ModSubscription, summary: RefreshSummary
    ) -> None:
        label = f"{sub.domain}/{sub.mod_id}"
        try:
            info = await self.nexus_api.mod_info(access_token, sub.domain, sub.mod_id)
            if info.is_withdrawn:
                await self.store.delete_subscription(sub)
                summary.subscriptions_removed.append(sub)
                logger.info(f"Removed {label} ({info.status}) for {sub.discord_id}")
                return

            downloads = await self.nexus_api.get_downloads(info.game_id, sub.mod_id)
            delta: dict[str, object] = {}
            if info.name and info.name != sub.name:
                delta["name"] = info.name
            # Counters only move up; a lower value is stale upstream data
            if downloads.unique_downloads > sub.unique_downloads:
                delta["unique_downloads"] = downloads.unique_downloads
            if downloads.total_downloads > sub.total_downloads:
                delta["total_downloads"] = downloads.total_downloads

            changed = bool(delta)
            if info.game_id != sub.game_id:
                delta["game_id"] = info.game_id

            if delta:
                await self.store.update_subscription(sub, delta)
                for k, v in delta.items():
                    setattr(sub, k, v)
            if changed:
                summary.subscriptions_updated.append(sub)
        except Exception as e:
            logger.warning(f"Could not refresh {label} for {sub.discord_id}: {_describe(e)}")
            summary.failures.append(f"{label}: {_describe(e)}")
