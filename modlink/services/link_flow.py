"""Two-party OAuth link flow: Discord first, then Nexus Mods.

One correlation token drives each attempt through these states::

    INIT -> AWAIT_DISCORD -> AWAIT_NEXUS -> LINKED
                  |               |
                  +---> FAILED <--+

The token travels as the OAuth ``state`` parameter of both consent
requests and in a signed cookie on the user's browser; the two must match
on every callback. Between the legs, the Discord half is parked in the
pending-link store under the same token.
"""

import dataclasses
import hmac
import logging
import secrets
from enum import StrEnum

from modlink.core.clock import Clock, utcnow
from modlink.core.exceptions import MissingPendingLink, ProviderError, StateMismatch
from modlink.shared.models import (
    LinkedAccount,
    LinkSuccess,
    NexusProfile,
    PendingLink,
    Provider,
    RoleMetadata,
    StartedFlow,
    TokenBundle,
)
from modlink.shared.repositories import AccountStore
from modlink.shared.repositories.account import token_fields

from .discord_oauth import DiscordOAuthClient
from .metadata import MetadataSynchronizer
from .nexus_oauth import NexusOAuthClient
from .pending_links import PendingLinkStore

logger = logging.getLogger(__name__)


class LinkState(StrEnum):
    INIT = "init"
    AWAIT_DISCORD = "await_discord"
    AWAIT_NEXUS = "await_nexus"
    LINKED = "linked"
    FAILED = "failed"


def new_correlation_token() -> str:
    return secrets.token_urlsafe(32)


def _log_transition(token: str, state: LinkState, reason: str = "") -> None:
    suffix = f" ({reason})" if reason else ""
    logger.info(f"Link {token[:8]}… -> {state.value}{suffix}")


def _verify_state(returned_state: str | None, cookie_state: str | None) -> str:
    if (
        not returned_state
        or not cookie_state
        or not hmac.compare_digest(returned_state.encode(), cookie_state.encode())
    ):
        logger.warning("OAuth state verification failed")
        raise StateMismatch()
    return cookie_state


class LinkOrchestrator:
    """Drives the consent flow and materializes the linked account."""

    def __init__(
        self,
        store: AccountStore,
        pending: PendingLinkStore,
        discord: DiscordOAuthClient,
        nexus: NexusOAuthClient,
        metadata: MetadataSynchronizer,
        *,
        clock: Clock = utcnow,
    ):
        self.store = store
        self.pending = pending
        self.discord = discord
        self.nexus = nexus
        self.metadata = metadata
        self.clock = clock

    def start_flow(self) -> StartedFlow:
        """New correlation token and the Discord consent URL carrying it."""
        state = new_correlation_token()
        _log_transition(state, LinkState.AWAIT_DISCORD)
        return StartedFlow(state=state, authorize_url=self.discord.get_authorize_url(state))

    async def handle_discord_callback(
        self, code: str, returned_state: str | None, cookie_state: str | None
    ) -> str:
        """Finish leg one; returns the Nexus Mods consent URL for leg two."""
        try:
            state = _verify_state(returned_state, cookie_state)
        except StateMismatch:
            _log_transition(cookie_state or "-", LinkState.FAILED, "state mismatch")
            raise

        tokens = await self.discord.exchange_code(code)
        identity = await self.discord.get_profile(tokens.access_token)
        self.pending.put(
            state,
            PendingLink(
                correlation_token=state,
                discord=identity,
                tokens=tokens,
                created_at=self.clock(),
            ),
        )
        _log_transition(state, LinkState.AWAIT_NEXUS, identity.display_name)
        return self.nexus.get_authorize_url(state)

    async def handle_nexus_callback(
        self, code: str, returned_state: str | None, cookie_state: str | None
    ) -> LinkSuccess:
        """Finish leg two: pair the accounts, store them, push metadata."""
        try:
            state = _verify_state(returned_state, cookie_state)
        except StateMismatch:
            _log_transition(cookie_state or "-", LinkState.FAILED, "state mismatch")
            raise

        # Removed before the first await: a replayed callback finds nothing
        pending = self.pending.consume(state)
        if pending is None:
            _log_transition(state, LinkState.FAILED, "no pending link")
            raise MissingPendingLink()

        tokens = await self.nexus.exchange_code(code)
        profile = await self.nexus.get_profile(tokens.access_token)

        account, created = await self._upsert_account(pending, profile, tokens)

        metadata_pushed = True
        try:
            await self.metadata.push(account, RoleMetadata.from_profile(profile))
        except ProviderError as e:
            metadata_pushed = False
            logger.warning(f"Linked {account.discord_id} but metadata push failed: {e.detail}")

        _log_transition(state, LinkState.LINKED, f"{pending.discord.display_name} <-> {profile.name}")
        return LinkSuccess(
            discord_name=pending.discord.display_name,
            discord_id=pending.discord.id,
            nexus_name=profile.name,
            nexus_id=profile.id,
            created=created,
            metadata_pushed=metadata_pushed,
        )

    async def _upsert_account(
        self, pending: PendingLink, profile: NexusProfile, nexus_tokens: TokenBundle
    ) -> tuple[LinkedAccount, bool]:
        discord_id = pending.discord.id

        # Nexus ids are not unique across links; flag it and carry on
        others = [
            a.discord_id
            for a in await self.store.get_by_nexus_id(profile.id)
            if a.discord_id != discord_id
        ]
        if others:
            logger.warning(
                f"Nexus Mods user {profile.id} is already linked to Discord user(s) "
                f"{', '.join(others)}; also linking {discord_id}"
            )

        profile_fields = {
            "nexus_id": profile.id,
            "name": profile.name,
            "avatar_url": profile.avatar,
            "supporter": profile.is_supporter,
            "premium": profile.is_premium,
            "modauthor": profile.is_modauthor,
        }

        existing = await self.store.get_by_discord_id(discord_id)
        if existing is None:
            account = await self.store.create(
                LinkedAccount(
                    discord_id=discord_id,
                    discord_tokens=pending.tokens,
                    nexus_tokens=nexus_tokens,
                    **profile_fields,
                )
            )
            return account, True

        await self.store.update(
            discord_id,
            {
                **profile_fields,
                **token_fields(Provider.DISCORD, pending.tokens),
                **token_fields(Provider.NEXUS, nexus_tokens),
            },
        )
        account = dataclasses.replace(
            existing,
            discord_tokens=pending.tokens,
            nexus_tokens=nexus_tokens,
            **profile_fields,
        )
        logger.info(f"Updated link {discord_id} -> {profile.id} ({profile.name})")
        return account, False
