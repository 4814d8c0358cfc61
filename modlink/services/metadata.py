"""Pushes Nexus Mods membership to Discord as role-connection metadata."""

import logging

from modlink.core.exceptions import ProviderError
from modlink.shared.models import LinkedAccount, Provider, RoleMetadata

from .discord_oauth import DiscordOAuthClient
from .nexus_oauth import NexusOAuthClient
from .tokens import TokenManager

logger = logging.getLogger(__name__)


class MetadataSynchronizer:
    """Upserts role metadata using a Discord token that is valid right now."""

    def __init__(
        self,
        discord: DiscordOAuthClient,
        nexus: NexusOAuthClient,
        tokens: TokenManager,
    ):
        self.discord = discord
        self.nexus = nexus
        self.tokens = tokens

    async def push(self, account: LinkedAccount, metadata: RoleMetadata) -> None:
        """Write *metadata* for the account's Discord user.

        The endpoint replaces the record, so repeating a push is harmless.
        """
        access_token = await self.tokens.get_valid_access_token(account, Provider.DISCORD)
        await self.discord.push_metadata(access_token, account.name, metadata)
        logger.info(f"Pushed role metadata for {account.discord_id}: {metadata.to_payload()}")

    async def current_metadata(self, account: LinkedAccount) -> RoleMetadata:
        """Derive metadata from fresh Nexus roles, or stored flags if that fails."""
        try:
            access_token = await self.tokens.get_valid_access_token(account, Provider.NEXUS)
            profile = await self.nexus.get_profile(access_token)
        except ProviderError as e:
            logger.warning(
                f"Using stored membership for {account.discord_id}: {type(e).__name__}: {e.detail}"
            )
            return RoleMetadata.from_account(account)
        return RoleMetadata.from_profile(profile)

    async def sync_account(self, account: LinkedAccount) -> RoleMetadata:
        metadata = await self.current_metadata(account)
        await self.push(account, metadata)
        return metadata

    async def read(self, account: LinkedAccount) -> dict:
        """The record Discord currently holds for this user."""
        access_token = await self.tokens.get_valid_access_token(account, Provider.DISCORD)
        return await self.discord.get_metadata(access_token)

    async def clear(self, account: LinkedAccount) -> bool:
        """Zero the metadata after an unlink. Best effort."""
        try:
            await self.push(account, RoleMetadata())
        except ProviderError as e:
            logger.warning(f"Could not clear role metadata for {account.discord_id}: {e.detail}")
            return False
        return True
