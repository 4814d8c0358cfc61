"""Discord OAuth2 and role-connection client"""

import logging

import httpx

from modlink.core.exceptions import ProviderError, ProviderUnavailable
from modlink.shared.models import DiscordIdentity, RoleMetadata

from .oauth import OAuthClient

logger = logging.getLogger(__name__)

DISCORD_API_URL = "https://discord.com/api/v10"

# BOOLEAN_EQUAL: the user's value must equal the role's configured value
_BOOLEAN_EQUAL = 7

METADATA_SCHEMA = [
    {
        "key": "member",
        "name": "Member",
        "description": "Has a linked Nexus Mods account",
        "type": _BOOLEAN_EQUAL,
    },
    {
        "key": "modauthor",
        "name": "Mod Author",
        "description": "Is a recognised mod author",
        "type": _BOOLEAN_EQUAL,
    },
    {
        "key": "premium",
        "name": "Premium",
        "description": "Has Premium membership",
        "type": _BOOLEAN_EQUAL,
    },
    {
        "key": "supporter",
        "name": "Supporter",
        "description": "Has Supporter membership",
        "type": _BOOLEAN_EQUAL,
    },
]


class DiscordOAuthClient(OAuthClient):
    """Provider A: the chat platform side of the link."""

    name = "Discord"
    AUTHORIZE_URL = "https://discord.com/oauth2/authorize"
    TOKEN_URL = f"{DISCORD_API_URL}/oauth2/token"
    SCOPES = ("role_connections.write", "identify")

    PLATFORM_NAME = "Nexus Mods"

    @property
    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def _authorize_params(self) -> dict[str, str]:
        return {"prompt": "consent"}

    def _token_request_kwargs(self, data: dict[str, str]) -> dict:
        # Discord wants HTTP basic auth on the token endpoint
        return {"data": data, "auth": (self.client_id, self.client_secret)}

    @property
    def _role_connection_url(self) -> str:
        return f"{DISCORD_API_URL}/users/@me/applications/{self.client_id}/role-connection"

    async def get_profile(self, access_token: str) -> DiscordIdentity:
        """Fetch the Discord user behind *access_token*."""
        data = await self._get_json(f"{DISCORD_API_URL}/oauth2/@me", access_token)
        user = data.get("user") or {}
        if not user.get("id"):
            raise ProviderError("Discord did not return a user for this token")
        return DiscordIdentity(
            id=str(user["id"]),
            username=user.get("username", ""),
            global_name=user.get("global_name"),
            discriminator=str(user.get("discriminator") or "0"),
            avatar=user.get("avatar"),
        )

    async def push_metadata(
        self, access_token: str, platform_username: str, metadata: RoleMetadata
    ) -> None:
        """Upsert the role-connection record for the token's user.

        PUT replaces the whole record, so pushing the same payload twice
        leaves Discord unchanged.
        """
        body = {
            "platform_name": self.PLATFORM_NAME,
            "platform_username": platform_username,
            "metadata": metadata.to_payload(),
        }
        try:
            response = await self._http.put(
                self._role_connection_url,
                json=body,
                headers={"Authorization": f"Bearer {access_token}"},
            )
        except httpx.HTTPError as e:
            raise ProviderUnavailable("Could not reach Discord") from e

        if response.status_code >= 500:
            raise ProviderUnavailable(f"Discord is unavailable ({response.status_code})")
        if response.status_code not in (200, 204):
            logger.error(f"Role metadata push failed: {response.status_code} {response.text}")
            raise ProviderError(f"Discord rejected role metadata ({response.status_code})")

    async def get_metadata(self, access_token: str) -> dict:
        """Role-connection record Discord currently holds for the user."""
        return await self._get_json(self._role_connection_url, access_token)

    async def register_metadata_schema(self, bot_token: str) -> None:
        """Declare the metadata keys linked roles can match on (admin, once)."""
        try:
            response = await self._http.put(
                f"{DISCORD_API_URL}/applications/{self.client_id}/role-connections/metadata",
                json=METADATA_SCHEMA,
                headers={"Authorization": f"Bot {bot_token}"},
            )
        except httpx.HTTPError as e:
            raise ProviderUnavailable("Could not reach Discord") from e

        if response.status_code != 200:
            logger.error(
                f"Registering role metadata failed: {response.status_code} {response.text}"
            )
            raise ProviderError("Discord rejected the role metadata schema")
        logger.info("Role connection metadata schema registered")

