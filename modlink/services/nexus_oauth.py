"""Nexus Mods OAuth2 client"""

import logging

from modlink.core.exceptions import ProviderError
from modlink.shared.models import NexusProfile

from .oauth import OAuthClient

logger = logging.getLogger(__name__)

NEXUS_USERS_URL = "https://users.nexusmods.com"


class NexusOAuthClient(OAuthClient):
    """Provider B: the content platform side of the link."""

    name = "Nexus Mods"
    AUTHORIZE_URL = f"{NEXUS_USERS_URL}/oauth/authorize"
    TOKEN_URL = f"{NEXUS_USERS_URL}/oauth/token"
    SCOPES = ("openid", "email", "profile")

    async def get_profile(self, access_token: str) -> NexusProfile:
        """Identity and membership roles for the token's user."""
        data = await self._get_json(f"{NEXUS_USERS_URL}/oauth/userinfo", access_token)
        try:
            user_id = int(data["sub"])
        except (KeyError, TypeError, ValueError) as e:
            raise ProviderError("Nexus Mods returned a profile without a user id") from e

        return NexusProfile(
            id=user_id,
            name=data.get("name") or "",
            avatar=data.get("avatar"),
            membership_roles=tuple(data.get("membership_roles") or ()),
        )
