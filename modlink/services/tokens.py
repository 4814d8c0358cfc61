"""Token lifecycle: hand out access tokens that are valid right now.

No retries and no de-duplication here. Two callers refreshing the same
bundle at once may both succeed; the later response wins.
"""

import logging
from collections.abc import Mapping
from datetime import timedelta
from typing import Protocol

from modlink.core.clock import Clock, utcnow
from modlink.core.exceptions import AuthExpired
from modlink.shared.models import LinkedAccount, Provider, TokenBundle
from modlink.shared.repositories import AccountStore

logger = logging.getLogger(__name__)


class TokenRefresher(Protocol):
    async def refresh(self, bundle: TokenBundle) -> TokenBundle: ...


class TokenManager:
    """Refresh-on-demand for the tokens stored on a linked account."""

    def __init__(
        self,
        store: AccountStore,
        providers: Mapping[Provider, TokenRefresher],
        *,
        skew: timedelta = timedelta(seconds=60),
        clock: Clock = utcnow,
    ):
        self.store = store
        self.providers = providers
        self.skew = skew
        self.clock = clock

    async def get_valid_access_token(self, account: LinkedAccount, provider: Provider) -> str:
        """Return a usable access token for *provider*, refreshing if needed.

        A refreshed bundle is written back onto the account in place and
        persisted. Raises AuthExpired when there is no bundle or the provider
        rejects the refresh token; transport failures propagate as
        ProviderUnavailable.
        """
        bundle = account.tokens_for(provider)
        if bundle is None:
            raise AuthExpired(f"No {provider.value} authorisation stored, please link again")

        if bundle.is_fresh(self.clock(), self.skew):
            return bundle.access_token

        logger.debug(f"Refreshing {provider.value} token for {account.discord_id}")
        try:
            fresh = await self.providers[provider].refresh(bundle)
        except AuthExpired:
            logger.warning(f"{provider.value} refresh token rejected for {account.discord_id}")
            raise

        bundle.access_token = fresh.access_token
        bundle.refresh_token = fresh.refresh_token
        bundle.expires_at = fresh.expires_at
        await self.store.save_tokens(account.discord_id, provider, bundle)
        return bundle.access_token
