"""Shared OAuth2 authorization-code client.

Each provider subclass supplies its endpoints, scopes and profile parsing.
Token endpoint failures are mapped onto the error taxonomy:

- exchange rejected (4xx)  -> TokenExchangeFailure
- refresh rejected (4xx)   -> AuthExpired
- timeout / transport / 5xx / 429 -> ProviderUnavailable
"""

import logging
from urllib.parse import urlencode

import httpx

from modlink.core.clock import Clock, utcnow
from modlink.core.exceptions import (
    AuthExpired,
    ProviderError,
    ProviderUnavailable,
    TokenExchangeFailure,
)
from modlink.shared.models import TokenBundle

logger = logging.getLogger(__name__)


def _error_text(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text[:200] or f"HTTP {response.status_code}"
    if isinstance(data, dict):
        return str(
            data.get("error_description")
            or data.get("message")
            or data.get("error")
            or f"HTTP {response.status_code}"
        )
    return f"HTTP {response.status_code}"


class OAuthClient:
    """Base client for one OAuth2 provider."""

    name = "oauth"
    AUTHORIZE_URL = ""
    TOKEN_URL = ""
    SCOPES: tuple[str, ...] = ()

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        *,
        http: httpx.AsyncClient | None = None,
        clock: Clock = utcnow,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.clock = clock

        # Shared HTTP client, one per process
        self._http = http or httpx.AsyncClient(timeout=10.0)

    async def close(self) -> None:
        """Close the shared HTTP client. Call on app shutdown."""
        await self._http.aclose()

    @property
    def is_configured(self) -> bool:
        return bool(self.client_id)

    # ------------------------------------------------------------------
    # Hooks
    # ------------------------------------------------------------------

    def _authorize_params(self) -> dict[str, str]:
        return {}

    def _token_request_kwargs(self, data: dict[str, str]) -> dict:
        """Client authentication for the token endpoint (form credentials)."""
        data = {**data, "client_id": self.client_id}
        if self.client_secret:
            data["client_secret"] = self.client_secret
        return {"data": data}

    # ------------------------------------------------------------------
    # OAuth flow
    # ------------------------------------------------------------------

    def get_authorize_url(self, state: str) -> str:
        """Consent URL carrying *state* for CSRF protection."""
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": " ".join(self.SCOPES),
            "state": state,
            **self._authorize_params(),
        }
        return f"{self.AUTHORIZE_URL}?{urlencode(params)}"

    async def _post_token(self, data: dict[str, str]) -> httpx.Response:
        try:
            return await self._http.post(self.TOKEN_URL, **self._token_request_kwargs(data))
        except httpx.TimeoutException as e:
            logger.error(f"Timeout calling {self.name} token endpoint")
            raise ProviderUnavailable(f"{self.name} did not respond in time") from e
        except httpx.HTTPError as e:
            logger.error(f"{self.name} token endpoint error: {type(e).__name__}: {e}")
            raise ProviderUnavailable(f"Could not reach {self.name}") from e

    async def exchange_code(self, code: str) -> TokenBundle:
        """Exchange an authorization code for a token bundle."""
        response = await self._post_token(
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self.redirect_uri,
            }
        )
        if response.status_code >= 500 or response.status_code == 429:
            logger.error(f"{self.name} code exchange failed: {response.status_code}")
            raise ProviderUnavailable(f"{self.name} is unavailable ({response.status_code})")
        if response.status_code != 200:
            error = _error_text(response)
            logger.error(f"{self.name} rejected authorization code: {error}")
            raise TokenExchangeFailure(f"{self.name} rejected the authorisation code: {error}")

        data = response.json()
        if not data.get("access_token"):
            raise TokenExchangeFailure(f"No access token in {self.name} response")
        logger.debug(f"Exchanged {self.name} authorization code")
        return TokenBundle.from_response(data, self.clock())

    async def refresh(self, bundle: TokenBundle) -> TokenBundle:
        """Trade the refresh token for a new bundle.

        The provider may rotate the refresh token; when it doesn't, the old one
        is kept.
        """
        response = await self._post_token(
            {
                "grant_type": "refresh_token",
                "refresh_token": bundle.refresh_token,
            }
        )
        if response.status_code >= 500 or response.status_code == 429:
            logger.error(f"{self.name} token refresh failed: {response.status_code}")
            raise ProviderUnavailable(f"{self.name} is unavailable ({response.status_code})")
        if response.status_code != 200:
            logger.warning(f"{self.name} refresh token rejected: {_error_text(response)}")
            raise AuthExpired()

        data = response.json()
        if not data.get("access_token"):
            raise ProviderError(f"No access token in {self.name} refresh response")
        logger.debug(f"Refreshed {self.name} access token")
        return TokenBundle.from_response(data, self.clock(), previous_refresh=bundle.refresh_token)

    async def _get_json(self, url: str, access_token: str) -> dict:
        """Authorized GET returning the decoded JSON body."""
        try:
            response = await self._http.get(
                url, headers={"Authorization": f"Bearer {access_token}"}
            )
        except httpx.TimeoutException as e:
            raise ProviderUnavailable(f"{self.name} did not respond in time") from e
        except httpx.HTTPError as e:
            raise ProviderUnavailable(f"Could not reach {self.name}") from e

        if response.status_code == 401:
            raise AuthExpired()
        if response.status_code >= 500:
            raise ProviderUnavailable(f"{self.name} is unavailable ({response.status_code})")
        if response.status_code != 200:
            logger.error(f"{self.name} GET {url} failed: {response.status_code}")
            raise ProviderError(f"{self.name} request failed: {_error_text(response)}")
        data: dict = response.json()
        return data
