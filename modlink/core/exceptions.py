"""Error taxonomy for the account-link service.

Link-flow errors end the OAuth dance for one correlation token. Provider errors
come from the upstream OAuth/API clients. None of these carry stack traces to
the user: routes and interactions render ``detail`` only.
"""


class ModLinkError(Exception):
    """Base class for all application errors."""

    detail = "Something went wrong"

    def __init__(self, detail: str | None = None):
        if detail is not None:
            self.detail = detail
        super().__init__(self.detail)


# ==================== Link flow ====================


class LinkFlowError(ModLinkError):
    """Terminal failure of a link attempt (the flow moves to FAILED)."""


class StateMismatch(LinkFlowError):
    detail = "OAuth state verification failed"


class MissingPendingLink(LinkFlowError):
    detail = "Could not find a matching Discord authorisation to pair accounts"


class TokenExchangeFailure(LinkFlowError):
    detail = "The authorisation code was rejected"


# ==================== Stores ====================


class DuplicateToken(ModLinkError):
    """A correlation token collided with a live entry (caller bug)."""

    detail = "Correlation token already in use"


class PendingLinksFull(ModLinkError):
    """Every pending-link slot holds a live entry."""

    detail = "Too many links are in progress right now, please try again in a few minutes"


# ==================== Providers ====================


class ProviderError(ModLinkError):
    detail = "Upstream request failed"


class AuthExpired(ProviderError):
    """The refresh token was rejected; the user has to link again."""

    detail = "Your authorisation has expired, please link your account again"


class ProviderUnavailable(ProviderError):
    """Timeout, transport error or 5xx. Retrying is up to the caller."""


# ==================== Accounts ====================


class NotLinkedError(ModLinkError):
    detail = "No linked account for this Discord user"
