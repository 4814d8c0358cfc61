"""Data models for in-flight links, platform identities and role metadata."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime

from .account import LinkedAccount, TokenBundle


@dataclass
class DiscordIdentity:
    """Discord user as returned by ``/oauth2/@me``."""

    id: str
    username: str
    global_name: str | None = None
    discriminator: str = "0"
    avatar: str | None = None

    @property
    def display_name(self) -> str:
        name = self.global_name or self.username
        if self.discriminator and self.discriminator != "0":
            return f"{name}#{self.discriminator}"
        return name


@dataclass
class NexusProfile:
    """Nexus Mods user as returned by the OAuth ``userinfo`` endpoint."""

    id: int
    name: str
    avatar: str | None = None
    membership_roles: tuple[str, ...] = ()

    @property
    def is_member(self) -> bool:
        return "member" in self.membership_roles

    @property
    def is_premium(self) -> bool:
        return "premium" in self.membership_roles

    @property
    def is_supporter(self) -> bool:
        # Premium supersedes supporter
        return "supporter" in self.membership_roles and not self.is_premium

    @property
    def is_modauthor(self) -> bool:
        return "modauthor" in self.membership_roles


@dataclass
class PendingLink:
    """First half of a link, waiting for the Nexus Mods callback."""

    correlation_token: str
    discord: DiscordIdentity
    tokens: TokenBundle
    created_at: datetime


@dataclass
class RoleMetadata:
    """Role-connection metadata; Discord only accepts 0/1 integers here."""

    member: int = 0
    modauthor: int = 0
    premium: int = 0
    supporter: int = 0

    @classmethod
    def from_profile(cls, profile: NexusProfile) -> RoleMetadata:
        return cls(
            member=int(profile.is_member),
            modauthor=int(profile.is_modauthor),
            premium=int(profile.is_premium),
            supporter=int(profile.is_supporter),
        )

    @classmethod
    def from_account(cls, account: LinkedAccount) -> RoleMetadata:
        return cls(
            member=1,
            modauthor=int(account.modauthor),
            premium=int(account.premium),
            supporter=int(account.supporter and not account.premium),
        )

    def to_payload(self) -> dict[str, int]:
        return asdict(self)


@dataclass
class LinkSuccess:
    """Result of a completed link, for the confirmation page."""

    discord_name: str
    discord_id: str
    nexus_name: str
    nexus_id: int
    created: bool
    metadata_pushed: bool = True


@dataclass
class StartedFlow:
    """Correlation token plus the Discord consent URL embedding it."""

    state: str
    authorize_url: str
