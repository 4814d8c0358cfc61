"""Shared data models for the modlink services."""

from .account import LinkedAccount, ModSubscription, Provider, TokenBundle
from .link import (
    DiscordIdentity,
    LinkSuccess,
    NexusProfile,
    PendingLink,
    RoleMetadata,
    StartedFlow,
)
from .stats import ModDownloadInfo

__all__ = [
    "DiscordIdentity",
    "LinkSuccess",
    "LinkedAccount",
    "ModDownloadInfo",
    "ModSubscription",
    "NexusProfile",
    "PendingLink",
    "Provider",
    "RoleMetadata",
    "StartedFlow",
    "TokenBundle",
]
