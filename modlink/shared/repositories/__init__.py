"""Repository layer for the modlink services."""

from .account import AccountRepository, AccountStore

__all__ = [
    "AccountRepository",
    "AccountStore",
]
