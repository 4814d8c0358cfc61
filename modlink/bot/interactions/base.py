"""Capability interface shared by every slash command"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from modlink.core.context import AppContext

NOT_LINKED_MESSAGE = (
    "Your Discord account isn't linked to Nexus Mods yet. Use /link to get started."
)


@dataclass(frozen=True)
class CommandDescription:
    name: str
    description: str


@dataclass
class InteractionContext:
    """Who invoked a command, plus the services it may use."""

    app: AppContext
    user_id: str
    user_name: str = ""


class Interaction(Protocol):
    name: str

    def describe(self) -> CommandDescription: ...

    async def execute(self, ctx: InteractionContext) -> str: ...
