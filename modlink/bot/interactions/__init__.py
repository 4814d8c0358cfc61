"""Slash commands, registered from this fixed list."""

from .base import CommandDescription, Interaction, InteractionContext
from .link import LinkInteraction
from .refresh import RefreshInteraction, render_summary
from .unlink import UnlinkInteraction

INTERACTIONS: tuple[Interaction, ...] = (
    LinkInteraction(),
    RefreshInteraction(),
    UnlinkInteraction(),
)


def get_interaction(name: str) -> Interaction | None:
    return next((i for i in INTERACTIONS if i.name == name), None)


__all__ = [
    "INTERACTIONS",
    "CommandDescription",
    "Interaction",
    "InteractionContext",
    "get_interaction",
    "render_summary",
]
