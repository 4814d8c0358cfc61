"""Gateway events mapped to the log lines they produce.

Handlers are plain functions of ``(payload, context)`` returning effect
descriptions; :func:`apply_effects` is the only place that acts on them.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from modlink.core.context import AppContext

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LogEffect:
    level: int
    message: str


Effects = tuple[LogEffect, ...]
EventHandler = Callable[[dict[str, Any], AppContext], Effects]


def on_ready(payload: dict[str, Any], context: AppContext) -> Effects:
    return (
        LogEffect(
            logging.INFO,
            f"Bot ready: {payload.get('user')} | {payload.get('guild_count', 0)} guild(s)",
        ),
        LogEffect(logging.INFO, f"Linked-role URL: {context.settings.public_url}/linked-role"),
    )


def on_guild_join(payload: dict[str, Any], context: AppContext) -> Effects:
    return (
        LogEffect(logging.INFO, f"Joined guild {payload.get('name')} ({payload.get('id')})"),
    )


def on_guild_remove(payload: dict[str, Any], context: AppContext) -> Effects:
    return (
        LogEffect(logging.INFO, f"Removed from guild {payload.get('name')} ({payload.get('id')})"),
    )


EVENT_HANDLERS: dict[str, EventHandler] = {
    "ready": on_ready,
    "guild_join": on_guild_join,
    "guild_remove": on_guild_remove,
}


def dispatch(event: str, payload: dict[str, Any], context: AppContext) -> Effects:
    handler = EVENT_HANDLERS.get(event)
    if handler is None:
        return ()
    return handler(payload, context)


def apply_effects(effects: Effects) -> None:
    for effect in effects:
        logger.log(effect.level, effect.message)
