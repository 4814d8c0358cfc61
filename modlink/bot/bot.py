"""Discord bot client for the link commands"""

import logging
from typing import Any

import discord
from discord import app_commands
from discord.ext import commands

from modlink.core.context import AppContext

from .events import apply_effects, dispatch
from .interactions import INTERACTIONS, Interaction, InteractionContext

logger = logging.getLogger(__name__)


class ModLinkBot(commands.Bot):
    """Registers the fixed command list and logs gateway events."""

    def __init__(self, context: AppContext):
        super().__init__(
            command_prefix=commands.when_mentioned,
            intents=discord.Intents.default(),
            help_command=None,
        )
        self.context = context
        for interaction in INTERACTIONS:
            self.tree.add_command(self._as_command(interaction))

    def _as_command(self, handler: Interaction) -> app_commands.Command:
        description = handler.describe()

        async def callback(interaction: discord.Interaction) -> None:
            await interaction.response.defer(ephemeral=True, thinking=True)
            ctx = InteractionContext(
                app=self.context,
                user_id=str(interaction.user.id),
                user_name=interaction.user.display_name,
            )
            try:
                reply = await handler.execute(ctx)
            except Exception as e:
                logger.exception(f"/{description.name} failed for {ctx.user_id}: {e}")
                reply = "Something went wrong, please try again later."
            await interaction.followup.send(reply, ephemeral=True)

        return app_commands.Command(
            name=description.name,
            description=description.description,
            callback=callback,
        )

    def _emit(self, event: str, payload: dict[str, Any]) -> None:
        apply_effects(dispatch(event, payload, self.context))

    async def setup_hook(self) -> None:
        synced = await self.tree.sync()
        logger.info(f"Synced {len(synced)} slash command(s)")

    async def on_ready(self) -> None:
        self._emit("ready", {"user": str(self.user), "guild_count": len(self.guilds)})

    async def on_guild_join(self, guild: discord.Guild) -> None:
        self._emit("guild_join", {"id": guild.id, "name": guild.name})

    async def on_guild_remove(self, guild: discord.Guild) -> None:
        self._emit("guild_remove", {"id": guild.id, "name": guild.name})
