"""/link: point the user at the consent flow"""

from .base import CommandDescription, InteractionContext


class LinkInteraction:
    name = "link"

    def describe(self) -> CommandDescription:
        return CommandDescription(self.name, "Link your Discord account to Nexus Mods")

    async def execute(self, ctx: InteractionContext) -> str:
        url = f"{ctx.app.settings.public_url}/linked-role"
        account = await ctx.app.store.get_by_discord_id(ctx.user_id)
        if account is None:
            return f"Link your Nexus Mods account here: {url}"
        return (
            f"You're linked to Nexus Mods as **{account.name}** ({account.nexus_id}). "
            f"Use /refresh to update your roles, or relink at {url}"
        )
