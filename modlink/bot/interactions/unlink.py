"""/unlink: delete the link and clear the user's role metadata"""

import logging

from .base import NOT_LINKED_MESSAGE, CommandDescription, InteractionContext

logger = logging.getLogger(__name__)


class UnlinkInteraction:
    name = "unlink"

    def describe(self) -> CommandDescription:
        return CommandDescription(self.name, "Remove the link between Discord and Nexus Mods")

    async def execute(self, ctx: InteractionContext) -> str:
        account = await ctx.app.store.get_by_discord_id(ctx.user_id)
        if account is None:
            return NOT_LINKED_MESSAGE

        # Clear while the stored Discord token still exists
        cleared = await ctx.app.metadata.clear(account)
        await ctx.app.store.delete(ctx.user_id)
        logger.info(f"Unlinked {ctx.user_id} from Nexus Mods user {account.nexus_id}")

        reply = f"Unlinked your Discord account from Nexus Mods user **{account.name}**."
        if not cleared:
            reply += (
                " Your linked roles could not be cleared; remove the Nexus Mods"
                " connection in your Discord settings."
            )
        return reply
