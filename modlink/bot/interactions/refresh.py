"""/refresh: reconcile the caller's account and report what changed"""

from modlink.services import RefreshStatus, RefreshSummary

from .base import NOT_LINKED_MESSAGE, CommandDescription, InteractionContext


def render_summary(summary: RefreshSummary) -> str:
    if summary.status is RefreshStatus.NOT_LINKED:
        return NOT_LINKED_MESSAGE

    if summary.status is RefreshStatus.COOLDOWN:
        when = (
            f"<t:{int(summary.next_refresh_at.timestamp())}:R>"
            if summary.next_refresh_at
            else "in a minute"
        )
        return f"You refreshed recently. Try again {when}."

    lines = ["Refreshed your Nexus Mods link."]
    if summary.fields_updated:
        lines.append(f"Updated: {', '.join(summary.fields_updated)}")

    tracked = summary.subscription_count - len(summary.subscriptions_removed)
    if summary.subscription_count:
        lines.append(
            f"Mods: {tracked} tracked, {len(summary.subscriptions_updated)} updated, "
            f"{len(summary.subscriptions_removed)} removed"
        )
        lines.append(f"Unique downloads: {summary.unique_download_total:,}")
    for sub in summary.subscriptions_removed:
        lines.append(f"- {sub.name or sub.mod_id} ({sub.domain}) is no longer available")

    if summary.metadata_pushed:
        lines.append("Your Discord roles have been updated.")
    elif not summary.roles_changed and not summary.subscriptions_changed:
        lines.append("No changes found.")

    if summary.failures:
        lines.append("Some checks failed:")
        lines.extend(f"- {note}" for note in summary.failures)
    return "\n".join(lines)


class RefreshInteraction:
    name = "refresh"

    def describe(self) -> CommandDescription:
        return CommandDescription(self.name, "Update your Nexus Mods roles and mod stats")

    async def execute(self, ctx: InteractionContext) -> str:
        summary = await ctx.app.reconciler.refresh_account(ctx.user_id)
        return render_summary(summary)
