"""Tests for on-demand account reconciliation."""

from datetime import timedelta

import pytest

from modlink.services import RefreshStatus
from modlink.shared.models import ModSubscription
from tests.conftest import (
    NEXUS_TOKEN_URL,
    NEXUS_USERINFO_URL,
    ROLE_CONNECTION_URL,
    json_reply,
    make_account,
    mod_url,
    nexus_profile,
    stats_url,
    status_reply,
    text_reply,
)


def _mod(mod_id: int, name: str, status: str = "published") -> dict:
    return {
        "mod_id": mod_id,
        "name": name,
        "game_id": 110,
        "domain_name": "skyrim",
        "status": status,
    }


@pytest.fixture
def linked(store, upstream, clock):
    """A supporter with two tracked mods whose stored state matches upstream."""
    store.add_account(make_account(clock))
    store.add_subscription(ModSubscription("1001", "skyrim", 100, "Cool Mod", 110, 1200, 5000))
    store.add_subscription(ModSubscription("1001", "skyrim", 101, "Tiny Mod", 110, 5, 10))
    upstream.add("GET", NEXUS_USERINFO_URL, json_reply(nexus_profile(["member", "supporter"])))
    upstream.add("GET", mod_url("skyrim", 100), json_reply(_mod(100, "Cool Mod")))
    upstream.add("GET", mod_url("skyrim", 101), json_reply(_mod(101, "Tiny Mod")))
    upstream.add("GET", stats_url(110), text_reply("100,5000,1200,99999\n101,10,5,1\n"))
    upstream.add("PUT", ROLE_CONNECTION_URL, status_reply(204))
    return store


class TestRefreshAccount:
    """Test cases for ReconciliationEngine.refresh_account."""

    async def test_not_linked(self, context, upstream):
        summary = await context.reconciler.refresh_account("404")

        assert summary.status is RefreshStatus.NOT_LINKED
        assert upstream.requests == []

    async def test_unchanged_account_is_not_repushed(self, context, linked, upstream):
        summary = await context.reconciler.refresh_account("1001")

        assert summary.status is RefreshStatus.COMPLETED
        assert summary.fields_updated == []
        assert summary.subscriptions_updated == []
        assert summary.metadata_pushed is False
        assert summary.failures == []
        assert summary.subscription_count == 2
        assert summary.unique_download_total == 1205
        assert upstream.calls("PUT", ROLE_CONNECTION_URL) == []
        assert linked.calls_named("update_subscription") == []

    async def test_cooldown_allows_one_upstream_fetch(self, context, linked, upstream, clock):
        started = clock()
        first = await context.reconciler.refresh_account("1001")
        clock.advance(30)
        second = await context.reconciler.refresh_account("1001")

        assert first.status is RefreshStatus.COMPLETED
        assert second.status is RefreshStatus.COOLDOWN
        assert second.next_refresh_at == started + timedelta(seconds=60)
        assert len(upstream.calls("GET", NEXUS_USERINFO_URL)) == 1

    async def test_refresh_allowed_after_cooldown(self, context, linked, upstream, clock):
        await context.reconciler.refresh_account("1001")
        clock.advance(61)

        summary = await context.reconciler.refresh_account("1001")

        assert summary.status is RefreshStatus.COMPLETED
        assert len(upstream.calls("GET", NEXUS_USERINFO_URL)) == 2

    async def test_premium_upgrade_pushes_metadata_once(self, context, linked, upstream):
        upstream.add(
            "GET",
            NEXUS_USERINFO_URL,
            json_reply(nexus_profile(["member", "supporter", "premium"])),
        )

        summary = await context.reconciler.refresh_account("1001")

        assert summary.roles_changed is True
        assert set(summary.fields_updated) == {"premium", "supporter"}
        assert summary.metadata_pushed is True
        account = linked.accounts["1001"]
        assert account.premium is True
        assert account.supporter is False
        bodies = upstream.json_bodies("PUT", ROLE_CONNECTION_URL)
        assert len(bodies) == 1
        assert bodies[0]["metadata"] == {"member": 1, "modauthor": 0, "premium": 1, "supporter": 0}

    async def test_name_change_alone_does_not_change_roles(self, context, linked, upstream):
        profile = nexus_profile(["member", "supporter"], name="Alice2")
        upstream.add("GET", NEXUS_USERINFO_URL, json_reply(profile))

        summary = await context.reconciler.refresh_account("1001")

        assert summary.fields_updated == ["name"]
        assert summary.roles_changed is False
        assert summary.metadata_pushed is False
        assert linked.accounts["1001"].name == "Alice2"

    async def test_withdrawn_mod_is_removed(self, context, linked, upstream):
        upstream.add("GET", mod_url("skyrim", 101), json_reply(_mod(101, "Tiny Mod", "removed")))

        summary = await context.reconciler.refresh_account("1001")

        assert [s.mod_id for s in summary.subscriptions_removed] == [101]
        assert ("1001", "skyrim", 101) not in linked.subscriptions
        assert summary.unique_download_total == 1200
        assert summary.metadata_pushed is True

    async def test_download_counters_only_increase(self, context, linked, upstream):
        linked.subscriptions[("1001", "skyrim", 100)].unique_downloads = 2000
        linked.subscriptions[("1001", "skyrim", 100)].total_downloads = 4000

        summary = await context.reconciler.refresh_account("1001")

        assert linked.calls_named("update_subscription") == [(100, {"total_downloads": 5000})]
        stored = linked.subscriptions[("1001", "skyrim", 100)]
        assert stored.unique_downloads == 2000
        assert stored.total_downloads == 5000
        assert summary.unique_download_total == 2005

    async def test_renamed_mod_is_updated(self, context, linked, upstream):
        upstream.add("GET", mod_url("skyrim", 100), json_reply(_mod(100, "Cool Mod SE")))

        summary = await context.reconciler.refresh_account("1001")

        assert [s.name for s in summary.subscriptions_updated] == ["Cool Mod SE"]
        assert linked.subscriptions[("1001", "skyrim", 100)].name == "Cool Mod SE"
        assert summary.metadata_pushed is True

    async def test_identity_failure_does_not_stop_mod_pass(self, context, linked, upstream):
        upstream.add("GET", NEXUS_USERINFO_URL, status_reply(503))
        upstream.add("GET", mod_url("skyrim", 100), json_reply(_mod(100, "Cool Mod SE")))

        summary = await context.reconciler.refresh_account("1001")

        assert summary.status is RefreshStatus.COMPLETED
        assert len(summary.failures) == 1
        assert summary.failures[0].startswith("User info")
        assert [s.mod_id for s in summary.subscriptions_updated] == [100]
        # Falls back to stored flags for the push
        assert upstream.json_bodies("PUT", ROLE_CONNECTION_URL)[0]["metadata"]["supporter"] == 1

    async def test_one_failing_mod_does_not_abort_others(self, context, linked, upstream):
        upstream.add("GET", mod_url("skyrim", 100), status_reply(404))
        upstream.add("GET", mod_url("skyrim", 101), json_reply(_mod(101, "Tiny Mod v2")))

        summary = await context.reconciler.refresh_account("1001")

        assert len(summary.failures) == 1
        assert summary.failures[0].startswith("skyrim/100")
        assert [s.mod_id for s in summary.subscriptions_updated] == [101]
        # The failed mod keeps its stored counters in the total
        assert summary.unique_download_total == 1205

    async def test_metadata_push_failure_is_noted(self, context, linked, upstream):
        upstream.add("GET", NEXUS_USERINFO_URL, json_reply(nexus_profile(["member", "premium"])))
        upstream.add("PUT", ROLE_CONNECTION_URL, status_reply(500))

        summary = await context.reconciler.refresh_account("1001")

        assert summary.roles_changed is True
        assert summary.metadata_pushed is False
        assert summary.failures[-1].startswith("Roles")

    async def test_expired_nexus_token_refreshed_once(self, context, linked, upstream, clock):
        linked.accounts["1001"].nexus_tokens.expires_at = clock() - timedelta(minutes=1)
        upstream.add(
            "POST",
            NEXUS_TOKEN_URL,
            json_reply({"access_token": "nexus-access-2", "expires_in": 21600}),
        )

        summary = await context.reconciler.refresh_account("1001")

        assert summary.failures == []
        assert len(upstream.calls("POST", NEXUS_TOKEN_URL)) == 1
        assert linked.accounts["1001"].nexus_tokens.access_token == "nexus-access-2"
        mod_request = upstream.calls("GET", mod_url("skyrim", 100))[0]
        assert mod_request.headers["Authorization"] == "Bearer nexus-access-2"

    async def test_rejected_refresh_token_reported(self, context, linked, upstream, clock):
        linked.accounts["1001"].nexus_tokens.expires_at = clock() - timedelta(minutes=1)
        upstream.add("POST", NEXUS_TOKEN_URL, json_reply({"error": "invalid_grant"}, 400))

        summary = await context.reconciler.refresh_account("1001")

        assert summary.status is RefreshStatus.COMPLETED
        assert any("link your account again" in note for note in summary.failures)
        assert summary.metadata_pushed is False
