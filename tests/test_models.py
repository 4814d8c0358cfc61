"""Tests for the data models and repository helpers."""

from datetime import timedelta

import pytest

from modlink.shared.models import LinkedAccount, NexusProfile, Provider, RoleMetadata, TokenBundle
from modlink.shared.repositories.account import (
    UPDATABLE_ACCOUNT_FIELDS,
    _set_clause,
    token_fields,
)
from tests.conftest import START, make_account


class TestTokenBundle:
    """Test cases for TokenBundle."""

    def test_freshness_respects_skew(self):
        bundle = TokenBundle("a", "r", START + timedelta(seconds=60))

        assert bundle.is_fresh(START, timedelta(seconds=30))
        assert not bundle.is_fresh(START, timedelta(seconds=60))

    def test_from_response_keeps_previous_refresh_token(self):
        bundle = TokenBundle.from_response(
            {"access_token": "new", "expires_in": 3600}, START, previous_refresh="old-refresh"
        )

        assert bundle.refresh_token == "old-refresh"
        assert bundle.expires_at == START + timedelta(hours=1)


class TestLinkedAccountFromRow:
    """Test cases for mapping database rows."""

    def test_full_row(self):
        row = {
            "discord_id": "1001",
            "nexus_id": 42,
            "name": "AliceMods",
            "supporter": True,
            "discord_access": "da",
            "discord_refresh": "dr",
            "discord_expires": START,
            "nexus_access": None,
            "nexus_refresh": None,
            "nexus_expires": None,
        }

        account = LinkedAccount.from_row(row)

        assert account.supporter is True
        assert account.discord_tokens == TokenBundle("da", "dr", START)
        assert account.tokens_for(Provider.DISCORD) is account.discord_tokens
        assert account.nexus_tokens is None


class TestRoleMetadata:
    """Test cases for RoleMetadata derivation."""

    def test_premium_supersedes_supporter(self):
        profile = NexusProfile(42, "AliceMods", membership_roles=("member", "supporter", "premium"))

        metadata = RoleMetadata.from_profile(profile)

        assert metadata.to_payload() == {"member": 1, "modauthor": 0, "premium": 1, "supporter": 0}

    def test_from_stored_account(self, clock):
        account = make_account(clock, modauthor=True)

        metadata = RoleMetadata.from_account(account)

        assert metadata.to_payload() == {"member": 1, "modauthor": 1, "premium": 0, "supporter": 1}

    def test_default_is_all_zero(self):
        assert set(RoleMetadata().to_payload().values()) == {0}


class TestRepositoryHelpers:
    """Test cases for SQL building helpers."""

    def test_token_fields(self):
        fields = token_fields(Provider.NEXUS, TokenBundle("a", "r", START))

        assert fields == {"nexus_access": "a", "nexus_refresh": "r", "nexus_expires": START}
        assert set(fields) <= UPDATABLE_ACCOUNT_FIELDS

    def test_set_clause_numbers_placeholders(self):
        clause, values = _set_clause({"premium": True, "name": "x"}, UPDATABLE_ACCOUNT_FIELDS, 2)

        assert clause == "name = $2, premium = $3"
        assert values == ["x", True]

    def test_set_clause_rejects_unknown_columns(self):
        with pytest.raises(ValueError, match="discord_id"):
            _set_clause({"discord_id": "2"}, UPDATABLE_ACCOUNT_FIELDS, 1)
