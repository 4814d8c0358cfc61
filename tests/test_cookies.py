"""Tests for signed cookie values."""

import pytest

from modlink.services.cookies import CookieSigner


@pytest.fixture
def signer(clock) -> CookieSigner:
    return CookieSigner("test-cookie-secret-0123456789abcdef", clock=clock)


class TestCookieSigner:
    """Test cases for CookieSigner."""

    def test_round_trip(self, signer):
        token = signer.sign("abc123", "state", max_age=300)

        assert token != "abc123"
        assert signer.unsign(token, "state") == "abc123"

    def test_missing_cookie(self, signer):
        assert signer.unsign(None, "state") is None
        assert signer.unsign("", "state") is None

    def test_wrong_purpose_rejected(self, signer):
        token = signer.sign("abc123", "error", max_age=300)

        assert signer.unsign(token, "state") is None

    def test_tampered_value_rejected(self, signer):
        token = signer.sign("abc123", "state", max_age=300)
        header, payload, signature = token.split(".")

        assert signer.unsign(f"{header}.{payload}x.{signature}", "state") is None

    def test_other_secret_rejected(self, signer, clock):
        other = CookieSigner("another-cookie-secret-0123456789abcdef", clock=clock)
        token = other.sign("abc123", "state", 300)

        assert signer.unsign(token, "state") is None

    def test_expired_cookie_rejected(self, signer, clock):
        token = signer.sign("abc123", "state", max_age=300)

        clock.advance(299)
        assert signer.unsign(token, "state") == "abc123"

        clock.advance(2)
        assert signer.unsign(token, "state") is None

    def test_empty_secret_not_allowed(self):
        with pytest.raises(ValueError):
            CookieSigner("")
