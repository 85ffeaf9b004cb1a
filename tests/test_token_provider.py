"""Tests for loaders.token_provider.TokenProvider."""

from unittest.mock import MagicMock

import pytest
import requests

from account_migration.errors import AuthError
from account_migration.loaders.keycloak_client import KeycloakAdminClient
from account_migration.loaders.token_provider import BearerToken, TokenProvider


def _mock_token_response(access_token="test-token", expires_in=300, status=200):
    resp = MagicMock()
    resp.status_code = status
    resp.ok = 200 <= status < 300
    resp.json.return_value = {"access_token": access_token, "expires_in": expires_in}
    return resp


def _provider(response=None, side_effect=None, clock=lambda: 100.0):
    session = MagicMock()
    if side_effect is not None:
        session.post.side_effect = side_effect
    else:
        session.post.return_value = response
    client = KeycloakAdminClient("https://sso.example.com", "acme", timeout=7, session=session)
    return TokenProvider(client, "migrator", "s3cret", clock=clock), session


def test_acquire_token_posts_client_credentials():
    provider, session = _provider(_mock_token_response())
    token = provider.acquire_token()

    assert token.value == "test-token"
    assert token.acquired_at == 100.0
    assert token.expires_in == 300
    args, kwargs = session.post.call_args
    assert args[0] == "https://sso.example.com/realms/acme/protocol/openid-connect/token"
    assert kwargs["data"] == {
        "grant_type": "client_credentials",
        "client_id": "migrator",
        "client_secret": "s3cret",
    }
    assert kwargs["timeout"] == 7


def test_acquire_token_rejected_raises():
    resp = _mock_token_response(status=401)
    resp.json.return_value = {"error": "unauthorized_client"}
    provider, _ = _provider(resp)
    with pytest.raises(AuthError, match="401"):
        provider.acquire_token()


def test_acquire_token_without_access_token_raises():
    resp = _mock_token_response()
    resp.json.return_value = {"token_type": "bearer"}
    provider, _ = _provider(resp)
    with pytest.raises(AuthError, match="access_token"):
        provider.acquire_token()


def test_acquire_token_transport_error_raises():
    provider, _ = _provider(side_effect=requests.Timeout("timed out"))
    with pytest.raises(AuthError, match="timed out"):
        provider.acquire_token()


def test_is_expiring_at_threshold():
    provider, _ = _provider(_mock_token_response())
    token = BearerToken(value="t", acquired_at=1000.0)

    assert provider.is_expiring(token, now=1239.9) is False
    assert provider.is_expiring(token, now=1240.0) is True
    assert provider.is_expiring(token, now=1500.0) is True


def test_is_expiring_uses_clock():
    now = [0.0]
    provider, _ = _provider(_mock_token_response(), clock=lambda: now[0])
    token = provider.acquire_token()
    assert provider.is_expiring(token) is False
    now[0] = 241.0
    assert provider.is_expiring(token) is True


def test_token_str_is_value():
    assert str(BearerToken(value="abc", acquired_at=0.0)) == "abc"


@pytest.mark.parametrize("body", [["access_token"], "access_token", 42])
def test_acquire_token_non_object_body_raises(body):
    resp = _mock_token_response()
    resp.json.return_value = body
    provider, _ = _provider(resp)
    with pytest.raises(AuthError, match="not a JSON object"):
        provider.acquire_token()
