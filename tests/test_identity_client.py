import asyncio
import base64
import hashlib
import json
import os
import sys
import time
from pathlib import Path
from urllib.parse import parse_qs, urlsplit

import httpx
import pytest
from jose import jwt

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DATA_DIR", str(ROOT / "data"))

from portal.auth.errors import ProviderError, ProviderNotConfigured
from portal.core.security import access_token_expired, code_challenge_for
from portal.services.identity import SupabaseAuthClient
from fake_provider import ACCESS_COOKIE, REFRESH_COOKIE, make_settings

BASE = "https://project.supabase.co/auth/v1"
USER = {"id": "u-1", "email": "alice@example.com", "role": "authenticated"}


def _access_token(expires_in: int) -> str:
    now = int(time.time())
    return jwt.encode({"sub": "u-1", "iat": now, "exp": now + expires_in}, "provider-secret", algorithm="HS256")


def _client(handler, **overrides):
    transport = httpx.MockTransport(handler)
    settings = make_settings(**overrides)
    return SupabaseAuthClient(settings, client=httpx.AsyncClient(transport=transport)), settings


def _recorder(routes):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        key = (request.method, request.url.path.replace("/auth/v1", "", 1))
        status, body = routes[key]
        return httpx.Response(status, json=body)

    return handler, seen


def test_fresh_access_token_needs_no_refresh():
    handler, seen = _recorder({("GET", "/user"): (200, USER)})
    client, _ = _client(handler)
    token = _access_token(3600)
    result = asyncio.run(client.get_current_user({ACCESS_COOKIE: token, REFRESH_COOKIE: "r1"}))
    assert result.user.id == "u-1"
    assert result.mutations == []
    assert seen[0].headers["Authorization"] == f"Bearer {token}"
    assert seen[0].headers["apikey"] == "anon-key"


def test_no_cookies_means_no_provider_call():
    handler, seen = _recorder({})
    client, _ = _client(handler)
    result = asyncio.run(client.get_current_user({}))
    assert result.user is None
    assert result.mutations == []
    assert seen == []


def test_stale_access_token_is_refreshed():
    new_access = _access_token(3600)
    handler, seen = _recorder(
        {("POST", "/token"): (200, {"access_token": new_access, "refresh_token": "r2", "user": USER})}
    )
    client, settings = _client(handler)
    result = asyncio.run(client.get_current_user({ACCESS_COOKIE: _access_token(5), REFRESH_COOKIE: "r1"}))
    assert result.user.email == "alice@example.com"
    assert [(m.name, m.value) for m in result.mutations] == [(ACCESS_COOKIE, new_access), (REFRESH_COOKIE, "r2")]
    assert all(m.max_age == settings.SESSION_MAX_AGE for m in result.mutations)
    assert seen[0].url.params["grant_type"] == "refresh_token"
    assert json.loads(seen[0].content) == {"refresh_token": "r1"}


def test_rejected_refresh_clears_cookies():
    handler, _ = _recorder({("POST", "/token"): (400, {"error_description": "Invalid Refresh Token"})})
    client, _ = _client(handler)
    result = asyncio.run(client.get_current_user({REFRESH_COOKIE: "revoked"}))
    assert result.user is None
    assert [m.name for m in result.mutations] == [ACCESS_COOKIE, REFRESH_COOKIE]
    assert all(m.is_deletion for m in result.mutations)


def test_transport_failure_raises_provider_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    client, _ = _client(handler)
    with pytest.raises(ProviderError) as excinfo:
        asyncio.run(client.get_current_user({ACCESS_COOKIE: _access_token(3600)}))
    assert excinfo.value.message == "Identity provider is unreachable"


def test_server_error_is_not_treated_as_logged_out():
    handler, _ = _recorder({("GET", "/user"): (503, {"msg": "upstream down"})})
    client, _ = _client(handler)
    with pytest.raises(ProviderError) as excinfo:
        asyncio.run(client.get_current_user({ACCESS_COOKIE: _access_token(3600)}))
    assert excinfo.value.status_code == 503


def test_send_otp_never_creates_users():
    handler, seen = _recorder({("POST", "/otp"): (200, {})})
    client, _ = _client(handler)
    asyncio.run(client.send_otp("alice@example.com"))
    assert json.loads(seen[0].content) == {"email": "alice@example.com", "create_user": False}


def test_send_otp_surfaces_provider_message():
    handler, _ = _recorder({("POST", "/otp"): (422, {"msg": "Signups not allowed for otp"})})
    client, _ = _client(handler)
    with pytest.raises(ProviderError) as excinfo:
        asyncio.run(client.send_otp("stranger@example.com"))
    assert excinfo.value.message == "Signups not allowed for otp"
    assert excinfo.value.status_code == 422


def test_verify_otp_returns_session_cookies():
    handler, seen = _recorder({("POST", "/verify"): (200, {"access_token": "a", "refresh_token": "r", "user": USER})})
    client, _ = _client(handler, APP_ENV="production")
    mutations = asyncio.run(client.verify_otp("alice@example.com", "123456"))
    assert json.loads(seen[0].content) == {"type": "email", "email": "alice@example.com", "token": "123456"}
    assert [m.value for m in mutations] == ["a", "r"]
    assert all(m.secure and m.httponly for m in mutations)


def test_sign_out_clears_even_when_provider_fails():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    client, _ = _client(handler)
    mutations = asyncio.run(client.sign_out({ACCESS_COOKIE: "a"}))
    assert all(m.is_deletion for m in mutations)


def test_authorize_url_uses_pkce():
    client, _ = _client(lambda request: httpx.Response(500))
    url = client.authorize_url(
        "google",
        redirect_to="http://localhost:8000/auth/callback",
        code_challenge=code_challenge_for("verifier"),
        query_params={"prompt": "consent"},
    )
    parts = urlsplit(url)
    query = parse_qs(parts.query)
    assert f"{parts.scheme}://{parts.netloc}{parts.path}" == f"{BASE}/authorize"
    assert query["code_challenge_method"] == ["s256"]
    assert query["prompt"] == ["consent"]


def test_exchange_code_sends_verifier():
    handler, seen = _recorder({("POST", "/token"): (200, {"access_token": "a", "refresh_token": "r"})})
    client, _ = _client(handler)
    asyncio.run(client.exchange_code("abc", "verifier"))
    assert seen[0].url.params["grant_type"] == "pkce"
    assert json.loads(seen[0].content) == {"auth_code": "abc", "code_verifier": "verifier"}


def test_unconfigured_client_refuses_calls():
    client, _ = _client(lambda request: httpx.Response(200), SUPABASE_ANON_KEY="")
    with pytest.raises(ProviderNotConfigured):
        asyncio.run(client.send_otp("alice@example.com"))


def test_access_token_expiry_honours_leeway():
    assert access_token_expired(_access_token(10), leeway_seconds=30) is True
    assert access_token_expired(_access_token(3600), leeway_seconds=30) is False
    assert access_token_expired("not-a-jwt") is True


def test_code_challenge_is_unpadded_base64url_sha256():
    verifier = "dBjftJeZ4CVP-mJ92K50WKeHkV8CB0cWbe6fWHHTXAKy7HTDu7Ppr0nhs3qgBfDTJY6lsFkT"
    expected = base64.urlsafe_b64encode(hashlib.sha256(verifier.encode("ascii")).digest()).rstrip(b"=").decode()
    challenge = code_challenge_for(verifier)
    assert challenge == expected
    assert len(challenge) == 43


def test_html_body_on_success_is_a_provider_error():
    def handler(request):
        return httpx.Response(200, text="<html>maintenance</html>", headers={"content-type": "text/html"})

    client, _ = _client(handler)
    with pytest.raises(ProviderError) as excinfo:
        asyncio.run(client.get_current_user({ACCESS_COOKIE: _access_token(3600)}))
    assert excinfo.value.message == "Identity provider returned an unreadable response"
    assert excinfo.value.status_code == 200


def test_non_object_refresh_body_is_a_provider_error():
    handler, _ = _recorder({("POST", "/token"): (200, ["not", "a", "session"])})
    client, _ = _client(handler)
    with pytest.raises(ProviderError):
        asyncio.run(client.get_current_user({REFRESH_COOKIE: "r1"}))


def test_session_with_non_string_tokens_is_incomplete():
    handler, _ = _recorder({("POST", "/verify"): (200, {"access_token": 7, "refresh_token": None})})
    client, _ = _client(handler)
    with pytest.raises(ProviderError, match="incomplete session"):
        asyncio.run(client.verify_otp("alice@example.com", "123456"))
