import httpx
from fastapi.testclient import TestClient

from sitekernel.core.hub import HubClient
from sitekernel.models.config import HubConfig
from sitekernel.server.app import get_hub_client


def _client(app, handler):
    hub = HubClient(
        config=HubConfig(
            base_url="https://hub.test",
            oauth_client_id="cid",
            oauth_client_secret="secret",
            redirect_uri="http://testserver/auth/login",
        ),
        transport=httpx.MockTransport(handler),
    )
    app.dependency_overrides[get_hub_client] = lambda: hub
    return TestClient(app, follow_redirects=False)


def _token_handler(request):
    if request.url.path == "/oauth/token":
        return httpx.Response(200, json={"access_token": "hf_oauth"})
    if request.url.path == "/oauth/userinfo":
        if request.headers.get("Authorization") != "Bearer hf_oauth":
            return httpx.Response(401, json={"error": "Invalid credentials"})
        return httpx.Response(200, json={"sub": "1", "preferred_username": "alice", "email_verified": True})
    return httpx.Response(404)


def test_login_returns_authorize_url(app):
    client = _client(app, _token_handler)

    r = client.get("/api/login")

    assert r.status_code == 200
    body = r.json()
    assert body["ok"] is True
    url = httpx.URL(body["redirectUrl"])
    assert url.host == "hub.test"
    assert url.params["client_id"] == "cid"
    assert "hf_oauth_state" in r.headers["set-cookie"]


def test_callback_without_code_redirects_home(app):
    client = _client(app, _token_handler)

    r = client.get("/auth/login")

    assert r.status_code == 302
    assert r.headers["location"] == "/"
    assert "hf_token=" not in r.headers.get("set-cookie", "")


def test_callback_sets_token_cookie(app):
    client = _client(app, _token_handler)
    client.cookies.set("hf_oauth_state", "s1")

    r = client.get("/auth/login", params={"code": "abc", "state": "s1"})

    assert r.status_code == 302
    cookies = r.headers.get_list("set-cookie")
    token_cookie = next(c for c in cookies if c.startswith("hf_token="))
    assert "hf_oauth" in token_cookie
    assert "Max-Age=2592000" in token_cookie


def test_callback_with_mismatched_state_is_ignored(app):
    client = _client(app, _token_handler)
    client.cookies.set("hf_oauth_state", "expected")

    r = client.get("/auth/login", params={"code": "abc", "state": "forged"})

    assert r.status_code == 302
    assert not any(c.startswith("hf_token=") for c in r.headers.get_list("set-cookie"))


def test_callback_without_state_cookie_is_ignored(app):
    calls = []

    def handler(request):
        calls.append(request.url.path)
        return _token_handler(request)

    client = _client(app, handler)

    r = client.get("/auth/login", params={"code": "abc", "state": "guessed"})

    assert r.status_code == 302
    assert not any(c.startswith("hf_token=") for c in r.headers.get_list("set-cookie"))
    assert calls == []


def test_logout_clears_cookie(app):
    client = _client(app, _token_handler)

    r = client.get("/auth/logout")

    assert r.status_code == 302
    assert r.headers["set-cookie"].startswith('hf_token=""')


def test_me_returns_userinfo(app):
    client = _client(app, _token_handler)
    client.cookies.set("hf_token", "hf_oauth")

    r = client.get("/api/@me")

    assert r.status_code == 200
    assert r.json()["preferred_username"] == "alice"
    assert r.json()["email_verified"] is True


def test_me_with_bad_token_is_401(app):
    client = _client(app, _token_handler)
    client.cookies.set("hf_token", "stale")

    r = client.get("/api/@me")

    assert r.status_code == 401
    assert r.json()["ok"] is False


def test_me_in_local_mode(app, monkeypatch):
    monkeypatch.setenv("HF_TOKEN", "hf_server")
    client = _client(app, _token_handler)

    r = client.get("/api/@me")

    assert r.json() == {"preferred_username": "local-use", "isLocalUse": True}
