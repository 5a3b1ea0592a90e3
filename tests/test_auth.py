"""Tests for the OAuth authorization flow."""

from __future__ import annotations

import json
import os
from unittest.mock import MagicMock
from urllib.parse import parse_qs, urlparse

import pytest
import requests
from requests_oauthlib import OAuth2Session

from cozy_import import __version__
from cozy_import.auth import (
    AuthState,
    Authorizer,
    allow_insecure_instance,
    build_scopes,
    secure_redirect_url,
)
from cozy_import.errors import AuthorizationError, CallbackError, TokenNotFoundError, TokenParseError
from cozy_import.token_store import TokenStore

COZY_URL = "https://alice.cozy.example"
GRANTED = {"access_token": "new-token", "token_type": "bearer", "refresh_token": "refresh"}


def _response(status_code=200, json_body=None, text=""):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = json_body if json_body is not None else {}
    response.text = text
    return response


def _session(registration=None):
    """Session answering the client registration request."""
    session = MagicMock()

    def request(method, url, **kwargs):
        if url.endswith("/auth/register"):
            if isinstance(registration, Exception):
                raise registration
            return registration or _response(201, {"client_id": "client-1", "client_secret": "secret-1"})
        raise AssertionError(f"Unexpected request {method} {url}")

    session.request.side_effect = request
    return session


@pytest.fixture
def token_endpoint(monkeypatch):
    """Replace the HTTP call made by OAuth2Session.fetch_token.

    ``reply`` is the JSON body served (or an exception raised); every call is
    kept in ``calls``.
    """

    class TokenEndpoint:
        reply = GRANTED
        calls = []

    def request(self, method, url, **kwargs):
        TokenEndpoint.calls.append((method, url, kwargs))
        if isinstance(TokenEndpoint.reply, Exception):
            raise TokenEndpoint.reply
        response = MagicMock()
        response.status_code = 200
        response.text = json.dumps(TokenEndpoint.reply)
        return response

    TokenEndpoint.calls = []
    monkeypatch.setattr(OAuth2Session, "request", request)
    return TokenEndpoint


class FakeBrowser:
    """Redirect waiter that approves the consent page it is given."""

    def __init__(self, redirect_query=None):
        self.redirect_query = redirect_query
        self.authorize_url = None

    def __call__(self, authorize_url, port, path):
        self.authorize_url = authorize_url
        state = parse_qs(urlparse(authorize_url).query)["state"][0]
        query = self.redirect_query or f"code=the-code&state={state}"
        return f"http://localhost:{port}{path}?{query}"


def _authorizer(tmp_path, browser=None, session=None):
    return Authorizer(
        token_store=TokenStore(tmp_path / "token.json"),
        redirect_waiter=browser or FakeBrowser(),
        session=session or _session(),
    )


# ============================================================================
# Helpers
# ============================================================================


def test_build_scopes():
    assert build_scopes(["io.cozy.contacts", "io.cozy.files"]) == [
        "io.cozy.contacts:ALL",
        "io.cozy.files:ALL",
    ]


@pytest.mark.parametrize(
    "url,expected",
    [
        ("http://localhost:3333/do_access?code=a", "https://localhost:3333/do_access?code=a"),
        ("https://localhost:3333/do_access?code=a", "https://localhost:3333/do_access?code=a"),
    ],
    ids=["http", "already_https"],
)
def test_secure_redirect_url(url, expected):
    assert secure_redirect_url(url) == expected


def test_insecure_transport_only_for_http_instances():
    allow_insecure_instance(COZY_URL)
    assert "OAUTHLIB_INSECURE_TRANSPORT" not in os.environ

    allow_insecure_instance("http://cozy.tools:8080")
    assert os.environ["OAUTHLIB_INSECURE_TRANSPORT"] == "1"


# ============================================================================
# Browser flow
# ============================================================================


def test_authorize_new_saves_token_and_returns_client(tmp_path, token_endpoint):
    store = TokenStore(tmp_path / "token.json")
    session = _session()
    browser = FakeBrowser()
    authorizer = Authorizer(token_store=store, redirect_waiter=browser, session=session)

    client = authorizer.authorize_new(COZY_URL, ["io.cozy.contacts"])

    assert client.token == "new-token"
    assert client.cozy_url == COZY_URL
    assert store.load() == "new-token"
    assert authorizer.state == AuthState.TOKEN_ACQUIRED

    register_call = session.request.call_args_list[0]
    registration = register_call.kwargs["json"]
    assert registration["redirect_uris"] == ["http://localhost:3333/do_access"]
    assert registration["client_name"] == "COZY-IMPORT"
    assert registration["software_id"] == f"COZY-IMPORT-{__version__}"
    assert "Authorization" not in register_call.kwargs["headers"]

    consent = urlparse(browser.authorize_url)
    assert consent.path == "/auth/authorize"
    params = parse_qs(consent.query)
    assert params["client_id"] == ["client-1"]
    assert params["scope"] == ["io.cozy.contacts:ALL"]
    assert params["response_type"] == ["code"]
    assert params["redirect_uri"] == ["http://localhost:3333/do_access"]
    assert params["state"][0]

    [(method, url, kwargs)] = token_endpoint.calls
    assert method == "POST"
    assert url == f"{COZY_URL}/auth/access_token"
    sent = kwargs["data"]
    assert sent["grant_type"] == "authorization_code"
    assert sent["code"] == "the-code"
    assert sent["client_id"] == "client-1"
    assert sent["client_secret"] == "secret-1"


def test_scopes_for_several_doctypes_are_space_joined(tmp_path, token_endpoint):
    browser = FakeBrowser()
    _authorizer(tmp_path, browser=browser).authorize_new(COZY_URL, ["io.cozy.contacts", "io.cozy.files"])

    scope = parse_qs(urlparse(browser.authorize_url).query)["scope"]
    assert scope == ["io.cozy.contacts:ALL io.cozy.files:ALL"]


def test_rejected_code_exchange_raises_and_keeps_old_token(tmp_path, token_endpoint):
    token_endpoint.reply = {"error": "invalid_grant"}
    store = TokenStore(tmp_path / "token.json")
    store.save("old-token")
    authorizer = Authorizer(token_store=store, redirect_waiter=FakeBrowser(), session=_session())

    with pytest.raises(AuthorizationError, match="invalid_grant"):
        authorizer.authorize_new(COZY_URL, ["io.cozy.contacts"])

    assert store.load() == "old-token"
    assert authorizer.state == AuthState.AWAITING_REDIRECT


def test_unreachable_token_endpoint_raises(tmp_path, token_endpoint):
    token_endpoint.reply = requests.exceptions.ConnectionError("refused")

    with pytest.raises(AuthorizationError, match="Code exchange failed"):
        _authorizer(tmp_path).authorize_new(COZY_URL, ["io.cozy.contacts"])
    assert not (tmp_path / "token.json").exists()


REJECTED_REDIRECTS = [
    ("error=access_denied", "denied"),
    ("code=abc&state=forged", "state_mismatch"),
]


@pytest.mark.parametrize("query,_desc", REJECTED_REDIRECTS, ids=[r[1] for r in REJECTED_REDIRECTS])
def test_rejected_redirect_raises_without_exchange(tmp_path, token_endpoint, query, _desc):
    authorizer = _authorizer(tmp_path, browser=FakeBrowser(redirect_query=query))

    with pytest.raises(AuthorizationError):
        authorizer.authorize_new(COZY_URL, ["io.cozy.contacts"])

    assert token_endpoint.calls == []
    assert not (tmp_path / "token.json").exists()


def test_redirect_without_code_raises(tmp_path, token_endpoint):
    class NoCodeBrowser(FakeBrowser):
        def __call__(self, authorize_url, port, path):
            state = parse_qs(urlparse(authorize_url).query)["state"][0]
            return f"http://localhost:{port}{path}?state={state}"

    with pytest.raises(AuthorizationError):
        _authorizer(tmp_path, browser=NoCodeBrowser()).authorize_new(COZY_URL, ["io.cozy.contacts"])
    assert token_endpoint.calls == []


def test_callback_error_propagates(tmp_path):
    def failing_waiter(authorize_url, port, path):
        raise CallbackError("port in use")

    with pytest.raises(CallbackError):
        _authorizer(tmp_path, browser=failing_waiter).authorize_new(COZY_URL, ["io.cozy.contacts"])
    assert not (tmp_path / "token.json").exists()


# ============================================================================
# Client registration
# ============================================================================

BAD_REGISTRATIONS = [
    (_response(201, {"client_secret": "secret-1"}), "no_client_id"),
    (_response(201, {"client_id": "client-1"}), "no_client_secret"),
    (_response(201, ["client-1"]), "not_an_object"),
]


@pytest.mark.parametrize("reply,_desc", BAD_REGISTRATIONS, ids=[r[1] for r in BAD_REGISTRATIONS])
def test_unusable_registration_raises_authorization_error(tmp_path, reply, _desc):
    with pytest.raises(AuthorizationError):
        _authorizer(tmp_path, session=_session(reply)).authorize_new(COZY_URL, ["io.cozy.contacts"])


def test_registration_with_invalid_json_returns_no_client(tmp_path, capsys):
    reply = _response(201)
    reply.json.side_effect = ValueError("Expecting value")

    authorizer = _authorizer(tmp_path, session=_session(reply))

    assert authorizer.get_client(True, COZY_URL, ["io.cozy.contacts"]) is None
    assert "Client registration returned invalid JSON" in capsys.readouterr().out


# ============================================================================
# Stored token
# ============================================================================


def test_authorize_from_stored_makes_no_request(tmp_path):
    store = TokenStore(tmp_path / "token.json")
    store.save("stored-token")
    session = MagicMock()
    authorizer = Authorizer(token_store=store, session=session)

    client = authorizer.authorize_from_stored(COZY_URL + "/")

    assert client.token == "stored-token"
    assert client.cozy_url == COZY_URL
    assert authorizer.state == AuthState.TOKEN_ACQUIRED
    session.request.assert_not_called()


def test_authorize_from_stored_without_token(tmp_path):
    authorizer = Authorizer(token_store=TokenStore(tmp_path / "token.json"))
    with pytest.raises(TokenNotFoundError):
        authorizer.authorize_from_stored(COZY_URL)
    assert authorizer.state == AuthState.UNAUTHENTICATED


def test_get_client_prints_guidance_when_no_token(tmp_path, capsys):
    authorizer = Authorizer(token_store=TokenStore(tmp_path / "token.json"))

    assert authorizer.get_client(False, COZY_URL, ["io.cozy.contacts"]) is None
    assert "No stored token found" in capsys.readouterr().out


def test_get_client_with_undecodable_token_file_returns_none(tmp_path, capsys):
    path = tmp_path / "token.json"
    path.write_bytes(b'{"token": "\xff\xfe"}')
    authorizer = Authorizer(token_store=TokenStore(path))

    with pytest.raises(TokenParseError):
        authorizer.authorize_from_stored(COZY_URL)
    assert authorizer.get_client(False, COZY_URL) is None
    assert "Could not get a client" in capsys.readouterr().out


def test_get_client_uses_browser_flow_when_asked(tmp_path, token_endpoint):
    client = _authorizer(tmp_path).get_client(True, COZY_URL, ("io.cozy.contacts",))
    assert client.token == "new-token"
