# -*- coding: utf-8 -*-
"""
OAuth authentication module for cozy-import.

This module registers the tool as an OAuth client of a Cozy instance, drives
the authorization-code flow through the user's browser, and persists the
resulting access token so later runs can skip the browser entirely.
"""

import os
from urllib.parse import urlparse

import requests
from oauthlib.oauth2 import OAuth2Error
from requests_oauthlib import OAuth2Session

from . import __version__
from .callback_server import await_redirect, DEFAULT_CALLBACK_PORT, DEFAULT_CALLBACK_PATH
from .errors import AuthorizationError, TokenNotFoundError, CozyImportError
from .stack_api import CozyClient, DEFAULT_TIMEOUT
from .token_store import TokenStore
from .utils import is_debug_enabled

CLIENT_NAME = 'cozy-import'.upper()
SOFTWARE_ID = f"{CLIENT_NAME}-{__version__}"


class AuthState:
    """Authorization flow states. There is no transition back to an earlier state."""
    UNAUTHENTICATED = 'unauthenticated'
    AWAITING_REDIRECT = 'awaiting_redirect'
    TOKEN_ACQUIRED = 'token_acquired'


def build_scopes(doctypes):
    """
    Compute the permission scopes requested for a list of doctypes.

    Example:
        >>> build_scopes(['io.cozy.contacts'])
        ['io.cozy.contacts:ALL']
    """
    return [f"{doctype}:ALL" for doctype in doctypes]


def secure_redirect_url(redirect_url):
    """
    Rewrite the captured localhost redirect with an https scheme.

    oauthlib refuses to parse an authorization response received over plain
    http. The redirect never leaves this machine, so only the scheme changes.
    """
    if redirect_url.startswith('http://'):
        return 'https://' + redirect_url[len('http://'):]
    return redirect_url


def allow_insecure_instance(cozy_url):
    """Let oauthlib talk to a plain http instance (local development stacks)."""
    if urlparse(cozy_url).scheme == 'http':
        os.environ['OAUTHLIB_INSECURE_TRANSPORT'] = '1'
        if is_debug_enabled():
            print(f"[DEBUG] {cozy_url} is not served over https, allowing insecure OAuth transport")


class Authorizer:
    """
    Produces a ready CozyClient, either through the browser flow or from the
    stored token.

    Which entry point to use is the caller's decision (the --generate-token
    flag of the CLI); nothing here falls back from one path to the other.
    """

    def __init__(self, token_store=None, callback_port=DEFAULT_CALLBACK_PORT,
                 callback_path=DEFAULT_CALLBACK_PATH, redirect_waiter=await_redirect, session=None):
        """
        Args:
            token_store (TokenStore): Where the token is persisted (default: ./token.json)
            callback_port (int): Local port of the redirect URI
            callback_path (str): Path of the redirect URI
            redirect_waiter (callable): ``(authorize_url, port, path) -> redirect_url``
            session (requests.Session): Optional session shared with the created client
        """
        self.token_store = token_store or TokenStore()
        self.callback_port = callback_port
        self.callback_path = callback_path
        self.redirect_waiter = redirect_waiter
        self.session = session
        self.state = AuthState.UNAUTHENTICATED

    @property
    def redirect_uri(self):
        return f"http://localhost:{self.callback_port}{self.callback_path}"

    def _new_client(self, cozy_url, token=None):
        return CozyClient(cozy_url, token=token, session=self.session)

    def register_client(self, client, doctypes):
        """
        Register a new OAuth client on the instance.

        Returns:
            dict: Registration with 'client_id' and 'client_secret'

        Raises:
            RemoteRequestError: If the registration request fails
            AuthorizationError: If the reply is not a usable registration
        """
        registration = {
            'redirect_uris': [self.redirect_uri],
            'client_name': CLIENT_NAME,
            'software_id': SOFTWARE_ID,
            'software_version': __version__,
        }
        response = client.request(
            'POST', '/auth/register',
            json_data=registration,
            headers={'Content-Type': 'application/json'},
            authenticated=False
        )
        try:
            registered = response.json()
        except ValueError as e:
            raise AuthorizationError(f"Client registration returned invalid JSON: {e}") from e
        if not isinstance(registered, dict) or not registered.get('client_id') or not registered.get('client_secret'):
            raise AuthorizationError("Client registration returned no client_id/client_secret")

        if is_debug_enabled():
            print(f"[DEBUG] Registered OAuth client {registered['client_id']} "
                  f"for scopes {' '.join(build_scopes(doctypes))}")
        return registered

    def authorize_new(self, cozy_url, doctypes):
        """
        Run the browser authorization flow and persist the new token.

        Args:
            cozy_url (str): Instance URL
            doctypes (list): Doctypes the token must give full access to

        Returns:
            CozyClient: Client bound to the new token

        Raises:
            CallbackError: If the local redirect listener cannot start
            AuthorizationError: If access is denied or the code exchange is rejected
            RemoteRequestError: If client registration fails
        """
        client = self._new_client(cozy_url)
        registered = self.register_client(client, doctypes)
        allow_insecure_instance(client.cozy_url)

        oauth = OAuth2Session(
            registered['client_id'],
            redirect_uri=self.redirect_uri,
            scope=build_scopes(doctypes)
        )
        authorize_url, _state = oauth.authorization_url(f"{client.cozy_url}/auth/authorize")

        self.state = AuthState.AWAITING_REDIRECT
        redirect_url = self.redirect_waiter(authorize_url, self.callback_port, self.callback_path)

        try:
            token = oauth.fetch_token(
                f"{client.cozy_url}/auth/access_token",
                authorization_response=secure_redirect_url(redirect_url),
                client_secret=registered['client_secret'],
                include_client_id=True,
                timeout=DEFAULT_TIMEOUT
            )
        except OAuth2Error as e:
            raise AuthorizationError(f"Authorization rejected ({e.error}): {e.description}") from e
        except Warning as e:
            # oauthlib raises Warning when the granted scope differs from the requested one
            raise AuthorizationError(f"Authorization rejected: {e}") from e
        except requests.exceptions.RequestException as e:
            raise AuthorizationError(f"Code exchange failed: {e}") from e

        access_token = token['access_token']
        self.token_store.save(access_token)
        client.token = access_token
        self.state = AuthState.TOKEN_ACQUIRED
        print(f"[✓] New token saved to {self.token_store.path}")
        return client

    def authorize_from_stored(self, cozy_url):
        """
        Build a client from the stored token, without any network call.

        Raises:
            TokenNotFoundError: If no token has been stored yet
            TokenParseError: If the token file is corrupt
        """
        token = self.token_store.load()
        self.state = AuthState.TOKEN_ACQUIRED
        return self._new_client(cozy_url, token=token)

    def get_client(self, generate_new_token, cozy_url, doctypes=()):
        """
        Convenience wrapper around the two entry points, for the CLI.

        Args:
            generate_new_token (bool): Run the browser flow instead of using the stored token
            cozy_url (str): Instance URL
            doctypes (list): Doctypes to request access to (browser flow only)

        Returns:
            CozyClient or None: The client, or None after printing why it could not be built
        """
        try:
            if generate_new_token:
                return self.authorize_new(cozy_url, list(doctypes))
            return self.authorize_from_stored(cozy_url)
        except TokenNotFoundError:
            print('[!] No stored token found, are you sure you generated one? '
                  'Use option "--generate-token" if you want to generate one next time.')
        except CozyImportError as e:
            print(f"[!] Could not get a client: {e}")
        return None
