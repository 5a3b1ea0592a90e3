# -*- coding: utf-8 -*-
"""
Cozy stack admin API helper.

The admin API listens on a separate port and authenticates with HTTP basic
auth. Stacks usually serve it with a self-signed certificate, so certificate
verification is turned off for https admin URLs.

Admin settings live in a JSON file:

    {
        "default": {"url": "http://localhost:6060", "auth": "admin:secret"},
        "alice.cozy.tools:8080": {"url": "https://admin.example:6060"}
    }

A domain entry overrides the default one; COZY_ADMIN_URL and COZY_ADMIN_AUTH
fill in whatever is still missing.
"""

import json
import os
from urllib.parse import urlencode

import requests
import urllib3

from .errors import RemoteRequestError
from .stack_api import extract_error_reason, DEFAULT_TIMEOUT
from .utils import is_debug_enabled

DEFAULT_ADMIN_CONFIG_FILE = 'admin.json'


def load_admin_config(path=DEFAULT_ADMIN_CONFIG_FILE):
    """
    Read the admin configuration file.

    Returns:
        dict: Parsed configuration, empty when the file does not exist

    Raises:
        ValueError: If the file is not a JSON object
    """
    if not os.path.exists(path):
        return {}
    with open(path, 'r', encoding='utf-8') as f:
        config = json.load(f)
    if not isinstance(config, dict):
        raise ValueError(f"Admin config {path} must be a JSON object")
    return config


def get_admin_config_for_domain(domain, config=None):
    """
    Resolve the admin URL and credentials used for one instance domain.

    Args:
        domain (str): Instance domain, e.g. "alice.cozy.tools:8080"
        config (dict): Result of load_admin_config()

    Returns:
        dict: {'url': ..., 'auth': 'user:password'}

    Raises:
        ValueError: If no admin URL or credentials can be found
    """
    config = config or {}
    resolved = dict(config.get('default', {}))
    resolved.update(config.get(domain, {}))
    resolved.setdefault('url', os.environ.get('COZY_ADMIN_URL'))
    resolved.setdefault('auth', os.environ.get('COZY_ADMIN_AUTH'))

    if not resolved.get('url'):
        raise ValueError(f"No admin URL configured for {domain} (set COZY_ADMIN_URL or add it to the admin config)")
    if not resolved.get('auth') or ':' not in resolved['auth']:
        raise ValueError(f"No admin credentials configured for {domain} (expected 'user:password')")
    resolved['url'] = resolved['url'].rstrip('/')
    return resolved


class AdminClient:
    """Authenticated access to the admin endpoints of one stack"""

    def __init__(self, config=None, session=None):
        """
        Args:
            config (dict): Admin configuration (see load_admin_config())
            session (requests.Session): Optional session, mainly for tests
        """
        self.config = config or {}
        self.session = session or requests.Session()

    def admin_fetch(self, domain, route, method='GET'):
        """
        Call an admin route.

        Args:
            domain (str): Instance domain whose admin settings are used
            route (str): Route starting with '/'
            method (str): HTTP method

        Returns:
            requests.Response: The successful response

        Raises:
            RemoteRequestError: On any status >= 300 or network failure
        """
        admin = get_admin_config_for_domain(domain, self.config)
        user, password = admin['auth'].split(':', 1)
        url = f"{admin['url']}{route}"
        verify = not url.startswith('https')
        if not verify:
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

        if is_debug_enabled():
            print(f"[DEBUG] Admin {method} {url}")

        try:
            response = self.session.request(
                method, url,
                auth=(user, password),
                headers={'Content-Type': 'application/json', 'Accept': 'application/json'},
                verify=verify,
                timeout=DEFAULT_TIMEOUT
            )
        except requests.exceptions.RequestException as e:
            raise RemoteRequestError(None, str(e)[:200], url) from e

        if response.status_code >= 300:
            raise RemoteRequestError(response.status_code, extract_error_reason(response), url)
        return response

    def create_token(self, domain, doctypes):
        """
        Issue a CLI token for an instance.

        Args:
            domain (str): Instance domain
            doctypes (list): Doctypes the token gives access to

        Returns:
            str: The token
        """
        params = urlencode({'Domain': domain, 'Audience': 'cli', 'Scope': ' '.join(doctypes)})
        response = self.admin_fetch(domain, f"/instances/token?{params}", method='POST')
        return response.text.strip()

    def enable_debug(self, domain):
        """Turn on debug logs for an instance"""
        return self.admin_fetch(domain, f"/instances/{domain}/debug", method='POST')

    def disable_debug(self, domain):
        """Turn off debug logs for an instance"""
        return self.admin_fetch(domain, f"/instances/{domain}/debug", method='DELETE')
