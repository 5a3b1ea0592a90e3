# -*- coding: utf-8 -*-
"""
Local HTTP listener capturing the OAuth redirect.

After the user approves access in the browser, the stack redirects to
``http://localhost:<port>/do_access?code=...&state=...``. This module starts a
short-lived listener on that port, opens the consent page, and returns the
first matching redirect URL so nobody has to copy it by hand.
"""

import webbrowser
from http.server import BaseHTTPRequestHandler, HTTPServer

from .errors import CallbackError
from .utils import is_debug_enabled

DEFAULT_CALLBACK_PORT = 3333
DEFAULT_CALLBACK_PATH = '/do_access'


class _RedirectHandler(BaseHTTPRequestHandler):
    """Answers every request; records the first one matching the redirect path"""

    def do_GET(self):
        server = self.server
        if server.captured_url is None and self.path.startswith(server.path_prefix):
            server.captured_url = f"http://{server.public_host}:{server.server_port}{self.path}"
            status = 200
        else:
            status = 404
        self.send_response(status)
        self.send_header('Content-Length', '0')
        self.end_headers()

    def log_message(self, format, *args):
        if is_debug_enabled():
            print(f"[DEBUG] Callback server: {format % args}")


class _CallbackHTTPServer(HTTPServer):
    def __init__(self, address, path_prefix, public_host):
        self.path_prefix = path_prefix
        self.public_host = public_host
        self.captured_url = None
        super().__init__(address, _RedirectHandler)


class CallbackServer:
    """
    Single-shot redirect listener.

    Use it as a context manager so the socket is released on every exit path:

        with CallbackServer(3333) as server:
            redirect_url = server.wait_for_redirect(authorize_url)
    """

    def __init__(self, port=DEFAULT_CALLBACK_PORT, path_prefix=DEFAULT_CALLBACK_PATH, host='localhost'):
        self.port = port
        self.path_prefix = path_prefix
        self.host = host
        self._server = None

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    def open(self):
        """
        Bind the listener.

        Raises:
            CallbackError: If the port cannot be bound (e.g., already in use)
        """
        try:
            self._server = _CallbackHTTPServer((self.host, self.port), self.path_prefix, self.host)
        except OSError as e:
            raise CallbackError(f"Could not listen on {self.host}:{self.port}: {e}") from e
        if is_debug_enabled():
            print(f"[DEBUG] Callback server listening on {self.host}:{self.port}")

    def close(self):
        """Release the listening socket. Safe to call more than once."""
        if self._server is not None:
            self._server.server_close()
            self._server = None

    def wait_for_redirect(self, authorize_url):
        """
        Open the consent page and block until the redirect arrives.

        There is no timeout: the call returns once the user has gone through
        the consent page in the browser.

        Args:
            authorize_url (str): Consent page to open in the default browser

        Returns:
            str: Full redirect URL, query string included
        """
        if self._server is None:
            raise CallbackError("Callback server is not listening")

        print("[*] Opening the authorization page in your browser...")
        print(f"    If it does not open, visit: {authorize_url}")
        try:
            if not webbrowser.open(authorize_url):
                print("[!] Could not open a browser, waiting for the redirect anyway")
        except webbrowser.Error as e:
            print(f"[!] Could not open a browser: {e}")

        while self._server.captured_url is None:
            self._server.handle_request()
        return self._server.captured_url


def await_redirect(authorize_url, port=DEFAULT_CALLBACK_PORT, path_prefix=DEFAULT_CALLBACK_PATH):
    """
    Bind, wait for the redirect and close, in one call.

    Args:
        authorize_url (str): Consent page to open in the default browser
        port (int): Local port the redirect URI points at
        path_prefix (str): Path the redirect URI points at

    Returns:
        str: Full redirect URL

    Raises:
        CallbackError: If the port cannot be bound
    """
    with CallbackServer(port, path_prefix) as server:
        return server.wait_for_redirect(authorize_url)
