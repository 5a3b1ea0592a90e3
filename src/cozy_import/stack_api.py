# -*- coding: utf-8 -*-
"""
Cozy stack API operations.

This module provides the client used by every other operation: document
creation/deletion/query on ``/data``, file and directory creation on
``/files``, and the unauthenticated OAuth calls on ``/auth``.

Every non-2xx response is raised as a RemoteRequestError carrying the HTTP
status and the reason reported by the stack.
"""

import requests

from .errors import RemoteRequestError
from .utils import is_debug_enabled

# Default request timeout in seconds (connect, read)
DEFAULT_TIMEOUT = (10, 300)


def extract_error_reason(response):
    """
    Extract the reason text from a stack error response.

    The stack answers either ``{"error": "..."}`` or a JSON-API document
    ``{"errors": [{"title": ..., "detail": ...}]}``.

    Args:
        response (requests.Response): The failed response

    Returns:
        str or None: The reason text, or the start of the raw body
    """
    try:
        body = response.json()
    except ValueError:
        text = response.text.strip()
        return text[:300] if text else None

    if isinstance(body, dict):
        if isinstance(body.get('error'), str):
            return body['error']
        errors = body.get('errors')
        if isinstance(errors, list) and errors:
            first = errors[0]
            if isinstance(first, dict):
                return first.get('detail') or first.get('title')
    return response.text[:300]


def _jsonapi_to_doc(body):
    """Flatten a JSON-API ``{"data": {"id", "attributes"}}`` document into a plain dict with ``_id``"""
    data = body.get('data', body) if isinstance(body, dict) else {}
    doc = dict(data.get('attributes', {}))
    doc['_id'] = data.get('id')
    if 'rev' in data.get('meta', {}):
        doc['_rev'] = data['meta']['rev']
    return doc


class CozyClient:
    """
    Authenticated handle on one Cozy instance.

    Attributes:
        cozy_url (str): Base URL of the instance, without trailing slash
        token (str or None): OAuth access token sent as a Bearer token
    """

    def __init__(self, cozy_url, token=None, session=None, timeout=DEFAULT_TIMEOUT):
        self.cozy_url = cozy_url.rstrip('/')
        self.token = token
        self.session = session or requests.Session()
        self.timeout = timeout

    def request(self, method, path, json_data=None, data=None, params=None, headers=None, authenticated=True):
        """
        Make a request against the instance.

        Args:
            method (str): HTTP method ('GET', 'POST', 'DELETE', ...)
            path (str): Path starting with '/', appended to the instance URL
            json_data (dict): JSON body (mutually exclusive with data)
            data (bytes, dict or file object): Raw, form-encoded or streamed body
            params (dict): Query string parameters
            headers (dict): Extra headers
            authenticated (bool): Send the Bearer token (default: True)

        Returns:
            requests.Response: The successful response

        Raises:
            RemoteRequestError: On any non-2xx status or network failure
        """
        url = f"{self.cozy_url}{path}"
        all_headers = {'Accept': 'application/json'}
        if authenticated and self.token:
            all_headers['Authorization'] = f"Bearer {self.token}"
        if headers:
            all_headers.update(headers)

        if is_debug_enabled():
            print(f"[DEBUG] {method} {url}")

        try:
            response = self.session.request(
                method, url,
                headers=all_headers,
                json=json_data,
                data=data,
                params=params,
                timeout=self.timeout
            )
        except requests.exceptions.SSLError as e:
            print("[!] SSL/TLS certificate error while contacting the instance.")
            print("[!] Check the instance URL and your system certificate store.")
            raise RemoteRequestError(None, f"SSL error: {str(e)[:200]}", url) from e
        except requests.exceptions.ConnectionError as e:
            raise RemoteRequestError(None, f"Connection failed: {str(e)[:200]}", url) from e
        except requests.exceptions.RequestException as e:
            raise RemoteRequestError(None, str(e)[:200], url) from e

        if response.status_code >= 300:
            reason = extract_error_reason(response)
            if is_debug_enabled():
                print(f"[DEBUG] {method} {url} -> {response.status_code}: {reason}")
            raise RemoteRequestError(response.status_code, reason, url)

        return response

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def create_document(self, doctype, attributes):
        """
        Create one document.

        Args:
            doctype (str): Doctype, e.g. "io.cozy.contacts"
            attributes (dict): Document content

        Returns:
            dict: The created document, including its generated ``_id`` and ``_rev``
        """
        response = self.request('POST', f"/data/{doctype}/", json_data=attributes)
        body = response.json()
        doc = dict(body.get('data') or {})
        doc.setdefault('_id', body.get('id'))
        doc.setdefault('_rev', body.get('rev'))
        return doc

    def delete_document(self, doctype, doc):
        """
        Delete one document.

        Args:
            doctype (str): Doctype of the document
            doc (dict): Document with ``_id`` and ``_rev``

        Returns:
            dict: Stack response, ``{"id", "rev", "deleted": true}``
        """
        response = self.request('DELETE', f"/data/{doctype}/{doc['_id']}", params={'rev': doc['_rev']})
        return response.json()

    def define_index(self, doctype, fields):
        """
        Create (or reuse) a mango index on the given fields.

        Returns:
            dict: Index reference with 'doctype', 'name' and 'fields'
        """
        response = self.request('POST', f"/data/{doctype}/_index", json_data={'index': {'fields': fields}})
        body = response.json()
        return {
            'doctype': doctype,
            'name': body.get('id') or body.get('name'),
            'fields': fields,
        }

    def query(self, index_ref, selector, fields=None):
        """
        Run a mango query against a previously defined index.

        Args:
            index_ref (dict): Result of define_index()
            selector (dict): Mango selector
            fields (list): Fields to return (default: whole documents)

        Returns:
            list: Matching documents
        """
        body = {'use_index': index_ref['name'], 'selector': selector}
        if fields:
            body['fields'] = fields
        response = self.request('POST', f"/data/{index_ref['doctype']}/_find", json_data=body)
        return response.json().get('docs', [])

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    def create_directory(self, name, dir_id=''):
        """
        Create a directory.

        Args:
            name (str): Directory name
            dir_id (str): Parent directory id; empty for the root directory

        Returns:
            dict: Created directory with its generated ``_id``
        """
        response = self.request(
            'POST', f"/files/{dir_id or ''}",
            params={'Type': 'directory', 'Name': name}
        )
        return _jsonapi_to_doc(response.json())

    def create_file(self, stream, name, content_type='', dir_id=''):
        """
        Create a file from a byte stream.

        Args:
            stream: Binary file object (streamed, not read into memory)
            name (str): File name
            content_type (str): MIME type; omitted from the request when empty
            dir_id (str): Parent directory id; empty for the root directory

        Returns:
            dict: Created file with its generated ``_id``
        """
        headers = {'Content-Type': content_type} if content_type else None
        response = self.request(
            'POST', f"/files/{dir_id or ''}",
            params={'Type': 'file', 'Name': name},
            data=stream,
            headers=headers
        )
        return _jsonapi_to_doc(response.json())
