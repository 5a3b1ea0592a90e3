# -*- coding: utf-8 -*-
"""
Exception types for cozy-import.

Every failure the tool knows how to report is one of these classes, so callers
switch on the exception type instead of matching message strings.
"""


class CozyImportError(Exception):
    """Base class for all cozy-import errors"""


class TokenNotFoundError(CozyImportError):
    """No token file exists yet"""

    def __init__(self, path):
        self.path = path
        super().__init__(f"No stored token found at {path}")


class TokenParseError(CozyImportError):
    """The token file exists but does not hold a valid credential"""

    def __init__(self, path, detail):
        self.path = path
        self.detail = detail
        super().__init__(f"Invalid token file {path}: {detail}")


class CallbackError(CozyImportError):
    """The local callback listener could not be started"""


class AuthorizationError(CozyImportError):
    """The authorization redirect or the code exchange was rejected"""


class RemoteRequestError(CozyImportError):
    """
    A request to the remote stack failed.

    Attributes:
        status (int or None): HTTP status code, None when no response was received
        reason (str or None): Reason text reported by the service, if any
        url (str or None): Requested URL
    """

    def __init__(self, status, reason=None, url=None):
        self.status = status
        self.reason = reason
        self.url = url
        if status is None:
            message = f"Request failed: {reason}"
        elif reason:
            message = f"Request failed with status {status}: {reason}"
        else:
            message = f"Request failed with status {status}"
        super().__init__(message)


class UploadError(CozyImportError):
    """Upload of one tree node failed; wraps the underlying cause"""

    def __init__(self, node, cause):
        self.node = node
        self.cause = cause
        super().__init__(f"Failed to upload {node.name}: {cause}")


FORBIDDEN_HINT = (
    'The server replied with 403 forbidden; are you sure the last generated token '
    'is still valid and has the correct permissions? You can generate a new one '
    'with the "--generate-token" option.'
)


def describe_remote_error(error):
    """
    Turn a failure into the message shown to the user.

    - 400: the reason reported by the service
    - 403: a hint about token validity and scopes
    - anything else: the error itself

    Args:
        error (Exception): The failure to describe

    Returns:
        str: User-facing message
    """
    if isinstance(error, RemoteRequestError):
        if error.status == 400:
            return error.reason or str(error)
        if error.status == 403:
            return FORBIDDEN_HINT
    return str(error)
