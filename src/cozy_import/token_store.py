# -*- coding: utf-8 -*-
"""
Persistence of the access token obtained from the OAuth flow.

The token file is the only state shared between two runs of the tool. It is
a single JSON object ``{"token": "<access token>"}`` that is replaced as a
whole every time a new token is generated.
"""

import json
import os
import tempfile
from pathlib import Path

from .errors import TokenNotFoundError, TokenParseError

DEFAULT_TOKEN_FILE = 'token.json'


class TokenStore:
    """Reads and writes the persisted access token"""

    def __init__(self, path=DEFAULT_TOKEN_FILE):
        """
        Args:
            path (str or Path): Location of the token file (default: ./token.json)
        """
        self.path = Path(path)

    def exists(self):
        return self.path.is_file()

    def save(self, token):
        """
        Write the token, replacing any previous content.

        The content is written to a temporary file in the same directory and
        moved over the token file, so a reader never sees a partial file.

        Args:
            token (str): Access token to persist

        Raises:
            OSError: If the file cannot be written
        """
        fd, temp_path = tempfile.mkstemp(prefix='.token_', suffix='.json', dir=self.path.parent)
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump({'token': token}, f)
            os.replace(temp_path, self.path)
        except BaseException:
            if os.path.exists(temp_path):
                os.remove(temp_path)
            raise

    def load(self):
        """
        Read the stored token.

        Returns:
            str: The access token

        Raises:
            TokenNotFoundError: If the token file does not exist
            TokenParseError: If the file is not a valid token document
        """
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                content = f.read()
        except FileNotFoundError:
            raise TokenNotFoundError(self.path) from None
        except UnicodeDecodeError as e:
            raise TokenParseError(self.path, f"not valid UTF-8 ({e})") from e

        try:
            stored = json.loads(content)
        except json.JSONDecodeError as e:
            raise TokenParseError(self.path, f"not valid JSON ({e})") from e

        if not isinstance(stored, dict):
            raise TokenParseError(self.path, "expected a JSON object")
        token = stored.get('token')
        if not isinstance(token, str) or not token:
            raise TokenParseError(self.path, "missing 'token' string")
        return token
