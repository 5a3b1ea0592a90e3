# -*- coding: utf-8 -*-
"""
Cozy Import Package
===================

This package provides modular components for authorizing against a Cozy
instance and filling it with data: bulk document import, directory tree
upload, and collection drop.

Modules:
--------
- config: Configuration and argument parsing
- token_store: Access token persistence
- callback_server: Local listener capturing the OAuth redirect
- auth: OAuth authorization flow
- stack_api: Cozy stack API operations
- importer: Bulk document import and collection drop
- file_handler: File tree description and content types
- uploader: Directory tree upload
- admin: Stack admin API helper
- monitoring: Run statistics
- utils: Shared utility functions

Usage Example:
-------------
    from cozy_import.auth import Authorizer
    from cozy_import.importer import BulkImporter

    client = Authorizer().authorize_from_stored('http://cozy.tools:8080')
    BulkImporter(client).import_data({'io.cozy.contacts': [{'name': 'A'}]})
"""

__version__ = "1.0.0"

# Main exports for convenience
from .errors import (
    CozyImportError,
    TokenNotFoundError,
    TokenParseError,
    CallbackError,
    AuthorizationError,
    RemoteRequestError,
    UploadError,
    describe_remote_error
)
from .token_store import TokenStore
from .callback_server import CallbackServer, await_redirect
from .auth import Authorizer, AuthState
from .stack_api import CozyClient
from .importer import BulkImporter, ImportResult, DropResult
from .file_handler import FileNode, FolderNode, build_directory_tree, load_tree_description, guess_content_type
from .uploader import TreeUploader, UploadResult
from .monitoring import import_stats

__all__ = [
    # Errors
    'CozyImportError',
    'TokenNotFoundError',
    'TokenParseError',
    'CallbackError',
    'AuthorizationError',
    'RemoteRequestError',
    'UploadError',
    'describe_remote_error',
    # Authorization
    'TokenStore',
    'CallbackServer',
    'await_redirect',
    'Authorizer',
    'AuthState',
    'CozyClient',
    # Import
    'BulkImporter',
    'ImportResult',
    'DropResult',
    # Tree upload
    'FileNode',
    'FolderNode',
    'build_directory_tree',
    'load_tree_description',
    'guess_content_type',
    'TreeUploader',
    'UploadResult',
    # Monitoring
    'import_stats',
]
