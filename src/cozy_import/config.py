# -*- coding: utf-8 -*-
"""
Configuration management for cozy-import.

This module handles command-line argument parsing and configuration setup.
Defaults come from the environment (and a local .env file, loaded with
python-dotenv), command-line options override them.
"""

import argparse
import os

from dotenv import find_dotenv, load_dotenv

from . import __version__
from .admin import DEFAULT_ADMIN_CONFIG_FILE
from .token_store import DEFAULT_TOKEN_FILE

COMMANDS = ('import', 'import-dir', 'drop', 'token', 'debug')


def build_parser():
    """Build the argparse parser for the cozy-import command line."""
    parser = argparse.ArgumentParser(
        prog='cozy-import',
        description='Import documents and files into a Cozy instance.'
    )
    parser.add_argument('--version', action='version', version=f"%(prog)s {__version__}")
    parser.add_argument('-u', '--url', default=os.environ.get('COZY_URL', 'http://cozy.tools:8080'),
                        help='Cozy instance URL (env: COZY_URL)')
    parser.add_argument('-t', '--generate-token', action='store_true',
                        help='Go through the browser authorization flow and store a new token')
    parser.add_argument('--token-file', default=os.environ.get('COZY_TOKEN_FILE', DEFAULT_TOKEN_FILE),
                        help='Where the access token is stored (env: COZY_TOKEN_FILE)')
    parser.add_argument('--admin-config', default=os.environ.get('COZY_ADMIN_CONFIG', DEFAULT_ADMIN_CONFIG_FILE),
                        help='Admin API settings file (env: COZY_ADMIN_CONFIG)')
    parser.add_argument('-w', '--max-workers', type=int, default=int(os.environ.get('COZY_MAX_WORKERS', '4')),
                        help='Concurrent requests per doctype / per upload (env: COZY_MAX_WORKERS)')
    parser.add_argument('--debug', action='store_true', default=os.environ.get('DEBUG', 'false').lower() == 'true',
                        help='Verbose output (env: DEBUG)')

    subparsers = parser.add_subparsers(dest='command', required=True)

    import_parser = subparsers.add_parser('import', help='Import documents from a JSON file')
    import_parser.add_argument('data_file', help='JSON object mapping doctypes to lists of documents')

    dir_parser = subparsers.add_parser('import-dir', help='Upload a directory tree')
    dir_parser.add_argument('path', help='Local directory, or a JSON tree description (*.json)')

    drop_parser = subparsers.add_parser('drop', help='Delete all documents of the given doctypes')
    drop_parser.add_argument('doctypes', nargs='+')

    token_parser = subparsers.add_parser('token', help='Issue a CLI token through the admin API')
    token_parser.add_argument('doctypes', nargs='+')

    debug_parser = subparsers.add_parser('debug', help='Toggle instance debug logs through the admin API')
    debug_parser.add_argument('state', choices=('on', 'off'))

    return parser


class Config:
    """Configuration for a cozy-import run"""

    def __init__(self, args):
        """
        Initialize configuration from parsed arguments.

        Args:
            args (argparse.Namespace): Result of build_parser().parse_args()
        """
        self.command = args.command
        self.cozy_url = args.url.rstrip('/')
        self.generate_token = args.generate_token
        self.token_file = args.token_file
        self.admin_config_file = args.admin_config
        # Bounded to keep bursts of concurrent requests reasonable
        self.max_workers = min(args.max_workers, 32)
        self.debug = args.debug

        # Command-specific arguments
        self.data_file = getattr(args, 'data_file', None)
        self.path = getattr(args, 'path', None)
        self.doctypes = list(getattr(args, 'doctypes', None) or [])
        self.debug_state = getattr(args, 'state', None)

    def validate(self):
        """
        Validate configuration values.

        Raises:
            ValueError: If configuration is invalid
        """
        if not self.cozy_url:
            raise ValueError("url cannot be empty")
        if '://' not in self.cozy_url:
            raise ValueError(f"url must include the scheme (e.g. https://): {self.cozy_url}")
        if self.max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        if self.command == 'import' and not self.data_file:
            raise ValueError("data_file cannot be empty")
        if self.command == 'import-dir' and not self.path:
            raise ValueError("path cannot be empty")
        if self.command in ('drop', 'token') and not self.doctypes:
            raise ValueError("at least one doctype is required")


def parse_config(argv=None):
    """
    Parse configuration from command-line arguments.

    Args:
        argv (list): Arguments without the program name (default: sys.argv[1:])

    Returns:
        Config: Validated Config object

    Raises:
        ValueError: If configuration is invalid
        SystemExit: On --help, --version or argument errors
    """
    load_dotenv(find_dotenv(usecwd=True))
    args = build_parser().parse_args(argv)
    config = Config(args)
    config.validate()
    return config
