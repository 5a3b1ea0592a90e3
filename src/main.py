#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Cozy Import Command Line
========================

PURPOSE:
    Fill a Cozy instance with data: documents from a JSON file, a local
    directory tree, or empty whole collections again. Also wraps the few
    admin API calls needed while doing so (token issuance, debug logs).

SYNOPSIS:
    cozy-import [--url URL] [--generate-token] [--token-file PATH]
                [--admin-config PATH] [--max-workers N] [--debug]
                <command> [arguments]

COMMANDS:
    import <data.json>
        Import documents. The file is a JSON object mapping each doctype to
        a list of documents:
            {"io.cozy.contacts": [{"name": "A"}, {"name": "B"}]}
        The first document of each doctype is created alone, the others in
        parallel once it exists.

    import-dir <path>
        Upload a local directory (or a JSON tree description ending in
        .json) into the root directory of the instance.

    drop <doctype> [<doctype> ...]
        Delete every document of the given doctypes.

    token <doctype> [<doctype> ...]
        Print a CLI token issued by the admin API for the instance domain.

    debug on|off
        Toggle debug logs of the instance through the admin API.

AUTHORIZATION:
    With --generate-token, the tool registers itself as an OAuth client,
    opens the consent page in your browser and listens on
    http://localhost:3333/do_access for the redirect. The token is saved
    to token.json and reused by later runs without --generate-token.

ENVIRONMENT:
    COZY_URL, COZY_TOKEN_FILE, COZY_ADMIN_CONFIG, COZY_MAX_WORKERS,
    COZY_ADMIN_URL, COZY_ADMIN_AUTH, DEBUG (also read from a .env file)

EXIT CODES:
    0 - Every operation succeeded
    1 - A client could not be obtained or at least one operation failed
"""

import json
import os
import sys
import time

from cozy_import.admin import AdminClient, load_admin_config
from cozy_import.auth import Authorizer
from cozy_import.config import parse_config
from cozy_import.errors import CozyImportError, describe_remote_error
from cozy_import.file_handler import build_directory_tree, load_tree_description, count_nodes
from cozy_import.importer import BulkImporter
from cozy_import.monitoring import import_stats
from cozy_import.token_store import TokenStore
from cozy_import.uploader import TreeUploader
from cozy_import.utils import get_domain_from_url, is_debug_enabled

FILES_DOCTYPE = 'io.cozy.files'


def load_import_data(data_file):
    """
    Read the documents to import.

    Args:
        data_file (str): Path of a JSON object mapping doctypes to lists of documents

    Returns:
        dict: {doctype: [document, ...]}

    Raises:
        ValueError: If the file does not have that shape
    """
    with open(data_file, 'r', encoding='utf-8') as f:
        data = json.load(f)

    if not isinstance(data, dict):
        raise ValueError(f"{data_file} must contain a JSON object mapping doctypes to documents")
    for doctype, docs in data.items():
        if not isinstance(docs, list) or not all(isinstance(doc, dict) for doc in docs):
            raise ValueError(f"{data_file}: '{doctype}' must be a list of JSON objects")
    return data


def load_tree(path):
    """Build the tree to upload from a directory or a JSON tree description."""
    if path.lower().endswith('.json') and os.path.isfile(path):
        return load_tree_description(path)
    return build_directory_tree(path)


def get_client(config, doctypes):
    """Get an authenticated client, or exit with an error code."""
    token_store = TokenStore(config.token_file)
    if config.generate_token and token_store.exists():
        print(f"[*] The token stored in {token_store.path} will be replaced")
    authorizer = Authorizer(token_store=token_store)
    client = authorizer.get_client(config.generate_token, config.cozy_url, doctypes)
    if client is None:
        sys.exit(1)
    print(f"[✓] Connected to {client.cozy_url}")
    return client


def run_import(config):
    try:
        data = load_import_data(config.data_file)
    except (OSError, ValueError) as e:
        print(f"[Error] Could not read {config.data_file}: {e}")
        sys.exit(1)

    client = get_client(config, list(data))
    print(f"[*] Importing {sum(len(docs) for docs in data.values())} documents "
          f"of {len(data)} doctype(s)...")
    BulkImporter(client, max_workers=config.max_workers).import_data(data)


def run_import_dir(config):
    try:
        root = load_tree(config.path)
    except (OSError, ValueError) as e:
        print(f"[Error] Could not read {config.path}: {e}")
        sys.exit(1)

    client = get_client(config, [FILES_DOCTYPE])
    folders, files = count_nodes(root)
    print(f"[*] Uploading {files} files in {folders} folders from {root.name}...")
    TreeUploader(client, max_workers=config.max_workers).upload_tree(root)


def run_drop(config):
    client = get_client(config, config.doctypes)
    print(f"[*] Dropping {', '.join(config.doctypes)}...")
    BulkImporter(client, max_workers=config.max_workers).drop_collections(config.doctypes)


def run_admin(config):
    domain = get_domain_from_url(config.cozy_url)
    try:
        admin = AdminClient(load_admin_config(config.admin_config_file))
        if config.command == 'token':
            print(admin.create_token(domain, config.doctypes))
        elif config.debug_state == 'on':
            admin.enable_debug(domain)
            print(f"[✓] Debug logs enabled for {domain}")
        else:
            admin.disable_debug(domain)
            print(f"[✓] Debug logs disabled for {domain}")
    except (CozyImportError, ValueError, OSError) as e:
        print(f"[Error] Admin request failed: {describe_remote_error(e)}")
        sys.exit(1)


COMMAND_HANDLERS = {
    'import': run_import,
    'import-dir': run_import_dir,
    'drop': run_drop,
    'token': run_admin,
    'debug': run_admin,
}


def main(argv=None):
    """
    Main execution function.

    Process:
        1. Parse configuration from command-line arguments and environment
        2. Run the requested command
        3. Print summary statistics
        4. Exit with appropriate code
    """
    try:
        config = parse_config(argv)
    except ValueError as e:
        print(f"[Error] Invalid configuration: {e}")
        sys.exit(1)

    # Set environment variable for the debug flag (enables the is_debug_enabled() checks)
    if config.debug:
        os.environ['DEBUG'] = 'true'

    print("\n" + "="*60)
    print(f"[*] {config.command.upper()} - {config.cozy_url}")
    print("="*60)
    if is_debug_enabled():
        print(f"[DEBUG] Token file: {config.token_file}")
        print(f"[DEBUG] Workers: {config.max_workers}")

    start_time = time.time()
    import_stats.reset()
    COMMAND_HANDLERS[config.command](config)

    if config.command in ('token', 'debug'):
        return

    elapsed = time.time() - start_time
    print("\n" + "="*60)
    import_stats.print_summary()
    print(f"\n[*] Finished in {elapsed:.3f}s")

    # Exit code 0 = success, 1 = at least one unit of work failed
    failures = import_stats.failure_count()
    if failures > 0:
        print(f"[!] {failures} operation(s) failed")
        sys.exit(1)


if __name__ == "__main__":
    main()
