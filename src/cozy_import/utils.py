# -*- coding: utf-8 -*-
"""
Shared utility functions for cozy-import operations.

This module provides common helper functions used across multiple modules.
"""

import os
from urllib.parse import urlparse


def get_domain_from_url(cozy_url):
    """
    Extract the instance domain from a Cozy URL.

    Args:
        cozy_url (str): The instance URL (e.g., "https://alice.mycozy.cloud")

    Returns:
        str: The domain, port included when present (e.g., "cozy.tools:8080")
    """
    parsed = urlparse(cozy_url if "://" in cozy_url else f"http://{cozy_url}")
    return parsed.netloc


def pluralize(count, word):
    """Return ``word`` with an ``s`` appended unless ``count`` is exactly 1."""
    return word if count == 1 else f"{word}s"


def is_debug_enabled():
    """
    Check if general debug mode is enabled via DEBUG environment variable.

    This controls individual request messages, per-node upload messages,
    worker thread prefixes, and other verbose details. Does not affect:
    - Import/delete result lines
    - Final summary statistics
    - Error messages

    Returns:
        bool: True if general debug mode is enabled, False otherwise
    """
    return os.environ.get('DEBUG', 'false').lower() == 'true'
