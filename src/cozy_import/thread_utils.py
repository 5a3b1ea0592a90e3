# -*- coding: utf-8 -*-
"""
Thread-safe utilities for the import and upload worker threads.

Console output is serialized so lines from parallel workers never interleave,
and statistics are updated under a lock.
"""

import os
import threading
import builtins

_console_lock = threading.Lock()
_original_print = builtins.print

# thread_name_prefix values given to the worker pools
_WORKER_PREFIXES = ("Import_", "Upload_", "Delete_")


def thread_safe_print(*args, **kwargs):
    """
    print() under a lock. With DEBUG=true, worker lines are tagged with the
    pool they come from ("Upload_3" prints as "[Upload-3]").
    """
    with _console_lock:
        thread_name = threading.current_thread().name
        if args and thread_name.startswith(_WORKER_PREFIXES) and os.environ.get('DEBUG', '').lower() == 'true':
            _original_print(f"[{thread_name.replace('_', '-', 1)}]", *args, **kwargs)
        else:
            _original_print(*args, **kwargs)


def enable_thread_safe_print():
    """Replace built-in print() with thread_safe_print before starting workers."""
    builtins.print = thread_safe_print


def restore_original_print():
    builtins.print = _original_print


class ThreadSafeStatsWrapper:
    """
    Increments counters of an ImportStatistics.stats dictionary from worker threads.

    Example:
        stats_wrapper = ThreadSafeStatsWrapper(import_stats.stats)
        stats_wrapper.increment('documents_created')
    """

    def __init__(self, stats_dict):
        self._stats = stats_dict
        self._lock = threading.Lock()

    def increment(self, key, value=1):
        with self._lock:
            self._stats[key] = self._stats.get(key, 0) + value


class ThreadSafeCounter:
    """Counter shared by worker threads; every change returns the new value."""

    def __init__(self, initial=0):
        self._value = initial
        self._lock = threading.Lock()

    def increment(self, amount=1):
        with self._lock:
            self._value += amount
            return self._value

    def decrement(self, amount=1):
        with self._lock:
            self._value -= amount
            return self._value
