"""Shared fixtures for cozy-import tests."""

from __future__ import annotations

import itertools
import os
import threading

import pytest

from cozy_import.monitoring import ImportStatistics
from cozy_import.thread_utils import restore_original_print


@pytest.fixture(autouse=True)
def _clean_environment(monkeypatch):
    """Every test starts without DEBUG and with the real print()."""
    monkeypatch.delenv("DEBUG", raising=False)
    monkeypatch.delenv("OAUTHLIB_INSECURE_TRANSPORT", raising=False)
    yield
    os.environ.pop("OAUTHLIB_INSECURE_TRANSPORT", None)
    restore_original_print()


@pytest.fixture
def stats():
    return ImportStatistics()


class RecordingClient:
    """Stand-in for CozyClient that records every call in order.

    ``log`` holds ``(event, kind, key)`` tuples where event is "start" or
    "end", so tests can check that one call finished before another began.
    ``failures`` maps a key to the exception raised for it.
    """

    def __init__(self, failures=None, on_create=None):
        self.log = []
        self.failures = failures or {}
        self.on_create = on_create
        self.uploaded = {}
        self.deleted = []
        self.docs_by_doctype = {}
        self._lock = threading.Lock()
        self._ids = itertools.count(1)

    def _record(self, event, kind, key):
        with self._lock:
            self.log.append((event, kind, key))

    def _next_id(self, prefix):
        with self._lock:
            return f"{prefix}-{next(self._ids)}"

    def _maybe_fail(self, key):
        if key in self.failures:
            raise self.failures[key]

    # Documents

    def create_document(self, doctype, attributes):
        key = (doctype, attributes.get("name"))
        self._record("start", "create", key)
        try:
            if self.on_create:
                self.on_create(doctype, attributes)
            self._maybe_fail(key)
            return {"_id": self._next_id(doctype), "_rev": "1-abc", **attributes}
        finally:
            self._record("end", "create", key)

    def define_index(self, doctype, fields):
        self._maybe_fail(("index", doctype))
        return {"doctype": doctype, "name": f"_design/{doctype}", "fields": fields}

    def query(self, index_ref, selector, fields=None):
        return list(self.docs_by_doctype.get(index_ref["doctype"], []))

    def delete_document(self, doctype, doc):
        self._maybe_fail(("delete", doc["_id"]))
        with self._lock:
            self.deleted.append((doctype, doc["_id"]))
        return {"id": doc["_id"], "rev": "2-def", "deleted": True}

    # Files

    def create_directory(self, name, dir_id=""):
        self._record("start", "directory", name)
        try:
            self._maybe_fail(name)
            return {"_id": f"dir-{name}", "name": name, "dir_id": dir_id}
        finally:
            self._record("end", "directory", name)

    def create_file(self, stream, name, content_type="", dir_id=""):
        self._record("start", "file", name)
        try:
            self._maybe_fail(name)
            with self._lock:
                self.uploaded[name] = {
                    "content": stream.read(),
                    "content_type": content_type,
                    "dir_id": dir_id,
                }
            return {"_id": f"file-{name}", "name": name}
        finally:
            self._record("end", "file", name)

    def position(self, event, kind, key):
        return self.log.index((event, kind, key))

    def calls(self, kind):
        return [key for event, k, key in self.log if event == "start" and k == kind]


@pytest.fixture
def recording_client():
    return RecordingClient()


@pytest.fixture
def make_client():
    return RecordingClient
