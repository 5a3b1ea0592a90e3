# -*- coding: utf-8 -*-
"""
Bulk document import and collection drop.

Documents are imported per doctype, all doctypes at the same time. Within a
doctype the first document is created alone: on a brand-new doctype the stack
creates the underlying collection lazily, and a burst of concurrent creates
against a collection that does not exist yet fails. Once that first document
exists the remaining ones are created in parallel.
"""

from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import List, Optional

from .errors import describe_remote_error
from .monitoring import import_stats
from .thread_utils import ThreadSafeStatsWrapper, enable_thread_safe_print
from .utils import is_debug_enabled, pluralize

DROP_INDEX_FIELDS = ['_id']
DROP_SELECTOR = {'_id': {'$gt': None}}
DROP_FIELDS = ['_id', '_rev']


@dataclass
class ImportResult:
    """Outcome of importing one doctype"""
    doctype: str
    created: List[dict] = field(default_factory=list)
    error: Optional[Exception] = None

    @property
    def ok(self):
        return self.error is None

    @property
    def ids(self):
        return [doc.get('_id') for doc in self.created]


@dataclass
class DropResult:
    """Outcome of dropping one doctype"""
    doctype: str
    deleted: int = 0
    total: int = 0
    error: Optional[Exception] = None


def split_bootstrap(records):
    """
    Split records into the first one and the rest, leaving the input untouched.

    Args:
        records (list): Non-empty list of documents

    Returns:
        tuple: (bootstrap_record, list_of_remaining_records)
    """
    return records[0], list(records[1:])


class BulkImporter:
    """
    Imports documents and drops collections through a CozyClient.

    All doctypes are processed concurrently; a failure in one doctype is
    reported and never stops the others.
    """

    def __init__(self, client, max_workers=4, stats=None):
        """
        Args:
            client (CozyClient): Authenticated client
            max_workers (int): Concurrent requests per doctype (default: 4)
            stats (ImportStatistics): Statistics to update (default: global import_stats)
        """
        self.client = client
        self.max_workers = max(1, max_workers)
        self.stats_wrapper = ThreadSafeStatsWrapper((stats or import_stats).stats)

    def import_data(self, data):
        """
        Import a mapping of doctype -> list of documents.

        Returns once every doctype has either finished or failed.

        Args:
            data (dict): ``{doctype: [document, ...]}``. Lists are not modified.

        Returns:
            list: One ImportResult per doctype, in input order
        """
        if not data:
            print("[!] Nothing to import")
            return []

        enable_thread_safe_print()
        results = {}
        with ThreadPoolExecutor(max_workers=len(data), thread_name_prefix='Import') as executor:
            future_to_doctype = {
                executor.submit(self._import_doctype, doctype, records): doctype
                for doctype, records in data.items()
            }
            for future in as_completed(future_to_doctype):
                doctype = future_to_doctype[future]
                results[doctype] = future.result()

        return [results[doctype] for doctype in data]

    def _import_doctype(self, doctype, records):
        """Bootstrap-then-fan-out pipeline for one doctype. Never raises."""
        result = ImportResult(doctype)
        if not records:
            print(f"[!] No {doctype} documents to import")
            return result

        bootstrap, rest = split_bootstrap(records)

        try:
            result.created.append(self.client.create_document(doctype, bootstrap))
        except Exception as e:
            result.error = e
            self._report_import_failure(result)
            return result

        if is_debug_enabled():
            print(f"[DEBUG] First {doctype} document created, importing {len(rest)} more in parallel")

        if rest:
            with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix='Import') as pool:
                futures = [pool.submit(self.client.create_document, doctype, doc) for doc in rest]
                for future in as_completed(futures):
                    try:
                        result.created.append(future.result())
                    except Exception as e:
                        if result.error is None:
                            result.error = e

        self.stats_wrapper.increment('documents_created', len(result.created))
        if result.error is not None:
            self._report_import_failure(result)
            return result

        count = len(result.created)
        print(f"[✓] Imported {count} {doctype} {pluralize(count, 'document')}")
        print(f"    {result.ids}")
        return result

    def _report_import_failure(self, result):
        self.stats_wrapper.increment('doctypes_failed')
        print(f"[!] Import of {result.doctype} failed: {describe_remote_error(result.error)}")
        if result.created:
            count = len(result.created)
            print(f"[!] {count} {result.doctype} {pluralize(count, 'document')} created before the failure")

    def drop_collections(self, doctypes):
        """
        Delete every document of the given doctypes.

        For each doctype: define an index on ``_id``, fetch all ids and
        revisions through it, then delete all documents in parallel.

        Args:
            doctypes (list): Doctypes to empty

        Returns:
            list: One DropResult per doctype, in input order
        """
        doctypes = list(doctypes)
        if not doctypes:
            print("[!] No doctype to drop")
            return []

        enable_thread_safe_print()
        results = {}
        with ThreadPoolExecutor(max_workers=len(doctypes), thread_name_prefix='Delete') as executor:
            future_to_doctype = {executor.submit(self._drop_doctype, doctype): doctype for doctype in doctypes}
            for future in as_completed(future_to_doctype):
                results[future_to_doctype[future]] = future.result()

        return [results[doctype] for doctype in doctypes]

    def _drop_doctype(self, doctype):
        """Drop pipeline for one doctype. Never raises."""
        result = DropResult(doctype)
        try:
            index = self.client.define_index(doctype, DROP_INDEX_FIELDS)
            docs = self.client.query(index, selector=DROP_SELECTOR, fields=DROP_FIELDS)
        except Exception as e:
            result.error = e
            self.stats_wrapper.increment('documents_delete_failed')
            print(f"[!] Could not list {doctype} documents: {describe_remote_error(e)}")
            return result

        result.total = len(docs)
        if docs:
            with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix='Delete') as pool:
                futures = [pool.submit(self.client.delete_document, doctype, doc) for doc in docs]
                for future in as_completed(futures):
                    try:
                        response = future.result()
                    except Exception as e:
                        if result.error is None:
                            result.error = e
                        self.stats_wrapper.increment('documents_delete_failed')
                        continue
                    if response.get('deleted'):
                        result.deleted += 1

        self.stats_wrapper.increment('documents_deleted', result.deleted)
        print(f"[✓] Deleted {result.deleted}/{result.total} {doctype} documents.")
        if result.error is not None:
            print(f"[!] Some {doctype} deletions failed: {describe_remote_error(result.error)}")
        return result
