# -*- coding: utf-8 -*-
"""
Directory tree upload for cozy-import.

A folder is always created before anything inside it, because its children
need the id the stack generates for it. Siblings are uploaded in parallel.

All work runs on one shared thread pool. A folder task does not wait for its
children: once its directory exists it submits them to the pool and returns,
so no worker ever blocks on another one.
"""

import os
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Optional

from .errors import UploadError, describe_remote_error
from .file_handler import guess_content_type
from .monitoring import import_stats
from .thread_utils import ThreadSafeCounter, ThreadSafeStatsWrapper, enable_thread_safe_print
from .utils import is_debug_enabled

ROOT_DIR_ID = ''


@dataclass
class UploadResult:
    """Outcome of uploading one node (the node itself, not its subtree)"""
    node: object
    remote_id: Optional[str] = None
    error: Optional[UploadError] = None

    @property
    def ok(self):
        return self.error is None


class TreeUploader:
    """
    Uploads a FolderNode tree through a CozyClient.

    Example:
        uploader = TreeUploader(client, max_workers=4)
        results = uploader.upload_tree(build_directory_tree('./photos'))
    """

    def __init__(self, client, max_workers=4, stats=None):
        """
        Args:
            client (CozyClient): Authenticated client
            max_workers (int): Maximum concurrent uploads (default: 4)
            stats (ImportStatistics): Statistics to update (default: global import_stats)
        """
        self.client = client
        self.max_workers = max(1, max_workers)
        self.stats_wrapper = ThreadSafeStatsWrapper((stats or import_stats).stats)

        self._executor = None
        self._pending = None
        self._done = None
        self._results = []
        self._results_lock = threading.Lock()

    def upload_tree(self, root, parent_dir_id=ROOT_DIR_ID):
        """
        Upload the content of ``root`` (not ``root`` itself).

        Returns only when every node has been uploaded or has failed. A failed
        node never stops its siblings; the descendants of a failed folder are
        not attempted.

        Args:
            root (FolderNode): Tree root; its children are uploaded
            parent_dir_id (str): Remote directory to upload into (default: root directory)

        Returns:
            list: One UploadResult per attempted node, in completion order
        """
        enable_thread_safe_print()
        self._results = []

        if root.children:
            self._pending = ThreadSafeCounter()
            self._done = threading.Event()
            with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix='Upload') as executor:
                self._executor = executor
                self._schedule(root.children, parent_dir_id)
                self._done.wait()
            self._executor = None

        print(f"[✓] {root.name} content imported")
        with self._results_lock:
            return list(self._results)

    def _schedule(self, nodes, dir_id):
        # Count before submitting so the pending count cannot reach zero early
        self._pending.increment(len(nodes))
        for node in nodes:
            self._executor.submit(self._upload_node, node, dir_id)

    def _upload_node(self, node, dir_id):
        try:
            if node.has_children:
                remote_id = self._upload_folder(node, dir_id)
            else:
                remote_id = self._upload_file(node, dir_id)
            self._record(UploadResult(node, remote_id=remote_id))
        except Exception as e:
            error = UploadError(node, e)
            self.stats_wrapper.increment('failed_nodes')
            print(f"[!] Upload failed for {node.name}: {describe_remote_error(e)}")
            self._record(UploadResult(node, error=error))
        finally:
            if self._pending.decrement() == 0:
                self._done.set()

    def _upload_folder(self, folder, dir_id):
        """Create the directory, then hand its children to the pool"""
        directory = self.client.create_directory(folder.name, dir_id)
        folder_id = directory['_id']
        self.stats_wrapper.increment('folders_created')
        if is_debug_enabled():
            print(f"[DEBUG] Created folder {folder.name} ({folder_id})")

        if folder.children:
            self._schedule(folder.children, folder_id)
        return folder_id

    def _upload_file(self, file_node, dir_id):
        """Stream one local file into the given directory"""
        content_type = guess_content_type(file_node.extension)
        size = os.path.getsize(file_node.path)
        with open(file_node.path, 'rb') as stream:
            created = self.client.create_file(stream, file_node.name, content_type, dir_id)

        self.stats_wrapper.increment('files_uploaded')
        self.stats_wrapper.increment('bytes_uploaded', size)
        if is_debug_enabled():
            print(f"[DEBUG] Uploaded {file_node.path} as {file_node.name} ({content_type or 'no content type'})")
        return created['_id']

    def _record(self, result):
        with self._results_lock:
            self._results.append(result)
