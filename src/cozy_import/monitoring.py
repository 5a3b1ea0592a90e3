# -*- coding: utf-8 -*-
"""
Statistics tracking for cozy-import runs.

This module provides the run statistics shared by the import, drop and
upload operations, and the final summary report.
"""


class ImportStatistics:
    """Track statistics for import, drop and upload operations"""

    def __init__(self):
        """Initialize statistics"""
        self.stats = {}
        self.reset()

    def reset(self):
        """Zero every counter, keeping the same dictionary for existing wrappers"""
        self.stats.clear()
        self.stats.update({
            # Document import
            'documents_created': 0,
            'doctypes_failed': 0,
            # Collection drop
            'documents_deleted': 0,
            'documents_delete_failed': 0,
            # Tree upload
            'folders_created': 0,
            'files_uploaded': 0,
            'failed_nodes': 0,
            'bytes_uploaded': 0,
        })

    def failure_count(self):
        """
        Number of failed units of work in this run.

        Returns:
            int: Failed doctypes + failed deletions + failed tree nodes
        """
        return (self.stats['doctypes_failed'] + self.stats['documents_delete_failed'] +
                self.stats['failed_nodes'])

    def print_summary(self):
        """Print final summary report of the run."""
        print("[STATS] Run Statistics:")
        if self.stats['documents_created'] or self.stats['doctypes_failed']:
            print(f"   - Documents created:        {self.stats['documents_created']:>6}")
            print(f"   - Failed doctypes:          {self.stats['doctypes_failed']:>6}")

        if self.stats['documents_deleted'] or self.stats['documents_delete_failed']:
            print(f"   - Documents deleted:        {self.stats['documents_deleted']:>6}")
            print(f"   - Failed deletions:         {self.stats['documents_delete_failed']:>6}")

        if self.stats['folders_created'] or self.stats['files_uploaded'] or self.stats['failed_nodes']:
            print(f"   - Folders created:          {self.stats['folders_created']:>6}")
            print(f"   - Files uploaded:           {self.stats['files_uploaded']:>6}")
            print(f"   - Failed uploads:           {self.stats['failed_nodes']:>6}")
            print(f"\n[DATA] Transfer Summary:")
            print(f"   - Data uploaded:   {format_bytes(self.stats['bytes_uploaded'])}")


def format_bytes(bytes_value):
    """
    Convert bytes to human-readable format.

    Args:
        bytes_value (int): Number of bytes to format

    Returns:
        str: Human-readable string (e.g., "1.5 MB")
    """
    for unit in ['B', 'KB', 'MB', 'GB']:
        if bytes_value < 1024.0:
            return f"{bytes_value:.1f} {unit}"
        bytes_value /= 1024.0
    return f"{bytes_value:.1f} TB"


# Global statistics instance
import_stats = ImportStatistics()
