"""
Versioned backup storage.

Exports:
    BackupStore: Snapshot, restore and cleanup of vault files
    RestoreResult: Outcome of BackupStore.restore_backup()
    is_text_file / is_binary_file: Extension-based file classification
"""

from toolgate.backup.filetypes import TEXT_EXTENSIONS, is_binary_file, is_text_file
from toolgate.backup.store import BackupStore, RestoreResult

__all__ = [
    "BackupStore",
    "RestoreResult",
    "TEXT_EXTENSIONS",
    "is_binary_file",
    "is_text_file",
]
