"""
Versioned backup store for toolgate.

Tools snapshot a file here before they mutate or delete it. Each vault path
maps to a most-recent-first list of BackupEntry objects, capped at
max_backups_per_file.

Layout (inside the content repository, under data_dir):
    backups.json      {"backups": {path: [entry, ...]}}
    binary-backups/   one payload file per binary snapshot

Design Principles:
    - Text snapshots live inline in the index; binary ones are side-stored
    - Entries are never edited in place; they are added, evicted or deleted
    - Evicting or deleting a binary entry removes its payload file too, and
      only after the index without it has been saved
    - Creating a backup never fails the caller: errors are logged and swallowed

Concurrency:
    The index is read, modified and written back without locking. Only one
    orchestration pass may use a store at a time.
"""

import json
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from pydantic import ValidationError

from toolgate.backup.filetypes import get_extension, is_binary_file
from toolgate.errors import BackupIOError
from toolgate.repository import ContentRepository
from toolgate.sandbox import PathSandbox
from toolgate.schema import BackupEntry, BackupSettings

logger = logging.getLogger(__name__)

INDEX_FILE_NAME = "backups.json"
PAYLOAD_FOLDER_NAME = "binary-backups"
DEFAULT_MAX_BACKUPS_PER_FILE = 10
DEFAULT_MAX_AGE_DAYS = 30
MS_PER_DAY = 24 * 60 * 60 * 1000


@dataclass(frozen=True)
class RestoreResult:
    """Outcome of restore_backup()."""

    success: bool
    error: str | None = None


class BackupStore:
    """
    Snapshot storage with retention, restore and cleanup.

    Usage:
        store = BackupStore(repository, sandbox)
        store.create_backup("notes/a.md", "old text")
        latest = store.get_backups_for_file("notes/a.md")[0]
        store.restore_backup(latest)

    Attributes:
        repository: Content repository holding both vault files and backups
        sandbox: Path sandbox applied to every file path
        data_dir: Vault-relative folder for the index and payloads
        max_backups_per_file: Retention cap per path
    """

    def __init__(
        self,
        repository: ContentRepository,
        sandbox: PathSandbox,
        data_dir: str = ".toolgate",
        max_backups_per_file: int = DEFAULT_MAX_BACKUPS_PER_FILE,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Initialize the store.

        Args:
            repository: Where vault files, the index and payloads live
            sandbox: Validator for file paths
            data_dir: Vault-relative folder for backup data
            max_backups_per_file: How many snapshots to keep per path
            clock: Returns the current time in seconds (overridable in tests)
        """
        self.repository = repository
        self.sandbox = sandbox
        self.data_dir = data_dir.strip("/")
        self.max_backups_per_file = max_backups_per_file
        self.index_path = f"{self.data_dir}/{INDEX_FILE_NAME}"
        self.payload_folder = f"{self.data_dir}/{PAYLOAD_FOLDER_NAME}"
        self._clock = clock
        self._last_timestamp = 0

    @classmethod
    def from_settings(
        cls,
        repository: ContentRepository,
        sandbox: PathSandbox,
        settings: BackupSettings,
    ) -> "BackupStore":
        """Create a store configured from BackupSettings."""
        return cls(
            repository,
            sandbox,
            data_dir=settings.data_dir,
            max_backups_per_file=settings.max_backups_per_file,
        )

    def initialize(self) -> None:
        """Create the data and payload folders if they are missing."""
        try:
            self.repository.create_folder(self.data_dir)
            self.repository.create_folder(self.payload_folder)
        except OSError as e:
            raise BackupIOError(path=self.data_dir, operation="write", underlying_error=str(e)) from e

    # =========================================================================
    # Index persistence
    # =========================================================================

    def _load_index(self) -> dict[str, list[BackupEntry]]:
        try:
            if not self.repository.is_file(self.index_path):
                return {}
            raw = json.loads(self.repository.read_text(self.index_path))
            backups = raw.get("backups", {}) if isinstance(raw, dict) else {}
            return {
                path: [BackupEntry.model_validate(item) for item in entries]
                for path, entries in backups.items()
            }
        except (OSError, ValueError, ValidationError) as e:
            raise BackupIOError(path=self.index_path, operation="read", underlying_error=str(e)) from e

    def _save_index(self, index: dict[str, list[BackupEntry]]) -> None:
        data = {
            "backups": {
                path: [entry.to_wire() for entry in entries]
                for path, entries in index.items()
            }
        }
        try:
            self.repository.write_text(self.index_path, json.dumps(data, indent=2, ensure_ascii=False))
        except OSError as e:
            raise BackupIOError(path=self.index_path, operation="write", underlying_error=str(e)) from e

    def _now_ms(self) -> int:
        # Strictly increasing so (path, timestamp) identifies one entry.
        timestamp = max(int(self._clock() * 1000), self._last_timestamp + 1)
        self._last_timestamp = timestamp
        return timestamp

    def _payload_path(self, file_path: str, timestamp: int) -> str:
        extension = get_extension(file_path)
        stem = file_path[: -len(extension)] if extension else file_path
        safe = stem.replace("/", "_").replace("\\", "_")
        return f"{self.payload_folder}/{safe}_{timestamp}{extension}"

    def _remove_payload(self, entry: BackupEntry) -> None:
        if not entry.is_binary or not entry.backup_file_path:
            return
        try:
            if self.repository.exists(entry.backup_file_path):
                self.repository.delete(entry.backup_file_path)
        except OSError as e:
            logger.warning("Failed to delete backup payload %s: %s", entry.backup_file_path, e)

    # =========================================================================
    # Create
    # =========================================================================

    def create_backup(self, file_path: str, content: str | None = None) -> BackupEntry | None:
        """
        Snapshot a file before it changes.

        Text files store `content` (or the current file text when omitted).
        Binary files always copy the current bytes; `content` is ignored.

        Args:
            file_path: Path of the file being backed up
            content: Current text of the file, if the caller already has it

        Returns:
            The new entry, or None if the backup could not be created

        Raises:
            PathSecurityError: If file_path escapes the vault
        """
        path = self.sandbox.validate_and_normalize_path(file_path)
        try:
            return self._create_backup(path, content)
        except (BackupIOError, OSError, UnicodeDecodeError) as e:
            logger.error("Failed to create backup for %s: %s", path, e)
            return None

    def _create_backup(self, path: str, content: str | None) -> BackupEntry | None:
        index = self._load_index()
        timestamp = self._now_ms()
        readable = datetime.fromtimestamp(timestamp / 1000).strftime("%Y-%m-%d %H:%M:%S")

        if is_binary_file(path):
            if not self.repository.is_file(path):
                logger.warning("Binary file not found, skipping backup: %s", path)
                return None
            payload = self.repository.read_bytes(path)
            payload_path = self._payload_path(path, timestamp)
            self.repository.create_folder(self.payload_folder)
            self.repository.write_bytes(payload_path, payload)
            entry = BackupEntry(
                file_path=path,
                timestamp=timestamp,
                readable_timestamp=readable,
                is_binary=True,
                file_size=len(payload),
                backup_file_path=payload_path,
            )
        else:
            if content is None:
                if not self.repository.is_file(path):
                    logger.warning("Text file not found, skipping backup: %s", path)
                    return None
                content = self.repository.read_text(path)
            entry = BackupEntry(
                file_path=path,
                timestamp=timestamp,
                readable_timestamp=readable,
                is_binary=False,
                file_size=len(content),
                content=content,
            )

        entries = [entry, *index.get(path, [])]
        evicted = entries[self.max_backups_per_file:]
        index[path] = entries[: self.max_backups_per_file]
        try:
            self._save_index(index)
        except BackupIOError:
            # Payload files exist only for indexed entries.
            self._remove_payload(entry)
            raise
        for old in evicted:
            self._remove_payload(old)
        logger.debug("Created %s backup of %s at %d", "binary" if entry.is_binary else "text", path, timestamp)
        return entry

    # =========================================================================
    # Read
    # =========================================================================

    def get_backups_for_file(self, file_path: str) -> list[BackupEntry]:
        """Return the snapshots of a file, most recent first."""
        path = self.sandbox.validate_and_normalize_path(file_path)
        return list(self._load_index().get(path, []))

    def get_backup(self, file_path: str, timestamp: int) -> BackupEntry | None:
        """Return the snapshot of a file taken at `timestamp`, if any."""
        for entry in self.get_backups_for_file(file_path):
            if entry.timestamp == timestamp:
                return entry
        return None

    def get_all_backup_files(self) -> list[str]:
        """Return every path that has at least one snapshot, sorted."""
        return sorted(path for path, entries in self._load_index().items() if entries)

    def get_total_backup_count(self) -> int:
        """Total number of snapshots across all files."""
        return sum(len(entries) for entries in self._load_index().values())

    def get_total_backup_size(self) -> int:
        """Total recorded size of all snapshots, in bytes (characters for text)."""
        return sum(entry.file_size for entries in self._load_index().values() for entry in entries)

    def should_create_backup(self, file_path: str, new_content: str | None = None) -> bool:
        """
        Decide whether a write to file_path needs a fresh snapshot.

        Text files skip the snapshot when the candidate content equals the
        most recent snapshot's content. Binary files always get one: comparing
        payloads would mean reading both files, so precision is traded for cost.

        Args:
            file_path: Path about to be written
            new_content: Candidate content (the current file text when None)

        Returns:
            True if a backup should be created
        """
        path = self.sandbox.validate_and_normalize_path(file_path)
        try:
            backups = self._load_index().get(path, [])
            if not backups:
                return True
            latest = backups[0]
            if latest.is_binary:
                return True
            if new_content is None:
                if not self.repository.is_file(path):
                    return True
                new_content = self.repository.read_text(path)
            return latest.content != new_content
        except (BackupIOError, OSError, UnicodeDecodeError) as e:
            logger.warning("Could not compare with last backup of %s, backing up: %s", path, e)
            return True

    # =========================================================================
    # Restore
    # =========================================================================

    def restore_backup(self, entry: BackupEntry) -> RestoreResult:
        """
        Write a snapshot back to its file.

        The target is created if it no longer exists and overwritten otherwise.
        Restoring the same entry twice leaves the same content both times.

        Args:
            entry: Snapshot to restore

        Returns:
            RestoreResult with success flag and error message
        """
        path = self.sandbox.validate_and_normalize_path(entry.file_path)
        try:
            if entry.is_binary:
                if not entry.backup_file_path:
                    return RestoreResult(False, "Binary backup file path is missing")
                if not self.repository.is_file(entry.backup_file_path):
                    return RestoreResult(False, f"Backup file not found: {entry.backup_file_path}")
                payload = self.repository.read_bytes(entry.backup_file_path)
                if self.repository.is_folder(path):
                    return RestoreResult(False, f"Path is not a file: {path}")
                self.repository.write_bytes(path, payload)
            else:
                if entry.content is None:
                    return RestoreResult(False, "Text backup content is missing")
                target = self.repository.stat(path)
                if target is None:
                    self.repository.create_text(path, entry.content)
                elif target.is_folder:
                    return RestoreResult(False, f"Path is not a file: {path}")
                else:
                    self.repository.write_text(path, entry.content)
        except OSError as e:
            logger.error("Failed to restore backup of %s: %s", path, e)
            return RestoreResult(False, f"Failed to restore backup: {e}")

        logger.info("Restored %s from backup %d", path, entry.timestamp)
        return RestoreResult(True)

    # =========================================================================
    # Delete and cleanup
    # =========================================================================

    def delete_backups_for_file(self, file_path: str) -> int:
        """Delete every snapshot of a file; returns how many were removed."""
        path = self.sandbox.validate_and_normalize_path(file_path)
        index = self._load_index()
        entries = index.pop(path, [])
        if not entries:
            return 0
        self._save_index(index)
        for entry in entries:
            self._remove_payload(entry)
        return len(entries)

    def delete_specific_backup(self, file_path: str, timestamp: int) -> bool:
        """Delete one snapshot; returns False if it did not exist."""
        path = self.sandbox.validate_and_normalize_path(file_path)
        index = self._load_index()
        entries = index.get(path, [])
        keep = [entry for entry in entries if entry.timestamp != timestamp]
        if len(keep) == len(entries):
            return False
        if keep:
            index[path] = keep
        else:
            del index[path]
        self._save_index(index)
        for entry in entries:
            if entry.timestamp == timestamp:
                self._remove_payload(entry)
        return True

    def delete_all_backups(self) -> None:
        """Delete every snapshot and payload."""
        index = self._load_index()
        self._save_index({})
        for entries in index.values():
            for entry in entries:
                self._remove_payload(entry)

    def cleanup_old_backups(self, max_age_days: int = DEFAULT_MAX_AGE_DAYS) -> int:
        """
        Delete snapshots older than max_age_days.

        Args:
            max_age_days: Age threshold in days

        Returns:
            Number of snapshots removed
        """
        cutoff = int(self._clock() * 1000) - max_age_days * MS_PER_DAY
        index = self._load_index()
        expired: list[BackupEntry] = []

        for path in list(index):
            keep = []
            for entry in index[path]:
                if entry.timestamp <= cutoff:
                    expired.append(entry)
                else:
                    keep.append(entry)
            if keep:
                index[path] = keep
            else:
                del index[path]

        removed = len(expired)
        if removed:
            self._save_index(index)
            for entry in expired:
                self._remove_payload(entry)
            logger.info("Removed %d backups older than %d days", removed, max_age_days)
        return removed

    def __repr__(self) -> str:
        return f"<BackupStore: {self.index_path}>"
