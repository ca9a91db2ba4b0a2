"""
Content repository capability for toolgate.

Tools and the backup store never touch storage directly. They go through a
ContentRepository, addressed with vault-relative "/"-separated paths that
have already passed the PathSandbox.

Implementations:
    - ContentRepository: Abstract interface
    - LocalContentRepository: A directory on the local filesystem

Why ABC over Protocol?
    The interface has a couple of shared helpers (parent_of, exists) that
    concrete repositories inherit rather than re-implement.
"""

import shutil
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

from toolgate.errors import PathSecurityError


@dataclass(frozen=True)
class RepoEntry:
    """
    A file or folder in the repository.

    Attributes:
        path: Vault-relative path
        name: Last path segment
        is_folder: True for folders
        size: Size in bytes (0 for folders)
        mtime_ms: Modification time in epoch milliseconds
        ctime_ms: Creation (or metadata change) time in epoch milliseconds
        child_count: Number of direct children (folders only)
    """

    path: str
    name: str
    is_folder: bool
    size: int = 0
    mtime_ms: int = 0
    ctime_ms: int = 0
    child_count: int = 0

    @property
    def extension(self) -> str:
        """Extension without the dot, lowercased ("" if none)."""
        if self.is_folder or "." not in self.name:
            return ""
        return self.name.rsplit(".", 1)[1].lower()

    @property
    def basename(self) -> str:
        """Name without its extension."""
        if self.is_folder or "." not in self.name:
            return self.name
        return self.name.rsplit(".", 1)[0]


class ContentRepository(ABC):
    """
    Abstract read/write/list/move/delete access to vault content.

    All paths are vault-relative; "" is the root folder.
    """

    @abstractmethod
    def stat(self, path: str) -> RepoEntry | None:
        """Return the entry at path, or None if nothing exists there."""
        ...

    @abstractmethod
    def read_text(self, path: str) -> str:
        """Read a file as UTF-8 text."""
        ...

    @abstractmethod
    def read_bytes(self, path: str) -> bytes:
        """Read a file as bytes."""
        ...

    @abstractmethod
    def write_text(self, path: str, content: str) -> None:
        """Overwrite (or create) a file with text."""
        ...

    @abstractmethod
    def write_bytes(self, path: str, content: bytes) -> None:
        """Overwrite (or create) a file with bytes."""
        ...

    @abstractmethod
    def create_text(self, path: str, content: str) -> None:
        """Create a new text file, creating parent folders as needed."""
        ...

    @abstractmethod
    def create_folder(self, path: str) -> None:
        """Create a folder and any missing parents."""
        ...

    @abstractmethod
    def delete(self, path: str) -> None:
        """Delete a file, or a folder with everything inside it."""
        ...

    @abstractmethod
    def list_folder(self, folder: str, hidden: bool = False) -> list[RepoEntry]:
        """
        List direct children of a folder, folders first, then by name.

        Dot-prefixed entries follow the repository's own listing rule unless
        hidden is set, in which case they are always included.
        """
        ...

    @abstractmethod
    def move(self, path: str, new_path: str) -> None:
        """Move or rename a file or folder, replacing any file at new_path."""
        ...

    def exists(self, path: str) -> bool:
        """Check whether anything exists at path."""
        return self.stat(path) is not None

    def is_file(self, path: str) -> bool:
        """Check whether path is an existing file."""
        entry = self.stat(path)
        return entry is not None and not entry.is_folder

    def is_folder(self, path: str) -> bool:
        """Check whether path is an existing folder."""
        entry = self.stat(path)
        return entry is not None and entry.is_folder

    def walk_files(self, folder: str = "", hidden: bool = False) -> Iterator[RepoEntry]:
        """Yield every file below folder, depth first (dot entries too when hidden is set)."""
        for entry in self.list_folder(folder, hidden=hidden):
            if entry.is_folder:
                yield from self.walk_files(entry.path, hidden=hidden)
            else:
                yield entry

    @staticmethod
    def parent_of(path: str) -> str:
        """Vault-relative parent folder of path ("" for top-level entries)."""
        return path.rsplit("/", 1)[0] if "/" in path else ""


class LocalContentRepository(ContentRepository):
    """
    ContentRepository over a local directory.

    Resolved paths are checked against the resolved root, so a symlink
    inside the vault cannot be used to reach files outside it.

    Dot-prefixed entries (".git", the backup data folder) are left out of
    listings unless include_hidden is set; they stay reachable by path.

    Attributes:
        root: Resolved root directory
        include_hidden: Whether listings show dot-prefixed entries
    """

    def __init__(self, root: str | Path, include_hidden: bool = False) -> None:
        self.root = Path(root).resolve()
        self.include_hidden = include_hidden

    def _resolve(self, path: str) -> Path:
        target = (self.root / path) if path else self.root
        resolved = target.resolve()
        try:
            resolved.relative_to(self.root)
        except ValueError:
            raise PathSecurityError(
                message=f"Path '{path}' resolves outside the vault: {resolved}",
                path=path,
                reason="symlink_escape",
            ) from None
        return target

    def _entry(self, path: str, target: Path) -> RepoEntry:
        stat = target.stat()
        is_folder = target.is_dir()
        return RepoEntry(
            path=path,
            name=target.name if path else "",
            is_folder=is_folder,
            size=0 if is_folder else stat.st_size,
            mtime_ms=int(stat.st_mtime * 1000),
            ctime_ms=int(stat.st_ctime * 1000),
            child_count=sum(
                1 for c in target.iterdir() if self.include_hidden or not c.name.startswith(".")
            ) if is_folder else 0,
        )

    def stat(self, path: str) -> RepoEntry | None:
        target = self._resolve(path)
        if not target.exists():
            return None
        return self._entry(path, target)

    def read_text(self, path: str) -> str:
        return self._resolve(path).read_text(encoding="utf-8")

    def read_bytes(self, path: str) -> bytes:
        return self._resolve(path).read_bytes()

    def write_text(self, path: str, content: str) -> None:
        target = self._resolve(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")

    def write_bytes(self, path: str, content: bytes) -> None:
        target = self._resolve(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(content)

    def create_text(self, path: str, content: str) -> None:
        target = self._resolve(path)
        if target.exists():
            msg = f"File already exists: {path}"
            raise FileExistsError(msg)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")

    def create_folder(self, path: str) -> None:
        self._resolve(path).mkdir(parents=True, exist_ok=True)

    def delete(self, path: str) -> None:
        target = self._resolve(path)
        if target.is_dir():
            shutil.rmtree(target)
        else:
            target.unlink()

    def list_folder(self, folder: str, hidden: bool = False) -> list[RepoEntry]:
        base = self._resolve(folder)
        entries = []
        for child in base.iterdir():
            if child.name.startswith(".") and not (hidden or self.include_hidden):
                continue
            child_path = f"{folder}/{child.name}" if folder else child.name
            entries.append(self._entry(child_path, child))
        entries.sort(key=lambda e: (not e.is_folder, e.name.lower()))
        return entries

    def move(self, path: str, new_path: str) -> None:
        source = self._resolve(path)
        destination = self._resolve(new_path)
        destination.parent.mkdir(parents=True, exist_ok=True)
        source.replace(destination)

    def __repr__(self) -> str:
        return f"<LocalContentRepository: {self.root}>"
