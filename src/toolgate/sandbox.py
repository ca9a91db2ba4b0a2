"""
Path sandbox for toolgate.

Every path that reaches a tool or the backup store comes from model output
and is untrusted. PathSandbox turns such a string into a vault-relative path
with "/" separators, or raises PathSecurityError.

Rules:
    1. Non-string input is rejected
    2. "", ".", "./" and "/" mean the content root and map to ""
    3. Backslashes are treated as separators
    4. Absolute paths must lie inside the root and are made root-relative
    5. Relative paths are normalized; anything climbing above the root is rejected
    6. A leading "/" is stripped from the result

The sandbox is pure: it never touches the filesystem. Symlink checks belong
to the content repository, which sees the real files.
"""

import logging
import posixpath
from pathlib import Path, PureWindowsPath
from typing import Any

from toolgate.errors import PathSecurityError

logger = logging.getLogger(__name__)

ROOT_ALIASES = ("", ".", "./", "/")


class PathSandbox:
    """
    Validates untrusted paths against a single content root.

    Usage:
        sandbox = PathSandbox("/home/me/vault")
        sandbox.validate_and_normalize_path("notes/./a.md")   # "notes/a.md"
        sandbox.validate_and_normalize_path("../etc/passwd")  # raises

    Attributes:
        root: Absolute POSIX-style path of the content root
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root).resolve().as_posix()

    def validate_and_normalize_path(self, input_path: Any) -> str:
        """
        Validate a path and return it relative to the root.

        Args:
            input_path: Untrusted path (relative to the root or absolute)

        Returns:
            Normalized vault-relative path ("" for the root itself)

        Raises:
            PathSecurityError: If the input is not a string or escapes the root
        """
        if not isinstance(input_path, str):
            raise PathSecurityError(
                message="Path must be a string",
                path=repr(input_path),
                reason="not_string",
            )

        clean = input_path.strip()
        if clean in ROOT_ALIASES:
            return ""

        if "\x00" in clean:
            raise PathSecurityError(
                message=f"Path '{clean}' contains a null byte.",
                path=clean,
                reason="null_byte",
            )

        candidate = clean.replace("\\", "/")

        if self._is_absolute(candidate):
            normalized = self._relative_to_root(clean, candidate)
        else:
            normalized = posixpath.normpath(candidate)
            if normalized == ".." or normalized.startswith("../") or "/../" in normalized:
                logger.warning("Rejected traversal attempt: %s", clean)
                raise PathSecurityError(
                    message=(
                        f"Path '{clean}' attempts to access files outside the vault. "
                        "Only paths within the vault are allowed."
                    ),
                    path=clean,
                    reason="traversal",
                )

        normalized = normalized.lstrip("/")
        if normalized in (".", "./"):
            normalized = ""
        return normalized

    def validate_path(self, input_path: Any) -> bool:
        """Return True if the path is acceptable; raise PathSecurityError otherwise."""
        self.validate_and_normalize_path(input_path)
        return True

    def to_absolute_path(self, vault_relative_path: Any) -> str:
        """Validate a path and join it onto the root."""
        normalized = self.validate_and_normalize_path(vault_relative_path)
        if not normalized:
            return self.root
        return posixpath.join(self.root, normalized)

    def paths_equal(self, first: Any, second: Any) -> bool:
        """Check whether two inputs name the same vault path (False if either is invalid)."""
        try:
            return self.validate_and_normalize_path(first) == self.validate_and_normalize_path(second)
        except PathSecurityError:
            return False

    def _is_absolute(self, candidate: str) -> bool:
        return posixpath.isabs(candidate) or bool(PureWindowsPath(candidate).drive)

    def _relative_to_root(self, original: str, candidate: str) -> str:
        absolute = posixpath.normpath(candidate)
        if absolute != self.root and not absolute.startswith(self.root.rstrip("/") + "/"):
            logger.warning("Rejected path outside root: %s", original)
            raise PathSecurityError(
                message=(
                    f"Path '{original}' is outside the vault. "
                    "Only paths within the vault are allowed."
                ),
                path=original,
                reason="outside_root",
            )
        return posixpath.relpath(absolute, self.root)


def validate_and_normalize_path(root: str | Path, input_path: Any) -> str:
    """Validate a path with a throwaway sandbox for the given root."""
    return PathSandbox(root).validate_and_normalize_path(input_path)
