"""
File tools for toolgate.

This module provides the tools that read and mutate single files:
- file_read: Read a text file
- file_write: Create or overwrite a text file
- file_move: Move a file to a new path
- file_rename: Rename a file inside its folder
- file_delete: Delete a file or folder

Security Note:
    Every path is validated with ToolContext.resolve_path() before the
    repository is touched. A rejected path fails the call with
    "Path validation failed: ..." and no I/O happens.

Backups:
    Mutating tools snapshot the current content through the backup store
    before changing it. A failed snapshot is logged by the store and does
    not block a write, but it does abort a deletion.
"""

import logging
import posixpath
import re
from typing import Any

from toolgate.errors import PathSecurityError
from toolgate.tools.base import Tool, ToolContext, ToolOutput, path_failure

logger = logging.getLogger(__name__)

DEFAULT_MAX_READ_SIZE = 1024 * 1024


def normalize_content(text: str) -> str:
    """
    Compact file text before handing it to a model.

    Trailing whitespace is removed from each line, runs of blank lines,
    spaces and dashes are shortened, and the result is trimmed.
    """
    text = "\n".join(line.rstrip() for line in text.split("\n"))
    text = re.sub(r"\n{3,}", "\n\n", text)
    text = re.sub(r" {3,}", "  ", text)
    text = re.sub(r"-{6,}", "-----", text)
    return text.strip()


class FileReadTool(Tool):
    """
    Read file contents.

    Arguments:
        path (str): Path to the file to read (alias: filePath)
        maxSize (int): Refuse files larger than this many bytes, default 1 MiB

    Returns:
        On success: {content, filePath, size, modified, extension}
        On failure: Error message describing what went wrong
    """

    aliases = {"filePath": "path"}

    @property
    def name(self) -> str:
        return "file_read"

    @property
    def description(self) -> str:
        return (
            "Reads and retrieves the content of a specified file from the vault, "
            "with an option to limit the maximum file size."
        )

    @property
    def parameters(self) -> dict[str, dict[str, Any]]:
        return {
            "path": {"type": "string", "description": "Path to the file.", "required": True},
            "maxSize": {
                "type": "number",
                "description": "Maximum file size in bytes.",
                "default": DEFAULT_MAX_READ_SIZE,
            },
        }

    def execute(self, args: dict[str, Any], context: ToolContext) -> ToolOutput:
        args, failure = self.prepare(args)
        if failure:
            return failure

        try:
            path = context.resolve_path(args["path"])
        except PathSecurityError as e:
            return path_failure(e)

        entry = context.repository.stat(path)
        if entry is None or entry.is_folder:
            return ToolOutput.fail(f'File not found or is not a file: "{path}"')

        max_size = args["maxSize"]
        if entry.size > max_size:
            return ToolOutput.fail(f"File too large ({entry.size} bytes, max {max_size} bytes): {path}")

        try:
            content = context.repository.read_text(path)
        except (OSError, UnicodeDecodeError) as e:
            return ToolOutput.fail(f"Failed to read file: {e}")

        return ToolOutput.ok({
            "content": normalize_content(content),
            "filePath": path,
            "size": entry.size,
            "modified": entry.mtime_ms,
            "extension": entry.extension,
        })


class FileWriteTool(Tool):
    """
    Create or overwrite a text file.

    Arguments:
        path (str): Path to the file (aliases: filePath, filename)
        content (str): New content (required)
        createIfNotExists (bool): Create the file when missing, default True
        backup (bool): Snapshot existing content first, default True
        createParentFolders (bool): Create missing parent folders (required)

    Returns:
        On create: {action: "created", filePath, size}
        On modify: {action: "modified", filePath, size, backupCreated}
    """

    aliases = {"filePath": "path", "filename": "path"}

    @property
    def name(self) -> str:
        return "file_write"

    @property
    def description(self) -> str:
        return "Write/modify file contents in the vault"

    @property
    def parameters(self) -> dict[str, dict[str, Any]]:
        return {
            "path": {
                "type": "string",
                "description": "Path to the file to write (relative to vault root or absolute path within vault)",
                "required": True,
            },
            "content": {"type": "string", "description": "Content to write to the file", "required": True},
            "createIfNotExists": {
                "type": "boolean",
                "description": "Whether to create the file if it does not exist",
                "default": True,
            },
            "backup": {
                "type": "boolean",
                "description": "Whether to create a backup before modifying existing files",
                "default": True,
            },
            "createParentFolders": {
                "type": "boolean",
                "description": "Whether to create parent folders if they do not exist",
                "required": True,
            },
        }

    def execute(self, args: dict[str, Any], context: ToolContext) -> ToolOutput:
        args, failure = self.prepare(args)
        if failure:
            return failure

        try:
            path = context.resolve_path(args["path"])
        except PathSecurityError as e:
            return path_failure(e)
        if not path:
            return ToolOutput.fail("Path is not a file: (root)")

        content = args["content"]
        repository = context.repository
        entry = repository.stat(path)

        if entry is None:
            if not args["createIfNotExists"]:
                return ToolOutput.fail(f"File not found and createIfNotExists is false: {path}")
            parent = repository.parent_of(path)
            if parent and not args["createParentFolders"] and not repository.is_folder(parent):
                return ToolOutput.fail(f"Parent folder does not exist: {parent}")
            try:
                repository.create_text(path, content)
            except OSError as e:
                return ToolOutput.fail(f"Failed to create file: {e}")
            return ToolOutput.ok({"action": "created", "filePath": path, "size": len(content)})

        if entry.is_folder:
            return ToolOutput.fail(f"Path is not a file: {path}")

        backup_created = False
        if args["backup"] and context.backups is not None:
            if context.backups.should_create_backup(path, content):
                backup_created = context.backups.create_backup(path) is not None

        try:
            repository.write_text(path, content)
        except OSError as e:
            return ToolOutput.fail(f"Failed to write file: {e}")

        return ToolOutput.ok({
            "action": "modified",
            "filePath": path,
            "size": len(content),
            "backupCreated": backup_created,
        })


class FileMoveTool(Tool):
    """
    Move a file to a new path.

    Arguments:
        sourcePath (str): File to move (alias: path)
        destinationPath (str): New path (aliases: new_path, newPath)
        createFolders (bool): Create missing destination folders, default True
        overwrite (bool): Replace an existing destination, default False

    An overwritten destination file is backed up first.
    """

    aliases = {"path": "sourcePath", "new_path": "destinationPath", "newPath": "destinationPath"}

    @property
    def name(self) -> str:
        return "file_move"

    @property
    def description(self) -> str:
        return (
            "Relocates or renames files within the vault, providing options to create "
            "necessary directories and handle existing files."
        )

    @property
    def parameters(self) -> dict[str, dict[str, Any]]:
        return {
            "sourcePath": {"type": "string", "description": "Path of the source file.", "required": True},
            "destinationPath": {"type": "string", "description": "New path for the file.", "required": True},
            "createFolders": {
                "type": "boolean",
                "description": "Create parent folders if they don't exist.",
                "default": True,
            },
            "overwrite": {
                "type": "boolean",
                "description": "Overwrite destination if it exists.",
                "default": False,
            },
        }

    def execute(self, args: dict[str, Any], context: ToolContext) -> ToolOutput:
        args, failure = self.prepare(args)
        if failure:
            return failure

        try:
            source = context.resolve_path(args["sourcePath"])
            destination = context.resolve_path(args["destinationPath"])
        except PathSecurityError as e:
            return path_failure(e)

        repository = context.repository
        source_entry = repository.stat(source)
        if source_entry is None:
            return ToolOutput.fail(f"Source file not found: {source}")
        if source_entry.is_folder:
            return ToolOutput.fail(f"Source path is not a file: {source}")
        if not destination:
            return ToolOutput.fail("Destination path is the vault root")
        if destination == source:
            return ToolOutput.fail(f"Source and destination are the same: {source}")

        destination_entry = repository.stat(destination)
        if destination_entry is not None:
            if not args["overwrite"]:
                return ToolOutput.fail(
                    f"Destination already exists and overwrite is not enabled: {destination}"
                )
            if destination_entry.is_folder:
                return ToolOutput.fail(f"Destination is a folder: {destination}")

        folder = repository.parent_of(destination)
        try:
            if folder:
                folder_entry = repository.stat(folder)
                if folder_entry is None:
                    if not args["createFolders"]:
                        return ToolOutput.fail(f"Destination folder does not exist: {folder}")
                    repository.create_folder(folder)
                elif not folder_entry.is_folder:
                    return ToolOutput.fail(f"Destination parent path is not a folder: {folder}")

            if destination_entry is not None and context.backups is not None:
                context.backups.create_backup(destination)

            repository.move(source, destination)
        except OSError as e:
            return ToolOutput.fail(f"Failed to move file: {e}")

        return ToolOutput.ok({"action": "moved", "sourcePath": source, "destinationPath": destination})


class FileRenameTool(Tool):
    """
    Rename a file without changing its folder.

    Only the last segment of newName is used, so the file cannot be moved
    elsewhere by a name containing separators. The resulting path is
    validated like any other path.
    """

    aliases = {"newPath": "newName"}

    @property
    def name(self) -> str:
        return "file_rename"

    @property
    def description(self) -> str:
        return "Renames a file within the vault without altering its directory."

    @property
    def parameters(self) -> dict[str, dict[str, Any]]:
        return {
            "path": {"type": "string", "description": "Path to the file.", "required": True},
            "newName": {"type": "string", "description": "New name for the file.", "required": True},
            "overwrite": {
                "type": "boolean",
                "description": "Overwrite if a file with the new name exists.",
                "default": False,
            },
        }

    def execute(self, args: dict[str, Any], context: ToolContext) -> ToolOutput:
        args, failure = self.prepare(args)
        if failure:
            return failure

        new_name = posixpath.basename(args["newName"].replace("\\", "/").rstrip("/")).strip()
        if new_name in ("", ".", ".."):
            return ToolOutput.fail(f"Invalid new name: {args['newName']}")

        repository = context.repository
        try:
            path = context.resolve_path(args["path"])
            parent = repository.parent_of(path)
            new_path = context.resolve_path(f"{parent}/{new_name}" if parent else new_name)
        except PathSecurityError as e:
            return path_failure(e)

        if not repository.is_file(path):
            return ToolOutput.fail(f"File not found: {path}")

        existing = repository.stat(new_path)
        if existing is not None and new_path != path:
            if not args["overwrite"]:
                return ToolOutput.fail(f"A file with the new name already exists: {new_path}")
            if existing.is_folder:
                return ToolOutput.fail(f"A folder with the new name already exists: {new_path}")
            if context.backups is not None:
                context.backups.create_backup(new_path)

        try:
            repository.move(path, new_path)
        except OSError as e:
            return ToolOutput.fail(f"Failed to rename file: {e}")

        return ToolOutput.ok({"oldPath": path, "newPath": new_path})


class FileDeleteTool(Tool):
    """
    Delete a file or a folder.

    Arguments:
        path (str): File or folder to delete (alias: filePath)
        backup (bool): Back up every affected file first, default True
        confirmDeletion (bool): Must be true, default True

    Folders are backed up file by file. If any backup fails nothing is deleted.
    """

    aliases = {"filePath": "path"}

    @property
    def name(self) -> str:
        return "file_delete"

    @property
    def description(self) -> str:
        return (
            "Deletes files or folders from the vault with optional backup creation. "
            "For folders, creates backups of all contained files before deletion."
        )

    @property
    def parameters(self) -> dict[str, dict[str, Any]]:
        return {
            "path": {"type": "string", "description": "Path to the file or folder to delete.", "required": True},
            "backup": {"type": "boolean", "description": "Create backup before deletion.", "default": True},
            "confirmDeletion": {
                "type": "boolean",
                "description": "Extra confirmation that deletion is intended.",
                "default": True,
            },
        }

    def execute(self, args: dict[str, Any], context: ToolContext) -> ToolOutput:
        args, failure = self.prepare(args)
        if failure:
            return failure

        try:
            path = context.resolve_path(args["path"])
        except PathSecurityError as e:
            return path_failure(e)

        if args["confirmDeletion"] is not True:
            return ToolOutput.fail(
                "confirmDeletion must be set to true to proceed with deletion. This is a safety measure."
            )
        if not path:
            return ToolOutput.fail("Refusing to delete the vault root")

        repository = context.repository
        target = repository.stat(path)
        if target is None:
            return ToolOutput.fail(f"File or folder not found: {path}")

        files = list(repository.walk_files(path, hidden=True)) if target.is_folder else [target]
        backup_count = 0
        if args["backup"] and context.backups is not None:
            for entry in files:
                if context.backups.create_backup(entry.path) is None:
                    return ToolOutput.fail(f"Failed to create backup before deletion: {entry.path}")
                backup_count += 1

        try:
            repository.delete(path)
        except OSError as e:
            kind = "folder" if target.is_folder else "file"
            return ToolOutput.fail(f"Failed to delete {kind}: {e}")

        backup_created = backup_count > 0
        if target.is_folder:
            suffix = f" ({backup_count} files backed up)" if backup_created else ""
            message = f"Folder '{path}' has been deleted{suffix}."
        else:
            suffix = " (backup created)" if backup_created else ""
            message = f"File '{path}' has been deleted{suffix}."

        logger.info("Deleted %s (%d backups)", path, backup_count)
        return ToolOutput.ok({
            "action": "deleted",
            "type": "folder" if target.is_folder else "file",
            "filePath": path,
            "size": sum(entry.size for entry in files),
            "backupCreated": backup_created,
            "backupCount": backup_count,
            "message": message,
        })
