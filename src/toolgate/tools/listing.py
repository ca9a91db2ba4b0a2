"""
Read-only listing tools: file_list, file_search and vault_tree.

Listings come from ContentRepository.list_folder(), so hidden entries
(including the backup data folder) never show up.
"""

from typing import Any

from toolgate.errors import PathSecurityError
from toolgate.repository import RepoEntry
from toolgate.tools.base import Tool, ToolContext, ToolOutput, path_failure

IMAGE_EXTENSIONS = frozenset({"png", "jpg", "jpeg", "gif", "svg", "webp"})


class FileListTool(Tool):
    """
    List the files and folders inside a folder.

    Items are rendered one per line: files as "📄name", folders as
    "📁name/(" followed by their children (when recursive) and a closing ")".
    """

    aliases = {"folderPath": "path", "folder": "path"}

    @property
    def name(self) -> str:
        return "file_list"

    @property
    def description(self) -> str:
        return (
            "Retrieves a list of files and folders within a specified directory, "
            "offering options for recursive traversal."
        )

    @property
    def parameters(self) -> dict[str, dict[str, Any]]:
        return {
            "path": {"type": "string", "description": "Path to the folder.", "required": False, "default": ""},
            "recursive": {"type": "boolean", "description": "List files recursively.", "default": False},
            "maxResults": {"type": "number", "description": "Maximum number of results to return.", "default": 100},
        }

    def execute(self, args: dict[str, Any], context: ToolContext) -> ToolOutput:
        args, failure = self.prepare(args)
        if failure:
            return failure

        try:
            folder = context.resolve_path(args["path"])
        except PathSecurityError as e:
            return path_failure(e)

        if not context.repository.is_folder(folder):
            return ToolOutput.fail(f"Folder not found: {folder or '(root)'}")

        recursive = args["recursive"]
        max_results = args["maxResults"]
        items: list[str] = []
        total = 0

        def walk(current: str, indent: str) -> None:
            nonlocal total
            for child in context.repository.list_folder(current):
                if total >= max_results:
                    return
                if not child.is_folder:
                    items.append(f"{indent}📄{child.name}")
                    total += 1
                    continue
                items.append(f"{indent}📁{child.name}/(")
                total += 1
                if recursive:
                    walk(child.path, indent + "  ")
                    if total < max_results:
                        items.append(f"{indent})")
                else:
                    items.append(f"{indent})")

        try:
            walk(folder, "")
        except OSError as e:
            return ToolOutput.fail(f"Failed to list folder: {e}")

        return ToolOutput.ok({
            "items": ",\n".join(items),
            "count": total,
            "path": folder,
            "recursive": recursive,
            "maxResults": max_results,
            "truncated": total >= max_results,
        })


class FileSearchTool(Tool):
    """
    Find files whose path or name contains every word of a query.

    Matching is case-insensitive, and underscores in names also match
    spaces in the query. Results are ordered newest first.
    """

    @property
    def name(self) -> str:
        return "file_search"

    @property
    def description(self) -> str:
        return "Search for files in the vault by name or path"

    @property
    def parameters(self) -> dict[str, dict[str, Any]]:
        return {
            "query": {
                "type": "string",
                "description": "Search query to find files (searches filename and path)",
                "required": False,
                "default": "",
            },
            "filterType": {
                "type": "string",
                "enum": ["markdown", "image", "all"],
                "description": "Type of files to show",
                "default": "markdown",
            },
            "maxResults": {"type": "number", "description": "Maximum number of results to return", "default": 10},
        }

    def execute(self, args: dict[str, Any], context: ToolContext) -> ToolOutput:
        args, failure = self.prepare(args)
        if failure:
            return failure

        query = args["query"]
        words = query.lower().split()

        try:
            candidates = [f for f in context.repository.walk_files() if _matches_filter(f, args["filterType"])]
        except OSError as e:
            return ToolOutput.fail(f"Failed to search files: {e}")

        matches = [f for f in candidates if _matches_query(f, words)]
        if not matches:
            return ToolOutput.fail(f'No files found matching query: "{query}"')

        matches.sort(key=lambda f: f.mtime_ms, reverse=True)
        files = [
            {
                "path": f.path,
                "name": f.name,
                "basename": f.basename,
                "extension": f.extension,
                "size": f.size,
                "created": f.ctime_ms,
                "modified": f.mtime_ms,
            }
            for f in matches[: args["maxResults"]]
        ]
        return ToolOutput.ok({"files": files, "count": len(files), "query": query or "all files"})


def _matches_filter(entry: RepoEntry, filter_type: str) -> bool:
    if filter_type == "markdown":
        return entry.extension == "md"
    if filter_type == "image":
        return entry.extension in IMAGE_EXTENSIONS
    return True


def _matches_query(entry: RepoEntry, words: list[str]) -> bool:
    text = f"{entry.path} {entry.basename}".lower()
    spaced = text.replace("_", " ")
    return all(word in text or word in spaced for word in words)


class VaultTreeTool(Tool):
    """
    Folder-only tree of the vault, one line per folder.

    The first line names the starting folder ("Vault Root" for the root).
    Its subfolders follow unindented, and each deeper level adds two spaces.
    """

    @property
    def name(self) -> str:
        return "vault_tree"

    @property
    def description(self) -> str:
        return (
            "Generates a hierarchical tree view of the vault structure, showing only "
            "folders and their organization."
        )

    @property
    def parameters(self) -> dict[str, dict[str, Any]]:
        return {
            "path": {
                "type": "string",
                "description": "Starting path for the tree (defaults to vault root)",
                "required": False,
                "default": "",
            },
            "maxDepth": {"type": "number", "description": "Maximum depth to traverse", "default": 10},
            "maxItems": {"type": "number", "description": "Maximum total items to include", "default": 200},
            "showFolders": {
                "type": "boolean",
                "description": "Whether to include folders in the tree",
                "default": True,
            },
        }

    def execute(self, args: dict[str, Any], context: ToolContext) -> ToolOutput:
        args, failure = self.prepare(args)
        if failure:
            return failure

        try:
            start = context.resolve_path(args["path"])
        except PathSecurityError as e:
            return path_failure(e)

        repository = context.repository
        start_entry = repository.stat(start)
        if start_entry is None or not start_entry.is_folder:
            return ToolOutput.fail(f"Folder not found: {start or '(root)'}")

        max_depth = args["maxDepth"]
        max_items = args["maxItems"]
        label = start_entry.name if start else "Vault Root"
        lines = [f"📁{label}/({start_entry.child_count} items)"]
        total = 1
        truncated = False

        def build(folder: str, indent: str, depth: int) -> None:
            nonlocal total, truncated
            if depth > max_depth:
                return
            for child in repository.list_folder(folder):
                if not child.is_folder:
                    continue
                if total >= max_items:
                    truncated = True
                    return
                lines.append(f"{indent}📁{child.name}/({child.child_count} items)")
                total += 1
                build(child.path, indent + "  ", depth + 1)

        try:
            if args["showFolders"]:
                build(start, "", 1)
        except OSError as e:
            return ToolOutput.fail(f"Failed to build tree: {e}")

        tree = ",\n".join(lines)
        return ToolOutput.ok({
            "tree": tree,
            "stats": {
                "totalItems": total,
                "maxDepth": max_depth,
                "maxItems": max_items,
                "truncated": truncated,
                "startPath": start or "/",
                "showFolders": args["showFolders"],
            },
            "items": tree,
            "count": total,
            "path": start or "/",
        })
