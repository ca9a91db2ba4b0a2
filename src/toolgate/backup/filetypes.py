"""
Text/binary classification for backups.

Text snapshots are stored inline in the JSON index; everything else is
copied byte-for-byte into the payload folder. Classification is by
extension only, against a fixed allow-list.
"""

TEXT_EXTENSIONS = frozenset({
    # Prose and markup
    ".md", ".txt", ".text", ".rtf", ".html", ".htm", ".xml", ".svg",
    ".tex", ".latex", ".bib", ".org", ".rst", ".asciidoc", ".adoc",
    # Styles
    ".css", ".scss", ".sass", ".less",
    # Data and config
    ".json", ".yaml", ".yml", ".toml", ".ini", ".conf", ".config",
    ".csv", ".tsv", ".log", ".sql", ".graphql", ".gql", ".properties",
    ".gitignore", ".gitattributes", ".editorconfig", ".env",
    # Code
    ".js", ".ts", ".jsx", ".tsx", ".py", ".java", ".c", ".cpp", ".h", ".hpp",
    ".cs", ".php", ".rb", ".go", ".rs", ".swift", ".kt", ".scala", ".clj",
    ".hs", ".elm", ".dart", ".r", ".m", ".pl",
    # Shell
    ".sh", ".bash", ".zsh", ".fish", ".ps1", ".bat", ".cmd",
    # No extension
    "",
})


def get_extension(path: str) -> str:
    """
    Return the lowercased extension of the last path segment, dot included.

    A name with no dot has the empty extension; a dot-file such as
    ".gitignore" is its own extension.
    """
    name = path.replace("\\", "/").rsplit("/", 1)[-1]
    index = name.rfind(".")
    if index == -1:
        return ""
    return name[index:].lower()


def is_text_file(path: str) -> bool:
    """Check whether a path is backed up as inline text."""
    return get_extension(path) in TEXT_EXTENSIONS


def is_binary_file(path: str) -> bool:
    """Check whether a path is backed up as a side-stored payload."""
    return not is_text_file(path)
