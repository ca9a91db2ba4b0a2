"""
toolgate - Governed execution of tool commands embedded in LLM output.

toolgate sits between a language model and a content store. It:
- Extracts command envelopes from free-form model responses
- Dispatches them to registered tools with a per-call timeout
- Enforces a per-turn execution budget and skips already-executed commands
- Confines every path to a single content root
- Snapshots files before they are changed, with retention and restore

Example usage:
    $ toolgate parse response.txt
    $ toolgate process response.txt --vault ./notes
    $ toolgate backups list notes/today.md --vault ./notes
"""

__version__ = "0.1.0"
__author__ = "toolgate contributors"

__all__ = [
    "__version__",
    "__author__",
]
