"""
Response parser: pull command envelopes out of free-form model text.

Two envelope shapes are accepted and normalized into one ToolCommand:

    {"action": "file_read", "parameters": {...}, "requestId": "...", "finished": false}
    {"thought": "...", "nextTool": "file_read", "nextActionDescription": "...",
     "step": 1, "totalSteps": 3}

Extraction order:
    1. The whole (trimmed) text as one JSON object or an array of them
    2. Fenced ```json blocks
    3. Fenced ``` blocks
    4. Bare {...} objects anywhere in the text

Strategies 2-4 all run. A candidate whose span lies inside a span already
claimed by an earlier strategy is skipped, so a fenced block yields one
command, not one per strategy.

Invalid envelopes (empty action, non-object parameters, unknown action)
are dropped and their text is left in place. Valid envelopes are removed
from the returned text.
"""

import json
import logging
import random
import re
import string
import time
from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator

from toolgate.errors import ERROR_COMMAND_UNKNOWN_ACTION, CommandValidationError
from toolgate.schema import ToolCommand

logger = logging.getLogger(__name__)

FENCED_PATTERNS = (
    re.compile(r"```json\s*(\{[\s\S]*?\})\s*```"),
    re.compile(r"```\s*(\{[\s\S]*?\})\s*```"),
)
THOUGHT_ACTION = "thought"
FINISHED = "finished"
_BASE36 = string.digits + string.ascii_lowercase
_DECODER = json.JSONDecoder()


def generate_request_id() -> str:
    """New request id: "req_<epoch ms>_<9 random base-36 chars>"."""
    suffix = "".join(random.choices(_BASE36, k=9))
    return f"req_{int(time.time() * 1000)}_{suffix}"


@dataclass
class ParsedResponse:
    """Cleaned text plus the valid commands found in it, in extraction order."""

    text: str
    commands: list[ToolCommand] = field(default_factory=list)


@dataclass(frozen=True)
class _Candidate:
    envelope: dict[str, Any]
    original_text: str
    start: int
    end: int


def normalize_envelope(parsed: Any) -> dict[str, Any] | None:
    """
    Turn a decoded JSON value into a raw command dict.

    Returns None when the value is neither an action nor a thought envelope.
    The request id is left empty when the envelope does not carry one.
    """
    if not isinstance(parsed, dict):
        return None

    if parsed.get("action"):
        parameters = parsed.get("parameters")
        if parameters is None:
            parameters = {k: v for k, v in parsed.items() if k not in ("action", "requestId")}
        request_id = parsed.get("requestId")
        return {
            "action": parsed["action"],
            "parameters": parameters,
            "requestId": str(request_id) if request_id else "",
            "finished": bool(parsed.get("finished", False)),
        }

    if parsed.get("thought") and parsed.get("nextTool"):
        next_tool = parsed.get("nextTool")
        return {
            "action": THOUGHT_ACTION,
            "parameters": {
                "thought": parsed.get("thought"),
                "nextTool": next_tool,
                "nextActionDescription": parsed.get("nextActionDescription"),
                "step": parsed.get("step"),
                "totalSteps": parsed.get("totalSteps"),
            },
            "requestId": "",
            "finished": isinstance(next_tool, str) and next_tool.lower() == FINISHED,
        }

    return None


class CommandParser:
    """
    Extracts and validates commands from model output.

    Usage:
        parser = CommandParser(executor.valid_actions())
        parsed = parser.parse_response(text)
        for command in parsed.commands:
            ...

    Attributes:
        valid_actions: Action names a command may use
    """

    def __init__(self, valid_actions: Iterable[str]) -> None:
        self.valid_actions = frozenset(valid_actions)

    def parse_response(self, response: str) -> ParsedResponse:
        """
        Split a response into cleaned text and valid commands.

        Args:
            response: Raw model output

        Returns:
            ParsedResponse with the command payloads removed from the text
        """
        commands = []
        accepted: list[str] = []
        rejected: set[str] = set()

        for candidate in self.extract_candidates(response):
            try:
                self.validate_command(candidate.envelope)
            except CommandValidationError as e:
                logger.debug("Dropping command: %s", e.message)
                rejected.add(candidate.original_text)
                continue

            envelope = dict(candidate.envelope)
            envelope["requestId"] = envelope["requestId"] or generate_request_id()
            commands.append(ToolCommand.model_validate(envelope))
            accepted.append(candidate.original_text)

        # Source text shared with a rejected candidate stays in place.
        clean = response
        for original in accepted:
            if original and original not in rejected:
                clean = clean.replace(original, "", 1).strip()

        return ParsedResponse(text=clean, commands=commands)

    def validate_command(self, envelope: dict[str, Any]) -> None:
        """
        Check a raw command dict.

        Raises:
            CommandValidationError: If the action is missing or unknown, or
                parameters is not an object
        """
        action = envelope.get("action")
        if not isinstance(action, str) or not action:
            raise CommandValidationError(action=str(action), reason="action must be a non-empty string")
        if not isinstance(envelope.get("parameters"), dict):
            raise CommandValidationError(action=action, reason="parameters must be an object")
        if action not in self.valid_actions:
            raise CommandValidationError(
                action=action,
                reason="unknown action",
                code=ERROR_COMMAND_UNKNOWN_ACTION,
            )

    def extract_candidates(self, text: str) -> list[_Candidate]:
        """Find every envelope in text, before validation."""
        stripped = text.strip()
        try:
            decoded = json.loads(stripped)
        except ValueError:
            decoded = None
        # Every element of a whole-text array is a candidate sharing the whole
        # text, which is removed only when all elements are commands.
        items = decoded if isinstance(decoded, list) else [decoded]
        whole = [e for e in map(normalize_envelope, items) if e is not None]
        if whole:
            original = stripped if len(whole) == len(items) else ""
            return [_Candidate(envelope, original, 0, len(text)) for envelope in whole]

        candidates: list[_Candidate] = []
        claimed: list[tuple[int, int]] = []

        def claim(start: int, end: int) -> bool:
            if any(s <= start and end <= e for s, e in claimed):
                return False
            claimed.append((start, end))
            return True

        for pattern in FENCED_PATTERNS:
            for match in pattern.finditer(text):
                envelope = _decode(match.group(1))
                if envelope is not None and claim(match.start(), match.end()):
                    candidates.append(_Candidate(envelope, match.group(0), match.start(), match.end()))

        for start, end in _bare_objects(text):
            envelope = _decode(text[start:end])
            if envelope is not None and claim(start, end):
                candidates.append(_Candidate(envelope, text[start:end], start, end))

        return candidates


def _decode(fragment: str) -> dict[str, Any] | None:
    try:
        return normalize_envelope(json.loads(fragment))
    except ValueError:
        return None


def _bare_objects(text: str) -> Iterator[tuple[int, int]]:
    """Yield (start, end) of each top-level JSON object embedded in text."""
    index = text.find("{")
    while index != -1:
        try:
            _, end = _DECODER.raw_decode(text, index)
        except ValueError:
            index = text.find("{", index + 1)
            continue
        yield index, end
        index = text.find("{", end)
