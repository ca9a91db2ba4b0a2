"""
Unit tests for the response parser.

Tests cover:
- Whole-text envelopes (action and thought shapes)
- Fenced and bare envelopes inside prose
- One command per fenced block despite overlapping strategies
- Validation and dropping of invalid envelopes
- Request id generation
"""

import json
import re

import pytest

from toolgate.agent.parser import CommandParser, generate_request_id, normalize_envelope
from toolgate.errors import ERROR_COMMAND_UNKNOWN_ACTION, CommandValidationError

VALID_ACTIONS = {"file_read", "file_write", "file_list", "thought"}
REQUEST_ID = re.compile(r"^req_\d+_[0-9a-z]{9}$")


@pytest.fixture
def parser() -> CommandParser:
    """Parser accepting a few file actions and thought."""
    return CommandParser(VALID_ACTIONS)


# =============================================================================
# Envelope normalization
# =============================================================================


class TestNormalizeEnvelope:
    """Tests for normalize_envelope."""

    def test_action_envelope(self) -> None:
        """Action envelopes keep their fields."""
        envelope = normalize_envelope({
            "action": "file_read", "parameters": {"path": "a.md"}, "requestId": "r1", "finished": True,
        })
        assert envelope == {
            "action": "file_read", "parameters": {"path": "a.md"}, "requestId": "r1", "finished": True,
        }

    def test_parameters_default_to_other_fields(self) -> None:
        """Without parameters, the remaining top-level fields are used."""
        envelope = normalize_envelope({"action": "file_read", "path": "a.md", "requestId": "r"})
        assert envelope["parameters"] == {"path": "a.md"}

    def test_empty_parameters_kept(self) -> None:
        """An explicit empty parameters object is kept."""
        envelope = normalize_envelope({"action": "file_list", "parameters": {}})
        assert envelope["parameters"] == {}

    def test_thought_envelope(self) -> None:
        """Thought envelopes become thought commands."""
        envelope = normalize_envelope({"thought": "t", "nextTool": "FINISHED", "step": 2, "totalSteps": 2})
        assert envelope["action"] == "thought"
        assert envelope["finished"] is True
        assert envelope["parameters"] == {
            "thought": "t", "nextTool": "FINISHED", "nextActionDescription": None, "step": 2, "totalSteps": 2,
        }

    @pytest.mark.parametrize(
        "value",
        [[], "text", 3, {"foo": "bar"}, {"thought": "no next tool"}, {"thought": "", "nextTool": ""}],
    )
    def test_not_an_envelope(self, value: object) -> None:
        """Other values are not envelopes."""
        assert normalize_envelope(value) is None


# =============================================================================
# parse_response
# =============================================================================


class TestParseResponse:
    """Tests for CommandParser.parse_response."""

    def test_whole_text_command(self, parser: CommandParser) -> None:
        """A response that is one JSON object is one command."""
        text = '{"action":"file_read","parameters":{"path":"a.md"}}'
        parsed = parser.parse_response(text)
        assert len(parsed.commands) == 1
        assert parsed.commands[0].action == "file_read"
        assert parsed.commands[0].parameters == {"path": "a.md"}
        assert text not in parsed.text
        assert parsed.text == ""

    def test_whole_text_with_whitespace(self, parser: CommandParser) -> None:
        """Surrounding whitespace does not matter."""
        parsed = parser.parse_response('\n  {"action":"file_list","parameters":{}}  \n')
        assert [c.action for c in parsed.commands] == ["file_list"]

    def test_whole_text_array(self, parser: CommandParser) -> None:
        """A whole-text array of commands yields one command per element."""
        text = json.dumps([
            {"action": "file_read", "parameters": {"path": "a.md"}},
            {"thought": "t", "nextTool": "finished"},
        ])
        parsed = parser.parse_response(text)
        assert [c.action for c in parsed.commands] == ["file_read", "thought"]
        assert parsed.text == ""

    def test_whole_text_array_with_invalid_element(self, parser: CommandParser) -> None:
        """Valid elements still run, but the text is kept when one element is invalid."""
        text = json.dumps([
            {"action": "file_read", "parameters": {"path": "a.md"}},
            {"action": "nope", "parameters": {}},
            {"thought": "t", "nextTool": "finished"},
        ])
        parsed = parser.parse_response(text)
        assert [c.action for c in parsed.commands] == ["file_read", "thought"]
        assert parsed.text == text

    def test_whole_text_array_with_non_command(self, parser: CommandParser) -> None:
        """Elements that are not envelopes also keep the text in place."""
        text = json.dumps([{"action": "file_list", "parameters": {}}, "note"])
        parsed = parser.parse_response(text)
        assert [c.action for c in parsed.commands] == ["file_list"]
        assert parsed.text == text

    def test_invalid_bare_object_kept(self, parser: CommandParser) -> None:
        """An invalid command's text is not removed, valid ones are."""
        text = (
            'Do {"action": "nope", "parameters": {}} and '
            '{"action": "file_list", "parameters": {}}'
        )
        parsed = parser.parse_response(text)
        assert [c.action for c in parsed.commands] == ["file_list"]
        assert parsed.text == 'Do {"action": "nope", "parameters": {}} and'

    def test_fenced_json_is_one_command(self, parser: CommandParser) -> None:
        """A ```json block matched by several strategies yields one command."""
        text = (
            "Let me read that file.\n\n"
            '```json\n{"action": "file_read", "parameters": {"path": "notes/a.md"}}\n```\n\n'
            "Then I will summarize."
        )
        parsed = parser.parse_response(text)
        assert len(parsed.commands) == 1
        assert "```" not in parsed.text
        assert parsed.text.startswith("Let me read that file.")
        assert parsed.text.endswith("Then I will summarize.")

    def test_generic_fence(self, parser: CommandParser) -> None:
        """Unlabelled fences are recognized."""
        text = 'Listing:\n```\n{"action": "file_list", "parameters": {"path": "notes"}}\n```'
        parsed = parser.parse_response(text)
        assert [c.parameters for c in parsed.commands] == [{"path": "notes"}]
        assert parsed.text == "Listing:"

    def test_bare_objects_in_prose(self, parser: CommandParser) -> None:
        """Bare objects anywhere in the text are extracted in order."""
        text = (
            'First {"action": "file_read", "parameters": {"path": "a.md"}} and then '
            '{"action": "file_write", "parameters": {"path": "b.md", "content": "x"}} done.'
        )
        parsed = parser.parse_response(text)
        assert [c.action for c in parsed.commands] == ["file_read", "file_write"]
        assert parsed.text == "First  and then  done."

    def test_nested_objects(self, parser: CommandParser) -> None:
        """Objects with nested braces are extracted whole."""
        text = 'Do it: {"action": "file_write", "parameters": {"path": "a.json", "content": "{\\"k\\": {}}"}}'
        parsed = parser.parse_response(text)
        assert parsed.commands[0].parameters["content"] == '{"k": {}}'
        assert parsed.text == "Do it:"

    def test_thought_in_text(self, parser: CommandParser) -> None:
        """Thought envelopes are parsed from prose."""
        text = 'Thinking {"thought": "need the list", "nextTool": "file_list"} now'
        parsed = parser.parse_response(text)
        assert parsed.commands[0].action == "thought"
        assert parsed.commands[0].finished is False

    def test_unknown_action_dropped(self, parser: CommandParser) -> None:
        """Unknown actions are filtered out and left in the text."""
        text = '{"action":"delete_everything","parameters":{}}'
        parsed = parser.parse_response(text)
        assert parsed.commands == []
        assert parsed.text == text

    def test_non_object_parameters_dropped(self, parser: CommandParser) -> None:
        """parameters must be an object."""
        parsed = parser.parse_response('{"action":"file_read","parameters":"a.md"}')
        assert parsed.commands == []

    def test_invalid_json_ignored(self, parser: CommandParser) -> None:
        """Broken JSON is left alone."""
        text = 'Here {"action": "file_read", "parameters": {"path": } oops'
        parsed = parser.parse_response(text)
        assert parsed.commands == []
        assert parsed.text == text

    def test_plain_text(self, parser: CommandParser) -> None:
        """Text without envelopes passes through."""
        parsed = parser.parse_response("Just an answer with {braces} in it.")
        assert parsed.commands == []
        assert parsed.text == "Just an answer with {braces} in it."

    def test_request_id_kept(self, parser: CommandParser) -> None:
        """A supplied requestId is preserved."""
        parsed = parser.parse_response('{"action":"file_list","parameters":{},"requestId":"mine"}')
        assert parsed.commands[0].request_id == "mine"

    def test_request_id_generated_per_parse(self, parser: CommandParser) -> None:
        """Missing request ids are generated fresh on every parse."""
        text = '{"action":"file_list","parameters":{}}'
        first = parser.parse_response(text).commands[0].request_id
        second = parser.parse_response(text).commands[0].request_id
        assert REQUEST_ID.match(first)
        assert REQUEST_ID.match(second)
        assert first != second


class TestValidateCommand:
    """Tests for CommandParser.validate_command."""

    def test_valid(self, parser: CommandParser) -> None:
        """Valid envelopes pass."""
        parser.validate_command({"action": "file_read", "parameters": {}})

    def test_empty_action(self, parser: CommandParser) -> None:
        """The action must be non-empty."""
        with pytest.raises(CommandValidationError):
            parser.validate_command({"action": "", "parameters": {}})

    def test_unknown_action_code(self, parser: CommandParser) -> None:
        """Unknown actions carry their own code."""
        with pytest.raises(CommandValidationError) as exc_info:
            parser.validate_command({"action": "rm_rf", "parameters": {}})
        assert exc_info.value.code == ERROR_COMMAND_UNKNOWN_ACTION


class TestRequestIds:
    """Tests for generate_request_id."""

    def test_format(self) -> None:
        """Ids look like req_<ms>_<9 base-36 chars>."""
        assert REQUEST_ID.match(generate_request_id())
