"""
Agent orchestration for toolgate.

Components:
    - CommandParser: Extracts command envelopes from model output
    - ExecutionSession: Per-turn counters and display cache
    - ExecutionGovernor: Dedup, budget and sequential execution
    - ToolDisplay / ToolResultFormatter: Renderings of results
    - ReasoningProcessor: Promotes thought results to reasoning records
"""

from toolgate.agent.display import ToolDisplay
from toolgate.agent.formatter import FormatStyle, ToolResultFormatter
from toolgate.agent.governor import (
    ExecutionGovernor,
    LimitWarning,
    ProcessedResponse,
    UiResponse,
    command_key,
)
from toolgate.agent.parser import CommandParser, ParsedResponse, generate_request_id
from toolgate.agent.reasoning import ReasoningProcessor
from toolgate.agent.session import ExecutionSession

__all__ = [
    "CommandParser",
    "ExecutionGovernor",
    "ExecutionSession",
    "FormatStyle",
    "LimitWarning",
    "ParsedResponse",
    "ProcessedResponse",
    "ReasoningProcessor",
    "ToolDisplay",
    "ToolResultFormatter",
    "UiResponse",
    "command_key",
    "generate_request_id",
]
