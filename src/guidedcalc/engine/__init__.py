"""Guided numeric dialogue engine.

One parametrized engine runs every calculator: the sequencer walks a tool's
fixed step sequences, the validation kernel classifies each answer and pure
dialogue transitions produce the next session state. The async controller
that delivers display events lives in `engine.controller`.
"""

from .dialogue import Transition
from .tools import ToolConfig, ToolResult, get_tool, list_tools

__all__ = [
    "ToolConfig",
    "ToolResult",
    "Transition",
    "get_tool",
    "list_tools",
]
