"""External tool execution and resolution."""

from .runner import CommandRunner, ToolInvocationError, run_command
from .toolchain import MissingToolError, Toolchain

__all__ = [
    "CommandRunner",
    "MissingToolError",
    "ToolInvocationError",
    "Toolchain",
    "run_command",
]
