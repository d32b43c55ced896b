from cadence.tools.registry import RegisteredTool, ToolFunction, ToolRegistry, ToolResult
from cadence.tools.scheduler import CANCELLED_RESPONSE, ConfirmationOutcome, LocalToolScheduler

__all__ = [
    "CANCELLED_RESPONSE",
    "ConfirmationOutcome",
    "LocalToolScheduler",
    "RegisteredTool",
    "ToolFunction",
    "ToolRegistry",
    "ToolResult",
]
