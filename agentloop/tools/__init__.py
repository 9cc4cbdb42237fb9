"""
Tools module - tool catalogue, tool construction and tool execution.
"""

from .approval import (
    ApproveAllToolRuns,
    CallbackApprovalSeeker,
    ToolAllowList,
    ToolRunApprovalSeeker,
    resolve_approval,
)
from .base import (
    ExternalTool,
    ExternalToolHandler,
    ExternalToolResponse,
    InternalTool,
    InvalidToolArguments,
    Tool,
    ToolCatalogue,
    ToolDefinition,
)
from .decorator import tool
from .executor import ToolExecutor, render_payload
from .local import function_tool
from .toolbox import ToolBox, as_tool, register_tools

__all__ = [
    # Catalogue types
    "ToolDefinition",
    "InternalTool",
    "ExternalTool",
    "ExternalToolResponse",
    "ExternalToolHandler",
    "InvalidToolArguments",
    "Tool",
    "ToolCatalogue",
    # Construction
    "tool",
    "function_tool",
    "ToolBox",
    "as_tool",
    "register_tools",
    # Approval
    "ToolRunApprovalSeeker",
    "ApproveAllToolRuns",
    "ToolAllowList",
    "CallbackApprovalSeeker",
    "resolve_approval",
    # Execution
    "ToolExecutor",
    "render_payload",
]
