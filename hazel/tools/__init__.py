"""Tools for hazel."""

from .base import BashTool, ReadFileTool, Tool, ToolError, WriteFileTool, get_default_tools
from .registry import (
    Invoker,
    LocalInvoker,
    RegistrationError,
    RegistryBuilder,
    RemoteInvoker,
    ToolDescriptor,
    ToolRegistry,
    build_registry,
    invoke,
)

__all__ = [
    "Tool",
    "ToolError",
    "BashTool",
    "ReadFileTool",
    "WriteFileTool",
    "get_default_tools",
    "Invoker",
    "LocalInvoker",
    "RemoteInvoker",
    "RegistrationError",
    "RegistryBuilder",
    "ToolDescriptor",
    "ToolRegistry",
    "build_registry",
    "invoke",
]
