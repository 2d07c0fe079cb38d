"""Base tool class and built-in local tools.

Tools raise ``ToolError`` (or let any other exception escape); the turn
engine turns failures into error results for the model.
"""

import subprocess
from abc import ABC, abstractmethod
from pathlib import Path

BASH_TIMEOUT = 120
MAX_READ_CHARS = 100_000


class ToolError(Exception):
    """A tool could not do what was asked."""


class Tool(ABC):
    """Base class for all local tools."""

    name: str
    description: str
    parameters: dict  # JSON Schema

    @abstractmethod
    def execute(self, **kwargs) -> str:
        """Execute the tool and return the result."""


class BashTool(Tool):
    """Execute shell commands."""

    name = "bash"
    description = "Execute a shell command and return its output."
    parameters = {
        "type": "object",
        "properties": {
            "command": {
                "type": "string",
                "description": "The shell command to execute",
            },
        },
        "required": ["command"],
    }

    def __init__(self, timeout: int = BASH_TIMEOUT):
        self.timeout = timeout

    def execute(self, command: str) -> str:
        try:
            result = subprocess.run(
                command,
                shell=True,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise ToolError(f"command timed out after {self.timeout} seconds") from e

        # A failing command is still a result the model should see
        output = result.stdout
        if result.stderr:
            output += f"\n[stderr]\n{result.stderr}"
        if result.returncode != 0:
            output += f"\n[exit code: {result.returncode}]"
        return output or "(no output)"


class ReadFileTool(Tool):
    """Read file contents."""

    name = "read_file"
    description = "Read the contents of a file."
    parameters = {
        "type": "object",
        "properties": {
            "path": {
                "type": "string",
                "description": "Path to the file to read",
            },
        },
        "required": ["path"],
    }

    def execute(self, path: str) -> str:
        p = Path(path).expanduser()
        if not p.exists():
            raise ToolError(f"file not found: {path}")
        if not p.is_file():
            raise ToolError(f"not a file: {path}")
        content = p.read_text()
        if len(content) > MAX_READ_CHARS:
            return content[:MAX_READ_CHARS] + "\n[truncated...]"
        return content


class WriteFileTool(Tool):
    """Write content to a file."""

    name = "write_file"
    description = "Write content to a file. Creates the file if it doesn't exist."
    parameters = {
        "type": "object",
        "properties": {
            "path": {
                "type": "string",
                "description": "Path to the file to write",
            },
            "content": {
                "type": "string",
                "description": "Content to write to the file",
            },
        },
        "required": ["path", "content"],
    }

    def execute(self, path: str, content: str) -> str:
        p = Path(path).expanduser()
        if p.is_dir():
            raise ToolError(f"is a directory: {path}")
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(content)
        return f"[wrote {len(content)} bytes to {path}]"


def get_default_tools() -> list[Tool]:
    """Return the default set of local tools, in registration order."""
    return [
        BashTool(),
        ReadFileTool(),
        WriteFileTool(),
    ]
