"""Shared fixtures: a scripted completion back-end and small local tools."""

import pytest

from hazel.config import ModelConfig
from hazel.mcp import RemoteServerManager
from hazel.messages import Message, ToolCall
from hazel.providers.base import Completion, Provider, Usage
from hazel.state import SessionState, initial_state
from hazel.tools.base import Tool
from hazel.tools.registry import RegistryBuilder


class ScriptedProvider(Provider):
    """Replays canned completions and records every request."""

    name = "scripted"

    def __init__(self, responses: list[Completion | Exception]):
        self.responses = list(responses)
        self.requests: list[tuple[tuple[Message, ...], tuple]] = []

    @classmethod
    def from_config(cls, config: ModelConfig) -> "ScriptedProvider":
        return cls([])

    async def complete(self, messages, tools) -> Completion:
        self.requests.append((messages, tools))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def reply(content: str = "", tool_calls=(), usage: Usage | None = None) -> Completion:
    """A completion with a single assistant candidate."""
    return Completion(
        choices=(Message.assistant(content, tool_calls=tool_calls),),
        usage=usage or Usage(prompt_tokens=10, completion_tokens=5, total_tokens=15),
    )


def call(id: str, name: str, arguments: str = "{}") -> ToolCall:
    return ToolCall(id=id, name=name, arguments=arguments)


class EchoTool(Tool):
    name = "echo"
    description = "Echo the given text."
    parameters = {
        "type": "object",
        "properties": {"text": {"type": "string"}},
        "required": ["text"],
    }

    def execute(self, text: str) -> str:
        return text


class FailingTool(Tool):
    name = "explode"
    description = "Always fails."
    parameters = {"type": "object", "properties": {}}

    def execute(self) -> str:
        raise RuntimeError("boom")


@pytest.fixture
def config() -> ModelConfig:
    return ModelConfig(name="default", backend="openai", model="gpt-test", api_key="sk-test")


@pytest.fixture
def servers() -> RemoteServerManager:
    return RemoteServerManager()


@pytest.fixture
def state(config: ModelConfig) -> SessionState:
    descriptors, registry = RegistryBuilder().add_local([EchoTool(), FailingTool()]).build()
    return initial_state(config, descriptors, registry)
