"""Base provider protocol for completion back-ends."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from hazel.tools.registry import ToolDescriptor

from hazel.config import ModelConfig
from hazel.messages import Message


@dataclass(frozen=True)
class Usage:
    """Token usage from a response."""
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    def __add__(self, other: "Usage") -> "Usage":
        return Usage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
        )


@dataclass(frozen=True)
class Completion:
    """One completion response: candidate messages plus token usage."""
    choices: tuple[Message, ...] = ()
    usage: Usage = field(default_factory=Usage)


class Provider(ABC):
    """Abstract base class for completion back-ends."""

    name: str  # Backend identifier, e.g., "openai", "ollama"

    @classmethod
    @abstractmethod
    def from_config(cls, config: ModelConfig) -> "Provider":
        """Build a provider from a model configuration."""

    @abstractmethod
    async def complete(
        self,
        messages: tuple[Message, ...],
        tools: tuple["ToolDescriptor", ...],
    ) -> Completion:
        """Request a completion with ``tool_choice`` left to the model.

        Args:
            messages: Conversation history, system prompt included
            tools: Tools the model may call

        Returns:
            Completion with every candidate message the endpoint returned
        """
