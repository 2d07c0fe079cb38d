"""OpenAI chat-completions provider (OpenAI, Azure OpenAI, compatible servers)."""

from typing import TYPE_CHECKING

from openai import AsyncAzureOpenAI, AsyncOpenAI

if TYPE_CHECKING:
    from hazel.tools.registry import ToolDescriptor

from hazel.config import ModelConfig
from hazel.messages import Message, ToolCall
from hazel.providers.base import Completion, Provider, Usage


def message_from_openai(message) -> Message:
    """Convert a response message into a hazel Message."""
    tool_calls = [
        ToolCall(
            id=tc.id,
            name=tc.function.name,
            arguments=tc.function.arguments or "",
        )
        for tc in message.tool_calls or []
    ]
    return Message.assistant(
        content=message.content or "",
        tool_calls=tool_calls,
        reasoning=getattr(message, "reasoning_content", None),
    )


class OpenAIProvider(Provider):
    """Provider for the OpenAI chat-completions API and its look-alikes.

    ``backend`` selects the client:
    - "openai": api.openai.com (or ``host`` if given)
    - "azure": an Azure OpenAI deployment at ``host``; ``model`` is the deployment
    - "openai_compatible": VLLM, LocalAI, llama.cpp, etc. at ``host``
    """

    name = "openai"

    def __init__(
        self,
        model_id: str,
        backend: str = "openai",
        host: str | None = None,
        api_key: str | None = None,
        api_version: str | None = None,
        client: AsyncOpenAI | None = None,
    ):
        self.model_id = model_id
        self.backend = backend
        # Older deployments reject the "developer" role
        self.system_role = "developer" if backend == "openai" else "system"
        if client is not None:
            self.client = client
        elif backend == "azure":
            self.client = AsyncAzureOpenAI(
                azure_endpoint=host,
                api_key=api_key,
                api_version=api_version,
            )
        elif backend == "openai_compatible":
            self.client = AsyncOpenAI(base_url=f"{host}/v1", api_key=api_key or "EMPTY")
        else:
            self.client = AsyncOpenAI(base_url=host, api_key=api_key)

    @classmethod
    def from_config(cls, config: ModelConfig) -> "OpenAIProvider":
        return cls(
            model_id=config.model,
            backend=config.backend,
            host=config.host,
            api_key=config.api_key,
            api_version=config.api_version,
        )

    def _messages_to_openai(self, messages: tuple[Message, ...]) -> list[dict]:
        openai_messages = []
        for msg in messages:
            wire = msg.to_dict()
            if msg.role == "developer":
                wire["role"] = self.system_role
            openai_messages.append(wire)
        return openai_messages

    async def complete(
        self,
        messages: tuple[Message, ...],
        tools: tuple["ToolDescriptor", ...],
    ) -> Completion:
        kwargs = {
            "model": self.model_id,
            "messages": self._messages_to_openai(messages),
        }
        if tools:
            kwargs["tools"] = [tool.to_openai() for tool in tools]
            kwargs["tool_choice"] = "auto"

        response = await self.client.chat.completions.create(**kwargs)

        usage = Usage()
        if response.usage:
            usage = Usage(
                prompt_tokens=response.usage.prompt_tokens,
                completion_tokens=response.usage.completion_tokens,
                total_tokens=response.usage.total_tokens,
            )
        return Completion(
            choices=tuple(message_from_openai(choice.message) for choice in response.choices),
            usage=usage,
        )
