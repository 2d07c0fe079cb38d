"""Ollama provider for local models."""

import json
import uuid
from typing import TYPE_CHECKING

import ollama

if TYPE_CHECKING:
    from hazel.tools.registry import ToolDescriptor

from hazel.config import DEFAULT_OLLAMA_HOST, DEFAULT_OLLAMA_MODEL, ModelConfig
from hazel.messages import Message, ToolCall
from hazel.providers.base import Completion, Provider, Usage


def _decode_arguments(arguments: str) -> dict:
    try:
        args = json.loads(arguments) if arguments else {}
    except json.JSONDecodeError:
        return {}
    return args if isinstance(args, dict) else {}


class OllamaProvider(Provider):
    """Ollama provider for local LLM inference."""

    name = "ollama"

    def __init__(
        self,
        model_id: str = DEFAULT_OLLAMA_MODEL,
        host: str = DEFAULT_OLLAMA_HOST,
        client: ollama.AsyncClient | None = None,
    ):
        self.model_id = model_id
        self.client = client or ollama.AsyncClient(host=host)

    @classmethod
    def from_config(cls, config: ModelConfig) -> "OllamaProvider":
        return cls(model_id=config.model, host=config.host or DEFAULT_OLLAMA_HOST)

    def _messages_to_ollama(self, messages: tuple[Message, ...]) -> list[dict]:
        """Convert messages to Ollama's format.

        Ollama has no developer role and wants tool arguments as objects.
        """
        ollama_messages = []
        for msg in messages:
            if msg.role == "developer":
                ollama_messages.append({"role": "system", "content": msg.content})
            elif msg.role == "tool":
                ollama_messages.append({"role": "tool", "content": msg.content})
            elif msg.tool_calls:
                ollama_messages.append({
                    "role": "assistant",
                    "content": msg.content,
                    "tool_calls": [
                        {
                            "function": {
                                "name": tc.name,
                                "arguments": _decode_arguments(tc.arguments),
                            },
                        }
                        for tc in msg.tool_calls
                    ],
                })
            else:
                ollama_messages.append({"role": msg.role, "content": msg.content})
        return ollama_messages

    async def complete(
        self,
        messages: tuple[Message, ...],
        tools: tuple["ToolDescriptor", ...],
    ) -> Completion:
        response = await self.client.chat(
            model=self.model_id,
            messages=self._messages_to_ollama(messages),
            tools=[tool.to_openai() for tool in tools] if tools else None,
            stream=False,
        )
        message = response.message

        # Ollama does not assign call ids, so make correlation ids up
        tool_calls = [
            ToolCall(
                id=f"call_{uuid.uuid4().hex[:12]}",
                name=tc.function.name,
                arguments=json.dumps(tc.function.arguments or {}),
            )
            for tc in message.tool_calls or []
        ]

        prompt_tokens = response.prompt_eval_count or 0
        completion_tokens = response.eval_count or 0
        return Completion(
            choices=(Message.assistant(
                content=message.content or "",
                tool_calls=tool_calls,
                reasoning=getattr(message, "thinking", None),
            ),),
            usage=Usage(
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                total_tokens=prompt_tokens + completion_tokens,
            ),
        )
