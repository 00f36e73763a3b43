"""OpenAI provider using openai SDK with native async."""

import asyncio
import logging
import os
import time

from openai import AsyncOpenAI

from config.config_loader import ModelConfig
from board.providers.base import AIProvider, CallOptions, ModelResponse, ProviderError, ProviderTimeout

logger = logging.getLogger(__name__)


def chat_messages(prompt: str, options: CallOptions | None) -> list[dict[str, str]]:
    """Build a chat-completions message list with an optional system message."""
    messages: list[dict[str, str]] = []
    if options is not None and options.system_prompt:
        messages.append({"role": "system", "content": options.system_prompt})
    messages.append({"role": "user", "content": prompt})
    return messages


class OpenAIProvider(AIProvider):
    """OpenAI provider via openai SDK."""

    label = "OpenAI"

    def __init__(self, config: ModelConfig) -> None:
        super().__init__(config)
        api_key = os.environ.get(config.api_key_env, "").strip()
        if not api_key:
            raise ProviderError(config.name, f"Missing API key: {config.api_key_env}")
        self._client = self._make_client(api_key)

    def _make_client(self, api_key: str) -> AsyncOpenAI:
        return AsyncOpenAI(api_key=api_key)

    async def generate(self, prompt: str, options: CallOptions | None = None) -> ModelResponse:
        timeout = self._timeout_for(options)
        kwargs: dict = {
            "model": self._config.model,
            "messages": chat_messages(prompt, options),
            "max_tokens": self._max_tokens_for(options),
        }
        if options is not None and options.temperature is not None:
            kwargs["temperature"] = options.temperature

        start = time.monotonic()
        try:
            response = await asyncio.wait_for(self._client.chat.completions.create(**kwargs), timeout=timeout)
        except TimeoutError as exc:
            raise ProviderTimeout(self._config.name, f"Request timed out after {timeout:g}s") from exc
        except Exception as exc:
            raise ProviderError(self._config.name, f"API call failed: {exc}") from exc

        latency = time.monotonic() - start

        choice = response.choices[0] if response.choices else None
        if not choice or not choice.message.content:
            raise ProviderError(self._config.name, "Empty response content")

        input_tokens = output_tokens = None
        if response.usage:
            input_tokens = response.usage.prompt_tokens
            output_tokens = response.usage.completion_tokens

        logger.info("%s %s: %.2fs, %s/%s tokens", self.label, self._config.model, latency, input_tokens, output_tokens)

        return ModelResponse(
            provider=self._config.name,
            model=self._config.model,
            content=choice.message.content,
            latency_sec=latency,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )
