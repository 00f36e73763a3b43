"""Anthropic Claude provider using anthropic SDK with native async."""

import asyncio
import logging
import os
import time

import anthropic as anthropic_sdk

from config.config_loader import ModelConfig
from board.providers.base import AIProvider, CallOptions, ModelResponse, ProviderError, ProviderTimeout

logger = logging.getLogger(__name__)


class AnthropicProvider(AIProvider):
    """Anthropic Claude provider via anthropic SDK."""

    def __init__(self, config: ModelConfig) -> None:
        super().__init__(config)
        api_key = os.environ.get(config.api_key_env, "").strip()
        if not api_key:
            raise ProviderError(config.name, f"Missing API key: {config.api_key_env}")
        self._client = anthropic_sdk.AsyncAnthropic(api_key=api_key)

    async def generate(self, prompt: str, options: CallOptions | None = None) -> ModelResponse:
        timeout = self._timeout_for(options)
        kwargs: dict = {
            "model": self._config.model,
            "max_tokens": self._max_tokens_for(options),
            "messages": [{"role": "user", "content": prompt}],
        }
        if options is not None and options.system_prompt:
            kwargs["system"] = options.system_prompt
        if options is not None and options.temperature is not None:
            kwargs["temperature"] = options.temperature

        start = time.monotonic()
        try:
            response = await asyncio.wait_for(self._client.messages.create(**kwargs), timeout=timeout)
        except TimeoutError as exc:
            raise ProviderTimeout(self._config.name, f"Request timed out after {timeout:g}s") from exc
        except Exception as exc:
            raise ProviderError(self._config.name, f"API call failed: {exc}") from exc

        latency = time.monotonic() - start

        if not response.content:
            raise ProviderError(self._config.name, "Empty response content")

        text_blocks = [b.text for b in response.content if b.type == "text"]
        if not text_blocks:
            raise ProviderError(self._config.name, "No text blocks in response")

        input_tokens = output_tokens = None
        if response.usage:
            input_tokens = response.usage.input_tokens
            output_tokens = response.usage.output_tokens

        logger.info("Anthropic %s: %.2fs, %s/%s tokens", self._config.model, latency, input_tokens, output_tokens)

        return ModelResponse(
            provider=self._config.name,
            model=self._config.model,
            content="\n".join(text_blocks),
            latency_sec=latency,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )
